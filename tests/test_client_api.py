import asyncio
import json
import logging

import httpx
import pytest

from wellness.client import api as api_module
from wellness.client.api import (
    DataAccessLayer,
    LocalResult,
    RemoteResult,
    get_data_access,
    reset_data_access,
)
from wellness.client.resolver import (
    FixedEndpointResolver,
    ProbingEndpointResolver,
)
from wellness.client.storage import JsonFileStore
from wellness.core import get_client_settings
from wellness.errors import ConflictError, NotFoundError, ValidationError


class Recorder:
    """Mock transport handler that records requests and replies with ``reply``."""

    def __init__(self, reply):
        self.reply = reply
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        return self.reply(request)


def connection_refused(request):
    raise httpx.ConnectError("connection refused", request=request)


def server_error(request):
    return httpx.Response(500, json={"success": False, "message": "boom"})


def not_json(request):
    return httpx.Response(200, text="<html>proxy login</html>")


def unsuccessful_body(request):
    return httpx.Response(200, json={"success": False, "message": "nope"})


async def slow(request):
    await asyncio.sleep(1)
    return httpx.Response(201, json={"success": True, "entry_id": 1})


# Remote path against the real service


def test_remote_create_list_delete(remote_access, local_storage, run):
    result = run(remote_access.create_entry_result("Test", 4))
    assert isinstance(result, RemoteResult)
    assert result.source == "remote"
    created = result.value
    assert isinstance(created.id, int)
    assert created.user_id == 1

    listed = run(remote_access.list_entries_result())
    assert isinstance(listed, RemoteResult)
    match = [e for e in listed.value if e.id == created.id]
    assert match and match[0].entry_text == "Test" and match[0].mood_rating == 4

    assert run(remote_access.delete_entry(created.id)) is True
    assert created.id not in [e.id for e in run(remote_access.list_entries())]
    # Nothing touched the local store
    assert run(local_storage.get_journal_entries()) == []


def test_remote_contacts(remote_access, run):
    created = run(remote_access.create_contact("Dr. Wilson", "Dr.Wilson@Health.com"))
    assert created.contact_email == "dr.wilson@health.com"
    assert isinstance(created.id, int)

    result = run(remote_access.list_contacts_result())
    assert isinstance(result, RemoteResult)
    assert [c.contact_email for c in result.value] == ["dr.wilson@health.com"]


def test_remote_duplicate_contact_raises_without_fallback(
    remote_access, local_storage, run
):
    run(remote_access.create_contact("Dr. Wilson", "dr.wilson@health.com"))
    with pytest.raises(ConflictError):
        run(remote_access.create_contact("Wilson", "DR.WILSON@health.com"))

    assert run(local_storage.get_contacts()) == []
    assert len(run(remote_access.list_contacts())) == 1


def test_remote_health(remote_access, run):
    health = run(remote_access.check_health())
    assert health["success"] is True
    assert health["storage"] == "remote"
    assert health["database"]["status"] == "connected"


# Fallback path


@pytest.mark.parametrize(
    "reply", [connection_refused, server_error, not_json, unsuccessful_body]
)
def test_unavailable_create_entry_falls_back(make_access, local_storage, run, reply):
    access = make_access(httpx.MockTransport(reply))
    result = run(access.create_entry_result("Offline thoughts", 2))

    assert isinstance(result, LocalResult)
    assert result.source == "local"
    assert result.reason
    record = result.value
    assert isinstance(record.id, str)
    assert record.timestamp is not None

    listed = run(access.list_entries_result())
    assert isinstance(listed, LocalResult)
    assert [e.id for e in listed.value] == [record.id]
    assert listed.value[0].entry_text == "Offline thoughts"


def test_timeout_falls_back(make_access, run):
    access = make_access(httpx.MockTransport(slow), timeout=0.05)
    result = run(access.create_entry_result("Slow day", 3))
    assert isinstance(result, LocalResult)
    assert "timed out" in result.reason


def test_httpx_timeout_falls_back(make_access, run):
    def read_timeout(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    access = make_access(httpx.MockTransport(read_timeout))
    result = run(access.list_contacts_result())
    assert isinstance(result, LocalResult)
    assert result.value == []


def test_malformed_success_body_falls_back(make_access, run):
    def missing_entries(request):
        return httpx.Response(200, json={"success": True, "count": 0})

    access = make_access(httpx.MockTransport(missing_entries))
    assert isinstance(run(access.list_entries_result()), LocalResult)


def test_unavailable_duplicate_contact_still_conflicts(make_access, local_storage, run):
    access = make_access(httpx.MockTransport(connection_refused))
    first = run(access.create_contact_result("Dr. Wilson", "dr.wilson@health.com"))
    assert isinstance(first, LocalResult)

    with pytest.raises(ConflictError):
        run(access.create_contact("Dr. Wilson", "Dr.Wilson@Health.com"))
    assert len(run(local_storage.get_contacts())) == 1


def test_remote_conflict_is_not_masked(make_access, local_storage, run):
    def conflict(request):
        return httpx.Response(409, json={"success": False, "message": "exists"})

    access = make_access(httpx.MockTransport(conflict))
    with pytest.raises(ConflictError, match="exists"):
        run(access.create_contact("Dr. Wilson", "dr.wilson@health.com"))
    assert run(local_storage.get_contacts()) == []


# Validation


def test_invalid_input_rejected_before_any_store(make_access, local_storage, run):
    recorder = Recorder(connection_refused)
    access = make_access(httpx.MockTransport(recorder))

    with pytest.raises(ValidationError) as excinfo:
        run(access.create_entry("Too happy", 9))
    assert excinfo.value.field == "mood_rating"

    with pytest.raises(ValidationError) as excinfo:
        run(access.create_contact("Nobody", "nobody-at-all"))
    assert excinfo.value.field == "contact_email"

    assert recorder.requests == []
    assert run(local_storage.get_journal_entries()) == []


def test_remote_validation_error_propagates(make_access, local_storage, run):
    def rejected(request):
        return httpx.Response(
            400,
            json={"success": False, "message": "Validation error", "field": "entry_text"},
        )

    access = make_access(httpx.MockTransport(rejected))
    with pytest.raises(ValidationError) as excinfo:
        run(access.create_entry("fine here", 3))
    assert excinfo.value.field == "entry_text"
    assert run(local_storage.get_journal_entries()) == []


# Delete


def test_delete_local_entry_when_service_does_not_know_it(
    remote_access, local_storage, run, make_access
):
    offline = make_access(httpx.MockTransport(connection_refused))
    local_record = run(offline.create_entry("Written offline", 3))

    # The service answers 404, the entry lives in local storage
    assert run(remote_access.delete_entry(local_record.id)) is True
    assert run(local_storage.get_journal_entries()) == []

    with pytest.raises(NotFoundError):
        run(remote_access.delete_entry(local_record.id))


def test_delete_after_service_404_is_not_reported_as_outage(
    remote_access, make_access, run, caplog
):
    offline = make_access(httpx.MockTransport(connection_refused))
    local_record = run(offline.create_entry("Written offline", 3))

    caplog.clear()
    with caplog.at_level(logging.DEBUG, logger="wellness"):
        assert run(remote_access.delete_entry(local_record.id)) is True

    records = [r for r in caplog.records if r.name == "wellness.client.api"]
    assert [r.levelno for r in records] == [logging.INFO]
    assert "unavailable" not in records[0].getMessage()


def test_delete_unavailable_unknown_entry(make_access, run):
    access = make_access(httpx.MockTransport(connection_refused))
    with pytest.raises(NotFoundError):
        run(access.delete_entry("12345"))


# User id and modes


def test_user_id_resolved_once_and_sent(make_access, local_storage, run):
    local_storage.store.store["user_id"] = "42"

    def created(request):
        body = json.loads(request.content) if request.content else {}
        return httpx.Response(
            201,
            json={
                "success": True,
                "entry_id": 9,
                "timestamp": "2024-05-01T10:00:00",
                "echo_user": body.get("user_id"),
            },
        )

    recorder = Recorder(created)
    access = make_access(httpx.MockTransport(recorder))
    record = run(access.create_entry("hello", 5))
    assert record.id == 9
    assert record.user_id == 42
    assert json.loads(recorder.requests[0].content)["user_id"] == 42
    assert str(recorder.requests[0].url) == "http://testserver/journal/entry"

    # Later changes to storage do not affect the cached id
    local_storage.store.store["user_id"] = "1"
    run(access.list_entries_result())
    assert str(recorder.requests[1].url).endswith("/journal/user/42")


def test_local_only_mode_never_calls_service(make_access, local_storage, run):
    recorder = Recorder(server_error)
    access = make_access(httpx.MockTransport(recorder), local_only=True)

    result = run(access.create_entry_result("Local only", 4))
    assert isinstance(result, LocalResult)
    health = run(access.check_health())
    assert health["storage"] == "local" and health["success"] is True
    assert recorder.requests == []


def test_health_when_unavailable(make_access, run):
    access = make_access(httpx.MockTransport(connection_refused))
    health = run(access.check_health())
    assert health["success"] is False
    assert health["storage"] == "local"


# Endpoint resolution


def test_probing_resolver_picks_first_healthy_candidate(local_storage, run):
    def handler(request):
        if request.url.host == "down.local":
            raise httpx.ConnectError("unreachable", request=request)
        if request.url.path == "/health":
            return httpx.Response(200, json={"success": True})
        return httpx.Response(200, json={"success": True, "entries": [], "count": 0})

    recorder = Recorder(handler)
    resolver = ProbingEndpointResolver(["http://down.local", "http://up.local/"])
    access = DataAccessLayer(
        local_storage, resolver, transport=httpx.MockTransport(recorder)
    )
    try:
        assert isinstance(run(access.list_entries_result()), RemoteResult)
        run(access.list_entries_result())
    finally:
        run(access.aclose())

    hosts = [(r.url.host, r.url.path) for r in recorder.requests]
    assert hosts == [
        ("down.local", "/health"),
        ("up.local", "/health"),
        ("up.local", "/journal/user/1"),
        ("up.local", "/journal/user/1"),
    ]


def test_probing_resolver_without_service_falls_back(local_storage, run):
    resolver = ProbingEndpointResolver(["http://a.local", "http://b.local"])
    access = DataAccessLayer(
        local_storage, resolver, transport=httpx.MockTransport(connection_refused)
    )
    try:
        result = run(access.create_entry_result("nobody home", 3))
    finally:
        run(access.aclose())
    assert isinstance(result, LocalResult)
    assert "candidate" in result.reason


# Process-wide instance


def test_default_instance_created_once_and_reset(tmp_path, monkeypatch, run):
    monkeypatch.setenv("WELLNESS_STORAGE_PATH", str(tmp_path / "store.json"))
    monkeypatch.setenv("WELLNESS_API_BASE_URL", "http://journal.local:9000/")
    monkeypatch.setenv("WELLNESS_REQUEST_TIMEOUT", "3")
    get_client_settings.cache_clear()
    try:
        access = get_data_access()
        assert get_data_access() is access
        assert isinstance(access.resolver, FixedEndpointResolver)
        assert access.resolver.base_url == "http://journal.local:9000"
        assert access.timeout == 3.0
        assert isinstance(access.storage.store, JsonFileStore)

        run(reset_data_access())
        assert api_module._default is None
        assert get_data_access() is not access
    finally:
        run(reset_data_access())
        get_client_settings.cache_clear()
