# tests/conftest.py
import asyncio
import json

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from wellness.database import Base, get_db
from wellness import models  # noqa: F401
from wellness.client.api import DataAccessLayer
from wellness.client.resolver import FixedEndpointResolver
from wellness.client.storage import LocalStorage, MemoryStore
from main import app


# DB (SQLite in-memory for tests)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Fresh schema for every test
@pytest.fixture(autouse=True)
def prepare_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


# One event loop for the WHOLE pytest session
@pytest.fixture(scope="session")
def session_loop():
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.close()


@pytest.fixture()
def run(session_loop):
    """Run a coroutine to completion on the session loop."""

    def _run(coro):
        asyncio.set_event_loop(session_loop)
        return session_loop.run_until_complete(coro)

    return _run


@pytest.fixture()
def override_db(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield db_session
    app.dependency_overrides.clear()


# Simple ASGI response/client
class SimpleResponse:
    def __init__(
        self, status_code: int, body: bytes, headers: list[tuple[bytes, bytes]]
    ):
        self.status_code = status_code
        self._body = body
        self.headers = {k.decode(): v.decode() for k, v in headers}

    def json(self):
        return json.loads(self._body.decode())


class SimpleClient:
    """
    Important:
    - uses ONE shared session loop (passed from fixture)
    - does NOT call asyncio.run()
    - does NOT close the loop
    """

    def __init__(self, app, loop):
        self.app = app
        self.loop = loop

    def close(self):
        # do not close the loop here (session fixture closes it)
        pass

    def request(self, method: str, path: str, json_body=None, headers=None):
        headers = headers or {}
        body_bytes = b""

        if json_body is not None:
            body_bytes = json.dumps(json_body).encode()
            headers.setdefault("content-type", "application/json")

        raw_headers = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
        scope = {
            "type": "http",
            "method": method.upper(),
            "path": path,
            "raw_path": path.encode(),
            "headers": raw_headers,
            "query_string": b"",
            "client": ("testclient", 5000),
            "server": ("testserver", 80),
            "scheme": "http",
        }

        async def receive():
            nonlocal body_bytes
            chunk, body_bytes = body_bytes, b""
            return {"type": "http.request", "body": chunk, "more_body": False}

        response_body = bytearray()
        response_status = 500
        response_headers: list[tuple[bytes, bytes]] = []

        async def send(message):
            nonlocal response_status, response_headers
            if message["type"] == "http.response.start":
                response_status = message["status"]
                response_headers = message.get("headers", [])
            elif message["type"] == "http.response.body":
                response_body.extend(message.get("body", b""))

        # ensure the loop is the current one
        asyncio.set_event_loop(self.loop)
        self.loop.run_until_complete(self.app(scope, receive, send))
        return SimpleResponse(response_status, bytes(response_body), response_headers)

    def get(self, path: str, headers=None):
        return self.request("GET", path, headers=headers)

    def post(self, path: str, json=None, headers=None):
        return self.request("POST", path, json_body=json, headers=headers)

    def delete(self, path: str, headers=None):
        return self.request("DELETE", path, headers=headers)


# Client fixture: override DB dependency per test
@pytest.fixture()
def client(override_db, session_loop):
    c = SimpleClient(app, loop=session_loop)
    try:
        yield c
    finally:
        c.close()


@pytest.fixture()
def local_storage():
    return LocalStorage(MemoryStore(), default_user_id=1)


@pytest.fixture()
def make_access(local_storage, run):
    """Build data access layers over the shared local storage."""
    created = []

    def _make(transport, timeout=10.0, **kwargs):
        access = DataAccessLayer(
            local_storage,
            FixedEndpointResolver("http://testserver"),
            timeout=timeout,
            transport=transport,
            **kwargs,
        )
        created.append(access)
        return access

    yield _make
    for access in created:
        run(access.aclose())


# Data access layer talking to the real app in-process
@pytest.fixture()
def remote_access(override_db, make_access):
    return make_access(httpx.ASGITransport(app=app))
