"""Data access layer: the journal service first, local storage as fallback.

Every operation validates its payload, then makes one remote attempt bounded
by a fixed timeout. The attempt yields either the decoded response body or a
:class:`RemoteFailure`; the merge step turns that into a :class:`RemoteResult`
or, after repeating the operation against local storage, a
:class:`LocalResult`. Both carry the same normalized record shape.

Only unavailability falls back. Validation errors and duplicate contacts are
raised to the caller whichever store reports them. The two stores are not
kept consistent with each other.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

import httpx

from ..core import get_client_settings
from ..errors import ConflictError, UnavailableError, ValidationError
from ..log import get_logger
from ..schemas import (
    ContactCreate,
    ContactRecord,
    JournalEntryCreate,
    JournalEntryRecord,
    RecordId,
    utcnow,
    validate_payload,
)
from .resolver import EndpointResolver, FixedEndpointResolver, ProbingEndpointResolver
from .storage import JsonFileStore, LocalStorage

logger = get_logger(__name__)

T = TypeVar("T")

LOCAL_MODE = "local storage mode"


@dataclass(frozen=True)
class RemoteFailure:
    """Why a remote attempt could not be used."""

    reason: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class RemoteResult(Generic[T]):
    """Value produced by the journal service."""

    value: T

    @property
    def source(self) -> str:
        return "remote"


@dataclass(frozen=True)
class LocalResult(Generic[T]):
    """Value produced by local storage after the remote attempt failed."""

    value: T
    reason: str

    @property
    def source(self) -> str:
        return "local"


Result = Union[RemoteResult[T], LocalResult[T]]


class DataAccessLayer:
    """
    Journal and contact operations resilient to service unavailability.

    Args:
        storage: Local store used as fallback.
        resolver: Finds the service base URL.
        timeout: Seconds allowed for one remote attempt, resolution included.
        local_only: Skip the service and always use local storage.
        transport: Optional httpx transport, mainly for tests.
    """

    def __init__(
        self,
        storage: LocalStorage,
        resolver: EndpointResolver,
        timeout: float = 10.0,
        local_only: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.storage = storage
        self.resolver = resolver
        self.timeout = timeout
        self.local_only = local_only
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._user_id: int | None = None

    async def __aenter__(self) -> "DataAccessLayer":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                transport=self._transport,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        return self._http

    async def get_user_id(self) -> int:
        """Resolve the installation's user id once and cache it."""
        if self._user_id is None:
            self._user_id = await self.storage.get_user_id()
        return self._user_id

    async def _send(
        self, method: str, path: str, payload: dict[str, Any] | None
    ) -> httpx.Response:
        http = self._client()
        base_url = await self.resolver.resolve(http)
        return await http.request(method, f"{base_url}{path}", json=payload)

    async def _call(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any] | RemoteFailure:
        """
        Make one remote attempt.

        Returns:
            dict | RemoteFailure: The response body of a successful call, or
            the reason the call cannot be used.

        Raises:
            ValidationError: The service rejected the input (400).
            ConflictError: The service reported a duplicate (409).
        """
        if self.local_only:
            return RemoteFailure(LOCAL_MODE)
        try:
            response = await asyncio.wait_for(
                self._send(method, path, payload), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            return RemoteFailure(f"timed out after {self.timeout}s")
        except httpx.TimeoutException:
            return RemoteFailure(f"timed out after {self.timeout}s")
        except httpx.HTTPError as exc:
            return RemoteFailure(f"{type(exc).__name__}: {exc}")
        except UnavailableError as exc:
            return RemoteFailure(exc.message)

        status_code = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return RemoteFailure(f"malformed response (HTTP {status_code})", status_code)

        message = body.get("message") or f"HTTP {status_code}"
        if status_code == 400:
            raise ValidationError(
                message, field=body.get("field"), details=body.get("details")
            )
        if status_code == 409:
            raise ConflictError(message)
        if response.is_success and body.get("success") is True:
            return body
        return RemoteFailure(f"HTTP {status_code}: {message}", status_code)

    async def _merge(
        self,
        operation: str,
        outcome: dict[str, Any] | RemoteFailure,
        normalize: Callable[[dict[str, Any]], T],
        local: Callable[[], Awaitable[T]],
        expected_status: tuple[int, ...] = (),
    ) -> Result[T]:
        if not isinstance(outcome, RemoteFailure):
            try:
                return RemoteResult(normalize(outcome))
            except (KeyError, TypeError, ValueError) as exc:
                outcome = RemoteFailure(f"malformed response: {exc}")

        if outcome.reason == LOCAL_MODE:
            logger.debug("%s: %s", operation, LOCAL_MODE)
        elif outcome.status_code in expected_status:
            logger.info(
                "%s: service answered HTTP %s, checking local storage",
                operation,
                outcome.status_code,
            )
        else:
            logger.warning(
                "%s: service unavailable (%s), using local storage",
                operation,
                outcome.reason,
            )
        return LocalResult(await local(), reason=outcome.reason)

    async def list_entries_result(self) -> Result[list[JournalEntryRecord]]:
        user_id = await self.get_user_id()
        outcome = await self._call("GET", f"/journal/user/{user_id}")

        def normalize(body: dict[str, Any]) -> list[JournalEntryRecord]:
            return [
                JournalEntryRecord.model_validate({"user_id": user_id, **item})
                for item in body["entries"]
            ]

        return await self._merge(
            "list entries", outcome, normalize, self.storage.get_journal_entries
        )

    async def list_entries(self) -> list[JournalEntryRecord]:
        """Return the user's journal entries, newest first."""
        return (await self.list_entries_result()).value

    async def create_entry_result(
        self,
        entry_text: str,
        mood_rating: int,
        timestamp: datetime | str | None = None,
    ) -> Result[JournalEntryRecord]:
        user_id = await self.get_user_id()
        entry = validate_payload(
            JournalEntryCreate,
            {
                "user_id": user_id,
                "entry_text": entry_text,
                "mood_rating": mood_rating,
                "timestamp": timestamp,
            },
        )
        outcome = await self._call(
            "POST", "/journal/entry", entry.model_dump(mode="json", exclude_none=True)
        )

        def normalize(body: dict[str, Any]) -> JournalEntryRecord:
            return JournalEntryRecord(
                id=body["entry_id"],
                user_id=user_id,
                entry_text=entry.entry_text,
                mood_rating=entry.mood_rating,
                timestamp=body.get("timestamp") or entry.timestamp or utcnow(),
            )

        return await self._merge(
            "create entry",
            outcome,
            normalize,
            lambda: self.storage.add_journal_entry(entry),
        )

    async def create_entry(
        self,
        entry_text: str,
        mood_rating: int,
        timestamp: datetime | str | None = None,
    ) -> JournalEntryRecord:
        """
        Create a journal entry.

        Args:
            entry_text: Non-empty entry text.
            mood_rating: Integer between 1 and 5.
            timestamp: Optional creation time; defaults to now.

        Raises:
            ValidationError: If the payload is invalid.

        Returns:
            JournalEntryRecord: The created entry, from whichever store took it.
        """
        return (await self.create_entry_result(entry_text, mood_rating, timestamp)).value

    async def delete_entry_result(self, entry_id: RecordId) -> Result[bool]:
        outcome = await self._call("DELETE", f"/journal/entry/{entry_id}")
        # A 404 falls through to local storage: the entry may have been
        # created there while the service was down.
        return await self._merge(
            "delete entry",
            outcome,
            lambda body: True,
            lambda: self.storage.delete_journal_entry(entry_id),
            expected_status=(404,),
        )

    async def delete_entry(self, entry_id: RecordId) -> bool:
        """
        Delete a journal entry.

        Raises:
            NotFoundError: If neither store has the entry.
        """
        return (await self.delete_entry_result(entry_id)).value

    async def list_contacts_result(self) -> Result[list[ContactRecord]]:
        user_id = await self.get_user_id()
        outcome = await self._call("GET", f"/contacts/user/{user_id}")

        def normalize(body: dict[str, Any]) -> list[ContactRecord]:
            return [
                ContactRecord.model_validate({"user_id": user_id, **item})
                for item in body["contacts"]
            ]

        return await self._merge(
            "list contacts", outcome, normalize, self.storage.get_contacts
        )

    async def list_contacts(self) -> list[ContactRecord]:
        """Return the user's contacts ordered by name."""
        return (await self.list_contacts_result()).value

    async def create_contact_result(
        self, contact_name: str, contact_email: str
    ) -> Result[ContactRecord]:
        user_id = await self.get_user_id()
        contact = validate_payload(
            ContactCreate,
            {
                "user_id": user_id,
                "contact_name": contact_name,
                "contact_email": contact_email,
            },
        )
        outcome = await self._call("POST", "/contacts/add", contact.model_dump())

        def normalize(body: dict[str, Any]) -> ContactRecord:
            return ContactRecord(
                id=body["contact_id"],
                user_id=user_id,
                contact_name=contact.contact_name,
                contact_email=contact.contact_email,
                created_at=body.get("created_at") or utcnow(),
            )

        return await self._merge(
            "create contact",
            outcome,
            normalize,
            lambda: self.storage.add_contact(contact),
        )

    async def create_contact(self, contact_name: str, contact_email: str) -> ContactRecord:
        """
        Add a support contact.

        Raises:
            ValidationError: If the name is blank or the email is invalid.
            ConflictError: If the user already has a contact with this email,
                reported by the service or by local storage.

        Returns:
            ContactRecord: The created contact.
        """
        return (await self.create_contact_result(contact_name, contact_email)).value

    async def check_health(self) -> dict[str, Any]:
        """Return the service health report, or a local-storage stub. Never raises."""
        if self.local_only:
            return {
                "success": True,
                "message": "Running in local storage mode",
                "storage": "local",
            }
        try:
            outcome = await self._call("GET", "/health")
        except (ValidationError, ConflictError) as exc:
            outcome = RemoteFailure(exc.message)
        if isinstance(outcome, RemoteFailure):
            return {
                "success": False,
                "message": "Backend unavailable - using local storage",
                "storage": "local",
                "reason": outcome.reason,
            }
        return {**outcome, "storage": "remote"}


_default: DataAccessLayer | None = None


def build_data_access() -> DataAccessLayer:
    """Create a data access layer from :class:`~wellness.core.ClientSettings`."""
    settings = get_client_settings()
    if settings.API_CANDIDATE_URLS:
        resolver: EndpointResolver = ProbingEndpointResolver(settings.API_CANDIDATE_URLS)
    else:
        resolver = FixedEndpointResolver(settings.API_BASE_URL)
    storage = LocalStorage(
        JsonFileStore(settings.STORAGE_PATH), default_user_id=settings.DEFAULT_USER_ID
    )
    return DataAccessLayer(
        storage,
        resolver,
        timeout=settings.REQUEST_TIMEOUT,
        local_only=settings.USE_LOCAL_STORAGE,
    )


def get_data_access() -> DataAccessLayer:
    """Return the process-wide data access layer, creating it on first use."""
    global _default
    if _default is None:
        _default = build_data_access()
    return _default


async def reset_data_access() -> None:
    """Close and forget the process-wide data access layer."""
    global _default
    if _default is not None:
        await _default.aclose()
        _default.resolver.reset()
    _default = None
