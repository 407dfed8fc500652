"""Local persisted store used when the journal service is unreachable.

Data lives in a string key-value store under three fixed keys: the journal
entries, the contacts and the resolved user id. Records carry locally
generated ids and timestamps and are never synchronized with the service.
"""

import asyncio
import json
import os
import tempfile
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from pathlib import Path
from typing import Any

from ..errors import ConflictError, NotFoundError
from ..log import get_logger
from ..schemas import (
    ContactCreate,
    ContactRecord,
    JournalEntryCreate,
    JournalEntryRecord,
    RecordId,
    utcnow,
)
from ..seed import SAMPLE_CONTACTS, SAMPLE_ENTRIES

logger = get_logger(__name__)

JOURNAL_ENTRIES_KEY = "journal_entries"
CONTACTS_KEY = "contacts"
USER_ID_KEY = "user_id"


class KeyValueStore(ABC):
    """Asynchronous string key-value store."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored under ``key`` or ``None``."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""


class MemoryStore(KeyValueStore):
    """In-process store; contents are lost when the process exits."""

    def __init__(self):
        self.store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str) -> None:
        self.store[key] = value

    async def delete(self, key: str) -> None:
        self.store.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    Store persisted as a single JSON object on disk.

    Every write replaces the file atomically, so a crash never leaves a
    half-written document behind. File access runs in a worker thread.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("Unreadable local store %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def get(self, key: str) -> str | None:
        data = await asyncio.to_thread(self._load)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        data = await asyncio.to_thread(self._load)
        data[key] = value
        await asyncio.to_thread(self._dump, data)

    async def delete(self, key: str) -> None:
        data = await asyncio.to_thread(self._load)
        if data.pop(key, None) is not None:
            await asyncio.to_thread(self._dump, data)


def _new_local_id(taken: set[str]) -> str:
    candidate = int(time.time() * 1000)
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)


class LocalStorage:
    """Journal entries, contacts and user id kept in a :class:`KeyValueStore`."""

    def __init__(self, store: KeyValueStore, default_user_id: int = 1):
        self.store = store
        self.default_user_id = default_user_id

    async def _read_list(self, key: str) -> list[dict[str, Any]]:
        raw = await self.store.get(key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except ValueError as exc:
            logger.error("Discarding corrupt %s: %s", key, exc)
            return []
        return items if isinstance(items, list) else []

    async def _write_list(self, key: str, items: list[dict[str, Any]]) -> None:
        await self.store.set(key, json.dumps(items))

    async def save_journal_entries(self, entries: list[JournalEntryRecord]) -> None:
        await self._write_list(
            JOURNAL_ENTRIES_KEY, [e.model_dump(mode="json") for e in entries]
        )

    async def get_journal_entries(self) -> list[JournalEntryRecord]:
        """Return all stored entries, newest first."""
        entries = [
            JournalEntryRecord.model_validate(item)
            for item in await self._read_list(JOURNAL_ENTRIES_KEY)
        ]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries

    async def add_journal_entry(self, entry: JournalEntryCreate) -> JournalEntryRecord:
        """
        Store a new entry with a locally generated id.

        Args:
            entry (JournalEntryCreate): Validated entry data.

        Returns:
            JournalEntryRecord: The stored entry.
        """
        entries = await self.get_journal_entries()
        record = JournalEntryRecord(
            id=_new_local_id({str(e.id) for e in entries}),
            user_id=entry.user_id,
            entry_text=entry.entry_text,
            mood_rating=entry.mood_rating,
            timestamp=entry.timestamp or utcnow(),
        )
        entries.insert(0, record)
        await self.save_journal_entries(entries)
        return record

    async def delete_journal_entry(self, entry_id: RecordId) -> bool:
        """
        Remove an entry; ids are compared as strings.

        Raises:
            NotFoundError: If no stored entry has this id.
        """
        entries = await self.get_journal_entries()
        remaining = [e for e in entries if str(e.id) != str(entry_id)]
        if len(remaining) == len(entries):
            raise NotFoundError(f"Entry with ID {entry_id} not found")
        await self.save_journal_entries(remaining)
        return True

    async def save_contacts(self, contacts: list[ContactRecord]) -> None:
        await self._write_list(
            CONTACTS_KEY, [c.model_dump(mode="json") for c in contacts]
        )

    async def get_contacts(self) -> list[ContactRecord]:
        """Return all stored contacts ordered by name."""
        contacts = [
            ContactRecord.model_validate(item)
            for item in await self._read_list(CONTACTS_KEY)
        ]
        contacts.sort(key=lambda c: c.contact_name)
        return contacts

    async def add_contact(self, contact: ContactCreate) -> ContactRecord:
        """
        Store a new contact with a locally generated id.

        Raises:
            ConflictError: If the user already has a contact with this email.
        """
        contacts = await self.get_contacts()
        email = contact.contact_email.lower()
        if any(
            c.user_id == contact.user_id and c.contact_email.lower() == email
            for c in contacts
        ):
            raise ConflictError("Contact with this email already exists for this user")
        record = ContactRecord(
            id=_new_local_id({str(c.id) for c in contacts}),
            user_id=contact.user_id,
            contact_name=contact.contact_name,
            contact_email=email,
            created_at=utcnow(),
        )
        contacts.append(record)
        contacts.sort(key=lambda c: c.contact_name)
        await self.save_contacts(contacts)
        return record

    async def get_user_id(self) -> int:
        """Return the persisted user id, storing the default on first use."""
        raw = await self.store.get(USER_ID_KEY)
        if raw:
            try:
                return int(raw)
            except ValueError:
                logger.warning("Replacing invalid stored user id %r", raw)
        await self.store.set(USER_ID_KEY, str(self.default_user_id))
        return self.default_user_id

    async def clear_all_data(self) -> None:
        """Remove entries and contacts; the user id is kept."""
        await self.store.delete(JOURNAL_ENTRIES_KEY)
        await self.store.delete(CONTACTS_KEY)

    async def initialize_sample_data(self) -> None:
        """Seed a few entries and contacts when the collections are empty."""
        user_id = await self.get_user_id()
        now = utcnow()
        if not await self.get_journal_entries():
            await self.save_journal_entries(
                [
                    JournalEntryRecord(
                        id=str(i),
                        user_id=user_id,
                        entry_text=text,
                        mood_rating=mood,
                        timestamp=now - timedelta(days=days_ago),
                    )
                    for i, (text, mood, days_ago) in enumerate(SAMPLE_ENTRIES, 1)
                ]
            )
        if not await self.get_contacts():
            await self.save_contacts(
                [
                    ContactRecord(
                        id=str(i),
                        user_id=user_id,
                        contact_name=name,
                        contact_email=email,
                        created_at=now,
                    )
                    for i, (name, email) in enumerate(SAMPLE_CONTACTS, 1)
                ]
            )

