"""CRUD operations for journal entries and contacts.

This module contains database interaction logic isolated from FastAPI
route handlers. Storage failures are translated into the domain errors
from :mod:`wellness.errors`.
"""

from contextlib import contextmanager

from sqlalchemy import select, text
from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import ConflictError, NotFoundError, UnavailableError, ValidationError
from .log import get_logger

logger = get_logger(__name__)

_UNAVAILABLE = (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)


def _integrity_error(exc: IntegrityError) -> Exception:
    reason = str(exc.orig).lower()
    if "unique" in reason or "duplicate" in reason:
        return ConflictError("Contact with this email already exists for this user")
    if "check" in reason or "mood_rating" in reason:
        return ValidationError(
            "Validation error",
            field="mood_rating",
            details="mood_rating must be between 1 and 5",
        )
    return ValidationError("Validation error", details=str(exc.orig))


@contextmanager
def storage_errors(db: Session):
    """
    Translate SQLAlchemy failures raised inside the block.

    Integrity violations become :class:`ConflictError` or
    :class:`ValidationError`; connectivity failures become
    :class:`UnavailableError`. The session is rolled back in both cases.
    """
    try:
        yield
    except IntegrityError as exc:
        db.rollback()
        raise _integrity_error(exc) from exc
    except _UNAVAILABLE as exc:
        db.rollback()
        logger.error("Database unavailable: %s", exc)
        raise UnavailableError("Database unavailable") from exc


def create_journal_entry(
    db: Session, entry_in: schemas.JournalEntryCreate
) -> models.JournalEntry:
    """
    Create and persist a journal entry.

    Args:
        db (Session): Database session.
        entry_in (JournalEntryCreate): Validated entry data.

    Raises:
        ValidationError: If the storage-level mood rating check fails.

    Returns:
        JournalEntry: Newly created entry with its id and timestamp.
    """
    entry = models.JournalEntry(
        user_id=entry_in.user_id,
        entry_text=entry_in.entry_text,
        mood_rating=entry_in.mood_rating,
        timestamp=entry_in.timestamp or schemas.utcnow(),
    )
    with storage_errors(db):
        db.add(entry)
        db.commit()
        db.refresh(entry)
    return entry


def get_journal_entries(db: Session, user_id: int) -> list[models.JournalEntry]:
    """
    Retrieve all entries of a user, newest first.

    Args:
        db (Session): Database session.
        user_id (int): Owner identifier.

    Returns:
        list[JournalEntry]: Entries ordered by timestamp descending.
    """
    stmt = (
        select(models.JournalEntry)
        .where(models.JournalEntry.user_id == user_id)
        .order_by(models.JournalEntry.timestamp.desc(), models.JournalEntry.id.desc())
    )
    with storage_errors(db):
        return list(db.scalars(stmt).all())


def delete_journal_entry(db: Session, entry_id: int) -> None:
    """
    Delete a journal entry by id.

    Raises:
        NotFoundError: If no entry has this id.
    """
    with storage_errors(db):
        entry = db.get(models.JournalEntry, entry_id)
        if entry is None:
            raise NotFoundError("Journal entry not found")
        db.delete(entry)
        db.commit()


def get_contact_by_email(
    db: Session, user_id: int, contact_email: str
) -> models.Contact | None:
    """Return the contact of ``user_id`` with this (lower-cased) email."""
    with storage_errors(db):
        return db.execute(
            select(models.Contact).where(
                models.Contact.user_id == user_id,
                models.Contact.contact_email == contact_email.lower(),
            )
        ).scalar_one_or_none()


def create_contact(db: Session, contact_in: schemas.ContactCreate) -> models.Contact:
    """
    Create a new contact for a user.

    Args:
        db (Session): Database session.
        contact_in (ContactCreate): Validated contact data.

    Raises:
        ConflictError: If the user already has a contact with this email.

    Returns:
        Contact: Newly created contact.
    """
    email = contact_in.contact_email.lower()
    if get_contact_by_email(db, contact_in.user_id, email):
        logger.info(
            "Duplicate contact rejected for user %s: %s", contact_in.user_id, email
        )
        raise ConflictError("Contact with this email already exists for this user")

    contact = models.Contact(
        user_id=contact_in.user_id,
        contact_name=contact_in.contact_name,
        contact_email=email,
        created_at=schemas.utcnow(),
    )
    with storage_errors(db):
        db.add(contact)
        db.commit()
        db.refresh(contact)
    return contact


def get_contacts(db: Session, user_id: int) -> list[models.Contact]:
    """
    Retrieve the contacts of a user ordered by name.

    Args:
        db (Session): Database session.
        user_id (int): Owner identifier.

    Returns:
        list[Contact]: Contacts ordered by ``contact_name`` ascending.
    """
    stmt = (
        select(models.Contact)
        .where(models.Contact.user_id == user_id)
        .order_by(models.Contact.contact_name.asc(), models.Contact.id.asc())
    )
    with storage_errors(db):
        return list(db.scalars(stmt).all())


def check_database(db: Session) -> dict:
    """
    Run a trivial query to confirm the database answers.

    Raises:
        UnavailableError: If the database cannot be reached.

    Returns:
        dict: Dialect name and the database server's current time.
    """
    with storage_errors(db):
        server_time = db.execute(text("SELECT CURRENT_TIMESTAMP")).scalar()
    return {
        "status": "connected",
        "dialect": db.get_bind().dialect.name,
        "server_time": str(server_time),
    }
