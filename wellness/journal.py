"""Journal entry routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from . import crud, schemas
from .database import get_db

router = APIRouter(prefix="/journal", tags=["journal"])


@router.post(
    "/entry",
    response_model=schemas.JournalEntryCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_entry(entry_in: schemas.JournalEntryCreate, db: Session = Depends(get_db)):
    """
    Create a journal entry.

    Args:
        entry_in (JournalEntryCreate): Entry input data.
        db (Session): Database session.

    Returns:
        JournalEntryCreated: Server-assigned id and timestamp.
    """
    entry = crud.create_journal_entry(db, entry_in)
    return schemas.JournalEntryCreated(
        message="Journal entry created successfully",
        entry_id=entry.id,
        timestamp=entry.timestamp,
    )


@router.get("/user/{user_id}", response_model=schemas.JournalEntryList)
def list_entries(user_id: str, db: Session = Depends(get_db)):
    """
    List the entries of a user, newest first.

    Args:
        user_id (str): Owner identifier; must be numeric.
        db (Session): Database session.

    Raises:
        ValidationError: If ``user_id`` is not numeric.

    Returns:
        JournalEntryList: Entries and their count.
    """
    owner = schemas.parse_id(user_id, label="user ID", field="user_id")
    entries = crud.get_journal_entries(db, owner)
    return schemas.JournalEntryList(
        entries=[schemas.JournalEntryRecord.model_validate(e) for e in entries],
        count=len(entries),
    )


@router.delete("/entry/{entry_id}", response_model=schemas.MessageOut)
def delete_entry(entry_id: str, db: Session = Depends(get_db)):
    """Delete a journal entry; 404 if it does not exist."""
    crud.delete_journal_entry(
        db, schemas.parse_id(entry_id, label="entry ID", field="entry_id")
    )
    return schemas.MessageOut(message="Journal entry deleted successfully")
