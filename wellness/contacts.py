"""Support contact routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from . import crud, schemas
from .database import get_db

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.post(
    "/add",
    response_model=schemas.ContactCreated,
    status_code=status.HTTP_201_CREATED,
)
def add_contact(contact_in: schemas.ContactCreate, db: Session = Depends(get_db)):
    """
    Add a contact for a user.

    The email is stored lower-cased; a second contact with the same
    email for the same user is rejected with 409.

    Args:
        contact_in (ContactCreate): Contact input data.
        db (Session): Database session.

    Returns:
        ContactCreated: Server-assigned id and creation time.
    """
    contact = crud.create_contact(db, contact_in)
    return schemas.ContactCreated(
        message="Contact added successfully",
        contact_id=contact.id,
        created_at=contact.created_at,
    )


@router.get("/user/{user_id}", response_model=schemas.ContactList)
def list_contacts(user_id: str, db: Session = Depends(get_db)):
    """
    List the contacts of a user ordered by name.

    Args:
        user_id (str): Owner identifier; must be numeric.
        db (Session): Database session.

    Returns:
        ContactList: Contacts and their count.
    """
    owner = schemas.parse_id(user_id, label="user ID", field="user_id")
    contacts = crud.get_contacts(db, owner)
    return schemas.ContactList(
        contacts=[schemas.ContactRecord.model_validate(c) for c in contacts],
        count=len(contacts),
    )
