"""Database models for the journal service.

This module defines SQLAlchemy ORM models used by the application.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .database import Base
from .schemas import utcnow


class JournalEntry(Base):
    """
    SQLAlchemy model representing a mood-rated journal entry.

    Entries are immutable once written; they can only be deleted.
    """

    __tablename__ = "journal_entries"
    __table_args__ = (
        CheckConstraint(
            "mood_rating >= 1 AND mood_rating <= 5", name="ck_mood_rating_range"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    entry_text = Column(Text, nullable=False)
    mood_rating = Column(Integer, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)


class Contact(Base):
    """
    SQLAlchemy model representing a support contact.

    Each contact belongs to exactly one user and must have
    a unique email address per owner.
    """

    __tablename__ = "contacts"
    __table_args__ = (
        UniqueConstraint("user_id", "contact_email", name="uq_user_contact_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    contact_name = Column(String(255), nullable=False, index=True)
    #: Always stored lower-cased
    contact_email = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
