"""Sample data for development databases.

Seeding runs without a transaction spanning both tables; it stays safe to
repeat because each table is only filled when the user has no rows in it.
"""

from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import models
from .crud import storage_errors
from .log import get_logger
from .schemas import utcnow

logger = get_logger(__name__)

SAMPLE_ENTRIES = [
    (
        "Had a great day today! Felt really productive and accomplished a lot of my goals.",
        5,
        1,
    ),
    (
        "Feeling a bit stressed about work deadlines, but trying to stay positive.",
        3,
        2,
    ),
    (
        "Spent quality time with family. Really helped me relax and recharge.",
        4,
        3,
    ),
]
"""(entry_text, mood_rating, days_ago)"""

SAMPLE_CONTACTS = [
    ("Dr. Smith", "dr.smith@healthcare.com"),
    ("Sarah Johnson", "sarah.j@email.com"),
    ("Mike Chen", "mike.chen@email.com"),
]


def _count(db: Session, model, user_id: int) -> int:
    return db.scalar(
        select(func.count()).select_from(model).where(model.user_id == user_id)
    )


def seed_sample_data(db: Session, user_id: int = 1) -> dict[str, int]:
    """
    Insert sample entries and contacts for ``user_id`` if it has none.

    Args:
        db (Session): Database session.
        user_id (int): Owner of the sample rows.

    Returns:
        dict: Number of entries and contacts inserted.
    """
    inserted = {"entries": 0, "contacts": 0}
    now = utcnow()
    with storage_errors(db):
        if _count(db, models.JournalEntry, user_id) == 0:
            for text, mood, days_ago in SAMPLE_ENTRIES:
                db.add(
                    models.JournalEntry(
                        user_id=user_id,
                        entry_text=text,
                        mood_rating=mood,
                        timestamp=now - timedelta(days=days_ago),
                    )
                )
            db.commit()
            inserted["entries"] = len(SAMPLE_ENTRIES)

        if _count(db, models.Contact, user_id) == 0:
            for name, email in SAMPLE_CONTACTS:
                db.add(
                    models.Contact(
                        user_id=user_id,
                        contact_name=name,
                        contact_email=email,
                        created_at=now,
                    )
                )
            db.commit()
            inserted["contacts"] = len(SAMPLE_CONTACTS)

    logger.info(
        "Seeded %(entries)s entries and %(contacts)s contacts", inserted
    )
    return inserted
