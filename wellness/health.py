"""Health check route."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import crud, schemas
from .database import get_db
from .errors import UnavailableError

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db)):
    """
    Report whether the database answers.

    Returns 200 with database details when connected and 503 with
    ``database.status == "disconnected"`` otherwise.
    """
    now = schemas.utcnow().isoformat()
    try:
        database = crud.check_database(db)
    except UnavailableError as exc:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "success": False,
                "message": "Database disconnected",
                "timestamp": now,
                "database": {"status": "disconnected", "error": exc.message},
            },
        )
    return {
        "success": True,
        "message": "Wellness journal API is running",
        "timestamp": now,
        "database": database,
    }
