"""Health check endpoint."""

from collections.abc import Generator

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from questline.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a session from the app's session factory and close it after use."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


@router.get("/health")
def health_check(db: Session = Depends(get_db)) -> dict[str, str]:
    """Return application and database health status."""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except SQLAlchemyError as e:
        logger.warning("Health check failed: %s", e)
        return {"status": "error", "database": "disconnected"}
