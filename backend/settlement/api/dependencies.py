# backend/settlement/api/dependencies.py
"""
FastAPI dependencies for the settlement trigger endpoints.

Scheduler requests authenticate with ``Authorization: Bearer <CRON_SECRET>``.
The manual triggers additionally accept ``X-Dev-Tools-Token`` and are
disabled in production.
"""

import logging
import secrets
from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ..core.config import secret_or_plain, settings
from ..database import get_db as original_get_db
from ..services.batch_processing_service import (
    BatchProcessingService,
    build_batch_processing_service,
)

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    """
    Get database session dependency.

    Yields:
        Database session that will be closed after use
    """
    yield from original_get_db()


def get_batch_service(db: Session = Depends(get_db)) -> BatchProcessingService:
    return build_batch_processing_service(db)


def _matches(provided: Optional[str], expected: str) -> bool:
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Reject requests that do not carry the scheduler's shared secret."""
    expected = secret_or_plain(settings.cron_secret)
    if not expected:
        logger.error("[CRON] CRON_SECRET is not configured; rejecting request")
        raise _unauthorized()
    if not _matches(_bearer_token(authorization), expected):
        logger.warning("[CRON] Unauthorized cron request")
        raise _unauthorized()


def require_manual_trigger(
    authorization: Optional[str] = Header(default=None),
    x_dev_tools_token: Optional[str] = Header(default=None),
) -> None:
    """Allow manual batch runs outside production for the scheduler or a dev-tools token."""
    if settings.is_production:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Manual triggers are disabled in production",
        )
    if _matches(_bearer_token(authorization), secret_or_plain(settings.cron_secret)):
        return
    if _matches(x_dev_tools_token, secret_or_plain(settings.dev_tools_token)):
        return
    logger.warning("[DEV] Unauthorized manual trigger request")
    raise _unauthorized()
