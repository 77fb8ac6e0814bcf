# backend/settlement/repositories/payment_repository.py
"""
Payment Repository for the settlement engine.

Same guarded-write discipline as the booking repository: each marker on a
payment is set by a conditional UPDATE and the rowcount is returned to the
caller. Nothing here commits.
"""

from datetime import datetime
from decimal import Decimal
import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.payment import Payment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[Payment]):
    """Data access for Payment records."""

    def __init__(self, db: Session):
        super().__init__(db, Payment)

    def mark_captured(
        self,
        booking_id: str,
        *,
        captured_at: datetime,
        capture_reference: str,
        final_amount: Decimal,
        platform_fee: Decimal,
        stylist_payout: Decimal,
    ) -> bool:
        stmt = (
            update(Payment)
            .where(Payment.booking_id == booking_id, Payment.captured_at.is_(None))
            .values(
                captured_at=captured_at,
                capture_reference=capture_reference,
                status="succeeded",
                final_amount=final_amount,
                platform_fee=platform_fee,
                stylist_payout=stylist_payout,
            )
        )
        return self._execute_guarded(stmt, "captured_at", booking_id)

    def mark_payout_initiated(self, booking_id: str, initiated_at: datetime) -> bool:
        stmt = (
            update(Payment)
            .where(Payment.booking_id == booking_id, Payment.payout_initiated_at.is_(None))
            .values(payout_initiated_at=initiated_at)
        )
        return self._execute_guarded(stmt, "payout_initiated_at", booking_id)

    def mark_payout_completed(
        self, booking_id: str, *, completed_at: datetime, transfer_id: Optional[str]
    ) -> bool:
        stmt = (
            update(Payment)
            .where(Payment.booking_id == booking_id, Payment.payout_completed_at.is_(None))
            .values(payout_completed_at=completed_at, stylist_transfer_id=transfer_id)
        )
        return self._execute_guarded(stmt, "payout_completed_at", booking_id)

    def _execute_guarded(self, stmt, marker: str, booking_id: str) -> bool:
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error writing payment {marker} for booking {booking_id}: {str(e)}")
            raise RepositoryException(
                f"Failed to write payment {marker} for booking {booking_id}: {str(e)}"
            )
        return result.rowcount == 1
