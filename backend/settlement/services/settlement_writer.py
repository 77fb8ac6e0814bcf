# backend/settlement/services/settlement_writer.py
"""
Records settlement transitions after the external operation succeeded.

Each ``record_*`` call is one transaction of guarded UPDATEs (see
BookingRepository). The return value says whether this call advanced the
booking; ``False`` means another run got there first and nothing changed.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..models.booking import Booking
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.payment_repository import PaymentRepository
from .base import BaseService
from .fee_calculator import FeeBreakdown
from .payment_processor import CaptureResult, TransferResult


class SettlementWriter(BaseService):
    """Idempotent state transition writer for bookings and their payments."""

    def __init__(
        self,
        db: Session,
        booking_repository: Optional[BookingRepository] = None,
        payment_repository: Optional[PaymentRepository] = None,
    ):
        super().__init__(db)
        self.booking_repository = (
            booking_repository or RepositoryFactory.create_booking_repository(db)
        )
        self.payment_repository = (
            payment_repository or RepositoryFactory.create_payment_repository(db)
        )

    @BaseService.measure_operation("record_capture")
    def record_capture(
        self,
        booking: Booking,
        capture: CaptureResult,
        fees: FeeBreakdown,
        *,
        now: datetime,
    ) -> bool:
        with self.transaction():
            if not self.booking_repository.mark_payment_captured(booking.id, now):
                return False
            payment_recorded = self.payment_repository.mark_captured(
                booking.id,
                captured_at=now,
                capture_reference=capture.external_ref,
                final_amount=fees.final_amount,
                platform_fee=fees.platform_fee,
                stylist_payout=fees.stylist_payout,
            )
            if not payment_recorded:
                self.logger.warning(
                    f"Payment for booking {booking.id} already carried a capture timestamp"
                )
        return True

    @BaseService.measure_operation("mark_payout_initiated")
    def mark_payout_initiated(self, booking: Booking, *, now: datetime) -> bool:
        """Persist the intent to pay out before calling the processor."""
        with self.transaction():
            return self.payment_repository.mark_payout_initiated(booking.id, now)

    @BaseService.measure_operation("record_payout")
    def record_payout(
        self, booking: Booking, transfer: Optional[TransferResult], *, now: datetime
    ) -> bool:
        """Record the payout. ``transfer`` is None when nothing was owed to the stylist."""
        with self.transaction():
            if not self.booking_repository.mark_payout_processed(booking.id, now):
                return False
            payment_recorded = self.payment_repository.mark_payout_completed(
                booking.id, completed_at=now, transfer_id=transfer.transfer_id if transfer else None
            )
            if not payment_recorded:
                self.logger.warning(
                    f"Payment for booking {booking.id} already carried a payout completion"
                )
        return True

    @BaseService.measure_operation("record_completion")
    def record_completion(self, booking: Booking, *, now: datetime) -> bool:
        with self.transaction():
            return self.booking_repository.mark_completed(booking.id, now)
