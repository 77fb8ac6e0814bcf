# backend/settlement/repositories/booking_repository.py
"""
Booking Repository for the settlement engine.

Holds the eligibility queries for each batch type and the guarded,
single-statement marker writes. Every write is an
``UPDATE ... WHERE <marker> IS NULL`` whose rowcount tells the caller whether
this call advanced the booking, so overlapping runs cannot both record the
same transition.
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingService, BookingStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

CaptureWindow = Tuple[timedelta, timedelta]


class BookingRepository(BaseRepository[Booking]):
    """Eligibility queries and guarded state writes for bookings."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Booking.customer),
            joinedload(Booking.stylist),
            joinedload(Booking.payment),
            selectinload(Booking.booking_services).joinedload(BookingService.service),
        )

    # Eligibility queries

    def get_bookings_pending_capture(
        self,
        reference_time: datetime,
        window: Optional[CaptureWindow] = None,
    ) -> List[Booking]:
        """
        Confirmed bookings whose payment has not been captured yet.

        Args:
            reference_time: "Now" for this run
            window: (start, end) offsets from reference_time; start_time must fall in
                [reference_time + start, reference_time + end). None disables the window.

        Returns:
            Bookings ordered by start time
        """
        try:
            query = self._apply_eager_loading(self.db.query(Booking)).filter(
                Booking.status == BookingStatus.CONFIRMED.value,
                Booking.payment_captured_at.is_(None),
            )
            if window is not None:
                window_start, window_end = window
                query = query.filter(
                    Booking.start_time >= reference_time + window_start,
                    Booking.start_time < reference_time + window_end,
                )
            return query.order_by(Booking.start_time).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching bookings pending capture: {str(e)}")
            raise RepositoryException(f"Failed to fetch bookings pending capture: {str(e)}")

    def get_bookings_pending_payout(
        self,
        reference_time: datetime,
        settle_delay: Optional[timedelta] = None,
    ) -> List[Booking]:
        """Completed, captured bookings that have not been paid out."""
        try:
            query = self._apply_eager_loading(self.db.query(Booking)).filter(
                Booking.status == BookingStatus.COMPLETED.value,
                Booking.payment_captured_at.isnot(None),
                Booking.payout_processed_at.is_(None),
            )
            if settle_delay is not None:
                query = query.filter(Booking.end_time <= reference_time - settle_delay)
            return query.order_by(Booking.start_time).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching bookings pending payout: {str(e)}")
            raise RepositoryException(f"Failed to fetch bookings pending payout: {str(e)}")

    def get_bookings_pending_completion(
        self, reference_time: datetime, grace: timedelta
    ) -> List[Booking]:
        """Confirmed bookings that ended more than ``grace`` ago."""
        try:
            return (
                self._apply_eager_loading(self.db.query(Booking))
                .filter(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.end_time < reference_time - grace,
                )
                .order_by(Booking.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching bookings pending completion: {str(e)}")
            raise RepositoryException(f"Failed to fetch bookings pending completion: {str(e)}")

    # Guard re-checks (column reads, never served from the identity map)

    def is_capture_pending(self, booking_id: str) -> bool:
        try:
            row = (
                self.db.query(Booking.id)
                .filter(
                    Booking.id == booking_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.payment_captured_at.is_(None),
                )
                .first()
            )
            return row is not None
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to re-check capture guard: {str(e)}")

    def is_payout_pending(self, booking_id: str) -> bool:
        try:
            row = (
                self.db.query(Booking.id)
                .filter(
                    Booking.id == booking_id,
                    Booking.status == BookingStatus.COMPLETED.value,
                    Booking.payment_captured_at.isnot(None),
                    Booking.payout_processed_at.is_(None),
                )
                .first()
            )
            return row is not None
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to re-check payout guard: {str(e)}")

    # Guarded writes (caller commits)

    def mark_payment_captured(self, booking_id: str, captured_at: datetime) -> bool:
        """Set payment_captured_at on a confirmed booking if still NULL. True when this call set it."""
        stmt = (
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.status == BookingStatus.CONFIRMED.value,
                Booking.payment_captured_at.is_(None),
            )
            .values(payment_captured_at=captured_at)
        )
        return self._execute_guarded(stmt, "payment_captured_at", booking_id)

    def mark_payout_processed(self, booking_id: str, processed_at: datetime) -> bool:
        """Set payout_processed_at (and payout_email_sent_at) if still NULL."""
        stmt = (
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.status == BookingStatus.COMPLETED.value,
                Booking.payment_captured_at.isnot(None),
                Booking.payout_processed_at.is_(None),
            )
            .values(payout_processed_at=processed_at, payout_email_sent_at=processed_at)
        )
        return self._execute_guarded(stmt, "payout_processed_at", booking_id)

    def mark_completed(self, booking_id: str, completed_at: datetime) -> bool:
        """Move a confirmed booking to completed."""
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == BookingStatus.CONFIRMED.value)
            .values(status=BookingStatus.COMPLETED.value, completed_at=completed_at)
        )
        return self._execute_guarded(stmt, "status", booking_id)

    def _execute_guarded(self, stmt, marker: str, booking_id: str) -> bool:
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error writing {marker} for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to write {marker} for booking {booking_id}: {str(e)}")
        advanced = result.rowcount == 1
        if not advanced:
            self.logger.info(f"Guard on {marker} rejected write for booking {booking_id}")
        return advanced
