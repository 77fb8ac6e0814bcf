# backend/settlement/services/batch_processing_service.py
"""
Batch orchestrator for booking settlement.

Three runs share one shape:

- capture: charge confirmed bookings that start inside the capture window
- auto-complete: mark confirmed bookings that ended a while ago as completed
- payout: transfer the stylist's share for completed, captured bookings

Each run fetches its eligible bookings, then handles them one at a time in
an isolated try-scope: guard re-check, external operation, guarded write,
notification fan-out. A failure on one booking is counted and the loop moves
on; only a failure to fetch the eligible set aborts the run.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
import time
from typing import Callable, List, Optional, Tuple, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import Settings, secret_or_plain, settings as default_settings
from ..core.exceptions import (
    BatchFetchException,
    PaymentProcessorError,
    ProcessorErrorKind,
    RepositoryException,
    ServiceException,
)
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.profile_repository import ProfileRepository
from ..schemas.batch import (
    BatchSummary,
    BatchType,
    CaptureBatchSummary,
    CompletionBatchSummary,
    PayoutBatchSummary,
)
from .base import BaseService
from .fee_calculator import calculate_fees, to_minor_units
from .notification_dispatcher import DispatchReport, NotificationDispatcher, TransitionKind
from .payment_processor import PaymentProcessor
from .settlement_writer import SettlementWriter

logger = logging.getLogger(__name__)

LOG_PREFIXES = {
    (BatchType.CAPTURE, False): "[PAYMENT_PROCESSING]",
    (BatchType.CAPTURE, True): "[DEV_PAYMENT_PROCESSING]",
    (BatchType.PAYOUT, False): "[PAYOUT_PROCESSING]",
    (BatchType.PAYOUT, True): "[DEV_PAYOUT_PROCESSING]",
    (BatchType.AUTO_COMPLETE, False): "[AUTO_COMPLETE_CRON]",
    (BatchType.AUTO_COMPLETE, True): "[DEV_AUTO_COMPLETE]",
}


class BookingResult(str, Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class _RunTally:
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    emails_sent: int = 0
    error_details: List[str] = field(default_factory=list)

    def add_report(self, report: Optional[DispatchReport]) -> None:
        if report is None:
            return
        self.emails_sent += report.sent
        self.error_details.extend(report.errors)


class BatchProcessingService(BaseService):
    """Drives the capture, payout and auto-complete batch runs."""

    def __init__(
        self,
        db: Session,
        payment_processor: PaymentProcessor,
        dispatcher: NotificationDispatcher,
        *,
        config: Optional[Settings] = None,
        booking_repository: Optional[BookingRepository] = None,
        profile_repository: Optional[ProfileRepository] = None,
        writer: Optional[SettlementWriter] = None,
    ):
        super().__init__(db)
        self.payment_processor = payment_processor
        self.dispatcher = dispatcher
        self.config = config or default_settings
        self.booking_repository = (
            booking_repository or RepositoryFactory.create_booking_repository(db)
        )
        self.profile_repository = (
            profile_repository or RepositoryFactory.create_profile_repository(db)
        )
        self.writer = writer or SettlementWriter(db, booking_repository=self.booking_repository)

    # ------------------------------------------------------------------ #
    # Runs: fetch + process
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("run_capture_batch")
    def run_capture_batch(
        self, *, now: Optional[datetime] = None, manual: bool = False
    ) -> CaptureBatchSummary:
        """Capture payments for bookings starting inside the capture window (no window when manual)."""
        now = now or datetime.now(timezone.utc)
        window = None
        if not manual:
            window = (
                timedelta(hours=self.config.capture_window_start_hours),
                timedelta(hours=self.config.capture_window_end_hours),
            )
            self.logger.info(
                f"[PAYMENT_PROCESSING] Capturing payments for bookings starting between "
                f"{(now + window[0]).isoformat()} and {(now + window[1]).isoformat()}"
            )
        bookings = self._fetch(
            BatchType.CAPTURE,
            lambda: self.booking_repository.get_bookings_pending_capture(now, window),
        )
        return self.process_captures(bookings, now=now, manual=manual)

    @BaseService.measure_operation("run_payout_batch")
    def run_payout_batch(
        self, *, now: Optional[datetime] = None, manual: bool = False
    ) -> PayoutBatchSummary:
        """Pay out completed bookings once they have settled (no delay when manual)."""
        now = now or datetime.now(timezone.utc)
        settle_delay = None if manual else timedelta(hours=self.config.payout_settle_delay_hours)
        bookings = self._fetch(
            BatchType.PAYOUT,
            lambda: self.booking_repository.get_bookings_pending_payout(now, settle_delay),
        )
        return self.process_payouts(bookings, now=now, manual=manual)

    @BaseService.measure_operation("run_auto_complete_batch")
    def run_auto_complete_batch(self, *, now: Optional[datetime] = None) -> CompletionBatchSummary:
        """Complete confirmed bookings that ended more than the grace period ago."""
        now = now or datetime.now(timezone.utc)
        grace = timedelta(hours=self.config.auto_complete_grace_hours)
        bookings = self._fetch(
            BatchType.AUTO_COMPLETE,
            lambda: self.booking_repository.get_bookings_pending_completion(now, grace),
        )
        return self.auto_complete(bookings, now=now)

    def _fetch(self, batch: BatchType, query: Callable[[], List[Booking]]) -> List[Booking]:
        try:
            bookings = query()
        except (RepositoryException, SQLAlchemyError) as e:
            self.logger.error(f"{LOG_PREFIXES[(batch, False)]} Error fetching bookings: {e}")
            prometheus_metrics.record_batch_run(batch.value, "fetch_failed")
            raise BatchFetchException(batch.value, str(e)) from e
        self.logger.info(f"{LOG_PREFIXES[(batch, False)]} Found {len(bookings)} eligible bookings")
        return bookings

    # ------------------------------------------------------------------ #
    # Processing
    # ------------------------------------------------------------------ #

    def process_captures(
        self,
        bookings: List[Booking],
        *,
        now: Optional[datetime] = None,
        manual: bool = False,
    ) -> CaptureBatchSummary:
        return self._process(
            BatchType.CAPTURE,
            bookings,
            self._capture_one,
            now=now or datetime.now(timezone.utc),
            manual=manual,
        )

    def process_payouts(
        self,
        bookings: List[Booking],
        *,
        now: Optional[datetime] = None,
        manual: bool = False,
    ) -> PayoutBatchSummary:
        return self._process(
            BatchType.PAYOUT,
            bookings,
            self._payout_one,
            now=now or datetime.now(timezone.utc),
            manual=manual,
        )

    def auto_complete(
        self, bookings: List[Booking], *, now: Optional[datetime] = None
    ) -> CompletionBatchSummary:
        return self._process(
            BatchType.AUTO_COMPLETE,
            bookings,
            self._complete_one,
            now=now or datetime.now(timezone.utc),
            manual=False,
        )

    def _process(self, batch, bookings, handler, *, now: datetime, manual: bool):
        log_prefix = LOG_PREFIXES[(batch, manual)]
        started = time.monotonic()
        tally = _RunTally()

        for booking in bookings:
            try:
                result, report = handler(booking, now=now, manual=manual, log_prefix=log_prefix)
            except PaymentProcessorError as e:
                result = self._classify_processor_error(batch, booking, e, log_prefix)
                report = None
                if result is BookingResult.ERROR:
                    tally.error_details.append(f"Booking {booking.id}: {e.message}")
            except (RepositoryException, ServiceException) as e:
                self.logger.error(f"{log_prefix} Failed to record booking {booking.id}: {e}")
                result, report = BookingResult.ERROR, None
                tally.error_details.append(f"Booking {booking.id}: {e}")
            except Exception as e:
                self.logger.error(
                    f"{log_prefix} Error processing booking {booking.id}: {e}", exc_info=True
                )
                result, report = BookingResult.ERROR, None
                tally.error_details.append(f"Booking {booking.id}: {e}")

            if result is BookingResult.PROCESSED:
                tally.processed += 1
            elif result is BookingResult.SKIPPED:
                tally.skipped += 1
            else:
                tally.errors += 1
            tally.add_report(report)

        return self._summarize(batch, len(bookings), tally, started, log_prefix)

    def _classify_processor_error(
        self,
        batch: BatchType,
        booking: Booking,
        error: PaymentProcessorError,
        log_prefix: str,
    ) -> BookingResult:
        if error.kind is ProcessorErrorKind.NOT_CONFIGURED:
            if batch is BatchType.PAYOUT:
                self.logger.info(f"{log_prefix} Skipping booking {booking.id} - {error.message}")
                return BookingResult.SKIPPED
            self.logger.error(f"{log_prefix} Payment processor not configured: {error.message}")
            return BookingResult.ERROR
        if error.kind is ProcessorErrorKind.NOT_FOUND:
            self.logger.error(
                f"{log_prefix} Booking {booking.id} cannot be settled, record missing: {error.message}"
            )
            return BookingResult.ERROR
        if error.kind is ProcessorErrorKind.PROVIDER_ERROR:
            self.logger.error(
                f"{log_prefix} Processor rejected booking {booking.id}, will retry next run: {error.message}"
            )
            return BookingResult.ERROR
        raise ValueError(f"Unhandled processor error kind: {error.kind}")

    def _summarize(
        self,
        batch: BatchType,
        eligible: int,
        tally: _RunTally,
        started: float,
        log_prefix: str,
    ) -> BatchSummary:
        summary_cls: Type[BatchSummary]
        if batch is BatchType.CAPTURE:
            summary_cls, noun, processed_field = CaptureBatchSummary, "payments", "payments_processed"
        elif batch is BatchType.PAYOUT:
            summary_cls, noun, processed_field = PayoutBatchSummary, "payouts", "payouts_processed"
        else:
            summary_cls, noun, processed_field = CompletionBatchSummary, "bookings", "bookings_completed"

        if eligible == 0:
            message = f"No bookings require {batch.value.replace('_', '-')} processing"
        else:
            message = (
                f"Processed {tally.processed} {noun} from {eligible} bookings, "
                f"sent {tally.emails_sent} emails, {tally.errors} errors"
            )
            if tally.skipped:
                message += f", {tally.skipped} skipped"

        summary = summary_cls(
            success=tally.errors == 0,
            bookings_processed=eligible,
            emails_sent=tally.emails_sent,
            errors=tally.errors,
            skipped=tally.skipped,
            error_details=tally.error_details,
            duration_ms=int((time.monotonic() - started) * 1000),
            message=message,
            **{processed_field: tally.processed},
        )

        prometheus_metrics.record_batch_run(batch.value, "success" if summary.success else "partial")
        prometheus_metrics.record_batch_booking(batch.value, BookingResult.PROCESSED.value, tally.processed)
        prometheus_metrics.record_batch_booking(batch.value, BookingResult.SKIPPED.value, tally.skipped)
        prometheus_metrics.record_batch_booking(batch.value, BookingResult.ERROR.value, tally.errors)

        if summary.success:
            self.logger.info(f"{log_prefix} {message} in {summary.duration_ms}ms")
        else:
            self.logger.warning(f"{log_prefix} {message} in {summary.duration_ms}ms")
            for detail in tally.error_details:
                self.logger.error(f"{log_prefix} {detail}")
        return summary

    # ------------------------------------------------------------------ #
    # Per-booking handlers
    # ------------------------------------------------------------------ #

    def _capture_one(
        self, booking: Booking, *, now: datetime, manual: bool, log_prefix: str
    ) -> Tuple[BookingResult, Optional[DispatchReport]]:
        if not self.booking_repository.is_capture_pending(booking.id):
            self.logger.info(f"{log_prefix} Skipping booking {booking.id} - already captured")
            return BookingResult.SKIPPED, None

        payment = booking.payment
        if payment is None:
            raise PaymentProcessorError(
                ProcessorErrorKind.NOT_FOUND,
                f"No payment record for booking {booking.id}",
                details={"booking_id": booking.id},
            )

        fees = calculate_fees(
            payment.original_amount,
            payment.discount_amount or 0,
            self.config.platform_fee_percentage,
        )
        self.logger.info(f"{log_prefix} Capturing payment for booking {booking.id}")
        capture = self.payment_processor.capture(booking.id, payment.payment_intent_id)

        try:
            advanced = self.writer.record_capture(booking, capture, fees, now=now)
        except (RepositoryException, ServiceException) as e:
            self.logger.error(
                f"{log_prefix} INCONSISTENCY: booking {booking.id} was captured as "
                f"{capture.external_ref} but the capture could not be recorded: {e}"
            )
            raise
        if not advanced:
            self.logger.info(f"{log_prefix} Booking {booking.id} was recorded by another run")
            return BookingResult.SKIPPED, None

        report = self.dispatcher.dispatch(
            TransitionKind.CAPTURE,
            booking,
            external_ref=capture.external_ref,
            fees=fees,
            now=now,
            dev_mode=manual,
            log_prefix=log_prefix,
        )
        return BookingResult.PROCESSED, report

    def _payout_one(
        self, booking: Booking, *, now: datetime, manual: bool, log_prefix: str
    ) -> Tuple[BookingResult, Optional[DispatchReport]]:
        if not self.booking_repository.is_payout_pending(booking.id):
            self.logger.info(f"{log_prefix} Skipping booking {booking.id} - already paid out")
            return BookingResult.SKIPPED, None

        payment = booking.payment
        if payment is None:
            self.logger.info(f"{log_prefix} Skipping booking {booking.id} - no payment record")
            return BookingResult.SKIPPED, None

        payout_amount = payment.stylist_payout
        if payout_amount is None:
            payout_amount = calculate_fees(
                payment.original_amount,
                payment.discount_amount or 0,
                self.config.platform_fee_percentage,
            ).stylist_payout
        amount_minor = to_minor_units(payout_amount)

        if amount_minor <= 0:
            # Nothing owed; settle without a transfer
            advanced = self.writer.record_payout(booking, None, now=now)
            if not advanced:
                return BookingResult.SKIPPED, None
            self.logger.info(
                f"{log_prefix} Booking {booking.id} settled without transfer (payout amount 0)"
            )
            return BookingResult.PROCESSED, None

        destination = self.profile_repository.get_stripe_account_id(booking.stylist_id)
        if not destination:
            raise PaymentProcessorError(
                ProcessorErrorKind.NOT_CONFIGURED,
                "stylist missing Stripe account",
                details={"booking_id": booking.id, "stylist_id": booking.stylist_id},
            )

        source_transaction = None
        if payment.capture_reference and payment.capture_reference != payment.payment_intent_id:
            source_transaction = payment.capture_reference

        self.logger.info(f"{log_prefix} Processing payout for booking {booking.id}")
        self.writer.mark_payout_initiated(booking, now=now)
        transfer = self.payment_processor.transfer(
            payment.payment_intent_id,
            booking.id,
            destination_account=destination,
            amount_minor=amount_minor,
            source_transaction=source_transaction,
        )

        try:
            advanced = self.writer.record_payout(booking, transfer, now=now)
        except (RepositoryException, ServiceException) as e:
            self.logger.error(
                f"{log_prefix} INCONSISTENCY: booking {booking.id} was paid out as "
                f"{transfer.transfer_id} but the payout could not be recorded: {e}"
            )
            raise
        if not advanced:
            self.logger.info(f"{log_prefix} Booking {booking.id} was recorded by another run")
            return BookingResult.SKIPPED, None

        report = self.dispatcher.dispatch(
            TransitionKind.PAYOUT,
            booking,
            external_ref=transfer.transfer_id,
            now=now,
            dev_mode=manual,
            log_prefix=log_prefix,
        )
        return BookingResult.PROCESSED, report

    def _complete_one(
        self, booking: Booking, *, now: datetime, manual: bool, log_prefix: str
    ) -> Tuple[BookingResult, Optional[DispatchReport]]:
        if not self.writer.record_completion(booking, now=now):
            self.logger.info(f"{log_prefix} Booking {booking.id} is no longer confirmed")
            return BookingResult.SKIPPED, None

        report = self.dispatcher.dispatch(
            TransitionKind.COMPLETION,
            booking,
            now=now,
            dev_mode=manual,
            log_prefix=log_prefix,
        )
        return BookingResult.PROCESSED, report


def build_batch_processing_service(
    db: Session, config: Optional[Settings] = None
) -> BatchProcessingService:
    """Wire the orchestrator with the configured processor and email provider."""
    from .email import build_email_service
    from .notification_preference_service import NotificationPreferenceService

    config = config or default_settings
    payment_processor = PaymentProcessor(
        secret_or_plain(config.stripe_secret_key), currency=config.stripe_currency
    )
    dispatcher = NotificationDispatcher(
        NotificationPreferenceService(db),
        build_email_service(config),
        default_service_name=config.default_service_name,
    )
    return BatchProcessingService(db, payment_processor, dispatcher, config=config)
