"""
Tests for BatchProcessingService.

The database is real (SQLite); the payment processor and email sender are
doubles so every external call can be counted.
"""

from datetime import timedelta
from decimal import Decimal
import logging
from unittest.mock import MagicMock

import pytest

from settlement.core.config import settings
from settlement.core.exceptions import (
    BatchFetchException,
    PaymentProcessorError,
    ProcessorErrorKind,
    RepositoryException,
    ServiceException,
)
from settlement.models.booking import Booking, BookingStatus
from settlement.models.payment import Payment
from settlement.models.profile import ProfileRole
from settlement.services.batch_processing_service import BatchProcessingService
from settlement.services.payment_processor import CaptureResult


@pytest.fixture
def service(db, payment_processor, dispatcher):
    return BatchProcessingService(db, payment_processor, dispatcher, config=settings)


def _reload(db, booking_id):
    db.expire_all()
    booking = db.query(Booking).filter(Booking.id == booking_id).one()
    payment = db.query(Payment).filter(Payment.booking_id == booking_id).one_or_none()
    return booking, payment


class TestCaptureBatch:
    def test_captures_booking_in_window(self, db, service, payment_processor, email_service, make_booking, now):
        booking = make_booking()

        summary = service.run_capture_batch(now=now)

        assert summary.success is True
        assert summary.bookings_processed == 1
        assert summary.payments_processed == 1
        assert summary.emails_sent == 2
        assert summary.errors == 0
        payment_processor.capture.assert_called_once_with(booking.id, f"pi_{booking.id}")

        booking, payment = _reload(db, booking.id)
        assert booking.payment_captured_at is not None
        assert payment.status == "succeeded"
        assert payment.capture_reference == f"ch_{booking.id}"
        assert payment.platform_fee == Decimal("200.00")
        assert payment.stylist_payout == Decimal("800.00")

    def test_second_run_does_not_capture_again(self, service, payment_processor, email_service, make_booking, now):
        make_booking()

        first = service.run_capture_batch(now=now)
        second = service.run_capture_batch(now=now + timedelta(minutes=30))

        assert first.payments_processed == 1
        assert second.bookings_processed == 0
        assert second.payments_processed == 0
        assert second.success is True
        assert second.message == "No bookings require capture processing"
        assert payment_processor.capture.call_count == 1
        assert email_service.send_email.call_count == 2

    def test_bookings_outside_window_wait(self, service, payment_processor, make_booking, now):
        make_booking(start_time=now + timedelta(hours=23))

        summary = service.run_capture_batch(now=now)

        assert summary.bookings_processed == 0
        payment_processor.capture.assert_not_called()

    def test_manual_run_ignores_window_and_prefixes_subjects(self, service, email_service, make_booking, now):
        make_booking(start_time=now + timedelta(hours=2))

        summary = service.run_capture_batch(now=now, manual=True)

        assert summary.payments_processed == 1
        subjects = [c.kwargs["subject"] for c in email_service.send_email.call_args_list]
        assert subjects and all(s.startswith("[DEV] ") for s in subjects)

    def test_one_failure_does_not_stop_the_batch(self, db, service, payment_processor, make_booking, now):
        first = make_booking(start_time=now + timedelta(hours=24, minutes=10))
        failing = make_booking(start_time=now + timedelta(hours=25))
        third = make_booking(start_time=now + timedelta(hours=26))

        def capture(booking_id, payment_intent_id):
            if booking_id == failing.id:
                raise PaymentProcessorError(ProcessorErrorKind.PROVIDER_ERROR, "card_declined")
            return CaptureResult(payment_intent_id=payment_intent_id, external_ref=f"ch_{booking_id}")

        payment_processor.capture.side_effect = capture

        summary = service.run_capture_batch(now=now)

        assert summary.bookings_processed == 3
        assert summary.payments_processed == 2
        assert summary.errors == 1
        assert summary.success is False
        assert summary.processed + summary.skipped + summary.errors == summary.bookings_processed
        assert any(failing.id in detail for detail in summary.error_details)

        assert _reload(db, first.id)[0].payment_captured_at is not None
        assert _reload(db, failing.id)[0].payment_captured_at is None
        assert _reload(db, third.id)[0].payment_captured_at is not None

    def test_both_recipients_opted_out(self, db, service, email_service, make_booking, make_profile, now):
        customer = make_profile(preferences={"booking_confirmations": False})
        stylist = make_profile(ProfileRole.STYLIST, preferences={"payment_notifications": False})
        booking = make_booking(customer=customer, stylist=stylist)

        summary = service.run_capture_batch(now=now)

        assert (summary.payments_processed, summary.emails_sent, summary.errors) == (1, 0, 0)
        email_service.send_email.assert_not_called()
        assert _reload(db, booking.id)[0].payment_captured_at is not None

    def test_email_failure_does_not_fail_the_capture(self, db, service, email_service, make_booking, now):
        email_service.send_email.side_effect = ServiceException("Email sending failed: 503")
        booking = make_booking()

        summary = service.run_capture_batch(now=now)

        assert summary.success is True
        assert summary.payments_processed == 1
        assert summary.emails_sent == 0
        assert summary.errors == 0
        assert len(summary.error_details) == 2
        assert _reload(db, booking.id)[0].payment_captured_at is not None

    def test_already_captured_booking_is_skipped(self, service, payment_processor, make_booking, now):
        booking = make_booking(payment_captured_at=now - timedelta(minutes=5))

        summary = service.process_captures([booking], now=now)

        assert summary.skipped == 1
        assert summary.payments_processed == 0
        assert summary.success is True
        payment_processor.capture.assert_not_called()

    def test_missing_payment_record_is_an_error(self, service, payment_processor, make_booking, now):
        make_booking(with_payment=False)

        summary = service.run_capture_batch(now=now)

        assert summary.errors == 1
        payment_processor.capture.assert_not_called()

    def test_unconfigured_processor_is_an_error(self, service, payment_processor, make_booking, now):
        make_booking()
        payment_processor.capture.side_effect = PaymentProcessorError(
            ProcessorErrorKind.NOT_CONFIGURED, "Stripe is not configured"
        )

        summary = service.run_capture_batch(now=now)

        assert summary.errors == 1
        assert summary.success is False

    def test_write_failure_after_capture_is_logged(self, db, payment_processor, dispatcher, make_booking, now, caplog):
        writer = MagicMock()
        writer.record_capture.side_effect = ServiceException("Database operation failed")
        service = BatchProcessingService(db, payment_processor, dispatcher, config=settings, writer=writer)
        booking = make_booking()

        with caplog.at_level(logging.ERROR):
            summary = service.run_capture_batch(now=now)

        assert summary.errors == 1
        assert any(
            "INCONSISTENCY" in r.getMessage() and f"ch_{booking.id}" in r.getMessage()
            for r in caplog.records
        )

    def test_fetch_failure_aborts_the_run(self, db, payment_processor, dispatcher, now):
        booking_repository = MagicMock()
        booking_repository.get_bookings_pending_capture.side_effect = RepositoryException("db down")
        service = BatchProcessingService(
            db,
            payment_processor,
            dispatcher,
            config=settings,
            booking_repository=booking_repository,
            writer=MagicMock(),
        )

        with pytest.raises(BatchFetchException) as exc_info:
            service.run_capture_batch(now=now)

        assert exc_info.value.details["batch"] == "capture"
        payment_processor.capture.assert_not_called()


class TestPayoutBatch:
    def _completed(self, make_booking, now, **kwargs):
        return make_booking(
            status=BookingStatus.COMPLETED,
            start_time=now - timedelta(hours=3),
            payment_captured_at=now - timedelta(hours=27),
            **kwargs,
        )

    def test_pays_out_stylist_share(self, db, service, payment_processor, email_service, make_booking, now):
        booking = self._completed(make_booking, now)

        summary = service.run_payout_batch(now=now)

        assert summary.success is True
        assert summary.payouts_processed == 1
        assert summary.emails_sent == 2
        payment_processor.transfer.assert_called_once_with(
            f"pi_{booking.id}",
            booking.id,
            destination_account="acct_test_stylist",
            amount_minor=80000,
            source_transaction=f"ch_{booking.id}",
        )

        booking, payment = _reload(db, booking.id)
        assert booking.payout_processed_at is not None
        assert booking.payout_email_sent_at is not None
        assert payment.payout_initiated_at is not None
        assert payment.payout_completed_at is not None
        assert payment.stylist_transfer_id == f"tr_{booking.id}"

    def test_second_run_does_not_pay_again(self, service, payment_processor, make_booking, now):
        self._completed(make_booking, now)

        service.run_payout_batch(now=now)
        second = service.run_payout_batch(now=now + timedelta(hours=1))

        assert second.bookings_processed == 0
        assert payment_processor.transfer.call_count == 1

    def test_stylist_without_payout_account_is_skipped(self, db, service, payment_processor, make_booking, make_profile, now):
        stylist = make_profile(ProfileRole.STYLIST, stripe_account_id=None)
        booking = self._completed(make_booking, now, stylist=stylist)

        summary = service.run_payout_batch(now=now)

        assert summary.skipped == 1
        assert summary.errors == 0
        assert summary.success is True
        payment_processor.transfer.assert_not_called()
        booking, payment = _reload(db, booking.id)
        assert booking.payout_processed_at is None
        assert payment.payout_initiated_at is None

    def test_settle_delay_applies_to_scheduled_runs_only(self, service, payment_processor, make_booking, now):
        make_booking(
            status=BookingStatus.COMPLETED,
            start_time=now - timedelta(minutes=90),
            payment_captured_at=now - timedelta(hours=25),
        )

        assert service.run_payout_batch(now=now).bookings_processed == 0
        assert service.run_payout_batch(now=now, manual=True).payouts_processed == 1

    def test_transfer_failure_leaves_booking_pending(self, db, service, payment_processor, make_booking, now):
        booking = self._completed(make_booking, now)
        payment_processor.transfer.side_effect = PaymentProcessorError(
            ProcessorErrorKind.PROVIDER_ERROR, "Stripe transfer failed"
        )

        summary = service.run_payout_batch(now=now)

        assert summary.errors == 1
        booking, payment = _reload(db, booking.id)
        assert booking.payout_processed_at is None
        # Intent marker survives; the next run looks up the transfer group first
        assert payment.payout_initiated_at is not None

    def test_fully_discounted_booking_settles_without_transfer(
        self, db, service, payment_processor, email_service, make_booking, now
    ):
        booking = self._completed(
            make_booking, now, original_amount=Decimal("500.00"), discount_amount=Decimal("500.00")
        )

        first = service.run_payout_batch(now=now)
        second = service.run_payout_batch(now=now + timedelta(hours=1))

        assert (first.payouts_processed, first.errors, first.success) == (1, 0, True)
        assert second.bookings_processed == 0
        payment_processor.transfer.assert_not_called()
        email_service.send_email.assert_not_called()
        booking, payment = _reload(db, booking.id)
        assert booking.payout_processed_at is not None
        assert payment.payout_completed_at is not None
        assert payment.stylist_transfer_id is None
        assert payment.payout_initiated_at is None


class TestAutoCompleteBatch:
    def test_completes_bookings_past_grace(self, db, service, email_service, make_booking, now):
        booking = make_booking(start_time=now - timedelta(hours=3))
        make_booking(start_time=now - timedelta(minutes=80))

        summary = service.run_auto_complete_batch(now=now)

        assert summary.bookings_processed == 1
        assert summary.bookings_completed == 1
        assert summary.emails_sent == 2
        booking, _ = _reload(db, booking.id)
        assert booking.status == BookingStatus.COMPLETED.value
        assert booking.completed_at is not None
        subjects = [c.kwargs["subject"] for c in email_service.send_email.call_args_list]
        assert subjects == ["Tjeneste fullført: Hårklipp", "Tjeneste automatisk fullført: Hårklipp"]

    def test_booking_that_moved_on_is_skipped(self, service, make_booking, now):
        booking = make_booking(start_time=now - timedelta(hours=3), status=BookingStatus.CANCELLED)

        summary = service.auto_complete([booking], now=now)

        assert summary.skipped == 1
        assert summary.bookings_completed == 0


def test_full_lifecycle(db, service, payment_processor, make_booking, now):
    """Capture the day before, auto-complete after the appointment, then pay out."""
    booking = make_booking(start_time=now + timedelta(hours=25))

    assert service.run_capture_batch(now=now).payments_processed == 1

    after = now + timedelta(hours=28)
    assert service.run_auto_complete_batch(now=after).bookings_completed == 1
    assert service.run_payout_batch(now=after).payouts_processed == 1

    booking, payment = _reload(db, booking.id)
    assert booking.status == BookingStatus.COMPLETED.value
    assert booking.payment_captured_at is not None
    assert booking.payout_processed_at is not None
    assert payment_processor.transfer.call_args.kwargs["amount_minor"] == 80000
