# backend/tests/conftest.py
"""
Pytest configuration for the settlement engine.

Every test gets a fresh in-memory SQLite database with the full schema, plus
factories for profiles and bookings. Email delivery is mocked globally so
no test can reach Resend.
"""

import os
import sys

# Set testing mode BEFORE any settlement imports
os.environ["IS_TESTING"] = "true"
os.environ["ENVIRONMENT"] = "testing"
os.environ["EMAIL_PROVIDER"] = "console"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("SENTRY_DSN", None)

# Mock Resend API globally to prevent real emails in ANY test
import unittest.mock

global_resend_mock = unittest.mock.patch("resend.Emails.send")
mocked_send = global_resend_mock.start()
mocked_send.return_value = {"id": "test-email-id"}

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Iterable, Optional
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from settlement.core.config import settings
from settlement.database import Base
from settlement.models import (
    Booking,
    BookingService,
    BookingStatus,
    Payment,
    Profile,
    ProfileRole,
    Service,
    StylistDetails,
    UserPreferences,
)
from settlement.services.fee_calculator import calculate_fees
from settlement.services.notification_dispatcher import NotificationDispatcher
from settlement.services.notification_preference_service import NotificationPreferenceService
from settlement.services.payment_processor import CaptureResult, PaymentProcessor, TransferResult

settings.is_testing = True

# A Thursday, 12:00 UTC (13:00 in Oslo)
FIXED_NOW = datetime(2026, 3, 5, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_profile(db):
    """
    Create a profile.

    ``preferences`` overrides individual preference columns; pass
    ``with_preferences=False`` for a profile that has no preferences row.
    """

    def _make(
        role: ProfileRole = ProfileRole.CUSTOMER,
        *,
        email: Optional[str] = "",
        full_name: Optional[str] = None,
        preferences: Optional[Dict[str, bool]] = None,
        with_preferences: bool = True,
        stripe_account_id: Optional[str] = "acct_test_stylist",
    ) -> Profile:
        profile = Profile(role=role.value, full_name=full_name)
        db.add(profile)
        db.flush()
        profile.email = email if email != "" else f"{role.value}-{profile.id.lower()}@example.com"
        if with_preferences:
            db.add(UserPreferences(profile_id=profile.id, **(preferences or {})))
        if role is ProfileRole.STYLIST:
            db.add(StylistDetails(profile_id=profile.id, stripe_account_id=stripe_account_id))
        db.commit()
        return profile

    return _make


@pytest.fixture
def make_booking(db, make_profile, now):
    """Create a booking with its services and payment record."""

    def _make(
        *,
        customer: Optional[Profile] = None,
        stylist: Optional[Profile] = None,
        start_time: Optional[datetime] = None,
        duration: timedelta = timedelta(hours=1),
        status: BookingStatus = BookingStatus.CONFIRMED,
        payment_captured_at: Optional[datetime] = None,
        payout_processed_at: Optional[datetime] = None,
        is_trial_session: bool = False,
        service_titles: Iterable[str] = ("Hårklipp",),
        original_amount: Decimal = Decimal("1000.00"),
        discount_amount: Decimal = Decimal("0.00"),
        with_payment: bool = True,
        payment_intent_id: Optional[str] = "",
    ) -> Booking:
        customer = customer or make_profile(ProfileRole.CUSTOMER, full_name="Kari Nordmann")
        stylist = stylist or make_profile(ProfileRole.STYLIST, full_name="Siri Stylist")
        start = start_time or now + timedelta(hours=25)

        booking = Booking(
            customer_id=customer.id,
            stylist_id=stylist.id,
            start_time=start,
            end_time=start + duration,
            status=status.value,
            is_trial_session=is_trial_session,
            payment_captured_at=payment_captured_at,
            payout_processed_at=payout_processed_at,
        )
        db.add(booking)
        db.flush()

        for position, title in enumerate(service_titles):
            service = Service(title=title)
            db.add(service)
            db.flush()
            db.add(BookingService(booking_id=booking.id, service_id=service.id, position=position))

        if with_payment:
            fees = calculate_fees(original_amount, discount_amount)
            payment = Payment(
                booking_id=booking.id,
                original_amount=original_amount,
                discount_amount=discount_amount,
                final_amount=fees.final_amount,
                payment_intent_id=(
                    payment_intent_id if payment_intent_id != "" else f"pi_{booking.id}"
                ),
            )
            if payment_captured_at is not None:
                payment.status = "succeeded"
                payment.captured_at = payment_captured_at
                payment.capture_reference = f"ch_{booking.id}"
                payment.platform_fee = fees.platform_fee
                payment.stylist_payout = fees.stylist_payout
            db.add(payment)

        db.commit()
        return booking

    return _make


@pytest.fixture
def payment_processor():
    """Processor double that succeeds with deterministic references."""
    processor = MagicMock(spec=PaymentProcessor)
    processor.capture.side_effect = lambda booking_id, payment_intent_id: CaptureResult(
        payment_intent_id=payment_intent_id, external_ref=f"ch_{booking_id}"
    )
    processor.transfer.side_effect = lambda payment_intent_id, booking_id, **kwargs: TransferResult(
        transfer_id=f"tr_{booking_id}"
    )
    return processor


@pytest.fixture
def email_service():
    service = MagicMock()
    service.send_email.return_value = {"id": "test-email-id"}
    return service


@pytest.fixture
def dispatcher(db, email_service):
    return NotificationDispatcher(NotificationPreferenceService(db), email_service)
