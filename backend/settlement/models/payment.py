# backend/settlement/models/payment.py
"""
Payment record tied 1:1 to a booking.

Created upstream when the customer authorizes payment; the settlement
engine mutates it twice: once at capture, once at payout.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

if TYPE_CHECKING:
    from .booking import Booking


class Payment(Base):
    """Monetary transaction for one booking (amounts in major currency units)."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    original_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    final_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    platform_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    stylist_payout: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    refunded_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NOK")

    payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Stripe payment intent"
    )
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="requires_capture")

    captured_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    capture_reference: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Charge id returned by the capture"
    )
    payout_initiated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payout_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    stylist_transfer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    booking: Mapped["Booking"] = relationship("Booking", back_populates="payment")

    __table_args__ = (
        CheckConstraint("original_amount >= 0", name="ck_payments_original_non_negative"),
        CheckConstraint("discount_amount >= 0", name="ck_payments_discount_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Payment {self.id} booking={self.booking_id} status={self.status}>"
