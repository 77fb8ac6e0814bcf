# backend/settlement/models/booking.py
"""
Booking model for the settlement engine.

A booking is a scheduled service engagement between a customer and a
stylist. Its status advances monotonically and its financial markers
(payment_captured_at, payout_processed_at, payout_email_sent_at) are
write-once: the batch jobs set each of them exactly once and never clear
them.
"""

from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Booking(Base):
    """Scheduled engagement plus the settlement markers the batch jobs maintain."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    customer_id = Column(String(26), ForeignKey("profiles.id"), nullable=False)
    stylist_id = Column(String(26), ForeignKey("profiles.id"), nullable=False)

    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    is_trial_session = Column(Boolean, nullable=False, default=False)

    # Settlement markers (write-once)
    payment_captured_at = Column(DateTime(timezone=True), nullable=True)
    payout_processed_at = Column(DateTime(timezone=True), nullable=True)
    payout_email_sent_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    customer = relationship("Profile", foreign_keys=[customer_id])
    stylist = relationship("Profile", foreign_keys=[stylist_id])
    payment = relationship("Payment", back_populates="booking", uselist=False)
    booking_services = relationship(
        "BookingService",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingService.position",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint("end_time > start_time", name="ck_bookings_time_order"),
        Index("ix_bookings_status_start_time", "status", "start_time"),
    )

    @property
    def service_titles(self) -> list[str]:
        """Titles of the booked services, in line-item order, skipping blanks."""
        return [
            item.service.title
            for item in self.booking_services
            if item.service is not None and item.service.title
        ]

    def __repr__(self) -> str:
        return f"<Booking {self.id} {self.status} start={self.start_time}>"


class Service(Base):
    """Catalogue entry offered by a stylist."""

    __tablename__ = "services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    title = Column(String(255), nullable=True)


class BookingService(Base):
    """Line item linking a booking to one booked service."""

    __tablename__ = "booking_services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_id = Column(String(26), ForeignKey("services.id"), nullable=True)
    position = Column(Integer, nullable=False, default=0)

    booking = relationship("Booking", back_populates="booking_services")
    service = relationship("Service", lazy="joined")
