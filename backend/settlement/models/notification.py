"""
Notification preference model.

One row per profile: a master email toggle plus per-category opt-ins.
Categories are addressed by dotted keys (``booking.confirmations``) that map
onto the boolean columns below.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base

NOTIFICATION_CATEGORIES: dict[str, str] = {
    "newsletter.subscribed": "newsletter_subscribed",
    "newsletter.marketingEmails": "marketing_emails",
    "booking.confirmations": "booking_confirmations",
    "booking.reminders": "booking_reminders",
    "booking.cancellations": "booking_cancellations",
    "booking.statusUpdates": "booking_status_updates",
    "chat.messages": "chat_messages",
    "stylist.newBookingRequests": "new_booking_requests",
    "stylist.reviewNotifications": "review_notifications",
    "stylist.paymentNotifications": "payment_notifications",
    "application.statusUpdates": "application_status_updates",
}


class UserPreferences(Base):
    """Per-profile email preferences."""

    __tablename__ = "user_preferences"

    profile_id = Column(
        String(26),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        primary_key=True,
    )

    email_delivery = Column(Boolean, nullable=False, default=True)

    newsletter_subscribed = Column(Boolean, nullable=False, default=False)
    marketing_emails = Column(Boolean, nullable=False, default=False)
    booking_confirmations = Column(Boolean, nullable=False, default=True)
    booking_reminders = Column(Boolean, nullable=False, default=True)
    booking_cancellations = Column(Boolean, nullable=False, default=True)
    booking_status_updates = Column(Boolean, nullable=False, default=True)
    chat_messages = Column(Boolean, nullable=False, default=True)
    new_booking_requests = Column(Boolean, nullable=False, default=True)
    review_notifications = Column(Boolean, nullable=False, default=True)
    payment_notifications = Column(Boolean, nullable=False, default=True)
    application_status_updates = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    profile = relationship("Profile", back_populates="preferences")

    def allows(self, category: str) -> bool:
        """Effective value of ``category``: the opt-in AND the master email toggle."""
        column = NOTIFICATION_CATEGORIES.get(category)
        if column is None:
            raise KeyError(category)
        return bool(getattr(self, column)) and bool(self.email_delivery)
