# backend/settlement/models/profile.py
"""
Profile models.

Profiles are owned by account management; the settlement engine only reads
them to address notifications and to resolve a stylist's payout account.
"""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class ProfileRole(str, Enum):
    CUSTOMER = "customer"
    STYLIST = "stylist"
    ADMIN = "admin"


class Profile(Base):
    """A customer, stylist or admin account."""

    __tablename__ = "profiles"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=ProfileRole.CUSTOMER.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    stylist_details = relationship(
        "StylistDetails", back_populates="profile", uselist=False, lazy="joined"
    )
    preferences = relationship("UserPreferences", back_populates="profile", uselist=False)

    def __repr__(self) -> str:
        return f"<Profile {self.id} role={self.role}>"


class StylistDetails(Base):
    """Stylist payout configuration (Stripe Connect account)."""

    __tablename__ = "stylist_details"

    profile_id = Column(
        String(26), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    stripe_account_id = Column(String(255), nullable=True, comment="Stripe Connect account")

    profile = relationship("Profile", back_populates="stylist_details")
