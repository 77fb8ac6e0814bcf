# backend/settlement/repositories/factory.py
"""
Repository Factory for the settlement engine.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .payment_repository import PaymentRepository
    from .profile_repository import ProfileRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking eligibility queries and marker writes."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        """Create repository for payment marker writes."""
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)

    @staticmethod
    def create_profile_repository(db: Session) -> "ProfileRepository":
        """Create repository for profiles, payout accounts and preferences."""
        from .profile_repository import ProfileRepository

        return ProfileRepository(db)
