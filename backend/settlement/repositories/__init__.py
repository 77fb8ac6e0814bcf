# backend/settlement/repositories/__init__.py
"""
Repository layer for the settlement engine.

Key Components:
- BaseRepository: Foundation for all repositories
- RepositoryFactory: Factory for creating repository instances
- BookingRepository: Eligibility queries and guarded marker writes
- PaymentRepository: Guarded payment marker writes
- ProfileRepository: Payout accounts and notification preferences
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .payment_repository import PaymentRepository
from .profile_repository import ProfileRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "PaymentRepository",
    "ProfileRepository",
    "RepositoryFactory",
]
