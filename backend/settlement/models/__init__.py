"""
Database models for the settlement engine.

Importing this package registers every mapped class on ``Base.metadata`` so
string-based relationships resolve:
- Profiles and stylist payout details
- Bookings and their service line items
- Payments
- Notification preferences
"""

from .booking import Booking, BookingService, BookingStatus, Service
from .notification import NOTIFICATION_CATEGORIES, UserPreferences
from .payment import Payment
from .profile import Profile, ProfileRole, StylistDetails

__all__ = [
    "Booking",
    "BookingService",
    "BookingStatus",
    "Service",
    "Payment",
    "Profile",
    "ProfileRole",
    "StylistDetails",
    "UserPreferences",
    "NOTIFICATION_CATEGORIES",
]
