"""Service for reading notification preferences."""

from __future__ import annotations

from sqlalchemy.orm import Session

from ..core.exceptions import ValidationException
from ..models.notification import NOTIFICATION_CATEGORIES
from ..repositories.factory import RepositoryFactory
from ..repositories.profile_repository import ProfileRepository
from .base import BaseService


class NotificationPreferenceService(BaseService):
    """Answers "may this profile be emailed about this category?"."""

    def __init__(self, db: Session, profile_repository: ProfileRepository | None = None) -> None:
        super().__init__(db)
        self.profile_repository = (
            profile_repository or RepositoryFactory.create_profile_repository(db)
        )

    @BaseService.measure_operation("should_receive_notification")
    def should_receive_notification(self, profile_id: str, category: str) -> bool:
        """
        Check a ``group.field`` category (e.g. ``stylist.paymentNotifications``).

        The category opt-in is AND-ed with the master email toggle. A profile
        without a preferences row receives nothing.
        """
        if category not in NOTIFICATION_CATEGORIES:
            raise ValidationException(
                f"Unknown notification category: {category}",
                code="UNKNOWN_NOTIFICATION_CATEGORY",
            )

        preferences = self.profile_repository.get_preferences(profile_id)
        if preferences is None:
            self.logger.info(f"No preferences for profile {profile_id}; not sending {category}")
            return False
        return preferences.allows(category)
