"""Read-only access to profiles, stylist payout details and email preferences."""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.notification import UserPreferences
from ..models.profile import Profile, StylistDetails
from .base_repository import BaseRepository


class ProfileRepository(BaseRepository[Profile]):
    def __init__(self, db: Session):
        super().__init__(db, Profile)

    def get_stripe_account_id(self, profile_id: str) -> Optional[str]:
        try:
            details = (
                self.db.query(StylistDetails)
                .filter(StylistDetails.profile_id == profile_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading stylist details for {profile_id}: {str(e)}")
            raise RepositoryException(f"Failed to load stylist details: {str(e)}")
        if details is None or not details.stripe_account_id:
            return None
        return details.stripe_account_id

    def get_preferences(self, profile_id: str) -> Optional[UserPreferences]:
        try:
            return (
                self.db.query(UserPreferences)
                .filter(UserPreferences.profile_id == profile_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading preferences for {profile_id}: {str(e)}")
            raise RepositoryException(f"Failed to load preferences: {str(e)}")
