"""User directory lookups against the private_users table."""

from user_onboarding.db.helpers import fetch_one, with_db_retry
from user_onboarding.features.new_user.domain.models import PrivateProfile
from user_onboarding.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class PrivateUserRepository:
    """Reads the private half of a user record (contact details, preferences)."""

    @staticmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def get_private_profile(user_id: str) -> PrivateProfile | None:
        """
        Fetch the private profile for a user.

        Args:
            user_id: ID of the user

        Returns:
            PrivateProfile if a private record exists, None otherwise
        """
        query = """
        SELECT id, email, notification_preferences
        FROM private_users
        WHERE id = %s
        """

        row = await fetch_one(query, (user_id,))
        if not row:
            logger.info("Private profile not found", user_id=user_id)
            return None

        return PrivateProfile(
            id=str(row["id"]),
            email=row["email"],
            notification_preferences=row["notification_preferences"] or {},
        )
