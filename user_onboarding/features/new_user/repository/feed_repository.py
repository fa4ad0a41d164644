"""Seeds a new user's feed from the interests stored on their user row."""

import psycopg

from user_onboarding.config import settings
from user_onboarding.db.helpers import execute_query
from user_onboarding.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class FeedRepository:
    def __init__(self, seed_limit: int | None = None):
        self.seed_limit = seed_limit or settings.FEED_SEED_LIMIT

    async def personalize(self, user_id: str, connection: psycopg.AsyncConnection) -> int:
        """
        Insert the top open contracts matching the user's interests into their feed.

        Args:
            user_id: ID of the user whose feed is seeded
            connection: Connection shared with the rest of the onboarding run

        Returns:
            Number of feed rows inserted (0 on redelivery or without interests)
        """
        query = """
        INSERT INTO user_feed (user_id, contract_id, reason, created_at)
        SELECT u.id, c.id, 'new_user_interests', NOW()
        FROM users u
        JOIN contracts c ON c.topics && u.interests
        WHERE u.id = %s
          AND c.visibility = 'public'
          AND c.resolution IS NULL
          AND (c.close_time IS NULL OR c.close_time > NOW())
        ORDER BY c.importance_score DESC
        LIMIT %s
        ON CONFLICT (user_id, contract_id) DO NOTHING
        """

        inserted = await execute_query(query, (user_id, self.seed_limit), connection=connection)
        logger.info("Seeded new user feed", user_id=user_id, inserted=inserted)
        return inserted
