"""Trending content ranking backed by the contracts table."""

from user_onboarding.config import settings
from user_onboarding.db.helpers import fetch_all, with_db_retry
from user_onboarding.features.new_user.domain.models import TrendingItem


class TrendingRepository:
    def __init__(self, limit: int | None = None):
        self.limit = limit or settings.TRENDING_CONTRACTS_LIMIT

    @with_db_retry(max_retries=2, base_delay=0.2)
    async def get_trending(self) -> list[TrendingItem]:
        """Open public contracts ranked by importance score, highest first."""
        query = """
        SELECT id, slug, question, creator_username, importance_score
        FROM contracts
        WHERE visibility = 'public'
          AND resolution IS NULL
          AND (close_time IS NULL OR close_time > NOW())
        ORDER BY importance_score DESC
        LIMIT %s
        """

        rows = await fetch_all(query, (self.limit,))
        return [
            TrendingItem(
                id=str(row["id"]),
                slug=row["slug"],
                question=row["question"],
                creator_username=row["creator_username"],
                importance_score=float(row["importance_score"] or 0.0),
            )
            for row in rows
        ]
