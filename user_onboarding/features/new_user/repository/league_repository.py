"""
League cohort enrollment.

A season spans a fixed date range. Within a season users are grouped into
cohorts of at most LEAGUE_COHORT_SIZE members; new users always start in
division 1. Enrollment is idempotent per (season, user).
"""

from datetime import datetime

import psycopg

from user_onboarding.config import settings
from user_onboarding.db.helpers import execute_query, fetch_one
from user_onboarding.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

NEW_USER_DIVISION = 1


class LeagueRepository:
    def __init__(self, cohort_size: int | None = None):
        self.cohort_size = cohort_size or settings.LEAGUE_COHORT_SIZE

    async def enroll(self, connection: psycopg.AsyncConnection, user_id: str, now: datetime) -> bool:
        """
        Add a user to a division-1 cohort of the season active at ``now``.

        Args:
            connection: Connection to run the enrollment transaction on
            user_id: ID of the user to enroll
            now: Instant used to pick the active season

        Returns:
            True if the user is a member of a cohort afterwards, False when no
            season is active
        """
        async with connection.transaction():
            season = await fetch_one(
                """
                SELECT season
                FROM league_seasons
                WHERE starts_at <= %s AND ends_at > %s
                ORDER BY starts_at DESC
                LIMIT 1
                """,
                (now, now),
                connection=connection,
            )
            if not season:
                logger.warning("No active league season", user_id=user_id, now=now.isoformat())
                return False

            season_id = season["season"]

            existing = await fetch_one(
                "SELECT cohort FROM league_members WHERE season = %s AND user_id = %s",
                (season_id, user_id),
                connection=connection,
            )
            if existing:
                logger.info(
                    "User already enrolled in league",
                    user_id=user_id,
                    season=season_id,
                    cohort=existing["cohort"],
                )
                return True

            cohort = await self._open_cohort(connection, season_id)

            await execute_query(
                """
                INSERT INTO league_members (season, division, cohort, user_id, created_at)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (season, user_id) DO NOTHING
                """,
                (season_id, NEW_USER_DIVISION, cohort, user_id, now),
                connection=connection,
            )

        logger.info("User enrolled in league", user_id=user_id, season=season_id, cohort=cohort)
        return True

    async def _open_cohort(self, connection: psycopg.AsyncConnection, season_id: int) -> str:
        """Fullest division-1 cohort with room left, or a freshly named one."""
        # Lock the season's cohorts so two concurrent enrollments can't overfill one
        await execute_query(
            "SELECT 1 FROM league_cohorts WHERE season = %s AND division = %s FOR UPDATE",
            (season_id, NEW_USER_DIVISION),
            connection=connection,
        )

        row = await fetch_one(
            """
            SELECT c.cohort, COUNT(m.user_id) AS member_count
            FROM league_cohorts c
            LEFT JOIN league_members m ON m.season = c.season AND m.cohort = c.cohort
            WHERE c.season = %s AND c.division = %s
            GROUP BY c.cohort
            HAVING COUNT(m.user_id) < %s
            ORDER BY member_count DESC, c.cohort
            LIMIT 1
            """,
            (season_id, NEW_USER_DIVISION, self.cohort_size),
            connection=connection,
        )
        if row:
            return row["cohort"]

        total = await fetch_one(
            "SELECT COUNT(*) AS n FROM league_cohorts WHERE season = %s AND division = %s",
            (season_id, NEW_USER_DIVISION),
            connection=connection,
        )
        cohort = f"s{season_id}-d{NEW_USER_DIVISION}-{total['n'] + 1}"
        await execute_query(
            """
            INSERT INTO league_cohorts (season, division, cohort)
            VALUES (%s, %s, %s)
            ON CONFLICT DO NOTHING
            """,
            (season_id, NEW_USER_DIVISION, cohort),
            connection=connection,
        )
        logger.info("Created league cohort", season=season_id, cohort=cohort)
        return cohort
