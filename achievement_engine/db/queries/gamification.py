"""Gamification database queries (PostgreSQL DataStore)"""
import logging
from datetime import datetime
from typing import Optional

import psycopg
from psycopg.types.json import Jsonb
from pydantic.alias_generators import to_camel

from achievement_engine.db.connection import Database, db
from achievement_engine.db.store import (
    FILED_RETURN_STATUSES,
    DataStore,
    StatsMutation,
    XPApplier,
)
from achievement_engine.exceptions import CatalogValidationError, PersistenceError, wrap_external_exception
from achievement_engine.gamification.catalog import parse_definition
from achievement_engine.models.achievement import (
    AchievementDefinition,
    UnlockedAchievement,
    UserAchievementProgress,
)
from achievement_engine.models.stats import UserStats
from achievement_engine.models.user import UserProfile, UserRole
from achievement_engine.monitoring import track_database_query

logger = logging.getLogger(__name__)

ACHIEVEMENT_COLUMNS = """
    id, slug, title, description, category, rarity, icon, badge_color,
    points, target_roles, criteria, is_active, sort_order
"""

STATS_COLUMNS = """
    user_id, total_xp, level, current_level_xp, next_level_xp,
    documents_processed, links_created, messages_sent, client_satisfaction,
    login_streak, longest_login_streak, last_login_date
"""

PROGRESS_COLUMNS = "user_id, achievement_id, progress, is_unlocked, unlocked_at, viewed"

# Profile columns that are not free-form fields
_PROFILE_BASE_COLUMNS = {"user_id", "role", "created_at", "updated_at", "id"}


def _row_to_profile(row: dict) -> UserProfile:
    """Map a profiles row; extra columns become camelCase fields (license_no -> licenseNo)"""
    fields = {
        to_camel(key): value
        for key, value in row.items()
        if key not in _PROFILE_BASE_COLUMNS
    }
    return UserProfile(
        user_id=row["user_id"],
        role=row["role"],
        created_at=row["created_at"],
        fields=fields,
    )


def _row_to_definition(row: dict) -> Optional[AchievementDefinition]:
    """Parse a catalog row; malformed rows are logged and skipped"""
    try:
        return parse_definition(row)
    except CatalogValidationError as e:
        logger.warning(f"Skipping malformed achievement {row.get('slug')}: {e.errors}")
        return None


def _write_failed(
    error: psycopg.Error,
    operation: str,
    record_type: str,
    user_id: Optional[str] = None,
    context: Optional[dict] = None,
) -> PersistenceError:
    """Write-path failures: nothing from this write may be reported as done"""
    return PersistenceError(
        message=f"Failed to persist {record_type}: {error}",
        record_type=record_type,
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error,
    )


class PostgresStore(DataStore):
    """DataStore backed by PostgreSQL (psycopg 3 async pool)"""

    def __init__(self, database: Database = db):
        self.db = database

    # ==========================================
    # Identity & catalog
    # ==========================================

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            with track_database_query("select", "profiles"):
                async with self.db.connection() as conn:
                    async with conn.cursor() as cur:
                        await cur.execute(
                            "SELECT * FROM profiles WHERE user_id = %s",
                            (user_id,)
                        )
                        row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="get_user_profile", user_id=user_id)

        return _row_to_profile(row) if row else None

    async def get_active_achievements(self, role: str) -> list[AchievementDefinition]:
        try:
            with track_database_query("select", "achievements"):
                async with self.db.connection() as conn:
                    async with conn.cursor() as cur:
                        await cur.execute(
                            f"""
                            SELECT {ACHIEVEMENT_COLUMNS}
                            FROM achievements
                            WHERE is_active = TRUE AND %s = ANY(target_roles)
                            ORDER BY sort_order, slug
                            """,
                            (role.value if isinstance(role, UserRole) else role,)
                        )
                        rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="get_active_achievements", context={"role": str(role)})

        definitions = [_row_to_definition(dict(row)) for row in rows]
        return [d for d in definitions if d is not None]

    async def upsert_achievement(self, definition: AchievementDefinition) -> None:
        """Insert or update a catalog entry by slug (used by the seed script)"""
        try:
            with track_database_query("upsert", "achievements"):
                async with self.db.connection() as conn:
                    async with conn.cursor() as cur:
                        await cur.execute(
                            """
                            INSERT INTO achievements (
                                id, slug, title, description, category, rarity, icon, badge_color,
                                points, target_roles, criteria, is_active, sort_order
                            )
                            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                            ON CONFLICT (slug) DO UPDATE SET
                                title = EXCLUDED.title,
                                description = EXCLUDED.description,
                                category = EXCLUDED.category,
                                rarity = EXCLUDED.rarity,
                                icon = EXCLUDED.icon,
                                badge_color = EXCLUDED.badge_color,
                                points = EXCLUDED.points,
                                target_roles = EXCLUDED.target_roles,
                                criteria = EXCLUDED.criteria,
                                is_active = EXCLUDED.is_active,
                                sort_order = EXCLUDED.sort_order,
                                updated_at = NOW()
                            """,
                            (
                                definition.id,
                                definition.slug,
                                definition.title,
                                definition.description,
                                definition.category.value if definition.category else None,
                                definition.rarity.value,
                                definition.icon,
                                definition.badge_color,
                                definition.points,
                                sorted(role.value for role in definition.target_roles),
                                Jsonb(definition.criteria.model_dump(by_alias=True, mode="json")),
                                definition.is_active,
                                definition.sort_order,
                            )
                        )
                    await conn.commit()
        except psycopg.Error as e:
            raise _write_failed(e, "upsert_achievement", "achievements", context={"slug": definition.slug})

    # ==========================================
    # Achievement progress
    # ==========================================

    async def get_or_create_achievement_progress(
        self, user_id: str, achievement_id: str
    ) -> UserAchievementProgress:
        try:
            with track_database_query("upsert", "user_achievements"):
                async with self.db.connection() as conn:
                    async with conn.cursor() as cur:
                        await cur.execute(
                            """
                            INSERT INTO user_achievements (user_id, achievement_id, progress)
                            VALUES (%s, %s, 0)
                            ON CONFLICT (user_id, achievement_id) DO NOTHING
                            """,
                            (user_id, achievement_id)
                        )
                        await cur.execute(
                            f"""
                            SELECT {PROGRESS_COLUMNS}
                            FROM user_achievements
                            WHERE user_id = %s AND achievement_id = %s
                            """,
                            (user_id, achievement_id)
                        )
                        row = await cur.fetchone()
                    await conn.commit()
        except psycopg.Error as e:
            raise wrap_external_exception(
                e, operation="get_or_create_achievement_progress", user_id=user_id,
                context={"achievement_id": achievement_id}
            )

        return UserAchievementProgress(**row)

    async def update_achievement_progress(
        self, user_id: str, achievement_id: str, progress: float
    ) -> bool:
        try:
            with track_database_query("update", "user_achievements"):
                async with self.db.connection() as conn:
                    async with conn.cursor() as cur:
                        await cur.execute(
                            """
                            UPDATE user_achievements
                            SET progress = %s, updated_at = NOW()
                            WHERE user_id = %s AND achievement_id = %s AND is_unlocked = FALSE
                            """,
                            (progress, user_id, achievement_id)
                        )
                        updated = cur.rowcount > 0
                    await conn.commit()
        except psycopg.Error as e:
            raise _write_failed(
                e, "update_achievement_progress", "user_achievements", user_id=user_id,
                context={"achievement_id": achievement_id}
            )

        return updated

    async def unlock_achievement(
        self,
        user_id: str,
        achievement_id: str,
        progress: float,
        unlocked_at: datetime,
        points: int,
        apply_xp: XPApplier,
    ) -> Optional[tuple[UserStats, UserStats]]:
        try:
            with track_database_query("unlock", "user_achievements"):
                async with self.db.connection() as conn:
                    async with conn.transaction():
                        async with conn.cursor() as cur:
                            # Conditional flip: only one caller can move a row out of the locked state
                            await cur.execute(
                                """
                                INSERT INTO user_achievements (user_id, achievement_id, progress, is_unlocked, unlocked_at)
                                VALUES (%s, %s, %s, TRUE, %s)
                                ON CONFLICT (user_id, achievement_id) DO UPDATE SET
                                    progress = EXCLUDED.progress,
                                    is_unlocked = TRUE,
                                    unlocked_at = EXCLUDED.unlocked_at,
                                    updated_at = NOW()
                                WHERE user_achievements.is_unlocked = FALSE
                                RETURNING achievement_id
                                """,
                                (user_id, achievement_id, progress, unlocked_at)
                            )
                            if await cur.fetchone() is None:
                                return None

                            before = await self._lock_stats(cur, user_id)
                            after = apply_xp(before.model_copy(), points)
                            await self._write_stats(cur, after)
        except psycopg.Error as e:
            raise _write_failed(
                e, "unlock_achievement", "user_achievements", user_id=user_id,
                context={"achievement_id": achievement_id, "points": points}
            )

        return before, after

    async def list_unlocked_achievements(self, user_id: str) -> list[UnlockedAchievement]:
        try:
            with track_database_query("select", "user_achievements"):
                async with self.db.connection() as conn:
                    async with conn.cursor() as cur:
                        await cur.execute(
                            """
                            SELECT a.id, a.slug, a.title, a.description, a.category, a.rarity, a.icon,
                                   a.badge_color, a.points, a.target_roles, a.criteria, a.is_active,
                                   a.sort_order, ua.unlocked_at, ua.viewed
                            FROM user_achievements ua
                            JOIN achievements a ON a.id = ua.achievement_id
                            WHERE ua.user_id = %s AND ua.is_unlocked = TRUE
                            ORDER BY ua.unlocked_at DESC
                            """,
                            (user_id,)
                        )
                        rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="list_unlocked_achievements", user_id=user_id)

        unlocked = []
        for row in rows:
            row = dict(row)
            unlocked_at = row.pop("unlocked_at")
            viewed = row.pop("viewed")
            definition = _row_to_definition(row)
            if definition is not None:
                unlocked.append(UnlockedAchievement(
                    achievement=definition,
                    unlocked_at=unlocked_at,
                    viewed=viewed,
                ))
        return unlocked

    async def mark_achievements_viewed(
        self, user_id: str, achievement_ids: Optional[list[str]] = None
    ) -> int:
        try:
            with track_database_query("update", "user_achievements"):
                async with self.db.connection() as conn:
                    async with conn.cursor() as cur:
                        await cur.execute(
                            """
                            UPDATE user_achievements
                            SET viewed = TRUE, updated_at = NOW()
                            WHERE user_id = %s
                              AND is_unlocked = TRUE
                              AND viewed = FALSE
                              AND (%s::text[] IS NULL OR achievement_id = ANY(%s::text[]))
                            """,
                            (user_id, achievement_ids, achievement_ids)
                        )
                        updated = cur.rowcount
                    await conn.commit()
        except psycopg.Error as e:
            raise _write_failed(e, "mark_achievements_viewed", "user_achievements", user_id=user_id)

        return updated

    # ==========================================
    # User stats
    # ==========================================

    async def get_user_stats(self, user_id: str) -> Optional[UserStats]:
        try:
            with track_database_query("select", "user_stats"):
                async with self.db.connection() as conn:
                    async with conn.cursor() as cur:
                        await cur.execute(
                            f"SELECT {STATS_COLUMNS} FROM user_stats WHERE user_id = %s",
                            (user_id,)
                        )
                        row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="get_user_stats", user_id=user_id)

        return UserStats(**row) if row else None

    async def modify_user_stats(
        self, user_id: str, mutate: StatsMutation
    ) -> tuple[UserStats, UserStats]:
        try:
            with track_database_query("update", "user_stats"):
                async with self.db.connection() as conn:
                    async with conn.transaction():
                        async with conn.cursor() as cur:
                            before = await self._lock_stats(cur, user_id)
                            after = mutate(before.model_copy())
                            if after is None:
                                return before, before
                            await self._write_stats(cur, after)
        except psycopg.Error as e:
            raise _write_failed(e, "modify_user_stats", "user_stats", user_id=user_id)

        return before, after

    async def _lock_stats(self, cur: psycopg.AsyncCursor, user_id: str) -> UserStats:
        """Create the stats row if missing and lock it for this transaction"""
        await cur.execute(
            "INSERT INTO user_stats (user_id) VALUES (%s) ON CONFLICT (user_id) DO NOTHING",
            (user_id,)
        )
        if cur.rowcount > 0:
            logger.info(f"Created new stats record for user {user_id}")

        await cur.execute(
            f"SELECT {STATS_COLUMNS} FROM user_stats WHERE user_id = %s FOR UPDATE",
            (user_id,)
        )
        return UserStats(**await cur.fetchone())

    async def _write_stats(self, cur: psycopg.AsyncCursor, stats: UserStats) -> None:
        await cur.execute(
            """
            UPDATE user_stats
            SET total_xp = %s,
                level = %s,
                current_level_xp = %s,
                next_level_xp = %s,
                documents_processed = %s,
                links_created = %s,
                messages_sent = %s,
                client_satisfaction = %s,
                login_streak = %s,
                longest_login_streak = %s,
                last_login_date = %s,
                updated_at = NOW()
            WHERE user_id = %s
            """,
            (
                stats.total_xp,
                stats.level,
                stats.current_level_xp,
                stats.next_level_xp,
                stats.documents_processed,
                stats.links_created,
                stats.messages_sent,
                stats.client_satisfaction,
                stats.login_streak,
                stats.longest_login_streak,
                stats.last_login_date,
                stats.user_id,
            )
        )

    # ==========================================
    # Aggregate queries
    # ==========================================

    async def count_filed_returns(
        self,
        preparer_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        try:
            with track_database_query("count", "tax_returns"):
                async with self.db.connection() as conn:
                    async with conn.cursor() as cur:
                        await cur.execute(
                            """
                            SELECT COUNT(*) AS count
                            FROM tax_returns tr
                            JOIN preparer_clients pc ON pc.client_id = tr.client_id
                            WHERE pc.preparer_id = %s
                              AND tr.status = ANY(%s)
                              AND (%s::timestamptz IS NULL OR tr.updated_at >= %s)
                              AND (%s::timestamptz IS NULL OR tr.updated_at <= %s)
                            """,
                            (preparer_id, list(FILED_RETURN_STATUSES), since, since, until, until)
                        )
                        row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="count_filed_returns", user_id=preparer_id)

        return row["count"] if row else 0

    async def count_active_clients(self, preparer_id: str) -> int:
        try:
            with track_database_query("count", "preparer_clients"):
                async with self.db.connection() as conn:
                    async with conn.cursor() as cur:
                        await cur.execute(
                            "SELECT COUNT(*) AS count FROM preparer_clients WHERE preparer_id = %s",
                            (preparer_id,)
                        )
                        row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="count_active_clients", user_id=preparer_id)

        return row["count"] if row else 0

    async def sum_commissions(self, user_id: str) -> float:
        try:
            with track_database_query("sum", "commissions"):
                async with self.db.connection() as conn:
                    async with conn.cursor() as cur:
                        await cur.execute(
                            "SELECT COALESCE(SUM(amount), 0) AS total FROM commissions WHERE user_id = %s",
                            (user_id,)
                        )
                        row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="sum_commissions", user_id=user_id)

        return float(row["total"]) if row else 0.0

    async def count_referrals(self, referrer_id: str, status: Optional[str] = None) -> int:
        try:
            with track_database_query("count", "referrals"):
                async with self.db.connection() as conn:
                    async with conn.cursor() as cur:
                        await cur.execute(
                            """
                            SELECT COUNT(*) AS count
                            FROM referrals
                            WHERE referrer_id = %s AND (%s::text IS NULL OR status = %s)
                            """,
                            (referrer_id, status, status)
                        )
                        row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="count_referrals", user_id=referrer_id)

        return row["count"] if row else 0
