"""
In-memory DataStore

Backs the engine in tests and local runs. Nothing is persisted. Each
read-modify-write holds an asyncio.Lock for the record it touches, so
concurrent triggers for the same user serialise the same way row locks do in
PostgreSQL.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from achievement_engine.db.store import (
    FILED_RETURN_STATUSES,
    DataStore,
    StatsMutation,
    XPApplier,
)
from achievement_engine.models.achievement import (
    AchievementDefinition,
    UnlockedAchievement,
    UserAchievementProgress,
)
from achievement_engine.models.stats import UserStats
from achievement_engine.models.user import UserProfile

logger = logging.getLogger(__name__)


@dataclass
class TaxReturnRecord:
    client_id: str
    status: str
    updated_at: datetime


@dataclass
class ReferralRecord:
    referrer_id: str
    status: str


class MemoryStore(DataStore):
    """In-process store keyed the same way as the database tables"""

    def __init__(self, achievements: Optional[Iterable[AchievementDefinition]] = None):
        self._profiles: dict[str, UserProfile] = {}
        self._achievements: dict[str, AchievementDefinition] = {}
        self._progress: dict[tuple[str, str], UserAchievementProgress] = {}
        self._stats: dict[str, UserStats] = {}
        self._client_preparers: dict[str, set[str]] = defaultdict(set)
        self._tax_returns: list[TaxReturnRecord] = []
        self._referrals: list[ReferralRecord] = []
        self._commissions: dict[str, list[float]] = defaultdict(list)
        # Grows with every (kind, key) touched and is never evicted; this store
        # is for tests and single-process runs only
        self._locks: dict[object, asyncio.Lock] = defaultdict(asyncio.Lock)

        for achievement in achievements or ():
            self.add_achievement(achievement)

    # ==========================================
    # Seeding helpers (not part of DataStore)
    # ==========================================

    def add_profile(self, profile: UserProfile) -> None:
        self._profiles[profile.user_id] = profile

    def add_achievement(self, achievement: AchievementDefinition) -> None:
        self._achievements[achievement.id] = achievement

    def assign_client(self, preparer_id: str, client_id: str) -> None:
        self._client_preparers[preparer_id].add(client_id)

    def add_tax_return(self, client_id: str, status: str, updated_at: datetime) -> None:
        self._tax_returns.append(TaxReturnRecord(client_id, status, updated_at))

    def add_referral(self, referrer_id: str, status: str = "PENDING") -> None:
        self._referrals.append(ReferralRecord(referrer_id, status))

    def add_commission(self, user_id: str, amount: float) -> None:
        self._commissions[user_id].append(amount)

    def set_user_stats(self, stats: UserStats) -> None:
        self._stats[stats.user_id] = stats.model_copy()

    # ==========================================
    # Identity & catalog
    # ==========================================

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)

    async def get_active_achievements(self, role: str) -> list[AchievementDefinition]:
        matches = [
            a for a in self._achievements.values()
            if a.is_active and a.targets(role)
        ]
        return sorted(matches, key=lambda a: (a.sort_order, a.slug))

    # ==========================================
    # Achievement progress
    # ==========================================

    async def get_or_create_achievement_progress(
        self, user_id: str, achievement_id: str
    ) -> UserAchievementProgress:
        key = (user_id, achievement_id)
        async with self._locks[("progress", key)]:
            row = self._progress.get(key)
            if row is None:
                row = UserAchievementProgress(user_id=user_id, achievement_id=achievement_id)
                self._progress[key] = row
                logger.debug(f"Created progress row for user {user_id}, achievement {achievement_id}")
            return row.model_copy()

    async def update_achievement_progress(
        self, user_id: str, achievement_id: str, progress: float
    ) -> bool:
        key = (user_id, achievement_id)
        async with self._locks[("progress", key)]:
            row = self._progress.get(key)
            if row is None or row.is_unlocked:
                return False
            self._progress[key] = row.model_copy(update={"progress": progress})
            return True

    async def unlock_achievement(
        self,
        user_id: str,
        achievement_id: str,
        progress: float,
        unlocked_at: datetime,
        points: int,
        apply_xp: XPApplier,
    ) -> Optional[tuple[UserStats, UserStats]]:
        key = (user_id, achievement_id)
        async with self._locks[("progress", key)]:
            row = self._progress.get(key)
            if row is not None and row.is_unlocked:
                return None

            async with self._locks[("stats", user_id)]:
                before = self._stats.get(user_id) or UserStats(user_id=user_id)
                after = apply_xp(before.model_copy(), points)
                self._stats[user_id] = after

            self._progress[key] = UserAchievementProgress(
                user_id=user_id,
                achievement_id=achievement_id,
                progress=progress,
                is_unlocked=True,
                unlocked_at=unlocked_at,
            )
            return before, after.model_copy()

    async def list_unlocked_achievements(self, user_id: str) -> list[UnlockedAchievement]:
        unlocked = []
        for (row_user, achievement_id), row in self._progress.items():
            if row_user != user_id or not row.is_unlocked:
                continue
            achievement = self._achievements.get(achievement_id)
            if achievement is None:
                continue
            unlocked.append(UnlockedAchievement(
                achievement=achievement,
                unlocked_at=row.unlocked_at,
                viewed=row.viewed,
            ))
        return unlocked

    async def mark_achievements_viewed(
        self, user_id: str, achievement_ids: Optional[list[str]] = None
    ) -> int:
        wanted = set(achievement_ids) if achievement_ids is not None else None
        updated = 0
        for key, row in list(self._progress.items()):
            if key[0] != user_id or not row.is_unlocked or row.viewed:
                continue
            if wanted is not None and key[1] not in wanted:
                continue
            self._progress[key] = row.model_copy(update={"viewed": True})
            updated += 1
        return updated

    # ==========================================
    # User stats
    # ==========================================

    async def get_user_stats(self, user_id: str) -> Optional[UserStats]:
        stats = self._stats.get(user_id)
        return stats.model_copy() if stats else None

    async def modify_user_stats(
        self, user_id: str, mutate: StatsMutation
    ) -> tuple[UserStats, UserStats]:
        async with self._locks[("stats", user_id)]:
            before = self._stats.get(user_id)
            if before is None:
                before = UserStats(user_id=user_id)
                self._stats[user_id] = before
                logger.info(f"Created new stats record for user {user_id}")

            after = mutate(before.model_copy())
            if after is None:
                return before.model_copy(), before.model_copy()

            self._stats[user_id] = after
            return before.model_copy(), after.model_copy()

    # ==========================================
    # Aggregate queries
    # ==========================================

    async def count_filed_returns(
        self,
        preparer_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        clients = self._client_preparers.get(preparer_id, set())
        return sum(
            1 for r in self._tax_returns
            if r.client_id in clients
            and r.status in FILED_RETURN_STATUSES
            and (since is None or r.updated_at >= since)
            and (until is None or r.updated_at <= until)
        )

    async def count_active_clients(self, preparer_id: str) -> int:
        return len(self._client_preparers.get(preparer_id, ()))

    async def sum_commissions(self, user_id: str) -> float:
        return float(sum(self._commissions.get(user_id, ())))

    async def count_referrals(self, referrer_id: str, status: Optional[str] = None) -> int:
        return sum(
            1 for r in self._referrals
            if r.referrer_id == referrer_id and (status is None or r.status == status)
        )
