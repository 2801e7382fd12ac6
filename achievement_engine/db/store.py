"""
Data store interface for the achievement engine

The engine never talks to a database client directly; it receives a
DataStore in its constructor. Two implementations ship with the package:

- PostgresStore (achievement_engine.db.queries.gamification): psycopg 3
- MemoryStore (achievement_engine.db.memory_store): in-process, for tests
  and local runs

Read-modify-write operations (modify_user_stats, unlock_achievement) must be
atomic per record. The mutation callbacks they receive are pure functions and
may be invoked while the record is locked.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Optional

from achievement_engine.models.achievement import (
    AchievementDefinition,
    UnlockedAchievement,
    UserAchievementProgress,
)
from achievement_engine.models.stats import UserStats
from achievement_engine.models.user import UserProfile

# Receives the locked stats row, returns the replacement row or None to leave it untouched
StatsMutation = Callable[[UserStats], Optional[UserStats]]

# Applies an XP amount to a stats row (see LevelingLedger.apply_xp)
XPApplier = Callable[[UserStats, int], UserStats]

# Return statuses counted as filed
FILED_RETURN_STATUSES = ("FILED", "ACCEPTED")

# Referral status counted as converted
CONVERTED_REFERRAL_STATUS = "COMPLETED"


class DataStore(ABC):
    """Capability set the engine needs from persistence"""

    # ==========================================
    # Identity & catalog
    # ==========================================

    @abstractmethod
    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        """Profile (role, signup date, named fields) or None for unknown users"""

    @abstractmethod
    async def get_active_achievements(self, role: str) -> list[AchievementDefinition]:
        """Active definitions whose target roles include role (roles no definition targets get [])"""

    # ==========================================
    # Achievement progress
    # ==========================================

    @abstractmethod
    async def get_or_create_achievement_progress(
        self, user_id: str, achievement_id: str
    ) -> UserAchievementProgress:
        """Load the progress row, creating it with progress=0 if missing"""

    @abstractmethod
    async def update_achievement_progress(
        self, user_id: str, achievement_id: str, progress: float
    ) -> bool:
        """Persist progress for a still-locked row. Returns False if the row is unlocked."""

    @abstractmethod
    async def unlock_achievement(
        self,
        user_id: str,
        achievement_id: str,
        progress: float,
        unlocked_at: datetime,
        points: int,
        apply_xp: XPApplier,
    ) -> Optional[tuple[UserStats, UserStats]]:
        """
        Flip is_unlocked false -> true and award points in one atomic unit

        Returns (stats_before, stats_after) when this call performed the
        unlock, or None when the row was already unlocked.
        """

    @abstractmethod
    async def list_unlocked_achievements(self, user_id: str) -> list[UnlockedAchievement]:
        """Unlocked achievements joined with their definitions"""

    @abstractmethod
    async def mark_achievements_viewed(
        self, user_id: str, achievement_ids: Optional[list[str]] = None
    ) -> int:
        """Mark unlocked achievements as viewed; returns how many rows changed"""

    # ==========================================
    # User stats
    # ==========================================

    @abstractmethod
    async def get_user_stats(self, user_id: str) -> Optional[UserStats]:
        """Stats row or None if it was never created"""

    @abstractmethod
    async def modify_user_stats(
        self, user_id: str, mutate: StatsMutation
    ) -> tuple[UserStats, UserStats]:
        """
        Atomically read (creating with defaults if missing), mutate and write stats

        Returns (stats_before, stats_after). When mutate returns None nothing
        is written and both elements are the current row.
        """

    # ==========================================
    # Aggregate queries
    # ==========================================

    @abstractmethod
    async def count_filed_returns(
        self,
        preparer_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        """FILED/ACCEPTED returns of the preparer's clients, optionally by last update time"""

    @abstractmethod
    async def count_active_clients(self, preparer_id: str) -> int:
        """Clients assigned to the preparer"""

    @abstractmethod
    async def sum_commissions(self, user_id: str) -> float:
        """Total commission amount earned by the user"""

    @abstractmethod
    async def count_referrals(self, referrer_id: str, status: Optional[str] = None) -> int:
        """Referrals made by the user, optionally filtered by status"""
