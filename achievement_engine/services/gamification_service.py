"""
GamificationService - Gamification Business Logic

Single entry point the platform uses for the achievement engine. Wires the
criteria evaluator, unlock orchestrator, leveling ledger, streak tracker and
trigger facade around one DataStore.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from achievement_engine.db.store import DataStore
from achievement_engine.gamification.achievement_system import AchievementSystem
from achievement_engine.gamification.criteria import CriteriaEvaluator
from achievement_engine.gamification.streak_system import StreakTracker
from achievement_engine.gamification.triggers import AchievementTriggers
from achievement_engine.gamification.xp_system import LevelingLedger
from achievement_engine.models.achievement import AchievementCheckResult, AchievementSummary
from achievement_engine.models.events import EventData, EventType
from achievement_engine.models.stats import LevelProgress, StreakUpdate, UserStats, XPAwardResult
from achievement_engine.utils.datetime_helpers import Clock, get_engine_timezone, now_utc

logger = logging.getLogger(__name__)


class GamificationService:
    """
    Service for gamification features.

    Responsibilities:
    - Achievement checking and unlocking
    - XP awarding and level progress
    - Login streak updates
    - Event triggers (inline or background)
    - Stats overview for the dashboard widget
    """

    def __init__(self, store: DataStore, clock: Clock = now_utc, tz_name: Optional[str] = None):
        """
        Initialize GamificationService.

        Args:
            store: DataStore implementation (PostgresStore or MemoryStore)
            clock: Source of "now"
            tz_name: Engine timezone override (IANA name)
        """
        self.store = store
        tz = get_engine_timezone(tz_name)

        self.evaluator = CriteriaEvaluator(store, clock=clock, tz=tz)
        self.achievements = AchievementSystem(store, evaluator=self.evaluator, clock=clock)
        self.ledger = LevelingLedger(store)
        self.streaks = StreakTracker(store, clock=clock, tz=tz)
        self.triggers = AchievementTriggers(self.achievements, streaks=self.streaks)
        logger.debug("GamificationService initialized")

    async def check_and_unlock_achievements(
        self,
        user_id: str,
        event_type: Union[EventType, str],
        event_data: Optional[EventData] = None,
    ) -> List[AchievementCheckResult]:
        return await self.achievements.check_and_unlock_achievements(user_id, event_type, event_data)

    async def award_xp(self, user_id: str, amount: int) -> XPAwardResult:
        return await self.ledger.award_xp(user_id, amount)

    async def update_streak(self, user_id: str) -> StreakUpdate:
        return await self.streaks.update_streak(user_id)

    async def get_progress_to_next_level(self, user_id: str) -> Optional[LevelProgress]:
        return await self.ledger.get_progress_to_next_level(user_id)

    async def get_user_achievements(self, user_id: str) -> Optional[AchievementSummary]:
        return await self.achievements.get_user_achievements(user_id)

    async def mark_achievements_viewed(
        self, user_id: str, achievement_ids: Optional[List[str]] = None
    ) -> int:
        return await self.achievements.mark_achievements_viewed(user_id, achievement_ids)

    async def get_stats_overview(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Level, XP, streak and achievement counts in one call

        Returns:
            {
                'stats': UserStats (defaults if the user has none yet),
                'level_progress': float (0-100),
                'xp_to_next_level': int,
                'achievements': AchievementSummary
            }
            or None for unknown users
        """
        summary = await self.achievements.get_user_achievements(user_id)
        if summary is None:
            return None

        stats = await self.store.get_user_stats(user_id) or UserStats(user_id=user_id)

        return {
            'stats': stats,
            'level_progress': stats.current_level_xp / stats.next_level_xp * 100,
            'xp_to_next_level': stats.next_level_xp - stats.current_level_xp,
            'achievements': summary,
        }

    async def shutdown(self) -> None:
        """Wait for background triggers to finish"""
        if self.triggers.pending:
            logger.info(f"Waiting for {self.triggers.pending} background achievement triggers")
        await self.triggers.drain()
