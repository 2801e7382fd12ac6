"""
Achievement System

Checks a user's role-visible achievements after a business event and
unlocks the ones whose criteria are now met.

Features:
- Progress tracking for locked achievements
- Exactly-once unlock: the unlock flag and the XP award are written together
  by the data store, conditional on the achievement still being locked
- One failing achievement never stops the others from being checked
- Achievement shelf summary (unlocked / total / new / recent)
"""

import logging
from typing import List, Optional, Union

from achievement_engine.config import RECENT_ACHIEVEMENTS_LIMIT
from achievement_engine.db.store import DataStore
from achievement_engine.gamification.criteria import CriteriaEvaluator
from achievement_engine.gamification.xp_system import apply_xp, build_award_result, log_award
from achievement_engine.models.achievement import (
    AchievementCheckResult,
    AchievementDefinition,
    AchievementSummary,
)
from achievement_engine.models.events import EventData, EventType
from achievement_engine.monitoring import record_evaluation_error, record_unlock, track_achievement_check
from achievement_engine.utils.datetime_helpers import Clock, now_utc

logger = logging.getLogger(__name__)


class AchievementSystem:
    """Unlock orchestrator"""

    def __init__(
        self,
        store: DataStore,
        evaluator: Optional[CriteriaEvaluator] = None,
        clock: Clock = now_utc,
        recent_limit: int = RECENT_ACHIEVEMENTS_LIMIT,
    ):
        self.store = store
        self.clock = clock
        self.evaluator = evaluator or CriteriaEvaluator(store, clock=clock)
        self.recent_limit = recent_limit

    async def check_and_unlock_achievements(
        self,
        user_id: str,
        event_type: Union[EventType, str],
        event_data: Optional[EventData] = None,
    ) -> List[AchievementCheckResult]:
        """
        Check every role-visible achievement for the user after an event

        Args:
            user_id: User who triggered the event
            event_type: Business event kind
            event_data: Typed payload for the event (or None)

        Returns:
            One result per evaluated achievement. Newly unlocked achievements
            have achieved=True and xp_awarded set. Already-unlocked and
            not-applicable achievements are left out.
        """
        event_type = EventType(event_type)
        logger.info(f"Checking achievements for user {user_id}, event: {event_type.value}")

        with track_achievement_check(event_type.value):
            profile = await self.store.get_user_profile(user_id)
            if profile is None:
                logger.warning(f"Profile not found for user {user_id}")
                return []

            achievements = await self.store.get_active_achievements(profile.role)
            results: List[AchievementCheckResult] = []

            for achievement in achievements:
                try:
                    result = await self._check_single_achievement(
                        user_id, achievement, event_type, event_data
                    )
                except Exception as e:
                    record_evaluation_error(achievement.criteria.type)
                    logger.error(
                        f"Error checking achievement {achievement.slug} for user {user_id}: {e}",
                        exc_info=True
                    )
                    continue

                if result is not None:
                    results.append(result)

        return results

    async def _check_single_achievement(
        self,
        user_id: str,
        achievement: AchievementDefinition,
        event_type: EventType,
        event_data: Optional[EventData],
    ) -> Optional[AchievementCheckResult]:
        """Evaluate one achievement; None when skipped"""
        user_achievement = await self.store.get_or_create_achievement_progress(user_id, achievement.id)
        if user_achievement.is_unlocked:
            return None

        check = await self.evaluator.evaluate(user_id, achievement.criteria, event_type, event_data)
        if check is None:
            return None

        progress = max(0.0, min(100.0, check.progress))
        should_unlock = progress >= 100 or check.achieved

        if not should_unlock:
            if not await self.store.update_achievement_progress(user_id, achievement.id, progress):
                # Unlocked by a concurrent evaluation since we read it
                return None
            return AchievementCheckResult(achieved=False, progress=progress, achievement=achievement)

        unlocked = await self.store.unlock_achievement(
            user_id,
            achievement.id,
            progress=progress,
            unlocked_at=self.clock(),
            points=achievement.points,
            apply_xp=apply_xp,
        )
        if unlocked is None:
            # Another evaluation unlocked it first
            logger.debug(f"Achievement {achievement.slug} already unlocked for user {user_id}")
            return None

        before, after = unlocked
        record_unlock(achievement.slug)
        log_award(build_award_result(user_id, achievement.points, before, after))
        logger.info(
            f"🏆 Achievement unlocked: {achievement.title} ({achievement.slug}) "
            f"for user {user_id} +{achievement.points} XP"
        )

        return AchievementCheckResult(
            achieved=True,
            progress=progress,
            achievement=achievement,
            xp_awarded=achievement.points,
        )

    async def get_user_achievements(self, user_id: str) -> Optional[AchievementSummary]:
        """
        Achievement shelf for a user

        Returns:
            AchievementSummary with unlocked/total/new counts and the most
            recent unlocks (newest first), or None for unknown users
        """
        profile = await self.store.get_user_profile(user_id)
        if profile is None:
            logger.warning(f"Profile not found for user {user_id}")
            return None

        visible = await self.store.get_active_achievements(profile.role)
        unlocked = await self.store.list_unlocked_achievements(user_id)
        unlocked.sort(key=lambda u: u.unlocked_at, reverse=True)

        return AchievementSummary(
            unlocked=len(unlocked),
            total=len(visible),
            new=sum(1 for u in unlocked if not u.viewed),
            recent=unlocked[:self.recent_limit],
        )

    async def mark_achievements_viewed(
        self, user_id: str, achievement_ids: Optional[List[str]] = None
    ) -> int:
        """
        Mark unlocked achievements as seen

        Args:
            user_id: User ID
            achievement_ids: Achievements to mark (None marks all)

        Returns:
            Number of achievements updated
        """
        updated = await self.store.mark_achievements_viewed(user_id, achievement_ids)
        logger.debug(f"Marked {updated} achievements viewed for user {user_id}")
        return updated
