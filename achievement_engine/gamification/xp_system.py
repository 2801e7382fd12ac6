"""
XP and Leveling System

Manages XP awards and level calculations.

Leveling Curve:
- Level 1: BASE_LEVEL_XP (100) XP
- Level N (N >= 2): floor((N + 1) ** 1.5 * 100) XP
  e.g. level 2 needs 519, level 3 needs 800, level 4 needs 1118

XP in excess of the current level's requirement carries into the next
level, so one large award can gain several levels at once.

XP Award Rules:
- Achievement unlocks award the achievement's points (10-300 XP)
"""

import logging
import math
from typing import Optional

from achievement_engine.config import BASE_LEVEL_XP, LEVEL_CURVE_EXPONENT
from achievement_engine.db.store import DataStore
from achievement_engine.exceptions import ValidationError
from achievement_engine.models.stats import LevelProgress, UserStats, XPAwardResult
from achievement_engine.monitoring import record_xp_award

logger = logging.getLogger(__name__)


def calculate_xp_for_level(level: int) -> int:
    """
    XP required to complete a level (after the first)

    Args:
        level: Level being entered

    Returns:
        floor((level + 1) ** LEVEL_CURVE_EXPONENT * BASE_LEVEL_XP)
    """
    return math.floor((level + 1) ** LEVEL_CURVE_EXPONENT * BASE_LEVEL_XP)


def apply_xp(stats: UserStats, amount: int) -> UserStats:
    """
    Add XP to a stats snapshot and carry any overflow into new levels

    Pure: returns a new UserStats, the input is not modified.

    Example:
        >>> after = apply_xp(UserStats(user_id="u1"), 250)
        >>> after.level, after.current_level_xp, after.next_level_xp
        (2, 150, 519)
    """
    level = stats.level
    current = stats.current_level_xp + amount
    next_level_xp = stats.next_level_xp

    while current >= next_level_xp:
        current -= next_level_xp
        level += 1
        next_level_xp = calculate_xp_for_level(level)

    return stats.model_copy(update={
        "total_xp": stats.total_xp + amount,
        "level": level,
        "current_level_xp": current,
        "next_level_xp": next_level_xp,
    })


def build_award_result(user_id: str, amount: int, before: UserStats, after: UserStats) -> XPAwardResult:
    """Describe an award from the stats before and after it"""
    return XPAwardResult(
        user_id=user_id,
        xp_awarded=amount,
        old_total_xp=before.total_xp,
        new_total_xp=after.total_xp,
        old_level=before.level,
        new_level=after.level,
        current_level_xp=after.current_level_xp,
        next_level_xp=after.next_level_xp,
    )


def log_award(result: XPAwardResult) -> None:
    """Log and count an award"""
    record_xp_award(result.xp_awarded, result.new_level - result.old_level)

    if result.leveled_up:
        logger.info(
            f"User {result.user_id} leveled up! {result.old_level} → {result.new_level} "
            f"(+{result.xp_awarded} XP, total {result.new_total_xp})"
        )
    else:
        logger.info(f"Awarded {result.xp_awarded} XP to user {result.user_id} (total {result.new_total_xp})")


class LevelingLedger:
    """Owns XP totals and levels for every user"""

    def __init__(self, store: DataStore):
        self.store = store

    # Pure helpers, also reachable from an instance
    apply_xp = staticmethod(apply_xp)
    calculate_xp_for_level = staticmethod(calculate_xp_for_level)

    async def award_xp(self, user_id: str, amount: int) -> XPAwardResult:
        """
        Award XP to user and carry level-ups

        Args:
            user_id: User ID
            amount: Non-negative XP amount

        Returns:
            XPAwardResult with old/new level and totals

        Raises:
            ValidationError: if amount is negative or not an integer
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValidationError(
                message=f"XP amount must be a non-negative integer, got {amount!r}",
                field="amount",
                value=amount,
                user_id=user_id,
                operation="award_xp",
            )

        before, after = await self.store.modify_user_stats(
            user_id, lambda stats: apply_xp(stats, amount)
        )

        result = build_award_result(user_id, amount, before, after)
        log_award(result)
        return result

    async def get_progress_to_next_level(self, user_id: str) -> Optional[LevelProgress]:
        """
        Progress within the current level

        Returns:
            LevelProgress, or None if the user has no stats yet
        """
        stats = await self.store.get_user_stats(user_id)
        if stats is None:
            return None

        return LevelProgress(
            level=stats.level,
            current_xp=stats.current_level_xp,
            next_level_xp=stats.next_level_xp,
            progress=stats.current_level_xp / stats.next_level_xp * 100,
        )
