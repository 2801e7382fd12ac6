"""
Login Streak Tracking

Tracks consecutive calendar days with at least one login.

Logic:
- First login ever: streak starts at 1
- Another login on the same day: no change (nothing is written)
- Login on the next day: streak continues
- Gap of more than one day: streak resets to 1
- longest_login_streak never drops below the current streak

Days are calendar days in the engine timezone, so a login at 23:59 and one
at 00:01 are consecutive days.
"""

import logging
from datetime import date, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from achievement_engine.db.store import DataStore
from achievement_engine.models.stats import LoginDayClass, StreakUpdate, UserStats
from achievement_engine.utils.datetime_helpers import Clock, get_engine_timezone, local_date, now_utc

logger = logging.getLogger(__name__)


def classify_login_day(last_login: Optional[date], today: date) -> LoginDayClass:
    """
    Classify today's login relative to the previous one

    Args:
        last_login: Calendar date of the previous login (None if never)
        today: Calendar date of this login

    Returns:
        LoginDayClass
    """
    if last_login is None:
        return LoginDayClass.FIRST
    if last_login == today:
        return LoginDayClass.SAME_DAY
    if last_login == today - timedelta(days=1):
        return LoginDayClass.CONSECUTIVE
    return LoginDayClass.GAP


class StreakTracker:
    """Maintains login_streak / longest_login_streak on UserStats"""

    def __init__(self, store: DataStore, clock: Clock = now_utc, tz: Optional[ZoneInfo] = None):
        self.store = store
        self.clock = clock
        self.tz = tz or get_engine_timezone()

    async def update_streak(self, user_id: str) -> StreakUpdate:
        """
        Record a login and update the streak

        Args:
            user_id: User ID

        Returns:
            StreakUpdate describing how the login was classified
        """
        now = self.clock()
        today = local_date(now, self.tz)
        outcome: dict = {}

        def mutate(stats: UserStats) -> Optional[UserStats]:
            last = local_date(stats.last_login_date, self.tz) if stats.last_login_date else None
            day_class = classify_login_day(last, today)
            outcome["day_class"] = day_class

            if day_class is LoginDayClass.SAME_DAY:
                return None

            if day_class is LoginDayClass.CONSECUTIVE:
                streak = stats.login_streak + 1
            else:
                streak = 1

            return stats.model_copy(update={
                "login_streak": streak,
                "longest_login_streak": max(stats.longest_login_streak, streak),
                "last_login_date": now,
            })

        before, after = await self.store.modify_user_stats(user_id, mutate)
        day_class = outcome["day_class"]

        if day_class is LoginDayClass.CONSECUTIVE:
            logger.info(f"User {user_id} login streak continues: day {after.login_streak} 🔥")
        elif day_class is LoginDayClass.GAP:
            logger.info(
                f"User {user_id} login streak broken. "
                f"Was {before.login_streak}, starting fresh at day 1"
            )
        elif day_class is LoginDayClass.FIRST:
            logger.info(f"User {user_id} login streak started")

        return StreakUpdate(
            user_id=user_id,
            day_class=day_class,
            old_streak=before.login_streak,
            current_streak=after.login_streak,
            longest_streak=after.longest_login_streak,
        )
