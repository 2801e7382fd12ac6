"""Progression (XP, level, streak) models"""
from enum import Enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class UserStats(BaseModel):
    """Per-user progression state and activity accumulators"""
    user_id: str
    total_xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    current_level_xp: int = Field(default=0, ge=0)
    next_level_xp: int = Field(default=100, gt=0)

    # Accumulators consulted by criteria
    documents_processed: int = 0
    links_created: int = 0
    messages_sent: int = 0
    client_satisfaction: float = 0.0

    # Login streak
    login_streak: int = 0
    longest_login_streak: int = 0
    last_login_date: Optional[datetime] = None


class LevelProgress(BaseModel):
    """Progress within the current level"""
    level: int
    current_xp: int
    next_level_xp: int
    progress: float


class XPAwardResult(BaseModel):
    """Outcome of an XP award"""
    user_id: str
    xp_awarded: int
    old_total_xp: int
    new_total_xp: int
    old_level: int
    new_level: int
    current_level_xp: int
    next_level_xp: int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


class LoginDayClass(str, Enum):
    """How a login relates to the previous one on the calendar"""
    FIRST = "first"
    SAME_DAY = "same_day"
    CONSECUTIVE = "consecutive"
    GAP = "gap"


class StreakUpdate(BaseModel):
    """Outcome of a streak update"""
    user_id: str
    day_class: LoginDayClass
    old_streak: int
    current_streak: int
    longest_streak: int

    @property
    def changed(self) -> bool:
        return self.day_class is not LoginDayClass.SAME_DAY
