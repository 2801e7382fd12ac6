"""Pydantic models for the achievement engine"""
from achievement_engine.models.user import UserRole, UserProfile
from achievement_engine.models.achievement import (
    AchievementCategory,
    AchievementRarity,
    AchievementDefinition,
    Criteria,
    CriteriaResult,
    UserAchievementProgress,
    AchievementCheckResult,
    UnlockedAchievement,
    AchievementSummary,
)
from achievement_engine.models.stats import (
    UserStats,
    LevelProgress,
    XPAwardResult,
    LoginDayClass,
    StreakUpdate,
)
from achievement_engine.models.events import EventType, EventData

__all__ = [
    "UserRole",
    "UserProfile",
    "AchievementCategory",
    "AchievementRarity",
    "AchievementDefinition",
    "Criteria",
    "CriteriaResult",
    "UserAchievementProgress",
    "AchievementCheckResult",
    "UnlockedAchievement",
    "AchievementSummary",
    "UserStats",
    "LevelProgress",
    "XPAwardResult",
    "LoginDayClass",
    "StreakUpdate",
    "EventType",
    "EventData",
]
