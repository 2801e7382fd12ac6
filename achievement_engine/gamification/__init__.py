"""
Gamification engine

This module implements the achievement and progression system:
- Criteria evaluation for every achievement type
- XP and leveling (carry loop over a non-linear curve)
- Daily login streaks
- Achievement unlocks (exactly once per user)
- Event triggers for business events
"""

from achievement_engine.gamification.xp_system import LevelingLedger, apply_xp, calculate_xp_for_level
from achievement_engine.gamification.streak_system import StreakTracker, classify_login_day
from achievement_engine.gamification.criteria import CriteriaEvaluator
from achievement_engine.gamification.achievement_system import AchievementSystem
from achievement_engine.gamification.triggers import AchievementTriggers
from achievement_engine.gamification.catalog import DEFAULT_ACHIEVEMENTS, default_catalog, load_catalog, parse_definition

__all__ = [
    "LevelingLedger",
    "apply_xp",
    "calculate_xp_for_level",
    "StreakTracker",
    "classify_login_day",
    "CriteriaEvaluator",
    "AchievementSystem",
    "AchievementTriggers",
    "DEFAULT_ACHIEVEMENTS",
    "default_catalog",
    "load_catalog",
    "parse_definition",
]
