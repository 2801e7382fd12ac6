"""
Service Layer Package

Business logic services that sit between the platform (which raises business
events) and the data store.

- GamificationService: achievements, XP, streaks, triggers
"""

from achievement_engine.services.container import ServiceContainer, get_container, init_container, shutdown_container
from achievement_engine.services.gamification_service import GamificationService

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
    "shutdown_container",
    "GamificationService",
]
