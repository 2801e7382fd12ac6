"""
Service Container - Dependency Injection Container

Simple DI container for the engine's services.
Uses lazy loading to only instantiate services when first accessed.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from achievement_engine.db.store import DataStore
from achievement_engine.utils.datetime_helpers import Clock, now_utc

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    The data store is injected.
    """

    # Infrastructure dependencies (injected)
    store: DataStore
    clock: Clock = now_utc

    # Services (lazy-loaded via properties)
    _gamification_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def gamification_service(self):
        """Get GamificationService instance (lazy-loaded)"""
        if self._gamification_service is None:
            from achievement_engine.services.gamification_service import GamificationService
            self._gamification_service = GamificationService(self.store, clock=self.clock)
            logger.debug("GamificationService instantiated")
        return self._gamification_service

    @property
    def triggers(self):
        """Trigger facade of the gamification service"""
        return self.gamification_service.triggers


# Global container instance (initialized at application startup)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Returns:
        ServiceContainer: The global container instance

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() at startup before using services."
        )
    return _container


def init_container(store: DataStore, clock: Clock = now_utc) -> ServiceContainer:
    """
    Initialize the global service container.

    Should be called once at startup after the data store is ready.

    Args:
        store: DataStore implementation
        clock: Source of "now"

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    _container = ServiceContainer(store=store, clock=clock)

    logger.info("Service container initialized")
    return _container


async def shutdown_container() -> None:
    """
    Drain background triggers and drop the global container.

    Safe to call when the container was never initialized.
    """
    global _container

    if _container is None:
        return

    if _container._gamification_service is not None:
        await _container.gamification_service.shutdown()

    _container = None
    logger.info("Service container shut down")
