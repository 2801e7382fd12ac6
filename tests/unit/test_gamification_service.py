"""Unit tests for GamificationService and the service container"""
import asyncio
import pytest
from unittest.mock import AsyncMock, patch

from achievement_engine.services import container as container_module
from achievement_engine.services.container import (
    ServiceContainer,
    get_container,
    init_container,
    shutdown_container,
)
from achievement_engine.services.gamification_service import GamificationService
from achievement_engine.models.events import EventType


@pytest.fixture(autouse=True)
def reset_container():
    container_module._container = None
    yield
    container_module._container = None


# ============================================================================
# Wiring Tests
# ============================================================================

def test_service_shares_one_store(service, store):
    assert service.achievements.store is store
    assert service.evaluator.store is store
    assert service.ledger.store is store
    assert service.streaks.store is store
    assert service.triggers.system is service.achievements
    assert service.triggers.streaks is service.streaks


@pytest.mark.asyncio
async def test_check_and_unlock_delegates(service):
    with patch.object(service.achievements, 'check_and_unlock_achievements', AsyncMock(return_value=[])) as mock_check:
        await service.check_and_unlock_achievements("u1", EventType.RECALCULATE_ALL)

    mock_check.assert_awaited_once_with("u1", EventType.RECALCULATE_ALL, None)


@pytest.mark.asyncio
async def test_award_xp_and_progress(service):
    result = await service.award_xp("u1", 250)
    progress = await service.get_progress_to_next_level("u1")

    assert result.new_level == 2
    assert progress.current_xp == 150
    assert progress.next_level_xp == 519


@pytest.mark.asyncio
async def test_update_streak(service):
    update = await service.update_streak("u1")

    assert update.current_streak == 1


# ============================================================================
# Stats Overview Tests
# ============================================================================

@pytest.mark.asyncio
async def test_get_stats_overview_unknown_user(service):
    assert await service.get_stats_overview("ghost") is None


@pytest.mark.asyncio
async def test_get_stats_overview_new_user(service, preparer_profile):
    overview = await service.get_stats_overview(preparer_profile.user_id)

    assert overview['stats'].level == 1
    assert overview['level_progress'] == 0
    assert overview['xp_to_next_level'] == 100
    assert overview['achievements'].unlocked == 0


@pytest.mark.asyncio
async def test_get_stats_overview_after_award(service, preparer_profile):
    await service.award_xp(preparer_profile.user_id, 40)

    overview = await service.get_stats_overview(preparer_profile.user_id)

    assert overview['level_progress'] == pytest.approx(40.0)
    assert overview['xp_to_next_level'] == 60


# ============================================================================
# Shutdown Tests
# ============================================================================

@pytest.mark.asyncio
async def test_shutdown_drains_background_triggers(service, preparer_profile):
    release = asyncio.Event()

    async def slow_check(*args):
        await release.wait()
        return []

    with patch.object(service.achievements, 'check_and_unlock_achievements', side_effect=slow_check):
        service.triggers.fire(service.triggers.recalculate_all, preparer_profile.user_id)
        assert service.triggers.pending == 1

        release.set()
        await service.shutdown()

    assert service.triggers.pending == 0


# ============================================================================
# Container Tests
# ============================================================================

def test_get_container_before_init_raises():
    with pytest.raises(RuntimeError):
        get_container()


def test_init_container_lazy_service(store, clock):
    container = init_container(store, clock=clock)

    assert get_container() is container
    assert container._gamification_service is None

    service = container.gamification_service

    assert isinstance(service, GamificationService)
    assert container.gamification_service is service
    assert container.triggers is service.triggers
    assert service.store is store


@pytest.mark.asyncio
async def test_shutdown_container(store):
    container = init_container(store)
    service = container.gamification_service

    with patch.object(service, 'shutdown', AsyncMock()) as mock_shutdown:
        await shutdown_container()

    mock_shutdown.assert_awaited_once()
    with pytest.raises(RuntimeError):
        get_container()


@pytest.mark.asyncio
async def test_shutdown_container_without_init():
    await shutdown_container()


def test_container_is_plain_dataclass(store):
    container = ServiceContainer(store=store)

    assert container.store is store
    assert "_gamification_service" not in repr(container)
