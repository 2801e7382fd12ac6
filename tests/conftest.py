"""Global test fixtures and utilities for achievement engine tests"""
import pytest
from unittest.mock import AsyncMock
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from achievement_engine.db.memory_store import MemoryStore
from achievement_engine.gamification.catalog import parse_definition
from achievement_engine.models.achievement import AchievementDefinition
from achievement_engine.models.user import UserProfile, UserRole
from achievement_engine.services.gamification_service import GamificationService


# ============================================================================
# Time Fixtures
# ============================================================================

class FakeClock:
    """Callable clock that tests can move forward"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def fixed_now():
    """Standard evaluation instant (inside peak filing season)"""
    return datetime(2025, 3, 20, 15, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now):
    return FakeClock(fixed_now)


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def store():
    """Empty in-memory data store"""
    return MemoryStore()


@pytest.fixture
def mock_store():
    """DataStore double with every method mocked"""
    store = AsyncMock()
    store.get_user_stats = AsyncMock(return_value=None)
    store.get_user_profile = AsyncMock(return_value=None)
    return store


# ============================================================================
# User Fixtures
# ============================================================================

@pytest.fixture
def preparer_id():
    return "preparer-1"


@pytest.fixture
def referrer_id():
    return "referrer-1"


@pytest.fixture
def preparer_profile(store, preparer_id):
    profile = UserProfile(
        user_id=preparer_id,
        role=UserRole.TAX_PREPARER,
        created_at=datetime(2025, 1, 10, 9, 0, 0, tzinfo=timezone.utc),
        fields={"licenseNo": "TX-12345", "companyName": ""},
    )
    store.add_profile(profile)
    return profile


@pytest.fixture
def referrer_profile(store, referrer_id):
    profile = UserProfile(
        user_id=referrer_id,
        role=UserRole.REFERRER,
        created_at=datetime(2026, 2, 1, 9, 0, 0, tzinfo=timezone.utc),
    )
    store.add_profile(profile)
    return profile


# ============================================================================
# Achievement Fixtures
# ============================================================================

def make_definition(
    slug: str,
    criteria: dict[str, Any],
    points: int = 10,
    roles: Optional[list[str]] = None,
    **extra: Any,
) -> AchievementDefinition:
    """Build a validated definition with sensible defaults"""
    raw = {
        "id": f"ach-{slug}",
        "slug": slug,
        "title": slug.replace("_", " ").title(),
        "points": points,
        "targetRoles": roles or ["TAX_PREPARER"],
        "criteria": criteria,
    }
    raw.update(extra)
    return parse_definition(raw)


@pytest.fixture
def definition_factory():
    return make_definition


@pytest.fixture
def service(store, clock):
    """GamificationService over the in-memory store with a pinned clock"""
    return GamificationService(store, clock=clock, tz_name="UTC")
