"""Unit tests for Login Streak Tracking (achievement_engine/gamification/streak_system.py)"""
import asyncio
import pytest
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from achievement_engine.gamification.streak_system import StreakTracker, classify_login_day
from achievement_engine.models.stats import LoginDayClass, UserStats


# ============================================================================
# Classification Tests
# ============================================================================

def test_classify_first_login():
    assert classify_login_day(None, date(2025, 3, 20)) is LoginDayClass.FIRST


def test_classify_same_day():
    assert classify_login_day(date(2025, 3, 20), date(2025, 3, 20)) is LoginDayClass.SAME_DAY


def test_classify_consecutive_across_month_boundary():
    assert classify_login_day(date(2025, 2, 28), date(2025, 3, 1)) is LoginDayClass.CONSECUTIVE


def test_classify_gap():
    assert classify_login_day(date(2025, 3, 17), date(2025, 3, 20)) is LoginDayClass.GAP


# ============================================================================
# Streak Update Tests
# ============================================================================

@pytest.mark.asyncio
async def test_update_streak_first_login(store, clock):
    """Test first login starts a streak of 1"""
    tracker = StreakTracker(store, clock=clock)

    update = await tracker.update_streak("u1")

    assert update.day_class is LoginDayClass.FIRST
    assert update.current_streak == 1
    assert update.longest_streak == 1

    stats = await store.get_user_stats("u1")
    assert stats.last_login_date == clock.now


@pytest.mark.asyncio
async def test_update_streak_same_day_is_noop(store, clock):
    """Test a second login on the same day does not double-count"""
    tracker = StreakTracker(store, clock=clock)
    await tracker.update_streak("u1")
    first_login = clock.now

    clock.advance(hours=3)
    update = await tracker.update_streak("u1")

    assert update.day_class is LoginDayClass.SAME_DAY
    assert update.changed is False
    assert update.current_streak == 1

    stats = await store.get_user_stats("u1")
    assert stats.last_login_date == first_login


@pytest.mark.asyncio
async def test_update_streak_consecutive_then_gap(store, clock):
    """Test logins on D, D+1, D+3 give streaks 1, 2, 1 with longest 2"""
    tracker = StreakTracker(store, clock=clock)

    day_one = await tracker.update_streak("u1")
    clock.advance(days=1)
    day_two = await tracker.update_streak("u1")
    clock.advance(days=2)
    day_four = await tracker.update_streak("u1")

    assert [day_one.current_streak, day_two.current_streak, day_four.current_streak] == [1, 2, 1]
    assert day_four.day_class is LoginDayClass.GAP
    assert day_four.old_streak == 2
    assert day_four.longest_streak == 2


@pytest.mark.asyncio
async def test_update_streak_keeps_longest(store, clock):
    """Test a reset never lowers longest_login_streak"""
    store.set_user_stats(UserStats(
        user_id="u1",
        login_streak=4,
        longest_login_streak=12,
        last_login_date=datetime(2025, 3, 19, 8, 0, tzinfo=timezone.utc),
    ))
    tracker = StreakTracker(store, clock=clock)

    update = await tracker.update_streak("u1")

    assert update.current_streak == 5
    assert update.longest_streak == 12


@pytest.mark.asyncio
async def test_update_streak_uses_calendar_days_not_24h(store):
    """Test 23:50 and 00:10 the next day are consecutive days"""
    clock_times = iter([
        datetime(2025, 3, 20, 23, 50, tzinfo=timezone.utc),
        datetime(2025, 3, 21, 0, 10, tzinfo=timezone.utc),
    ])
    tracker = StreakTracker(store, clock=lambda: next(clock_times))

    await tracker.update_streak("u1")
    update = await tracker.update_streak("u1")

    assert update.day_class is LoginDayClass.CONSECUTIVE
    assert update.current_streak == 2


@pytest.mark.asyncio
async def test_update_streak_respects_engine_timezone(store):
    """Test days are taken in the engine timezone, not UTC"""
    # 02:00 and 23:00 UTC on the same UTC day are different New York days
    clock_times = iter([
        datetime(2025, 3, 20, 2, 0, tzinfo=timezone.utc),   # Mar 19 22:00 EDT
        datetime(2025, 3, 20, 23, 0, tzinfo=timezone.utc),  # Mar 20 19:00 EDT
    ])
    tracker = StreakTracker(store, clock=lambda: next(clock_times), tz=ZoneInfo("America/New_York"))

    await tracker.update_streak("u1")
    update = await tracker.update_streak("u1")

    assert update.day_class is LoginDayClass.CONSECUTIVE


@pytest.mark.asyncio
async def test_update_streak_concurrent_same_day_logins(store, clock):
    """Test racing logins on one day still count once"""
    tracker = StreakTracker(store, clock=clock)

    updates = await asyncio.gather(*(tracker.update_streak("u1") for _ in range(5)))

    assert sum(1 for u in updates if u.day_class is LoginDayClass.FIRST) == 1
    stats = await store.get_user_stats("u1")
    assert stats.login_streak == 1
    assert stats.login_streak <= stats.longest_login_streak


@pytest.mark.asyncio
async def test_update_streak_preserves_xp(store, clock):
    """Test the streak update leaves XP fields untouched"""
    store.set_user_stats(UserStats(user_id="u1", total_xp=250, level=2, current_level_xp=150, next_level_xp=519))
    tracker = StreakTracker(store, clock=clock)

    await tracker.update_streak("u1")

    stats = await store.get_user_stats("u1")
    assert stats.total_xp == 250
    assert stats.level == 2
