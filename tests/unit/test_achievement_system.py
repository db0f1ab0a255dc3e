"""Unit tests for Achievement System (ecoscan/gamification/achievement_system.py)"""
import asyncio
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from ecoscan.gamification.achievement_system import (
    achievement_progress,
    evaluate,
    metric_value,
    unlock_achievement_by_name,
    unlock_achievements,
)
from ecoscan.models import (
    AchievementDefinition,
    MetricKind,
    UnlockedAchievement,
    UserStats,
)


def make_stats(**overrides):
    values = {"user_id": "user-123"}
    values.update(overrides)
    return UserStats(**values)


# ============================================================================
# Metric Tests
# ============================================================================

def test_metric_value_per_kind():
    """Test each metric reads the matching stat"""
    stats = make_stats(points=120, objects_scanned=12, current_streak=2, max_streak=9)

    assert metric_value(stats, MetricKind.POINTS) == 120
    assert metric_value(stats, MetricKind.SCAN_COUNT) == 12
    assert metric_value(stats, MetricKind.STREAK) == 9


def test_streak_metric_uses_best_streak():
    """Test a broken streak still counts the user's best run"""
    stats = make_stats(current_streak=1, max_streak=6)

    assert metric_value(stats, MetricKind.STREAK) == 6


# ============================================================================
# Evaluation Tests
# ============================================================================

def test_evaluate_selects_satisfied_thresholds(sample_catalog):
    """Test every definition whose threshold is met is selected"""
    stats = make_stats(points=105, objects_scanned=10, current_streak=5, max_streak=6)

    result = evaluate(stats, sample_catalog, set())

    assert {a.id for a in result} == {"first-step", "scans-10", "points-100", "streak-5"}


def test_evaluate_skips_already_unlocked(sample_catalog):
    """Test already-unlocked achievements are never reported again"""
    stats = make_stats(points=105, objects_scanned=10, current_streak=5, max_streak=6)

    result = evaluate(stats, sample_catalog, {"first-step", "points-100"})

    assert {a.id for a in result} == {"scans-10", "streak-5"}


def test_evaluate_skips_inactive(sample_catalog):
    """Test retired achievements are not awarded"""
    retired = AchievementDefinition(
        id="retired", name="Retired", description="No longer offered",
        metric=MetricKind.POINTS, threshold=1, active=False,
    )
    stats = make_stats(points=5)

    result = evaluate(stats, sample_catalog + [retired], set())

    assert "retired" not in {a.id for a in result}


def test_evaluate_nothing_for_new_user(sample_catalog):
    """Test a user with no activity qualifies for nothing"""
    assert evaluate(make_stats(), sample_catalog, set()) == []


def test_evaluate_orders_by_threshold_within_metric(sample_catalog):
    """Test lower thresholds come first for the same metric"""
    stats = make_stats(objects_scanned=60)

    result = evaluate(stats, sample_catalog, set())

    assert [a.id for a in result] == ["first-step", "scans-10", "scans-50"]


# ============================================================================
# Unlock Tests
# ============================================================================

@pytest.mark.asyncio
async def test_unlock_achievements_persists(memory_store, new_user):
    """Test unlocked achievements are stored and returned"""
    stats = make_stats(user_id=new_user.user_id, points=10, objects_scanned=1, current_streak=1, max_streak=1)

    unlocked = await unlock_achievements(memory_store, new_user.user_id, stats)

    assert [a.id for a in unlocked] == ["first-step"]
    assert await memory_store.list_unlocked_achievement_ids(new_user.user_id) == {"first-step"}


@pytest.mark.asyncio
async def test_unlock_achievements_idempotent(memory_store, new_user):
    """Test re-evaluating the same stats unlocks nothing new"""
    stats = make_stats(user_id=new_user.user_id, points=100, objects_scanned=10)

    first = await unlock_achievements(memory_store, new_user.user_id, stats)
    second = await unlock_achievements(memory_store, new_user.user_id, stats)

    assert len(first) == 3
    assert second == []


@pytest.mark.asyncio
async def test_concurrent_unlocks_report_each_achievement_once(sample_catalog):
    """Test racing evaluations insert and report each achievement exactly once"""
    from ecoscan.db.memory_store import InMemoryGamificationStore

    store = InMemoryGamificationStore(sample_catalog, latency=0.001)
    store.add_user(make_stats())
    stats = make_stats(points=100, objects_scanned=10)

    results = await asyncio.gather(*[
        unlock_achievements(store, "user-123", stats) for _ in range(5)
    ])

    reported = [a.id for result in results for a in result]
    assert sorted(reported) == ["first-step", "points-100", "scans-10"]
    assert await store.list_unlocked_achievement_ids("user-123") == {"first-step", "points-100", "scans-10"}


@pytest.mark.asyncio
async def test_unlock_skips_rows_inserted_elsewhere(sample_catalog):
    """Test an insert that finds an existing row is not reported"""
    store = AsyncMock()
    store.list_achievement_catalog.return_value = sample_catalog
    store.list_unlocked_achievement_ids.return_value = set()
    store.insert_unlocked_achievement_if_absent.return_value = None

    stats = make_stats(objects_scanned=1)
    result = await unlock_achievements(store, "user-123", stats)

    assert result == []
    store.insert_unlocked_achievement_if_absent.assert_called_once_with("user-123", "first-step")


@pytest.mark.asyncio
async def test_unlock_achievement_by_name(memory_store, new_user):
    """Test named unlock ignores the threshold and is one-time"""
    first = await unlock_achievement_by_name(memory_store, new_user.user_id, "First Step")
    again = await unlock_achievement_by_name(memory_store, new_user.user_id, "First Step")

    assert first is not None
    assert first.id == "first-step"
    assert again is None


@pytest.mark.asyncio
async def test_unlock_achievement_by_name_unknown(memory_store, new_user):
    """Test unknown achievement names are ignored"""
    result = await unlock_achievement_by_name(memory_store, new_user.user_id, "Does Not Exist")

    assert result is None
    assert await memory_store.list_unlocked_achievement_ids(new_user.user_id) == set()


# ============================================================================
# Progress Tests
# ============================================================================

def test_achievement_progress(sample_catalog):
    """Test progress values and ordering (unlocked first, then closest)"""
    stats = make_stats(points=40, objects_scanned=4, current_streak=2, max_streak=2)
    unlocked = [UnlockedAchievement(
        user_id="user-123",
        achievement_id="first-step",
        unlocked_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
    )]

    progress = achievement_progress(stats, sample_catalog, unlocked)

    assert len(progress) == len(sample_catalog)
    assert progress[0].achievement.id == "first-step"
    assert progress[0].unlocked is True
    assert progress[0].unlocked_at is not None

    by_id = {p.achievement.id: p for p in progress}
    assert by_id["scans-10"].percentage == pytest.approx(40.0)
    assert by_id["scans-10"].remaining == 6
    assert by_id["points-100"].current_value == 40
    assert by_id["streak-5"].remaining == 3

    locked = [p.percentage for p in progress if not p.unlocked]
    assert locked == sorted(locked, reverse=True)


def test_achievement_progress_caps_at_100(sample_catalog):
    """Test progress never exceeds 100% or goes below zero remaining"""
    stats = make_stats(points=900, objects_scanned=80)

    progress = achievement_progress(stats, sample_catalog, [])

    by_id = {p.achievement.id: p for p in progress}
    assert by_id["scans-50"].percentage == 100.0
    assert by_id["scans-50"].remaining == 0
    assert by_id["scans-50"].unlocked is False
