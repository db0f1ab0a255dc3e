"""
Achievement System

Achievements are one-time milestones tied to a metric threshold:
- points: total points earned
- scan_count: number of objects scanned
- streak: best of current and max daily streak

Unlocking is "evaluate, then insert if absent". The store's unique
(user, achievement) constraint decides who wins when two evaluations run
concurrently; only the caller whose insert created the row reports it.
"""

from typing import Dict, Iterable, List, Optional, Set
import logging

from ecoscan.db.store import GamificationStore
from ecoscan.models import (
    AchievementDefinition,
    AchievementProgress,
    MetricKind,
    UnlockedAchievement,
    UserStats,
)
from ecoscan.observability.metrics import achievements_unlocked_total

logger = logging.getLogger(__name__)


def metric_value(stats: UserStats, metric: MetricKind) -> int:
    """Current value of a metric for a user"""
    if metric == MetricKind.POINTS:
        return stats.points
    if metric == MetricKind.SCAN_COUNT:
        return stats.objects_scanned
    if metric == MetricKind.STREAK:
        return max(stats.current_streak, stats.max_streak)
    raise ValueError(f"Unknown metric: {metric}")


def evaluate(
    stats: UserStats,
    catalog: Iterable[AchievementDefinition],
    already_unlocked: Set[str]
) -> List[AchievementDefinition]:
    """
    Select catalog entries the user now satisfies but hasn't unlocked

    Args:
        stats: Current (already updated) user stats
        catalog: Achievement definitions
        already_unlocked: IDs of achievements the user already holds

    Returns:
        Newly satisfied definitions, lowest threshold first
    """
    qualifying = [
        achievement for achievement in catalog
        if achievement.active
        and achievement.id not in already_unlocked
        and metric_value(stats, achievement.metric) >= achievement.threshold
    ]
    qualifying.sort(key=lambda a: (a.metric.value, a.threshold))
    return qualifying


async def unlock_achievements(
    store: GamificationStore,
    user_id: str,
    stats: UserStats
) -> List[AchievementDefinition]:
    """
    Unlock every achievement the user now qualifies for

    Returns:
        Achievements whose unlock row was created by this call. Achievements
        inserted concurrently by another call are not reported again.
    """
    catalog = await store.list_achievement_catalog()
    unlocked_ids = await store.list_unlocked_achievement_ids(user_id)

    newly_unlocked = []
    for achievement in evaluate(stats, catalog, unlocked_ids):
        inserted = await store.insert_unlocked_achievement_if_absent(user_id, achievement.id)
        if inserted is None:
            logger.debug(f"Achievement {achievement.id} already unlocked for user {user_id}")
            continue

        newly_unlocked.append(achievement)
        achievements_unlocked_total.labels(metric=achievement.metric.value).inc()
        logger.info(
            f"User {user_id} unlocked achievement: {achievement.id} ({achievement.name})"
        )

    return newly_unlocked


async def unlock_achievement_by_name(
    store: GamificationStore,
    user_id: str,
    name: str
) -> Optional[AchievementDefinition]:
    """
    Unlock a specific catalog entry regardless of its threshold

    Used for event-driven achievements such as completing onboarding.
    Returns the definition if this call created the unlock, else None.
    """
    achievement = await store.get_achievement_by_name(name)
    if achievement is None:
        logger.warning(f"Achievement '{name}' not found in catalog")
        return None

    inserted = await store.insert_unlocked_achievement_if_absent(user_id, achievement.id)
    if inserted is None:
        return None

    achievements_unlocked_total.labels(metric=achievement.metric.value).inc()
    logger.info(f"User {user_id} unlocked achievement: {achievement.id} ({achievement.name})")
    return achievement


def achievement_progress(
    stats: UserStats,
    catalog: Iterable[AchievementDefinition],
    unlocked: Iterable[UnlockedAchievement]
) -> List[AchievementProgress]:
    """
    Progress toward every active achievement

    Returns:
        One AchievementProgress per definition; locked entries sorted by
        percentage (closest to completion first) after the unlocked ones
    """
    unlocked_at: Dict[str, UnlockedAchievement] = {u.achievement_id: u for u in unlocked}

    progress = []
    for achievement in catalog:
        if not achievement.active:
            continue
        current = metric_value(stats, achievement.metric)
        record = unlocked_at.get(achievement.id)
        progress.append(AchievementProgress(
            achievement=achievement,
            current_value=current,
            percentage=min(current / achievement.threshold * 100, 100.0),
            remaining=max(achievement.threshold - current, 0),
            unlocked=record is not None,
            unlocked_at=record.unlocked_at if record else None,
        ))

    progress.sort(key=lambda p: (not p.unlocked, -p.percentage, p.achievement.threshold))
    return progress
