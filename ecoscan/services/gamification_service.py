"""
GamificationService - Gamification Business Logic

Registers scans and applies points, streaks, levels and achievements.
Also serves the read-side views (profile summary, achievements,
scan history, scan statistics, leaderboard) and the one-time welcome bonus.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from ecoscan.config import RETRY_BASE_DELAY, SCAN_CONFLICT_RETRIES
from ecoscan.db.store import GamificationStore
from ecoscan.exceptions import ConflictError, DatabaseError, NotFoundError, ValidationError
from ecoscan.gamification import (
    POINTS_PER_SCAN,
    WELCOME_BONUS_POINTS,
    achievement_progress,
    history_since,
    level_for_points,
    level_info,
    metric_value,
    resolve_streak,
    statistics_window_start,
    summarize_scans,
    unlock_achievement_by_name,
    unlock_achievements,
)
from ecoscan.models import (
    AchievementDefinition,
    AchievementProgress,
    ClassificationResult,
    HistoryRange,
    Leaderboard,
    LeaderboardEntry,
    MetricKind,
    OnboardingResult,
    ScanFilter,
    ScanOrigin,
    ScanRecord,
    ScanRegistrationResult,
    ScanStatistics,
    StatisticsRange,
    StreakUpdate,
    UserStats,
    UserSummary,
)
from ecoscan.observability.metrics import (
    level_ups_total,
    points_awarded_total,
    scan_registration_duration_seconds,
    scans_registered_total,
    stats_update_conflicts_total,
)
from ecoscan.resilience.retry import retry_with_backoff

logger = logging.getLogger(__name__)

# Achievement unlocked by completing onboarding
FIRST_STEP_ACHIEVEMENT = "First Step"

MAX_PAGE_SIZE = 100


def now_utc() -> datetime:
    """Current datetime in UTC (timezone-aware)"""
    return datetime.now(timezone.utc)


class GamificationService:
    """
    Service for gamification features.

    Responsibilities:
    - Scan registration (points, streak, level, achievements)
    - Welcome bonus on onboarding completion
    - Profile, achievement, history, statistics and leaderboard views
    """

    def __init__(
        self,
        store: GamificationStore,
        clock: Callable[[], datetime] = now_utc,
        max_retries: int = SCAN_CONFLICT_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY
    ):
        """
        Initialize GamificationService.

        Args:
            store: Persistence backend
            clock: Source of "now" for streak resolution and timestamps
            max_retries: Retries of the read-modify-write cycle on conflicts
            retry_base_delay: First retry delay in seconds
        """
        self.store = store
        self.clock = clock
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        logger.debug("GamificationService initialized")

    # ==========================================
    # Scan registration
    # ==========================================

    async def register_scan(
        self,
        user_id: str,
        classification: ClassificationResult,
        origin: ScanOrigin = ScanOrigin.WEB,
        image_url: Optional[str] = None
    ) -> ScanRegistrationResult:
        """
        Record a classified scan and apply gamification.

        The scan insert and stats update are one atomic, version-checked
        write that is retried from a fresh read when another request for
        the same user wins the race. Achievements are evaluated against
        the committed stats afterwards.

        Never raises: failures come back as success=False with an error code
        (user_not_found, persistence_error, internal_error) and a message
        that can be shown to the user.
        """
        started = time.perf_counter()
        try:
            old_stats, new_stats, record, streak = await retry_with_backoff(
                self._commit_scan_attempt,
                user_id,
                classification,
                origin,
                image_url,
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay
            )
        except NotFoundError as e:
            scans_registered_total.labels(outcome="user_not_found").inc()
            return ScanRegistrationResult.failure("user_not_found", e.user_message)
        except DatabaseError as e:
            scans_registered_total.labels(outcome="persistence_error").inc()
            message = e.user_message
            if isinstance(e, ConflictError):
                message = "Your scan was classified but your points could not be recorded. Please try again."
            return ScanRegistrationResult.failure("persistence_error", message)
        except Exception as e:
            logger.error(f"Unexpected error registering scan for user {user_id}: {e}", exc_info=True)
            scans_registered_total.labels(outcome="internal_error").inc()
            return ScanRegistrationResult.failure(
                "internal_error",
                "Your scan was classified but your points could not be recorded. Please try again."
            )
        finally:
            scan_registration_duration_seconds.observe(time.perf_counter() - started)

        previous_level = level_for_points(old_stats.points)
        new_level = level_for_points(new_stats.points)
        leveled_up = new_level > previous_level

        newly_unlocked = await self._safe_unlock(user_id, new_stats)

        scans_registered_total.labels(outcome="success").inc()
        points_awarded_total.labels(source="scan").inc(record.points_awarded)
        if leveled_up:
            level_ups_total.inc()
            logger.info(f"User {user_id} leveled up from {previous_level} to {new_level}!")

        logger.info(
            f"Registered scan {record.id} for user {user_id}: +{record.points_awarded} points, "
            f"total {new_stats.points}, streak {new_stats.current_streak} ({streak.status.value})"
        )

        return ScanRegistrationResult(
            success=True,
            points_awarded=record.points_awarded,
            total_points=new_stats.points,
            previous_level=previous_level,
            new_level=new_level,
            leveled_up=leveled_up,
            current_streak=new_stats.current_streak,
            max_streak=new_stats.max_streak,
            streak_status=streak.status,
            newly_unlocked_achievements=newly_unlocked,
            scan_id=record.id,
        )

    async def _commit_scan_attempt(
        self,
        user_id: str,
        classification: ClassificationResult,
        origin: ScanOrigin,
        image_url: Optional[str]
    ) -> Tuple[UserStats, UserStats, ScanRecord, StreakUpdate]:
        """One read-modify-write cycle; raises ConflictError if it lost a race"""
        stats = await self.store.get_user_stats(user_id)
        now = self.clock()

        streak = resolve_streak(stats.last_scan_at, now, stats.current_streak, stats.max_streak)

        record = ScanRecord.from_classification(
            user_id=user_id,
            classification=classification,
            points_awarded=POINTS_PER_SCAN,
            created_at=now,
            origin=origin,
            image_url=image_url,
        )
        updated = stats.model_copy(update={
            "points": stats.points + POINTS_PER_SCAN,
            "objects_scanned": stats.objects_scanned + 1,
            "current_streak": streak.new_streak,
            "max_streak": streak.new_max_streak,
            "last_scan_at": now,
        })

        try:
            saved_record, saved_stats = await self.store.commit_scan(
                record, updated, expected_version=stats.version
            )
        except ConflictError:
            stats_update_conflicts_total.labels(operation="register_scan").inc()
            raise

        return stats, saved_stats, saved_record, streak

    async def _safe_unlock(self, user_id: str, stats: UserStats) -> List[AchievementDefinition]:
        """
        Unlock achievements without failing the already-committed scan.

        A miss here heals on the user's next scan, since evaluation always
        compares the full catalog against current stats.
        """
        try:
            return await unlock_achievements(self.store, user_id, stats)
        except Exception as e:
            logger.error(
                f"Achievement check failed for user {user_id}, will retry on next scan: {e}",
                exc_info=True
            )
            return []

    # ==========================================
    # Onboarding
    # ==========================================

    async def complete_onboarding(self, user_id: str) -> OnboardingResult:
        """
        Award the welcome bonus once and unlock the First Step achievement.

        The completed flag lives on the user record, so the bonus is granted
        at most once across devices. Calling again returns awarded=False but
        still repairs a missing First Step unlock.

        Raises:
            NotFoundError: Unknown user
            DatabaseError: Store failure or conflicts beyond the retry budget
        """
        stats, awarded = await retry_with_backoff(
            self._mark_onboarding_attempt,
            user_id,
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay
        )

        newly_unlocked = []
        first_step = await unlock_achievement_by_name(self.store, user_id, FIRST_STEP_ACHIEVEMENT)
        if first_step:
            newly_unlocked.append(first_step)
        if awarded:
            points_awarded_total.labels(source="welcome_bonus").inc(WELCOME_BONUS_POINTS)
            newly_unlocked.extend(await self._safe_unlock(user_id, stats))
            logger.info(f"User {user_id} completed onboarding: +{WELCOME_BONUS_POINTS} points")

        return OnboardingResult(
            awarded=awarded,
            bonus_points=WELCOME_BONUS_POINTS if awarded else 0,
            total_points=stats.points,
            newly_unlocked_achievements=newly_unlocked,
        )

    async def _mark_onboarding_attempt(self, user_id: str) -> Tuple[UserStats, bool]:
        stats = await self.store.get_user_stats(user_id)
        if stats.onboarding_completed:
            return stats, False

        updated = stats.model_copy(update={
            "points": stats.points + WELCOME_BONUS_POINTS,
            "onboarding_completed": True,
        })
        try:
            saved = await self.store.update_user_stats(updated, expected_version=stats.version)
        except ConflictError:
            stats_update_conflicts_total.labels(operation="complete_onboarding").inc()
            raise
        return saved, True

    # ==========================================
    # Read-side views
    # ==========================================

    async def create_user(self, user_id: str, username: Optional[str] = None) -> UserSummary:
        stats = await self.store.create_user(user_id, username)
        return UserSummary(stats=stats, level=level_info(stats.points))

    async def get_user_summary(self, user_id: str) -> UserSummary:
        stats = await self.store.get_user_stats(user_id)
        return UserSummary(stats=stats, level=level_info(stats.points))

    async def get_achievements(self, user_id: str) -> List[AchievementProgress]:
        """All active achievements with the user's progress; unlocked first"""
        stats = await self.store.get_user_stats(user_id)
        catalog = await self.store.list_achievement_catalog()
        unlocked = await self.store.list_unlocked_achievements(user_id)
        return achievement_progress(stats, catalog, unlocked)

    async def get_scan_history(
        self,
        user_id: str,
        limit: int = 20,
        scan_filter: Optional[ScanFilter] = None,
        date_range: HistoryRange = HistoryRange.ALL
    ) -> List[ScanRecord]:
        """
        Filtered, sorted scan history.

        `date_range` is a lookback from now (week = 7 days, month = 30,
        3months = 90) and overrides any `since` set on the filter.
        """
        _check_limit(limit)
        # Unknown users get NotFoundError rather than an empty history
        await self.store.get_user_stats(user_id)
        if date_range != HistoryRange.ALL:
            scan_filter = (scan_filter or ScanFilter()).model_copy(
                update={"since": history_since(date_range, self.clock())}
            )
        return await self.store.list_scan_records(user_id, limit, scan_filter)

    async def get_scan_statistics(
        self,
        user_id: str,
        stats_range: StatisticsRange = StatisticsRange.WEEK
    ) -> ScanStatistics:
        """Scan aggregates over the last 7 or 30 UTC days, today included"""
        stats = await self.store.get_user_stats(user_id)
        now = self.clock()
        scans = await self.store.list_scans_since(user_id, statistics_window_start(stats_range, now))
        return summarize_scans(scans, stats_range, now, stats.points)

    async def get_leaderboard(
        self,
        metric: MetricKind = MetricKind.POINTS,
        limit: int = 10,
        user_id: Optional[str] = None
    ) -> Leaderboard:
        """
        Top users for a metric.

        Rank is 1 + the number of users strictly ahead, both for page
        entries and user_rank, so tied users share a rank (1, 2, 2, 4).
        """
        _check_limit(limit)
        top = await self.store.get_leaderboard(metric, limit)

        entries = []
        for position, stats in enumerate(top, start=1):
            rank = position
            # The page is sorted, so everyone ahead of a tie is already on it
            if entries and metric_value(stats, metric) == metric_value(top[position - 2], metric):
                rank = entries[-1].rank
            entries.append(LeaderboardEntry.from_stats(rank, stats, level_for_points(stats.points)))

        leaderboard = Leaderboard(metric=metric, entries=entries)
        if user_id:
            stats = await self.store.get_user_stats(user_id)
            rank = await self.store.get_user_rank(user_id, metric)
            leaderboard.user_rank = rank
            leaderboard.user_entry = LeaderboardEntry.from_stats(
                rank, stats, level_for_points(stats.points)
            )
        return leaderboard


def _check_limit(limit: int) -> None:
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(
            f"must be between 1 and {MAX_PAGE_SIZE}",
            field="limit",
            value=limit
        )
