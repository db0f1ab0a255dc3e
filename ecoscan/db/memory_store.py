"""
In-memory gamification store

Mirrors the PostgreSQL store's consistency rules (version CAS, atomic
scan commit, unique achievement unlocks) so services can be exercised
without a database. Nothing is persisted.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ecoscan.exceptions import ConflictError, NotFoundError
from ecoscan.models import (
    AchievementDefinition,
    ConfidenceLevel,
    MetricKind,
    ScanFilter,
    ScanRecord,
    ScanSort,
    UnlockedAchievement,
    UserStats,
)

logger = logging.getLogger(__name__)


def _leaderboard_value(stats: UserStats, metric: MetricKind) -> int:
    if metric == MetricKind.POINTS:
        return stats.points
    if metric == MetricKind.SCAN_COUNT:
        return stats.objects_scanned
    return stats.max_streak


# Sorted descending; ties fall back to newest first
SCAN_SORT_KEYS = {
    ScanSort.RECENT: lambda s: s.created_at,
    ScanSort.CONFIDENCE: lambda s: (s.confidence or 0, s.created_at),
    ScanSort.POINTS: lambda s: (s.points_awarded, s.created_at),
}


def _matches(scan: ScanRecord, scan_filter: ScanFilter) -> bool:
    if scan_filter.search:
        needle = scan_filter.search.lower()
        label = scan.detected_object_localized or scan.detected_object
        if needle not in label.lower() and needle not in (scan.waste_type or "").lower():
            return False
    if scan_filter.waste_type is not None and scan.waste_type != scan_filter.waste_type:
        return False
    if scan_filter.bin is not None and scan.bin != scan_filter.bin:
        return False
    if scan_filter.recyclable is not None and scan.recyclable != scan_filter.recyclable:
        return False
    if scan_filter.origin is not None and scan.origin != scan_filter.origin:
        return False
    if (
        scan_filter.confidence_level is not None
        and ConfidenceLevel.for_confidence(scan.confidence) != scan_filter.confidence_level
    ):
        return False
    if scan_filter.since is not None and scan.created_at <= scan_filter.since:
        return False
    return True


class InMemoryGamificationStore:
    """
    Process-local store.

    `latency` adds an await point (asyncio.sleep) to every operation so
    concurrent callers interleave the way they would against a real database.
    """

    def __init__(
        self,
        achievements: Optional[Iterable[AchievementDefinition]] = None,
        latency: float = 0.0
    ):
        self.latency = latency
        self._users: Dict[str, UserStats] = {}
        self._user_order: Dict[str, int] = {}
        self._scans: List[ScanRecord] = []
        self._achievements: Dict[str, AchievementDefinition] = {}
        self._unlocked: Dict[Tuple[str, str], UnlockedAchievement] = {}
        self._lock = asyncio.Lock()

        for achievement in achievements or []:
            self.add_achievement(achievement)

    # ==========================================
    # Seeding helpers (synchronous, for tests and demos)
    # ==========================================

    def add_achievement(self, achievement: AchievementDefinition) -> None:
        self._achievements[achievement.id] = achievement.model_copy()

    def add_user(self, stats: UserStats) -> None:
        self._user_order.setdefault(stats.user_id, len(self._user_order))
        self._users[stats.user_id] = stats.model_copy()

    def add_scan(self, record: ScanRecord) -> None:
        self._scans.append(record.model_copy())

    async def _pause(self) -> None:
        await asyncio.sleep(self.latency)

    # ==========================================
    # Users
    # ==========================================

    async def get_user_stats(self, user_id: str) -> UserStats:
        await self._pause()
        stats = self._users.get(user_id)
        if stats is None:
            raise NotFoundError(
                f"No stats record for user {user_id}",
                record_type="User",
                record_id=user_id,
                user_id=user_id,
                operation="get_user_stats"
            )
        return stats.model_copy()

    async def create_user(self, user_id: str, username: Optional[str] = None) -> UserStats:
        await self._pause()
        async with self._lock:
            if user_id not in self._users:
                self.add_user(UserStats(user_id=user_id, username=username))
                logger.info(f"Created stats record for user {user_id}")
        return self._users[user_id].model_copy()

    def _apply_update(self, stats: UserStats, expected_version: Optional[int]) -> UserStats:
        """CAS on version; caller holds the lock"""
        current = self._users.get(stats.user_id)
        if current is None:
            raise NotFoundError(
                f"No stats record for user {stats.user_id}",
                record_type="User",
                record_id=stats.user_id,
                user_id=stats.user_id,
                operation="update_user_stats"
            )
        if expected_version is not None and current.version != expected_version:
            raise ConflictError(
                f"Stats for user {stats.user_id} changed concurrently",
                expected_version=expected_version,
                actual_version=current.version,
                user_id=stats.user_id,
                operation="update_user_stats"
            )

        updated = stats.model_copy(update={
            "username": current.username,
            "version": current.version + 1,
        })
        self._users[stats.user_id] = updated
        return updated.model_copy()

    async def update_user_stats(
        self,
        stats: UserStats,
        expected_version: Optional[int] = None
    ) -> UserStats:
        await self._pause()
        async with self._lock:
            return self._apply_update(stats, expected_version)

    # ==========================================
    # Scans
    # ==========================================

    async def insert_scan_record(self, record: ScanRecord) -> ScanRecord:
        await self._pause()
        async with self._lock:
            if record.user_id not in self._users:
                raise NotFoundError(
                    f"No stats record for user {record.user_id}",
                    record_type="User",
                    record_id=record.user_id,
                    user_id=record.user_id,
                    operation="insert_scan_record"
                )
            self._scans.append(record.model_copy())
        return record.model_copy()

    async def commit_scan(
        self,
        record: ScanRecord,
        stats: UserStats,
        expected_version: int
    ) -> Tuple[ScanRecord, UserStats]:
        await self._pause()
        async with self._lock:
            # Stats first: a conflict must leave no scan behind
            saved_stats = self._apply_update(stats, expected_version)
            self._scans.append(record.model_copy())
        return record.model_copy(), saved_stats

    async def list_scan_records(
        self,
        user_id: str,
        limit: int = 20,
        scan_filter: Optional[ScanFilter] = None
    ) -> List[ScanRecord]:
        await self._pause()
        scan_filter = scan_filter or ScanFilter()
        scans = [s for s in self._scans if s.user_id == user_id and _matches(s, scan_filter)]
        scans.sort(key=SCAN_SORT_KEYS[scan_filter.sort], reverse=True)
        return [s.model_copy() for s in scans[:limit]]

    async def list_scans_since(self, user_id: str, since: datetime) -> List[ScanRecord]:
        await self._pause()
        scans = [s for s in self._scans if s.user_id == user_id and s.created_at >= since]
        scans.sort(key=lambda s: s.created_at)
        return [s.model_copy() for s in scans]

    # ==========================================
    # Achievements
    # ==========================================

    async def list_achievement_catalog(self) -> List[AchievementDefinition]:
        await self._pause()
        catalog = [a.model_copy() for a in self._achievements.values() if a.active]
        catalog.sort(key=lambda a: a.threshold)
        return catalog

    async def get_achievement_by_name(self, name: str) -> Optional[AchievementDefinition]:
        await self._pause()
        for achievement in self._achievements.values():
            if achievement.name == name and achievement.active:
                return achievement.model_copy()
        return None

    async def list_unlocked_achievement_ids(self, user_id: str) -> Set[str]:
        await self._pause()
        return {aid for (uid, aid) in self._unlocked if uid == user_id}

    async def list_unlocked_achievements(self, user_id: str) -> List[UnlockedAchievement]:
        await self._pause()
        unlocked = [u.model_copy() for (uid, _), u in self._unlocked.items() if uid == user_id]
        unlocked.sort(key=lambda u: u.unlocked_at, reverse=True)
        return unlocked

    async def insert_unlocked_achievement_if_absent(
        self,
        user_id: str,
        achievement_id: str
    ) -> Optional[UnlockedAchievement]:
        await self._pause()
        async with self._lock:
            key = (user_id, achievement_id)
            if key in self._unlocked:
                return None
            unlocked = UnlockedAchievement(
                user_id=user_id,
                achievement_id=achievement_id,
                unlocked_at=datetime.now(timezone.utc),
            )
            self._unlocked[key] = unlocked
        return unlocked.model_copy()

    # ==========================================
    # Leaderboard
    # ==========================================

    def _ranked(self, metric: MetricKind) -> List[UserStats]:
        return sorted(
            self._users.values(),
            key=lambda s: (-_leaderboard_value(s, metric), self._user_order[s.user_id])
        )

    async def get_leaderboard(self, metric: MetricKind, limit: int = 10) -> List[UserStats]:
        await self._pause()
        return [s.model_copy() for s in self._ranked(metric)[:limit]]

    async def get_user_rank(self, user_id: str, metric: MetricKind) -> int:
        stats = await self.get_user_stats(user_id)
        value = _leaderboard_value(stats, metric)
        ahead = sum(1 for s in self._users.values() if _leaderboard_value(s, metric) > value)
        return ahead + 1
