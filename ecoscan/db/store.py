"""
Gamification store interface

The orchestrator and the read-side services only talk to this protocol.
Two implementations ship with the package:
- PostgresGamificationStore (ecoscan.db.postgres_store): production
- InMemoryGamificationStore (ecoscan.db.memory_store): tests and demos

Consistency rules every implementation must honour:
- update_user_stats/commit_scan are compare-and-swap on UserStats.version
  and raise ConflictError when the stored version differs
- commit_scan writes the scan record and the stats update atomically
- insert_unlocked_achievement_if_absent is unique per (user, achievement)
  and returns None instead of raising when the pair already exists
"""

from datetime import datetime
from typing import List, Optional, Protocol, Set, Tuple

from ecoscan.models import (
    AchievementDefinition,
    MetricKind,
    ScanFilter,
    ScanRecord,
    UnlockedAchievement,
    UserStats,
)


class GamificationStore(Protocol):
    """Persistence operations needed by the gamification services"""

    async def get_user_stats(self, user_id: str) -> UserStats:
        """Load stats; raises NotFoundError when the user has no record"""
        ...

    async def create_user(self, user_id: str, username: Optional[str] = None) -> UserStats:
        """Create a zeroed stats record, or return the existing one"""
        ...

    async def insert_scan_record(self, record: ScanRecord) -> ScanRecord:
        ...

    async def update_user_stats(
        self,
        stats: UserStats,
        expected_version: Optional[int] = None
    ) -> UserStats:
        """Persist stats; returns them with the bumped version"""
        ...

    async def commit_scan(
        self,
        record: ScanRecord,
        stats: UserStats,
        expected_version: int
    ) -> Tuple[ScanRecord, UserStats]:
        """Insert the scan and update stats in one transaction"""
        ...

    async def list_achievement_catalog(self) -> List[AchievementDefinition]:
        """Active achievement definitions ordered by threshold"""
        ...

    async def get_achievement_by_name(self, name: str) -> Optional[AchievementDefinition]:
        ...

    async def list_unlocked_achievement_ids(self, user_id: str) -> Set[str]:
        ...

    async def list_unlocked_achievements(self, user_id: str) -> List[UnlockedAchievement]:
        ...

    async def insert_unlocked_achievement_if_absent(
        self,
        user_id: str,
        achievement_id: str
    ) -> Optional[UnlockedAchievement]:
        ...

    async def list_scan_records(
        self,
        user_id: str,
        limit: int = 20,
        scan_filter: Optional[ScanFilter] = None
    ) -> List[ScanRecord]:
        """Scans matching the filter, in its sort order (most recent first by default)"""
        ...

    async def list_scans_since(self, user_id: str, since: datetime) -> List[ScanRecord]:
        """Every scan created at or after `since`, oldest first"""
        ...

    async def get_leaderboard(self, metric: MetricKind, limit: int = 10) -> List[UserStats]:
        ...

    async def get_user_rank(self, user_id: str, metric: MetricKind) -> int:
        """1 + number of users strictly ahead on the metric"""
        ...
