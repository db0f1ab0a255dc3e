"""Derived gamification models returned to the presentation layer"""
from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from ecoscan.models.achievement import AchievementDefinition, MetricKind
from ecoscan.models.user import UserStats


class LevelTier(str, Enum):
    """Named band of levels sharing a title and color identity"""
    NOVICE = "novice"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    MASTER = "master"


class LevelInfo(BaseModel):
    """Level, tier and progress derived from a point total. Never stored."""
    level: int
    tier: LevelTier
    title: str
    emoji: str
    color: str
    border_color: str
    bg_color: str
    text_color: str
    progress_to_next: int = Field(..., ge=0, le=99)
    points_for_current_level: int
    points_for_next_level: int


class StreakStatus(str, Enum):
    """How a scan affected the daily streak"""
    STARTED = "started"
    CONTINUED = "continued"
    UNCHANGED = "unchanged"
    RESET = "reset"


class StreakUpdate(BaseModel):
    """Outcome of resolving the streak for one scan"""
    new_streak: int
    new_max_streak: int
    status: StreakStatus


class ScanRegistrationResult(BaseModel):
    """Summary of one scan registration, consumed by the UI for celebrations"""
    success: bool
    points_awarded: int = 0
    total_points: int = 0
    previous_level: int = 1
    new_level: int = 1
    leveled_up: bool = False
    current_streak: int = 0
    max_streak: int = 0
    streak_status: Optional[StreakStatus] = None
    newly_unlocked_achievements: List[AchievementDefinition] = Field(default_factory=list)
    scan_id: Optional[str] = None
    error: Optional[str] = None  # user_not_found, persistence_error, internal_error
    message: Optional[str] = None

    @classmethod
    def failure(cls, error: str, message: str) -> "ScanRegistrationResult":
        return cls(success=False, error=error, message=message)


class OnboardingResult(BaseModel):
    """Outcome of the one-time welcome bonus"""
    awarded: bool
    bonus_points: int = 0
    total_points: int = 0
    newly_unlocked_achievements: List[AchievementDefinition] = Field(default_factory=list)


class LeaderboardEntry(BaseModel):
    """One ranked row of the leaderboard"""
    rank: int
    user_id: str
    username: Optional[str] = None
    points: int
    objects_scanned: int
    current_streak: int
    max_streak: int
    level: int

    @classmethod
    def from_stats(cls, rank: int, stats: UserStats, level: int) -> "LeaderboardEntry":
        return cls(
            rank=rank,
            user_id=stats.user_id,
            username=stats.username,
            points=stats.points,
            objects_scanned=stats.objects_scanned,
            current_streak=stats.current_streak,
            max_streak=stats.max_streak,
            level=level,
        )


class Leaderboard(BaseModel):
    """Top users for one metric plus the requesting user's position"""
    metric: MetricKind
    entries: List[LeaderboardEntry]
    user_rank: Optional[int] = None
    user_entry: Optional[LeaderboardEntry] = None


class UserSummary(BaseModel):
    """Stats plus the level derived from them"""
    stats: UserStats
    level: LevelInfo


class StatisticsRange(str, Enum):
    """Window for scan statistics, in whole UTC days ending today"""
    WEEK = "week"
    MONTH = "month"


class DailyScanActivity(BaseModel):
    """One day of the statistics window"""
    day: date
    scans: int
    points: int
    cumulative_points: int


class WasteTypeCount(BaseModel):
    waste_type: str
    count: int


class ScanStatistics(BaseModel):
    """Aggregates over a user's scans in a recent window"""
    range: StatisticsRange
    since: datetime
    total_scans: int
    points_earned: int
    recyclable_count: int
    recyclable_percentage: int
    average_confidence: Optional[int] = None
    most_common_waste_type: Optional[str] = None
    busiest_weekday: Optional[str] = None
    waste_type_distribution: List[WasteTypeCount] = Field(default_factory=list)
    daily_activity: List[DailyScanActivity] = Field(default_factory=list)
