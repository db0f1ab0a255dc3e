"""Pydantic models shared by the store, services and API"""
from ecoscan.models.user import UserStats
from ecoscan.models.scan import (
    ClassificationResult,
    ConfidenceLevel,
    HistoryRange,
    ScanFilter,
    ScanOrigin,
    ScanRecord,
    ScanSort,
)
from ecoscan.models.achievement import (
    MetricKind,
    AchievementDefinition,
    UnlockedAchievement,
    AchievementProgress,
)
from ecoscan.models.gamification import (
    LevelInfo,
    LevelTier,
    StreakStatus,
    StreakUpdate,
    ScanRegistrationResult,
    OnboardingResult,
    LeaderboardEntry,
    Leaderboard,
    UserSummary,
    StatisticsRange,
    DailyScanActivity,
    WasteTypeCount,
    ScanStatistics,
)

__all__ = [
    "UserStats",
    "ClassificationResult",
    "ScanOrigin",
    "ScanRecord",
    "ScanFilter",
    "ScanSort",
    "HistoryRange",
    "ConfidenceLevel",
    "MetricKind",
    "AchievementDefinition",
    "UnlockedAchievement",
    "AchievementProgress",
    "LevelInfo",
    "LevelTier",
    "StreakStatus",
    "StreakUpdate",
    "ScanRegistrationResult",
    "OnboardingResult",
    "LeaderboardEntry",
    "Leaderboard",
    "UserSummary",
    "StatisticsRange",
    "DailyScanActivity",
    "WasteTypeCount",
    "ScanStatistics",
]
