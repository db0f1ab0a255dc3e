"""
Gamification system for EcoScan

Points, daily streaks, levels and achievements layered on top of waste
scans:
- Level calculator (pure)
- Daily streak resolver (pure)
- Achievement evaluation with insert-if-absent unlocking
- Scan statistics for the profile
"""

from ecoscan.gamification.level_system import (
    level_info,
    level_for_points,
    POINTS_PER_SCAN,
    WELCOME_BONUS_POINTS,
)
from ecoscan.gamification.streak_system import resolve_streak
from ecoscan.gamification.scan_statistics import (
    history_since,
    statistics_window_start,
    summarize_scans,
)
from ecoscan.gamification.achievement_system import (
    evaluate,
    metric_value,
    unlock_achievements,
    unlock_achievement_by_name,
    achievement_progress,
)

__all__ = [
    "level_info",
    "level_for_points",
    "POINTS_PER_SCAN",
    "WELCOME_BONUS_POINTS",
    "resolve_streak",
    "history_since",
    "statistics_window_start",
    "summarize_scans",
    "evaluate",
    "metric_value",
    "unlock_achievements",
    "unlock_achievement_by_name",
    "achievement_progress",
]
