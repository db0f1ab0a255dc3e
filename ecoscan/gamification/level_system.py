"""
Level System

Maps accumulated points to a level, tier and progress.

Leveling Curve:
- Every level spans 100 points; level 1 starts at 0 points
- Level 1-5: Novice ("Novice Recycler")
- Level 6-10: Intermediate ("Eco Warrior")
- Level 11-20: Advanced ("Green Guardian")
- Level 21+: Master ("Recycling Master")

Point Award Rules:
- Registered scan: 10 points
- Completing onboarding: 5 points (once)
"""

from typing import Dict
import logging

from ecoscan.exceptions import ValidationError
from ecoscan.models.gamification import LevelInfo, LevelTier

logger = logging.getLogger(__name__)

POINTS_PER_LEVEL = 100
POINTS_PER_SCAN = 10
WELCOME_BONUS_POINTS = 5

# Highest level of each tier; the last tier is open-ended
TIER_MAX_LEVEL = {
    LevelTier.NOVICE: 5,
    LevelTier.INTERMEDIATE: 10,
    LevelTier.ADVANCED: 20,
}

TIER_STYLES: Dict[LevelTier, Dict[str, str]] = {
    LevelTier.NOVICE: {
        "title": "Novice Recycler",
        "emoji": "🌱",
        "color": "hsl(142, 76%, 50%)",
        "border_color": "border-green-400",
        "bg_color": "bg-green-400/20",
        "text_color": "text-green-500",
    },
    LevelTier.INTERMEDIATE: {
        "title": "Eco Warrior",
        "emoji": "🌿",
        "color": "hsl(158, 64%, 35%)",
        "border_color": "border-green-600",
        "bg_color": "bg-green-600/20",
        "text_color": "text-green-600",
    },
    LevelTier.ADVANCED: {
        "title": "Green Guardian",
        "emoji": "🏆",
        "color": "hsl(45, 93%, 47%)",
        "border_color": "border-yellow-500",
        "bg_color": "bg-yellow-500/20",
        "text_color": "text-yellow-500",
    },
    LevelTier.MASTER: {
        "title": "Recycling Master",
        "emoji": "👑",
        "color": "hsl(220, 13%, 70%)",
        "border_color": "border-slate-400",
        "bg_color": "bg-slate-400/20",
        "text_color": "text-slate-400",
    },
}


def tier_for_level(level: int) -> LevelTier:
    """Return the tier a level belongs to"""
    for tier, max_level in TIER_MAX_LEVEL.items():
        if level <= max_level:
            return tier
    return LevelTier.MASTER


def level_info(points: int) -> LevelInfo:
    """
    Calculate level, tier and progress from total points

    Args:
        points: Accumulated points (must be >= 0)

    Returns:
        LevelInfo with level, tier, display tokens and progress_to_next
        (0-99, percent complete toward the next 100-point boundary)

    Raises:
        ValidationError: If points is negative
    """
    if points < 0:
        raise ValidationError("Points cannot be negative", field="points", value=points)

    level = points // POINTS_PER_LEVEL + 1
    tier = tier_for_level(level)

    return LevelInfo(
        level=level,
        tier=tier,
        progress_to_next=points % POINTS_PER_LEVEL,
        points_for_current_level=(level - 1) * POINTS_PER_LEVEL,
        points_for_next_level=level * POINTS_PER_LEVEL,
        **TIER_STYLES[tier],
    )


def level_for_points(points: int) -> int:
    """Shortcut for level_info(points).level"""
    return level_info(points).level
