"""Achievement models for gamification"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class MetricKind(str, Enum):
    """User statistic an achievement threshold is measured against"""
    POINTS = "points"
    SCAN_COUNT = "scan_count"
    STREAK = "streak"


class AchievementDefinition(BaseModel):
    """Achievement definition (catalog data)"""
    id: str
    name: str
    description: str
    icon: str = "🏆"
    metric: MetricKind
    threshold: int = Field(..., gt=0)
    active: bool = True


class UnlockedAchievement(BaseModel):
    """User's unlocked achievement"""
    user_id: str
    achievement_id: str
    unlocked_at: datetime


class AchievementProgress(BaseModel):
    """Progress of one user toward one achievement"""
    achievement: AchievementDefinition
    current_value: int
    percentage: float
    remaining: int
    unlocked: bool
    unlocked_at: Optional[datetime] = None
