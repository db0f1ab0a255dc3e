"""Default achievement catalog (same rows as the migration seed)"""
from ecoscan.models import AchievementDefinition, MetricKind

DEFAULT_ACHIEVEMENTS = [
    AchievementDefinition(
        id="first-step", name="First Step", icon="🎓",
        description="Complete onboarding or scan your first item",
        metric=MetricKind.SCAN_COUNT, threshold=1,
    ),
    AchievementDefinition(
        id="sorter-10", name="Sorter", icon="♻️",
        description="Scan 10 items",
        metric=MetricKind.SCAN_COUNT, threshold=10,
    ),
    AchievementDefinition(
        id="waste-warrior-50", name="Waste Warrior", icon="🛡️",
        description="Scan 50 items",
        metric=MetricKind.SCAN_COUNT, threshold=50,
    ),
    AchievementDefinition(
        id="recycling-pro-100", name="Recycling Pro", icon="🏅",
        description="Scan 100 items",
        metric=MetricKind.SCAN_COUNT, threshold=100,
    ),
    AchievementDefinition(
        id="points-50", name="Eco Beginner", icon="🌱",
        description="Earn 50 points",
        metric=MetricKind.POINTS, threshold=50,
    ),
    AchievementDefinition(
        id="points-100", name="Century", icon="💯",
        description="Earn 100 points",
        metric=MetricKind.POINTS, threshold=100,
    ),
    AchievementDefinition(
        id="points-500", name="Eco Champion", icon="🏆",
        description="Earn 500 points",
        metric=MetricKind.POINTS, threshold=500,
    ),
    AchievementDefinition(
        id="points-1000", name="Planet Hero", icon="🌍",
        description="Earn 1000 points",
        metric=MetricKind.POINTS, threshold=1000,
    ),
    AchievementDefinition(
        id="streak-3", name="On a Roll", icon="🔥",
        description="Scan on 3 consecutive days",
        metric=MetricKind.STREAK, threshold=3,
    ),
    AchievementDefinition(
        id="streak-7", name="Week Streak", icon="📅",
        description="Scan on 7 consecutive days",
        metric=MetricKind.STREAK, threshold=7,
    ),
    AchievementDefinition(
        id="streak-30", name="Monthly Devotion", icon="🌟",
        description="Scan on 30 consecutive days",
        metric=MetricKind.STREAK, threshold=30,
    ),
]
