"""Global test fixtures and utilities for ecoscan tests"""
import pytest
from datetime import datetime, timedelta, timezone

from ecoscan.db.memory_store import InMemoryGamificationStore
from ecoscan.models import (
    AchievementDefinition,
    ClassificationResult,
    MetricKind,
    UserStats,
)
from ecoscan.services.gamification_service import GamificationService


# ============================================================================
# Time Fixtures
# ============================================================================

@pytest.fixture
def fixed_now():
    """Scan time used by the service clock"""
    return datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def yesterday(fixed_now):
    return fixed_now - timedelta(days=1)


# ============================================================================
# User & Catalog Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "user-123"


@pytest.fixture
def sample_catalog():
    """Small achievement catalog covering every metric"""
    return [
        AchievementDefinition(
            id="first-step", name="First Step", icon="🎓",
            description="Scan your first item",
            metric=MetricKind.SCAN_COUNT, threshold=1,
        ),
        AchievementDefinition(
            id="scans-10", name="Sorter", icon="♻️",
            description="Scan 10 items",
            metric=MetricKind.SCAN_COUNT, threshold=10,
        ),
        AchievementDefinition(
            id="scans-50", name="Waste Warrior", icon="🛡️",
            description="Scan 50 items",
            metric=MetricKind.SCAN_COUNT, threshold=50,
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
            id="streak-5", name="High Five", icon="🖐️",
            description="Scan on 5 consecutive days",
            metric=MetricKind.STREAK, threshold=5,
        ),
        AchievementDefinition(
            id="streak-7", name="Week Streak", icon="📅",
            description="Scan on 7 consecutive days",
            metric=MetricKind.STREAK, threshold=7,
        ),
    ]


@pytest.fixture
def memory_store(sample_catalog):
    """In-memory store seeded with the sample catalog"""
    return InMemoryGamificationStore(sample_catalog)


@pytest.fixture
def new_user(memory_store, test_user_id):
    """User who has never scanned"""
    stats = UserStats(user_id=test_user_id, username="tester")
    memory_store.add_user(stats)
    return stats


@pytest.fixture
def gamification_service(memory_store, fixed_now):
    """GamificationService over the in-memory store with a frozen clock"""
    return GamificationService(memory_store, clock=lambda: fixed_now, retry_base_delay=0)


# ============================================================================
# Classification Fixtures
# ============================================================================

@pytest.fixture
def plastic_bottle():
    """Classifier output for a plastic bottle"""
    return ClassificationResult(
        detected_object="plastic bottle",
        detected_object_localized="botella de plástico",
        waste_type="plastic",
        bin="white",
        category="recyclable",
        recyclable=True,
        confidence=92,
        advice="Rinse and crush before disposing.",
    )
