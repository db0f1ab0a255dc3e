"""
Prometheus metrics definitions for ecoscan.

Organized by category:
- Scan registration: outcomes, latency, concurrency conflicts
- Gamification: points, level-ups, achievement unlocks

Metrics are exposed at the /metrics endpoint for Prometheus scraping.
"""

import logging
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# =============================================================================
# Scan Registration Metrics
# =============================================================================

scans_registered_total = Counter(
    "ecoscan_scans_registered_total",
    "Total scan registrations by outcome",
    ["outcome"],  # outcome: success/user_not_found/persistence_error/internal_error
)

scan_registration_duration_seconds = Histogram(
    "ecoscan_scan_registration_duration_seconds",
    "Time to register a scan, including retries",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

stats_update_conflicts_total = Counter(
    "ecoscan_stats_update_conflicts_total",
    "Optimistic-concurrency conflicts on the users row",
    ["operation"],  # operation: register_scan/complete_onboarding
)

# =============================================================================
# Gamification Metrics
# =============================================================================

points_awarded_total = Counter(
    "ecoscan_points_awarded_total",
    "Total points awarded",
    ["source"],  # source: scan/welcome_bonus
)

level_ups_total = Counter(
    "ecoscan_level_ups_total",
    "Total level-ups",
)

achievements_unlocked_total = Counter(
    "ecoscan_achievements_unlocked_total",
    "Total achievements unlocked",
    ["metric"],  # metric: points/scan_count/streak
)
