"""
Scan Statistics

Aggregates a user's recent scans for the profile statistics tab:
- Scans, points and cumulative points per UTC day
- Waste-type distribution and most common type
- Recyclable share and average classifier confidence
- Busiest weekday

Also resolves the history lookback windows (week, month, 3 months).
"""

from collections import Counter
from datetime import datetime, time, timedelta, timezone
from typing import Iterable, Optional

from ecoscan.gamification.streak_system import to_utc_date
from ecoscan.models import (
    DailyScanActivity,
    HistoryRange,
    ScanRecord,
    ScanStatistics,
    StatisticsRange,
    WasteTypeCount,
)

HISTORY_RANGE_DAYS = {
    HistoryRange.WEEK: 7,
    HistoryRange.MONTH: 30,
    HistoryRange.THREE_MONTHS: 90,
}

STATISTICS_RANGE_DAYS = {
    StatisticsRange.WEEK: 7,
    StatisticsRange.MONTH: 30,
}

# Bucket for scans the classifier returned without a waste type
UNKNOWN_WASTE_TYPE = "other"

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def history_since(date_range: HistoryRange, now: datetime) -> Optional[datetime]:
    """Start of a history lookback window (None means no lower bound)"""
    if date_range == HistoryRange.ALL:
        return None
    return now - timedelta(days=HISTORY_RANGE_DAYS[date_range])


def statistics_window_start(stats_range: StatisticsRange, now: datetime) -> datetime:
    """Midnight UTC of the first day of the window; the window ends today"""
    first_day = to_utc_date(now) - timedelta(days=STATISTICS_RANGE_DAYS[stats_range] - 1)
    return datetime.combine(first_day, time.min, tzinfo=timezone.utc)


def summarize_scans(
    scans: Iterable[ScanRecord],
    stats_range: StatisticsRange,
    now: datetime,
    total_points: int
) -> ScanStatistics:
    """
    Build statistics for the window ending today

    Args:
        scans: The user's scans (anything outside the window is ignored)
        stats_range: Week (7 days) or month (30 days)
        now: Current time; "today" is its UTC calendar day
        total_points: The user's current point total, used to rebuild the
            cumulative points curve backwards from today

    Returns:
        ScanStatistics with one DailyScanActivity per day, oldest first
    """
    since = statistics_window_start(stats_range, now)
    first_day = since.date()
    days = [first_day + timedelta(days=i) for i in range(STATISTICS_RANGE_DAYS[stats_range])]

    window = [s for s in scans if first_day <= to_utc_date(s.created_at) <= days[-1]]

    scans_per_day = Counter(to_utc_date(s.created_at) for s in window)
    points_per_day: Counter = Counter()
    for scan in window:
        points_per_day[to_utc_date(scan.created_at)] += scan.points_awarded

    points_earned = sum(s.points_awarded for s in window)
    running = max(total_points - points_earned, 0)
    daily_activity = []
    for day in days:
        running += points_per_day[day]
        daily_activity.append(DailyScanActivity(
            day=day,
            scans=scans_per_day[day],
            points=points_per_day[day],
            cumulative_points=running,
        ))

    waste_counts = Counter(s.waste_type or UNKNOWN_WASTE_TYPE for s in window)
    distribution = [
        WasteTypeCount(waste_type=waste_type, count=count)
        for waste_type, count in sorted(waste_counts.items(), key=lambda item: (-item[1], item[0]))
    ]

    weekday_counts = Counter(WEEKDAYS[to_utc_date(s.created_at).weekday()] for s in window)
    confidences = [s.confidence for s in window if s.confidence is not None]
    recyclable_count = sum(1 for s in window if s.recyclable)

    return ScanStatistics(
        range=stats_range,
        since=since,
        total_scans=len(window),
        points_earned=points_earned,
        recyclable_count=recyclable_count,
        recyclable_percentage=round(recyclable_count / len(window) * 100) if window else 0,
        average_confidence=round(sum(confidences) / len(confidences)) if confidences else None,
        most_common_waste_type=distribution[0].waste_type if distribution else None,
        busiest_weekday=weekday_counts.most_common(1)[0][0] if weekday_counts else None,
        waste_type_distribution=distribution,
        daily_activity=daily_activity,
    )
