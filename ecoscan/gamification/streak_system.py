"""
Daily Streak Resolver

A streak is the number of consecutive calendar days with at least one scan.
Days are UTC calendar days for every user; naive timestamps are read as UTC.

Logic:
- No previous scan: streak starts at 1
- Previous scan today: unchanged (repeat scans don't inflate the streak)
- Previous scan yesterday: streak + 1
- Anything else: reset to 1
- max_streak = max(max_streak, new streak)
"""

from typing import Optional
from datetime import date, datetime, timedelta, timezone
import logging

from ecoscan.models.gamification import StreakStatus, StreakUpdate

logger = logging.getLogger(__name__)


def to_utc_date(moment: datetime) -> date:
    """Calendar day of a timestamp in UTC"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date()


def resolve_streak(
    last_scan_at: Optional[datetime],
    now: datetime,
    current_streak: int,
    max_streak: int
) -> StreakUpdate:
    """
    Decide whether the daily streak continues, resets or stays flat

    Args:
        last_scan_at: Timestamp of the user's previous scan (None if first scan)
        now: Timestamp of the scan being registered
        current_streak: Streak before this scan
        max_streak: Best streak before this scan

    Returns:
        StreakUpdate with new_streak, new_max_streak and status
    """
    if last_scan_at is None:
        new_streak = 1
        status = StreakStatus.STARTED
    else:
        last_day = to_utc_date(last_scan_at)
        today = to_utc_date(now)

        if last_day == today:
            # Legacy rows may carry a scan timestamp with a zero streak
            new_streak = max(current_streak, 1)
            status = StreakStatus.UNCHANGED
        elif last_day == today - timedelta(days=1):
            new_streak = current_streak + 1
            status = StreakStatus.CONTINUED
        else:
            # Gap of 2+ days, or a previous scan dated after `now` (clock skew)
            new_streak = 1
            status = StreakStatus.RESET
            logger.debug(
                f"Streak reset: last scan day {last_day}, today {today}, was {current_streak}"
            )

    return StreakUpdate(
        new_streak=new_streak,
        new_max_streak=max(max_streak, new_streak),
        status=status,
    )
