"""Derived state: habit streaks and daily/monthly rollups."""

from organizer.analytics.rollup import (
    COMPLETED_DAY_THRESHOLD,
    compute_daily_stats,
    ensure_monthly_chart,
    find_monthly_chart,
    percentage,
    rollup_day,
    round_half_up,
    summarize_chart,
)
from organizer.analytics.streaks import (
    compute_streak,
    latest_completion,
    recompute_streak,
)

__all__ = [
    "COMPLETED_DAY_THRESHOLD",
    "compute_daily_stats",
    "compute_streak",
    "ensure_monthly_chart",
    "find_monthly_chart",
    "latest_completion",
    "percentage",
    "recompute_streak",
    "rollup_day",
    "round_half_up",
    "summarize_chart",
]
