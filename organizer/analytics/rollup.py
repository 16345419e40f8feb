"""
Daily and Monthly Rollups

DESIGN DECISION: Rollups are recomputed, never incremented.
rollup_day() rebuilds one DailyStats from the habits and completions in the
aggregate and the month summary is rebuilt from all of its daily stats.
Running a rollup twice for the same day gives the same chart.

Only habits eligible on that weekday are counted, both in the totals and in
the completions, so a percentage never exceeds 100.
"""

import math
from datetime import date
from fractions import Fraction
from typing import Optional

from organizer.models.aggregate import (
    CompletionStatus,
    DailyStats,
    MonthlyChart,
    OrganizerData,
    month_key,
)


# A day at or above this percentage counts as a "completed day"
COMPLETED_DAY_THRESHOLD = 80


def round_half_up(value: Fraction) -> int:
    """Round to the nearest integer, halves going up (2.5 -> 3)."""
    return math.floor(value + Fraction(1, 2))


def percentage(part: int, whole: int) -> int:
    """Integer percentage of part/whole, 0 when whole is 0."""
    if whole <= 0:
        return 0
    return round_half_up(Fraction(part * 100, whole))


def compute_daily_stats(data: OrganizerData, day: date) -> DailyStats:
    """Build the stats of one day from the current habits and completions."""
    eligible = {h.id: h for h in data.habits if h.is_eligible_on(day)}

    completed_ids = {
        c.habit_id
        for c in data.habit_completions
        if c.date == day
        and c.status == CompletionStatus.COMPLETED
        and c.habit_id in eligible
    }

    total_habits = len(eligible)
    completed_habits = len(completed_ids)

    return DailyStats(
        date=day,
        total_habits=total_habits,
        completed_habits=completed_habits,
        total_points=sum(h.weight for h in eligible.values()),
        earned_points=sum(eligible[habit_id].weight for habit_id in completed_ids),
        percentage=percentage(completed_habits, total_habits),
    )


def summarize_chart(chart: MonthlyChart) -> MonthlyChart:
    """
    Recompute a chart's summary fields from its daily stats.

    bestDay/worstDay come from a stable sort by percentage (descending), so
    among equal percentages the earliest date is best and the latest is
    worst.
    """
    stats = sorted(chart.daily_stats, key=lambda s: s.date)
    chart.daily_stats = stats

    if not stats:
        chart.total_days = 0
        chart.completed_days = 0
        chart.average_performance = 0
        chart.best_day = ""
        chart.worst_day = ""
        return chart

    chart.total_days = len(stats)
    chart.completed_days = sum(
        1 for s in stats if s.percentage >= COMPLETED_DAY_THRESHOLD
    )
    chart.average_performance = round_half_up(
        Fraction(sum(s.percentage for s in stats), len(stats))
    )

    ranked = sorted(stats, key=lambda s: -s.percentage)
    chart.best_day = ranked[0].date.isoformat()
    chart.worst_day = ranked[-1].date.isoformat()
    return chart


def find_monthly_chart(data: OrganizerData, month: str) -> Optional[MonthlyChart]:
    for chart in data.monthly_charts:
        if chart.month == month:
            return chart
    return None


def ensure_monthly_chart(data: OrganizerData, month: str) -> MonthlyChart:
    """Get the chart of a month, creating an empty one if needed."""
    chart = find_monthly_chart(data, month)
    if chart is None:
        chart = MonthlyChart(month=month)
        data.monthly_charts.append(chart)
    return chart


def rollup_day(data: OrganizerData, day: date) -> DailyStats:
    """
    Recompute one day's stats and its month's summary in place.

    Any existing stats for that date are replaced.
    """
    chart = ensure_monthly_chart(data, month_key(day))
    stats = compute_daily_stats(data, day)

    chart.daily_stats = [s for s in chart.daily_stats if s.date != day]
    chart.daily_stats.append(stats)
    summarize_chart(chart)
    return stats
