"""
Report periods - month-to-date window and the comparable prior-month window

The previous period starts on the first of the prior month and spans the same
number of days as the current period, so that "10 days into this month" is
compared against the first 10 days of last month. When the prior month is
shorter than the elapsed day count (e.g. March 31 against February) the
previous period is clamped to the whole prior month.

Examples (today -> current, previous; ends exclusive):
    2026-01-10 -> [2026-01-01, 2026-01-11), [2025-12-01, 2025-12-11)
    2026-03-31 -> [2026-03-01, 2026-04-01), [2026-02-01, 2026-03-01)
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta
import structlog

from cloud_cost.models.cost import DateRange, ReportPeriods

logger = structlog.get_logger(__name__)


def utc_today(now: Optional[datetime] = None) -> date:
    """Billing data is keyed by UTC day."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).date()


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def current_period(today: date) -> DateRange:
    """First of the month through today, inclusive of today's partial data."""
    return DateRange(start=first_of_month(today), end=today + timedelta(days=1))


def previous_period(today: date) -> DateRange:
    """Same number of elapsed days, anchored at the first of the prior month."""
    this_month = first_of_month(today)
    prev_start = this_month - relativedelta(months=1)
    prev_end = min(prev_start + timedelta(days=today.day), this_month)
    return DateRange(start=prev_start, end=prev_end)


def report_periods(today: Optional[date] = None) -> ReportPeriods:
    today = today or utc_today()
    periods = ReportPeriods(current=current_period(today), previous=previous_period(today))
    logger.debug(
        "report_periods_computed",
        today=today.isoformat(),
        current=str(periods.current),
        previous=str(periods.previous),
    )
    return periods
