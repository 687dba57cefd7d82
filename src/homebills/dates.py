"""Due-date calculation for recurring bills.

Pure functions only: every result is a function of the explicit inputs,
there is no hidden "today".
"""

import calendar
from collections.abc import Sequence
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from homebills.models import Frequency


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, pulling ``day`` back to the month's last day if needed."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, max(1, min(day, last_day)))


def month_bounds(d: date) -> tuple[date, date]:
    """Return the first and last day of the calendar month containing ``d``."""
    return d.replace(day=1), clamp_day(d.year, d.month, 31)


def add_months(d: date, months: int, day: int | None = None) -> date:
    """Shift ``d`` by whole months, landing on ``day`` (default: same day)."""
    first = d.replace(day=1) + relativedelta(months=months)
    return clamp_day(first.year, first.month, d.day if day is None else day)


def next_date(
    frequency: Frequency | str,
    days: Sequence[int],
    reference: date,
    *,
    inclusive: bool = True,
) -> date:
    """Return the next calendar occurrence after ``reference``.

    Args:
        frequency: weekly, monthly or yearly.
        days: Candidate days of month, ascending.
        reference: Date to roll forward from.
        inclusive: Whether ``reference`` itself counts as a match. The
            initial trigger and due-date lookups are inclusive; advancing an
            existing trigger is not, so a trigger never repeats.

    Returns:
        monthly: the smallest candidate day on/after the reference day in the
        reference month, else the smallest candidate day next month.
        weekly: ``reference + 7 days`` (candidate days are not consulted).
        yearly: ``reference + 1 year`` on the first candidate day.

    Days past the end of a short month are clamped to its last day.
    """
    frequency = Frequency(frequency)
    ordered = sorted(days)

    if frequency is Frequency.WEEKLY:
        return reference + timedelta(days=7)

    if frequency is Frequency.YEARLY:
        shifted = reference + relativedelta(years=1)
        if not ordered:
            return shifted
        return clamp_day(shifted.year, shifted.month, ordered[0])

    if not ordered:
        raise ValueError("monthly schedules need at least one day of month")

    for day in ordered:
        candidate = clamp_day(reference.year, reference.month, day)
        if candidate > reference or (inclusive and candidate == reference):
            return candidate
    return add_months(reference, 1, ordered[0])


def advance_trigger(
    frequency: Frequency | str, trigger_days: Sequence[int], current: date
) -> date:
    """Roll a schedule's trigger date strictly forward by one step."""
    return next_date(frequency, trigger_days, current, inclusive=False)
