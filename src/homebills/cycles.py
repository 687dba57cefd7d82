"""Mapping between generation days and due days.

A billing cycle starts on a generation day and is paid by its paired due
day (pairing is by position in the two sorted lists). A cycle generated on
the 25th and due on the 5th spans a month boundary.
"""

from collections.abc import Sequence
from datetime import date

from homebills.dates import add_months, clamp_day, next_date
from homebills.models import Frequency, Schedule


def generation_due_date(schedule: Schedule, trigger_date: date) -> date:
    """Due date of the occurrence produced when ``trigger_date`` fires.

    With separate generation and due days, this is the next due day on or
    after the trigger date; otherwise the trigger date is the due date.
    """
    if not schedule.has_cycle_mapping:
        return trigger_date
    return next_date(Frequency.MONTHLY, schedule.due_days, trigger_date)


def cycle_index(generation_days: Sequence[int], tx_day: int) -> int | None:
    """Index of the latest generation day on or before ``tx_day``.

    Returns None when ``tx_day`` precedes every generation day.
    """
    for i in range(len(generation_days) - 1, -1, -1):
        if generation_days[i] <= tx_day:
            return i
    return None


def observation_due_date(
    generation_days: Sequence[int],
    due_days: Sequence[int],
    tx_date: date,
) -> date:
    """Due date of the billing cycle an observed transaction belongs to.

    A transaction dated before this month's first generation day belongs to
    the final cycle generated last month. When the lists differ in length,
    the due-day index is clamped to the last entry.
    """
    if not generation_days or not due_days:
        raise ValueError("cycle mapping needs both generation days and due days")

    anchor = tx_date
    index = cycle_index(generation_days, tx_date.day)
    if index is None:
        index = len(generation_days) - 1
        anchor = add_months(tx_date, -1, 1)

    due_day = due_days[min(index, len(due_days) - 1)]
    due = clamp_day(anchor.year, anchor.month, due_day)
    if due_day < generation_days[index]:
        due = add_months(due, 1, due_day)
    return due


def closest_due_date(due_days: Sequence[int], tx_date: date) -> date:
    """Due day numerically closest to the transaction's day, in its month.

    Ties go to the earlier day.
    """
    if not due_days:
        raise ValueError("no due days configured")
    closest = min(sorted(due_days), key=lambda day: abs(day - tx_date.day))
    return clamp_day(tx_date.year, tx_date.month, closest)


def reconciliation_due_date(schedule: Schedule, tx_date: date) -> date:
    """Resolve the due date a transaction settles for ``schedule``."""
    if schedule.has_cycle_mapping:
        return observation_due_date(
            schedule.generation_days, schedule.due_days, tx_date
        )
    return closest_due_date(schedule.effective_due_days, tx_date)
