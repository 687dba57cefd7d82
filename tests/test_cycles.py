"""Tests for mapping between generation days and due days."""

from datetime import date
from decimal import Decimal

import pytest

from homebills.cycles import (
    closest_due_date,
    cycle_index,
    generation_due_date,
    observation_due_date,
    reconciliation_due_date,
)
from homebills.models import Frequency, Schedule


def _schedule(**kwargs) -> Schedule:
    defaults = dict(
        id=1,
        profile_id=1,
        name="Credit card",
        amount=Decimal("80.00"),
        frequency=Frequency.MONTHLY,
    )
    defaults.update(kwargs)
    return Schedule(**defaults)


class TestObservationSide:
    """Classifying an observed transaction into a billing cycle."""

    def test_cross_month_cycle_rolls_forward(self):
        """Generated on the 25th, due on the 5th: a payment on Feb 27 is for Mar 5."""
        assert observation_due_date([25], [5], date(2024, 2, 27)) == date(2024, 3, 5)

    def test_cross_month_cycle_at_year_end(self):
        assert observation_due_date([25], [5], date(2024, 12, 26)) == date(2025, 1, 5)

    def test_before_first_generation_day_uses_previous_cycle(self):
        """A payment on Feb 3 settles the cycle generated on Jan 25, due Feb 5."""
        assert observation_due_date([25], [5], date(2024, 2, 3)) == date(2024, 2, 5)

    def test_before_first_generation_day_same_month_cycle(self):
        """Previous month's last cycle without rollover stays in that month."""
        assert observation_due_date([10, 20], [15, 28], date(2024, 3, 4)) == date(2024, 2, 28)

    def test_generation_day_itself_starts_the_cycle(self):
        assert observation_due_date([1, 15], [10, 25], date(2024, 3, 15)) == date(2024, 3, 25)

    @pytest.mark.parametrize("tx_day", range(1, 32))
    def test_equal_length_lists_map_by_position(self, tx_day):
        """Every day in [gen[i], gen[i+1]-1] maps to due[i]."""
        generation_days = [1, 15]
        due_days = [10, 25]
        result = observation_due_date(generation_days, due_days, date(2024, 3, tx_day))

        expected_day = 10 if tx_day < 15 else 25
        assert result == date(2024, 3, expected_day)

    def test_rollover_only_when_due_precedes_generation(self):
        result = observation_due_date([5, 20], [12, 15], date(2024, 3, 8))
        assert result == date(2024, 3, 12)

        result = observation_due_date([5, 20], [12, 15], date(2024, 3, 22))
        assert result == date(2024, 4, 15)

    def test_more_generation_days_than_due_days_clamps(self):
        """Unequal lists fall back to the last due day."""
        result = observation_due_date([1, 10, 20], [15, 25], date(2024, 3, 22))
        assert result == date(2024, 3, 25)

    def test_missing_lists_rejected(self):
        with pytest.raises(ValueError):
            observation_due_date([], [5], date(2024, 3, 1))

    def test_cycle_index(self):
        assert cycle_index([1, 15], 14) == 0
        assert cycle_index([1, 15], 15) == 1
        assert cycle_index([10, 20], 9) is None


class TestClosestDueDay:
    """Tests for the closest-due-day rule."""

    def test_picks_nearest(self):
        assert closest_due_date([1, 15], date(2024, 4, 12)) == date(2024, 4, 15)

    def test_tie_goes_to_earlier_day(self):
        assert closest_due_date([1, 15], date(2024, 4, 8)) == date(2024, 4, 1)

    def test_single_day(self):
        assert closest_due_date([10], date(2024, 4, 20)) == date(2024, 4, 10)

    def test_no_days_rejected(self):
        with pytest.raises(ValueError):
            closest_due_date([], date(2024, 4, 20))


class TestScheduleDispatch:
    """Tests for choosing the mapping from a schedule's configuration."""

    def test_generation_side_with_cycle_mapping(self):
        schedule = _schedule(generation_days=(25,), due_days=(5,))
        assert generation_due_date(schedule, date(2024, 1, 25)) == date(2024, 2, 5)

    def test_generation_side_same_month(self):
        schedule = _schedule(generation_days=(1,), due_days=(10,))
        assert generation_due_date(schedule, date(2024, 3, 1)) == date(2024, 3, 10)

    def test_generation_side_without_generation_days(self):
        schedule = _schedule(due_days=(5,))
        assert generation_due_date(schedule, date(2024, 3, 5)) == date(2024, 3, 5)

    def test_reconciliation_uses_cycle_mapping(self):
        schedule = _schedule(generation_days=(25,), due_days=(5,))
        assert reconciliation_due_date(schedule, date(2024, 2, 27)) == date(2024, 3, 5)

    def test_reconciliation_uses_legacy_due_day(self):
        schedule = _schedule(due_day=20)
        assert reconciliation_due_date(schedule, date(2024, 2, 27)) == date(2024, 2, 20)
