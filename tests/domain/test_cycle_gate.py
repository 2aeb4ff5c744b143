"""
Tests for the billing cycle gate.

The gate is pure: a configuration and a date in, a decision out.
"""

from datetime import date, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from billing_kernel.domain.cycle_gate import (
    CycleDecision,
    evaluate_cycle,
    is_cycle_due,
    is_reset_done_for,
)
from billing_kernel.domain.dtos import CycleConfig
from billing_kernel.domain.values import MonthKey
from billing_kernel.exceptions import InvalidDueDayError


class TestCycleGate:

    def test_due_after_due_day_with_previous_month_marker(self):
        config = CycleConfig(due_day=5, last_reset=MonthKey(2024, 2))
        assert is_cycle_due(config, date(2024, 3, 10))

    def test_due_on_the_due_day_itself(self):
        config = CycleConfig(due_day=10, last_reset=MonthKey(2024, 2))
        assert evaluate_cycle(config, date(2024, 3, 10)) is CycleDecision.DUE

    def test_not_due_before_due_day(self):
        config = CycleConfig(due_day=15, last_reset=MonthKey(2024, 2))
        assert evaluate_cycle(config, date(2024, 3, 14)) is CycleDecision.NOT_YET_DUE

    def test_not_due_when_month_already_reset(self):
        config = CycleConfig(due_day=5, last_reset=MonthKey(2024, 3))
        assert evaluate_cycle(config, date(2024, 3, 20)) is CycleDecision.ALREADY_RESET
        assert is_reset_done_for(config, date(2024, 3, 20))

    def test_never_reset_is_due(self):
        config = CycleConfig(due_day=1, last_reset=None)
        assert is_cycle_due(config, date(2024, 3, 1))

    def test_marker_from_a_year_ago_same_month_is_due(self):
        config = CycleConfig(due_day=1, last_reset=MonthKey(2023, 3))
        assert is_cycle_due(config, date(2024, 3, 2))

    @pytest.mark.parametrize("day", [0, 29, 31, -1])
    def test_due_day_out_of_range_rejected(self, day):
        with pytest.raises(InvalidDueDayError):
            CycleConfig(due_day=day)


@given(
    due_day=st.integers(min_value=1, max_value=28),
    first=st.dates(min_value=date(2000, 1, 1), max_value=date(2099, 11, 1)).map(
        lambda d: d.replace(day=1)
    ),
)
def test_one_reset_per_calendar_month(due_day, first):
    """Walking a month day by day, the gate opens once at the due day and
    stays shut for the rest of the month after the marker advances."""
    config = CycleConfig(due_day=due_day, last_reset=MonthKey.of(first).previous())
    resets = 0
    day = first
    while day.month == first.month:
        if is_cycle_due(config, day):
            assert day.day >= due_day
            resets += 1
            config = CycleConfig(due_day=due_day, last_reset=MonthKey.of(day))
        day += timedelta(days=1)
    assert resets == 1
    # The next month opens again on its own due day.
    next_first = day
    assert not is_cycle_due(config, next_first) or due_day == 1
    assert is_cycle_due(config, next_first.replace(day=due_day))
