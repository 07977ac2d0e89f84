"""
Unit Tests for the Distribution Engine.

Tests:
1. Each payment policy places amounts where expected
2. Cent-exact splits: parts always add back to the total
3. Out-of-grid placements are dropped and reported, never moved
4. Month counting and cent allocation helpers
"""

import logging
from datetime import date
from decimal import Decimal

import pytest

from dealcast.forecast.distribution import distribute, distribute_costs, resolve_schedule
from dealcast.forecast.money import add_months, allocate, months_between, to_decimal
from dealcast.forecast.types import CostItem, Frequency, ScheduleDates


def _non_zero(months):
    return {k: v for k, v in months.items() if v != 0}


# =============================================================================
# TEST: POLICIES
# =============================================================================

class TestPolicies:
    """Placement per frequency."""

    def test_once_off_single_month(self, calendar):
        schedule = ScheduleDates(frequency=Frequency.ONCE_OFF, anchor_date=date(2025, 6, 15))
        result = distribute(Decimal("30000"), schedule, calendar)
        assert _non_zero(result.months) == {"2025-06": Decimal("30000")}
        assert result.boundary_events == []

    def test_annual_same_as_once_off(self, calendar):
        schedule = ScheduleDates(frequency=Frequency.ANNUAL, anchor_date=date(2025, 4, 1))
        result = distribute(Decimal("90000"), schedule, calendar)
        assert _non_zero(result.months) == {"2025-04": Decimal("90000")}

    def test_monthly_even_split(self, calendar):
        schedule = ScheduleDates(
            frequency=Frequency.MONTHLY,
            anchor_date=date(2025, 5, 1),
            duration_months=4,
        )
        result = distribute(Decimal("1000"), schedule, calendar)
        assert _non_zero(result.months) == {
            "2025-05": Decimal("250"),
            "2025-06": Decimal("250"),
            "2025-07": Decimal("250"),
            "2025-08": Decimal("250"),
        }

    def test_monthly_uneven_split_sums_exactly(self, calendar):
        schedule = ScheduleDates(frequency=Frequency.MONTHLY, duration_months=12)
        result = distribute(Decimal("250000"), schedule, calendar)
        placed = _non_zero(result.months)
        assert len(placed) == 12
        assert result.total == Decimal("250000")
        for value in placed.values():
            assert value in (Decimal("20833.33"), Decimal("20833.34"))

    def test_with_income_follows_weights(self, calendar):
        income = calendar.empty_distribution()
        income["2025-04"] = Decimal("300")
        income["2025-05"] = Decimal("100")
        schedule = ScheduleDates(frequency=Frequency.ONCE_OFF, anchor_date=date(2025, 4, 1))
        result = distribute(
            Decimal("40"), schedule, calendar,
            frequency=Frequency.WITH_INCOME, follow=income,
        )
        assert _non_zero(result.months) == {"2025-04": Decimal("30"), "2025-05": Decimal("10")}

    def test_end_of_contract_uses_end_date(self, calendar):
        schedule = ScheduleDates(
            frequency=Frequency.MONTHLY,
            anchor_date=date(2025, 4, 1),
            duration_months=6,
        )
        result = distribute(Decimal("500"), schedule, calendar, frequency=Frequency.END_OF_CONTRACT)
        assert _non_zero(result.months) == {"2025-09": Decimal("500")}

    def test_milestone_forty_thirty_thirty(self, calendar):
        schedule = ScheduleDates(
            frequency=Frequency.MILESTONE,
            anchor_date=date(2025, 3, 1),
            end_date=date(2025, 11, 30),
        )
        result = distribute(Decimal("1000"), schedule, calendar)
        # Mar..Nov is 9 months; midpoint is 4 months after the start
        assert _non_zero(result.months) == {
            "2025-03": Decimal("400"),
            "2025-07": Decimal("300"),
            "2025-11": Decimal("300"),
        }

    def test_milestone_accumulates_on_shared_month(self, calendar):
        schedule = ScheduleDates(
            frequency=Frequency.MILESTONE,
            anchor_date=date(2025, 6, 1),
            end_date=date(2025, 6, 30),
        )
        result = distribute(Decimal("1000"), schedule, calendar)
        assert _non_zero(result.months) == {"2025-06": Decimal("1000")}

    def test_zero_amount_gives_empty_grid(self, calendar):
        schedule = ScheduleDates(frequency=Frequency.ONCE_OFF, anchor_date=date(2030, 1, 1))
        result = distribute(Decimal("0"), schedule, calendar)
        assert _non_zero(result.months) == {}
        assert result.boundary_events == []


# =============================================================================
# TEST: BOUNDARIES
# =============================================================================

class TestBoundaries:
    """Out-of-grid amounts are dropped and reported."""

    def test_once_off_outside_grid_dropped(self, calendar, caplog):
        schedule = ScheduleDates(frequency=Frequency.ONCE_OFF, anchor_date=date(2026, 5, 1))
        with caplog.at_level(logging.WARNING):
            result = distribute(Decimal("5000"), schedule, calendar)

        assert result.total == 0
        assert len(result.boundary_events) == 1
        event = result.boundary_events[0]
        assert event.month_key == "2026-05"
        assert event.amount == Decimal("5000")
        assert "2026-05" in caplog.text

    def test_monthly_truncated_at_fy_end(self, calendar):
        schedule = ScheduleDates(
            frequency=Frequency.MONTHLY,
            anchor_date=date(2025, 12, 1),
            duration_months=6,
        )
        result = distribute(Decimal("600"), schedule, calendar)

        assert _non_zero(result.months) == {
            "2025-12": Decimal("100"),
            "2026-01": Decimal("100"),
            "2026-02": Decimal("100"),
        }
        # the three months past FY end are reported as one dropped lump
        assert [e.month_key for e in result.boundary_events] == ["2026-03"]
        assert result.boundary_events[0].amount == Decimal("300")
        assert result.total + sum(e.amount for e in result.boundary_events) == Decimal("600")

    def test_very_long_monthly_schedule_is_cheap(self, calendar):
        schedule = ScheduleDates(
            frequency=Frequency.MONTHLY,
            anchor_date=date(2025, 12, 1),
            duration_months=100000,
        )
        result = distribute(Decimal("100000"), schedule, calendar)

        assert _non_zero(result.months) == {
            "2025-12": Decimal("1"),
            "2026-01": Decimal("1"),
            "2026-02": Decimal("1"),
        }
        assert len(result.boundary_events) == 1
        assert result.boundary_events[0].amount == Decimal("99997")

    def test_schedule_near_end_of_calendar_does_not_raise(self, calendar):
        schedule = ScheduleDates(
            frequency=Frequency.MONTHLY,
            anchor_date=date(9999, 11, 1),
            duration_months=3,
        )
        monthly = distribute(Decimal("300"), schedule, calendar)
        assert monthly.total == 0
        assert [e.month_key for e in monthly.boundary_events] == ["9999-11"]

        at_end = distribute(Decimal("50"), schedule, calendar, frequency=Frequency.END_OF_CONTRACT)
        assert at_end.total == 0
        assert at_end.boundary_events[0].month_key is None
        assert "supported calendar range" in at_end.boundary_events[0].reason

        milestone = distribute(Decimal("100"), schedule, calendar, frequency=Frequency.MILESTONE)
        assert milestone.total == 0
        assert sum(e.amount for e in milestone.boundary_events) == Decimal("100")

    def test_with_income_nothing_to_follow(self, calendar):
        schedule = ScheduleDates(frequency=Frequency.ONCE_OFF)
        result = distribute(
            Decimal("100"), schedule, calendar,
            source="commission", frequency=Frequency.WITH_INCOME,
            follow=calendar.empty_distribution(),
        )
        assert result.total == 0
        assert result.boundary_events[0].source == "commission"
        assert result.boundary_events[0].month_key is None


# =============================================================================
# TEST: COSTS
# =============================================================================

class TestDistributeCosts:
    """Costs each on their own frequency."""

    def test_commission_follows_income_and_fixed_cost_once_off(self, calendar):
        income = calendar.empty_distribution()
        income["2025-04"] = Decimal("500")
        income["2025-05"] = Decimal("500")
        schedule = ScheduleDates(
            frequency=Frequency.MONTHLY,
            anchor_date=date(2025, 4, 1),
            duration_months=2,
        )
        result = distribute_costs(
            {"travelCost": CostItem(amount=300, frequency="Once-off")},
            {"travelCost": Decimal("300")},
            Decimal("100"),
            Frequency.WITH_INCOME,
            schedule,
            calendar,
            income,
        )
        assert _non_zero(result.months) == {"2025-04": Decimal("350"), "2025-05": Decimal("50")}

    def test_monthly_cost_over_schedule(self, calendar):
        schedule = ScheduleDates(
            frequency=Frequency.ONCE_OFF,
            anchor_date=date(2025, 3, 1),
            duration_months=3,
        )
        result = distribute_costs(
            {"facilitatorCost": CostItem(amount=900, frequency="Monthly")},
            {"facilitatorCost": Decimal("900")},
            Decimal("0"),
            Frequency.WITH_INCOME,
            schedule,
            calendar,
            calendar.empty_distribution(),
        )
        assert _non_zero(result.months) == {
            "2025-03": Decimal("300"),
            "2025-04": Decimal("300"),
            "2025-05": Decimal("300"),
        }


# =============================================================================
# TEST: HELPERS
# =============================================================================

class TestHelpers:

    def test_missing_anchor_uses_first_grid_month(self, calendar):
        schedule = resolve_schedule(ScheduleDates(frequency=Frequency.ONCE_OFF), calendar)
        assert schedule.anchor_date == date(2025, 3, 1)
        assert schedule.end_date == date(2025, 3, 1)

    def test_explicit_end_date_sets_duration(self, calendar):
        schedule = resolve_schedule(
            ScheduleDates(
                frequency=Frequency.MONTHLY,
                anchor_date=date(2025, 3, 1),
                duration_months=12,
                end_date=date(2025, 8, 31),
            ),
            calendar,
        )
        assert schedule.duration_months == 6
        assert schedule.end_date == date(2025, 8, 31)
        assert schedule.horizon_months == 12

    def test_add_months_past_year_9999(self):
        assert add_months(date(9999, 11, 1), 1) == date(9999, 12, 1)
        assert add_months(date(9999, 11, 1), 2) is None

    def test_allocate_very_large_total(self):
        parts = allocate(Decimal("1E+30"), [Decimal("1")] * 3)
        assert parts[0] == Decimal("333333333333333333333333333333.34")
        assert parts[1] == Decimal("333333333333333333333333333333.33")
        assert parts[2] == Decimal("333333333333333333333333333333.33")

    @pytest.mark.parametrize("raw", ["1e30", "1000000000000000", Decimal("1E+20")])
    def test_implausibly_large_input_reads_as_zero(self, raw):
        assert to_decimal(raw) == 0

    def test_zero_duration_treated_as_one(self, calendar):
        schedule = resolve_schedule(
            ScheduleDates(frequency=Frequency.MONTHLY, anchor_date=date(2025, 4, 1), duration_months=0),
            calendar,
        )
        assert schedule.duration_months == 1

    @pytest.mark.parametrize("start,end,expected", [
        (date(2025, 1, 15), date(2025, 3, 1), 3),
        (date(2025, 3, 1), date(2025, 3, 31), 1),
        (date(2025, 11, 1), date(2026, 2, 1), 4),
        (date(2025, 5, 1), date(2025, 2, 1), 1),
        (None, date(2025, 2, 1), 1),
    ])
    def test_months_between_inclusive(self, start, end, expected):
        assert months_between(start, end) == expected

    def test_allocate_ties_go_to_earliest(self):
        assert allocate(Decimal("1.00"), [Decimal("1")] * 3) == [
            Decimal("0.34"), Decimal("0.33"), Decimal("0.33"),
        ]

    def test_allocate_negative_total(self):
        parts = allocate(Decimal("-100"), [Decimal("1")] * 3)
        assert sum(parts) == Decimal("-100")
        assert parts[0] == Decimal("-33.34")

    def test_allocate_zero_weights(self):
        assert allocate(Decimal("10"), [Decimal("0"), Decimal("0")]) == [Decimal("0"), Decimal("0")]

    def test_to_decimal_strips_formatting(self):
        assert to_decimal(" 1 500 ") == Decimal("1500")
        assert to_decimal("12,500.75") == Decimal("12500.75")
