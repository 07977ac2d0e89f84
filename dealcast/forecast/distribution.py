"""
Distribution Engine.

Spreads an amount across the FY grid according to a payment policy:

- Once-off / Annual: everything in the anchor month
- Monthly: equal instalments for ``duration_months`` from the anchor month
- With Income: proportional to wherever the deal's income landed
- End of Contract / End of Learnership: everything in the end month
- Milestone: 40% start, 30% midpoint, 30% end

Amounts are split in whole cents so the parts add back to the total.
Anything that lands outside the grid is dropped, never moved to the
nearest month; each drop is logged and reported as a BoundaryEvent.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from dealcast.forecast.calendar import FYCalendar
from dealcast.forecast.money import (
    ZERO,
    add_months,
    allocate,
    month_key_for,
    months_between,
    to_decimal,
)
from dealcast.forecast.types import BoundaryEvent, CostItem, Frequency, ScheduleDates

logger = logging.getLogger(__name__)


MILESTONE_WEIGHTS = (Decimal("40"), Decimal("30"), Decimal("30"))
ONE = Decimal("1")

# (month key or None, amount); None means there was nowhere to put it
Placement = Tuple[Optional[str], Decimal]


@dataclass
class DistributionResult:
    """Month-keyed amounts on the grid plus anything that fell off it."""
    months: Dict[str, Decimal]
    boundary_events: List[BoundaryEvent] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum(self.months.values(), ZERO)


# =============================================================================
# POLICIES
# =============================================================================

def _key(day: Optional[date]) -> Optional[str]:
    return month_key_for(day) if day is not None else None


def _at_anchor(amount: Decimal, schedule: ScheduleDates, follow: Optional[Mapping[str, Decimal]]) -> List[Placement]:
    return [(_key(schedule.anchor_date), amount)]


def _monthly(amount: Decimal, schedule: ScheduleDates, follow: Optional[Mapping[str, Decimal]]) -> List[Placement]:
    duration = max(schedule.duration_months, 1)
    shown = duration if schedule.horizon_months is None else min(duration, schedule.horizon_months)
    weights = [ONE] * shown
    if duration > shown:
        # instalments past the grid end are dropped as one lump
        weights.append(Decimal(duration - shown))
    instalments = allocate(amount, weights)
    return [
        (_key(add_months(schedule.anchor_date, i)), instalment)
        for i, instalment in enumerate(instalments)
    ]


def _with_income(amount: Decimal, schedule: ScheduleDates, follow: Optional[Mapping[str, Decimal]]) -> List[Placement]:
    weighted = [(key, value) for key, value in (follow or {}).items() if value != 0]
    if not weighted:
        return [(None, amount)]
    parts = allocate(amount, [value for _, value in weighted])
    return [(key, part) for (key, _), part in zip(weighted, parts)]


def _at_end(amount: Decimal, schedule: ScheduleDates, follow: Optional[Mapping[str, Decimal]]) -> List[Placement]:
    return [(_key(schedule.end_date), amount)]


def _milestone(amount: Decimal, schedule: ScheduleDates, follow: Optional[Mapping[str, Decimal]]) -> List[Placement]:
    start = schedule.anchor_date
    end = schedule.end_date
    midpoint = add_months(start, months_between(start, end) // 2) if end is not None else None
    parts = allocate(amount, list(MILESTONE_WEIGHTS))
    return [
        (_key(start), parts[0]),
        (_key(midpoint), parts[1]),
        (_key(end), parts[2]),
    ]


PolicyFn = Callable[[Decimal, ScheduleDates, Optional[Mapping[str, Decimal]]], List[Placement]]

POLICIES: Dict[Frequency, PolicyFn] = {
    Frequency.ONCE_OFF: _at_anchor,
    Frequency.ANNUAL: _at_anchor,
    Frequency.MONTHLY: _monthly,
    Frequency.WITH_INCOME: _with_income,
    Frequency.END_OF_CONTRACT: _at_end,
    Frequency.END_OF_LEARNERSHIP: _at_end,
    Frequency.MILESTONE: _milestone,
}


# =============================================================================
# ENTRY POINTS
# =============================================================================

def resolve_schedule(schedule: ScheduleDates, calendar: FYCalendar) -> ScheduleDates:
    """
    Fill in the dates a policy needs.

    A deal with no anchor date is anchored on the first month of the grid.
    An explicit end date fixes the duration through ``months_between``;
    otherwise the end is the last month of the duration. ``horizon_months``
    counts the months from the anchor to the end of the grid.
    """
    anchor = schedule.anchor_date
    if anchor is None:
        first = calendar.first_month
        anchor = date(first.year, first.calendar_month_index + 1, 1)

    if schedule.end_date is not None:
        end = schedule.end_date
        duration = months_between(anchor, end)
    else:
        duration = max(schedule.duration_months, 1)
        end = add_months(anchor, duration - 1)

    last = calendar.months[-1]
    horizon = (last.year - anchor.year) * 12 + (last.calendar_month_index + 1 - anchor.month) + 1

    return schedule.model_copy(update={
        "anchor_date": anchor,
        "duration_months": duration,
        "end_date": end,
        "horizon_months": max(horizon, 0),
    })


def distribute(
    amount: Decimal,
    schedule: ScheduleDates,
    calendar: FYCalendar,
    source: str = "income",
    frequency: Optional[Frequency] = None,
    follow: Optional[Mapping[str, Decimal]] = None,
) -> DistributionResult:
    """
    Spread ``amount`` over the grid.

    ``frequency`` overrides the schedule's own (cost items reuse the deal's
    dates with their own policy). ``follow`` is the income series used by
    the With Income policy.
    """
    schedule = resolve_schedule(schedule, calendar)
    frequency = frequency or schedule.frequency
    policy = POLICIES[frequency]
    months = calendar.empty_distribution()
    events: List[BoundaryEvent] = []

    if amount == 0:
        return DistributionResult(months=months)

    for key, part in policy(amount, schedule, follow):
        if key is not None and key in months:
            months[key] += part
            continue
        if part == 0:
            continue
        if key is None and frequency == Frequency.WITH_INCOME:
            reason = "no income in the financial year to follow"
        elif key is None:
            reason = "date beyond the supported calendar range"
        else:
            reason = f"month outside financial year {calendar.financial_year}"
        logger.warning(f"Dropped {part} of {source} for {key or 'unplaced'}: {reason}")
        events.append(BoundaryEvent(source=source, month_key=key, amount=part, reason=reason))

    return DistributionResult(months=months, boundary_events=events)


def distribute_costs(
    cost_items: Mapping[str, CostItem],
    counted_costs: Mapping[str, Decimal],
    commission_amount: Decimal,
    commission_frequency: Frequency,
    schedule: ScheduleDates,
    calendar: FYCalendar,
    income_distribution: Mapping[str, Decimal],
) -> DistributionResult:
    """
    Lay a deal's costs on the grid, each on its own frequency.

    Commission follows ``commission_frequency``. Only costs the formula
    counted (``counted_costs``) are distributed.
    """
    months = calendar.empty_distribution()
    events: List[BoundaryEvent] = []

    parts: List[Tuple[str, Decimal, Frequency]] = [
        ("commission", commission_amount, commission_frequency)
    ]
    for cost_id, amount in counted_costs.items():
        item = cost_items.get(cost_id)
        frequency = Frequency.parse(item.frequency if item else None, Frequency.ONCE_OFF)
        parts.append((cost_id, to_decimal(amount), frequency))

    for source, amount, frequency in parts:
        result = distribute(
            amount,
            schedule,
            calendar,
            source=source,
            frequency=frequency,
            follow=income_distribution,
        )
        for key, value in result.months.items():
            months[key] += value
        events.extend(result.boundary_events)

    return DistributionResult(months=months, boundary_events=events)
