"""
Deal Projection Engine - pure computation from deal inputs to monthly figures.

Flow for one deal:
1. Product formula -> total income, costs, gross profit
2. Income distributed on the deal's payment schedule
3. Costs distributed on their own frequencies (commission follows income
   unless told otherwise)
4. Gross profit weighted by certainty

The authoritative monthly series is certainty-adjusted gross profit:
``c/100 x (income[m] - costs[m])`` for each month. Deals scheduled as
Milestone instead split adjusted gross profit 40/30/30 across start,
midpoint and end. Income and cost series are returned as intermediates.

Nothing here touches the database; the same deal and grid always give the
same result.
"""
import logging
from typing import Iterable, List

from dealcast.forecast.calendar import FYCalendar
from dealcast.forecast.certainty import apply_certainty
from dealcast.forecast.distribution import distribute, distribute_costs, resolve_schedule
from dealcast.forecast.products import calculate_product_totals, get_formula
from dealcast.forecast.types import CalculationResult, Deal, Frequency, ScheduleDates

logger = logging.getLogger(__name__)


def _describe_schedule(schedule: ScheduleDates, monthly_income) -> str:
    start = schedule.anchor_date.isoformat() if schedule.anchor_date else "TBD"
    if schedule.frequency == Frequency.MONTHLY:
        return f"R{monthly_income}/month over {schedule.duration_months} months from {start}"
    if schedule.frequency == Frequency.ANNUAL:
        return f"Annual payment on {start}"
    if schedule.frequency == Frequency.MILESTONE:
        end = schedule.end_date.isoformat() if schedule.end_date else "TBD"
        return f"Milestones 40/30/30 from {start} to {end}"
    return f"Once-off payment on {start}"


def calculate_deal(deal: Deal, calendar: FYCalendar) -> CalculationResult:
    """
    Compute totals and monthly distributions for a single deal.

    Never raises for bad input; unknown product types give a zeroed result
    with ``unsupported`` set.
    """
    totals = calculate_product_totals(deal.product_type, deal.field_values, deal.cost_items)

    if totals.unsupported:
        empty = calendar.empty_distribution()
        return CalculationResult(
            deal_id=deal.id,
            product_type=deal.product_type,
            certainty_percentage=deal.certainty_percentage,
            monthly_distribution=dict(empty),
            income_distribution=dict(empty),
            cost_distribution=dict(empty),
            unsupported=True,
        )

    formula = get_formula(deal.product_type)
    schedule = resolve_schedule(formula.income_schedule(deal.field_values), calendar)

    income = distribute(totals.total_income, schedule, calendar, source="income")

    commission_frequency = Frequency.parse(
        deal.field_values.get("commissionFrequency"), Frequency.WITH_INCOME
    )
    costs = distribute_costs(
        deal.cost_items,
        totals.cost_breakdown,
        totals.commission_amount,
        commission_frequency,
        schedule,
        calendar,
        income.months,
    )

    certainty = deal.certainty_percentage
    adjusted_gross_profit = apply_certainty(totals.gross_profit, certainty)
    boundary_events = income.boundary_events + costs.boundary_events

    if schedule.frequency == Frequency.MILESTONE:
        gp_split = distribute(adjusted_gross_profit, schedule, calendar, source="gross_profit")
        monthly = gp_split.months
        boundary_events = boundary_events + gp_split.boundary_events
    else:
        monthly = {
            key: apply_certainty(income.months[key] - costs.months[key], certainty)
            for key in calendar.keys
        }

    return CalculationResult(
        deal_id=deal.id,
        product_type=deal.product_type,
        total_income=totals.total_income,
        total_costs=totals.total_costs,
        commission_amount=totals.commission_amount,
        gross_profit=totals.gross_profit,
        certainty_percentage=certainty,
        adjusted_gross_profit=adjusted_gross_profit,
        gp_margin_percent=totals.gp_margin_percent,
        monthly_income=totals.monthly_income,
        cost_breakdown=totals.cost_breakdown,
        monthly_distribution=monthly,
        income_distribution=income.months,
        cost_distribution=costs.months,
        boundary_events=boundary_events,
        formula=totals.formula,
        distribution_description=_describe_schedule(schedule, totals.monthly_income),
    )


def calculate_deals(deals: Iterable[Deal], calendar: FYCalendar) -> List[CalculationResult]:
    results = [calculate_deal(deal, calendar) for deal in deals]
    unsupported = [r.deal_id for r in results if r.unsupported]
    if unsupported:
        logger.warning(f"{len(unsupported)} deal(s) skipped as unsupported: {unsupported}")
    return results
