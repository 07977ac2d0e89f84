"""
Forecast Module - Deal Financial Projection Engine.

Pure computation, leaves first:
1. build_fy_calendar() - tenant FY settings -> ordered 12-month grid
2. calculate_product_totals() - product formula -> income, costs, gross profit
3. distribute() - spread an amount over the grid by payment policy
4. apply_certainty() - weight gross profit by close probability
5. aggregate() / aggregate_client_totals() - fold deals into client totals

ForecastSession wraps these in an immutable, reducer-driven editing model.
"""

from dealcast.forecast.types import (
    BoundaryEvent,
    CalculationResult,
    ClientFinancialPayload,
    ClientFinancialRecord,
    CostItem,
    Deal,
    FinancialHistory,
    ForecastSummary,
    Frequency,
    PortfolioSummary,
    ProductLineSummary,
    ProductType,
)
from dealcast.forecast.calendar import (
    FinancialYearSettings,
    FYCalendar,
    FYMonth,
    build_fy_calendar,
    build_fy_months,
)
from dealcast.forecast.products import (
    calculate_product_totals,
    get_product_schema,
    missing_required_fields,
)
from dealcast.forecast.distribution import distribute
from dealcast.forecast.certainty import apply_certainty
from dealcast.forecast.engine import calculate_deal, calculate_deals
from dealcast.forecast.aggregation import (
    aggregate,
    aggregate_client_totals,
    summarize_by_product_line,
    summarize_portfolio,
)
from dealcast.forecast.session import ForecastSession, SessionHistory, edit

__all__ = [
    "BoundaryEvent",
    "CalculationResult",
    "ClientFinancialPayload",
    "ClientFinancialRecord",
    "CostItem",
    "Deal",
    "FinancialHistory",
    "ForecastSummary",
    "Frequency",
    "PortfolioSummary",
    "ProductLineSummary",
    "ProductType",
    "FinancialYearSettings",
    "FYCalendar",
    "FYMonth",
    "build_fy_calendar",
    "build_fy_months",
    "calculate_product_totals",
    "get_product_schema",
    "missing_required_fields",
    "distribute",
    "apply_certainty",
    "calculate_deal",
    "calculate_deals",
    "aggregate",
    "aggregate_client_totals",
    "summarize_by_product_line",
    "summarize_portfolio",
    "ForecastSession",
    "SessionHistory",
    "edit",
]
