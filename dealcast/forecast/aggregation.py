"""
Aggregator - folds per-deal distributions into product-line, client and
portfolio totals.

All sums are plain Decimal addition keyed by month, so the order deals or
product lines arrive in never changes a total. A month missing from one
series counts as 0.
"""
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

from dealcast.forecast.calendar import FYCalendar
from dealcast.forecast.engine import calculate_deal
from dealcast.forecast.money import ZERO
from dealcast.forecast.types import (
    ClientFinancialPayload,
    ClientFinancialRecord,
    Deal,
    ForecastSummary,
    PortfolioSummary,
    ProductLineSummary,
)


def sum_distributions(
    distributions: Iterable[Mapping[str, Decimal]],
    keys: Optional[Iterable[str]] = None,
) -> Dict[str, Decimal]:
    """Add month-keyed series together. ``keys`` pre-seeds months at 0."""
    totals: Dict[str, Decimal] = {key: ZERO for key in (keys or ())}
    for distribution in distributions:
        for key, amount in distribution.items():
            totals[key] = totals.get(key, ZERO) + amount
    return totals


def aggregate(deals: Iterable[Deal], calendar: FYCalendar) -> Dict[str, Decimal]:
    """Sum the adjusted-GP monthly distribution of every deal."""
    return sum_distributions(
        (calculate_deal(deal, calendar).monthly_distribution for deal in deals),
        keys=calendar.keys,
    )


def ytd_actual(payload: ClientFinancialPayload, calendar: FYCalendar) -> Decimal:
    """
    Year-to-date actuals for one product line.

    Per-month actuals win when present (summed over the actual months
    only); otherwise the single ``current_year_ytd`` figure is used.
    """
    history = payload.history
    if history.monthly_actuals:
        return sum(
            (history.monthly_actuals.get(month.key, ZERO) for month in calendar.ytd_months),
            ZERO,
        )
    return history.current_year_ytd


def line_summary(payload: ClientFinancialPayload, calendar: FYCalendar) -> ForecastSummary:
    ytd_total = ytd_actual(payload, calendar)
    forecast_total = sum(
        (payload.months.get(key, ZERO) for key in calendar.remaining_keys),
        ZERO,
    )
    return ForecastSummary(
        ytd_total=ytd_total,
        forecast_total=forecast_total,
        fy_total=ytd_total + forecast_total,
    )


def combine_summaries(summaries: Iterable[ForecastSummary]) -> ForecastSummary:
    ytd_total = ZERO
    forecast_total = ZERO
    for summary in summaries:
        ytd_total += summary.ytd_total
        forecast_total += summary.forecast_total
    return ForecastSummary(
        ytd_total=ytd_total,
        forecast_total=forecast_total,
        fy_total=ytd_total + forecast_total,
    )


def aggregate_client_totals(
    product_lines: Iterable[ClientFinancialPayload],
    calendar: FYCalendar,
) -> ForecastSummary:
    """
    YTD actuals plus remaining-month forecast across a client's product lines.

    ``fy_total`` is always ``ytd_total + forecast_total``.
    """
    return combine_summaries(line_summary(line, calendar) for line in product_lines)


def summarize_by_product_line(
    records: Iterable[ClientFinancialRecord],
    calendar: FYCalendar,
) -> Dict[str, ProductLineSummary]:
    """Totals per product line across every client's saved records."""
    summaries: Dict[str, ProductLineSummary] = {}
    clients: Dict[str, set] = {}

    for record in records:
        product_line = record.product_line or "Other"
        line = line_summary(record, calendar)
        current = summaries.get(product_line) or ProductLineSummary(product_line=product_line)
        clients.setdefault(product_line, set()).add(record.client_id)

        ytd_total = current.ytd_total + line.ytd_total
        forecast_total = current.forecast_total + line.forecast_total
        summaries[product_line] = ProductLineSummary(
            product_line=product_line,
            ytd_total=ytd_total,
            forecast_total=forecast_total,
            fy_total=ytd_total + forecast_total,
            client_count=len(clients[product_line]),
            year_minus_1=current.year_minus_1 + record.history.year_minus_1,
            year_minus_2=current.year_minus_2 + record.history.year_minus_2,
            year_minus_3=current.year_minus_3 + record.history.year_minus_3,
        )

    return summaries


def summarize_portfolio(
    records: Iterable[ClientFinancialRecord],
    calendar: FYCalendar,
) -> PortfolioSummary:
    """Per-client, per-product-line and tenant-wide totals for a financial year."""
    records = list(records)

    by_client: Dict[str, list] = {}
    for record in records:
        by_client.setdefault(record.client_id, []).append(record)

    clients = {
        client_id: aggregate_client_totals(lines, calendar)
        for client_id, lines in by_client.items()
    }

    return PortfolioSummary(
        totals=combine_summaries(clients.values()),
        clients=clients,
        product_lines=summarize_by_product_line(records, calendar),
        monthly_totals=sum_distributions((r.months for r in records), keys=calendar.keys),
    )
