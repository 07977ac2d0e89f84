"""
Unit Tests for the Aggregator.

Tests:
1. Deal aggregation is key-by-key and order-independent
2. Client totals: YTD actuals + remaining-month forecast
3. Product-line and portfolio summaries across clients
"""

import random
from decimal import Decimal

import pytest

from dealcast.forecast.aggregation import (
    aggregate,
    aggregate_client_totals,
    sum_distributions,
    summarize_by_product_line,
    summarize_portfolio,
)
from dealcast.forecast.types import (
    ClientFinancialPayload,
    ClientFinancialRecord,
    FinancialHistory,
)


def _record(client_id, product_line, months=None, **history):
    return ClientFinancialRecord(
        client_id=client_id,
        financial_year="2025/2026",
        product_line=product_line,
        months=months or {},
        history=FinancialHistory(**history),
    )


# =============================================================================
# TEST: DEAL AGGREGATION
# =============================================================================

class TestAggregateDeals:
    """Summing deals' monthly distributions."""

    def test_sums_key_by_key(self, compliance_deal, tap_annual_deal, calendar):
        totals = aggregate([compliance_deal, tap_annual_deal], calendar)
        assert totals["2025-06"] == Decimal("30000")
        assert totals["2025-04"] == Decimal("90000")
        assert sum(totals.values()) == Decimal("120000")

    def test_order_independent(
        self, learnership_deal, compliance_deal, tap_annual_deal, costed_course_deal, calendar
    ):
        deals = [learnership_deal, compliance_deal, tap_annual_deal, costed_course_deal]
        expected = aggregate(deals, calendar)

        shuffled = list(deals)
        random.Random(7).shuffle(shuffled)
        assert aggregate(shuffled, calendar) == expected
        assert aggregate(list(reversed(deals)), calendar) == expected

    def test_no_deals_gives_zero_grid(self, calendar):
        totals = aggregate([], calendar)
        assert list(totals) == list(calendar.keys)
        assert all(v == 0 for v in totals.values())

    def test_absent_key_counts_as_zero(self):
        totals = sum_distributions([
            {"2025-03": Decimal("10")},
            {"2025-04": Decimal("5")},
            {"2025-03": Decimal("1")},
        ])
        assert totals == {"2025-03": Decimal("11"), "2025-04": Decimal("5")}


# =============================================================================
# TEST: CLIENT TOTALS
# =============================================================================

class TestClientTotals:
    """YTD from history, forecast from remaining months only."""

    def test_ytd_plus_remaining_forecast(self, calendar):
        line = ClientFinancialPayload(
            months={
                "2025-04": Decimal("1000"),  # actual month, not forecast
                "2025-10": Decimal("2000"),
                "2026-01": Decimal("3000"),
            },
            history=FinancialHistory(current_year_ytd=Decimal("50000")),
        )
        summary = aggregate_client_totals([line], calendar)

        assert summary.ytd_total == Decimal("50000")
        assert summary.forecast_total == Decimal("5000")
        assert summary.fy_total == Decimal("55000")

    def test_monthly_actuals_preferred(self, calendar):
        line = ClientFinancialPayload(
            history=FinancialHistory(
                current_year_ytd=Decimal("99999"),
                monthly_actuals={
                    "2025-03": Decimal("100"),
                    "2025-08": Decimal("200"),
                    "2025-09": Decimal("999"),  # remaining month, ignored
                },
            ),
        )
        summary = aggregate_client_totals([line], calendar)
        assert summary.ytd_total == Decimal("300")

    def test_lines_order_independent(self, calendar):
        lines = [
            ClientFinancialPayload(
                months={"2025-09": Decimal(i * 100)},
                history=FinancialHistory(current_year_ytd=Decimal(i)),
            )
            for i in range(1, 6)
        ]
        forward = aggregate_client_totals(lines, calendar)
        backward = aggregate_client_totals(list(reversed(lines)), calendar)

        assert forward == backward
        assert forward.ytd_total == Decimal("15")
        assert forward.forecast_total == Decimal("1500")

    def test_empty_client(self, calendar):
        summary = aggregate_client_totals([], calendar)
        assert summary.fy_total == 0


# =============================================================================
# TEST: SUMMARIES
# =============================================================================

class TestSummaries:
    """Across clients: per product line and portfolio."""

    @pytest.fixture
    def records(self):
        return [
            _record("client_a", "Learnerships", {"2025-10": Decimal("1000")},
                    current_year_ytd="500", year_minus_1="4000"),
            _record("client_b", "Learnerships", {"2025-11": Decimal("2000")},
                    current_year_ytd="250", year_minus_1="1000", year_minus_2="300"),
            _record("client_a", "Compliance", {"2025-12": Decimal("700")},
                    current_year_ytd="100"),
        ]

    def test_by_product_line(self, records, calendar):
        summaries = summarize_by_product_line(records, calendar)

        learnerships = summaries["Learnerships"]
        assert learnerships.client_count == 2
        assert learnerships.ytd_total == Decimal("750")
        assert learnerships.forecast_total == Decimal("3000")
        assert learnerships.fy_total == Decimal("3750")
        assert learnerships.year_minus_1 == Decimal("5000")
        assert learnerships.year_minus_2 == Decimal("300")

        assert summaries["Compliance"].client_count == 1

    def test_portfolio(self, records, calendar):
        portfolio = summarize_portfolio(records, calendar)

        assert portfolio.clients["client_a"].fy_total == Decimal("2300")
        assert portfolio.clients["client_b"].fy_total == Decimal("2250")
        assert portfolio.totals.fy_total == Decimal("4550")
        assert portfolio.monthly_totals["2025-10"] == Decimal("1000")
        assert portfolio.monthly_totals["2025-03"] == 0

    def test_portfolio_order_independent(self, records, calendar):
        assert summarize_portfolio(records, calendar) == summarize_portfolio(
            list(reversed(records)), calendar
        )
