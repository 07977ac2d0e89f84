"""
Forecast API routes.

Preview endpoints for the deal editor. Nothing here is persisted; saving
goes through the financials routes.
- GET /fy-months - the tenant's 12-month grid
- POST /deals/calculate - totals and distributions for one deal
- POST /clients/aggregate - per product line months and client totals
"""
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dealcast.database import get_db
from dealcast.financials.service import get_financial_year_settings
from dealcast.forecast.aggregation import aggregate, aggregate_client_totals, line_summary
from dealcast.forecast.calendar import FYCalendar, build_fy_calendar
from dealcast.forecast.engine import calculate_deal
from dealcast.forecast.types import (
    CalculationResult,
    ClientFinancialPayload,
    Deal,
    FinancialHistory,
    ForecastSummary,
)

router = APIRouter()


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CalculateDealRequest(BaseModel):
    deal: Deal
    tenant_id: Optional[str] = None
    financial_year: Optional[str] = Field(
        default=None,
        description="Override the tenant's current FY, e.g. \"2025/2026\""
    )


class ProductLineInput(BaseModel):
    deals: List[Deal] = Field(default_factory=list)
    history: FinancialHistory = Field(default_factory=FinancialHistory)


class AggregateClientRequest(BaseModel):
    client_id: str
    product_lines: Dict[str, ProductLineInput] = Field(default_factory=dict)
    tenant_id: Optional[str] = None
    financial_year: Optional[str] = None


class ProductLineForecast(BaseModel):
    months: Dict[str, Decimal]
    summary: ForecastSummary


class AggregateClientResponse(BaseModel):
    client_id: str
    financial_year: str
    product_lines: Dict[str, ProductLineForecast]
    summary: ForecastSummary


async def _calendar_for(
    db: AsyncSession,
    tenant_id: Optional[str],
    financial_year: Optional[str] = None,
) -> FYCalendar:
    fy_settings = await get_financial_year_settings(db, tenant_id)
    if financial_year:
        fy_settings = fy_settings.model_copy(update={"current_financial_year": financial_year})
    return build_fy_calendar(fy_settings)


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/fy-months")
async def get_fy_months(
    tenant_id: Optional[str] = Query(None, description="Tenant ID"),
    financial_year: Optional[str] = Query(None, description="Override the current FY"),
    db: AsyncSession = Depends(get_db),
):
    """The tenant's financial-year grid, marking actual vs remaining months."""
    calendar = await _calendar_for(db, tenant_id, financial_year)
    return {
        "financial_year": calendar.financial_year,
        "reporting_month": calendar.reporting_month.key,
        "months": [month.to_dict() for month in calendar],
    }


@router.post("/deals/calculate", response_model=CalculationResult)
async def calculate_deal_preview(
    data: CalculateDealRequest,
    db: AsyncSession = Depends(get_db),
):
    """Recompute one deal as it is being edited."""
    calendar = await _calendar_for(db, data.tenant_id, data.financial_year)
    return calculate_deal(data.deal, calendar)


@router.post("/clients/aggregate", response_model=AggregateClientResponse)
async def aggregate_client_preview(
    data: AggregateClientRequest,
    db: AsyncSession = Depends(get_db),
):
    """Months per product line plus YTD / forecast / FY totals for the client."""
    calendar = await _calendar_for(db, data.tenant_id, data.financial_year)

    lines: Dict[str, ProductLineForecast] = {}
    payloads: List[ClientFinancialPayload] = []
    for product_line, line in data.product_lines.items():
        payload = ClientFinancialPayload(
            months=aggregate(line.deals, calendar),
            history=line.history,
        )
        payloads.append(payload)
        lines[product_line] = ProductLineForecast(
            months=payload.months,
            summary=line_summary(payload, calendar),
        )

    return AggregateClientResponse(
        client_id=data.client_id,
        financial_year=calendar.financial_year,
        product_lines=lines,
        summary=aggregate_client_totals(payloads, calendar),
    )
