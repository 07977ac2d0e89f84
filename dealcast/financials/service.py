"""
Client financial persistence.

The forecast engine never touches the database; this module is the
collaborator that stores what it produces. A save is an idempotent,
full-replace upsert keyed by (client, financial year, product line).
Concurrent saves for the same key are last-write-wins.
"""
import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dealcast.financials.errors import DealValidationError
from dealcast.financials.models import ClientFinancial, FinancialYearSetting
from dealcast.forecast.aggregation import summarize_portfolio
from dealcast.forecast.calendar import FinancialYearSettings, build_fy_calendar
from dealcast.forecast.money import ZERO
from dealcast.forecast.products import missing_required_fields
from dealcast.forecast.types import ClientFinancialPayload, ClientFinancialRecord, Deal, PortfolioSummary

logger = logging.getLogger(__name__)

SYSTEM_TENANT = "system"


def financial_record_id(client_id: str, financial_year: str, product_line: str) -> str:
    """Composite key for a saved record; whitespace in the product line becomes ``_``."""
    slug = re.sub(r"\s+", "_", product_line.strip())
    return f"{client_id}_{financial_year}_{slug}"


def validate_deals(deals: Sequence[Deal]) -> None:
    """Raise DealValidationError listing required fields still empty, per deal."""
    missing = {}
    for deal in deals:
        labels = missing_required_fields(deal)
        if labels:
            missing[deal.id] = labels
    if missing:
        raise DealValidationError(missing)


def to_record(row: ClientFinancial) -> ClientFinancialRecord:
    """Rebuild the typed record from a stored row."""
    return ClientFinancialRecord.model_validate({
        "client_id": row.client_id,
        "client_name": row.client_name or "",
        "financial_year": row.financial_year,
        "product_line": row.product_line,
        "months": row.months or {},
        "history": row.history or {},
        "deal_details": row.deal_details or [],
        "comments": row.comments or "",
        "full_year_forecast": row.full_year_forecast,
    })


# =============================================================================
# CLIENT FINANCIALS
# =============================================================================

async def save_client_financial(
    db: AsyncSession,
    client_id: str,
    client_name: str,
    financial_year: str,
    product_line: str,
    payload: ClientFinancialPayload,
    user_id: Optional[str] = None,
) -> ClientFinancial:
    """
    Upsert one client product line's forecast.

    Deals are validated first; on failure nothing is written. When the
    payload has no ``full_year_forecast`` it is computed as YTD history plus
    every month in ``months``.
    """
    validate_deals(payload.deal_details)

    full_year_forecast = payload.full_year_forecast
    if full_year_forecast is None:
        full_year_forecast = payload.history.current_year_ytd + sum(payload.months.values(), ZERO)

    data = payload.model_dump(mode="json")
    record_id = financial_record_id(client_id, financial_year, product_line)
    now = datetime.now(timezone.utc)

    record = await db.get(ClientFinancial, record_id)
    if record is None:
        record = ClientFinancial(id=record_id, created_at=now)
        db.add(record)
        logger.info(f"Creating client financial {record_id}")
    else:
        logger.info(f"Replacing client financial {record_id}")

    record.client_id = client_id
    record.client_name = client_name
    record.financial_year = financial_year
    record.product_line = product_line
    record.history = data["history"]
    record.months = data["months"]
    record.deal_details = data["deal_details"]
    record.comments = payload.comments
    record.full_year_forecast = full_year_forecast
    record.last_updated_by = user_id
    record.updated_at = now

    await db.flush()
    return record


async def get_client_financial(
    db: AsyncSession,
    client_id: str,
    financial_year: str,
    product_line: str,
) -> Optional[ClientFinancial]:
    return await db.get(ClientFinancial, financial_record_id(client_id, financial_year, product_line))


async def list_client_financials(
    db: AsyncSession,
    client_id: str,
    financial_year: Optional[str] = None,
) -> List[ClientFinancial]:
    """All saved product lines for a client, optionally for one FY."""
    query = select(ClientFinancial).where(ClientFinancial.client_id == client_id)
    if financial_year:
        query = query.where(ClientFinancial.financial_year == financial_year)
    result = await db.execute(query.order_by(ClientFinancial.financial_year, ClientFinancial.product_line))
    return list(result.scalars().all())


async def list_financials_for_year(db: AsyncSession, financial_year: str) -> List[ClientFinancial]:
    result = await db.execute(
        select(ClientFinancial)
        .where(ClientFinancial.financial_year == financial_year)
        .order_by(ClientFinancial.client_id, ClientFinancial.product_line)
    )
    return list(result.scalars().all())


async def get_financial_summary(
    db: AsyncSession,
    financial_year: str,
    tenant_id: Optional[str] = None,
) -> PortfolioSummary:
    """Product-line, per-client and portfolio totals for every record in a FY."""
    fy_settings = await get_financial_year_settings(db, tenant_id)
    calendar = build_fy_calendar(
        fy_settings.model_copy(update={"current_financial_year": financial_year})
    )
    rows = await list_financials_for_year(db, financial_year)
    return summarize_portfolio([to_record(row) for row in rows], calendar)


# =============================================================================
# FINANCIAL YEAR SETTINGS
# =============================================================================

def _settings_from_row(row: FinancialYearSetting) -> FinancialYearSettings:
    return FinancialYearSettings(
        start_month_name=row.start_month_name,
        end_month_name=row.end_month_name,
        current_financial_year=row.current_financial_year,
        reporting_month_name=row.reporting_month_name,
        currency_symbol=row.currency_symbol,
    )


async def get_financial_year_settings(
    db: AsyncSession,
    tenant_id: Optional[str] = None,
) -> FinancialYearSettings:
    """
    Resolve a tenant's FY settings.

    Lookup order: the tenant's own row, then the system-wide row, then the
    configured defaults.
    """
    if tenant_id and tenant_id != SYSTEM_TENANT:
        row = await db.get(FinancialYearSetting, tenant_id)
        if row is not None:
            return _settings_from_row(row)

    row = await db.get(FinancialYearSetting, SYSTEM_TENANT)
    if row is not None:
        return _settings_from_row(row)

    logger.info(f"No FY settings for tenant {tenant_id or SYSTEM_TENANT}; using defaults")
    return FinancialYearSettings()


async def save_financial_year_settings(
    db: AsyncSession,
    tenant_id: str,
    fy_settings: FinancialYearSettings,
    user_id: Optional[str] = None,
) -> FinancialYearSetting:
    row = await db.get(FinancialYearSetting, tenant_id)
    if row is None:
        row = FinancialYearSetting(tenant_id=tenant_id)
        db.add(row)

    defaults = FinancialYearSettings()
    row.start_month_name = fy_settings.start_month_name or defaults.start_month_name
    row.end_month_name = fy_settings.end_month_name or defaults.end_month_name
    row.current_financial_year = fy_settings.current_financial_year or defaults.current_financial_year
    row.reporting_month_name = fy_settings.reporting_month_name
    row.currency_symbol = fy_settings.currency_symbol
    row.updated_by = user_id
    row.updated_at = datetime.now(timezone.utc)

    await db.flush()
    logger.info(f"Saved FY settings for tenant {tenant_id}: {row.current_financial_year}")
    return row
