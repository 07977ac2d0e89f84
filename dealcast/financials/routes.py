"""Client financial API routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dealcast.database import get_db
from dealcast.financials import service
from dealcast.financials.errors import DealValidationError
from dealcast.financials.models import ClientFinancial
from dealcast.financials.schemas import (
    ClientFinancialResponse,
    FinancialSummaryResponse,
    FinancialYearSettingsUpdate,
    SaveClientFinancialRequest,
    ValidationErrorResponse,
)
from dealcast.forecast.calendar import FinancialYearSettings
from dealcast.forecast.products import get_product_schema

router = APIRouter()


def _to_response(row: ClientFinancial) -> ClientFinancialResponse:
    record = service.to_record(row)
    return ClientFinancialResponse(
        **record.model_dump(exclude={"full_year_forecast"}),
        id=row.id,
        full_year_forecast=row.full_year_forecast,
        last_updated_by=row.last_updated_by,
        updated_at=row.updated_at,
    )


@router.get("/products/{product_type}/schema")
async def get_product_field_schema(product_type: str):
    """Field and cost schema for a product type's deal form."""
    schema = get_product_schema(product_type)
    if schema is None:
        raise HTTPException(status_code=404, detail=f"Unknown product type: {product_type}")
    return schema.to_dict()


@router.put(
    "/clients/{client_id}/{financial_year:path}/{product_line}",
    response_model=ClientFinancialResponse,
    responses={422: {"model": ValidationErrorResponse}},
)
async def save_client_financial(
    client_id: str,
    financial_year: str,
    product_line: str,
    data: SaveClientFinancialRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Save (upsert) one client product line's forecast.

    Replaces any previous save for the same client, FY and product line.
    Returns 422 with the missing fields per deal when validation fails.
    """
    try:
        row = await service.save_client_financial(
            db,
            client_id=client_id,
            client_name=data.client_name,
            financial_year=financial_year,
            product_line=product_line,
            payload=data,
            user_id=data.user_id,
        )
    except DealValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "missing_fields": e.missing_fields},
        )

    await db.commit()
    return _to_response(row)


@router.get("/clients/{client_id}", response_model=List[ClientFinancialResponse])
async def list_client_financials(
    client_id: str,
    financial_year: Optional[str] = Query(None, description="Limit to one financial year"),
    db: AsyncSession = Depends(get_db),
):
    """All saved product lines for a client."""
    rows = await service.list_client_financials(db, client_id, financial_year)
    if not rows:
        raise HTTPException(status_code=404, detail="No financials found for this client")
    return [_to_response(row) for row in rows]


@router.get("/summary", response_model=FinancialSummaryResponse)
async def get_financial_summary(
    financial_year: str = Query(..., description='FY label, e.g. "2025/2026"'),
    tenant_id: Optional[str] = Query(None, description="Tenant whose FY settings apply"),
    db: AsyncSession = Depends(get_db),
):
    """Per product line, per client and portfolio totals for a financial year."""
    summary = await service.get_financial_summary(db, financial_year, tenant_id)
    return FinancialSummaryResponse(financial_year=financial_year, **summary.model_dump())


@router.get("/fy-settings", response_model=FinancialYearSettings)
async def get_fy_settings(
    tenant_id: Optional[str] = Query(None, description="Tenant ID"),
    db: AsyncSession = Depends(get_db),
):
    return await service.get_financial_year_settings(db, tenant_id)


@router.put("/fy-settings", response_model=FinancialYearSettings)
async def update_fy_settings(
    data: FinancialYearSettingsUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Create or replace a tenant's financial-year settings."""
    fy_settings = FinancialYearSettings(**data.model_dump(exclude={"tenant_id", "user_id"}))
    await service.save_financial_year_settings(db, data.tenant_id, fy_settings, data.user_id)
    await db.commit()
    return fy_settings
