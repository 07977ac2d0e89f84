"""
Pydantic schemas for client financial records and FY settings.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from dealcast.forecast.types import (
    ClientFinancialPayload,
    ClientFinancialRecord,
    ForecastSummary,
    ProductLineSummary,
)


class SaveClientFinancialRequest(ClientFinancialPayload):
    """Body of a save: the payload plus who is saving it."""
    client_name: str = ""
    user_id: Optional[str] = Field(
        default=None,
        description="User performing the save; stored as last_updated_by"
    )


class ClientFinancialResponse(ClientFinancialRecord):
    """A stored record as returned to collaborators."""
    id: str
    full_year_forecast: Optional[Decimal] = None
    last_updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class ValidationErrorResponse(BaseModel):
    """422 body when required deal fields are missing."""
    message: str
    missing_fields: Dict[str, List[str]] = Field(default_factory=dict)


class FinancialYearSettingsUpdate(BaseModel):
    """Upsert body for a tenant's financial-year settings."""
    tenant_id: str = "system"
    start_month_name: str = Field(default="March", description="First month of the FY")
    end_month_name: str = Field(default="February", description="Last month of the FY")
    current_financial_year: str = Field(..., description='FY label, e.g. "2025/2026"')
    reporting_month_name: Optional[str] = Field(
        default=None,
        description="Last month with actuals; defaults to the end month"
    )
    currency_symbol: str = "R"
    user_id: Optional[str] = None


class FinancialSummaryResponse(BaseModel):
    """Tenant-wide summary for one financial year."""
    financial_year: str
    totals: ForecastSummary
    clients: Dict[str, ForecastSummary] = Field(default_factory=dict)
    product_lines: Dict[str, ProductLineSummary] = Field(default_factory=dict)
    monthly_totals: Dict[str, Decimal] = Field(default_factory=dict)
