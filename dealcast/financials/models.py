"""
Client financial models.

ClientFinancial holds one saved forecast per (client, financial year,
product line). It is replaced wholesale on every save; there is no
field-level patching.
"""
from sqlalchemy import Column, String, DateTime, Text, Numeric, JSON, Index
from sqlalchemy.sql import func

from dealcast.database import Base


class ClientFinancial(Base):
    """
    Saved forecast for one client product line in one financial year.

    The id is the composite key ``{client_id}_{financial_year}_{product_line}``
    with whitespace in the product line replaced by underscores, so saving
    the same key twice overwrites the first save.
    """
    __tablename__ = "client_financials"

    id = Column(String, primary_key=True)

    client_id = Column(String, nullable=False, index=True)
    client_name = Column(String, nullable=True)
    financial_year = Column(String, nullable=False, index=True)
    product_line = Column(String, nullable=False)

    # {"year_minus_1": "...", ..., "monthly_actuals": {"2025-03": "..."}}
    history = Column(JSON, nullable=False, default=dict)
    # {"2025-03": "1234.56", ...} - amounts stored as strings to keep Decimal precision
    months = Column(JSON, nullable=False, default=dict)
    # List of serialized deals that produced ``months``
    deal_details = Column(JSON, nullable=False, default=list)

    comments = Column(Text, nullable=True)
    full_year_forecast = Column(Numeric(precision=15, scale=2), nullable=False, default=0)

    last_updated_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_client_financials_client_year", "client_id", "financial_year"),
    )

    def __repr__(self):
        return f"<ClientFinancial {self.id}: {self.full_year_forecast}>"


class FinancialYearSetting(Base):
    """
    Financial-year settings per tenant.

    A row with ``tenant_id = "system"`` acts as the fallback for tenants
    without their own row.
    """
    __tablename__ = "financial_year_settings"

    tenant_id = Column(String, primary_key=True)

    start_month_name = Column(String, nullable=False, default="March")
    end_month_name = Column(String, nullable=False, default="February")
    current_financial_year = Column(String, nullable=False)
    reporting_month_name = Column(String, nullable=True)
    currency_symbol = Column(String, nullable=False, default="R")

    updated_by = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<FinancialYearSetting {self.tenant_id}: {self.current_financial_year}>"
