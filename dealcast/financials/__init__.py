"""
Financials Module - persistence collaborator for the forecast engine.

Stores one ClientFinancial per (client, financial year, product line) and
resolves tenant financial-year settings.
"""

from dealcast.financials.errors import DealValidationError
from dealcast.financials.models import ClientFinancial, FinancialYearSetting

__all__ = [
    "DealValidationError",
    "ClientFinancial",
    "FinancialYearSetting",
]
