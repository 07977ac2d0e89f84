"""
Forecast Engine Types - Core Data Structures.

- ProductType / Frequency: closed tag sets the formula and distribution
  registries are keyed on
- Deal / CostItem: a single forecastable commitment as entered by a user
- CalculationResult: everything derived from one deal (never stored)
- FinancialHistory / ClientFinancialPayload: the shape persisted per
  (client, financial year, product line)
"""

import logging
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dealcast.config import settings
from dealcast.forecast.money import ZERO, HUNDRED, to_decimal
from dealcast.models.base import generate_id

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS
# =============================================================================

class ProductType(str, Enum):
    """Product lines the engine has formulas for."""
    LEARNERSHIP = "learnerships"
    COMPLIANCE = "compliance"
    OTHER_COURSES = "otherCourses"
    TAP_BUSINESS = "tapBusiness"

    @property
    def product_line(self) -> str:
        return PRODUCT_LINE_NAMES[self]

    @classmethod
    def resolve(cls, value: Any) -> Optional["ProductType"]:
        """Resolve a tag or a product-line name; None when unknown."""
        if isinstance(value, ProductType):
            return value
        if value is None:
            return None
        text = str(value).strip()
        for member in cls:
            if text == member.value or text.lower() == member.value.lower():
                return member
        return PRODUCT_LINE_LOOKUP.get(text.lower())


PRODUCT_LINE_NAMES: Dict[ProductType, str] = {
    ProductType.LEARNERSHIP: "Learnerships",
    ProductType.COMPLIANCE: "Compliance",
    ProductType.OTHER_COURSES: "Other Courses",
    ProductType.TAP_BUSINESS: "TAP Business",
}

PRODUCT_LINE_LOOKUP: Dict[str, ProductType] = {
    "learnerships": ProductType.LEARNERSHIP,
    "learnership": ProductType.LEARNERSHIP,
    "compliance": ProductType.COMPLIANCE,
    "compliance training": ProductType.COMPLIANCE,
    "other courses": ProductType.OTHER_COURSES,
    "tap business": ProductType.TAP_BUSINESS,
}


def product_type_for_line(product_line: str) -> ProductType:
    """Map a stored product-line name to its product type. Unknown -> Other Courses."""
    return ProductType.resolve(product_line) or ProductType.OTHER_COURSES


class Frequency(str, Enum):
    """Payment / cost distribution policies."""
    ONCE_OFF = "Once-off"
    ANNUAL = "Annual"
    MONTHLY = "Monthly"
    WITH_INCOME = "With Income"
    END_OF_CONTRACT = "End of Contract"
    END_OF_LEARNERSHIP = "End of Learnership"
    MILESTONE = "Milestone"

    @classmethod
    def parse(cls, value: Any, default: "Frequency") -> "Frequency":
        """Read a frequency from a form value, tolerating legacy spellings."""
        if isinstance(value, Frequency):
            return value
        if value is None or value == "":
            return default
        normalised = str(value).strip().lower().replace("_", " ").replace("-", " ")
        frequency = FREQUENCY_ALIASES.get(normalised)
        if frequency is None:
            logger.warning(f"Unknown frequency {value!r}, using {default.value}")
            return default
        return frequency


FREQUENCY_ALIASES: Dict[str, Frequency] = {
    "once off": Frequency.ONCE_OFF,
    "once": Frequency.ONCE_OFF,
    "upfront": Frequency.ONCE_OFF,
    "annual": Frequency.ANNUAL,
    "annually": Frequency.ANNUAL,
    "monthly": Frequency.MONTHLY,
    "with income": Frequency.WITH_INCOME,
    "end of contract": Frequency.END_OF_CONTRACT,
    "end of program": Frequency.END_OF_CONTRACT,
    "end of programme": Frequency.END_OF_CONTRACT,
    "end of learnership": Frequency.END_OF_LEARNERSHIP,
    "milestone": Frequency.MILESTONE,
}


# =============================================================================
# DEAL INPUT
# =============================================================================

class CostItem(BaseModel):
    """A fixed cost attached to a deal, with its own distribution policy."""
    model_config = ConfigDict(frozen=True)

    amount: Decimal = ZERO
    frequency: str = Frequency.ONCE_OFF.value
    label: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @field_validator("frequency", mode="before")
    @classmethod
    def _coerce_frequency(cls, value: Any) -> str:
        if value is None or value == "":
            return Frequency.ONCE_OFF.value
        return str(value)


class Deal(BaseModel):
    """
    A single forecastable commitment within a product line.

    ``field_values`` holds the product-specific inputs keyed by field id
    (``learnerCount``, ``trainingDate`` ...). ``product_type`` is kept as the
    raw tag so an unknown value survives round trips instead of failing.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: generate_id("deal"))
    product_type: str
    deal_name: str = ""
    field_values: Dict[str, Any] = Field(default_factory=dict)
    cost_items: Dict[str, CostItem] = Field(default_factory=dict)
    certainty_percentage: Decimal = Field(
        default_factory=lambda: Decimal(settings.DEFAULT_CERTAINTY_PERCENTAGE)
    )
    comments: str = ""

    @field_validator("product_type", mode="before")
    @classmethod
    def _coerce_product_type(cls, value: Any) -> str:
        if isinstance(value, ProductType):
            return value.value
        return "" if value is None else str(value)

    @field_validator("certainty_percentage", mode="before")
    @classmethod
    def _clamp_certainty(cls, value: Any) -> Decimal:
        default = Decimal(settings.DEFAULT_CERTAINTY_PERCENTAGE)
        if value is None or value == "":
            return default
        certainty = to_decimal(value, default)
        if certainty < ZERO or certainty > HUNDRED:
            logger.warning(f"Certainty {certainty} outside 0-100, clamping")
            certainty = min(max(certainty, ZERO), HUNDRED)
        return certainty

    @property
    def product(self) -> Optional[ProductType]:
        return ProductType.resolve(self.product_type)


# =============================================================================
# CALCULATION OUTPUT
# =============================================================================

class BoundaryEvent(BaseModel):
    """An amount that could not be placed because its month is outside the FY grid."""
    source: str  # "income", "commission", a cost id, or "gross_profit"
    month_key: Optional[str] = None
    amount: Decimal
    reason: str


class CalculationResult(BaseModel):
    """
    Everything derived from one deal on one FY grid.

    ``monthly_distribution`` is the authoritative series: certainty-adjusted
    gross profit by month. Income and cost series are kept for display.
    """
    deal_id: str
    product_type: str
    total_income: Decimal = ZERO
    total_costs: Decimal = ZERO
    commission_amount: Decimal = ZERO
    gross_profit: Decimal = ZERO
    certainty_percentage: Decimal = HUNDRED
    adjusted_gross_profit: Decimal = ZERO
    gp_margin_percent: Decimal = ZERO
    monthly_income: Decimal = ZERO
    cost_breakdown: Dict[str, Decimal] = Field(default_factory=dict)

    monthly_distribution: Dict[str, Decimal] = Field(default_factory=dict)
    income_distribution: Dict[str, Decimal] = Field(default_factory=dict)
    cost_distribution: Dict[str, Decimal] = Field(default_factory=dict)
    boundary_events: List[BoundaryEvent] = Field(default_factory=list)

    formula: str = ""
    distribution_description: str = ""
    unsupported: bool = False


class ForecastSummary(BaseModel):
    """Display-ready totals for a client or product line."""
    ytd_total: Decimal = ZERO
    forecast_total: Decimal = ZERO
    fy_total: Decimal = ZERO


# =============================================================================
# PERSISTED SHAPE
# =============================================================================

class FinancialHistory(BaseModel):
    """Prior-year and year-to-date actuals, supplied externally."""
    year_minus_1: Decimal = ZERO
    year_minus_2: Decimal = ZERO
    year_minus_3: Decimal = ZERO
    current_year_ytd: Decimal = ZERO
    monthly_actuals: Dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("year_minus_1", "year_minus_2", "year_minus_3", "current_year_ytd", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Decimal:
        return to_decimal(value)


class ClientFinancialPayload(BaseModel):
    """What gets saved for one (client, financial year, product line)."""
    months: Dict[str, Decimal] = Field(default_factory=dict)
    history: FinancialHistory = Field(default_factory=FinancialHistory)
    deal_details: List[Deal] = Field(default_factory=list)
    comments: str = ""
    full_year_forecast: Optional[Decimal] = None


class ScheduleDates(BaseModel):
    """Resolved scheduling inputs for one distribution."""
    frequency: Frequency
    anchor_date: Optional[date] = None
    duration_months: int = 1
    end_date: Optional[date] = None
    horizon_months: Optional[int] = None  # months from the anchor to the grid end


class ClientFinancialRecord(ClientFinancialPayload):
    """A saved payload with the key it is stored under."""
    client_id: str
    client_name: str = ""
    financial_year: str
    product_line: str


class ProductLineSummary(ForecastSummary):
    """Totals for one product line across every client."""
    product_line: str
    client_count: int = 0
    year_minus_1: Decimal = ZERO
    year_minus_2: Decimal = ZERO
    year_minus_3: Decimal = ZERO


class PortfolioSummary(BaseModel):
    """Tenant-wide rollup of saved client financials."""
    totals: ForecastSummary = Field(default_factory=ForecastSummary)
    clients: Dict[str, ForecastSummary] = Field(default_factory=dict)
    product_lines: Dict[str, ProductLineSummary] = Field(default_factory=dict)
    monthly_totals: Dict[str, Decimal] = Field(default_factory=dict)
