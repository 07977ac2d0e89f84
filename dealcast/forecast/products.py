"""
Product Formula Set.

One formula per product type, each turning a deal's field values and cost
items into income, costs and gross profit, plus the payment schedule its
income follows. Formulas are looked up through ``FORMULAS``; adding a
product type means adding a schema and a formula class here.

Formulas never raise on bad input: blanks and junk read as 0.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dealcast.forecast.money import (
    ZERO,
    HUNDRED,
    months_between,
    parse_date,
    to_decimal,
    to_int,
)
from dealcast.forecast.types import CostItem, Deal, Frequency, ProductType, ScheduleDates

logger = logging.getLogger(__name__)


# =============================================================================
# FIELD SCHEMAS
# =============================================================================

@dataclass(frozen=True)
class FieldSpec:
    """One input on a product's deal form."""
    id: str
    label: str
    type: str  # "text" | "number" | "date" | "select"
    required: bool = False
    default: Any = None
    min: Optional[int] = None
    max: Optional[int] = None
    options: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "required": self.required,
            "default": self.default,
            "min": self.min,
            "max": self.max,
            "options": list(self.options),
        }


@dataclass(frozen=True)
class ProductSchema:
    product_type: ProductType
    name: str
    fields: Tuple[FieldSpec, ...]
    cost_fields: Tuple[FieldSpec, ...]
    frequency_options: Tuple[str, ...]

    @property
    def cost_ids(self) -> Tuple[str, ...]:
        return tuple(f.id for f in self.cost_fields if f.id != "commissionPercentage")

    @property
    def required_fields(self) -> List[FieldSpec]:
        return [f for f in self.fields if f.required]

    def to_dict(self) -> dict:
        return {
            "product_type": self.product_type.value,
            "name": self.name,
            "fields": [f.to_dict() for f in self.fields],
            "cost_fields": [f.to_dict() for f in self.cost_fields],
            "frequency_options": list(self.frequency_options),
        }


_DEAL_NAME = FieldSpec("dealName", "Deal Name", "text", required=True)
_DESCRIPTION = FieldSpec("description", "Description", "text")
_COMMISSION = FieldSpec("commissionPercentage", "Commission %", "number", default=5, min=0, max=100)
_CUSTOM_COST = FieldSpec("customCost", "Custom Cost Amount", "number", default=0, min=0)


def _certainty(default: int) -> FieldSpec:
    return FieldSpec("certaintyPercentage", "Certainty %", "number", default=default, min=0, max=100)


def _course_cost_fields() -> Tuple[FieldSpec, ...]:
    return (
        _COMMISSION,
        FieldSpec("travelCost", "Travel Cost", "number", default=0, min=0),
        FieldSpec("manualsCost", "Manuals Cost", "number", default=0, min=0),
        FieldSpec("accommodationCost", "Accommodation Cost", "number", default=0, min=0),
        FieldSpec("accreditationCost", "Accreditation Cost", "number", default=0, min=0),
        _CUSTOM_COST,
    )


_COST_FREQUENCIES = tuple(
    f.value for f in (
        Frequency.ONCE_OFF,
        Frequency.MONTHLY,
        Frequency.WITH_INCOME,
        Frequency.END_OF_LEARNERSHIP,
        Frequency.ANNUAL,
    )
)

PRODUCT_SCHEMAS: Dict[ProductType, ProductSchema] = {
    ProductType.LEARNERSHIP: ProductSchema(
        product_type=ProductType.LEARNERSHIP,
        name="Learnerships",
        fields=(
            _DEAL_NAME,
            _certainty(80),
            _DESCRIPTION,
            FieldSpec("fundingType", "Funding Type", "select", options=("SETA", "Self-funded", "Mixed")),
            FieldSpec("learnerCount", "Number of Learners", "number", required=True, min=0),
            FieldSpec("costPerLearner", "Cost per Learner (R)", "number", required=True, min=0),
            FieldSpec("paymentStartDate", "Payment Start Date", "date", required=True),
            FieldSpec(
                "paymentFrequency", "Payment Frequency", "select",
                default=Frequency.MONTHLY.value,
                options=(Frequency.MONTHLY.value, Frequency.ONCE_OFF.value,
                         Frequency.ANNUAL.value, Frequency.MILESTONE.value),
            ),
            FieldSpec("paymentMonths", "Payment Months", "number", default=12, min=1, max=36),
        ),
        cost_fields=(
            FieldSpec("facilitatorCost", "Facilitator Cost", "number", default=0, min=0),
            _COMMISSION,
            FieldSpec("travelCost", "Travel Cost", "number", default=0, min=0),
            FieldSpec("assessorCost", "Assessor Cost", "number", default=0, min=0),
            FieldSpec("moderatorCost", "Moderator Cost", "number", default=0, min=0),
            FieldSpec("otherCost", "Other Cost", "number", default=0, min=0),
            _CUSTOM_COST,
        ),
        frequency_options=_COST_FREQUENCIES,
    ),
    ProductType.COMPLIANCE: ProductSchema(
        product_type=ProductType.COMPLIANCE,
        name="Compliance",
        fields=(
            _DEAL_NAME,
            _certainty(100),
            _DESCRIPTION,
            FieldSpec(
                "courseName", "Course Name", "select",
                options=("First Aid Level 1", "First Aid Level 2", "Fire Safety",
                         "OHS Representative", "Custom"),
            ),
            FieldSpec("customCourseName", "Custom Course Name", "text"),
            FieldSpec("trainingDate", "Training Date", "date", required=True),
            FieldSpec("numberOfTrainees", "Number of Trainees", "number", required=True, min=0),
            FieldSpec("pricePerPerson", "Price per Person (R)", "number", required=True, min=0),
        ),
        cost_fields=_course_cost_fields(),
        frequency_options=(Frequency.ONCE_OFF.value, Frequency.MONTHLY.value, Frequency.WITH_INCOME.value),
    ),
    ProductType.OTHER_COURSES: ProductSchema(
        product_type=ProductType.OTHER_COURSES,
        name="Other Courses",
        fields=(
            _DEAL_NAME,
            _certainty(80),
            _DESCRIPTION,
            FieldSpec("courseName", "Course Name", "text", required=True),
            FieldSpec("trainingDate", "Training Date", "date", required=True),
            FieldSpec("numberOfTrainees", "Number of Trainees", "number", required=True, min=0),
            FieldSpec("pricePerPerson", "Price per Person (R)", "number", required=True, min=0),
        ),
        cost_fields=_course_cost_fields(),
        frequency_options=(Frequency.ONCE_OFF.value, Frequency.WITH_INCOME.value),
    ),
    ProductType.TAP_BUSINESS: ProductSchema(
        product_type=ProductType.TAP_BUSINESS,
        name="TAP Business",
        fields=(
            _DEAL_NAME,
            _certainty(90),
            _DESCRIPTION,
            FieldSpec("numberOfEmployees", "Number of Employees", "number", required=True, min=0),
            FieldSpec("costPerEmployeePerMonth", "Cost per Employee per Month (R)", "number", required=True, min=0),
            FieldSpec(
                "paymentType", "Payment Type", "select",
                default=Frequency.MONTHLY.value,
                options=(Frequency.MONTHLY.value, Frequency.ANNUAL.value),
            ),
            FieldSpec("paymentStartDate", "Payment Start Date", "date", required=True),
            FieldSpec("contractMonths", "Contract Months", "number", default=12, min=1, max=36),
        ),
        cost_fields=(_COMMISSION, _CUSTOM_COST),
        frequency_options=(Frequency.ONCE_OFF.value, Frequency.MONTHLY.value, Frequency.WITH_INCOME.value),
    ),
}


def get_product_schema(product_type: Any) -> Optional[ProductSchema]:
    product = ProductType.resolve(product_type)
    return PRODUCT_SCHEMAS.get(product) if product else None


# =============================================================================
# FORMULAS
# =============================================================================

@dataclass
class ProductTotals:
    """Income / cost / GP totals for one deal."""
    total_income: Decimal = ZERO
    total_costs: Decimal = ZERO
    commission_amount: Decimal = ZERO
    gross_profit: Decimal = ZERO
    monthly_income: Decimal = ZERO
    cost_breakdown: Dict[str, Decimal] = field(default_factory=dict)
    formula: str = ""
    unsupported: bool = False

    @property
    def gp_margin_percent(self) -> Decimal:
        if self.total_income == 0:
            return ZERO
        return self.gross_profit / self.total_income * HUNDRED


def _value(field_values: Mapping[str, Any], field_id: str) -> Decimal:
    return to_decimal(field_values.get(field_id))


def _is_counted_cost(cost_id: str, schema_cost_ids: Tuple[str, ...]) -> bool:
    return cost_id in schema_cost_ids or cost_id.lower().startswith("custom")


class ProductFormula(ABC):
    """
    Base class for a product's income/cost formula.

    Subclasses supply the income calculation and the schedule income is
    paid on; commission and fixed costs are shared.
    """

    def __init__(self, product_type: ProductType):
        self.product_type = product_type
        self.schema = PRODUCT_SCHEMAS[product_type]

    @abstractmethod
    def income(self, field_values: Mapping[str, Any]) -> Tuple[Decimal, Decimal, str]:
        """Return (total income, monthly income, human-readable formula)."""
        pass

    @abstractmethod
    def income_schedule(self, field_values: Mapping[str, Any]) -> ScheduleDates:
        """Resolve the frequency and dates the deal's income is paid on."""
        pass

    def calculate(
        self,
        field_values: Mapping[str, Any],
        cost_items: Mapping[str, CostItem],
    ) -> ProductTotals:
        total_income, monthly_income, formula = self.income(field_values)

        commission_rate = _value(field_values, "commissionPercentage")
        commission_amount = total_income * commission_rate / HUNDRED

        breakdown: Dict[str, Decimal] = {}
        for cost_id, item in cost_items.items():
            if not _is_counted_cost(cost_id, self.schema.cost_ids):
                logger.debug(f"Ignoring cost {cost_id!r} not used by {self.product_type.value}")
                continue
            breakdown[cost_id] = item.amount

        total_costs = commission_amount + sum(breakdown.values(), ZERO)

        return ProductTotals(
            total_income=total_income,
            total_costs=total_costs,
            commission_amount=commission_amount,
            gross_profit=total_income - total_costs,
            monthly_income=monthly_income,
            cost_breakdown=breakdown,
            formula=formula,
        )


def _end_date(field_values: Mapping[str, Any]) -> Optional[date]:
    return parse_date(field_values.get("endDate"))


def _payment_months(field_values: Mapping[str, Any], months_field: str, default: int = 12) -> int:
    """Months a deal pays over; an explicit end date wins over the month count."""
    anchor = parse_date(field_values.get("paymentStartDate"))
    end = _end_date(field_values)
    if anchor is not None and end is not None:
        return months_between(anchor, end)
    return max(to_int(field_values.get(months_field), default), 1)


class LearnershipFormula(ProductFormula):
    """Learners x cost per learner, paid monthly, once-off, annually or by milestone."""

    def income(self, field_values):
        learners = _value(field_values, "learnerCount")
        cost_per_learner = _value(field_values, "costPerLearner")
        total = learners * cost_per_learner
        months = _payment_months(field_values, "paymentMonths")
        formula = f"{learners} learners x R{cost_per_learner} = Total Income"
        return total, total / months, formula

    def income_schedule(self, field_values):
        frequency = Frequency.parse(field_values.get("paymentFrequency"), Frequency.MONTHLY)
        anchor = parse_date(field_values.get("paymentStartDate"))
        return ScheduleDates(
            frequency=frequency,
            anchor_date=anchor,
            duration_months=_payment_months(field_values, "paymentMonths"),
            end_date=_end_date(field_values),
        )


class TrainingCourseFormula(ProductFormula):
    """Trainees x price per person, paid once on the training date."""

    def income(self, field_values):
        trainees = _value(field_values, "numberOfTrainees")
        price = _value(field_values, "pricePerPerson")
        total = trainees * price
        return total, ZERO, f"{trainees} trainees x R{price} = Total Income"

    def income_schedule(self, field_values):
        anchor = parse_date(field_values.get("trainingDate"))
        return ScheduleDates(
            frequency=Frequency.ONCE_OFF,
            anchor_date=anchor,
            duration_months=1,
            end_date=_end_date(field_values),
        )


class TapBusinessFormula(ProductFormula):
    """Employees x monthly fee, billed per month or as one annual lump."""

    def _is_annual(self, field_values: Mapping[str, Any]) -> bool:
        return Frequency.parse(field_values.get("paymentType"), Frequency.MONTHLY) == Frequency.ANNUAL

    def _contract_months(self, field_values: Mapping[str, Any]) -> int:
        return _payment_months(field_values, "contractMonths")

    def income(self, field_values):
        employees = _value(field_values, "numberOfEmployees")
        fee = _value(field_values, "costPerEmployeePerMonth")
        monthly = employees * fee
        if self._is_annual(field_values):
            return monthly * 12, monthly, f"{employees} employees x R{fee}/month x 12 months (Annual)"
        months = self._contract_months(field_values)
        return monthly * months, monthly, f"{employees} employees x R{fee}/month x {months} months"

    def income_schedule(self, field_values):
        anchor = parse_date(field_values.get("paymentStartDate"))
        if self._is_annual(field_values):
            return ScheduleDates(
                frequency=Frequency.ANNUAL,
                anchor_date=anchor,
                duration_months=12,
                end_date=_end_date(field_values),
            )
        months = self._contract_months(field_values)
        return ScheduleDates(
            frequency=Frequency.MONTHLY,
            anchor_date=anchor,
            duration_months=months,
            end_date=_end_date(field_values),
        )


FORMULAS: Dict[ProductType, ProductFormula] = {
    ProductType.LEARNERSHIP: LearnershipFormula(ProductType.LEARNERSHIP),
    ProductType.COMPLIANCE: TrainingCourseFormula(ProductType.COMPLIANCE),
    ProductType.OTHER_COURSES: TrainingCourseFormula(ProductType.OTHER_COURSES),
    ProductType.TAP_BUSINESS: TapBusinessFormula(ProductType.TAP_BUSINESS),
}


def get_formula(product_type: Any) -> Optional[ProductFormula]:
    """Get the formula for a product type, or None when there is none."""
    product = ProductType.resolve(product_type)
    return FORMULAS.get(product) if product else None


def calculate_product_totals(
    product_type: Any,
    field_values: Mapping[str, Any],
    cost_items: Mapping[str, CostItem],
) -> ProductTotals:
    """
    Compute income, costs and gross profit for one deal.

    Unknown product types produce a zeroed result flagged ``unsupported`` so
    one bad deal never blocks the rest of an aggregation.
    """
    formula = get_formula(product_type)
    if formula is None:
        logger.warning(f"No formula for product type {product_type!r}; returning zeroed result")
        return ProductTotals(unsupported=True)
    return formula.calculate(field_values or {}, cost_items or {})


# =============================================================================
# SAVE-TIME VALIDATION
# =============================================================================

def _is_blank(spec: FieldSpec, value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if spec.type == "number":
        return to_decimal(value) == 0
    return False


def missing_required_fields(deal: Deal) -> List[str]:
    """
    Labels of required fields a deal has not filled in.

    A number counts as missing when it reads as 0. Deals with an unknown
    product type report the product type itself as missing.
    """
    schema = get_product_schema(deal.product_type)
    if schema is None:
        return ["Product Type"]

    missing = []
    for spec in schema.required_fields:
        value = deal.field_values.get(spec.id)
        if spec.id == "dealName" and _is_blank(spec, value):
            value = deal.deal_name
        if _is_blank(spec, value):
            missing.append(spec.label)
    return missing
