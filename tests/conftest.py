"""Shared test fixtures for the dealcast tests."""
import pytest

from dealcast.forecast.calendar import FinancialYearSettings, build_fy_calendar
from dealcast.forecast.types import CostItem, Deal, ProductType


@pytest.fixture
def fy_settings():
    """March-February FY ending 2026, reporting through August 2025."""
    return FinancialYearSettings(
        start_month_name="March",
        end_month_name="February",
        current_financial_year="2025/2026",
        reporting_month_name="August",
    )


@pytest.fixture
def calendar(fy_settings):
    return build_fy_calendar(fy_settings)


@pytest.fixture
def learnership_deal():
    """Scenario A: 10 learners at R25,000, 5% commission, paid monthly over 12 months."""
    return Deal(
        id="deal_learn",
        product_type=ProductType.LEARNERSHIP,
        deal_name="Retail learnership",
        field_values={
            "learnerCount": 10,
            "costPerLearner": 25000,
            "commissionPercentage": 5,
            "paymentFrequency": "Monthly",
            "paymentMonths": 12,
        },
    )


@pytest.fixture
def compliance_deal():
    """Scenario B: 20 trainees at R1,500 on 15 June 2025."""
    return Deal(
        id="deal_comp",
        product_type=ProductType.COMPLIANCE,
        deal_name="First aid",
        field_values={
            "numberOfTrainees": 20,
            "pricePerPerson": 1500,
            "trainingDate": "2025-06-15",
        },
    )


@pytest.fixture
def tap_annual_deal():
    """Scenario C: 50 employees at R150/month, billed annually from April 2025."""
    return Deal(
        id="deal_tap",
        product_type=ProductType.TAP_BUSINESS,
        deal_name="TAP annual",
        field_values={
            "numberOfEmployees": 50,
            "costPerEmployeePerMonth": 150,
            "paymentType": "Annual",
            "paymentStartDate": "2025-04-01",
        },
    )


@pytest.fixture
def costed_course_deal():
    """Other Courses deal with a once-off travel cost and commission."""
    return Deal(
        id="deal_course",
        product_type=ProductType.OTHER_COURSES,
        deal_name="Excel course",
        field_values={
            "courseName": "Excel",
            "numberOfTrainees": 10,
            "pricePerPerson": 2000,
            "trainingDate": "2025-10-01",
            "commissionPercentage": 10,
        },
        cost_items={"travelCost": CostItem(amount=1000, frequency="Once-off")},
        certainty_percentage=50,
    )
