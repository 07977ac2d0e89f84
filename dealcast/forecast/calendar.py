"""
Financial Year Calendar Builder.

Turns a tenant's financial-year settings into the ordered 12-month grid that
every forecast is laid out on. Each month is either an actual (elapsed, up to
and including the reporting month) or a forecastable month ("remaining").

The grid is the only place month keys come from: a distribution may only
write to keys that exist here.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, Field

from dealcast.config import settings
from dealcast.forecast.money import month_key, month_key_for

logger = logging.getLogger(__name__)


MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

_MONTH_LOOKUP: Dict[str, int] = {}
for _index, _name in enumerate(MONTH_NAMES):
    _MONTH_LOOKUP[_name.lower()] = _index
    _MONTH_LOOKUP[_name[:3].lower()] = _index


class FinancialYearSettings(BaseModel):
    """Tenant financial-year settings. Read-only to the engine."""
    start_month_name: Optional[str] = Field(default_factory=lambda: settings.DEFAULT_FY_START_MONTH)
    end_month_name: Optional[str] = Field(default_factory=lambda: settings.DEFAULT_FY_END_MONTH)
    current_financial_year: Optional[str] = Field(default_factory=lambda: settings.DEFAULT_FINANCIAL_YEAR)
    reporting_month_name: Optional[str] = None
    currency_symbol: str = Field(default_factory=lambda: settings.DEFAULT_CURRENCY_SYMBOL)


@dataclass(frozen=True)
class FYMonth:
    """A single month in the financial-year grid."""
    year: int
    calendar_month_index: int  # 0 = January
    name: str
    fy_month_number: int  # 1-indexed position in the FY
    is_remaining: bool

    @property
    def key(self) -> str:
        return month_key(self.year, self.calendar_month_index)

    @property
    def is_ytd(self) -> bool:
        return not self.is_remaining

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "year": self.year,
            "calendar_month_index": self.calendar_month_index,
            "name": self.name,
            "fy_month_number": self.fy_month_number,
            "is_remaining": self.is_remaining,
        }


@dataclass(frozen=True)
class FYCalendar:
    """The 12-month grid for one financial year."""
    financial_year: str
    months: Tuple[FYMonth, ...]
    reporting_month_index: int  # position in ``months``

    def __iter__(self) -> Iterator[FYMonth]:
        return iter(self.months)

    def __len__(self) -> int:
        return len(self.months)

    def __contains__(self, key: object) -> bool:
        return key in self.keys

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(m.key for m in self.months)

    @property
    def first_month(self) -> FYMonth:
        return self.months[0]

    @property
    def reporting_month(self) -> FYMonth:
        return self.months[self.reporting_month_index]

    @property
    def ytd_months(self) -> List[FYMonth]:
        return [m for m in self.months if not m.is_remaining]

    @property
    def remaining_months(self) -> List[FYMonth]:
        return [m for m in self.months if m.is_remaining]

    @property
    def remaining_keys(self) -> Tuple[str, ...]:
        return tuple(m.key for m in self.months if m.is_remaining)

    def index_of(self, key: str) -> Optional[int]:
        for i, m in enumerate(self.months):
            if m.key == key:
                return i
        return None

    def month_for(self, day: date) -> Optional[FYMonth]:
        index = self.index_of(month_key_for(day))
        return self.months[index] if index is not None else None

    def empty_distribution(self) -> Dict[str, Decimal]:
        return {key: Decimal("0") for key in self.keys}


def month_index(name: Optional[str], fallback: str) -> int:
    """
    Resolve a month name ("March", "mar") to its 0-based calendar index.

    Unknown names resolve ``fallback`` instead of failing.
    """
    if name:
        index = _MONTH_LOOKUP.get(str(name).strip().lower())
        if index is not None:
            return index
        logger.warning(f"Unrecognised month name {name!r}, using {fallback}")
    return _MONTH_LOOKUP[fallback.lower()]


def parse_fy_end_year(current_financial_year: Optional[str]) -> int:
    """
    Read the year the FY ends in from "2024/2025" (-> 2025) or "2025".

    An unreadable value falls back to the current calendar year.
    """
    if current_financial_year is not None:
        parts = str(current_financial_year).replace("-", "/").split("/")
        end_part = parts[1] if len(parts) > 1 and parts[1].strip() else parts[0]
        try:
            year = int(end_part.strip())
            if len(end_part.strip()) == 2:
                year += 2000
            return year
        except ValueError:
            pass
    fallback = date.today().year
    logger.warning(
        f"Could not read financial year {current_financial_year!r}, using {fallback}"
    )
    return fallback


def build_fy_calendar(fy_settings: Optional[FinancialYearSettings] = None) -> FYCalendar:
    """
    Build the ordered 12-month grid for a tenant's financial year.

    The grid starts at the start month. When the start month comes after
    the end month in the calendar (a March-February year, say) the first
    month sits in the year before the FY end year; otherwise both ends are in
    the same calendar year. Months after the reporting month are remaining.
    """
    if fy_settings is None:
        fy_settings = FinancialYearSettings()

    start = month_index(fy_settings.start_month_name, settings.DEFAULT_FY_START_MONTH)
    end = month_index(fy_settings.end_month_name, settings.DEFAULT_FY_END_MONTH)
    reporting = month_index(
        fy_settings.reporting_month_name or fy_settings.end_month_name,
        settings.DEFAULT_REPORTING_MONTH,
    )

    if (start + 11) % 12 != end:
        logger.warning(
            f"FY end month {MONTH_NAMES[end]} does not close a 12-month year "
            f"starting {MONTH_NAMES[start]}; grid follows the start month"
        )

    fy_end_year = parse_fy_end_year(fy_settings.current_financial_year)
    year = fy_end_year - 1 if start > end else fy_end_year

    slots: List[Tuple[int, int]] = []
    calendar_month = start
    for _ in range(12):
        slots.append((year, calendar_month))
        calendar_month += 1
        if calendar_month > 11:
            calendar_month = 0
            year += 1

    # Every calendar month appears exactly once in the grid
    reporting_position = next(i for i, (_, m) in enumerate(slots) if m == reporting)

    months = tuple(
        FYMonth(
            year=y,
            calendar_month_index=m,
            name=MONTH_NAMES[m],
            fy_month_number=i + 1,
            is_remaining=i > reporting_position,
        )
        for i, (y, m) in enumerate(slots)
    )

    return FYCalendar(
        financial_year=fy_settings.current_financial_year or str(fy_end_year),
        months=months,
        reporting_month_index=reporting_position,
    )


def build_fy_months(fy_settings: Optional[FinancialYearSettings] = None) -> List[FYMonth]:
    """The grid as a plain list of months."""
    return list(build_fy_calendar(fy_settings).months)
