"""
Money and month arithmetic shared by the forecast engine.

Every amount that flows through the engine is a ``Decimal``. User input
arrives as whatever the form produced (strings, ints, floats, blanks), so
``to_decimal`` is deliberately forgiving: anything it cannot read becomes 0.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP, getcontext, localcontext
from typing import Any, List, Optional, Sequence

from dateutil.relativedelta import relativedelta

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Form values at or above 10**15 are treated as junk
MAX_INPUT_DIGITS = 15


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Coerce a raw field value to Decimal, falling back to ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip().replace(",", "").replace(" ", "")
        if not value:
            return default
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default
    if not result.is_finite():
        return default
    if result != 0 and result.adjusted() >= MAX_INPUT_DIGITS:
        return default
    return result


def to_int(value: Any, default: int) -> int:
    """Coerce a raw field value to a whole number of months."""
    number = to_decimal(value, Decimal(default))
    try:
        return int(number)
    except (ValueError, OverflowError):
        return default


def _cents_context(amount: Decimal):
    """Context wide enough to hold ``amount`` to the cent."""
    context = getcontext().copy()
    context.prec = max(context.prec, amount.adjusted() + 12)
    return localcontext(context)


def quantize_cents(amount: Decimal) -> Decimal:
    with _cents_context(amount):
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def allocate(total: Decimal, weights: Sequence[Decimal]) -> List[Decimal]:
    """
    Split ``total`` across ``weights`` in whole cents.

    Uses largest-remainder allocation so the parts always add back to the
    cent-rounded total exactly. Ties go to the earliest slot. Negative
    totals (loss-making deals) are split on their magnitude and re-signed.
    """
    if not weights:
        return []

    weight_sum = sum(weights, ZERO)
    if weight_sum == 0:
        return [ZERO for _ in weights]

    total_cents = quantize_cents(total)
    with _cents_context(total_cents):
        sign = -1 if total_cents < 0 else 1
        magnitude = abs(total_cents)

        raw = [magnitude * w / weight_sum for w in weights]
        floored = [r.quantize(CENT, rounding=ROUND_DOWN) for r in raw]
        leftover_cents = int((magnitude - sum(floored, ZERO)) / CENT)

        order = sorted(range(len(raw)), key=lambda i: (-(raw[i] - floored[i]), i))
        for i in order[:leftover_cents]:
            floored[i] += CENT

        return [part * sign for part in floored]


def parse_date(value: Any) -> Optional[date]:
    """Read an ISO date (or datetime) from a form value; None when unreadable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def month_key(year: int, calendar_month_index: int) -> str:
    """Month key in ``YYYY-MM`` form; ``calendar_month_index`` is 0-based."""
    return f"{year:04d}-{calendar_month_index + 1:02d}"


def month_key_for(day: date) -> str:
    return month_key(day.year, day.month - 1)


def add_months(day: date, months: int) -> Optional[date]:
    """``day`` moved by ``months``; None when that leaves the supported date range."""
    try:
        return day + relativedelta(months=months)
    except (ValueError, OverflowError):
        return None


def months_between(start: Optional[date], end: Optional[date]) -> int:
    """
    Number of calendar months covered by ``start`` .. ``end``.

    Both the start and end month count, so Jan -> Mar is 3. Missing dates
    or an end before the start give 1.
    """
    if start is None or end is None:
        return 1
    months = (end.year - start.year) * 12 + (end.month - start.month) + 1
    return max(1, months)
