"""
Certainty adjustment.

A deal's certainty percentage is the probability it closes. Gross profit is
weighted linearly by it to give the risk-adjusted projection.
"""
from decimal import Decimal

from dealcast.forecast.money import HUNDRED, ZERO


def certainty_factor(certainty_percentage: Decimal) -> Decimal:
    """Certainty as a 0-1 weight, clamped to the valid range."""
    clamped = min(max(certainty_percentage, ZERO), HUNDRED)
    return clamped / HUNDRED


def apply_certainty(amount: Decimal, certainty_percentage: Decimal) -> Decimal:
    """Weight ``amount`` by certainty: 100 leaves it unchanged, 50 halves it."""
    if certainty_percentage >= HUNDRED:
        return amount
    return amount * certainty_factor(certainty_percentage)
