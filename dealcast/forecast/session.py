"""
Forecast Session - the editable state behind a client's forecast screen.

A ForecastSession is an immutable value: one client's deals grouped by
product line, plus per-line history and comments, laid on one FY grid.
Every edit goes through ``edit(session, action)`` which returns a new
session and leaves the old one untouched, so undo/redo is just keeping the
old values around (SessionHistory).

Recomputation is pure and cheap; nothing here is persisted until the
payloads from ``build_save_payloads`` are handed to the financials service.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from dealcast.forecast.aggregation import aggregate, aggregate_client_totals
from dealcast.forecast.calendar import FYCalendar
from dealcast.forecast.engine import calculate_deal
from dealcast.forecast.money import ZERO
from dealcast.forecast.products import missing_required_fields
from dealcast.forecast.types import (
    CalculationResult,
    ClientFinancialPayload,
    CostItem,
    Deal,
    FinancialHistory,
    ForecastSummary,
    ProductType,
)

logger = logging.getLogger(__name__)


class ForecastSession(BaseModel):
    """One client's in-progress forecast for one financial year."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    client_id: str
    client_name: str = ""
    calendar: FYCalendar
    deals: Dict[str, Tuple[Deal, ...]] = Field(default_factory=dict)
    history: Dict[str, FinancialHistory] = Field(default_factory=dict)
    comments: Dict[str, str] = Field(default_factory=dict)

    @property
    def financial_year(self) -> str:
        return self.calendar.financial_year

    @property
    def product_lines(self) -> List[str]:
        return sorted(set(self.deals) | set(self.history) | set(self.comments))

    def all_deals(self) -> List[Deal]:
        return [deal for line in sorted(self.deals) for deal in self.deals[line]]

    def find_deal(self, deal_id: str) -> Optional[Tuple[str, Deal]]:
        for product_line, deals in self.deals.items():
            for deal in deals:
                if deal.id == deal_id:
                    return product_line, deal
        return None

    def results(self) -> Dict[str, CalculationResult]:
        return {deal.id: calculate_deal(deal, self.calendar) for deal in self.all_deals()}

    def months_for(self, product_line: str) -> Dict[str, Decimal]:
        return aggregate(self.deals.get(product_line, ()), self.calendar)

    def summary(self) -> ForecastSummary:
        lines = [
            ClientFinancialPayload(
                months=self.months_for(line),
                history=self.history.get(line) or FinancialHistory(),
            )
            for line in self.product_lines
        ]
        return aggregate_client_totals(lines, self.calendar)


# =============================================================================
# ACTIONS
# =============================================================================

@dataclass(frozen=True)
class AddDeal:
    deal: Deal
    product_line: Optional[str] = None  # defaults to the deal's own product line


@dataclass(frozen=True)
class UpdateDealFields:
    deal_id: str
    values: Mapping[str, Any] = field(default_factory=dict)
    deal_name: Optional[str] = None


@dataclass(frozen=True)
class SetCostItem:
    deal_id: str
    cost_id: str
    amount: Any
    frequency: Optional[str] = None


@dataclass(frozen=True)
class RemoveCostItem:
    deal_id: str
    cost_id: str


@dataclass(frozen=True)
class SetCertainty:
    deal_id: str
    certainty_percentage: Any


@dataclass(frozen=True)
class RemoveDeal:
    deal_id: str


@dataclass(frozen=True)
class SetHistory:
    product_line: str
    history: FinancialHistory


@dataclass(frozen=True)
class SetComments:
    product_line: str
    comments: str


# =============================================================================
# REDUCERS
# =============================================================================

def _default_product_line(deal: Deal) -> str:
    product = deal.product
    return product.product_line if product else ProductType.OTHER_COURSES.product_line


def _replace_deal(session: ForecastSession, deal_id: str, update: Callable[[Deal], Deal]) -> ForecastSession:
    found = session.find_deal(deal_id)
    if found is None:
        logger.warning(f"Deal {deal_id} not in session for client {session.client_id}; edit ignored")
        return session
    product_line, deal = found
    new_deal = update(deal)
    deals = dict(session.deals)
    deals[product_line] = tuple(new_deal if d.id == deal_id else d for d in deals[product_line])
    return session.model_copy(update={"deals": deals})


def _revalidated(deal: Deal, **changes: Any) -> Deal:
    # model_copy skips validators; rebuild so coercion and clamping still apply
    data = deal.model_dump()
    data.update(changes)
    return Deal(**data)


def _add_deal(session: ForecastSession, action: AddDeal) -> ForecastSession:
    product_line = action.product_line or _default_product_line(action.deal)
    deals = dict(session.deals)
    deals[product_line] = deals.get(product_line, ()) + (action.deal,)
    return session.model_copy(update={"deals": deals})


def _update_deal_fields(session: ForecastSession, action: UpdateDealFields) -> ForecastSession:
    def update(deal: Deal) -> Deal:
        field_values = {**deal.field_values, **action.values}
        deal_name = action.deal_name if action.deal_name is not None else deal.deal_name
        if "dealName" in action.values and action.deal_name is None:
            deal_name = str(action.values["dealName"] or "")
        return _revalidated(deal, field_values=field_values, deal_name=deal_name)
    return _replace_deal(session, action.deal_id, update)


def _set_cost_item(session: ForecastSession, action: SetCostItem) -> ForecastSession:
    def update(deal: Deal) -> Deal:
        existing = deal.cost_items.get(action.cost_id)
        frequency = action.frequency or (existing.frequency if existing else None)
        label = existing.label if existing else None
        cost_items = dict(deal.cost_items)
        cost_items[action.cost_id] = CostItem(amount=action.amount, frequency=frequency, label=label)
        return deal.model_copy(update={"cost_items": cost_items})
    return _replace_deal(session, action.deal_id, update)


def _remove_cost_item(session: ForecastSession, action: RemoveCostItem) -> ForecastSession:
    def update(deal: Deal) -> Deal:
        cost_items = {k: v for k, v in deal.cost_items.items() if k != action.cost_id}
        return deal.model_copy(update={"cost_items": cost_items})
    return _replace_deal(session, action.deal_id, update)


def _set_certainty(session: ForecastSession, action: SetCertainty) -> ForecastSession:
    return _replace_deal(
        session,
        action.deal_id,
        lambda deal: _revalidated(deal, certainty_percentage=action.certainty_percentage),
    )


def _remove_deal(session: ForecastSession, action: RemoveDeal) -> ForecastSession:
    found = session.find_deal(action.deal_id)
    if found is None:
        logger.warning(f"Deal {action.deal_id} not in session for client {session.client_id}; nothing removed")
        return session
    product_line, _ = found
    deals = dict(session.deals)
    remaining = tuple(d for d in deals[product_line] if d.id != action.deal_id)
    if remaining:
        deals[product_line] = remaining
    else:
        del deals[product_line]
    return session.model_copy(update={"deals": deals})


def _set_history(session: ForecastSession, action: SetHistory) -> ForecastSession:
    history = dict(session.history)
    history[action.product_line] = action.history
    return session.model_copy(update={"history": history})


def _set_comments(session: ForecastSession, action: SetComments) -> ForecastSession:
    comments = dict(session.comments)
    comments[action.product_line] = action.comments
    return session.model_copy(update={"comments": comments})


REDUCERS: Dict[type, Callable[[ForecastSession, Any], ForecastSession]] = {
    AddDeal: _add_deal,
    UpdateDealFields: _update_deal_fields,
    SetCostItem: _set_cost_item,
    RemoveCostItem: _remove_cost_item,
    SetCertainty: _set_certainty,
    RemoveDeal: _remove_deal,
    SetHistory: _set_history,
    SetComments: _set_comments,
}


def edit(session: ForecastSession, action: Any) -> ForecastSession:
    """Apply one action and return the new session. ``session`` is unchanged."""
    reducer = REDUCERS.get(type(action))
    if not reducer:
        raise ValueError(f"No reducer for action: {type(action).__name__}")
    return reducer(session, action)


@dataclass(frozen=True)
class SessionHistory:
    """Undo/redo stack of session values."""
    present: ForecastSession
    past: Tuple[ForecastSession, ...] = ()
    future: Tuple[ForecastSession, ...] = ()

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)

    def apply(self, action: Any) -> "SessionHistory":
        return SessionHistory(
            present=edit(self.present, action),
            past=self.past + (self.present,),
        )

    def undo(self) -> "SessionHistory":
        if not self.past:
            return self
        return SessionHistory(
            present=self.past[-1],
            past=self.past[:-1],
            future=(self.present,) + self.future,
        )

    def redo(self) -> "SessionHistory":
        if not self.future:
            return self
        return SessionHistory(
            present=self.future[0],
            past=self.past + (self.present,),
            future=self.future[1:],
        )


# =============================================================================
# SAVE & APPLY
# =============================================================================

def build_save_payloads(session: ForecastSession) -> Dict[str, ClientFinancialPayload]:
    """
    One payload per product line that has deals.

    ``months`` is the aggregated adjusted-GP distribution of the line's
    deals; ``full_year_forecast`` is YTD history plus every forecast month.
    """
    payloads: Dict[str, ClientFinancialPayload] = {}
    for product_line in sorted(session.deals):
        deals = session.deals[product_line]
        if not deals:
            continue
        history = session.history.get(product_line) or FinancialHistory()
        months = aggregate(deals, session.calendar)
        payloads[product_line] = ClientFinancialPayload(
            months=months,
            history=history,
            deal_details=list(deals),
            comments=session.comments.get(product_line, ""),
            full_year_forecast=history.current_year_ytd + sum(months.values(), ZERO),
        )
    return payloads


def missing_fields(session: ForecastSession) -> Dict[str, List[str]]:
    """Required-field labels still empty, per deal id. Empty when ready to save."""
    missing: Dict[str, List[str]] = {}
    for deal in session.all_deals():
        labels = missing_required_fields(deal)
        if labels:
            missing[deal.id] = labels
    return missing
