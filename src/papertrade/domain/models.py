"""Core simulator domain models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class OrderSide(StrEnum):
    """Supported order directions."""

    BUY = "buy"
    SELL = "sell"


class OrderType(StrEnum):
    """Recognized order types."""

    MARKET = "market"
    LIMIT = "limit"
    STOP = "stop"
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    TRAILING_STOP = "trailing_stop"
    OCO = "oco"


class OrderStatus(StrEnum):
    """Order lifecycle states."""

    PENDING = "pending"
    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class ExitReason(StrEnum):
    """Why an open position was closed."""

    MANUAL = "manual"
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    TRAILING_STOP = "trailing_stop"


@dataclass(frozen=True)
class MarketTerms:
    """Fills at admission; no trigger or exit levels."""


@dataclass(frozen=True)
class LimitTerms:
    trigger_price: float


@dataclass(frozen=True)
class StopTerms:
    trigger_price: float


@dataclass(frozen=True)
class StopLossTerms:
    stop_loss_price: float


@dataclass(frozen=True)
class TakeProfitTerms:
    take_profit_price: float


@dataclass(frozen=True)
class TrailingStopTerms:
    trailing_percent: float


@dataclass(frozen=True)
class OcoTerms:
    """Stop-loss and take-profit legs on one position."""

    stop_loss_price: float
    take_profit_price: float


OrderTerms = (
    MarketTerms
    | LimitTerms
    | StopTerms
    | StopLossTerms
    | TakeProfitTerms
    | TrailingStopTerms
    | OcoTerms
)

TERMS_BY_TYPE: dict[OrderType, type] = {
    OrderType.MARKET: MarketTerms,
    OrderType.LIMIT: LimitTerms,
    OrderType.STOP: StopTerms,
    OrderType.STOP_LOSS: StopLossTerms,
    OrderType.TAKE_PROFIT: TakeProfitTerms,
    OrderType.TRAILING_STOP: TrailingStopTerms,
    OrderType.OCO: OcoTerms,
}


def order_type_of(terms: OrderTerms) -> OrderType:
    """Return the order type a terms variant belongs to."""
    for order_type, terms_class in TERMS_BY_TYPE.items():
        if type(terms) is terms_class:
            return order_type
    raise TypeError(f"Unknown order terms: {terms!r}")


@dataclass(frozen=True)
class OrderRequest:
    """Raw order request as submitted by a client."""

    symbol: str
    side: str
    order_type: str
    quantity: float
    entry_price: float = 0.0
    trigger_price: float | None = None
    stop_loss_price: float | None = None
    take_profit_price: float | None = None
    trailing_percent: float | None = None
    leverage: float = 1.0


@dataclass(frozen=True)
class Order:
    """One position or pending instruction owned by a single account."""

    order_id: str
    owner_id: str
    symbol: str
    side: OrderSide
    terms: OrderTerms
    status: OrderStatus
    quantity: float
    entry_price: float
    opened_at: datetime
    leverage: float = 1.0
    exit_price: float | None = None
    trailing_high_price: float | None = None
    profit: float | None = None
    closed_at: datetime | None = None
    close_reason: ExitReason | None = None

    @property
    def order_type(self) -> OrderType:
        return order_type_of(self.terms)

    @property
    def trigger_price(self) -> float | None:
        return getattr(self.terms, "trigger_price", None)

    @property
    def stop_loss_price(self) -> float | None:
        return getattr(self.terms, "stop_loss_price", None)

    @property
    def take_profit_price(self) -> float | None:
        return getattr(self.terms, "take_profit_price", None)

    @property
    def trailing_percent(self) -> float | None:
        return getattr(self.terms, "trailing_percent", None)


@dataclass(frozen=True)
class Account:
    """Balance aggregate and admission gates for one owner."""

    owner_id: str
    display_name: str = ""
    simulator_balance: float = 10_000.0
    total_profit: float = 0.0
    subscription_id: str | None = None
    membership_status: str = "inactive"
    role: str = "student"
    daily_trades_count: int = 0
    last_trade_date: str | None = None
    lessons_completed: int = 0
    xp: int = 0

    @property
    def is_trial(self) -> bool:
        """Accounts with no subscription, no active membership and no admin role."""
        return (
            not self.subscription_id
            and self.membership_status != "active"
            and self.role != "admin"
        )


@dataclass(frozen=True)
class TradeLimits:
    """Daily order quota view for an account."""

    is_limited: bool
    limit: int
    used: int
    remaining: int
