"""Domain models, errors and event types."""

from .errors import (
    AccountNotFound,
    DailyLimitExceeded,
    InsufficientBalance,
    InvalidOrderField,
    InvalidOrderSide,
    InvalidOrderType,
    InvalidStateTransition,
    MissingRequiredField,
    OrderNotFound,
    OrderValidationError,
    TradingError,
)
from .events import TradeEvent
from .models import (
    Account,
    ExitReason,
    LimitTerms,
    MarketTerms,
    OcoTerms,
    Order,
    OrderRequest,
    OrderSide,
    OrderStatus,
    OrderTerms,
    OrderType,
    StopLossTerms,
    StopTerms,
    TakeProfitTerms,
    TradeLimits,
    TrailingStopTerms,
)

__all__ = [
    "Account",
    "AccountNotFound",
    "DailyLimitExceeded",
    "ExitReason",
    "InsufficientBalance",
    "InvalidOrderField",
    "InvalidOrderSide",
    "InvalidOrderType",
    "InvalidStateTransition",
    "LimitTerms",
    "MarketTerms",
    "MissingRequiredField",
    "OcoTerms",
    "Order",
    "OrderNotFound",
    "OrderRequest",
    "OrderSide",
    "OrderStatus",
    "OrderTerms",
    "OrderType",
    "OrderValidationError",
    "StopLossTerms",
    "StopTerms",
    "TakeProfitTerms",
    "TradeEvent",
    "TradeLimits",
    "TradingError",
    "TrailingStopTerms",
]
