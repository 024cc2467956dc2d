"""Custom exceptions for order admission and lifecycle errors."""

from __future__ import annotations


class TradingError(Exception):
    """Base exception for all client-correctable simulator errors."""


class OrderValidationError(TradingError):
    """Raised when an order request has an invalid shape."""


class InvalidOrderType(OrderValidationError):
    def __init__(self, order_type: object) -> None:
        self.order_type = order_type
        super().__init__(
            f"Invalid order type '{order_type}'. Supported: "
            "market, limit, stop, stop_loss, take_profit, trailing_stop, oco"
        )


class InvalidOrderSide(OrderValidationError):
    def __init__(self, side: object) -> None:
        self.side = side
        super().__init__(f"Invalid order side '{side}'. Supported: buy, sell")


class MissingRequiredField(OrderValidationError):
    def __init__(self, field: str, detail: str = "must be present and greater than 0") -> None:
        self.field = field
        super().__init__(f"{field} {detail}")


class InvalidOrderField(OrderValidationError):
    def __init__(self, field: str, detail: str) -> None:
        self.field = field
        super().__init__(f"{field} {detail}")


class DailyLimitExceeded(TradingError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(
            f"Daily limit of {limit} trades reached. Upgrade to remove the daily limit."
        )


class InsufficientBalance(TradingError):
    def __init__(self, required: float, available: float) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient balance: order costs ${required:,.2f} "
            f"but only ${available:,.2f} is available"
        )


class InvalidStateTransition(TradingError):
    def __init__(self, order_id: str, status: str, action: str) -> None:
        self.order_id = order_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} order {order_id} while it is {status}")


class OrderNotFound(TradingError):
    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class AccountNotFound(TradingError):
    def __init__(self, owner_id: str) -> None:
        self.owner_id = owner_id
        super().__init__(f"Account {owner_id} not found")
