"""Order admission rules: classification, field checks, quota and buying power."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from papertrade.domain.errors import (
    DailyLimitExceeded,
    InsufficientBalance,
    InvalidOrderField,
    InvalidOrderSide,
    InvalidOrderType,
    MissingRequiredField,
)
from papertrade.domain.models import (
    Account,
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

DEFAULT_TRIAL_DAILY_LIMIT = 5
DEFAULT_MAX_TRAILING_PERCENT = 50.0


def parse_order_type(value: Any) -> OrderType:
    """Return the order type enum or raise InvalidOrderType. Values match exactly."""
    text = value if isinstance(value, str) else ""
    try:
        return OrderType(text)
    except ValueError as exc:
        raise InvalidOrderType(value) from exc


def parse_side(value: Any) -> OrderSide:
    text = value if isinstance(value, str) else ""
    try:
        return OrderSide(text)
    except ValueError as exc:
        raise InvalidOrderSide(value) from exc


def initial_status(order_type: OrderType) -> OrderStatus:
    """Market orders open immediately; everything else waits for the evaluator."""
    if order_type is OrderType.MARKET:
        return OrderStatus.OPEN
    return OrderStatus.PENDING


def build_terms(
    order_type: OrderType,
    request: OrderRequest,
    max_trailing_percent: float = DEFAULT_MAX_TRAILING_PERCENT,
) -> OrderTerms:
    """Check per-type required fields and build the matching terms variant."""
    if order_type is OrderType.MARKET:
        return MarketTerms()
    if order_type in {OrderType.LIMIT, OrderType.STOP}:
        trigger_price = _require_positive(request.trigger_price, "trigger_price")
        if order_type is OrderType.LIMIT:
            return LimitTerms(trigger_price=trigger_price)
        return StopTerms(trigger_price=trigger_price)
    if order_type is OrderType.STOP_LOSS:
        return StopLossTerms(
            stop_loss_price=_require_positive(request.stop_loss_price, "stop_loss_price")
        )
    if order_type is OrderType.TAKE_PROFIT:
        return TakeProfitTerms(
            take_profit_price=_require_positive(request.take_profit_price, "take_profit_price")
        )
    if order_type is OrderType.TRAILING_STOP:
        trailing_percent = _as_float(request.trailing_percent)
        if trailing_percent is None or not 0 < trailing_percent <= max_trailing_percent:
            raise MissingRequiredField(
                "trailing_percent",
                f"must be present, greater than 0 and at most {max_trailing_percent:g}",
            )
        return TrailingStopTerms(trailing_percent=trailing_percent)
    return OcoTerms(
        stop_loss_price=_require_positive(request.stop_loss_price, "stop_loss_price"),
        take_profit_price=_require_positive(request.take_profit_price, "take_profit_price"),
    )


def admission_entry_price(order_type: OrderType, request: OrderRequest) -> float:
    """Entry price stored at admission.

    Market orders fill at the submitted price. Limit and stop orders store 0
    and take the crossing price at execution. The remaining pending types keep
    a positive reference price, or 0 to fall back to the execution price.
    """
    entry_price = _as_float(request.entry_price)
    if order_type is OrderType.MARKET:
        if entry_price is None or entry_price <= 0:
            raise MissingRequiredField("entry_price")
        return entry_price
    if order_type in {OrderType.LIMIT, OrderType.STOP}:
        return 0.0
    if entry_price is None or entry_price <= 0:
        return 0.0
    return entry_price


def trades_used_today(account: Account, today: str) -> int:
    """Counter value for today; a stale last_trade_date means a fresh day."""
    if account.last_trade_date != today:
        return 0
    return max(0, int(account.daily_trades_count))


def trade_limits(account: Account, today: str, daily_limit: int) -> TradeLimits:
    used = trades_used_today(account, today)
    if not account.is_trial:
        return TradeLimits(is_limited=False, limit=daily_limit, used=used, remaining=daily_limit)
    return TradeLimits(
        is_limited=True,
        limit=daily_limit,
        used=used,
        remaining=max(0, daily_limit - used),
    )


def check_daily_quota(account: Account, today: str, daily_limit: int) -> None:
    """Raise DailyLimitExceeded when a trial account used its quota today."""
    if not account.is_trial:
        return
    if trades_used_today(account, today) >= daily_limit:
        raise DailyLimitExceeded(daily_limit)


def check_buying_power(account: Account, quantity: float, price: float) -> None:
    cost = quantity * price
    if cost > account.simulator_balance:
        raise InsufficientBalance(required=cost, available=account.simulator_balance)


def validate_request(
    request: OrderRequest,
    max_trailing_percent: float = DEFAULT_MAX_TRAILING_PERCENT,
) -> tuple[OrderType, OrderSide, OrderTerms]:
    """Run every shape check that needs no account state."""
    order_type = parse_order_type(request.order_type)
    side = parse_side(request.side)
    if not str(request.symbol or "").strip():
        raise MissingRequiredField("symbol", "must be a non-empty ticker")
    _require_positive(request.quantity, "quantity")
    leverage = _as_float(request.leverage)
    if leverage is None or leverage < 1:
        raise InvalidOrderField("leverage", "must be at least 1")
    terms = build_terms(order_type, request, max_trailing_percent)
    admission_entry_price(order_type, request)
    return order_type, side, terms


def build_order(
    owner_id: str,
    request: OrderRequest,
    *,
    order_id: str,
    now: datetime,
    max_trailing_percent: float = DEFAULT_MAX_TRAILING_PERCENT,
) -> Order:
    """Classify a validated request into a new pending or open order."""
    order_type, side, terms = validate_request(request, max_trailing_percent)
    entry_price = admission_entry_price(order_type, request)
    trailing_high_price = None
    if order_type is OrderType.TRAILING_STOP and entry_price > 0:
        trailing_high_price = entry_price
    return Order(
        order_id=order_id,
        owner_id=owner_id,
        symbol=str(request.symbol).strip(),
        side=side,
        terms=terms,
        status=initial_status(order_type),
        quantity=_require_positive(request.quantity, "quantity"),
        entry_price=entry_price,
        opened_at=now,
        leverage=_as_float(request.leverage) or 1.0,
        trailing_high_price=trailing_high_price,
    )


def _require_positive(value: Any, field_name: str) -> float:
    parsed = _as_float(value)
    if parsed is None or parsed <= 0:
        raise MissingRequiredField(field_name)
    return parsed


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        parsed = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = float(text)
        except ValueError:
            return None
    # nan and inf count as missing
    if not math.isfinite(parsed):
        return None
    return parsed
