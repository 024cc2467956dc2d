"""Trigger evaluation for pending entries and open-position exits.

One call takes a price snapshot and the owner's active orders. Pending
orders are checked first, so anything executed in this call is immediately
checked for exits against the same snapshot. Symbols missing from the
snapshot are skipped. Nothing here touches storage; the caller persists the
returned outcome.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime

from papertrade.domain.models import ExitReason, Order, OrderSide, OrderStatus, OrderType
from papertrade.execution.settlement import close_position

IMMEDIATE_ENTRY_TYPES = frozenset(
    {
        OrderType.STOP_LOSS,
        OrderType.TAKE_PROFIT,
        OrderType.TRAILING_STOP,
        OrderType.OCO,
    }
)


@dataclass
class TriggerOutcome:
    """Transitions produced by one evaluator call."""

    executed: list[Order] = field(default_factory=list)
    closed: list[Order] = field(default_factory=list)
    updated: list[Order] = field(default_factory=list)
    deferred: list[Order] = field(default_factory=list)
    previous_status: dict[str, OrderStatus] = field(default_factory=dict)

    def changed_orders(self) -> list[tuple[Order, OrderStatus]]:
        """Final version of every touched order with the status it had before."""
        latest: dict[str, Order] = {}
        for order in [*self.executed, *self.updated, *self.closed]:
            latest[order.order_id] = order
        return [
            (order, self.previous_status[order_id])
            for order_id, order in latest.items()
        ]

    @property
    def is_empty(self) -> bool:
        return not (self.executed or self.closed or self.updated)


def lookup_price(prices: Mapping[str, float], symbol: str) -> float | None:
    """Return a usable price for symbol, or None when the snapshot has none."""
    value = prices.get(symbol)
    if value is None:
        return None
    price = float(value)
    if not math.isfinite(price) or price <= 0:
        return None
    return price


def entry_triggered(order: Order, price: float) -> bool:
    """Return true when a pending order should convert to an open position."""
    order_type = order.order_type
    if order_type in IMMEDIATE_ENTRY_TYPES:
        return True
    trigger_price = order.trigger_price
    if trigger_price is None:
        return False
    if order_type is OrderType.LIMIT:
        if order.side is OrderSide.BUY:
            return price <= trigger_price
        return price >= trigger_price
    if order_type is OrderType.STOP:
        if order.side is OrderSide.BUY:
            return price >= trigger_price
        return price <= trigger_price
    return False


def execute_pending(order: Order, price: float) -> Order:
    """Open a pending order at its stored entry price, or the current price."""
    execution_price = order.entry_price if order.entry_price > 0 else price
    trailing_high_price = order.trailing_high_price
    if order.order_type is OrderType.TRAILING_STOP:
        trailing_high_price = execution_price
    return replace(
        order,
        status=OrderStatus.OPEN,
        entry_price=execution_price,
        trailing_high_price=trailing_high_price,
    )


def exit_signal(order: Order, price: float) -> tuple[ExitReason | None, Order]:
    """Check exit levels in priority order.

    Returns the reason to close (or None) and the order, which carries a new
    trailing high when the price moved in its favour.
    """
    is_buy = order.side is OrderSide.BUY
    stop_loss_price = order.stop_loss_price
    if stop_loss_price is not None:
        if (is_buy and price <= stop_loss_price) or (not is_buy and price >= stop_loss_price):
            return ExitReason.STOP_LOSS, order

    take_profit_price = order.take_profit_price
    if take_profit_price is not None:
        if (is_buy and price >= take_profit_price) or (
            not is_buy and price <= take_profit_price
        ):
            return ExitReason.TAKE_PROFIT, order

    trailing_percent = order.trailing_percent
    trailing_high_price = order.trailing_high_price
    if trailing_percent is None or trailing_high_price is None:
        return None, order

    if is_buy:
        if price > trailing_high_price:
            return None, replace(order, trailing_high_price=price)
        stop_level = trailing_high_price * (1 - trailing_percent / 100)
        if price <= stop_level:
            return ExitReason.TRAILING_STOP, order
        return None, order

    if price < trailing_high_price:
        return None, replace(order, trailing_high_price=price)
    stop_level = trailing_high_price * (1 + trailing_percent / 100)
    if price >= stop_level:
        return ExitReason.TRAILING_STOP, order
    return None, order


def trailing_stop_level(order: Order) -> float | None:
    """Current dynamic stop level of a trailing order, if it has one."""
    if order.trailing_percent is None or order.trailing_high_price is None:
        return None
    if order.side is OrderSide.BUY:
        return order.trailing_high_price * (1 - order.trailing_percent / 100)
    return order.trailing_high_price * (1 + order.trailing_percent / 100)


def evaluate_triggers(
    pending_orders: Iterable[Order],
    open_orders: Iterable[Order],
    prices: Mapping[str, float],
    now: datetime,
    buying_power: float | None = None,
) -> TriggerOutcome:
    """Evaluate one price snapshot against pending and open orders.

    When buying_power is given, a pending order whose cost at the execution
    price exceeds it stays pending and is reported as deferred.
    """
    outcome = TriggerOutcome()
    to_check: list[Order] = []

    for order in pending_orders:
        if order.status is not OrderStatus.PENDING:
            continue
        price = lookup_price(prices, order.symbol)
        if price is None or not entry_triggered(order, price):
            continue
        opened = execute_pending(order, price)
        if buying_power is not None and opened.quantity * opened.entry_price > buying_power:
            outcome.deferred.append(order)
            continue
        outcome.previous_status[order.order_id] = OrderStatus.PENDING
        outcome.executed.append(opened)
        to_check.append(opened)

    for order in open_orders:
        if order.status is OrderStatus.OPEN and order.order_id not in outcome.previous_status:
            to_check.append(order)

    for order in to_check:
        price = lookup_price(prices, order.symbol)
        if price is None:
            continue
        reason, checked = exit_signal(order, price)
        outcome.previous_status.setdefault(order.order_id, OrderStatus.OPEN)
        if reason is not None:
            outcome.closed.append(close_position(checked, price, now, reason))
        elif checked.trailing_high_price != order.trailing_high_price:
            outcome.updated.append(checked)

    touched = {order.order_id for order, _ in outcome.changed_orders()}
    outcome.previous_status = {
        order_id: status
        for order_id, status in outcome.previous_status.items()
        if order_id in touched
    }
    return outcome
