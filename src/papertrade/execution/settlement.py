"""Realized profit, terminal transitions and atomic balance settlement."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from papertrade.domain.errors import InvalidStateTransition
from papertrade.domain.models import ExitReason, Order, OrderSide, OrderStatus
from papertrade.state.store import OrderStore


def compute_profit(
    side: OrderSide,
    entry_price: float,
    exit_price: float,
    quantity: float,
    leverage: float = 1.0,
) -> float:
    """Leveraged realized profit; negative for losing trades."""
    if side is OrderSide.BUY:
        base_profit = (exit_price - entry_price) * quantity
    else:
        base_profit = (entry_price - exit_price) * quantity
    return base_profit * leverage


def close_position(
    order: Order,
    exit_price: float,
    closed_at: datetime,
    reason: ExitReason = ExitReason.MANUAL,
) -> Order:
    """Return the closed version of an open order."""
    if order.status is not OrderStatus.OPEN:
        raise InvalidStateTransition(order.order_id, order.status.value, "close")
    profit = compute_profit(
        order.side,
        order.entry_price,
        exit_price,
        order.quantity,
        order.leverage,
    )
    return replace(
        order,
        status=OrderStatus.CLOSED,
        exit_price=exit_price,
        profit=profit,
        closed_at=closed_at,
        close_reason=reason,
    )


def cancel_pending(order: Order, cancelled_at: datetime) -> Order:
    """Return the cancelled version of a pending order. No profit is computed."""
    if order.status is not OrderStatus.PENDING:
        raise InvalidStateTransition(order.order_id, order.status.value, "cancel")
    return replace(order, status=OrderStatus.CANCELLED, closed_at=cancelled_at)


def record_settlement(
    store: OrderStore,
    closed_order: Order,
    previous_status: OrderStatus = OrderStatus.OPEN,
) -> None:
    """Persist a close and credit its profit in one transaction.

    The order row is only rewritten while it still has previous_status, so a
    concurrent second close of the same order settles nothing.
    """
    if closed_order.status is not OrderStatus.CLOSED or closed_order.profit is None:
        raise ValueError(f"order {closed_order.order_id} is not a settled close")
    with store.transaction():
        if not store.save_order(closed_order, expected_status=previous_status):
            current = store.get_order(closed_order.order_id)
            status = current.status.value if current is not None else "missing"
            raise InvalidStateTransition(closed_order.order_id, status, "close")
        store.apply_profit(closed_order.owner_id, closed_order.profit)


def record_cancellation(store: OrderStore, cancelled_order: Order) -> None:
    with store.transaction():
        if not store.save_order(cancelled_order, expected_status=OrderStatus.PENDING):
            current = store.get_order(cancelled_order.order_id)
            status = current.status.value if current is not None else "missing"
            raise InvalidStateTransition(cancelled_order.order_id, status, "cancel")
