from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from papertrade.domain.errors import InvalidStateTransition
from papertrade.domain.models import (
    Account,
    ExitReason,
    LimitTerms,
    OcoTerms,
    Order,
    OrderSide,
    OrderStatus,
    OrderTerms,
)
from papertrade.execution.settlement import (
    cancel_pending,
    close_position,
    compute_profit,
    record_cancellation,
    record_settlement,
)
from papertrade.state.sqlite_store import SqliteOrderStore

NOW = datetime(2026, 3, 2, 16, 0, tzinfo=UTC)


def _order(
    terms: OrderTerms,
    status: OrderStatus = OrderStatus.OPEN,
    leverage: float = 1.0,
) -> Order:
    return Order(
        order_id="o1",
        owner_id="u1",
        symbol="SPY",
        side=OrderSide.BUY,
        terms=terms,
        status=status,
        quantity=10,
        entry_price=100.0,
        opened_at=NOW,
        leverage=leverage,
    )


def _store(tmp_path: Path, balance: float = 10_000.0) -> SqliteOrderStore:
    store = SqliteOrderStore(str(tmp_path / "state.db"))
    store.create_account(Account(owner_id="u1", simulator_balance=balance))
    return store


@pytest.mark.parametrize(
    ("side", "entry", "exit_price", "quantity", "leverage", "expected"),
    [
        (OrderSide.BUY, 100, 94, 10, 1, -60),
        (OrderSide.BUY, 100, 110, 10, 1, 100),
        (OrderSide.SELL, 100, 90, 5, 1, 50),
        (OrderSide.SELL, 100, 104, 5, 1, -20),
        (OrderSide.BUY, 50, 55, 2, 10, 100),
    ],
)
def test_compute_profit(
    side: OrderSide,
    entry: float,
    exit_price: float,
    quantity: float,
    leverage: float,
    expected: float,
) -> None:
    assert compute_profit(side, entry, exit_price, quantity, leverage) == pytest.approx(expected)


def test_close_position_records_exit_and_reason() -> None:
    closed = close_position(_order(LimitTerms(trigger_price=95), leverage=2), 103, NOW)

    assert closed.status is OrderStatus.CLOSED
    assert closed.exit_price == 103
    assert closed.profit == pytest.approx(60.0)
    assert closed.closed_at == NOW
    assert closed.close_reason is ExitReason.MANUAL


def test_close_requires_open_status() -> None:
    pending = _order(LimitTerms(trigger_price=95), status=OrderStatus.PENDING)

    with pytest.raises(InvalidStateTransition, match="Cannot close order o1 while it is pending"):
        close_position(pending, 100, NOW)


def test_cancel_is_rejected_for_open_order() -> None:
    position = _order(OcoTerms(stop_loss_price=95, take_profit_price=110))

    with pytest.raises(InvalidStateTransition):
        cancel_pending(position, NOW)

    assert position.status is OrderStatus.OPEN


def test_cancel_pending_has_no_profit() -> None:
    cancelled = cancel_pending(_order(LimitTerms(trigger_price=95), OrderStatus.PENDING), NOW)

    assert cancelled.status is OrderStatus.CANCELLED
    assert cancelled.profit is None
    assert cancelled.exit_price is None


def test_record_settlement_credits_balance_once(tmp_path: Path) -> None:
    store = _store(tmp_path)
    position = _order(OcoTerms(stop_loss_price=95, take_profit_price=110))
    store.insert_order(position)
    closed = close_position(position, 94, NOW, ExitReason.STOP_LOSS)

    record_settlement(store, closed)
    with pytest.raises(InvalidStateTransition, match="while it is closed"):
        record_settlement(store, closed)

    account = store.get_account("u1")
    assert account is not None
    assert account.simulator_balance == pytest.approx(9_940.0)
    assert account.total_profit == pytest.approx(-60.0)
    stored = store.get_order("o1")
    assert stored is not None
    assert stored.status is OrderStatus.CLOSED
    assert stored.close_reason is ExitReason.STOP_LOSS
    store.close()


def test_record_settlement_rejects_unsettled_order(tmp_path: Path) -> None:
    store = _store(tmp_path)

    with pytest.raises(ValueError):
        record_settlement(store, _order(LimitTerms(trigger_price=95)))
    store.close()


def test_record_cancellation_only_from_pending(tmp_path: Path) -> None:
    store = _store(tmp_path)
    pending = _order(LimitTerms(trigger_price=95), OrderStatus.PENDING)
    store.insert_order(pending)
    cancelled = cancel_pending(pending, NOW)

    record_cancellation(store, cancelled)
    with pytest.raises(InvalidStateTransition):
        record_cancellation(store, cancelled)

    stored = store.get_order("o1")
    assert stored is not None
    assert stored.status is OrderStatus.CANCELLED
    account = store.get_account("u1")
    assert account is not None
    assert account.simulator_balance == 10_000.0
    store.close()
