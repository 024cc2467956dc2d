from __future__ import annotations

from datetime import UTC, datetime

import pytest

from papertrade.config import Settings
from papertrade.domain.errors import (
    AccountNotFound,
    DailyLimitExceeded,
    InsufficientBalance,
    InvalidStateTransition,
    MissingRequiredField,
    OrderNotFound,
)
from papertrade.domain.events import TradeEvent
from papertrade.domain.models import ExitReason, OrderRequest, OrderStatus
from papertrade.service import TradingService
from papertrade.state.sqlite_store import SqliteOrderStore

NOW = datetime(2026, 3, 2, 14, 30, tzinfo=UTC)


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[TradeEvent] = []

    def emit(self, event: TradeEvent) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [event.event_type for event in self.events]


def _service(**settings: object) -> tuple[TradingService, RecordingSink]:
    sink = RecordingSink()
    service = TradingService(
        store=SqliteOrderStore(":memory:"),
        settings=Settings(**settings),
        event_sink=sink,
        clock=lambda: NOW,
    )
    return service, sink


def _market(quantity: float = 10, entry_price: float = 100.0, **extra: object) -> OrderRequest:
    return OrderRequest(
        symbol="SPY",
        side="buy",
        order_type="market",
        quantity=quantity,
        entry_price=entry_price,
        **extra,
    )


def test_limit_order_lifecycle_from_pending_to_open() -> None:
    service, sink = _service()
    service.open_account("u1")
    order = service.submit_order(
        "u1",
        OrderRequest(symbol="SPY", side="buy", order_type="limit", quantity=10, trigger_price=95),
    )

    idle = service.evaluate_triggers("u1", {"SPY": 100})
    report = service.evaluate_triggers("u1", {"SPY": 94})

    assert order.status is OrderStatus.PENDING
    assert idle.executed_count == 0
    assert report.executed_count == 1
    stored = service.store.get_order(order.order_id)
    assert stored is not None
    assert stored.status is OrderStatus.OPEN
    assert stored.entry_price == 94
    assert "order_executed" in sink.types()


def test_stop_loss_close_settles_balance_and_profit() -> None:
    service, sink = _service()
    service.open_account("u1")
    order = service.submit_order(
        "u1",
        OrderRequest(
            symbol="SPY",
            side="buy",
            order_type="oco",
            quantity=10,
            entry_price=100,
            stop_loss_price=95,
            take_profit_price=110,
        ),
    )

    report = service.evaluate_triggers("u1", {"SPY": 94})

    assert report.executed_count == 1
    assert report.closed_count == 1
    closed = report.closed[0]
    assert closed.order_id == order.order_id
    assert closed.profit == pytest.approx(-60.0)
    assert closed.close_reason is ExitReason.STOP_LOSS
    account = service.get_account("u1")
    assert account.simulator_balance == pytest.approx(9_940.0)
    assert account.total_profit == pytest.approx(-60.0)
    closed_event = [event for event in sink.events if event.event_type == "order_closed"][0]
    assert closed_event.payload["profit"] == pytest.approx(-60.0)
    assert closed_event.payload["symbol"] == "SPY"


def test_trailing_stop_sequence_through_service() -> None:
    service, _ = _service()
    service.open_account("u1")
    order = service.submit_order(
        "u1",
        OrderRequest(
            symbol="SPY",
            side="buy",
            order_type="trailing_stop",
            quantity=10,
            entry_price=100,
            trailing_percent=5,
        ),
    )

    opened = service.evaluate_triggers("u1", {"SPY": 100})
    service.evaluate_triggers("u1", {"SPY": 105})
    service.evaluate_triggers("u1", {"SPY": 103})
    stored = service.store.get_order(order.order_id)
    assert stored is not None
    assert stored.trailing_high_price == 105

    final = service.evaluate_triggers("u1", {"SPY": 99.7})

    assert opened.executed_count == 1
    assert final.closed_count == 1
    assert final.closed[0].exit_price == 99.7
    assert final.closed[0].close_reason is ExitReason.TRAILING_STOP


def test_cancel_open_order_is_rejected_and_leaves_it_open() -> None:
    service, _ = _service()
    service.open_account("u1")
    order = service.submit_order("u1", _market())

    with pytest.raises(InvalidStateTransition):
        service.cancel_order("u1", order.order_id)

    stored = service.store.get_order(order.order_id)
    assert stored == order


def test_insufficient_balance_persists_nothing() -> None:
    service, sink = _service()
    service.open_account("u1", simulator_balance=4_000)

    with pytest.raises(InsufficientBalance):
        service.submit_order("u1", _market(quantity=100, entry_price=50))

    account = service.get_account("u1")
    assert account.simulator_balance == 4_000
    assert account.daily_trades_count == 0
    assert service.list_orders("u1") == []
    assert sink.types()[-1] == "order_rejected"


def test_trial_quota_blocks_sixth_order_of_the_day() -> None:
    service, _ = _service(achievements_enabled=False)
    service.open_account("u1")
    for _ in range(5):
        service.submit_order("u1", _market(quantity=1))

    with pytest.raises(DailyLimitExceeded):
        service.submit_order("u1", _market(quantity=1))

    limits = service.trade_limits("u1")
    assert limits.is_limited is True
    assert limits.used == 5
    assert limits.remaining == 0
    assert len(service.list_orders("u1")) == 5


def test_quota_is_configurable_and_skips_subscribers() -> None:
    service, _ = _service(trial_daily_trade_limit=1, achievements_enabled=False)
    service.open_account("trial")
    service.open_account("member", membership_status="active")
    service.submit_order("trial", _market(quantity=1))
    for _ in range(3):
        service.submit_order("member", _market(quantity=1))

    with pytest.raises(DailyLimitExceeded, match="Daily limit of 1 trades"):
        service.submit_order("trial", _market(quantity=1))

    member_limits = service.trade_limits("member")
    assert member_limits.is_limited is False
    assert member_limits.used == 3


def test_validation_errors_do_not_consume_quota() -> None:
    service, _ = _service()
    service.open_account("u1")

    with pytest.raises(MissingRequiredField):
        service.submit_order(
            "u1",
            OrderRequest(symbol="SPY", side="buy", order_type="limit", quantity=1),
        )

    assert service.get_account("u1").daily_trades_count == 0


def test_unknown_account_is_rejected() -> None:
    service, _ = _service()

    with pytest.raises(AccountNotFound):
        service.submit_order("ghost", _market())


def test_manual_close_credits_leveraged_profit() -> None:
    service, _ = _service()
    service.open_account("u1")
    order = service.submit_order("u1", _market(quantity=2, entry_price=50, leverage=10))

    closed = service.close_order("u1", order.order_id, 55)

    assert closed.profit == pytest.approx(100.0)
    assert closed.close_reason is ExitReason.MANUAL
    assert service.get_account("u1").simulator_balance == pytest.approx(10_100.0)


def test_double_close_settles_once() -> None:
    service, _ = _service()
    service.open_account("u1")
    order = service.submit_order("u1", _market())
    service.close_order("u1", order.order_id, 110)

    with pytest.raises(InvalidStateTransition):
        service.close_order("u1", order.order_id, 120)

    assert service.get_account("u1").total_profit == pytest.approx(100.0)


def test_close_requires_positive_exit_price() -> None:
    service, _ = _service()
    service.open_account("u1")
    order = service.submit_order("u1", _market())

    with pytest.raises(MissingRequiredField):
        service.close_order("u1", order.order_id, 0)


@pytest.mark.parametrize("exit_price", [float("nan"), float("inf")])
def test_close_rejects_non_finite_exit_price(exit_price: float) -> None:
    service, _ = _service()
    service.open_account("u1")
    order = service.submit_order("u1", _market())

    with pytest.raises(MissingRequiredField):
        service.close_order("u1", order.order_id, exit_price)

    stored = service.store.get_order(order.order_id)
    assert stored is not None
    assert stored.status is OrderStatus.OPEN
    assert service.get_account("u1").total_profit == 0


def test_non_finite_values_never_reach_the_store() -> None:
    service, _ = _service()
    service.open_account("u1")
    kept = service.submit_order(
        "u1",
        OrderRequest(symbol="SPY", side="buy", order_type="limit", quantity=1, trigger_price=95),
    )

    with pytest.raises(MissingRequiredField):
        service.submit_order(
            "u1",
            OrderRequest(
                symbol="SPY", side="buy", order_type="limit", quantity=1, trigger_price="nan"
            ),
        )
    with pytest.raises(MissingRequiredField):
        service.submit_order("u1", _market(quantity=float("nan")))

    idle = service.evaluate_triggers("u1", {"SPY": float("nan")})
    report = service.evaluate_triggers("u1", {"SPY": 94})

    assert idle.executed_count == 0
    assert report.executed_count == 1
    assert [order.order_id for order in service.list_orders("u1")] == [kept.order_id]


def test_membership_update_lifts_the_daily_quota() -> None:
    service, sink = _service(trial_daily_trade_limit=1, achievements_enabled=False)
    service.open_account("u1")
    service.submit_order("u1", _market(quantity=1))
    with pytest.raises(DailyLimitExceeded):
        service.submit_order("u1", _market(quantity=1))

    account = service.update_membership("u1", subscription_id="sub_1", membership_status="active")
    service.submit_order("u1", _market(quantity=1))

    assert account.is_trial is False
    assert service.trade_limits("u1").is_limited is False
    assert "membership_updated" in sink.types()
    with pytest.raises(AccountNotFound):
        service.update_membership("ghost", subscription_id=None, membership_status="active")


def test_other_owners_orders_are_not_found() -> None:
    service, _ = _service()
    service.open_account("u1")
    service.open_account("u2")
    order = service.submit_order("u1", _market())

    with pytest.raises(OrderNotFound):
        service.close_order("u2", order.order_id, 110)
    with pytest.raises(OrderNotFound):
        service.cancel_order("u2", order.order_id)


def test_cancel_pending_order() -> None:
    service, sink = _service()
    service.open_account("u1")
    order = service.submit_order(
        "u1",
        OrderRequest(symbol="SPY", side="sell", order_type="stop", quantity=1, trigger_price=90),
    )

    cancelled = service.cancel_order("u1", order.order_id)

    assert cancelled.status is OrderStatus.CANCELLED
    assert service.list_orders("u1", "pending") == []
    assert service.evaluate_triggers("u1", {"SPY": 80}).executed_count == 0
    assert "order_cancelled" in sink.types()


def test_pending_execution_is_deferred_when_balance_dropped() -> None:
    service, _ = _service()
    service.open_account("u1", simulator_balance=1_000)
    order = service.submit_order(
        "u1",
        OrderRequest(symbol="SPY", side="buy", order_type="limit", quantity=20, trigger_price=95),
    )

    report = service.evaluate_triggers("u1", {"SPY": 90})

    assert report.executed_count == 0
    assert [deferred.order_id for deferred in report.deferred] == [order.order_id]
    stored = service.store.get_order(order.order_id)
    assert stored is not None
    assert stored.status is OrderStatus.PENDING


def test_recheck_can_be_disabled() -> None:
    service, _ = _service(recheck_buying_power=False)
    service.open_account("u1", simulator_balance=1_000)
    service.submit_order(
        "u1",
        OrderRequest(symbol="SPY", side="buy", order_type="limit", quantity=20, trigger_price=95),
    )

    assert service.evaluate_triggers("u1", {"SPY": 90}).executed_count == 1


def test_first_trade_achievement_grants_xp_once() -> None:
    service, sink = _service()
    service.open_account("u1")
    service.submit_order("u1", _market(quantity=1))
    service.submit_order("u1", _market(quantity=1))

    statuses = {
        status.definition.achievement_id: status
        for status in service.achievement_statuses("u1")
    }

    assert statuses["first_trade"].unlocked
    assert statuses["first_trade"].progress == 100
    assert statuses["active_trader"].progress == 8
    assert service.get_account("u1").xp == 50
    assert sink.types().count("achievement_unlocked") == 1


def test_profitable_close_unlocks_first_profit() -> None:
    service, _ = _service()
    service.open_account("u1")
    order = service.submit_order("u1", _market(quantity=1))

    service.close_order("u1", order.order_id, 101)

    statuses = {
        status.definition.achievement_id: status
        for status in service.achievement_statuses("u1")
    }
    assert statuses["first_profit"].unlocked
    assert service.get_account("u1").xp == 50 + 75


def test_read_operations() -> None:
    service, _ = _service(achievements_enabled=False)
    service.open_account("alice", display_name="Alice")
    service.open_account("bob")
    win = service.submit_order("alice", _market(quantity=1))
    loss = service.submit_order("alice", _market(quantity=1))
    service.submit_order("bob", _market(quantity=1))
    service.close_order("alice", win.order_id, 120)
    service.close_order("alice", loss.order_id, 90)

    summary = service.trade_summary("alice")
    ranking = service.leaderboard()

    assert summary.total_orders == 2
    assert summary.closed_trades == 2
    assert summary.wins == 1
    assert summary.win_rate == pytest.approx(0.5)
    assert summary.total_profit == pytest.approx(10.0)
    assert summary.best_trade == pytest.approx(20.0)
    assert summary.worst_trade == pytest.approx(-10.0)
    assert [account.owner_id for account in ranking] == ["alice", "bob"]
    assert service.total_orders_count() == 3
    assert len(service.list_orders("alice", OrderStatus.CLOSED)) == 2
