"""Trading service: the submit, evaluate, close and cancel operations."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from papertrade.achievements import (
    DEFAULT_ACHIEVEMENTS,
    AchievementDefinition,
    AchievementStatus,
    achievement_statuses,
    recompute_achievements,
)
from papertrade.analytics import TradeSummary, summarize_trades
from papertrade.config import Settings
from papertrade.domain.errors import (
    AccountNotFound,
    InvalidStateTransition,
    MissingRequiredField,
    OrderNotFound,
    TradingError,
)
from papertrade.domain.events import TradeEvent
from papertrade.domain.models import (
    Account,
    ExitReason,
    Order,
    OrderRequest,
    OrderStatus,
    OrderType,
    TradeLimits,
)
from papertrade.execution.admission import (
    build_order,
    check_buying_power,
    check_daily_quota,
    trade_limits,
)
from papertrade.execution.settlement import (
    cancel_pending,
    close_position,
    record_cancellation,
    record_settlement,
)
from papertrade.execution.triggers import evaluate_triggers
from papertrade.logging.event_sink import EventSink, NullEventSink
from papertrade.logging.logger import HumanLogger
from papertrade.state.store import OrderStore


@dataclass(frozen=True)
class TriggerReport:
    """Orders that changed state during one evaluator call."""

    executed: list[Order] = field(default_factory=list)
    closed: list[Order] = field(default_factory=list)
    deferred: list[Order] = field(default_factory=list)

    @property
    def executed_count(self) -> int:
        return len(self.executed)

    @property
    def closed_count(self) -> int:
        return len(self.closed)


class TradingService:
    """Order lifecycle operations for simulator accounts.

    The evaluator has no clock of its own: callers decide how often to call
    evaluate_triggers and with which price snapshot.
    """

    def __init__(
        self,
        store: OrderStore,
        settings: Settings | None = None,
        event_sink: EventSink | None = None,
        human_logger: HumanLogger | None = None,
        clock: Callable[[], datetime] | None = None,
        achievements: tuple[AchievementDefinition, ...] = DEFAULT_ACHIEVEMENTS,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.event_sink = event_sink or NullEventSink()
        self.human_logger = human_logger or HumanLogger(level=self.settings.log_level)
        self.clock = clock or (lambda: datetime.now(tz=UTC))
        self.achievements = achievements

    def open_account(
        self,
        owner_id: str,
        *,
        display_name: str = "",
        role: str = "student",
        subscription_id: str | None = None,
        membership_status: str = "inactive",
        simulator_balance: float | None = None,
        lessons_completed: int = 0,
    ) -> Account:
        balance = self.settings.starting_balance if simulator_balance is None else simulator_balance
        account = Account(
            owner_id=owner_id,
            display_name=display_name,
            simulator_balance=float(balance),
            subscription_id=subscription_id,
            membership_status=membership_status,
            role=role,
            lessons_completed=lessons_completed,
        )
        self.store.create_account(account)
        self._emit(
            owner_id,
            "account_opened",
            None,
            {"simulator_balance": account.simulator_balance},
        )
        return account

    def get_account(self, owner_id: str) -> Account:
        account = self.store.get_account(owner_id)
        if account is None:
            raise AccountNotFound(owner_id)
        return account

    def update_membership(
        self,
        owner_id: str,
        *,
        subscription_id: str | None,
        membership_status: str,
        role: str | None = None,
    ) -> Account:
        """Change the fields that decide whether the daily quota applies."""
        with self.store.transaction():
            self.get_account(owner_id)
            self.store.update_membership(
                owner_id,
                subscription_id=subscription_id,
                membership_status=membership_status,
                role=role,
            )
            account = self.get_account(owner_id)
        self._emit(
            owner_id,
            "membership_updated",
            None,
            {
                "subscription_id": account.subscription_id,
                "membership_status": account.membership_status,
                "role": account.role,
            },
        )
        return account

    def submit_order(self, owner_id: str, request: OrderRequest) -> Order:
        """Validate, rate limit and persist a new order as open or pending."""
        now = self.clock()
        today = now.date().isoformat()
        try:
            order = build_order(
                owner_id,
                request,
                order_id=uuid4().hex,
                now=now,
                max_trailing_percent=self.settings.max_trailing_percent,
            )
            with self.store.transaction():
                account = self.get_account(owner_id)
                check_daily_quota(account, today, self.settings.trial_daily_trade_limit)
                if order.order_type is OrderType.MARKET:
                    check_buying_power(account, order.quantity, order.entry_price)
                self.store.insert_order(order)
                self.store.record_trade_admission(owner_id, today)
        except TradingError as exc:
            self.human_logger.order_rejected(owner_id, str(request.symbol or ""), str(exc))
            self._emit(
                owner_id,
                "order_rejected",
                None,
                {
                    "symbol": request.symbol,
                    "order_type": request.order_type,
                    "error": type(exc).__name__,
                    "message": str(exc),
                },
            )
            raise

        self.human_logger.order_submit(order)
        self._emit(owner_id, "order_submitted", order.order_id, serialize_order(order))
        self._recompute(owner_id)
        return order

    def evaluate_triggers(self, owner_id: str, prices: Mapping[str, float]) -> TriggerReport:
        """Apply one price snapshot to the owner's pending and open orders."""
        now = self.clock()
        with self.store.transaction():
            account = self.get_account(owner_id)
            pending = self.store.list_orders(owner_id, [OrderStatus.PENDING])
            open_orders = self.store.list_orders(owner_id, [OrderStatus.OPEN])
            buying_power = account.simulator_balance if self.settings.recheck_buying_power else None
            outcome = evaluate_triggers(pending, open_orders, prices, now, buying_power)
            for order, previous_status in outcome.changed_orders():
                if order.status is OrderStatus.CLOSED:
                    record_settlement(self.store, order, previous_status)
                elif not self.store.save_order(order, expected_status=previous_status):
                    raise InvalidStateTransition(order.order_id, previous_status.value, "update")

        for order in outcome.executed:
            self.human_logger.order_executed(order)
            self._emit(owner_id, "order_executed", order.order_id, serialize_order(order))
        for order in outcome.updated:
            self.human_logger.trailing_update(order)
            self._emit(
                owner_id,
                "trailing_updated",
                order.order_id,
                {"symbol": order.symbol, "trailing_high_price": order.trailing_high_price},
            )
        for order in outcome.deferred:
            self._emit(
                owner_id,
                "execution_deferred",
                order.order_id,
                {"symbol": order.symbol, "reason": "insufficient_balance"},
            )
        for order in outcome.closed:
            self.human_logger.order_closed(order)
            self._emit(owner_id, "order_closed", order.order_id, serialize_order(order))
        if outcome.closed:
            self._log_balance(owner_id)
            self._recompute(owner_id)
        return TriggerReport(
            executed=list(outcome.executed),
            closed=list(outcome.closed),
            deferred=list(outcome.deferred),
        )

    def close_order(self, owner_id: str, order_id: str, exit_price: float) -> Order:
        """Close an open position at exit_price and settle its profit."""
        if exit_price is None or not math.isfinite(float(exit_price)) or float(exit_price) <= 0:
            raise MissingRequiredField("exit_price")
        now = self.clock()
        with self.store.transaction():
            order = self._owned_order(owner_id, order_id)
            closed = close_position(order, float(exit_price), now, ExitReason.MANUAL)
            record_settlement(self.store, closed, OrderStatus.OPEN)
        self.human_logger.order_closed(closed)
        self._emit(owner_id, "order_closed", closed.order_id, serialize_order(closed))
        self._log_balance(owner_id)
        self._recompute(owner_id)
        return closed

    def cancel_order(self, owner_id: str, order_id: str) -> Order:
        """Cancel a pending order. Open and terminal orders cannot be cancelled."""
        now = self.clock()
        with self.store.transaction():
            order = self._owned_order(owner_id, order_id)
            cancelled = cancel_pending(order, now)
            record_cancellation(self.store, cancelled)
        self.human_logger.order_cancelled(cancelled)
        self._emit(owner_id, "order_cancelled", cancelled.order_id, serialize_order(cancelled))
        self._recompute(owner_id)
        return cancelled

    def list_orders(
        self,
        owner_id: str,
        status: OrderStatus | str | Iterable[OrderStatus] | None = None,
    ) -> list[Order]:
        if status is None:
            return self.store.list_orders(owner_id)
        if isinstance(status, str):
            return self.store.list_orders(owner_id, [OrderStatus(status)])
        return self.store.list_orders(owner_id, list(status))

    def trade_limits(self, owner_id: str) -> TradeLimits:
        account = self.get_account(owner_id)
        today = self.clock().date().isoformat()
        return trade_limits(account, today, self.settings.trial_daily_trade_limit)

    def leaderboard(self, limit: int = 50) -> list[Account]:
        return self.store.leaderboard(limit)

    def trade_summary(self, owner_id: str) -> TradeSummary:
        self.get_account(owner_id)
        return summarize_trades(self.store.list_orders(owner_id))

    def achievement_statuses(self, owner_id: str) -> list[AchievementStatus]:
        self.get_account(owner_id)
        return achievement_statuses(self.store, owner_id, self.achievements)

    def total_orders_count(self) -> int:
        return self.store.count_orders()

    def _owned_order(self, owner_id: str, order_id: str) -> Order:
        order = self.store.get_order(order_id)
        if order is None or order.owner_id != owner_id:
            raise OrderNotFound(order_id)
        return order

    def _recompute(self, owner_id: str) -> None:
        if not self.settings.achievements_enabled:
            return
        unlocked = recompute_achievements(
            self.store,
            owner_id,
            self.achievements,
            now=self.clock(),
        )
        for definition in unlocked:
            self.human_logger.achievement_unlocked(owner_id, definition.name, definition.xp_reward)
            self._emit(
                owner_id,
                "achievement_unlocked",
                None,
                {"achievement_id": definition.achievement_id, "xp_reward": definition.xp_reward},
            )

    def _log_balance(self, owner_id: str) -> None:
        account = self.get_account(owner_id)
        self.human_logger.balance(owner_id, account.simulator_balance, account.total_profit)

    def _emit(
        self,
        owner_id: str,
        event_type: str,
        order_id: str | None,
        payload: dict[str, Any],
    ) -> None:
        self.event_sink.emit(
            TradeEvent(
                owner_id=owner_id,
                event_type=event_type,
                order_id=order_id,
                payload=payload,
            )
        )


def serialize_order(order: Order) -> dict[str, Any]:
    """Convert an order into a stable, JSON-friendly payload."""
    return {
        "order_id": order.order_id,
        "symbol": order.symbol,
        "side": order.side.value,
        "order_type": order.order_type.value,
        "status": order.status.value,
        "quantity": order.quantity,
        "entry_price": order.entry_price,
        "exit_price": order.exit_price,
        "trigger_price": order.trigger_price,
        "stop_loss_price": order.stop_loss_price,
        "take_profit_price": order.take_profit_price,
        "trailing_percent": order.trailing_percent,
        "trailing_high_price": order.trailing_high_price,
        "leverage": order.leverage,
        "profit": order.profit,
        "close_reason": order.close_reason.value if order.close_reason else None,
        "opened_at": order.opened_at.isoformat(),
        "closed_at": order.closed_at.isoformat() if order.closed_at else None,
    }
