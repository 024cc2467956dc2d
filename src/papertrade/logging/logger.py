"""Concise human-readable simulator logger."""

from __future__ import annotations

import logging

from papertrade.domain.models import Order


class HumanLogger:
    """Console logger with fixed line types."""

    def __init__(self, level: str = "INFO") -> None:
        self._logger = logging.getLogger("papertrade")
        self._logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        self._logger.propagate = False
        if not self._logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s | %(message)s", "%Y-%m-%d %H:%M:%S")
            handler.setFormatter(formatter)
            self._logger.addHandler(handler)

    def order_submit(self, order: Order) -> None:
        parts = [
            f"submit | {order.symbol} | {order.side.value} {self._format_qty(order.quantity)}",
            f"{order.order_type.value}",
            f"status {order.status.value}",
        ]
        if order.entry_price > 0:
            parts.append(f"entry ${order.entry_price:,.3f}")
        if order.trigger_price is not None:
            parts.append(f"trigger ${order.trigger_price:,.3f}")
        self._logger.info(" | ".join(parts))

    def order_rejected(self, owner_id: str, symbol: str, reason: str) -> None:
        self._logger.warning("reject | %s | %s | %s", owner_id, symbol or "-", reason)

    def order_executed(self, order: Order) -> None:
        self._logger.info(
            "execute | %s | %s %s | entry $%s",
            order.symbol,
            order.side.value,
            self._format_qty(order.quantity),
            f"{order.entry_price:,.3f}",
        )

    def order_closed(self, order: Order) -> None:
        reason = order.close_reason.value if order.close_reason is not None else "manual"
        exit_price = order.exit_price if order.exit_price is not None else 0.0
        profit = order.profit if order.profit is not None else 0.0
        self._logger.info(
            "close | %s | %s | exit $%s | pnl %s",
            order.symbol,
            reason,
            f"{exit_price:,.3f}",
            f"{profit:+,.2f}",
        )

    def order_cancelled(self, order: Order) -> None:
        self._logger.info("cancel | %s | %s", order.symbol, self._short_id(order.order_id))

    def trailing_update(self, order: Order) -> None:
        if order.trailing_high_price is None:
            return None
        self._logger.debug(
            "trailing | %s | best $%s",
            order.symbol,
            f"{order.trailing_high_price:,.3f}",
        )

    def achievement_unlocked(self, owner_id: str, name: str, xp_reward: int) -> None:
        self._logger.info("unlock | %s | %s | +%s xp", owner_id, name, xp_reward)

    def balance(self, owner_id: str, balance: float, total_profit: float) -> None:
        self._logger.info(
            "balance | %s | $%s | total_pnl %s",
            owner_id,
            f"{balance:,.2f}",
            f"{total_profit:+,.2f}",
        )

    def scheduler_pass(self, pass_number: int, owners: int, executed: int, closed: int) -> None:
        self._logger.info(
            "pass | %s | owners %s | executed %s | closed %s",
            pass_number,
            owners,
            executed,
            closed,
        )

    def error(self, message: str) -> None:
        self._logger.error("error | %s", message)

    @staticmethod
    def _short_id(value: str | None, head: int = 8, tail: int = 4) -> str:
        if not value:
            return ""
        text = str(value)
        if len(text) <= head + tail + 1:
            return text
        return f"{text[:head]}...{text[-tail:]}"

    @staticmethod
    def _format_qty(value: float, precision: int = 8) -> str:
        normalized = 0.0 if abs(float(value)) < 1e-9 else float(value)
        text = f"{normalized:.{max(0, precision)}f}".rstrip("0").rstrip(".")
        if text in {"", "-", "-0"}:
            return "0"
        return text
