"""Trade statistics built on pandas."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import pandas as pd

from papertrade.domain.models import Order, OrderStatus

WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

ORDER_FRAME_COLUMNS = [
    "order_id",
    "symbol",
    "side",
    "order_type",
    "status",
    "quantity",
    "entry_price",
    "exit_price",
    "leverage",
    "profit",
    "close_reason",
    "opened_at",
    "closed_at",
]


@dataclass(frozen=True)
class TradeSummary:
    total_orders: int
    closed_trades: int
    wins: int
    losses: int
    win_rate: float
    average_profit: float
    best_trade: float
    worst_trade: float
    total_profit: float


def orders_frame(orders: Iterable[Order]) -> pd.DataFrame:
    """Flatten orders into one row each."""
    rows = [
        {
            "order_id": order.order_id,
            "symbol": order.symbol,
            "side": order.side.value,
            "order_type": order.order_type.value,
            "status": order.status.value,
            "quantity": order.quantity,
            "entry_price": order.entry_price,
            "exit_price": order.exit_price,
            "leverage": order.leverage,
            "profit": order.profit,
            "close_reason": order.close_reason.value if order.close_reason else None,
            "opened_at": order.opened_at,
            "closed_at": order.closed_at,
        }
        for order in orders
    ]
    if not rows:
        return pd.DataFrame(columns=ORDER_FRAME_COLUMNS)
    frame = pd.DataFrame(rows, columns=ORDER_FRAME_COLUMNS)
    frame["opened_at"] = pd.to_datetime(frame["opened_at"], utc=True)
    frame["closed_at"] = pd.to_datetime(frame["closed_at"], utc=True)
    frame["profit"] = pd.to_numeric(frame["profit"], errors="coerce")
    return frame


def closed_trades(frame: pd.DataFrame) -> pd.DataFrame:
    return frame[frame["status"] == OrderStatus.CLOSED.value]


def summarize_trades(orders: Iterable[Order]) -> TradeSummary:
    """Win rate and profit statistics over closed trades."""
    frame = orders_frame(orders)
    closed = closed_trades(frame)
    profits = closed["profit"].astype(float)
    closed_count = int(len(closed))
    wins = int((profits > 0).sum())
    losses = int((profits < 0).sum())
    return TradeSummary(
        total_orders=int(len(frame)),
        closed_trades=closed_count,
        wins=wins,
        losses=losses,
        win_rate=round(wins / closed_count, 6) if closed_count else 0.0,
        average_profit=round(float(profits.mean()), 6) if closed_count else 0.0,
        best_trade=float(profits.max()) if closed_count else 0.0,
        worst_trade=float(profits.min()) if closed_count else 0.0,
        total_profit=round(float(profits.sum()), 6),
    )


def performance_by_weekday(orders: Iterable[Order]) -> pd.DataFrame:
    """Closed trades and win rate percent per weekday of the close."""
    closed = closed_trades(orders_frame(orders))
    summary = pd.DataFrame(index=pd.Index(WEEKDAYS, name="day"))
    if closed.empty:
        summary["trades"] = 0
        summary["win_rate"] = 0.0
        return summary
    days = closed["closed_at"].dt.dayofweek.map(lambda index: WEEKDAYS[index])
    grouped = closed.assign(day=days, win=closed["profit"] > 0).groupby("day")
    summary["trades"] = grouped.size().reindex(WEEKDAYS, fill_value=0).astype(int)
    win_rate = grouped["win"].mean().mul(100).round(2)
    summary["win_rate"] = win_rate.reindex(WEEKDAYS, fill_value=0.0).astype(float)
    return summary
