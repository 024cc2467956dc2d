"""Order and account store contract used by the trading service."""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from papertrade.domain.models import Account, Order, OrderStatus


@dataclass(frozen=True)
class AccountStats:
    """Aggregate counters read by the achievement recompute pass."""

    trades_placed: int
    profitable_trades: int
    closed_trades: int


@dataclass(frozen=True)
class AchievementProgressRecord:
    """Persisted progress of one achievement for one owner."""

    achievement_id: str
    progress: int
    unlocked_at: datetime | None


class OrderStore(Protocol):
    """Persistence API for orders, balance aggregates and achievement progress."""

    def transaction(self) -> AbstractContextManager[None]:
        """Serialize a unit of work; everything inside commits or rolls back together."""

    def create_account(self, account: Account) -> Account:
        """Insert a new balance aggregate."""

    def get_account(self, owner_id: str) -> Account | None:
        """Return the balance aggregate for owner_id."""

    def update_membership(
        self,
        owner_id: str,
        *,
        subscription_id: str | None,
        membership_status: str,
        role: str | None = None,
    ) -> None:
        """Update the fields that gate admission."""

    def record_trade_admission(self, owner_id: str, today: str) -> None:
        """Atomically bump the daily counter, resetting it on a new date."""

    def apply_profit(self, owner_id: str, profit: float) -> None:
        """Atomically add profit to balance and total profit."""

    def grant_xp(self, owner_id: str, xp: int) -> None:
        """Atomically add experience points."""

    def insert_order(self, order: Order) -> None:
        """Persist a newly admitted order."""

    def get_order(self, order_id: str) -> Order | None:
        """Return a single order by id."""

    def save_order(self, order: Order, expected_status: OrderStatus) -> bool:
        """Rewrite an order only while its stored status is expected_status."""

    def list_orders(
        self,
        owner_id: str,
        statuses: Iterable[OrderStatus] | None = None,
    ) -> list[Order]:
        """Return the owner's orders, optionally filtered by status."""

    def owners_with_active_orders(self) -> list[str]:
        """Return owners holding pending or open orders."""

    def count_orders(self) -> int:
        """Return the total number of orders across all owners."""

    def account_stats(self, owner_id: str) -> AccountStats:
        """Return trade counters for one owner."""

    def leaderboard(self, limit: int = 50) -> list[Account]:
        """Return accounts ordered by total profit."""

    def get_achievement_progress(self, owner_id: str) -> dict[str, AchievementProgressRecord]:
        """Return stored achievement progress keyed by achievement id."""

    def save_achievement_progress(
        self,
        owner_id: str,
        achievement_id: str,
        progress: int,
        unlocked_at: datetime | None = None,
    ) -> bool:
        """Store progress without regressing; return true on first unlock."""

    def close(self) -> None:
        """Close persistence resources."""
