"""SQLite order store with serialized, transactional balance updates."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from papertrade.domain.models import (
    TERMS_BY_TYPE,
    Account,
    ExitReason,
    Order,
    OrderSide,
    OrderStatus,
    OrderTerms,
    OrderType,
)
from papertrade.state.store import AccountStats, AchievementProgressRecord

ACTIVE_STATUSES = (OrderStatus.PENDING.value, OrderStatus.OPEN.value)

ORDER_COLUMNS = (
    "order_id",
    "owner_id",
    "symbol",
    "side",
    "order_type",
    "status",
    "quantity",
    "entry_price",
    "exit_price",
    "trigger_price",
    "stop_loss_price",
    "take_profit_price",
    "trailing_percent",
    "trailing_high_price",
    "leverage",
    "profit",
    "close_reason",
    "opened_at",
    "closed_at",
)


class SqliteOrderStore:
    """SQLite-backed implementation of order and account persistence.

    One connection is shared behind a re-entrant lock. Writes run inside
    BEGIN IMMEDIATE transactions so other processes on the same file are
    serialized too.
    """

    def __init__(self, db_path: str) -> None:
        if db_path != ":memory:":
            path = Path(db_path)
            path.parent.mkdir(parents=True, exist_ok=True)
        self.connection = sqlite3.connect(
            db_path,
            isolation_level=None,
            check_same_thread=False,
        )
        self.connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._initialize_schema()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return
            self.connection.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield
            except BaseException:
                self.connection.execute("ROLLBACK")
                raise
            else:
                self.connection.execute("COMMIT")
            finally:
                self._depth = 0

    def create_account(self, account: Account) -> Account:
        with self.transaction():
            self.connection.execute(
                """
                INSERT INTO accounts(
                    owner_id,
                    display_name,
                    simulator_balance,
                    total_profit,
                    subscription_id,
                    membership_status,
                    role,
                    daily_trades_count,
                    last_trade_date,
                    lessons_completed,
                    xp,
                    created_ts
                )
                VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    account.owner_id,
                    account.display_name,
                    account.simulator_balance,
                    account.total_profit,
                    account.subscription_id,
                    account.membership_status,
                    account.role,
                    account.daily_trades_count,
                    account.last_trade_date,
                    account.lessons_completed,
                    account.xp,
                    self._utc_now(),
                ),
            )
        return account

    def get_account(self, owner_id: str) -> Account | None:
        with self._lock:
            row = self.connection.execute(
                "SELECT * FROM accounts WHERE owner_id = ?",
                (owner_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def update_membership(
        self,
        owner_id: str,
        *,
        subscription_id: str | None,
        membership_status: str,
        role: str | None = None,
    ) -> None:
        with self.transaction():
            self.connection.execute(
                """
                UPDATE accounts
                SET subscription_id = ?, membership_status = ?, role = COALESCE(?, role)
                WHERE owner_id = ?
                """,
                (subscription_id, membership_status, role, owner_id),
            )

    def record_trade_admission(self, owner_id: str, today: str) -> None:
        with self.transaction():
            self.connection.execute(
                """
                UPDATE accounts
                SET daily_trades_count = CASE
                        WHEN last_trade_date = ? THEN daily_trades_count + 1
                        ELSE 1
                    END,
                    last_trade_date = ?
                WHERE owner_id = ?
                """,
                (today, today, owner_id),
            )

    def apply_profit(self, owner_id: str, profit: float) -> None:
        with self.transaction():
            self.connection.execute(
                """
                UPDATE accounts
                SET simulator_balance = simulator_balance + ?,
                    total_profit = total_profit + ?
                WHERE owner_id = ?
                """,
                (profit, profit, owner_id),
            )

    def grant_xp(self, owner_id: str, xp: int) -> None:
        with self.transaction():
            self.connection.execute(
                "UPDATE accounts SET xp = xp + ? WHERE owner_id = ?",
                (int(xp), owner_id),
            )

    def insert_order(self, order: Order) -> None:
        placeholders = ", ".join("?" for _ in ORDER_COLUMNS)
        with self.transaction():
            self.connection.execute(
                f"INSERT INTO orders({', '.join(ORDER_COLUMNS)}) VALUES({placeholders})",
                self._order_to_row(order),
            )

    def get_order(self, order_id: str) -> Order | None:
        with self._lock:
            row = self.connection.execute(
                "SELECT * FROM orders WHERE order_id = ?",
                (order_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_order(row)

    def save_order(self, order: Order, expected_status: OrderStatus) -> bool:
        values = self._order_to_row(order)
        assignments = ", ".join(f"{column} = ?" for column in ORDER_COLUMNS[2:])
        with self.transaction():
            cursor = self.connection.execute(
                f"""
                UPDATE orders
                SET {assignments}
                WHERE order_id = ? AND status = ?
                """,
                (*values[2:], order.order_id, expected_status.value),
            )
        return cursor.rowcount == 1

    def list_orders(
        self,
        owner_id: str,
        statuses: Iterable[OrderStatus] | None = None,
    ) -> list[Order]:
        query = "SELECT * FROM orders WHERE owner_id = ?"
        params: list[Any] = [owner_id]
        if statuses is not None:
            status_values = [OrderStatus(status).value for status in statuses]
            if not status_values:
                return []
            query += f" AND status IN ({', '.join('?' for _ in status_values)})"
            params.extend(status_values)
        query += " ORDER BY opened_at ASC, rowid ASC"
        with self._lock:
            rows = self.connection.execute(query, params).fetchall()
        return [self._row_to_order(row) for row in rows]

    def owners_with_active_orders(self) -> list[str]:
        with self._lock:
            rows = self.connection.execute(
                """
                SELECT DISTINCT owner_id
                FROM orders
                WHERE status IN (?, ?)
                ORDER BY owner_id ASC
                """,
                ACTIVE_STATUSES,
            ).fetchall()
        return [str(row["owner_id"]) for row in rows]

    def count_orders(self) -> int:
        with self._lock:
            row = self.connection.execute("SELECT COUNT(*) AS total FROM orders").fetchone()
        return int(row["total"])

    def account_stats(self, owner_id: str) -> AccountStats:
        with self._lock:
            row = self.connection.execute(
                """
                SELECT
                    SUM(CASE WHEN status != 'cancelled' THEN 1 ELSE 0 END) AS placed,
                    SUM(CASE WHEN status = 'closed' AND profit > 0 THEN 1 ELSE 0 END)
                        AS profitable,
                    SUM(CASE WHEN status = 'closed' THEN 1 ELSE 0 END) AS closed
                FROM orders
                WHERE owner_id = ?
                """,
                (owner_id,),
            ).fetchone()
        return AccountStats(
            trades_placed=int(row["placed"] or 0),
            profitable_trades=int(row["profitable"] or 0),
            closed_trades=int(row["closed"] or 0),
        )

    def leaderboard(self, limit: int = 50) -> list[Account]:
        with self._lock:
            rows = self.connection.execute(
                """
                SELECT *
                FROM accounts
                ORDER BY total_profit DESC, owner_id ASC
                LIMIT ?
                """,
                (max(0, int(limit)),),
            ).fetchall()
        return [self._row_to_account(row) for row in rows]

    def get_achievement_progress(self, owner_id: str) -> dict[str, AchievementProgressRecord]:
        with self._lock:
            rows = self.connection.execute(
                """
                SELECT achievement_id, progress, unlocked_at
                FROM achievement_progress
                WHERE owner_id = ?
                """,
                (owner_id,),
            ).fetchall()
        records: dict[str, AchievementProgressRecord] = {}
        for row in rows:
            records[str(row["achievement_id"])] = AchievementProgressRecord(
                achievement_id=str(row["achievement_id"]),
                progress=int(row["progress"]),
                unlocked_at=self._parse_ts(row["unlocked_at"]),
            )
        return records

    def save_achievement_progress(
        self,
        owner_id: str,
        achievement_id: str,
        progress: int,
        unlocked_at: datetime | None = None,
    ) -> bool:
        now = self._utc_now()
        with self.transaction():
            self.connection.execute(
                """
                INSERT INTO achievement_progress(
                    owner_id, achievement_id, progress, unlocked_at, updated_ts
                )
                VALUES(?, ?, ?, NULL, ?)
                ON CONFLICT(owner_id, achievement_id) DO UPDATE SET
                    progress = MAX(progress, excluded.progress),
                    updated_ts = excluded.updated_ts
                """,
                (owner_id, achievement_id, int(progress), now),
            )
            if unlocked_at is None:
                return False
            cursor = self.connection.execute(
                """
                UPDATE achievement_progress
                SET unlocked_at = ?
                WHERE owner_id = ? AND achievement_id = ? AND unlocked_at IS NULL
                """,
                (unlocked_at.isoformat(), owner_id, achievement_id),
            )
        return cursor.rowcount == 1

    def close(self) -> None:
        self.connection.close()

    def _initialize_schema(self) -> None:
        with self.transaction():
            self.connection.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts(
                    owner_id TEXT PRIMARY KEY,
                    display_name TEXT NOT NULL DEFAULT '',
                    simulator_balance REAL NOT NULL,
                    total_profit REAL NOT NULL DEFAULT 0,
                    subscription_id TEXT,
                    membership_status TEXT NOT NULL DEFAULT 'inactive',
                    role TEXT NOT NULL DEFAULT 'student',
                    daily_trades_count INTEGER NOT NULL DEFAULT 0,
                    last_trade_date TEXT,
                    lessons_completed INTEGER NOT NULL DEFAULT 0,
                    xp INTEGER NOT NULL DEFAULT 0,
                    created_ts TEXT NOT NULL
                )
                """
            )
            self.connection.execute(
                """
                CREATE TABLE IF NOT EXISTS orders(
                    order_id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    order_type TEXT NOT NULL,
                    status TEXT NOT NULL,
                    quantity REAL NOT NULL,
                    entry_price REAL NOT NULL,
                    exit_price REAL,
                    trigger_price REAL,
                    stop_loss_price REAL,
                    take_profit_price REAL,
                    trailing_percent REAL,
                    trailing_high_price REAL,
                    leverage REAL NOT NULL DEFAULT 1,
                    profit REAL,
                    close_reason TEXT,
                    opened_at TEXT NOT NULL,
                    closed_at TEXT
                )
                """
            )
            self.connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_orders_owner_status
                ON orders(owner_id, status)
                """
            )
            self.connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_orders_status
                ON orders(status)
                """
            )
            self.connection.execute(
                """
                CREATE TABLE IF NOT EXISTS achievement_progress(
                    owner_id TEXT NOT NULL,
                    achievement_id TEXT NOT NULL,
                    progress INTEGER NOT NULL,
                    unlocked_at TEXT,
                    updated_ts TEXT NOT NULL,
                    PRIMARY KEY(owner_id, achievement_id)
                )
                """
            )

    @staticmethod
    def _order_to_row(order: Order) -> tuple[Any, ...]:
        return (
            order.order_id,
            order.owner_id,
            order.symbol,
            order.side.value,
            order.order_type.value,
            order.status.value,
            order.quantity,
            order.entry_price,
            order.exit_price,
            order.trigger_price,
            order.stop_loss_price,
            order.take_profit_price,
            order.trailing_percent,
            order.trailing_high_price,
            order.leverage,
            order.profit,
            order.close_reason.value if order.close_reason is not None else None,
            order.opened_at.isoformat(),
            order.closed_at.isoformat() if order.closed_at is not None else None,
        )

    def _row_to_order(self, row: sqlite3.Row) -> Order:
        order_type = OrderType(str(row["order_type"]))
        return Order(
            order_id=str(row["order_id"]),
            owner_id=str(row["owner_id"]),
            symbol=str(row["symbol"]),
            side=OrderSide(str(row["side"])),
            terms=self._row_to_terms(order_type, row),
            status=OrderStatus(str(row["status"])),
            quantity=float(row["quantity"]),
            entry_price=float(row["entry_price"]),
            opened_at=datetime.fromisoformat(str(row["opened_at"])),
            leverage=float(row["leverage"]),
            exit_price=self._optional_float(row["exit_price"]),
            trailing_high_price=self._optional_float(row["trailing_high_price"]),
            profit=self._optional_float(row["profit"]),
            closed_at=self._parse_ts(row["closed_at"]),
            close_reason=ExitReason(row["close_reason"]) if row["close_reason"] else None,
        )

    @staticmethod
    def _row_to_terms(order_type: OrderType, row: sqlite3.Row) -> OrderTerms:
        terms_class = TERMS_BY_TYPE[order_type]
        field_names = getattr(terms_class, "__dataclass_fields__", {})
        return terms_class(**{name: float(row[name]) for name in field_names})

    @staticmethod
    def _row_to_account(row: sqlite3.Row) -> Account:
        return Account(
            owner_id=str(row["owner_id"]),
            display_name=str(row["display_name"] or ""),
            simulator_balance=float(row["simulator_balance"]),
            total_profit=float(row["total_profit"]),
            subscription_id=str(row["subscription_id"]) if row["subscription_id"] else None,
            membership_status=str(row["membership_status"]),
            role=str(row["role"]),
            daily_trades_count=int(row["daily_trades_count"]),
            last_trade_date=str(row["last_trade_date"]) if row["last_trade_date"] else None,
            lessons_completed=int(row["lessons_completed"]),
            xp=int(row["xp"]),
        )

    @staticmethod
    def _optional_float(value: Any) -> float | None:
        if value is None:
            return None
        return float(value)

    @staticmethod
    def _parse_ts(value: Any) -> datetime | None:
        if not value:
            return None
        return datetime.fromisoformat(str(value))

    @staticmethod
    def _utc_now() -> str:
        return datetime.now(tz=UTC).isoformat()
