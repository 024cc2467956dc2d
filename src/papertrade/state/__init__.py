"""Order store interfaces and implementations."""

from .sqlite_store import SqliteOrderStore
from .store import AccountStats, AchievementProgressRecord, OrderStore

__all__ = ["OrderStore", "AccountStats", "AchievementProgressRecord", "SqliteOrderStore"]
