"""Environment and CLI runtime configuration."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field, replace
from typing import Self

from dotenv import load_dotenv


def parse_bool(value: str | None, default: bool) -> bool:
    """Parse truthy environment strings."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_optional_positive_int(value: str | None, *, field_name: str) -> int | None:
    """Parse optional positive integer values from env strings."""
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    parsed = int(text)
    if parsed <= 0:
        raise ValueError(f"{field_name} must be positive")
    return parsed


def parse_symbols(value: str | None, default: list[str] | None = None) -> list[str]:
    """Parse comma-separated symbols, keeping their case."""
    fallback = default or []
    if not value:
        return list(fallback)
    symbols = [item.strip() for item in value.split(",") if item.strip()]
    return dedupe_symbols(symbols) or list(fallback)


def dedupe_symbols(symbols: list[str]) -> list[str]:
    """Remove duplicate symbols while preserving order."""
    deduped: list[str] = []
    seen: set[str] = set()
    for symbol in symbols:
        if symbol in seen:
            continue
        seen.add(symbol)
        deduped.append(symbol)
    return deduped


def parse_prices(value: str | None) -> dict[str, float]:
    """Parse a SYMBOL=PRICE comma-separated snapshot."""
    prices: dict[str, float] = {}
    if not value:
        return prices
    for item in value.split(","):
        text = item.strip()
        if not text:
            continue
        if "=" not in text:
            raise ValueError(f"price entry '{text}' must look like SYMBOL=PRICE")
        symbol, raw_price = text.split("=", 1)
        symbol = symbol.strip()
        if not symbol:
            raise ValueError(f"price entry '{text}' has no symbol")
        price = float(raw_price)
        if not math.isfinite(price):
            raise ValueError(f"price for {symbol} must be a finite number")
        prices[symbol] = price
    return prices


@dataclass(frozen=True)
class Settings:
    """Immutable runtime settings."""

    state_db_path: str = "state/papertrade.db"
    events_dir: str = "runs"
    log_level: str = "INFO"
    trial_daily_trade_limit: int = 5
    max_trailing_percent: float = 50.0
    recheck_buying_power: bool = True
    achievements_enabled: bool = True
    starting_balance: float = 10_000.0
    interval_seconds: float = 2.0
    max_passes: int | None = None
    historical_data_dir: str = "historical_data"
    walk_forward: bool = False
    symbols: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> Self:
        """Create settings from environment variables."""
        load_dotenv()
        raw = cls(
            state_db_path=str(os.getenv("STATE_DB_PATH", "state/papertrade.db")).strip(),
            events_dir=str(os.getenv("EVENTS_DIR", "runs")).strip(),
            log_level=str(os.getenv("LOG_LEVEL", "INFO")).strip().upper(),
            trial_daily_trade_limit=int(os.getenv("TRIAL_DAILY_TRADE_LIMIT", "5")),
            max_trailing_percent=float(os.getenv("MAX_TRAILING_PERCENT", "50")),
            recheck_buying_power=parse_bool(os.getenv("RECHECK_BUYING_POWER"), True),
            achievements_enabled=parse_bool(os.getenv("ACHIEVEMENTS_ENABLED"), True),
            starting_balance=float(os.getenv("STARTING_BALANCE", "10000")),
            interval_seconds=float(
                os.getenv("INTERVAL_SECONDS") or os.getenv("POLLING_INTERVAL_SECONDS", "2")
            ),
            max_passes=parse_optional_positive_int(
                os.getenv("MAX_PASSES"),
                field_name="max_passes",
            ),
            historical_data_dir=str(os.getenv("HISTORICAL_DATA_DIR", "historical_data")).strip(),
            walk_forward=parse_bool(os.getenv("WALK_FORWARD"), False),
            symbols=parse_symbols(os.getenv("SYMBOLS")),
        )
        return raw.validate()

    def with_overrides(self, **kwargs: object) -> Self:
        """Return a new settings object with updated values."""
        updated = replace(self, **kwargs)
        return updated.validate()

    def should_run_continuously(self) -> bool:
        return self.max_passes is None

    def validate(self) -> Self:
        """Validate settings fields."""
        if not self.state_db_path:
            raise ValueError("state_db_path must not be empty")
        if self.trial_daily_trade_limit <= 0:
            raise ValueError("trial_daily_trade_limit must be positive")
        if not 0 < self.max_trailing_percent <= 100:
            raise ValueError("max_trailing_percent must be within (0, 100]")
        if self.starting_balance < 0:
            raise ValueError("starting_balance must not be negative")
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if self.max_passes is not None and self.max_passes <= 0:
            raise ValueError("max_passes must be positive")
        return self
