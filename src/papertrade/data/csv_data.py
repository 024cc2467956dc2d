"""CSV-backed price source."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import pandas as pd


class CsvPriceSource:
    """Serve latest close prices from local OHLCV CSV files.

    With walk_forward enabled every get_prices call advances each symbol by one
    bar, which replays history through the trigger evaluator.
    """

    date_column_candidates = ("date", "datetime", "timestamp")

    def __init__(self, data_dir: str, walk_forward: bool = False, warmup_bars: int = 1) -> None:
        self.data_dir = Path(data_dir)
        self.walk_forward = walk_forward
        self.warmup_bars = max(1, warmup_bars)
        self._bars_cache: dict[str, pd.DataFrame] = {}
        self._cursor_by_symbol: dict[str, int] = {}

    def get_prices(self, symbols: Iterable[str]) -> dict[str, float]:
        prices: dict[str, float] = {}
        for symbol in symbols:
            bars = self.get_bars(symbol)
            if bars is None:
                continue
            prices[symbol] = float(bars["close"].iloc[-1])
        return prices

    def get_bars(self, symbol: str) -> pd.DataFrame | None:
        """Return the visible bar window for symbol, or None without a CSV."""
        bars = self._load_bars(symbol)
        if bars is None:
            return None
        if not self.walk_forward:
            return bars

        cursor = self._cursor_by_symbol.get(symbol)
        if cursor is None:
            cursor = min(self.warmup_bars, len(bars))
        end = max(1, min(cursor, len(bars)))
        self._cursor_by_symbol[symbol] = min(cursor + 1, len(bars) + 1)
        return bars.iloc[:end]

    def _load_bars(self, symbol: str) -> pd.DataFrame | None:
        cached = self._bars_cache.get(symbol)
        if cached is not None:
            return cached
        path = self._resolve_path(symbol)
        if path is None:
            return None
        frame = pd.read_csv(path)
        normalized = self._normalize_csv(frame, symbol)
        self._bars_cache[symbol] = normalized
        return normalized

    def _resolve_path(self, symbol: str) -> Path | None:
        value = symbol.strip()
        market: str | None = None
        if ":" in value:
            market, value = (part.strip() for part in value.split(":", 1))
        candidates: list[Path] = []
        if market:
            for folder in (market.upper(), market.lower()):
                candidates.extend(
                    [
                        self.data_dir / folder / f"{value.upper()}.csv",
                        self.data_dir / folder / f"{value.lower()}.csv",
                    ]
                )
        candidates.extend(
            [
                self.data_dir / f"{value}.csv",
                self.data_dir / f"{value.upper()}.csv",
                self.data_dir / f"{value.lower()}.csv",
            ]
        )
        for candidate in candidates:
            if candidate.exists():
                return candidate
        return None

    def _normalize_csv(self, frame: pd.DataFrame, symbol: str) -> pd.DataFrame:
        lower_to_original = {column.strip().lower(): column for column in frame.columns}
        date_column = self._pick_date_column(lower_to_original)
        close_column = lower_to_original.get("close")
        if close_column is None:
            raise ValueError(f"{symbol}: CSV missing required column 'close'")
        normalized = pd.DataFrame(
            {"close": pd.to_numeric(frame[close_column], errors="coerce")},
        )
        normalized.index = pd.to_datetime(frame[date_column], utc=False)
        normalized = normalized.sort_index().dropna(subset=["close"])
        normalized = normalized[normalized["close"] > 0]
        if normalized.empty:
            raise ValueError(f"{symbol}: data has no valid close prices")
        return normalized

    def _pick_date_column(self, lower_to_original: dict[str, str]) -> str:
        for candidate in self.date_column_candidates:
            if candidate in lower_to_original:
                return lower_to_original[candidate]
        candidates = ", ".join(self.date_column_candidates)
        raise ValueError(f"CSV missing date column. Expected one of: {candidates}")
