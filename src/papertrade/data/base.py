"""Price source contract."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol


class PriceSource(Protocol):
    """Interface for price snapshots fed to the trigger evaluator."""

    def get_prices(self, symbols: Iterable[str]) -> dict[str, float]:
        """Return the latest known price per symbol; unknown symbols are omitted."""


class StaticPriceSource:
    """Fixed in-memory snapshot, updated explicitly by the caller."""

    def __init__(self, prices: Mapping[str, float] | None = None) -> None:
        self.prices: dict[str, float] = {}
        if prices:
            self.update(prices)

    def update(self, prices: Mapping[str, float]) -> None:
        for symbol, price in prices.items():
            self.prices[symbol] = float(price)

    def get_prices(self, symbols: Iterable[str]) -> dict[str, float]:
        return {symbol: self.prices[symbol] for symbol in symbols if symbol in self.prices}
