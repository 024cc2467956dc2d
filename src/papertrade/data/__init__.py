"""Price source implementations."""

from .base import PriceSource, StaticPriceSource
from .csv_data import CsvPriceSource

__all__ = ["PriceSource", "StaticPriceSource", "CsvPriceSource"]
