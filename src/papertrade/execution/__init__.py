"""Order admission, trigger evaluation and settlement."""

from .admission import build_order, check_buying_power, check_daily_quota, trade_limits
from .settlement import close_position, compute_profit, record_settlement
from .triggers import TriggerOutcome, evaluate_triggers

__all__ = [
    "build_order",
    "check_buying_power",
    "check_daily_quota",
    "trade_limits",
    "close_position",
    "compute_profit",
    "record_settlement",
    "TriggerOutcome",
    "evaluate_triggers",
]
