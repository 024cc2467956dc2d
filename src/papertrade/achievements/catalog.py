"""Built-in achievement definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class AchievementMetric(StrEnum):
    """Aggregate counter an achievement measures."""

    TRADES_PLACED = "trades_placed"
    PROFITABLE_TRADES = "profitable_trades"
    TOTAL_PROFIT = "total_profit"
    SIMULATOR_BALANCE = "simulator_balance"
    LESSONS_COMPLETED = "lessons_completed"


@dataclass(frozen=True)
class AchievementDefinition:
    achievement_id: str
    name: str
    category: str
    metric: AchievementMetric
    requirement: float
    xp_reward: int
    description: str = ""


DEFAULT_ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    AchievementDefinition(
        "first_trade",
        "First Trade",
        "trading",
        AchievementMetric.TRADES_PLACED,
        1,
        50,
        "Place your first simulator order",
    ),
    AchievementDefinition(
        "active_trader",
        "Active Trader",
        "trading",
        AchievementMetric.TRADES_PLACED,
        25,
        150,
        "Place 25 simulator orders",
    ),
    AchievementDefinition(
        "market_veteran",
        "Market Veteran",
        "trading",
        AchievementMetric.TRADES_PLACED,
        100,
        500,
        "Place 100 simulator orders",
    ),
    AchievementDefinition(
        "first_profit",
        "First Profit",
        "profit",
        AchievementMetric.PROFITABLE_TRADES,
        1,
        75,
        "Close a trade in profit",
    ),
    AchievementDefinition(
        "consistent_winner",
        "Consistent Winner",
        "profit",
        AchievementMetric.PROFITABLE_TRADES,
        10,
        250,
        "Close 10 trades in profit",
    ),
    AchievementDefinition(
        "profit_1k",
        "Four Figures",
        "profit",
        AchievementMetric.TOTAL_PROFIT,
        1_000,
        300,
        "Reach $1,000 in total realized profit",
    ),
    AchievementDefinition(
        "profit_10k",
        "Five Figures",
        "profit",
        AchievementMetric.TOTAL_PROFIT,
        10_000,
        1_000,
        "Reach $10,000 in total realized profit",
    ),
    AchievementDefinition(
        "balance_builder",
        "Balance Builder",
        "profit",
        AchievementMetric.SIMULATOR_BALANCE,
        15_000,
        400,
        "Grow your simulator balance to $15,000",
    ),
    AchievementDefinition(
        "student",
        "Student",
        "learning",
        AchievementMetric.LESSONS_COMPLETED,
        1,
        25,
        "Complete your first lesson",
    ),
    AchievementDefinition(
        "scholar",
        "Scholar",
        "learning",
        AchievementMetric.LESSONS_COMPLETED,
        10,
        200,
        "Complete 10 lessons",
    ),
)
