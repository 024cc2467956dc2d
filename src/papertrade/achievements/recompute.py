"""Idempotent achievement progress recompute."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from papertrade.achievements.catalog import (
    DEFAULT_ACHIEVEMENTS,
    AchievementDefinition,
    AchievementMetric,
)
from papertrade.domain.errors import AccountNotFound
from papertrade.state.store import OrderStore


@dataclass(frozen=True)
class AchievementStatus:
    """Progress view returned to callers."""

    definition: AchievementDefinition
    progress: int
    unlocked_at: datetime | None

    @property
    def unlocked(self) -> bool:
        return self.unlocked_at is not None


def compute_progress(value: float, requirement: float) -> int:
    """Percent of requirement reached, clamped to 0..100."""
    if requirement <= 0:
        return 100
    if value <= 0:
        return 0
    return min(100, math.floor(value / requirement * 100))


def collect_metrics(store: OrderStore, owner_id: str) -> dict[AchievementMetric, float]:
    account = store.get_account(owner_id)
    if account is None:
        raise AccountNotFound(owner_id)
    stats = store.account_stats(owner_id)
    return {
        AchievementMetric.TRADES_PLACED: float(stats.trades_placed),
        AchievementMetric.PROFITABLE_TRADES: float(stats.profitable_trades),
        AchievementMetric.TOTAL_PROFIT: account.total_profit,
        AchievementMetric.SIMULATOR_BALANCE: account.simulator_balance,
        AchievementMetric.LESSONS_COMPLETED: float(account.lessons_completed),
    }


def recompute_achievements(
    store: OrderStore,
    owner_id: str,
    definitions: Iterable[AchievementDefinition] = DEFAULT_ACHIEVEMENTS,
    now: datetime | None = None,
) -> list[AchievementDefinition]:
    """Refresh stored progress and return achievements unlocked by this pass.

    Stored progress never goes down, and XP for an achievement is granted only
    by the call that first stamps its unlock time.
    """
    unlocked_now: list[AchievementDefinition] = []
    timestamp = now or datetime.now(tz=UTC)
    with store.transaction():
        metrics = collect_metrics(store, owner_id)
        stored = store.get_achievement_progress(owner_id)
        for definition in definitions:
            progress = compute_progress(metrics[definition.metric], definition.requirement)
            previous = stored.get(definition.achievement_id)
            if previous is not None and previous.progress >= progress and (
                previous.unlocked_at is not None or progress < 100
            ):
                continue
            unlocked_at = timestamp if progress >= 100 else None
            first_unlock = store.save_achievement_progress(
                owner_id,
                definition.achievement_id,
                progress,
                unlocked_at=unlocked_at,
            )
            if first_unlock:
                store.grant_xp(owner_id, definition.xp_reward)
                unlocked_now.append(definition)
    return unlocked_now


def achievement_statuses(
    store: OrderStore,
    owner_id: str,
    definitions: Iterable[AchievementDefinition] = DEFAULT_ACHIEVEMENTS,
) -> list[AchievementStatus]:
    stored = store.get_achievement_progress(owner_id)
    statuses: list[AchievementStatus] = []
    for definition in definitions:
        record = stored.get(definition.achievement_id)
        statuses.append(
            AchievementStatus(
                definition=definition,
                progress=record.progress if record is not None else 0,
                unlocked_at=record.unlocked_at if record is not None else None,
            )
        )
    return statuses
