"""Structured event stream models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass(frozen=True)
class TradeEvent:
    """Single event written to JSONL."""

    owner_id: str
    event_type: str
    order_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    ts: str = field(default_factory=lambda: datetime.now(tz=UTC).isoformat())

    def to_record(self) -> dict[str, Any]:
        """Convert event to serializable dict."""
        return {
            "ts": self.ts,
            "owner_id": self.owner_id,
            "event_type": self.event_type,
            "order_id": self.order_id,
            "payload": self.payload,
        }
