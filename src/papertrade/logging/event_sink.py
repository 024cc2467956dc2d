"""JSONL event sink and Plotly realized-P/L report generator."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

import pandas as pd
import plotly.express as px

from papertrade.domain.events import TradeEvent


class EventSink(Protocol):
    def emit(self, event: TradeEvent) -> None:
        """Record one event."""


class NullEventSink:
    """Sink that drops every event."""

    def emit(self, event: TradeEvent) -> None:
        _ = event


class JsonlEventSink:
    """Append-only JSONL writer."""

    def __init__(self, path: str) -> None:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.path = output_path

    def emit(self, event: TradeEvent) -> None:
        record = event.to_record()
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, sort_keys=True))
            handle.write("\n")


def load_events(path: str | Path) -> list[dict[str, Any]]:
    """Load JSONL records from disk."""
    records: list[dict[str, Any]] = []
    input_path = Path(path)
    if not input_path.exists():
        return records
    with input_path.open("r", encoding="utf-8") as handle:
        for line in handle:
            text = line.strip()
            if not text:
                continue
            records.append(json.loads(text))
    return records


def realized_pnl_frame(events: list[dict[str, Any]]) -> pd.DataFrame:
    """Cumulative realized profit per owner from order_closed events."""
    rows: list[dict[str, Any]] = []
    for event in events:
        if event.get("event_type") != "order_closed":
            continue
        payload = event.get("payload", {})
        rows.append(
            {
                "ts": event.get("ts"),
                "owner_id": event.get("owner_id", ""),
                "symbol": payload.get("symbol", ""),
                "profit": float(payload.get("profit") or 0.0),
            }
        )
    if not rows:
        return pd.DataFrame(columns=["ts", "owner_id", "symbol", "profit", "cumulative_profit"])
    frame = pd.DataFrame(rows)
    frame["ts"] = pd.to_datetime(frame["ts"], utc=True, errors="coerce")
    frame = frame.sort_values("ts")
    frame["cumulative_profit"] = frame.groupby("owner_id")["profit"].cumsum()
    return frame


def generate_plotly_report(events_jsonl_path: str, output_html_path: str) -> None:
    """Render realized P/L and event counts as a standalone HTML page."""
    events = load_events(events_jsonl_path)
    output = Path(output_html_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    if not events:
        empty_df = pd.DataFrame({"event_type": ["none"], "count": [0]})
        figure = px.bar(empty_df, x="event_type", y="count", title="Simulator Event Summary")
        figure.write_html(str(output), include_plotlyjs="cdn")
        return

    counts = (
        pd.DataFrame([{"event_type": event.get("event_type")} for event in events])
        .groupby("event_type", dropna=False)
        .size()
        .reset_index(name="count")
    )
    bars = px.bar(counts, x="event_type", y="count", title="Simulator Event Counts")
    html_parts = [
        "<html><head><meta charset='utf-8'><title>papertrade report</title></head><body>",
    ]
    pnl = realized_pnl_frame(events)
    if not pnl.empty:
        timeline = px.line(
            pnl,
            x="ts",
            y="cumulative_profit",
            color="owner_id",
            markers=True,
            title="Cumulative Realized P/L",
            hover_data=["symbol", "profit"],
        )
        html_parts.append(timeline.to_html(full_html=False, include_plotlyjs="cdn"))
        html_parts.append(bars.to_html(full_html=False, include_plotlyjs=False))
    else:
        html_parts.append(bars.to_html(full_html=False, include_plotlyjs="cdn"))
    html_parts.append("</body></html>")
    output.write_text("".join(html_parts), encoding="utf-8")
