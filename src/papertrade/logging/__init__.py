"""Logging helpers."""

from .event_sink import EventSink, JsonlEventSink, NullEventSink, generate_plotly_report
from .logger import HumanLogger

__all__ = ["EventSink", "HumanLogger", "JsonlEventSink", "NullEventSink", "generate_plotly_report"]
