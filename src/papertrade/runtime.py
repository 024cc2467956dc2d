"""Runtime wiring and the trigger scheduler loop."""

from __future__ import annotations

from pathlib import Path
from time import sleep
from uuid import uuid4

from papertrade.config import Settings
from papertrade.data.base import PriceSource, StaticPriceSource
from papertrade.data.csv_data import CsvPriceSource
from papertrade.domain.events import TradeEvent
from papertrade.domain.models import OrderStatus
from papertrade.logging.event_sink import EventSink, JsonlEventSink, generate_plotly_report
from papertrade.logging.logger import HumanLogger
from papertrade.service import TradingService
from papertrade.state.sqlite_store import SqliteOrderStore
from papertrade.state.store import OrderStore

ACTIVE = (OrderStatus.PENDING, OrderStatus.OPEN)


def build_store(settings: Settings) -> SqliteOrderStore:
    return SqliteOrderStore(settings.state_db_path)


def build_price_source(settings: Settings) -> PriceSource:
    """CSV prices when the historical directory exists, else an empty snapshot."""
    if Path(settings.historical_data_dir).is_dir():
        return CsvPriceSource(settings.historical_data_dir, walk_forward=settings.walk_forward)
    return StaticPriceSource()


def build_service(
    settings: Settings,
    store: OrderStore | None = None,
    event_sink: EventSink | None = None,
    human_logger: HumanLogger | None = None,
) -> TradingService:
    return TradingService(
        store=store or build_store(settings),
        settings=settings,
        event_sink=event_sink,
        human_logger=human_logger or HumanLogger(level=settings.log_level),
    )


def run_pass(
    service: TradingService,
    price_source: PriceSource,
    symbols: list[str] | None = None,
) -> tuple[int, int, int]:
    """Evaluate every owner with active orders against one shared snapshot.

    Returns (owners, executed, closed). Without an explicit symbol list the
    snapshot covers the symbols of every owner's active orders.
    """
    owners = service.store.owners_with_active_orders()
    if not owners:
        return 0, 0, 0
    wanted = symbols or sorted(
        {
            order.symbol
            for owner_id in owners
            for order in service.list_orders(owner_id, ACTIVE)
        }
    )
    prices = price_source.get_prices(wanted)
    executed = 0
    closed = 0
    for owner_id in owners:
        report = service.evaluate_triggers(owner_id, prices)
        executed += report.executed_count
        closed += report.closed_count
    return len(owners), executed, closed


def run_scheduler(
    settings: Settings,
    price_source: PriceSource | None = None,
    store: OrderStore | None = None,
) -> int:
    """Call the evaluator on a fixed interval until max_passes or interrupt."""
    run_id = uuid4().hex
    run_directory = Path(settings.events_dir) / run_id
    run_directory.mkdir(parents=True, exist_ok=True)
    events_path = run_directory / "events.jsonl"
    report_path = run_directory / "report.html"

    event_sink = JsonlEventSink(str(events_path))
    human_logger = HumanLogger(level=settings.log_level)
    order_store = store or build_store(settings)
    service = build_service(settings, order_store, event_sink, human_logger)
    prices = price_source or build_price_source(settings)

    exit_code = 0
    pass_number = 0
    try:
        while True:
            pass_number += 1
            owners, executed, closed = run_pass(service, prices, settings.symbols or None)
            human_logger.scheduler_pass(pass_number, owners, executed, closed)
            if settings.max_passes is not None and pass_number >= settings.max_passes:
                break
            sleep(float(settings.interval_seconds))
    except KeyboardInterrupt:
        exit_code = 0
    except Exception as exc:
        human_logger.error(str(exc))
        event_sink.emit(
            TradeEvent(
                owner_id="",
                event_type="error",
                payload={"message": str(exc), "pass": pass_number},
            )
        )
        exit_code = 1
    finally:
        try:
            generate_plotly_report(str(events_path), str(report_path))
        finally:
            order_store.close()

    return exit_code
