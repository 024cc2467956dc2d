"""Command-line interface for the papertrade simulator."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

from papertrade.config import Settings, parse_prices, parse_symbols
from papertrade.domain.errors import TradingError
from papertrade.domain.models import Order, OrderRequest
from papertrade.logging.event_sink import JsonlEventSink, generate_plotly_report
from papertrade.runtime import build_service, run_scheduler
from papertrade.service import TradingService


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(description="Paper trading simulator for students")
    parser.add_argument("--state-db", type=str, help="SQLite state database path")
    parser.add_argument("--events-dir", type=str, help="Event log directory")
    parser.add_argument("--log-level", type=str, help="Console log level")
    commands = parser.add_subparsers(dest="command", required=True)

    open_account = commands.add_parser("open-account", help="Create a simulator account")
    open_account.add_argument("owner")
    open_account.add_argument("--display-name", default="")
    open_account.add_argument("--role", choices=["student", "teacher", "admin"], default="student")
    open_account.add_argument("--balance", type=float, help="Starting simulator balance")
    open_account.add_argument("--subscription-id", type=str)
    open_account.add_argument("--membership-status", default="inactive")

    membership = commands.add_parser("membership", help="Update subscription and role")
    membership.add_argument("owner")
    membership.add_argument("status", help="Membership status, e.g. active or inactive")
    membership.add_argument("--subscription-id", type=str)
    membership.add_argument("--role", choices=["student", "teacher", "admin"])

    submit = commands.add_parser("submit", help="Submit a new order")
    submit.add_argument("owner")
    submit.add_argument("symbol")
    submit.add_argument("side")
    submit.add_argument("order_type")
    submit.add_argument("quantity", type=float)
    submit.add_argument("--entry-price", type=float, default=0.0)
    submit.add_argument("--trigger-price", type=float)
    submit.add_argument("--stop-loss", type=float)
    submit.add_argument("--take-profit", type=float)
    submit.add_argument("--trailing-percent", type=float)
    submit.add_argument("--leverage", type=float, default=1.0)

    check = commands.add_parser("check-triggers", help="Evaluate one price snapshot")
    check.add_argument("owner")
    check.add_argument("--prices", required=True, help="SYMBOL=PRICE,SYMBOL=PRICE")

    close = commands.add_parser("close", help="Close an open position")
    close.add_argument("owner")
    close.add_argument("order_id")
    close.add_argument("exit_price", type=float)

    cancel = commands.add_parser("cancel", help="Cancel a pending order")
    cancel.add_argument("owner")
    cancel.add_argument("order_id")

    orders = commands.add_parser("orders", help="List orders")
    orders.add_argument("owner")
    orders.add_argument("--status", choices=["pending", "open", "closed", "cancelled"])

    limits = commands.add_parser("limits", help="Show daily trade limits")
    limits.add_argument("owner")

    leaderboard = commands.add_parser("leaderboard", help="Rank accounts by total profit")
    leaderboard.add_argument("--limit", type=int, default=50)

    summary = commands.add_parser("summary", help="Trade statistics for an account")
    summary.add_argument("owner")

    report = commands.add_parser("report", help="Render an HTML report from an event log")
    report.add_argument("events_path")
    report.add_argument("html_path")

    scheduler = commands.add_parser("run-scheduler", help="Evaluate triggers on an interval")
    scheduler.add_argument("--max-passes", type=int, help="Stop after this many passes")
    scheduler.add_argument("--interval-seconds", type=float, help="Seconds between passes")
    scheduler.add_argument("--historical-dir", type=str, help="CSV historical data directory")
    scheduler.add_argument("--walk-forward", action="store_true", help="Replay CSV bars")
    scheduler.add_argument("--symbols", type=str, help="Comma-separated symbols")
    return parser


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Apply CLI values onto environment-derived settings."""
    overrides: dict[str, object] = {}
    if args.state_db:
        overrides["state_db_path"] = args.state_db
    if args.events_dir:
        overrides["events_dir"] = args.events_dir
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if args.command == "run-scheduler":
        if args.max_passes is not None:
            overrides["max_passes"] = args.max_passes
        if args.interval_seconds is not None:
            overrides["interval_seconds"] = args.interval_seconds
        if args.historical_dir:
            overrides["historical_data_dir"] = args.historical_dir
        if args.walk_forward:
            overrides["walk_forward"] = True
        if args.symbols:
            overrides["symbols"] = parse_symbols(args.symbols, settings.symbols)
    return settings.with_overrides(**overrides)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = apply_cli_overrides(Settings.from_env(), args)
        prices = parse_prices(args.prices) if args.command == "check-triggers" else {}
    except ValueError as exc:
        print(f"Configuration error: {exc}")
        return 2

    if args.command == "run-scheduler":
        return run_scheduler(settings)
    if args.command == "report":
        generate_plotly_report(args.events_path, args.html_path)
        print(f"report written to {args.html_path}")
        return 0

    event_sink = JsonlEventSink(str(Path(settings.events_dir) / "events.jsonl"))
    service = build_service(settings, event_sink=event_sink)
    try:
        return run_command(service, args, prices)
    except TradingError as exc:
        print(f"error: {exc}")
        return 1
    finally:
        service.store.close()


def run_command(service: TradingService, args: argparse.Namespace, prices: dict[str, float]) -> int:
    """Dispatch one account or order command and print its result."""
    if args.command == "open-account":
        account = service.open_account(
            args.owner,
            display_name=args.display_name,
            role=args.role,
            subscription_id=args.subscription_id,
            membership_status=args.membership_status,
            simulator_balance=args.balance,
        )
        print(f"account {account.owner_id} | balance ${account.simulator_balance:,.2f}")
    elif args.command == "membership":
        account = service.update_membership(
            args.owner,
            subscription_id=args.subscription_id,
            membership_status=args.status,
            role=args.role,
        )
        trial = "trial" if account.is_trial else "member"
        print(f"account {account.owner_id} | {account.membership_status} | {trial}")
    elif args.command == "submit":
        order = service.submit_order(
            args.owner,
            OrderRequest(
                symbol=args.symbol,
                side=args.side,
                order_type=args.order_type,
                quantity=args.quantity,
                entry_price=args.entry_price,
                trigger_price=args.trigger_price,
                stop_loss_price=args.stop_loss,
                take_profit_price=args.take_profit,
                trailing_percent=args.trailing_percent,
                leverage=args.leverage,
            ),
        )
        print(format_order(order))
    elif args.command == "check-triggers":
        report = service.evaluate_triggers(args.owner, prices)
        print(
            f"executed {report.executed_count} | closed {report.closed_count}"
            f" | deferred {len(report.deferred)}"
        )
        for order in [*report.executed, *report.closed]:
            print(format_order(order))
    elif args.command == "close":
        print(format_order(service.close_order(args.owner, args.order_id, args.exit_price)))
    elif args.command == "cancel":
        print(format_order(service.cancel_order(args.owner, args.order_id)))
    elif args.command == "orders":
        for order in service.list_orders(args.owner, args.status):
            print(format_order(order))
    elif args.command == "limits":
        limits = service.trade_limits(args.owner)
        if limits.is_limited:
            print(f"{limits.used}/{limits.limit} trades today | {limits.remaining} remaining")
        else:
            print(f"unlimited | {limits.used} trades today")
    elif args.command == "leaderboard":
        for rank, account in enumerate(service.leaderboard(args.limit), start=1):
            name = account.display_name or account.owner_id
            print(f"{rank:>3} | {name} | {account.total_profit:+,.2f}")
    elif args.command == "summary":
        summary = service.trade_summary(args.owner)
        print(
            f"orders {summary.total_orders} | closed {summary.closed_trades}"
            f" | win rate {summary.win_rate:.1%} | total {summary.total_profit:+,.2f}"
            f" | best {summary.best_trade:+,.2f} | worst {summary.worst_trade:+,.2f}"
        )
    return 0


def format_order(order: Order) -> str:
    parts = [
        order.order_id,
        order.symbol,
        f"{order.side.value} {order.quantity:g}",
        order.order_type.value,
        order.status.value,
        f"entry {order.entry_price:,.2f}",
    ]
    if order.exit_price is not None:
        parts.append(f"exit {order.exit_price:,.2f}")
    if order.profit is not None:
        parts.append(f"pnl {order.profit:+,.2f}")
    return " | ".join(parts)


if __name__ == "__main__":
    sys.exit(main())
