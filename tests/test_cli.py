from __future__ import annotations

from pathlib import Path

import pytest

from papertrade.cli import apply_cli_overrides, build_parser, main
from papertrade.config import Settings
from papertrade.domain.models import OrderStatus
from papertrade.state.sqlite_store import SqliteOrderStore

ENV_KEYS = ["STATE_DB_PATH", "EVENTS_DIR", "MAX_PASSES", "SYMBOLS", "ACHIEVEMENTS_ENABLED"]


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> list[str]:
    monkeypatch.setattr("papertrade.config.load_dotenv", lambda *args, **kwargs: None)
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return ["--state-db", str(tmp_path / "state.db"), "--events-dir", str(tmp_path / "runs")]


def test_scheduler_overrides_produce_expected_settings() -> None:
    parser = build_parser()
    args = parser.parse_args(
        [
            "--state-db",
            "state/test.db",
            "--log-level",
            "debug",
            "run-scheduler",
            "--max-passes",
            "3",
            "--interval-seconds",
            "0.5",
            "--historical-dir",
            "historical_data",
            "--walk-forward",
            "--symbols",
            "SPY,AAPL",
        ]
    )
    settings = apply_cli_overrides(Settings(), args)

    assert settings.state_db_path == "state/test.db"
    assert settings.log_level == "DEBUG"
    assert settings.max_passes == 3
    assert settings.interval_seconds == 0.5
    assert settings.walk_forward is True
    assert settings.symbols == ["SPY", "AAPL"]


def test_cli_rejects_non_positive_max_passes() -> None:
    parser = build_parser()
    args = parser.parse_args(["run-scheduler", "--max-passes", "0"])

    with pytest.raises(ValueError):
        apply_cli_overrides(Settings(), args)


def test_cli_requires_a_command() -> None:
    parser = build_parser()

    with pytest.raises(SystemExit):
        parser.parse_args([])


def test_account_and_order_commands(
    cli_env: list[str], tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert main([*cli_env, "open-account", "u1", "--balance", "5000"]) == 0
    market = ["submit", "u1", "SPY", "buy", "market", "10", "--entry-price", "100"]
    limit = ["submit", "u1", "SPY", "buy", "limit", "5", "--trigger-price", "95"]
    assert main([*cli_env, *market]) == 0
    assert main([*cli_env, *limit]) == 0

    store = SqliteOrderStore(str(tmp_path / "state.db"))
    orders = {order.status: order for order in store.list_orders("u1")}
    store.close()
    market_id = orders[OrderStatus.OPEN].order_id

    assert main([*cli_env, "check-triggers", "u1", "--prices", "SPY=94"]) == 0
    assert main([*cli_env, "close", "u1", market_id, "110"]) == 0
    assert main([*cli_env, "limits", "u1"]) == 0
    assert main([*cli_env, "leaderboard"]) == 0

    output = capsys.readouterr().out
    assert "account u1 | balance $5,000.00" in output
    assert "executed 1 | closed 0 | deferred 0" in output
    assert "pnl +100.00" in output
    assert "2/5 trades today | 3 remaining" in output
    assert "u1 | +100.00" in output
    assert (tmp_path / "runs" / "events.jsonl").exists()


def test_membership_command_removes_trial_limits(
    cli_env: list[str], capsys: pytest.CaptureFixture[str]
) -> None:
    main([*cli_env, "open-account", "u1"])

    assert main([*cli_env, "membership", "u1", "active", "--subscription-id", "sub_1"]) == 0
    assert main([*cli_env, "limits", "u1"]) == 0
    assert main([*cli_env, "membership", "ghost", "active"]) == 1

    output = capsys.readouterr().out
    assert "account u1 | active | member" in output
    assert "unlimited | 0 trades today" in output
    assert "error: Account ghost not found" in output


def test_non_finite_price_snapshot_is_a_configuration_error(
    cli_env: list[str], capsys: pytest.CaptureFixture[str]
) -> None:
    assert main([*cli_env, "check-triggers", "u1", "--prices", "SPY=nan"]) == 2
    assert "must be a finite number" in capsys.readouterr().out


def test_trading_errors_exit_with_one(
    cli_env: list[str], capsys: pytest.CaptureFixture[str]
) -> None:
    main([*cli_env, "open-account", "u1"])

    assert main([*cli_env, "cancel", "u1", "missing"]) == 1
    assert main([*cli_env, "submit", "u1", "SPY", "buy", "iceberg", "1"]) == 1

    output = capsys.readouterr().out
    assert "error: Order missing not found" in output
    assert "error: Invalid order type 'iceberg'" in output


def test_bad_price_snapshot_is_a_configuration_error(
    cli_env: list[str], capsys: pytest.CaptureFixture[str]
) -> None:
    assert main([*cli_env, "check-triggers", "u1", "--prices", "SPY"]) == 2
    assert "Configuration error" in capsys.readouterr().out


def test_report_command_writes_html(
    cli_env: list[str], tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    html_path = tmp_path / "report.html"

    assert main([*cli_env, "report", str(tmp_path / "none.jsonl"), str(html_path)]) == 0
    assert html_path.exists()
    assert "report written" in capsys.readouterr().out
