from __future__ import annotations

import json
from textwrap import dedent

import pytest
from typer.testing import CliRunner

from chainspread import main as cli
from chainspread.alerts import CallbackAlertHandler
from chainspread.monitor import Monitor
from chainspread.registry import ChainRegistry
from chainspread.state import AppState

runner = CliRunner(env={"COLUMNS": "200"})


@pytest.fixture
def alerts() -> list:
    return []


@pytest.fixture(autouse=True)
def offline_monitor(monkeypatch, tmp_path, static_source_cls, alerts):
    """Build monitors backed by fixed in-memory prices."""
    # --config writes os.environ directly
    monkeypatch.setenv("CHAINSPREAD_CONFIG", str(tmp_path / "absent.toml"))
    monkeypatch.setattr(cli, "setup_logging", lambda level=None: None)

    def _build(state: AppState) -> Monitor:
        registry = ChainRegistry.from_settings(state.settings)
        pool = static_source_cls(
            state.settings, registry, "pool", 1, {"ethereum": 2000.0, "base": 2001.0}
        )
        api = static_source_cls(state.settings, registry, "api", 3, {"arbitrum": 2040.0})
        return Monitor(
            state.settings,
            registry=registry,
            sources=[pool, api],
            handlers=[CallbackAlertHandler(alerts.append)],
        )

    monkeypatch.setattr(cli, "build_monitor", _build)


def test_show_config_redacts_secrets(monkeypatch):
    monkeypatch.setenv("CHAINSPREAD_MORALIS_API_KEY", "super-secret")

    result = runner.invoke(cli.app, ["--show-config"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["moralis_api_key"] == "***redacted***"
    assert data["pair"] == "ETH/USDT"
    assert "super-secret" not in result.stdout


def test_show_config_reads_config_file(tmp_path):
    config_path = tmp_path / "alt.toml"
    config_path.write_text("max_parallel = 2\n")

    result = runner.invoke(cli.app, ["--config", str(config_path), "--show-config"])

    assert result.exit_code == 0
    assert json.loads(result.stdout)["max_parallel"] == 2


def test_price_command():
    result = runner.invoke(cli.app, ["price", "Ethereum"])

    assert result.exit_code == 0
    assert "2,000.0000" in result.stdout
    assert "pool" in result.stdout


def test_price_command_unavailable():
    result = runner.invoke(cli.app, ["price", "bsc"])

    assert result.exit_code == 1
    assert "unavailable" in result.stdout


def test_price_command_unknown_chain():
    result = runner.invoke(cli.app, ["price", "solana"])

    assert result.exit_code == 2
    assert "Unsupported chain" in result.output


def test_prices_command_defaults_to_all_chains():
    result = runner.invoke(cli.app, ["prices"])

    assert result.exit_code == 0
    for name in ("Ethereum", "Arbitrum", "Optimism", "Base", "BSC"):
        assert name in result.stdout
    assert "2,040.0000" in result.stdout


def test_compare_command_flags_abnormal_spread():
    result = runner.invoke(cli.app, ["compare", "--threshold", "1.0"])

    assert result.exit_code == 0
    assert "2.0000%" in result.stdout
    assert "threshold 1.00%" in result.stdout


def test_monitor_command_with_chain_arguments(alerts):
    result = runner.invoke(
        cli.app,
        ["monitor", "ethereum", "arbitrum", "--threshold", "1", "--interval", "60", "--duration", "0.05"],
    )

    assert result.exit_code == 0
    assert len(alerts) == 1
    assert alerts[0].task_id == "ethereum-arbitrum"
    assert alerts[0].spread_percent == pytest.approx(2.0)


def test_monitor_command_uses_configured_tasks(tmp_path, alerts):
    config_path = tmp_path / "tasks.toml"
    config_path.write_text(
        dedent(
            """
            [[tasks]]
            id = "eth-base"
            chain_pair = ["ethereum:ETH/USDT", "base:ETH/USDT"]
            threshold_percent = 0.01

            [[tasks]]
            id = "paused"
            chain_pair = ["ethereum:ETH/USDT", "arbitrum:ETH/USDT"]
            active = false
            """
        )
    )

    result = runner.invoke(
        cli.app, ["--config", str(config_path), "monitor", "--duration", "0.05"]
    )

    assert result.exit_code == 0
    assert [a.task_id for a in alerts] == ["eth-base"]


def test_monitor_command_needs_tasks():
    result = runner.invoke(cli.app, ["monitor", "--duration", "0"])

    assert result.exit_code == 2
    assert "no active tasks" in result.output


def test_monitor_command_needs_two_chains():
    result = runner.invoke(cli.app, ["monitor", "ethereum", "--duration", "0"])

    assert result.exit_code == 2
