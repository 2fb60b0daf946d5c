"""
Unit tests for the thermia-summary CLI: output format and exit codes.

The collector is replaced by a fake so no network or login happens.
"""

from __future__ import annotations

import json
import logging

import pytest
import requests

from thermia_exporter.api_auth.auth import Credentials
from thermia_exporter.errors import (
    ApiShapeError,
    ApiStatusError,
    ConfigError,
    DeadlineExceededError,
    InvalidCredentialsError,
    TransportError,
)
from thermia_exporter.heatpump import summary_cli
from thermia_exporter.heatpump.models import HeatpumpSummary
from thermia_exporter.heatpump.readings import decode_registers


def _summary() -> HeatpumpSummary:
    return HeatpumpSummary(
        heatpump_id=42,
        heatpump_name="Villa",
        heatpump_model="Atlas 12",
        online=True,
        last_online="2024-01-15T10:30:00.000Z",
        last_online_unix=1705314600,
        readings=decode_registers({}),
        errors=(),
    )


def _ssl_transport_error() -> TransportError:
    err = TransportError("GET https://online.thermia.se/api/configuration failed")
    err.__cause__ = requests.exceptions.SSLError("certificate verify failed")
    return err


@pytest.fixture
def fake_collector(monkeypatch: pytest.MonkeyPatch):
    """Install a fake collector whose collect() returns or raises `outcome`."""
    old_factory = logging.getLogRecordFactory()
    for name in ("THERMIA_REQUEST_TIMEOUT", "THERMIA_SCRAPE_TIMEOUT", "THERMIA_TOKEN_CACHE_PATH", "THERMIA_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(summary_cli, "load_credentials", lambda log=None: Credentials("user@example.com", "pw"))

    state: dict = {"outcome": _summary(), "kwargs": None}

    class FakeCollector:
        def __init__(self, token_cache, **kwargs) -> None:
            state["kwargs"] = kwargs

        def collect(self):
            outcome = state["outcome"]
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome

    monkeypatch.setattr(summary_cli, "ThermiaCollector", FakeCollector)
    yield state
    logging.setLogRecordFactory(old_factory)


def test_prints_summary_json(fake_collector, capsys: pytest.CaptureFixture[str]) -> None:
    rc = summary_cli.main([])

    out = capsys.readouterr().out
    assert rc == 0
    data = json.loads(out)
    assert data["heatpump_id"] == 42
    assert data["heatpump_model"] == "Atlas 12"
    assert data["errors"] == []
    assert fake_collector["kwargs"]["timeout_seconds"] == 30.0
    assert fake_collector["kwargs"]["scrape_timeout_seconds"] == 120.0
    assert fake_collector["kwargs"]["ssl_verify"] is True


def test_pretty_output_is_indented(fake_collector, capsys: pytest.CaptureFixture[str]) -> None:
    rc = summary_cli.main(
        ["--pretty", "--timeout-seconds", "12", "--scrape-timeout-seconds", "60", "--insecure-skip-ssl-verify"]
    )

    out = capsys.readouterr().out
    assert rc == 0
    assert out.startswith("{\n  ")
    assert json.loads(out)["heatpump_name"] == "Villa"
    assert fake_collector["kwargs"]["timeout_seconds"] == 12.0
    assert fake_collector["kwargs"]["scrape_timeout_seconds"] == 60.0
    assert fake_collector["kwargs"]["ssl_verify"] is False


def test_no_installation_exits_1(fake_collector, capsys: pytest.CaptureFixture[str]) -> None:
    fake_collector["outcome"] = None

    assert summary_cli.main([]) == 1
    assert "no installation" in capsys.readouterr().err


@pytest.mark.parametrize(
    "error",
    [
        InvalidCredentialsError("Login rejected: password=hunter22"),
        ConfigError("Missing Thermia credentials."),
    ],
)
def test_auth_and_config_errors_exit_2(fake_collector, capsys: pytest.CaptureFixture[str], error) -> None:
    fake_collector["outcome"] = error

    assert summary_cli.main([]) == 2
    err = capsys.readouterr().err
    assert err.startswith("Error: ")
    assert "hunter22" not in err


def test_timeout_below_minimum_exits_2(fake_collector, capsys: pytest.CaptureFixture[str]) -> None:
    assert summary_cli.main(["--timeout-seconds", "5"]) == 2
    assert fake_collector["kwargs"] is None


def test_ssl_failure_exits_3(fake_collector, capsys: pytest.CaptureFixture[str]) -> None:
    fake_collector["outcome"] = _ssl_transport_error()

    assert summary_cli.main([]) == 3
    assert "--insecure-skip-ssl-verify" in capsys.readouterr().err


@pytest.mark.parametrize(
    "error",
    [
        TransportError("GET installationsInfo timed out after 30s"),
        ApiStatusError("GET installationsInfo returned 503", status_code=503),
        ApiShapeError("GET installationsInfo response was not valid JSON"),
        DeadlineExceededError("scrape deadline of 120s exceeded before REG_GROUP_TEMPERATURES"),
    ],
)
def test_network_and_api_errors_exit_4(fake_collector, capsys: pytest.CaptureFixture[str], error) -> None:
    fake_collector["outcome"] = error

    assert summary_cli.main([]) == 4
    assert "Error:" in capsys.readouterr().err


def test_keyboard_interrupt_exits_130(fake_collector, capsys: pytest.CaptureFixture[str]) -> None:
    fake_collector["outcome"] = KeyboardInterrupt()

    assert summary_cli.main([]) == 130
    assert "Interrupted." in capsys.readouterr().err
