"""
Unit tests for ThermiaCollector: one scrape end to end against a fake API client.
"""

from __future__ import annotations

import logging
from unittest.mock import Mock

import pytest

from thermia_exporter.api_auth.auth import AuthResult, Credentials
from thermia_exporter.api_auth.token_cache import TokenCache
from thermia_exporter.deadline import Deadline
from thermia_exporter.errors import (
    ApiStatusError,
    DeadlineExceededError,
    InvalidCredentialsError,
    TransportError,
)
from thermia_exporter.heatpump.api_client import (
    REG_GROUP_HOT_WATER,
    REG_GROUP_OPERATIONAL_STATUS,
    REG_GROUP_TEMPERATURES,
    ThermiaApiClient,
)
from thermia_exporter.heatpump.collector import EVENTS_ACTIVE, EVENTS_ALL, ThermiaCollector
from thermia_exporter.heatpump.models import (
    Event,
    Installation,
    InstallationInfo,
    InstallationStatus,
    RegisterItem,
    ValueName,
)

CREDS = Credentials(username="user@example.com", password="pw")


def _token_cache(*tokens: str) -> tuple[TokenCache, Mock]:
    auth = Mock()
    auth.authenticate.side_effect = [AuthResult(access_token=t, expires_in=3600) for t in tokens or ("token-1",)]
    return TokenCache(auth, CREDS), auth


def _fake_api() -> Mock:
    api = Mock(spec=ThermiaApiClient)
    api.get_installations.return_value = [Installation(id=42, name="List name"), Installation(id=43)]
    api.get_installation_info.return_value = InstallationInfo(
        name="",
        model="",
        profile_name="Atlas 12",
        is_online=True,
        last_online="2024-01-15T10:30:00.000Z",
    )
    api.get_installation_status.return_value = InstallationStatus(indoor_temperature=21.0)

    groups = {
        REG_GROUP_TEMPERATURES: [RegisterItem(name="REG_OUTDOOR_TEMPERATURE", value=3.0)],
        REG_GROUP_OPERATIONAL_STATUS: [
            RegisterItem(
                name="COMP_STATUS",
                value=4.0,
                value_names=(ValueName("REG_VALUE_STATUS_HEAT", 4, True),),
            )
        ],
        REG_GROUP_HOT_WATER: [RegisterItem(name="REG_HOT_WATER_STATUS", value=1.0)],
    }
    api.get_register_group.side_effect = lambda inst_id, group: groups.get(group, [])
    api.get_events.side_effect = lambda inst_id, *, only_active: (
        [Event(title="Low pressure")] if only_active else [Event(title="Low pressure"), Event(title="Old")]
    )
    return api


def _collector(
    cache: TokenCache, api: Mock, tokens_seen: list[str] | None = None, **kwargs
) -> ThermiaCollector:
    def factory(access_token: str, deadline: Deadline) -> Mock:
        if tokens_seen is not None:
            tokens_seen.append(access_token)
        return api

    return ThermiaCollector(cache, api_client_factory=factory, **kwargs)


def test_collect_reads_first_installation() -> None:
    cache, _ = _token_cache()
    api = _fake_api()
    tokens: list[str] = []

    summary = _collector(cache, api, tokens).collect()

    assert summary is not None
    assert tokens == ["token-1"]
    assert summary.heatpump_id == 42
    assert summary.heatpump_name == "List name"
    assert summary.heatpump_model == "Atlas 12"
    assert summary.online is True
    assert summary.last_online_unix == 1705314600
    assert summary.readings.temperatures == {"indoor": 21.0, "outdoor": 3.0}
    assert summary.readings.current_operational_status == "STATUS_HEAT"
    assert summary.readings.hot_water_switch is True
    assert summary.readings.active_alerts == ("Low pressure",)
    assert summary.readings.archived_alerts == ("Old",)
    assert summary.errors == ()
    api.get_installation_info.assert_called_once_with(42)
    assert api.get_register_group.call_count == 5


def test_collect_returns_none_without_installations() -> None:
    cache, _ = _token_cache()
    api = _fake_api()
    api.get_installations.return_value = []
    collector = _collector(cache, api)

    assert collector.collect() is None
    assert collector.scrape_errors == 0
    api.get_installation_info.assert_not_called()


def test_failed_register_group_is_recorded_and_scrape_continues(caplog: pytest.LogCaptureFixture) -> None:
    cache, _ = _token_cache()
    api = _fake_api()
    ok_groups = api.get_register_group.side_effect

    def flaky(inst_id, group):
        if group == REG_GROUP_TEMPERATURES:
            raise TransportError("GET temperatures timed out after 30s")
        return ok_groups(inst_id, group)

    api.get_register_group.side_effect = flaky

    with caplog.at_level(logging.WARNING):
        summary = _collector(cache, api).collect()

    assert summary is not None
    assert [e.source for e in summary.errors] == [REG_GROUP_TEMPERATURES]
    assert isinstance(summary.errors[0].cause, TransportError)
    assert summary.readings.temperatures == {"indoor": 21.0}
    assert summary.readings.current_operational_status == "STATUS_HEAT"
    assert "failed to get REG_GROUP_TEMPERATURES" in caplog.text


def test_failed_event_queries_are_recorded() -> None:
    cache, _ = _token_cache()
    api = _fake_api()
    api.get_events.side_effect = ApiStatusError("boom", status_code=500)

    summary = _collector(cache, api).collect()

    assert summary is not None
    assert [e.source for e in summary.errors] == [EVENTS_ACTIVE, EVENTS_ALL]
    assert summary.readings.active_alerts == ()
    assert summary.readings.archived_alerts == ()


def test_authentication_failure_is_counted_and_raised() -> None:
    auth = Mock()
    auth.authenticate.side_effect = InvalidCredentialsError("rejected")
    collector = ThermiaCollector(TokenCache(auth, CREDS), api_client_factory=lambda token, deadline: _fake_api())

    with pytest.raises(InvalidCredentialsError):
        collector.collect()
    with pytest.raises(InvalidCredentialsError):
        collector.collect()

    assert collector.scrape_errors == 2
    assert collector.last_duration_seconds >= 0


def test_required_call_failure_aborts_scrape() -> None:
    cache, _ = _token_cache()
    api = _fake_api()
    api.get_installation_status.side_effect = TransportError("timed out")
    collector = _collector(cache, api)

    with pytest.raises(TransportError):
        collector.collect()
    assert collector.scrape_errors == 1
    api.get_register_group.assert_not_called()


def test_401_invalidates_token_so_next_scrape_logs_in_again() -> None:
    cache, auth = _token_cache("token-1", "token-2")
    api = _fake_api()
    api.get_installations.side_effect = [ApiStatusError("unauthorized", status_code=401), api.get_installations.return_value]
    tokens: list[str] = []
    collector = _collector(cache, api, tokens)

    with pytest.raises(ApiStatusError):
        collector.collect()
    assert cache.current is None

    summary = collector.collect()

    assert summary is not None
    assert tokens == ["token-1", "token-2"]
    assert auth.authenticate.call_count == 2


def test_non_401_api_error_keeps_token() -> None:
    cache, auth = _token_cache()
    api = _fake_api()
    api.get_installations.side_effect = ApiStatusError("server error", status_code=503)

    with pytest.raises(ApiStatusError):
        _collector(cache, api).collect()
    assert cache.current is not None
    assert auth.authenticate.call_count == 1


def test_401_on_register_group_invalidates_token_but_keeps_partial_summary() -> None:
    cache, _ = _token_cache()
    api = _fake_api()
    api.get_register_group.side_effect = ApiStatusError("unauthorized", status_code=401)

    summary = _collector(cache, api).collect()

    assert summary is not None
    assert len(summary.errors) == 5
    assert cache.current is None


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_exceeded_deadline_aborts_remaining_fetches_and_keeps_token() -> None:
    cache, _ = _token_cache()
    api = _fake_api()
    clock = FakeClock()
    status = api.get_installation_status.return_value

    def slow_status(inst_id):
        clock.now += 121
        return status

    api.get_installation_status.side_effect = slow_status
    collector = _collector(cache, api, scrape_timeout_seconds=120, clock=clock)

    with pytest.raises(DeadlineExceededError, match="REG_GROUP_OPERATIONAL_OPERATION"):
        collector.collect()

    assert collector.scrape_errors == 1
    api.get_register_group.assert_not_called()
    api.get_events.assert_not_called()
    assert cache.current is not None


def test_deadline_raised_inside_a_fetch_is_not_recorded_as_partial_data() -> None:
    cache, _ = _token_cache()
    api = _fake_api()
    api.get_register_group.side_effect = DeadlineExceededError("scrape deadline of 120s exceeded")
    collector = _collector(cache, api)

    with pytest.raises(DeadlineExceededError):
        collector.collect()
    assert api.get_register_group.call_count == 1


def test_api_client_receives_the_scrape_deadline() -> None:
    cache, _ = _token_cache()
    api = _fake_api()
    seen: list[Deadline] = []

    def factory(access_token: str, deadline: Deadline) -> Mock:
        seen.append(deadline)
        return api

    ThermiaCollector(cache, api_client_factory=factory, scrape_timeout_seconds=90).collect()

    assert len(seen) == 1
    assert seen[0].seconds == 90.0
    assert 0 < seen[0].remaining() <= 90.0
