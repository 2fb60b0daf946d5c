#!/usr/bin/env python3
"""
On-demand scrape of one Thermia installation.

A scrape gets a token from the shared TokenCache, lists the installations and
reads the first one: info, status summary, five register groups and the two
event queries. Info and status are required; a failed register group or event
query is recorded as a PartialDataError and the readings that depend on it are
left out.

The whole scrape, login included, runs against one Deadline. Running out of
time aborts the scrape instead of being recorded as missing data.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

from .. import config as config_mod
from ..api_auth.token_cache import CachedToken, TokenCache
from ..deadline import Deadline
from ..errors import ApiStatusError, DeadlineExceededError, PartialDataError, ThermiaError
from ..logs import get_logger
from .api_client import REGISTER_GROUPS, ThermiaApiClient
from .models import Event, HeatpumpSummary, Installation, RegisterItem
from .readings import decode_registers
from .register_decoder import parse_time_to_unix, safe

EVENTS_ACTIVE = "events:active"
EVENTS_ALL = "events:all"


class ThermiaCollector:
    """
    Runs scrapes against the Thermia API. Safe to call from several threads.

    Args:
        token_cache: Shared token cache; the only state shared between scrapes.
        api_client_factory: Builds an API client for an access token and the scrape deadline.
        timeout_seconds: Per-request timeout for the default client factory.
        scrape_timeout_seconds: Time budget for one scrape, login included.
        ssl_verify: TLS verification for the default client factory.
        clock: Monotonic clock for the scrape deadline.
        log: Optional logger adapter.

    Attributes:
        scrape_errors: Number of scrapes that failed outright.
        last_duration_seconds: Wall time of the most recent scrape.
    """

    def __init__(
        self,
        token_cache: TokenCache,
        *,
        api_client_factory: Optional[Callable[[str, Deadline], ThermiaApiClient]] = None,
        timeout_seconds: float = config_mod.DEFAULT_REQUEST_TIMEOUT_SECONDS,
        scrape_timeout_seconds: float = config_mod.DEFAULT_SCRAPE_TIMEOUT_SECONDS,
        ssl_verify: bool = True,
        clock: Callable[[], float] = time.monotonic,
        log: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self._token_cache = token_cache
        self._log = get_logger(log, __name__)
        self._timeout = timeout_seconds
        self._scrape_timeout = scrape_timeout_seconds
        self._clock = clock
        self._ssl_verify = ssl_verify
        self._api_client_factory = api_client_factory or self._default_api_client
        self._stats_lock = threading.Lock()
        self.scrape_errors = 0
        self.last_duration_seconds = 0.0

    def _default_api_client(self, access_token: str, deadline: Deadline) -> ThermiaApiClient:
        return ThermiaApiClient(
            access_token,
            timeout_seconds=self._timeout,
            ssl_verify=self._ssl_verify,
            deadline=deadline,
            log=self._log,
        )

    def collect(self) -> Optional[HeatpumpSummary]:
        """
        Scrape the first installation of the account.

        Returns None when the account has no installation. Authentication and
        required API failures are counted, logged and re-raised.
        """
        start = time.perf_counter()
        self._log.debug("starting scrape")
        try:
            return self._scrape()
        except ThermiaError as e:
            with self._stats_lock:
                self.scrape_errors += 1
            self._log.error("scrape failed: %s: %s", type(e).__name__, e)
            raise
        finally:
            duration = time.perf_counter() - start
            with self._stats_lock:
                self.last_duration_seconds = duration
            self._log.debug("scrape finished in %.3fs", duration)

    def _scrape(self) -> Optional[HeatpumpSummary]:
        deadline = Deadline(self._scrape_timeout, clock=self._clock)
        token = self._token_cache.get_token(deadline)
        try:
            return self._scrape_with_token(token, deadline)
        except ApiStatusError as e:
            self._invalidate_if_rejected(e, token)
            raise

    def _invalidate_if_rejected(self, err: BaseException, token: CachedToken) -> None:
        if isinstance(err, ApiStatusError) and err.status_code == 401:
            self._log.warning("API rejected the access token; dropping it from the cache")
            self._token_cache.invalidate(token)

    def _scrape_with_token(self, token: CachedToken, deadline: Deadline) -> Optional[HeatpumpSummary]:
        client = self._api_client_factory(token.access_token, deadline)

        installations = client.get_installations()
        if not installations:
            self._log.warning("no installations found")
            return None
        inst = installations[0]
        if len(installations) > 1:
            self._log.info("%d installations found, reading the first (id=%s)", len(installations), inst.id)

        info = client.get_installation_info(inst.id)
        status = client.get_installation_status(inst.id)

        errors: list[PartialDataError] = []
        groups: dict[str, list[RegisterItem]] = {}
        for group in REGISTER_GROUPS:
            groups[group] = self._fetch_partial(
                group, lambda g=group: client.get_register_group(inst.id, g), inst, token, deadline, errors
            )
        active_events: list[Event] = self._fetch_partial(
            EVENTS_ACTIVE, lambda: client.get_events(inst.id, only_active=True), inst, token, deadline, errors
        )
        all_events: list[Event] = self._fetch_partial(
            EVENTS_ALL, lambda: client.get_events(inst.id, only_active=False), inst, token, deadline, errors
        )

        readings = decode_registers(groups, status, active_events=active_events, all_events=all_events)
        summary = HeatpumpSummary(
            heatpump_id=inst.id,
            heatpump_name=safe(info.name, inst.name),
            heatpump_model=safe(info.model, info.profile_name),
            online=info.is_online,
            last_online=info.last_online,
            last_online_unix=parse_time_to_unix(info.last_online),
            readings=readings,
            errors=tuple(errors),
        )
        self._log.info(
            "scrape of installation %s done (%d temperatures, %d partial errors)",
            inst.id,
            len(readings.temperatures),
            len(errors),
        )
        return summary

    def _fetch_partial(
        self,
        source: str,
        fetch: Callable[[], list[Any]],
        inst: Installation,
        token: CachedToken,
        deadline: Deadline,
        errors: list[PartialDataError],
    ) -> list[Any]:
        deadline.check(source)
        try:
            return fetch()
        except DeadlineExceededError:
            raise
        except ThermiaError as e:
            self._log.warning("failed to get %s for installation %s: %s", source, inst.id, e)
            self._invalidate_if_rejected(e, token)
            errors.append(PartialDataError(source, e))
            return []


__all__ = ["EVENTS_ACTIVE", "EVENTS_ALL", "ThermiaCollector"]
