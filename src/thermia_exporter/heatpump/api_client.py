#!/usr/bin/env python3
"""
Thermia Online REST client.

The REST base URL is not fixed: it is discovered from the web app's
configuration endpoint (`apiBaseUrl`) with the bearer token already in hand.
All calls send `Authorization: Bearer <access_token>`.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import requests

from .. import config as config_mod
from ..deadline import Deadline
from ..errors import ApiShapeError, ApiStatusError, TransportError
from ..logs import get_logger, sanitize_text, truncated_body
from .models import Event, Installation, InstallationInfo, InstallationStatus, RegisterItem

# Functional register groups.
REG_GROUP_TEMPERATURES = "REG_GROUP_TEMPERATURES"
REG_GROUP_OPERATIONAL_STATUS = "REG_GROUP_OPERATIONAL_STATUS"
REG_GROUP_OPERATIONAL_TIME = "REG_GROUP_OPERATIONAL_TIME"
REG_GROUP_OPERATIONAL_OPERATION = "REG_GROUP_OPERATIONAL_OPERATION"
REG_GROUP_HOT_WATER = "REG_GROUP_HOT_WATER"

REGISTER_GROUPS = (
    REG_GROUP_OPERATIONAL_OPERATION,
    REG_GROUP_OPERATIONAL_STATUS,
    REG_GROUP_TEMPERATURES,
    REG_GROUP_OPERATIONAL_TIME,
    REG_GROUP_HOT_WATER,
)


def api_get_json(
    *,
    session: requests.Session,
    url: str,
    access_token: str,
    timeout_seconds: float,
    ssl_verify: bool,
    params: Optional[dict[str, str]] = None,
    log: logging.LoggerAdapter,
) -> Any:
    """
    Shared GET helper.

    - Adds Authorization: Bearer and Accept: application/json
    - Enforces timeout + TLS verification
    - Parses JSON; raises ApiStatusError on non-200, TransportError on network
      failures and ApiShapeError on bodies that are not JSON
    """
    headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
    log.debug("API request GET %s", url)
    start = time.perf_counter()
    try:
        resp = session.get(
            url,
            params=params,
            headers=headers,
            timeout=float(timeout_seconds),
            verify=bool(ssl_verify),
        )
    except requests.exceptions.Timeout as e:
        raise TransportError(f"GET {url} timed out after {timeout_seconds:g}s") from e
    except requests.exceptions.RequestException as e:
        raise TransportError(f"GET {url} failed: {sanitize_text(str(e))}") from e

    if resp.status_code != 200:
        log.warning("GET %s returned HTTP %s", url, resp.status_code)
        raise ApiStatusError(
            f"GET {url} failed: HTTP {resp.status_code}. "
            f"Body (truncated, sanitized): {truncated_body(resp.text)!r}",
            status_code=resp.status_code,
            url=url,
        )

    try:
        payload = resp.json()
    except ValueError as e:
        raise ApiShapeError(
            f"GET {url} response was not valid JSON: {e}. Body: {truncated_body(resp.text)!r}"
        ) from e
    log.debug("API response GET %s (%d ms)", url, int((time.perf_counter() - start) * 1000))
    return payload


def _require_object(payload: Any, *, url: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ApiShapeError(f"Unexpected JSON shape from {url}: expected an object.")
    return payload


def _require_list(payload: Any, *, url: str) -> list[dict[str, Any]]:
    if not isinstance(payload, list):
        raise ApiShapeError(f"Unexpected JSON shape from {url}: expected a list.")
    return [x for x in payload if isinstance(x, dict)]


def _extract_installations(payload: Any) -> list[dict[str, Any]]:
    """
    Normalize the installations list response.

    The endpoint returns either {"items": [...]} or a bare list. Any other
    shape is read as "no installations".
    """
    if isinstance(payload, dict):
        items = payload.get("items")
        if isinstance(items, list) and items:
            return [x for x in items if isinstance(x, dict)]
        return []
    if isinstance(payload, list):
        return [x for x in payload if isinstance(x, dict)]
    return []


class ThermiaApiClient:
    """
    Authenticated client for one access token.

    Args:
        access_token: Bearer token from the token cache.
        session: Optional requests session (created if None).
        timeout_seconds: Per-request timeout.
        ssl_verify: Whether to verify TLS certificates.
        base_url: REST base URL; discovered lazily when None.
        deadline: Optional scrape deadline; caps every request's timeout.
        log: Optional logger adapter.
    """

    def __init__(
        self,
        access_token: str,
        *,
        session: Optional[requests.Session] = None,
        timeout_seconds: float = config_mod.DEFAULT_REQUEST_TIMEOUT_SECONDS,
        ssl_verify: bool = True,
        base_url: Optional[str] = None,
        deadline: Optional[Deadline] = None,
        log: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self._access_token = access_token
        self._session = session if session is not None else requests.Session()
        self._timeout = timeout_seconds
        self._ssl_verify = ssl_verify
        self._base_url = base_url.rstrip("/") if base_url else None
        self._deadline = deadline
        self._log = get_logger(log, __name__)

    def _get(self, url: str, params: Optional[dict[str, str]] = None) -> Any:
        timeout = self._timeout
        if self._deadline is not None:
            timeout = self._deadline.cap(timeout, f"GET {url}")
        return api_get_json(
            session=self._session,
            url=url,
            access_token=self._access_token,
            timeout_seconds=timeout,
            ssl_verify=self._ssl_verify,
            params=params,
            log=self._log,
        )

    @property
    def base_url(self) -> str:
        """REST base URL, discovered from the configuration endpoint on first use."""
        if self._base_url is None:
            url = config_mod.get_configuration_url()
            cfg = _require_object(self._get(url), url=url)
            base = cfg.get("apiBaseUrl")
            if not isinstance(base, str) or not base.strip():
                raise ApiShapeError(f"Missing 'apiBaseUrl' in configuration from {url}.")
            self._base_url = base.strip().rstrip("/")
            self._log.debug("API base URL discovered: %s", self._base_url)
        return self._base_url

    def get_installations(self) -> list[Installation]:
        payload = self._get(f"{self.base_url}/api/v1/installationsInfo")
        installations = [Installation.from_api(item) for item in _extract_installations(payload)]
        return [inst for inst in installations if inst.id > 0]

    def get_installation_info(self, installation_id: int) -> InstallationInfo:
        url = f"{self.base_url}/api/v1/installations/{installation_id}"
        return InstallationInfo.from_api(_require_object(self._get(url), url=url))

    def get_installation_status(self, installation_id: int) -> InstallationStatus:
        url = f"{self.base_url}/api/v1/installationstatus/{installation_id}/status"
        return InstallationStatus.from_api(_require_object(self._get(url), url=url))

    def get_register_group(self, installation_id: int, group: str) -> list[RegisterItem]:
        url = f"{self.base_url}/api/v1/Registers/Installations/{installation_id}/Groups/{group}"
        return [RegisterItem.from_api(item) for item in _require_list(self._get(url), url=url)]

    def get_events(self, installation_id: int, *, only_active: bool) -> list[Event]:
        url = f"{self.base_url}/api/v1/installation/{installation_id}/events"
        params = {"onlyActiveAlarms": "true" if only_active else "false"}
        return [Event.from_api(item) for item in _require_list(self._get(url, params), url=url)]


__all__ = [
    "REGISTER_GROUPS",
    "REG_GROUP_HOT_WATER",
    "REG_GROUP_OPERATIONAL_OPERATION",
    "REG_GROUP_OPERATIONAL_STATUS",
    "REG_GROUP_OPERATIONAL_TIME",
    "REG_GROUP_TEMPERATURES",
    "ThermiaApiClient",
    "api_get_json",
]
