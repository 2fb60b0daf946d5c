"""
Process-wide cache for the Thermia access token.

Every scrape asks the cache for a token. A login only happens when the cached
token is missing or expired, and concurrent scrapes that find it expired at
the same time share a single login: the first one to take the refresh lock
authenticates, the others wait on the lock and then reuse its result.

The cached entry is an immutable `CachedToken` that is replaced wholesale, so
readers on the fast path only ever see a complete entry.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from ..deadline import Deadline
from ..logs import get_logger
from .auth import AuthResult, Credentials

# Treat the token as expired this many seconds before the provider says it is.
EXPIRY_SAFETY_MARGIN_SECONDS = 300  # 5 minutes


class Authenticator(Protocol):
    def authenticate(self, credentials: Credentials, *, deadline: Optional[Deadline] = None) -> AuthResult: ...


@dataclass(frozen=True)
class CachedToken:
    access_token: str = field(repr=False)
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return bool(self.access_token) and now < self.expires_at


def compute_expiry(issued_at: float, expires_in: int) -> float:
    """
    Return the instant after which the token must not be reused.

    Lifetimes shorter than the safety margin expire at `issued_at`.
    """
    return issued_at + max(expires_in - EXPIRY_SAFETY_MARGIN_SECONDS, 0)


def load_token_cache(cache_path: Path) -> Optional[CachedToken]:
    """
    Load a persisted token. Returns None if the file does not exist or is invalid.
    """
    if not cache_path.exists():
        return None
    try:
        data = json.loads(cache_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    access_token = data.get("access_token")
    expires_at = data.get("expires_at")
    if not isinstance(access_token, str) or not access_token:
        return None
    if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
        return None
    return CachedToken(access_token=access_token, expires_at=float(expires_at))


def save_token_cache(cache_path: Path, token: CachedToken) -> None:
    """
    Save the token with an atomic write and restrictive permissions (0o600).
    """
    data: dict[str, Any] = {"access_token": token.access_token, "expires_at": token.expires_at}
    cache_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = cache_path.with_suffix(cache_path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    tmp_path.chmod(0o600)
    tmp_path.replace(cache_path)


class TokenCache:
    """
    Thread-safe, double-checked token cache around an authenticator.

    Args:
        authenticator: Anything with `authenticate(credentials) -> AuthResult`.
        credentials: Username/password passed to every login.
        clock: Returns the current time in epoch seconds.
        cache_path: Optional file to persist the token across restarts.
        log: Optional logger adapter.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        credentials: Credentials,
        *,
        clock: Callable[[], float] = time.time,
        cache_path: Optional[Path] = None,
        log: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self._authenticator = authenticator
        self._credentials = credentials
        self._clock = clock
        self._cache_path = cache_path
        self._log = get_logger(log, __name__)
        self._refresh_lock = threading.Lock()
        self._token: Optional[CachedToken] = None
        if cache_path is not None:
            self._token = load_token_cache(cache_path)
            if self._token is not None:
                self._log.debug("loaded persisted token (expires_at=%s)", int(self._token.expires_at))

    @property
    def current(self) -> Optional[CachedToken]:
        """The cached entry, valid or not."""
        return self._token

    def get_token(self, deadline: Optional[Deadline] = None) -> CachedToken:
        """
        Return a valid token, logging in at most once per expiry cycle.

        A failed login, including one cut short by `deadline`, leaves the
        previous entry in place and propagates.
        """
        token = self._token
        if token is not None and token.is_valid(self._clock()):
            self._log.debug("using cached token (expires in %ds)", int(token.expires_at - self._clock()))
            return token

        with self._refresh_lock:
            # Another caller may have refreshed while we waited for the lock.
            token = self._token
            if token is not None and token.is_valid(self._clock()):
                self._log.debug("using token refreshed by a concurrent caller")
                return token
            if deadline is not None:
                deadline.check("login")
            return self._refresh(deadline)

    def _refresh(self, deadline: Optional[Deadline]) -> CachedToken:
        self._log.info("authenticating to Thermia (token expired or missing)")
        result = self._authenticator.authenticate(self._credentials, deadline=deadline)
        issued_at = self._clock()
        token = CachedToken(
            access_token=result.access_token,
            expires_at=compute_expiry(issued_at, result.expires_in),
        )
        self._token = token
        self._log.info("token cached (valid for %ds)", int(token.expires_at - issued_at))
        if self._cache_path is not None:
            try:
                save_token_cache(self._cache_path, token)
            except OSError as e:
                self._log.warning("could not persist token to %s: %s", self._cache_path, e)
        return token

    def invalidate(self, token: Optional[CachedToken] = None) -> None:
        """
        Drop the cached entry so the next `get_token()` logs in again.

        When `token` is given, only drop the entry if it is still that token,
        so a stale rejection does not discard a newer token.
        """
        with self._refresh_lock:
            if token is None or self._token is token:
                self._token = None


__all__ = [
    "EXPIRY_SAFETY_MARGIN_SECONDS",
    "CachedToken",
    "TokenCache",
    "compute_expiry",
    "load_token_cache",
    "save_token_cache",
]
