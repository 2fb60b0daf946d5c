"""
Thermia Online login via the Azure B2C browser flow.

Thermia does not offer a password grant; the only way in is the interactive
sign-in page of its B2C tenant. This module emulates what the browser does:

1. GET /authorize with a PKCE challenge; the HTML page embeds a SETTINGS blob
   with a CSRF token and the transaction state properties. If the session is
   already signed in, the final URL already carries `?code=...`.
2. POST the username/password form to /SelfAsserted. B2C answers HTTP 200 even
   for a rejected password and signals it with `"status":"400"` in the body.
3. GET /api/CombinedSigninAndSignup/confirmed, which redirects to the
   redirect URI with `?code=...` (sometimes after one extra hop).
4. POST the code and the PKCE verifier to /token.

All steps share one cookie jar (one `requests.Session` per attempt); B2C
recognizes the transaction by its cookies. Nothing here retries; a failed
attempt raises and the caller decides when to try again.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlparse

import requests

from .. import config as config_mod
from ..deadline import Deadline
from ..errors import (
    EmptyTokenError,
    InvalidCredentialsError,
    NoAuthorizationCodeError,
    ProtocolShapeError,
    TokenExchangeError,
    TransportError,
)
from ..logs import (
    get_logger,
    redact,
    redact_sensitive,
    sanitize_mapping,
    sanitize_obj,
    sanitize_text,
    truncated_body,
)
from .pkce import code_challenge_s256, generate_code_verifier
from .settings_extractor import RegexSettingsExtractor, SettingsExtractor

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=UTF-8"

# B2C's marker for a rejected sign-in inside an otherwise successful response.
_REJECTED_MARKER = '"status":"400"'


class AuthState(str, enum.Enum):
    START = "START"
    NEEDS_CREDENTIALS = "NEEDS_CREDENTIALS"
    CONFIRMING = "CONFIRMING"
    TOKEN_EXCHANGE = "TOKEN_EXCHANGE"
    AUTHENTICATED = "AUTHENTICATED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class AuthResult:
    access_token: str = field(repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    expires_in: int = 0


@dataclass
class AuthSession:
    """Per-attempt login state. Lives only for the duration of `authenticate()`."""

    http: requests.Session
    code_verifier: str = field(repr=False)
    csrf: str = field(default="", repr=False)
    state_properties: str = field(default="", repr=False)
    code: Optional[str] = field(default=None, repr=False)
    deadline: Optional[Deadline] = None
    state: AuthState = AuthState.START
    history: list[AuthState] = field(default_factory=lambda: [AuthState.START])

    def transition(self, new_state: AuthState) -> None:
        self.state = new_state
        self.history.append(new_state)


def _extract_code_from_url(url: Optional[str]) -> Optional[str]:
    """
    Extract ?code=... from a URL.
    Returns None if no code is present.
    """
    if not url:
        return None
    values = parse_qs(urlparse(url).query).get("code")
    if values and values[0]:
        return values[0]
    return None


def _coerce_expires_in(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return 0
    return 0


class BrowserFlowAuthClient:
    """
    Drives one login attempt per `authenticate()` call.

    Args:
        session_factory: Builds the HTTP session (and so the cookie jar) for an attempt.
        settings_extractor: Parses the authorize page; see settings_extractor.py.
        timeout_seconds: Per-request timeout.
        ssl_verify: Whether to verify TLS certificates.
        verifier_factory: Produces the PKCE code_verifier.
        log: Optional logger adapter.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], requests.Session] = requests.Session,
        settings_extractor: Optional[SettingsExtractor] = None,
        timeout_seconds: float = config_mod.DEFAULT_REQUEST_TIMEOUT_SECONDS,
        ssl_verify: bool = True,
        verifier_factory: Callable[[], str] = generate_code_verifier,
        log: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self._session_factory = session_factory
        self._extractor = settings_extractor or RegexSettingsExtractor()
        self._timeout = float(timeout_seconds)
        self._ssl_verify = ssl_verify
        self._verifier_factory = verifier_factory
        self._log = get_logger(log, __name__)
        self.last_states: tuple[AuthState, ...] = ()

    def authenticate(self, credentials: Credentials, *, deadline: Optional[Deadline] = None) -> AuthResult:
        """
        Run the full login flow and return the token endpoint's answer.

        With a `deadline`, every request's timeout is capped at the time left
        and the flow stops with DeadlineExceededError once it runs out.

        Raises an AuthenticationError subclass or TransportError on failure.
        """
        log = self._log
        log.info("starting Thermia login")
        http = self._session_factory()
        auth = AuthSession(http=http, code_verifier=self._verifier_factory(), deadline=deadline)
        try:
            self._authorize(auth)
            if auth.state is AuthState.NEEDS_CREDENTIALS:
                self._submit_credentials(auth, credentials)
                auth.transition(AuthState.CONFIRMING)
                self._confirm(auth)
                auth.transition(AuthState.TOKEN_EXCHANGE)
            result = self._exchange_code(auth)
            auth.transition(AuthState.AUTHENTICATED)
            log.info("Thermia login successful (expires_in=%s)", result.expires_in)
            return result
        except Exception:
            failed_in = auth.state
            auth.transition(AuthState.FAILED)
            log.error("Thermia login failed in state %s", failed_in.value)
            raise
        finally:
            self.last_states = tuple(auth.history)
            http.close()

    def _send(self, auth: AuthSession, method: str, url: str, **kwargs: Any) -> requests.Response:
        timeout = self._timeout
        if auth.deadline is not None:
            timeout = auth.deadline.cap(timeout, f"{method} {urlparse(url).path}")
        start = time.perf_counter()
        try:
            resp = auth.http.request(
                method,
                url,
                timeout=timeout,
                verify=self._ssl_verify,
                **kwargs,
            )
        except requests.exceptions.Timeout as e:
            raise TransportError(f"{method} {urlparse(url).path} timed out after {timeout:g}s") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {urlparse(url).path} failed: {sanitize_text(str(e))}") from e
        self._log.debug(
            "response details: %s",
            {
                "method": method,
                "path": urlparse(url).path,
                "status_code": resp.status_code,
                "elapsed_ms": int((time.perf_counter() - start) * 1000),
                "redirects": len(resp.history or []),
                "content_type": resp.headers.get("Content-Type"),
            },
        )
        return resp

    def _authorize(self, auth: AuthSession) -> None:
        params = {
            "client_id": config_mod.get_client_id(),
            "scope": config_mod.get_scope(),
            "redirect_uri": config_mod.get_redirect_uri(),
            "response_type": "code",
            "code_challenge": code_challenge_s256(auth.code_verifier),
            "code_challenge_method": "S256",
        }
        self._log.info("requesting authorize page")
        self._log.debug("authorize request params (sanitized): %s", sanitize_mapping(params))
        resp = self._send(auth, "GET", config_mod.get_authorize_url(), params=params)

        settings = self._extractor.extract(resp.text or "")
        auth.csrf = settings.csrf
        auth.state_properties = settings.state_properties
        self._log.debug(
            "login page settings: csrf=%s state_properties=%s",
            redact_sensitive(auth.csrf),
            redact(auth.state_properties),
        )

        code = _extract_code_from_url(resp.url)
        if code:
            self._log.info("existing B2C session, authorization code issued without sign-in")
            auth.code = code
            auth.transition(AuthState.TOKEN_EXCHANGE)
        else:
            auth.transition(AuthState.NEEDS_CREDENTIALS)

    def _transaction_params(self, auth: AuthSession) -> dict[str, str]:
        return {
            "tx": f"StateProperties={auth.state_properties}",
            "p": config_mod.SELF_ASSERTED_POLICY,
        }

    def _submit_credentials(self, auth: AuthSession, credentials: Credentials) -> None:
        form = {
            "request_type": "RESPONSE",
            "signInName": credentials.username,
            "password": credentials.password,
        }
        headers = {"Content-Type": _FORM_CONTENT_TYPE, "X-CSRF-TOKEN": auth.csrf}
        self._log.info("submitting credentials")
        self._log.debug("self-asserted form (sanitized): %s", sanitize_mapping(form))
        resp = self._send(
            auth,
            "POST",
            config_mod.get_self_asserted_url(),
            params=self._transaction_params(auth),
            data=form,
            headers=headers,
        )
        body = resp.text or ""
        if resp.status_code // 100 != 2 or _REJECTED_MARKER in body:
            raise InvalidCredentialsError(
                f"sign-in rejected (HTTP {resp.status_code}): {truncated_body(body, 500)!r}"
            )

    def _code_from_redirect(self, url: Optional[str]) -> Optional[str]:
        if url and url.startswith(config_mod.get_redirect_uri()):
            return _extract_code_from_url(url)
        return None

    def _confirm(self, auth: AuthSession) -> None:
        params = {"csrf_token": auth.csrf, **self._transaction_params(auth)}
        self._log.info("confirming sign-in")
        resp = self._send(auth, "GET", config_mod.get_confirm_url(), params=params)
        code = self._code_from_redirect(resp.url)
        if code is None and resp.url:
            # B2C sometimes stops one hop short of the redirect URI.
            self._log.debug("no code after confirm redirects, following one more hop")
            resp = self._send(auth, "GET", resp.url)
            code = self._code_from_redirect(resp.url)
        if not code:
            raise NoAuthorizationCodeError("no authorization code returned by the confirm redirect chain")
        auth.code = code

    def _exchange_code(self, auth: AuthSession) -> AuthResult:
        form = {
            "grant_type": "authorization_code",
            "client_id": config_mod.get_client_id(),
            "redirect_uri": config_mod.get_redirect_uri(),
            "scope": config_mod.get_scope(),
            "code": auth.code or "",
            "code_verifier": auth.code_verifier,
        }
        self._log.info("exchanging authorization code for access token")
        self._log.debug("token request form (sanitized): %s", sanitize_mapping(form))
        resp = self._send(
            auth,
            "POST",
            config_mod.get_token_url(),
            data=form,
            headers={"Content-Type": _FORM_CONTENT_TYPE},
        )
        if resp.status_code != 200:
            raise TokenExchangeError(
                f"token endpoint returned HTTP {resp.status_code}: {truncated_body(resp.text)!r}",
                status_code=resp.status_code,
            )
        try:
            payload = resp.json()
        except ValueError as e:
            raise ProtocolShapeError(
                f"token response was not valid JSON: {e}. Body: {truncated_body(resp.text)!r}"
            ) from e
        if not isinstance(payload, dict):
            raise ProtocolShapeError("token response is not a JSON object")

        self._log.debug("token response body (sanitized): %s", sanitize_obj(payload))

        access_token = payload.get("access_token")
        if not access_token:
            self._log.warning("token response missing access_token (keys=%s)", sorted(payload.keys()))
            raise EmptyTokenError(f"token response missing access_token. Keys: {sorted(payload.keys())}")

        expires_in = _coerce_expires_in(payload.get("expires_in"))
        if expires_in <= 0:
            self._log.warning("token response has no usable expires_in; token will not be reused")
        return AuthResult(
            access_token=str(access_token),
            refresh_token=payload.get("refresh_token") or None,
            expires_in=expires_in,
        )


__all__ = ["AuthResult", "AuthSession", "AuthState", "BrowserFlowAuthClient", "Credentials"]
