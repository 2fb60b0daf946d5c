"""
Thermia Online URL and environment configuration.

Loads .env and exposes the Azure B2C identity-provider endpoints, the Thermia
configuration endpoint and runtime settings. All values can be overridden via
environment variables (e.g. to point at a staging tenant).

Environment variables:
  - THERMIA_B2C_BASE_URL        (optional, default: https://thermialogin.b2clogin.com)
  - THERMIA_B2C_TENANT          (optional, default: thermialogin.onmicrosoft.com)
  - THERMIA_B2C_POLICY          (optional, default: b2c_1a_signuporsigninonline)
  - THERMIA_CLIENT_ID           (optional, default: the Thermia Online web client id)
  - THERMIA_REDIRECT_URI        (optional, default: https://online.thermia.se/login)
  - THERMIA_CONFIGURATION_URL   (optional, default: https://online.thermia.se/api/configuration)
  - THERMIA_REQUEST_TIMEOUT     (optional; seconds per HTTP call, default 30, minimum 10)
  - THERMIA_SCRAPE_TIMEOUT      (optional; seconds for a whole scrape incl. login, default 120, minimum 10)
  - THERMIA_LOG_LEVEL           (optional, default: INFO)
  - THERMIA_TOKEN_CACHE_PATH    (optional; path to token cache file; unset or empty = disabled)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .errors import ConfigError


_DEFAULT_B2C_BASE = "https://thermialogin.b2clogin.com"
_DEFAULT_B2C_TENANT = "thermialogin.onmicrosoft.com"
_DEFAULT_B2C_POLICY = "b2c_1a_signuporsigninonline"
_DEFAULT_CLIENT_ID = "09ea4903-9e95-45fe-ae1f-e3b7d32fa385"
_DEFAULT_REDIRECT_URI = "https://online.thermia.se/login"
_DEFAULT_CONFIGURATION_URL = "https://online.thermia.se/api/configuration"

DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
MIN_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_SCRAPE_TIMEOUT_SECONDS = 120.0

# The SelfAsserted/confirm endpoints expect the policy id in this casing as `p`.
SELF_ASSERTED_POLICY = "B2C_1A_SignUpOrSigninOnline"


def _load_dotenv(log: Optional[logging.LoggerAdapter] = None) -> None:
    """
    Load a .env file into the process environment (if one exists).

    Search order:
    1. Current working directory (.env)
    2. The project root, two levels up from the package directory
       (src/thermia_exporter/config.py → project root)

    Variables already set in the shell take priority: load_dotenv() is called
    with override=False so existing values are never overwritten.
    """
    from dotenv import load_dotenv

    cwd_env = Path.cwd() / ".env"
    project_root_env = Path(__file__).resolve().parents[2] / ".env"

    env_file: Optional[Path] = None
    if cwd_env.is_file():
        env_file = cwd_env
    elif project_root_env.is_file():
        env_file = project_root_env

    if env_file is None:
        return

    loaded = load_dotenv(env_file, override=False)
    if log is not None:
        if loaded:
            log.debug("loaded .env from %s (shell vars take precedence)", env_file)
        else:
            log.debug(
                ".env found at %s but all variables were already set in the environment",
                env_file,
            )


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Get environment variable, stripped; return default if unset or empty."""
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


# Load .env on module import so the getters see env vars.
_load_dotenv()


def get_b2c_base_url() -> str:
    return _get_env("THERMIA_B2C_BASE_URL", _DEFAULT_B2C_BASE) or _DEFAULT_B2C_BASE


def get_b2c_tenant() -> str:
    return _get_env("THERMIA_B2C_TENANT", _DEFAULT_B2C_TENANT) or _DEFAULT_B2C_TENANT


def get_b2c_policy() -> str:
    return _get_env("THERMIA_B2C_POLICY", _DEFAULT_B2C_POLICY) or _DEFAULT_B2C_POLICY


def get_client_id() -> str:
    """Return the OAuth client id of the Thermia Online web app."""
    return _get_env("THERMIA_CLIENT_ID", _DEFAULT_CLIENT_ID) or _DEFAULT_CLIENT_ID


def get_redirect_uri() -> str:
    return _get_env("THERMIA_REDIRECT_URI", _DEFAULT_REDIRECT_URI) or _DEFAULT_REDIRECT_URI


def get_scope() -> str:
    """Return the space separated OAuth scope requested at authorize and token time."""
    return f"{get_client_id()} offline_access openid"


def _policy_base_url() -> str:
    return f"{get_b2c_base_url().rstrip('/')}/{get_b2c_tenant()}/{get_b2c_policy()}"


def get_authorize_url() -> str:
    """Return full OAuth authorize endpoint URL."""
    return f"{_policy_base_url()}/oauth2/v2.0/authorize"


def get_token_url() -> str:
    """Return full OAuth token endpoint URL."""
    return f"{_policy_base_url()}/oauth2/v2.0/token"


def get_self_asserted_url() -> str:
    """Return the B2C endpoint that accepts the username/password form."""
    return f"{_policy_base_url()}/SelfAsserted"


def get_confirm_url() -> str:
    """Return the B2C endpoint that confirms a self-asserted login and redirects with a code."""
    return f"{_policy_base_url()}/api/CombinedSigninAndSignup/confirmed"


def get_configuration_url() -> str:
    """Return the Thermia endpoint used to discover the REST API base URL."""
    return _get_env("THERMIA_CONFIGURATION_URL", _DEFAULT_CONFIGURATION_URL) or _DEFAULT_CONFIGURATION_URL


def get_request_timeout() -> float:
    """
    Return the per-request HTTP timeout in seconds.

    Raises ConfigError if THERMIA_REQUEST_TIMEOUT is not a number or is below
    the minimum; a login spans several round trips and very short timeouts
    abort it half way.
    """
    raw = _get_env("THERMIA_REQUEST_TIMEOUT")
    if raw is None:
        return DEFAULT_REQUEST_TIMEOUT_SECONDS
    try:
        seconds = float(raw)
    except ValueError as e:
        raise ConfigError(f"THERMIA_REQUEST_TIMEOUT must be a number of seconds, got {raw!r}") from e
    return validate_timeout(seconds)


def validate_timeout(seconds: float) -> float:
    if seconds < MIN_REQUEST_TIMEOUT_SECONDS:
        raise ConfigError(
            f"request timeout must be at least {MIN_REQUEST_TIMEOUT_SECONDS:g} seconds, got {seconds:g}"
        )
    return seconds


def get_scrape_timeout() -> float:
    """
    Return the time budget in seconds for one scrape, login included.

    Raises ConfigError if THERMIA_SCRAPE_TIMEOUT is not a number or is below
    the per-request minimum.
    """
    raw = _get_env("THERMIA_SCRAPE_TIMEOUT")
    if raw is None:
        return DEFAULT_SCRAPE_TIMEOUT_SECONDS
    try:
        seconds = float(raw)
    except ValueError as e:
        raise ConfigError(f"THERMIA_SCRAPE_TIMEOUT must be a number of seconds, got {raw!r}") from e
    return validate_scrape_timeout(seconds)


def validate_scrape_timeout(seconds: float) -> float:
    if not seconds >= MIN_REQUEST_TIMEOUT_SECONDS:
        raise ConfigError(
            f"scrape timeout must be at least {MIN_REQUEST_TIMEOUT_SECONDS:g} seconds, got {seconds:g}"
        )
    return seconds


def get_log_level() -> str:
    return _get_env("THERMIA_LOG_LEVEL", "INFO") or "INFO"


def get_token_cache_path() -> Optional[Path]:
    """
    Return path to token cache file, or None if persistence is disabled.

    Persistence is opt-in: only THERMIA_TOKEN_CACHE_PATH enables it.
    """
    override = _get_env("THERMIA_TOKEN_CACHE_PATH")
    if override is None:
        return None
    return Path(override).expanduser()
