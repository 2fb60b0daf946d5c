"""
Unit tests for environment-driven configuration.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from thermia_exporter import config as config_mod
from thermia_exporter.errors import ConfigError

_ENV_VARS = (
    "THERMIA_B2C_BASE_URL",
    "THERMIA_B2C_TENANT",
    "THERMIA_B2C_POLICY",
    "THERMIA_CLIENT_ID",
    "THERMIA_REDIRECT_URI",
    "THERMIA_CONFIGURATION_URL",
    "THERMIA_REQUEST_TIMEOUT",
    "THERMIA_SCRAPE_TIMEOUT",
    "THERMIA_LOG_LEVEL",
    "THERMIA_TOKEN_CACHE_PATH",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_default_b2c_endpoints() -> None:
    base = "https://thermialogin.b2clogin.com/thermialogin.onmicrosoft.com/b2c_1a_signuporsigninonline"

    assert config_mod.get_authorize_url() == f"{base}/oauth2/v2.0/authorize"
    assert config_mod.get_token_url() == f"{base}/oauth2/v2.0/token"
    assert config_mod.get_self_asserted_url() == f"{base}/SelfAsserted"
    assert config_mod.get_confirm_url() == f"{base}/api/CombinedSigninAndSignup/confirmed"
    assert config_mod.get_redirect_uri() == "https://online.thermia.se/login"
    assert config_mod.get_configuration_url() == "https://online.thermia.se/api/configuration"


def test_scope_contains_client_id_offline_access_and_openid() -> None:
    assert config_mod.get_scope() == "09ea4903-9e95-45fe-ae1f-e3b7d32fa385 offline_access openid"


def test_env_overrides_are_stripped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("THERMIA_B2C_BASE_URL", "  https://staging.b2clogin.example/  ")
    monkeypatch.setenv("THERMIA_CLIENT_ID", "client-123")

    assert config_mod.get_authorize_url().startswith("https://staging.b2clogin.example/thermialogin")
    assert config_mod.get_scope() == "client-123 offline_access openid"


def test_empty_env_value_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("THERMIA_REDIRECT_URI", "   ")
    assert config_mod.get_redirect_uri() == "https://online.thermia.se/login"


def test_request_timeout_default_and_override(monkeypatch: pytest.MonkeyPatch) -> None:
    assert config_mod.get_request_timeout() == 30.0

    monkeypatch.setenv("THERMIA_REQUEST_TIMEOUT", "45")
    assert config_mod.get_request_timeout() == 45.0


@pytest.mark.parametrize("raw", ["5", "9.9", "-1", "abc"])
def test_request_timeout_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("THERMIA_REQUEST_TIMEOUT", raw)
    with pytest.raises(ConfigError, match="THERMIA_REQUEST_TIMEOUT|at least"):
        config_mod.get_request_timeout()


def test_validate_timeout_accepts_minimum() -> None:
    assert config_mod.validate_timeout(10.0) == 10.0


def test_scrape_timeout_default_and_override(monkeypatch: pytest.MonkeyPatch) -> None:
    assert config_mod.get_scrape_timeout() == 120.0

    monkeypatch.setenv("THERMIA_SCRAPE_TIMEOUT", "300")
    assert config_mod.get_scrape_timeout() == 300.0


@pytest.mark.parametrize("raw", ["5", "nan", "soon"])
def test_scrape_timeout_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("THERMIA_SCRAPE_TIMEOUT", raw)
    with pytest.raises(ConfigError, match="THERMIA_SCRAPE_TIMEOUT|at least"):
        config_mod.get_scrape_timeout()


def test_token_cache_path_is_opt_in(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    assert config_mod.get_token_cache_path() is None

    monkeypatch.setenv("THERMIA_TOKEN_CACHE_PATH", str(tmp_path / "token.json"))
    assert config_mod.get_token_cache_path() == tmp_path / "token.json"


def test_log_level_default(monkeypatch: pytest.MonkeyPatch) -> None:
    assert config_mod.get_log_level() == "INFO"
    monkeypatch.setenv("THERMIA_LOG_LEVEL", "debug")
    assert config_mod.get_log_level() == "debug"


def test_dotenv_does_not_override_shell_values(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("THERMIA_CLIENT_ID=from-dotenv\nTHERMIA_B2C_TENANT=dotenv-tenant\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("THERMIA_CLIENT_ID", "from-shell")
    # Registers the variable with monkeypatch so the value load_dotenv() sets is undone.
    monkeypatch.setenv("THERMIA_B2C_TENANT", "unset-me")
    monkeypatch.delenv("THERMIA_B2C_TENANT")

    config_mod._load_dotenv()

    assert config_mod.get_client_id() == "from-shell"
    assert config_mod.get_b2c_tenant() == "dotenv-tenant"
