"""
Thermia account credentials.

Sources, first match wins:
1. Mounted secret files `username` and `password` in THERMIA_SECRETS_PATH
   (default /var/run/secrets/thermia)
2. AWS Secrets Manager, when THERMIA_CREDENTIALS_SECRET_ARN is set; the secret
   string is JSON with THERMIA_USERNAME and THERMIA_PASSWORD
3. THERMIA_USERNAME / THERMIA_PASSWORD environment variables
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .api_auth.auth import Credentials
from .errors import ConfigError
from .logs import get_logger

DEFAULT_SECRETS_PATH = "/var/run/secrets/thermia"

# Lazily initialized client
_secrets_client = None


def _get_secrets_client():
    """Get boto3 Secrets Manager client (lazy init for tests)."""
    global _secrets_client
    if _secrets_client is None:
        import boto3
        _secrets_client = boto3.client("secretsmanager")
    return _secrets_client


def _read_secret_file(path: Path) -> Optional[str]:
    try:
        value = path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return value or None


def _from_secret_files(secrets_dir: Path) -> Optional[Credentials]:
    username = _read_secret_file(secrets_dir / "username")
    password = _read_secret_file(secrets_dir / "password")
    if username and password:
        return Credentials(username=username, password=password)
    return None


def _from_secrets_manager(secret_arn: str) -> Credentials:
    """Load credentials from AWS Secrets Manager."""
    from botocore.exceptions import BotoCoreError, ClientError

    client = _get_secrets_client()
    try:
        response = client.get_secret_value(SecretId=secret_arn)
    except (BotoCoreError, ClientError) as e:
        raise ConfigError(f"Could not read credentials secret: {e}") from e
    secret_str = response.get("SecretString")
    if not secret_str:
        raise ConfigError("Secret has no SecretString")
    try:
        data = json.loads(secret_str)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Secret is not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise ConfigError("Secret is not a JSON object")
    for key in ("THERMIA_USERNAME", "THERMIA_PASSWORD"):
        if not str(data.get(key) or "").strip():
            raise ConfigError(f"Secret missing required key: {key}")
    return Credentials(
        username=str(data["THERMIA_USERNAME"]).strip(),
        password=str(data["THERMIA_PASSWORD"]).strip(),
    )


def load_credentials(log: Optional[logging.LoggerAdapter] = None) -> Credentials:
    """
    Return the Thermia credentials from the first source that has both values.

    Raises ConfigError if no source provides them.
    """
    log = get_logger(log, __name__)

    secrets_dir = Path((os.environ.get("THERMIA_SECRETS_PATH") or DEFAULT_SECRETS_PATH).strip())
    creds = _from_secret_files(secrets_dir)
    if creds is not None:
        log.debug("credentials loaded from secret files in %s", secrets_dir)
        return creds

    secret_arn = (os.environ.get("THERMIA_CREDENTIALS_SECRET_ARN") or "").strip()
    if secret_arn:
        log.debug("loading credentials from AWS Secrets Manager")
        return _from_secrets_manager(secret_arn)

    username = (os.environ.get("THERMIA_USERNAME") or "").strip()
    password = (os.environ.get("THERMIA_PASSWORD") or "").strip()
    if username and password:
        log.debug("credentials loaded from environment")
        return Credentials(username=username, password=password)

    raise ConfigError(
        "Missing Thermia credentials. Provide secret files in "
        f"{secrets_dir}, THERMIA_CREDENTIALS_SECRET_ARN, or THERMIA_USERNAME/THERMIA_PASSWORD."
    )


__all__ = ["DEFAULT_SECRETS_PATH", "load_credentials"]
