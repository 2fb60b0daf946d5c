"""
Logging setup and redaction helpers.

Every record carries a run_id so the several round trips of one login or one
scrape can be correlated. The redaction helpers are used before anything that
came from the identity provider or the token endpoint is logged.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

LOGGER_NAME = "thermia_exporter"


class _RunIdFilter(logging.Filter):
    """
    Ensure every log record has a run_id attribute for formatting.
    """

    def __init__(self, run_id: str) -> None:
        super().__init__()
        self._run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 - logging uses `filter` name
        if not hasattr(record, "run_id"):
            record.run_id = self._run_id
        return True


def _coerce_log_level(level: str) -> int:
    level_upper = (level or "").strip().upper()
    if not level_upper:
        return logging.INFO
    return logging.getLevelNamesMapping().get(level_upper, logging.INFO)


def configure_logging(*, run_id: str, level: str) -> logging.LoggerAdapter:
    """
    Configure logging for CLI runs.

    - Uses root logger configuration only if nothing is configured yet.
    - Adds a run_id to all records so multi-step flows can be correlated.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=_coerce_log_level(level),
            format="%(asctime)s %(levelname)s [%(name)s] [run=%(run_id)s] %(message)s",
        )
    else:
        root.setLevel(_coerce_log_level(level))

    # Records from urllib3/requests must be formattable with %(run_id)s too.
    old_factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs):  # type: ignore[no-untyped-def]
        record = old_factory(*args, **kwargs)
        if not hasattr(record, "run_id"):
            record.run_id = run_id
        return record

    logging.setLogRecordFactory(record_factory)

    for h in root.handlers:
        h.addFilter(_RunIdFilter(run_id))

    # run_id is set by the record factory; passing it again via `extra`
    # would raise KeyError ("Attempt to overwrite 'run_id' in LogRecord").
    return logging.LoggerAdapter(logging.getLogger(LOGGER_NAME), {})


def get_logger(log: Optional[logging.LoggerAdapter], name: str) -> logging.LoggerAdapter:
    """Return `log` if given, else an adapter over the named package logger."""
    if log is not None:
        return log
    return logging.LoggerAdapter(logging.getLogger(name), {})


_SENSITIVE_KEYS = {
    "password",
    "signinname",
    "access_token",
    "refresh_token",
    "id_token",
    "client_secret",
    "code_verifier",
    "code",
    "csrf",
    "csrf_token",
    "x-csrf-token",
    "authorization",
    "cookie",
    "set-cookie",
}


def redact(value: object) -> str:
    """
    Redact potentially sensitive values for safe logging, keeping a short prefix/suffix.
    """
    if value is None:
        return "<none>"
    s = str(value)
    if not s:
        return "<empty>"
    if len(s) <= 8:
        return "<redacted>"
    return f"{s[:3]}…{s[-3:]}"


def redact_sensitive(value: object) -> str:
    """
    Redact *fully* for secret-bearing fields (tokens, passwords, codes).

    Unlike `redact()`, this never keeps a prefix/suffix; partial leaks of OAuth
    tokens/codes can still be replayed.
    """
    if value is None:
        return "<none>"
    s = str(value)
    if not s:
        return "<empty>"
    return "<redacted>"


def sanitize_mapping(d: dict) -> dict:
    """
    Return a shallow copy safe for logging (redacts sensitive keys).
    """
    safe: dict = {}
    for k, v in d.items():
        if str(k).lower() in _SENSITIVE_KEYS:
            safe[k] = redact_sensitive(v)
        else:
            safe[k] = v
    return safe


def sanitize_obj(obj: object) -> object:
    """
    Deep-sanitize JSON-like objects (dict/list/tuple) for safe logging.
    """
    if isinstance(obj, dict):
        out: dict = {}
        for k, v in obj.items():
            if str(k).lower() in _SENSITIVE_KEYS:
                out[k] = redact_sensitive(v)
            else:
                out[k] = sanitize_obj(v)
        return out
    if isinstance(obj, list):
        return [sanitize_obj(v) for v in obj]
    if isinstance(obj, tuple):
        return tuple(sanitize_obj(v) for v in obj)
    return obj


_TEXT_PATTERNS = [
    # JSON-ish: "access_token":"..."
    (re.compile(r'("(?:access_token|refresh_token|id_token|csrf)"\s*:\s*")[^"]+(")', re.IGNORECASE), r"\1<redacted>\2"),
    # Form/query-ish: access_token=...
    (re.compile(r"((?:access_token|refresh_token|id_token|code_verifier|password|csrf_token)=)[^&\s]+", re.IGNORECASE), r"\1<redacted>"),
    # Authorization codes can appear in redirect URLs or HTML.
    (re.compile(r"(\bcode=)[^&\"\s]+", re.IGNORECASE), r"\1<redacted>"),
]


def sanitize_text(text: str) -> str:
    """
    Best-effort scrub of OAuth secrets in free-form text (error bodies, URLs).

    Over-redaction is preferred to accidental leaks.
    """
    if not text:
        return text
    scrubbed = text
    for pattern, repl in _TEXT_PATTERNS:
        scrubbed = pattern.sub(repl, scrubbed)
    return scrubbed


def truncated_body(text: Optional[str], limit: int = 800) -> str:
    """Return a sanitized, truncated response body for error messages."""
    return sanitize_text((text or "")[:limit])


__all__ = [
    "LOGGER_NAME",
    "configure_logging",
    "get_logger",
    "redact",
    "redact_sensitive",
    "sanitize_mapping",
    "sanitize_obj",
    "sanitize_text",
    "truncated_body",
]
