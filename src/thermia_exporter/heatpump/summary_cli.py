#!/usr/bin/env python3
"""
CLI for a one-off scrape of the Thermia heat pump.

Logs in (or reuses a persisted token), reads the first installation and prints
the decoded readings as JSON to stdout.

Exit codes:
  0   success
  1   the account has no installation
  2   configuration or authentication error
  3   TLS verification failed
  4   network error, timeout, scrape deadline exceeded or API error
  130 interrupted
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from typing import Optional

import requests

from .. import config as config_mod
from ..api_auth.auth import BrowserFlowAuthClient
from ..api_auth.token_cache import TokenCache
from ..credentials import load_credentials
from ..errors import AuthenticationError, ConfigError, TransportError
from ..logs import LOGGER_NAME, configure_logging, sanitize_text
from .collector import ThermiaCollector
from .readings import summary_to_dict


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Scrape the Thermia Online heat pump and print the readings as JSON."
    )
    p.add_argument("--pretty", action="store_true", help="Pretty-print JSON output.")
    p.add_argument(
        "--timeout-seconds",
        type=float,
        default=None,
        help="HTTP timeout in seconds (default: THERMIA_REQUEST_TIMEOUT or 30, minimum 10).",
    )
    p.add_argument(
        "--scrape-timeout-seconds",
        type=float,
        default=None,
        help="Time budget for the whole scrape, login included (default: THERMIA_SCRAPE_TIMEOUT or 120).",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help='Logging level (e.g. "DEBUG", "INFO"). You can also set THERMIA_LOG_LEVEL.',
    )
    p.add_argument(
        "--insecure-skip-ssl-verify",
        action="store_true",
        help="Disable TLS certificate verification (NOT recommended).",
    )
    return p.parse_args(sys.argv[1:] if argv is None else argv)


def _caused_by_ssl(err: BaseException) -> bool:
    cause: Optional[BaseException] = err
    while cause is not None:
        if isinstance(cause, requests.exceptions.SSLError):
            return True
        cause = cause.__cause__
    return False


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entrypoint: run one scrape and print the summary as JSON."""
    args = _parse_args(argv)
    log: Optional[logging.LoggerAdapter] = None
    try:
        run_id = uuid.uuid4().hex[:12]
        log = configure_logging(run_id=run_id, level=args.log_level or config_mod.get_log_level())

        if args.timeout_seconds is not None:
            timeout = config_mod.validate_timeout(args.timeout_seconds)
        else:
            timeout = config_mod.get_request_timeout()
        if args.scrape_timeout_seconds is not None:
            scrape_timeout = config_mod.validate_scrape_timeout(args.scrape_timeout_seconds)
        else:
            scrape_timeout = config_mod.get_scrape_timeout()
        ssl_verify = not bool(args.insecure_skip_ssl_verify)
        if not ssl_verify:
            log.warning("TLS certificate verification is disabled")

        auth_client = BrowserFlowAuthClient(timeout_seconds=timeout, ssl_verify=ssl_verify, log=log)
        token_cache = TokenCache(
            auth_client,
            load_credentials(log),
            cache_path=config_mod.get_token_cache_path(),
            log=log,
        )
        collector = ThermiaCollector(
            token_cache,
            timeout_seconds=timeout,
            scrape_timeout_seconds=scrape_timeout,
            ssl_verify=ssl_verify,
            log=log,
        )

        summary = collector.collect()
        if summary is None:
            print("Error: no installation found for this account.", file=sys.stderr)
            return 1

        payload = summary_to_dict(summary)
        if args.pretty:
            print(json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True))
        else:
            print(json.dumps(payload, ensure_ascii=False))
        return 0
    except (ConfigError, AuthenticationError) as e:
        # Avoid accidentally printing secrets in error output.
        print(f"Error: {sanitize_text(str(e))}", file=sys.stderr)
        return 2
    except TransportError as e:
        if _caused_by_ssl(e):
            print(
                "Error: SSL verification failed. "
                "If you must (not recommended), retry with --insecure-skip-ssl-verify. "
                f"Details: {sanitize_text(str(e))}",
                file=sys.stderr,
            )
            return 3
        print(f"Error: {sanitize_text(str(e))}", file=sys.stderr)
        return 4
    except KeyboardInterrupt:
        (log or logging.getLogger(LOGGER_NAME)).warning("interrupted by user")
        print("Interrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
