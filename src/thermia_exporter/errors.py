"""
Exception hierarchy for the Thermia client.

Authentication failures abort a scrape; PartialDataError never does. Callers
decide on retries, nothing in this package loops.
"""

from __future__ import annotations

from typing import Optional


class ThermiaError(RuntimeError):
    """Base class for expected failures with a user-facing message."""


class ConfigError(ThermiaError):
    """Missing credentials or invalid runtime settings."""


class AuthenticationError(ThermiaError):
    """Base class for failures of the browser login flow."""


class ProtocolShapeError(AuthenticationError):
    """The login page or token response did not have the expected shape (the B2C pages changed)."""


class InvalidCredentialsError(AuthenticationError):
    """The identity provider rejected the username/password."""


class MalformedStateError(AuthenticationError):
    """The transaction id in the login page settings could not be split into state properties."""


class NoAuthorizationCodeError(AuthenticationError):
    """The confirmation redirect chain did not end with an authorization code."""


class TokenExchangeError(AuthenticationError):
    """The token endpoint answered with a non-200 status."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmptyTokenError(AuthenticationError):
    """The token endpoint answered 200 but without an access token."""


class TransportError(ThermiaError):
    """Network failure or timeout talking to the identity provider or the API."""


class ApiStatusError(TransportError):
    """The Thermia REST API answered with a non-200 status."""

    def __init__(self, message: str, *, status_code: int, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class ApiShapeError(TransportError):
    """The Thermia REST API answered 200 with a body that is not the expected JSON shape."""


class DeadlineExceededError(TransportError):
    """The scrape ran out of time before the next request could be sent."""


class PartialDataError(ThermiaError):
    """
    A register group or event query failed.

    Recorded on the scrape summary rather than raised; the readings that
    depend on `source` are simply absent.
    """

    def __init__(self, source: str, cause: BaseException) -> None:
        super().__init__(f"{source}: {cause}")
        self.source = source
        self.cause = cause


__all__ = [
    "ApiShapeError",
    "ApiStatusError",
    "AuthenticationError",
    "ConfigError",
    "DeadlineExceededError",
    "EmptyTokenError",
    "InvalidCredentialsError",
    "MalformedStateError",
    "NoAuthorizationCodeError",
    "PartialDataError",
    "ProtocolShapeError",
    "ThermiaError",
    "TokenExchangeError",
    "TransportError",
]
