"""
Authentication module for Thermia Online.

Provides the PKCE helpers, the browser-emulated Azure B2C login flow and the
shared token cache.
"""
from .auth import AuthResult, AuthState, BrowserFlowAuthClient, Credentials
from .token_cache import CachedToken, TokenCache

__all__: list[str] = [
    "AuthResult",
    "AuthState",
    "BrowserFlowAuthClient",
    "CachedToken",
    "Credentials",
    "TokenCache",
]
