"""
PKCE (RFC 7636) helpers for the authorization-code flow.
"""

from __future__ import annotations

import base64
import hashlib
import random
import secrets
from typing import Optional

VERIFIER_LENGTH = 43

# RFC 3986 "unreserved" characters.
UNRESERVED_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-._~"


def _base64url_no_padding(raw: bytes) -> str:
    """
    Base64URL encode without '=' padding (RFC 7636).
    """
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def generate_code_verifier(length: int = VERIFIER_LENGTH, *, rng: Optional[random.Random] = None) -> str:
    """
    Generate a PKCE code_verifier drawn from the unreserved alphabet.

    RFC 7636 requires 43..128 chars. Pass a seeded `rng` for a reproducible
    verifier; by default the OS CSPRNG is used, a fresh verifier per login.
    """
    if length < 43 or length > 128:
        raise ValueError("PKCE code_verifier length must be 43..128")
    if rng is None:
        return "".join(secrets.choice(UNRESERVED_ALPHABET) for _ in range(length))
    return "".join(rng.choice(UNRESERVED_ALPHABET) for _ in range(length))


def code_challenge_s256(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return _base64url_no_padding(digest)


__all__ = [
    "UNRESERVED_ALPHABET",
    "VERIFIER_LENGTH",
    "code_challenge_s256",
    "generate_code_verifier",
]
