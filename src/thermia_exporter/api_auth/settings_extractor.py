"""
Extraction of the B2C login page settings.

The authorize endpoint answers with an HTML page that embeds the values the
rest of the login needs in a script block:

    var SETTINGS = {"csrf": "...", "transId": "StateProperties=...", ...};

This is scraped from a UI page rather than read from an API, so it is the part
of the login most likely to break when the provider changes its page. It lives
behind the `SettingsExtractor` protocol so tests can substitute a fake.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Protocol

from ..errors import MalformedStateError, ProtocolShapeError

_SETTINGS_RE = re.compile(r"var SETTINGS = ([\s\S]*?});")


@dataclass(frozen=True)
class LoginPageSettings:
    csrf: str
    trans_id: str

    @property
    def state_properties(self) -> str:
        """
        Return the opaque state-properties value from `transId`.

        transId has the shape `StateProperties=<value>`; anything that does not
        split into exactly two parts on "=" is rejected.
        """
        parts = self.trans_id.split("=")
        if len(parts) != 2:
            raise MalformedStateError(f"unexpected transId format: {self.trans_id!r}")
        return parts[1]


class SettingsExtractor(Protocol):
    def extract(self, html: str) -> LoginPageSettings:
        """Return the settings embedded in `html` or raise ProtocolShapeError."""
        ...


class RegexSettingsExtractor:
    """Pulls the `var SETTINGS = {...};` blob out of the page with a regex."""

    def extract(self, html: str) -> LoginPageSettings:
        m = _SETTINGS_RE.search(html or "")
        if m is None:
            raise ProtocolShapeError("SETTINGS JSON not found in authorize response")
        blob = m.group(1).strip()
        try:
            settings = json.loads(blob)
        except json.JSONDecodeError as e:
            raise ProtocolShapeError(f"SETTINGS blob is not valid JSON: {e}") from e
        if not isinstance(settings, dict):
            raise ProtocolShapeError("SETTINGS blob is not a JSON object")
        return LoginPageSettings(
            csrf=str(settings.get("csrf") or ""),
            trans_id=str(settings.get("transId") or ""),
        )


__all__ = ["LoginPageSettings", "RegexSettingsExtractor", "SettingsExtractor"]
