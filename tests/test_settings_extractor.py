"""
Unit tests for extracting the SETTINGS blob from the B2C login page.
"""

from __future__ import annotations

import pytest

from thermia_exporter.api_auth.settings_extractor import LoginPageSettings, RegexSettingsExtractor
from thermia_exporter.errors import MalformedStateError, ProtocolShapeError

LOGIN_PAGE = """
<html><head>
<script type="text/javascript">
var SETTINGS = {"remoteResource":"https://example.invalid/page.html","csrf":"Q1NSRi1UT0tFTg==","transId":"StateProperties=eyJUSUQiOiIxMjM0In0","api":"CombinedSigninAndSignup",
"config":{"showSignupLink":"False"}};
</script>
</head><body></body></html>
"""


def test_extracts_csrf_and_trans_id_from_login_page() -> None:
    settings = RegexSettingsExtractor().extract(LOGIN_PAGE)

    assert settings.csrf == "Q1NSRi1UT0tFTg=="
    assert settings.trans_id == "StateProperties=eyJUSUQiOiIxMjM0In0"
    assert settings.state_properties == "eyJUSUQiOiIxMjM0In0"


def test_missing_settings_blob_raises_protocol_shape_error() -> None:
    with pytest.raises(ProtocolShapeError, match="SETTINGS"):
        RegexSettingsExtractor().extract("<html><body>maintenance</body></html>")


def test_invalid_json_settings_blob_raises_protocol_shape_error() -> None:
    html = "<script>var SETTINGS = {csrf: 'unquoted'};</script>"
    with pytest.raises(ProtocolShapeError):
        RegexSettingsExtractor().extract(html)


def test_empty_html_raises_protocol_shape_error() -> None:
    with pytest.raises(ProtocolShapeError):
        RegexSettingsExtractor().extract("")


@pytest.mark.parametrize(
    "trans_id",
    [
        "",
        "StateProperties",
        "StateProperties=abc=def",
    ],
)
def test_state_properties_requires_exactly_two_parts(trans_id: str) -> None:
    settings = LoginPageSettings(csrf="c", trans_id=trans_id)
    with pytest.raises(MalformedStateError):
        _ = settings.state_properties
