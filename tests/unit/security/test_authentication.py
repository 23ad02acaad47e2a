"""Tests for the authentication security check."""

import pytest

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import CheckFinding, InspectionContext
from boostsec.api_test_runner.security.checks.authentication import (
    AuthenticationCheck,
    matches_endpoint,
)

URL = "https://api.test/v1/users"


async def evaluate(
    url: str, headers: dict[str, str], **settings: object
) -> list[CheckFinding]:
    """Evaluate a GET sent with the given headers."""
    check = AuthenticationCheck(settings)
    request = CapturedRequest(url=url, headers=headers)
    response = CapturedResponse(status=200)
    return await check.evaluate(request, response, url, InspectionContext())


@pytest.mark.parametrize(
    "headers",
    [
        {"Authorization": "Bearer abc.def.ghi"},
        {"x-api-key": "secret"},
        {"Cookie": "session=abc"},
    ],
)
async def test_authenticated_requests(headers: dict[str, str]) -> None:
    """A bearer token, API key or session cookie authenticates the request."""
    findings = await evaluate(URL, headers, preferred_scheme=None)

    assert findings == []


async def test_missing_authentication() -> None:
    """Requests without credentials are reported as high severity."""
    findings = await evaluate(URL, {})

    assert [f.type for f in findings] == ["missing-authentication"]
    assert findings[0].severity == "high"


async def test_optional_authentication() -> None:
    """require_auth off accepts anonymous requests."""
    assert await evaluate(URL, {}, require_auth=False) == []


@pytest.mark.parametrize(
    "url",
    ["https://api.test/health", "https://api.test/public/docs"],
)
async def test_public_endpoints_are_exempt(url: str) -> None:
    """Public endpoints match by substring or wildcard."""
    findings = await evaluate(
        url, {}, public_endpoints=["/health", "https://api.test/public/*"]
    )

    assert findings == []


def test_matches_endpoint_escapes_literals() -> None:
    """Wildcards match any text; other characters are literal."""
    assert matches_endpoint("https://a.test/x/1", ["https://a.test/x/*"])
    assert not matches_endpoint("https://aXtest/x/1", ["https://a.test/x/*"])


async def test_unknown_and_non_preferred_scheme() -> None:
    """Unrecognized schemes are medium; non-preferred ones info."""
    findings = await evaluate(URL, {"Authorization": "Token abc"})

    assert [(f.type, f.severity) for f in findings] == [
        ("invalid-auth-scheme", "medium"),
        ("non-preferred-auth-scheme", "info"),
    ]


async def test_basic_auth_over_http() -> None:
    """Basic credentials over plain HTTP are critical."""
    findings = await evaluate(
        "http://api.test/v1/users",
        {"Authorization": "Basic dXNlcjpwYXNz"},
        preferred_scheme="basic",
    )

    assert [f.type for f in findings] == ["weak-authentication"]
    assert findings[0].severity == "critical"
    assert findings[0].cwe is not None
    assert findings[0].cwe.startswith("CWE-319")


async def test_credentials_in_url() -> None:
    """Credentials in the query string are critical."""
    findings = await evaluate(
        f"{URL}?token=abc", {"Authorization": "Bearer abc.def.ghi"}
    )

    assert [f.type for f in findings] == ["exposed-credentials"]
    assert findings[0].location == "request.url"
