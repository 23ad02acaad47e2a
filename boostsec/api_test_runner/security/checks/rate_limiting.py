"""Security check for rate limiting headers."""

import re
from collections.abc import Mapping
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import CheckFinding, InspectionContext

RATE_LIMIT_HEADERS = (
    "x-ratelimit-limit",
    "x-ratelimit-remaining",
    "x-ratelimit-reset",
    "x-rate-limit-limit",
    "x-rate-limit-remaining",
    "x-rate-limit-reset",
    "ratelimit-limit",
    "ratelimit-remaining",
    "ratelimit-reset",
    "retry-after",
)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def header_kind(name: str) -> str:
    """Last dash-separated word of a header name: limit, remaining or reset."""
    return name.lower().rsplit("-", 1)[-1]


def leading_int(value: str) -> int | None:
    """Integer at the start of a header value, if any."""
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else None


def matches_path(url: str, patterns: list[str]) -> bool:
    """Whether the URL path matches a ``**`` prefix, a ``*`` glob or a substring."""
    path = urlsplit(url).path or url
    for pattern in patterns:
        if "**" in pattern:
            if path.startswith(pattern.replace("**", "", 1)):
                return True
        elif "*" in pattern:
            regex = "[^/]*".join(re.escape(part) for part in pattern.split("*"))
            if re.fullmatch(regex, path):
                return True
        elif pattern in url:
            return True
    return False


class RateLimitingSettings(BaseModel):
    """Settings of the rate limiting check."""

    require_rate_limiting: bool = True
    public_endpoints: list[str] = Field(default_factory=lambda: ["/api/**"])
    expected_headers: list[str] = Field(
        default_factory=lambda: ["X-RateLimit-Limit", "X-RateLimit-Remaining"]
    )
    warn_on_aggressive_limits: bool = True
    min_reasonable_limit: int = Field(default=10, description="Requests per window")


class RateLimitingCheck:
    """Reports missing, incomplete or implausible rate limit headers."""

    def __init__(self, settings: Mapping[str, object] | None = None) -> None:
        """Initialize check from its settings."""
        self.settings = RateLimitingSettings.model_validate(settings or {})

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[CheckFinding]:
        """Inspect the rate limit headers of the response."""
        url = endpoint or request.url
        present = [
            (name, value)
            for name, value in response.headers.items()
            if any(pattern in name.lower() for pattern in RATE_LIMIT_HEADERS)
        ]
        findings: list[CheckFinding] = []

        if (
            self.settings.require_rate_limiting
            and not present
            and matches_path(url, self.settings.public_endpoints)
        ):
            findings.append(
                CheckFinding(
                    type="missing-rate-limiting",
                    severity="medium",
                    title="Missing Rate Limiting",
                    description="Public endpoint does not include rate limit headers",
                    location="response.headers",
                    evidence=f"No rate limit headers found for {url}",
                    cwe="CWE-770: Allocation of Resources Without Limits or Throttling",
                    remediation=(
                        "Implement rate limiting to prevent abuse. Include headers like "
                        "X-RateLimit-Limit, X-RateLimit-Remaining, X-RateLimit-Reset"
                    ),
                )
            )

        if present:
            findings.extend(self._check_completeness(present))
            findings.extend(self._check_values(present))
            if self.settings.warn_on_aggressive_limits:
                findings.extend(self._check_limits(present))

        if response.status == 429:
            findings.extend(self._check_exceeded(response))
        return findings

    def _check_completeness(self, present: list[tuple[str, str]]) -> list[CheckFinding]:
        expected = self.settings.expected_headers
        if len(present) >= len(expected):
            return []
        names = {name.lower() for name, _ in present}
        missing = ", ".join(h for h in expected if h.lower() not in names)
        return [
            CheckFinding(
                type="incomplete-rate-limit-headers",
                severity="low",
                title="Incomplete Rate Limit Headers",
                description=f"Missing some rate limit headers: {missing}",
                location="response.headers",
                evidence=f"Present: {', '.join(name for name, _ in present)}",
                remediation=f"Add missing rate limit headers: {missing}",
            )
        ]

    @staticmethod
    def _check_values(present: list[tuple[str, str]]) -> list[CheckFinding]:
        findings: list[CheckFinding] = []
        for name, value in present:
            kind = header_kind(name)
            number = leading_int(value)

            if kind in ("limit", "remaining"):
                if number is None:
                    findings.append(
                        CheckFinding(
                            type="invalid-rate-limit-value",
                            severity="medium",
                            title="Invalid Rate Limit Value",
                            description=(
                                f"Rate limit header {name} has non-numeric value"
                            ),
                            location=f"response.headers.{name}",
                            evidence=f"Value: {value}",
                            remediation=(
                                "Ensure rate limit headers contain valid numeric values"
                            ),
                        )
                    )
                elif number < 0:
                    findings.append(
                        CheckFinding(
                            type="invalid-rate-limit-value",
                            severity="medium",
                            title="Negative Rate Limit Value",
                            description=f"Rate limit header {name} has negative value",
                            location=f"response.headers.{name}",
                            evidence=f"Value: {number}",
                            remediation="Rate limit values should be non-negative",
                        )
                    )

            if kind == "reset" and number is None:
                findings.append(
                    CheckFinding(
                        type="invalid-rate-limit-value",
                        severity="low",
                        title="Invalid Reset Timestamp",
                        description=(
                            f"Rate limit reset header {name} has non-numeric value"
                        ),
                        location=f"response.headers.{name}",
                        evidence=f"Value: {value}",
                        remediation=(
                            "Use Unix timestamp (seconds since epoch) for reset time"
                        ),
                    )
                )
        return findings

    def _check_limits(self, present: list[tuple[str, str]]) -> list[CheckFinding]:
        findings: list[CheckFinding] = []
        by_kind = {header_kind(name): (name, value) for name, value in reversed(present)}
        limit_header = by_kind.get("limit")
        remaining_header = by_kind.get("remaining")
        limit = leading_int(limit_header[1]) if limit_header else None
        remaining = leading_int(remaining_header[1]) if remaining_header else None

        minimum = self.settings.min_reasonable_limit
        if limit_header and limit is not None and limit < minimum:
            findings.append(
                CheckFinding(
                    type="aggressive-rate-limiting",
                    severity="info",
                    title="Very Low Rate Limit",
                    description=f"Rate limit of {limit} is very restrictive",
                    location=f"response.headers.{limit_header[0]}",
                    evidence=f"Limit: {limit} (minimum recommended: {minimum})",
                    remediation=(
                        "Consider increasing rate limit to balance security and "
                        "usability"
                    ),
                )
            )

        if limit and remaining is not None and remaining > limit:
            findings.append(
                CheckFinding(
                    type="invalid-rate-limit-value",
                    severity="medium",
                    title="Remaining Exceeds Limit",
                    description="Rate limit remaining value exceeds limit",
                    location="response.headers",
                    evidence=f"Limit: {limit}, Remaining: {remaining}",
                    remediation="Ensure remaining value does not exceed limit",
                )
            )
        return findings

    @staticmethod
    def _check_exceeded(response: CapturedResponse) -> list[CheckFinding]:
        retry_after = response.header("Retry-After")
        findings: list[CheckFinding] = []
        if not retry_after:
            findings.append(
                CheckFinding(
                    type="missing-retry-after",
                    severity="low",
                    title="Missing Retry-After Header",
                    description="429 status without Retry-After header",
                    location="response.headers",
                    evidence="Status 429 but no Retry-After header",
                    remediation=(
                        "Include Retry-After header to indicate when client can retry"
                    ),
                )
            )
        findings.append(
            CheckFinding(
                type="rate-limit-exceeded",
                severity="info",
                title="Rate Limit Exceeded",
                description="API rate limit was exceeded during test",
                location="response.status",
                evidence=f"Status: 429, Retry-After: {retry_after or 'not specified'}",
                remediation="Reduce request rate or increase rate limit threshold",
            )
        )
        return findings
