"""Governance rule requiring API version information."""

import re
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, Field

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import (
    GovernanceSeverity,
    InspectionContext,
    RuleViolation,
)

VERSION_HEADERS = ("api-version", "accept-version", "version", "x-api-version")
_ACCEPT_VERSION = re.compile(r"version\s*=\s*\d+", re.IGNORECASE)


class VersioningSettings(BaseModel):
    """Settings of the versioning rule."""

    severity: GovernanceSeverity = "warning"
    require_version: bool = True
    preferred_location: Literal["url", "header", "both"] | None = None
    version_pattern: str = Field(default=r"v\d+")


class VersioningRule:
    """Flags endpoints that carry no version in the URL or headers."""

    def __init__(self, settings: Mapping[str, object] | None = None) -> None:
        """Initialize rule from its settings."""
        self.settings = VersioningSettings.model_validate(settings or {})
        self.severity = self.settings.severity
        self._pattern = re.compile(self.settings.version_pattern, re.IGNORECASE)

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[RuleViolation]:
        """Check the exchange for version information."""
        in_url = bool(self._pattern.search(endpoint or request.url))
        in_header = self._has_version_header(request.headers)
        in_accept = self._has_accept_version(request.headers)
        has_version = in_url or in_header or in_accept

        violations: list[RuleViolation] = []
        if self.settings.require_version and not has_version:
            violations.append(
                RuleViolation(
                    category="missing-api-version",
                    message="API endpoint is missing version information",
                    severity=self.severity,
                    location="url and headers",
                    remediation=(
                        "Add version to URL path (e.g., /api/v1/resource) or "
                        "version header (e.g., API-Version: 1)"
                    ),
                )
            )

        location = self.settings.preferred_location
        if not has_version or location is None:
            return violations

        if location == "url" and not in_url:
            violations.append(
                RuleViolation(
                    category="version-in-wrong-location",
                    message="Version should be in URL path, not headers",
                    severity="info",
                    location="headers",
                    remediation="Move version from headers to URL path",
                )
            )
        elif location == "header" and in_url and not in_header:
            violations.append(
                RuleViolation(
                    category="version-in-wrong-location",
                    message="Version should be in headers, not URL path",
                    severity="info",
                    location="url",
                    remediation="Move version from URL to an API-Version header",
                )
            )
        elif location == "both" and not (in_url and in_header):
            violations.append(
                RuleViolation(
                    category="incomplete-versioning",
                    message="Version should be in both URL and headers",
                    severity="info",
                    location="headers" if in_url else "url",
                    remediation="Add version to both URL path and headers",
                )
            )
        return violations

    def _has_version_header(self, headers: Mapping[str, str]) -> bool:
        for key, value in headers.items():
            if key.lower() in VERSION_HEADERS and self._pattern.search(value):
                return True
        return False

    @staticmethod
    def _has_accept_version(headers: Mapping[str, str]) -> bool:
        accept = next((v for k, v in headers.items() if k.lower() == "accept"), "")
        return bool(_ACCEPT_VERSION.search(accept))
