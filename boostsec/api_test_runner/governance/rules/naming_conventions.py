"""Governance rule for resource naming in URL paths."""

import re
from collections.abc import Mapping
from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import (
    GovernanceSeverity,
    InspectionContext,
    RuleViolation,
)

Convention = Literal["kebab-case", "snake_case", "camelCase", "PascalCase"]

CONVENTIONS: dict[str, tuple[re.Pattern[str], str]] = {
    "kebab-case": (
        re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$"),
        "should be lowercase with hyphens (e.g., user-profiles)",
    ),
    "snake_case": (
        re.compile(r"^[a-z0-9]+(_[a-z0-9]+)*$"),
        "should be lowercase with underscores (e.g., user_profiles)",
    ),
    "camelCase": (
        re.compile(r"^[a-z][a-zA-Z0-9]*$"),
        "should be camelCase (e.g., userProfiles)",
    ),
    "PascalCase": (
        re.compile(r"^[A-Z][a-zA-Z0-9]*$"),
        "should be PascalCase (e.g., UserProfiles)",
    ),
}

SINGULAR_EXCEPTIONS = frozenset(
    {
        "auth",
        "login",
        "logout",
        "oauth",
        "me",
        "profile",
        "settings",
        "config",
        "status",
        "health",
        "ping",
        "metrics",
    }
)
COMMON_ABBREVIATIONS = frozenset(
    {"usr", "pwd", "msg", "svc", "cfg", "mgr", "addr", "num", "qty", "amt", "desc"}
)

_NUMERIC_ID = re.compile(r"^\d+$")
_UUID = re.compile(
    r"^[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}$", re.IGNORECASE
)
_OBJECT_ID = re.compile(r"^[a-f0-9]{24}$", re.IGNORECASE)
_VOWEL = re.compile(r"[aeiou]")
_WORD_SEPARATOR = re.compile(r"[-_]")


def is_id(segment: str) -> bool:
    """Whether a path segment looks like a numeric, UUID or object id."""
    return bool(
        _NUMERIC_ID.match(segment) or _UUID.match(segment) or _OBJECT_ID.match(segment)
    )


def _last_word(segment: str) -> str:
    return _WORD_SEPARATOR.split(segment)[-1].lower()


class NamingConventionsSettings(BaseModel):
    """Settings of the naming conventions rule."""

    severity: GovernanceSeverity = "info"
    convention: Convention = "kebab-case"
    require_plural: bool = True
    allow_abbreviations: bool = False
    custom_exceptions: list[str] = Field(
        default_factory=lambda: ["api", "auth", "oauth", "v1", "v2", "v3"]
    )


class NamingConventionsRule:
    """Checks casing, plurality, abbreviations and hierarchy of path segments."""

    def __init__(self, settings: Mapping[str, object] | None = None) -> None:
        """Initialize rule from its settings."""
        self.settings = NamingConventionsSettings.model_validate(settings or {})
        self.severity = self.settings.severity
        self._exceptions = {e.lower() for e in self.settings.custom_exceptions}

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[RuleViolation]:
        """Check every resource segment of the endpoint path."""
        segments = [
            s for s in urlsplit(endpoint or request.url).path.split("/") if s
        ]
        violations: list[RuleViolation] = []

        for segment in segments:
            if is_id(segment) or segment.lower() in self._exceptions:
                continue
            violations.extend(self._check_segment(segment))

        violations.extend(self._check_hierarchy(segments))
        return violations

    def _check_segment(self, segment: str) -> list[RuleViolation]:
        violations: list[RuleViolation] = []
        convention = self.settings.convention
        pattern, expectation = CONVENTIONS[convention]

        if not pattern.match(segment):
            violations.append(
                RuleViolation(
                    category="inconsistent-naming",
                    message=(
                        f"Resource '{segment}' does not follow {convention} "
                        f"convention: {expectation}"
                    ),
                    severity=self.severity,
                    location=f"url.path.{segment}",
                    remediation=f"Rename '{segment}' to follow {convention} convention",
                )
            )

        if self.settings.require_plural and not self.is_plural(segment):
            violations.append(
                RuleViolation(
                    category="singular-resource",
                    message=f"Resource '{segment}' should be plural",
                    severity="info",
                    location=f"url.path.{segment}",
                    remediation=(
                        f"Change '{segment}' to its plural form (e.g., '{segment}s')"
                    ),
                )
            )

        if not self.settings.allow_abbreviations and self.is_abbreviation(segment):
            violations.append(
                RuleViolation(
                    category="unclear-naming",
                    message=f"Resource '{segment}' appears to be an abbreviation",
                    severity="info",
                    location=f"url.path.{segment}",
                    remediation="Use full word instead of abbreviation for clarity",
                )
            )
        return violations

    def _check_hierarchy(self, segments: list[str]) -> list[RuleViolation]:
        # Two collections in a row are missing the id of the parent resource
        violations: list[RuleViolation] = []
        for current, following in zip(segments, segments[1:]):
            if {current.lower(), following.lower()} & self._exceptions:
                continue
            if is_id(current) or is_id(following):
                continue
            if self.is_plural(current) and self.is_plural(following):
                violations.append(
                    RuleViolation(
                        category="non-restful-hierarchy",
                        message=(
                            f"Invalid hierarchy: '{current}/{following}' - missing "
                            "resource ID between collections"
                        ),
                        severity="warning",
                        location=f"url.path.{current}/{following}",
                        remediation=(
                            f"Add resource ID between collections: "
                            f"/{current}/{{id}}/{following}"
                        ),
                    )
                )
        return violations

    @staticmethod
    def is_plural(segment: str) -> bool:
        """Whether the last word of a segment is plural or a known singleton."""
        word = _last_word(segment)
        return word.endswith("s") or word in SINGULAR_EXCEPTIONS

    @staticmethod
    def is_abbreviation(segment: str) -> bool:
        """Whether the last word of a segment looks abbreviated."""
        word = _last_word(segment)
        if len(word) <= 3 and not _VOWEL.search(word):
            return True
        return word in COMMON_ABBREVIATIONS
