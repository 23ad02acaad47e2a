"""Governance rule for pagination of collection responses."""

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

PaginationStyle = Literal["offset", "cursor", "link"]

COLLECTION_KEYS = ("data", "items", "results", "records")
OFFSET_KEYS = ("total", "limit", "offset", "page")
CURSOR_KEYS = ("cursor", "next_cursor", "has_more")
NAVIGATION_URL_KEYS = ("next", "previous", "next_url", "prev_url")

_REL_NEXT = re.compile(r'rel="?next"?', re.IGNORECASE)
_REL_PREV = re.compile(r'rel="?prev"?', re.IGNORECASE)


def _is_int(value: object, minimum: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= minimum


class PaginationSettings(BaseModel):
    """Settings of the pagination rule."""

    severity: GovernanceSeverity = "warning"
    threshold: int = Field(default=100, ge=0, description="Items before pagination")
    preferred_style: PaginationStyle = "cursor"
    require_metadata: bool = True
    allow_no_pagination: bool = False


class PaginationRule:
    """Requires pagination for large collections and validates its metadata."""

    def __init__(self, settings: Mapping[str, object] | None = None) -> None:
        """Initialize rule from its settings."""
        self.settings = PaginationSettings.model_validate(settings or {})
        self.severity = self.settings.severity

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[RuleViolation]:
        """Check collection responses for pagination."""
        body = response.body
        collection = self._find_collection(body)
        if collection is None:
            return []

        envelope = body if isinstance(body, dict) else {}
        link = response.header("Link")
        violations: list[RuleViolation] = []

        size = len(collection)
        if (
            size > self.settings.threshold
            and not self.settings.allow_no_pagination
            and not self._has_pagination(envelope, link)
        ):
            violations.append(
                RuleViolation(
                    category="missing-pagination",
                    message=(
                        f"Collection with {size} items exceeds threshold "
                        f"({self.settings.threshold}) but has no pagination"
                    ),
                    severity=self.severity,
                    location="response.body",
                    remediation=(
                        "Add pagination metadata (limit, offset, total) or Link "
                        "headers for collections larger than "
                        f"{self.settings.threshold} items"
                    ),
                )
            )

        style = self._detect_style(envelope, link)
        if style is not None and self.settings.require_metadata:
            violations.extend(self._validate_metadata(envelope, link, style))
        return violations

    @staticmethod
    def _find_collection(body: object) -> list[object] | None:
        if isinstance(body, list):
            return body
        if isinstance(body, dict):
            for key in COLLECTION_KEYS:
                if isinstance(body.get(key), list):
                    return body[key]
        return None

    @staticmethod
    def _has_pagination(envelope: dict[str, object], link: str | None) -> bool:
        if any(key in envelope for key in OFFSET_KEYS + CURSOR_KEYS):
            return True
        if link:
            return True
        return any(envelope.get(key) for key in NAVIGATION_URL_KEYS)

    @staticmethod
    def _detect_style(
        envelope: dict[str, object], link: str | None
    ) -> PaginationStyle | None:
        if link:
            return "link"
        if any(key in envelope for key in CURSOR_KEYS):
            return "cursor"
        if any(key in envelope for key in OFFSET_KEYS):
            return "offset"
        return None

    def _validate_metadata(
        self, envelope: dict[str, object], link: str | None, style: PaginationStyle
    ) -> list[RuleViolation]:
        if style == "offset":
            violations = self._validate_offset(envelope)
        elif style == "cursor":
            violations = self._validate_cursor(envelope)
        else:
            violations = self._validate_link(link or "")

        if style != self.settings.preferred_style:
            preferred = self.settings.preferred_style
            violations.append(
                RuleViolation(
                    category="inconsistent-pagination-style",
                    message=f"Using {style} pagination, but {preferred} is preferred",
                    severity="info",
                    location="response.body",
                    remediation=(
                        f"Consider switching to {preferred}-based pagination "
                        "for consistency"
                    ),
                )
            )
        return violations

    @staticmethod
    def _validate_offset(envelope: dict[str, object]) -> list[RuleViolation]:
        violations: list[RuleViolation] = []
        missing = [
            ("total", "Add \"total\" field to indicate total number of items"),
            ("limit", "Add \"limit\" field to indicate page size"),
        ]
        for key, remediation in missing:
            if key not in envelope:
                violations.append(
                    RuleViolation(
                        category="incomplete-pagination-metadata",
                        message=f'Offset-based pagination missing "{key}" field',
                        severity="warning",
                        location="response.body",
                        remediation=remediation,
                    )
                )
        if "offset" not in envelope and "page" not in envelope:
            violations.append(
                RuleViolation(
                    category="incomplete-pagination-metadata",
                    message='Offset-based pagination missing "offset" or "page" field',
                    severity="warning",
                    location="response.body",
                    remediation=(
                        'Add "offset" or "page" field to indicate current position'
                    ),
                )
            )

        if "offset" in envelope and not _is_int(envelope["offset"], minimum=0):
            violations.append(
                RuleViolation(
                    category="invalid-pagination-values",
                    message="Invalid offset value (must be non-negative integer)",
                    severity="error",
                    location="response.body.offset",
                    remediation="Ensure offset is a non-negative integer",
                )
            )
        if "limit" in envelope and not _is_int(envelope["limit"], minimum=1):
            violations.append(
                RuleViolation(
                    category="invalid-pagination-values",
                    message="Invalid limit value (must be positive integer)",
                    severity="error",
                    location="response.body.limit",
                    remediation="Ensure limit is a positive integer",
                )
            )
        return violations

    @staticmethod
    def _validate_cursor(envelope: dict[str, object]) -> list[RuleViolation]:
        violations: list[RuleViolation] = []
        if "cursor" not in envelope and "next_cursor" not in envelope:
            violations.append(
                RuleViolation(
                    category="incomplete-pagination-metadata",
                    message="Cursor-based pagination missing cursor field",
                    severity="warning",
                    location="response.body",
                    remediation='Add "cursor" or "next_cursor" field',
                )
            )
        if "has_more" not in envelope and "next" not in envelope:
            violations.append(
                RuleViolation(
                    category="incomplete-pagination-metadata",
                    message="Cursor-based pagination missing navigation field",
                    severity="warning",
                    location="response.body",
                    remediation='Add "has_more" boolean or "next" URL field',
                )
            )
        return violations

    @staticmethod
    def _validate_link(link: str) -> list[RuleViolation]:
        if _REL_NEXT.search(link) or _REL_PREV.search(link):
            return []
        return [
            RuleViolation(
                category="incomplete-pagination-metadata",
                message='Link header missing rel="next" or rel="prev"',
                severity="warning",
                location="response.headers.Link",
                remediation='Add rel="next" or rel="prev" links to Link header',
            )
        ]
