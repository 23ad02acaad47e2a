"""Governance rule for general REST conventions."""

from collections.abc import Mapping
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import (
    GovernanceSeverity,
    InspectionContext,
    RuleViolation,
)


class RestStandardsSettings(BaseModel):
    """Settings of the REST standards rule."""

    severity: GovernanceSeverity = "error"
    max_unpaginated_items: int = Field(default=50, ge=0)
    exceptions: list[str] = Field(
        default_factory=lambda: ["api", "v1", "v2", "v3", "auth", "login", "logout"]
    )


class RestStandardsRule:
    """Flags creation status codes, singular resources and large collections."""

    def __init__(self, settings: Mapping[str, object] | None = None) -> None:
        """Initialize rule from its settings."""
        self.settings = RestStandardsSettings.model_validate(settings or {})
        self.severity = self.settings.severity
        self._exceptions = {e.lower() for e in self.settings.exceptions}

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[RuleViolation]:
        """Check the exchange against REST conventions."""
        violations: list[RuleViolation] = []
        body = response.body

        if (
            request.method.upper() == "POST"
            and response.status == 200
            and isinstance(body, dict)
            and body.get("id")
        ):
            violations.append(
                RuleViolation(
                    category="creation-status-code",
                    message="POST for resource creation should return 201",
                    severity="warning",
                    location="response.status",
                    remediation="Return 201 Created with the new resource",
                )
            )

        for segment in urlsplit(endpoint or request.url).path.split("/"):
            if not segment or segment.isdigit():
                continue
            if not segment.endswith("s") and segment.lower() not in self._exceptions:
                violations.append(
                    RuleViolation(
                        category="resource-naming",
                        message=f"Resource '{segment}' should be plural",
                        severity="warning",
                        location=f"url.path.{segment}",
                        remediation=f"Use a plural collection name such as '{segment}s'",
                    )
                )

        if isinstance(body, list) and len(body) > self.settings.max_unpaginated_items:
            violations.append(
                RuleViolation(
                    category="pagination-required",
                    message="Large collections should use pagination",
                    severity="warning",
                    location="response.body",
                    remediation="Paginate collections instead of returning every item",
                )
            )

        return violations
