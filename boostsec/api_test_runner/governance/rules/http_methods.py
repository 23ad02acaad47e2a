"""Governance rule checking HTTP method semantics and status codes."""

from collections.abc import Mapping

from pydantic import BaseModel

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import (
    GovernanceSeverity,
    InspectionContext,
    RuleViolation,
)

EXPECTED_STATUS_CODES: dict[str, frozenset[int]] = {
    "GET": frozenset({200, 204, 206, 304, 404}),
    "POST": frozenset({200, 201, 202, 204, 400, 404, 409}),
    "PUT": frozenset({200, 204, 400, 404, 409}),
    "PATCH": frozenset({200, 204, 400, 404, 409}),
    "DELETE": frozenset({200, 204, 404}),
    "HEAD": frozenset({200, 204, 304, 404}),
    "OPTIONS": frozenset({200, 204}),
}

ANY_METHOD_STATUS_CODES = frozenset({401, 403, 429})

SIDE_EFFECT_KEYS = ("created", "updated", "deleted")


class HttpMethodsSettings(BaseModel):
    """Settings of the HTTP methods rule."""

    severity: GovernanceSeverity = "error"
    enforce_semantics: bool = True
    strict_status_codes: bool = True


class HttpMethodsRule:
    """Flags responses that do not match the semantics of the request method."""

    def __init__(self, settings: Mapping[str, object] | None = None) -> None:
        """Initialize rule from its settings."""
        self.settings = HttpMethodsSettings.model_validate(settings or {})
        self.severity = self.settings.severity

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[RuleViolation]:
        """Check method semantics and status codes."""
        method = request.method.upper()
        violations: list[RuleViolation] = []
        if self.settings.enforce_semantics:
            violations.extend(self._check_semantics(method, response))
        if self.settings.strict_status_codes:
            violations.extend(self._check_status(method, response.status))
        return violations

    def _check_semantics(
        self, method: str, response: CapturedResponse
    ) -> list[RuleViolation]:
        body = response.body
        status = response.status
        violations: list[RuleViolation] = []

        if method in {"GET", "HEAD"} and isinstance(body, dict):
            if any(body.get(key) for key in SIDE_EFFECT_KEYS):
                violations.append(
                    RuleViolation(
                        category="unsafe-method",
                        message=(
                            f"{method} request appears to have side effects "
                            "(created/updated/deleted fields in response)"
                        ),
                        severity="error",
                        location="response.body",
                        remediation=f"{method} should be read-only",
                    )
                )
        elif method == "POST" and status == 200 and isinstance(body, dict):
            if body.get("id") and not body.get("errors"):
                violations.append(
                    RuleViolation(
                        category="wrong-status-code",
                        message="POST for resource creation should return 201 Created",
                        severity="warning",
                        location="response.status",
                        remediation="Return 201 for successful resource creation",
                    )
                )
        elif method == "DELETE":
            if status == 204 and body:
                violations.append(
                    RuleViolation(
                        category="wrong-status-code",
                        message="204 No Content should not have a response body",
                        severity="warning",
                        location="response.body",
                        remediation="Remove the body or return 200 OK",
                    )
                )
            elif status == 200 and not body:
                violations.append(
                    RuleViolation(
                        category="wrong-status-code",
                        message="DELETE with 200 status should include a response body",
                        severity="info",
                        location="response.status",
                        remediation="Use 204 No Content, or return details with 200",
                    )
                )
        return violations

    def _check_status(self, method: str, status: int) -> list[RuleViolation]:
        expected = EXPECTED_STATUS_CODES.get(method)
        # 5xx are server faults, not method semantics
        if (
            expected is None
            or status in expected
            or status in ANY_METHOD_STATUS_CODES
            or status >= 500
        ):
            return []
        return [
            RuleViolation(
                category="unexpected-status-code",
                message=f"Unexpected status {status} for {method}",
                location="response.status",
                remediation=(
                    f"Use one of {', '.join(str(c) for c in sorted(expected))} "
                    f"for {method}"
                ),
            )
        ]
