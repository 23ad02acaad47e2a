"""Security check for response security headers."""

from collections.abc import Mapping

from pydantic import BaseModel, Field

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import CheckFinding, InspectionContext

REMEDIATIONS = {
    "strict-transport-security": "Add: Strict-Transport-Security: max-age=31536000",
    "x-content-type-options": "Add: X-Content-Type-Options: nosniff",
    "x-frame-options": "Add: X-Frame-Options: DENY",
    "content-security-policy": "Add a Content-Security-Policy restricting sources",
    "referrer-policy": "Add: Referrer-Policy: strict-origin-when-cross-origin",
}


class HeadersSettings(BaseModel):
    """Settings of the headers check."""

    required_headers: list[str] = Field(
        default_factory=lambda: [
            "Strict-Transport-Security",
            "X-Content-Type-Options",
            "X-Frame-Options",
        ]
    )
    recommended_headers: list[str] = Field(
        default_factory=lambda: ["Content-Security-Policy", "Referrer-Policy"]
    )
    validate_cors: bool = True
    allow_missing_headers: bool = False


class HeadersCheck:
    """Reports missing security headers and permissive CORS."""

    def __init__(self, settings: Mapping[str, object] | None = None) -> None:
        """Initialize check from its settings."""
        self.settings = HeadersSettings.model_validate(settings or {})

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[CheckFinding]:
        """Inspect the response headers."""
        is_https = (endpoint or request.url).startswith("https://")
        findings: list[CheckFinding] = []

        for header in self.settings.required_headers:
            # HSTS is meaningless over plain HTTP
            if header.lower() == "strict-transport-security" and not is_https:
                continue
            if response.header(header) is None:
                findings.append(
                    CheckFinding(
                        type="missing-security-header",
                        severity="low" if self.settings.allow_missing_headers else "medium",
                        title=f"Missing {header} Header",
                        description=f"Required security header {header} is not present",
                        location="response.headers",
                        evidence=f"Header not found: {header}",
                        remediation=REMEDIATIONS.get(header.lower()),
                    )
                )

        for header in self.settings.recommended_headers:
            if response.header(header) is None:
                findings.append(
                    CheckFinding(
                        type="missing-recommended-header",
                        severity="info",
                        title=f"Missing {header} Header",
                        description=f"Recommended security header {header} is not present",
                        location="response.headers",
                        evidence=f"Header not found: {header}",
                        remediation=REMEDIATIONS.get(header.lower()),
                    )
                )

        if self.settings.validate_cors:
            findings.extend(self._check_cors(response))
        return findings

    @staticmethod
    def _check_cors(response: CapturedResponse) -> list[CheckFinding]:
        origin = response.header("Access-Control-Allow-Origin")
        credentials = response.header("Access-Control-Allow-Credentials")
        if origin != "*":
            return []
        with_credentials = (credentials or "").lower() == "true"
        return [
            CheckFinding(
                type="permissive-cors",
                severity="high" if with_credentials else "low",
                title="Permissive CORS Policy",
                description="Access-Control-Allow-Origin allows any origin",
                location="response.headers",
                evidence=f"Access-Control-Allow-Origin: {origin}",
                remediation="Restrict Access-Control-Allow-Origin to trusted origins",
            )
        ]
