"""Security check for request authentication."""

import re
from collections.abc import Mapping

from pydantic import BaseModel, Field

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import CheckFinding, InspectionContext

API_KEY_HEADERS = ("X-API-Key", "API-Key", "ApiKey")
KNOWN_SCHEMES = frozenset({"bearer", "basic", "digest", "oauth", "apikey"})
CREDENTIAL_PARAMS = ("password=", "apikey=", "token=")


def matches_endpoint(url: str, patterns: list[str]) -> bool:
    """Whether a URL matches a wildcard pattern or contains a plain one."""
    for pattern in patterns:
        if "*" in pattern:
            regex = ".*".join(re.escape(part) for part in pattern.split("*"))
            if re.fullmatch(regex, url):
                return True
        elif pattern in url:
            return True
    return False


class AuthenticationSettings(BaseModel):
    """Settings of the authentication check."""

    require_auth: bool = True
    preferred_scheme: str | None = "bearer"
    public_endpoints: list[str] = Field(
        default_factory=lambda: ["/health", "/ping", "/status"]
    )
    flag_weak_auth: bool = True


class AuthenticationCheck:
    """Reports missing, malformed, weak or exposed credentials."""

    def __init__(self, settings: Mapping[str, object] | None = None) -> None:
        """Initialize check from its settings."""
        self.settings = AuthenticationSettings.model_validate(settings or {})

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[CheckFinding]:
        """Inspect the credentials sent with the request."""
        url = endpoint or request.url
        if matches_endpoint(url, self.settings.public_endpoints):
            return []

        authorization = request.header("Authorization")
        api_key = next((v for v in map(request.header, API_KEY_HEADERS) if v), None)
        cookie = request.header("Cookie")
        findings: list[CheckFinding] = []

        if self.settings.require_auth and not (authorization or api_key or cookie):
            findings.append(
                CheckFinding(
                    type="missing-authentication",
                    severity="high",
                    title="Missing Authentication",
                    description="No authentication credentials found in request headers",
                    location="request.headers",
                    evidence="No Authorization, X-API-Key, or Cookie header present",
                    remediation=(
                        "Add authentication credentials (Authorization header, "
                        "API key, or session cookie)"
                    ),
                )
            )

        if authorization:
            findings.extend(self._check_scheme(authorization))
            if self.settings.flag_weak_auth:
                findings.extend(self._check_weak_auth(authorization, url))

        if any(param in url for param in CREDENTIAL_PARAMS):
            findings.append(
                CheckFinding(
                    type="exposed-credentials",
                    severity="critical",
                    title="Credentials in URL",
                    description=(
                        "Authentication credentials exposed in URL query parameters"
                    ),
                    location="request.url",
                    evidence="URL contains password, apikey, or token parameter",
                    cwe="CWE-598: Use of GET Request Method With Sensitive Query Strings",
                    remediation=(
                        "Move credentials to Authorization header. URLs are logged "
                        "and cached, exposing credentials."
                    ),
                )
            )
        return findings

    def _check_scheme(self, authorization: str) -> list[CheckFinding]:
        parts = authorization.split()
        if not parts:
            return [
                CheckFinding(
                    type="invalid-auth-scheme",
                    severity="high",
                    title="Invalid Authentication Scheme",
                    description="Authorization header is malformed",
                    location="request.headers.Authorization",
                    evidence=authorization,
                    remediation=(
                        'Use proper format: "Bearer <token>" or "Basic <credentials>"'
                    ),
                )
            ]

        scheme = parts[0].lower()
        findings: list[CheckFinding] = []
        if scheme not in KNOWN_SCHEMES:
            findings.append(
                CheckFinding(
                    type="invalid-auth-scheme",
                    severity="medium",
                    title="Unknown Authentication Scheme",
                    description=f"Unrecognized authentication scheme: {scheme}",
                    location="request.headers.Authorization",
                    evidence=authorization,
                    remediation=(
                        "Use standard authentication scheme "
                        "(Bearer, Basic, Digest, OAuth)"
                    ),
                )
            )

        preferred = self.settings.preferred_scheme
        if preferred and scheme != preferred.lower():
            findings.append(
                CheckFinding(
                    type="non-preferred-auth-scheme",
                    severity="info",
                    title="Non-Preferred Authentication Scheme",
                    description=f"Using {scheme}, but {preferred} is preferred",
                    location="request.headers.Authorization",
                    evidence=authorization,
                    remediation=(
                        f"Consider using {preferred} authentication for consistency"
                    ),
                )
            )
        return findings

    @staticmethod
    def _check_weak_auth(authorization: str, url: str) -> list[CheckFinding]:
        parts = authorization.split()
        if not parts or parts[0].lower() != "basic" or not url.startswith("http://"):
            return []
        return [
            CheckFinding(
                type="weak-authentication",
                severity="critical",
                title="Basic Authentication Over HTTP",
                description=(
                    "Basic authentication credentials transmitted over unencrypted HTTP"
                ),
                location="request.headers.Authorization",
                evidence="Basic auth used with http:// URL",
                cwe="CWE-319: Cleartext Transmission of Sensitive Information",
                remediation=(
                    "Use HTTPS for all authenticated requests. Basic auth sends "
                    "credentials in Base64 encoding, which is easily decoded."
                ),
            )
        ]
