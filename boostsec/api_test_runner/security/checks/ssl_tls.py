"""Security check for transport security and cookie flags."""

import json
import re
from collections.abc import Mapping

from pydantic import BaseModel

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import CheckFinding, InspectionContext

LOCAL_HOSTS = ("localhost", "127.0.0.1")
SESSION_COOKIE_NAMES = (
    "session",
    "sessid",
    "sid",
    "jsessionid",
    "phpsessid",
    "asp.net_sessionid",
    "auth",
    "token",
    "jwt",
    "access_token",
)

_HTTP_URL = re.compile(r"http://[^\s\"']+")


class Cookie(BaseModel):
    """Name and security attributes of a Set-Cookie value."""

    name: str
    secure: bool = False
    http_only: bool = False
    same_site: str | None = None

    @classmethod
    def parse(cls, header: str) -> "Cookie":
        """Parse a single Set-Cookie header value."""
        name, *attributes = (part.strip() for part in header.split(";"))
        flags = {attr.split("=", 1)[0].lower(): attr for attr in attributes}
        same_site = flags.get("samesite", "")
        return cls(
            name=name.split("=", 1)[0],
            secure="secure" in flags,
            http_only="httponly" in flags,
            same_site=same_site.partition("=")[2] or None,
        )

    @property
    def is_session(self) -> bool:
        """Whether the name suggests a session or auth cookie."""
        lowered = self.name.lower()
        return any(name in lowered for name in SESSION_COOKIE_NAMES)


class SslTlsSettings(BaseModel):
    """Settings of the SSL/TLS check."""

    require_https: bool = True
    require_secure_cookies: bool = True
    allow_localhost: bool = True


class SslTlsCheck:
    """Reports plain HTTP, insecure cookies and mixed content.

    The negotiated TLS version is not visible at this level and is not checked.
    """

    def __init__(self, settings: Mapping[str, object] | None = None) -> None:
        """Initialize check from its settings."""
        self.settings = SslTlsSettings.model_validate(settings or {})

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[CheckFinding]:
        """Inspect the transport and cookies of the exchange."""
        url = endpoint or request.url
        findings: list[CheckFinding] = []

        if self.settings.require_https:
            findings.extend(self._check_protocol(url))
        if self.settings.require_secure_cookies:
            findings.extend(self._check_cookies(response, url))
        findings.extend(self._check_mixed_content(url, response.body))
        return findings

    def _check_protocol(self, url: str) -> list[CheckFinding]:
        if not url.startswith("http://"):
            return []
        if self.settings.allow_localhost and any(host in url for host in LOCAL_HOSTS):
            return []
        return [
            CheckFinding(
                type="http-usage",
                severity="critical",
                title="Unencrypted HTTP Connection",
                description="API endpoint uses HTTP instead of HTTPS",
                location="request.url",
                evidence=f"URL: {url}",
                cwe="CWE-319: Cleartext Transmission of Sensitive Information",
                remediation=(
                    "Use HTTPS for all API endpoints to encrypt data in transit. HTTP "
                    "transmits data in plaintext, exposing it to interception."
                ),
            )
        ]

    @staticmethod
    def _check_cookies(response: CapturedResponse, url: str) -> list[CheckFinding]:
        is_https = url.startswith("https://")
        findings: list[CheckFinding] = []

        for cookie in map(Cookie.parse, response.cookies()):
            if is_https and not cookie.secure:
                findings.append(
                    CheckFinding(
                        type="insecure-cookies",
                        severity="high",
                        title="Cookie Missing Secure Flag",
                        description="Cookie set without Secure flag on HTTPS endpoint",
                        location="response.headers.Set-Cookie",
                        evidence=f"Cookie: {cookie.name}",
                        cwe="CWE-614: Sensitive Cookie Without Secure Attribute",
                        remediation=(
                            "Add Secure flag to cookies: Set-Cookie: name=value; Secure. "
                            "This prevents cookies from being sent over HTTP."
                        ),
                    )
                )
            if cookie.is_session and not cookie.http_only:
                findings.append(
                    CheckFinding(
                        type="insecure-cookies",
                        severity="high",
                        title="Cookie Missing HttpOnly Flag",
                        description="Session cookie set without HttpOnly flag",
                        location="response.headers.Set-Cookie",
                        evidence=f"Cookie: {cookie.name}",
                        cwe="CWE-1004: Sensitive Cookie Without HttpOnly Flag",
                        remediation=(
                            "Add HttpOnly flag to session cookies: Set-Cookie: "
                            "name=value; HttpOnly. This prevents JavaScript access "
                            "to cookies."
                        ),
                    )
                )
            if not cookie.same_site:
                findings.append(
                    CheckFinding(
                        type="insecure-cookies",
                        severity="medium",
                        title="Cookie Missing SameSite Flag",
                        description="Cookie set without SameSite attribute",
                        location="response.headers.Set-Cookie",
                        evidence=f"Cookie: {cookie.name}",
                        cwe="CWE-352: Cross-Site Request Forgery (CSRF)",
                        remediation=(
                            "Add SameSite flag to cookies: Set-Cookie: name=value; "
                            "SameSite=Strict or Lax. This prevents CSRF attacks."
                        ),
                    )
                )
        return findings

    @staticmethod
    def _check_mixed_content(url: str, body: object) -> list[CheckFinding]:
        if not url.startswith("https://") or not isinstance(body, (dict, list)):
            return []
        external = [
            match
            for match in _HTTP_URL.findall(json.dumps(body))
            if not any(host in match for host in LOCAL_HOSTS)
        ]
        if not external:
            return []
        return [
            CheckFinding(
                type="mixed-content",
                severity="medium",
                title="Mixed Content Detected",
                description="HTTPS response contains HTTP URLs",
                location="response.body",
                evidence=f"Found {len(external)} HTTP URLs in response",
                cwe="CWE-311: Missing Encryption of Sensitive Data",
                remediation=(
                    "Use HTTPS URLs for all resources. Mixed content (HTTP on HTTPS "
                    "page) is blocked by modern browsers."
                ),
            )
        ]
