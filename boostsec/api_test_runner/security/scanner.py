"""Security scanner coordinating all configured checks."""

import logging
import re

from boostsec.api_test_runner.models.config import SecurityConfig
from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import (
    CheckFinding,
    InspectionContext,
    SecurityFinding,
)
from boostsec.api_test_runner.security.base import CheckFactory, SecurityCheck
from boostsec.api_test_runner.security.checks.authentication import AuthenticationCheck
from boostsec.api_test_runner.security.checks.authorization import AuthorizationCheck
from boostsec.api_test_runner.security.checks.headers import HeadersCheck
from boostsec.api_test_runner.security.checks.rate_limiting import RateLimitingCheck
from boostsec.api_test_runner.security.checks.sensitive_data import SensitiveDataCheck
from boostsec.api_test_runner.security.checks.ssl_tls import SslTlsCheck

logger = logging.getLogger(__name__)

CHECK_FACTORIES: dict[str, CheckFactory] = {
    "headers": HeadersCheck,
    "sensitive-data": SensitiveDataCheck,
    "authentication": AuthenticationCheck,
    "authorization": AuthorizationCheck,
    "rate-limiting": RateLimitingCheck,
    "ssl-tls": SslTlsCheck,
}

CWE_BY_TYPE: dict[str, str] = {
    "password": "CWE-200: Exposure of Sensitive Information",
    "api_key": "CWE-200: Exposure of Sensitive Information",
    "jwt": "CWE-200: Exposure of Sensitive Information",
    "credit_card": "CWE-359: Exposure of Private Personal Information",
    "ssn": "CWE-359: Exposure of Private Personal Information",
    "missing-authentication": "CWE-306: Missing Authentication",
    "missing-authorization": "CWE-862: Missing Authorization",
    "http-usage": "CWE-319: Cleartext Transmission of Sensitive Information",
    "insecure-cookies": "CWE-614: Sensitive Cookie Without Secure Attribute",
    "missing-security-header": "CWE-693: Protection Mechanism Failure",
    "permissive-cors": "CWE-942: Permissive Cross-domain Policy",
}
DEFAULT_CWE = "CWE-1000: Research Concepts"


def generate_title(finding_type: str | None, check_name: str) -> str:
    """Build a readable title from a finding type."""
    if not finding_type:
        return f"{check_name} finding"
    return " ".join(word.capitalize() for word in re.split(r"[-_]", finding_type))


class SecurityScanner:
    """Evaluates captured exchanges against security checks.

    Disabled unless the configuration sets ``enabled: true``.
    """

    def __init__(self, config: SecurityConfig | None = None) -> None:
        """Initialize scanner and load the configured checks."""
        self.config = config or SecurityConfig()
        self.enabled = self.config.enabled is True
        self.checks: dict[str, SecurityCheck] = {}

        if self.enabled:
            self._load_checks()

    def _load_checks(self) -> None:
        for name, settings in self.config.checks.items():
            if settings.get("enabled") is False:
                continue
            factory = CHECK_FACTORIES.get(name)
            if factory is None:
                logger.warning(f"Unknown security check '{name}' ignored")
                continue
            self.checks[name] = factory(settings)
        logger.debug(f"Loaded security checks: {', '.join(self.checks) or 'none'}")

    def add_check(self, name: str, check: SecurityCheck) -> None:
        """Register a check instance under a name."""
        self.checks[name] = check

    @property
    def check_names(self) -> list[str]:
        """Names of the loaded checks."""
        return list(self.checks)

    async def scan(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str | None = None,
        context: InspectionContext | None = None,
    ) -> list[SecurityFinding]:
        """Run every check against an exchange.

        A check that raises is logged and skipped; the other checks still run.
        """
        if not self.enabled or not self.checks:
            return []

        context = context or InspectionContext()
        target = endpoint or request.url
        findings: list[SecurityFinding] = []

        for name, check in self.checks.items():
            try:
                raw_findings = await check.evaluate(request, response, target, context)
                normalized = [
                    self._normalize(name, raw, request, target, context)
                    for raw in raw_findings
                ]
            except Exception as e:
                logger.warning(f"Security check '{name}' failed: {e}")
                continue
            findings.extend(normalized)

        return findings

    @staticmethod
    def _normalize(
        name: str,
        raw: CheckFinding,
        request: CapturedRequest,
        target: str,
        context: InspectionContext,
    ) -> SecurityFinding:
        return SecurityFinding(
            check=name,
            category=raw.type,
            severity=raw.severity or "medium",
            title=raw.title or generate_title(raw.type, name),
            message=raw.description or "Security issue detected",
            location=raw.location or "response",
            evidence=raw.evidence,
            cwe=raw.cwe or CWE_BY_TYPE.get(raw.type or "", DEFAULT_CWE),
            remediation=raw.remediation or "Review and address the security finding",
            endpoint=target,
            method=request.method.upper(),
            suite=context.suite,
            test=context.test,
        )
