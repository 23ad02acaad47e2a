"""Security check for authorization of sensitive and privileged resources."""

import base64
import json
import re
from collections.abc import Mapping

from pydantic import BaseModel, Field

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import CheckFinding, InspectionContext

ADMIN_PATHS = ("/admin", "/superuser", "/root", "/system")
ROLE_HEADERS = ("X-User-Role", "X-Role", "Role")
MODIFYING_METHODS = frozenset({"PUT", "PATCH", "DELETE"})
RESPONSE_ID_KEYS = ("id", "user_id", "userId")

_RESOURCE_ID = re.compile(
    r"/(\d+|[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12})(?=/|\?|$)",
    re.IGNORECASE,
)
_USER_ID = re.compile(r"/users?/(\d+|[a-f0-9-]+)", re.IGNORECASE)


def extract_resource_ids(url: str) -> list[str]:
    """Numeric ids and UUIDs that appear as URL path segments."""
    return _RESOURCE_ID.findall(url)


def user_id_from_token(authorization: str | None) -> str | None:
    """Subject of an unverified bearer JWT, if it can be read."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    segments = parts[1].split(".")
    if len(segments) < 2 or not segments[1]:
        return None

    payload = segments[1] + "=" * (-len(segments[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except ValueError:
        return None
    if not isinstance(claims, dict):
        return None
    subject = claims.get("sub") or claims.get("user_id") or claims.get("userId")
    return str(subject) if subject else None


class AuthorizationSettings(BaseModel):
    """Settings of the authorization check."""

    check_idor: bool = True
    require_role_header: bool = False
    flag_privilege_escalation: bool = True
    sensitive_resources: list[str] = Field(
        default_factory=lambda: ["admin", "users", "accounts", "settings"]
    )


class AuthorizationCheck:
    """Reports IDOR risks, missing authorization and privilege escalation."""

    def __init__(self, settings: Mapping[str, object] | None = None) -> None:
        """Initialize check from its settings."""
        self.settings = AuthorizationSettings.model_validate(settings or {})

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[CheckFinding]:
        """Inspect access to the requested resource."""
        url = endpoint or request.url
        method = request.method.upper()
        authorized = bool(request.header("Authorization") or request.header("X-API-Key"))
        sensitive = self._is_sensitive(url)
        findings: list[CheckFinding] = []

        if self.settings.check_idor:
            findings.extend(self._check_idor(url, authorized, sensitive, response))

        if sensitive and not authorized and method != "OPTIONS":
            findings.append(
                CheckFinding(
                    type="missing-authorization",
                    severity="high",
                    title="Missing Authorization",
                    description="Sensitive resource accessed without authorization header",
                    location="request.headers",
                    evidence=f"Accessing {url} without authorization",
                    cwe="CWE-862: Missing Authorization",
                    remediation=(
                        "Add authorization checks to verify user permissions before "
                        "allowing access to sensitive resources"
                    ),
                )
            )

        if self.settings.flag_privilege_escalation:
            findings.extend(self._check_privilege_escalation(url, request, method))

        if self.settings.require_role_header and not self._role(request):
            findings.append(
                CheckFinding(
                    type="missing-role-header",
                    severity="medium",
                    title="Missing Role Header",
                    description="Request missing role header for RBAC",
                    location="request.headers",
                    evidence="No X-User-Role header present",
                    remediation=(
                        "Include user role in request headers "
                        "(e.g., X-User-Role: user|admin)"
                    ),
                )
            )
        return findings

    def _check_idor(
        self, url: str, authorized: bool, sensitive: bool, response: CapturedResponse
    ) -> list[CheckFinding]:
        resource_ids = extract_resource_ids(url)
        if not resource_ids:
            return []

        findings: list[CheckFinding] = []
        listed = ", ".join(resource_ids)
        if sensitive and not authorized:
            findings.append(
                CheckFinding(
                    type="potential-idor",
                    severity="high",
                    title="Potential IDOR Vulnerability",
                    description=(
                        f"Resource ID in URL ({listed}) without proper authorization "
                        "checks"
                    ),
                    location="request.url",
                    evidence=f"URL: {url}, Resource IDs: {listed}",
                    cwe="CWE-639: Insecure Direct Object References",
                    remediation=(
                        "Implement authorization checks to verify user has permission "
                        "to access this specific resource. Validate resource ownership "
                        "before returning data."
                    ),
                )
            )

        body = response.body
        if response.status == 200 and isinstance(body, dict):
            response_ids = [str(body[key]) for key in RESPONSE_ID_KEYS if body.get(key)]
            if response_ids and not set(resource_ids) & set(response_ids):
                findings.append(
                    CheckFinding(
                        type="potential-idor",
                        severity="medium",
                        title="Resource ID Mismatch",
                        description=(
                            "Response contains different resource IDs than requested"
                        ),
                        location="response.body",
                        evidence=(
                            f"Request IDs: {listed}, "
                            f"Response IDs: {', '.join(response_ids)}"
                        ),
                        remediation=(
                            "Verify that authorization checks are properly implemented"
                        ),
                    )
                )
        return findings

    def _check_privilege_escalation(
        self, url: str, request: CapturedRequest, method: str
    ) -> list[CheckFinding]:
        findings: list[CheckFinding] = []

        lowered = url.lower()
        role = self._role(request)
        if any(path in lowered for path in ADMIN_PATHS) and (role or "").lower() != "admin":
            findings.append(
                CheckFinding(
                    type="privilege-escalation",
                    severity="critical",
                    title="Potential Privilege Escalation",
                    description="Accessing admin endpoint without proper role verification",
                    location="request.url",
                    evidence=f"Accessing {url} without admin role header",
                    cwe="CWE-269: Improper Privilege Management",
                    remediation=(
                        "Implement role-based access control (RBAC) and verify user "
                        "role before allowing access to privileged endpoints"
                    ),
                )
            )

        match = _USER_ID.search(url)
        token_user = user_id_from_token(request.header("Authorization"))
        if (
            match
            and token_user
            and match.group(1) != token_user
            and method in MODIFYING_METHODS
        ):
            findings.append(
                CheckFinding(
                    type="privilege-escalation",
                    severity="high",
                    title="Modifying Another User's Resource",
                    description=(
                        "Attempting to modify resource belonging to a different user"
                    ),
                    location="request.url",
                    evidence=(
                        f"Token user ID: {token_user}, "
                        f"Resource user ID: {match.group(1)}"
                    ),
                    cwe="CWE-639: Authorization Bypass Through User-Controlled Key",
                    remediation=(
                        "Verify user ownership of resource before allowing modifications"
                    ),
                )
            )
        return findings

    def _is_sensitive(self, url: str) -> bool:
        lowered = url.lower()
        return any(resource in lowered for resource in self.settings.sensitive_resources)

    @staticmethod
    def _role(request: CapturedRequest) -> str | None:
        return next((v for v in map(request.header, ROLE_HEADERS) if v), None)
