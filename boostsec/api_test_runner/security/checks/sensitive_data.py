"""Security check for sensitive data exposed in response bodies."""

import re
from collections.abc import Mapping

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import (
    CheckFinding,
    InspectionContext,
    SecuritySeverity,
)

PATTERNS: dict[str, tuple[re.Pattern[str], SecuritySeverity]] = {
    "password": (re.compile(r"password|passwd|pwd", re.IGNORECASE), "critical"),
    "api_key": (re.compile(r"api[_-]?key|apikey|secret", re.IGNORECASE), "critical"),
    "credit_card": (re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b"), "critical"),
    "ssn": (re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "critical"),
    "jwt": (re.compile(r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*"), "high"),
}


class SensitiveDataCheck:
    """Reports sensitive field names and values in response bodies."""

    def __init__(self, settings: Mapping[str, object] | None = None) -> None:
        """Initialize check; ``ignore`` lists pattern names to skip."""
        ignored = (settings or {}).get("ignore") or []
        self.patterns = {
            name: pattern
            for name, pattern in PATTERNS.items()
            if name not in ignored  # type: ignore[operator]
        }

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[CheckFinding]:
        """Walk the response body looking for sensitive keys and values."""
        if response.body is None:
            return []
        return self._scan(response.body, "response.body")

    def _scan(self, value: object, path: str) -> list[CheckFinding]:
        findings: list[CheckFinding] = []
        if isinstance(value, str):
            findings.extend(
                self._match(value, path, "Sensitive data pattern detected")
            )
        elif isinstance(value, list):
            for index, item in enumerate(value):
                findings.extend(self._scan(item, f"{path}[{index}]"))
        elif isinstance(value, dict):
            for key, item in value.items():
                item_path = f"{path}.{key}"
                findings.extend(
                    self._match(str(key), item_path, f"Sensitive field name: '{key}'")
                )
                findings.extend(self._scan(item, item_path))
        return findings

    def _match(self, text: str, path: str, description: str) -> list[CheckFinding]:
        return [
            CheckFinding(
                type=name,
                severity=severity,
                description=description,
                location=path,
                remediation="Mask or remove sensitive data from the response",
            )
            for name, (pattern, severity) in self.patterns.items()
            if pattern.search(text)
        ]
