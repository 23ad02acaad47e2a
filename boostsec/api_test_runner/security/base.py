"""Contract implemented by security checks."""

from collections.abc import Callable, Mapping
from typing import Protocol

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import CheckFinding, InspectionContext


class SecurityCheck(Protocol):
    """A check that inspects one exchange for security issues."""

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[CheckFinding]:
        """Evaluate an exchange and return the findings."""
        ...


CheckFactory = Callable[[Mapping[str, object]], SecurityCheck]
