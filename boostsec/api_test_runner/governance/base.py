"""Contract implemented by governance rules."""

from collections.abc import Callable, Mapping
from typing import Protocol

from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import (
    GovernanceSeverity,
    InspectionContext,
    RuleViolation,
)


class GovernanceRule(Protocol):
    """A rule that inspects one exchange for API design issues."""

    severity: GovernanceSeverity

    async def evaluate(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str,
        context: InspectionContext,
    ) -> list[RuleViolation]:
        """Evaluate an exchange.

        Args:
            request: Captured request
            response: Captured response
            endpoint: Endpoint hint of the test, or the request URL
            context: Suite and test that produced the exchange

        Returns:
            Violations found; empty when the exchange complies

        """
        ...


RuleFactory = Callable[[Mapping[str, object]], GovernanceRule]
