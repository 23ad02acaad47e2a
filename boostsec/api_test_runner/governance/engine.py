"""Governance engine coordinating all configured rules."""

import logging

from boostsec.api_test_runner.governance.base import GovernanceRule, RuleFactory
from boostsec.api_test_runner.governance.rules.http_methods import HttpMethodsRule
from boostsec.api_test_runner.governance.rules.naming_conventions import (
    NamingConventionsRule,
)
from boostsec.api_test_runner.governance.rules.pagination import PaginationRule
from boostsec.api_test_runner.governance.rules.rest_standards import RestStandardsRule
from boostsec.api_test_runner.governance.rules.versioning import VersioningRule
from boostsec.api_test_runner.models.config import GovernanceConfig
from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import (
    GovernanceViolation,
    InspectionContext,
)

logger = logging.getLogger(__name__)

RULE_FACTORIES: dict[str, RuleFactory] = {
    "versioning": VersioningRule,
    "http-methods": HttpMethodsRule,
    "rest-standards": RestStandardsRule,
    "naming-conventions": NamingConventionsRule,
    "pagination": PaginationRule,
}


class GovernanceEngine:
    """Evaluates captured exchanges against governance rules.

    Disabled unless the configuration sets ``enabled: true``.
    """

    def __init__(self, config: GovernanceConfig | None = None) -> None:
        """Initialize engine and load the configured rules."""
        self.config = config or GovernanceConfig()
        self.enabled = self.config.enabled is True
        self.rules: dict[str, GovernanceRule] = {}

        if self.enabled:
            self._load_rules()

    def _load_rules(self) -> None:
        for name, settings in self.config.rules.items():
            if settings.get("enabled") is False:
                continue
            factory = RULE_FACTORIES.get(name)
            if factory is None:
                logger.warning(f"Unknown governance rule '{name}' ignored")
                continue
            self.rules[name] = factory(settings)
        logger.debug(f"Loaded governance rules: {', '.join(self.rules) or 'none'}")

    def add_rule(self, name: str, rule: GovernanceRule) -> None:
        """Register a rule instance under a name."""
        self.rules[name] = rule

    @property
    def rule_names(self) -> list[str]:
        """Names of the loaded rules."""
        return list(self.rules)

    async def check(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        endpoint: str | None = None,
        context: InspectionContext | None = None,
    ) -> list[GovernanceViolation]:
        """Run every rule against an exchange.

        A rule that raises is logged and skipped; the other rules still run.
        """
        if not self.enabled or not self.rules:
            return []

        context = context or InspectionContext()
        target = endpoint or request.url
        violations: list[GovernanceViolation] = []

        for name, rule in self.rules.items():
            try:
                raw_violations = await rule.evaluate(request, response, target, context)
                normalized = [
                    GovernanceViolation(
                        rule=name,
                        category=raw.category or "unknown",
                        severity=raw.severity or rule.severity or "warning",
                        message=raw.message or "Governance violation detected",
                        location=raw.location or "response",
                        remediation=raw.remediation or "Review and fix the violation",
                        endpoint=target,
                        method=request.method.upper(),
                        suite=context.suite,
                        test=context.test,
                    )
                    for raw in raw_violations
                ]
            except Exception as e:
                logger.warning(f"Governance rule '{name}' failed: {e}")
                continue
            violations.extend(normalized)

        return violations
