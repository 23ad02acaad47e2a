"""Data models for test definitions, exchanges, results and configuration."""

from boostsec.api_test_runner.models.config import (
    DatabaseConfig,
    GovernanceConfig,
    HttpConfig,
    RunnerConfig,
    SecurityConfig,
    ThresholdsConfig,
)
from boostsec.api_test_runner.models.exchange import (
    CapturedRequest,
    CapturedResponse,
    Exchange,
)
from boostsec.api_test_runner.models.inspection import (
    CheckFinding,
    GovernanceViolation,
    InspectionContext,
    RuleViolation,
    SecurityFinding,
)
from boostsec.api_test_runner.models.test_definition import (
    SuiteHooks,
    TestDefinition,
    TestSuiteDefinition,
)
from boostsec.api_test_runner.models.test_result import (
    RunResults,
    RunSummary,
    SuiteRunResult,
    TestError,
    TestRunResult,
)

__all__ = [
    "CapturedRequest",
    "CapturedResponse",
    "CheckFinding",
    "DatabaseConfig",
    "Exchange",
    "GovernanceConfig",
    "GovernanceViolation",
    "HttpConfig",
    "InspectionContext",
    "RuleViolation",
    "RunResults",
    "RunSummary",
    "RunnerConfig",
    "SecurityConfig",
    "SecurityFinding",
    "SuiteHooks",
    "SuiteRunResult",
    "TestDefinition",
    "TestError",
    "TestRunResult",
    "TestSuiteDefinition",
    "ThresholdsConfig",
]
