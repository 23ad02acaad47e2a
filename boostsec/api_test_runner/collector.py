"""Aggregates run results, violations and findings for reporting."""

import os
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from boostsec.api_test_runner.models.inspection import (
    GovernanceViolation,
    SecurityFinding,
)
from boostsec.api_test_runner.models.test_result import (
    RunResults,
    RunSummary,
    SuiteRunResult,
    TestStatus,
)


class GovernanceReport(BaseModel):
    """Governance violations split by severity."""

    violations: list[GovernanceViolation] = Field(default_factory=list)
    warnings: list[GovernanceViolation] = Field(default_factory=list)


class SecurityReport(BaseModel):
    """Security findings of a run."""

    findings: list[SecurityFinding] = Field(default_factory=list)


class RunMetadata(BaseModel):
    """Descriptive metadata attached to a report."""

    framework: str = "api-test-runner"
    version: str = "0.1.0"
    environment: str = Field(
        default_factory=lambda: os.environ.get("API_TEST_ENV", "development")
    )
    suite_name: str | None = None


class CollectedResults(BaseModel):
    """The reportable artifact of a run."""

    suites: list[SuiteRunResult] = Field(default_factory=list)
    summary: RunSummary = Field(default_factory=RunSummary)
    governance: GovernanceReport = Field(default_factory=GovernanceReport)
    security: SecurityReport = Field(default_factory=SecurityReport)
    metadata: RunMetadata = Field(default_factory=RunMetadata)


class TestRecord(BaseModel):
    """A test result flattened with its suite name."""

    __test__ = False

    suite: str
    name: str
    slug: str
    status: TestStatus
    duration: float = 0.0
    description: str | None = None
    file: str | None = None
    endpoint: str | None = None
    method: str | None = None
    status_code: int | None = None
    response_time: float | None = None
    error: str | None = None
    error_type: str | None = None
    stack: str | None = None
    tags: list[str] = Field(default_factory=list)


class ResultCollector:
    """Collects everything reporters need from one run."""

    def __init__(self) -> None:
        """Initialize an empty collector."""
        self.results = CollectedResults()

    def start(self) -> "ResultCollector":
        """Begin a new run, discarding results of any previous one.

        Metadata is kept.
        """
        self.results = CollectedResults(metadata=self.results.metadata)
        self.results.summary.started_at = datetime.now(UTC)
        return self

    def end(self) -> "ResultCollector":
        """Mark the end of the run and compute its duration."""
        summary = self.results.summary
        summary.finished_at = datetime.now(UTC)
        if summary.started_at is not None:
            summary.duration = (summary.finished_at - summary.started_at).total_seconds()
        return self

    def add_results(self, run_results: RunResults) -> "ResultCollector":
        """Store the suite tree and summary, keeping this collector's start time."""
        started_at = self.results.summary.started_at
        self.results.suites = list(run_results.suites)
        self.results.summary = run_results.summary.model_copy(
            update={
                "started_at": started_at or run_results.summary.started_at,
                "finished_at": datetime.now(UTC),
            }
        )
        return self

    def add_governance_violation(self, violation: GovernanceViolation) -> "ResultCollector":
        """File a violation under errors or warnings by severity."""
        if violation.severity == "error":
            self.results.governance.violations.append(violation)
        else:
            self.results.governance.warnings.append(violation)
        return self

    def add_security_finding(self, finding: SecurityFinding) -> "ResultCollector":
        """Record a security finding."""
        self.results.security.findings.append(finding)
        return self

    def set_metadata(self, **metadata: object) -> "ResultCollector":
        """Override metadata fields."""
        self.results.metadata = self.results.metadata.model_copy(update=metadata)
        return self

    def reset(self) -> "ResultCollector":
        """Discard everything collected so far."""
        self.results = CollectedResults()
        return self

    def get_results(self) -> CollectedResults:
        """Return the full report artifact."""
        return self.results

    def get_summary(self) -> RunSummary:
        """Return the run summary."""
        return self.results.summary

    def get_all_results(self) -> list[TestRecord]:
        """Flatten the suite tree into one record per test."""
        return [
            TestRecord(
                suite=suite.name,
                name=test.name,
                slug=test.slug,
                status=test.status,
                duration=test.duration,
                description=test.description,
                file=test.file,
                endpoint=test.endpoint,
                method=test.method,
                status_code=test.status_code,
                response_time=test.response_time,
                error=test.error.message if test.error else None,
                error_type=test.error.type if test.error else None,
                stack=test.error.stack if test.error else None,
                tags=list(test.tags),
            )
            for suite in self.results.suites
            for test in suite.tests
        ]

    def get_failed_tests(self) -> list[TestRecord]:
        """Records of failed tests."""
        return [r for r in self.get_all_results() if r.status == "failed"]

    def get_unimplemented_tests(self) -> list[TestRecord]:
        """Records of todo tests."""
        return [r for r in self.get_all_results() if r.status == "todo"]

    def get_tests_by_tag(self, tag: str) -> list[TestRecord]:
        """Records of tests carrying a tag."""
        return [r for r in self.get_all_results() if tag in r.tags]

    def get_slowest_tests(self, limit: int = 10) -> list[TestRecord]:
        """Records of the slowest tests, slowest first."""
        records = sorted(self.get_all_results(), key=lambda r: r.duration, reverse=True)
        return records[:limit]

    def has_failures(self) -> bool:
        """Whether any test failed."""
        return self.results.summary.failed > 0

    def has_suite_errors(self) -> bool:
        """Whether any suite-level hook failed."""
        return any(suite.error is not None for suite in self.results.suites)

    def has_all_passed(self) -> bool:
        """Whether tests ran and none failed."""
        summary = self.results.summary
        return summary.failed == 0 and summary.total > 0

    def get_success_rate(self) -> float:
        """Percentage of passed tests."""
        summary = self.results.summary
        if summary.total == 0:
            return 0.0
        return summary.passed / summary.total * 100
