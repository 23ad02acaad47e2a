"""Tests for CLI entry point."""

import json
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from boostsec.api_test_runner.cli import app, check_thresholds
from boostsec.api_test_runner.collector import ResultCollector
from boostsec.api_test_runner.dsl import default_registry
from boostsec.api_test_runner.exceptions import IdentityError, PersistenceError
from boostsec.api_test_runner.models.config import ThresholdsConfig
from boostsec.api_test_runner.models.inspection import (
    GovernanceViolation,
    SecurityFinding,
)
from boostsec.api_test_runner.models.test_result import (
    RunResults,
    RunSummary,
    SuiteRunResult,
    TestRunResult,
)

runner = CliRunner()

PASSING_MODULE = """
from boostsec.api_test_runner.dsl import describe, test

with describe("Smoke"):

    @test("passes")
    def passes(ctx):
        assert True
"""

FAILING_MODULE = """
from boostsec.api_test_runner.dsl import describe, test

with describe("Smoke"):

    @test("fails")
    def fails(ctx):
        assert False, "broken"
"""

HOOK_FAILURE_MODULE = """
from boostsec.api_test_runner.dsl import after_all, describe, test

with describe("Smoke"):

    @after_all
    def teardown(ctx):
        raise RuntimeError("teardown failed")

    @test("passes")
    def passes(ctx):
        pass
"""


@pytest.fixture(autouse=True)
def _clean(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate the default registry and environment."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("API_BASE_URL", raising=False)
    default_registry.clear()
    yield
    default_registry.clear()


def write_tests(root: Path, content: str) -> Path:
    """Write a test module under root/api."""
    api_dir = root / "api"
    api_dir.mkdir(exist_ok=True)
    module = api_dir / "smoke.py"
    module.write_text(content)
    return module


def run_args(root: Path, *args: str) -> list[str]:
    """Build run command arguments against root."""
    return [
        "run",
        "--config",
        str(root / "api-test.yaml"),
        "--root",
        str(root),
        "--pattern",
        "api/*.py",
        *args,
    ]


def test_run_passing_tests(tmp_path: Path) -> None:
    """run exits successfully when every test passes."""
    write_tests(tmp_path, PASSING_MODULE)

    result = runner.invoke(app, run_args(tmp_path))

    assert result.exit_code == 0


def test_run_failing_tests(tmp_path: Path) -> None:
    """run exits with error code when a test fails."""
    write_tests(tmp_path, FAILING_MODULE)

    result = runner.invoke(app, run_args(tmp_path))

    assert result.exit_code == 1


def test_run_suite_hook_failure(tmp_path: Path) -> None:
    """run exits with error code when a suite hook fails."""
    write_tests(tmp_path, HOOK_FAILURE_MODULE)

    result = runner.invoke(app, run_args(tmp_path))

    assert result.exit_code == 1


def test_run_writes_json_report(tmp_path: Path) -> None:
    """--json-output writes the collected results."""
    write_tests(tmp_path, PASSING_MODULE)
    output = tmp_path / "out" / "results.json"

    result = runner.invoke(app, run_args(tmp_path, "--json-output", str(output)))

    assert result.exit_code == 0
    data = json.loads(output.read_text())
    assert data["summary"]["passed"] == 1
    assert data["suites"][0]["name"] == "Smoke"


def test_run_no_test_files(tmp_path: Path) -> None:
    """run reports when no test module matches."""
    result = runner.invoke(app, run_args(tmp_path))

    assert result.exit_code == 0
    assert "No test files found" in result.stdout


def test_run_invalid_config(tmp_path: Path) -> None:
    """run exits with error code for an invalid configuration."""
    (tmp_path / "api-test.yaml").write_text("retries: many\n")

    result = runner.invoke(app, run_args(tmp_path))

    assert result.exit_code == 1


def test_run_broken_test_module(tmp_path: Path) -> None:
    """run exits with error code when a test module fails to import."""
    write_tests(tmp_path, "import does_not_exist\n")

    result = runner.invoke(app, run_args(tmp_path))

    assert result.exit_code == 1


def test_run_threshold_breach(tmp_path: Path) -> None:
    """run exits with error code when a threshold is breached."""
    write_tests(tmp_path, PASSING_MODULE)
    (tmp_path / "api-test.yaml").write_text("thresholds:\n  pass_rate: 100\n")
    with patch(
        "boostsec.api_test_runner.cli.check_thresholds",
        return_value=["Test pass rate below threshold"],
    ):
        result = runner.invoke(app, run_args(tmp_path))

    assert result.exit_code == 1


def test_run_persists_to_database(tmp_path: Path) -> None:
    """The database reporter stores the run when enabled."""
    write_tests(tmp_path, PASSING_MODULE)
    db_path = tmp_path / "results.db"
    (tmp_path / "api-test.yaml").write_text(
        f"database:\n  enabled: true\n  url: sqlite+aiosqlite:///{db_path}\n"
    )

    result = runner.invoke(app, run_args(tmp_path))

    assert result.exit_code == 0
    assert db_path.exists()


def test_run_persistence_error(tmp_path: Path) -> None:
    """run exits with error code when results cannot be persisted."""
    write_tests(tmp_path, PASSING_MODULE)
    (tmp_path / "api-test.yaml").write_text("database:\n  enabled: true\n")

    with patch(
        "boostsec.api_test_runner.cli.DatabaseReporter.report",
        side_effect=PersistenceError("database unavailable"),
    ):
        result = runner.invoke(app, run_args(tmp_path))

    assert result.exit_code == 1


def test_run_unidentifiable_test(tmp_path: Path) -> None:
    """run exits with error code when a test has no usable slug."""
    write_tests(
        tmp_path,
        PASSING_MODULE.replace('@test("passes")', '@test("!!!")'),
    )
    db_path = tmp_path / "results.db"
    (tmp_path / "api-test.yaml").write_text(
        f"database:\n  enabled: true\n  url: sqlite+aiosqlite:///{db_path}\n"
    )

    result = runner.invoke(app, run_args(tmp_path))

    assert result.exit_code == 1
    assert not isinstance(result.exception, IdentityError)


def test_deleted_lists_nothing_on_fresh_database(tmp_path: Path) -> None:
    """deleted reports when no test has been deleted."""
    config = tmp_path / "api-test.yaml"
    config.write_text(f"database:\n  url: sqlite+aiosqlite:///{tmp_path / 'r.db'}\n")

    result = runner.invoke(app, ["deleted", "--config", str(config)])

    assert result.exit_code == 0
    assert "No deleted tests" in result.stdout


def make_collector(passed: int, failed: int) -> ResultCollector:
    """Create a collector with the given outcome counts."""
    suite = SuiteRunResult(name="Suite")
    for index in range(passed):
        suite.record(TestRunResult(name=f"p{index}", slug=f"p{index}", status="passed"))
    for index in range(failed):
        suite.record(TestRunResult(name=f"f{index}", slug=f"f{index}", status="failed"))
    summary = RunSummary()
    summary.absorb(suite)
    return ResultCollector().add_results(RunResults(suites=[suite], summary=summary))


def test_check_thresholds_within_limits() -> None:
    """No breach is reported when every limit holds."""
    collector = make_collector(passed=9, failed=1)
    collector.add_governance_violation(GovernanceViolation(rule="r", severity="error"))

    thresholds = ThresholdsConfig(governance_errors=1, pass_rate=90)

    assert check_thresholds(collector, thresholds) == []


def test_check_thresholds_breaches() -> None:
    """Every breached limit is reported."""
    collector = make_collector(passed=1, failed=1)
    collector.add_governance_violation(GovernanceViolation(rule="r", severity="error"))
    collector.add_governance_violation(GovernanceViolation(rule="r", severity="warning"))
    collector.add_security_finding(SecurityFinding(check="c", severity="critical"))
    collector.add_security_finding(SecurityFinding(check="c", severity="high"))

    thresholds = ThresholdsConfig(
        governance_errors=0,
        governance_warnings=0,
        critical_findings=0,
        high_findings=0,
        pass_rate=75,
    )

    breaches = check_thresholds(collector, thresholds)

    assert len(breaches) == 5
    assert breaches[0].startswith("Governance error threshold exceeded: 1 errors")
    assert breaches[2].startswith("Critical security findings threshold exceeded")
    assert breaches[4] == "Test pass rate below threshold: 50.0% (threshold: 75.0%)"


def test_check_thresholds_unset() -> None:
    """Unset thresholds never breach."""
    collector = make_collector(passed=0, failed=3)

    assert check_thresholds(collector, ThresholdsConfig()) == []
