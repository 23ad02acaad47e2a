"""CLI entry point for the API test runner."""

import asyncio
import logging
import sys
from pathlib import Path

import typer

from boostsec.api_test_runner.collector import ResultCollector
from boostsec.api_test_runner.config_loader import load_config
from boostsec.api_test_runner.dsl import default_registry
from boostsec.api_test_runner.exceptions import IdentityError, PersistenceError
from boostsec.api_test_runner.models.config import RunnerConfig, ThresholdsConfig
from boostsec.api_test_runner.persistence.database import Database
from boostsec.api_test_runner.persistence.repository import TestRepository
from boostsec.api_test_runner.reporters.base import Reporter
from boostsec.api_test_runner.reporters.console import ConsoleReporter
from boostsec.api_test_runner.reporters.database import DatabaseReporter
from boostsec.api_test_runner.reporters.json_reporter import JsonReporter
from boostsec.api_test_runner.runner import TestRunner
from boostsec.api_test_runner.test_loader import load_test_files

# Configure logging - force reconfiguration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
    force=True,
)
logger = logging.getLogger(__name__)

app = typer.Typer()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """API test runner with governance and security inspection."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def check_thresholds(
    collector: ResultCollector, thresholds: ThresholdsConfig
) -> list[str]:
    """Return a message for every breached threshold."""
    results = collector.get_results()
    breaches: list[str] = []

    errors = len(results.governance.violations)
    if thresholds.governance_errors is not None and errors > thresholds.governance_errors:
        breaches.append(
            f"Governance error threshold exceeded: {errors} errors "
            f"(threshold: {thresholds.governance_errors})"
        )

    warnings = len(results.governance.warnings)
    if (
        thresholds.governance_warnings is not None
        and warnings > thresholds.governance_warnings
    ):
        breaches.append(
            f"Governance warning threshold exceeded: {warnings} warnings "
            f"(threshold: {thresholds.governance_warnings})"
        )

    findings = results.security.findings
    for severity, limit in (
        ("critical", thresholds.critical_findings),
        ("high", thresholds.high_findings),
    ):
        count = sum(1 for f in findings if f.severity == severity)
        if limit is not None and count > limit:
            breaches.append(
                f"{severity.capitalize()} security findings threshold exceeded: "
                f"{count} findings (threshold: {limit})"
            )

    if thresholds.pass_rate is not None:
        pass_rate = collector.get_success_rate()
        if pass_rate < thresholds.pass_rate:
            breaches.append(
                f"Test pass rate below threshold: {pass_rate:.1f}% "
                f"(threshold: {thresholds.pass_rate}%)"
            )

    return breaches


def _create_reporters(config: RunnerConfig) -> list[Reporter]:
    reporters: list[Reporter] = []
    if "console" in config.reporters:
        reporters.append(ConsoleReporter())
    if "json" in config.reporters:
        reporters.append(JsonReporter(config.json_output))
    if "database" in config.reporters or config.database.enabled:
        reporters.append(DatabaseReporter(config.database))
    return reporters


async def _execute(config: RunnerConfig) -> ResultCollector:
    runner = TestRunner(config, default_registry)
    await runner.run()
    runner.collector.set_metadata(environment=config.environment)
    for reporter in _create_reporters(config):
        await reporter.report(runner.collector)
    return runner.collector


@app.command()
def run(  # noqa: C901, PLR0913
    config_path: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help="Path to YAML configuration"
    ),
    patterns: list[str] | None = typer.Option(  # noqa: B008
        None, "--pattern", "-p", help="Glob pattern of test modules (repeatable)"
    ),
    root: Path = typer.Option(  # noqa: B008
        Path("."), help="Directory the patterns are relative to"
    ),
    timeout: float | None = typer.Option(None, help="Default test timeout in seconds"),
    retries: int | None = typer.Option(None, help="Default retries per test"),
    bail: bool = typer.Option(False, "--bail", help="Stop after the first failure"),
    json_output: Path | None = typer.Option(  # noqa: B008
        None, help="Write a JSON report to this path"
    ),
) -> None:
    """Run API tests."""
    try:
        config = load_config(config_path)
    except ValueError as e:
        logger.error(f"Failed to load configuration: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if patterns:
        config.test_match = patterns
    if timeout is not None:
        config.timeout = timeout
    if retries is not None:
        config.retries = retries
    if bail:
        config.bail = True
    if json_output is not None:
        config.json_output = json_output
        if "json" not in config.reporters:
            config.reporters.append("json")

    default_registry.clear()
    try:
        files = load_test_files(config.test_match, root, default_registry)
    except ValueError as e:
        logger.error(f"Failed to load tests: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if not files:
        typer.echo("No test files found")
        return

    try:
        collector = asyncio.run(_execute(config))
    except IdentityError as e:
        logger.error(f"Failed to identify test: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    except PersistenceError as e:
        logger.error(f"Failed to persist results: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    failed = False
    if collector.has_failures():
        summary = collector.get_summary()
        logger.error(f"Tests failed: {summary.failed}/{summary.total}")
        failed = True
    if collector.has_suite_errors():
        logger.error("One or more suites failed in beforeAll/afterAll hooks")
        failed = True
    for breach in check_thresholds(collector, config.thresholds):
        logger.error(breach)
        failed = True

    if failed:
        raise typer.Exit(code=1)


@app.command()
def deleted(
    config_path: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help="Path to YAML configuration"
    ),
    limit: int = typer.Option(10, help="Maximum number of tests to list"),
) -> None:
    """List the most recently deleted tests."""
    try:
        config = load_config(config_path)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    async def fetch() -> list[str]:
        database = Database(config.database.url, echo=config.database.echo)
        try:
            await database.init_schema()
            tests = await TestRepository(database).get_deleted_tests(limit)
        finally:
            await database.close()
        return [
            f"{t.deleted_at:%Y-%m-%d %H:%M:%S}  {t.suite_name} > {t.current_name} "
            f"({t.test_slug})"
            for t in tests
        ]

    try:
        lines = asyncio.run(fetch())
    except PersistenceError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if not lines:
        typer.echo("No deleted tests")
        return
    for line in lines:
        typer.echo(line)


if __name__ == "__main__":  # pragma: no cover
    app()
