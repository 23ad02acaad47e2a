"""Reporter logging a human-readable run summary."""

import logging

from boostsec.api_test_runner.collector import ResultCollector
from boostsec.api_test_runner.reporters.base import Reporter

logger = logging.getLogger(__name__)

STATUS_MARKS = {"passed": "✓", "failed": "✗", "skipped": "-", "todo": "○"}


class ConsoleReporter(Reporter):
    """Logs suites, failures and inspection summaries."""

    def __init__(self, show_slowest: int = 5) -> None:
        """Initialize reporter."""
        self.show_slowest = show_slowest

    async def report(self, collector: ResultCollector) -> None:
        """Log the results of a run."""
        results = collector.get_results()
        summary = results.summary

        logger.info("=" * 80)
        logger.info("API Test Results:")
        logger.info("=" * 80)

        for suite in results.suites:
            logger.info(f"{suite.name} ({suite.duration:.2f}s)")
            for test in suite.tests:
                mark = STATUS_MARKS[test.status]
                msg = f"  {mark} {test.name}: {test.status} ({test.duration:.2f}s)"
                if test.retries:
                    msg += f" after {test.retries} retries"
                if test.status == "failed":
                    logger.error(msg)
                    if test.error:
                        logger.error(f"    {test.error.message}")
                else:
                    logger.info(msg)
            if suite.error:
                logger.error(f"  Suite error: {suite.error.message}")

        governance = results.governance
        if governance.violations or governance.warnings:
            logger.info(
                f"Governance: {len(governance.violations)} errors, "
                f"{len(governance.warnings)} warnings"
            )
            for violation in governance.violations:
                logger.warning(
                    f"  [{violation.rule}] {violation.method} {violation.endpoint}: "
                    f"{violation.message}"
                )

        findings = results.security.findings
        if findings:
            logger.info(f"Security: {len(findings)} findings")
            for finding in findings:
                if finding.severity in {"critical", "high"}:
                    logger.warning(
                        f"  [{finding.severity}] {finding.title} at {finding.endpoint}"
                    )

        if self.show_slowest and summary.total:
            slowest = collector.get_slowest_tests(self.show_slowest)
            logger.info("Slowest tests:")
            for record in slowest:
                logger.info(f"  {record.suite} > {record.name} ({record.duration:.2f}s)")

        logger.info("=" * 80)
        logger.info(
            f"Total: {summary.total}, passed: {summary.passed}, "
            f"failed: {summary.failed}, skipped: {summary.skipped}, "
            f"todo: {summary.todo} ({summary.duration:.2f}s)"
        )
        if collector.has_failures():
            logger.error(f"Tests failed: {summary.failed}/{summary.total}")
