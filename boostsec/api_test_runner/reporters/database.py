"""Reporter persisting results with identity and deletion tracking."""

import logging
import os
import subprocess
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel

from boostsec.api_test_runner.collector import ResultCollector
from boostsec.api_test_runner.models.config import DatabaseConfig
from boostsec.api_test_runner.persistence.database import Database
from boostsec.api_test_runner.persistence.repository import (
    DeletedTest,
    ResultRecord,
    RunRecord,
    TestRepository,
)
from boostsec.api_test_runner.reporters.base import Reporter

logger = logging.getLogger(__name__)


class GitMetadata(BaseModel):
    """Git information of the checked-out tests."""

    branch: str | None = None
    commit_sha: str | None = None
    commit_message: str | None = None


def _git(args: list[str], cwd: Path | None) -> str:
    result = subprocess.run(
        ["git", *args],  # noqa: S607
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def get_git_metadata(cwd: Path | None = None) -> GitMetadata:
    """Read branch, commit SHA and commit message from git.

    Returns empty metadata outside a git repository.
    """
    try:
        return GitMetadata(
            branch=_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd),
            commit_sha=_git(["rev-parse", "HEAD"], cwd),
            commit_message=_git(["log", "-1", "--pretty=%B"], cwd),
        )
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        logger.debug(f"Git metadata unavailable: {e}")
        return GitMetadata()


def get_run_url() -> str | None:
    """Build the GitHub Actions run URL from the environment, if available."""
    server = os.environ.get("GITHUB_SERVER_URL")
    repository = os.environ.get("GITHUB_REPOSITORY")
    run_id = os.environ.get("GITHUB_RUN_ID")
    if server and repository and run_id:
        return f"{server}/{repository}/actions/runs/{run_id}"
    return None


def _ms(seconds: float | None) -> int | None:
    return None if seconds is None else round(seconds * 1000)


class DatabaseReporter(Reporter):
    """Stores the run, its results and newly deleted tests.

    Persistence errors propagate to the caller.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        database: Database | None = None,
        git_cwd: Path | None = None,
    ) -> None:
        """Initialize reporter; a database is created from config when not given."""
        self.config = config
        self.database = database
        self.git_cwd = git_cwd
        self.run_id: int | None = None
        self.deleted_tests: list[DeletedTest] = []

    async def report(self, collector: ResultCollector) -> None:
        """Persist a run.

        Raises:
            PersistenceError: If the database operation fails

        """
        owns_database = self.database is None
        database = self.database or Database(self.config.url, echo=self.config.echo)
        try:
            if self.config.create_schema:
                await database.init_schema()
            repository = TestRepository(database)
            self.run_id = await self._persist(repository, collector)
        finally:
            if owns_database:
                await database.close()

    async def _persist(
        self, repository: TestRepository, collector: ResultCollector
    ) -> int:
        results = collector.get_results()
        summary = results.summary
        git = get_git_metadata(self.git_cwd)
        now = datetime.now(UTC)

        run_id = await repository.create_test_run(
            RunRecord(
                environment=results.metadata.environment,
                branch=git.branch,
                commit_sha=git.commit_sha,
                commit_message=git.commit_message,
                status="failed" if collector.has_failures() else "passed",
                passed_tests=summary.passed,
                failed_tests=summary.failed,
                skipped_tests=summary.skipped,
                todo_tests=summary.todo,
                duration_ms=_ms(summary.duration) or 0,
                started_at=summary.started_at or now,
                completed_at=summary.finished_at or now,
                triggered_by=os.environ.get("GITHUB_ACTOR") or os.environ.get("USER"),
                run_url=get_run_url(),
            )
        )

        records = collector.get_all_results()
        for record in records:
            await repository.record_test_result(
                run_id,
                ResultRecord(
                    slug=record.slug,
                    name=record.name,
                    description=record.description,
                    suite_name=record.suite,
                    test_file=record.file,
                    endpoint=record.endpoint,
                    http_method=record.method,
                    status=record.status,
                    duration_ms=_ms(record.duration) or 0,
                    response_time_ms=_ms(record.response_time),
                    status_code=record.status_code,
                    error_message=record.error,
                    error_type=record.error_type,
                    stack_trace=record.stack,
                ),
            )

        executed_suites = [suite.name for suite in results.suites if suite.complete]
        skipped_suites = [suite.name for suite in results.suites if not suite.complete]
        if skipped_suites:
            logger.debug(
                f"Deletion tracking skipped for partial suites: {', '.join(skipped_suites)}"
            )

        self.deleted_tests = await repository.mark_deleted_tests(
            run_id, [record.slug for record in records], executed_suites
        )
        if self.deleted_tests:
            logger.info(f"Deleted tests detected: {len(self.deleted_tests)}")
            for test in self.deleted_tests:
                logger.info(f"  - {test.current_name} ({test.test_slug})")

        logger.info(f"Test results persisted to database (run_id: {run_id})")
        return run_id
