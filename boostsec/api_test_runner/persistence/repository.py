"""Repository for test identity, lineage and deletion tracking."""

import hashlib
import logging
from datetime import UTC, datetime

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boostsec.api_test_runner.exceptions import IdentityError, PersistenceError
from boostsec.api_test_runner.persistence.database import Database
from boostsec.api_test_runner.persistence.tables import (
    Test,
    TestHistory,
    TestResultRow,
    TestRun,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Return the current time as naive UTC."""
    return datetime.now(UTC).replace(tzinfo=None)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class TestDescriptor(BaseModel):
    """Identity information of a test as seen in one run."""

    __test__ = False

    slug: str | None = Field(..., description="Durable test identity")
    name: str = Field(..., description="Current test name")
    description: str | None = None
    suite_name: str | None = None
    test_file: str | None = None
    endpoint: str | None = None
    http_method: str | None = None


class ResultRecord(TestDescriptor):
    """Outcome of a test to store in the result log."""

    status: str = Field(..., description="passed, failed, skipped or todo")
    duration_ms: int = 0
    response_time_ms: int | None = None
    status_code: int | None = None
    error_message: str | None = None
    error_type: str | None = None
    stack_trace: str | None = None


class RunRecord(BaseModel):
    """Metadata and counters of a test run."""

    environment: str = "development"
    branch: str | None = None
    commit_sha: str | None = None
    commit_message: str | None = None
    status: str = Field(..., description="passed or failed")
    passed_tests: int = 0
    failed_tests: int = 0
    skipped_tests: int = 0
    todo_tests: int = 0
    duration_ms: int = 0
    started_at: datetime
    completed_at: datetime | None = None
    triggered_by: str | None = None
    run_url: str | None = None

    @property
    def total_tests(self) -> int:
        """Sum of all status counters."""
        return self.passed_tests + self.failed_tests + self.skipped_tests + self.todo_tests


class DeletedTest(BaseModel):
    """A test marked deleted."""

    id: int
    test_slug: str
    current_name: str
    suite_name: str | None = None
    last_seen_at: datetime
    deleted_at: datetime
    total_runs: int


class TestRepository:
    """Data access for test identity and run history.

    Every public method runs in its own transaction.
    """

    __test__ = False

    def __init__(self, database: Database) -> None:
        """Initialize repository on a database."""
        self.db = database

    @staticmethod
    def generate_test_hash(name: str, description: str | None = None) -> str:
        """Return the SHA-256 change-detection hash of a name and description."""
        content = f"{name}||{description or ''}"
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    async def find_or_create_test(self, descriptor: TestDescriptor) -> int:
        """Find a test by slug, creating or updating it.

        A test that was marked deleted is resurrected.

        Args:
            descriptor: Test identity as observed in the current run

        Returns:
            The test's id

        Raises:
            IdentityError: If the descriptor has no slug
            PersistenceError: If the database operation fails

        """
        async with self.db.session() as session:
            test = await self._find_or_create(session, descriptor)
            return test.id

    async def _find_or_create(
        self, session: AsyncSession, descriptor: TestDescriptor
    ) -> Test:
        if not descriptor.slug:
            raise IdentityError("Test slug is required for test identification")

        now = utcnow()
        test_hash = self.generate_test_hash(descriptor.name, descriptor.description)

        result = await session.execute(
            select(Test).where(Test.test_slug == descriptor.slug)
        )
        test = result.scalar_one_or_none()

        if test is None:
            test = Test(
                test_slug=descriptor.slug,
                test_hash=test_hash,
                current_name=descriptor.name,
                current_description=descriptor.description,
                suite_name=descriptor.suite_name,
                test_file=descriptor.test_file,
                endpoint=descriptor.endpoint,
                http_method=descriptor.http_method,
                first_seen_at=now,
                last_seen_at=now,
                deleted_at=None,
                total_runs=1,
            )
            session.add(test)
            await session.flush()
            session.add(
                TestHistory(
                    test_id=test.id,
                    name=descriptor.name,
                    description=descriptor.description,
                    test_hash=test_hash,
                    change_type="created",
                    changed_at=now,
                )
            )
            logger.debug(f"Created test '{descriptor.slug}'")
            return test

        if test.deleted_at is not None:
            logger.info(f"Test '{descriptor.slug}' reappeared, clearing deletion")
        test.deleted_at = None

        if test.test_hash != test_hash:
            session.add(
                TestHistory(
                    test_id=test.id,
                    prior_name=test.current_name,
                    prior_description=test.current_description,
                    name=descriptor.name,
                    description=descriptor.description,
                    test_hash=test_hash,
                    change_type="updated",
                    changed_at=now,
                )
            )

        test.current_name = descriptor.name
        test.current_description = descriptor.description
        test.test_hash = test_hash
        test.suite_name = descriptor.suite_name
        test.test_file = descriptor.test_file
        if descriptor.endpoint is not None:
            test.endpoint = descriptor.endpoint
        if descriptor.http_method is not None:
            test.http_method = descriptor.http_method
        test.last_seen_at = max(test.last_seen_at, now)
        test.total_runs += 1
        await session.flush()
        return test

    async def create_test_run(self, record: RunRecord) -> int:
        """Insert a test run and return its id."""
        async with self.db.session() as session:
            run = TestRun(
                environment=record.environment,
                branch=record.branch,
                commit_sha=record.commit_sha,
                commit_message=record.commit_message,
                status=record.status,
                total_tests=record.total_tests,
                passed_tests=record.passed_tests,
                failed_tests=record.failed_tests,
                skipped_tests=record.skipped_tests,
                todo_tests=record.todo_tests,
                duration_ms=record.duration_ms,
                started_at=_naive_utc(record.started_at),
                completed_at=(
                    _naive_utc(record.completed_at) if record.completed_at else None
                ),
                triggered_by=record.triggered_by,
                run_url=record.run_url,
                deleted_test_ids=[],
            )
            session.add(run)
            await session.flush()
            return run.id

    async def record_test_result(self, run_id: int, record: ResultRecord) -> int:
        """Store a test result, updating the test's identity in the same transaction.

        Returns:
            The test's id

        """
        async with self.db.session() as session:
            test = await self._find_or_create(session, record)
            session.add(
                TestResultRow(
                    run_id=run_id,
                    test_id=test.id,
                    test_name=record.name,
                    test_description=record.description,
                    test_hash=test.test_hash,
                    test_file=record.test_file,
                    endpoint=record.endpoint,
                    http_method=record.http_method,
                    status=record.status,
                    duration_ms=record.duration_ms,
                    response_time_ms=record.response_time_ms,
                    status_code=record.status_code,
                    error_message=record.error_message,
                    error_type=record.error_type,
                    stack_trace=record.stack_trace,
                    created_at=utcnow(),
                )
            )
            test.last_status = record.status
            return test.id

    async def mark_deleted_tests(
        self,
        run_id: int,
        current_slugs: list[str],
        executed_suite_names: list[str],
    ) -> list[DeletedTest]:
        """Mark tests missing from executed suites as deleted.

        Only tests of ``executed_suite_names`` are candidates, and only those
        not seen since the run started. Calling this twice marks nothing new.

        Args:
            run_id: Run the deletion is attributed to
            current_slugs: Slugs observed in this run; empty means every test
                of the executed suites is a candidate
            executed_suite_names: Suites that fully ran in this run

        Returns:
            The tests deleted by this call

        Raises:
            PersistenceError: If the run doesn't exist or the database fails

        """
        if not executed_suite_names:
            return []

        async with self.db.session() as session:
            run = await session.get(TestRun, run_id)
            if run is None:
                raise PersistenceError(f"Unknown test run: {run_id}")

            query = select(Test).where(
                Test.suite_name.in_(executed_suite_names),
                Test.deleted_at.is_(None),
                Test.last_seen_at < run.started_at,
            )
            if current_slugs:
                query = query.where(Test.test_slug.not_in(current_slugs))

            result = await session.execute(query.order_by(Test.id))
            tests = list(result.scalars())

            now = utcnow()
            for test in tests:
                test.deleted_at = now

            if tests:
                run.deleted_test_ids = [*(run.deleted_test_ids or []), *(t.id for t in tests)]

            return [DeletedTest.model_validate(t, from_attributes=True) for t in tests]

    async def get_deleted_tests(self, limit: int = 10) -> list[DeletedTest]:
        """Return the most recently deleted tests."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Test)
                .where(Test.deleted_at.is_not(None))
                .order_by(Test.deleted_at.desc(), Test.id.desc())
                .limit(limit)
            )
            return [
                DeletedTest.model_validate(t, from_attributes=True)
                for t in result.scalars()
            ]

    async def get_test(self, slug: str) -> Test | None:
        """Return the stored test with a slug, if any."""
        async with self.db.session() as session:
            result = await session.execute(select(Test).where(Test.test_slug == slug))
            return result.scalar_one_or_none()

    async def get_test_history(self, slug: str) -> list[TestHistory]:
        """Return a test's history, oldest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TestHistory)
                .join(Test)
                .where(Test.test_slug == slug)
                .order_by(TestHistory.id)
            )
            return list(result.scalars())
