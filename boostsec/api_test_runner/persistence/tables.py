"""ORM tables for test identity, history, runs and results.

Backend-agnostic: SQLite (aiosqlite) locally, PostgreSQL (asyncpg) in CI.
Timestamps are stored as naive UTC.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all tables."""

    pass


class Test(Base):
    """Durable identity of a test, keyed by its slug."""

    __tablename__ = "tests"
    __test__ = False

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    test_slug: Mapped[str] = mapped_column(String(512), unique=True, index=True)
    test_hash: Mapped[str] = mapped_column(String(64))
    current_name: Mapped[str] = mapped_column(String(512))
    current_description: Mapped[str | None] = mapped_column(Text)
    suite_name: Mapped[str | None] = mapped_column(String(255), index=True)
    test_file: Mapped[str | None] = mapped_column(String(1024))
    endpoint: Mapped[str | None] = mapped_column(String(500))
    http_method: Mapped[str | None] = mapped_column(String(10))

    first_seen_at: Mapped[datetime] = mapped_column(DateTime)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)
    total_runs: Mapped[int] = mapped_column(Integer, default=0)
    last_status: Mapped[str | None] = mapped_column(String(20))

    history: Mapped[list["TestHistory"]] = relationship(
        back_populates="test", order_by="TestHistory.id"
    )


class TestHistory(Base):
    """Audit record written whenever a test's name or description changes."""

    __tablename__ = "test_history"
    __test__ = False

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    test_id: Mapped[int] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), index=True
    )
    prior_name: Mapped[str | None] = mapped_column(String(512))
    prior_description: Mapped[str | None] = mapped_column(Text)
    name: Mapped[str] = mapped_column(String(512))
    description: Mapped[str | None] = mapped_column(Text)
    test_hash: Mapped[str] = mapped_column(String(64))
    change_type: Mapped[str] = mapped_column(String(20))  # created, updated
    changed_at: Mapped[datetime] = mapped_column(DateTime)

    test: Mapped[Test] = relationship(back_populates="history")


class TestRun(Base):
    """One execution of the test suites."""

    __tablename__ = "test_runs"
    __test__ = False
    __table_args__ = (
        CheckConstraint(
            "total_tests = passed_tests + failed_tests + skipped_tests + todo_tests",
            name="valid_test_counts",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    environment: Mapped[str] = mapped_column(String(50))
    branch: Mapped[str | None] = mapped_column(String(255))
    commit_sha: Mapped[str | None] = mapped_column(String(40))
    commit_message: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20))
    total_tests: Mapped[int] = mapped_column(Integer, default=0)
    passed_tests: Mapped[int] = mapped_column(Integer, default=0)
    failed_tests: Mapped[int] = mapped_column(Integer, default=0)
    skipped_tests: Mapped[int] = mapped_column(Integer, default=0)
    todo_tests: Mapped[int] = mapped_column(Integer, default=0)
    duration_ms: Mapped[int] = mapped_column(Integer, default=0)
    started_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    triggered_by: Mapped[str | None] = mapped_column(String(255))
    run_url: Mapped[str | None] = mapped_column(Text)
    deleted_test_ids: Mapped[list[int]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), default=list
    )


class TestResultRow(Base):
    """Immutable result of one test in one run."""

    __tablename__ = "test_results"
    __test__ = False

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    run_id: Mapped[int] = mapped_column(
        ForeignKey("test_runs.id", ondelete="CASCADE"), index=True
    )
    test_id: Mapped[int] = mapped_column(ForeignKey("tests.id"), index=True)

    # Snapshot at time of run
    test_name: Mapped[str] = mapped_column(String(512))
    test_description: Mapped[str | None] = mapped_column(Text)
    test_hash: Mapped[str] = mapped_column(String(64))
    test_file: Mapped[str | None] = mapped_column(String(1024))
    endpoint: Mapped[str | None] = mapped_column(String(500))
    http_method: Mapped[str | None] = mapped_column(String(10))

    status: Mapped[str] = mapped_column(String(20), index=True)
    duration_ms: Mapped[int] = mapped_column(Integer, default=0)
    response_time_ms: Mapped[int | None] = mapped_column(Integer)
    status_code: Mapped[int | None] = mapped_column(Integer)
    error_message: Mapped[str | None] = mapped_column(Text)
    error_type: Mapped[str | None] = mapped_column(String(255))
    stack_trace: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime)
