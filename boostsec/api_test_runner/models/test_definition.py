"""Models for registered test suites and tests."""

from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

from boostsec.api_test_runner.slug import MAX_SLUG_LENGTH

TestFn = Callable[..., object]
HookFn = Callable[..., object]


class SuiteHooks(BaseModel):
    """Lifecycle hooks of a suite, in registration order."""

    model_config = ConfigDict(frozen=True)

    before_all: tuple[HookFn, ...] = ()
    after_all: tuple[HookFn, ...] = ()
    before_each: tuple[HookFn, ...] = ()
    after_each: tuple[HookFn, ...] = ()


class TestDefinition(BaseModel):
    """Individual test registered in a suite."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., max_length=512, description="Human-readable test name")
    slug: str = Field(
        ..., max_length=MAX_SLUG_LENGTH, description="Durable identity of the test"
    )
    test_id: str | None = Field(default=None, description="Explicit id, if any")
    description: str | None = Field(default=None, description="Test description")
    fn: TestFn | None = Field(default=None, description="Test body; None for stubs")
    skip: bool = Field(default=False, description="Report as skipped without running")
    only: bool = Field(default=False, description="Restrict the run to only-tests")
    stub: bool = Field(default=False, description="Unimplemented test")
    retry: int | None = Field(
        default=None, ge=0, description="Retry override; None uses the run default"
    )
    timeout: float | None = Field(
        default=None, gt=0, description="Timeout override in seconds"
    )
    tags: tuple[str, ...] = Field(default=(), description="Free-form tags")
    endpoint: str | None = Field(default=None, description="Endpoint under test")
    method: str | None = Field(default=None, description="HTTP method under test")
    file: str | None = Field(default=None, description="Defining source file")

    @property
    def is_todo(self) -> bool:
        """Whether the test has no body to run."""
        return self.fn is None or self.stub


class TestSuiteDefinition(BaseModel):
    """A named group of tests sharing hooks."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Suite name")
    prefix: str | None = Field(
        default=None, description="Dot-separated slug prefix for the suite's tests"
    )
    hooks: SuiteHooks = Field(default_factory=SuiteHooks)
    tests: tuple[TestDefinition, ...] = Field(default=())
