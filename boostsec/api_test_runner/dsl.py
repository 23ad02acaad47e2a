"""Registration DSL for API test suites.

Test modules declare suites and tests against a registry::

    with describe("Users API", prefix="api.users"):

        @before_each
        async def login(ctx):
            ...

        @test("create user", test_id="create", retry=2)
        async def create_user(ctx):
            response = await ctx.request.post("/users", json={"name": "Ada"})
            assert response.status == 201

        stub("delete user")

Definitions are frozen when the ``describe`` block exits.
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from boostsec.api_test_runner.models.test_definition import (
    HookFn,
    SuiteHooks,
    TestDefinition,
    TestFn,
    TestSuiteDefinition,
)
from boostsec.api_test_runner.slug import build_test_slug


class _SuiteBuilder:
    """Mutable state of a suite while its describe block is open."""

    def __init__(self, name: str, prefix: str | None) -> None:
        self.name = name
        self.prefix = prefix
        self.tests: list[TestDefinition] = []
        self.before_all: list[HookFn] = []
        self.after_all: list[HookFn] = []
        self.before_each: list[HookFn] = []
        self.after_each: list[HookFn] = []

    def build(self) -> TestSuiteDefinition:
        return TestSuiteDefinition(
            name=self.name,
            prefix=self.prefix,
            hooks=SuiteHooks(
                before_all=tuple(self.before_all),
                after_all=tuple(self.after_all),
                before_each=tuple(self.before_each),
                after_each=tuple(self.after_each),
            ),
            tests=tuple(self.tests),
        )


class TestRegistry:
    """Collects suite definitions in registration order."""

    __test__ = False

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._suites: list[TestSuiteDefinition] = []
        self._stack: list[_SuiteBuilder] = []
        self._current_file: str | None = None

    @property
    def suites(self) -> tuple[TestSuiteDefinition, ...]:
        """Registered suites."""
        return tuple(self._suites)

    def clear(self) -> None:
        """Forget every registered suite."""
        self._suites.clear()
        self._stack.clear()

    @contextmanager
    def loading(self, path: Path) -> Iterator[None]:
        """Attribute tests registered inside the block to a source file."""
        previous = self._current_file
        self._current_file = str(path)
        try:
            yield
        finally:
            self._current_file = previous

    @contextmanager
    def describe(self, name: str, prefix: str | None = None) -> Iterator[None]:
        """Open a suite; it is registered when the block exits cleanly."""
        builder = _SuiteBuilder(name, prefix)
        self._stack.append(builder)
        try:
            yield
        finally:
            self._stack.pop()
        self._suites.append(builder.build())

    def test(  # noqa: PLR0913
        self,
        name: str,
        fn: TestFn | None = None,
        *,
        test_id: str | None = None,
        description: str | None = None,
        timeout: float | None = None,
        retry: int | None = None,
        skip: bool = False,
        only: bool = False,
        stub: bool = False,
        tags: tuple[str, ...] | list[str] = (),
        endpoint: str | None = None,
        method: str | None = None,
    ) -> Callable[[TestFn], TestFn] | TestFn | None:
        """Register a test.

        Called with a body (or with ``stub=True``) the test is registered
        immediately. Called without one it returns a decorator.

        Raises:
            RuntimeError: If called outside a describe block
            ValidationError: If the name exceeds 512 characters

        """

        def register(body: TestFn | None) -> TestFn | None:
            suite = self._current_suite()
            suite.tests.append(
                TestDefinition(
                    name=name,
                    slug=build_test_slug(name, test_id, suite.prefix),
                    test_id=test_id,
                    description=description,
                    fn=body,
                    skip=skip,
                    only=only,
                    stub=stub,
                    retry=retry,
                    timeout=timeout,
                    tags=tuple(tags),
                    endpoint=endpoint,
                    method=method.upper() if method else None,
                    file=self._current_file,
                )
            )
            return body

        if fn is not None or stub:
            return register(fn)

        def decorator(body: TestFn) -> TestFn:
            register(body)
            return body

        return decorator

    def skip(self, name: str, fn: TestFn | None = None, **options: object) -> object:
        """Register a test reported as skipped."""
        return self.test(name, fn, skip=True, **options)  # type: ignore[arg-type]

    def only(self, name: str, fn: TestFn | None = None, **options: object) -> object:
        """Register a test that narrows the run to only-tests."""
        return self.test(name, fn, only=True, **options)  # type: ignore[arg-type]

    def stub(self, name: str, **options: object) -> None:
        """Register an unimplemented test, reported as todo."""
        self.test(name, None, stub=True, **options)  # type: ignore[arg-type]

    def before_all(self, fn: HookFn) -> HookFn:
        """Register a hook run once before the suite's tests."""
        self._current_suite().before_all.append(fn)
        return fn

    def after_all(self, fn: HookFn) -> HookFn:
        """Register a hook run once after the suite's tests."""
        self._current_suite().after_all.append(fn)
        return fn

    def before_each(self, fn: HookFn) -> HookFn:
        """Register a hook run before every attempt of every test."""
        self._current_suite().before_each.append(fn)
        return fn

    def after_each(self, fn: HookFn) -> HookFn:
        """Register a hook run after every attempt of every test."""
        self._current_suite().after_each.append(fn)
        return fn

    def _current_suite(self) -> _SuiteBuilder:
        if not self._stack:
            raise RuntimeError("Tests and hooks must be registered inside describe()")
        return self._stack[-1]


default_registry = TestRegistry()

describe = default_registry.describe
test = default_registry.test
skip = default_registry.skip
only = default_registry.only
stub = default_registry.stub
before_all = default_registry.before_all
after_all = default_registry.after_all
before_each = default_registry.before_each
after_each = default_registry.after_each
