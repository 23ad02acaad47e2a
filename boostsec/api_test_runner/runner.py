"""Test runner executing registered suites against live endpoints."""

import asyncio
import inspect
import logging
import time
from collections.abc import Sequence
from datetime import UTC, datetime

from boostsec.api_test_runner.collector import ResultCollector
from boostsec.api_test_runner.dsl import TestRegistry, default_registry
from boostsec.api_test_runner.exceptions import HookError, TestTimeoutError
from boostsec.api_test_runner.governance.engine import GovernanceEngine
from boostsec.api_test_runner.http_client import HttpClient
from boostsec.api_test_runner.models.config import RunnerConfig
from boostsec.api_test_runner.models.inspection import InspectionContext
from boostsec.api_test_runner.models.test_definition import (
    HookFn,
    SuiteHooks,
    TestDefinition,
    TestFn,
    TestSuiteDefinition,
)
from boostsec.api_test_runner.models.test_result import (
    RunResults,
    RunSummary,
    SuiteRunResult,
    TestError,
    TestRunResult,
)
from boostsec.api_test_runner.security.scanner import SecurityScanner

logger = logging.getLogger(__name__)


class TestContext:
    """Fixtures handed to hooks and test bodies."""

    __test__ = False

    def __init__(
        self,
        request: HttpClient,
        suite: str,
        test: str | None = None,
        state: dict[str, object] | None = None,
    ) -> None:
        """Initialize context with its own HTTP client."""
        self.request = request
        self.suite = suite
        self.test = test
        self.state = state if state is not None else {}


def _discard_outcome(task: "asyncio.Future[object]") -> None:
    # Abandoned bodies keep running; consume their outcome when they settle
    if not task.cancelled():
        task.exception()


def _runner_cancelled() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


async def _call(fn: TestFn | HookFn, context: TestContext) -> None:
    result = fn(context)
    if inspect.isawaitable(result):
        await result


class TestRunner:
    """Runs suites sequentially and reports their results."""

    __test__ = False

    def __init__(
        self,
        config: RunnerConfig | None = None,
        registry: TestRegistry | None = None,
        collector: ResultCollector | None = None,
    ) -> None:
        """Initialize runner with configuration and inspection pipeline."""
        self.config = config or RunnerConfig()
        self.registry = registry or default_registry
        self.collector = collector or ResultCollector()
        self.governance = GovernanceEngine(self.config.governance)
        self.security = SecurityScanner(self.config.security)

        if self.config.parallel:
            logger.warning("Parallel execution is not supported; running sequentially")

    async def run(self, suites: Sequence[TestSuiteDefinition] | None = None) -> RunResults:
        """Run every suite in registration order.

        Individual test or suite failures are reported, never raised.
        """
        suites = list(self.registry.suites if suites is None else suites)
        has_only = any(test.only for suite in suites for test in suite.tests)
        if has_only:
            logger.info("Only-tests present: running only-tests in every suite")

        self.collector.start()
        start = time.monotonic()
        results = RunResults(summary=RunSummary(started_at=datetime.now(UTC)))

        for suite in suites:
            suite_result = await self.run_suite(suite, has_only)
            results.suites.append(suite_result)
            results.summary.absorb(suite_result)

            if self.config.bail and suite_result.failed > 0:
                logger.warning(f"Bailing out after failures in suite '{suite.name}'")
                break

        results.summary.duration = time.monotonic() - start
        results.summary.finished_at = datetime.now(UTC)

        self.collector.add_results(results)
        self.collector.end()
        return results

    async def run_suite(
        self, suite: TestSuiteDefinition, has_only: bool = False
    ) -> SuiteRunResult:
        """Run one suite with its hooks.

        When ``has_only`` is set the suite runs only its own only-tests, which
        may be none at all.
        """
        logger.info(f"Running suite: {suite.name}")
        suite_result = SuiteRunResult(name=suite.name)
        start = time.monotonic()
        suite_context = self._create_context(suite.name)

        tests = [t for t in suite.tests if t.only] if has_only else list(suite.tests)
        bailed = False

        try:
            await self._run_hooks(suite.hooks.before_all, suite_context, "beforeAll")
        except HookError as e:
            logger.error(f"Suite '{suite.name}' aborted: {e}")
            suite_result.error = TestError.from_exception(e)
        else:
            for test in tests:
                test_result = await self.run_test(
                    test, suite.hooks, suite.name, suite_context.state
                )
                suite_result.record(test_result)

                if test_result.status == "failed" and self.config.bail:
                    bailed = True
                    break

        try:
            await self._run_hooks(suite.hooks.after_all, suite_context, "afterAll")
        except HookError as e:
            logger.error(f"Suite '{suite.name}': {e}")
            if suite_result.error is None:
                suite_result.error = TestError.from_exception(e)
            else:
                suite_result.error.append(e)

        suite_result.complete = (
            suite_result.error is None
            and not bailed
            and len(tests) == len(suite.tests)
        )
        suite_result.duration = time.monotonic() - start
        return suite_result

    async def run_test(
        self,
        test: TestDefinition,
        hooks: SuiteHooks,
        suite_name: str,
        state: dict[str, object] | None = None,
    ) -> TestRunResult:
        """Run one test, retrying failed attempts."""
        result = TestRunResult(
            name=test.name,
            slug=test.slug,
            status="passed",
            description=test.description,
            tags=list(test.tags),
            endpoint=test.endpoint,
            method=test.method,
            file=test.file,
        )

        if test.is_todo:
            result.status = "todo"
            return result

        if test.skip:
            result.status = "skipped"
            return result

        max_retries = test.retry if test.retry is not None else self.config.retries
        timeout = test.timeout if test.timeout is not None else self.config.timeout
        start = time.monotonic()
        error: TestError | None = None

        for attempt in range(max_retries + 1):
            context = self._create_context(suite_name, test.name, state)
            error = await self._run_attempt(test, hooks, context, timeout)

            if error is None:
                result.status = "passed"
                result.retries = attempt
                await self._inspect(context, test, suite_name, result)
                break

            logger.debug(
                f"Attempt {attempt + 1}/{max_retries + 1} of '{test.name}' failed: "
                f"{error.message}"
            )
        else:
            result.status = "failed"
            result.retries = max_retries
            result.error = error

        result.duration = time.monotonic() - start
        return result

    async def _run_attempt(
        self,
        test: TestDefinition,
        hooks: SuiteHooks,
        context: TestContext,
        timeout: float,
    ) -> TestError | None:
        """Run before_each, the body and after_each; return the failure, if any."""
        error: TestError | None = None
        try:
            await self._run_hooks(hooks.before_each, context, "beforeEach")
            await self._run_with_timeout(test.fn, context, timeout)  # type: ignore[arg-type]
        except asyncio.CancelledError as e:
            # Only a cancellation raised by the test itself becomes a failure
            if _runner_cancelled():
                raise
            error = TestError.from_exception(e)
        except Exception as e:
            error = TestError.from_exception(e)

        try:
            await self._run_hooks(hooks.after_each, context, "afterEach")
        except HookError as e:
            if error is None:
                error = TestError.from_exception(e)
            else:
                error.append(e)

        return error

    async def _run_with_timeout(
        self, fn: TestFn, context: TestContext, timeout: float
    ) -> None:
        """Race the test body against a timer.

        A body that loses the race is left running; only the wait stops.
        """
        outcome = fn(context)
        if not inspect.isawaitable(outcome):
            return

        task = asyncio.ensure_future(outcome)
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if not done:
            task.add_done_callback(_discard_outcome)
            raise TestTimeoutError(timeout)
        if task.cancelled():
            raise RuntimeError("Test body was cancelled")
        task.result()

    async def _run_hooks(
        self, hooks: Sequence[HookFn], context: TestContext, hook_name: str
    ) -> None:
        for hook in hooks:
            try:
                await _call(hook, context)
            except asyncio.CancelledError as e:
                if _runner_cancelled():
                    raise
                raise HookError(hook_name, e) from e
            except Exception as e:
                raise HookError(hook_name, e) from e

    async def _inspect(
        self,
        context: TestContext,
        test: TestDefinition,
        suite_name: str,
        result: TestRunResult,
    ) -> None:
        """Run the inspection pipeline over the test's last exchange."""
        exchange = context.request.get_last_exchange()
        if exchange is None:
            return

        result.status_code = exchange.response.status
        result.response_time = exchange.response.response_time
        endpoint = test.endpoint or exchange.request.url
        inspection_context = InspectionContext(suite=suite_name, test=test.name)

        if self.governance.enabled:
            violations = await self.governance.check(
                exchange.request, exchange.response, endpoint, inspection_context
            )
            result.violations.extend(violations)
            for violation in violations:
                self.collector.add_governance_violation(violation)

        if self.security.enabled:
            findings = await self.security.scan(
                exchange.request, exchange.response, endpoint, inspection_context
            )
            result.findings.extend(findings)
            for finding in findings:
                self.collector.add_security_finding(finding)

    def _create_context(
        self,
        suite_name: str,
        test_name: str | None = None,
        state: dict[str, object] | None = None,
    ) -> TestContext:
        return TestContext(
            request=HttpClient(self.config.http),
            suite=suite_name,
            test=test_name,
            state=state,
        )

