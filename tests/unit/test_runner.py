"""Tests for the test runner."""

import asyncio

import pytest
from aioresponses import aioresponses

from boostsec.api_test_runner.dsl import TestRegistry
from boostsec.api_test_runner.models.config import GovernanceConfig, RunnerConfig
from boostsec.api_test_runner.models.exchange import CapturedRequest, CapturedResponse
from boostsec.api_test_runner.models.inspection import InspectionContext, RuleViolation
from boostsec.api_test_runner.models.test_result import RunResults
from boostsec.api_test_runner.runner import TestContext, TestRunner


@pytest.fixture
def registry() -> TestRegistry:
    """Create an empty registry."""
    return TestRegistry()


async def run(registry: TestRegistry, **config: object) -> RunResults:
    """Run the registry's suites with a fresh runner."""
    runner = TestRunner(RunnerConfig.model_validate(config), registry)
    return await runner.run()


@pytest.mark.parametrize("retries", [0, 1, 3])
async def test_always_failing_test_runs_retries_plus_one(
    registry: TestRegistry, retries: int
) -> None:
    """A failing test is attempted retry+1 times with hooks around each attempt."""
    calls = {"before": 0, "body": 0, "after": 0}

    with registry.describe("Suite"):

        @registry.before_each
        def before(ctx: TestContext) -> None:
            calls["before"] += 1

        @registry.after_each
        def after(ctx: TestContext) -> None:
            calls["after"] += 1

        @registry.test("always fails", retry=retries)
        async def always_fails(ctx: TestContext) -> None:
            calls["body"] += 1
            raise AssertionError("nope")

    results = await run(registry)

    result = results.suites[0].tests[0]
    assert result.status == "failed"
    assert result.retries == retries
    assert result.error is not None
    assert result.error.message == "nope"
    assert result.error.type == "AssertionError"
    assert not result.error.timeout
    assert calls == {
        "before": retries + 1,
        "body": retries + 1,
        "after": retries + 1,
    }


async def test_create_user_passes_on_third_attempt(registry: TestRegistry) -> None:
    """A test with retry=2 failing twice then passing is reported as passed."""
    calls = {"before": 0, "body": 0, "after": 0}

    with registry.describe("Users"):

        @registry.before_each
        def before(ctx: TestContext) -> None:
            calls["before"] += 1

        @registry.after_each
        async def after(ctx: TestContext) -> None:
            calls["after"] += 1

        @registry.test("create user", retry=2)
        async def create_user(ctx: TestContext) -> None:
            calls["body"] += 1
            assert calls["body"] == 3

    results = await run(registry)

    result = results.suites[0].tests[0]
    assert result.status == "passed"
    assert result.retries == 2
    assert result.error is None
    assert calls == {"before": 3, "body": 3, "after": 3}


async def test_global_retries_apply_without_override(registry: TestRegistry) -> None:
    """The run-wide retries setting applies when a test has no override."""
    attempts = 0

    with registry.describe("Suite"):

        @registry.test("flaky")
        def flaky(ctx: TestContext) -> None:
            nonlocal attempts
            attempts += 1
            assert attempts > 1

        @registry.test("no retries", retry=0)
        def no_retries(ctx: TestContext) -> None:
            raise AssertionError("fails")

    results = await run(registry, retries=1)

    flaky_result, no_retries_result = results.suites[0].tests
    assert flaky_result.status == "passed"
    assert flaky_result.retries == 1
    assert no_retries_result.status == "failed"
    assert no_retries_result.retries == 0


async def test_stub_is_todo_without_hooks(registry: TestRegistry) -> None:
    """Stub tests are todo with zero duration and no hook calls."""
    calls: list[str] = []

    with registry.describe("Suite"):
        registry.before_each(lambda ctx: calls.append("before"))
        registry.after_each(lambda ctx: calls.append("after"))
        registry.stub("not written yet")
        registry.test("stub with body", lambda ctx: calls.append("body"), stub=True)

    results = await run(registry)

    suite = results.suites[0]
    assert [t.status for t in suite.tests] == ["todo", "todo"]
    assert all(t.duration == 0 for t in suite.tests)
    assert suite.todo == 2
    assert calls == []


async def test_skip_runs_nothing(registry: TestRegistry) -> None:
    """Skipped tests run neither hooks nor body."""
    calls: list[str] = []

    with registry.describe("Suite"):
        registry.before_each(lambda ctx: calls.append("before"))
        registry.skip("skipped", lambda ctx: calls.append("body"))

    results = await run(registry)

    assert results.suites[0].tests[0].status == "skipped"
    assert results.summary.skipped == 1
    assert calls == []


async def test_only_restricts_every_suite(registry: TestRegistry) -> None:
    """With an only-test anywhere, suites without one run no tests."""
    with registry.describe("Focused"):
        registry.only("focused", lambda ctx: None)
        registry.test("other", lambda ctx: None)

    with registry.describe("Unfocused"):
        registry.test("ignored", lambda ctx: None)

    results = await run(registry)

    focused, unfocused = results.suites
    assert [t.name for t in focused.tests] == ["focused"]
    assert unfocused.tests == []
    assert unfocused.total == 0
    assert not focused.complete
    assert not unfocused.complete
    assert results.summary.total == 1


async def test_bail_stops_suite_and_run(registry: TestRegistry) -> None:
    """bail stops the failing suite's remaining tests and the remaining suites."""
    with registry.describe("First"):
        registry.test("fails", lambda ctx: 1 / 0)
        registry.test("never runs", lambda ctx: None)

    with registry.describe("Second"):
        registry.test("never runs either", lambda ctx: None)

    results = await run(registry, bail=True)

    assert len(results.suites) == 1
    assert [t.name for t in results.suites[0].tests] == ["fails"]
    assert results.suites[0].tests[0].error is not None
    assert results.suites[0].tests[0].error.type == "ZeroDivisionError"
    assert not results.suites[0].complete


async def test_without_bail_every_test_runs(registry: TestRegistry) -> None:
    """Failures don't stop the run unless bail is set."""
    with registry.describe("First"):
        registry.test("fails", lambda ctx: 1 / 0)
        registry.test("passes", lambda ctx: None)

    with registry.describe("Second"):
        registry.test("passes too", lambda ctx: None)

    results = await run(registry)

    assert results.summary.failed == 1
    assert results.summary.passed == 2
    assert results.summary.total == 3
    assert all(suite.complete for suite in results.suites)


async def test_timeout_fails_with_timeout_flag(registry: TestRegistry) -> None:
    """A body slower than its timeout fails with the timeout flag set."""
    with registry.describe("Suite"):

        @registry.test("slow", timeout=0.01)
        async def slow(ctx: TestContext) -> None:
            await asyncio.sleep(0.5)

    results = await run(registry)

    result = results.suites[0].tests[0]
    assert result.status == "failed"
    assert result.error is not None
    assert result.error.timeout
    assert result.error.type == "TestTimeoutError"
    assert "0.01s" in result.error.message


async def test_global_timeout_applies(registry: TestRegistry) -> None:
    """The run-wide timeout applies without a per-test override."""
    with registry.describe("Suite"):

        @registry.test("slow")
        async def slow(ctx: TestContext) -> None:
            await asyncio.sleep(0.5)

    results = await run(registry, timeout=0.01)

    assert results.suites[0].tests[0].error is not None
    assert results.suites[0].tests[0].error.timeout


async def test_after_each_error_is_appended(registry: TestRegistry) -> None:
    """An afterEach error is appended to the test's own error."""
    with registry.describe("Suite"):

        @registry.after_each
        def cleanup(ctx: TestContext) -> None:
            raise ValueError("cleanup failed")

        @registry.test("fails")
        def fails(ctx: TestContext) -> None:
            raise AssertionError("assertion failed")

    results = await run(registry)

    error = results.suites[0].tests[0].error
    assert error is not None
    assert error.type == "AssertionError"
    assert error.message.startswith("assertion failed")
    assert "afterEach hook failed: cleanup failed" in error.message


async def test_after_each_error_fails_passing_test(registry: TestRegistry) -> None:
    """An afterEach error fails an otherwise passing test."""
    with registry.describe("Suite"):
        registry.after_each(lambda ctx: 1 / 0)
        registry.test("passes", lambda ctx: None)

    results = await run(registry)

    result = results.suites[0].tests[0]
    assert result.status == "failed"
    assert result.error is not None
    assert result.error.type == "HookError"


async def test_before_each_error_fails_attempt(registry: TestRegistry) -> None:
    """A beforeEach error fails the attempt without running the body."""
    calls: list[str] = []

    with registry.describe("Suite"):

        @registry.before_each
        def before(ctx: TestContext) -> None:
            raise RuntimeError("setup failed")

        registry.after_each(lambda ctx: calls.append("after"))
        registry.test("never runs", lambda ctx: calls.append("body"))

    results = await run(registry)

    result = results.suites[0].tests[0]
    assert result.status == "failed"
    assert result.error is not None
    assert "beforeEach hook failed: setup failed" in result.error.message
    assert calls == ["after"]


async def test_before_all_error_is_suite_level(registry: TestRegistry) -> None:
    """A beforeAll error skips the suite's tests and still runs afterAll."""
    calls: list[str] = []

    with registry.describe("Broken"):

        @registry.before_all
        async def before_all(ctx: TestContext) -> None:
            raise ConnectionError("no database")

        registry.after_all(lambda ctx: calls.append("after_all"))
        registry.test("never runs", lambda ctx: calls.append("body"))

    with registry.describe("Healthy"):
        registry.test("runs", lambda ctx: None)

    results = await run(registry)

    broken, healthy = results.suites
    assert broken.error is not None
    assert "beforeAll hook failed: no database" in broken.error.message
    assert broken.tests == []
    assert not broken.complete
    assert calls == ["after_all"]
    assert healthy.passed == 1


async def test_after_all_error_is_suite_level(registry: TestRegistry) -> None:
    """An afterAll error becomes a suite error and leaves test results alone."""
    with registry.describe("Suite"):
        registry.after_all(lambda ctx: 1 / 0)
        registry.test("passes", lambda ctx: None)

    results = await run(registry)

    suite = results.suites[0]
    assert suite.passed == 1
    assert suite.failed == 0
    assert suite.error is not None
    assert "afterAll hook failed" in suite.error.message


async def test_state_is_shared_within_suite(registry: TestRegistry) -> None:
    """Hooks and tests of a suite share one state mapping."""
    seen: list[object] = []

    with registry.describe("Suite"):

        @registry.before_all
        def login(ctx: TestContext) -> None:
            ctx.state["token"] = "secret"

        @registry.test("uses token")
        def uses_token(ctx: TestContext) -> None:
            seen.append(ctx.state["token"])
            seen.append(ctx.test)

    await run(registry)

    assert seen == ["secret", "uses token"]


async def test_each_attempt_gets_its_own_client(registry: TestRegistry) -> None:
    """Every attempt receives a fresh HTTP client."""
    clients: list[object] = []

    with registry.describe("Suite"):

        @registry.test("flaky", retry=1)
        def flaky(ctx: TestContext) -> None:
            clients.append(ctx.request)
            assert len(clients) == 2

    await run(registry)

    assert len(clients) == 2
    assert clients[0] is not clients[1]


async def test_summary_counts_and_collector(registry: TestRegistry) -> None:
    """The summary aggregates every status and the collector stores the run."""
    with registry.describe("Suite"):
        registry.test("passes", lambda ctx: None)
        registry.test("fails", lambda ctx: 1 / 0)
        registry.skip("skipped", lambda ctx: None)
        registry.stub("todo")

    runner = TestRunner(RunnerConfig(), registry)
    results = await runner.run()

    summary = results.summary
    assert (summary.passed, summary.failed, summary.skipped, summary.todo) == (
        1,
        1,
        1,
        1,
    )
    assert summary.total == 4
    assert summary.started_at is not None
    assert summary.finished_at is not None
    assert runner.collector.get_summary().total == 4
    assert runner.collector.has_failures()


async def test_governance_disabled_by_default(registry: TestRegistry) -> None:
    """Without enabled: true no violations are recorded, even after a request."""
    with registry.describe("Suite"):

        @registry.test("calls api")
        async def calls_api(ctx: TestContext) -> None:
            await ctx.request.get("http://api.test/users")

    with aioresponses() as m:
        m.get("http://api.test/users", status=418, payload={"created": True})
        runner = TestRunner(
            RunnerConfig.model_validate(
                {"governance": {"rules": {"versioning": {}, "http-methods": {}}}}
            ),
            registry,
        )
        results = await runner.run()

    result = results.suites[0].tests[0]
    assert result.status == "passed"
    assert result.status_code == 418
    assert result.violations == []
    assert runner.collector.get_results().governance.warnings == []


async def test_inspection_records_violations_and_findings(
    registry: TestRegistry,
) -> None:
    """Enabled governance and security inspect the last exchange of a test."""
    with registry.describe("Users"):

        @registry.test("list users", endpoint="http://api.test/users")
        async def list_users(ctx: TestContext) -> None:
            await ctx.request.get("http://api.test/users")

    config = RunnerConfig.model_validate(
        {
            "governance": {"enabled": True, "rules": {"versioning": {}}},
            "security": {"enabled": True, "checks": {"sensitive-data": {}}},
        }
    )

    with aioresponses() as m:
        m.get("http://api.test/users", payload={"password": "hunter2"})
        runner = TestRunner(config, registry)
        results = await runner.run()

    result = results.suites[0].tests[0]
    assert [v.category for v in result.violations] == ["missing-api-version"]
    assert result.violations[0].suite == "Users"
    assert result.violations[0].test == "list users"
    assert [f.category for f in result.findings] == ["password"]

    collected = runner.collector.get_results()
    assert len(collected.governance.warnings) == 1
    assert len(collected.security.findings) == 1


async def test_inspection_skipped_without_exchange(registry: TestRegistry) -> None:
    """A test that made no request is not inspected."""
    with registry.describe("Suite"):
        registry.test("no request", lambda ctx: None)

    results = await run(
        registry, governance={"enabled": True, "rules": {"versioning": {}}}
    )

    result = results.suites[0].tests[0]
    assert result.violations == []
    assert result.status_code is None


async def test_throwing_rule_does_not_hide_other_violations(
    registry: TestRegistry,
) -> None:
    """A rule that raises is isolated; other rules still report."""

    class BrokenRule:
        severity = "error"

        async def evaluate(
            self,
            request: CapturedRequest,
            response: CapturedResponse,
            endpoint: str,
            context: InspectionContext,
        ) -> list[RuleViolation]:
            raise RuntimeError("rule bug")

    with registry.describe("Suite"):

        @registry.test("calls api")
        async def calls_api(ctx: TestContext) -> None:
            await ctx.request.get("http://api.test/users")

    runner = TestRunner(
        RunnerConfig(
            governance=GovernanceConfig(enabled=True, rules={"versioning": {}})
        ),
        registry,
    )
    runner.governance.add_rule("broken", BrokenRule())

    with aioresponses() as m:
        m.get("http://api.test/users", payload={})
        results = await runner.run()

    result = results.suites[0].tests[0]
    assert result.status == "passed"
    assert [v.rule for v in result.violations] == ["versioning"]


async def test_parallel_flag_is_accepted(registry: TestRegistry) -> None:
    """parallel is accepted and the run proceeds sequentially."""
    order: list[str] = []

    with registry.describe("Suite"):
        registry.test("first", lambda ctx: order.append("first"))
        registry.test("second", lambda ctx: order.append("second"))

    await run(registry, parallel=True)

    assert order == ["first", "second"]


async def test_cancelled_body_fails_only_that_test(registry: TestRegistry) -> None:
    """A body raising CancelledError fails that test and the run goes on."""
    with registry.describe("Suite"):

        @registry.test("raises cancelled")
        async def raises_cancelled(ctx: TestContext) -> None:
            raise asyncio.CancelledError()

        @registry.test("awaits its own cancelled task")
        async def awaits_cancelled(ctx: TestContext) -> None:
            task = asyncio.ensure_future(asyncio.sleep(1))
            task.cancel()
            await task

        registry.test("passes", lambda ctx: None)

    results = await run(registry)

    tests = results.suites[0].tests
    assert [t.status for t in tests] == ["failed", "failed", "passed"]
    assert tests[0].error is not None
    assert tests[0].error.message == "Test body was cancelled"
    assert results.summary.failed == 2


async def test_cancelled_sync_body_and_hook(registry: TestRegistry) -> None:
    """CancelledError from a plain function or a hook is a test failure."""

    def cancel(ctx: TestContext) -> None:
        raise asyncio.CancelledError()

    with registry.describe("Body"):
        registry.test("sync cancel", cancel)

    with registry.describe("Hook"):
        registry.before_each(cancel)
        registry.test("never runs", lambda ctx: None)

    results = await run(registry)

    body, hook = (suite.tests[0] for suite in results.suites)
    assert body.status == "failed"
    assert body.error is not None
    assert body.error.type == "CancelledError"
    assert hook.status == "failed"
    assert hook.error is not None
    assert "beforeEach hook failed: CancelledError" in hook.error.message


async def test_cancelling_the_run_still_propagates(registry: TestRegistry) -> None:
    """Cancelling the task that drives the run is not swallowed."""
    started = asyncio.Event()

    with registry.describe("Suite"):

        @registry.test("slow")
        async def slow(ctx: TestContext) -> None:
            started.set()
            await asyncio.sleep(0.05)

    task = asyncio.ensure_future(run(registry))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0.1)


async def test_reused_runner_reports_only_latest_run(registry: TestRegistry) -> None:
    """A second run does not carry the first run's violations."""
    with registry.describe("Users"):

        @registry.test("list users")
        async def list_users(ctx: TestContext) -> None:
            await ctx.request.get("http://api.test/users")

    runner = TestRunner(
        RunnerConfig(
            governance=GovernanceConfig(enabled=True, rules={"versioning": {}})
        ),
        registry,
    )

    with aioresponses() as m:
        m.get("http://api.test/users", payload={}, repeat=True)
        await runner.run()
        await runner.run()

    collected = runner.collector.get_results()
    assert len(collected.governance.warnings) == 1
    assert collected.summary.total == 1
