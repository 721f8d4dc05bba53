"""Workflow engine tests."""

import asyncio
import time

import pytest

from oneship.persistence import InMemoryExecutionRepository
from oneship.workflow import (
    RetryPolicy,
    StepExecutor,
    StepResult,
    WorkflowDefinition,
    WorkflowEngine,
    WorkflowStepDefinition,
    WorkflowStepStatus,
)


class RecordingExecutor(StepExecutor):
    """Returns ``step.config['output']`` and records the context it saw."""

    def __init__(self):
        self.seen = []

    async def execute(self, step, context, providers):
        self.seen.append((step.id, dict(context)))
        if "sleep" in step.config:
            await asyncio.sleep(step.config["sleep"])
        return StepResult(output=step.config.get("output"), next_step_id=step.on_success)


class FlakyExecutor(StepExecutor):
    """Fails ``failures`` times before succeeding; records call times."""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = []

    async def execute(self, step, context, providers):
        self.calls.append(time.monotonic())
        if len(self.calls) <= self.failures:
            raise RuntimeError(f"transient failure {len(self.calls)}")
        return StepResult(output={"ok": True})


def _step(step_id, step_type="record", **kwargs):
    return WorkflowStepDefinition(id=step_id, name=step_id.upper(), type=step_type, **kwargs)


def _workflow(*steps, wf_id="wf"):
    return WorkflowDefinition(id=wf_id, name=wf_id, steps=list(steps))


@pytest.fixture
def engine(webhook):
    engine = WorkflowEngine(webhook)
    engine.register_executor("record", RecordingExecutor())
    return engine


async def _run(engine, workflow, context=None, providers=None):
    execution = await engine.execute(workflow, context or {}, providers or {})
    return await engine.wait_for(execution.id, timeout=5)


@pytest.mark.asyncio
async def test_single_step_success(engine):
    result = await _run(engine, _workflow(_step("a", config={"output": {"x": 1}})))

    assert result.status == WorkflowStepStatus.SUCCESS
    assert len(result.steps) == 1
    step = result.steps[0]
    assert step.status == WorkflowStepStatus.SUCCESS
    assert step.name == "A"
    assert step.output == {"x": 1}
    assert step.attempts == 1
    assert step.completed_at >= step.started_at
    assert result.completed_at is not None
    assert result.error is None


@pytest.mark.asyncio
async def test_execute_returns_before_completion(engine):
    gate = asyncio.Event()

    class Blocking(StepExecutor):
        async def execute(self, step, context, providers):
            await gate.wait()
            return StepResult(output={"done": True})

    engine.register_executor("block", Blocking())
    execution = await engine.execute(_workflow(_step("a", "block")), {"order_id": "o-9"}, {})

    assert execution.status == WorkflowStepStatus.RUNNING
    assert execution.order_id == "o-9"
    assert execution.id.startswith("exec-")
    running = await engine.get_execution(execution.id)
    assert running.status == WorkflowStepStatus.RUNNING
    assert running.steps == []

    gate.set()
    finished = await engine.wait_for(execution.id, timeout=5)
    assert finished.status == WorkflowStepStatus.SUCCESS


@pytest.mark.asyncio
@pytest.mark.parametrize("attempts", [1, 2, 4])
async def test_failing_executor_invoked_exactly_max_attempts(engine, attempts):
    flaky = FlakyExecutor(failures=10)
    engine.register_executor("flaky", flaky)
    wf = _workflow(_step("a", "flaky", retry=RetryPolicy(max_attempts=attempts), on_failure="b"), _step("b"))

    result = await _run(engine, wf)

    assert len(flaky.calls) == attempts
    assert result.status == WorkflowStepStatus.FAILED
    assert [s.id for s in result.steps] == ["a"]
    assert result.steps[0].status == WorkflowStepStatus.FAILED
    assert result.steps[0].attempts == attempts
    assert result.steps[0].error == f"transient failure {attempts}"
    assert result.error == result.steps[0].error


@pytest.mark.asyncio
async def test_retry_succeeds_within_budget(engine):
    flaky = FlakyExecutor(failures=2)
    engine.register_executor("flaky", flaky)
    result = await _run(engine, _workflow(_step("a", "flaky", retry=RetryPolicy(max_attempts=3))))

    assert result.status == WorkflowStepStatus.SUCCESS
    assert result.steps[0].attempts == 3
    assert result.steps[0].output == {"ok": True}


@pytest.mark.asyncio
async def test_retry_waits_delay_between_attempts(engine):
    flaky = FlakyExecutor(failures=2)
    engine.register_executor("flaky", flaky)
    wf = _workflow(_step("a", "flaky", retry=RetryPolicy(max_attempts=3, delay_millis=50)))

    await _run(engine, wf)

    gaps = [b - a for a, b in zip(flaky.calls, flaky.calls[1:])]
    assert len(gaps) == 2
    assert all(gap >= 0.045 for gap in gaps)


@pytest.mark.asyncio
async def test_retry_wait_goes_through_schedule_retry(engine, monkeypatch):
    waits = []

    async def fake_schedule_retry(policy):
        waits.append(policy.delay_millis)

    monkeypatch.setattr("oneship.utils.retry.schedule_retry", fake_schedule_retry)
    engine.register_executor("flaky", FlakyExecutor(failures=2))
    wf = _workflow(_step("a", "flaky", retry=RetryPolicy(max_attempts=3, delay_millis=60000)))

    result = await _run(engine, wf)
    assert result.status == WorkflowStepStatus.SUCCESS
    assert waits == [60000, 60000]


@pytest.mark.asyncio
async def test_context_merge_last_write_wins(engine):
    recorder = engine.get_executor("record")
    wf = _workflow(
        _step("a", config={"output": {"x": 1, "from_a": True}}, on_success="b"),
        _step("b", config={"output": {"x": 2}}, on_success="c"),
        _step("c"),
    )
    result = await _run(engine, wf, {"x": 0})

    seen = dict(recorder.seen)
    assert seen["b"]["x"] == 1
    assert seen["c"]["x"] == 2
    assert seen["c"]["from_a"] is True
    # step input is the context snapshot at step start
    assert result.steps[2].input["x"] == 2
    assert result.steps[0].input == {"x": 0}


@pytest.mark.asyncio
async def test_initial_context_is_cloned(engine):
    initial = {"x": 0}
    await _run(engine, _workflow(_step("a", config={"output": {"x": 5}})), initial)
    assert initial == {"x": 0}


@pytest.mark.asyncio
async def test_previous_steps_visible_to_executors(engine):
    trace = []

    class Tracing(StepExecutor):
        async def execute(self, step, context, providers):
            trace.append([s.id for s in context.previous_steps])
            return StepResult()

    engine.register_executor("trace", Tracing())
    await _run(engine, _workflow(_step("a", "trace", on_success="b"), _step("b", "trace")))
    assert trace == [[], ["a"]]


@pytest.mark.asyncio
async def test_unresolvable_on_success_ends_with_success(engine):
    result = await _run(engine, _workflow(_step("a", on_success="does-not-exist")))
    assert result.status == WorkflowStepStatus.SUCCESS
    assert [s.id for s in result.steps] == ["a"]


@pytest.mark.asyncio
async def test_execution_starts_at_first_listed_step(engine):
    wf = _workflow(_step("second", on_success="first"), _step("first"))
    result = await _run(engine, wf)
    assert [s.id for s in result.steps] == ["second", "first"]


@pytest.mark.asyncio
async def test_failed_step_stops_walk_without_following_on_failure(engine):
    engine.register_executor("flaky", FlakyExecutor(failures=1))
    wf = _workflow(_step("a", "flaky", on_success="b", on_failure="c"), _step("b"), _step("c"))
    result = await _run(engine, wf)

    assert result.status == WorkflowStepStatus.FAILED
    assert [s.id for s in result.steps] == ["a"]
    assert result.error == "transient failure 1"


@pytest.mark.asyncio
async def test_unknown_step_type_fails_immediately(engine):
    result = await _run(engine, _workflow(_step("cond", "condition")))

    assert result.status == WorkflowStepStatus.FAILED
    assert result.steps[0].attempts == 0
    assert result.error == "No executor found for step type: condition"


@pytest.mark.asyncio
async def test_configuration_errors_consume_retry_budget(engine, providers):
    wf = _workflow(_step("create", "create_order", retry=RetryPolicy(max_attempts=3)))
    result = await _run(engine, wf, {"input": {}}, providers)

    assert result.status == WorkflowStepStatus.FAILED
    assert result.steps[0].attempts == 3
    assert "Provider is required" in result.error


@pytest.mark.asyncio
async def test_register_executor_overrides_builtin(engine, webhook):
    class FakeWebhook(StepExecutor):
        async def execute(self, step, context, providers):
            return StepResult(output={"success": "custom"})

    engine.register_executor("webhook", FakeWebhook())
    result = await _run(engine, _workflow(_step("hook", "webhook", config={"url": "https://x"})))
    assert result.steps[0].output == {"success": "custom"}
    assert webhook.calls == []


@pytest.mark.asyncio
async def test_executor_may_return_mapping_or_none(engine):
    class Loose(StepExecutor):
        async def execute(self, step, context, providers):
            return {"output": {"v": 1}} if step.id == "a" else None

    engine.register_executor("loose", Loose())
    result = await _run(engine, _workflow(_step("a", "loose", on_success="b"), _step("b", "loose")))
    assert result.status == WorkflowStepStatus.SUCCESS
    assert result.steps[0].output == {"v": 1}
    assert result.steps[1].output is None


@pytest.mark.asyncio
async def test_create_order_then_failed_webhook_scenario(webhook, providers, order_input):
    webhook.fail = True
    engine = WorkflowEngine(webhook)
    wf = _workflow(
        _step("s1", "create_order", on_success="s2"),
        _step("s2", "webhook", config={"url": "https://hooks.example.com", "event": "order.created"}, on_failure="s3"),
        _step("s3", "webhook", config={"url": "https://hooks.example.com", "event": "order.failed"}),
    )
    result = await _run(engine, wf, {"provider": "zto", "input": order_input}, providers)

    assert result.status == WorkflowStepStatus.SUCCESS
    assert [s.id for s in result.steps] == ["s1", "s2"]
    assert [s.status for s in result.steps] == [WorkflowStepStatus.SUCCESS] * 2
    assert result.steps[1].output == {"success": False, "error": "endpoint unreachable"}
    # s2 saw the order created by s1 in its context
    assert result.steps[1].input["order"].provider == "zto"
    assert result.steps[1].input["tracking_number"] == result.steps[0].output["tracking_number"]
    assert len(webhook.calls) == 1


@pytest.mark.asyncio
async def test_webhook_failure_follows_on_success_when_set(webhook):
    webhook.fail = True
    engine = WorkflowEngine(webhook)
    wf = _workflow(
        _step("s2", "webhook", config={"url": "https://a"}, on_success="s3", on_failure="s4"),
        _step("s3", "webhook", config={"url": "https://b"}),
        _step("s4", "webhook", config={"url": "https://c"}),
    )
    result = await _run(engine, wf)
    assert [s.id for s in result.steps] == ["s2", "s3"]
    assert [url for url, _ in webhook.calls] == ["https://a", "https://b"]


@pytest.mark.asyncio
async def test_check_free_shipping_unsupported_provider_scenario(engine, providers):
    recorder = engine.get_executor("record")
    wf = _workflow(
        _step("check", "check_free_shipping", on_success="found", on_failure="missing"),
        _step("found"),
        _step("missing"),
    )
    result = await _run(engine, wf, {"provider": "zto", "order_id": "o-1"}, providers)

    check = result.steps[0]
    assert check.status == WorkflowStepStatus.SUCCESS
    assert check.output == {"notification": None}
    # branching is decided from step status, not from the executor's hint
    assert [s.id for s in result.steps] == ["check", "found"]
    assert recorder.seen[0][1]["notification"] is None


@pytest.mark.asyncio
async def test_concurrent_executions_are_isolated(engine):
    wf_a = _workflow(
        _step("a1", config={"output": {"owner": "A"}, "sleep": 0.02}, on_success="a2"),
        _step("a2", config={"sleep": 0.01}),
        wf_id="wf-a",
    )
    wf_b = _workflow(
        _step("b1", config={"output": {"owner": "B"}, "sleep": 0.01}, on_success="b2"),
        _step("b2", config={"sleep": 0.02}),
        wf_id="wf-b",
    )
    exec_a, exec_b = await asyncio.gather(
        engine.execute(wf_a, {"tag": "a"}, {}),
        engine.execute(wf_b, {"tag": "b"}, {}),
    )
    await engine.join()

    done_a = await engine.get_execution(exec_a.id)
    done_b = await engine.get_execution(exec_b.id)
    assert exec_a.id != exec_b.id
    assert [s.id for s in done_a.steps] == ["a1", "a2"]
    assert [s.id for s in done_b.steps] == ["b1", "b2"]
    assert done_a.steps[1].input == {"tag": "a", "owner": "A"}
    assert done_b.steps[1].input == {"tag": "b", "owner": "B"}


@pytest.mark.asyncio
async def test_walk_fault_becomes_failed_execution(webhook):
    class BrokenRepository(InMemoryExecutionRepository):
        async def append_step(self, execution_id, step):
            raise RuntimeError("storage offline")

    engine = WorkflowEngine(webhook, repository=BrokenRepository())
    engine.register_executor("record", RecordingExecutor())
    result = await _run(engine, _workflow(_step("a")))

    assert result.status == WorkflowStepStatus.FAILED
    assert result.error == "storage offline"
    assert result.completed_at is not None


@pytest.mark.asyncio
async def test_get_execution_unknown_and_copies(engine):
    assert await engine.get_execution("exec-missing") is None

    result = await _run(engine, _workflow(_step("a")))
    result.steps.clear()
    result.status = WorkflowStepStatus.FAILED

    again = await engine.get_execution(result.id)
    assert again.status == WorkflowStepStatus.SUCCESS
    assert len(again.steps) == 1
    assert [e.id for e in await engine.list_executions()] == [result.id]


@pytest.mark.asyncio
async def test_wait_for_timeout_leaves_execution_running(engine):
    gate = asyncio.Event()

    class Blocking(StepExecutor):
        async def execute(self, step, context, providers):
            await gate.wait()
            return StepResult()

    engine.register_executor("block", Blocking())
    execution = await engine.execute(_workflow(_step("a", "block")), {}, {})
    with pytest.raises(asyncio.TimeoutError):
        await engine.wait_for(execution.id, timeout=0.01)

    gate.set()
    finished = await engine.wait_for(execution.id, timeout=5)
    assert finished.status == WorkflowStepStatus.SUCCESS
