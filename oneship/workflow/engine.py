"""Workflow orchestration engine."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from ..contracts import utcnow
from ..errors import StepConfigurationError
from ..persistence import ExecutionRepository, InMemoryExecutionRepository
from ..utils import retry
from .context import StepExecutionContext
from .definition import WorkflowDefinition, WorkflowStepDefinition
from .executors import ProviderTable, StepExecutor, WebhookCaller, default_executors
from .models import StepResult, WorkflowExecution, WorkflowStep, WorkflowStepStatus

logger = logging.getLogger(__name__)


def _type_key(step_type: Union[str, Enum]) -> str:
    return step_type.value if isinstance(step_type, Enum) else step_type


class WorkflowEngine:
    """Runs workflow definitions as independent background executions.

    :meth:`execute` records a new execution and returns straight away; the
    step graph is walked in an ``asyncio`` task owned by the engine. Callers
    observe progress through :meth:`get_execution` or wait with
    :meth:`wait_for`.

    Usage::

        engine = WorkflowEngine(dispatcher.deliver)
        execution = await engine.execute(workflow, {"provider": "zto"}, providers)
        finished = await engine.wait_for(execution.id)
    """

    def __init__(
        self,
        webhook_caller: WebhookCaller,
        repository: Optional[ExecutionRepository] = None,
    ) -> None:
        self._repository = repository or InMemoryExecutionRepository()
        self._executors: Dict[str, StepExecutor] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        for step_type, executor in default_executors(webhook_caller).items():
            self.register_executor(step_type, executor)

    @property
    def repository(self) -> ExecutionRepository:
        return self._repository

    def register_executor(
        self, step_type: Union[str, Enum], executor: StepExecutor
    ) -> None:
        """Register ``executor`` for ``step_type``. The last registration wins."""
        self._executors[_type_key(step_type)] = executor

    def get_executor(self, step_type: Union[str, Enum]) -> Optional[StepExecutor]:
        return self._executors.get(_type_key(step_type))

    # ------------------------------------------------------------------
    async def execute(
        self,
        workflow: WorkflowDefinition,
        context: Optional[Mapping[str, Any]] = None,
        providers: Optional[ProviderTable] = None,
    ) -> WorkflowExecution:
        """Start ``workflow`` and return its execution record without waiting.

        Args:
            workflow: Definition to run. Execution starts at its first step.
            context: Initial context. It is copied; later changes by the
                caller do not affect the run.
            providers: Provider table keyed by provider id.

        Returns:
            A snapshot of the new execution in ``RUNNING`` state.
        """
        initial = StepExecutionContext.from_initial(context)
        execution = WorkflowExecution(workflow_id=workflow.id, order_id=initial.order_id)
        await self._repository.create_execution(execution)

        task = asyncio.create_task(
            self._run(workflow, execution.id, initial, dict(providers or {})),
            name=f"workflow-{execution.id}",
        )
        self._tasks[execution.id] = task
        task.add_done_callback(lambda _t, eid=execution.id: self._tasks.pop(eid, None))

        logger.info(f"Started workflow {workflow.id} as execution {execution.id}")
        return execution

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Return a copy of the execution record, or ``None`` if unknown."""
        return await self._repository.get_execution(execution_id)

    async def list_executions(self) -> List[WorkflowExecution]:
        return await self._repository.list_executions()

    async def wait_for(
        self, execution_id: str, timeout: Optional[float] = None
    ) -> Optional[WorkflowExecution]:
        """Wait until the execution reaches a terminal state and return it.

        Raises:
            asyncio.TimeoutError: If ``timeout`` seconds pass first. The
                execution itself keeps running.
        """
        task = self._tasks.get(execution_id)
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        return await self.get_execution(execution_id)

    async def join(self) -> None:
        """Wait for every in-flight execution to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()))

    # ------------------------------------------------------------------
    async def _run(
        self,
        workflow: WorkflowDefinition,
        execution_id: str,
        context: StepExecutionContext,
        providers: ProviderTable,
    ) -> None:
        try:
            await self._walk(workflow, execution_id, context, providers)
        except Exception as e:
            logger.exception(
                f"Execution {execution_id} of workflow {workflow.id} aborted: {e}"
            )
            await self._repository.mark_execution_completed(
                execution_id, WorkflowStepStatus.FAILED, error=str(e)
            )

    async def _walk(
        self,
        workflow: WorkflowDefinition,
        execution_id: str,
        context: StepExecutionContext,
        providers: ProviderTable,
    ) -> None:
        completed: List[WorkflowStep] = []
        status = WorkflowStepStatus.RUNNING
        error: Optional[str] = None
        current_step_id: Optional[str] = workflow.steps[0].id

        while current_step_id:
            step_def = workflow.get_step(current_step_id)
            if step_def is None:
                logger.warning(
                    f"Step {current_step_id} not found in workflow {workflow.id}; "
                    f"ending execution {execution_id}"
                )
                break

            context.set_previous_steps(completed)
            step = await self._execute_step(step_def, context, providers, execution_id)
            completed.append(step)
            await self._repository.append_step(execution_id, step)

            if step.status == WorkflowStepStatus.FAILED:
                status = WorkflowStepStatus.FAILED
                error = step.error
                break

            context.merge(step.output)

            if step.status == WorkflowStepStatus.SUCCESS:
                current_step_id = step_def.on_success
            else:
                break

        if status == WorkflowStepStatus.RUNNING:
            status = WorkflowStepStatus.SUCCESS
        await self._repository.mark_execution_completed(
            execution_id, status, error=error, completed_at=utcnow()
        )
        logger.info(
            f"Execution {execution_id} of workflow {workflow.id} finished: {status.value}"
        )

    async def _execute_step(
        self,
        step_def: WorkflowStepDefinition,
        context: StepExecutionContext,
        providers: ProviderTable,
        execution_id: str,
    ) -> WorkflowStep:
        step = WorkflowStep(
            id=step_def.id,
            name=step_def.name,
            provider=step_def.provider,
            input=context.snapshot(),
        )
        try:
            executor = self.get_executor(step_def.type)
            if executor is None:
                raise StepConfigurationError(
                    f"No executor found for step type: {step_def.type}"
                )
            result = await self._run_with_retry(executor, step_def, step, context, providers)
            step.status = WorkflowStepStatus.SUCCESS
            step.output = result.output
            if result.next_step_id != step_def.on_success:
                logger.debug(
                    f"Step {step_def.id} suggested {result.next_step_id!r}; "
                    f"following on_success {step_def.on_success!r}"
                )
        except Exception as e:
            step.status = WorkflowStepStatus.FAILED
            step.error = str(e)
            logger.error(
                f"Step {step_def.id} of execution {execution_id} failed "
                f"after {step.attempts} attempt(s): {e}"
            )
        step.completed_at = utcnow()
        return step

    async def _run_with_retry(
        self,
        executor: StepExecutor,
        step_def: WorkflowStepDefinition,
        step: WorkflowStep,
        context: StepExecutionContext,
        providers: ProviderTable,
    ) -> StepResult:
        limit = retry.max_attempts(step_def.retry)
        while True:
            step.attempts += 1
            try:
                result = await executor.execute(step_def, context, providers)
            except Exception as e:
                if step.attempts >= limit:
                    raise
                logger.warning(
                    f"Step {step_def.id} attempt {step.attempts}/{limit} failed: {e}; retrying"
                )
                await retry.schedule_retry(step_def.retry)
                continue
            if result is None:
                return StepResult()
            if isinstance(result, Mapping):
                return StepResult.model_validate(dict(result))
            return result
