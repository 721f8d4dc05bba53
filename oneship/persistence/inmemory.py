"""In-memory implementation of the execution repository."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Dict, Optional

from ..contracts import utcnow
from ..workflow.models import WorkflowExecution, WorkflowStep, WorkflowStepStatus
from .repository import ExecutionRepository


def _copy_step(step: WorkflowStep) -> WorkflowStep:
    # Context values are shared, not copied: they may hold arbitrary objects.
    return step.model_copy(
        update={
            "input": dict(step.input),
            "output": dict(step.output) if step.output is not None else None,
        }
    )


def _copy_execution(execution: WorkflowExecution) -> WorkflowExecution:
    return execution.model_copy(
        update={"steps": [_copy_step(step) for step in execution.steps]}
    )


class InMemoryExecutionRepository(ExecutionRepository):
    """Store execution records in local memory.

    Records are copied on the way in and out, down to the step ``input`` and
    ``output`` mappings. The values inside those mappings are shared with
    the running workflow. Data is not persisted across process restarts.
    """

    def __init__(self) -> None:
        self._executions: Dict[str, WorkflowExecution] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    async def create_execution(self, execution: WorkflowExecution) -> None:
        async with self._lock:
            if execution.id in self._executions:
                raise ValueError(f"Execution {execution.id} already exists")
            self._executions[execution.id] = _copy_execution(execution)

    async def append_step(self, execution_id: str, step: WorkflowStep) -> None:
        async with self._lock:
            execution = self._executions.get(execution_id)
            if execution:
                execution.steps.append(_copy_step(step))

    async def mark_execution_completed(
        self,
        execution_id: str,
        status: WorkflowStepStatus,
        error: Optional[str] = None,
        completed_at: Optional[datetime] = None,
    ) -> None:
        async with self._lock:
            execution = self._executions.get(execution_id)
            if execution:
                execution.status = status
                if error is not None:
                    execution.error = error
                execution.completed_at = completed_at or utcnow()

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        async with self._lock:
            execution = self._executions.get(execution_id)
            return _copy_execution(execution) if execution else None

    async def list_executions(self) -> list[WorkflowExecution]:
        async with self._lock:
            return [_copy_execution(e) for e in self._executions.values()]
