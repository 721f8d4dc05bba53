"""Repository abstraction for workflow execution records."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ..workflow.models import WorkflowExecution, WorkflowStep, WorkflowStepStatus


class ExecutionRepository(Protocol):
    """Protocol for execution storage backends.

    Readers always receive copies; only the engine running an execution
    writes to its record.
    """

    async def create_execution(self, execution: WorkflowExecution) -> None:
        """Store a newly started execution."""

    async def append_step(self, execution_id: str, step: WorkflowStep) -> None:
        """Append a finished step to the execution's trace."""

    async def mark_execution_completed(
        self,
        execution_id: str,
        status: WorkflowStepStatus,
        error: Optional[str] = None,
        completed_at: Optional[datetime] = None,
    ) -> None:
        """Record the terminal status of an execution."""

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Retrieve an execution by id."""

    async def list_executions(self) -> list[WorkflowExecution]:
        """Return all stored executions."""
