"""Execution-time records produced by the workflow engine."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..contracts import utcnow


class WorkflowStepStatus(str, Enum):
    """Status of a step or of a whole execution.

    ``PENDING`` and ``SKIPPED`` are reserved; the engine itself only moves
    records from ``RUNNING`` to ``SUCCESS`` or ``FAILED``.
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowStepStatus.SUCCESS, WorkflowStepStatus.FAILED)


def generate_execution_id() -> str:
    return f"exec-{uuid.uuid4().hex}"


class StepResult(BaseModel):
    """Value returned by a step executor.

    ``next_step_id`` is the executor's own routing hint. The engine records
    it in the logs but branches on the step status alone.
    """

    output: Optional[Dict[str, Any]] = None
    next_step_id: Optional[str] = None


class WorkflowStep(BaseModel):
    """Record of one executed step."""

    id: str
    name: str
    status: WorkflowStepStatus = WorkflowStepStatus.RUNNING
    provider: Optional[str] = None
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    attempts: int = 0
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class WorkflowExecution(BaseModel):
    """One run of a workflow and its ordered trace of steps."""

    id: str = Field(default_factory=generate_execution_id)
    workflow_id: str
    order_id: Optional[str] = None
    status: WorkflowStepStatus = WorkflowStepStatus.RUNNING
    steps: List[WorkflowStep] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.status.is_terminal

    def find_step(self, step_id: str) -> Optional[WorkflowStep]:
        """Return the first recorded step with ``step_id``."""
        return next((s for s in self.steps if s.id == step_id), None)
