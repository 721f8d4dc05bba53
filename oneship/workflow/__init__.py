"""Workflow definitions, executors and the orchestration engine."""

from .context import StepExecutionContext
from .definition import (
    DEFAULT_CREATE_ORDER_WORKFLOW,
    DEFAULT_FREE_SHIPPING_WORKFLOW,
    DEFAULT_WORKFLOWS,
    RetryPolicy,
    StepType,
    WorkflowDefinition,
    WorkflowStepDefinition,
    WorkflowTrigger,
    load_workflow,
)
from .models import StepResult, WorkflowExecution, WorkflowStep, WorkflowStepStatus
from .executors import StepExecutor
from .engine import WorkflowEngine

__all__ = [
    "DEFAULT_CREATE_ORDER_WORKFLOW",
    "DEFAULT_FREE_SHIPPING_WORKFLOW",
    "DEFAULT_WORKFLOWS",
    "RetryPolicy",
    "StepExecutionContext",
    "StepExecutor",
    "StepResult",
    "StepType",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowExecution",
    "WorkflowStep",
    "WorkflowStepDefinition",
    "WorkflowStepStatus",
    "WorkflowTrigger",
    "load_workflow",
]
