"""OneShip: one interface for many couriers, driven by declarative workflows."""

from .workflow import (
    DEFAULT_CREATE_ORDER_WORKFLOW,
    DEFAULT_FREE_SHIPPING_WORKFLOW,
    RetryPolicy,
    StepExecutionContext,
    StepExecutor,
    StepResult,
    StepType,
    WorkflowDefinition,
    WorkflowEngine,
    WorkflowExecution,
    WorkflowStep,
    WorkflowStepDefinition,
    WorkflowStepStatus,
    load_workflow,
)
from .persistence import get_repository
from .providers import BaseProvider, ProviderCapability, ProviderConfig, ProviderRegistry
from .webhooks import WebhookDispatcher
from .service import ShippingService

__version__ = "0.1.0"
__all__ = [
    "BaseProvider",
    "DEFAULT_CREATE_ORDER_WORKFLOW",
    "DEFAULT_FREE_SHIPPING_WORKFLOW",
    "ProviderCapability",
    "ProviderConfig",
    "ProviderRegistry",
    "RetryPolicy",
    "ShippingService",
    "StepExecutionContext",
    "StepExecutor",
    "StepResult",
    "StepType",
    "WebhookDispatcher",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowExecution",
    "WorkflowStep",
    "WorkflowStepDefinition",
    "WorkflowStepStatus",
    "get_repository",
    "load_workflow",
]
