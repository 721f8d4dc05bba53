"""Declarative workflow definitions.

A workflow is an ordered list of typed steps linked by ``on_success`` and
``on_failure`` edges. Execution always starts at the first step in the list.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator


class StepType(str, Enum):
    """Built-in step types.

    Custom executors may be registered under other names, so step
    definitions store ``type`` as a plain string.
    """

    CREATE_ORDER = "create_order"
    QUERY_ORDER = "query_order"
    CHECK_FREE_SHIPPING = "check_free_shipping"
    WEBHOOK = "webhook"
    DELAY = "delay"
    CONDITION = "condition"


class WorkflowTrigger(str, Enum):
    """What starts a workflow. Informational for callers only."""

    MANUAL = "manual"
    ORDER_CREATED = "order_created"
    ORDER_UPDATED = "order_updated"
    FREE_SHIPPING_DETECTED = "free_shipping_detected"


class RetryPolicy(BaseModel):
    """Fixed-delay retry policy for a single step."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=1, ge=1)
    delay_millis: int = Field(default=0, ge=0)


class WorkflowStepDefinition(BaseModel):
    """Defines one step in a workflow."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str
    provider: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    on_success: Optional[str] = None
    on_failure: Optional[str] = None
    retry: Optional[RetryPolicy] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("type"), StepType):
            data = {**data, "type": data["type"].value}
        return data


class WorkflowDefinition(BaseModel):
    """A named graph of steps."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str] = None
    steps: List[WorkflowStepDefinition]
    trigger: WorkflowTrigger = WorkflowTrigger.MANUAL

    @model_validator(mode="after")
    def _check_steps(self) -> "WorkflowDefinition":
        if not self.steps:
            raise ValueError(f"Workflow {self.id} must contain at least one step")
        seen = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"Workflow {self.id} has duplicate step id {step.id!r}")
            seen.add(step.id)
        return self

    @property
    def entry_step(self) -> WorkflowStepDefinition:
        return self.steps[0]

    def get_step(self, step_id: str) -> Optional[WorkflowStepDefinition]:
        """Return the step with ``step_id`` or ``None`` if it does not exist."""
        return next((s for s in self.steps if s.id == step_id), None)

    def with_webhook_url(self, url: str) -> "WorkflowDefinition":
        """Return a copy whose webhook steps post to ``url``."""
        steps = [
            step.model_copy(update={"config": {**step.config, "url": url}})
            if step.type == StepType.WEBHOOK
            else step
            for step in self.steps
        ]
        return self.model_copy(update={"steps": steps})


def load_workflow(path: Union[str, Path]) -> WorkflowDefinition:
    """Load a workflow definition from a YAML or JSON file."""

    path = Path(path)
    text = path.read_text()
    if path.suffix == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text) or {}
    return WorkflowDefinition.model_validate(data)


DEFAULT_CREATE_ORDER_WORKFLOW = WorkflowDefinition(
    id="default-create-order",
    name="Default Create Order Workflow",
    description="Standard workflow for creating a shipping order",
    trigger=WorkflowTrigger.MANUAL,
    steps=[
        WorkflowStepDefinition(
            id="step-1",
            name="Create Order",
            type=StepType.CREATE_ORDER,
            on_success="step-2",
        ),
        WorkflowStepDefinition(
            id="step-2",
            name="Send Webhook",
            type=StepType.WEBHOOK,
            config={"event": "order.created"},
            on_failure="step-3",
        ),
        WorkflowStepDefinition(
            id="step-3",
            name="Handle Failure",
            type=StepType.WEBHOOK,
            config={"event": "order.failed"},
        ),
    ],
)

DEFAULT_FREE_SHIPPING_WORKFLOW = WorkflowDefinition(
    id="default-free-shipping",
    name="Default Free Shipping Check Workflow",
    description="Workflow for checking and notifying about free shipping",
    trigger=WorkflowTrigger.FREE_SHIPPING_DETECTED,
    steps=[
        WorkflowStepDefinition(
            id="step-1",
            name="Check Free Shipping",
            type=StepType.CHECK_FREE_SHIPPING,
            on_success="step-2",
        ),
        WorkflowStepDefinition(
            id="step-2",
            name="Notify Webhook",
            type=StepType.WEBHOOK,
            config={"event": "free_shipping.detected"},
        ),
    ],
)

DEFAULT_WORKFLOWS = {
    wf.id: wf for wf in (DEFAULT_CREATE_ORDER_WORKFLOW, DEFAULT_FREE_SHIPPING_WORKFLOW)
}
