"""Mutable state threaded through a single workflow execution."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from .models import WorkflowStep


class StepExecutionContext(dict):
    """Key-value state shared by the steps of one execution.

    Well-known keys are ``order_id``, ``provider`` and ``input``. The trace of
    already finished steps is kept as an attribute rather than a key so that
    it never leaks into step input snapshots or merged outputs.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._previous_steps: Tuple["WorkflowStep", ...] = ()

    @classmethod
    def from_initial(
        cls, initial: Optional[Mapping[str, Any]] = None
    ) -> "StepExecutionContext":
        """Clone the caller-supplied context for a new execution."""
        return cls(dict(initial or {}))

    @property
    def order_id(self) -> Optional[str]:
        return self.get("order_id")

    @property
    def provider(self) -> Optional[str]:
        return self.get("provider")

    @property
    def input(self) -> Dict[str, Any]:
        value = self.get("input")
        return value if isinstance(value, dict) else {}

    @property
    def previous_steps(self) -> Tuple["WorkflowStep", ...]:
        return self._previous_steps

    def set_previous_steps(self, steps: Sequence["WorkflowStep"]) -> None:
        self._previous_steps = tuple(steps)

    def merge(self, output: Optional[Mapping[str, Any]]) -> None:
        """Merge a step output into the context. Later writes win."""
        if output:
            self.update(output)

    def snapshot(self) -> Dict[str, Any]:
        """Shallow copy of the current keys."""
        return dict(self)
