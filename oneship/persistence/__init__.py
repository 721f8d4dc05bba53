"""Storage for workflow execution records."""

from __future__ import annotations

import os
from typing import Optional

from ..config import OneShipConfig, load_config
from .inmemory import InMemoryExecutionRepository
from .repository import ExecutionRepository


def get_repository(
    backend: Optional[str] = None, config: Optional[OneShipConfig] = None
) -> ExecutionRepository:
    """Factory function to obtain an execution repository.

    The backend is selected from ``backend``, the ``ONESHIP_REPOSITORY``
    environment variable or ``config.repository.backend``, in that order.
    Each call returns a fresh repository.
    """

    config = config or load_config()
    backend = (
        backend or os.getenv("ONESHIP_REPOSITORY") or config.repository.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryExecutionRepository()
    raise ValueError(f"Unsupported repository backend: {backend}")


__all__ = [
    "ExecutionRepository",
    "InMemoryExecutionRepository",
    "get_repository",
]
