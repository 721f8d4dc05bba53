from __future__ import annotations

import asyncio
from typing import Optional

from ..workflow.definition import RetryPolicy

DEFAULT_RETRY_POLICY = RetryPolicy()


def max_attempts(policy: Optional[RetryPolicy]) -> int:
    """Total number of tries allowed by ``policy`` (1 when there is none)."""
    return (policy or DEFAULT_RETRY_POLICY).max_attempts


def retry_delay_seconds(policy: Optional[RetryPolicy]) -> float:
    """Fixed delay between attempts, in seconds."""
    return (policy or DEFAULT_RETRY_POLICY).delay_millis / 1000.0


async def schedule_retry(policy: Optional[RetryPolicy]) -> None:
    """Sleep for the policy's delay before retrying."""
    delay = retry_delay_seconds(policy)
    if delay > 0:
        await asyncio.sleep(delay)
