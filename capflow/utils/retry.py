from __future__ import annotations

import asyncio
import random

from ..constants import DEFAULT_BACKOFF_BASE, DEFAULT_BACKOFF_JITTER


def compute_backoff(
    attempt: int,
    base: float = DEFAULT_BACKOFF_BASE,
    jitter: float = DEFAULT_BACKOFF_JITTER,
) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(
    attempt: int,
    base: float = DEFAULT_BACKOFF_BASE,
    jitter: float = DEFAULT_BACKOFF_JITTER,
) -> float:
    """Sleep for computed backoff delay before retrying and return the delay."""
    delay = compute_backoff(attempt, base=base, jitter=jitter)
    await asyncio.sleep(delay)
    return delay
