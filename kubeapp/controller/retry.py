"""Bounded retry for optimistic-concurrency writes.

Mirrors the client-go ``RetryOnConflict`` helper: the whole read-modify-write
closure is re-run when the store reports a resourceVersion conflict, with a
small backoff between attempts.  Any other error, or running out of steps,
is raised to the caller.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from kubeapp.errors import ConflictError

T = TypeVar("T")


@dataclass(frozen=True)
class Backoff:
    """Delay schedule: ``delay * factor**n`` seconds, each stretched by up to ``jitter``."""

    steps: int = 5
    delay: float = 0.01
    factor: float = 1.0
    jitter: float = 0.1

    def delays(self) -> list[float]:
        out = []
        current = self.delay
        for _ in range(max(self.steps - 1, 0)):
            stretch = 1.0 + random.random() * self.jitter if self.jitter > 0 else 1.0
            out.append(current * stretch)
            current *= self.factor
        return out


DEFAULT_RETRY = Backoff()


async def retry_on_conflict(
    fn: Callable[[], Awaitable[T]],
    backoff: Backoff = DEFAULT_RETRY,
    on_conflict: Callable[[int, ConflictError], None] | None = None,
) -> T:
    """Run *fn* until it succeeds or conflicts ``backoff.steps`` times.

    Raises:
        ConflictError: every attempt conflicted.
    """
    delays = backoff.delays()
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn()
        except ConflictError as exc:
            if on_conflict is not None:
                on_conflict(attempt, exc)
            if attempt > len(delays):
                raise
            await asyncio.sleep(delays[attempt - 1])
