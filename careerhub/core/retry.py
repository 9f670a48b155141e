"""
Bounded exponential-backoff retry policy.

Decoupled from any particular call: the caller supplies the operation and a
predicate deciding which exceptions are worth another attempt.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger("careerhub")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry up to ``max_retries`` extra attempts, sleeping ``base_delay * 2**attempt`` between them."""

    max_retries: int = 2
    base_delay: float = 1.0
    max_delay: float = 30.0
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def compute_backoff(self, attempt: int) -> float:
        """Delay before the retry that follows ``attempt`` (0-based)."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def call(
        self,
        operation: Callable[[int], T],
        *,
        should_retry: Callable[[Exception], bool],
        on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    ) -> T:
        """Run ``operation(attempt)`` until it succeeds or retries are exhausted.

        Exceptions rejected by ``should_retry`` propagate immediately; the last
        retryable exception propagates once the attempt budget is spent.
        """
        attempt = 0
        while True:
            try:
                return operation(attempt)
            except Exception as exc:
                if attempt >= self.max_retries or not should_retry(exc):
                    raise
                delay = self.compute_backoff(attempt)
                if on_retry is not None:
                    on_retry(attempt, exc, delay)
                else:
                    logger.warning(f"retry: attempt {attempt + 1} failed ({exc}); sleeping {delay:.2f}s")
                self.sleep(delay)
                attempt += 1
