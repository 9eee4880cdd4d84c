from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

from loanledger.app.config.settings import Settings
from loanledger.app.ledger.endpoints import EndpointPool
from loanledger.app.ledger.errors import (
    LedgerError,
    OrderingConflictError,
    RateLimitError,
    RpcTimeoutError,
    SubmissionTimeoutError,
    TransientNetworkError,
    failure_type_for,
)
from loanledger.app.observability import counter, structured_log

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and delays for one class of ledger call.

    Transient failures rotate the endpoint (at most one full cycle of the pool
    per call) and back off exponentially up to ``backoff_cap_seconds``.
    Ordering conflicts get ``ordering_retries`` extra tries after a jittered
    pause. With ``retry_timeouts`` off, a timeout ends the call at once. With
    ``rate_limit_only`` on, only rate limits are retried among transient
    failures; 5xx, resets and bad bodies end the call.
    """

    max_attempts: int = 3
    backoff_seconds: float = 1.0
    backoff_cap_seconds: float = 5.0
    jitter_seconds: float = 0.0
    retry_timeouts: bool = True
    rate_limit_only: bool = False
    ordering_retries: int = 0
    ordering_jitter: Tuple[float, float] = (1.0, 3.0)

    def backoff(self, attempt: int, rng: random.Random) -> float:
        delay = min(self.backoff_cap_seconds, self.backoff_seconds * (2 ** attempt))
        if self.jitter_seconds > 0:
            delay += rng.uniform(0, self.jitter_seconds)
        return delay


def write_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.submit_max_attempts,
        backoff_seconds=settings.submit_backoff_seconds,
        backoff_cap_seconds=settings.submit_backoff_cap_seconds,
        retry_timeouts=False,
        rate_limit_only=True,
        ordering_retries=1,
    )


def read_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.read_max_attempts,
        backoff_seconds=settings.read_backoff_seconds,
        backoff_cap_seconds=settings.read_backoff_cap_seconds,
        jitter_seconds=0.5 if settings.read_backoff_seconds > 0 else 0.0,
        retry_timeouts=True,
    )


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    pool: EndpointPool,
    label: str,
    sleep: Sleeper = asyncio.sleep,
    rng: Optional[random.Random] = None,
    on_error: Optional[Callable[[LedgerError], None]] = None,
) -> T:
    """Run ``operation`` under ``policy``; the last error is re-raised on exhaustion."""
    rng = rng or random.Random()
    rotations_left = len(pool)
    ordering_left = policy.ordering_retries
    attempts = max(1, policy.max_attempts)

    for attempt in range(attempts):
        try:
            return await operation()
        except LedgerError as exc:
            if on_error is not None:
                on_error(exc)
            final = attempt >= attempts - 1
            failure = failure_type_for(exc).value

            if isinstance(exc, (RpcTimeoutError, SubmissionTimeoutError)) and not policy.retry_timeouts:
                raise
            if policy.rate_limit_only and isinstance(exc, TransientNetworkError) and not isinstance(exc, RateLimitError):
                raise
            if isinstance(exc, TransientNetworkError):
                if final:
                    counter("ledger_retry_exhausted", labels={"op": label, "failure": failure})
                    raise
                if rotations_left > 0 and pool.rotate(reason=failure.lower()):
                    rotations_left -= 1
                delay = policy.backoff(attempt, rng)
            elif isinstance(exc, OrderingConflictError):
                if final or ordering_left <= 0:
                    raise
                ordering_left -= 1
                low, high = policy.ordering_jitter
                delay = rng.uniform(low, high)
            else:
                raise

            structured_log(
                {
                    "type": "ledger_retry",
                    "op": label,
                    "attempt": attempt + 1,
                    "max_attempts": attempts,
                    "failure": failure,
                    "delay_s": round(delay, 3),
                },
                level=logging.WARNING,
            )
            await sleep(delay)

    raise AssertionError("unreachable: retry loop exited without result")  # pragma: no cover


async def enforce_timeout(coro_fn: Callable[[], Awaitable[T]], timeout_seconds: float, *, label: str) -> T:
    try:
        return await asyncio.wait_for(coro_fn(), timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise SubmissionTimeoutError(f"{label}: no transaction hash within {timeout_seconds:g}s") from exc


__all__ = [
    "RetryPolicy",
    "Sleeper",
    "write_policy",
    "read_policy",
    "run_with_retry",
    "enforce_timeout",
]
