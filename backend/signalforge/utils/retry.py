"""
SignalForge — Retry

Backoff for history downloads. A call is retried when it raises a transient
error, or when it returns a payload that `retry_if` flags as unusable.
Yahoo answers rate limiting with an empty frame as often as with an error,
so both count as transient.
"""

from __future__ import annotations

import functools
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Type

import structlog

log = structlog.get_logger(__name__)

TRANSIENT_ERRORS: tuple[Type[Exception], ...] = (
    ConnectionError,
    TimeoutError,
    OSError,
)


@dataclass(frozen=True)
class Backoff:
    """Exponential delay schedule, capped at max_delay.

    With jitter on, each delay is scaled into [0.5x, 1x] so parallel scans
    do not hit the provider in lockstep.
    """
    base_delay: float = 1.0
    max_delay: float = 30.0
    factor: float = 2.0
    jitter: bool = True

    def delay(self, attempt: int) -> float:
        delay = min(self.base_delay * self.factor ** (attempt - 1), self.max_delay)
        return delay * random.uniform(0.5, 1.0) if self.jitter else delay


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    jitter: bool = True,
    retry_on: tuple[Type[Exception], ...] = TRANSIENT_ERRORS,
    retry_if: Optional[Callable[[Any], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """Retry a download on transient errors or unusable responses.

    Args:
        max_attempts: Total attempts, including the first.
        retry_on: Exception types treated as transient. Others propagate
            immediately.
        retry_if: Predicate on the return value; True means the response
            is unusable (empty or throttled) and worth another attempt.
            Once attempts run out the last response is returned as-is and
            the caller decides what an unusable payload means.
        sleep: Sleep function, replaceable in tests.

    Usage::

        fetch = with_retry(max_attempts=3, retry_if=lambda df: df.empty)(download)
    """
    backoff = Backoff(base_delay=base_delay, max_delay=max_delay, jitter=jitter)

    def decorator(func: Callable) -> Callable:
        name = func.__qualname__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 1
            while True:
                try:
                    result = func(*args, **kwargs)
                except retry_on as exc:
                    if attempt >= max_attempts:
                        log.error("retry_exhausted", func=name, attempts=attempt, error=str(exc))
                        raise
                    reason = f"{type(exc).__name__}: {exc}"
                else:
                    if retry_if is None or not retry_if(result):
                        return result
                    if attempt >= max_attempts:
                        log.warning("retry_exhausted", func=name, attempts=attempt, error="unusable response")
                        return result
                    reason = "unusable response"

                delay = backoff.delay(attempt)
                log.warning(
                    "retry_scheduled",
                    func=name,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    delay=round(delay, 2),
                    reason=reason,
                )
                sleep(delay)
                attempt += 1

        return wrapper

    return decorator
