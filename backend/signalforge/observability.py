"""
SignalForge — Observability

Structured logging spans for engine stages. Every span logs its duration at
debug level and escalates to a warning when a stage runs slow.

Usage:
    with trace_span("signal_engine.indicators", symbol="AAPL"):
        indicators = engine.compute_indicators(bars)
"""

from __future__ import annotations

import functools
import time
from contextlib import contextmanager
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

# Stages slower than this are logged as warnings
SLOW_SPAN_SECONDS = 1.0


@contextmanager
def trace_span(name: str, **metadata: Any):
    """Context manager timing a code block.

    Args:
        name: Name of the span (e.g., "signal_engine.patterns").
        **metadata: Extra key/values attached to the log events.
    """
    start = time.perf_counter()
    logger.debug("trace_span_start", span_name=name, **metadata)
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logger.debug(
            "trace_span_end",
            span_name=name,
            elapsed_ms=round(elapsed * 1000, 2),
            **metadata,
        )
        if elapsed > SLOW_SPAN_SECONDS:
            logger.warning("trace_span_slow", span_name=name, elapsed_s=round(elapsed, 2), **metadata)


def traced(name: Optional[str] = None) -> Callable:
    """Decorator to wrap a function in a trace span.

    Usage:
        @traced("levels_engine.analyze")
        def analyze(...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        span_name = name or f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with trace_span(span_name):
                return func(*args, **kwargs)

        return wrapper

    return decorator
