"""
SignalForge — Signal Sinks

Where finished strategies go: a store for the latest result per symbol and
a broadcaster for push-style consumers. Both are protocols so a caller can
plug in a database or websocket layer without touching the engines.
"""

from __future__ import annotations

import threading
from collections import defaultdict, deque
from typing import Callable, Optional, Protocol, runtime_checkable

import structlog

from signalforge.models import BreakoutStrategy

log = structlog.get_logger(__name__)

Subscriber = Callable[[BreakoutStrategy], None]


@runtime_checkable
class SignalStore(Protocol):
    def save(self, strategy: BreakoutStrategy) -> None:
        ...

    def latest(self, symbol: str) -> Optional[BreakoutStrategy]:
        ...


@runtime_checkable
class SignalBroadcaster(Protocol):
    def publish(self, strategy: BreakoutStrategy) -> None:
        ...


class InMemorySignalStore:
    """Bounded per-symbol history, newest last."""

    def __init__(self, max_history: int = 100):
        self._lock = threading.Lock()
        self._history: dict[str, deque[BreakoutStrategy]] = defaultdict(
            lambda: deque(maxlen=max_history)
        )

    def save(self, strategy: BreakoutStrategy) -> None:
        with self._lock:
            self._history[strategy.symbol].append(strategy)

    def latest(self, symbol: str) -> Optional[BreakoutStrategy]:
        with self._lock:
            items = self._history.get(symbol)
            return items[-1] if items else None

    def history(self, symbol: str) -> list[BreakoutStrategy]:
        with self._lock:
            return list(self._history.get(symbol, ()))

    def clear(self) -> None:
        with self._lock:
            self._history.clear()


class SubscriberBroadcaster:
    """Fan out each strategy to registered callbacks.

    A failing subscriber is logged and skipped; the rest still receive
    the strategy.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def publish(self, strategy: BreakoutStrategy) -> int:
        """Deliver to every subscriber. Returns the number of successful deliveries."""
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for callback in subscribers:
            try:
                callback(strategy)
                delivered += 1
            except Exception as e:
                log.warning("subscriber_failed", symbol=strategy.symbol, error=str(e))
        return delivered
