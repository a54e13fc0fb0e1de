"""
Minimal publish-subscribe primitives.

Listeners are plain callables. Subscribing returns a Subscription token
whose `unsubscribe()` removes the listener.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class Subscription:
    """Token returned by `subscribe`; call `unsubscribe()` to stop listening."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel: Callable[[], None] | None = cancel

    @property
    def active(self) -> bool:
        return self._cancel is not None

    def unsubscribe(self) -> None:
        if self._cancel is not None:
            cancel, self._cancel = self._cancel, None
            cancel()


class Topic(Generic[T]):
    """A list of listeners notified in subscription order."""

    def __init__(self, name: str = "topic"):
        self.name = name
        self._listeners: list[Listener[T]] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener[T]) -> Subscription:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(remove)

    def publish(self, value: T) -> None:
        """Deliver `value` to every listener.

        A failing listener is logged and does not prevent delivery to the
        others.
        """
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Listener on %s failed", self.name)

    def clear(self) -> None:
        self._listeners.clear()
