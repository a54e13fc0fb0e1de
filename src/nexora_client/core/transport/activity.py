"""
Process-wide request activity tracking.

Counts requests in flight so a busy indicator can be driven from one place.
The count is incremented when a request starts and decremented when it
settles, whatever the outcome.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from nexora_client.core.observable import Subscription, Topic

logger = logging.getLogger(__name__)


class RequestActivity:
    """In-flight request counter publishing busy/idle transitions."""

    def __init__(self) -> None:
        self._active = 0
        self._busy_changes: Topic[bool] = Topic("request-activity")

    @property
    def active(self) -> int:
        """Number of tracked requests currently in flight."""
        return self._active

    @property
    def busy(self) -> bool:
        return self._active > 0

    def started(self) -> None:
        self._active += 1
        if self._active == 1:
            self._busy_changes.publish(True)

    def settled(self) -> None:
        if self._active == 0:
            logger.warning("Request settled with no request in flight")
            return
        self._active -= 1
        if self._active == 0:
            self._busy_changes.publish(False)

    @contextmanager
    def track(self) -> Iterator[None]:
        """Count the enclosed block as one in-flight request."""
        self.started()
        try:
            yield
        finally:
            self.settled()

    def subscribe(self, listener: Callable[[bool], None]) -> Subscription:
        """Call `listener(busy)` whenever the busy flag flips."""
        return self._busy_changes.subscribe(listener)

    def reset(self) -> None:
        """Forget all in-flight requests and listeners (used by tests)."""
        self._active = 0
        self._busy_changes.clear()


_activity = RequestActivity()


def get_request_activity() -> RequestActivity:
    """Get the process-wide request activity tracker."""
    return _activity
