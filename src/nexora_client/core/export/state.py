"""
Per-consumer export state.

An ExportState is a small observable store: fields are replaced as a
whole on every update and subscribers receive the new snapshot. Each
consumer (one open panel, one CLI command) owns its own instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable

from nexora_client.core.observable import Subscription, Topic

from .models import ClientStatus, ExportCategory, ExportedFile
from .session import PollingSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportSnapshot:
    """Immutable view of an ExportState."""

    loading: bool = False
    current_job_id: str | None = None
    current_status: ClientStatus | None = None
    exported_files: tuple[ExportedFile, ...] = ()
    error: str | None = None

    @property
    def busy(self) -> bool:
        return self.loading or (
            self.current_status is not None and self.current_status.in_progress
        )


_FIELDS = frozenset(ExportSnapshot.__dataclass_fields__)


class ExportState:
    """Observable export state for one consumer.

    Holds the PollingSession of the export in progress, if any. `close()`
    cancels it together with its timers and requests, and turns later
    updates into no-ops.
    """

    def __init__(self, category: ExportCategory | None = None):
        self.category = category
        self._snapshot = ExportSnapshot()
        self._changes: Topic[ExportSnapshot] = Topic(f"export-state:{self._label}")
        self._session: PollingSession | None = None
        self._closed = False

    @property
    def _label(self) -> str:
        return self.category.value if self.category else "any"

    def __repr__(self) -> str:
        return f"ExportState({self._label}, {self._snapshot})"

    # -------------------------------------------------------------------------
    # Read-only fields
    # -------------------------------------------------------------------------

    @property
    def loading(self) -> bool:
        return self._snapshot.loading

    @property
    def current_job_id(self) -> str | None:
        return self._snapshot.current_job_id

    @property
    def current_status(self) -> ClientStatus | None:
        return self._snapshot.current_status

    @property
    def exported_files(self) -> list[ExportedFile]:
        return list(self._snapshot.exported_files)

    @property
    def error(self) -> str | None:
        return self._snapshot.error

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def session(self) -> PollingSession | None:
        return self._session

    def snapshot(self) -> ExportSnapshot:
        return self._snapshot

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    def update(self, **changes: Any) -> bool:
        """Replace the given fields and notify subscribers.

        Returns:
            True if the state changed
        """
        unknown = set(changes) - _FIELDS
        if unknown:
            raise TypeError(f"Unknown export state fields: {', '.join(sorted(unknown))}")
        if self._closed:
            logger.debug("Ignoring update on closed export state: %s", sorted(changes))
            return False

        if "exported_files" in changes:
            changes["exported_files"] = tuple(changes["exported_files"])

        new = replace(self._snapshot, **changes)
        if new == self._snapshot:
            return False
        self._snapshot = new
        self._changes.publish(new)
        return True

    def subscribe(
        self,
        listener: Callable[[ExportSnapshot], None],
        emit_current: bool = False,
    ) -> Subscription:
        """Receive every new snapshot.

        Args:
            listener: Called with the snapshot after each change
            emit_current: Also call it once right away with the current snapshot
        """
        subscription = self._changes.subscribe(listener)
        if emit_current:
            listener(self._snapshot)
        return subscription

    # -------------------------------------------------------------------------
    # Session ownership
    # -------------------------------------------------------------------------

    def attach_session(self, session: PollingSession) -> None:
        """Make `session` the active one, cancelling any previous session."""
        if self._closed:
            session.cancel()
            return
        previous, self._session = self._session, session
        if previous is not None and previous.active:
            logger.warning(
                "Replacing export session %s still in progress on %s state",
                previous.name, self._label,
            )
            previous.cancel()

    def owns(self, session: PollingSession) -> bool:
        """Whether `session` may still write to this state."""
        return not self._closed and self._session is session and session.active

    def close(self) -> None:
        """Tear down: cancel timers and requests, drop subscribers."""
        if self._closed:
            return
        self._closed = True
        if self._session is not None:
            self._session.cancel()
        self._changes.clear()
        logger.debug("Export state %s closed", self._label)
