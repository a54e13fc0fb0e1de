"""
Export orchestrator.

Drives an export job from request to a terminal state:

    IDLE -> PENDING -> PROCESSING -> COMPLETED | FAILED | TIMEOUT

COMPLETED folds back to IDLE once the file is recorded. FAILED and TIMEOUT
stay visible until the consumer starts another export. Errors met while
polling become terminal state; they are never raised to the consumer.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from nexora_client.core.config.models import ExportConfig
from nexora_client.core.fetch import RetryConfig, retry_async
from nexora_client.core.logging import get_contextual_logger
from nexora_client.core.transport import TransportFailure

from .client import ExportJobClient
from .errors import (
    ExportError,
    ExportJobFailed,
    ExportJobTimeout,
    ExportRequestFailed,
    ExportStateClosed,
)
from .models import (
    ClientStatus,
    ExportCategory,
    ExportedFile,
    ExportJob,
    JobStatus,
    export_file_name,
)
from .session import PollingSession
from .state import ExportState

logger = logging.getLogger(__name__)

INVALID_CATEGORY_MESSAGE = "Invalid export category"
JOB_FAILED_MESSAGE = "Export failed. Please try again."
STATUS_CHECK_FAILED_MESSAGE = "Failed to check export status."
TIMEOUT_MESSAGE = "Export is taking longer than expected. Please check back later."


def request_failed_message(category: ExportCategory) -> str:
    return f"Failed to request {category.value.lower()} export. Please try again."


class ExportOrchestrator:
    """Requests export jobs and follows them on ExportState stores.

    Args:
        client: Export job client
        config: Polling and watchdog settings
        clock: Current client date-time (default: datetime.now)
    """

    def __init__(
        self,
        client: ExportJobClient,
        config: ExportConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.client = client
        self.config = config or client.config
        self._clock = clock or datetime.now
        self._status_retry = RetryConfig(
            retries=self.config.status_retry_attempts,
            retry_exceptions=(TransportFailure,),
        )

    def create_state(self, category: ExportCategory | str | None = None) -> ExportState:
        """Create a state bundle for one consumer."""
        return ExportState(ExportCategory.parse(category) if category is not None else None)

    def teardown(self, state: ExportState) -> None:
        """Cancel everything running on `state` and close it."""
        state.close()

    # -------------------------------------------------------------------------
    # Export lifecycle
    # -------------------------------------------------------------------------

    async def initiate_export(
        self,
        category: ExportCategory | str,
        state: ExportState,
    ) -> str | None:
        """Request an export and start following it.

        A session still running on `state` is cancelled first, so at most
        one job is followed per state.

        Returns:
            The new job id, or None when the request failed (see state.error)

        Raises:
            ExportStateClosed: If `state` was torn down
        """
        if state.closed:
            raise ExportStateClosed("Cannot start an export on a closed state")

        try:
            category = ExportCategory.parse(category)
        except ValueError:
            state.update(loading=False, error=INVALID_CATEGORY_MESSAGE)
            return None

        log = get_contextual_logger("export", category=category.value)

        session = PollingSession(f"{category.value.lower()}-export")
        state.attach_session(session)
        state.update(loading=True, error=None, current_job_id=None, current_status=None)

        try:
            result = await session.run(self.client.request_export(category))
        except asyncio.CancelledError:
            if session.cancelled:
                # Torn down or superseded while the request was in flight
                log.debug("Export request abandoned")
                return None
            if state.owns(session):
                state.update(loading=False)
            session.cancel()
            raise
        except (TransportFailure, ExportError) as e:
            log.error("Error requesting %s export: %s", category.value.lower(), e)
            if state.owns(session):
                state.update(loading=False, error=request_failed_message(category))
            session.cancel()
            return None

        if not state.owns(session):
            return None

        job_id = result.job_id
        state.update(
            loading=False,
            current_job_id=job_id,
            current_status=ClientStatus.PENDING,
        )

        session.start_polling(
            self.config.poll_interval_seconds,
            lambda generation: self._poll(session, state, category, job_id, generation),
        )
        session.start_watchdog(
            self.config.watchdog_timeout_seconds,
            lambda: self._on_watchdog(session, state, category, job_id),
        )
        log.with_context(job_id=job_id).info("Export initiated; polling for status")
        return job_id

    async def _poll(
        self,
        session: PollingSession,
        state: ExportState,
        category: ExportCategory,
        job_id: str,
        generation: int,
    ) -> None:
        log = get_contextual_logger("export", category=category.value, job_id=job_id)

        try:
            job = await retry_async(self.client.get_status, job_id, config=self._status_retry)
        except (TransportFailure, ExportError) as e:
            if not state.owns(session) or not session.accept(generation):
                return
            log.error("Error checking export status: %s", e)
            state.update(current_status=ClientStatus.FAILED, error=STATUS_CHECK_FAILED_MESSAGE)
            session.cancel()
            return

        if not state.owns(session) or not session.accept(generation):
            log.debug("Discarding stale status response (generation %d)", generation)
            return

        self._apply_status(session, state, category, job, log)

    def _apply_status(
        self,
        session: PollingSession,
        state: ExportState,
        category: ExportCategory,
        job: ExportJob,
        log: logging.LoggerAdapter,
    ) -> None:
        if job.status is JobStatus.COMPLETED:
            if job.file_url:
                now = self._clock()
                exported = ExportedFile(
                    job_id=job.id,
                    file_name=export_file_name(category, now.date()),
                    file_url=job.file_url,
                    created_at=now,
                )
                state.update(
                    exported_files=(exported, *state.exported_files),
                    current_job_id=None,
                    current_status=None,
                )
                log.info("Export completed: %s", exported.file_name)
            else:
                state.update(current_status=ClientStatus.COMPLETED)
                log.warning("Export completed without a file url")
            session.cancel()

        elif job.status is JobStatus.FAILED:
            state.update(
                current_status=ClientStatus.FAILED,
                error=job.error_message or JOB_FAILED_MESSAGE,
            )
            log.warning("Export failed: %s", job.error_message or "no reason given")
            session.cancel()

        else:
            state.update(current_status=ClientStatus.from_job(job.status))

    def _on_watchdog(
        self,
        session: PollingSession,
        state: ExportState,
        category: ExportCategory,
        job_id: str,
    ) -> None:
        if not state.owns(session):
            return
        status = state.current_status
        if status is not None and status.in_progress:
            state.update(current_status=ClientStatus.TIMEOUT, error=TIMEOUT_MESSAGE)
            get_contextual_logger("export", category=category.value, job_id=job_id).warning(
                "No terminal status after %.0fs", self.config.watchdog_timeout_seconds,
            )
        session.cancel()

    async def export_and_wait(
        self,
        category: ExportCategory | str,
        state: ExportState,
    ) -> ExportedFile:
        """Request an export and wait until it settles.

        Returns:
            The recorded file

        Raises:
            ExportRequestFailed: The job could not be requested
            ExportJobFailed: The job failed or finished without a file
            ExportJobTimeout: The watchdog fired first
            ExportStateClosed: The state was torn down meanwhile
        """
        job_id = await self.initiate_export(category, state)
        if job_id is None:
            if state.closed:
                raise ExportStateClosed("Export state closed during request")
            raise ExportRequestFailed(state.error or INVALID_CATEGORY_MESSAGE)

        session = state.session
        if session is not None:
            await session.wait()

        if state.closed:
            raise ExportStateClosed("Export state closed while waiting", job_id=job_id)
        if state.session is not session:
            raise ExportError("Export superseded by a newer request on the same state", job_id=job_id)

        snapshot = state.snapshot()
        if snapshot.current_status is ClientStatus.TIMEOUT:
            raise ExportJobTimeout(snapshot.error or TIMEOUT_MESSAGE, job_id=job_id)
        if snapshot.current_status is ClientStatus.FAILED:
            raise ExportJobFailed(snapshot.error or JOB_FAILED_MESSAGE, job_id=job_id)

        for exported in snapshot.exported_files:
            if exported.job_id == job_id:
                return exported
        raise ExportJobFailed("Export completed without a file", job_id=job_id)

    # -------------------------------------------------------------------------
    # Existing exports
    # -------------------------------------------------------------------------

    async def load_existing_export_jobs(
        self,
        category: ExportCategory | str,
        state: ExportState,
    ) -> list[ExportedFile]:
        """Replace `state.exported_files` with the completed exports of `category`.

        A failed listing is logged and leaves an empty list.
        """
        category = ExportCategory.parse(category)

        try:
            jobs = await self.client.list_jobs()
        except (TransportFailure, ExportError) as e:
            logger.error(
                "Error loading existing export jobs: %s", e,
                extra={"category": category.value},
            )
            jobs = []

        files = [
            self._file_for_job(job, category)
            for job in jobs
            if job.category is category and job.status is JobStatus.COMPLETED and job.file_url
        ]
        state.update(exported_files=files)
        return files

    def _file_for_job(self, job: ExportJob, category: ExportCategory) -> ExportedFile:
        created_at = job.created_at or self._clock()
        return ExportedFile(
            job_id=job.id,
            file_name=export_file_name(category, created_at.date()),
            file_url=job.file_url or "",
            created_at=created_at,
        )

    async def download_export(
        self,
        job_id: str,
        destination: Path | str | None = None,
    ) -> bytes | Path:
        """Fetch a completed export.

        Args:
            job_id: Job to download
            destination: File or directory to write to; when omitted the
                content is returned

        Returns:
            The written path, or the file content
        """
        content = await self.client.download(job_id)
        if destination is None:
            return content

        path = Path(destination)
        if path.is_dir():
            path = path / f"{job_id}.xlsx"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.info("Export %s saved to %s (%d bytes)", job_id, path, len(content))
        return path
