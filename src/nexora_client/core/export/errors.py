"""
Export error types.
"""

from __future__ import annotations

from typing import Any


class ExportError(Exception):
    """Base exception for export failures."""

    def __init__(self, message: str, job_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.job_id = job_id


class ExportRequestFailed(ExportError):
    """The job creation request did not succeed."""


class ExportJobFailed(ExportError):
    """The job finished without producing a file."""


class ExportJobTimeout(ExportError):
    """No terminal status was seen within the watchdog window."""


class ExportStateClosed(ExportError):
    """The export state was torn down."""


class ExportPayloadError(ExportError):
    """The server answered with data that does not describe an export job."""

    def __init__(self, message: str, url: str, details: Any = None):
        super().__init__(message)
        self.url = url
        self.details = details
