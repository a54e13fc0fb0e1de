"""Exports - job client, polling session and orchestrator."""

from .client import ExportJobClient
from .errors import (
    ExportError,
    ExportJobFailed,
    ExportJobTimeout,
    ExportPayloadError,
    ExportRequestFailed,
    ExportStateClosed,
)
from .models import (
    ClientStatus,
    ExportCategory,
    ExportedFile,
    ExportJob,
    ExportRequestResult,
    JobStatus,
    export_file_name,
)
from .orchestrator import ExportOrchestrator
from .session import PollingSession, SessionCancelled
from .state import ExportSnapshot, ExportState

__all__ = [
    # Models
    "ExportCategory",
    "JobStatus",
    "ClientStatus",
    "ExportJob",
    "ExportRequestResult",
    "ExportedFile",
    "export_file_name",
    # State
    "ExportState",
    "ExportSnapshot",
    "PollingSession",
    "SessionCancelled",
    # Services
    "ExportJobClient",
    "ExportOrchestrator",
    # Errors
    "ExportError",
    "ExportRequestFailed",
    "ExportJobFailed",
    "ExportJobTimeout",
    "ExportStateClosed",
    "ExportPayloadError",
]
