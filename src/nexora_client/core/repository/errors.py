"""
Repository error taxonomy.

Every failure surfaced by a repository is normalized into a RepositoryError
carrying a semantic kind derived from the HTTP status.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from nexora_client.core.transport import HttpStatusError, TransportFailure


class ErrorKind(str, Enum):
    """Semantic error kinds."""

    NETWORK = "network"
    INVALID_REQUEST = "invalid_request"
    AUTHENTICATION_REQUIRED = "authentication_required"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION_FAILED = "validation_failed"
    SERVER_ERROR = "server_error"
    UNAVAILABLE = "unavailable"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"


STATUS_KINDS: dict[int, ErrorKind] = {
    0: ErrorKind.NETWORK,
    400: ErrorKind.INVALID_REQUEST,
    401: ErrorKind.AUTHENTICATION_REQUIRED,
    403: ErrorKind.ACCESS_DENIED,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    422: ErrorKind.VALIDATION_FAILED,
    500: ErrorKind.SERVER_ERROR,
    503: ErrorKind.UNAVAILABLE,
}

_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "Network error. Please check your connection.",
    ErrorKind.INVALID_REQUEST: "Invalid request. Please check your input.",
    ErrorKind.AUTHENTICATION_REQUIRED: "Authentication required. Please log in.",
    ErrorKind.ACCESS_DENIED: "Access denied. You do not have permission.",
    ErrorKind.NOT_FOUND: "{entity} not found.",
    ErrorKind.CONFLICT: "Conflict. The resource already exists or is in use.",
    ErrorKind.VALIDATION_FAILED: "Validation error. Please check your input.",
    ErrorKind.SERVER_ERROR: "Server error. Please try again later.",
    ErrorKind.UNAVAILABLE: "Service unavailable. Please try again later.",
    ErrorKind.INVALID_RESPONSE: "Unexpected {entity} data received from the server.",
    ErrorKind.UNKNOWN: "An error occurred while processing {entity}.",
}


def kind_for_status(status: int) -> ErrorKind:
    return STATUS_KINDS.get(status, ErrorKind.UNKNOWN)


def default_message(kind: ErrorKind, entity_name: str) -> str:
    return _MESSAGES[kind].format(entity=entity_name)


class RepositoryError(Exception):
    """Normalized repository failure.

    Attributes:
        message: Human-readable message
        status: HTTP status (0 when no response was received)
        timestamp: ISO-8601 UTC time the error was normalized
        path: Request URL
        details: Decoded error body, if any
        kind: Semantic error kind
        method: HTTP method of the failed call
    """

    def __init__(
        self,
        message: str,
        status: int,
        path: str,
        kind: ErrorKind | None = None,
        details: Any = None,
        method: str | None = None,
        timestamp: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.path = path
        self.kind = kind or kind_for_status(status)
        self.details = details
        self.method = method
        self.timestamp = timestamp or datetime.now(timezone.utc).isoformat()

    @property
    def category(self) -> str:
        """Coarse class of the failure: network, client, server or unknown."""
        if self.status == 0:
            return "network"
        if 400 <= self.status < 500:
            return "client"
        if 500 <= self.status < 600:
            return "server"
        return "unknown"

    @property
    def retryable(self) -> bool:
        return self.category in {"network", "server"}

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "status": self.status,
            "timestamp": self.timestamp,
            "path": self.path,
            "details": self.details,
            "kind": self.kind.value,
        }

    def __repr__(self) -> str:
        return (
            f"RepositoryError(kind={self.kind.value!r}, status={self.status}, "
            f"path={self.path!r}, message={self.message!r})"
        )


def from_transport_failure(
    failure: TransportFailure,
    entity_name: str,
    method: str,
    path: str,
) -> RepositoryError:
    """Normalize a transport failure into a RepositoryError."""
    status = failure.status_code
    kind = kind_for_status(status)

    message = None
    if isinstance(failure, HttpStatusError):
        message = failure.server_message

    return RepositoryError(
        message or default_message(kind, entity_name),
        status=status,
        path=path,
        kind=kind,
        details=failure.body,
        method=method,
    )
