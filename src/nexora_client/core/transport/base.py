"""
Transport base classes and data structures.

Defines the interface contract between the data-access core and whatever
performs HTTP verbs on its behalf.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

from .activity import RequestActivity, get_request_activity


QueryItems = Sequence[tuple[str, str]]


@dataclass
class RequestSpec:
    """Specification for an HTTP request."""

    url: str
    method: str = "GET"
    params: QueryItems = ()
    json_data: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None

    # Background requests (status polling) do not drive the busy indicator
    track_activity: bool = True


@dataclass
class TransportResponse:
    """A successful (2xx) response."""

    url: str
    status_code: int
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    elapsed_ms: float = 0.0
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON; an empty body decodes to None."""
        if not self.content:
            return None
        return json.loads(self.content)


class TransportFailure(Exception):
    """Base exception for requests that did not produce a 2xx response."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int = 0,
        body: Any = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.body = body
        self.cause = cause


class TransportError(TransportFailure):
    """No response was received (connection refused, timeout, DNS...)."""

    def __init__(self, message: str, url: str | None = None, cause: Exception | None = None):
        super().__init__(message, url=url, status_code=0, cause=cause)


class HttpStatusError(TransportFailure):
    """The server answered with a non-2xx status."""

    @property
    def server_message(self) -> str | None:
        """The `message` field of a JSON error body, if any."""
        if isinstance(self.body, dict):
            message = self.body.get("message")
            if isinstance(message, str) and message:
                return message
        return None


def decode_body(content: bytes) -> Any:
    """Best-effort decode of an error body: JSON, then text, then None."""
    if not content:
        return None
    try:
        return json.loads(content)
    except (ValueError, UnicodeDecodeError):
        return content.decode("utf-8", errors="replace")


class Transport(ABC):
    """Abstract base class for transports.

    Subclasses implement `send`; callers use `request`, which accounts the
    call in the process-wide request activity.
    """

    def __init__(self, activity: RequestActivity | None = None):
        self.activity = activity or get_request_activity()

    @property
    @abstractmethod
    def name(self) -> str:
        """Transport identifier."""
        pass

    @abstractmethod
    async def send(self, request: RequestSpec) -> TransportResponse:
        """Perform the request.

        Returns:
            TransportResponse for 2xx answers

        Raises:
            TransportError: When no response was received
            HttpStatusError: When the server answered with a non-2xx status
        """
        pass

    async def request(self, request: RequestSpec) -> TransportResponse:
        """Perform the request, tracking it while it is in flight."""
        if not request.track_activity:
            return await self.send(request)
        with self.activity.track():
            return await self.send(request)

    async def close(self) -> None:
        """Clean up transport resources."""
        pass

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
