"""Transport implementations for talking to the inventory API."""

from .activity import RequestActivity, get_request_activity
from .base import (
    HttpStatusError,
    RequestSpec,
    Transport,
    TransportError,
    TransportFailure,
    TransportResponse,
)
from .http_transport import HttpTransport, join_url

__all__ = [
    # Base classes
    "Transport",
    "RequestSpec",
    "TransportResponse",
    # Errors
    "TransportFailure",
    "TransportError",
    "HttpStatusError",
    # HTTP transport
    "HttpTransport",
    "join_url",
    # Activity
    "RequestActivity",
    "get_request_activity",
]
