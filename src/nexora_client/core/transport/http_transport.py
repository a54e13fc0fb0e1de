"""
HTTP transport implementation using httpx.

Provides async HTTP calls with:
- Persistent connection pooling
- Default headers (e.g. Authorization) on every request
- Mapping of transport failures and non-2xx answers to TransportFailure

Retries are not performed here; callers decide their own retry policy.
"""

from __future__ import annotations

import logging
import time

import httpx

from .activity import RequestActivity
from .base import (
    HttpStatusError,
    RequestSpec,
    Transport,
    TransportError,
    TransportResponse,
    decode_body,
)

logger = logging.getLogger(__name__)

SUPPORTED_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE"}


class HttpTransport(Transport):
    """Transport using httpx for async requests.

    Args:
        timeout: Default request timeout in seconds
        default_headers: Headers for all requests
        http_transport: Optional httpx transport (e.g. httpx.MockTransport)
        activity: Request activity tracker (default: process-wide tracker)
    """

    def __init__(
        self,
        timeout: float = 30.0,
        default_headers: dict[str, str] | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        activity: RequestActivity | None = None,
    ):
        super().__init__(activity)
        self.timeout = timeout
        self.default_headers = {
            "Accept": "application/json",
            **{k: v for k, v in (default_headers or {}).items() if v},
        }
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return "http"

    def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers=self.default_headers,
                transport=self._http_transport,
                limits=httpx.Limits(
                    max_connections=20,
                    max_keepalive_connections=10,
                ),
            )
        return self._client

    async def send(self, request: RequestSpec) -> TransportResponse:
        """Send one request.

        Args:
            request: Request specification

        Returns:
            TransportResponse for 2xx answers
        """
        method = request.method.upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"Unsupported method: {request.method}")

        client = self._ensure_client()
        start = time.perf_counter()

        try:
            response = await client.request(
                method,
                request.url,
                params=list(request.params) or None,
                json=request.json_data,
                headers=request.headers or None,
                timeout=request.timeout if request.timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.TransportError as e:
            logger.debug("Transport error for %s %s: %s", method, request.url, e)
            raise TransportError(
                f"No response from {request.url}: {e}",
                url=request.url,
                cause=e,
            ) from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        content = response.content

        if not response.is_success:
            raise HttpStatusError(
                f"{method} {request.url} returned {response.status_code}",
                url=str(response.url),
                status_code=response.status_code,
                body=decode_body(content),
            )

        return TransportResponse(
            url=str(response.url),
            status_code=response.status_code,
            content=content,
            headers=dict(response.headers),
            elapsed_ms=elapsed_ms,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def join_url(base: str, *parts: str) -> str:
    """Join a base URL and path segments with single slashes."""
    segments = [base.rstrip("/")]
    segments.extend(str(part).strip("/") for part in parts if str(part).strip("/"))
    return "/".join(segments)
