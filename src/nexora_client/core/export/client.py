"""
Export job client.

Thin wrapper over the export endpoints: request a job, read its status,
list visible jobs, download the produced file.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import TypeAdapter, ValidationError

from nexora_client.core.config.models import ExportConfig
from nexora_client.core.transport import RequestSpec, Transport, TransportResponse, join_url

from .errors import ExportPayloadError
from .models import ExportCategory, ExportJob, ExportRequestResult

logger = logging.getLogger(__name__)

_JOB_LIST = TypeAdapter(list[ExportJob])


class ExportJobClient:
    """Issues export job requests through a transport.

    Transport failures propagate unchanged; malformed payloads raise
    ExportPayloadError.
    """

    def __init__(
        self,
        transport: Transport,
        api_url: str,
        config: ExportConfig | None = None,
    ):
        self.transport = transport
        self.config = config or ExportConfig()
        self.url = join_url(api_url, self.config.base_path)

    async def request_export(self, category: ExportCategory | str) -> ExportRequestResult:
        """Ask the server to start an export job."""
        category = ExportCategory.parse(category)
        url = join_url(self.url, category.value)
        payload = self._json(await self._get(url))
        result = self._validate(url, lambda: ExportRequestResult.model_validate(payload))
        logger.info(
            "%s export requested: job %s", category.value, result.job_id,
            extra={"category": category.value, "job_id": result.job_id},
        )
        return result

    async def get_status(self, job_id: str) -> ExportJob:
        """Read the current state of a job."""
        url = join_url(self.url, "status", job_id)
        # Polling requests stay out of the busy indicator
        payload = self._json(await self._get(url, track_activity=False))
        return self._validate(url, lambda: ExportJob.model_validate(payload))

    async def list_jobs(self) -> list[ExportJob]:
        """All jobs visible to the current principal."""
        url = join_url(self.url, "jobs")
        payload = self._json(await self._get(url))
        return self._validate(url, lambda: _JOB_LIST.validate_python(payload or []))

    async def download(self, job_id: str) -> bytes:
        """Fetch the file produced by a completed job."""
        response = await self._get(self.download_url(job_id))
        return response.content

    def download_url(self, job_id: str) -> str:
        return join_url(self.url, "download", job_id)

    async def _get(self, url: str, track_activity: bool = True) -> TransportResponse:
        return await self.transport.request(
            RequestSpec(url=url, method="GET", track_activity=track_activity)
        )

    @staticmethod
    def _json(response: TransportResponse) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ExportPayloadError(
                f"Response from {response.url} is not JSON",
                url=response.url,
                details=str(e),
            ) from e

    @staticmethod
    def _validate(url: str, func):
        try:
            return func()
        except ValidationError as e:
            raise ExportPayloadError(
                f"Unexpected export payload from {url}",
                url=url,
                details=e.errors(include_url=False),
            ) from e
