"""
Export job data structures.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from pydantic import Field

from nexora_client.core.repository.entities import WireModel


class ExportCategory(str, Enum):
    """Dataset an export job operates over."""

    WAREHOUSE = "WAREHOUSE"
    STOCK = "STOCK"
    PRODUCT = "PRODUCT"

    @classmethod
    def parse(cls, value: "ExportCategory | str") -> "ExportCategory":
        """Accept an enum member or a case-insensitive name.

        Raises:
            ValueError: If the value names no category
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Invalid export category: {value!r}") from None


class JobStatus(str, Enum):
    """Status reported by the server for an export job."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ClientStatus(str, Enum):
    """Status as observed by a consumer; adds TIMEOUT to the server statuses."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"

    @classmethod
    def from_job(cls, status: JobStatus) -> "ClientStatus":
        return cls(status.value)

    @property
    def in_progress(self) -> bool:
        return self in (ClientStatus.PENDING, ClientStatus.PROCESSING)

    @property
    def terminal(self) -> bool:
        return not self.in_progress


class ExportJob(WireModel):
    """Server-side export job, as returned by the status and listing endpoints."""

    id: str = Field(alias="uuid")
    user_id: str | None = Field(default=None, alias="userUuid")
    category: ExportCategory
    export_type: str | None = None
    status: JobStatus
    file_url: str | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ExportRequestResult(WireModel):
    """Answer to a job creation request."""

    job_id: str
    message: str = ""


def export_file_name(category: ExportCategory, on: date) -> str:
    """File name shown for an export, e.g. product_export_2024-05-01.xlsx."""
    return f"{category.value.lower()}_export_{on.isoformat()}.xlsx"


@dataclass(frozen=True)
class ExportedFile:
    """A completed export whose file can be downloaded."""

    job_id: str
    file_name: str
    file_url: str
    created_at: datetime
