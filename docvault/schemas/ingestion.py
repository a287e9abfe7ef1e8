from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from docvault.schemas.base import CamelModel

IngestionStatus = Literal["PENDING", "RUNNING", "COMPLETED", "FAILED", "CANCELLED"]


class IngestionJobOut(CamelModel):
    id: str
    correlation_id: str | None = None
    source_type: str
    source_ref: str
    params: dict[str, Any] | None = None
    status: IngestionStatus
    message: str | None = None
    version: int
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None


class TriggerIngestionRequest(CamelModel):
    source_type: str = Field(min_length=1)
    source_ref: str = Field(min_length=1)
    params: dict[str, Any] | None = None
    correlation_id: str | None = None


class UpdateIngestionRequest(CamelModel):
    status: IngestionStatus | None = None
    message: str | None = None
    expected_version: int | None = Field(default=None, ge=1)
