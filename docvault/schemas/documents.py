from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from docvault.schemas.base import CamelModel

DocumentStatus = Literal["UPLOADED", "PROCESSING", "PROCESSED", "FAILED"]


class DocumentOut(CamelModel):
    id: str
    title: str
    description: str | None = None
    status: DocumentStatus
    metadata: dict[str, Any] = Field(default_factory=dict)
    uploaded_by_id: str | None = None
    created_at: datetime
    updated_at: datetime


class DocumentCreateRequest(CamelModel):
    title: str = Field(min_length=1)
    description: str | None = None
    tags: list[str] | str | None = None


class DocumentUpdateRequest(CamelModel):
    title: str | None = None
    description: str | None = None
    tags: list[str] | str | None = None
    status: DocumentStatus | None = None


class DocumentDeleted(BaseModel):
    deleted: bool
