from __future__ import annotations

from typing import Any

from fastapi import Depends

from docvault.services.repository import Repository, get_repository

UPLOADED = "UPLOADED"
DOCUMENT_STATUSES = {"UPLOADED", "PROCESSING", "PROCESSED", "FAILED"}


def normalize_tags(raw: list[str] | str | None) -> list[str] | None:
    """Accept a list or a comma-separated string; drop blanks."""
    if raw is None:
        return None
    items = raw.split(",") if isinstance(raw, str) else raw
    return [item.strip() for item in items if isinstance(item, str) and item.strip()]


class DocumentService:
    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    async def create(
        self,
        *,
        title: str,
        description: str | None = None,
        tags: list[str] | str | None = None,
        uploaded_by_id: str | None = None,
    ) -> dict[str, Any]:
        return await self.repository.create_document(
            title=title,
            description=description,
            status=UPLOADED,
            metadata={"tags": normalize_tags(tags) or []},
            uploaded_by_id=uploaded_by_id,
        )

    async def list(self) -> list[dict[str, Any]]:
        return await self.repository.list_documents()

    async def get(self, document_id: str) -> dict[str, Any]:
        return await self.repository.get_document(document_id)

    async def update(
        self,
        document_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        tags: list[str] | str | None = None,
        status: str | None = None,
    ) -> dict[str, Any]:
        """Apply the given fields to a document.

        Empty ``title`` and ``description`` values are ignored, so a
        description cannot be cleared through this call. ``tags`` replaces the
        stored tag list inside ``metadata``.
        """
        document = await self.repository.get_document(document_id)
        changes: dict[str, Any] = {}
        if title:
            changes["title"] = title
        if description:
            changes["description"] = description
        if status is not None:
            if status not in DOCUMENT_STATUSES:
                raise ValueError(f"unknown document status: {status}")
            changes["status"] = status
        normalized_tags = normalize_tags(tags)
        if normalized_tags is not None:
            changes["metadata"] = {**document.get("metadata", {}), "tags": normalized_tags}

        if not changes:
            return document
        return await self.repository.update_document(document_id, changes)

    async def delete(self, document_id: str) -> dict[str, bool]:
        await self.repository.delete_document(document_id)
        return {"deleted": True}


def get_document_service(repository: Repository = Depends(get_repository)) -> DocumentService:
    return DocumentService(repository)
