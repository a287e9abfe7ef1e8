from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from docvault.services.repository import RepositoryConflictError, RepositoryNotFoundError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRepository:
    """Process-local repository used when no database is configured.

    Instances are created per application (see ``get_repository``) and handed
    to services through dependency injection; nothing here is module state.
    Every read returns a deep copy so callers cannot mutate stored rows.
    """

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.documents: dict[str, dict[str, Any]] = {}
        self.jobs: dict[str, dict[str, Any]] = {}

    async def close(self) -> None:
        return None

    # users

    async def find_user_by_email(self, email: str, *, active_only: bool = False) -> dict[str, Any] | None:
        for row in self.users.values():
            if row["email"] != email:
                continue
            if active_only and not row["is_active"]:
                return None
            return copy.deepcopy(row)
        return None

    async def find_user(self, user_id: str, *, active_only: bool = False) -> dict[str, Any] | None:
        row = self.users.get(user_id)
        if row is None or (active_only and not row["is_active"]):
            return None
        return copy.deepcopy(row)

    async def get_user(self, user_id: str) -> dict[str, Any]:
        row = await self.find_user(user_id)
        if row is None:
            raise RepositoryNotFoundError("User not found")
        return row

    async def create_user(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        role: str,
        is_active: bool,
    ) -> dict[str, Any]:
        if any(row["email"] == email for row in self.users.values()):
            raise RepositoryConflictError("User with this email already exists")
        now = _utcnow()
        row = {
            "id": str(uuid4()),
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "password_hash": password_hash,
            "role": role,
            "is_active": is_active,
            "created_at": now,
            "updated_at": now,
        }
        self.users[row["id"]] = row
        return copy.deepcopy(row)

    async def list_users(self) -> list[dict[str, Any]]:
        rows = list(reversed(self.users.values()))
        return copy.deepcopy(rows)

    async def count_users(self, *, role: str | None = None) -> int:
        return sum(1 for row in self.users.values() if role is None or row["role"] == role)

    async def update_user(self, user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        row = self.users.get(user_id)
        if row is None:
            raise RepositoryNotFoundError("User not found")
        email = changes.get("email")
        if email is not None and any(
            other["email"] == email and other_id != user_id for other_id, other in self.users.items()
        ):
            raise RepositoryConflictError("User with this email already exists")
        row.update(changes)
        row["updated_at"] = _utcnow()
        return copy.deepcopy(row)

    async def delete_user(self, user_id: str) -> None:
        if self.users.pop(user_id, None) is None:
            raise RepositoryNotFoundError("User not found")
        for document in self.documents.values():
            if document["uploaded_by_id"] == user_id:
                document["uploaded_by_id"] = None

    # documents

    async def create_document(
        self,
        *,
        title: str,
        description: str | None,
        status: str,
        metadata: dict[str, Any],
        uploaded_by_id: str | None,
    ) -> dict[str, Any]:
        now = _utcnow()
        row = {
            "id": str(uuid4()),
            "title": title,
            "description": description,
            "status": status,
            "metadata": copy.deepcopy(metadata),
            "uploaded_by_id": uploaded_by_id,
            "created_at": now,
            "updated_at": now,
        }
        self.documents[row["id"]] = row
        return copy.deepcopy(row)

    async def list_documents(self) -> list[dict[str, Any]]:
        rows = list(reversed(self.documents.values()))
        return copy.deepcopy(rows)

    async def get_document(self, document_id: str) -> dict[str, Any]:
        row = self.documents.get(document_id)
        if row is None:
            raise RepositoryNotFoundError("Document not found")
        return copy.deepcopy(row)

    async def update_document(self, document_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        row = self.documents.get(document_id)
        if row is None:
            raise RepositoryNotFoundError("Document not found")
        row.update(copy.deepcopy(changes))
        row["updated_at"] = _utcnow()
        return copy.deepcopy(row)

    async def delete_document(self, document_id: str) -> None:
        if self.documents.pop(document_id, None) is None:
            raise RepositoryNotFoundError("Document not found")

    # ingestion jobs

    async def create_job(
        self,
        *,
        source_type: str,
        source_ref: str,
        params: dict[str, Any] | None,
        correlation_id: str | None,
        status: str,
    ) -> dict[str, Any]:
        now = _utcnow()
        row = {
            "id": str(uuid4()),
            "correlation_id": correlation_id,
            "source_type": source_type,
            "source_ref": source_ref,
            "params": copy.deepcopy(params),
            "status": status,
            "message": None,
            "version": 1,
            "created_at": now,
            "updated_at": now,
            "started_at": None,
            "finished_at": None,
        }
        self.jobs[row["id"]] = row
        return copy.deepcopy(row)

    async def list_jobs(self) -> list[dict[str, Any]]:
        rows = list(reversed(self.jobs.values()))
        return copy.deepcopy(rows)

    async def get_job(self, job_id: str) -> dict[str, Any]:
        row = self.jobs.get(job_id)
        if row is None:
            raise RepositoryNotFoundError("Ingestion job not found")
        return copy.deepcopy(row)

    async def update_job(
        self,
        job_id: str,
        changes: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> dict[str, Any]:
        row = self.jobs.get(job_id)
        if row is None:
            raise RepositoryNotFoundError("Ingestion job not found")
        if expected_version is not None and row["version"] != expected_version:
            raise RepositoryConflictError(
                f"ingestion job version is {row['version']}, expected {expected_version}"
            )
        row.update(changes)
        row["version"] += 1
        row["updated_at"] = _utcnow()
        return copy.deepcopy(row)
