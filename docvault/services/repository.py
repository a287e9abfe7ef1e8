from __future__ import annotations

import json
from datetime import datetime
from functools import lru_cache
from typing import Any, Protocol

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from docvault.core.config import get_settings


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised on a uniqueness violation or a stale expected version."""


class Repository(Protocol):
    async def close(self) -> None: ...

    async def find_user_by_email(self, email: str, *, active_only: bool = False) -> dict[str, Any] | None: ...

    async def find_user(self, user_id: str, *, active_only: bool = False) -> dict[str, Any] | None: ...

    async def get_user(self, user_id: str) -> dict[str, Any]: ...

    async def create_user(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        role: str,
        is_active: bool,
    ) -> dict[str, Any]: ...

    async def list_users(self) -> list[dict[str, Any]]: ...

    async def count_users(self, *, role: str | None = None) -> int: ...

    async def update_user(self, user_id: str, changes: dict[str, Any]) -> dict[str, Any]: ...

    async def delete_user(self, user_id: str) -> None: ...

    async def create_document(
        self,
        *,
        title: str,
        description: str | None,
        status: str,
        metadata: dict[str, Any],
        uploaded_by_id: str | None,
    ) -> dict[str, Any]: ...

    async def list_documents(self) -> list[dict[str, Any]]: ...

    async def get_document(self, document_id: str) -> dict[str, Any]: ...

    async def update_document(self, document_id: str, changes: dict[str, Any]) -> dict[str, Any]: ...

    async def delete_document(self, document_id: str) -> None: ...

    async def create_job(
        self,
        *,
        source_type: str,
        source_ref: str,
        params: dict[str, Any] | None,
        correlation_id: str | None,
        status: str,
    ) -> dict[str, Any]: ...

    async def list_jobs(self) -> list[dict[str, Any]]: ...

    async def get_job(self, job_id: str) -> dict[str, Any]: ...

    async def update_job(
        self,
        job_id: str,
        changes: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> dict[str, Any]: ...


SCHEMA_SQL = """
create table if not exists users (
  id uuid primary key default gen_random_uuid(),
  email text not null unique,
  first_name text not null,
  last_name text not null,
  password_hash text not null,
  role text not null default 'VIEWER' check (role in ('ADMIN', 'EDITOR', 'VIEWER')),
  is_active boolean not null default true,
  created_at timestamptz not null default now(),
  updated_at timestamptz not null default now()
);

create table if not exists documents (
  id uuid primary key default gen_random_uuid(),
  title text not null,
  description text,
  status text not null default 'UPLOADED',
  metadata jsonb not null default '{}'::jsonb,
  uploaded_by_id uuid references users(id) on delete set null,
  created_at timestamptz not null default now(),
  updated_at timestamptz not null default now()
);

create table if not exists ingestion_jobs (
  id uuid primary key default gen_random_uuid(),
  correlation_id text,
  source_type text not null,
  source_ref text not null,
  params jsonb,
  status text not null default 'PENDING',
  message text,
  version integer not null default 1,
  created_at timestamptz not null default now(),
  updated_at timestamptz not null default now(),
  started_at timestamptz,
  finished_at timestamptz
);

create index if not exists ingestion_jobs_correlation_id_idx on ingestion_jobs (correlation_id);
"""

USER_COLUMNS = """
  id::text as id,
  email,
  first_name,
  last_name,
  password_hash,
  role,
  is_active,
  created_at,
  updated_at
"""

DOCUMENT_COLUMNS = """
  id::text as id,
  title,
  description,
  status,
  metadata,
  uploaded_by_id::text as uploaded_by_id,
  created_at,
  updated_at
"""

JOB_COLUMNS = """
  id::text as id,
  correlation_id,
  source_type,
  source_ref,
  params,
  status,
  message,
  version,
  created_at,
  updated_at,
  started_at,
  finished_at
"""

USER_MUTABLE_COLUMNS = ("email", "first_name", "last_name", "password_hash", "role", "is_active")
DOCUMENT_MUTABLE_COLUMNS = ("title", "description", "status", "metadata")
JOB_MUTABLE_COLUMNS = ("status", "message", "started_at", "finished_at")
JSON_COLUMNS = {"metadata", "params"}


class PostgresRepository:
    def __init__(self, database_url: str | None, min_pool_size: int, max_pool_size: int) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # users

    async def find_user_by_email(self, email: str, *, active_only: bool = False) -> dict[str, Any] | None:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select {USER_COLUMNS}
            from users
            where email = $1 and ($2::boolean = false or is_active = true)
            """,
            email,
            active_only,
        )
        return self._user_row_to_dict(row) if row else None

    async def find_user(self, user_id: str, *, active_only: bool = False) -> dict[str, Any] | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                select {USER_COLUMNS}
                from users
                where id = $1::uuid and ($2::boolean = false or is_active = true)
                """,
                user_id,
                active_only,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None
        return self._user_row_to_dict(row) if row else None

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
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                insert into users (email, first_name, last_name, password_hash, role, is_active)
                values ($1, $2, $3, $4, $5, $6)
                returning {USER_COLUMNS}
                """,
                email,
                first_name,
                last_name,
                password_hash,
                role,
                is_active,
            )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError("User with this email already exists") from exc
        return self._user_row_to_dict(row)

    async def list_users(self) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(f"select {USER_COLUMNS} from users order by created_at desc")
        return [self._user_row_to_dict(row) for row in rows]

    async def count_users(self, *, role: str | None = None) -> int:
        pool = await self._get_pool()
        count = await pool.fetchval(
            "select count(*) from users where ($1::text is null or role = $1::text)",
            role,
        )
        return int(count or 0)

    async def update_user(self, user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        assignments, values = self._build_assignments(changes, USER_MUTABLE_COLUMNS, offset=2)
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update users
                set {assignments}
                where id = $1::uuid
                returning {USER_COLUMNS}
                """,
                user_id,
                *values,
            )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError("User with this email already exists") from exc
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("User not found") from exc
        if not row:
            raise RepositoryNotFoundError("User not found")
        return self._user_row_to_dict(row)

    async def delete_user(self, user_id: str) -> None:
        pool = await self._get_pool()
        try:
            deleted = await pool.fetchval("delete from users where id = $1::uuid returning 1", user_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("User not found") from exc
        if not deleted:
            raise RepositoryNotFoundError("User not found")

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
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            insert into documents (title, description, status, metadata, uploaded_by_id)
            values ($1, $2, $3, $4::jsonb, $5::uuid)
            returning {DOCUMENT_COLUMNS}
            """,
            title,
            description,
            status,
            json.dumps(metadata),
            uploaded_by_id,
        )
        return self._document_row_to_dict(row)

    async def list_documents(self) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(f"select {DOCUMENT_COLUMNS} from documents order by created_at desc")
        return [self._document_row_to_dict(row) for row in rows]

    async def get_document(self, document_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"select {DOCUMENT_COLUMNS} from documents where id = $1::uuid",
                document_id,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("Document not found") from exc
        if not row:
            raise RepositoryNotFoundError("Document not found")
        return self._document_row_to_dict(row)

    async def update_document(self, document_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        assignments, values = self._build_assignments(changes, DOCUMENT_MUTABLE_COLUMNS, offset=2)
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update documents
                set {assignments}
                where id = $1::uuid
                returning {DOCUMENT_COLUMNS}
                """,
                document_id,
                *values,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("Document not found") from exc
        if not row:
            raise RepositoryNotFoundError("Document not found")
        return self._document_row_to_dict(row)

    async def delete_document(self, document_id: str) -> None:
        pool = await self._get_pool()
        try:
            deleted = await pool.fetchval("delete from documents where id = $1::uuid returning 1", document_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("Document not found") from exc
        if not deleted:
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
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            insert into ingestion_jobs (source_type, source_ref, params, correlation_id, status)
            values ($1, $2, $3::jsonb, $4, $5)
            returning {JOB_COLUMNS}
            """,
            source_type,
            source_ref,
            json.dumps(params) if params is not None else None,
            correlation_id,
            status,
        )
        return self._job_row_to_dict(row)

    async def list_jobs(self) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(f"select {JOB_COLUMNS} from ingestion_jobs order by created_at desc")
        return [self._job_row_to_dict(row) for row in rows]

    async def get_job(self, job_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(f"select {JOB_COLUMNS} from ingestion_jobs where id = $1::uuid", job_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("Ingestion job not found") from exc
        if not row:
            raise RepositoryNotFoundError("Ingestion job not found")
        return self._job_row_to_dict(row)

    async def update_job(
        self,
        job_id: str,
        changes: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> dict[str, Any]:
        assignments, values = self._build_assignments(changes, JOB_MUTABLE_COLUMNS, offset=3)
        pool = await self._get_pool()

        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(
                        f"""
                        update ingestion_jobs
                        set {assignments}, version = version + 1
                        where id = $1::uuid and ($2::int is null or version = $2::int)
                        returning {JOB_COLUMNS}
                        """,
                        job_id,
                        expected_version,
                        *values,
                    )

                    if not row:
                        current = await conn.fetchval("select version from ingestion_jobs where id = $1::uuid", job_id)
                        if current is None:
                            raise RepositoryNotFoundError("Ingestion job not found")
                        raise RepositoryConflictError(
                            f"ingestion job version is {current}, expected {expected_version}"
                        )
                    return self._job_row_to_dict(row)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("Ingestion job not found") from exc

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("DV_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            await pool.execute(SCHEMA_SQL)
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc
        self._pool = pool
        return self._pool

    @staticmethod
    def _build_assignments(
        changes: dict[str, Any],
        allowed: tuple[str, ...],
        *,
        offset: int,
    ) -> tuple[str, list[Any]]:
        columns = [column for column in allowed if column in changes]
        assignments = ["updated_at = now()"]
        values: list[Any] = []
        for index, column in enumerate(columns, start=offset):
            if column in JSON_COLUMNS:
                assignments.append(f"{column} = ${index}::jsonb")
                values.append(json.dumps(changes[column]))
            else:
                assignments.append(f"{column} = ${index}")
                values.append(changes[column])
        return ", ".join(assignments), values

    @staticmethod
    def _user_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "email": row["email"],
            "first_name": row["first_name"],
            "last_name": row["last_name"],
            "password_hash": row["password_hash"],
            "role": row["role"],
            "is_active": row["is_active"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    def _document_row_to_dict(self, row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "title": row["title"],
            "description": row["description"],
            "status": row["status"],
            "metadata": self._coerce_json_dict(row["metadata"]),
            "uploaded_by_id": row["uploaded_by_id"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    def _job_row_to_dict(self, row: asyncpg.Record) -> dict[str, Any]:
        params = row["params"]
        return {
            "id": row["id"],
            "correlation_id": row["correlation_id"],
            "source_type": row["source_type"],
            "source_ref": row["source_ref"],
            "params": self._coerce_json_dict(params) if params is not None else None,
            "status": row["status"],
            "message": row["message"],
            "version": row["version"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
            "started_at": self._coerce_datetime(row["started_at"]),
            "finished_at": self._coerce_datetime(row["finished_at"]),
        }

    @staticmethod
    def _coerce_json_dict(value: Any) -> dict[str, Any]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return {}
        if isinstance(value, dict):
            return value
        return {}

    @staticmethod
    def _coerce_datetime(value: Any) -> datetime | None:
        if value is None:
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            candidate = value.strip()
            if not candidate:
                return None
            try:
                return datetime.fromisoformat(candidate.replace("Z", "+00:00"))
            except ValueError:
                return None
        return None


@lru_cache
def get_repository() -> Repository:
    from docvault.services.store import InMemoryRepository

    settings = get_settings()
    if not settings.database_url:
        return InMemoryRepository()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )
