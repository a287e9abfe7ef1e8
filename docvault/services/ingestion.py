"""Ingestion job lifecycle.

PENDING -> RUNNING -> COMPLETED | FAILED | CANCELLED. Jobs are written by two
actors: the background dispatch started by ``trigger`` and the worker's
webhook calling ``update``. Plain updates are last-write-wins; callers that
pass ``expected_version`` get compare-and-swap instead, which is what the
dispatch path uses so it never overwrites a newer webhook write.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from fastapi import Depends
from opentelemetry import trace

from docvault.core.config import Settings, get_settings
from docvault.core.telemetry import get_tracer
from docvault.services.ingestion_client import IngestionClient
from docvault.services.repository import Repository, RepositoryConflictError, get_repository

PENDING = "PENDING"
RUNNING = "RUNNING"
COMPLETED = "COMPLETED"
FAILED = "FAILED"
CANCELLED = "CANCELLED"
JOB_STATUSES = {PENDING, RUNNING, COMPLETED, FAILED, CANCELLED}
TERMINAL_STATUSES = {COMPLETED, FAILED, CANCELLED}

DEFAULT_FAILURE_MESSAGE = "External ingestion failed"

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Holds strong references to fire-and-forget tasks until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._tasks)


@lru_cache
def get_background_tasks() -> BackgroundTasks:
    return BackgroundTasks()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionService:
    def __init__(
        self,
        repository: Repository,
        client: IngestionClient,
        tasks: BackgroundTasks,
        *,
        tracer: trace.Tracer | None = None,
    ) -> None:
        self.repository = repository
        self.client = client
        self.tasks = tasks
        self.tracer = tracer or trace.get_tracer(__name__)

    async def trigger(
        self,
        *,
        source_type: str,
        source_ref: str,
        params: dict[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> dict[str, Any]:
        job = await self.repository.create_job(
            source_type=source_type,
            source_ref=source_ref,
            params=params,
            correlation_id=correlation_id,
            status=PENDING,
        )
        logger.info(
            "ingestion job created id=%s source_type=%s source_ref=%s correlation_id=%s",
            job["id"],
            source_type,
            source_ref,
            correlation_id,
        )
        self.tasks.spawn(
            self._dispatch(job["id"], expected_version=job["version"]),
            name=f"ingestion-dispatch-{job['id']}",
        )
        return job

    async def list(self) -> list[dict[str, Any]]:
        return await self.repository.list_jobs()

    async def get(self, job_id: str) -> dict[str, Any]:
        return await self.repository.get_job(job_id)

    async def update(
        self,
        job_id: str,
        *,
        status: str | None = None,
        message: str | None = None,
        expected_version: int | None = None,
    ) -> dict[str, Any]:
        if status is not None and status not in JOB_STATUSES:
            raise ValueError(f"unknown ingestion status: {status}")

        job = await self.repository.get_job(job_id)
        changes: dict[str, Any] = {}
        if status is not None:
            changes["status"] = status
        if message is not None:
            changes["message"] = message

        now = _utcnow()
        if status == RUNNING and job.get("started_at") is None:
            changes["started_at"] = now
        if status in TERMINAL_STATUSES and job.get("finished_at") is None:
            changes["finished_at"] = now

        updated = await self.repository.update_job(job_id, changes, expected_version=expected_version)
        logger.info(
            "ingestion job updated id=%s status=%s version=%s",
            job_id,
            updated["status"],
            updated["version"],
        )
        return updated

    async def _dispatch(self, job_id: str, *, expected_version: int) -> None:
        with self.tracer.start_as_current_span("ingestion.dispatch") as span:
            span.set_attribute("ingestion.job_id", job_id)
            last_version = expected_version
            try:
                running = await self.update(
                    job_id,
                    status=RUNNING,
                    message="Started",
                    expected_version=expected_version,
                )
                last_version = running["version"]
                await self.client.dispatch(running)
            except RepositoryConflictError:
                logger.info("ingestion job id=%s changed before dispatch; not notifying worker", job_id)
                return
            except Exception as exc:
                logger.warning("ingestion dispatch failed id=%s error=%s", job_id, exc)
                span.record_exception(exc)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(exc) or DEFAULT_FAILURE_MESSAGE))
                await self._fail_job(job_id, str(exc) or DEFAULT_FAILURE_MESSAGE, expected_version=last_version)
                return

            logger.info("ingestion dispatch delivered id=%s", job_id)

    async def _fail_job(self, job_id: str, message: str, *, expected_version: int) -> None:
        try:
            await self.update(job_id, status=FAILED, message=message, expected_version=expected_version)
        except RepositoryConflictError:
            logger.info("ingestion job id=%s already updated by callback; keeping its status", job_id)
        except Exception:
            logger.exception("could not record failure for ingestion job id=%s", job_id)


def get_ingestion_client(settings: Settings = Depends(get_settings)) -> IngestionClient:
    return IngestionClient(
        settings.ingestion_endpoint,
        timeout_seconds=settings.ingestion_timeout_seconds,
    )


def get_ingestion_service(
    repository: Repository = Depends(get_repository),
    client: IngestionClient = Depends(get_ingestion_client),
    tasks: BackgroundTasks = Depends(get_background_tasks),
    tracer: trace.Tracer = Depends(get_tracer),
) -> IngestionService:
    return IngestionService(repository, client, tasks, tracer=tracer)
