from __future__ import annotations

from typing import Any

import httpx

from docvault.core.errors import ExternalDispatchError


class IngestionClient:
    """Notifies the external ingestion worker about a job.

    ``timeout_seconds=None`` keeps httpx's default timeout.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def dispatch(self, job: dict[str, Any]) -> None:
        payload = {
            "jobId": job["id"],
            "sourceType": job["source_type"],
            "sourceRef": job["source_ref"],
            "params": job.get("params"),
            "correlationId": job.get("correlation_id"),
        }
        client_kwargs: dict[str, Any] = {}
        if self.timeout_seconds is not None:
            client_kwargs["timeout"] = self.timeout_seconds
        if self.transport is not None:
            client_kwargs["transport"] = self.transport

        try:
            async with httpx.AsyncClient(**client_kwargs) as client:
                response = await client.post(self.endpoint, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ExternalDispatchError(
                f"ingestion endpoint returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExternalDispatchError(f"ingestion endpoint unreachable: {exc}") from exc
