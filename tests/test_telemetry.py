from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from docvault.core.config import Settings
from docvault.core.errors import ExternalDispatchError
from docvault.core.telemetry import (
    DISABLED,
    NO_TRACE_ID,
    get_tracer,
    install_log_correlation,
    parse_otlp_headers,
    setup_api_telemetry,
    shutdown_api_telemetry,
)
from docvault.main import app
from docvault.services.ingestion import BackgroundTasks, IngestionService, get_background_tasks
from docvault.services.store import InMemoryRepository


class FakeClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    async def dispatch(self, job: dict[str, Any]) -> None:
        if self.error is not None:
            raise self.error


def _recording_provider() -> tuple[TracerProvider, InMemorySpanExporter]:
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return provider, exporter


def _run_dispatch(provider: TracerProvider, client: FakeClient) -> str:
    async def scenario() -> str:
        tasks = BackgroundTasks()
        service = IngestionService(InMemoryRepository(), client, tasks, tracer=provider.get_tracer("tests"))
        job = await service.trigger(source_type="s3", source_ref="bucket/key.pdf")
        await tasks.drain()
        return job["id"]

    return asyncio.run(scenario())


def test_parse_otlp_headers_ignores_malformed_items() -> None:
    assert parse_otlp_headers(None) == {}
    assert parse_otlp_headers("authorization=Bearer abc, x-team = docs ,broken,=nokey") == {
        "authorization": "Bearer abc",
        "x-team": "docs",
    }


def test_dispatch_is_recorded_as_span() -> None:
    provider, exporter = _recording_provider()

    job_id = _run_dispatch(provider, FakeClient())

    spans = exporter.get_finished_spans()
    assert [span.name for span in spans] == ["ingestion.dispatch"]
    assert spans[0].attributes["ingestion.job_id"] == job_id
    assert spans[0].status.status_code is not StatusCode.ERROR


def test_failed_dispatch_span_records_exception() -> None:
    provider, exporter = _recording_provider()

    _run_dispatch(provider, FakeClient(ExternalDispatchError("ingestion endpoint returned 500")))

    (span,) = exporter.get_finished_spans()
    assert span.status.status_code is StatusCode.ERROR
    assert [event.name for event in span.events] == ["exception"]
    assert span.events[0].attributes["exception.message"] == "ingestion endpoint returned 500"


def test_dispatch_logs_carry_span_ids(caplog: pytest.LogCaptureFixture) -> None:
    install_log_correlation()
    provider, exporter = _recording_provider()
    caplog.set_level(logging.INFO, logger="docvault.services.ingestion")

    _run_dispatch(provider, FakeClient())

    (span,) = exporter.get_finished_spans()
    delivered = [record for record in caplog.records if "dispatch delivered" in record.getMessage()]
    created = [record for record in caplog.records if "ingestion job created" in record.getMessage()]
    assert len(delivered) == 1
    assert delivered[0].trace_id == format(span.context.trace_id, "032x")
    assert delivered[0].span_id == format(span.context.span_id, "016x")
    assert created[0].trace_id == NO_TRACE_ID


def test_triggered_route_uses_app_tracer(client: TestClient) -> None:
    provider, exporter = _recording_provider()
    app.dependency_overrides[get_tracer] = lambda: provider.get_tracer("tests")

    response = client.post("/ingestion/trigger", json={"sourceType": "s3", "sourceRef": "bucket/key.pdf"})
    client.portal.call(get_background_tasks().drain)

    assert response.status_code == 201
    dispatch_spans = [span for span in exporter.get_finished_spans() if span.name == "ingestion.dispatch"]
    assert [span.attributes["ingestion.job_id"] for span in dispatch_spans] == [response.json()["id"]]


def test_setup_and_shutdown_flush_spans() -> None:
    traced_app = FastAPI()
    runtime = setup_api_telemetry(traced_app, Settings(otel_enabled=True, otel_exporter_otlp_endpoint=None))
    assert runtime.enabled and runtime.provider is not None
    exporter = InMemorySpanExporter()
    runtime.provider.add_span_processor(BatchSpanProcessor(exporter, schedule_delay_millis=60_000))

    with runtime.get_tracer().start_as_current_span("startup-check"):
        pass
    shutdown_api_telemetry(traced_app, runtime)

    assert [span.name for span in exporter.get_finished_spans()] == ["startup-check"]


def test_disabled_telemetry_is_a_no_op() -> None:
    runtime = setup_api_telemetry(FastAPI(), Settings(otel_enabled=False))

    assert runtime is DISABLED
    assert runtime.provider is None
    shutdown_api_telemetry(FastAPI(), runtime)
