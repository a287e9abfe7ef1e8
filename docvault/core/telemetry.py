"""Tracing and log correlation for the API process.

``setup_api_telemetry`` builds one ``TracerProvider`` per app and installs it
as the global provider. Code that opens its own spans (the ingestion
dispatch) asks the app's ``TelemetryRuntime`` for a tracer through the
``get_tracer`` dependency, so tests can hand in a provider of their own.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from collections.abc import Callable

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from starlette.requests import Request

from docvault.core.config import Settings

INSTRUMENTATION_SCOPE = "docvault"
NO_TRACE_ID = "0" * 32
NO_SPAN_ID = "0" * 16
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s span_id=%(span_id)s %(message)s"

logger = logging.getLogger(__name__)
_httpx_instrumentor = HTTPXClientInstrumentor()


@dataclass(slots=True)
class TelemetryRuntime:
    enabled: bool
    provider: TracerProvider | None

    def get_tracer(self, name: str = INSTRUMENTATION_SCOPE) -> trace.Tracer:
        if self.provider is not None:
            return self.provider.get_tracer(name)
        return trace.get_tracer(name)


DISABLED = TelemetryRuntime(enabled=False, provider=None)


class TraceContextRecordFactory:
    """Log record factory that stamps records with the active span's ids."""

    def __init__(self, base: Callable[..., logging.LogRecord]) -> None:
        self.base = base

    def __call__(self, *args: object, **kwargs: object) -> logging.LogRecord:
        record = self.base(*args, **kwargs)
        context = trace.get_current_span().get_span_context()
        if context.is_valid:
            record.trace_id = format(context.trace_id, "032x")
            record.span_id = format(context.span_id, "016x")
        else:
            record.trace_id = NO_TRACE_ID
            record.span_id = NO_SPAN_ID
        return record


def configure_api_logging() -> None:
    install_log_correlation()
    if logging.getLogger().handlers:
        return
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)


def install_log_correlation() -> None:
    current = logging.getLogRecordFactory()
    if isinstance(current, TraceContextRecordFactory):
        return
    logging.setLogRecordFactory(TraceContextRecordFactory(current))


def setup_api_telemetry(app: FastAPI, settings: Settings) -> TelemetryRuntime:
    if not settings.otel_enabled:
        return DISABLED

    if settings.otel_log_correlation:
        install_log_correlation()

    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: settings.otel_service_name,
                DEPLOYMENT_ENVIRONMENT: settings.environment,
            }
        ),
        sampler=TraceIdRatioBased(settings.otel_trace_sample_ratio),
    )
    exporter = _build_exporter(settings)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)
    _httpx_instrumentor.instrument(tracer_provider=provider)
    logger.info(
        "telemetry enabled service=%s sample_ratio=%s exporter=%s",
        settings.otel_service_name,
        settings.otel_trace_sample_ratio,
        "otlp" if exporter is not None else "none",
    )
    return TelemetryRuntime(enabled=True, provider=provider)


def shutdown_api_telemetry(app: FastAPI, runtime: TelemetryRuntime) -> None:
    if not runtime.enabled:
        return
    FastAPIInstrumentor.uninstrument_app(app)
    _httpx_instrumentor.uninstrument()
    if runtime.provider is not None:
        runtime.provider.force_flush()
        runtime.provider.shutdown()


def get_tracer(request: Request) -> trace.Tracer:
    runtime: TelemetryRuntime = getattr(request.app.state, "telemetry", DISABLED)
    return runtime.get_tracer()


def parse_otlp_headers(raw: str | None) -> dict[str, str]:
    """Parse ``key=value,key=value``; items without ``=`` or a key are skipped."""
    pairs = (item.partition("=") for item in (raw or "").split(","))
    return {key.strip(): value.strip() for key, separator, value in pairs if separator and key.strip()}


def _build_exporter(settings: Settings) -> OTLPSpanExporter | None:
    if not settings.otel_exporter_otlp_endpoint:
        logger.info("DV_OTEL_EXPORTER_OTLP_ENDPOINT not set; spans stay in-process")
        return None
    return OTLPSpanExporter(
        endpoint=settings.otel_exporter_otlp_endpoint,
        headers=parse_otlp_headers(settings.otel_exporter_otlp_headers) or None,
    )
