from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from starlette.requests import Request

from docvault.api.router import api_router
from docvault.core.config import get_settings
from docvault.core.policy import verify_route_policy
from docvault.core.telemetry import (
    TelemetryRuntime,
    configure_api_logging,
    setup_api_telemetry,
    shutdown_api_telemetry,
)
from docvault.services.ingestion import get_background_tasks
from docvault.services.repository import get_repository

settings = get_settings()
_telemetry_runtime: TelemetryRuntime | None = None
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    verify_route_policy(app.routes)
    logger.info("api started app=%s environment=%s", settings.app_name, settings.environment)
    try:
        yield
    finally:
        tasks = get_background_tasks()
        if len(tasks):
            logger.info("waiting for %d ingestion dispatch task(s)", len(tasks))
        await tasks.drain()
        if _telemetry_runtime is not None:
            shutdown_api_telemetry(app, _telemetry_runtime)
        await get_repository().close()
        get_repository.cache_clear()


configure_api_logging()
app = FastAPI(title=settings.app_name, lifespan=lifespan)
_telemetry_runtime = setup_api_telemetry(app, settings)
app.state.telemetry = _telemetry_runtime


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app.include_router(api_router)
