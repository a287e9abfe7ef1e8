from fastapi import APIRouter, Depends, HTTPException, status

from docvault.core.security import require_route
from docvault.schemas.ingestion import IngestionJobOut, TriggerIngestionRequest, UpdateIngestionRequest
from docvault.services.ingestion import IngestionService, get_ingestion_service
from docvault.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
)

router = APIRouter()


@router.post(
    "/trigger",
    response_model=IngestionJobOut,
    status_code=status.HTTP_201_CREATED,
    name="ingestion.trigger",
    dependencies=[Depends(require_route("ingestion.trigger"))],
)
async def trigger_ingestion(
    payload: TriggerIngestionRequest,
    ingestion: IngestionService = Depends(get_ingestion_service),
) -> IngestionJobOut:
    try:
        job = await ingestion.trigger(
            source_type=payload.source_type,
            source_ref=payload.source_ref,
            params=payload.params,
            correlation_id=payload.correlation_id,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return IngestionJobOut(**job)


@router.get(
    "",
    response_model=list[IngestionJobOut],
    name="ingestion.list",
    dependencies=[Depends(require_route("ingestion.list"))],
)
async def list_ingestion_jobs(
    ingestion: IngestionService = Depends(get_ingestion_service),
) -> list[IngestionJobOut]:
    try:
        jobs = await ingestion.list()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return [IngestionJobOut(**job) for job in jobs]


@router.get(
    "/{job_id}",
    response_model=IngestionJobOut,
    name="ingestion.get",
    dependencies=[Depends(require_route("ingestion.get"))],
)
async def get_ingestion_job(
    job_id: str,
    ingestion: IngestionService = Depends(get_ingestion_service),
) -> IngestionJobOut:
    try:
        job = await ingestion.get(job_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return IngestionJobOut(**job)


@router.patch(
    "/{job_id}",
    response_model=IngestionJobOut,
    name="ingestion.update",
    dependencies=[Depends(require_route("ingestion.update"))],
)
async def update_ingestion_job(
    job_id: str,
    payload: UpdateIngestionRequest,
    ingestion: IngestionService = Depends(get_ingestion_service),
) -> IngestionJobOut:
    try:
        job = await ingestion.update(
            job_id,
            status=payload.status,
            message=payload.message,
            expected_version=payload.expected_version,
        )
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return IngestionJobOut(**job)
