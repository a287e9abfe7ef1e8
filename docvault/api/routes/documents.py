from fastapi import APIRouter, Depends, HTTPException, status

from docvault.core.auth import Principal
from docvault.core.security import require_route
from docvault.schemas.documents import (
    DocumentCreateRequest,
    DocumentDeleted,
    DocumentOut,
    DocumentUpdateRequest,
)
from docvault.services.documents import DocumentService, get_document_service
from docvault.services.repository import RepositoryNotFoundError, RepositoryUnavailableError

router = APIRouter()


@router.post(
    "",
    response_model=DocumentOut,
    status_code=status.HTTP_201_CREATED,
    name="document.create",
)
async def create_document(
    payload: DocumentCreateRequest,
    principal: Principal | None = Depends(require_route("document.create")),
    documents: DocumentService = Depends(get_document_service),
) -> DocumentOut:
    try:
        row = await documents.create(
            title=payload.title,
            description=payload.description,
            tags=payload.tags,
            uploaded_by_id=principal.subject if principal else None,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return DocumentOut(**row)


@router.get(
    "",
    response_model=list[DocumentOut],
    name="document.list",
    dependencies=[Depends(require_route("document.list"))],
)
async def list_documents(documents: DocumentService = Depends(get_document_service)) -> list[DocumentOut]:
    try:
        rows = await documents.list()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return [DocumentOut(**row) for row in rows]


@router.get(
    "/{document_id}",
    response_model=DocumentOut,
    name="document.get",
    dependencies=[Depends(require_route("document.get"))],
)
async def get_document(
    document_id: str,
    documents: DocumentService = Depends(get_document_service),
) -> DocumentOut:
    try:
        row = await documents.get(document_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return DocumentOut(**row)


@router.put(
    "/{document_id}",
    response_model=DocumentOut,
    name="document.update",
    dependencies=[Depends(require_route("document.update"))],
)
async def update_document(
    document_id: str,
    payload: DocumentUpdateRequest,
    documents: DocumentService = Depends(get_document_service),
) -> DocumentOut:
    try:
        row = await documents.update(
            document_id,
            title=payload.title,
            description=payload.description,
            tags=payload.tags,
            status=payload.status,
        )
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return DocumentOut(**row)


@router.delete(
    "/{document_id}",
    response_model=DocumentDeleted,
    name="document.delete",
    dependencies=[Depends(require_route("document.delete"))],
)
async def delete_document(
    document_id: str,
    documents: DocumentService = Depends(get_document_service),
) -> DocumentDeleted:
    try:
        result = await documents.delete(document_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return DocumentDeleted(**result)
