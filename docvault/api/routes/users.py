from fastapi import APIRouter, Depends, HTTPException, status

from docvault.core.security import require_route
from docvault.schemas.users import (
    UserCreateRequest,
    UserDeleted,
    UserDeleteEnvelope,
    UserEnvelope,
    UserListEnvelope,
    UserOut,
    UserUpdateRequest,
)
from docvault.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
)
from docvault.services.users import UserService, get_user_service

router = APIRouter()


@router.post(
    "",
    response_model=UserEnvelope,
    status_code=status.HTTP_201_CREATED,
    name="user.create",
    dependencies=[Depends(require_route("user.create"))],
)
async def create_user(
    payload: UserCreateRequest,
    users: UserService = Depends(get_user_service),
) -> UserEnvelope:
    try:
        row = await users.create(
            email=payload.email,
            first_name=payload.first_name,
            last_name=payload.last_name,
            password=payload.password,
            role=payload.role,
            is_active=payload.is_active,
        )
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return UserEnvelope(message="User created successfully", data=UserOut(**row))


@router.get(
    "",
    response_model=UserListEnvelope,
    name="user.list",
    dependencies=[Depends(require_route("user.list"))],
)
async def list_users(users: UserService = Depends(get_user_service)) -> UserListEnvelope:
    try:
        rows, total = await users.list()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return UserListEnvelope(
        message="Users retrieved successfully",
        data=[UserOut(**row) for row in rows],
        total=total,
    )


@router.get(
    "/{user_id}",
    response_model=UserEnvelope,
    name="user.get",
    dependencies=[Depends(require_route("user.get"))],
)
async def get_user(user_id: str, users: UserService = Depends(get_user_service)) -> UserEnvelope:
    try:
        row = await users.get(user_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return UserEnvelope(message="User retrieved successfully", data=UserOut(**row))


@router.patch(
    "/{user_id}",
    response_model=UserEnvelope,
    name="user.update",
    dependencies=[Depends(require_route("user.update"))],
)
async def update_user(
    user_id: str,
    payload: UserUpdateRequest,
    users: UserService = Depends(get_user_service),
) -> UserEnvelope:
    try:
        row = await users.update(user_id, payload.model_dump(exclude_unset=True))
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return UserEnvelope(message="User updated successfully", data=UserOut(**row))


@router.delete(
    "/{user_id}",
    response_model=UserDeleteEnvelope,
    name="user.delete",
    dependencies=[Depends(require_route("user.delete"))],
)
async def delete_user(user_id: str, users: UserService = Depends(get_user_service)) -> UserDeleteEnvelope:
    try:
        result = await users.delete(user_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return UserDeleteEnvelope(message="User deleted successfully", data=UserDeleted(**result))
