import logging
from collections.abc import Awaitable, Callable, Collection

from fastapi import Cookie, Depends, HTTPException, status

from docvault.core.auth import Principal, Role
from docvault.core.config import Settings, get_settings
from docvault.core.errors import ForbiddenError, InvalidTokenError, UnauthenticatedError
from docvault.core.policy import required_roles
from docvault.core.tokens import TokenService

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"

logger = logging.getLogger(__name__)


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings.jwt_secret, algorithm=settings.jwt_algorithm)


def authorize(
    required: Collection[Role],
    access_token: str | None,
    tokens: TokenService,
) -> Principal | None:
    """Check an access token against a route's allowed roles.

    Returns ``None`` for public routes without looking at the token at all.
    """
    if not required:
        return None

    if not access_token:
        raise UnauthenticatedError("Not authenticated")

    try:
        payload = tokens.verify(access_token)
    except InvalidTokenError as exc:
        raise UnauthenticatedError("Invalid or expired token") from exc

    principal = Principal(
        subject=payload.subject_id,
        role=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    try:
        principal.require_roles(required)
    except PermissionError as exc:
        raise ForbiddenError(str(exc)) from exc
    return principal


def require_route(route_name: str) -> Callable[..., Awaitable[Principal | None]]:
    required = required_roles(route_name)

    async def guard(
        tokens: TokenService = Depends(get_token_service),
        access_token: str | None = Cookie(default=None, alias=ACCESS_COOKIE),
    ) -> Principal | None:
        try:
            return authorize(required, access_token, tokens)
        except UnauthenticatedError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
        except ForbiddenError as exc:
            logger.info("role guard denied route=%s reason=%s", route_name, exc)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    guard.__name__ = f"require_{route_name.replace('.', '_')}"
    return guard
