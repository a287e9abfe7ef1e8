from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status

from docvault.core.config import Settings, get_settings
from docvault.core.errors import EmailInUseError, InvalidCredentialsError, InvalidRefreshTokenError
from docvault.core.security import ACCESS_COOKIE, REFRESH_COOKIE, require_route
from docvault.schemas.auth import IdentityEnvelope, IdentityOut, LoginRequest, MessageOut, SignupRequest
from docvault.services.auth import AuthService, TokenPair, get_auth_service
from docvault.services.repository import RepositoryUnavailableError

router = APIRouter()


@router.post(
    "/login",
    response_model=MessageOut,
    name="auth.login",
    dependencies=[Depends(require_route("auth.login"))],
)
async def login(
    payload: LoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> MessageOut:
    try:
        pair = await auth.login(payload.email, payload.password)
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    _set_token_cookies(response, pair, settings)
    return MessageOut(message="Login successful")


@router.post(
    "/signup",
    response_model=MessageOut,
    status_code=status.HTTP_201_CREATED,
    name="auth.signup",
    dependencies=[Depends(require_route("auth.signup"))],
)
async def signup(payload: SignupRequest, auth: AuthService = Depends(get_auth_service)) -> MessageOut:
    try:
        await auth.signup(payload.email, payload.first_name, payload.last_name, payload.password)
    except EmailInUseError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return MessageOut(message="Signup successful")


@router.get(
    "/refresh",
    response_model=MessageOut,
    name="auth.refresh",
    dependencies=[Depends(require_route("auth.refresh"))],
)
async def refresh(
    response: Response,
    refresh_token: str | None = Cookie(default=None, alias=REFRESH_COOKIE),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> MessageOut:
    if not refresh_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token missing")

    try:
        pair = await auth.rotate_tokens(refresh_token)
    except (InvalidRefreshTokenError, InvalidCredentialsError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    _set_token_cookies(response, pair, settings)
    return MessageOut(message="Tokens refreshed")


@router.get(
    "/me",
    response_model=IdentityEnvelope,
    name="auth.me",
    dependencies=[Depends(require_route("auth.me"))],
)
async def me(
    access_token: str | None = Cookie(default=None, alias=ACCESS_COOKIE),
    auth: AuthService = Depends(get_auth_service),
) -> IdentityEnvelope:
    identity = auth.get_identity(access_token)
    if identity is None:
        return IdentityEnvelope(data=None)
    return IdentityEnvelope(
        data=IdentityOut(role=identity.role, first_name=identity.first_name, last_name=identity.last_name)
    )


@router.post(
    "/logout",
    response_model=MessageOut,
    name="auth.logout",
    dependencies=[Depends(require_route("auth.logout"))],
)
async def logout(response: Response, settings: Settings = Depends(get_settings)) -> MessageOut:
    for cookie in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            cookie,
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )
    return MessageOut(message="Logout successful")


def _set_token_cookies(response: Response, pair: TokenPair, settings: Settings) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        pair.access_token,
        max_age=settings.access_token_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        pair.refresh_token,
        max_age=settings.refresh_token_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )
