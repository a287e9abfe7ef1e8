from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

from conftest import login, seed_user
from docvault.core.auth import Principal, Role
from docvault.core.config import get_settings
from docvault.core.errors import ForbiddenError, UnauthenticatedError
from docvault.core.policy import (
    ADMIN_ONLY,
    PUBLIC,
    READERS,
    ROUTE_ROLES,
    WRITERS,
    UndeclaredRouteError,
    required_roles,
    verify_route_policy,
)
from docvault.core.security import ACCESS_COOKIE, authorize
from docvault.core.tokens import TokenPayload, TokenService
from docvault.main import app
from docvault.services.store import InMemoryRepository

SECRET = "role-guard-secret-long-enough-for-hs256"


def _token(tokens: TokenService, role: Role, ttl: timedelta = timedelta(minutes=5)) -> str:
    return tokens.issue(TokenPayload(subject_id="user-1", role=role, first_name="T", last_name="U"), ttl)


def test_authorize_skips_token_check_for_public_routes() -> None:
    tokens = TokenService(SECRET)

    assert authorize(PUBLIC, None, tokens) is None
    assert authorize(PUBLIC, "garbage", tokens) is None


def test_authorize_requires_token_for_protected_routes() -> None:
    with pytest.raises(UnauthenticatedError):
        authorize(READERS, None, TokenService(SECRET))


def test_authorize_rejects_invalid_and_expired_tokens() -> None:
    tokens = TokenService(SECRET)
    expired = _token(tokens, Role.ADMIN, ttl=timedelta(seconds=-30))

    with pytest.raises(UnauthenticatedError):
        authorize(READERS, "garbage", tokens)
    with pytest.raises(UnauthenticatedError):
        authorize(READERS, expired, tokens)


@pytest.mark.parametrize(
    ("allowed", "role", "permitted"),
    [
        (ADMIN_ONLY, Role.ADMIN, True),
        (ADMIN_ONLY, Role.EDITOR, False),
        (ADMIN_ONLY, Role.VIEWER, False),
        (WRITERS, Role.EDITOR, True),
        (WRITERS, Role.VIEWER, False),
        (READERS, Role.VIEWER, True),
    ],
)
def test_authorize_checks_role_membership(allowed: frozenset[Role], role: Role, permitted: bool) -> None:
    tokens = TokenService(SECRET)
    token = _token(tokens, role)

    if permitted:
        principal = authorize(allowed, token, tokens)
        assert isinstance(principal, Principal)
        assert principal.role is role
        assert principal.subject == "user-1"
    else:
        with pytest.raises(ForbiddenError):
            authorize(allowed, token, tokens)


def test_every_app_route_is_declared() -> None:
    verify_route_policy(app.routes)


def test_undeclared_route_fails_policy_check() -> None:
    router = APIRouter()

    @router.get("/surprise", name="surprise.get")
    async def surprise() -> dict[str, str]:
        return {}

    unguarded = FastAPI()
    unguarded.include_router(router)

    with pytest.raises(UndeclaredRouteError):
        verify_route_policy(unguarded.routes)
    with pytest.raises(UndeclaredRouteError):
        required_roles("surprise.get")


def test_policy_keeps_user_management_admin_only() -> None:
    assert {name for name, roles in ROUTE_ROLES.items() if name.startswith("user.")} == {
        "user.create",
        "user.list",
        "user.get",
        "user.update",
        "user.delete",
    }
    assert all(ROUTE_ROLES[name] == ADMIN_ONLY for name in ROUTE_ROLES if name.startswith("user."))


def test_anonymous_request_to_protected_route_is_unauthorized(client: TestClient) -> None:
    response = client.get("/user")

    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"


def test_viewer_is_forbidden_from_user_management(client: TestClient, repository: InMemoryRepository) -> None:
    asyncio.run(seed_user(repository, email="viewer@example.com", role=Role.VIEWER))
    login(client, "viewer@example.com")

    response = client.get("/user")

    assert response.status_code == 403


def test_editor_is_forbidden_from_user_management(client: TestClient, repository: InMemoryRepository) -> None:
    asyncio.run(seed_user(repository, email="editor@example.com", role=Role.EDITOR))
    login(client, "editor@example.com")

    assert client.get("/user").status_code == 403
    assert client.get("/document").status_code == 200


def test_admin_is_allowed_user_management(client: TestClient, repository: InMemoryRepository) -> None:
    asyncio.run(seed_user(repository, email="admin@example.com", role=Role.ADMIN))
    login(client, "admin@example.com")

    response = client.get("/user")

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_tampered_cookie_is_unauthorized(client: TestClient) -> None:
    client.cookies.set(ACCESS_COOKIE, "not.a.token")

    response = client.get("/document")

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


def test_token_from_configured_secret_is_accepted_without_login(client: TestClient) -> None:
    tokens = TokenService(get_settings().jwt_secret)
    client.cookies.set(ACCESS_COOKIE, _token(tokens, Role.VIEWER))

    assert client.get("/document").status_code == 200


def test_public_routes_ignore_cookies(client: TestClient) -> None:
    client.cookies.set(ACCESS_COOKIE, "garbage")

    assert client.get("/healthz").status_code == 200
    assert client.get("/ingestion").status_code == 200
