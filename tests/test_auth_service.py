from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from docvault.core.auth import Role
from docvault.core.errors import EmailInUseError, InvalidCredentialsError, InvalidRefreshTokenError
from docvault.core.passwords import verify_password
from docvault.core.tokens import TokenService
from docvault.services.auth import AuthService
from docvault.services.store import InMemoryRepository

SECRET = "auth-service-secret-long-enough-for-hs256"


def _service(repository: InMemoryRepository) -> AuthService:
    return AuthService(
        repository,
        TokenService(SECRET),
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=7),
        bcrypt_rounds=4,
    )


def test_signup_then_login_issues_distinct_tokens() -> None:
    async def scenario() -> None:
        repository = InMemoryRepository()
        auth = _service(repository)

        user = await auth.signup("a@x.com", "Ann", "Smith", "pw-123456")
        pair = await auth.login("a@x.com", "pw-123456")

        assert user["role"] == Role.VIEWER.value
        assert user["is_active"] is True
        assert user["password_hash"] != "pw-123456"
        assert verify_password("pw-123456", user["password_hash"])
        assert pair.access_token != pair.refresh_token

        identity = auth.get_identity(pair.access_token)
        assert identity is not None
        assert identity.role is Role.VIEWER
        assert (identity.first_name, identity.last_name) == ("Ann", "Smith")

    asyncio.run(scenario())


def test_login_failures_are_indistinguishable() -> None:
    async def scenario() -> None:
        repository = InMemoryRepository()
        auth = _service(repository)
        await auth.signup("a@x.com", "Ann", "Smith", "pw-123456")

        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await auth.login("a@x.com", "nope-nope")
        with pytest.raises(InvalidCredentialsError) as unknown_email:
            await auth.login("nobody@x.com", "pw-123456")

        assert str(wrong_password.value) == str(unknown_email.value) == "Invalid credentials"

    asyncio.run(scenario())


def test_login_rejects_inactive_user() -> None:
    async def scenario() -> None:
        repository = InMemoryRepository()
        auth = _service(repository)
        user = await auth.signup("a@x.com", "Ann", "Smith", "pw-123456")
        await repository.update_user(user["id"], {"is_active": False})

        with pytest.raises(InvalidCredentialsError):
            await auth.login("a@x.com", "pw-123456")

    asyncio.run(scenario())


def test_signup_rejects_duplicate_email() -> None:
    async def scenario() -> None:
        repository = InMemoryRepository()
        auth = _service(repository)
        await auth.signup("a@x.com", "Ann", "Smith", "pw-123456")

        with pytest.raises(EmailInUseError):
            await auth.signup("a@x.com", "Other", "Person", "pw-654321")
        assert await repository.count_users() == 1

    asyncio.run(scenario())


def test_rotate_tokens_issues_new_pair_for_active_user() -> None:
    async def scenario() -> None:
        repository = InMemoryRepository()
        auth = _service(repository)
        await auth.signup("a@x.com", "Ann", "Smith", "pw-123456")
        pair = await auth.login("a@x.com", "pw-123456")

        rotated = await auth.rotate_tokens(pair.refresh_token)

        identity = auth.get_identity(rotated.access_token)
        assert identity is not None and identity.first_name == "Ann"

    asyncio.run(scenario())


def test_rotate_tokens_picks_up_role_changes() -> None:
    async def scenario() -> None:
        repository = InMemoryRepository()
        auth = _service(repository)
        user = await auth.signup("a@x.com", "Ann", "Smith", "pw-123456")
        pair = await auth.login("a@x.com", "pw-123456")
        await repository.update_user(user["id"], {"role": Role.EDITOR.value})

        rotated = await auth.rotate_tokens(pair.refresh_token)

        identity = auth.get_identity(rotated.access_token)
        assert identity is not None and identity.role is Role.EDITOR

    asyncio.run(scenario())


@pytest.mark.parametrize("token", [None, "", "garbage"])
def test_rotate_tokens_rejects_invalid_refresh_token(token: str | None) -> None:
    async def scenario() -> None:
        auth = _service(InMemoryRepository())
        with pytest.raises(InvalidRefreshTokenError):
            await auth.rotate_tokens(token)

    asyncio.run(scenario())


def test_rotate_tokens_rejects_deactivated_user() -> None:
    async def scenario() -> None:
        repository = InMemoryRepository()
        auth = _service(repository)
        user = await auth.signup("a@x.com", "Ann", "Smith", "pw-123456")
        pair = await auth.login("a@x.com", "pw-123456")
        await repository.update_user(user["id"], {"is_active": False})

        with pytest.raises(InvalidCredentialsError):
            await auth.rotate_tokens(pair.refresh_token)

    asyncio.run(scenario())


def test_get_identity_returns_none_for_bad_tokens() -> None:
    auth = _service(InMemoryRepository())

    assert auth.get_identity(None) is None
    assert auth.get_identity("") is None
    assert auth.get_identity("garbage") is None


def test_identity_of_fresh_signup() -> None:
    async def scenario() -> None:
        auth = _service(InMemoryRepository())
        await auth.signup("a@x.com", "A", "B", "pw123456")
        pair = await auth.login("a@x.com", "pw123456")

        identity = auth.get_identity(pair.access_token)

        assert identity is not None
        assert (identity.role, identity.first_name, identity.last_name) == (Role.VIEWER, "A", "B")

    asyncio.run(scenario())
