from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from fastapi import Depends

from docvault.core.auth import Role, parse_role
from docvault.core.config import Settings, get_settings
from docvault.core.errors import (
    EmailInUseError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidTokenError,
)
from docvault.core.passwords import hash_password, verify_password
from docvault.core.security import get_token_service
from docvault.core.tokens import TokenPayload, TokenService
from docvault.services.repository import Repository, RepositoryConflictError, get_repository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(slots=True)
class Identity:
    role: Role
    first_name: str
    last_name: str


class AuthService:
    def __init__(
        self,
        repository: Repository,
        tokens: TokenService,
        *,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        bcrypt_rounds: int,
    ) -> None:
        self.repository = repository
        self.tokens = tokens
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.bcrypt_rounds = bcrypt_rounds

    async def login(self, email: str, password: str) -> TokenPair:
        user = await self.repository.find_user_by_email(email, active_only=True)
        if user is None:
            logger.info("login rejected: no active user for email=%s", email)
            raise InvalidCredentialsError("Invalid credentials")

        matches = await asyncio.to_thread(verify_password, password, user.get("password_hash"))
        if not matches:
            logger.info("login rejected: password mismatch for user_id=%s", user["id"])
            raise InvalidCredentialsError("Invalid credentials")

        logger.info("login succeeded user_id=%s", user["id"])
        return self._issue_pair(user)

    async def signup(self, email: str, first_name: str, last_name: str, password: str) -> dict[str, Any]:
        existing = await self.repository.find_user_by_email(email)
        if existing is not None:
            raise EmailInUseError("Email already in use")

        password_hash = await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)
        try:
            user = await self.repository.create_user(
                email=email,
                first_name=first_name,
                last_name=last_name,
                password_hash=password_hash,
                role=Role.VIEWER.value,
                is_active=True,
            )
        except RepositoryConflictError as exc:
            raise EmailInUseError("Email already in use") from exc

        logger.info("signup created user_id=%s", user["id"])
        return user

    async def rotate_tokens(self, refresh_token: str | None) -> TokenPair:
        try:
            payload = self.tokens.verify(refresh_token or "")
        except InvalidTokenError as exc:
            raise InvalidRefreshTokenError("Invalid refresh token") from exc

        user = await self.repository.find_user(payload.subject_id, active_only=True)
        if user is None:
            logger.info("token rotation rejected: no active user for user_id=%s", payload.subject_id)
            raise InvalidCredentialsError("Invalid credentials")

        return self._issue_pair(user)

    def get_identity(self, access_token: str | None) -> Identity | None:
        if not access_token:
            return None
        try:
            payload = self.tokens.verify(access_token)
        except InvalidTokenError:
            return None
        return Identity(role=payload.role, first_name=payload.first_name, last_name=payload.last_name)

    def _issue_pair(self, user: dict[str, Any]) -> TokenPair:
        role = parse_role(user.get("role"))
        if role is None:
            raise InvalidCredentialsError("Invalid credentials")
        payload = TokenPayload(
            subject_id=str(user["id"]),
            role=role,
            first_name=user["first_name"],
            last_name=user["last_name"],
        )
        return TokenPair(
            access_token=self.tokens.issue(payload, self.access_ttl),
            refresh_token=self.tokens.issue(payload, self.refresh_ttl),
        )


def get_auth_service(
    settings: Settings = Depends(get_settings),
    repository: Repository = Depends(get_repository),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(
        repository,
        tokens,
        access_ttl=timedelta(seconds=settings.access_token_ttl_seconds),
        refresh_ttl=timedelta(seconds=settings.refresh_token_ttl_seconds),
        bcrypt_rounds=settings.bcrypt_rounds,
    )
