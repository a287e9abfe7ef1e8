from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import Depends

from docvault.core.auth import Role
from docvault.core.config import Settings, get_settings
from docvault.core.passwords import hash_password
from docvault.services.repository import Repository, get_repository

logger = logging.getLogger(__name__)

USER_PROFILE_FIELDS = ("email", "first_name", "last_name", "role", "is_active")


class UserService:
    def __init__(self, repository: Repository, *, bcrypt_rounds: int) -> None:
        self.repository = repository
        self.bcrypt_rounds = bcrypt_rounds

    async def create(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password: str,
        role: Role = Role.VIEWER,
        is_active: bool = True,
    ) -> dict[str, Any]:
        password_hash = await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)
        user = await self.repository.create_user(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=password_hash,
            role=Role(role).value,
            is_active=is_active,
        )
        logger.info("user created user_id=%s role=%s", user["id"], user["role"])
        return user

    async def list(self) -> tuple[list[dict[str, Any]], int]:
        users = await self.repository.list_users()
        return users, len(users)

    async def get(self, user_id: str) -> dict[str, Any]:
        return await self.repository.get_user(user_id)

    async def update(self, user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        updates = {field: changes[field] for field in USER_PROFILE_FIELDS if changes.get(field) is not None}
        if "role" in updates:
            updates["role"] = Role(updates["role"]).value
        password = changes.get("password")
        if password:
            updates["password_hash"] = await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)

        if not updates:
            return await self.repository.get_user(user_id)
        return await self.repository.update_user(user_id, updates)

    async def update_password(self, user_id: str, new_password: str) -> dict[str, Any]:
        password_hash = await asyncio.to_thread(hash_password, new_password, self.bcrypt_rounds)
        return await self.repository.update_user(user_id, {"password_hash": password_hash})

    async def delete(self, user_id: str) -> dict[str, Any]:
        await self.repository.delete_user(user_id)
        logger.info("user deleted user_id=%s", user_id)
        return {"id": user_id, "deleted": True}

    async def ensure_admin(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password: str,
    ) -> dict[str, Any] | None:
        """Create an ADMIN account unless one already exists.

        Returns the new user, or ``None`` when an admin was already present.
        """
        if await self.repository.count_users(role=Role.ADMIN.value) > 0:
            logger.info("admin user already exists, skipping creation")
            return None
        user = await self.create(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password=password,
            role=Role.ADMIN,
        )
        logger.info("default ADMIN user created email=%s", email)
        return user


def get_user_service(
    settings: Settings = Depends(get_settings),
    repository: Repository = Depends(get_repository),
) -> UserService:
    return UserService(repository, bcrypt_rounds=settings.bcrypt_rounds)
