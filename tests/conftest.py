from __future__ import annotations

import os

os.environ.setdefault("DV_OTEL_ENABLED", "false")
os.environ.setdefault("DV_ENVIRONMENT", "development")
os.environ.setdefault("DV_BCRYPT_ROUNDS", "4")
os.environ.setdefault("DV_JWT_SECRET", "test-secret-that-is-long-enough-for-hs256")

from collections.abc import Iterator
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from docvault.core.auth import Role
from docvault.core.config import get_settings
from docvault.core.passwords import hash_password
from docvault.main import app
from docvault.services.ingestion import get_ingestion_client
from docvault.services.ingestion_client import IngestionClient
from docvault.services.repository import get_repository
from docvault.services.store import InMemoryRepository

PASSWORD = "correct-horse"


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def worker_calls() -> list[dict[str, Any]]:
    return []


@pytest.fixture
def client(repository: InMemoryRepository, worker_calls: list[dict[str, Any]]) -> Iterator[TestClient]:
    def handler(request: httpx.Request) -> httpx.Response:
        worker_calls.append({"url": str(request.url), "body": request.read()})
        return httpx.Response(202, json={"accepted": True})

    get_settings.cache_clear()
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_ingestion_client] = lambda: IngestionClient(
        "http://worker.test/ingest",
        transport=httpx.MockTransport(handler),
    )
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    get_settings.cache_clear()


async def seed_user(
    repository: InMemoryRepository,
    *,
    email: str,
    role: Role = Role.VIEWER,
    is_active: bool = True,
    password: str = PASSWORD,
) -> dict[str, Any]:
    return await repository.create_user(
        email=email,
        first_name="Test",
        last_name=role.value.title(),
        password_hash=hash_password(password, rounds=4),
        role=role.value,
        is_active=is_active,
    )


def login(client: TestClient, email: str, password: str = PASSWORD) -> None:
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
