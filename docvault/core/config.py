from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "docvault-api"
    environment: str = "development"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    jwt_secret: str = "docvault-development-secret-change-me-please"
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 15 * 60
    refresh_token_ttl_seconds: int = 7 * 24 * 60 * 60
    bcrypt_rounds: int = 12
    cookie_samesite: Literal["lax", "strict"] = "strict"
    ingestion_endpoint: str = "http://python-backend.local/ingest"
    ingestion_timeout_seconds: float | None = None
    admin_email: str = "admin@docvault.dev"
    admin_first_name: str = "Admin"
    admin_last_name: str = "User"
    admin_password: str | None = None
    otel_enabled: bool = True
    otel_service_name: str = "docvault-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="DV_", extra="ignore")

    @property
    def cookie_secure(self) -> bool:
        return self.environment != "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()
