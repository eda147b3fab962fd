from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_BASE_URL = "http://localhost:5000"


def normalise_api_base_url(url: str) -> str:
    """Trim, drop trailing slashes and make sure the path ends with /api"""
    base = (url or "").strip().rstrip("/") or DEFAULT_API_BASE_URL
    return base if base.endswith("/api") else f"{base}/api"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Environment
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Registration API
    # The progress service mounts everything under /api; a bare host is accepted
    # and normalised below.
    api_base_url: str = Field(default=DEFAULT_API_BASE_URL)
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    # Retry policy for idempotent reads (progress, documents). 1 = no retry.
    # Step saves are never retried automatically.
    read_retry_attempts: int = Field(default=1, ge=1, le=5)

    # Local draft persistence
    storage_backend: Literal["memory", "file", "redis"] = Field(default="file")
    storage_path: str = Field(default=".registration_state.json")
    storage_key: str = Field(default="registration_session")
    redis_url: str = Field(default="redis://localhost:6379")

    @field_validator("api_base_url", mode="after")
    @classmethod
    def normalise_base_url(cls, v: str) -> str:
        return normalise_api_base_url(v)

    @model_validator(mode="after")
    def validate_production_transport(self):
        """Session ids travel in headers, so production must use TLS"""
        if self.environment == "production" and not self.api_base_url.startswith("https://"):
            raise ValueError(
                "API_BASE_URL must use https:// in production. "
                f"Got: {self.api_base_url}"
            )
        return self


settings = Settings()
