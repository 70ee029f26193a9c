from __future__ import annotations

from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Load env values for SDKs that read os.environ directly (openai, anthropic, langfuse).
_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)


def _split_csv(value: str | list[str]) -> list[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"

    PAGEGEN_DB_URL: str = "sqlite:///./pagegen.db"
    PAGEGEN_INTERNAL_API_TOKEN: str
    BACKEND_CORS_ORIGINS: Annotated[list[str], NoDecode] = ["http://localhost:5173"]

    OPENAI_API_KEY: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    COPY_MODEL: str = "gpt-4o-mini"
    COPY_MAX_TOKENS: int = 900
    COPY_TEMPERATURE: float = 0.7

    COPY_SERVICE_BASE_URL: AnyHttpUrl = "http://localhost:8000"
    COPY_SERVICE_TIMEOUT_SECONDS: float = 20.0

    SCRAPE_TIMEOUT_SECONDS: float = 15.0
    SCRAPE_MAX_IMAGES: int = 10
    # Hostnames background scrape jobs may fetch. Empty means no job may scrape.
    SCRAPE_ALLOWED_DOMAINS: Annotated[list[str], NoDecode] = []

    TEMPORAL_ADDRESS: str = "localhost:7233"
    TEMPORAL_NAMESPACE: str = "default"
    TEMPORAL_TASK_QUEUE: str = "pagegen"
    JOB_MAX_ATTEMPTS: int = 3
    JOB_BACKOFF_INITIAL_SECONDS: float = 5.0
    JOB_ACTIVITY_TIMEOUT_MINUTES: int = 10

    NOTIFICATION_DURATION_SECONDS: float = 5.0

    LANGFUSE_ENABLED: bool = False
    LANGFUSE_PUBLIC_KEY: str | None = None
    LANGFUSE_SECRET_KEY: str | None = None
    LANGFUSE_HOST: str = "https://cloud.langfuse.com"
    LANGFUSE_ENVIRONMENT: str | None = None
    LANGFUSE_SAMPLE_RATE: float = 1.0

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, value: str | list[str]) -> list[str]:
        return _split_csv(value)

    @field_validator("SCRAPE_ALLOWED_DOMAINS", mode="before")
    @classmethod
    def split_allowed_domains(cls, value: str | list[str]) -> list[str]:
        return [domain.lower() for domain in _split_csv(value)]

    @property
    def copy_service_base_url(self) -> str:
        return str(self.COPY_SERVICE_BASE_URL).rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
