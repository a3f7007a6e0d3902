# helpdesk_console/core/config.py
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Helpdesk Console"
    APP_DESC: str = "Controller layer for the helpdesk ticketing and automation console"
    APP_VERSION: str = "1.0.0"

    # Remote collaborators
    TICKET_SERVICE_URL: str = Field(default="http://localhost:3001")
    WORKFLOW_SERVICE_URL: str = Field(default="http://localhost:3003")
    REQUEST_TIMEOUT: float = 10.0

    # "remote" talks to the services above, "demo" serves the local store only
    DATA_SOURCE: Literal["remote", "demo"] = "remote"
    DEMO_FALLBACK: bool = True
    DATABASE_URL: str = Field(default="sqlite:///./console_demo.db")

    # Page sizes are fixed per view
    TICKETS_PAGE_SIZE: int = Field(default=10, gt=0)
    WORKFLOWS_PAGE_SIZE: int = Field(default=12, gt=0)
    EXECUTIONS_PAGE_SIZE: int = Field(default=20, gt=0)

    # Operator sessions held at once; the least recently used is closed beyond this
    MAX_CONSOLE_SESSIONS: int = Field(default=100, gt=0)

    LOG_LEVEL: str = "INFO"

    # CORS origins, comma separated
    CORS_ORIGINS: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origins(self) -> list[str]:
        if not self.CORS_ORIGINS:
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
