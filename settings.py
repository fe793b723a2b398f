# settings.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal

_DEV_JWT_SECRET = "dev-secret-change-me"
_DEV_ENVS = ("dev", "local", "test")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    ENV: str = Field(default="dev")
    LOG_LEVEL: str = Field(default="INFO")

    # -----------------------
    # DB / workflow store
    # -----------------------
    DATABASE_URL: str = Field(default="")
    WORKFLOW_STORE: Literal["memory", "postgres"] = "memory"
    DB_POOL_MIN: int = Field(default=1, ge=1)
    DB_POOL_MAX: int = Field(default=10, ge=1)
    DB_STATEMENT_TIMEOUT_MS: int = Field(default=5000, ge=100)

    # -----------------------
    # JWT
    # -----------------------
    JWT_SECRET: str = Field(default=_DEV_JWT_SECRET, min_length=16)
    JWT_ALG: str = Field(default="HS256")
    JWT_ACCESS_MINUTES: int = Field(default=60)

    # -----------------------
    # Customer notifications
    # -----------------------
    NOTIFY_MODE: Literal["log", "http"] = "log"
    NOTIFY_WEBHOOK_URL: str = ""
    NOTIFY_API_KEY: str = ""
    NOTIFY_HTTP_TIMEOUT_S: float = 10.0

    # -----------------------
    # Payment processor webhooks
    # -----------------------
    PAYMENT_WEBHOOK_SECRET: str = ""


settings = Settings()


def _env_name() -> str:
    return (settings.ENV or "dev").strip().lower()


def validate_env_settings() -> None:
    """Fail fast outside dev when required config is missing or left at a dev default."""
    if _env_name() in _DEV_ENVS:
        return

    missing: list[str] = []
    if settings.WORKFLOW_STORE == "postgres" and not (settings.DATABASE_URL or "").strip():
        missing.append("DATABASE_URL")
    if not settings.JWT_SECRET or settings.JWT_SECRET == _DEV_JWT_SECRET:
        missing.append("JWT_SECRET")
    if settings.NOTIFY_MODE == "http" and not (settings.NOTIFY_WEBHOOK_URL or "").strip():
        missing.append("NOTIFY_WEBHOOK_URL")
    if not (settings.PAYMENT_WEBHOOK_SECRET or "").strip():
        missing.append("PAYMENT_WEBHOOK_SECRET")

    if missing:
        raise RuntimeError(
            f"Missing or unsafe settings for ENV={_env_name()}: {', '.join(missing)}"
        )
