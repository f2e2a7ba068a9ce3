"""Application configuration loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DATA_DIR = Path(__file__).resolve().parent.parent / "data"

MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Read once at startup; nothing below is re-validated per request."""

    # Database
    database_url: str = Field(f"sqlite:///{DATA_DIR / 'eats.sqlite3'}")
    db_statement_timeout_ms: int = Field(5000, ge=0)

    # Admin identity
    admin_username: Optional[str] = None
    admin_password: Optional[str] = None
    admin_jwt_secret: Optional[str] = None

    # App
    app_env: str = "development"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @field_validator("admin_username", "admin_password", "admin_jwt_secret", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("admin_jwt_secret")
    @classmethod
    def _secret_long_enough(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value.strip()) < MIN_SECRET_LENGTH:
            raise ValueError(f"ADMIN_JWT_SECRET must be at least {MIN_SECRET_LENGTH} characters.")
        return value

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
