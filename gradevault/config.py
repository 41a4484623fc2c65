"""
Configuration settings for GradeVault.

Uses Pydantic Settings to load environment variables for the ledger database,
the reveal oracle, logging, and the identity of the student whose averages are
shown.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Ledger database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("gradevault", alias="DB_NAME")
    ledger_backend: Literal["postgres", "memory"] = Field("postgres", alias="LEDGER_BACKEND")

    # Oracle / relayer
    oracle_url: str = Field("http://localhost:8545/relayer", alias="ORACLE_URL")
    oracle_timeout_seconds: float = Field(15.0, alias="ORACLE_TIMEOUT_SECONDS")
    reveal_timeout_seconds: float = Field(30.0, alias="REVEAL_TIMEOUT_SECONDS")

    # Identity
    student_address: str = Field("0x0000000000000000000000000000000000000000", alias="STUDENT_ADDRESS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


def build_dsn(settings: Settings | None = None) -> str:
    """Compose a Postgres DSN from settings."""
    s = settings or get_settings()
    return f"postgresql://{s.db_user}:{s.db_password}@{s.db_host}:{s.db_port}/{s.db_name}"


__all__ = ["Settings", "get_settings", "build_dsn"]
