# parcel_hub/settings.py
"""
Parcel Hub Settings - PostgreSQL backend + import pipeline tuning.
"""
from __future__ import annotations
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices

class Settings(BaseSettings):
    # =========================================================================
    # File Storage (logs)
    # =========================================================================
    PARCEL_DATA_ROOT: Path = Field(
        default=(Path(__file__).resolve().parents[2] / "parcel-data"),
        validation_alias=AliasChoices("PARCEL_DATA_ROOT", "ph_data_root"),
    )

    # =========================================================================
    # Logging
    # =========================================================================
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    PIPELINE_LOG_LEVEL: Optional[str] = Field(
        default=None,
        validation_alias="PIPELINE_LOG_LEVEL",
        description="Level for the import/create pipeline loggers; inherits LOG_LEVEL when unset",
    )
    LOG_MAX_BYTES: int = Field(default=5_000_000, ge=1024, validation_alias="LOG_MAX_BYTES")
    LOG_BACKUP_COUNT: int = Field(default=3, ge=0, validation_alias="LOG_BACKUP_COUNT")

    # =========================================================================
    # PostgreSQL Database
    # =========================================================================
    DB_HOST: str = Field(default="localhost", validation_alias="DB_HOST")
    DB_PORT: int = Field(default=5432, validation_alias="DB_PORT")
    DB_NAME: str = Field(default="parcel_hub", validation_alias="DB_NAME")
    DB_USER: str = Field(default="postgres", validation_alias="DB_USER")
    DB_PASSWORD: str = Field(default="postgres", validation_alias="DB_PASSWORD")

    # Connection pool settings
    DB_POOL_SIZE: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    DB_MAX_OVERFLOW: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")
    DB_ECHO: bool = Field(default=False, validation_alias="DB_ECHO")

    # Full URL override (e.g. sqlite+aiosqlite:///parcel.db for local runs)
    DATABASE_URL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "ph_database_url"),
    )

    # =========================================================================
    # Import Pipeline
    # =========================================================================
    IMPORT_BATCH_SIZE: int = Field(default=50, ge=1, validation_alias="IMPORT_BATCH_SIZE")
    STORE_TIMEOUT_S: float = Field(
        default=15.0,
        gt=0,
        validation_alias="STORE_TIMEOUT_S",
        description="Upper bound for a single store round trip",
    )
    SHORT_CODE_LENGTH: int = Field(default=6, ge=4, le=16, validation_alias="SHORT_CODE_LENGTH")
    MAX_REPORTED_ERRORS: int = Field(default=10, ge=0, validation_alias="MAX_REPORTED_ERRORS")
    DEFAULT_ORIGIN: str = Field(default="Main Office", validation_alias="DEFAULT_ORIGIN")
    DEFAULT_BRANCH_CODE: Optional[str] = Field(
        default=None,
        validation_alias="DEFAULT_BRANCH_CODE",
        description="Destination branch code; first branch by code when unset",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

settings = Settings()
