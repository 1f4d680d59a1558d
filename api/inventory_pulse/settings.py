# inventory_pulse/settings.py
"""
Inventory Pulse Settings.

Database, platform API and sync tuning, read from env / .env.
"""
from __future__ import annotations
from pathlib import Path
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices

class Settings(BaseSettings):
    # =========================================================================
    # File Storage (logs)
    # =========================================================================
    DATA_ROOT: Path = Field(
        default=(Path(__file__).resolve().parents[2] / "inventory-data"),
        validation_alias=AliasChoices("DATA_ROOT", "INVENTORY_DATA_ROOT"),
    )

    # =========================================================================
    # PostgreSQL Database
    # =========================================================================
    DATABASE_URL: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")
    DB_HOST: str = Field(default="localhost", validation_alias="DB_HOST")
    DB_PORT: int = Field(default=5432, validation_alias="DB_PORT")
    DB_NAME: str = Field(default="inventory_pulse", validation_alias="DB_NAME")
    DB_USER: str = Field(default="postgres", validation_alias="DB_USER")
    DB_PASSWORD: str = Field(default="postgres", validation_alias="DB_PASSWORD")

    # Connection pool settings
    DB_POOL_SIZE: int = Field(default=10, validation_alias="DB_POOL_SIZE")
    DB_MAX_OVERFLOW: int = Field(default=0, validation_alias="DB_MAX_OVERFLOW")
    DB_ECHO: bool = Field(default=False, validation_alias="DB_ECHO")

    # =========================================================================
    # Platform GraphQL API
    # =========================================================================
    PLATFORM_API_VERSION: str = Field(default="2024-10", validation_alias="PLATFORM_API_VERSION")
    PLATFORM_TIMEOUT: float = Field(default=30.0, gt=0)
    PLATFORM_MAX_RETRIES: int = Field(default=3, ge=0)
    PLATFORM_RETRY_BASE_DELAY: float = Field(default=0.5, ge=0)

    # =========================================================================
    # Sync / Metrics tuning
    # =========================================================================
    LOCATION_PAGE_SIZE: int = Field(default=50, ge=1, le=50)
    PRODUCT_PAGE_SIZE: int = Field(default=10, ge=1, le=250)
    VARIANT_PAGE_SIZE: int = Field(default=20, ge=1, le=20)
    INVENTORY_LEVEL_PAGE_SIZE: int = Field(default=10, ge=1, le=10)

    # Leaves headroom on the pool for concurrent reads
    WRITE_CONCURRENCY: int = Field(default=8, ge=1)
    METRICS_BATCH_SIZE: int = Field(default=100, ge=1)
    INVENTORY_GRANULARITY: Literal["variant", "product"] = "variant"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

settings = Settings()
