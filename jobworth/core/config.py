from functools import lru_cache

from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


RankBackendName = Literal["histogram", "database"]


class Settings(BaseSettings):
    """Strongly typed configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="Job Worth Rank API")
    environment: Literal["dev", "test", "staging", "prod"] = Field(default="dev")
    debug: bool = Field(default=False)
    database_url: str = Field(default="sqlite+pysqlite:///./jobworth.db")

    run_startup_ddl: bool = Field(default=True)
    metrics_enabled: bool = Field(default=True)
    admin_token: Optional[str] = Field(default=None, description="Shared secret for /admin routes; unset disables them")

    # Database connection pooling settings
    db_pool_size: int = Field(default=5, ge=1, le=50, description="Number of connections to keep in the pool")
    db_max_overflow: int = Field(default=10, ge=0, le=100, description="Max connections to create beyond pool_size")
    db_pool_timeout: int = Field(default=30, ge=1, le=300, description="Seconds to wait for connection from pool")
    db_pool_recycle: int = Field(default=3600, ge=300, description="Seconds before recycling a connection")
    db_pool_pre_ping: bool = Field(default=True, description="Enable connection health checks before use")

    # Statistics backends
    histogram_backend: Literal["memory", "database"] = Field(default="database")
    histogram_rebuild_on_startup: bool = Field(
        default=False,
        description="Replay every stored evaluation into the histogram at startup",
    )
    submit_rank_backend: RankBackendName = Field(default="histogram")
    lookup_rank_backend: RankBackendName = Field(default="database")
    result_rank_backend: RankBackendName = Field(default="histogram")
    min_samples_database: int = Field(default=1, ge=0)
    min_samples_histogram: int = Field(default=1000, ge=0)

    # Deduplication windows
    submit_dedup_window_seconds: int = Field(default=600, ge=0)
    lookup_dedup_window_seconds: int = Field(default=60, ge=0)
    durable_dedup_window_seconds: int = Field(default=600, ge=0)
    recency_soft_capacity: int = Field(default=1000, ge=1)
    recency_hard_capacity: int = Field(default=10_000, ge=1)

    @field_validator("admin_token", mode="before")
    @classmethod
    def _normalize_blank_token(cls, value: object) -> Optional[str]:
        if value in (None, "", b""):
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        raise TypeError("ADMIN_TOKEN must be a string")

    @field_validator("recency_hard_capacity")
    @classmethod
    def _hard_capacity_not_below_soft(cls, value: int, info) -> int:
        soft = info.data.get("recency_soft_capacity")
        if soft is not None and value < soft:
            raise ValueError("RECENCY_HARD_CAPACITY must be >= RECENCY_SOFT_CAPACITY")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
