"""Pydantic settings for Mintwatch configuration."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings

from core.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase backend
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_service_role_key: str = Field(
        ...,
        description="Supabase service role key"
    )

    # PumpPortal feed
    feed_url: str = Field(
        default="wss://pumpportal.fun/api/data",
        description="PumpPortal websocket endpoint"
    )
    reconnect_policy: Literal["terminate", "reconnect"] = Field(
        default="terminate",
        description="What to do when the feed disconnects"
    )
    reconnect_max_attempts: int = Field(
        default=10,
        description="Consecutive failed reconnects before giving up"
    )
    replay_chunk_size: int = Field(
        default=50,
        description="Mint keys per subscription frame when replaying"
    )
    replay_batch_size: int = Field(
        default=5,
        description="Subscription frames sent concurrently when replaying"
    )
    replay_batch_delay_seconds: float = Field(
        default=0.2,
        description="Pause between replay windows"
    )

    # Metadata
    ipfs_gateway: str = Field(
        default="https://ipfs.io/ipfs/",
        description="Gateway prefix used to resolve token metadata"
    )
    metadata_timeout_seconds: float = Field(
        default=10.0,
        description="Per-attempt timeout for metadata fetches"
    )

    # Retry policy
    retry_max_attempts: int = Field(
        default=3,
        description="Attempts per outbound call"
    )
    retry_initial_delay_seconds: float = Field(
        default=1.0,
        description="Base delay for exponential backoff"
    )
    retry_max_delay_seconds: float = Field(
        default=10.0,
        description="Backoff delay cap"
    )

    # Persistence
    backend: Literal["supabase", "postgres"] = Field(
        default="supabase",
        description="Backend used for the insert procedures"
    )
    postgres_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL URL (only for BACKEND=postgres)"
    )
    backend_timeout_seconds: float = Field(
        default=15.0,
        description="Per-call timeout for backend RPCs"
    )

    # Pipeline
    filter_spam_names: bool = Field(
        default=False,
        description="Skip creation writes for spam-looking token names"
    )
    stats_interval_seconds: float = Field(
        default=60.0,
        description="Interval for the stats log line"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    @model_validator(mode="after")
    def _check_backend(self) -> "Settings":
        if self.backend == "postgres" and not self.postgres_url:
            raise ValueError("POSTGRES_URL is required when BACKEND=postgres")
        return self

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load settings once per process.

    Raises:
        ConfigurationError: if a required setting is missing or invalid
    """
    try:
        return Settings()
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) or err["msg"] for err in e.errors()]
        raise ConfigurationError(f"Invalid configuration: {', '.join(missing)}") from e
