"""
LogTrace - Configuration
========================

Centralized configuration using Pydantic Settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache

from logtrace.constants import Limits


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every key can be set as LOGTRACE_<KEY>, e.g. LOGTRACE_MAX_FILE_SIZE_MB=20.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOGTRACE_",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )

    # Service identification
    service_name: str = Field(
        default="logtrace",
        description="Name of this service"
    )
    service_version: str = Field(
        default="0.1.0",
        description="Semantic version"
    )

    # Server configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8010)
    debug: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)

    # Log ingestion
    max_file_size_mb: float = Field(
        default=Limits.MAX_LOG_FILE_MB,
        gt=0,
        description="Largest log file accepted for parsing, in MB"
    )
    encoding: str = Field(
        default="utf-8",
        description="Encoding used to decode log files"
    )
    stream_mode: bool = Field(
        default=False,
        description="Parse log files with the bounded-memory streaming reader"
    )
    stream_chunk_size: int = Field(
        default=Limits.STREAM_CHUNK_BYTES,
        ge=1,
        description="Byte size of each chunk read in streaming mode"
    )

    # Error extraction
    detection_sample_size: int = Field(
        default=Limits.DETECTION_SAMPLE_SIZE,
        ge=1,
        description="Non-blank lines sampled for format detection"
    )
    stack_lookahead: int = Field(
        default=Limits.STACK_LOOKAHEAD,
        ge=1,
        description="Lines scanned after an error line for stack frames"
    )
    context_radius: int = Field(
        default=Limits.CONTEXT_RADIUS,
        ge=0,
        description="Context entries kept on each side of an error"
    )
    related_window_ms: int = Field(
        default=Limits.RELATED_WINDOW_MS,
        ge=0,
        description="Errors closer than this in time are marked related"
    )

    # Source location
    project_max_file_size_mb: float = Field(
        default=Limits.MAX_SOURCE_FILE_MB,
        gt=0,
        description="Source files larger than this are left out of the index"
    )
    max_results: int = Field(
        default=Limits.MAX_RESULTS,
        ge=1,
        description="Maximum code locations returned per error"
    )
    fuzzy_match: bool = Field(
        default=False,
        description="Enable low-confidence fuzzy path matching"
    )
    scan_workers: int = Field(
        default=1,
        ge=1,
        description="Threads used to scan source files during matching"
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
