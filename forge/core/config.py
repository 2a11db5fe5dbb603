"""Application configuration using Pydantic Settings.

Environment variables are loaded with the FORGE_ prefix, e.g.
``FORGE_ORACLE_BACKEND=http`` or ``FORGE_MIN_QUORUM=3``.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Pattern: Pydantic Settings with Environment Variables
    """

    # Service configuration
    service_name: str = "forge"
    port: int = 8090
    environment: str = Field(default="development", description="Runtime environment")
    log_level: str = Field(default="INFO", description="Logging level")

    # Oracle configuration
    oracle_backend: Literal["cli", "http"] = Field(
        default="cli",
        description="How reasoning calls are made: local CLI subprocess or HTTP chat completions",
    )
    oracle_command: str = Field(
        default="claude",
        description="Executable used by the CLI oracle",
    )
    oracle_url: str = Field(
        default="http://localhost:8085",
        description="Base URL of an OpenAI-compatible chat completions service",
    )
    oracle_api_key: SecretStr | None = Field(
        default=None,
        description="Bearer token for the HTTP oracle",
    )
    evaluator_model: str = Field(
        default="claude-sonnet-4-5",
        description="Model used by evaluator and reviewer roles",
    )
    architect_model: str = Field(
        default="claude-opus-4-1",
        description="Model used for planning and plan revision",
    )
    builder_model: str = Field(
        default="claude-sonnet-4-5",
        description="Model used for build, run and deploy execution",
    )

    # Per-call timeouts (seconds)
    evaluation_timeout_seconds: float = Field(default=180.0, gt=0)
    planning_timeout_seconds: float = Field(default=600.0, gt=0)
    build_timeout_seconds: float = Field(default=1800.0, gt=0)
    run_timeout_seconds: float = Field(default=1800.0, gt=0)
    deploy_timeout_seconds: float = Field(default=900.0, gt=0)

    # Deliberation / pipeline policy
    min_quorum: int = Field(
        default=2,
        ge=1,
        description="Minimum successful Round 1 evaluations required to vote",
    )
    concern_weight: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Fraction of confidence a concern verdict contributes",
    )
    max_plan_revisions: int = Field(
        default=2,
        ge=1,
        description="Maximum critique calls in the plan-critique loop",
    )
    history_limit: int = Field(
        default=10,
        ge=0,
        description="Number of prior briefs shown to evaluators",
    )
    stage_retries: int = Field(
        default=0,
        ge=0,
        description="Retries for oracle transport failures in plan/build/run/deploy",
    )
    retry_backoff_seconds: float = Field(default=2.0, ge=0.0)
    fast_track_skips_critique: bool = Field(
        default=True,
        description="Fast-track briefs go from planning straight to build",
    )
    repo_base_path: str = Field(
        default="/var/www",
        description="Directory holding checked-out project repositories",
    )

    # Store configuration
    store_backend: Literal["memory", "postgrest"] = Field(default="memory")
    store_url: str = Field(
        default="http://localhost:54321/rest/v1",
        description="PostgREST endpoint for the briefs database",
    )
    store_api_key: SecretStr = Field(
        default=SecretStr("dev-service-key"),
        description="Service key for the PostgREST endpoint",
    )
    store_timeout_seconds: float = Field(default=15.0, gt=0)

    # Worker
    poll_interval_seconds: float = Field(default=5.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="FORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings singleton
    """
    return Settings()
