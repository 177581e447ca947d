"""Configuration management for orgpipe.

Loads data API credentials, storage and orchestration settings from
environment variables using Pydantic. Secrets belong in .env or the
function environment (never hardcoded).

Usage:
    from orgpipe.config import Settings

    settings = Settings()
    print(settings.fanout_concurrency)
"""

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """orgpipe configuration from environment variables.

    Loads from .env file automatically. Validates on instantiation.
    Every field has a default so stages can be built in a bare
    environment; the data API token is optional (requests go out
    unauthenticated without it).

    Attributes:
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR)
        data_api_base_url: Base URL of the external data API
        data_api_path: Request path, formatted with the entity parameters
        data_api_query: Query parameters sent with every fetch
        data_api_token: Bearer credential for the data API
        data_api_timeout: Per-request timeout (seconds)
        fanout_concurrency: Max concurrent entity fetches (Map MaxConcurrency)
        retry_max_attempts: Retries per stage after the first attempt
        retry_interval_seconds: Delay before the first retry
        retry_backoff_rate: Multiplier applied to each subsequent delay
        store_backend: Where results go: 'local' or 's3'
        output_dir: Root directory for the local object store
        bucket_name: S3 bucket for the s3 object store
        aws_region: Region for boto3 clients
        provider_config_path: JSON file holding the provider record
        secret_backend: How the provider secret is resolved
        csv_quoting: 'none' (flat join) or 'csv' (RFC 4180 quoting)
        state_machine_name: State machine name, written into the definition Comment
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars
    )

    # System Settings
    log_level: str = Field(default="INFO", description="Logging level")

    # External data API
    data_api_base_url: str = Field(
        default="https://api.cloudflare.com",
        description="Base URL of the external data API",
    )
    data_api_path: str = Field(
        default="/client/v4/radar/attacks/layer3/top/locations/target",
        description="Request path; {placeholders} are filled from entity parameters",
    )
    data_api_query: dict[str, str] = Field(
        default_factory=lambda: {"dateRange": "30d", "format": "json"},
        description="Query parameters sent with every fetch",
    )
    data_api_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("data_api_token", "cloudflare_api_token"),
        description="Bearer token for the data API",
    )
    data_api_timeout: float = Field(default=30.0, gt=0, description="Request timeout (seconds)")

    # Orchestration (mirrors the state machine definition)
    fanout_concurrency: int = Field(default=10, ge=1, le=40, description="Max concurrent fetches")
    retry_max_attempts: int = Field(default=3, ge=0, description="Retries after the first attempt")
    retry_interval_seconds: float = Field(default=2.0, ge=0, description="First retry delay")
    retry_backoff_rate: float = Field(default=2.0, ge=1.0, description="Retry delay multiplier")
    state_machine_name: str = Field(default="ProviderDataProcessing")

    # Persistence
    store_backend: str = Field(default="local", description="Object store backend: 'local' or 's3'")
    output_dir: str = Field(default="data", description="Local object store directory")
    bucket_name: str = Field(
        default="orgpipe-results",
        validation_alias=AliasChoices("bucket_name", "orgpipe_bucket_name"),
        description="S3 bucket for results",
    )
    aws_region: str = Field(
        default="us-west-2",
        validation_alias=AliasChoices("aws_region", "aws_default_region"),
        description="AWS region for boto3 clients",
    )
    csv_quoting: str = Field(default="none", description="CSV quoting: 'none' or 'csv'")

    # Provider + secrets
    provider_config_path: str | None = Field(
        default=None,
        description="JSON file with the provider record (None = built-in sample)",
    )
    secret_backend: str = Field(
        default="plaintext",
        description="Secret resolver: 'plaintext', 'kms' or 'secretsmanager'",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid:
            raise ValueError(f"log_level must be one of {valid}, got {v}")
        return v_upper

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Ensure store backend is valid."""
        v_lower = v.lower()
        if v_lower not in {"local", "s3"}:
            raise ValueError(f"store_backend must be 'local' or 's3', got '{v}'")
        return v_lower

    @field_validator("secret_backend")
    @classmethod
    def validate_secret_backend(cls, v: str) -> str:
        """Ensure secret backend is valid."""
        v_lower = v.lower()
        if v_lower not in {"plaintext", "kms", "secretsmanager"}:
            raise ValueError(
                f"secret_backend must be 'plaintext', 'kms' or 'secretsmanager', got '{v}'"
            )
        return v_lower

    @field_validator("csv_quoting")
    @classmethod
    def validate_csv_quoting(cls, v: str) -> str:
        """Ensure CSV quoting mode is valid."""
        v_lower = v.lower()
        if v_lower not in {"none", "csv"}:
            raise ValueError(f"csv_quoting must be 'none' or 'csv', got '{v}'")
        return v_lower


def load_settings(**overrides) -> Settings:
    """Build a fresh Settings instance, applying explicit overrides.

    Entry points (CLI, Lambda handlers) call this once per invocation and
    pass the result down; nothing below them reads process-wide state.
    """
    return Settings(**overrides)
