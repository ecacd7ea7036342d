"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # EDGE FUNCTIONS
    # ===================
    edge_webhook_secret: Optional[str] = Field(
        None,
        description="Shared secret expected in the Authorization header of function calls"
    )
    process_import_url: str = Field(
        default="http://localhost:8000/api/functions/process-import",
        description="URL of the asynchronous process-import job"
    )
    process_import_timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Seconds to wait for the job endpoint to accept the request"
    )

    # ===================
    # IMPORTS
    # ===================
    imports_bucket: str = Field(
        default="imports",
        min_length=1,
        description="Storage bucket holding uploaded import files"
    )
    import_chunk_size: int = Field(
        default=500,
        ge=1,
        le=5000,
        description="Rows per insert/upsert call"
    )
    lookup_page_size: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Keys per existing-row lookup query"
    )
    draft_ttl_minutes: int = Field(
        default=120,
        ge=1,
        le=1440,
        description="Minutes an import wizard draft is kept in memory"
    )

    # ===================
    # APP SETTINGS
    # ===================
    allowed_origins: list[str] = Field(
        default=["http://localhost:5173"],
        description="CORS origin allowlist"
    )
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def webhook_configured(self) -> bool:
        """Check if the function webhook secret is set."""
        return bool(self.edge_webhook_secret)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
