"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration (one connection string per environment)
    database_url: Optional[str] = Field(
        default=None, description="Production PostgreSQL connection URL"
    )
    dev_database_url: Optional[str] = Field(
        default=None, description="Development PostgreSQL connection URL"
    )
    test_database_url: Optional[str] = Field(
        default=None, description="Test PostgreSQL connection URL"
    )
    database_pool_size: int = Field(default=5, description="Connection pool size per environment")
    database_max_overflow: int = Field(default=10, description="Max pool overflow per environment")
    database_echo: bool = Field(default=False, description="Echo SQL queries (debug)")
    database_connect_retries: int = Field(
        default=3, description="Attempts to open a connection before giving up"
    )
    database_auto_create: bool = Field(
        default=True, description="Create tables on startup for every configured environment"
    )

    # Environment Routing
    production_hostname: str = Field(
        default="crm.charrg.com", description="Hostname pinned to the production database"
    )
    global_db_env: str = Field(
        default="development",
        description="Initial database environment for non-production hostnames",
    )

    # Application Configuration
    app_name: str = Field(default="merchant-onboarding", description="Application name")
    app_env: str = Field(default="development", description="Deployment environment")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_workers: int = Field(default=4, description="Number of API workers")
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5000",
        description="CORS allowed origins (comma-separated)",
    )

    # Security
    user_id_header: str = Field(
        default="X-User-Id", description="Header carrying the authenticated user id"
    )

    # Notification Outbox
    outbox_batch_size: int = Field(default=100, description="Outbox events per batch")
    outbox_poll_interval_seconds: float = Field(
        default=1.0, description="Outbox polling interval (seconds)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("global_db_env")
    @classmethod
    def validate_global_db_env(cls, v: str) -> str:
        """Production is only reachable through the hostname pin."""
        if v not in ("development", "test"):
            raise ValueError("Invalid global environment. Must be 'development' or 'test'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    def database_url_for(self, environment: str) -> Optional[str]:
        """
        Get the connection string for a database environment.

        Never falls back to another environment's connection string.
        """
        return {
            "production": self.database_url,
            "development": self.dev_database_url,
            "test": self.test_database_url,
        }.get(environment)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
