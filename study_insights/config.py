"""
Study Insights Configuration

All environment variables and settings for the research dashboard API.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==========================================================================
    # APP
    # ==========================================================================
    app_name: str = "Study Insights"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # ==========================================================================
    # SUPABASE (study project: activity logs, users, auth)
    # ==========================================================================
    supabase_url: str
    supabase_service_key: str

    # ==========================================================================
    # ANALYTICS
    # ==========================================================================
    rolling_window_default: int = 20
    default_timezone: str = "UTC"
    # Per-user cap on log rows; reads are paged to stay under the PostgREST max-rows
    activity_fetch_limit: int = 10000
    activity_page_size: int = 1000
    admin_page_size_max: int = 500

    # ==========================================================================
    # RATE LIMITING
    # ==========================================================================
    rate_limit_rpm: int = 120

    # ==========================================================================
    # CORS
    # ==========================================================================
    # Comma-separated list of dashboard origins
    cors_origins: str = "http://localhost:5173"

    # ==========================================================================
    # SERVER
    # ==========================================================================
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
