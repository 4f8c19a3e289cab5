from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = False  # True shows tracebacks in 500 responses

    # Application
    app_name: str = "URL Shortener"
    app_version: str = "1.0.0"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: List[str] = ["*"]

    # Public prefix for short links; falls back to the request's base URL
    base_url: Optional[str] = None

    # Storage settings
    storage_backend: str = "sql"  # Options: "sql", "memory"
    database_url: str = "sqlite:///./url_shortener.db"
    database_connect_timeout: int = 5  # Seconds

    # Expired link sweep (0 disables the background task)
    sweep_interval_seconds: int = 300

    # Geolocation settings
    geolocation_backend: str = "http"  # Options: "http", "null"
    geolocation_url: str = "http://ip-api.com/json/{ip}"
    geolocation_timeout: float = 2.0

    # Remote event log (disabled when unset)
    remote_log_url: Optional[str] = None
    remote_log_timeout: float = 5.0

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None  # e.g. "logs" for daily JSON log files

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
