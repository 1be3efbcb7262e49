"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # App info
    app_name: str = "ChatSync"
    app_version: str = "1.0.0"
    debug: bool = False

    # Security
    secret_key: str = "your-secret-key-change-this-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Durable session store
    local_storage_path: str = "./data"

    # Sessions
    default_session_title: str = "New Chat"
    title_max_length: int = 50

    # Client synchronizer timings (seconds)
    sync_save_delay_seconds: float = 0.3
    sync_throttle_seconds: float = 2.0
    sync_interval_seconds: float = 5.0
    sync_switch_grace_seconds: float = 0.1

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
        "http://127.0.0.1:3000",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/chatsync.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON for files, colored text for console
    log_api_requests: bool = True


settings = Settings()
