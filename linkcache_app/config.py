from pydantic_settings import BaseSettings, SettingsConfigDict


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
    debug: bool = True
    log_level: str = "INFO"

    # Application
    app_name: str = "Link Cache"
    app_version: str = "1.0.0"
    base_url: str = "http://127.0.0.1:8000"

    # Durable record store
    store_backend: str = "sqlalchemy"  # Options: "sqlalchemy", "memory"
    database_url: str = "sqlite:///./links.db"

    # Cache settings
    cache_backend: str = "redis"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 2.0
    link_data_ttl: int = 300  # Full link snapshot (5 minutes)
    visit_counter_ttl: int = 60  # Un-flushed visit counter (1 minute)
    user_links_ttl: int = 120  # Per-owner link list (2 minutes)

    # Write-behind visit commits
    visit_debounce_seconds: float = 2.0
    visit_commit_max_retries: int = 3

    # Background reconciliation loop
    sync_autostart: bool = False  # Always started when environment == "production"
    sync_interval_seconds: float = 30.0
    sync_initial_delay_seconds: float = 1.0
    sync_batch_size: int = 50  # Popular links preloaded per cycle
    warmup_limit: int = 20  # Links cached per owner on warm-up

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def sync_enabled(self) -> bool:
        """Whether the reconciliation loop starts with the application"""
        return self.environment == "production" or self.sync_autostart


# Create settings instance
settings = Settings()
