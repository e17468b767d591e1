from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database (set via .env; sqlite file by default for local development)
    DATABASE_URL: str = "sqlite:///./gallerydesk.db"
    DB_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True
    LOG_FILE: str = "logs/app.log"
    LOG_MAX_BYTES: int = 5_000_000  # 5 MB
    LOG_BACKUP_COUNT: int = 5

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.0

    # Identity: cookie carrying the session id issued by the auth service
    SESSION_COOKIE: str = "session_id"

    # Gallery lifecycle
    TRASH_RETENTION_DAYS: int = 30
    SLUG_MAX_TITLE_LENGTH: int = 60

    # Shared secret for the billing workflow and scheduler endpoints.
    # Empty disables the /internal routes entirely.
    INTERNAL_API_TOKEN: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()

if settings.TRASH_RETENTION_DAYS < 1:
    # Do not crash imports in some tools; instead, provide a helpful message.
    import warnings

    warnings.warn(
        "TRASH_RETENTION_DAYS must be at least 1; falling back to 30 days."
    )
    settings.TRASH_RETENTION_DAYS = 30  # type: ignore[misc]
