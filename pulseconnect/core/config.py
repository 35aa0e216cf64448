"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Database (PostgreSQL in production, SQLite file for local runs)
    DATABASE_URL: str = "sqlite:///./pulseconnect.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Zone used to decide what "today" means for appointment windows
    TIMEZONE: str = "UTC"

    # Appointment scheduling policy
    APPOINTMENT_MAX_DAYS_AHEAD: int = 30
    APPOINTMENT_CONFLICT_WINDOW_DAYS: int = 0  # 0 = same day only

    # Store access bounds
    STORE_TIMEOUT_SECONDS: float = 5.0
    STORE_RETRY_ATTEMPTS: int = 3
    STORE_RETRY_BASE_DELAY: float = 0.1
    NOTIFICATION_RETRY_ATTEMPTS: int = 3

    # Notarization (optional external ledger; empty URL disables it)
    NOTARIZATION_URL: str = ""
    NOTARIZATION_API_KEY: str = ""
    NOTARIZATION_TIMEOUT_SECONDS: float = 10.0

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def notarization_enabled(self) -> bool:
        return bool(self.NOTARIZATION_URL)


settings = Settings()
