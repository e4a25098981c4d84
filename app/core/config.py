from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "CarHire API"
    # Comma-separated origins for CORS (e.g. https://carhire.co.ke,https://admin.carhire.co.ke). If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    DATABASE_URL: str
    DB_WAIT_TIMEOUT: int = 60  # seconds start_api waits for the database

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    # Calendar dates (pickup/return, "today") are judged in this zone; instants are stored in UTC.
    BUSINESS_TIMEZONE: str = "Africa/Nairobi"

    # Booking lifecycle
    BOOKING_PAYMENT_WINDOW_MINUTES: int = 15  # clamped to >= 1 when applied
    BOOKING_EXPIRY_SCAN_MS: int = 60000
    DEFAULT_PAYMENT_METHOD: str = "M_PESA"


settings = Settings()
