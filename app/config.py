from pydantic_settings import BaseSettings

from app.core.exceptions import ConfigurationError

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./safe_traveler.db"

    # Security
    SECRET_KEY: str = ""
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 1 day

    # Backend API (blockchain incident log lives here)
    API_URL: str = "http://localhost:3001"

    # Geocoding
    GOOGLE_MAPS_API_KEY: str = ""
    GEOCODING_URL: str = "https://maps.googleapis.com/maps/api/geocode/json"

    # Identity
    DIGITAL_ID_PREFIX: str = "TST"
    MIN_PASSWORD_LENGTH: int = 6

    # Emergency pipeline
    LOCAL_STORE_PATH: str = "./.local_store"
    EMERGENCY_MAX_RETRIES: int = 3
    LOCAL_INCIDENT_LOG_LIMIT: int = 50

    # Notifications: "log" keeps SMS/email as log-only stubs, "live" sends them
    NOTIFICATION_MODE: str = "log"
    SMS_API_KEY: str = ""
    SMS_API_URL: str = "https://api.smsservice.com/send"
    SMS_SENDER_ID: str = "SAFE-TRVL"
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    FROM_EMAIL: str = "noreply@safetravelerbuddy.app"

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

REQUIRED_SETTINGS = ("DATABASE_URL", "SECRET_KEY", "API_URL")

def validate_settings(config: Settings) -> None:
    """Fail fast when a required credential is missing"""
    missing = [name for name in REQUIRED_SETTINGS if not getattr(config, name)]
    if missing:
        raise ConfigurationError(
            f"Configuration incomplete. Missing: {', '.join(missing)}"
        )

settings = Settings()
