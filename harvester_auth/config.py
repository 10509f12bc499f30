from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Pydantic v2 settings
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./data/harvester_auth.sqlite"

    # OTP
    OTP_TTL_SECONDS: int = 60
    OTP_DIGITS: int = 6
    OTP_MAX_ATTEMPTS: int = 5  # 0 = unlimited until expiry
    OTP_HASH_SECRET: str = "ChangeThisToLongRandomSecret"
    SUBJECT_LENGTH: int = 10  # India, national number without +91

    # Timeouts
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    DELIVERY_TIMEOUT_SECONDS: float = 20.0

    # Delivery: "sms" (Fast2SMS) or "whatsapp" (WhatsApp Cloud API)
    DELIVERY_CHANNEL: str = "sms"

    FAST2SMS_URL: str = "https://www.fast2sms.com/dev/bulkV2"
    FAST2SMS_API_KEY: str | None = None

    WHATSAPP_PHONE_NUMBER_ID: str | None = None
    WHATSAPP_ACCESS_TOKEN: str | None = None
    WHATSAPP_COUNTRY_CODE: str = "91"


settings = Settings()
