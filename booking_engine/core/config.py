from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    DEFAULT_TIMEZONE: str = "Africa/Nairobi"

    STORE_PROVIDER: str = "memory"  # "memory" | "sql"
    DATABASE_URL: str = "sqlite:///./data/bookings.db"

    GOOGLE_CALENDAR_BASE_URL: str = "https://www.googleapis.com/calendar/v3"
    GOOGLE_CALENDAR_ACCESS_TOKEN: str | None = None
    CALENDAR_TIMEOUT_SECONDS: float = 5.0

    TWILIO_ACCOUNT_SID: str | None = None
    TWILIO_AUTH_TOKEN: str | None = None
    TWILIO_FROM_NUMBER: str = "whatsapp:+14155238886"
    TWILIO_BASE_URL: str = "https://api.twilio.com/2010-04-01"
    NOTIFY_TIMEOUT_SECONDS: float = 10.0

    BOOKING_BUFFER_MINUTES: int = 15
    MAX_ADVANCE_BOOKING_DAYS: int = 90
    ALLOW_SAME_DAY_BOOKING: bool = True
    SLOT_GRANULARITY_MINUTES: int = 15
    MAX_ALTERNATIVE_SLOTS: int = 3

    REMINDER_HOURS_BEFORE: int = 24
    REMINDER_SEND_DELAY_SECONDS: float = 1.0
    REMINDER_MAX_ATTEMPTS: int = 2


settings = Settings()
