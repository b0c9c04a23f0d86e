from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import re


TIME_OF_DAY_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./rental_engine.db",
        alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # CORS - Frontend URLs from environment (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        alias="ALLOWED_ORIGINS"
    )

    # ==============================================
    # Unit defaults
    # ==============================================
    # Reference time zone for units that do not set their own
    default_timezone: str = Field(default="UTC", alias="DEFAULT_TIMEZONE")

    # Turnover window applied when a unit is created without times
    default_check_in_time: str = Field(default="15:00", alias="DEFAULT_CHECK_IN_TIME")
    default_check_out_time: str = Field(default="11:00", alias="DEFAULT_CHECK_OUT_TIME")

    default_min_stay_nights: int = Field(default=1, ge=1, alias="DEFAULT_MIN_STAY_NIGHTS")
    # Unset means no upper limit on stay length
    default_max_stay_nights: Optional[int] = Field(default=None, ge=1, alias="DEFAULT_MAX_STAY_NIGHTS")

    # ==============================================
    # Calendar / booking limits
    # ==============================================
    # Widest span a single calendar request may cover
    calendar_max_days: int = Field(default=366, ge=1, alias="CALENDAR_MAX_DAYS")

    # How far ahead a stay may start, unset means no horizon
    max_advance_days: Optional[int] = Field(default=None, ge=1, alias="MAX_ADVANCE_DAYS")

    # slowapi limit string for reservation creation
    booking_rate_limit: str = Field(default="30/minute", alias="BOOKING_RATE_LIMIT")
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")

    @field_validator('default_check_in_time', 'default_check_out_time')
    @classmethod
    def validate_time_of_day(cls, v: str) -> str:
        """Times are stored as HH:MM on a 24h clock"""
        if not TIME_OF_DAY_PATTERN.match(v):
            raise ValueError("time must be formatted as HH:MM (24h)")
        return v

    @field_validator('default_timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown time zone: {v}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR or CRITICAL")
        return level

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        origins = []
        seen = set()
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in seen:
                seen.add(origin)
                origins.append(origin)
        return origins

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
