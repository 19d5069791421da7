# vetclinic/config.py - Environment-driven configuration
from dotenv import load_dotenv

load_dotenv()
from typing import Optional, Union
from functools import lru_cache

import pytz

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """Application settings with validation and environment variable support (Pydantic V2 Syntax)"""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Application
    app_name: str = "RDV Veterinary Clinic"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # Database
    database_url: str = Field(default="sqlite:///./vetclinic.db", alias="DATABASE_URL")

    # Security
    secret_key: str = Field(..., alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Fernet key for national ID numbers at rest
    encryption_key: Optional[str] = Field(default=None, alias="ENCRYPTION_KEY")

    # CORS
    cors_origins: Union[str, list[str]] = Field(default=["http://localhost:5173"], alias="CORS_ORIGINS")

    # Public verification surface
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")
    public_rate_limit: str = Field(default="30/minute", alias="PUBLIC_RATE_LIMIT")
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")

    # Appointment book
    appointments_reject_overlap: bool = Field(default=False, alias="APPOINTMENTS_REJECT_OVERLAP")
    # Calendar days of the book are taken in this zone; times are stored in UTC
    clinic_timezone: str = Field(default="America/Sao_Paulo", alias="CLINIC_TIMEZONE")

    # Postal code lookup (ViaCEP)
    address_lookup_url: str = Field(default="https://viacep.com.br/ws/{cep}/json/", alias="ADDRESS_LOOKUP_URL")
    address_lookup_timeout: float = Field(default=5.0, alias="ADDRESS_LOOKUP_TIMEOUT")

    # --- Pydantic V2 Validators ---
    @field_validator("cors_origins", mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            if not v.strip():
                return ["http://localhost:5173"]
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL is required")
        if not v.startswith(("postgresql://", "postgresql+psycopg2://", "sqlite:///")):
            raise ValueError("DATABASE_URL must be a valid PostgreSQL or SQLite URL")
        return v

    @field_validator("secret_key")
    @classmethod
    def validate_key_length(cls, v):
        if not v or len(v) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator("clinic_timezone")
    @classmethod
    def validate_clinic_timezone(cls, v):
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown CLINIC_TIMEZONE '{v}'")
        return v

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def clinic_tz(self):
        return pytz.timezone(self.clinic_timezone)

    def verification_url(self, public_code: str) -> str:
        return f"{self.public_base_url}/view-prescription/{public_code}"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

# Note: Do not instantiate settings at import time to avoid failing
# on missing environment variables. Use `get_settings()` instead.
