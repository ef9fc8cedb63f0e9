# backend/edshare/core/config.py
from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = "development"
    brand_name: str = "EdShare"
    client_url: str = Field(default="http://localhost:3000", description="Frontend base URL")

    # Auth (tokens are issued by the identity service; we only verify them)
    secret_key: SecretStr = Field(
        default=SecretStr("dev-secret-key-not-for-production"),
        description="Secret key for JWT tokens",
    )
    algorithm: str = "HS256"

    # Persistence
    database_url: str = Field(
        default="sqlite+pysqlite:///./edshare.db",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = False
    redis_url: Optional[str] = Field(
        default=None, description="Redis URL for booking locks (locks disabled when unset)"
    )
    booking_lock_ttl_seconds: int = Field(default=30, ge=1)

    platform_timezone: str = Field(
        default="Asia/Kolkata", description="Timezone of booking wall-clock times"
    )

    # Pricing & cancellation policy
    tax_rate: Decimal = Field(default=Decimal("0.18"), description="GST applied to base amount")
    cancellation_lead_hours: int = Field(
        default=2, ge=0, description="Minimum hours before a session that it may be cancelled"
    )
    min_session_minutes: int = 30
    max_session_minutes: int = 180

    # Search
    search_default_radius_km: float = 5.0
    search_max_radius_km: float = 50.0
    search_default_page_size: int = 10
    search_max_page_size: int = 50

    # Notifications
    notification_timeout_seconds: float = Field(default=10.0, gt=0)
    notification_max_attempts: int = Field(default=3, ge=1, le=5)
    notification_backoff_seconds: float = Field(default=0.5, ge=0)
    notification_background: bool = Field(
        default=True, description="Deliver notifications off the request thread"
    )
    email_provider: Literal["console", "resend"] = Field(
        default="console", description="Email provider name"
    )
    resend_api_key: Optional[str] = Field(default=None, description="API key for Resend")
    from_email: str = Field(default="EdShare <hello@edshare.in>")
    sms_enabled: bool = False
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[SecretStr] = None
    twilio_phone_number: Optional[str] = None

    # Payments
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_currency: str = Field(default="inr", description="Default currency for payments")
    stripe_timeout_seconds: int = Field(default=8, ge=1)
    stripe_max_network_retries: int = Field(default=1, ge=0, le=3)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("tax_rate")
    @classmethod
    def _validate_tax_rate(cls, v: Decimal) -> Decimal:
        if v < 0 or v >= 1:
            raise ValueError("tax_rate must be a fraction in [0, 1)")
        return v

    @model_validator(mode="after")
    def _validate_session_bounds(self) -> "Settings":
        if self.min_session_minutes >= self.max_session_minutes:
            raise ValueError("min_session_minutes must be below max_session_minutes")
        if self.search_default_radius_km > self.search_max_radius_km:
            raise ValueError("search_default_radius_km cannot exceed search_max_radius_km")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key.get_secret_value())


settings = Settings()
