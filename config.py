"""Configuration management using Pydantic settings"""

from datetime import timedelta
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000

    # Logging
    LOG_LEVEL: str = "INFO"

    # Persistence backend: "supabase" in production, "memory" for local runs
    STORE_BACKEND: str = "supabase"

    # Supabase (tables + storage buckets)
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    IPA_BUCKET: str = "ipa-files"
    APP_ASSETS_BUCKET: str = "app-assets"
    MAX_IPA_BYTES: int = 2 * 1024 * 1024 * 1024
    MAX_ICON_BYTES: int = 10 * 1024 * 1024

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None  # whsec_xxx from the Stripe dashboard
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300

    # Admin review email
    SENDGRID_API_KEY: Optional[str] = None
    ADMIN_EMAIL: str = "contact@digiwall.io"
    EMAIL_FROM: str = "notifications@digiwall.io"
    EMAIL_FROM_NAME: str = "Anti-Matter"

    # Push notifications
    EXPO_PUSH_URL: str = "https://exp.host/--/api/v2/push/send"

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Business policy
    FREE_UPLOAD_LIMIT: int = 5
    REVIEW_PERIOD_HOURS: float = 48
    SUBSCRIPTION_PRICE_LABEL: str = "$10/month"

    # CORS - mobile dev servers and local tooling
    CORS_ORIGIN_REGEX: str = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def review_period(self) -> timedelta:
        return timedelta(hours=self.REVIEW_PERIOD_HOURS)

    @property
    def stripe_configured(self) -> bool:
        return bool(self.STRIPE_SECRET_KEY)


# Global settings instance
settings = Settings()
