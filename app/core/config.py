"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: connection URLs have no defaults - they MUST be set in .env file.
    Provider secrets default to empty; webhook verification fails closed without them.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma separated (e.g. http://localhost:3000). Empty = default list in code.
    cors_origins: str = ""

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default
    database_pool_size: int = 10
    database_max_overflow: int = 20

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # CLOUDINARY (blob storage)
    # ===========================================
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_api_base: str = "https://api.cloudinary.com/v1_1"
    cloudinary_image_folder: str = "imaginify"
    cloudinary_search_page_size: int = 100

    # ===========================================
    # STRIPE (payments)
    # ===========================================
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_api_base: str = "https://api.stripe.com/v1"
    stripe_currency: str = "inr"

    # ===========================================
    # CLERK (identity)
    # ===========================================
    clerk_secret_key: str = ""
    clerk_webhook_secret: str = ""
    clerk_api_base: str = "https://api.clerk.com/v1"

    # Signed webhook timestamps older than this are rejected (replay protection)
    webhook_tolerance_seconds: int = 300

    # ===========================================
    # CREDITS
    # ===========================================
    signup_credits: int = 10
    transformation_credit_fee: int = -1

    # ===========================================
    # RECONCILIATION SWEEPER
    # ===========================================
    cleanup_grace_minutes: int = 5
    cleanup_interval_minutes: int = 5

    # ===========================================
    # INTERNAL ACCESS
    # ===========================================
    internal_api_secret: str = ""
    admin_api_key: str | None = None  # Optional, but recommended

    http_client_timeout: float = 10.0
    http_client_timeout_long: float = 30.0

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("cloudinary_image_folder")
    @classmethod
    def normalize_folder(cls, v: str) -> str:
        """Folder expressions must not carry leading/trailing slashes."""
        return v.strip().strip("/")

    @field_validator("transformation_credit_fee")
    @classmethod
    def validate_fee(cls, v: int) -> int:
        if v >= 0:
            raise ValueError("transformation_credit_fee must be negative (it is a debit)")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
