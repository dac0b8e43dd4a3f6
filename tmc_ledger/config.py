"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. Secrets stay out of source code: the .env file is gitignored and
.env.example provides a safe template for developers.

Pydantic Settings resolves each value in this order:
  1. Environment variables (highest priority)
  2. .env file values
  3. Defaults defined here (lowest priority)

Usage:
    from tmc_ledger.config import settings
    print(settings.PROMOTIONAL_CREDITS)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the TMC credit ledger.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign JWT tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "TMC Credit Ledger"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for local runs; swap to a postgresql+asyncpg URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/tmc.db"

    # Transient connection failures are retried this many times in total.
    # Business-rule failures are never retried.
    PERSISTENCE_RETRY_ATTEMPTS: int = 3

    # --- Authentication ---
    # REQUIRED: No default, forces the operator to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # --- Credit economy ---
    # Welcome credits granted to every new account at registration
    PROMOTIONAL_CREDITS: int = 10
    # Share of a consultation fee routed to the servicing doctor
    DOCTOR_COMMISSION_PERCENT: int = 30
    # Rate a superior receives when their commission link has no explicit rate
    DEFAULT_SUPERIOR_PERCENT: int = 10
    DEFAULT_CURRENCY: str = "USD"

    # --- Payment provider ---
    PAYMENT_PROVIDER_URL: str = "http://localhost:8000/paypal"
    PAYMENT_PROVIDER_TIMEOUT_SECONDS: float = 10.0

    # --- CORS ---
    # Origins allowed to make cross-origin requests (frontend URLs)
    ALLOWED_ORIGINS: list[str] = ["http://localhost:5173"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
