from functools import lru_cache
import logging
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from totp_auth.core.logger import setup_logger, init_sentry


class Settings(BaseSettings):
    # Application settings
    ENVIRONMENT: str = "development"  # Options: development, production
    APP_NAME: str = "TOTP Auth"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = """
Passwordless email authentication with time-based one-time passcodes.

A user submits an email address, receives a short-lived code (and a magic link
carrying the same code), and signs in by typing the code back or by opening
the link. The pending code is tracked by a signed token stored in the session
cookie; each issuance is persisted so it can be deactivated after use.
"""
    DEBUG: bool = False

    # Signed OTP token settings
    TOTP_SECRET: str = "totp_signing_secret_change_in_production"

    # Session settings
    SESSION_COOKIE_NAME: str = "_session"
    SESSION_SECRET_KEY: str = "supersecretkey"
    SESSION_MAX_AGE: int | None = None  # seconds, None = browser-session cookie
    SESSION_SAME_SITE_COOKIE_POLICY: Literal["lax", "strict", "none"] = "lax"
    SESSION_SECURE_COOKIE: bool = False

    # OTP generation settings
    TOTP_ALGORITHM: str = "SHA1"
    TOTP_CHAR_SET: str = "0123456789"
    TOTP_DIGITS: int = 6
    TOTP_PERIOD: int = 60  # seconds
    TOTP_MAX_ATTEMPTS: int = 3

    # Magic link settings
    MAGIC_LINK_ENABLED: bool = True
    MAGIC_LINK_HOST_URL: str | None = None  # inferred from the request if unset
    MAGIC_LINK_CALLBACK_PATH: str = "/magic-link"

    # Auth routes
    AUTH_LOGIN_PATH: str = "/login"
    AUTH_VERIFY_PATH: str = "/verify"
    AUTH_LOGOUT_PATH: str = "/logout"
    AUTH_SUCCESS_REDIRECT: str = "/account"

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./totp_auth.db"

    # Sentry settings
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    model_config: SettingsConfigDict = SettingsConfigDict(  # type: ignore
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_production_secrets(self) -> "Settings":
        """Ensure insecure default secrets are overridden in production."""
        if self.ENVIRONMENT != "production":
            return self

        insecure_defaults: dict[str, str] = {
            "TOTP_SECRET": "totp_signing_secret_change_in_production",
            "SESSION_SECRET_KEY": "supersecretkey",
        }

        still_default = [
            name
            for name, default_val in insecure_defaults.items()
            if getattr(self, name) == default_val
        ]

        if still_default:
            raise ValueError(
                f"ENVIRONMENT is 'production' but the following secrets still "
                f"have their insecure default values: {', '.join(still_default)}. "
                f"Set them via environment variables or .env file."
            )

        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()  # type: ignore


settings = get_settings()

if not settings.DEBUG:
    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

# One logger per component, each with its own file and Sentry tag
app_logger = setup_logger(
    name="app_logger",
    log_file="logs/app.log",
    level=logging.INFO,
    sentry_tag="app",
)
auth_logger = setup_logger(
    name="auth_logger",
    log_file="logs/auth.log",
    level=logging.INFO,
    sentry_tag="auth",
)
session_logger = setup_logger(
    name="session_logger",
    log_file="logs/session.log",
    level=logging.INFO,
    sentry_tag="session",
)
database_logger = setup_logger(
    name="database_logger",
    log_file="logs/database.log",
    level=logging.INFO,
    sentry_tag="database",
)
request_logger = setup_logger(
    name="request_logger",
    log_file="logs/requests.log",
    level=logging.INFO,
    sentry_tag="request",
)
utils_logger = setup_logger(
    name="utils_logger",
    log_file="logs/utils.log",
    level=logging.INFO,
    sentry_tag="utils",
)

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "app_logger",
    "auth_logger",
    "session_logger",
    "database_logger",
    "request_logger",
    "utils_logger",
]
