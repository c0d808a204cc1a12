# Passwordless email authentication with one-time codes and magic links

from totp_auth.core.schemas.totp import (
    CustomErrorsOptions,
    MagicLinkGenerationOptions,
    SendTOTPOptions,
    TOTPGenerationOptions,
    TOTPRecord,
    TOTPRecordUpdate,
    TOTPStrategyOptions,
    TOTPVerifyParams,
    merge_options,
)
from totp_auth.core.services.session import CookieSessionStorage, Session
from totp_auth.core.services.strategy import (
    AuthenticateOptions,
    AuthResult,
    TOTPStrategy,
)

__version__ = "1.0.0"

__all__ = [
    "AuthenticateOptions",
    "AuthResult",
    "CookieSessionStorage",
    "CustomErrorsOptions",
    "MagicLinkGenerationOptions",
    "SendTOTPOptions",
    "Session",
    "TOTPGenerationOptions",
    "TOTPRecord",
    "TOTPRecordUpdate",
    "TOTPStrategy",
    "TOTPStrategyOptions",
    "TOTPVerifyParams",
    "merge_options",
]
