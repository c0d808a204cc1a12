from totp_auth.core.services.policy import TOTPPolicy
from totp_auth.core.services.session import (
    CookieSessionStorage,
    Session,
    SessionStorage,
)
from totp_auth.core.services.strategy import (
    AuthenticateOptions,
    AuthResult,
    TOTPStrategy,
)

__all__ = [
    # Strategy
    "AuthenticateOptions",
    "AuthResult",
    "TOTPStrategy",
    # Policy
    "TOTPPolicy",
    # Sessions
    "CookieSessionStorage",
    "Session",
    "SessionStorage",
]
