"""
Routers exposing the authentication flow.

"""

from totp_auth.core.routers.auth import create_totp_router

__all__ = ["create_totp_router"]
