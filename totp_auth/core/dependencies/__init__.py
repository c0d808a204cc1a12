"""
Dependencies for FastAPI endpoints.

"""

from totp_auth.core.dependencies.auth import session_user_dependency

__all__ = ["session_user_dependency"]
