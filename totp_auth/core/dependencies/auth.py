"""
Authentication dependencies for FastAPI endpoints.

- Reading the authenticated user from the session cookie
- Optional authentication for public endpoints

Example usage:
    current_user = session_user_dependency(session_storage)
    optional_user = session_user_dependency(session_storage, required=False)

    @app.get("/account")
    async def account(user: dict = Depends(current_user)):
        return user
"""

from typing import Any, Awaitable, Callable

from fastapi import Request

from totp_auth.core.config import auth_logger
from totp_auth.core.exceptions.types import AuthenticationException
from totp_auth.core.services.session import SessionStorage


def session_user_dependency(
    session_storage: SessionStorage,
    session_key: str = "user",
    required: bool = True,
) -> Callable[[Request], Awaitable[Any]]:
    """
    Build a dependency returning the user stored in the session.

    Args:
        session_storage: Storage used to read the session cookie.
        session_key: Session key holding the authenticated user.
        required: If True, a missing user raises instead of returning None.

    Returns:
        An async dependency callable.

    Raises:
        AuthenticationException: From the dependency, when `required` is
            set and the session holds no user.
    """

    async def get_session_user(request: Request) -> Any:
        session = await session_storage.get_session(request.headers.get("cookie"))
        user = session.get(session_key)

        if user is None and required:
            auth_logger.warning(
                f"Authentication failed: no user in session for {request.url.path}"
            )
            raise AuthenticationException()

        return user

    return get_session_user


__all__ = ["session_user_dependency"]
