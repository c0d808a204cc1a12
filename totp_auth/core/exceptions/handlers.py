from fastapi import Request
from fastapi.responses import JSONResponse

from totp_auth.core.config import request_logger
from totp_auth.core.exceptions.types import (
    AppException,
    AuthenticationException,
    AuthorizationException,
    ConfigurationException,
)


async def general_exception_handler(request: Request, exc: AppException):
    """
    Handles application exceptions by returning a JSON response with the error message.

    Args:
        request: The request object.
        exc (AppException): The exception instance.

    Returns:
        JSONResponse: A response containing the error message and the exception's status code.
    """
    request_logger.error(f"AppException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": f"An unexpected error occurred.\n{str(exc)}"},
    )


async def configuration_exception_handler(
    request: Request, exc: ConfigurationException
):
    """
    Handles strategy misconfiguration.

    Args:
        request: The request object.
        exc (ConfigurationException): The configuration exception instance.

    Returns:
        JSONResponse: A response containing the error message and status code 500.
    """
    request_logger.error(f"ConfigurationException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def authentication_exception_handler(
    request: Request, exc: AuthenticationException
):
    """
    Handles requests that need a signed-in user but have none.

    Args:
        request: The request object.
        exc (AuthenticationException): The authentication exception instance.

    Returns:
        JSONResponse: A response containing the error message and status code 401.
    """
    request_logger.warning(f"AuthenticationException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def authorization_exception_handler(
    request: Request, exc: AuthorizationException
):
    """
    Handles authentication failures raised instead of redirected.

    Args:
        request: The request object.
        exc (AuthorizationException): The authorization exception instance.

    Returns:
        JSONResponse: A response containing the error message and status code 401.
    """
    cause = type(exc.cause).__name__ if exc.cause is not None else None
    request_logger.warning(f"AuthorizationException: {exc} (cause={cause})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


__all__ = [
    "general_exception_handler",
    "configuration_exception_handler",
    "authentication_exception_handler",
    "authorization_exception_handler",
]
