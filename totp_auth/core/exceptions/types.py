from fastapi import status


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
        self.details = details
        super().__init__(message)


class DatabaseException(AppException):
    """Exception raised for database-related errors."""

    def __init__(self, message: str = "A database error occurred."):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class ConfigurationException(AppException):
    """Exception raised when the strategy is misconfigured."""

    def __init__(self, message: str = "Invalid authentication configuration."):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class RequiredSecretException(ConfigurationException):
    """Exception raised when no token signing secret is configured."""

    def __init__(self, message: str = "Missing required `secret` option."):
        super().__init__(message)


class RequiredSuccessRedirectException(ConfigurationException):
    """Exception raised when authenticate() is called without a success redirect."""

    def __init__(
        self, message: str = "Missing required `success_redirect` option."
    ):
        super().__init__(message)


class AuthenticationException(AppException):
    """Exception raised for authentication-related errors."""

    def __init__(self, message: str = "Not authenticated."):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class AuthorizationException(AuthenticationException):
    """
    Exception raised by the failure path when it cannot redirect.

    Carries the original error as `cause` so hosts can inspect it.
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class BadRequestException(AppException):
    """Exception raised for bad request errors."""

    def __init__(self, message: str = "Bad request."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class RequiredEmailException(BadRequestException):
    """Exception raised when the form carries no email address."""

    def __init__(self, message: str = "Email address is required."):
        super().__init__(message)


class InvalidEmailException(BadRequestException):
    """Exception raised when the email validator rejects an address."""

    def __init__(self, message: str = "Email address is not valid."):
        super().__init__(message)


class InvalidMagicLinkPathException(BadRequestException):
    """Exception raised when a GET arrives outside the magic-link callback path."""

    def __init__(self, message: str = "Invalid magic-link callback path."):
        super().__init__(message)


class MagicLinkHostException(BadRequestException):
    """Exception raised when the magic-link host cannot be inferred."""

    def __init__(self, message: str = "Could not determine host."):
        super().__init__(message)


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(self, message: str = "Resource not found."):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class OTPNotFoundException(NotFoundException):
    """Exception raised when no persisted record matches the pending token."""

    def __init__(self, message: str = "TOTP not found."):
        super().__init__(message)


class UserNotFoundException(NotFoundException):
    """Exception raised when no phase resolved a user."""

    def __init__(self, message: str = "User not found."):
        super().__init__(message)


class OTPInactiveException(AppException):
    """Exception raised when the pending OTP was consumed, superseded or exhausted."""

    def __init__(self, message: str = "Code is no longer active."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class OTPInvalidException(AppException):
    """Exception raised when the submitted code does not match."""

    def __init__(self, message: str = "Code is not valid."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class InvalidTokenException(AppException):
    """Exception raised when a signed OTP token fails verification."""

    def __init__(self, message: str = "Invalid JWT."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class ExpiredTokenException(InvalidTokenException):
    """Exception raised when a signed OTP token is past its expiry."""

    def __init__(self, message: str = "Expired JWT."):
        super().__init__(message)


__all__ = [
    "AppException",
    "DatabaseException",
    "ConfigurationException",
    "RequiredSecretException",
    "RequiredSuccessRedirectException",
    "AuthenticationException",
    "AuthorizationException",
    "BadRequestException",
    "RequiredEmailException",
    "InvalidEmailException",
    "InvalidMagicLinkPathException",
    "MagicLinkHostException",
    "NotFoundException",
    "OTPNotFoundException",
    "UserNotFoundException",
    "OTPInactiveException",
    "OTPInvalidException",
    "InvalidTokenException",
    "ExpiredTokenException",
]
