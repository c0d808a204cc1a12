"""
TOTP strategy schemas.

- Option groups for code generation, magic links and error messages
- Persisted OTP record and its partial update
- Claims embedded in the signed OTP token
- Callback contracts for persistence, delivery, email validation and user verification
- Layered merging of option groups
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Awaitable, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.datastructures import FormData
from starlette.requests import Request

from totp_auth.core.enums import TOTPAlgorithm

# Error messages shared by the option defaults and the exception types
REQUIRED_EMAIL_MESSAGE = "Email address is required."
INVALID_EMAIL_MESSAGE = "Email address is not valid."
INVALID_TOTP_MESSAGE = "Code is not valid."
INACTIVE_TOTP_MESSAGE = "Code is no longer active."

# Default form field names and pending-OTP session keys
EMAIL_FIELD_KEY = "email"
TOTP_FIELD_KEY = "totp"
SESSION_EMAIL_KEY = "auth:email"
SESSION_TOTP_KEY = "auth:totp"

OptionsT = TypeVar("OptionsT", bound=BaseModel)


class TOTPGenerationOptions(BaseModel):
    """Parameters used to generate each one-time code."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "algorithm": "SHA1",
                "char_set": "0123456789",
                "digits": 6,
                "period": 60,
                "max_attempts": 3,
            }
        }
    )

    secret: Annotated[
        str | None,
        Field(description="Base32 secret; generated per issuance when unset"),
    ] = None
    algorithm: TOTPAlgorithm = TOTPAlgorithm.SHA1
    char_set: Annotated[str, Field(min_length=2)] = "0123456789"
    digits: Annotated[int, Field(ge=4, le=10)] = 6
    period: Annotated[int, Field(gt=0, description="Validity period in seconds")] = 60
    max_attempts: Annotated[int, Field(ge=1)] = 3

    @field_validator("algorithm", mode="before")
    @classmethod
    def normalize_algorithm(cls, v: Any) -> Any:
        """Accept algorithm names regardless of case."""
        if isinstance(v, str):
            return v.upper()
        return v


class MagicLinkGenerationOptions(BaseModel):
    """Magic link rendering and redemption options."""

    enabled: bool = True
    host_url: Annotated[
        str | None,
        Field(description="Origin used for links; inferred from the request when unset"),
    ] = None
    callback_path: str = "/magic-link"


class CustomErrorsOptions(BaseModel):
    """User-facing error message overrides."""

    required_email: str = REQUIRED_EMAIL_MESSAGE
    invalid_email: str = INVALID_EMAIL_MESSAGE
    invalid_totp: str = INVALID_TOTP_MESSAGE
    inactive_totp: str = INACTIVE_TOTP_MESSAGE


class TOTPParams(BaseModel):
    """Claims carried by a signed OTP token. The code itself is never included."""

    secret: str
    algorithm: TOTPAlgorithm = TOTPAlgorithm.SHA1
    char_set: str = "0123456789"
    digits: int = 6
    period: int = 60


class TOTPRecord(BaseModel):
    """View of a persisted OTP record, keyed by the signed token."""

    model_config = ConfigDict(from_attributes=True)

    hash: str | None = None
    active: bool = True
    attempts: Annotated[int, Field(ge=0)] = 0
    expires_at: datetime | str | None = None


class TOTPRecordUpdate(BaseModel):
    """Partial update applied to a persisted OTP record."""

    active: bool | None = None
    attempts: Annotated[int | None, Field(ge=0)] = None
    expires_at: datetime | str | None = None


@dataclass
class SendTOTPOptions:
    """Payload handed to the delivery callback."""

    email: str
    code: str
    request: Request
    magic_link: str | None = None
    form: FormData | None = None


@dataclass
class TOTPVerifyParams:
    """Payload handed to the user verification callback."""

    email: str | None
    request: Request
    code: str | None = None
    magic_link: str | None = None
    form: FormData | None = None
    context: Any = None


# Callback contracts
StoreTOTP = Callable[[TOTPRecord, Any], Awaitable[None]]
HandleTOTP = Callable[[str, TOTPRecordUpdate | None, Any], Awaitable[Any]]
SendTOTP = Callable[[SendTOTPOptions], Awaitable[None]]
ValidateEmail = Callable[[str], Awaitable[None]]
VerifyTOTP = Callable[[TOTPVerifyParams], Awaitable[Any]]


class TOTPStrategyOptions(BaseModel):
    """Full configuration surface of the TOTP strategy."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    secret: Annotated[str, Field(description="Secret used to sign OTP tokens")]
    max_age: Annotated[
        int | None, Field(description="Session cookie max-age in seconds")
    ] = None
    totp_generation: TOTPGenerationOptions = Field(
        default_factory=TOTPGenerationOptions
    )
    magic_link_generation: MagicLinkGenerationOptions = Field(
        default_factory=MagicLinkGenerationOptions
    )
    custom_errors: CustomErrorsOptions = Field(default_factory=CustomErrorsOptions)
    store_totp: StoreTOTP
    send_totp: SendTOTP
    handle_totp: HandleTOTP
    validate_email: ValidateEmail | None = None
    email_field_key: str = EMAIL_FIELD_KEY
    totp_field_key: str = TOTP_FIELD_KEY
    session_email_key: str = SESSION_EMAIL_KEY
    session_totp_key: str = SESSION_TOTP_KEY


def merge_options(defaults: OptionsT, overrides: OptionsT | dict | None) -> OptionsT:
    """
    Overlay the explicitly provided fields of `overrides` onto `defaults`.

    Fields the caller never set keep their default value. The merged
    result is validated again, so a bad override fails here rather than
    at first use.

    Args:
        defaults (OptionsT): The base option group.
        overrides (OptionsT | dict | None): Partial option group or plain mapping.

    Returns:
        OptionsT: A new option group of the same type as `defaults`.

    Examples:
        >>> base = TOTPGenerationOptions(digits=8)
        >>> merge_options(base, {"period": 30}).digits
        8
    """
    if overrides is None:
        return defaults.model_copy()

    if isinstance(overrides, BaseModel):
        updates = overrides.model_dump(exclude_unset=True)
    else:
        updates = dict(overrides)

    merged = {**defaults.model_dump(), **updates}
    return type(defaults).model_validate(merged)


__all__ = [
    "REQUIRED_EMAIL_MESSAGE",
    "INVALID_EMAIL_MESSAGE",
    "INVALID_TOTP_MESSAGE",
    "INACTIVE_TOTP_MESSAGE",
    "EMAIL_FIELD_KEY",
    "TOTP_FIELD_KEY",
    "SESSION_EMAIL_KEY",
    "SESSION_TOTP_KEY",
    "TOTPGenerationOptions",
    "MagicLinkGenerationOptions",
    "CustomErrorsOptions",
    "TOTPParams",
    "TOTPRecord",
    "TOTPRecordUpdate",
    "SendTOTPOptions",
    "TOTPVerifyParams",
    "StoreTOTP",
    "HandleTOTP",
    "SendTOTP",
    "ValidateEmail",
    "VerifyTOTP",
    "TOTPStrategyOptions",
    "merge_options",
]
