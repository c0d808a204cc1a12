"""
Schemas for strategy configuration, persisted OTP records and callback payloads.

"""

from totp_auth.core.schemas.totp import (
    # Options
    TOTPGenerationOptions,
    MagicLinkGenerationOptions,
    CustomErrorsOptions,
    TOTPStrategyOptions,
    merge_options,
    # Token claims and records
    TOTPParams,
    TOTPRecord,
    TOTPRecordUpdate,
    # Callback payloads
    SendTOTPOptions,
    TOTPVerifyParams,
    # Callback contracts
    StoreTOTP,
    HandleTOTP,
    SendTOTP,
    ValidateEmail,
    VerifyTOTP,
)

__all__ = [
    # Options
    "TOTPGenerationOptions",
    "MagicLinkGenerationOptions",
    "CustomErrorsOptions",
    "TOTPStrategyOptions",
    "merge_options",
    # Token claims and records
    "TOTPParams",
    "TOTPRecord",
    "TOTPRecordUpdate",
    # Callback payloads
    "SendTOTPOptions",
    "TOTPVerifyParams",
    # Callback contracts
    "StoreTOTP",
    "HandleTOTP",
    "SendTOTP",
    "ValidateEmail",
    "VerifyTOTP",
]
