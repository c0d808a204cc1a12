"""
Attempt and expiry policy for pending one-time codes.

The policy is the only component that mutates a persisted OTP record
during redemption. It reads the record through the `handle_totp`
callback, decides whether a submitted code may be accepted and applies
the matching side effect (attempt increment or deactivation).
"""

from typing import Any

from totp_auth.core.config import auth_logger
from totp_auth.core.enums import TOTPDecision
from totp_auth.core.schemas.totp import (
    HandleTOTP,
    TOTPParams,
    TOTPRecord,
    TOTPRecordUpdate,
)
from totp_auth.core.utils import token_fingerprint, verify_jwt, verify_totp


def to_record(value: Any) -> TOTPRecord | None:
    """Normalize whatever a `handle_totp` callback returned into a `TOTPRecord`."""
    if value is None:
        return None
    if isinstance(value, TOTPRecord):
        return value
    return TOTPRecord.model_validate(value)


class TOTPPolicy:
    """
    Decides the fate of a submitted code for a pending signed token.

    Order of checks:
    1. No record (or a record without a hash) -> NOT_FOUND.
    2. Inactive record -> INACTIVE.
    3. Attempts already at the limit -> deactivate, INACTIVE.
    4. Token verification; failures propagate as `InvalidTokenException`.
    5. Code comparison; a mismatch increments attempts once and, when that
       reaches the limit, deactivates the record in the same update.
    """

    def __init__(self, handle_totp: HandleTOTP, secret: str, max_attempts: int):
        self.handle_totp = handle_totp
        self.secret = secret
        self.max_attempts = max_attempts

    async def get_record(self, token: str | None, context: Any = None) -> TOTPRecord | None:
        """
        Read the persisted record for a signed token.

        Returns:
            TOTPRecord | None: The record, or None when there is no token,
            no record, or the record carries no hash.
        """
        if not token:
            return None

        record = to_record(await self.handle_totp(token, None, context))
        if record is None or not record.hash:
            return None
        return record

    async def deactivate(self, token: str | None, context: Any = None) -> TOTPRecord | None:
        """
        Mark the record for `token` inactive.

        Returns:
            TOTPRecord | None: The updated record, or None if nothing matched.
        """
        if not token:
            return None

        record = to_record(
            await self.handle_totp(token, TOTPRecordUpdate(active=False), context)
        )
        auth_logger.info(f"TOTP {token_fingerprint(token)} deactivated")
        return record

    async def evaluate(
        self, token: str | None, code: str | None, context: Any = None
    ) -> TOTPDecision:
        """
        Evaluate a submitted code against the pending signed token.

        Args:
            token: The signed OTP token stored in the session.
            code: The submitted code (form field or magic link parameter).
            context: Opaque host context passed through to the callbacks.

        Returns:
            TOTPDecision: VALID, INVALID_CODE, INACTIVE or NOT_FOUND.

        Raises:
            InvalidTokenException: If the token is tampered, malformed or expired.
        """
        fingerprint = token_fingerprint(token)

        record = await self.get_record(token, context)
        if record is None:
            auth_logger.warning(f"TOTP {fingerprint} not found")
            return TOTPDecision.NOT_FOUND

        if not record.active:
            auth_logger.warning(f"TOTP {fingerprint} is no longer active")
            return TOTPDecision.INACTIVE

        if record.attempts >= self.max_attempts:
            auth_logger.warning(
                f"TOTP {fingerprint} reached {record.attempts} attempts, deactivating"
            )
            await self.deactivate(token, context)
            return TOTPDecision.INACTIVE

        params = TOTPParams.model_validate(verify_jwt(token, self.secret))

        if not verify_totp(code, params):
            attempts = record.attempts + 1
            if attempts >= self.max_attempts:
                patch = TOTPRecordUpdate(attempts=attempts, active=False)
            else:
                patch = TOTPRecordUpdate(attempts=attempts)
            await self.handle_totp(token, patch, context)
            auth_logger.warning(
                f"TOTP {fingerprint} rejected invalid code "
                f"(attempt {attempts}/{self.max_attempts})"
            )
            return TOTPDecision.INVALID_CODE

        return TOTPDecision.VALID


__all__ = ["TOTPPolicy", "to_record"]
