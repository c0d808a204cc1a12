"""
TOTP authentication strategy.

This module drives the two-phase passwordless flow for one request:

- Phase 1 (POST without a code): validate the email, issue a code, persist
  its signed token, deliver it and remember the pending token in the session.
- Phase 2 (POST with a code, or GET on the magic link path): run the
  attempt/expiry policy, consume the pending token and resolve the user
  through the verification callback.

Every outcome is returned as an `AuthResult`; hosts turn it into a
redirect with `AuthResult.to_response()`.

Example usage:
    from totp_auth.core.services.strategy import AuthenticateOptions, TOTPStrategy

    strategy = TOTPStrategy(options, verify=find_or_create_user)

    result = await strategy.authenticate(
        request,
        session_storage,
        AuthenticateOptions(success_redirect="/verify", failure_redirect="/login"),
    )
    return result.to_response()
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import re
from typing import Any
from urllib.parse import unquote

from pydantic import BaseModel
from starlette.datastructures import FormData
from starlette.requests import Request
from starlette.responses import RedirectResponse

from totp_auth.core.config import auth_logger
from totp_auth.core.enums import AuthOutcome, TOTPDecision
from totp_auth.core.exceptions.types import (
    AppException,
    AuthorizationException,
    DatabaseException,
    InvalidEmailException,
    InvalidMagicLinkPathException,
    InvalidTokenException,
    OTPInactiveException,
    OTPInvalidException,
    OTPNotFoundException,
    RequiredEmailException,
    RequiredSecretException,
    RequiredSuccessRedirectException,
    UserNotFoundException,
)
from totp_auth.core.schemas.totp import (
    SendTOTPOptions,
    TOTPRecord,
    TOTPRecordUpdate,
    TOTPStrategyOptions,
    TOTPVerifyParams,
    VerifyTOTP,
)
from totp_auth.core.services.policy import TOTPPolicy, to_record
from totp_auth.core.services.session import Session, SessionStorage
from totp_auth.core.utils import (
    generate_magic_link,
    generate_secret,
    generate_totp,
    mask_email,
    mask_otp,
    sign_jwt,
    token_fingerprint,
)

STRATEGY_NAME = "TOTP"
UNKNOWN_ERROR_MESSAGE = "Unknown error."

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class AuthenticateOptions:
    """Per-call options of `TOTPStrategy.authenticate`."""

    success_redirect: str | None = None
    failure_redirect: str | None = None
    session_key: str = "user"
    session_error_key: str = "auth:error"
    session_strategy_key: str = "strategy"
    throw_on_error: bool = False
    context: Any = None


@dataclass
class AuthResult:
    """
    Outcome of a single `authenticate` call.

    Attributes:
        outcome: SUCCESS (user authenticated), CONTINUE (code issued and
            pending) or FAILURE (message flashed into the session).
        redirect_to: Where the host should redirect.
        headers: Response headers, carrying the committed `Set-Cookie`.
        user: The authenticated user on SUCCESS.
        message: The failure message on FAILURE.
    """

    outcome: AuthOutcome
    redirect_to: str
    headers: dict[str, str] = field(default_factory=dict)
    user: Any = None
    message: str | None = None

    def to_response(self, status_code: int = 302) -> RedirectResponse:
        return RedirectResponse(
            url=self.redirect_to, status_code=status_code, headers=self.headers
        )


def _form_value(form: FormData, key: str) -> str | None:
    value = form.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _session_value(user: Any) -> Any:
    # Sessions are JSON serialized
    if isinstance(user, BaseModel):
        return user.model_dump(mode="json")
    return user


class TOTPStrategy:
    """
    Passwordless email authentication with one-time codes and magic links.

    Args:
        options (TOTPStrategyOptions): Strategy configuration and callbacks.
        verify (VerifyTOTP): Resolves the application user once a code is
            accepted. It receives a `TOTPVerifyParams`.
    """

    name = STRATEGY_NAME

    def __init__(self, options: TOTPStrategyOptions, verify: VerifyTOTP):
        self.options = options
        self.verify = verify

        self.secret = options.secret
        self.max_age = options.max_age
        self.totp_generation = options.totp_generation
        self.magic_link_generation = options.magic_link_generation
        self.custom_errors = options.custom_errors
        self.store_totp = options.store_totp
        self.send_totp = options.send_totp
        self.handle_totp = options.handle_totp
        self.validate_email = options.validate_email or self._validate_email_default
        self.email_field_key = options.email_field_key
        self.totp_field_key = options.totp_field_key
        self.session_email_key = options.session_email_key
        self.session_totp_key = options.session_totp_key

        self.policy = TOTPPolicy(
            handle_totp=self.handle_totp,
            secret=self.secret,
            max_attempts=self.totp_generation.max_attempts,
        )

    async def authenticate(
        self,
        request: Request,
        session_storage: SessionStorage,
        options: AuthenticateOptions,
    ) -> AuthResult:
        """
        Run one step of the authentication flow for `request`.

        Args:
            request: The incoming request.
            session_storage: Storage used to load and commit the session.
            options: Redirect targets, session keys and host context.

        Returns:
            AuthResult: The outcome and the redirect the host should send.

        Raises:
            RequiredSecretException: If the strategy has no signing secret.
            RequiredSuccessRedirectException: If `options.success_redirect` is unset.
            AuthorizationException: On failure when no failure redirect is
                configured or `options.throw_on_error` is set.
        """
        if not self.secret:
            raise RequiredSecretException()
        if not options.success_redirect:
            raise RequiredSuccessRedirectException()

        session = await session_storage.get_session(request.headers.get("cookie"))
        session_email: str | None = session.get(self.session_email_key)
        session_totp: str | None = session.get(self.session_totp_key)

        user = session.get(options.session_key)
        if user is not None:
            return await self._success(user, session, session_storage, options)

        try:
            return await self._run(
                request, session, session_storage, options, session_email, session_totp
            )
        except InvalidTokenException as e:
            # An unverifiable pending token can no longer be redeemed
            try:
                record = await self.policy.get_record(session_totp, options.context)
                if record is not None:
                    await self.policy.deactivate(session_totp, options.context)
            except Exception as store_error:
                return await self._error_failure(
                    store_error, session, session_storage, options
                )

            if record is None:
                return await self._failure(
                    OTPNotFoundException().message, session, session_storage, options, e
                )
            return await self._failure(
                self.custom_errors.inactive_totp, session, session_storage, options, e
            )
        except Exception as e:
            return await self._error_failure(e, session, session_storage, options)

    async def _run(
        self,
        request: Request,
        session: Session,
        session_storage: SessionStorage,
        options: AuthenticateOptions,
        session_email: str | None,
        session_totp: str | None,
    ) -> AuthResult:
        is_post = request.method == "POST"
        is_get = request.method == "GET"

        form: FormData | None = None
        form_email: str | None = None
        form_totp: str | None = None
        magic_link_totp: str | None = None

        if is_post:
            form = await request.form()
            form_email = _form_value(form, self.email_field_key)
            form_totp = _form_value(form, self.totp_field_key)

            # Resend: neither field submitted while a code is pending
            if not form_email and not form_totp and session_email and session_totp:
                auth_logger.info(f"Resending TOTP to {mask_email(session_email)}")
                await self.policy.deactivate(session_totp, options.context)
                form_email = session_email

            # Only one live code per session
            if (
                form_email
                and session_email
                and form_email != session_email
                and session_totp
            ):
                auth_logger.info(
                    f"Email changed from {mask_email(session_email)} to "
                    f"{mask_email(form_email)}, invalidating pending TOTP"
                )
                await self.policy.deactivate(session_totp, options.context)

            if not form_totp:
                return await self._issue(
                    request, form, form_email, session, session_storage, options
                )

        if is_get and self.magic_link_generation.enabled:
            if request.url.path != self.magic_link_generation.callback_path:
                raise InvalidMagicLinkPathException()

            param = request.query_params.get(self.totp_field_key)
            magic_link_totp = unquote(param) if param is not None else None

        code = form_totp if is_post else magic_link_totp
        if code:
            return await self._redeem(
                request,
                form,
                code,
                magic_link_totp,
                session,
                session_storage,
                options,
                session_email,
                session_totp,
            )

        raise UserNotFoundException()

    async def _issue(
        self,
        request: Request,
        form: FormData | None,
        email: str | None,
        session: Session,
        session_storage: SessionStorage,
        options: AuthenticateOptions,
    ) -> AuthResult:
        if not email:
            raise RequiredEmailException(self.custom_errors.required_email)
        await self.validate_email(email)

        # Every issuance gets its own secret
        code, params = generate_totp(
            self.totp_generation.model_copy(update={"secret": generate_secret()})
        )
        signed_totp = sign_jwt(
            params.model_dump(mode="json"), params.period, self.secret
        )
        magic_link = generate_magic_link(
            self.magic_link_generation, self.totp_field_key, code, request
        )

        await self.store_totp(
            TOTPRecord(hash=signed_totp, active=True, attempts=0), options.context
        )
        await self._handle_expires_at(signed_totp, params.period, options.context)

        await self.send_totp(
            SendTOTPOptions(
                email=email,
                code=code,
                magic_link=magic_link,
                form=form,
                request=request,
            )
        )
        auth_logger.info(
            f"TOTP {mask_otp(code)} ({token_fingerprint(signed_totp)}) "
            f"issued to {mask_email(email)}"
        )

        session.set(self.session_email_key, email)
        session.set(self.session_totp_key, signed_totp)
        session.unset(options.session_error_key)

        cookie = await session_storage.commit_session(session, max_age=self.max_age)
        return AuthResult(
            outcome=AuthOutcome.CONTINUE,
            redirect_to=options.success_redirect,
            headers={"set-cookie": cookie},
        )

    async def _redeem(
        self,
        request: Request,
        form: FormData | None,
        code: str,
        magic_link_totp: str | None,
        session: Session,
        session_storage: SessionStorage,
        options: AuthenticateOptions,
        session_email: str | None,
        session_totp: str | None,
    ) -> AuthResult:
        decision = await self.policy.evaluate(session_totp, code, options.context)

        if decision == TOTPDecision.NOT_FOUND:
            raise OTPNotFoundException()
        if decision == TOTPDecision.INACTIVE:
            raise OTPInactiveException(self.custom_errors.inactive_totp)
        if decision == TOTPDecision.INVALID_CODE:
            raise OTPInvalidException(self.custom_errors.invalid_totp)

        await self.policy.deactivate(session_totp, options.context)

        user = await self.verify(
            TOTPVerifyParams(
                email=session_email,
                code=code,
                magic_link=magic_link_totp,
                form=form,
                request=request,
                context=options.context,
            )
        )
        if user is None:
            raise UserNotFoundException()

        auth_logger.info(
            f"TOTP {token_fingerprint(session_totp)} redeemed by {mask_email(session_email)}"
            f" via {'magic link' if magic_link_totp else 'form'}"
        )

        session.set(options.session_key, _session_value(user))
        session.unset(self.session_email_key)
        session.unset(self.session_totp_key)
        session.unset(options.session_error_key)

        cookie = await session_storage.commit_session(session, max_age=self.max_age)
        return AuthResult(
            outcome=AuthOutcome.SUCCESS,
            redirect_to=options.success_redirect,
            headers={"set-cookie": cookie},
            user=user,
        )

    async def _handle_expires_at(self, token: str, period: int, context: Any) -> None:
        """Move the stored `expires_at` to now + period, if the store tracks it."""
        record = to_record(await self.handle_totp(token, None, context))
        if record is None or record.expires_at is None:
            return

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=period)
        value: datetime | str = (
            expires_at.isoformat() if isinstance(record.expires_at, str) else expires_at
        )
        await self.handle_totp(token, TOTPRecordUpdate(expires_at=value), context)

    async def _validate_email_default(self, email: str) -> None:
        if not EMAIL_REGEX.match(email):
            raise InvalidEmailException(self.custom_errors.invalid_email)

    async def _success(
        self,
        user: Any,
        session: Session,
        session_storage: SessionStorage,
        options: AuthenticateOptions,
    ) -> AuthResult:
        session.set(options.session_key, _session_value(user))
        session.set(options.session_strategy_key, self.name)
        cookie = await session_storage.commit_session(session)
        return AuthResult(
            outcome=AuthOutcome.SUCCESS,
            redirect_to=options.success_redirect,
            headers={"set-cookie": cookie},
            user=user,
        )

    async def _error_failure(
        self,
        error: Exception,
        session: Session,
        session_storage: SessionStorage,
        options: AuthenticateOptions,
    ) -> AuthResult:
        """Route an error raised by the flow or a callback to the failure path."""
        if isinstance(error, DatabaseException):
            # Store errors may carry tokens or SQL, keep them out of the session
            auth_logger.error(
                f"Store error during authentication: "
                f"{type(error.__cause__ or error).__name__}"
            )
            message = DatabaseException().message
        elif isinstance(error, AppException):
            message = error.message
        else:
            auth_logger.error(
                f"Unexpected error during authentication: {type(error).__name__} - {str(error)}"
            )
            message = str(error) or UNKNOWN_ERROR_MESSAGE

        return await self._failure(message, session, session_storage, options, error)

    async def _failure(
        self,
        message: str,
        session: Session,
        session_storage: SessionStorage,
        options: AuthenticateOptions,
        cause: BaseException | None = None,
    ) -> AuthResult:
        auth_logger.warning(
            f"Authentication failed: {message} "
            f"({type(cause).__name__ if cause else 'no cause'})"
        )

        if options.throw_on_error or not options.failure_redirect:
            raise AuthorizationException(message, cause) from cause

        session.flash(options.session_error_key, {"message": message})
        cookie = await session_storage.commit_session(session)
        return AuthResult(
            outcome=AuthOutcome.FAILURE,
            redirect_to=options.failure_redirect,
            headers={"set-cookie": cookie},
            message=message,
        )


__all__ = [
    "STRATEGY_NAME",
    "UNKNOWN_ERROR_MESSAGE",
    "AuthenticateOptions",
    "AuthResult",
    "TOTPStrategy",
]
