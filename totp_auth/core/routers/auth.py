"""
Authentication router driving the TOTP strategy.

Endpoints:
- POST {login_path}: request a code (or resend the pending one)
- GET {verify_path}: pending email and last error for the code entry page
- POST {verify_path}: redeem a typed code
- GET {magic_link_path}: redeem a code from a magic link
- POST {logout_path}: clear the session
"""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from totp_auth.core.config import request_logger
from totp_auth.core.services.session import SessionStorage
from totp_auth.core.services.strategy import AuthenticateOptions, TOTPStrategy


def create_totp_router(
    strategy: TOTPStrategy,
    session_storage: SessionStorage,
    login_path: str = "/login",
    verify_path: str = "/verify",
    logout_path: str = "/logout",
    success_redirect: str = "/account",
    session_key: str = "user",
    session_error_key: str = "auth:error",
) -> APIRouter:
    """
    Build the router exposing the TOTP flow.

    Args:
        strategy (TOTPStrategy): The configured strategy.
        session_storage (SessionStorage): Storage for the session cookie.
        login_path (str): Where codes are requested; failures of the first
            phase and of magic links land here.
        verify_path (str): Where codes are typed back; issuing a code
            redirects here.
        logout_path (str): Session teardown endpoint.
        success_redirect (str): Destination once the user is authenticated.
        session_key (str): Session key holding the authenticated user.
        session_error_key (str): Session key holding the flashed error.

    Returns:
        APIRouter: Router to include in the application.
    """
    router = APIRouter(tags=["Authentication"])

    def _options(success: str, failure: str) -> AuthenticateOptions:
        return AuthenticateOptions(
            success_redirect=success,
            failure_redirect=failure,
            session_key=session_key,
            session_error_key=session_error_key,
        )

    @router.post(
        login_path,
        status_code=status.HTTP_302_FOUND,
        summary="Request a one-time code",
        description="""
## Request a Sign-in Code

Submit an email address as form data. A one-time code and a magic link are
generated and handed to the configured sender, and the browser is
redirected to the code entry page.

Submitting the form with no fields while a code is pending resends a new
code to the pending email address.

### Form Fields

| Field | Required | Description |
|-------|----------|-------------|
| `email` | ✅ | Email address to sign in with |

### Redirects

- **302 → verify page** when a code was sent
- **302 → login page** with a flashed error otherwise
""",
    )
    async def request_code(request: Request) -> RedirectResponse:
        result = await strategy.authenticate(
            request, session_storage, _options(verify_path, login_path)
        )
        request_logger.info(f"POST {login_path} -> {result.outcome.value}")
        return result.to_response()

    @router.get(
        verify_path,
        summary="Pending code state",
        description="""
## Code Entry Page State

Returns the email address a code is pending for and the last flashed
error, if any. Reading the error consumes it.

### Success Response (200)

```json
{"email": "user@example.com", "error": "Code is not valid."}
```
""",
    )
    async def pending_state(request: Request) -> JSONResponse:
        session = await session_storage.get_session(request.headers.get("cookie"))
        email = session.get(strategy.session_email_key)
        error = session.get(session_error_key)
        cookie = await session_storage.commit_session(session, max_age=strategy.max_age)
        return JSONResponse(
            content={
                "email": email,
                "error": error.get("message") if isinstance(error, dict) else error,
            },
            headers={"set-cookie": cookie},
        )

    @router.post(
        verify_path,
        status_code=status.HTTP_302_FOUND,
        summary="Redeem a one-time code",
        description="""
## Redeem a Code

Submit the code received by email as form data.

### Form Fields

| Field | Required | Description |
|-------|----------|-------------|
| `totp` | ✅ | The one-time code |

### Redirects

- **302 → success page** once authenticated
- **302 → verify page** with a flashed error otherwise
""",
    )
    async def redeem_code(request: Request) -> RedirectResponse:
        result = await strategy.authenticate(
            request, session_storage, _options(success_redirect, verify_path)
        )
        request_logger.info(f"POST {verify_path} -> {result.outcome.value}")
        return result.to_response()

    if strategy.magic_link_generation.enabled:
        magic_link_path = strategy.magic_link_generation.callback_path

        @router.get(
            magic_link_path,
            status_code=status.HTTP_302_FOUND,
            summary="Redeem a magic link",
            description="""
## Redeem a Magic Link

Opened from the link sent by email. The code travels in the query string
and is checked exactly like a typed code. The link only works in the
browser session that requested it.

### Redirects

- **302 → success page** once authenticated
- **302 → login page** with a flashed error otherwise
""",
        )
        async def redeem_magic_link(request: Request) -> RedirectResponse:
            result = await strategy.authenticate(
                request, session_storage, _options(success_redirect, login_path)
            )
            request_logger.info(f"GET {magic_link_path} -> {result.outcome.value}")
            return result.to_response()

    @router.post(
        logout_path,
        status_code=status.HTTP_302_FOUND,
        summary="Sign out",
        description="Clears the session cookie and redirects to the login page.",
    )
    async def logout(request: Request) -> RedirectResponse:
        session = await session_storage.get_session(request.headers.get("cookie"))
        cookie = await session_storage.destroy_session(session)
        request_logger.info(f"POST {logout_path} -> session destroyed")
        return RedirectResponse(
            url=login_path,
            status_code=status.HTTP_302_FOUND,
            headers={"set-cookie": cookie},
        )

    return router


__all__ = ["create_totp_router"]
