from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request, status
from sqlalchemy import text

from totp_auth.core.config import Settings, app_logger, get_settings
from totp_auth.core.db import dispose_db, init_db
from totp_auth.core.db.store import SQLAlchemyTOTPStore
from totp_auth.core.dependencies.auth import session_user_dependency
from totp_auth.core.exceptions.handlers import (
    authentication_exception_handler,
    authorization_exception_handler,
    configuration_exception_handler,
    general_exception_handler,
)
from totp_auth.core.exceptions.types import (
    AppException,
    AuthenticationException,
    AuthorizationException,
    ConfigurationException,
)
from totp_auth.core.routers.auth import create_totp_router
from totp_auth.core.schemas.totp import (
    CustomErrorsOptions,
    MagicLinkGenerationOptions,
    SendTOTP,
    SendTOTPOptions,
    TOTPGenerationOptions,
    TOTPStrategyOptions,
    TOTPVerifyParams,
    VerifyTOTP,
    merge_options,
)
from totp_auth.core.services.session import CookieSessionStorage
from totp_auth.core.services.strategy import TOTPStrategy
from totp_auth.core.utils import mask_email, mask_otp


async def log_totp_sender(options: SendTOTPOptions) -> None:
    """Development sender: records the delivery instead of sending an email."""
    app_logger.info(
        f"Delivering code {mask_otp(options.code)} to {mask_email(options.email)}"
        f" (magic link {'included' if options.magic_link else 'disabled'})"
    )


async def email_user_verifier(params: TOTPVerifyParams) -> dict[str, Any]:
    """Default verification callback: the user is identified by their email."""
    return {"email": params.email}


def build_strategy_options(
    settings: Settings,
    store: SQLAlchemyTOTPStore,
    send_totp: SendTOTP,
    totp_generation: TOTPGenerationOptions | dict | None = None,
    magic_link_generation: MagicLinkGenerationOptions | dict | None = None,
    custom_errors: CustomErrorsOptions | dict | None = None,
) -> TOTPStrategyOptions:
    """
    Build strategy options from settings, overlaying any explicit overrides.

    Args:
        settings: Application settings providing the defaults.
        store: Store whose bound methods become the persistence callbacks.
        send_totp: Delivery callback.
        totp_generation: Partial overrides for code generation.
        magic_link_generation: Partial overrides for magic links.
        custom_errors: Partial overrides for error messages.

    Returns:
        TOTPStrategyOptions: The merged, validated options.
    """
    totp_defaults = TOTPGenerationOptions(
        algorithm=settings.TOTP_ALGORITHM,
        char_set=settings.TOTP_CHAR_SET,
        digits=settings.TOTP_DIGITS,
        period=settings.TOTP_PERIOD,
        max_attempts=settings.TOTP_MAX_ATTEMPTS,
    )
    magic_link_defaults = MagicLinkGenerationOptions(
        enabled=settings.MAGIC_LINK_ENABLED,
        host_url=settings.MAGIC_LINK_HOST_URL,
        callback_path=settings.MAGIC_LINK_CALLBACK_PATH,
    )

    return TOTPStrategyOptions(
        secret=settings.TOTP_SECRET,
        max_age=settings.SESSION_MAX_AGE,
        totp_generation=merge_options(totp_defaults, totp_generation),
        magic_link_generation=merge_options(magic_link_defaults, magic_link_generation),
        custom_errors=merge_options(CustomErrorsOptions(), custom_errors),
        store_totp=store.store_totp,
        handle_totp=store.handle_totp,
        send_totp=send_totp,
    )


def create_app(
    settings: Settings | None = None,
    store: SQLAlchemyTOTPStore | None = None,
    send_totp: SendTOTP = log_totp_sender,
    verify: VerifyTOTP = email_user_verifier,
    create_tables: bool = True,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Settings to use. Defaults to the cached application settings.
        store: TOTP record store. Defaults to the application database.
        send_totp: Delivery callback. Defaults to a logging sender.
        verify: Verification callback. Defaults to identifying users by email.
        create_tables: Create database tables on startup.

    Returns:
        FastAPI: The configured application.
    """
    settings = settings or get_settings()
    store = store or SQLAlchemyTOTPStore()

    session_storage = CookieSessionStorage(
        secret_key=settings.SESSION_SECRET_KEY,
        cookie_name=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_MAX_AGE,
        same_site=settings.SESSION_SAME_SITE_COOKIE_POLICY,
        secure=settings.SESSION_SECURE_COOKIE,
    )
    strategy = TOTPStrategy(
        build_strategy_options(settings, store, send_totp), verify=verify
    )
    current_user = session_user_dependency(session_storage)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_logger.info("Starting application...")

        if create_tables:
            app_logger.info("Initializing database...")
            await init_db(store.engine)
            app_logger.info("Database initialized successfully.")

        yield

        app_logger.info("Shutting down application...")
        await dispose_db(store.engine)
        app_logger.info("Application shutdown complete.")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=settings.APP_DESCRIPTION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.strategy = strategy
    app.state.session_storage = session_storage

    # Register exception handlers (order matters - more specific first)
    app.add_exception_handler(AuthorizationException, authorization_exception_handler)
    app.add_exception_handler(AuthenticationException, authentication_exception_handler)
    app.add_exception_handler(ConfigurationException, configuration_exception_handler)
    # Generic fallback
    app.add_exception_handler(AppException, general_exception_handler)

    app.include_router(
        create_totp_router(
            strategy,
            session_storage,
            login_path=settings.AUTH_LOGIN_PATH,
            verify_path=settings.AUTH_VERIFY_PATH,
            logout_path=settings.AUTH_LOGOUT_PATH,
            success_redirect=settings.AUTH_SUCCESS_REDIRECT,
        )
    )

    @app.get("/", include_in_schema=False)
    async def root(request: Request):
        base_url = str(request.base_url).rstrip("/")
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "documentations": {
                "swagger": f"{base_url}/docs",
                "redoc": f"{base_url}/redoc",
            },
            "version": settings.APP_VERSION,
        }

    @app.get(settings.AUTH_SUCCESS_REDIRECT, tags=["Account"])
    async def account(user: Any = Depends(current_user)):
        """Return the authenticated user stored in the session."""
        return {"user": user}

    @app.head("/health", include_in_schema=False)
    @app.get("/health")
    async def health_check():
        """
        Health check endpoint to verify if the API is running.

        Checks:
            - Database connectivity
        """
        health_status = {
            "status": "ok",
            "message": f"{settings.APP_NAME} is running.",
            "checks": {"database": "ok"},
        }

        try:
            async with store.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                if result.scalar() != 1:
                    health_status["checks"]["database"] = "unhealthy"
                    health_status["status"] = "degraded"
        except Exception as e:
            app_logger.error(f"Database health check failed: {e}")
            health_status["checks"]["database"] = "unhealthy"
            health_status["status"] = "degraded"

        if health_status["status"] != "ok":
            raise AppException(
                "One or more health checks failed.",
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                details=health_status,
            )

        return health_status

    return app


app = create_app()
