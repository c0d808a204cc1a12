"""
Logging setup for the authentication components.

Every logger gets a rotating file, the console and a filter that replaces
signed tokens (JWTs) in messages with a short fingerprint, so a token
interpolated into a message by accident never reaches a log sink.
"""

import hashlib
import logging
from logging.handlers import RotatingFileHandler
import os
import re
from typing import Optional

# Sentry SDK is a process-wide singleton
_sentry_initialized = False

JWT_PATTERN = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]+")


def _redact(match: re.Match) -> str:
    digest = hashlib.sha256(match.group(0).encode("utf-8")).hexdigest()[:12]
    return f"<token {digest}>"


class RedactTokensFilter(logging.Filter):
    """Rewrite log records so that no signed token appears verbatim."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = JWT_PATTERN.sub(_redact, message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


def init_sentry(
    dsn: str,
    environment: str = "development",
    traces_sample_rate: float = 1.0,
) -> bool:
    """
    Initialize Sentry SDK once for the process.

    Only ERROR records become events; lower levels are kept as breadcrumbs.

    Args:
        dsn (str): Sentry DSN for error tracking.
        environment (str): Sentry environment name (development/production).
        traces_sample_rate (float): Performance monitoring sample rate (0.0 to 1.0).

    Returns:
        bool: True if Sentry was initialized, False if already initialized,
            no DSN was given, or the optional `sentry` extra is not installed.
    """
    global _sentry_initialized

    if _sentry_initialized or not dsn:
        return False

    try:
        import sentry_sdk
        from sentry_sdk.integrations.logging import LoggingIntegration
    except ImportError:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
        ],
        send_default_pii=False,
    )

    _sentry_initialized = True
    return True


def setup_logger(
    name: str,
    log_file: str,
    level: int = logging.INFO,
    sentry_tag: Optional[str] = None,
) -> logging.Logger:
    """
    Set up a component logger writing to a rotating file and the console.

    Calling it again for an already configured name returns the existing
    logger without attaching a second set of handlers.

    Args:
        name (str): The name of the logger.
        log_file (str): The file path where the log messages will be written.
        level (int, optional): The logging level. Defaults to logging.INFO.
        sentry_tag (str, optional): Component tag set in Sentry (e.g., "auth").

    Returns:
        logging.Logger: The configured logger instance.
    """
    if sentry_tag and _sentry_initialized:
        import sentry_sdk

        sentry_sdk.set_tag("component", sentry_tag)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    logger.addFilter(RedactTokensFilter())

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    console_handler = logging.StreamHandler()

    for handler in (file_handler, console_handler):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


__all__ = ["RedactTokensFilter", "init_sentry", "setup_logger"]
