"""
Utility functions for the TOTP strategy.

- JWT signing and verification of OTP parameters
- TOTP secret generation, code generation and verification
- Magic link construction and host inference
- Masking helpers for logging codes, emails and tokens
"""

from datetime import datetime, timedelta, timezone
import hashlib
import hmac
from typing import Any
from urllib.parse import urlencode

import jwt
import pyotp
from starlette.requests import Request

from totp_auth.core.config import utils_logger
from totp_auth.core.exceptions.types import (
    ExpiredTokenException,
    InvalidTokenException,
    MagicLinkHostException,
)
from totp_auth.core.schemas.totp import (
    MagicLinkGenerationOptions,
    TOTPGenerationOptions,
    TOTPParams,
)

JWT_ALGORITHM = "HS256"
NUMERIC_CHAR_SET = "0123456789"


def sign_jwt(
    payload: dict[str, Any],
    expires_in: int,
    secret: str,
    algorithm: str = JWT_ALGORITHM,
) -> str:
    """
    Sign a claim set into a JWT that expires `expires_in` seconds from now.

    Args:
        payload: Claims to embed. Must be JSON serializable.
        expires_in: Token lifetime in seconds. Can be negative for an
                    already expired token (testing only).
        secret: The server-held signing secret.
        algorithm: JWT signing algorithm. Defaults to HS256.

    Returns:
        str: Encoded JWT token string in the format: header.payload.signature

    Raises:
        ValueError: If payload is None or secret is empty.

    Examples:
        >>> token = sign_jwt({"digits": 6}, expires_in=60, secret="s3cret")
        >>> len(token.split("."))
        3
    """
    if payload is None:
        utils_logger.error("Attempted to sign JWT with None payload")
        raise ValueError("Payload cannot be None")

    if not secret:
        utils_logger.error("Attempted to sign JWT with empty secret")
        raise ValueError("Secret cannot be None or empty")

    issued_at = datetime.now(timezone.utc)
    to_encode = payload.copy()
    to_encode["iat"] = issued_at
    to_encode["exp"] = issued_at + timedelta(seconds=expires_in)

    token = jwt.encode(to_encode, secret, algorithm=algorithm)
    utils_logger.debug(
        f"JWT signed with fingerprint {token_fingerprint(token)}, expires in {expires_in}s"
    )
    return token


def verify_jwt(
    token: str | None,
    secret: str,
    algorithm: str = JWT_ALGORITHM,
) -> dict[str, Any]:
    """
    Verify a JWT and return its claims without the `iat`/`exp` timestamps.

    Unlike a lenient decoder, every failure is raised so callers can tell
    an expired token apart from a forged or malformed one.

    Args:
        token: The JWT token string to verify.
        secret: The server-held signing secret.
        algorithm: Expected signing algorithm. Defaults to HS256.

    Returns:
        dict[str, Any]: The claims originally passed to `sign_jwt`.

    Raises:
        ExpiredTokenException: If the embedded expiry has passed.
        InvalidTokenException: If the token is missing, malformed or the
            signature does not match.
    """
    if not token:
        utils_logger.warning("JWT verification attempted with empty token")
        raise InvalidTokenException()

    try:
        claims = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError as e:
        utils_logger.warning(
            f"JWT {token_fingerprint(token)} verification failed: token has expired"
        )
        raise ExpiredTokenException() from e
    except jwt.InvalidTokenError as e:
        utils_logger.warning(
            f"JWT {token_fingerprint(token)} verification failed: {type(e).__name__}"
        )
        raise InvalidTokenException() from e

    claims.pop("iat", None)
    claims.pop("exp", None)
    return claims


def generate_secret() -> str:
    """Generate a fresh base32 TOTP secret."""
    return pyotp.random_base32()


class CharSetTOTP(pyotp.TOTP):
    """
    TOTP whose codes are rendered over an arbitrary character set.

    The HMAC and dynamic truncation steps are the standard ones; only the
    final rendering differs, spelling the truncated value in base
    `len(char_set)`. For the decimal character set the output equals the
    regular numeric code.
    """

    def __init__(self, s: str, char_set: str, **kwargs: Any) -> None:
        self.char_set = char_set
        super().__init__(s, **kwargs)

    def generate_otp(self, input: int) -> str:
        if input < 0:
            raise ValueError("input must be positive integer")

        hasher = hmac.new(self.byte_secret(), self.int_to_bytestring(input), self.digest)
        hmac_hash = bytearray(hasher.digest())
        offset = hmac_hash[-1] & 0xF
        code = (
            (hmac_hash[offset] & 0x7F) << 24
            | (hmac_hash[offset + 1] & 0xFF) << 16
            | (hmac_hash[offset + 2] & 0xFF) << 8
            | (hmac_hash[offset + 3] & 0xFF)
        )

        base = len(self.char_set)
        chars = []
        for _ in range(self.digits):
            code, index = divmod(code, base)
            chars.append(self.char_set[index])
        return "".join(reversed(chars))


def _build_totp(params: TOTPParams) -> pyotp.TOTP:
    kwargs = {
        "digits": params.digits,
        "digest": params.algorithm.digest,
        "interval": params.period,
    }
    if params.char_set == NUMERIC_CHAR_SET:
        return pyotp.TOTP(params.secret, **kwargs)
    return CharSetTOTP(params.secret, char_set=params.char_set, **kwargs)


def generate_totp(options: TOTPGenerationOptions) -> tuple[str, TOTPParams]:
    """
    Generate the current code for a set of generation options.

    A secret is generated only when `options.secret` is unset.

    Args:
        options: Generation options (secret, algorithm, char_set, digits, period).

    Returns:
        tuple[str, TOTPParams]: The code and the parameters it was derived
        from. The parameters never include the code.
    """
    params = TOTPParams(
        secret=options.secret or generate_secret(),
        algorithm=options.algorithm,
        char_set=options.char_set,
        digits=options.digits,
        period=options.period,
    )
    code = _build_totp(params).now()

    utils_logger.info(
        f"TOTP code {mask_otp(code)} generated ({params.digits} chars, {params.period}s period)"
    )
    return code, params


def verify_totp(code: str | None, params: TOTPParams) -> bool:
    """
    Check a submitted code against the parameters it was issued with.

    The current time step and one adjacent step on each side are accepted
    to tolerate clock skew.

    Args:
        code: The submitted code. Can be None.
        params: Parameters decoded from the signed OTP token.

    Returns:
        bool: True if the code matches, False otherwise.
    """
    if not code:
        return False

    return _build_totp(params).verify(code.strip(), valid_window=1)


def get_host_url(request: Request) -> str:
    """
    Infer the public origin of a request.

    `X-Forwarded-Host` wins over `Host`. The scheme is `http` for
    localhost and `https` for everything else.

    Raises:
        MagicLinkHostException: If neither header is present.
    """
    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    if not host:
        utils_logger.warning("Could not determine host for magic link")
        raise MagicLinkHostException()

    protocol = "http" if "localhost" in host else "https"
    return f"{protocol}://{host}"


def generate_magic_link(
    options: MagicLinkGenerationOptions,
    param: str,
    code: str,
    request: Request | None = None,
) -> str | None:
    """
    Build the magic link for a code.

    Args:
        options: Magic link options. Nothing is built when disabled.
        param: Query parameter carrying the code.
        code: The raw one-time code.
        request: Request used to infer the host when `options.host_url` is unset.

    Returns:
        str | None: The magic link, or None when magic links are disabled.

    Raises:
        MagicLinkHostException: If no host URL is configured and none can be inferred.

    Examples:
        >>> opts = MagicLinkGenerationOptions(host_url="https://example.com")
        >>> generate_magic_link(opts, "totp", "123456")
        'https://example.com/magic-link?totp=123456'
    """
    if not options.enabled:
        return None

    if options.host_url:
        host_url = options.host_url.rstrip("/")
    elif request is not None:
        host_url = get_host_url(request)
    else:
        raise MagicLinkHostException()

    return f"{host_url}{options.callback_path}?{urlencode({param: code})}"


def mask_otp(otp: str) -> str:
    """
    Mask an OTP code for logging purposes, showing only first and last character.

    Examples:
        >>> mask_otp("123456")
        '1****6'
        >>> mask_otp("12")
        '12'
    """
    if len(otp) <= 2:
        return otp

    return f"{otp[0]}{'*' * (len(otp) - 2)}{otp[-1]}"


def mask_email(email: str | None) -> str:
    """
    Mask the local part of an email address for logging.

    Examples:
        >>> mask_email("alice@example.com")
        'a***@example.com'
    """
    if not email:
        return "<none>"

    local, sep, domain = email.partition("@")
    if not sep:
        return f"{local[:1]}***"
    return f"{local[:1]}***@{domain}"


def token_fingerprint(token: str | None) -> str:
    """Short, non-reversible identifier for logging a token."""
    if not token:
        return "<none>"
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]


__all__ = [
    "JWT_ALGORITHM",
    "NUMERIC_CHAR_SET",
    "sign_jwt",
    "verify_jwt",
    "generate_secret",
    "CharSetTOTP",
    "generate_totp",
    "verify_totp",
    "get_host_url",
    "generate_magic_link",
    "mask_otp",
    "mask_email",
    "token_fingerprint",
]
