"""
Session storage for the authentication flow.

`Session` is a plain key/value bag with flash support: a flashed value is
returned once by `get` and dropped on the next commit. `CookieSessionStorage`
keeps the whole session client-side in an itsdangerous-signed cookie, the
same way Starlette's session middleware does, but exposes explicit
get/commit/destroy calls so the strategy controls exactly when the cookie
is written and with which max-age.
"""

from typing import Any, Literal, Protocol

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from starlette.requests import cookie_parser

from totp_auth.core.config import session_logger

_FLASH_PREFIX = "__flash_"
_FLASH_SUFFIX = "__"


def _flash_key(key: str) -> str:
    return f"{_FLASH_PREFIX}{key}{_FLASH_SUFFIX}"


class Session:
    """Mutable session data bound to one request."""

    def __init__(self, data: dict[str, Any] | None = None):
        self._data: dict[str, Any] = dict(data or {})

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    def has(self, key: str) -> bool:
        return key in self._data or _flash_key(key) in self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Return a value, consuming it if it was flashed."""
        flash_key = _flash_key(key)
        if flash_key in self._data:
            return self._data.pop(flash_key)
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def flash(self, key: str, value: Any) -> None:
        """Store a value that survives exactly one subsequent read."""
        self._data[_flash_key(key)] = value

    def unset(self, key: str) -> None:
        self._data.pop(key, None)
        self._data.pop(_flash_key(key), None)

    def __repr__(self) -> str:
        return f"Session(keys={sorted(self._data)})"


class SessionStorage(Protocol):
    """Interface the strategy uses to load and persist sessions."""

    async def get_session(self, cookie_header: str | None) -> Session: ...

    async def commit_session(
        self, session: Session, max_age: int | None = None
    ) -> str: ...

    async def destroy_session(self, session: Session) -> str: ...


class CookieSessionStorage:
    """
    Cookie-backed session storage signed with itsdangerous.

    Args:
        secret_key (str): Key used to sign the cookie payload.
        cookie_name (str): Name of the session cookie.
        max_age (int | None): Default cookie lifetime in seconds, also used
            as the signature max age. None keeps a browser-session cookie.
        path (str): Cookie path.
        same_site (str): SameSite policy ("lax", "strict" or "none").
        secure (bool): Add the Secure flag.
        http_only (bool): Add the HttpOnly flag.
        salt (str): itsdangerous salt namespacing these signatures.
    """

    def __init__(
        self,
        secret_key: str,
        cookie_name: str = "_session",
        max_age: int | None = None,
        path: str = "/",
        same_site: Literal["lax", "strict", "none"] = "lax",
        secure: bool = False,
        http_only: bool = True,
        salt: str = "totp-auth-session",
    ):
        if not secret_key:
            raise ValueError("Session secret key cannot be None or empty")

        self.cookie_name = cookie_name
        self.max_age = max_age
        self.path = path
        self.same_site = same_site
        self.secure = secure
        self.http_only = http_only
        self._serializer = URLSafeTimedSerializer(secret_key=secret_key, salt=salt)

    @property
    def security_flags(self) -> str:
        flags = [f"samesite={self.same_site}"]
        if self.http_only:
            flags.insert(0, "httponly")
        if self.secure:
            flags.append("secure")
        return "; ".join(flags)

    async def get_session(self, cookie_header: str | None) -> Session:
        """
        Load the session from a raw `Cookie` header.

        A missing, tampered or expired cookie yields an empty session.
        """
        if not cookie_header:
            return Session()

        value = cookie_parser(cookie_header).get(self.cookie_name)
        if not value:
            return Session()

        try:
            data = self._serializer.loads(value, max_age=self.max_age)
        except SignatureExpired:
            session_logger.info("Session cookie expired, starting a new session")
            return Session()
        except BadSignature:
            session_logger.warning("Session cookie signature invalid, starting a new session")
            return Session()

        if not isinstance(data, dict):
            session_logger.warning("Session cookie payload is not a mapping, ignoring it")
            return Session()

        return Session(data)

    async def commit_session(self, session: Session, max_age: int | None = None) -> str:
        """
        Serialize the session into a `Set-Cookie` header value.

        Args:
            session (Session): The session to persist.
            max_age (int | None): Cookie lifetime overriding the storage default.

        Returns:
            str: The `Set-Cookie` header value.
        """
        max_age = max_age if max_age is not None else self.max_age
        data = self._serializer.dumps(session.data)
        session_logger.debug(f"Committing session with keys {sorted(session.data)}")
        return "{name}={data}; path={path}; {max_age}{flags}".format(
            name=self.cookie_name,
            data=data,
            path=self.path,
            max_age=f"Max-Age={max_age}; " if max_age is not None else "",
            flags=self.security_flags,
        )

    async def destroy_session(self, session: Session) -> str:
        """Return a `Set-Cookie` header value that clears the session cookie."""
        session.data.clear()
        return "{name}=null; path={path}; expires=Thu, 01 Jan 1970 00:00:00 GMT; {flags}".format(
            name=self.cookie_name,
            path=self.path,
            flags=self.security_flags,
        )


__all__ = ["Session", "SessionStorage", "CookieSessionStorage"]
