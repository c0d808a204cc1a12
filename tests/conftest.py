"""
Pytest configuration and core fixtures.

Provides request builders, an in-memory TOTP store that records every
callback invocation, a capturing sender, cookie session storage and a
strategy factory. All fixtures are function-scoped for complete test
isolation.
"""

import os
from typing import Any
from urllib.parse import urlencode

import pytest
from starlette.requests import Request


def pytest_configure(config):
    """Configure pytest with custom settings."""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
    os.environ.pop("SENTRY_DSN", None)


class InMemoryTOTPStore:
    """TOTP store keeping records in a dict and logging each callback call."""

    def __init__(self, expires_at: Any = None):
        self.records: dict[str, dict] = {}
        self.calls: list[tuple[str, str | None, dict | None]] = []
        self.expires_at = expires_at

    async def store_totp(self, record, context=None) -> None:
        self.calls.append(("store", record.hash, None))
        data = record.model_dump()
        if self.expires_at is not None:
            data["expires_at"] = self.expires_at
        self.records[record.hash] = data

    async def handle_totp(self, hash, patch=None, context=None):
        from totp_auth.core.schemas.totp import TOTPRecord

        updates = patch.model_dump(exclude_unset=True) if patch is not None else None
        self.calls.append(("handle", hash, updates))

        record = self.records.get(hash)
        if record is None:
            return None
        if updates:
            record.update(updates)
        return TOTPRecord(**record)

    def patches_for(self, hash: str) -> list[dict]:
        return [
            updates
            for kind, h, updates in self.calls
            if kind == "handle" and h == hash and updates is not None
        ]


class CapturingSender:
    """Delivery callback keeping every payload it was asked to send."""

    def __init__(self):
        self.messages = []
        self.error: Exception | None = None

    async def __call__(self, options) -> None:
        if self.error is not None:
            raise self.error
        self.messages.append(options)

    @property
    def last(self):
        return self.messages[-1]


def _build_request(
    method: str = "POST",
    path: str = "/login",
    form: dict[str, str] | None = None,
    cookie: str | None = None,
    query_string: str = "",
    host: str | None = "localhost:8000",
    headers: dict[str, str] | None = None,
) -> Request:
    body = urlencode(form or {}).encode("utf-8")

    raw_headers: list[tuple[bytes, bytes]] = []
    if host:
        raw_headers.append((b"host", host.encode("latin-1")))
    if method == "POST":
        raw_headers.append((b"content-type", b"application/x-www-form-urlencoded"))
        raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))
    if cookie:
        raw_headers.append((b"cookie", cookie.encode("latin-1")))
    for name, value in (headers or {}).items():
        raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))

    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("utf-8"),
        "root_path": "",
        "query_string": query_string.encode("utf-8"),
        "headers": raw_headers,
        "server": ("localhost", 8000),
        "client": ("127.0.0.1", 50000),
    }

    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


def _cookie_pair(set_cookie: str) -> str:
    """Turn a Set-Cookie header value into a Cookie header value."""
    return set_cookie.split(";", 1)[0]


@pytest.fixture
def request_factory():
    """Factory building Starlette requests with an optional form body and cookie."""
    return _build_request


@pytest.fixture
def cookie_pair():
    return _cookie_pair


@pytest.fixture
def store():
    return InMemoryTOTPStore()


@pytest.fixture
def store_factory():
    return InMemoryTOTPStore


@pytest.fixture
def sender():
    return CapturingSender()


@pytest.fixture
def session_storage():
    from totp_auth.core.services.session import CookieSessionStorage

    return CookieSessionStorage(secret_key="test-session-secret")


@pytest.fixture
def verified_users():
    """Verification callback returning a user dict and recording its params."""

    class Verifier:
        def __init__(self):
            self.calls = []

        async def __call__(self, params):
            self.calls.append(params)
            return {"email": params.email}

    return Verifier()


@pytest.fixture
def strategy_factory(store, sender, verified_users):
    """Build a TOTPStrategy wired to the in-memory store and capturing sender."""
    from totp_auth.core.schemas.totp import TOTPStrategyOptions
    from totp_auth.core.services.strategy import TOTPStrategy

    def factory(verify=None, **overrides):
        data = {
            "secret": "test-totp-secret",
            "store_totp": store.store_totp,
            "handle_totp": store.handle_totp,
            "send_totp": sender,
        }
        data.update(overrides)
        return TOTPStrategy(TOTPStrategyOptions(**data), verify=verify or verified_users)

    return factory


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with the schema created."""
    from sqlalchemy.ext.asyncio import create_async_engine
    from sqlalchemy.pool import StaticPool

    from totp_auth.core.db.config import init_db

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def db_session_factory(db_engine):
    from sqlalchemy.ext.asyncio import async_sessionmaker

    return async_sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def sql_store(db_session_factory):
    """TOTP store backed by the in-memory database."""
    from totp_auth.core.db.store import SQLAlchemyTOTPStore

    return SQLAlchemyTOTPStore(session_factory=db_session_factory)
