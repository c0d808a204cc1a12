"""
SQLAlchemy-backed persistence for issued TOTP codes.

`SQLAlchemyTOTPStore.store_totp` and `SQLAlchemyTOTPStore.handle_totp`
are ready-made `store_totp` / `handle_totp` callbacks for `TOTPStrategy`.

Example usage:
    store = SQLAlchemyTOTPStore()

    options = TOTPStrategyOptions(
        secret=settings.TOTP_SECRET,
        store_totp=store.store_totp,
        handle_totp=store.handle_totp,
        send_totp=send_code_by_email,
    )
"""

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from totp_auth.core.config import database_logger
from totp_auth.core.db.config import AsyncSessionLocal
from totp_auth.core.db.crud import totp_record_db
from totp_auth.core.schemas.totp import TOTPRecord, TOTPRecordUpdate
from totp_auth.core.utils import token_fingerprint


class SQLAlchemyTOTPStore:
    """
    TOTP record store on top of an async SQLAlchemy session factory.

    Each callback runs in its own short-lived session.

    Args:
        session_factory: Factory producing `AsyncSession` objects.
            Defaults to the application's `AsyncSessionLocal`.
    """

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal
    ):
        self.session_factory = session_factory

    @property
    def engine(self) -> AsyncEngine:
        """The engine the session factory is bound to."""
        return self.session_factory.kw["bind"]

    async def store_totp(self, record: TOTPRecord, context: Any = None) -> None:
        """Persist a newly issued record."""
        data = record.model_dump(exclude_none=True)
        if "expires_at" in data:
            data["expires_at"] = self._as_datetime(data["expires_at"])

        async with self.session_factory() as session:
            await totp_record_db.create_record(session=session, data=data)

        database_logger.info(f"Stored TOTP record {token_fingerprint(record.hash)}")

    async def handle_totp(
        self,
        hash: str,
        patch: TOTPRecordUpdate | None = None,
        context: Any = None,
    ) -> TOTPRecord | None:
        """
        Read the record for `hash`, or apply `patch` to it first when given.

        Returns:
            TOTPRecord | None: The current view of the record, or None if
            no record matches.
        """
        async with self.session_factory() as session:
            if patch is None:
                row = await totp_record_db.get_by_hash(session=session, hash=hash)
            else:
                updates = patch.model_dump(exclude_unset=True)
                if "expires_at" in updates:
                    updates["expires_at"] = self._as_datetime(updates["expires_at"])
                row = await totp_record_db.update_by_hash(
                    session=session, hash=hash, updates=updates
                )
                database_logger.info(
                    f"Updated TOTP record {token_fingerprint(hash)} with {sorted(updates)}"
                )

            return TOTPRecord.model_validate(row) if row is not None else None

    @staticmethod
    def _as_datetime(value: datetime | str | None) -> datetime | None:
        if isinstance(value, str):
            return datetime.fromisoformat(value)
        return value


__all__ = ["SQLAlchemyTOTPStore"]
