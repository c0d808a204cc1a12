"""
CRUD operations for TOTPRecordModel.

Records are looked up and updated by their signed token (`hash`). Errors
name the record by token fingerprint only.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from totp_auth.core.db.crud.base import BaseDB
from totp_auth.core.db.models.totp import TOTPRecordModel
from totp_auth.core.exceptions.types import DatabaseException
from totp_auth.core.utils import token_fingerprint


class TOTPRecordDB(BaseDB[TOTPRecordModel]):
    """CRUD operations for TOTPRecordModel."""

    def __init__(self):
        """Initialize TOTPRecordDB with the TOTPRecordModel model."""
        super().__init__(model=TOTPRecordModel)

    async def create_record(
        self, session: AsyncSession, data: dict, commit_self: bool = True
    ) -> TOTPRecordModel:
        """
        Persist a new record.

        Raises:
            DatabaseException: If a database error occurs (e.g. duplicate hash).
        """
        try:
            return await self.create(session=session, data=data, commit_self=commit_self)
        except DatabaseException as e:
            raise DatabaseException(
                f"Error creating TOTP record {token_fingerprint(data.get('hash'))}"
            ) from e.__cause__

    async def get_by_hash(
        self, session: AsyncSession, hash: str
    ) -> TOTPRecordModel | None:
        """
        Retrieve a record by its signed token.

        Args:
            session: The async database session.
            hash: The signed OTP token.

        Returns:
            The TOTPRecordModel if found, None otherwise.

        Raises:
            DatabaseException: If a database error occurs.
        """
        try:
            return await self.get_one_by_filters(session=session, filters={"hash": hash})
        except DatabaseException as e:
            raise DatabaseException(
                f"Error retrieving TOTP record {token_fingerprint(hash)}"
            ) from e.__cause__

    async def update_by_hash(
        self,
        session: AsyncSession,
        hash: str,
        updates: dict,
        commit_self: bool = True,
    ) -> TOTPRecordModel | None:
        """
        Apply a partial update to the record for `hash` and return it.

        Args:
            session: The async database session.
            hash: The signed OTP token.
            updates: Fields to change (active, attempts, expires_at).
            commit_self: Whether to commit the session after updating.

        Returns:
            The updated TOTPRecordModel, or None if no record matched.

        Raises:
            DatabaseException: If a database error occurs.
        """
        if updates:
            try:
                updated = await self.update_by_filters(
                    session=session,
                    filters={"hash": hash},
                    updates=updates,
                    commit_self=commit_self,
                )
            except DatabaseException as e:
                raise DatabaseException(
                    f"Error updating TOTP record {token_fingerprint(hash)}"
                ) from e.__cause__
            if not updated:
                return None

        record = await self.get_by_hash(session=session, hash=hash)
        if record is not None:
            await session.refresh(record)
        return record


__all__ = ["TOTPRecordDB"]
