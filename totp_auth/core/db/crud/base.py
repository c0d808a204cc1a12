from typing import (
    Any,
    TypeVar,
    Generic,
    Type,
    Callable,
)

from sqlalchemy import and_, update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.sql import Update

from totp_auth.core.exceptions.types import DatabaseException

T = TypeVar("T")


class BaseDB(Generic[T]):
    def __init__(self, model: Type[T]):
        self.model = model

    async def get_one_by_filters(
        self, session: AsyncSession, filters: dict, options: list[Any] | None = None
    ) -> T | None:
        """
        Asynchronously retrieves a single record of the model that matches the given filters.

        Args:
            session (AsyncSession): The asynchronous database session to use for the query.
            filters (dict): A dictionary of filter conditions to apply to the query.
            options (list[Any] | None, optional): SQLAlchemy loader options (e.g., selectinload). Defaults to None.

        Returns:
            T | None: An instance of the model if found, otherwise None.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model).options(*(options or [])).filter_by(**filters)
            result = await session.execute(stmt)
            return result.scalars().first()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving one {self.model.__name__} with filters {filters}: {str(e)}"
            ) from e

    async def create(
        self,
        session: AsyncSession,
        data: dict,
        validate: Callable[[dict], dict] | None = None,
        commit_self: bool = True,
    ) -> T:
        """
        Asynchronously creates and persists a new instance of the model using the provided data.
        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session to use for database operations.
            data (dict): A dictionary of fields and values to initialize the model instance.
            validate (Callable[[dict], dict] | None, optional): An optional callable to validate or transform the input data before model instantiation. Defaults to None.
            commit_self (bool, optional): If True, commits the transaction and refreshes the object from the database. If False, only flushes the session. Defaults to True.
        Returns:
            T: The newly created and persisted model instance.
        Raises:
            DatabaseException: If an error occurs while creating the model instance or committing the transaction.
        """
        try:
            if validate:
                data = validate(data)

            obj = self.model(**data)
            session.add(obj)

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            await session.refresh(obj)
            return obj
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error creating {self.model.__name__}: {str(e)}"
            ) from e

    async def update_by_filters(
        self,
        session: AsyncSession,
        filters: dict,
        updates: dict,
        commit_self: bool = True,
    ) -> int:
        """
        Asynchronously updates records in the database that match the given filters with the provided updates.
        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session to use for the update operation.
            filters (dict): A dictionary of filter conditions to locate the records to update.
            updates (dict): A dictionary containing the fields and their new values to update in the records.
            commit_self (bool, optional): If True, commits the transaction after the update; otherwise, flushes the session. Defaults to True.
        Returns:
            int: The number of records updated.
        Raises:
            DatabaseException: If an error occurs while updating the records or committing the transaction.
        """
        try:
            stmt: Update = (
                sa_update(self.model)
                .where(and_(*[getattr(self.model, k) == v for k, v in filters.items()]))
                .values(**updates)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            return result.rowcount  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error updating {self.model.__name__} with filters {filters}: {str(e)}"
            ) from e
