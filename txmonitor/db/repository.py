"""Base repository class with common CRUD operations."""

from typing import Generic, TypeVar, Type, Optional, Any
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from txmonitor.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository providing common CRUD operations for all models.

    Repositories never commit; the surrounding UnitOfWork owns the
    transaction boundary.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def create(self, **kwargs) -> ModelType:
        """
        Create a new record.

        Args:
            **kwargs: Field values for the new record

        Returns:
            Created model instance
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get_by_field(self, field_name: str, value: Any) -> Optional[ModelType]:
        """
        Get the first record whose field equals a value.

        Args:
            field_name: Name of the field to search
            value: Value to search for

        Returns:
            Model instance or None if not found
        """
        field = getattr(self.model, field_name)
        result = await self.session.execute(
            select(self.model).where(field == value).limit(1)
        )
        return result.scalars().first()

    async def update_where(self, field_name: str, value: Any, **kwargs) -> int:
        """
        Overwrite fields on every record whose field equals a value.

        Plain assignment, so applying the same update twice leaves the row
        as applying it once.

        Returns:
            Number of rows matched
        """
        field = getattr(self.model, field_name)
        result = await self.session.execute(
            update(self.model).where(field == value).values(**kwargs)
        )
        await self.session.flush()
        return result.rowcount or 0  # type: ignore

