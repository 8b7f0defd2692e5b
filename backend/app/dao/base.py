"""
Base Data Access Object (DAO) class.

WHY: The DAO pattern keeps SQL out of the invoicing services. Services
express lifecycle rules; DAOs know how to load, count and persist rows,
and every tenant-owned lookup is scoped by company at this layer.
"""

from typing import Generic, TypeVar, Type, Optional, Any
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base

# Type variable for model class
ModelType = TypeVar("ModelType", bound=Base)


class BaseDAO(Generic[ModelType]):
    """
    Base Data Access Object shared by all models.

    Type Parameters:
        ModelType: The SQLAlchemy model class this DAO manages
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize DAO with model class and database session.

        Args:
            model: The SQLAlchemy model class
            session: Async database session (one per request)
        """
        self.model = model
        self.session = session

    async def create(self, **kwargs: Any) -> ModelType:
        """
        Insert a new record.

        WHY: Flushes so the primary key is available to the caller (items
        and numbering need the invoice id) without committing.

        Returns:
            The created model instance with database-generated fields populated

        Raises:
            IntegrityError: If unique constraints are violated
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def update(self, instance: ModelType, **changes: Any) -> ModelType:
        """
        Apply field changes to a loaded record and flush them.

        Raises:
            IntegrityError: If the new values violate a unique index
        """
        for field, value in changes.items():
            setattr(instance, field, value)
        await self.session.flush()
        return instance

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """
        Retrieve a single record by primary key.

        Returns:
            The model instance if found, None otherwise
        """
        result = await self.session.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def delete(self, id: int) -> bool:
        """
        Delete a record by primary key.

        Returns:
            True if a record was deleted, False if not found
        """
        result = await self.session.execute(delete(self.model).where(self.model.id == id))
        return result.rowcount > 0

    def _require_company_scope(self) -> None:
        if not hasattr(self.model, "company_id"):
            raise AttributeError(
                f"{self.model.__name__} is not a multi-tenant model (no company_id field)"
            )

    async def get_by_id_and_company(self, id: int, company_id: int) -> Optional[ModelType]:
        """
        Retrieve a record by ID, ensuring it belongs to the given company.

        WHY: Prevents cross-tenant data access. Use this rather than
        get_by_id whenever the caller acts on behalf of a company.

        Args:
            id: Primary key value
            company_id: Company that must own the record

        Returns:
            The model instance if found and owned by the company, None otherwise

        Raises:
            AttributeError: If the model doesn't have a company_id field
        """
        self._require_company_scope()
        result = await self.session.execute(
            select(self.model).where(
                self.model.id == id,
                self.model.company_id == company_id,
            )
        )
        return result.scalar_one_or_none()
