"""
Base Repository Pattern

Purpose
-------
Type-safe, generic repository over SQLAlchemy 2.0 async sessions.
Repositories encapsulate query construction; services own transactions
and business rules.

Design Notes
------------
- Every method takes the session explicitly, so a repository call joins
  whatever transaction the service opened
- Pessimistic locking via ``get_for_update``
- No business logic, no validation beyond type safety

Usage
-----
    class MemberRepository(BaseRepository[Member]):
        async def find_by_unit(self, session, unit_id):
            return await self.find_many_where(session, Member.unit_id == unit_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Get a single record by primary key (no lock)."""
        instance = await session.get(self.model_class, id_value)
        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "id": id_value, "found": instance is not None},
        )
        return instance

    async def get_for_update(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Get a single record by primary key with SELECT FOR UPDATE."""
        stmt = (
            select(self.model_class)
            .where(self.model_class.id == id_value)  # type: ignore[attr-defined]
            .with_for_update()
        )
        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()
        self.log.debug(
            f"Repository.get_for_update: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
                "locked": True,
            },
        )
        return instance

    async def get_many(self, session: AsyncSession, id_values: Sequence[Any]) -> List[T]:
        """Records for the given keys; missing keys are simply absent."""
        if not id_values:
            return []
        stmt = select(self.model_class).where(
            self.model_class.id.in_(list(id_values))  # type: ignore[attr-defined]
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def find_one_where(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> Optional[T]:
        stmt = select(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[T]:
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        instances = list(result.scalars().all())
        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "found_count": len(instances)},
        )
        return instances

    async def count_where(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        return int(result.scalar_one())

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        return await self.count_where(session, *conditions) > 0

    async def add(self, session: AsyncSession, instance: T) -> T:
        """Add and flush so database defaults (ids) are populated."""
        session.add(instance)
        await session.flush()
        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "id": getattr(instance, "id", None)},
        )
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)
        await session.flush()
        self.log.debug(
            f"Repository.delete: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "id": getattr(instance, "id", None)},
        )
