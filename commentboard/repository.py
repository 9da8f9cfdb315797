"""
Thin persistence layer over an ``AsyncSession``.

Every statement is built with SQLAlchemy expressions, so values always
travel as bound parameters.  Repositories flush but never commit; the
transaction boundary belongs to ``Database.session``.
"""
from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from commentboard.database import Base

ModelT = TypeVar("ModelT", bound=Base)


class Repository(Generic[ModelT]):
    def __init__(self, session: AsyncSession, model: type[ModelT]) -> None:
        self.session = session
        self.model = model

    async def insert(self, **values: Any) -> ModelT:
        """
        Build, validate and flush a new row, returning the ORM instance with
        its generated id populated.

        Model ``@validates`` hooks run while the instance is constructed, so
        a constraint violation raises before anything reaches the database.
        """
        instance = self.model(**values)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def get(self, pk: int, columns: Sequence[str] | None = None):
        """
        Return the row with primary key *pk*, or None.

        With *columns*, only those attributes are selected and a ``Row``
        is returned instead of an ORM instance.
        """
        if columns is None:
            return await self.session.get(self.model, pk)
        q = select(*self._columns(columns)).where(self.model.id == pk)
        result = await self.session.execute(q)
        return result.one_or_none()

    async def find_all(
        self,
        columns: Sequence[str] | None = None,
        order_by: Sequence[Any] | None = None,
    ) -> list:
        if columns is None:
            q = select(self.model)
        else:
            q = select(*self._columns(columns))
        if order_by:
            q = q.order_by(*order_by)
        result = await self.session.execute(q)
        if columns is None:
            return list(result.scalars().all())
        return list(result.all())

    async def delete(self, pk: int) -> int:
        """Delete by primary key and return the number of rows removed."""
        result = await self.session.execute(delete(self.model).where(self.model.id == pk))
        return result.rowcount

    def _columns(self, names: Sequence[str]) -> list:
        return [getattr(self.model, name) for name in names]
