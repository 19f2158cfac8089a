"""SQLAlchemy implementation of the row store contract."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import delete, func, inspect, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardgen.core.db.base import Base
from cardgen.core.db.schemas.flashcards import (
    Flashcard,
    FlashcardGeneration,
    GenerationLog,
)
from cardgen.core.errors import StoreError
from cardgen.core.store import OrderBy, Row


DEFAULT_TABLES: dict[str, type[Base]] = {
    FlashcardGeneration.__tablename__: FlashcardGeneration,
    GenerationLog.__tablename__: GenerationLog,
    Flashcard.__tablename__: Flashcard,
}


class SQLAlchemyStore:
    """Row store backed by an async session factory; one commit per call."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        tables: Optional[dict[str, type[Base]]] = None,
    ) -> None:
        self.session_maker = session_maker
        self.tables = tables or DEFAULT_TABLES

    def _model(self, table: str) -> type[Base]:
        try:
            return self.tables[table]
        except KeyError:
            raise StoreError(f"Unknown table: {table}") from None

    def _where(self, model: type[Base], filters: dict[str, Any]) -> list[Any]:
        clauses = []
        for key, value in filters.items():
            column = getattr(model, key)
            if value is None:
                clauses.append(column.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(value)))
            else:
                clauses.append(column == value)
        return clauses

    @staticmethod
    def _to_row(obj: Base) -> Row:
        return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}

    async def insert(self, table: str, values: Row) -> Row:
        rows = await self.insert_many(table, [values])
        return rows[0]

    async def insert_many(self, table: str, rows: list[Row]) -> list[Row]:
        model = self._model(table)
        if not rows:
            return []
        try:
            async with self.session_maker() as session:
                result = await session.execute(
                    insert(model).returning(model), [dict(r) for r in rows]
                )
                objs = result.scalars().all()
                out = [self._to_row(o) for o in objs]
                await session.commit()
                return out
        except SQLAlchemyError as e:
            raise StoreError(f"insert into {table} failed: {e}") from e

    async def update(self, table: str, values: Row, **filters: Any) -> list[Row]:
        model = self._model(table)
        try:
            async with self.session_maker() as session:
                result = await session.execute(
                    update(model)
                    .where(*self._where(model, filters))
                    .values(**values)
                    .returning(model)
                )
                out = [self._to_row(o) for o in result.scalars().all()]
                await session.commit()
                return out
        except SQLAlchemyError as e:
            raise StoreError(f"update of {table} failed: {e}") from e

    async def select(
        self,
        table: str,
        *,
        order_by: Optional[OrderBy] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        **filters: Any,
    ) -> list[Row]:
        model = self._model(table)
        stmt = select(model).where(*self._where(model, filters))
        if order_by:
            names = [order_by] if isinstance(order_by, str) else list(order_by)
            columns = [getattr(model, name) for name in names]
            stmt = stmt.order_by(*(c.desc() if descending else c.asc() for c in columns))
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            async with self.session_maker() as session:
                result = await session.execute(stmt)
                return [self._to_row(o) for o in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreError(f"select from {table} failed: {e}") from e

    async def select_one(self, table: str, **filters: Any) -> Optional[Row]:
        rows = await self.select(table, limit=1, **filters)
        return rows[0] if rows else None

    async def count(self, table: str, **filters: Any) -> int:
        model = self._model(table)
        stmt = select(func.count()).select_from(model).where(*self._where(model, filters))
        try:
            async with self.session_maker() as session:
                return (await session.execute(stmt)).scalar() or 0
        except SQLAlchemyError as e:
            raise StoreError(f"count of {table} failed: {e}") from e

    async def delete(self, table: str, **filters: Any) -> int:
        model = self._model(table)
        try:
            async with self.session_maker() as session:
                result = await session.execute(
                    delete(model).where(*self._where(model, filters))
                )
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise StoreError(f"delete from {table} failed: {e}") from e
