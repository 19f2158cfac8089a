"""Row store contract used by the generation pipeline and flashcard service.

The pipeline only needs single-table operations with equality filters, so
the contract is deliberately small. Each call is its own atomic unit; there
are no transactions spanning calls. A filter value that is a list, tuple or
set matches any of its members. ``order_by`` takes one column name or
several, applied left to right.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, Union

GENERATIONS = "flashcard_generations"
GENERATION_LOGS = "generation_logs"
FLASHCARDS = "flashcards"

Row = dict[str, Any]
OrderBy = Union[str, Sequence[str]]


class Store(Protocol):
    async def insert(self, table: str, values: Row) -> Row: ...

    async def insert_many(self, table: str, rows: list[Row]) -> list[Row]: ...

    async def update(self, table: str, values: Row, **filters: Any) -> list[Row]: ...

    async def select(
        self,
        table: str,
        *,
        order_by: Optional[OrderBy] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        **filters: Any,
    ) -> list[Row]: ...

    async def select_one(self, table: str, **filters: Any) -> Optional[Row]: ...

    async def count(self, table: str, **filters: Any) -> int: ...

    async def delete(self, table: str, **filters: Any) -> int: ...
