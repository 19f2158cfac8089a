import asyncio
import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

# Settings and the engine are built at import time
os.environ.setdefault("JWT_SECRET", "test-secret-with-at-least-thirty-two-bytes!")
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_DB_PORT", "5432")
os.environ.setdefault("POSTGRES_DB_NAME", "cardgen_test")
os.environ.setdefault("POSTGRES_DB_USER", "cardgen")
os.environ.setdefault("POSTGRES_DB_PASSWORD", "cardgen")

from cardgen.core.errors import StoreError  # noqa: E402
from cardgen.core.store import FLASHCARDS, GENERATION_LOGS, GENERATIONS  # noqa: E402
from cardgen.modules.generation.models import (  # noqa: E402
    GenerationLog,
    GenerationRecord,
    GenerationSnapshot,
    GenerationStatus,
)
from cardgen.modules.provider.models import ChatResult, ChatUsage  # noqa: E402

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _matches(row: dict[str, Any], filters: dict[str, Any]) -> bool:
    for key, value in filters.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            if row.get(key) not in value:
                return False
        elif row.get(key) != value:
            return False
    return True


class InMemoryStore:
    """Dict-backed ``Store`` with per-operation failure injection."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            GENERATIONS: [],
            GENERATION_LOGS: [],
            FLASHCARDS: [],
        }
        self._ids = {name: 0 for name in self.tables}
        self._seq = 0
        self.failures: set[tuple[str, str]] = set()
        self.calls: list[tuple[str, str]] = []

    def fail(self, op: str, table: str) -> None:
        self.failures.add((op, table))

    def _check(self, op: str, table: str) -> None:
        self.calls.append((op, table))
        if (op, table) in self.failures:
            raise StoreError(f"{op} on {table} failed")

    def _new_row(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        self._ids[table] += 1
        self._seq += 1
        row = dict(values)
        row.setdefault("id", self._ids[table])
        if table in (FLASHCARDS, GENERATION_LOGS):
            row.setdefault("created_at", T0 + timedelta(microseconds=self._seq))
        return row

    async def insert(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        return (await self.insert_many(table, [values]))[0]

    async def insert_many(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        self._check("insert", table)
        created = [self._new_row(table, r) for r in rows]
        self.tables[table].extend(created)
        return [dict(r) for r in created]

    async def update(self, table: str, values: dict[str, Any], **filters: Any) -> list[dict[str, Any]]:
        self._check("update", table)
        updated = []
        for row in self.tables[table]:
            if _matches(row, filters):
                row.update(values)
                updated.append(dict(row))
        return updated

    async def select(
        self,
        table: str,
        *,
        order_by: Any = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        **filters: Any,
    ) -> list[dict[str, Any]]:
        self._check("select", table)
        rows = [dict(r) for r in self.tables[table] if _matches(r, filters)]
        if order_by:
            names = [order_by] if isinstance(order_by, str) else list(order_by)
            rows.sort(key=lambda r: tuple(r[n] for n in names), reverse=descending)
        start = offset or 0
        end = start + limit if limit is not None else None
        return rows[start:end]

    async def select_one(self, table: str, **filters: Any) -> Optional[dict[str, Any]]:
        rows = await self.select(table, limit=1, **filters)
        return rows[0] if rows else None

    async def count(self, table: str, **filters: Any) -> int:
        self._check("count", table)
        return sum(1 for r in self.tables[table] if _matches(r, filters))

    async def delete(self, table: str, **filters: Any) -> int:
        self._check("delete", table)
        keep = [r for r in self.tables[table] if not _matches(r, filters)]
        removed = len(self.tables[table]) - len(keep)
        self.tables[table] = keep
        return removed


class FakeProvider:
    def __init__(self, result: Optional[ChatResult] = None, error: Optional[Exception] = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str, str, Any]] = []

    async def send_chat(self, system_prompt, user_prompt, overrides=None) -> ChatResult:
        self.calls.append((system_prompt, user_prompt, overrides))
        if self.error is not None:
            raise self.error
        return self.result


def cards(n: int = 3) -> list[dict[str, str]]:
    return [{"front": f"Question {i}?", "back": f"Answer {i}."} for i in range(1, n + 1)]


def chat_result(items: Any = None, *, total_tokens: Optional[int] = 321, model: Optional[str] = "openai/gpt-4o-mini") -> ChatResult:
    content = json.dumps({"flashcards": cards() if items is None else items})
    usage = ChatUsage(total_tokens=total_tokens) if total_tokens is not None else None
    return ChatResult(content=content, usage=usage, model=model)


def make_snapshot(status: GenerationStatus, generation_id: int = 1) -> GenerationSnapshot:
    record = GenerationRecord(
        id=generation_id,
        user_id="user-1",
        request_time=T0,
        response_time=T0 if status is GenerationStatus.COMPLETED else None,
    )
    log = GenerationLog(
        generation_id=generation_id,
        request_time=T0,
        error_info="[generic] boom" if status is GenerationStatus.FAILED else None,
        input_length=1500,
        input_hash="0" * 64,
    )
    return GenerationSnapshot.assemble(record, log, [])


class FakeClock:
    """Monotonic clock that only moves when the code under test sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def scheduled() -> list:
    return []


@pytest.fixture
def text() -> str:
    return ("Photosynthesis converts light energy into chemical energy. " * 30)[:1500]
