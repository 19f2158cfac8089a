"""Quick DB inspector for flashcard generations.

Summarizes generations by derived status, lists the most recent failures
with their error marker, and flags generations that saved proposals but
were never stamped with a response time (they look "processing" forever
and need manual reconciliation).

Usage:
  python scripts/inspect_generations.py
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

# Ensure project root is on sys.path so `cardgen` package imports resolve
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sqlalchemy import func, select

from cardgen.core.db.base import get_session
from cardgen.core.db.schemas.flashcards import (
    Flashcard,
    FlashcardGeneration,
    GenerationLog,
)


async def main() -> int:
    async for session in get_session():  # get_session is an async generator
        failed = (
            await session.execute(
                select(func.count(GenerationLog.id)).where(
                    GenerationLog.error_info.is_not(None)
                )
            )
        ).scalar() or 0
        completed = (
            await session.execute(
                select(func.count(FlashcardGeneration.id))
                .join(GenerationLog, GenerationLog.generation_id == FlashcardGeneration.id)
                .where(
                    GenerationLog.error_info.is_(None),
                    FlashcardGeneration.response_time.is_not(None),
                )
            )
        ).scalar() or 0
        total = (
            await session.execute(select(func.count(FlashcardGeneration.id)))
        ).scalar() or 0

        print("Generations summary:")
        print(f"- Total: {total}")
        print(f"- Completed: {completed}")
        print(f"- Failed: {failed}")
        print(f"- Processing: {total - completed - failed}")

        print("\nRecent failures:")
        failures = (
            await session.execute(
                select(GenerationLog)
                .where(GenerationLog.error_info.is_not(None))
                .order_by(GenerationLog.response_time.desc())
                .limit(5)
            )
        ).scalars().all()
        if not failures:
            print("  - None.")
        for log in failures:
            print(
                f"  • Generation {log.generation_id} at {log.response_time} | "
                f"input={log.input_length} chars | {log.error_info[:160]!r}"
            )

        print("\nStuck generations (proposals saved, no response time):")
        stuck = (
            await session.execute(
                select(FlashcardGeneration.id, func.count(Flashcard.id))
                .join(Flashcard, Flashcard.generation_id == FlashcardGeneration.id)
                .where(FlashcardGeneration.response_time.is_(None))
                .group_by(FlashcardGeneration.id)
                .order_by(FlashcardGeneration.id)
            )
        ).all()
        if not stuck:
            print("  - None.")
        for generation_id, cards in stuck:
            print(f"  • Generation {generation_id} | proposals={cards}")

        return 0
    return 1


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
