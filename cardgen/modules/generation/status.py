"""Read side of a generation: record, log and proposals in one snapshot."""

from __future__ import annotations

from cardgen.core.errors import NotFoundError, PersistenceError, StoreError
from cardgen.core.store import GENERATION_LOGS, GENERATIONS, Store
from cardgen.modules.flashcards.service import FlashcardService
from cardgen.modules.generation.models import (
    GenerationLog,
    GenerationRecord,
    GenerationSnapshot,
)


async def load_snapshot(store: Store, user_id: str, generation_id: int) -> GenerationSnapshot:
    """Three independent reads; the result may show a half-finished write."""
    try:
        record_row = await store.select_one(GENERATIONS, id=generation_id, user_id=user_id)
        if record_row is None:
            raise NotFoundError("Generation not found")
        log_row = await store.select_one(GENERATION_LOGS, generation_id=generation_id)
    except StoreError as e:
        raise PersistenceError(f"Failed to fetch generation: {e}") from e
    proposals = await FlashcardService(store).proposals(user_id, generation_id)
    return GenerationSnapshot.assemble(
        GenerationRecord.model_validate(record_row),
        GenerationLog.model_validate(log_row) if log_row else None,
        proposals,
    )
