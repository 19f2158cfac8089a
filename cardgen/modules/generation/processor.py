"""Persists validated proposals and stamps the generation as completed."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from cardgen.core.errors import PersistenceError, StoreError
from cardgen.core.logging import get_logger, log_context
from cardgen.core.store import FLASHCARDS, GENERATION_LOGS, GENERATIONS, Store
from cardgen.modules.flashcards.models import Flashcard, FlashcardType
from cardgen.modules.generation.parser import validate_flashcards
from cardgen.modules.provider.models import ChatResult

logger = get_logger(__name__)

UNKNOWN_MODEL = "unknown"


class GenerationMetadata(BaseModel):
    response_time: datetime
    token_count: int = 0
    model: str = UNKNOWN_MODEL

    @classmethod
    def from_chat(cls, result: ChatResult, response_time: datetime) -> "GenerationMetadata":
        total = result.usage.total_tokens if result.usage else None
        return cls(
            response_time=response_time,
            token_count=total or 0,
            model=result.model or UNKNOWN_MODEL,
        )


class ResultProcessor:
    """Writes proposals first, then the generation record, then the log.

    Once the flashcards insert has succeeded any later failure raises
    ``PersistenceError`` with ``proposals_written=True`` so the caller knows
    not to mark the generation as failed.
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    async def process(
        self,
        generation_id: int,
        user_id: str,
        items: list[Any],
        metadata: GenerationMetadata,
    ) -> list[Flashcard]:
        drafts = validate_flashcards(items)
        ctx = log_context(generation_id, user_id)

        rows = [
            {
                "user_id": user_id,
                "generation_id": generation_id,
                "front": d.front,
                "back": d.back,
                "flashcard_type": FlashcardType.AI_PROPOSAL,
            }
            for d in drafts
        ]
        try:
            inserted = await self.store.insert_many(FLASHCARDS, rows)
        except StoreError as e:
            raise PersistenceError(f"Failed to save flashcard proposals: {e}") from e
        logger.info(f"Saved {len(inserted)} flashcard proposals", extra=ctx)

        await self._update_one(
            GENERATIONS,
            {
                "response_time": metadata.response_time,
                "token_count": metadata.token_count,
                "model": metadata.model,
                "generated_count": len(drafts),
            },
            label="generation record",
            id=generation_id,
        )
        await self._update_one(
            GENERATION_LOGS,
            {
                "response_time": metadata.response_time,
                "token_count": metadata.token_count,
            },
            label="generation log",
            generation_id=generation_id,
        )
        return [Flashcard.model_validate(r) for r in inserted]

    async def _update_one(
        self, table: str, values: dict[str, Any], *, label: str, **filters: Any
    ) -> None:
        error: Optional[Exception] = None
        try:
            updated = await self.store.update(table, values, **filters)
        except StoreError as e:
            updated, error = [], e
        if not updated:
            reason = f": {error}" if error else ": no matching row"
            raise PersistenceError(
                f"Failed to update {label}{reason}", proposals_written=True
            ) from error
