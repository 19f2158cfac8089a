"""User-facing flashcard operations on top of the row store.

Every lookup filters by both id and owner, so a card that belongs to
someone else is reported exactly like a card that does not exist.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from cardgen.core.errors import NotFoundError, PersistenceError, StoreError, ValidationError
from cardgen.core.logging import get_logger, log_context
from cardgen.core.store import FLASHCARDS, Store
from cardgen.modules.flashcards.models import (
    Flashcard,
    FlashcardPage,
    FlashcardQuery,
    FlashcardType,
    SortOrder,
)
from cardgen.modules.flashcards.state import next_type
from cardgen.modules.generation.parser import validate_card_fields

logger = get_logger(__name__)

PROPOSAL_TYPES = (FlashcardType.AI_GENERATED, FlashcardType.AI_PROPOSAL)


@contextmanager
def _persistence(action: str) -> Iterator[None]:
    try:
        yield
    except StoreError as e:
        raise PersistenceError(f"Failed to {action}: {e}") from e


class FlashcardService:
    def __init__(self, store: Store) -> None:
        self.store = store

    async def create_manual(self, user_id: str, front: str, back: str) -> Flashcard:
        draft = validate_card_fields(front, back)
        with _persistence("create flashcard"):
            row = await self.store.insert(
                FLASHCARDS,
                {
                    "user_id": user_id,
                    "generation_id": None,
                    "front": draft.front,
                    "back": draft.back,
                    "flashcard_type": FlashcardType.MANUAL,
                },
            )
        logger.info(f"Created manual flashcard {row['id']}", extra=log_context(user_id=user_id))
        return Flashcard.model_validate(row)

    async def get(self, user_id: str, flashcard_id: int) -> Flashcard:
        with _persistence("fetch flashcard"):
            row = await self.store.select_one(FLASHCARDS, id=flashcard_id, user_id=user_id)
        if row is None:
            raise NotFoundError("Flashcard not found")
        return Flashcard.model_validate(row)

    async def commit_edit(
        self,
        user_id: str,
        flashcard_id: int,
        front: Optional[str] = None,
        back: Optional[str] = None,
    ) -> Flashcard:
        """Apply the supplied fields and move the card's type along its transition.

        The transition is computed from the type read together with the
        ownership check, before anything is written.
        """
        if front is None and back is None:
            raise ValidationError(
                "At least one of front or back must be provided",
                constraint="edit.fields",
            )
        current = await self.get(user_id, flashcard_id)
        draft = validate_card_fields(
            front if front is not None else current.front,
            back if back is not None else current.back,
        )

        values: dict[str, object] = {"flashcard_type": next_type(current.flashcard_type)}
        if front is not None:
            values["front"] = draft.front
        if back is not None:
            values["back"] = draft.back

        with _persistence("update flashcard"):
            rows = await self.store.update(
                FLASHCARDS, values, id=flashcard_id, user_id=user_id
            )
        if not rows:
            raise NotFoundError("Flashcard not found")
        updated = Flashcard.model_validate(rows[0])
        if updated.flashcard_type != current.flashcard_type:
            logger.info(
                f"Flashcard {flashcard_id} type {current.flashcard_type.value} -> "
                f"{updated.flashcard_type.value}",
                extra=log_context(user_id=user_id),
            )
        return updated

    async def delete(self, user_id: str, flashcard_id: int) -> None:
        with _persistence("delete flashcard"):
            deleted = await self.store.delete(FLASHCARDS, id=flashcard_id, user_id=user_id)
        if not deleted:
            raise NotFoundError("Flashcard not found")

    async def list(self, user_id: str, query: FlashcardQuery) -> FlashcardPage:
        filters: dict[str, object] = {"user_id": user_id}
        if query.flashcard_type is not None:
            filters["flashcard_type"] = query.flashcard_type
        with _persistence("list flashcards"):
            rows = await self.store.select(
                FLASHCARDS,
                order_by=(query.sort_by.value, "id"),
                descending=query.order is SortOrder.DESC,
                limit=query.limit,
                offset=(query.page - 1) * query.limit,
                **filters,
            )
            total = await self.store.count(FLASHCARDS, **filters)
        return FlashcardPage(
            flashcards=[Flashcard.model_validate(r) for r in rows],
            page=query.page,
            page_size=query.limit,
            total=total,
        )

    async def proposals(self, user_id: str, generation_id: int) -> list[Flashcard]:
        """AI cards produced by one generation, oldest first."""
        with _persistence("fetch proposals"):
            rows = await self.store.select(
                FLASHCARDS,
                order_by=("created_at", "id"),
                generation_id=generation_id,
                user_id=user_id,
                flashcard_type=PROPOSAL_TYPES,
            )
        return [Flashcard.model_validate(r) for r in rows]
