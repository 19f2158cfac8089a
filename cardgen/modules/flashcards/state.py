"""Provenance transitions applied when a flashcard edit is committed."""

from __future__ import annotations

from cardgen.modules.flashcards.models import FlashcardType

# Pre-edit types that become ``ai-edited`` once a human changes the card.
# ``ai-generated`` is kept alongside ``ai-proposal`` so rows written under
# the older label still transition.
EDIT_TRANSITION_TRIGGERS: frozenset[FlashcardType] = frozenset(
    {FlashcardType.AI_PROPOSAL, FlashcardType.AI_GENERATED}
)


def next_type(current: FlashcardType | str) -> FlashcardType:
    current = FlashcardType(current)
    if current in EDIT_TRANSITION_TRIGGERS:
        return FlashcardType.AI_EDITED
    return current
