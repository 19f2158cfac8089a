"""Decoding and validation of the model's flashcards JSON.

A batch is accepted or rejected as a whole: one bad item fails all of them.
"""

from __future__ import annotations

import json
from typing import Any

from cardgen.core.errors import MalformedResponseError, ValidationError
from cardgen.modules.flashcards.models import (
    BACK_MAX_LENGTH,
    FRONT_MAX_LENGTH,
    FlashcardDraft,
)


def validate_card_fields(front: Any, back: Any) -> FlashcardDraft:
    """Trim and check one front/back pair; shared with manual create and edit."""
    if not isinstance(front, str):
        raise ValidationError("front must be a string", constraint="front.type")
    if not isinstance(back, str):
        raise ValidationError("back must be a string", constraint="back.type")
    front, back = front.strip(), back.strip()
    if not front:
        raise ValidationError("front cannot be empty", constraint="front.required")
    if not back:
        raise ValidationError("back cannot be empty", constraint="back.required")
    if len(front) > FRONT_MAX_LENGTH:
        raise ValidationError(
            f"front exceeds {FRONT_MAX_LENGTH} characters ({len(front)})",
            constraint="front.max_length",
        )
    if len(back) > BACK_MAX_LENGTH:
        raise ValidationError(
            f"back exceeds {BACK_MAX_LENGTH} characters ({len(back)})",
            constraint="back.max_length",
        )
    return FlashcardDraft(front=front, back=back)


def validate_flashcards(items: list[Any]) -> list[FlashcardDraft]:
    drafts: list[FlashcardDraft] = []
    for index, item in enumerate(items):
        if isinstance(item, FlashcardDraft):
            item = item.model_dump()
        if not isinstance(item, dict):
            raise MalformedResponseError(f"Flashcard {index} is not an object")
        try:
            drafts.append(validate_card_fields(item.get("front"), item.get("back")))
        except ValidationError as e:
            raise ValidationError(f"Flashcard {index}: {e}", constraint=e.constraint) from e
    return drafts


def parse_flashcards(content: str) -> list[FlashcardDraft]:
    """Decode ``content`` and return validated drafts.

    Raises ``MalformedResponseError`` for empty or non-JSON content, a missing
    ``flashcards`` array or an empty one, and ``ValidationError`` when any
    item breaks a field rule.
    """
    if not isinstance(content, str) or not content.strip():
        raise MalformedResponseError("Model returned empty content")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Model content is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("flashcards"), list):
        raise MalformedResponseError("Model content is missing a flashcards array")
    items = data["flashcards"]
    if not items:
        raise MalformedResponseError("Model returned no flashcards")
    return validate_flashcards(items)
