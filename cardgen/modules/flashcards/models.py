"""Pydantic models for flashcards as the pipeline and the API see them."""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

FRONT_MAX_LENGTH = 200
BACK_MAX_LENGTH = 500


class FlashcardType(str, enum.Enum):
    MANUAL = "manual"
    AI_GENERATED = "ai-generated"
    AI_PROPOSAL = "ai-proposal"
    AI_EDITED = "ai-edited"


class FlashcardDraft(BaseModel):
    """A validated question/answer pair that has not been stored yet."""

    front: str
    back: str


class Flashcard(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    front: str
    back: str
    flashcard_type: FlashcardType
    created_at: datetime
    generation_id: int | None = None


class FlashcardSortField(str, enum.Enum):
    CREATED_AT = "created_at"
    FRONT = "front"
    BACK = "back"


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class FlashcardQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    sort_by: FlashcardSortField = FlashcardSortField.CREATED_AT
    order: SortOrder = SortOrder.DESC
    flashcard_type: FlashcardType | None = None


class FlashcardPage(BaseModel):
    flashcards: list[Flashcard] = Field(default_factory=list)
    page: int
    page_size: int
    total: int
