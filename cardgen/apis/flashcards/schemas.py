from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from cardgen.modules.flashcards.models import Flashcard


class FlashcardCreateRequest(BaseModel):
    front: str = Field(..., description="Question or term")
    back: str = Field(..., description="Answer")


class FlashcardUpdateRequest(BaseModel):
    front: Optional[str] = None
    back: Optional[str] = None


class Pagination(BaseModel):
    page: int
    page_size: int
    total: int


class FlashcardListResponse(BaseModel):
    flashcards: list[Flashcard] = Field(default_factory=list)
    pagination: Pagination


class MessageResponse(BaseModel):
    message: str
