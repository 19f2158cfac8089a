from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from cardgen.modules.generation.models import GenerationSnapshot, GenerationStatus


class GenerationCreateRequest(BaseModel):
    input_text: str = Field(..., description="Study material to turn into flashcards")


class GenerationCreateResponse(BaseModel):
    message: str = "Generation started"
    generation_id: int
    status: GenerationStatus = GenerationStatus.PROCESSING


class GenerationSnapshotResponse(GenerationSnapshot):
    message: Optional[str] = Field(
        default=None, description="User-facing explanation when the generation failed"
    )
