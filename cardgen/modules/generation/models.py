"""Generation records, the derived status and the polling snapshot."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from cardgen.core.errors import ErrorCategory, parse_error_info
from cardgen.modules.flashcards.models import Flashcard


class GenerationStatus(str, enum.Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not GenerationStatus.PROCESSING


class GenerationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    request_time: datetime
    response_time: Optional[datetime] = None
    token_count: Optional[int] = None
    model: Optional[str] = None
    generated_count: Optional[int] = None


class GenerationLog(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    generation_id: int
    request_time: datetime
    response_time: Optional[datetime] = None
    token_count: Optional[int] = None
    error_info: Optional[str] = None
    input_length: int
    input_hash: str


def derive_status(
    record: Optional[GenerationRecord], log: Optional[GenerationLog]
) -> GenerationStatus:
    """Status is never stored; it follows from the error marker and response time."""
    if log is not None and log.error_info is not None:
        return GenerationStatus.FAILED
    if record is not None and record.response_time is not None:
        return GenerationStatus.COMPLETED
    return GenerationStatus.PROCESSING


class GenerationSnapshot(BaseModel):
    generation_id: int
    status: GenerationStatus
    generation_meta: GenerationRecord
    log: Optional[GenerationLog] = None
    proposals: list[Flashcard] = Field(default_factory=list)
    error_category: Optional[ErrorCategory] = None

    @classmethod
    def assemble(
        cls,
        record: GenerationRecord,
        log: Optional[GenerationLog],
        proposals: list[Flashcard],
    ) -> "GenerationSnapshot":
        return cls(
            generation_id=record.id,
            status=derive_status(record, log),
            generation_meta=record,
            log=log,
            proposals=proposals,
            error_category=parse_error_info(log.error_info if log else None),
        )


class InitiatedGeneration(BaseModel):
    generation_id: int
    status: GenerationStatus = GenerationStatus.PROCESSING
