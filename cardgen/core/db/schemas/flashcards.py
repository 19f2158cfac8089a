from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
    Enum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cardgen.core.db.base import Base
from cardgen.modules.flashcards.models import FlashcardType


class FlashcardGeneration(Base):
    __tablename__ = "flashcard_generations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    request_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    # Stays NULL until the provider call has been processed
    response_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    token_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    generated_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    log: Mapped[Optional["GenerationLog"]] = relationship(
        "GenerationLog",
        back_populates="generation",
        cascade="all, delete-orphan",
        uselist=False,
    )
    flashcards: Mapped[list["Flashcard"]] = relationship(
        "Flashcard", back_populates="generation"
    )


class GenerationLog(Base):
    __tablename__ = "generation_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    generation_id: Mapped[int] = mapped_column(
        ForeignKey("flashcard_generations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    request_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    response_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    token_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_info: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    input_length: Mapped[int] = mapped_column(Integer, nullable=False)
    input_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    generation: Mapped["FlashcardGeneration"] = relationship(
        "FlashcardGeneration", back_populates="log"
    )


class Flashcard(Base):
    __tablename__ = "flashcards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    generation_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("flashcard_generations.id"), nullable=True, index=True
    )
    front: Mapped[str] = mapped_column(String(200), nullable=False)
    back: Mapped[str] = mapped_column(String(500), nullable=False)
    flashcard_type: Mapped[FlashcardType] = mapped_column(
        Enum(
            FlashcardType,
            name="flashcard_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )

    generation: Mapped[Optional["FlashcardGeneration"]] = relationship(
        "FlashcardGeneration", back_populates="flashcards"
    )


__all__ = [
    "FlashcardGeneration",
    "GenerationLog",
    "Flashcard",
]
