"""Pydantic models for chat-completion requests and normalized responses."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatOverrides(BaseModel):
    """Per-call overrides merged over the client defaults."""

    model_name: Optional[str] = None
    model_params: dict[str, Any] = Field(default_factory=dict)
    response_format: Optional[dict[str, Any]] = None


class ChatUsage(BaseModel):
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class ChatResult(BaseModel):
    content: str
    usage: Optional[ChatUsage] = None
    model: Optional[str] = None
