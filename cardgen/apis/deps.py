from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

from cardgen.core.config import settings
from cardgen.core.db.base import async_session_maker
from cardgen.core.db.store import SQLAlchemyStore
from cardgen.core.errors import (
    CardgenError,
    ConfigurationError,
    InputLengthError,
    NotFoundError,
    ValidationError,
    categorize_error,
)
from cardgen.core.jwt_utils import jwt_manager
from cardgen.core.store import Store
from cardgen.core.task_queue import queue
from cardgen.modules.flashcards.service import FlashcardService
from cardgen.modules.generation.orchestrator import GenerationOrchestrator
from cardgen.modules.provider.client import ProviderClient


async def current_user_id(authorization: Optional[str] = Header(default=None)) -> str:
    """Resolve the caller's user id from an ``Authorization: Bearer`` token."""
    token: Optional[str] = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail={"error": "Unauthorized"}
        )
    try:
        claims = jwt_manager.verify_token(token)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail={"error": "Unauthorized"}
        )
    return str(claims["sub"])


CurrentUserId = Annotated[str, Depends(current_user_id)]


@lru_cache
def get_store() -> Store:
    return SQLAlchemyStore(async_session_maker)


@lru_cache
def _provider() -> ProviderClient:
    return ProviderClient.from_settings(settings.provider)


def get_provider() -> ProviderClient:
    try:
        return _provider()
    except ConfigurationError as e:
        raise http_error(e)


async def close_provider() -> None:
    if _provider.cache_info().currsize:
        await _provider().aclose()
        _provider.cache_clear()


def get_orchestrator(
    store: Store = Depends(get_store),
    provider: ProviderClient = Depends(get_provider),
) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        store,
        provider,
        schedule=queue.enqueue,
        min_chars=settings.generation.min_chars,
        max_chars=settings.generation.max_chars,
        error_max_length=settings.generation.error_max_length,
    )


def get_flashcard_service(store: Store = Depends(get_store)) -> FlashcardService:
    return FlashcardService(store)


def http_error(exc: CardgenError) -> HTTPException:
    """Map a domain error onto the HTTP status the routes report."""
    if isinstance(exc, (InputLengthError, ValidationError)):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ConfigurationError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    detail: dict[str, str] = {"error": str(exc)}
    if code >= 500:
        detail["category"] = categorize_error(exc).value
    return HTTPException(status_code=code, detail=detail)
