from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from cardgen.apis.deps import CurrentUserId, get_flashcard_service, http_error
from cardgen.core.config import settings
from cardgen.core.errors import CardgenError
from cardgen.modules.flashcards.models import (
    Flashcard,
    FlashcardQuery,
    FlashcardSortField,
    FlashcardType,
    SortOrder,
)
from cardgen.modules.flashcards.service import FlashcardService
from .schemas import (
    FlashcardCreateRequest,
    FlashcardListResponse,
    FlashcardUpdateRequest,
    MessageResponse,
    Pagination,
)


router = APIRouter()

BASE = f"/{settings.app.version}/flashcards"


@router.post(
    BASE,
    response_model=Flashcard,
    status_code=status.HTTP_201_CREATED,
    tags=["flashcards"],
)
async def create_flashcard(
    req: FlashcardCreateRequest,
    user_id: CurrentUserId,
    service: FlashcardService = Depends(get_flashcard_service),
) -> Flashcard:
    try:
        return await service.create_manual(user_id, req.front, req.back)
    except CardgenError as e:
        raise http_error(e)


@router.get(BASE, response_model=FlashcardListResponse, tags=["flashcards"])
async def list_flashcards(
    user_id: CurrentUserId,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: FlashcardSortField = Query(default=FlashcardSortField.CREATED_AT),
    order: SortOrder = Query(default=SortOrder.DESC),
    flashcard_type: Optional[FlashcardType] = Query(default=None),
    service: FlashcardService = Depends(get_flashcard_service),
) -> FlashcardListResponse:
    query = FlashcardQuery(
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order,
        flashcard_type=flashcard_type,
    )
    try:
        result = await service.list(user_id, query)
    except CardgenError as e:
        raise http_error(e)
    return FlashcardListResponse(
        flashcards=result.flashcards,
        pagination=Pagination(
            page=result.page, page_size=result.page_size, total=result.total
        ),
    )


@router.get(f"{BASE}/{{flashcard_id:int}}", response_model=Flashcard, tags=["flashcards"])
async def get_flashcard(
    flashcard_id: int,
    user_id: CurrentUserId,
    service: FlashcardService = Depends(get_flashcard_service),
) -> Flashcard:
    try:
        return await service.get(user_id, flashcard_id)
    except CardgenError as e:
        raise http_error(e)


@router.put(f"{BASE}/{{flashcard_id:int}}", response_model=Flashcard, tags=["flashcards"])
async def update_flashcard(
    flashcard_id: int,
    req: FlashcardUpdateRequest,
    user_id: CurrentUserId,
    service: FlashcardService = Depends(get_flashcard_service),
) -> Flashcard:
    try:
        return await service.commit_edit(user_id, flashcard_id, req.front, req.back)
    except CardgenError as e:
        raise http_error(e)


@router.delete(
    f"{BASE}/{{flashcard_id:int}}", response_model=MessageResponse, tags=["flashcards"]
)
async def delete_flashcard(
    flashcard_id: int,
    user_id: CurrentUserId,
    service: FlashcardService = Depends(get_flashcard_service),
) -> MessageResponse:
    try:
        await service.delete(user_id, flashcard_id)
    except CardgenError as e:
        raise http_error(e)
    return MessageResponse(message="Flashcard deleted")
