from __future__ import annotations

from fastapi import APIRouter, Depends, status

from cardgen.apis.deps import CurrentUserId, get_orchestrator, get_store, http_error
from cardgen.core.config import settings
from cardgen.core.errors import USER_MESSAGES, CardgenError
from cardgen.core.store import Store
from cardgen.modules.generation.models import GenerationStatus
from cardgen.modules.generation.orchestrator import GenerationOrchestrator
from cardgen.modules.generation.status import load_snapshot
from .schemas import (
    GenerationCreateRequest,
    GenerationCreateResponse,
    GenerationSnapshotResponse,
)


router = APIRouter()

BASE = f"/{settings.app.version}/flashcards/ai-generation"


@router.post(
    BASE,
    response_model=GenerationCreateResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["generations"],
)
async def start_generation(
    req: GenerationCreateRequest,
    user_id: CurrentUserId,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerationCreateResponse:
    try:
        started = await orchestrator.initiate(user_id, req.input_text)
    except CardgenError as e:
        raise http_error(e)
    return GenerationCreateResponse(
        message="Generation started, poll the status endpoint for progress",
        generation_id=started.generation_id,
        status=started.status,
    )


@router.get(
    f"{BASE}/{{generation_id:int}}",
    response_model=GenerationSnapshotResponse,
    tags=["generations"],
)
async def get_generation(
    generation_id: int,
    user_id: CurrentUserId,
    store: Store = Depends(get_store),
) -> GenerationSnapshotResponse:
    try:
        snapshot = await load_snapshot(store, user_id, generation_id)
    except CardgenError as e:
        raise http_error(e)
    message = None
    if snapshot.status is GenerationStatus.FAILED and snapshot.error_category:
        message = USER_MESSAGES[snapshot.error_category]
    return GenerationSnapshotResponse(**snapshot.model_dump(), message=message)
