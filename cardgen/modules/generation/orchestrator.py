"""Entry point of the generation pipeline.

``initiate`` writes the generation record and its log, hands the rest of the
work to the scheduler and returns at once. ``run`` is the background part:
provider call, parsing, persistence. Background failures never reach the
caller; they end up in the log's ``error_info`` instead.
"""

from __future__ import annotations

import functools
import hashlib
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Protocol

from cardgen.core.errors import (
    InputLengthError,
    PersistenceError,
    StoreError,
    format_error_info,
)
from cardgen.core.logging import get_logger, log_context
from cardgen.core.store import GENERATION_LOGS, GENERATIONS, Store
from cardgen.modules.generation.models import GenerationSnapshot, InitiatedGeneration
from cardgen.modules.generation.parser import parse_flashcards
from cardgen.modules.generation.processor import GenerationMetadata, ResultProcessor
from cardgen.modules.generation.prompts import (
    GENERATION_OVERRIDES,
    SYSTEM_PROMPT,
    build_user_prompt,
)
from cardgen.modules.generation.status import load_snapshot
from cardgen.modules.provider.models import ChatOverrides, ChatResult

logger = get_logger(__name__)

MIN_CHARS = 1000
MAX_CHARS = 10000
ERROR_INFO_MAX_LENGTH = 1000

Job = Callable[[], Awaitable[None]]
Scheduler = Callable[[Job], None]


class ChatProvider(Protocol):
    async def send_chat(
        self,
        system_prompt: str,
        user_prompt: str,
        overrides: Optional[ChatOverrides] = None,
    ) -> ChatResult: ...


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def hash_input(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class GenerationOrchestrator:
    def __init__(
        self,
        store: Store,
        provider: ChatProvider,
        *,
        schedule: Scheduler,
        min_chars: int = MIN_CHARS,
        max_chars: int = MAX_CHARS,
        error_max_length: int = ERROR_INFO_MAX_LENGTH,
        clock: Callable[[], datetime] = _now_utc,
    ) -> None:
        self.store = store
        self.provider = provider
        self.schedule = schedule
        self.min_chars = min_chars
        self.max_chars = max_chars
        self.error_max_length = error_max_length
        self.clock = clock
        self.processor = ResultProcessor(store)

    async def initiate(self, user_id: str, input_text: str) -> InitiatedGeneration:
        length = len(input_text)
        if not (self.min_chars <= length <= self.max_chars):
            raise InputLengthError(length, self.min_chars, self.max_chars)

        request_time = self.clock()
        try:
            record = await self.store.insert(
                GENERATIONS, {"user_id": user_id, "request_time": request_time}
            )
        except StoreError as e:
            raise PersistenceError(f"Failed to create generation record: {e}") from e
        generation_id = record["id"]
        ctx = log_context(generation_id, user_id)

        try:
            await self.store.insert(
                GENERATION_LOGS,
                {
                    "generation_id": generation_id,
                    "request_time": request_time,
                    "input_length": length,
                    "input_hash": hash_input(input_text),
                },
            )
        except StoreError as e:
            await self._discard_generation(generation_id)
            raise PersistenceError(f"Failed to create generation log: {e}") from e

        self.schedule(functools.partial(self.run, generation_id, user_id, input_text))
        logger.info(f"Generation started ({length} chars)", extra=ctx)
        return InitiatedGeneration(generation_id=generation_id)

    async def _discard_generation(self, generation_id: int) -> None:
        try:
            await self.store.delete(GENERATIONS, id=generation_id)
        except StoreError:
            logger.exception(
                "Failed to remove orphan generation record",
                extra=log_context(generation_id),
            )

    async def run(self, generation_id: int, user_id: str, input_text: str) -> None:
        ctx = log_context(generation_id, user_id)
        try:
            result = await self.provider.send_chat(
                SYSTEM_PROMPT, build_user_prompt(input_text), GENERATION_OVERRIDES
            )
            drafts = parse_flashcards(result.content)
            metadata = GenerationMetadata.from_chat(result, self.clock())
            await self.processor.process(generation_id, user_id, drafts, metadata)
        except PersistenceError as e:
            if e.proposals_written:
                # Proposals exist, so marking the generation failed would contradict them
                logger.error(
                    f"Generation stuck after proposals were saved: {e}", extra=ctx
                )
                return
            logger.exception("Generation failed", extra=ctx)
            await self.record_failure(generation_id, e)
        except Exception as e:  # noqa: BLE001
            logger.exception("Generation failed", extra=ctx)
            await self.record_failure(generation_id, e)
        else:
            logger.info(f"Generation completed with {len(drafts)} proposals", extra=ctx)

    async def record_failure(self, generation_id: int, exc: BaseException) -> None:
        """Write the error marker; a failure here is logged and dropped."""
        error_info = format_error_info(exc, self.error_max_length)
        finished_at = self.clock()
        try:
            updated = await self.store.update(
                GENERATION_LOGS,
                {"error_info": error_info, "response_time": finished_at},
                generation_id=generation_id,
                error_info=None,
            )
        except Exception:  # noqa: BLE001
            logger.exception(
                "Failed to record generation error",
                extra=log_context(generation_id),
            )
            return
        if not updated:
            logger.error(
                "No open generation log to record the error on",
                extra=log_context(generation_id),
            )
            return
        # The generation record also marks the provider call as finished
        try:
            await self.store.update(
                GENERATIONS,
                {"response_time": finished_at},
                id=generation_id,
                response_time=None,
            )
        except Exception:  # noqa: BLE001
            logger.exception(
                "Failed to stamp generation response time",
                extra=log_context(generation_id),
            )

    async def get_snapshot(self, user_id: str, generation_id: int) -> GenerationSnapshot:
        return await load_snapshot(self.store, user_id, generation_id)
