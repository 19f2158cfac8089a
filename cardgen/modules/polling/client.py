"""httpx client for the generation endpoints, used as the polling fetcher."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from cardgen.modules.generation.models import GenerationSnapshot, InitiatedGeneration


class GenerationStatusClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        api_version: str = "v1",
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.prefix = f"/{api_version}/flashcards/ai-generation"
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = {"Authorization": f"Bearer {token}"}

    async def initiate(self, input_text: str) -> InitiatedGeneration:
        response = await self._http.post(
            self.prefix, json={"input_text": input_text}, headers=self._headers
        )
        response.raise_for_status()
        return InitiatedGeneration.model_validate(response.json())

    async def fetch_snapshot(self, generation_id: int) -> GenerationSnapshot:
        response = await self._http.get(
            f"{self.prefix}/{generation_id}", headers=self._headers
        )
        response.raise_for_status()
        return GenerationSnapshot.model_validate(response.json())

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "GenerationStatusClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
