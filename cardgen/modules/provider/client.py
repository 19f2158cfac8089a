"""HTTP client for an OpenAI-compatible chat-completions provider.

Builds the request body, sends it with bearer auth, retries transient
failures with exponential backoff and normalizes the response into a
``ChatResult``. The client knows nothing about flashcards.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from cardgen.core.errors import (
    AuthError,
    ClientError,
    ConfigurationError,
    InvalidResponseError,
    NetworkError,
    ProviderError,
    ProviderRequestError,
    ProviderTimeoutError,
    RateLimitError,
)
from cardgen.core.logging import get_logger
from cardgen.modules.provider.models import (
    ChatMessage,
    ChatOverrides,
    ChatResult,
    ChatUsage,
)

logger = get_logger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 1.0
DEFAULT_MODEL_PARAMS: dict[str, Any] = {"temperature": 0.7, "max_tokens": 1000}

Sleep = Callable[[float], Awaitable[None]]


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderRequestError) and exc.retryable


class ProviderClient:
    """Chat client with bounded retries; one instance per process."""

    def __init__(
        self,
        *,
        api_key: Optional[str],
        endpoint: str,
        default_model: str,
        default_params: Optional[dict[str, Any]] = None,
        response_format: Optional[dict[str, Any]] = None,
        timeout: float = 60.0,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_base: float = BACKOFF_BASE_SECONDS,
        app_title: Optional[str] = None,
        app_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if not api_key:
            raise ConfigurationError("Provider API key is not configured")
        if not endpoint:
            raise ConfigurationError("Provider endpoint is not configured")
        if not default_model:
            raise ConfigurationError("Provider default model is not configured")

        self.api_key = api_key
        self.endpoint = endpoint
        self.default_model = default_model
        self.default_params = {**DEFAULT_MODEL_PARAMS, **(default_params or {})}
        self.response_format = response_format
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_base = backoff_base
        self.app_title = app_title
        self.app_url = app_url
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._sleep = sleep

    @classmethod
    def from_settings(cls, provider_settings: Any, **kwargs: Any) -> "ProviderClient":
        return cls(
            api_key=provider_settings.api_key,
            endpoint=provider_settings.endpoint,
            default_model=provider_settings.default_model,
            timeout=provider_settings.timeout,
            max_attempts=provider_settings.max_attempts,
            backoff_base=provider_settings.backoff_base,
            app_title=provider_settings.app_title,
            app_url=provider_settings.app_url,
            **kwargs,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def build_payload(
        self,
        system_prompt: str,
        user_prompt: str,
        overrides: Optional[ChatOverrides] = None,
    ) -> dict[str, Any]:
        overrides = overrides or ChatOverrides()
        messages = [
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=user_prompt),
        ]
        payload: dict[str, Any] = {
            "model": overrides.model_name or self.default_model,
            "messages": [m.model_dump() for m in messages],
            **self.default_params,
            **overrides.model_params,
        }
        response_format = overrides.response_format or self.response_format
        if response_format:
            payload["response_format"] = response_format
        return payload

    async def send_chat(
        self,
        system_prompt: str,
        user_prompt: str,
        overrides: Optional[ChatOverrides] = None,
    ) -> ChatResult:
        if not isinstance(system_prompt, str) or not system_prompt.strip():
            raise ConfigurationError("System prompt cannot be empty")
        if not isinstance(user_prompt, str) or not user_prompt.strip():
            raise ConfigurationError("User prompt cannot be empty")

        payload = self.build_payload(system_prompt, user_prompt, overrides)
        raw = await self._post_with_retry(payload)
        result = self.parse_response(raw)
        logger.info(
            "Provider response received",
            extra={"model": result.model, "content_length": len(result.content)},
        )
        return result

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.app_url:
            headers["HTTP-Referer"] = self.app_url
        if self.app_title:
            headers["X-Title"] = self.app_title
        return headers

    def _retrying(self) -> AsyncRetrying:
        # Waits base, 2*base, 4*base ... between attempts
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_base, exp_base=2),
            retry=retry_if_exception(_is_retryable),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"Provider request failed (attempt {retry_state.attempt_number}/{self.max_attempts}), "
            f"retrying in {delay:.1f}s: {exc}"
        )

    async def _post_with_retry(self, payload: dict[str, Any]) -> Any:
        return await self._retrying()(self._post, payload)

    async def _post(self, payload: dict[str, Any]) -> Any:
        try:
            response = await self._http.post(
                self.endpoint, json=payload, headers=self._headers()
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Provider request timed out: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Provider network error: {e}") from e

        if response.is_success:
            try:
                return response.json()
            except ValueError as e:
                raise InvalidResponseError("Provider returned a non-JSON body") from e

        raise self._classify(response)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            err = body.get("error")
            if isinstance(err, dict) and err.get("message"):
                return str(err["message"])
            if body.get("message"):
                return str(body["message"])
        return f"HTTP {response.status_code}: {response.reason_phrase}"

    def _classify(self, response: httpx.Response) -> ProviderRequestError:
        status = response.status_code
        message = self._error_message(response)
        if status in (401, 403):
            return AuthError(f"Provider rejected credentials: {message}", status_code=status)
        if status == 429:
            return RateLimitError(f"Rate limit exceeded: {message}", status_code=status)
        if status >= 500:
            return ProviderError(f"Provider server error: {message}", status_code=status)
        return ClientError(f"Provider API error: {message}", status_code=status)

    @staticmethod
    def parse_response(raw: Any) -> ChatResult:
        if not raw or not isinstance(raw, dict):
            raise InvalidResponseError("Provider returned an empty response")
        if raw.get("error"):
            err = raw["error"]
            detail = err.get("message") if isinstance(err, dict) else err
            raise InvalidResponseError(f"Provider returned an error: {detail}")

        choices = raw.get("choices")
        if not isinstance(choices, list) or not choices:
            raise InvalidResponseError("Provider response missing valid choices array")
        for choice in choices:
            message = choice.get("message") if isinstance(choice, dict) else None
            if not isinstance(message, dict) or not isinstance(message.get("content"), str):
                raise InvalidResponseError("Provider response choice missing message content")

        content = choices[0]["message"]["content"]
        if not content.strip():
            raise InvalidResponseError("Provider returned empty content")

        usage = raw.get("usage")
        model = raw.get("model")
        return ChatResult(
            content=content,
            usage=ChatUsage.model_validate(usage) if isinstance(usage, dict) else None,
            model=model if isinstance(model, str) else None,
        )
