import json

import httpx
import pytest

from cardgen.core.errors import (
    AuthError,
    ClientError,
    ConfigurationError,
    InvalidResponseError,
    NetworkError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
)
from cardgen.modules.generation.prompts import GENERATION_OVERRIDES
from cardgen.modules.provider.client import ProviderClient

ENDPOINT = "https://llm.example.test/v1/chat/completions"

OK_BODY = {
    "choices": [{"message": {"role": "assistant", "content": '{"flashcards": []}'}}],
    "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
    "model": "openai/gpt-4o-mini",
}


def make_client(handler, **kwargs):
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    client = ProviderClient(
        api_key="sk-test",
        endpoint=ENDPOINT,
        default_model="openai/gpt-4o-mini",
        app_title="cardgen",
        app_url="https://cardgen.example.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=sleep,
        **kwargs,
    )
    return client, delays


class Recorder:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        status, body = item
        return httpx.Response(status, json=body)


async def test_send_chat_builds_request_and_normalizes_response():
    handler = Recorder((200, OK_BODY))
    client, delays = make_client(handler)

    result = await client.send_chat("system text", "user text", GENERATION_OVERRIDES)

    assert result.content == '{"flashcards": []}'
    assert result.usage.total_tokens == 30
    assert result.model == "openai/gpt-4o-mini"
    assert delays == []

    request = handler.requests[0]
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert request.headers["X-Title"] == "cardgen"
    assert request.headers["HTTP-Referer"] == "https://cardgen.example.test"
    body = json.loads(request.content)
    assert body["model"] == "openai/gpt-4o-mini"
    assert body["messages"] == [
        {"role": "system", "content": "system text"},
        {"role": "user", "content": "user text"},
    ]
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 2000
    assert body["response_format"]["type"] == "json_schema"


async def test_defaults_apply_without_overrides():
    handler = Recorder((200, OK_BODY))
    client, _ = make_client(handler)

    await client.send_chat("s", "u")

    body = json.loads(handler.requests[0].content)
    assert body["max_tokens"] == 1000
    assert "response_format" not in body


async def test_server_error_is_retried_three_times_with_backoff():
    handler = Recorder((500, {"error": {"message": "upstream down"}}))
    client, delays = make_client(handler)

    with pytest.raises(ProviderError) as exc:
        await client.send_chat("s", "u")

    assert len(handler.requests) == 3
    assert delays == [1.0, 2.0]
    assert exc.value.status_code == 500
    assert "upstream down" in str(exc.value)


async def test_auth_error_is_not_retried():
    handler = Recorder((401, {"error": {"message": "bad key"}}))
    client, delays = make_client(handler)

    with pytest.raises(AuthError):
        await client.send_chat("s", "u")

    assert len(handler.requests) == 1
    assert delays == []


async def test_forbidden_maps_to_auth_error():
    handler = Recorder((403, {}))
    client, _ = make_client(handler)

    with pytest.raises(AuthError):
        await client.send_chat("s", "u")


async def test_rate_limit_recovers_on_retry():
    handler = Recorder((429, {"message": "slow down"}), (200, OK_BODY))
    client, delays = make_client(handler)

    result = await client.send_chat("s", "u")

    assert result.model == "openai/gpt-4o-mini"
    assert len(handler.requests) == 2
    assert delays == [1.0]


async def test_rate_limit_surfaces_after_retries():
    handler = Recorder((429, {}))
    client, _ = make_client(handler)

    with pytest.raises(RateLimitError):
        await client.send_chat("s", "u")
    assert len(handler.requests) == 3


async def test_other_client_error_is_not_retried_and_uses_reason():
    handler = Recorder((422, None))
    client, _ = make_client(handler)

    with pytest.raises(ClientError) as exc:
        await client.send_chat("s", "u")

    assert len(handler.requests) == 1
    assert "HTTP 422" in str(exc.value)


async def test_network_failure_is_retried():
    handler = Recorder(httpx.ConnectError("connection refused"))
    client, delays = make_client(handler)

    with pytest.raises(NetworkError):
        await client.send_chat("s", "u")

    assert len(handler.requests) == 3
    assert delays == [1.0, 2.0]


async def test_timeout_is_classified_separately():
    handler = Recorder(httpx.ReadTimeout("too slow"), (200, OK_BODY))
    client, delays = make_client(handler)

    result = await client.send_chat("s", "u")

    assert result.content
    assert delays == [1.0]


async def test_timeout_error_after_retries():
    handler = Recorder(httpx.ReadTimeout("too slow"))
    client, _ = make_client(handler, max_attempts=2)

    with pytest.raises(ProviderTimeoutError):
        await client.send_chat("s", "u")
    assert len(handler.requests) == 2


@pytest.mark.parametrize("system_prompt,user_prompt", [("", "u"), ("s", "   ")])
async def test_empty_prompts_fail_before_network(system_prompt, user_prompt):
    handler = Recorder((200, OK_BODY))
    client, _ = make_client(handler)

    with pytest.raises(ConfigurationError):
        await client.send_chat(system_prompt, user_prompt)
    assert handler.requests == []


def test_missing_api_key_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        ProviderClient(api_key=None, endpoint=ENDPOINT, default_model="m")


@pytest.mark.parametrize(
    "body",
    [
        {"choices": []},
        {"choices": [{"message": {}}]},
        {"choices": [{"message": {"content": "   "}}]},
        {"error": {"message": "model overloaded"}},
        {},
    ],
)
async def test_invalid_response_shapes(body):
    handler = Recorder((200, body))
    client, delays = make_client(handler)

    with pytest.raises(InvalidResponseError):
        await client.send_chat("s", "u")
    assert len(handler.requests) == 1
    assert delays == []


def test_parse_response_without_usage_or_model():
    result = ProviderClient.parse_response({"choices": [{"message": {"content": "hi"}}]})

    assert result.usage is None
    assert result.model is None


async def test_injected_http_client_is_not_closed():
    http = httpx.AsyncClient(transport=httpx.MockTransport(Recorder((200, OK_BODY))))
    client = ProviderClient(
        api_key="k", endpoint=ENDPOINT, default_model="m", http_client=http
    )

    await client.aclose()

    assert not http.is_closed
    await http.aclose()
