from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from localesync.core.config import AppSettings
from localesync.integrations.llm import (
    TranslationProviderClient,
    decode_batch_items,
    strip_code_fence,
)
from localesync.schemas.translation import BatchRequestItem
from localesync.services.fallback import FailureKind, ProviderFailure, ProviderSuccess


class StaticCredentials:
    def __init__(self, secret: str | None) -> None:
        self._secret = secret
        self.requested: list[str] = []

    async def get_credential(self, service_name: str) -> str | None:
        self.requested.append(service_name)
        return self._secret


def _completion(content: str | None, model: str = "test/model") -> dict[str, object]:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1700000000,
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


def build_client(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    secret: str | None = "sk-test",
) -> tuple[TranslationProviderClient, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    settings = AppSettings(
        OPENROUTER_BASE_URL="https://llm.example.test/api/v1",
        OPENROUTER_REFERER="https://panel.example.test",
        OPENROUTER_TITLE="Locale Sync Tests",
    )
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
    client = TranslationProviderClient(
        settings,
        StaticCredentials(secret),
        http_client=http_client,
    )
    return client, requests


@pytest.mark.asyncio
async def test_translate_one_sends_chat_completion_payload() -> None:
    client, requests = build_client(lambda request: httpx.Response(200, json=_completion(" Скорость \n")))

    outcome = await client.translate_one("Speed", "Russian", "openai/gpt-4o-mini")

    assert isinstance(outcome, ProviderSuccess)
    assert outcome.value == "Скорость"
    assert outcome.model == "openai/gpt-4o-mini"

    assert len(requests) == 1
    request = requests[0]
    assert request.url.path == "/api/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert request.headers["HTTP-Referer"] == "https://panel.example.test"
    assert request.headers["X-Title"] == "Locale Sync Tests"

    body = json.loads(request.content)
    assert body["model"] == "openai/gpt-4o-mini"
    assert body["max_tokens"] == 200
    assert body["temperature"] == pytest.approx(0.1)
    assert [message["role"] for message in body["messages"]] == ["system", "user"]
    assert "{param}" in body["messages"][0]["content"]
    assert body["messages"][1]["content"].endswith("Speed")


@pytest.mark.asyncio
async def test_translate_one_without_credential_is_unavailable() -> None:
    client, requests = build_client(lambda request: httpx.Response(200, json=_completion("x")), secret=None)

    outcome = await client.translate_one("Speed", "Russian", "openai/gpt-4o-mini")

    assert isinstance(outcome, ProviderFailure)
    assert outcome.kind is FailureKind.PROVIDER_UNAVAILABLE
    assert requests == []


@pytest.mark.asyncio
async def test_translate_one_maps_error_status_to_call_failure() -> None:
    client, requests = build_client(
        lambda request: httpx.Response(502, json={"error": {"message": "upstream down"}})
    )

    outcome = await client.translate_one("Speed", "Russian", "anthropic/claude-3.5-sonnet")

    assert isinstance(outcome, ProviderFailure)
    assert outcome.kind is FailureKind.PROVIDER_CALL_FAILED
    assert "502" in outcome.detail
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_translate_one_maps_timeout_to_call_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client, requests = build_client(handler)

    outcome = await client.translate_one("Speed", "Russian", "openai/gpt-4o-mini")

    assert isinstance(outcome, ProviderFailure)
    assert outcome.kind is FailureKind.PROVIDER_CALL_FAILED
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_translate_one_without_content_is_malformed() -> None:
    client, _ = build_client(lambda request: httpx.Response(200, json=_completion(None)))

    outcome = await client.translate_one("Speed", "Russian", "openai/gpt-4o-mini")

    assert isinstance(outcome, ProviderFailure)
    assert outcome.kind is FailureKind.RESPONSE_MALFORMED


@pytest.mark.asyncio
async def test_translate_batch_strips_fence_and_drops_unrequested_keys() -> None:
    content = (
        "```json\n"
        + json.dumps(
            [
                {"key": "common.up", "text": "Вверх"},
                {"key": "common.down", "text": "Вниз"},
                {"key": "common.injected", "text": "Лишний"},
            ],
            ensure_ascii=False,
        )
        + "\n```"
    )
    client, requests = build_client(lambda request: httpx.Response(200, json=_completion(content)))
    items = [
        BatchRequestItem(key="common.up", text="Up"),
        BatchRequestItem(key="common.down", text="Down"),
    ]

    outcome = await client.translate_batch(items, "Russian", "openai/gpt-4o-mini")

    assert isinstance(outcome, ProviderSuccess)
    assert outcome.value == {"common.up": "Вверх", "common.down": "Вниз"}

    body = json.loads(requests[0].content)
    assert body["max_tokens"] == 4000
    assert '"key": "common.up"' in body["messages"][1]["content"]


@pytest.mark.asyncio
async def test_translate_batch_returns_partial_subset() -> None:
    content = json.dumps([{"key": "common.up", "text": "Arriba"}, {"key": "common.down", "text": "Down"}])
    client, _ = build_client(lambda request: httpx.Response(200, json=_completion(content)))
    items = [
        BatchRequestItem(key="common.up", text="Up"),
        BatchRequestItem(key="common.down", text="Down"),
    ]

    outcome = await client.translate_batch(items, "Spanish", "openai/gpt-4o-mini")

    assert isinstance(outcome, ProviderSuccess)
    assert outcome.value == {"common.up": "Arriba"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    [
        "Sorry, I cannot help with that.",
        json.dumps({"common.up": "Вверх"}, ensure_ascii=False),
        json.dumps([{"key": "common.up"}]),
        json.dumps([{"key": "common.up", "text": 5}]),
    ],
)
async def test_translate_batch_rejects_unexpected_shapes(content: str) -> None:
    client, _ = build_client(lambda request: httpx.Response(200, json=_completion(content)))

    outcome = await client.translate_batch(
        [BatchRequestItem(key="common.up", text="Up")],
        "Russian",
        "openai/gpt-4o-mini",
    )

    assert isinstance(outcome, ProviderFailure)
    assert outcome.kind is FailureKind.RESPONSE_MALFORMED


@pytest.mark.asyncio
async def test_translate_batch_with_only_unknown_keys_is_no_improvement() -> None:
    content = json.dumps([{"key": "other.key", "text": "Вверх"}], ensure_ascii=False)
    client, _ = build_client(lambda request: httpx.Response(200, json=_completion(content)))

    outcome = await client.translate_batch(
        [BatchRequestItem(key="common.up", text="Up")],
        "Russian",
        "openai/gpt-4o-mini",
    )

    assert isinstance(outcome, ProviderFailure)
    assert outcome.kind is FailureKind.NO_IMPROVEMENT


def test_strip_code_fence_handles_plain_and_fenced_content() -> None:
    assert strip_code_fence('[{"key": "a", "text": "b"}]') == '[{"key": "a", "text": "b"}]'
    assert strip_code_fence('```json\n[1, 2]\n```') == "[1, 2]"
    assert strip_code_fence("```\n[]\n```") == "[]"


def test_decode_batch_items_ignores_extra_fields() -> None:
    items = decode_batch_items('[{"key": "common.up", "text": "Haut", "note": "ok"}]')

    assert [(item.key, item.text) for item in items] == [("common.up", "Haut")]
