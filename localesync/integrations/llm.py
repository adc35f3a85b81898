from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence

import httpx
from openai import APIStatusError, APITimeoutError, AsyncOpenAI, OpenAIError
from pydantic import TypeAdapter, ValidationError

from localesync.core.config import AppSettings
from localesync.integrations.credentials import CredentialSupplier
from localesync.schemas.translation import BatchTranslationItem, BatchRequestItem
from localesync.services.fallback import FailureKind, ProviderFailure, ProviderSuccess


logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*\s*\n?(?P<body>.*?)\s*```$", re.DOTALL)
_BATCH_ADAPTER = TypeAdapter(list[BatchTranslationItem])


def strip_code_fence(content: str) -> str:
    """Remove a surrounding Markdown code fence such as ```json ... ```."""
    stripped = content.strip()
    match = _CODE_FENCE_RE.match(stripped)
    if match:
        return match.group("body").strip()
    return stripped


def decode_batch_items(content: str) -> list[BatchTranslationItem]:
    """Parse a batch response body into validated `{key, text}` items.

    Raises ValueError when the body is not a JSON list of such objects.
    """
    try:
        return _BATCH_ADAPTER.validate_json(strip_code_fence(content))
    except ValidationError as exc:
        raise ValueError(f"Unexpected batch response shape: {exc.error_count()} errors") from exc


class TranslationProviderClient:
    """OpenAI-compatible chat completion client used for UI string translation."""

    def __init__(
        self,
        settings: AppSettings,
        credentials: CredentialSupplier,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._credentials = credentials
        self._http_client = http_client
        self._clients: dict[str, AsyncOpenAI] = {}

    async def translate_one(
        self,
        text: str,
        target_language: str,
        model: str,
    ) -> ProviderSuccess[str] | ProviderFailure:
        """Translate a single string with one model."""
        messages = [
            {
                "role": "system",
                "content": (
                    f"You are a professional translator. Translate the given English text to "
                    f"{target_language}. Return ONLY the translation, no explanations or "
                    "additional text. Keep the same tone and style. If there are parameters "
                    "in curly braces like {param}, keep them unchanged."
                ),
            },
            {
                "role": "user",
                "content": f"Translate to {target_language}: {text}",
            },
        ]
        content = await self._complete(
            model,
            messages,
            max_tokens=self._settings.translation_single_max_tokens,
            timeout=self._settings.translation_single_timeout,
        )
        if isinstance(content, ProviderFailure):
            return content
        return ProviderSuccess(content, model)

    async def translate_batch(
        self,
        items: Sequence[BatchRequestItem],
        target_language: str,
        model: str,
    ) -> ProviderSuccess[dict[str, str]] | ProviderFailure:
        """Translate many strings in one call; returns only requested, changed keys."""
        sources = {item.key: item.text for item in items}
        payload = json.dumps(
            [{"key": item.key, "text": item.text} for item in items],
            ensure_ascii=False,
        )
        messages = [
            {
                "role": "system",
                "content": (
                    f"You are a professional translator. Translate the given English texts to "
                    f"{target_language}. Return ONLY a JSON array with objects containing "
                    "'key' and 'text' fields. Each 'text' should contain only the translated "
                    "text. Keep the same tone and style. If there are parameters in curly "
                    "braces like {param}, keep them unchanged. Do not add any explanations "
                    "or additional text outside the JSON."
                ),
            },
            {
                "role": "user",
                "content": f"Translate these English texts to {target_language}:\n{payload}",
            },
        ]
        content = await self._complete(
            model,
            messages,
            max_tokens=self._settings.translation_batch_max_tokens,
            timeout=self._settings.translation_batch_timeout,
        )
        if isinstance(content, ProviderFailure):
            return content

        try:
            decoded = decode_batch_items(content)
        except ValueError as exc:
            return ProviderFailure(FailureKind.RESPONSE_MALFORMED, model, str(exc))

        translations: dict[str, str] = {}
        for item in decoded:
            source = sources.get(item.key)
            if source is None:
                logger.debug("Dropping unrequested key %s from %s", item.key, model)
                continue
            text = item.text.strip()
            if not text or text == source:
                continue
            translations[item.key] = text
        if not translations:
            return ProviderFailure(
                FailureKind.NO_IMPROVEMENT, model, "batch response contained no usable translations"
            )
        return ProviderSuccess(translations, model)

    async def _complete(
        self,
        model: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int,
        timeout: float,
    ) -> str | ProviderFailure:
        client = await self._client()
        if client is None:
            return ProviderFailure(
                FailureKind.PROVIDER_UNAVAILABLE,
                model,
                f"no active credential for {self._settings.translation_service_name}",
            )

        try:
            response = await client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=self._settings.translation_temperature,
                timeout=timeout,
            )
        except APITimeoutError:
            return ProviderFailure(FailureKind.PROVIDER_CALL_FAILED, model, f"timed out after {timeout}s")
        except APIStatusError as exc:
            return ProviderFailure(FailureKind.PROVIDER_CALL_FAILED, model, f"HTTP {exc.status_code}")
        except OpenAIError as exc:
            return ProviderFailure(FailureKind.PROVIDER_CALL_FAILED, model, str(exc))

        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None)
        if not isinstance(content, str) or not content.strip():
            return ProviderFailure(FailureKind.RESPONSE_MALFORMED, model, "no content in response")
        return content.strip()

    async def _client(self) -> AsyncOpenAI | None:
        api_key = await self._credentials.get_credential(self._settings.translation_service_name)
        if not api_key:
            return None
        client = self._clients.get(api_key)
        if client is None:
            headers: dict[str, str] = {}
            if self._settings.openrouter_referer:
                headers["HTTP-Referer"] = self._settings.openrouter_referer
            if self._settings.openrouter_title:
                headers["X-Title"] = self._settings.openrouter_title
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=self._settings.openrouter_base_url,
                max_retries=0,
                default_headers=headers or None,
                http_client=self._http_client,
            )
            self._clients[api_key] = client
        return client
