from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from localesync.schemas.translation import BatchRequestItem
from localesync.services.fallback import (
    AllModelsFailed,
    ProviderFailure,
    ProviderSuccess,
    try_in_order,
)
from localesync.services.key_store import PersistenceError, TranslationKeyStore


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class TranslationProvider(Protocol):
    async def translate_one(
        self, text: str, target_language: str, model: str
    ) -> ProviderSuccess[str] | ProviderFailure: ...

    async def translate_batch(
        self, items: Sequence[BatchRequestItem], target_language: str, model: str
    ) -> ProviderSuccess[dict[str, str]] | ProviderFailure: ...


@dataclass(slots=True, frozen=True)
class PacingPolicy:
    """Delay applied between consecutive single-key provider calls."""

    success_delay: float = 3.0
    failure_delay: float = 2.0

    def __post_init__(self) -> None:
        if self.success_delay < 0 or self.failure_delay < 0:
            raise ValueError("Pacing delays must not be negative.")

    def delay_after(self, succeeded: bool) -> float:
        return self.success_delay if succeeded else self.failure_delay


@dataclass(slots=True)
class IndividualPassResult:
    resolved: dict[str, str] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)


class BatchTranslator:
    """Resolve as many missing keys as possible with one structured call."""

    def __init__(self, provider: TranslationProvider, models: Sequence[str]) -> None:
        self._provider = provider
        self._models = tuple(models)

    async def translate(
        self,
        missing: Mapping[str, str],
        *,
        target_language: str,
    ) -> dict[str, str]:
        if not missing:
            return {}
        items = [BatchRequestItem(key=key, text=text) for key, text in missing.items()]

        async def attempt(model: str) -> ProviderSuccess[dict[str, str]] | ProviderFailure:
            return await self._provider.translate_batch(items, target_language, model)

        outcome = await try_in_order(self._models, attempt)
        if isinstance(outcome, AllModelsFailed):
            logger.warning(
                "Batch translation to %s failed for every model: %s",
                target_language,
                "; ".join(outcome.reasons) or "no models configured",
            )
            return {}

        resolved = {key: text for key, text in outcome.value.items() if key in missing}
        logger.info(
            "Batch translation successful: %s/%s texts to %s via %s",
            len(resolved),
            len(missing),
            target_language,
            outcome.model,
        )
        return resolved


class IndividualTranslator:
    """Translate keys one at a time, persisting each success before moving on."""

    def __init__(
        self,
        provider: TranslationProvider,
        models: Sequence[str],
        key_store: TranslationKeyStore,
        *,
        pacing: PacingPolicy | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self._provider = provider
        self._models = tuple(models)
        self._key_store = key_store
        self._pacing = pacing or PacingPolicy()
        self._sleep = sleep or asyncio.sleep

    async def translate_one(
        self, source_text: str, *, target_language: str
    ) -> ProviderSuccess[str] | AllModelsFailed:
        async def attempt(model: str) -> ProviderSuccess[str] | ProviderFailure:
            return await self._provider.translate_one(source_text, target_language, model)

        return await try_in_order(self._models, attempt, source=source_text)

    async def translate(
        self,
        pending: Mapping[str, str],
        *,
        locale: str,
        target_language: str,
    ) -> IndividualPassResult:
        result = IndividualPassResult()
        keys = list(pending)
        for index, key in enumerate(keys):
            outcome = await self.translate_one(pending[key], target_language=target_language)
            if isinstance(outcome, AllModelsFailed):
                logger.warning(
                    "Translation failed for %s to %s: %s", key, locale, "; ".join(outcome.reasons)
                )
                result.failed.append(key)
            else:
                await self._persist(locale, key, outcome.value, result)
            if index < len(keys) - 1:
                await self._sleep(self._pacing.delay_after(isinstance(outcome, ProviderSuccess)))
        return result

    async def _persist(
        self,
        locale: str,
        key: str,
        text: str,
        result: IndividualPassResult,
    ) -> None:
        try:
            await self._key_store.upsert(locale, key, text)
        except PersistenceError:
            logger.error("Could not persist translation %s for %s", key, locale, exc_info=True)
            result.failed.append(key)
            return
        result.resolved[key] = text
