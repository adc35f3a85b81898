from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from localesync.core.config import AppSettings
from localesync.integrations.credentials import (
    DatabaseCredentialSupplier,
    SettingsCredentialSupplier,
)
from localesync.integrations.llm import TranslationProviderClient
from localesync.schemas.translation import (
    LocaleStatistics,
    ReconciliationStats,
    TranslationImportResult,
)
from localesync.services.fallback import AllModelsFailed
from localesync.services.key_store import (
    ImportFailure,
    PersistenceError,
    TranslationKeyStore,
)
from localesync.services.languages import LanguageRegistry
from localesync.services.reconciler import compute_missing
from localesync.services.translators import (
    BatchTranslator,
    IndividualPassResult,
    IndividualTranslator,
    PacingPolicy,
    Sleep,
    TranslationProvider,
)


logger = logging.getLogger(__name__)


class TranslationService:
    """Keep locales in sync with the baseline locale and manage the translation store.

    Reconciliation runs the batch pass first, then falls back to paced
    single-key calls for whatever the batch did not resolve. Each instance
    is bound to one key store and is cheap to build per session.
    """

    def __init__(
        self,
        key_store: TranslationKeyStore,
        provider: TranslationProvider,
        languages: LanguageRegistry,
        *,
        models: Sequence[str],
        baseline_locale: str = "en",
        pacing: PacingPolicy | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self._key_store = key_store
        self._languages = languages
        self._baseline_locale = baseline_locale
        self._batch = BatchTranslator(provider, models)
        self._individual = IndividualTranslator(
            provider,
            models,
            key_store,
            pacing=pacing,
            sleep=sleep,
        )

    @property
    def baseline_locale(self) -> str:
        return self._baseline_locale

    async def reconcile_locale(
        self,
        target: str,
        baseline: str | None = None,
    ) -> ReconciliationStats:
        """Fill every baseline key missing from `target` and report the outcome."""
        baseline = baseline or self._baseline_locale
        baseline_entries = await self._key_store.get_entries(baseline)
        total = len(baseline_entries)

        if target == baseline:
            return ReconciliationStats(locale=target, total=total, translated=total)

        target_keys = await self._key_store.list_keys(target)
        missing_keys = compute_missing(baseline_entries, target_keys)
        if not missing_keys:
            return ReconciliationStats(locale=target, total=total, translated=total)

        translated = total - len(missing_keys)
        missing = {
            key: text for key, text in baseline_entries.items() if key in missing_keys
        }
        language = await self._languages.language_name(target)
        logger.info(
            "Reconciling %s (%s): %s of %s baseline keys missing",
            target,
            language,
            len(missing),
            total,
        )

        batch_resolved = await self._persist_batch(
            target,
            await self._batch.translate(missing, target_language=language),
        )
        remainder = {key: text for key, text in missing.items() if key not in batch_resolved}

        individual = IndividualPassResult()
        if remainder:
            individual = await self._individual.translate(
                remainder,
                locale=target,
                target_language=language,
            )

        stats = ReconciliationStats(
            locale=target,
            total=total,
            translated=translated + len(batch_resolved) + len(individual.resolved),
            failed=len(individual.failed),
            batch_resolved=len(batch_resolved),
            individually_resolved=len(individual.resolved),
        )
        logger.info(
            "Reconciled %s: total=%s translated=%s failed=%s (batch=%s individual=%s)",
            target,
            stats.total,
            stats.translated,
            stats.failed,
            stats.batch_resolved,
            stats.individually_resolved,
        )
        return stats

    async def reconcile_all(self, baseline: str | None = None) -> list[ReconciliationStats]:
        """Reconcile every active locale against the baseline, one locale at a time."""
        baseline = baseline or self._baseline_locale
        # A failed upsert rolls the session back and expires loaded rows.
        codes = [language.code for language in await self._languages.list_active()]
        results: list[ReconciliationStats] = []
        for code in codes:
            if code == baseline:
                continue
            results.append(await self.reconcile_locale(code, baseline))
        return results

    async def auto_translate(self, target: str, key: str, source_text: str) -> bool:
        """Translate one key into `target` and store it."""
        if target == self._baseline_locale:
            return False
        language = await self._languages.language_name(target)
        outcome = await self._individual.translate_one(source_text, target_language=language)
        if isinstance(outcome, AllModelsFailed):
            logger.warning("Translation failed for %r to %s", source_text, target)
            return False
        try:
            await self._key_store.upsert(target, key, outcome.value)
        except PersistenceError:
            logger.error("Auto-translation of %s for %s not stored", key, target, exc_info=True)
            return False
        return True

    async def set_translation(self, locale: str, key: str, text: str) -> None:
        await self._key_store.upsert(locale, key, text)

    async def export_locale(self, locale: str) -> dict[str, str]:
        return await self._key_store.get_entries(locale)

    async def export_to_json(self, locale: str) -> str:
        entries = await self.export_locale(locale)
        return json.dumps(entries, indent=4, ensure_ascii=False, sort_keys=True)

    async def import_locale(
        self,
        locale: str,
        entries: Mapping[str, Any],
    ) -> TranslationImportResult:
        """Import a flat key -> text mapping; nothing is kept if any entry fails."""
        try:
            imported = await self._key_store.bulk_import(locale, entries)
        except ImportFailure as exc:
            return TranslationImportResult(locale=locale, success=False, error=str(exc))
        logger.info("Imported %s translations into %s", imported, locale)
        return TranslationImportResult(locale=locale, success=True, imported=imported)

    async def import_from_json(self, locale: str, raw: str) -> TranslationImportResult:
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as exc:
            return TranslationImportResult(locale=locale, success=False, error=f"Invalid JSON: {exc}")
        if not isinstance(entries, dict):
            return TranslationImportResult(
                locale=locale,
                success=False,
                error="Expected a JSON object mapping keys to text.",
            )
        return await self.import_locale(locale, entries)

    async def get_statistics(self) -> list[LocaleStatistics]:
        total = await self._key_store.count(self._baseline_locale)
        statistics: list[LocaleStatistics] = []
        for language in await self._languages.list_active():
            statistics.append(
                LocaleStatistics(
                    code=language.code,
                    name=language.name,
                    native_name=language.native_name,
                    translated_count=await self._key_store.count(language.code),
                    total_count=total,
                )
            )
        return statistics

    async def _persist_batch(self, locale: str, translations: Mapping[str, str]) -> dict[str, str]:
        stored: dict[str, str] = {}
        for key, text in translations.items():
            try:
                await self._key_store.upsert(locale, key, text)
            except PersistenceError:
                logger.error("Could not persist batch translation %s for %s", key, locale, exc_info=True)
                continue
            stored[key] = text
        return stored


def build_translation_service(
    session: AsyncSession,
    settings: AppSettings,
    *,
    provider: TranslationProvider | None = None,
    http_client: httpx.AsyncClient | None = None,
    sleep: Sleep | None = None,
) -> TranslationService:
    """Wire a TranslationService for one database session from settings."""
    if provider is None:
        credentials = DatabaseCredentialSupplier(
            session,
            fallback=SettingsCredentialSupplier(settings),
        )
        provider = TranslationProviderClient(settings, credentials, http_client=http_client)
    return TranslationService(
        TranslationKeyStore(session),
        provider,
        LanguageRegistry(session, fallback_names=settings.language_names),
        models=settings.translation_models,
        baseline_locale=settings.baseline_locale,
        pacing=PacingPolicy(
            success_delay=settings.translation_success_delay,
            failure_delay=settings.translation_failure_delay,
        ),
        sleep=sleep,
    )
