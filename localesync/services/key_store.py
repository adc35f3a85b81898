from __future__ import annotations

import logging
from collections.abc import Mapping

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from localesync.models import Translation
from localesync.services.reconciler import split_key


logger = logging.getLogger(__name__)


class TranslationStoreError(Exception):
    """Base class for translation store failures."""


class PersistenceError(TranslationStoreError):
    """A single upsert could not be written."""


class ImportFailure(TranslationStoreError):
    """A bulk import was rolled back; nothing from the call was committed."""


class TranslationKeyStore:
    """Persisted `(locale, category, key)` -> text entries backed by an AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_keys(self, locale: str) -> set[str]:
        stmt = select(Translation.category, Translation.key_name).where(
            Translation.locale == locale
        )
        result = await self._session.execute(stmt)
        return {f"{category}.{key_name}" for category, key_name in result.all()}

    async def get_entries(self, locale: str) -> dict[str, str]:
        stmt = (
            select(Translation.category, Translation.key_name, Translation.translation)
            .where(Translation.locale == locale)
            .order_by(Translation.category, Translation.key_name)
        )
        result = await self._session.execute(stmt)
        return {f"{category}.{key_name}": text for category, key_name, text in result.all()}

    async def count(self, locale: str) -> int:
        stmt = select(func.count()).select_from(Translation).where(Translation.locale == locale)
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def upsert(self, locale: str, key: str, text: str) -> None:
        """Insert or update one entry and commit it straight away."""
        try:
            await self._stage(locale, key, text)
            await self._session.commit()
        except (SQLAlchemyError, ValueError, TypeError) as exc:
            await self._session.rollback()
            raise PersistenceError(f"Failed to store {locale}:{key}: {exc}") from exc

    async def bulk_import(self, locale: str, entries: Mapping[str, str]) -> int:
        """Upsert every entry in one transaction; roll everything back on any failure."""
        try:
            for key, text in entries.items():
                await self._stage(locale, key, text)
            await self._session.commit()
        except (SQLAlchemyError, ValueError, TypeError, PersistenceError) as exc:
            await self._session.rollback()
            logger.warning("Import into %s rolled back after %s", locale, exc)
            raise ImportFailure(f"Import into {locale} rolled back: {exc}") from exc
        return len(entries)

    async def _stage(self, locale: str, key: str, text: str) -> None:
        if not isinstance(key, str) or not isinstance(text, str):
            raise TypeError(f"Translation entries must map strings to strings, got {key!r}")
        category, key_name = split_key(key)
        stmt = select(Translation).where(
            Translation.locale == locale,
            Translation.category == category,
            Translation.key_name == key_name,
        )
        result = await self._session.execute(stmt)
        existing = result.scalar_one_or_none()
        if existing is None:
            self._session.add(
                Translation(
                    locale=locale,
                    category=category,
                    key_name=key_name,
                    translation=text,
                )
            )
            await self._session.flush()
            return
        if existing.translation != text:
            existing.translation = text
            await self._session.flush()
