from __future__ import annotations

from collections.abc import Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from localesync.models import Language


class LanguageRegistry:
    """Lookup of the locales the store keeps in sync."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        fallback_names: Mapping[str, str] | None = None,
    ) -> None:
        self._session = session
        self._fallback_names = dict(fallback_names or {})

    async def list_active(self) -> list[Language]:
        stmt = select(Language).where(Language.is_active.is_(True)).order_by(Language.code)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def is_supported(self, code: str) -> bool:
        language = await self._session.get(Language, code)
        return language is not None and language.is_active

    async def language_name(self, code: str) -> str:
        """English name of `code` for translation prompts."""
        language = await self._session.get(Language, code)
        if language is not None and language.name:
            return language.name
        return self._fallback_names.get(code, code)

    async def ensure_language(
        self,
        code: str,
        name: str,
        native_name: str | None = None,
        *,
        is_active: bool = True,
    ) -> Language:
        language = await self._session.get(Language, code)
        if language is None:
            language = Language(code=code, name=name, native_name=native_name, is_active=is_active)
            self._session.add(language)
        else:
            language.name = name
            language.native_name = native_name
            language.is_active = is_active
        await self._session.commit()
        return language
