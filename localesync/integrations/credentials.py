from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from localesync.core.config import AppSettings
from localesync.models import ApiKey


logger = logging.getLogger(__name__)


class CredentialSupplier(Protocol):
    """Interface describing where provider secrets come from."""

    async def get_credential(self, service_name: str) -> str | None:
        """Return the active secret for `service_name`, or None when unset."""


class SettingsCredentialSupplier:
    """Serve secrets configured through environment variables."""

    def __init__(self, settings: AppSettings) -> None:
        self._settings = settings

    async def get_credential(self, service_name: str) -> str | None:
        if service_name != self._settings.translation_service_name:
            return None
        secret = self._settings.openrouter_api_key
        if secret is None:
            return None
        return secret.get_secret_value() or None


class DatabaseCredentialSupplier:
    """Read secrets from the `api_keys` table, optionally deferring to another supplier."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        fallback: CredentialSupplier | None = None,
    ) -> None:
        self._session = session
        self._fallback = fallback

    async def get_credential(self, service_name: str) -> str | None:
        stmt = (
            select(ApiKey.api_key)
            .where(ApiKey.service_name == service_name, ApiKey.is_active.is_(True))
            .limit(1)
        )
        try:
            result = await self._session.execute(stmt)
            api_key = result.scalar_one_or_none()
        except SQLAlchemyError:
            logger.exception("Failed to load %s API key", service_name)
            await self._session.rollback()
            api_key = None

        if api_key:
            return api_key
        if self._fallback is not None:
            return await self._fallback.get_credential(service_name)
        logger.warning("%s API key not configured", service_name)
        return None

    async def save_api_key(self, service_name: str, api_key: str) -> ApiKey:
        """Store or replace the active secret for `service_name`."""
        if not api_key.strip():
            raise ValueError("API key must not be empty.")
        stmt = select(ApiKey).where(ApiKey.service_name == service_name)
        result = await self._session.execute(stmt)
        record = result.scalar_one_or_none()
        if record is None:
            record = ApiKey(service_name=service_name, api_key=api_key.strip(), is_active=True)
            self._session.add(record)
        else:
            record.api_key = api_key.strip()
            record.is_active = True
        await self._session.commit()
        logger.info("Stored API key for %s", service_name)
        return record
