"""SQLAlchemy models and declarative base."""

from localesync.models.base import Base  # noqa: F401
from localesync.models.entities import (  # noqa: F401
    ApiKey,
    Language,
    Translation,
)

__all__ = [
    "Base",
    "Language",
    "Translation",
    "ApiKey",
]
