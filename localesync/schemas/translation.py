from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class BatchRequestItem(BaseModel):
    """Single `{key, text}` source pair sent to a batch translation call."""

    key: str = Field(..., description="Dotted `category.key` identifier.")
    text: str = Field("", description="Source text in the baseline locale.")


class BatchTranslationItem(BaseModel):
    """Single `{key, text}` object returned by a batch translation call."""

    model_config = ConfigDict(extra="ignore")

    key: StrictStr
    text: StrictStr


class ReconciliationStats(BaseModel):
    locale: str = Field(..., description="Target locale that was reconciled.")
    total: int = Field(0, description="Number of keys in the baseline locale.")
    translated: int = Field(0, description="Baseline keys present in the target afterwards.")
    failed: int = Field(0, description="Missing keys that could not be resolved.")
    batch_resolved: int = Field(0, description="Keys resolved by the batch pass.")
    individually_resolved: int = Field(0, description="Keys resolved one call at a time.")


class LocaleStatistics(BaseModel):
    code: str
    name: str
    native_name: str | None = None
    translated_count: int = 0
    total_count: int = 0


class TranslationImportResult(BaseModel):
    locale: str
    success: bool
    imported: int = 0
    error: str | None = None
