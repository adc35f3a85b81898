"""Outcome types for provider calls and the ordered model fallback chain.

Provider calls never raise for expected failures. They return either a
:class:`ProviderSuccess` or a :class:`ProviderFailure`, and
:func:`try_in_order` walks the configured models until one produces a usable
result.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class FailureKind(str, Enum):
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    PROVIDER_CALL_FAILED = "provider_call_failed"
    RESPONSE_MALFORMED = "response_malformed"
    NO_IMPROVEMENT = "no_improvement"


@dataclass(slots=True, frozen=True)
class ProviderSuccess(Generic[T]):
    value: T
    model: str


@dataclass(slots=True, frozen=True)
class ProviderFailure:
    kind: FailureKind
    model: str
    detail: str = ""

    def __str__(self) -> str:
        suffix = f": {self.detail}" if self.detail else ""
        return f"{self.model} {self.kind.value}{suffix}"


@dataclass(slots=True, frozen=True)
class AllModelsFailed:
    """Every candidate was tried; `failures` keeps one entry per model, in order."""

    failures: tuple[ProviderFailure, ...] = field(default_factory=tuple)

    @property
    def reasons(self) -> list[str]:
        return [str(failure) for failure in self.failures]


def _is_improvement(value: Any, source: Any) -> bool:
    if not value:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return source is None or value != source


async def try_in_order(
    models: Sequence[str],
    attempt: Callable[[str], Awaitable[ProviderSuccess[T] | ProviderFailure]],
    *,
    source: Any = None,
) -> ProviderSuccess[T] | AllModelsFailed:
    """Return the first usable result from `models`, tried strictly in order.

    A result only counts when it is non-empty and differs from `source`;
    anything else is recorded as a failure and the next model is tried.
    """
    failures: list[ProviderFailure] = []
    for model in models:
        outcome = await attempt(model)
        if isinstance(outcome, ProviderFailure):
            logger.warning("Translation model %s failed (%s): %s", model, outcome.kind.value, outcome.detail)
            failures.append(outcome)
            continue
        if not _is_improvement(outcome.value, source):
            failure = ProviderFailure(
                FailureKind.NO_IMPROVEMENT,
                model,
                "empty result or identical to the source text",
            )
            logger.warning("Translation model %s returned no improvement", model)
            failures.append(failure)
            continue
        return outcome
    return AllModelsFailed(tuple(failures))
