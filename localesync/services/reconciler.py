from __future__ import annotations

from collections.abc import Iterable


def compute_missing(baseline_keys: Iterable[str], target_keys: Iterable[str]) -> set[str]:
    """Return baseline keys that the target locale does not have yet."""
    return set(baseline_keys) - set(target_keys)


def split_key(key: str, default_category: str = "common") -> tuple[str, str]:
    """Split a dotted `category.name` key on its first dot."""
    category, dot, name = key.partition(".")
    if not dot:
        return default_category, key
    if not category or not name:
        raise ValueError(f"Malformed translation key {key!r}")
    return category, name
