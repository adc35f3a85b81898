import pytest

from localesync.services.reconciler import compute_missing, split_key


def test_compute_missing_returns_baseline_minus_target() -> None:
    baseline = {"common.speed", "common.up", "common.down"}
    target = {"common.speed", "menu.extra"}

    assert compute_missing(baseline, target) == {"common.up", "common.down"}


def test_compute_missing_is_empty_for_identical_sets() -> None:
    keys = {"common.speed", "common.up"}

    assert compute_missing(keys, keys) == set()


def test_compute_missing_does_not_mutate_inputs() -> None:
    baseline = {"common.speed", "common.up"}
    target = {"common.speed"}

    compute_missing(baseline, target)

    assert baseline == {"common.speed", "common.up"}
    assert target == {"common.speed"}


def test_split_key_uses_first_dot_only() -> None:
    assert split_key("errors.network.timeout") == ("errors", "network.timeout")


def test_split_key_defaults_category_for_plain_keys() -> None:
    assert split_key("welcome") == ("common", "welcome")


@pytest.mark.parametrize("key", [".speed", "common."])
def test_split_key_rejects_empty_parts(key: str) -> None:
    with pytest.raises(ValueError):
        split_key(key)
