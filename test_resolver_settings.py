"""
Tests for resolver settings and their environment overrides.
"""

import pytest
from pydantic import ValidationError

from resolver_settings import ResolverSettings, SelectionStrategy


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("SEED", "MAX_TUPLES", "STRATEGY", "FAIL_ON_MISSING_CLASS"):
        monkeypatch.delenv(f"GENERIC_INSTANTIATION_{name}", raising=False)


def test_defaults():
    settings = ResolverSettings()
    assert settings.seed is None
    assert settings.max_tuples == 10_000
    assert settings.strategy is SelectionStrategy.RANDOM
    assert settings.fail_on_missing_class


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("GENERIC_INSTANTIATION_SEED", "42")
    monkeypatch.setenv("GENERIC_INSTANTIATION_MAX_TUPLES", "500")
    monkeypatch.setenv("GENERIC_INSTANTIATION_STRATEGY", "first")
    monkeypatch.setenv("GENERIC_INSTANTIATION_FAIL_ON_MISSING_CLASS", "false")

    settings = ResolverSettings()
    assert settings.seed == 42
    assert settings.max_tuples == 500
    assert settings.strategy is SelectionStrategy.FIRST
    assert not settings.fail_on_missing_class


def test_explicit_values_win_over_environment(monkeypatch):
    monkeypatch.setenv("GENERIC_INSTANTIATION_SEED", "42")
    assert ResolverSettings(seed=1).seed == 1


def test_unbounded_tuple_ceiling():
    assert ResolverSettings(max_tuples=None).max_tuples is None


@pytest.mark.parametrize("max_tuples", [0, -5])
def test_tuple_ceiling_must_be_positive(max_tuples):
    with pytest.raises(ValidationError):
        ResolverSettings(max_tuples=max_tuples)


def test_unknown_strategy():
    with pytest.raises(ValidationError):
        ResolverSettings(strategy="best")
