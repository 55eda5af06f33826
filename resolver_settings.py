"""
Settings for building operation models and resolving generic instantiations.

Values can be passed directly or supplied through environment variables with
the ``GENERIC_INSTANTIATION_`` prefix, e.g. ``GENERIC_INSTANTIATION_SEED=42``.
"""

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SelectionStrategy(str, Enum):
    """How one substitution is picked from the valid set."""
    RANDOM = "random"  # uniform draw from the seeded generator
    FIRST = "first"    # lexicographically smallest, independent of any seed


class ResolverSettings(BaseSettings):
    """Configuration for the instantiation resolver and the model façade."""

    model_config = SettingsConfigDict(
        env_prefix="GENERIC_INSTANTIATION_",
        extra="ignore",
    )

    seed: Optional[int] = Field(
        default=None,
        description="Seed for the shared random source; unset means clock-derived",
    )
    max_tuples: Optional[int] = Field(
        default=10_000,
        ge=1,
        description="Ceiling on partial assignments per declaration; unset means unbounded",
    )
    strategy: SelectionStrategy = Field(
        default=SelectionStrategy.RANDOM,
        description="How to pick one substitution from the valid set",
    )
    fail_on_missing_class: bool = Field(
        default=True,
        description="Raise for class names that cannot be loaded instead of skipping them",
    )
