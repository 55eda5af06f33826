"""
Instantiation of generic class declarations over an observed type universe.

The resolver computes every substitution satisfying a declaration's bounds
(see tuple_extension), picks one of them and applies it, producing a fully
concrete class type such as ``Box[int]`` for ``Box[T: Number]``.

Resolution is stateless across declarations. The only shared state is the
random source, which is injected so runs can be reproduced from a seed.
"""

import logging
from typing import Iterable, List, Optional

from randomness import RNG, Randomness
from resolver_settings import ResolverSettings, SelectionStrategy
from tuple_extension import build_substitutions
from type_model import (
    GenericClassDeclaration, InstantiationError, ReferenceType, Substitution, UnresolvableInstantiation
)

_LOGGER = logging.getLogger(__name__)


class InstantiationResolver:
    """Resolves generic declarations to concrete class types."""

    def __init__(
        self,
        rng: Optional[Randomness] = None,
        max_tuples: Optional[int] = None,
        strategy: SelectionStrategy = SelectionStrategy.RANDOM,
    ):
        self.rng = rng if rng is not None else RNG
        self.max_tuples = max_tuples
        self.strategy = strategy

    @classmethod
    def from_settings(cls, settings: ResolverSettings, rng: Optional[Randomness] = None) -> "InstantiationResolver":
        """Create a resolver configured from settings.

        Without an explicit generator, a seeded setting gets its own generator
        so the run is reproducible; otherwise the process-wide one is used.
        """
        if rng is None and settings.seed is not None:
            rng = Randomness(settings.seed)
        return cls(rng=rng, max_tuples=settings.max_tuples, strategy=settings.strategy)

    def get_substitutions(
        self, declaration: GenericClassDeclaration, universe: Iterable[ReferenceType]
    ) -> List[Substitution]:
        """Every substitution of ``declaration`` satisfying all of its bounds."""
        return build_substitutions(declaration, universe, self.max_tuples)

    def select(self, substitutions: List[Substitution]) -> Substitution:
        """Pick one substitution from a non-empty valid set."""
        if self.strategy is SelectionStrategy.FIRST:
            return min(substitutions, key=lambda s: tuple(str(t) for t in s.types))
        return self.rng.choice(substitutions)

    def resolve(self, declaration: GenericClassDeclaration, universe: Iterable[ReferenceType]) -> ReferenceType:
        """
        Instantiate ``declaration`` with types from ``universe``.

        Raises UnresolvableInstantiation if no substitution satisfies every bound
        (or the tuple ceiling is hit), and MalformedBoundGraph if a bound refers
        to a parameter not declared before it.
        """
        substitutions = self.get_substitutions(declaration, universe)
        if not substitutions:
            raise UnresolvableInstantiation(f"No types in the universe satisfy the bounds of {declaration}")

        substitution = self.select(substitutions)
        class_type = declaration.apply(substitution)

        # Cannot happen while the universe only holds concrete types
        if class_type.is_generic:
            raise UnresolvableInstantiation(
                f"Instantiating {declaration} with {substitution} left type variables in {class_type}"
            )

        _LOGGER.debug(
            "Instantiated %s as %s (chosen from %d substitution(s))",
            declaration, class_type, len(substitutions),
        )
        return class_type

    def try_resolve(
        self, declaration: GenericClassDeclaration, universe: Iterable[ReferenceType]
    ) -> Optional[ReferenceType]:
        """Like ``resolve``, but report failure as None instead of raising."""
        try:
            return self.resolve(declaration, universe)
        except InstantiationError as e:
            _LOGGER.warning("Skipping %s: %s", declaration, e)
            return None
