"""
Tuple extension: enumerating every valid simultaneous assignment of a declaration.

Type parameters are processed in declaration order. Each step extends every
surviving partial tuple with the candidates for the next parameter, where the
candidates are selected under the partial assignment built so far:

    {()}  --T-->  {(int,), (Number,)}  --U <: T-->  {(int, int), (Number, int), (Number, Number)}

This is a Cartesian extension pruned at every step rather than a full product
filtered afterwards, so a restrictive early bound keeps later steps small. A
prefix with no candidates simply disappears; once no prefix survives, the
declaration has no valid instantiation.
"""

import logging
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from candidate_selection import select_candidates
from type_model import (
    GenericClassDeclaration, ReferenceType, Substitution, TypeVariable, UnresolvableInstantiation
)

_LOGGER = logging.getLogger(__name__)


class TupleLimitExceeded(UnresolvableInstantiation):
    """Raised when the working set of partial tuples grows past the configured ceiling."""


class TypeTupleSet:
    """The working set of bound-satisfying partial assignments."""

    def __init__(self, max_size: Optional[int] = None):
        if max_size is not None and max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._tuples: List[Tuple[ReferenceType, ...]] = [()]
        self._width = 0

    @property
    def width(self) -> int:
        """Number of variables processed so far."""
        return self._width

    def extend(self, variable: TypeVariable, universe: Iterable[ReferenceType]) -> None:
        """Extend every partial tuple with the candidates for ``variable``."""
        universe = tuple(universe)
        extended: List[Tuple[ReferenceType, ...]] = []
        for prefix in self._tuples:
            for candidate in select_candidates(variable.bound, universe, prefix):
                extended.append(prefix + (candidate,))
                if self.max_size is not None and len(extended) > self.max_size:
                    raise TupleLimitExceeded(
                        f"More than {self.max_size} partial assignments after extending with {variable}"
                    )
        self._width += 1
        self._tuples = extended

    def is_empty(self) -> bool:
        return not self._tuples

    def to_substitutions(self, variables: Sequence[TypeVariable]) -> List[Substitution]:
        """Zip every complete tuple positionally against ``variables``."""
        return [Substitution.for_variables(variables, types) for types in self._tuples]

    def __iter__(self) -> Iterator[Tuple[ReferenceType, ...]]:
        return iter(self._tuples)

    def __len__(self):
        return len(self._tuples)


def build_substitutions(
    declaration: GenericClassDeclaration,
    universe: Iterable[ReferenceType],
    max_tuples: Optional[int] = None,
) -> List[Substitution]:
    """Compute every substitution of ``declaration`` whose bounds hold over ``universe``.

    Raises MalformedBoundGraph when a bound references a parameter that is not
    declared before it, and TupleLimitExceeded when ``max_tuples`` is exceeded.
    """
    declaration.validate()
    universe = tuple(universe)

    tuples = TypeTupleSet(max_tuples)
    for variable in declaration.type_parameters:
        tuples.extend(variable, universe)
        _LOGGER.debug(
            "%s: %d partial assignment(s) after %s (%s)",
            declaration.name, len(tuples), variable, variable.bound,
        )
        if tuples.is_empty():
            return []

    return tuples.to_substitutions(declaration.type_parameters)
