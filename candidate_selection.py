"""
Candidate selection over the observed type universe.

The universe is the set of concrete reference types gathered from the classes
under test. For every type parameter, the candidates are the members of the
universe that satisfy the parameter's bound - either on their own, or, for
dependent bounds, against the types already chosen for earlier parameters.
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Sequence

from type_model import ParameterBound, ReferenceType, UnsupportedAnnotation

_LOGGER = logging.getLogger(__name__)


class TypeUniverse:
    """An ordered, duplicate-free, read-only snapshot of concrete reference types.

    Generic types are never part of a universe: they are dropped on construction,
    so every candidate handed to the resolver is already concrete.
    """

    def __init__(self, types: Iterable[ReferenceType] = ()):
        members: Dict[ReferenceType, None] = {}
        for reference_type in types:
            if reference_type.is_generic:
                _LOGGER.debug("Dropping generic type %s from universe", reference_type)
                continue
            if reference_type.is_union:
                _LOGGER.debug("Dropping union type %s from universe", reference_type)
                continue
            members.setdefault(reference_type)
        self._types = tuple(members)
        self._members = frozenset(members)

    @classmethod
    def from_annotations(cls, annotations: Iterable[Any]) -> "TypeUniverse":
        """Build a universe from runtime annotations, skipping anything unsupported."""
        types = []
        for annotation in annotations:
            try:
                types.append(ReferenceType.from_annotation(annotation))
            except UnsupportedAnnotation as e:
                _LOGGER.debug("Skipping annotation %r: %s", annotation, e)
        return cls(types)

    @property
    def types(self) -> tuple:
        return self._types

    def __iter__(self) -> Iterator[ReferenceType]:
        return iter(self._types)

    def __len__(self):
        return len(self._types)

    def __contains__(self, item):
        return item in self._members

    def __bool__(self):
        return bool(self._types)

    def __repr__(self):
        return "TypeUniverse([" + ", ".join(str(t) for t in self._types) + "])"


def select_candidates(
    bound: ParameterBound,
    universe: Iterable[ReferenceType],
    resolved: Sequence[ReferenceType] = (),
) -> List[ReferenceType]:
    """Select every universe member satisfying ``bound``, in universe order.

    For a dependent bound, ``resolved`` holds the types already assigned to the
    earlier parameters of the declaration. An empty result is not an error.
    """
    return [
        candidate
        for candidate in universe
        if not candidate.is_generic and bound.is_satisfied_by(candidate, resolved)
    ]
