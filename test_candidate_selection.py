"""
Tests for the type universe and per-parameter candidate selection.
"""

import numbers
from typing import Any, Optional, TypeVar

import pytest

from candidate_selection import TypeUniverse, select_candidates
from type_model import ParameterBound, ReferenceType, TypeVariable

T = TypeVar("T")

INT = ReferenceType(int)
STR = ReferenceType(str)
FLOAT = ReferenceType(float)
NUMBER = ReferenceType(numbers.Number)


class TestTypeUniverse:

    def test_keeps_first_seen_order_without_duplicates(self):
        universe = TypeUniverse([STR, INT, STR, FLOAT, INT])
        assert universe.types == (STR, INT, FLOAT)
        assert list(universe) == [STR, INT, FLOAT]
        assert len(universe) == 3

    def test_drops_generic_and_union_types(self):
        universe = TypeUniverse([
            INT,
            ReferenceType.from_annotation(list[T]),
            ReferenceType.from_annotation(int | str),
            ReferenceType.from_annotation(list[int]),
        ])
        assert universe.types == (INT, ReferenceType.from_annotation(list[int]))

    def test_from_annotations_skips_unsupported(self):
        universe = TypeUniverse.from_annotations([int, Any, "str", T, dict[str, int], Optional[int]])
        assert universe.types == (INT, ReferenceType.from_annotation(dict[str, int]))

    def test_empty_universe(self):
        universe = TypeUniverse()
        assert not universe
        assert INT not in universe
        assert repr(universe) == "TypeUniverse([])"

    def test_membership_and_repr(self):
        universe = TypeUniverse([INT, STR])
        assert INT in universe
        assert FLOAT not in universe
        assert repr(universe) == "TypeUniverse([int, str])"

    def test_many_repeated_observations(self):
        universe = TypeUniverse([STR, INT] * 5000 + [FLOAT])
        assert universe.types == (STR, INT, FLOAT)
        assert FLOAT in universe
        assert NUMBER not in universe


class TestSelectCandidates:

    @pytest.fixture
    def universe(self):
        return TypeUniverse([STR, INT, NUMBER, FLOAT, ReferenceType(bool)])

    def test_unconstrained_admits_everything(self, universe):
        assert select_candidates(ParameterBound.unconstrained(), universe) == list(universe)

    def test_concrete_bound_keeps_universe_order(self, universe):
        assert select_candidates(ParameterBound.concrete(NUMBER), universe) == [
            INT, NUMBER, FLOAT, ReferenceType(bool)
        ]
        assert select_candidates(ParameterBound.concrete(INT), universe) == [INT, ReferenceType(bool)]

    def test_constrained_bound(self, universe):
        bound = ParameterBound.constrained(INT, STR, ReferenceType(bytes))
        assert select_candidates(bound, universe) == [STR, INT]

    def test_dependent_bound_uses_resolved_prefix(self, universe):
        bound = ParameterBound.upper(TypeVariable("T", 0))
        assert select_candidates(bound, universe, [INT]) == [INT, ReferenceType(bool)]
        assert select_candidates(bound, universe, [STR]) == [STR]

    def test_no_candidates_is_not_an_error(self, universe):
        bound = ParameterBound.concrete(ReferenceType(bytes))
        assert select_candidates(bound, universe) == []
        assert select_candidates(ParameterBound.unconstrained(), TypeUniverse()) == []

    def test_generic_members_are_never_candidates(self):
        candidates = [INT, ReferenceType.from_annotation(list[T])]
        assert select_candidates(ParameterBound.unconstrained(), candidates) == [INT]
