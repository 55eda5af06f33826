"""
Tests for enumerating every bound-satisfying substitution of a declaration.
"""

import numbers
import typing
from typing import TypeVar

import pytest

from candidate_selection import TypeUniverse
from tuple_extension import TupleLimitExceeded, TypeTupleSet, build_substitutions
from type_model import GenericClassDeclaration, MalformedBoundGraph, ParameterBound, ReferenceType, TypeVariable

T = TypeVar("T")
N = TypeVar("N", bound=numbers.Number)
U = TypeVar("U", bound=T)
V = TypeVar("V", bound=list[T])
S = TypeVar("S", int, bytes)

INT = ReferenceType(int)
STR = ReferenceType(str)
NUMBER = ReferenceType(numbers.Number)
LIST_INT = ReferenceType.from_annotation(list[int])
LIST_STR = ReferenceType.from_annotation(list[str])


class Holder(typing.Generic[T]):
    pass


class NumberBox(typing.Generic[N]):
    pass


class Pair(typing.Generic[T, U]):
    pass


class Nested(typing.Generic[T, V]):
    pass


class Choice(typing.Generic[S]):
    pass


class Backward(typing.Generic[U, T]):
    pass


class Plain:
    pass


def _types(substitutions):
    return [substitution.types for substitution in substitutions]


# =============================================================================
# SCENARIOS
# =============================================================================

def test_concrete_bound_filters_universe():
    declaration = GenericClassDeclaration.from_class(NumberBox)
    substitutions = build_substitutions(declaration, TypeUniverse([INT, STR]))
    assert _types(substitutions) == [(INT,)]


def test_dependent_bound_is_checked_against_each_prefix():
    declaration = GenericClassDeclaration.from_class(Pair)
    substitutions = build_substitutions(declaration, TypeUniverse([INT, NUMBER, STR]))
    assert _types(substitutions) == [
        (INT, INT),
        (NUMBER, INT),
        (NUMBER, NUMBER),
        (STR, STR),
    ]


def test_nested_dependent_bound():
    declaration = GenericClassDeclaration.from_class(Nested)
    substitutions = build_substitutions(declaration, TypeUniverse([INT, LIST_INT, LIST_STR]))
    assert _types(substitutions) == [(INT, LIST_INT)]


def test_constrained_parameter():
    declaration = GenericClassDeclaration.from_class(Choice)
    substitutions = build_substitutions(declaration, TypeUniverse([STR, INT, ReferenceType(bool)]))
    assert _types(substitutions) == [(INT,)]


def test_empty_universe_yields_no_substitutions():
    declaration = GenericClassDeclaration.from_class(Holder)
    assert build_substitutions(declaration, TypeUniverse()) == []


def test_unsatisfiable_first_parameter_short_circuits():
    declaration = GenericClassDeclaration.from_class(NumberBox)
    assert build_substitutions(declaration, TypeUniverse([STR, LIST_STR])) == []


def test_unconstrained_parameter_admits_every_type():
    declaration = GenericClassDeclaration.from_class(Holder)
    universe = TypeUniverse([INT, STR, LIST_INT])
    assert _types(build_substitutions(declaration, universe)) == [(INT,), (STR,), (LIST_INT,)]


def test_non_generic_declaration_has_one_empty_substitution():
    declaration = GenericClassDeclaration.from_class(Plain)
    substitutions = build_substitutions(declaration, TypeUniverse([INT]))
    assert len(substitutions) == 1
    assert len(substitutions[0]) == 0


def test_malformed_declaration_is_rejected():
    declaration = GenericClassDeclaration.from_class(Backward)
    with pytest.raises(MalformedBoundGraph):
        build_substitutions(declaration, TypeUniverse([INT]))


def test_every_substitution_is_total_and_satisfies_its_bounds():
    declaration = GenericClassDeclaration.from_class(Pair)
    universe = TypeUniverse([INT, ReferenceType(bool), NUMBER, ReferenceType(float), STR])
    substitutions = build_substitutions(declaration, universe)
    assert substitutions
    for substitution in substitutions:
        assert substitution.variables == declaration.type_parameters
        resolved = substitution.types
        for position, variable in enumerate(declaration.type_parameters):
            assert resolved[position] in universe
            assert variable.bound.is_satisfied_by(resolved[position], resolved[:position])


# =============================================================================
# TUPLE SET
# =============================================================================

class TestTypeTupleSet:

    def test_starts_with_the_empty_tuple(self):
        tuples = TypeTupleSet()
        assert list(tuples) == [()]
        assert tuples.width == 0
        assert not tuples.is_empty()

    def test_extend(self):
        tuples = TypeTupleSet()
        tuples.extend(TypeVariable("T", 0), [INT, STR])
        tuples.extend(TypeVariable("U", 1, ParameterBound.upper(TypeVariable("T", 0))), [INT, STR])
        assert list(tuples) == [(INT, INT), (STR, STR)]
        assert tuples.width == 2

    def test_extension_without_candidates_empties_the_set(self):
        tuples = TypeTupleSet()
        tuples.extend(TypeVariable("T", 0, ParameterBound.concrete(NUMBER)), [STR])
        assert tuples.is_empty()
        assert len(tuples) == 0

    def test_limit_exceeded(self):
        tuples = TypeTupleSet(max_size=3)
        tuples.extend(TypeVariable("T", 0), [INT, STR])
        with pytest.raises(TupleLimitExceeded):
            tuples.extend(TypeVariable("U", 1), [INT, STR])

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            TypeTupleSet(max_size=0)

    def test_to_substitutions(self):
        variables = (TypeVariable("T", 0),)
        tuples = TypeTupleSet()
        tuples.extend(variables[0], [INT, STR])
        substitutions = tuples.to_substitutions(variables)
        assert [substitution.get(variables[0]) for substitution in substitutions] == [INT, STR]


def test_build_substitutions_respects_limit():
    declaration = GenericClassDeclaration.from_class(Pair)
    universe = TypeUniverse([ReferenceType(object), INT, STR])
    # The first parameter alone already has three candidates
    with pytest.raises(TupleLimitExceeded):
        build_substitutions(declaration, universe, max_tuples=2)
    assert len(build_substitutions(declaration, universe, max_tuples=5)) == 5
