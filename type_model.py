"""
Type and bound model for instantiating generic class declarations.

The resolver never works on raw annotations directly. Annotations are converted
into a small structural model first:

1. ReferenceType: a class plus its type arguments (int, list[int], Box[str])
2. TypeVariable: a formal parameter of a generic declaration, identified by its
   position in the declaration's parameter list
3. ParameterBound: the restriction placed on a TypeVariable, as a tagged variant
   (unconstrained / concrete upper bound / constrained choices / dependent)
4. Substitution: a total, immutable mapping from a declaration's variables to
   concrete reference types
5. GenericClassDeclaration: a generic class together with its ordered variables

Dependent bounds may only reference variables that appear earlier in the
declaration, which is what makes resolution in declaration order possible.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from generic_utils import (
    GenericInfo, get_declared_parameter_count, get_generic_info, get_type_parameters, is_union_type
)


class InstantiationError(Exception):
    """Base class for failures while instantiating generic declarations."""


class UnsupportedAnnotation(InstantiationError):
    """Raised when an annotation cannot be represented as a reference type."""


class MalformedBoundGraph(InstantiationError):
    """Raised when a bound references a variable that is not declared earlier."""


class UnresolvableInstantiation(InstantiationError):
    """Raised when no substitution satisfies every bound of a declaration."""


class BoundKind(Enum):
    """Kinds of restrictions a type parameter can carry."""
    UNCONSTRAINED = "unconstrained"  # any concrete type
    CONCRETE = "concrete"            # T extends SomeType
    CONSTRAINED = "constrained"      # T is exactly one of (A, B, ...)
    DEPENDENT = "dependent"          # U extends an expression over earlier variables


@dataclass(frozen=True)
class TypeVariable:
    """A formal type parameter of a generic declaration.

    Identity is positional: two variables are equal when name and index match,
    regardless of their bounds. A variable with ``index=None`` is free, i.e. not
    owned by the declaration it was found in.
    """

    name: str
    index: Optional[int]
    bound: "ParameterBound" = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.bound is None:
            object.__setattr__(self, "bound", ParameterBound.unconstrained())

    def __str__(self):
        return self.name


TypeArgument = Union["ReferenceType", TypeVariable]


@dataclass(frozen=True)
class ReferenceType:
    """A class together with its (possibly empty) list of type arguments.

    Equality is structural over origin and arguments.
    """

    origin: Any
    args: Tuple[TypeArgument, ...] = ()

    @classmethod
    def from_annotation(
        cls,
        annotation: Any,
        bindings: Optional[Mapping[TypeVar, TypeArgument]] = None,
    ) -> "ReferenceType":
        """Convert a runtime annotation into a reference type.

        TypeVars found in the annotation are replaced through ``bindings``; a
        TypeVar without a binding becomes a free TypeVariable. Annotations that
        are not types (Any, strings, Literal values, Callable parameter lists)
        raise UnsupportedAnnotation.
        """
        argument = _argument_from_info(get_generic_info(annotation), bindings or {})
        if isinstance(argument, TypeVariable):
            raise UnsupportedAnnotation(f"Bare type variable {argument} is not a reference type")
        return argument

    @property
    def name(self) -> str:
        if self.origin is ...:
            return "..."
        return getattr(self.origin, "__qualname__", None) or str(self.origin)

    @property
    def is_union(self) -> bool:
        return is_union_type(self.origin)

    @property
    def is_generic(self) -> bool:
        """Whether any type variable remains anywhere in the arguments."""
        return any(
            isinstance(arg, TypeVariable) or arg.is_generic
            for arg in self.args
        )

    def type_variables(self) -> List[TypeVariable]:
        """All type variables in the arguments, in first-seen order."""
        found: List[TypeVariable] = []
        for arg in self.args:
            candidates = [arg] if isinstance(arg, TypeVariable) else arg.type_variables()
            for variable in candidates:
                if variable not in found:
                    found.append(variable)
        return found

    def substitute(self, bindings: Mapping[TypeVariable, "ReferenceType"]) -> "ReferenceType":
        """Replace bound type variables; unbound ones are left in place."""
        if not self.args:
            return self
        return ReferenceType(self.origin, tuple(substitute_argument(arg, bindings) for arg in self.args))

    def to_annotation(self) -> Any:
        """Materialize the runtime type (e.g. ``Box[int]``) for this reference type."""
        return _info_from_argument(self).resolved_type

    def is_assignable_to(self, other: "ReferenceType") -> bool:
        """Check whether a value of this type can be used where ``other`` is expected.

        Classes follow ``issubclass`` (including ABC registration). Parameterized
        targets are invariant in their arguments, which are compared after
        mapping this type's arguments onto the target's origin.
        """
        if self.is_union:
            return all(isinstance(arg, ReferenceType) and arg.is_assignable_to(other) for arg in self.args)
        if other.is_union:
            return any(isinstance(arg, ReferenceType) and self.is_assignable_to(arg) for arg in other.args)
        if not _is_subtype(self.origin, other.origin):
            return False
        if not other.args:
            return True
        return self.arguments_as(other.origin) == other.args

    def arguments_as(self, target_origin: Any) -> Optional[Tuple[TypeArgument, ...]]:
        """View this type as a parameterization of one of its generic ancestors.

        For ``class IntBox(Box[int])``, ``ReferenceType(IntBox).arguments_as(Box)``
        is ``(int,)``. Returns None when the ancestor is not reachable.
        """
        if self.origin is target_origin:
            return self.args

        parameters = get_type_parameters(self.origin)
        bindings: Dict[TypeVar, TypeArgument] = dict(zip(parameters, self.args))

        # Pydantic specializations are real classes, so they only show up in __bases__
        bases = vars(self.origin).get("__orig_bases__", getattr(self.origin, "__bases__", ()))
        for base in bases:
            try:
                base_type = ReferenceType.from_annotation(base, bindings)
            except UnsupportedAnnotation:
                continue
            if base_type.origin is self.origin or not _is_subtype(base_type.origin, target_origin):
                continue
            arguments = base_type.arguments_as(target_origin)
            if arguments is not None:
                return arguments
        return None

    def __str__(self):
        if self.origin is type(None):
            return "None"
        if self.is_union:
            return " | ".join(str(arg) for arg in self.args)
        if not self.args:
            return self.name
        return f"{self.name}[{', '.join(str(arg) for arg in self.args)}]"


OBJECT_TYPE = ReferenceType(object)


@dataclass(frozen=True)
class ParameterBound:
    """Restriction on the concrete types a type variable may take.

    Build instances with the factory classmethods rather than directly:

    - ``unconstrained()``: every concrete type satisfies the bound
    - ``concrete(upper)``: the candidate must be assignable to ``upper``
    - ``constrained(*choices)``: the candidate must be exactly one of ``choices``
    - ``upper(pattern)``: the candidate must be assignable to ``pattern`` once the
      earlier variables it mentions are replaced by their resolved types
    - ``dependent(depends_on, predicate)``: ``predicate(candidate, referenced)``
      decides, where ``referenced`` holds the resolved types at ``depends_on``
    """

    kind: BoundKind
    upper_bound: Optional[TypeArgument] = None
    choices: Tuple["ReferenceType", ...] = ()
    depends_on: Tuple[Optional[int], ...] = ()
    predicate: Optional[Callable[["ReferenceType", Tuple["ReferenceType", ...]], bool]] = None

    @classmethod
    def unconstrained(cls) -> "ParameterBound":
        return cls(BoundKind.UNCONSTRAINED)

    @classmethod
    def concrete(cls, upper_bound: "ReferenceType") -> "ParameterBound":
        if upper_bound.is_generic:
            raise MalformedBoundGraph(f"Concrete bound {upper_bound} still mentions type variables")
        return cls(BoundKind.CONCRETE, upper_bound=upper_bound)

    @classmethod
    def constrained(cls, *choices: "ReferenceType") -> "ParameterBound":
        if not choices:
            raise ValueError("A constrained bound needs at least one choice")
        if any(choice.is_generic for choice in choices):
            raise MalformedBoundGraph(f"Constraints {choices} must not mention type variables")
        return cls(BoundKind.CONSTRAINED, choices=tuple(choices))

    @classmethod
    def upper(cls, pattern: TypeArgument) -> "ParameterBound":
        """Upper bound that may mention other variables (``U <: T``, ``V <: list[T]``)."""
        if isinstance(pattern, TypeVariable):
            variables = [pattern]
        else:
            variables = pattern.type_variables()
        if not variables:
            return cls.concrete(pattern)
        return cls(
            BoundKind.DEPENDENT,
            upper_bound=pattern,
            depends_on=tuple(variable.index for variable in variables),
        )

    @classmethod
    def dependent(
        cls,
        depends_on: Sequence[int],
        predicate: Callable[["ReferenceType", Tuple["ReferenceType", ...]], bool],
    ) -> "ParameterBound":
        return cls(BoundKind.DEPENDENT, depends_on=tuple(depends_on), predicate=predicate)

    @property
    def is_dependent(self) -> bool:
        return self.kind is BoundKind.DEPENDENT

    def is_satisfied_by(self, candidate: "ReferenceType", resolved: Sequence["ReferenceType"] = ()) -> bool:
        """Check a candidate against this bound.

        ``resolved`` holds the types already chosen for the declaration's
        earlier variables, by position. It is only consulted by dependent bounds.
        """
        if self.kind is BoundKind.UNCONSTRAINED:
            return True
        elif self.kind is BoundKind.CONCRETE:
            return candidate.is_assignable_to(self.upper_bound)
        elif self.kind is BoundKind.CONSTRAINED:
            return candidate in self.choices
        elif self.kind is BoundKind.DEPENDENT:
            referenced = self._referenced_types(resolved)
            if self.predicate is not None:
                return bool(self.predicate(candidate, referenced))
            bindings = {
                variable: resolved[variable.index]
                for variable in _variables_of(self.upper_bound)
            }
            upper_bound = substitute_argument(self.upper_bound, bindings)
            if not isinstance(upper_bound, ReferenceType) or upper_bound.is_generic:
                raise MalformedBoundGraph(f"Bound {self} still mentions unresolved variables")
            return candidate.is_assignable_to(upper_bound)
        raise ValueError(f"Unknown bound kind {self.kind}")

    def _referenced_types(self, resolved: Sequence["ReferenceType"]) -> Tuple["ReferenceType", ...]:
        for index in self.depends_on:
            if index is None or index >= len(resolved):
                raise MalformedBoundGraph(
                    f"Bound {self} references position {index}, only {len(resolved)} resolved"
                )
        return tuple(resolved[index] for index in self.depends_on)

    def __str__(self):
        if self.kind is BoundKind.UNCONSTRAINED:
            return "unconstrained"
        elif self.kind is BoundKind.CONCRETE:
            return f"<: {self.upper_bound}"
        elif self.kind is BoundKind.CONSTRAINED:
            return "in {" + ", ".join(str(choice) for choice in self.choices) + "}"
        elif self.upper_bound is not None:
            return f"<: {self.upper_bound}"
        return f"predicate over {list(self.depends_on)}"


class Substitution:
    """A total, immutable mapping from a declaration's type variables to concrete types."""

    def __init__(self, bindings: Mapping[TypeVariable, ReferenceType]):
        self._bindings = MappingProxyType(dict(bindings))

    @classmethod
    def for_variables(
        cls, variables: Sequence[TypeVariable], types: Sequence[ReferenceType]
    ) -> "Substitution":
        """Zip variables against types positionally; both must have the same length."""
        if len(variables) != len(types):
            raise ValueError(
                f"Substitution needs one type per variable: {len(variables)} variables, {len(types)} types"
            )
        return cls(dict(zip(variables, types)))

    @property
    def bindings(self) -> Mapping[TypeVariable, ReferenceType]:
        return self._bindings

    @property
    def variables(self) -> Tuple[TypeVariable, ...]:
        return tuple(self._bindings)

    @property
    def types(self) -> Tuple[ReferenceType, ...]:
        return tuple(self._bindings.values())

    def get(self, variable: TypeVariable) -> Optional[ReferenceType]:
        """Get the binding for a type variable."""
        return self._bindings.get(variable)

    def apply(self, argument: TypeArgument) -> TypeArgument:
        """Apply this substitution to a type argument."""
        return substitute_argument(argument, self._bindings)

    def __len__(self):
        return len(self._bindings)

    def __eq__(self, other):
        if not isinstance(other, Substitution):
            return NotImplemented
        return tuple(self._bindings.items()) == tuple(other._bindings.items())

    def __hash__(self):
        return hash(tuple(self._bindings.items()))

    def __str__(self):
        return "{" + ", ".join(f"{k}: {v}" for k, v in self._bindings.items()) + "}"

    def __repr__(self):
        return f"Substitution({self})"


@dataclass(frozen=True)
class GenericClassDeclaration:
    """A class declaration together with its ordered type parameters."""

    origin: Any
    type_parameters: Tuple[TypeVariable, ...] = ()

    @classmethod
    def from_class(cls, declared: Any) -> "GenericClassDeclaration":
        """Read the type parameters and bounds of a class.

        Bounds are converted as written; whether they form a valid resolution
        order is checked later by ``validate``.
        """
        typevars = get_type_parameters(declared)
        if len(typevars) != get_declared_parameter_count(declared):
            raise UnsupportedAnnotation(
                f"{getattr(declared, '__qualname__', declared)} declares ParamSpec or TypeVarTuple parameters"
            )

        # Positional references first, so bounds can point at any parameter
        references = {typevar: TypeVariable(typevar.__name__, index) for index, typevar in enumerate(typevars)}
        parameters = tuple(
            TypeVariable(typevar.__name__, index, _bound_from_typevar(typevar, references))
            for index, typevar in enumerate(typevars)
        )
        return cls(declared, parameters)

    @property
    def name(self) -> str:
        return getattr(self.origin, "__qualname__", None) or str(self.origin)

    @property
    def is_generic(self) -> bool:
        return bool(self.type_parameters)

    def as_type(self) -> ReferenceType:
        """The declaration viewed as a type over its own variables (``Box[T]``)."""
        return ReferenceType(self.origin, self.type_parameters)

    def validate(self) -> None:
        """Check that every bound only references earlier parameters of this declaration."""
        for position, variable in enumerate(self.type_parameters):
            if variable.index != position:
                raise MalformedBoundGraph(
                    f"{self.name}: parameter {variable} has index {variable.index}, expected {position}"
                )
            for index in variable.bound.depends_on:
                if index is None:
                    raise MalformedBoundGraph(
                        f"{self.name}: bound of {variable} references a variable it does not declare"
                    )
                if index >= position:
                    raise MalformedBoundGraph(
                        f"{self.name}: bound of {variable} references "
                        f"{self.type_parameters[index] if index < len(self.type_parameters) else index}, "
                        f"which is not declared before it"
                    )

    def apply(self, substitution: Substitution) -> ReferenceType:
        """Apply a substitution to this declaration, yielding a class type."""
        return substitution.apply(self.as_type())

    def __str__(self):
        if not self.type_parameters:
            return self.name
        return f"{self.name}[{', '.join(str(param) for param in self.type_parameters)}]"


def substitute_argument(argument: TypeArgument, bindings: Mapping[TypeVariable, ReferenceType]) -> TypeArgument:
    """Substitute type variables in a single type argument."""
    if isinstance(argument, TypeVariable):
        return bindings.get(argument, argument)
    return argument.substitute(bindings)


def _variables_of(argument: TypeArgument) -> List[TypeVariable]:
    if isinstance(argument, TypeVariable):
        return [argument]
    return argument.type_variables()


def _is_subtype(subtype: Any, supertype: Any) -> bool:
    """Check if subtype is a subtype of supertype."""
    if subtype is supertype:
        return True
    try:
        return issubclass(subtype, supertype)
    except TypeError:
        # Handle cases where subtype might not be a class
        return False


def _is_supported_origin(origin: Any) -> bool:
    if origin is Any:
        return False
    return origin is ... or is_union_type(origin) or isinstance(origin, type)


def _argument_from_info(info: GenericInfo, bindings: Mapping[TypeVar, TypeArgument]) -> TypeArgument:
    """Convert GenericInfo (from generic_utils) into the model's type arguments."""
    origin = info.origin
    if isinstance(origin, TypeVar):
        if origin in bindings:
            return bindings[origin]
        return TypeVariable(origin.__name__, None)
    if origin is None:
        origin = type(None)
    if not _is_supported_origin(origin):
        raise UnsupportedAnnotation(f"Cannot represent {origin!r} as a reference type")
    args = tuple(_argument_from_info(arg, bindings) for arg in info.concrete_args)
    return ReferenceType(origin, args)


def _info_from_argument(argument: TypeArgument) -> GenericInfo:
    if isinstance(argument, TypeVariable):
        return GenericInfo(origin=TypeVar(argument.name))
    return GenericInfo(
        origin=argument.origin,
        concrete_args=[_info_from_argument(arg) for arg in argument.args],
    )


def _bound_from_typevar(typevar: TypeVar, references: Mapping[TypeVar, TypeVariable]) -> ParameterBound:
    """Translate a TypeVar's bound or constraints into a ParameterBound.

    PEP 695 bounds and constraints are evaluated lazily on first access, so a
    name that does not resolve surfaces here as UnsupportedAnnotation.
    """
    try:
        constraints = getattr(typevar, "__constraints__", ())
        if constraints:
            return ParameterBound.constrained(
                *(ReferenceType.from_annotation(choice, references) for choice in constraints)
            )

        bound = getattr(typevar, "__bound__", None)
        if bound is None:
            return ParameterBound.unconstrained()

        if isinstance(bound, TypeVar):
            pattern: TypeArgument = references.get(bound) or TypeVariable(bound.__name__, None)
        else:
            pattern = ReferenceType.from_annotation(bound, references)
    except NameError as e:
        raise UnsupportedAnnotation(f"Cannot evaluate the bound of {typevar.__name__}: {e}") from e
    return ParameterBound.upper(pattern)


def type_arguments_of(types: Iterable[TypeArgument]) -> List[ReferenceType]:
    """Flatten reference types with all of their nested concrete type arguments."""
    flattened: List[ReferenceType] = []
    pending = list(types)
    while pending:
        current = pending.pop(0)
        if isinstance(current, TypeVariable) or current.origin is ...:
            continue
        if not current.is_union and current not in flattened:
            flattened.append(current)
        pending.extend(current.args)
    return flattened
