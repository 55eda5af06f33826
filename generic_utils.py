"""
Utilities for reading generic type structure from annotations and class declarations.

This module provides structural extraction of generic type information with a
consistent interface across the generic systems Python code actually uses
(built-in generics, Pydantic models, dataclasses, plain typing.Generic classes).

Key concepts:
- concrete_args: The type arguments of an annotation as GenericInfo objects
- origin: The base generic type (e.g., list for list[int])
- resolved_type: The fully materialized runtime type
- declared parameters: The TypeVars a generic class is declared over, in order
"""

import functools
import inspect
import typing
import types
from typing import Any, Dict, List, Sequence, TypeVar, Tuple, Union, get_args, get_origin, get_type_hints
from dataclasses import dataclass, field, is_dataclass, fields
from abc import ABC, abstractmethod


def is_union_type(origin: Any) -> bool:
    """Check if origin represents a Union type (handles both typing.Union and types.UnionType)."""
    union_type = getattr(types, 'UnionType', None)
    return origin is Union or (union_type and origin is union_type)


@dataclass(frozen=True, kw_only=True)
class GenericInfo:
    """Container for generic type information extracted from an annotation.

    Attributes:
        origin: The base generic type (e.g., list for list[int])
        concrete_args: The type arguments as GenericInfo objects
        is_generic: Whether this annotation carries type arguments
        resolved_type: The fully materialized type (cached property)
    """

    origin: Any = None
    concrete_args: List["GenericInfo"] = field(default_factory=list)

    @property
    def is_generic(self) -> bool:
        """Whether this type has type arguments (computed from concrete_args)."""
        return bool(self.concrete_args)

    @functools.cached_property
    def resolved_type(self) -> Any:
        """The fully materialized type using origin[*resolved_args]."""
        if not self.concrete_args:
            return self.origin

        resolved_args = [arg.resolved_type for arg in self.concrete_args]

        if is_union_type(self.origin):
            return create_union_if_needed(list(dict.fromkeys(resolved_args)))
        elif self.origin in (tuple, typing.Tuple):
            if len(resolved_args) == 2 and resolved_args[1] is ...:
                return tuple[resolved_args[0], ...]
            return tuple[tuple(resolved_args)]
        try:
            return self.origin[*resolved_args]
        except (TypeError, AttributeError):
            # Some origins don't support subscription, return as-is
            return self.origin

    def __eq__(self, other):
        if not isinstance(other, GenericInfo):
            return False
        return self.origin == other.origin and self.concrete_args == other.concrete_args

    def __hash__(self):
        try:
            return hash((self.origin, tuple(self.concrete_args)))
        except TypeError:
            return hash((str(self.origin), tuple(self.concrete_args)))


class GenericExtractor(ABC):
    """Abstract base for type-system-specific generic extractors."""

    @abstractmethod
    def can_handle_annotation(self, annotation: Any) -> bool:
        """Check if this extractor can handle the given annotation."""

    @abstractmethod
    def can_handle_declaration(self, cls: Any) -> bool:
        """Check if this extractor understands the given class declaration."""

    @abstractmethod
    def extract_from_annotation(self, annotation: Any) -> GenericInfo:
        """Extract generic information from a type annotation."""

    @abstractmethod
    def get_type_parameters(self, cls: Any) -> List[TypeVar]:
        """Get the TypeVars a class is declared over, in declaration order."""

    def get_field_annotations(self, cls: Any) -> Dict[str, Any]:
        """Get the annotations of the values needed to construct `cls`.

        The default reads the constructor's type hints, which covers plain
        classes; extractors for field-based systems override it.
        """
        init = getattr(cls, "__init__", None)
        if init is None or init is object.__init__:
            return {}
        try:
            hints = get_type_hints(init)
        except (NameError, TypeError):
            return {}
        hints.pop("return", None)
        return hints

    @staticmethod
    def _typevars_only(params: Tuple[Any, ...]) -> List[TypeVar]:
        return [param for param in params if isinstance(param, TypeVar)]


class BuiltinExtractor(GenericExtractor):
    """Extractor for built-in generic types like list, dict, tuple, set."""

    _BUILTIN_ORIGINS = frozenset({
        list, dict, tuple, set, frozenset,
        typing.List, typing.Dict, typing.Tuple, typing.Set, typing.FrozenSet,
    })

    # Builtins don't record their parameters at runtime, so we declare them here
    _BUILTIN_PARAMETERS = {
        list: (TypeVar("T"),),
        set: (TypeVar("T"),),
        frozenset: (TypeVar("T"),),
        dict: (TypeVar("K"), TypeVar("V")),
    }

    def can_handle_annotation(self, annotation: Any) -> bool:
        return get_origin(annotation) in self._BUILTIN_ORIGINS

    def can_handle_declaration(self, cls: Any) -> bool:
        return cls in self._BUILTIN_PARAMETERS

    def extract_from_annotation(self, annotation: Any) -> GenericInfo:
        origin = get_origin(annotation)
        concrete_args = [get_generic_info(arg) for arg in get_args(annotation)]
        return GenericInfo(origin=origin, concrete_args=concrete_args)

    def get_type_parameters(self, cls: Any) -> List[TypeVar]:
        return list(self._BUILTIN_PARAMETERS.get(cls, ()))

    def get_field_annotations(self, cls: Any) -> Dict[str, Any]:
        # Empty containers are always constructible
        return {}


class PydanticExtractor(GenericExtractor):
    """Extractor for Pydantic generic models."""

    def can_handle_annotation(self, annotation: Any) -> bool:
        return hasattr(annotation, "__pydantic_generic_metadata__")

    def can_handle_declaration(self, cls: Any) -> bool:
        return hasattr(cls, "__pydantic_generic_metadata__")

    def extract_from_annotation(self, annotation: Any) -> GenericInfo:
        """Extract generic information from a Pydantic type annotation."""
        if not hasattr(annotation, "__pydantic_generic_metadata__"):
            return GenericInfo()

        metadata = annotation.__pydantic_generic_metadata__

        if metadata.get("origin"):
            # Specialized annotation (e.g., PydanticBox[int])
            origin = metadata["origin"]
            args = metadata.get("args", ())
            concrete_args = [get_generic_info(arg) for arg in args]
        else:
            # Unparameterized base class - its TypeVars are its arguments
            origin = annotation
            concrete_args = [
                GenericInfo(origin=type_param)
                for type_param in self.get_type_parameters(annotation)
            ]

        return GenericInfo(origin=origin, concrete_args=concrete_args)

    def get_type_parameters(self, cls: Any) -> List[TypeVar]:
        metadata = cls.__pydantic_generic_metadata__
        if metadata.get("origin"):
            # Specialized models have no free parameters of their own
            return self._typevars_only(tuple(metadata.get("parameters", ())))
        parameters = metadata.get("parameters") or getattr(cls, "__parameters__", ())
        return self._typevars_only(tuple(parameters))

    def get_field_annotations(self, cls: Any) -> Dict[str, Any]:
        # Pydantic already specializes field annotations in parameterized models
        model_fields = getattr(cls, "__pydantic_fields__", {})
        return {name: field_info.annotation for name, field_info in model_fields.items()}


class UnionExtractor(GenericExtractor):
    """Extractor for Union types (both typing.Union and types.UnionType)."""

    def can_handle_annotation(self, annotation: Any) -> bool:
        return is_union_type(get_origin(annotation))

    def can_handle_declaration(self, cls: Any) -> bool:
        return False  # Unions are never declared as classes

    def extract_from_annotation(self, annotation: Any) -> GenericInfo:
        origin = get_origin(annotation)
        concrete_args = [get_generic_info(arg) for arg in get_args(annotation)]
        return GenericInfo(origin=origin, concrete_args=concrete_args)

    def get_type_parameters(self, cls: Any) -> List[TypeVar]:
        return []


class DataclassExtractor(GenericExtractor):
    """Extractor for dataclass generic types."""

    def can_handle_annotation(self, annotation: Any) -> bool:
        origin = get_origin(annotation) or annotation
        return is_dataclass(origin) and isinstance(origin, type)

    def can_handle_declaration(self, cls: Any) -> bool:
        return isinstance(cls, type) and is_dataclass(cls)

    def extract_from_annotation(self, annotation: Any) -> GenericInfo:
        origin = get_origin(annotation) or annotation
        concrete_args = [get_generic_info(arg) for arg in get_args(annotation)]
        return GenericInfo(origin=origin, concrete_args=concrete_args)

    def get_type_parameters(self, cls: Any) -> List[TypeVar]:
        return self._typevars_only(getattr(cls, "__parameters__", ()))

    def get_field_annotations(self, cls: Any) -> Dict[str, Any]:
        """Get resolved annotations of the fields accepted by the generated __init__."""
        try:
            import sys
            module = sys.modules.get(cls.__module__)
            globalns = vars(module) if module else {}
            # Include the class itself in localns to resolve self-referential ForwardRefs
            localns = {cls.__name__: cls}
            field_hints = get_type_hints(cls, globalns=globalns, localns=localns)
        except (NameError, TypeError):
            field_hints = {}

        annotations = {}
        for dataclass_field in fields(cls):
            if not dataclass_field.init:
                continue
            annotations[dataclass_field.name] = field_hints.get(dataclass_field.name, dataclass_field.type)
        return annotations


class GenericClassExtractor(GenericExtractor):
    """Extractor for plain classes deriving from typing.Generic (including PEP 695 classes)."""

    def can_handle_annotation(self, annotation: Any) -> bool:
        origin = get_origin(annotation) or annotation
        return self.can_handle_declaration(origin)

    def can_handle_declaration(self, cls: Any) -> bool:
        try:
            return isinstance(cls, type) and issubclass(cls, typing.Generic)
        except TypeError:
            return False

    def extract_from_annotation(self, annotation: Any) -> GenericInfo:
        origin = get_origin(annotation) or annotation
        concrete_args = [get_generic_info(arg) for arg in get_args(annotation)]
        return GenericInfo(origin=origin, concrete_args=concrete_args)

    def get_type_parameters(self, cls: Any) -> List[TypeVar]:
        return self._typevars_only(getattr(cls, "__parameters__", ()))


class GenericTypeUtils:
    """Unified interface for extracting generic type information."""

    def __init__(self):
        self.extractors = [
            BuiltinExtractor(),
            PydanticExtractor(),
            DataclassExtractor(),
            GenericClassExtractor(),
            UnionExtractor(),
        ]
        self._fallback = GenericClassExtractor()

    def get_generic_info(self, annotation: Any) -> GenericInfo:
        """Extract generic type information from an annotation."""
        if isinstance(annotation, TypeVar):
            return GenericInfo(origin=annotation)

        for extractor in self.extractors:
            if extractor.can_handle_annotation(annotation):
                return extractor.extract_from_annotation(annotation)

        # Fallback for non-generic types
        return GenericInfo(origin=annotation)

    def _extractor_for(self, cls: Any) -> GenericExtractor:
        for extractor in self.extractors:
            if extractor.can_handle_declaration(cls):
                return extractor
        return self._fallback

    def get_type_parameters(self, cls: Any) -> List[TypeVar]:
        """Get the TypeVars `cls` is declared over, in declaration order."""
        return self._extractor_for(cls).get_type_parameters(cls)

    def get_declared_parameter_count(self, cls: Any) -> int:
        """Count every declared parameter, including ParamSpecs and TypeVarTuples."""
        if cls in BuiltinExtractor._BUILTIN_PARAMETERS:
            return len(BuiltinExtractor._BUILTIN_PARAMETERS[cls])
        metadata = getattr(cls, "__pydantic_generic_metadata__", None)
        if metadata is not None:
            return len(metadata.get("parameters") or ())
        return len(getattr(cls, "__parameters__", ()) or ())

    def get_field_annotations(self, cls: Any) -> Dict[str, Any]:
        """Get the annotations of the values needed to construct `cls`."""
        return self._extractor_for(cls).get_field_annotations(cls)

    def get_public_method_annotations(self, cls: Any) -> List[Dict[str, Any]]:
        """Get resolved type hints of every public method declared on `cls`.

        Only methods defined in the class body are considered, so base class
        APIs (e.g. Pydantic's model methods) don't leak into the result.
        """
        annotations = []
        for name, member in vars(cls).items():
            if isinstance(member, (staticmethod, classmethod)):
                member = member.__func__
            if name.startswith("_") or not inspect.isfunction(member):
                continue
            try:
                annotations.append(get_type_hints(member))
            except (NameError, TypeError):
                continue
        return annotations


def create_union_if_needed(members: Sequence[Any]) -> Any:
    """Create a Union type if needed, or return single type.

    Members are joined in the order given.

    Uses modern union syntax (int | str) for Python 3.10+ compatibility.
    """
    if len(members) == 1:
        return members[0]
    elif len(members) > 1:
        remaining = list(members)
        try:
            result = remaining[0]
            for elem_type in remaining[1:]:
                result = result | elem_type
            return result
        except TypeError:
            # Fallback to typing.Union for edge cases where | operator doesn't work
            return Union[tuple(remaining)]
    else:
        return type(None)


# Global instance for convenience
generic_utils = GenericTypeUtils()


def get_generic_info(annotation: Any) -> GenericInfo:
    """Extract generic type information from an annotation."""
    return generic_utils.get_generic_info(annotation)


def get_type_parameters(cls: Any) -> List[TypeVar]:
    """Get the TypeVars `cls` is declared over."""
    return generic_utils.get_type_parameters(cls)


def get_field_annotations(cls: Any) -> Dict[str, Any]:
    """Get the annotations of the values needed to construct `cls`."""
    return generic_utils.get_field_annotations(cls)


def get_public_method_annotations(cls: Any) -> List[Dict[str, Any]]:
    """Get resolved type hints of every public method declared on `cls`."""
    return generic_utils.get_public_method_annotations(cls)


def get_declared_parameter_count(cls: Any) -> int:
    """Count every parameter `cls` is declared over, whatever its kind."""
    return generic_utils.get_declared_parameter_count(cls)
