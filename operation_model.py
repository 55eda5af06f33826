"""
The operation model: the classes, concrete types and operations tests are generated from.

Building a model is a pipeline of independent steps, each returning an
immutable ModelDelta that the façade merges exactly once:

1. Extraction: read the declaration and observed input types of every class
2. Refinement: resolve each generic declaration to one concrete class type,
   passing non-generic declarations through unchanged
3. Operations: a constructor operation for every concrete class type
4. The root type: ``object`` and its default constructor, added unconditionally
   so the model is never without an operation

Downstream consumers only ever see concrete class types. A generic declaration
either contributes exactly one instantiation or is left out entirely.
"""

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, TypeVar

from candidate_selection import TypeUniverse
from generic_utils import get_field_annotations, get_type_parameters
from instantiation import InstantiationResolver
from randomness import Randomness
from resolver_settings import ResolverSettings
from type_extraction import collect_input_types, extract_declaration, is_testable_class, resolve_classes
from type_model import (
    OBJECT_TYPE, GenericClassDeclaration, InstantiationError, ReferenceType, UnsupportedAnnotation
)

_LOGGER = logging.getLogger(__name__)


class OperationKind(Enum):
    CONSTRUCTOR = "constructor"
    METHOD = "method"


@dataclass(frozen=True)
class TypedOperation:
    """A callable operation over concrete types."""

    name: str
    kind: OperationKind
    declaring_type: ReferenceType
    input_types: Tuple[ReferenceType, ...]
    output_type: ReferenceType

    @classmethod
    def for_constructor(cls, class_type: ReferenceType) -> "TypedOperation":
        """Describe the constructor of a concrete class type.

        Constructor annotations mentioning the class's type parameters are
        instantiated with the class type's arguments, so ``Box[int]`` gets an
        ``int`` input for a field declared as ``item: T``. Unannotated
        parameters accept ``object``.

        Raises UnsupportedAnnotation if an input cannot be made concrete.
        """
        origin = class_type.origin
        bindings: Dict[TypeVar, Any] = dict(zip(get_type_parameters(origin), class_type.args))
        annotations = get_field_annotations(origin)

        input_types: List[ReferenceType] = []
        for name, parameter in _constructor_parameters(origin):
            annotation = annotations.get(name, parameter.annotation)
            if annotation is inspect.Parameter.empty:
                input_types.append(OBJECT_TYPE)
                continue
            input_type = ReferenceType.from_annotation(annotation, bindings)
            if input_type.is_generic:
                raise UnsupportedAnnotation(f"Parameter {name} of {class_type} has generic type {input_type}")
            input_types.append(input_type)

        return cls(
            name=class_type.name,
            kind=OperationKind.CONSTRUCTOR,
            declaring_type=class_type,
            input_types=tuple(input_types),
            output_type=class_type,
        )

    def __str__(self):
        inputs = ", ".join(str(t) for t in self.input_types)
        return f"{self.declaring_type}.<{self.kind.value}>({inputs}) -> {self.output_type}"


def _constructor_parameters(origin: Any) -> List[Tuple[str, inspect.Parameter]]:
    if origin is object:
        return []
    try:
        signature = inspect.signature(origin)
    except (TypeError, ValueError):
        # Builtins without an introspectable signature construct without arguments
        return []
    return [
        (name, parameter)
        for name, parameter in signature.parameters.items()
        if parameter.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]


OBJECT_CONSTRUCTOR = TypedOperation(
    name="object",
    kind=OperationKind.CONSTRUCTOR,
    declaring_type=OBJECT_TYPE,
    input_types=(),
    output_type=OBJECT_TYPE,
)


@dataclass(frozen=True)
class ModelDelta:
    """An immutable contribution of one model-building step."""

    declarations: Tuple[GenericClassDeclaration, ...] = ()
    input_types: Tuple[ReferenceType, ...] = ()
    class_types: Tuple[ReferenceType, ...] = ()
    operations: Tuple[TypedOperation, ...] = ()


class ModelBuilder:
    """Collects deltas and merges them, in order and without duplicates, into a model."""

    def __init__(self):
        self._deltas: List[ModelDelta] = []

    def add(self, delta: ModelDelta) -> "ModelBuilder":
        self._deltas.append(delta)
        return self

    def build(self) -> "OperationModel":
        return OperationModel(
            declarations=_merge(delta.declarations for delta in self._deltas),
            input_types=_merge(delta.input_types for delta in self._deltas),
            concrete_class_types=_merge(delta.class_types for delta in self._deltas),
            operations=_merge(delta.operations for delta in self._deltas),
        )


def _merge(groups: Iterable[Tuple[Any, ...]]) -> Tuple[Any, ...]:
    merged: Dict[Any, None] = {}
    for group in groups:
        merged.update(dict.fromkeys(group))
    return tuple(merged)


def extract_classes(classes: Iterable[type]) -> ModelDelta:
    """Read declarations and observed input types from the classes under test."""
    declarations: List[GenericClassDeclaration] = []
    input_types: List[ReferenceType] = []
    for cls in classes:
        if not is_testable_class(cls):
            continue
        try:
            declarations.append(extract_declaration(cls))
        except InstantiationError as e:
            _LOGGER.warning("Skipping declaration of %s: %s", cls.__qualname__, e)
        input_types.extend(collect_input_types(cls))
    return ModelDelta(declarations=tuple(declarations), input_types=tuple(input_types))


def refine_generic_class_types(
    declarations: Iterable[GenericClassDeclaration],
    universe: TypeUniverse,
    resolver: InstantiationResolver,
) -> ModelDelta:
    """Replace every generic declaration by one concrete instantiation, or drop it."""
    class_types: List[ReferenceType] = []
    for declaration in declarations:
        if not declaration.is_generic:
            class_types.append(declaration.as_type())
            continue
        class_type = resolver.try_resolve(declaration, universe)
        if class_type is not None:
            class_types.append(class_type)
    return ModelDelta(class_types=tuple(class_types))


def constructor_operations(class_types: Iterable[ReferenceType]) -> ModelDelta:
    """Constructor operations for every class type whose constructor can be typed."""
    operations: List[TypedOperation] = []
    for class_type in class_types:
        try:
            operations.append(TypedOperation.for_constructor(class_type))
        except InstantiationError as e:
            _LOGGER.debug("No constructor operation for %s: %s", class_type, e)
    return ModelDelta(operations=tuple(operations))


def object_constructor() -> ModelDelta:
    """The root type and its default constructor."""
    return ModelDelta(class_types=(OBJECT_TYPE,), operations=(OBJECT_CONSTRUCTOR,))


@dataclass(frozen=True)
class OperationModel:
    """The information context from which tests are generated.

    Generic classes are managed internally: only concrete class types and
    operations over concrete types are exposed.
    """

    declarations: Tuple[GenericClassDeclaration, ...] = ()
    input_types: Tuple[ReferenceType, ...] = ()
    concrete_class_types: Tuple[ReferenceType, ...] = ()
    operations: Tuple[TypedOperation, ...] = ()

    @classmethod
    def create_model(
        cls,
        classes: Iterable[Any],
        settings: Optional[ResolverSettings] = None,
        rng: Optional[Randomness] = None,
    ) -> "OperationModel":
        """Build the model for a set of classes under test (class objects or dotted names)."""
        if settings is None:
            settings = ResolverSettings()
        resolver = InstantiationResolver.from_settings(settings, rng)

        classes = resolve_classes(classes, fail_on_missing=settings.fail_on_missing_class)
        extracted = extract_classes(classes)
        universe = TypeUniverse(extracted.input_types)
        refined = refine_generic_class_types(extracted.declarations, universe, resolver)
        operations = constructor_operations(refined.class_types)

        model = (
            ModelBuilder()
            .add(extracted)
            .add(refined)
            .add(operations)
            .add(object_constructor())
            .build()
        )
        _LOGGER.info(
            "Built operation model: %d declaration(s), %d input type(s), %d class type(s), %d operation(s)",
            len(model.declarations), len(model.input_types),
            len(model.concrete_class_types), len(model.operations),
        )
        return model

    def get_classes(self) -> Tuple[ReferenceType, ...]:
        """The concrete class types of this model, including instantiated generics."""
        return self.concrete_class_types

    def has_classes(self) -> bool:
        return bool(self.concrete_class_types)

    def get_concrete_operations(self) -> List[TypedOperation]:
        return list(self.operations)
