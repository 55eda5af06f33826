"""
Reflective extraction of class declarations and observed input types.

These are the collaborators that feed the resolver: they decide which classes
can be modeled at all, read their declarations, and gather the concrete types
mentioned in their fields, constructor parameters and public method signatures.
"""

import enum
import importlib
import inspect
import logging
from typing import Any, Iterable, List

from generic_utils import get_field_annotations, get_public_method_annotations
from type_model import (
    GenericClassDeclaration, InstantiationError, ReferenceType, UnsupportedAnnotation, type_arguments_of
)

_LOGGER = logging.getLogger(__name__)


class ClassNotFoundError(InstantiationError):
    """Raised when a class name given for the model cannot be loaded."""


def load_class(name: str) -> type:
    """Load a class from a dotted ``module.Class`` (or ``module.Outer.Inner``) name."""
    module_name, _, attribute_path = name.rpartition(".")
    parts = [attribute_path]
    while module_name:
        try:
            target: Any = importlib.import_module(module_name)
        except ImportError:
            module_name, _, parent = module_name.rpartition(".")
            parts.insert(0, parent)
            continue
        try:
            for part in parts:
                target = getattr(target, part)
        except AttributeError as e:
            raise ClassNotFoundError(f"Cannot find class {name}") from e
        if not isinstance(target, type):
            raise ClassNotFoundError(f"{name} is not a class")
        return target
    raise ClassNotFoundError(f"Cannot find class {name}")


def is_visible(cls: type) -> bool:
    """Classes whose own name is private are not visible to generated tests."""
    return not cls.__name__.startswith("_")


def is_testable_class(cls: type) -> bool:
    """Whether ``cls`` can be added to the model, logging the reason when not."""
    if not is_visible(cls):
        _LOGGER.info("Ignoring non-visible %s", cls.__qualname__)
        return False
    if getattr(cls, "_is_protocol", False):
        _LOGGER.info("Ignoring protocol %s", cls.__qualname__)
        return False
    if inspect.isabstract(cls) and not issubclass(cls, enum.Enum):
        _LOGGER.info("Ignoring abstract %s", cls.__qualname__)
        return False
    return True


def extract_declaration(cls: type) -> GenericClassDeclaration:
    """Read the declaration (type parameters and bounds) of ``cls``."""
    return GenericClassDeclaration.from_class(cls)


def collect_input_types(cls: type) -> List[ReferenceType]:
    """Collect the concrete reference types mentioned by ``cls``.

    Fields, constructor parameters and public method signatures are inspected;
    nested type arguments are collected as well (``dict[str, int]`` also yields
    ``str`` and ``int``). Types still mentioning type variables are dropped.
    """
    annotations: List[Any] = list(get_field_annotations(cls).values())
    for hints in get_public_method_annotations(cls):
        annotations.extend(hints.values())

    types: List[ReferenceType] = []
    for annotation in annotations:
        try:
            types.append(ReferenceType.from_annotation(annotation))
        except UnsupportedAnnotation as e:
            _LOGGER.debug("%s: skipping annotation %r: %s", cls.__qualname__, annotation, e)

    return [t for t in type_arguments_of(types) if not t.is_generic]


def resolve_classes(classes: Iterable[Any], fail_on_missing: bool = True) -> List[type]:
    """Turn class objects and dotted names into a duplicate-free list of classes."""
    resolved: List[type] = []
    for entry in classes:
        if isinstance(entry, str):
            try:
                entry = load_class(entry)
            except ClassNotFoundError:
                if fail_on_missing:
                    raise
                _LOGGER.warning("Ignoring class name %s that cannot be loaded", entry)
                continue
        if entry not in resolved:
            resolved.append(entry)
    return resolved
