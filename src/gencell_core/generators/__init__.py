# src/gencell_core/generators/__init__.py
from .base import (
    DEFAULT_LIBRARY,
    GENERATOR_REGISTRY,
    GeneratorBase,
    GeneratorRegistry,
    parse_gencell_name,
    register_generator,
)
from .dialog import DialogField, FieldKind, checkbox, entry, message, selectindex, selectlist
from .exceptions import GeneratorCapabilityError, GeneratorError, GeneratorNotRegisteredError

# Importing the reference generators registers them in GENERATOR_REGISTRY.
from . import elements

__all__ = [
    "DEFAULT_LIBRARY",
    "GENERATOR_REGISTRY",
    "GeneratorBase",
    "GeneratorRegistry",
    "parse_gencell_name",
    "register_generator",
    "DialogField",
    "FieldKind",
    "checkbox",
    "entry",
    "message",
    "selectindex",
    "selectlist",
    "GeneratorError",
    "GeneratorNotRegisteredError",
    "GeneratorCapabilityError",
    "elements",
]
