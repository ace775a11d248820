# src/gencell_core/generators/base.py

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, ClassVar, Dict, List, Optional, Tuple, Type

from ..parameters import NOCELL_KEY, RESERVED_KEYS, ParameterDictionary
from .dialog import DialogField, entry
from .exceptions import GeneratorNotRegisteredError

if TYPE_CHECKING:
    from ..layout.database import LayoutDatabase

logger = logging.getLogger(__name__)

DEFAULT_LIBRARY = "toolkit"
LIBRARY_SEPARATOR = "::"


class GeneratorBase(ABC):
    """
    The abstract base class for all parameterized layout generators.

    A generator supplies the capability set the lifecycle manager drives:
    `defaults`, `convert`, `dialog`, `check` and `draw`. Only `defaults` and
    `draw` are mandatory; the others default to pass-through behavior.

    A generator whose defaults contain the reserved key `nocell` is a non-cell
    generator: it draws directly at the placement site on every create or change
    and never produces a shared, hash-named artifact.
    """
    gencell_type: ClassVar[str] = ""
    library: ClassVar[str] = DEFAULT_LIBRARY

    @property
    def fullname(self) -> str:
        return f"{self.library}{LIBRARY_SEPARATOR}{self.gencell_type}"

    @property
    def is_nocell(self) -> bool:
        return NOCELL_KEY in self.defaults()

    @abstractmethod
    def defaults(self) -> ParameterDictionary:
        """The canonical parameter set, in the order its values are hashed."""
        pass

    def convert(self, parameters: ParameterDictionary) -> ParameterDictionary:
        """Maps netlist-sourced parameters (SPICE names and units) to this generator's convention."""
        return ParameterDictionary(parameters)

    def dialog(self, parameters: ParameterDictionary) -> List[DialogField]:
        fields = []
        for name in self.defaults():
            if name.lower() in RESERVED_KEYS:
                continue
            fields.append(entry(name, name, parameters))
        return fields

    def check(self, parameters: ParameterDictionary) -> ParameterDictionary:
        """
        Validates and clamps parameters. May raise to signal a validation failure,
        in which case the caller continues with the unchecked parameters.
        """
        return ParameterDictionary(parameters)

    @abstractmethod
    def draw(self, parameters: ParameterDictionary, layout: "LayoutDatabase") -> Optional[str]:
        """
        Draws geometry for `parameters` into `layout.edit_cell`.

        Cell generators draw inside the artifact being created and may return None.
        Non-cell generators place their geometry at `layout.cursor` and must return
        the name of the instance they created.
        """
        pass

    def on_parameter_change(self, name: str, parameters: ParameterDictionary) -> ParameterDictionary:
        """Recomputes parameters that depend on `name` after an interactive edit."""
        return parameters

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self.fullname}')"


def parse_gencell_name(gencell_name: str, default_library: str = DEFAULT_LIBRARY) -> Tuple[str, str]:
    """'sky130::nmos' -> ('sky130', 'nmos'); a bare 'nmos' uses the default library."""
    library, sep, gencell_type = gencell_name.rpartition(LIBRARY_SEPARATOR)
    if not sep:
        return default_library, gencell_name
    return library or default_library, gencell_type


class GeneratorRegistry:
    """Per-library mapping of generator type names to generator classes."""

    def __init__(self):
        self._generators: Dict[str, Dict[str, Type[GeneratorBase]]] = {}

    def register(self, library: str, gencell_type: str, cls: Type[GeneratorBase]) -> None:
        types = self._generators.setdefault(library, {})
        if gencell_type in types:
            logger.warning(f"Generator '{library}{LIBRARY_SEPARATOR}{gencell_type}' is being redefined/overwritten.")
        types[gencell_type] = cls

    def unregister(self, library: str, gencell_type: str) -> None:
        self._generators.get(library, {}).pop(gencell_type, None)

    def is_registered(self, library: str, gencell_type: str) -> bool:
        return gencell_type in self._generators.get(library, {})

    def lookup(self, library: str, gencell_type: str) -> GeneratorBase:
        cls = self._generators.get(library, {}).get(gencell_type)
        if cls is None:
            raise GeneratorNotRegisteredError(
                library=library,
                gencell_type=gencell_type,
                details=f"No generator named '{gencell_type}' is registered in library '{library}'.",
                available=self.types(library),
            )
        return cls()

    def libraries(self) -> List[str]:
        return sorted(self._generators)

    def types(self, library: str) -> List[str]:
        return sorted(self._generators.get(library, {}))

    def __contains__(self, gencell_name: str) -> bool:
        return self.is_registered(*parse_gencell_name(gencell_name))


# --- Global Generator Registry and Decorator ---

GENERATOR_REGISTRY = GeneratorRegistry()


def register_generator(gencell_type: str, library: str = DEFAULT_LIBRARY,
                       registry: Optional[GeneratorRegistry] = None):
    """
    A class decorator that registers a generator class, by default in the global
    registry used by the lifecycle manager and the layout assembler.
    """
    target = registry if registry is not None else GENERATOR_REGISTRY

    def decorator(cls: Type[GeneratorBase]):
        if not isinstance(cls, type) or not issubclass(cls, GeneratorBase):
            raise TypeError(f"Class {getattr(cls, '__name__', cls)} must inherit from GeneratorBase.")

        # Enforce the 'defaults' contract at definition time.
        try:
            defaults = cls().defaults()
        except Exception as e:
            raise TypeError(
                f"A failure occurred while attempting to validate the API contract of "
                f"generator class '{cls.__name__}'. Error during call to defaults(): {e}"
            ) from e
        if not isinstance(defaults, Mapping) or not all(isinstance(k, str) and k for k in defaults):
            raise TypeError(
                f"Generator class '{cls.__name__}' violates API contract. "
                f"defaults() must return a mapping with non-empty string keys, but returned: {defaults!r}."
            )

        cls.gencell_type = gencell_type
        cls.library = library
        target.register(library, gencell_type, cls)
        logger.info(f"Registered generator '{library}{LIBRARY_SEPARATOR}{gencell_type}' -> {cls.__name__}")
        return cls
    return decorator
