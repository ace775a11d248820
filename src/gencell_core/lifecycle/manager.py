# src/gencell_core/lifecycle/manager.py
"""
The gencell lifecycle manager.

Every generated artifact is a cell named `<type>_<hash>`, where the hash is
computed from the checked parameter values (see `hashing`). The manager keeps
"same parameters, same artifact" true while parameters are edited:

- create: merge the request over the generator defaults, check, hash. An
  existing artifact of that name is reused; otherwise a new cell is created,
  drawn and tagged with its library, type and parameters. An instance of it is
  placed at the layout cursor.
- change: re-derive the parameters of an instance's artifact, merge the edit,
  check, hash. The same name means nothing to do. A different name swaps the
  instance over to the (possibly new) artifact, and the old artifact is
  deleted once no instance references it.

Non-cell generators (defaults containing `nocell`) have no artifact: they draw
at the placement site on every create and change.

All public entry points are serialized by one re-entrant lock and run with
layout change notifications suspended, so observers never see a half-finished
create or change.
"""
import logging
import re
import threading
from contextlib import contextmanager
from typing import Any, Iterator, List, Mapping, Optional, Tuple

from ..config import ToolkitConfig
from ..errors import DiagnosableError, GencellOperationError
from ..generators.base import GENERATOR_REGISTRY, GeneratorBase, GeneratorRegistry, parse_gencell_name
from ..generators.exceptions import GeneratorCapabilityError
from ..hashing import artifact_name, get_gencell_name
from ..layout.database import (
    PROPERTY_GENCELL, PROPERTY_LIBRARY, PROPERTY_PARAMETERS, Instance, LayoutDatabase,
)
from ..layout.exceptions import LayoutError
from ..layout.geometry import Orientation
from ..parameters import GENCELL_KEY, ParameterDictionary, merge_parameters
from .exceptions import GencellSelectionError
from .requests import GencellAction, GencellRequest, GencellResponse, GencellResult

logger = logging.getLogger(__name__)

# Instances of cells without provenance properties are recognized by name.
LEGACY_GENCELL_NAME_REGEX = re.compile(r"^(.*)_[0-9]*$")

# Array state of a non-cell instance, as parameter names.
ARRAY_PARAMETER_KEYS = ("nx", "ny", "pitchx", "pitchy")


class GencellManager:
    """Creates, reuses, changes and retires generated artifacts in a LayoutDatabase."""

    def __init__(self, layout: LayoutDatabase, registry: Optional[GeneratorRegistry] = None,
                 config: Optional[ToolkitConfig] = None):
        self.layout = layout
        self.registry = registry if registry is not None else GENERATOR_REGISTRY
        self.config = config if config is not None else ToolkitConfig()
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Holds the manager lock and batches layout notifications until the block exits."""
        with self._lock, self.layout.suspended():
            yield

    # --- Capability calls ---

    def _call(self, generator: GeneratorBase, capability: str, fallback: Any,
              messages: List[str], *args: Any) -> Any:
        """
        Runs a generator capability. A failure is logged and recorded in
        `messages`, and `fallback` is returned so the operation can go on.
        """
        try:
            return getattr(generator, capability)(*args)
        except Exception as e:
            error = GeneratorCapabilityError(
                library=generator.library,
                gencell_type=generator.gencell_type,
                details=f"{type(e).__name__}: {e}",
                capability=capability,
            )
            logger.error(error.get_diagnostic_report())
            messages.append(str(error))
            return fallback

    def _check(self, generator: GeneratorBase, parameters: ParameterDictionary,
               messages: List[str]) -> ParameterDictionary:
        checked = self._call(generator, "check", parameters, messages, parameters.copy())
        return ParameterDictionary(checked)

    def _convert(self, generator: GeneratorBase, parameters: Mapping[str, Any],
                 messages: List[str]) -> ParameterDictionary:
        raw = ParameterDictionary(parameters)
        return ParameterDictionary(self._call(generator, "convert", raw, messages, raw.copy()))

    # --- Resolution ---

    def defaults(self, gencell_type: str, library: Optional[str] = None,
                 parameters: Optional[Mapping[str, Any]] = None) -> ParameterDictionary:
        """The generator's defaults with `parameters` merged over them."""
        generator = self.registry.lookup(library or self.config.default_library, gencell_type)
        return merge_parameters(generator.defaults(), parameters)

    def _resolve(self, library: str, gencell_type: str,
                 parameters: Optional[Mapping[str, Any]]) -> Tuple[GeneratorBase, ParameterDictionary]:
        """Looks up the generator, following a `gencell` type redirect, and merges its defaults."""
        parameters = ParameterDictionary(parameters)
        if GENCELL_KEY in parameters and parameters[GENCELL_KEY] != gencell_type:
            logger.info(f"Parameter '{GENCELL_KEY}' redirects '{gencell_type}' to '{parameters[GENCELL_KEY]}'.")
            gencell_type = parameters[GENCELL_KEY]
        generator = self.registry.lookup(library, gencell_type)
        return generator, merge_parameters(generator.defaults(), parameters)

    def _ensure_artifact(self, generator: GeneratorBase, parameters: ParameterDictionary,
                         messages: List[str]) -> Tuple[str, bool]:
        """Returns the artifact for checked `parameters` and whether it already existed."""
        name = artifact_name(generator.gencell_type, parameters)
        existing = self.layout.find_cell(name)
        if existing is not None:
            logger.debug(f"Reusing existing artifact '{existing.name}'.")
            return existing.name, True

        cell = self.layout.create_cell(name)
        with self.layout.editing(name):
            self._call(generator, "draw", None, messages, parameters.copy(), self.layout)
        cell.properties[PROPERTY_LIBRARY] = generator.library
        cell.properties[PROPERTY_GENCELL] = generator.gencell_type
        cell.properties[PROPERTY_PARAMETERS] = parameters.copy()
        logger.info(f"Generated artifact '{name}' from {generator.fullname}.")
        return name, False

    def _draw_nocell(self, generator: GeneratorBase, parameters: ParameterDictionary,
                     messages: List[str]) -> Optional[Instance]:
        """Draws a non-cell generator at the cursor; returns the instance it placed."""
        instance_name = self._call(generator, "draw", None, messages, parameters.copy(), self.layout)
        if not instance_name:
            messages.append(f"{generator.fullname}: draw did not return an instance name.")
            logger.error(messages[-1])
            return None
        instance = self.layout.get_instance(instance_name)
        instance.parameters = parameters.copy()
        unit_cell = self.layout.get_cell(instance.cell_name)
        unit_cell.properties.setdefault(PROPERTY_LIBRARY, generator.library)
        unit_cell.properties.setdefault(PROPERTY_GENCELL, generator.gencell_type)
        return instance

    def _retire_if_unused(self, cell_name: str) -> Optional[str]:
        cell = self.layout.find_cell(cell_name)
        if cell is None or self.layout.parents(cell_name):
            return None
        try:
            self.layout.delete_cell(cell_name)
        except LayoutError as e:
            logger.warning(f"Artifact '{cell_name}' is unused but was kept: {e}")
            return None
        logger.info(f"Retired artifact '{cell.name}'; it has no remaining instances.")
        return cell.name

    def _name_instance(self, instance: Instance, instance_name: Optional[str]) -> Instance:
        if not instance_name or instance_name == instance.name:
            return instance
        if self.layout.find_instance(instance_name, instance.parent) is not None:
            logger.warning(f"Instance name '{instance_name}' is taken; keeping '{instance.name}'.")
            return instance
        return self.layout.rename_instance(instance.name, instance_name, instance.parent)

    # --- Create ---

    def create(
        self,
        gencell_type: str,
        library: Optional[str] = None,
        parameters: Optional[Mapping[str, Any]] = None,
        orientation: Orientation = Orientation.R0,
        instance_name: Optional[str] = None,
    ) -> GencellResult:
        """
        Places an instance of the artifact for `parameters` at the layout cursor,
        generating the artifact first if it does not exist yet.

        Raises:
            GeneratorNotRegisteredError: before anything is changed, if the
                (possibly redirected) generator type is unknown.
        """
        library = library or self.config.default_library
        messages: List[str] = []
        with self.transaction():
            generator, merged = self._resolve(library, gencell_type, parameters)
            checked = self._check(generator, merged, messages).without(GENCELL_KEY)

            if generator.is_nocell:
                instance = self._draw_nocell(generator, checked, messages)
                if instance is not None:
                    instance = self._name_instance(instance, instance_name)
                    self.layout.select(instance.name, instance.parent)
                return GencellResult(
                    action=GencellAction.CREATED, library=library, gencell_type=generator.gencell_type,
                    parameters=checked, instance_name=instance.name if instance else None, messages=messages,
                )

            name, reused = self._ensure_artifact(generator, checked, messages)
            instance = self.layout.place_instance(name, orientation=orientation)
            instance = self._name_instance(instance, instance_name)
            self.layout.select(instance.name, instance.parent)
            logger.info(f"Created instance '{instance.name}' of '{name}'.")
            return GencellResult(
                action=GencellAction.CREATED, library=library, gencell_type=generator.gencell_type,
                parameters=checked, instance_name=instance.name, artifact_name=name,
                reused=reused, messages=messages,
            )

    def makecell(self, gencell_fullname: str, parameters: Optional[Mapping[str, Any]] = None) -> str:
        """Generates (or finds) the artifact for `parameters` and returns its name without placing it."""
        library, gencell_type = parse_gencell_name(gencell_fullname, self.config.default_library)
        messages: List[str] = []
        with self.transaction():
            generator, merged = self._resolve(library, gencell_type, parameters)
            if generator.is_nocell:
                raise GencellOperationError(
                    f"Generator '{generator.fullname}' is a non-cell generator and has no artifact to make."
                )
            checked = self._check(generator, merged, messages).without(GENCELL_KEY)
            name, _ = self._ensure_artifact(generator, checked, messages)
        return name

    # --- Describe ---

    def describe(self, instance_name: str, parent: Optional[str] = None) -> Tuple[str, str, ParameterDictionary]:
        """
        Recovers (library, gencell type, stored parameters) of an instance from the
        provenance properties of the cell it references. Cells without properties
        fall back to a type derived from names like `res_0`.
        """
        instance = self.layout.get_instance(instance_name, parent)
        cell = self.layout.get_cell(instance.cell_name)
        library = cell.properties.get(PROPERTY_LIBRARY) or self.config.default_library
        gencell_type = cell.properties.get(PROPERTY_GENCELL)
        if not gencell_type:
            match = LEGACY_GENCELL_NAME_REGEX.match(cell.name)
            if not match:
                raise GencellSelectionError(
                    f"Instance '{instance_name}' references '{cell.name}', which is not a generated cell.",
                    instance_name=instance_name,
                )
            gencell_type = match.group(1)
        if instance.parameters is not None:
            stored = instance.parameters.copy()
        else:
            stored = ParameterDictionary(cell.properties.get(PROPERTY_PARAMETERS))
        return library, gencell_type, stored

    def _base_parameters(self, instance: Instance, generator: GeneratorBase,
                         stored: ParameterDictionary) -> ParameterDictionary:
        """Defaults merged with what the instance was generated from, plus live array state for non-cell instances."""
        base = merge_parameters(generator.defaults(), stored)
        if generator.is_nocell:
            for key, value in zip(ARRAY_PARAMETER_KEYS,
                                  (instance.nx, instance.ny, instance.pitch_x, instance.pitch_y)):
                base[key] = f"{value:g}" if isinstance(value, float) else value
        return base

    # --- Change ---

    def change(
        self,
        instance_name: str,
        parameters: Optional[Mapping[str, Any]],
        gencell_type: Optional[str] = None,
        library: Optional[str] = None,
    ) -> GencellResult:
        """
        Re-points an instance at the artifact for its edited parameters.

        Raises:
            InstanceNotFoundError: if the edit cell has no such instance.
            GeneratorNotRegisteredError: if the generator type is unknown.
        """
        messages: List[str] = []
        with self.transaction():
            instance = self.layout.get_instance(instance_name)
            old_library, old_type, stored = self.describe(instance_name)
            library = library or old_library
            gencell_type = gencell_type or old_type

            generator = self.registry.lookup(library, gencell_type)
            merged = merge_parameters(self._base_parameters(instance, generator, stored), parameters)
            if GENCELL_KEY in merged and merged[GENCELL_KEY] != gencell_type:
                generator, merged = self._resolve(library, gencell_type, merged)
            checked = self._check(generator, merged, messages).without(GENCELL_KEY)

            if generator.is_nocell:
                return self._change_nocell(instance, generator, library, checked, messages)

            old_artifact = instance.cell_name
            new_artifact = artifact_name(generator.gencell_type, checked)
            if new_artifact.casefold() == old_artifact.casefold():
                logger.info(f"Parameters of '{instance_name}' still resolve to '{old_artifact}'; nothing to do.")
                return GencellResult(
                    action=GencellAction.UNCHANGED, library=library, gencell_type=generator.gencell_type,
                    parameters=checked, instance_name=instance_name, artifact_name=old_artifact,
                    reused=True, messages=messages,
                )

            parent = instance.parent
            orientation = instance.orientation
            lower_left = self.layout.instance_bbox(instance).lower_left
            self.layout.delete_instance(instance_name, parent)

            name, reused = self._ensure_artifact(generator, checked, messages)
            with self.layout.editing(parent):
                replacement = self.layout.place_instance(name, at=lower_left, orientation=orientation)
            # Names derived from the old artifact follow the new one; chosen names stay.
            if not instance_name.startswith(old_artifact):
                replacement = self.layout.rename_instance(replacement.name, instance_name, parent)
            retired = self._retire_if_unused(old_artifact)
            self.layout.select(replacement.name, parent)

            logger.info(f"Changed '{instance_name}' from '{old_artifact}' to '{name}' as '{replacement.name}'.")
            return GencellResult(
                action=GencellAction.CHANGED, library=library, gencell_type=generator.gencell_type,
                parameters=checked, instance_name=replacement.name, artifact_name=name,
                reused=reused, retired=retired, messages=messages,
            )

    def _change_nocell(self, instance: Instance, generator: GeneratorBase, library: str,
                       parameters: ParameterDictionary, messages: List[str]) -> GencellResult:
        parent = instance.parent
        lower_left = self.layout.instance_bbox(instance).lower_left
        self.layout.delete_instance(instance.name, parent)

        saved_cursor = self.layout.cursor
        self.layout.cursor = lower_left
        try:
            with self.layout.editing(parent):
                redrawn = self._draw_nocell(generator, parameters, messages)
        finally:
            self.layout.cursor = saved_cursor

        new_name = None
        if redrawn is not None:
            redrawn = self.layout.rename_instance(redrawn.name, instance.name, parent)
            self.layout.select(redrawn.name, parent)
            new_name = redrawn.name
        logger.info(f"Redrew non-cell instance '{instance.name}' with {generator.fullname}.")
        return GencellResult(
            action=GencellAction.CHANGED, library=library, gencell_type=generator.gencell_type,
            parameters=parameters, instance_name=new_name, messages=messages,
        )

    # --- Request entry points ---

    def gencell(self, request: GencellRequest) -> GencellResponse:
        """
        The single entry point for interactive front ends and importers.

        | gencell_name | instance_name | parameters | outcome                        |
        |--------------|---------------|------------|--------------------------------|
        | none         | -             | -          | edit dialog for the selection  |
        | given        | none          | any        | new-device dialog              |
        | given        | existing      | empty      | edit dialog                    |
        | given        | existing      | given      | change                         |
        | given        | new           | any        | create, named instance_name    |

        Raises:
            GencellSelectionError: no gencell_name and nothing selected.
            GencellOperationError: the generator or instance could not be resolved.
        """
        try:
            with self._lock:
                return self._dispatch(request)
        except DiagnosableError as e:
            logger.error(f"Gencell request failed: {e}")
            raise GencellOperationError(e.get_diagnostic_report()) from e

    def _dispatch(self, request: GencellRequest) -> GencellResponse:
        if not request.gencell_name:
            selected = self.layout.selection
            if not selected:
                raise GencellSelectionError("No gencell device is selected.")
            return self._edit_dialog(selected[0])

        library, gencell_type = parse_gencell_name(request.gencell_name, self.config.default_library)
        generator = self.registry.lookup(library, gencell_type)
        messages: List[str] = []

        if request.instance_name is None:
            parameters = request.parameters
            if request.spice:
                parameters = self._convert(generator, parameters, messages)
            parameters = merge_parameters(generator.defaults(), parameters)
            return GencellResponse(
                action=GencellAction.DIALOG_NEW, library=library, gencell_type=gencell_type,
                parameters=parameters, dialog=self._call(generator, "dialog", [], messages, parameters),
                messages=messages,
            )

        instance = self.layout.find_instance(request.instance_name)
        parameters = request.parameters
        if request.spice and parameters:
            parameters = self._convert(generator, parameters, messages)

        if instance is None:
            result = self.create(gencell_type, library, parameters, instance_name=request.instance_name)
        elif not request.parameters:
            self.layout.select(instance.name, instance.parent)
            return self._edit_dialog(instance)
        else:
            result = self.change(request.instance_name, parameters, gencell_type, library)
        result.messages[:0] = messages
        return GencellResponse.from_result(result)

    def _edit_dialog(self, instance: Instance) -> GencellResponse:
        library, gencell_type, stored = self.describe(instance.name, instance.parent)
        generator = self.registry.lookup(library, gencell_type)
        parameters = self._base_parameters(instance, generator, stored)
        messages: List[str] = []
        return GencellResponse(
            action=GencellAction.DIALOG_EDIT, library=library, gencell_type=gencell_type,
            parameters=parameters, artifact_name=instance.cell_name, instance_name=instance.name,
            dialog=self._call(generator, "dialog", [], messages, parameters), messages=messages,
        )

    def update(self, request: GencellRequest) -> GencellResponse:
        """
        Previews edited dialog values without touching the layout: defaults merged
        under the edit, the type redirect followed, the generator's dependency hook
        run for `changed_parameter`, then `check`. The response names the artifact
        the values would resolve to.
        """
        try:
            with self._lock:
                return self._preview(request)
        except DiagnosableError as e:
            logger.error(f"Gencell preview failed: {e}")
            raise GencellOperationError(e.get_diagnostic_report()) from e

    def _preview(self, request: GencellRequest) -> GencellResponse:
        if request.gencell_name:
            library, gencell_type = parse_gencell_name(request.gencell_name, self.config.default_library)
        elif request.instance_name:
            library, gencell_type, _ = self.describe(request.instance_name)
        else:
            raise GencellSelectionError("A preview needs a generator name or an instance name.")

        messages: List[str] = []
        generator, parameters = self._resolve(library, gencell_type, request.parameters)
        if request.changed_parameter:
            parameters = ParameterDictionary(self._call(
                generator, "on_parameter_change", parameters, messages, request.changed_parameter, parameters.copy()
            ))
        checked = self._check(generator, parameters, messages)
        hashed = checked.without(GENCELL_KEY)
        return GencellResponse(
            action=GencellAction.PREVIEW, library=library, gencell_type=generator.gencell_type,
            parameters=checked,
            artifact_name=None if generator.is_nocell else artifact_name(generator.gencell_type, hashed),
            instance_name=request.instance_name,
            dialog=self._call(generator, "dialog", [], messages, checked),
            messages=messages,
        )

    def unique_name(self, gencell_type: str) -> str:
        """A random, currently unused `<type>_<suffix>` name (legacy naming)."""
        with self._lock:
            return get_gencell_name(gencell_type, self.layout.cell_exists)
