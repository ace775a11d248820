# src/gencell_core/layout/persistence.py
"""
Saving and loading the layout database as YAML.

The file keeps everything needed to recover generator identity after a reload:
each generated cell's `library`, `gencell` and `parameters` properties, and the
parameters stored on instances drawn by non-cell generators. Parameter mappings
are written in insertion order, since their order feeds the content hash.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import cerberus
import yaml

from ..parameters import ParameterDictionary
from .database import NOT_FOUND_FLAG, PROPERTY_PARAMETERS, Cell, Instance, LayoutDatabase
from .exceptions import LayoutFileError
from .geometry import BBox, Orientation

logger = logging.getLogger(__name__)

LAYOUT_FORMAT_VERSION = 1


class LayoutValidator(cerberus.Validator):
    """Cerberus validator with the uniqueness rule the layout file needs."""

    def _validate_unique_elements_by_key(self, key_for_uniqueness, field, value):
        """
        Validates that all dictionaries in a list have a unique value for a given key.
        The rule's arguments are validated against this schema:
        {'type': 'string'}
        """
        if not isinstance(value, list):
            return
        seen = set()
        duplicates = set()
        for item in value:
            if not isinstance(item, dict):
                continue
            item_key = item.get(key_for_uniqueness)
            if isinstance(item_key, str):
                item_key = item_key.casefold()
            if item_key in seen:
                duplicates.add(item.get(key_for_uniqueness))
            seen.add(item_key)
        if duplicates:
            self._error(field, f"Duplicate values found for key '{key_for_uniqueness}': {sorted(duplicates)}")


_number = {"type": "number"}
_box_rule = {"type": "list", "minlength": 4, "maxlength": 4, "schema": _number}
_point_rule = {"type": "list", "minlength": 2, "maxlength": 2, "schema": _number}
_params_rule = {
    "type": "dict", "nullable": True, "keysrules": {"type": "string", "empty": False},
    "valuesrules": {"type": ["string", "number", "boolean"]},
}

_instance_schema = {
    "name": {"type": "string", "required": True, "empty": False},
    "cell": {"type": "string", "required": True, "empty": False},
    "origin": {**_point_rule, "required": True},
    "orientation": {"type": "string", "allowed": [o.value for o in Orientation], "default": "R0"},
    "array": {
        "type": "dict",
        "schema": {
            "nx": {"type": "integer", "min": 1, "default": 1},
            "ny": {"type": "integer", "min": 1, "default": 1},
            "pitch_x": {"type": "number", "default": 0.0},
            "pitch_y": {"type": "number", "default": 0.0},
        },
    },
    "parameters": _params_rule,
}

_cell_schema = {
    "name": {"type": "string", "required": True, "empty": False},
    "flags": {"type": "list", "schema": {"type": "string"}, "default": []},
    "properties": {"type": "dict", "default": {}},
    "shapes": {
        "type": "list", "default": [],
        "schema": {"type": "dict", "schema": {
            "layer": {"type": "string", "required": True},
            "box": {**_box_rule, "required": True},
        }},
    },
    "labels": {
        "type": "list", "default": [],
        "schema": {"type": "dict", "schema": {
            "text": {"type": "string", "required": True},
            "layer": {"type": "string", "required": True},
            "position": {**_point_rule, "required": True},
            "port": {"type": "integer", "nullable": True, "default": None},
        }},
    },
    "instances": {
        "type": "list", "default": [], "unique_elements_by_key": "name",
        "schema": {"type": "dict", "schema": _instance_schema},
    },
}

_schema = {
    "version": {"type": "integer", "allowed": [LAYOUT_FORMAT_VERSION], "default": LAYOUT_FORMAT_VERSION},
    "top": {"type": "string", "nullable": True, "default": None},
    "cells": {
        "type": "list", "required": True, "unique_elements_by_key": "name",
        "schema": {"type": "dict", "schema": _cell_schema},
    },
}


def _dump_cell(cell: Cell) -> Dict[str, Any]:
    properties = dict(cell.properties)
    if isinstance(properties.get(PROPERTY_PARAMETERS), ParameterDictionary):
        properties[PROPERTY_PARAMETERS] = properties[PROPERTY_PARAMETERS].to_dict()
    return {
        "name": cell.name,
        "flags": sorted(cell.flags),
        "properties": properties,
        "shapes": [{"layer": s.layer, "box": s.box.as_list()} for s in cell.shapes],
        "labels": [
            {"text": lab.text, "layer": lab.layer, "position": list(lab.position), "port": lab.port}
            for lab in cell.labels
        ],
        "instances": [_dump_instance(inst) for inst in cell.instances.values()],
    }


def _dump_instance(instance: Instance) -> Dict[str, Any]:
    entry = {
        "name": instance.name,
        "cell": instance.cell_name,
        "origin": [float(instance.origin[0]), float(instance.origin[1])],
        "orientation": instance.orientation.value,
        "array": {"nx": instance.nx, "ny": instance.ny, "pitch_x": instance.pitch_x, "pitch_y": instance.pitch_y},
    }
    if instance.parameters is not None:
        entry["parameters"] = instance.parameters.to_dict()
    return entry


def save_layout(layout: LayoutDatabase, path: Union[str, Path], top: Optional[str] = None) -> Path:
    """
    Writes the layout to a YAML file. With `top`, only that cell and the cells it
    instantiates (directly or indirectly) are written.
    """
    target = Path(path)
    if top is None:
        cells = layout.cells
    else:
        names = [layout.get_cell(top).name] + layout.descendants(top)
        cells = [layout.get_cell(n) for n in names]

    document = {
        "version": LAYOUT_FORMAT_VERSION,
        "top": layout.get_cell(top).name if top else None,
        "cells": [_dump_cell(c) for c in cells],
    }
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as f:
        yaml.safe_dump(document, f, sort_keys=False, default_flow_style=None)
    logger.info(f"Saved {len(cells)} cell(s) to '{target}'.")
    return target


def _read_document(source: Path) -> Dict[str, Any]:
    if not source.is_file():
        raise LayoutFileError(file_path=source, details=f"Layout file not found at path: {source}")
    try:
        with source.open("r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except PermissionError as e:
        raise LayoutFileError(file_path=source, details=f"Permission denied when trying to read file: {e}") from e
    except yaml.YAMLError as e:
        raise LayoutFileError(file_path=source, details=f"Invalid YAML syntax: {e}") from e
    if not isinstance(content, dict):
        raise LayoutFileError(file_path=source, details="The root of the layout file must be a mapping.")
    return content


def load_layout(path: Union[str, Path], layout: Optional[LayoutDatabase] = None) -> LayoutDatabase:
    """
    Reads a YAML layout file into `layout` (a new database when omitted).

    Instances that reference a cell the file does not define get an empty
    placeholder cell flagged `not-found`, which the assembler later purges.
    """
    source = Path(path)
    content = _read_document(source)
    validator = LayoutValidator(_schema)
    if not validator.validate(content):
        raise LayoutFileError(file_path=source, details="The file does not match the layout schema.",
                              errors=validator.errors)
    document = validator.document
    cell_entries: List[Dict[str, Any]] = document["cells"]

    top_name = document.get("top") or (cell_entries[0]["name"] if cell_entries else None)
    if layout is None:
        layout = LayoutDatabase(top_cell=top_name) if top_name else LayoutDatabase()

    with layout.suspended():
        for entry in cell_entries:
            cell = layout.find_cell(entry["name"])
            if cell is None:
                cell = layout.create_cell(entry["name"])
            elif cell.shapes or cell.instances or cell.labels:
                raise LayoutFileError(file_path=source,
                                      details=f"Cell '{entry['name']}' already exists in the target layout.")
            cell.flags = set(entry.get("flags") or [])
            cell.properties = dict(entry.get("properties") or {})
            if isinstance(cell.properties.get(PROPERTY_PARAMETERS), dict):
                cell.properties[PROPERTY_PARAMETERS] = ParameterDictionary(cell.properties[PROPERTY_PARAMETERS])
            with layout.editing(cell.name):
                for shape in entry.get("shapes") or []:
                    layout.paint(shape["layer"], BBox(*shape["box"]))
                for lab in entry.get("labels") or []:
                    layout.label(lab["text"], lab["layer"], tuple(lab["position"]), port=lab.get("port"))

        for entry in cell_entries:
            for inst in entry.get("instances") or []:
                if not layout.cell_exists(inst["cell"]):
                    logger.warning(f"Cell '{inst['cell']}' used by '{entry['name']}' is not defined; "
                                   f"creating a placeholder.")
                    layout.create_cell(inst["cell"], flags=(NOT_FOUND_FLAG,))
                array = inst.get("array") or {}
                parameters = inst.get("parameters")
                layout.insert_instance(Instance(
                    name=inst["name"],
                    cell_name=inst["cell"],
                    parent=entry["name"],
                    origin=(float(inst["origin"][0]), float(inst["origin"][1])),
                    orientation=Orientation(inst.get("orientation") or "R0"),
                    nx=array.get("nx", 1),
                    ny=array.get("ny", 1),
                    pitch_x=float(array.get("pitch_x", 0.0)),
                    pitch_y=float(array.get("pitch_y", 0.0)),
                    parameters=ParameterDictionary(parameters) if parameters is not None else None,
                ))

    logger.info(f"Loaded {len(cell_entries)} cell(s) from '{source}'.")
    return layout
