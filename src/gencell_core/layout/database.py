# src/gencell_core/layout/database.py
"""
The in-memory layout database: cells, their shapes and labels, and the instances
that place one cell inside another.

The database plays the part of the host layout editor for the toolkit. It owns
the global artifact namespace and the instance-to-cell reference graph. Cell
names are unique case-insensitively, since they are also written into
case-insensitive SPICE netlists.

Reference counts are not stored. The hierarchy is a `networkx.MultiDiGraph`
with one edge per instance, from the containing cell to the referenced cell;
the instances referencing a cell are its in-edges.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple

import networkx as nx

from ..parameters import ParameterDictionary
from .exceptions import CellNotFoundError, DuplicateNameError, InstanceNotFoundError, LayoutError
from .geometry import BBox, Orientation, Point, bbox_union, transform_bbox

logger = logging.getLogger(__name__)

DEFAULT_TOP_CELL = "(UNNAMED)"

#: Flag set on placeholder cells created for references that could not be resolved.
NOT_FOUND_FLAG = "not-found"

# Cell property keys recording how a generated cell was made.
PROPERTY_LIBRARY = "library"
PROPERTY_GENCELL = "gencell"
PROPERTY_PARAMETERS = "parameters"

LayoutEvent = Tuple[str, str]


@dataclass
class Shape:
    layer: str
    box: BBox


@dataclass
class Label:
    text: str
    layer: str
    position: Point
    port: Optional[int] = None


@dataclass
class Instance:
    """A placement of `cell_name` inside the cell `parent`."""
    name: str
    cell_name: str
    parent: str
    origin: Point = (0.0, 0.0)
    orientation: Orientation = Orientation.R0
    nx: int = 1
    ny: int = 1
    pitch_x: float = 0.0
    pitch_y: float = 0.0
    # Only set for instances drawn directly by a non-cell generator.
    parameters: Optional[ParameterDictionary] = None

    @property
    def is_array(self) -> bool:
        return self.nx > 1 or self.ny > 1


@dataclass
class Cell:
    name: str
    shapes: List[Shape] = field(default_factory=list)
    labels: List[Label] = field(default_factory=list)
    instances: Dict[str, Instance] = field(default_factory=dict)
    properties: Dict[str, Any] = field(default_factory=dict)
    flags: Set[str] = field(default_factory=set)

    @property
    def is_placeholder(self) -> bool:
        return NOT_FOUND_FLAG in self.flags

    @property
    def ports(self) -> List[Label]:
        return sorted((lab for lab in self.labels if lab.port is not None), key=lambda lab: lab.port)


def _key(name: str) -> str:
    return name.casefold()


class LayoutDatabase:
    """
    Cells keyed case-insensitively, an edit stack naming the cell new geometry
    and instances go into, a cursor point, a selection, and change observers.
    """

    def __init__(self, top_cell: str = DEFAULT_TOP_CELL):
        self._cells: Dict[str, Cell] = {}
        self._hierarchy = nx.MultiDiGraph()
        self._edit_stack: List[str] = []
        self._selection: List[Tuple[str, str]] = []
        self._observers: List[Callable[[List[LayoutEvent]], None]] = []
        self._suspend_depth = 0
        self._pending_events: List[LayoutEvent] = []
        self.cursor: Point = (0.0, 0.0)
        self.load(top_cell)

    # --- Cells ---

    @property
    def cells(self) -> List[Cell]:
        return list(self._cells.values())

    def cell_exists(self, name: str) -> bool:
        return _key(name) in self._cells

    def find_cell(self, name: str) -> Optional[Cell]:
        return self._cells.get(_key(name))

    def get_cell(self, name: str) -> Cell:
        cell = self.find_cell(name)
        if cell is None:
            raise CellNotFoundError(details=f"Cell '{name}' does not exist.", cell_name=name)
        return cell

    def create_cell(self, name: str, flags: Tuple[str, ...] = ()) -> Cell:
        if not name:
            raise LayoutError(details="Cell names must be non-empty.")
        if self.cell_exists(name):
            existing = self.get_cell(name).name
            raise DuplicateNameError(details=f"Cell '{name}' already exists as '{existing}'.", name=name)
        cell = Cell(name=name, flags=set(flags))
        self._cells[_key(name)] = cell
        self._hierarchy.add_node(_key(name))
        logger.debug(f"Created cell '{name}'.")
        self._notify("create_cell", name)
        return cell

    def delete_cell(self, name: str) -> None:
        """
        Deletes a cell definition and the instances it contains. The cell must
        not be referenced by any instance, nor be on the edit stack.
        """
        cell = self.get_cell(name)
        parents = self.parents(name)
        if parents:
            raise LayoutError(details=f"Cell '{cell.name}' is still used in: {parents}.")
        if _key(name) in self._edit_stack:
            raise LayoutError(details=f"Cell '{cell.name}' is being edited and cannot be deleted.")
        self._selection = [(p, i) for p, i in self._selection if p != _key(name)]
        self._hierarchy.remove_node(_key(name))
        del self._cells[_key(name)]
        logger.debug(f"Deleted cell '{cell.name}'.")
        self._notify("delete_cell", cell.name)

    def load(self, name: str) -> Cell:
        """Makes `name` the root of the edit stack, creating the cell if needed."""
        cell = self.find_cell(name) or self.create_cell(name)
        self._edit_stack = [_key(name)]
        return cell

    @property
    def edit_cell(self) -> Cell:
        return self._cells[self._edit_stack[-1]]

    @contextmanager
    def editing(self, name: str) -> Iterator[Cell]:
        """Temporarily directs painting and placement into another cell."""
        cell = self.get_cell(name)
        self._edit_stack.append(_key(name))
        try:
            yield cell
        finally:
            self._edit_stack.pop()

    # --- Hierarchy ---

    def parents(self, name: str) -> List[str]:
        """Names of the cells that contain at least one instance of `name`."""
        if not self.cell_exists(name):
            return []
        return [self._cells[k].name for k in self._hierarchy.predecessors(_key(name))]

    def children(self, name: str) -> List[str]:
        return [self._cells[k].name for k in self._hierarchy.successors(_key(self.get_cell(name).name))]

    def descendants(self, name: str) -> List[str]:
        return [self._cells[k].name for k in nx.descendants(self._hierarchy, _key(self.get_cell(name).name))]

    def instances_of(self, name: str) -> List[Instance]:
        """Every instance, in any cell, that references `name`."""
        if not self.cell_exists(name):
            return []
        found = []
        for parent_key, _, inst_name in self._hierarchy.in_edges(_key(name), keys=True):
            found.append(self._cells[parent_key].instances[inst_name])
        return found

    # --- Instances ---

    def _parent_cell(self, parent: Optional[str]) -> Cell:
        return self.edit_cell if parent is None else self.get_cell(parent)

    def find_instance(self, name: str, parent: Optional[str] = None) -> Optional[Instance]:
        return self._parent_cell(parent).instances.get(name)

    def get_instance(self, name: str, parent: Optional[str] = None) -> Instance:
        cell = self._parent_cell(parent)
        instance = cell.instances.get(name)
        if instance is None:
            raise InstanceNotFoundError(
                details=f"Cell '{cell.name}' has no instance named '{name}'.",
                instance_name=name, parent=cell.name,
            )
        return instance

    def default_instance_name(self, cell_name: str, parent: Optional[str] = None) -> str:
        """`<cell>_<n>` with the lowest free index n."""
        taken = self._parent_cell(parent).instances
        index = 0
        while f"{cell_name}_{index}" in taken:
            index += 1
        return f"{cell_name}_{index}"

    def place_instance(
        self,
        cell_name: str,
        at: Optional[Point] = None,
        orientation: Orientation = Orientation.R0,
        name: Optional[str] = None,
        parent: Optional[str] = None,
        nx_count: int = 1,
        ny_count: int = 1,
        pitch_x: Optional[float] = None,
        pitch_y: Optional[float] = None,
    ) -> Instance:
        """
        Places `cell_name` so that the lower-left corner of the placed bounding
        box lands on `at` (the cursor when omitted).
        """
        child = self.get_cell(cell_name)
        host = self._parent_cell(parent)
        if name is None:
            name = self.default_instance_name(child.name, host.name)

        at = self.cursor if at is None else at
        origin = at
        local_bbox = self.cell_bbox(child.name)
        if local_bbox is not None:
            placed = transform_bbox(local_bbox, orientation)
            origin = (at[0] - placed.x1, at[1] - placed.y1)
            pitch_x = placed.width if pitch_x is None else pitch_x
            pitch_y = placed.height if pitch_y is None else pitch_y

        instance = Instance(
            name=name, cell_name=child.name, parent=host.name, origin=origin,
            orientation=orientation, nx=max(1, nx_count), ny=max(1, ny_count),
            pitch_x=pitch_x or 0.0, pitch_y=pitch_y or 0.0,
        )
        return self.insert_instance(instance)

    def insert_instance(self, instance: Instance) -> Instance:
        """Adds a fully specified instance to its parent cell, origin taken as given."""
        child = self.get_cell(instance.cell_name)
        host = self.get_cell(instance.parent)
        if child is host or nx.has_path(self._hierarchy, _key(child.name), _key(host.name)):
            raise LayoutError(details=f"Placing '{child.name}' inside '{host.name}' would create a cycle.")
        if instance.name in host.instances:
            raise DuplicateNameError(
                details=f"Cell '{host.name}' already has an instance '{instance.name}'.", name=instance.name
            )
        instance.cell_name, instance.parent = child.name, host.name
        host.instances[instance.name] = instance
        self._hierarchy.add_edge(_key(host.name), _key(child.name), key=instance.name)
        logger.debug(f"Placed '{child.name}' as '{instance.name}' in '{host.name}' at {instance.origin}.")
        self._notify("place_instance", instance.name)
        return instance

    def delete_instance(self, name: str, parent: Optional[str] = None) -> Instance:
        instance = self.get_instance(name, parent)
        host = self.get_cell(instance.parent)
        del host.instances[name]
        self._hierarchy.remove_edge(_key(host.name), _key(instance.cell_name), key=name)
        self._selection = [(p, i) for p, i in self._selection if (p, i) != (_key(host.name), name)]
        logger.debug(f"Deleted instance '{name}' of '{instance.cell_name}' from '{host.name}'.")
        self._notify("delete_instance", name)
        return instance

    def rename_instance(self, name: str, new_name: str, parent: Optional[str] = None) -> Instance:
        instance = self.get_instance(name, parent)
        if new_name == name:
            return instance
        host = self.get_cell(instance.parent)
        if new_name in host.instances:
            raise DuplicateNameError(details=f"Cell '{host.name}' already has an instance '{new_name}'.", name=new_name)
        # Rebuild the mapping so the instance keeps its position in placement order.
        host.instances = {(new_name if k == name else k): v for k, v in host.instances.items()}
        instance.name = new_name
        self._hierarchy.remove_edge(_key(host.name), _key(instance.cell_name), key=name)
        self._hierarchy.add_edge(_key(host.name), _key(instance.cell_name), key=new_name)
        self._selection = [(p, new_name if (p, i) == (_key(host.name), name) else i) for p, i in self._selection]
        self._notify("rename_instance", new_name)
        return instance

    def set_array(self, name: str, nx_count: int, ny_count: int,
                  pitch_x: Optional[float] = None, pitch_y: Optional[float] = None,
                  parent: Optional[str] = None) -> Instance:
        instance = self.get_instance(name, parent)
        local_bbox = self.cell_bbox(instance.cell_name)
        placed = transform_bbox(local_bbox, instance.orientation) if local_bbox else None
        instance.nx = max(1, nx_count)
        instance.ny = max(1, ny_count)
        if pitch_x is not None:
            instance.pitch_x = pitch_x
        elif placed is not None and not instance.pitch_x:
            instance.pitch_x = placed.width
        if pitch_y is not None:
            instance.pitch_y = pitch_y
        elif placed is not None and not instance.pitch_y:
            instance.pitch_y = placed.height
        self._notify("array_instance", name)
        return instance

    # --- Geometry ---

    def paint(self, layer: str, box: BBox) -> Shape:
        shape = Shape(layer=layer, box=box)
        self.edit_cell.shapes.append(shape)
        self._notify("paint", self.edit_cell.name)
        return shape

    def label(self, text: str, layer: str, position: Point, port: Optional[int] = None) -> Label:
        label = Label(text=text, layer=layer, position=position, port=port)
        self.edit_cell.labels.append(label)
        self._notify("label", self.edit_cell.name)
        return label

    def erase_ports(self) -> int:
        """
        Removes the port labels of the edit cell and the shapes on their layer
        that lie under them. Returns the number of ports removed.
        """
        cell = self.edit_cell
        ports = [lab for lab in cell.labels if lab.port is not None]
        if not ports:
            return 0
        cell.labels = [lab for lab in cell.labels if lab.port is None]
        cell.shapes = [
            s for s in cell.shapes
            if not any(s.layer == lab.layer and s.box.contains(lab.position) for lab in ports)
        ]
        self._notify("erase_ports", cell.name)
        return len(ports)

    def cell_bbox(self, name: str) -> Optional[BBox]:
        """Bounding box of a cell's shapes and instances in its own coordinates."""
        cell = self.get_cell(name)
        boxes = [s.box for s in cell.shapes]
        boxes.extend(self.instance_bbox(inst) for inst in cell.instances.values())
        return bbox_union(boxes)

    def instance_bbox(self, instance: Instance) -> BBox:
        """Bounding box of a placed instance, including all array elements."""
        local = self.cell_bbox(instance.cell_name)
        if local is None:
            return BBox(instance.origin[0], instance.origin[1], instance.origin[0], instance.origin[1])
        first = transform_bbox(local, instance.orientation, instance.origin)
        last = first.translated(instance.pitch_x * (instance.nx - 1), instance.pitch_y * (instance.ny - 1))
        return first.union(last)

    # --- Selection ---

    def select(self, name: str, parent: Optional[str] = None) -> Instance:
        instance = self.get_instance(name, parent)
        self._selection = [(_key(instance.parent), instance.name)]
        return instance

    def clear_selection(self) -> None:
        self._selection = []

    @property
    def selection(self) -> List[Instance]:
        selected = []
        for parent_key, inst_name in self._selection:
            cell = self._cells.get(parent_key)
            if cell and inst_name in cell.instances:
                selected.append(cell.instances[inst_name])
        return selected

    # --- Change observation ---

    def add_observer(self, callback: Callable[[List[LayoutEvent]], None]) -> None:
        """Registers a callback that receives batches of (event, name) tuples."""
        self._observers.append(callback)

    @contextmanager
    def suspended(self) -> Iterator["LayoutDatabase"]:
        """
        Holds back change notifications until the outermost suspension ends, then
        delivers everything that happened as one batch. Re-entrant.
        """
        self._suspend_depth += 1
        try:
            yield self
        finally:
            self._suspend_depth -= 1
            if self._suspend_depth == 0 and self._pending_events:
                events, self._pending_events = self._pending_events, []
                self._deliver(events)

    def _notify(self, event: str, name: str) -> None:
        if self._suspend_depth:
            self._pending_events.append((event, name))
        else:
            self._deliver([(event, name)])

    def _deliver(self, events: List[LayoutEvent]) -> None:
        for callback in self._observers:
            callback(events)
