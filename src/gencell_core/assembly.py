# src/gencell_core/assembly.py
"""
Seeds layouts from a SPICE or CDL netlist.

For each subcircuit the assembler opens (or creates) a cell of the same name,
paints one labelled pin per subcircuit pin down the left edge, and then places
one instance per device in a row, left to right. Devices whose type has a
registered generator go through the gencell lifecycle (and so reuse artifacts
by parameter hash); all others are placed as plain references to a cell of the
device type's name, arrayed vertically by the device multiplicity.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from .config import ToolkitConfig
from .errors import GencellOperationError, NetlistImportError
from .generators.base import LIBRARY_SEPARATOR
from .layout.database import NOT_FOUND_FLAG, Cell, LayoutDatabase
from .layout.exceptions import LayoutError
from .layout.geometry import BBox, transform_bbox
from .layout.persistence import save_layout
from .lifecycle.manager import GencellManager
from .lifecycle.requests import GencellRequest
from .parameters import ParameterDictionary
from .parser.exceptions import ParsingError
from .parser.parser import NetlistParser
from .parser.raw_data import DeviceRecord, ParsedNetlist, SubcircuitRecord

logger = logging.getLogger(__name__)


@dataclass
class AssemblyResult:
    """Outcome of importing one netlist."""
    netlist: ParsedNetlist
    # Cells assembled, in netlist order.
    cells: List[str] = field(default_factory=list)
    # Instance names placed through a generator, and as plain cell references.
    generated: List[str] = field(default_factory=list)
    fallbacks: List[str] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
    saved_files: List[Path] = field(default_factory=list)

    @property
    def issues(self):
        return self.netlist.issues


class LayoutAssembler:
    """Turns parsed subcircuit records into cells of the manager's layout database."""

    def __init__(self, manager: GencellManager, config: Optional[ToolkitConfig] = None):
        self.manager = manager
        self.config = config if config is not None else manager.config
        self.parser = NetlistParser()

    @property
    def layout(self) -> LayoutDatabase:
        return self.manager.layout

    # --- Cursor helpers ---

    def create_new_pin(self, pin_name: str, port_index: int) -> None:
        """Paints a square pin at the cursor, labels it as a port, and steps the cursor down."""
        size = self.config.pin_size
        x, y = self.layout.cursor
        self.layout.paint(self.config.pin_layer, BBox.from_size((x, y), size, size))
        self.layout.label(pin_name, self.config.pin_layer, (x + size / 2, y + size / 2), port=port_index)
        self.layout.cursor = (x, y - self.config.pin_step)

    def move_forward_by_width(self, instance_name: str) -> None:
        """Moves the cursor to the right edge of an instance (and all its columns), on its bottom edge."""
        instance = self.layout.get_instance(instance_name)
        local = self.layout.cell_bbox(instance.cell_name)
        if local is None:
            first = BBox(instance.origin[0], instance.origin[1], instance.origin[0], instance.origin[1])
        else:
            first = transform_bbox(local, instance.orientation, instance.origin)
        x = first.x1 + first.width + instance.pitch_x * (instance.nx - 1)
        self.layout.cursor = (x, first.y1)

    def get_and_move_inst(self, cell_name: str, instance_name: str, count: int = 1) -> None:
        """
        Places a plain reference to `cell_name` named `instance_name`, arrayed
        `count` times vertically, and moves the cursor to its right edge. A cell
        that does not exist yet is created as an empty placeholder flagged
        `not-found`.
        """
        with self.manager.transaction():
            if not self.layout.cell_exists(cell_name):
                logger.warning(f"Cell '{cell_name}' not found; creating a placeholder for '{instance_name}'.")
                self.layout.create_cell(cell_name, flags=(NOT_FOUND_FLAG,))
            if self.layout.find_instance(instance_name) is not None:
                logger.debug(f"Replacing existing instance '{instance_name}'.")
                self.layout.delete_instance(instance_name)
            instance = self.layout.place_instance(cell_name, name=instance_name)
            if count > 1:
                self.layout.set_array(instance.name, 1, count)
            bbox = self.layout.instance_bbox(instance)
            self.layout.cursor = (bbox.x2, bbox.y1)

    # --- Assembly ---

    def _purge_stale_children(self, cell: Cell) -> None:
        for child_name in self.layout.children(cell.name):
            child = self.layout.get_cell(child_name)
            if not child.is_placeholder:
                continue
            for instance in self.layout.instances_of(child_name):
                self.layout.delete_instance(instance.name, instance.parent)
            self.layout.delete_cell(child_name)
            logger.info(f"Removed unresolved placeholder '{child_name}' from '{cell.name}'.")

    def _qualified_type(self, device_type: str, library: str) -> str:
        return f"{library or self.config.pdk_namespace}{LIBRARY_SEPARATOR}{device_type}"

    def _place_device(self, device: DeviceRecord, library: str, report: AssemblyResult) -> None:
        library = library or self.config.pdk_namespace
        if not self.manager.registry.is_registered(library, device.device_type):
            logger.debug(f"'{self._qualified_type(device.device_type, library)}' is not a generator; "
                         f"placing '{device.device_type}' as a cell.")
            self.get_and_move_inst(device.device_type, device.instance_name, device.multiplicity)
            report.fallbacks.append(device.instance_name)
            return

        parameters = ParameterDictionary((k.lower(), v) for k, v in device.parameters.items())
        request = GencellRequest(
            gencell_name=self._qualified_type(device.device_type, library),
            instance_name=device.instance_name,
            parameters=parameters.to_dict(),
            spice=True,
        )
        response = self.manager.gencell(request)
        report.messages.extend(response.messages)
        placed = response.instance_name or device.instance_name
        self.move_forward_by_width(placed)
        report.generated.append(placed)

    def generate_layout_add(self, record: SubcircuitRecord, library: str = "",
                            report: Optional[AssemblyResult] = None) -> Cell:
        """
        Assembles one subcircuit record into the cell of the same name: pins
        first, then one placement per device. Pins and placeholders left over
        from an earlier import are removed first, so assembling the same record
        again yields the same cell. Runs under the manager's transaction.
        """
        report = report if report is not None else AssemblyResult(netlist=ParsedNetlist())
        with self.manager.transaction():
            cell = self.layout.load(record.name)
            cell.flags.discard(NOT_FOUND_FLAG)
            self._purge_stale_children(cell)
            if self.layout.erase_ports():
                logger.debug(f"Cleared the pins of '{cell.name}' before re-assembly.")

            self.layout.cursor = (0.0, 0.0)
            for index, pin in enumerate(record.pins):
                self.create_new_pin(pin, index)

            self.layout.cursor = (0.0, self.config.device_row_y)
            for device in record.devices:
                try:
                    self._place_device(device, library, report)
                except (GencellOperationError, LayoutError) as e:
                    message = f"Could not place '{device.instance_name}' (line {device.line_number}): {e}"
                    logger.error(message)
                    report.messages.append(message)

        logger.info(f"Assembled '{cell.name}': {len(record.pins)} pin(s), {len(record.devices)} device(s).")
        return cell

    def netlist_to_layout(self, netfile: Union[str, Path], library: str = "",
                          output_dir: Optional[Union[str, Path]] = None) -> AssemblyResult:
        """
        Parses a netlist and assembles every subcircuit, then the top-level
        devices, into cells. With `output_dir`, each assembled cell is saved to
        `<output_dir>/<cell>.yaml` together with the cells it uses.

        Raises:
            NetlistImportError: if the netlist file cannot be read.
        """
        path = Path(netfile)
        try:
            netlist = self.parser.parse_file(path, cdl=self.config.is_cdl_path(path))
        except ParsingError as e:
            logger.error(f"Cannot import netlist '{path}': {e}")
            raise NetlistImportError(e.get_diagnostic_report()) from e

        logger.info(f"Creating layout from '{path.name}'.")
        result = AssemblyResult(netlist=netlist)
        for issue in netlist.issues:
            result.messages.append(str(issue))

        with self.manager.transaction():
            for record in netlist.records:
                cell = self.generate_layout_add(record, library, report=result)
                result.cells.append(cell.name)
                if output_dir is not None:
                    target = Path(output_dir) / f"{cell.name}.yaml"
                    result.saved_files.append(save_layout(self.layout, target, top=cell.name))
        return result
