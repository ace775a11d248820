# src/gencell_core/parser/raw_data.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..parameters import ParameterDictionary
from .issues import ParseIssue, ParseIssueLevel

# The classes in this module are the contract between the NetlistParser and the
# LayoutAssembler. Records are frozen; the parameter dictionary of a device is
# copied by consumers before it is merged or checked.

@dataclass(frozen=True)
class DeviceRecord:
    """One decoded device line of a netlist."""
    line: str
    instance_name: str
    device_type: str
    pins: Tuple[str, ...]
    parameters: ParameterDictionary
    multiplicity: int = 1
    line_number: Optional[int] = None


@dataclass(frozen=True)
class SubcircuitRecord:
    """
    A `.subckt ... .ends` block, or the implicit top-level record collecting
    device lines found outside of any subcircuit.
    """
    name: str
    pins: Tuple[str, ...]
    devices: Tuple[DeviceRecord, ...]
    is_top_level: bool = False
    pin_info: Dict[str, str] = field(default_factory=dict)
    line_number: Optional[int] = None


@dataclass
class ParsedNetlist:
    """Everything recovered from one netlist, plus the issues reported on the way."""
    subcircuits: List[SubcircuitRecord] = field(default_factory=list)
    top_level: Optional[SubcircuitRecord] = None
    issues: List[ParseIssue] = field(default_factory=list)
    source_path: Optional[Path] = None

    @property
    def records(self) -> List[SubcircuitRecord]:
        """All records in emission order: subcircuits first, then the top level."""
        if self.top_level is None:
            return list(self.subcircuits)
        return [*self.subcircuits, self.top_level]

    @property
    def errors(self) -> List[ParseIssue]:
        return [i for i in self.issues if i.level == ParseIssueLevel.ERROR]

    def get(self, name: str) -> Optional[SubcircuitRecord]:
        """Case-insensitive lookup of a record by name."""
        for record in self.records:
            if record.name.lower() == name.lower():
                return record
        return None
