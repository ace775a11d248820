# src/gencell_core/lifecycle/requests.py
"""
Request and response objects of the gencell entry point.

A GencellRequest carries what an interactive front end or a netlist importer
knows about a device; the manager answers with a GencellResponse that either
describes a dialog to show (nothing was changed) or reports the outcome of a
create or change.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..generators.dialog import DialogField
from ..parameters import ParameterDictionary


class GencellAction(Enum):
    DIALOG_NEW = "dialog_new"
    DIALOG_EDIT = "dialog_edit"
    CREATED = "created"
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    PREVIEW = "preview"

    @property
    def mutates(self) -> bool:
        return self in (GencellAction.CREATED, GencellAction.CHANGED)


@dataclass
class GencellRequest:
    # 'library::type', or a bare type in the default library. None means
    # "edit the selected instance".
    gencell_name: Optional[str] = None
    instance_name: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    # Parameters use SPICE names and units and go through the generator's convert.
    spice: bool = False
    # For update(): the parameter the user just edited.
    changed_parameter: Optional[str] = None


@dataclass
class GencellResult:
    """Outcome of a create or change against the layout database."""
    action: GencellAction
    library: str
    gencell_type: str
    parameters: ParameterDictionary
    instance_name: Optional[str] = None
    # None for non-cell generators.
    artifact_name: Optional[str] = None
    reused: bool = False
    retired: Optional[str] = None
    messages: List[str] = field(default_factory=list)


@dataclass
class GencellResponse:
    action: GencellAction
    library: Optional[str] = None
    gencell_type: Optional[str] = None
    parameters: Optional[ParameterDictionary] = None
    artifact_name: Optional[str] = None
    instance_name: Optional[str] = None
    dialog: List[DialogField] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)

    @classmethod
    def from_result(cls, result: GencellResult) -> "GencellResponse":
        return cls(
            action=result.action,
            library=result.library,
            gencell_type=result.gencell_type,
            parameters=result.parameters,
            artifact_name=result.artifact_name,
            instance_name=result.instance_name,
            messages=list(result.messages),
        )
