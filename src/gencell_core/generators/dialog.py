# src/gencell_core/generators/dialog.py
"""
Declarative description of a generator's parameter editing surface.

A generator's `dialog` capability returns a list of DialogFields; a front end
(GUI, web form, CLI prompt) renders them and sends the edited values back as a
GencellRequest. Field values are pre-filled from the parameters the dialog is
built for.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Tuple


class FieldKind(Enum):
    ENTRY = "entry"
    CHECKBOX = "checkbox"
    SELECTLIST = "selectlist"
    SELECTINDEX = "selectindex"
    MESSAGE = "message"


@dataclass(frozen=True)
class DialogField:
    kind: FieldKind
    name: str
    label: str
    value: str = ""
    choices: Tuple[str, ...] = ()
    # Display color of MESSAGE fields.
    color: Optional[str] = None

    @property
    def editable(self) -> bool:
        return self.kind is not FieldKind.MESSAGE

    @property
    def selected(self) -> Optional[str]:
        """The choice a SELECTINDEX field currently points at."""
        if self.kind is not FieldKind.SELECTINDEX:
            return self.value if self.kind is FieldKind.SELECTLIST else None
        try:
            return self.choices[int(self.value)]
        except (ValueError, IndexError):
            return None


def _value(parameters: Optional[Mapping[str, Any]], name: str, fallback: Any = "") -> str:
    if parameters and name in parameters:
        return str(parameters[name])
    return str(fallback)


def entry(name: str, label: str, parameters: Optional[Mapping[str, Any]] = None) -> DialogField:
    """A single text entry."""
    return DialogField(FieldKind.ENTRY, name, label, _value(parameters, name))


def checkbox(name: str, label: str, parameters: Optional[Mapping[str, Any]] = None) -> DialogField:
    return DialogField(FieldKind.CHECKBOX, name, label, _value(parameters, name))


def message(name: str, label: str, parameters: Optional[Mapping[str, Any]] = None,
            color: str = "blue") -> DialogField:
    """Informational text; the name need not be a parameter."""
    return DialogField(FieldKind.MESSAGE, name, label, _value(parameters, name), color=color)


def selectlist(name: str, label: str, all_values: Sequence[str],
               parameters: Optional[Mapping[str, Any]] = None, initial: str = "") -> DialogField:
    """A pull-down whose value is the chosen item itself."""
    return DialogField(FieldKind.SELECTLIST, name, label, _value(parameters, name, initial),
                       choices=tuple(str(v) for v in all_values))


def selectindex(name: str, label: str, all_values: Sequence[str],
                parameters: Optional[Mapping[str, Any]] = None, initial: int = 0) -> DialogField:
    """A pull-down whose value is the index of the chosen item, for keying other value lists."""
    return DialogField(FieldKind.SELECTINDEX, name, label, _value(parameters, name, initial),
                       choices=tuple(str(v) for v in all_values))
