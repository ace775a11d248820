# src/gencell_core/layout/exceptions.py
"""
Diagnosable exceptions of the layout database and its file format.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class LayoutError(DiagnosableError):
    """An operation on the layout database violated its structure."""
    details: str

    def __str__(self):
        return self.details

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Layout Database Error",
            details=self.details,
            suggestion="Check that the cells and instances involved exist and that the hierarchy stays acyclic.",
            context={}
        )


@dataclass()
class CellNotFoundError(LayoutError):
    cell_name: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Unknown Cell",
            details=self.details,
            suggestion="Create or load the cell before referencing it.",
            context={'user_input': self.cell_name}
        )


@dataclass()
class InstanceNotFoundError(LayoutError):
    instance_name: str = ""
    parent: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Unknown Instance",
            details=self.details,
            suggestion=f"List the instances of cell '{self.parent}' and use one of their names.",
            context={'instance': self.instance_name}
        )


@dataclass()
class DuplicateNameError(LayoutError):
    name: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Duplicate Name",
            details=self.details,
            suggestion="Names are compared case-insensitively; choose a name that differs by more than letter case.",
            context={'user_input': self.name}
        )


@dataclass()
class LayoutFileError(DiagnosableError):
    """A saved layout file could not be read or does not match the layout schema."""
    file_path: Path
    details: str
    errors: Dict[str, Any] = None

    def __str__(self):
        return f"Layout file error in '{self.file_path}': {self.details}"

    def get_diagnostic_report(self) -> str:
        details = self.details
        if self.errors:
            error_list_str = "\n".join(
                f"  - Field '{k}': {v}" for k, v in sorted(self.errors.items(), key=lambda kv: str(kv[0]))
            )
            details = f"{details}\n\n{error_list_str}"
        return format_diagnostic_report(
            error_type="Layout File Error",
            details=details,
            suggestion="Regenerate the file with save_layout() or correct the listed fields.",
            context={'source_file': self.file_path}
        )
