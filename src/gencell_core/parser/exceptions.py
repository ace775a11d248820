# src/gencell_core/parser/exceptions.py
"""
Defines the diagnosable exceptions of the netlist reading stage.

`ParsingError` is fatal to an import: the netlist could not be read at all.
`DeviceDecodeError` is recoverable: the NetlistParser catches it, records a
ParseIssue with the offending line and the unparsed fragment, drops the device
line and continues.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from ..errors import DiagnosableError, format_diagnostic_report
from .issues import ParseIssueCode


class BaseParsingError(DiagnosableError):
    """
    A local, concrete base class for all netlist reading errors.
    """
    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Generic Parsing Error",
            details=str(self),
            suggestion="Please check the format and content of the netlist file.",
            context={}
        )


@dataclass(frozen=True)
class ParsingError(BaseParsingError):
    """
    Raised for file-system issues: the netlist is missing, unreadable or not text.
    """
    details: str
    file_path: Path

    def __str__(self):
        return f"Parsing error in file '{self.file_path}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Netlist File Error",
            details=self.details,
            suggestion="Ensure the file exists, has the correct read permissions, and is a SPICE or CDL text netlist.",
            context={'source_file': self.file_path}
        )


@dataclass(frozen=True)
class DeviceDecodeError(BaseParsingError):
    """
    Raised by the device decoder when a device line cannot be split into
    instance name, pins, device type and parameters.
    """
    line: str
    fragment: str
    details: str
    code: ParseIssueCode = ParseIssueCode.DEV_PARAM_SYNTAX
    tokens: Tuple[str, ...] = ()
    line_number: Optional[int] = None

    def __str__(self):
        return f"{self.details} (line: '{self.line}', at: '{self.fragment}')"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Malformed Device Line",
            details=f"{self.details}\nUnparsed fragment: '{self.fragment}'",
            suggestion="A device line needs an instance name, its pins and a device type, followed by key=value parameters.",
            context={'user_input': self.line, 'line_number': self.line_number}
        )
