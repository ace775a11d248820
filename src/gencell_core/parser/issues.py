# src/gencell_core/parser/issues.py
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class ParseIssueLevel(Enum):
    """Severity level of a netlist parse issue."""
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"

    def __str__(self):
        return self.value


class ParseIssueCode(Enum):
    """
    Registry of parse issue codes and their message templates.
    Each enum member's value is a tuple: (code_str, message_template_str).
    """
    DEV_TOKENS = ("DEV_TOKENS", "No device type found in line \"{line}\". Tokens found are: \"{tokens}\".")
    DEV_PARAM_SYNTAX = ("DEV_PARAM_SYNTAX", "Error parsing line \"{line}\" at: \"{fragment}\".")
    SUBCKT_UNTERMINATED = ("SUBCKT_UNTERMINATED", "Subcircuit '{name}' is not closed by '.ends' before the end of the netlist; it was discarded.")
    SUBCKT_NO_NAME = ("SUBCKT_NO_NAME", "'.subckt' line \"{line}\" does not name a subcircuit; its body is ignored.")

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def template(self) -> str:
        return self.value[1]

    def format(self, **kwargs) -> str:
        return self.template.format(**kwargs)


@dataclass(frozen=True)
class ParseIssue:
    """
    A recoverable problem found while reading a netlist. The offending line is
    skipped and parsing continues.
    """
    level: ParseIssueLevel
    code: ParseIssueCode
    message: str
    line_number: Optional[int] = None
    line: Optional[str] = None
    fragment: Optional[str] = None

    def __str__(self) -> str:
        parts = [f"[{self.level.name} - {self.code.code}]"]
        if self.line_number is not None:
            parts.append(f"Line {self.line_number}:")
        parts.append(self.message)
        return " ".join(parts)
