# src/gencell_core/errors.py
import logging
from abc import abstractmethod
from typing import Any, Dict, Protocol
from typing import runtime_checkable

logger = logging.getLogger(__name__)

# --- Errors raised to callers of the toolkit ---

class GencellError(Exception):
    """Root of the errors the toolkit's public entry points raise."""
    pass

class NetlistImportError(GencellError):
    """
    A netlist could not be imported at all (missing, unreadable, not text).
    Malformed device lines never raise this; they become parse issues. The
    message is a formatted diagnostic report.
    """
    pass

class GencellOperationError(GencellError):
    """
    A create, change or dialog request could not be carried out: unknown
    generator, unknown instance, or nothing selected. Nothing was changed. The
    message is a formatted diagnostic report.
    """
    pass


# --- Internal errors that describe themselves ---

@runtime_checkable
class Diagnosable(Protocol):
    """Anything that can render a diagnostic report about itself."""
    def get_diagnostic_report(self) -> str:
        ...

class DiagnosableError(Exception, Diagnosable):
    """
    Concrete base of the internal exception types. Entry points catch it and
    re-raise the report as a GencellError, so every subclass must be able to
    produce one.
    """
    @abstractmethod
    def get_diagnostic_report(self) -> str:
        raise NotImplementedError


# --- Report rendering ---

_CONTEXT_LABELS = (
    ("generator", "Generator"),
    ("instance", "Instance"),
    ("source_file", "Source File"),
    ("line_number", "Line"),
)


def format_diagnostic_report(
    error_type: str,
    details: str,
    suggestion: str,
    context: Dict[str, Any]
) -> str:
    """
    Renders the report block shown for every toolkit failure.

    Args:
        error_type: Short category, e.g. "Unknown Generator".
        details: What went wrong; may span several lines.
        suggestion: What the user can do about it. Omitted when empty.
        context: Optional `generator`, `instance`, `source_file`,
                 `line_number` and `user_input` entries.
    """
    lines = [
        "\n",
        "================ Gencell Core: Actionable Diagnostic Report ================",
        f"Error Type:     {error_type}",
    ]
    for key, label in _CONTEXT_LABELS:
        value = context.get(key)
        if value:
            lines.append(f"{label + ':':<16}{value}")
    if user_input := context.get('user_input'):
        lines.append(f"User Input:     '{user_input}'")

    lines.append("\nDetails:")
    lines.extend(f"  {line}" for line in details.splitlines())

    if suggestion:
        lines.append("\nSuggestion:")
        lines.extend(f"  {line}" for line in suggestion.splitlines())

    lines.append("=" * 76)
    return "\n".join(lines)
