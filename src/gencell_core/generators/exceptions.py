# src/gencell_core/generators/exceptions.py
"""
Diagnosable exceptions for the generator registry and generator capabilities.
"""
from dataclasses import dataclass, field
from typing import List

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class GeneratorError(DiagnosableError):
    """Base for generator-related errors."""
    library: str
    gencell_type: str
    details: str

    @property
    def fullname(self) -> str:
        return f"{self.library}::{self.gencell_type}"

    def __str__(self):
        return f"{self.fullname}: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Generator Error",
            details=self.details,
            suggestion="",
            context={'generator': self.fullname}
        )


@dataclass()
class GeneratorNotRegisteredError(GeneratorError):
    """No generator is registered under the requested library and type."""
    available: List[str] = field(default_factory=list)

    def get_diagnostic_report(self) -> str:
        if self.available:
            suggestion = f"Registered generators in library '{self.library}': {', '.join(sorted(self.available))}."
        else:
            suggestion = (f"No generators are registered in library '{self.library}'. "
                          f"Import the module that defines them or use a different library.")
        return format_diagnostic_report(
            error_type="Unknown Generator",
            details=self.details,
            suggestion=suggestion,
            context={'generator': self.fullname}
        )


@dataclass()
class GeneratorCapabilityError(GeneratorError):
    """
    A generator capability (convert, check, draw, on_parameter_change) raised.
    The lifecycle manager wraps the original exception in this type to report it,
    then carries on with best-effort state.
    """
    capability: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type=f"Generator '{self.capability}' Failure",
            details=self.details,
            suggestion=(f"Check the parameter values given to '{self.fullname}'. "
                        f"The operation continued with the parameters as they were before '{self.capability}'."),
            context={'generator': self.fullname}
        )
