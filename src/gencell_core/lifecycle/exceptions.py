# src/gencell_core/lifecycle/exceptions.py
from ..errors import GencellOperationError, format_diagnostic_report


class GencellSelectionError(GencellOperationError):
    """
    Raised when a request needs a selected gencell instance and none is selected,
    or the selected instance cannot be traced back to a generator. Nothing in the
    layout is changed.
    """

    def __init__(self, details: str, instance_name: str = ""):
        self.details = details
        self.instance_name = instance_name
        super().__init__(format_diagnostic_report(
            error_type="No Gencell Selected",
            details=details,
            suggestion="Select an instance of a generated cell, or name the generator in the request.",
            context={'instance': instance_name}
        ))
