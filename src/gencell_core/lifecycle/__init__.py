# src/gencell_core/lifecycle/__init__.py
from .exceptions import GencellSelectionError
from .manager import GencellManager
from .requests import GencellAction, GencellRequest, GencellResponse, GencellResult

__all__ = [
    "GencellManager",
    "GencellAction",
    "GencellRequest",
    "GencellResponse",
    "GencellResult",
    "GencellSelectionError",
]
