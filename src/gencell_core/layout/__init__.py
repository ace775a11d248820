# src/gencell_core/layout/__init__.py
from .geometry import BBox, Orientation, Point, bbox_union, transform_bbox
from .database import (
    DEFAULT_TOP_CELL,
    NOT_FOUND_FLAG,
    PROPERTY_GENCELL,
    PROPERTY_LIBRARY,
    PROPERTY_PARAMETERS,
    Cell,
    Instance,
    Label,
    LayoutDatabase,
    Shape,
)
from .exceptions import (
    CellNotFoundError,
    DuplicateNameError,
    InstanceNotFoundError,
    LayoutError,
    LayoutFileError,
)
from .persistence import load_layout, save_layout

__all__ = [
    # Geometry
    "BBox", "Orientation", "Point", "bbox_union", "transform_bbox",
    # Database
    "LayoutDatabase", "Cell", "Instance", "Shape", "Label",
    "DEFAULT_TOP_CELL", "NOT_FOUND_FLAG",
    "PROPERTY_LIBRARY", "PROPERTY_GENCELL", "PROPERTY_PARAMETERS",
    # Persistence
    "save_layout", "load_layout",
    # Exceptions
    "LayoutError", "CellNotFoundError", "InstanceNotFoundError", "DuplicateNameError", "LayoutFileError",
]
