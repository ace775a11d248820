# src/gencell_core/__init__.py
import logging
from .log_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)
logger.info("Gencell Core package initialized.")

from .units import ureg, Quantity, parse_spice_number
from .config import ToolkitConfig, ConfigParsingError, load_config, parse_config
from .parameters import ParameterDictionary, merge_parameters, get_multiplicity
from .hashing import get_gencell_hash, get_gencell_name, artifact_name, encode_base32
from .parser import NetlistParser, ParsedNetlist, SubcircuitRecord, DeviceRecord, decode_device_line
from .generators import GeneratorBase, GeneratorRegistry, GENERATOR_REGISTRY, register_generator, parse_gencell_name
from .layout import LayoutDatabase, Orientation, BBox, save_layout, load_layout
from .lifecycle import GencellManager, GencellRequest, GencellResponse, GencellAction, GencellResult
from .assembly import LayoutAssembler, AssemblyResult
from .errors import GencellError, NetlistImportError, GencellOperationError

__all__ = [
    # Units
    "ureg", "Quantity", "parse_spice_number",
    # Configuration
    "ToolkitConfig", "ConfigParsingError", "load_config", "parse_config",
    # Parameters and naming
    "ParameterDictionary", "merge_parameters", "get_multiplicity",
    "get_gencell_hash", "get_gencell_name", "artifact_name", "encode_base32",
    # Parser
    "NetlistParser", "ParsedNetlist", "SubcircuitRecord", "DeviceRecord", "decode_device_line",
    # Generators
    "GeneratorBase", "GeneratorRegistry", "GENERATOR_REGISTRY", "register_generator", "parse_gencell_name",
    # Layout
    "LayoutDatabase", "Orientation", "BBox", "save_layout", "load_layout",
    # Lifecycle and assembly
    "GencellManager", "GencellRequest", "GencellResponse", "GencellAction", "GencellResult",
    "LayoutAssembler", "AssemblyResult",
    # Top-Level Errors (Actionable Diagnostics)
    "GencellError", "NetlistImportError", "GencellOperationError",
]
