# src/gencell_core/config.py
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import cerberus
import yaml

from .log_config import set_package_level

logger = logging.getLogger(__name__)

class ConfigParsingError(ValueError):
    """Custom exception for errors during toolkit configuration parsing."""
    pass


@dataclass(frozen=True)
class ToolkitConfig:
    """
    Settings shared by the lifecycle manager and the layout assembler.
    Lengths are in microns.
    """
    default_library: str = "toolkit"
    # Namespace used to qualify netlist device types when no library is given.
    pdk_namespace: str = "toolkit"
    pin_layer: str = "m1"
    pin_size: float = 1.0
    pin_step: float = 2.0
    device_row_y: float = 3.0
    cdl_extensions: List[str] = field(default_factory=lambda: [".cdl"])
    log_level: str = "INFO"

    def is_cdl_path(self, path: Union[str, Path]) -> bool:
        return Path(path).suffix.lower() in {ext.lower() for ext in self.cdl_extensions}


_identifier_rule = {"type": "string", "empty": False, "regex": r"^[A-Za-z_][A-Za-z0-9_]*$"}

_schema = {
    "default_library": _identifier_rule,
    "pdk_namespace": _identifier_rule,
    "pin_layer": {"type": "string", "empty": False},
    "pin_size": {"type": "number", "min": 0, "coerce": float},
    "pin_step": {"type": "number", "min": 0, "coerce": float},
    "device_row_y": {"type": "number", "coerce": float},
    "cdl_extensions": {"type": "list", "schema": {"type": "string", "regex": r"^\..+$"}},
    "log_level": {"type": "string", "allowed": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], "coerce": str.upper},
}


def parse_config(raw_config: Optional[Dict[str, Any]]) -> ToolkitConfig:
    """
    Validates a raw configuration mapping and returns a ToolkitConfig.
    Missing keys keep their defaults; unknown keys are rejected.
    """
    if not raw_config:
        return ToolkitConfig()
    if not isinstance(raw_config, dict):
        raise ConfigParsingError("The root of the toolkit configuration must be a mapping.")

    validator = cerberus.Validator(_schema)
    validator.allow_unknown = False
    if not validator.validate(raw_config):
        error_lines = [f"  - '{k}': {v[0]}" for k, v in sorted(validator.errors.items())]
        raise ConfigParsingError("Invalid toolkit configuration:\n" + "\n".join(error_lines))

    document = validator.document
    known = {f.name for f in fields(ToolkitConfig)}
    return ToolkitConfig(**{k: v for k, v in document.items() if k in known})


def load_config(path: Union[str, Path]) -> ToolkitConfig:
    """Loads a toolkit configuration from a YAML file and applies its log level to the toolkit loggers."""
    source = Path(path)
    if not source.is_file():
        raise ConfigParsingError(f"Configuration file not found at path: {source}")
    try:
        with source.open("r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigParsingError(f"Invalid YAML syntax in '{source}': {e}") from e

    config = parse_config(content)
    set_package_level(config.log_level)
    logger.info(f"Loaded toolkit configuration from '{source}'.")
    return config
