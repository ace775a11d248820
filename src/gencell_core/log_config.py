# --- src/gencell_core/log_config.py ---
import logging
import sys
from typing import IO, Optional, Union

PACKAGE_LOGGER = "gencell_core"
LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] [%(name)s] %(message)s"


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level '{level}'.")
    return resolved


def setup_logging(level: Union[int, str] = logging.INFO, stream: Optional[IO[str]] = None):
    """
    Routes every log record to a single stream handler, stdout unless `stream`
    is given. `level` is a logging constant or a level name such as 'DEBUG'.
    """
    log_formatter = logging.Formatter(LOG_FORMAT)
    root_logger = logging.getLogger()

    # Replace whatever handlers a previous call (or the host) installed.
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    console_handler.setFormatter(log_formatter)
    root_logger.setLevel(_resolve_level(level))
    root_logger.addHandler(console_handler)
    logging.getLogger(PACKAGE_LOGGER).debug("Logging configured.")


def set_package_level(level: Union[int, str]) -> None:
    """Sets the threshold of the toolkit's own loggers, leaving the handlers alone."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(_resolve_level(level))
