# src/gencell_core/parser/__init__.py
from .raw_data import DeviceRecord, ParsedNetlist, SubcircuitRecord
from .issues import ParseIssue, ParseIssueCode, ParseIssueLevel
from .decoder import decode_device_line
from .parser import NetlistParser, join_continuation_lines
from .exceptions import DeviceDecodeError, ParsingError

__all__ = [
    # Records
    "DeviceRecord",
    "ParsedNetlist",
    "SubcircuitRecord",
    # Issues
    "ParseIssue",
    "ParseIssueCode",
    "ParseIssueLevel",
    # Parser, decoder and exceptions
    "NetlistParser",
    "decode_device_line",
    "join_continuation_lines",
    "DeviceDecodeError",
    "ParsingError",
]
