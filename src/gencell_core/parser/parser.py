# src/gencell_core/parser/parser.py
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .decoder import decode_device_line
from .exceptions import DeviceDecodeError, ParsingError
from .issues import ParseIssue, ParseIssueCode, ParseIssueLevel
from .raw_data import DeviceRecord, ParsedNetlist, SubcircuitRecord

logger = logging.getLogger(__name__)

COMMENT_MARKER = "*"
CONTINUATION_MARKER = "+"

#: Top-level directives that carry nothing for layout.
IGNORED_KEYWORDS = frozenset({".global", ".ic", ".option", ".end"})

# Subcircuit calls, transistors, capacitors, resistors, diodes, bipolars.
DEVICE_LINE_REGEX = re.compile(r"^[xmcrdq]([^ \t]+)[ \t](.*)$", re.IGNORECASE)
# Current/voltage sources, behavioral sources, controlled sources.
TESTBENCH_LINE_REGEX = re.compile(r"^[ivbe]([^ \t]+)[ \t](.*)$", re.IGNORECASE)

ENDS_REGEX = re.compile(r"^[ \t]*\.ends", re.IGNORECASE)
ENDC_REGEX = re.compile(r"^[ \t]*\.endc", re.IGNORECASE)
PININFO_REGEX = re.compile(r"^[ \t]*\.pininfo\b(.*)$", re.IGNORECASE)


def join_continuation_lines(lines: Iterable[str], cdl: bool = False) -> List[str]:
    """
    Drops comment lines and folds continuation lines into the last retained line,
    returning one entry per logical line. In CDL mode a commented `*.PININFO`
    directive is unmasked into an active `.PININFO` line.
    """
    return [text for _, text in _join_numbered_lines(lines, cdl)]


def _join_numbered_lines(lines: Iterable[str], cdl: bool):
    joined = []
    current: Optional[str] = None
    current_number = 0
    for number, line in enumerate(lines, start=1):
        line = line.rstrip("\r\n")
        if cdl and line[:2] == "*." and line[2:9].lower() == "pininfo":
            line = line[1:]
        if line.startswith(COMMENT_MARKER):
            continue
        if line.startswith(CONTINUATION_MARKER):
            if current is None:
                current, current_number = "", number
            if current and not current[-1].isspace():
                current += " "
            current += line[1:]
            continue
        if current is not None:
            joined.append((current_number, current))
        current, current_number = line, number
    if current is not None:
        joined.append((current_number, current))
    return joined


class NetlistParser:
    """
    Reads SPICE or CDL text into SubcircuitRecords.

    The parser never raises on malformed content: undecodable device lines are
    reported as ParseIssues on the result and skipped. Only an unreadable file
    raises ParsingError.
    """

    def parse_file(self, netlist_path: Union[str, Path], cdl: Optional[bool] = None) -> ParsedNetlist:
        """
        Parses a netlist file. When `cdl` is None the dialect is taken from the
        file extension (`.cdl` means CDL). The implicit top-level record is named
        after the file stem.
        """
        path = Path(netlist_path)
        if cdl is None:
            cdl = path.suffix.lower() == ".cdl"
        text = self._read_text(path)
        logger.info(f"Parsing netlist '{path.name}' ({'CDL' if cdl else 'SPICE'} dialect).")
        return self.parse_text(text, cdl=cdl, top_name=path.stem, source_path=path)

    def parse_text(
        self,
        text: str,
        cdl: bool = False,
        top_name: str = "top",
        source_path: Optional[Path] = None,
    ) -> ParsedNetlist:
        """Parses netlist text into subcircuit records and an optional top-level record."""
        result = ParsedNetlist(source_path=source_path)

        in_subckt = False
        in_command = False
        sub_name = ""
        sub_pins: List[str] = []
        sub_line = 0
        sub_pin_info: Dict[str, str] = {}
        sub_devices: List[DeviceRecord] = []
        top_devices: List[DeviceRecord] = []

        for line_number, line in _join_numbered_lines(text.splitlines(), cdl):
            if in_command:
                if ENDC_REGEX.match(line):
                    in_command = False
                continue

            if not in_subckt:
                tokens = line.split()
                keyword = tokens[0].lower() if tokens else ""
                if keyword in IGNORED_KEYWORDS:
                    continue
                if keyword == ".command":
                    in_command = True
                elif keyword == ".subckt":
                    if len(tokens) < 2:
                        self._report(result, ParseIssueLevel.WARNING, ParseIssueCode.SUBCKT_NO_NAME,
                                     line_number, line, line=line)
                    sub_name = tokens[1] if len(tokens) > 1 else ""
                    sub_pins = tokens[2:]
                    sub_line = line_number
                    sub_pin_info = {}
                    sub_devices = []
                    in_subckt = True
                elif DEVICE_LINE_REGEX.match(line):
                    self._decode_into(top_devices, result, line, line_number)
                elif TESTBENCH_LINE_REGEX.match(line):
                    logger.debug(f"Ignoring testbench device on line {line_number}: '{line}'")
            else:
                if ENDS_REGEX.match(line):
                    in_subckt = False
                    if sub_name:
                        record = SubcircuitRecord(
                            name=sub_name,
                            pins=tuple(sub_pins),
                            devices=tuple(sub_devices),
                            pin_info=sub_pin_info,
                            line_number=sub_line,
                        )
                        result.subcircuits.append(record)
                        logger.debug(f"Subcircuit '{sub_name}': {len(sub_pins)} pins, {len(sub_devices)} devices.")
                elif (pininfo := PININFO_REGEX.match(line)):
                    sub_pin_info.update(self._parse_pininfo(pininfo.group(1)))
                elif DEVICE_LINE_REGEX.match(line):
                    self._decode_into(sub_devices, result, line, line_number)
                elif TESTBENCH_LINE_REGEX.match(line):
                    logger.debug(f"Ignoring testbench device on line {line_number}: '{line}'")

        if in_subckt and sub_name:
            self._report(result, ParseIssueLevel.WARNING, ParseIssueCode.SUBCKT_UNTERMINATED,
                         sub_line, None, name=sub_name)

        if top_devices:
            result.top_level = SubcircuitRecord(
                name=top_name, pins=(), devices=tuple(top_devices), is_top_level=True
            )

        logger.info(
            f"Parsed {len(result.subcircuits)} subcircuit(s)"
            f"{' and a top-level record' if result.top_level else ''} with {len(result.issues)} issue(s)."
        )
        return result

    def _decode_into(self, devices: List[DeviceRecord], result: ParsedNetlist, line: str, line_number: int):
        try:
            devices.append(decode_device_line(line, line_number=line_number))
        except DeviceDecodeError as e:
            message = e.code.format(line=e.line, fragment=e.fragment, tokens=" ".join(e.tokens))
            issue = ParseIssue(ParseIssueLevel.ERROR, e.code, message, line_number, e.line, e.fragment)
            result.issues.append(issue)
            logger.error(str(issue))

    def _report(self, result: ParsedNetlist, level: ParseIssueLevel, code: ParseIssueCode,
                line_number: Optional[int], source_line: Optional[str], **kwargs):
        issue = ParseIssue(level, code, code.format(**kwargs), line_number, source_line)
        result.issues.append(issue)
        logger.warning(str(issue))

    @staticmethod
    def _parse_pininfo(text: str) -> Dict[str, str]:
        """`.PININFO A:I Y:O VDD:B` -> {'A': 'I', 'Y': 'O', 'VDD': 'B'}"""
        info = {}
        for token in text.split():
            name, sep, direction = token.rpartition(":")
            if sep and name:
                info[name] = direction.upper()
        return info

    def _read_text(self, source: Path) -> str:
        if not source.is_file():
            raise ParsingError(details=f"Netlist file not found at path: {source}", file_path=source)
        try:
            return source.read_text(encoding="utf-8")
        except PermissionError as e:
            raise ParsingError(details=f"Permission denied when trying to read file: {e}", file_path=source) from e
        except UnicodeDecodeError as e:
            raise ParsingError(details=f"The file is not a UTF-8 text netlist: {e}", file_path=source) from e
