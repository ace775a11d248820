# src/gencell_core/parser/decoder.py
"""
Splits a single SPICE device line into its instance name, pins, device type and
parameters.

Tokens are taken left to right as positional tokens until the first token of
the form `key=value`. The first positional token is the instance name, the last
one is the device type (a model or subcircuit name) and everything between them
is a pin. The remainder is a sequence of parameters, each in one of three forms,
tried in this order:

    key='expression with spaces'
    key={expression with spaces}
    key=bare_token

Values are kept verbatim, delimiters included.
"""
import logging
import re
from typing import List, Optional, Tuple

from ..parameters import ParameterDictionary, get_multiplicity
from .exceptions import DeviceDecodeError
from .issues import ParseIssueCode
from .raw_data import DeviceRecord

logger = logging.getLogger(__name__)

_PARAMETER_START_REGEX = re.compile(r"^[ \t]*[^= \t]+=[^=]+")
_POSITIONAL_TOKEN_REGEX = re.compile(r"^[ \t]*([^ \t]+)[ \t]*(.*)$")

_PARAMETER_FORMS = (
    re.compile(r"^([^= \t]+)=('[^']+')[ \t]*(.*)$"),
    re.compile(r"^([^= \t]+)=(\{[^}]+\})[ \t]*(.*)$"),
    re.compile(r"^([^= \t]+)=([^= \t]+)[ \t]*(.*)$"),
)


def split_positional_tokens(text: str) -> Tuple[List[str], str]:
    """
    Consumes whitespace-separated tokens until the first `key=value` token.
    Returns the tokens and the unconsumed remainder.
    """
    tokens: List[str] = []
    rest = text.strip()
    while rest:
        if _PARAMETER_START_REGEX.match(rest):
            break
        match = _POSITIONAL_TOKEN_REGEX.match(rest)
        if not match:
            break
        token, rest = match.groups()
        tokens.append(token)
    return tokens, rest


def split_parameters(text: str, line: str = "", line_number: Optional[int] = None) -> ParameterDictionary:
    """
    Parses a run of `key=value` parameters. Raises DeviceDecodeError with the
    remaining fragment when a parameter cannot be matched by any form.
    """
    parameters = ParameterDictionary()
    rest = text.strip()
    while rest:
        for form in _PARAMETER_FORMS:
            match = form.match(rest)
            if match:
                name, value, rest = match.groups()
                if name in parameters:
                    logger.debug(f"Parameter '{name}' repeated in line '{line}'; last value wins.")
                parameters[name] = value
                break
        else:
            raise DeviceDecodeError(
                line=line or text,
                fragment=rest,
                details="Parameter list could not be parsed.",
                code=ParseIssueCode.DEV_PARAM_SYNTAX,
                line_number=line_number,
            )
    return parameters


def decode_device_line(line: str, line_number: Optional[int] = None) -> DeviceRecord:
    """
    Decodes one device line into a DeviceRecord.

    Raises:
        DeviceDecodeError: fewer than two positional tokens were found, or the
            parameter list contains a fragment no parameter form accepts.
    """
    tokens, rest = split_positional_tokens(line)
    if len(tokens) < 2:
        raise DeviceDecodeError(
            line=line,
            fragment=rest,
            details="No device type found.",
            code=ParseIssueCode.DEV_TOKENS,
            tokens=tuple(tokens),
            line_number=line_number,
        )

    parameters = split_parameters(rest, line=line, line_number=line_number)

    # A two-token line ("X1 cellname") has no pins.
    return DeviceRecord(
        line=line,
        instance_name=tokens[0],
        device_type=tokens[-1],
        pins=tuple(tokens[1:-1]),
        parameters=parameters,
        multiplicity=get_multiplicity(parameters),
        line_number=line_number,
    )
