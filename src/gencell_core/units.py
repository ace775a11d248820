# src/gencell_core/units.py
import logging
import re

import pint

logger = logging.getLogger(__name__)
ureg = pint.UnitRegistry()
Quantity = ureg.Quantity
logger.debug("Pint Unit Registry initialized.")

# SPICE scale suffixes are case-insensitive; 'meg' and 'mil' must be tried before 'm'.
SPICE_SCALE_FACTORS = {
    't': 1e12,
    'g': 1e9,
    'meg': 1e6,
    'k': 1e3,
    'mil': 25.4e-6,
    'm': 1e-3,
    'u': 1e-6,
    'n': 1e-9,
    'p': 1e-12,
    'f': 1e-15,
    'a': 1e-18,
}

SPICE_NUMBER_REGEX = re.compile(
    r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)(meg|mil|[tgkmunpfa])?[a-z]*\s*$",
    re.IGNORECASE,
)


class SpiceValueError(ValueError):
    """Raised when a string is not a SPICE number with an optional scale suffix."""
    pass


def parse_spice_number(text: str) -> float:
    """
    Converts a SPICE numeric literal ('1u', '0.15U', '2meg', '3e-6', '10kohm')
    into a float. Trailing unit letters after the scale suffix are ignored,
    as SPICE does.
    """
    match = SPICE_NUMBER_REGEX.match(str(text))
    if not match:
        raise SpiceValueError(f"'{text}' is not a valid SPICE number.")
    mantissa, suffix = match.groups()
    scale = SPICE_SCALE_FACTORS[suffix.lower()] if suffix else 1.0
    return float(mantissa) * scale


def spice_length_to_microns(text: str) -> float:
    """Interprets a SPICE length (in meters) and returns it in microns."""
    length = Quantity(parse_spice_number(text), ureg.meter)
    return float(length.to(ureg.micrometer).magnitude)


def spice_capacitance_to_femtofarads(text: str) -> float:
    """Interprets a SPICE capacitance (in farads) and returns it in fF."""
    cap = Quantity(parse_spice_number(text), ureg.farad)
    return float(cap.to(ureg.femtofarad).magnitude)


def format_number(value: float) -> str:
    """Canonical short text form for generated parameter values ('1', '0.15')."""
    return f"{round(value, 9):g}"
