# src/gencell_core/generators/elements.py
"""
Reference generators of the `toolkit` library: a resistor, a capacitor, n- and
p-channel transistors (cell generators) and a bipolar transistor array
(non-cell generator).

They draw technology-neutral rectangles on symbolic layers. A process design kit
registers its own generators under its own library name; these exist so that
netlists can be assembled and the lifecycle exercised without one.
"""

import logging
from typing import List, Optional, Tuple

from ..layout.database import LayoutDatabase
from ..layout.geometry import BBox
from ..parameters import MULTIPLICITY_KEY, NOCELL_KEY, ParameterDictionary, get_multiplicity
from ..units import format_number, parse_spice_number, spice_capacitance_to_femtofarads, spice_length_to_microns
from .base import GeneratorBase, register_generator
from .dialog import DialogField, checkbox, entry, message, selectindex, selectlist

logger = logging.getLogger(__name__)

# Minimum drawn feature size, microns.
MIN_FEATURE = 0.1
# Spacing between repeated device bodies, microns.
DEVICE_SPACING = 0.5
# Capacitance per unit area of the reference MIM capacitor, fF/um^2.
CAP_DENSITY = 2.0


def _strip_delimiters(value: str) -> str:
    """Netlist values may arrive as 'expr' or {expr}; the reference generators take plain numbers."""
    value = str(value).strip()
    if len(value) >= 2 and (value[0], value[-1]) in (("'", "'"), ("{", "}")):
        return value[1:-1].strip()
    return value


def _positive_number(parameters: ParameterDictionary, name: str, minimum: float = MIN_FEATURE) -> float:
    raw = parameters[name]
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"Parameter '{name}' must be a number, got '{raw}'.") from None
    if value < minimum:
        logger.warning(f"Parameter '{name}'={raw} is below the minimum {minimum}; clamping.")
        return minimum
    return value


def _convert_lengths(parameters: ParameterDictionary, defaults: ParameterDictionary,
                     lengths: Tuple[str, ...]) -> ParameterDictionary:
    """
    Keeps only the parameters the generator knows, converting SPICE lengths in
    meters ('0.15u') to microns ('0.15'). Unknown netlist parameters are dropped.
    """
    converted = ParameterDictionary()
    for name, value in parameters.items():
        key = name.lower()
        if key not in defaults:
            logger.debug(f"Dropping netlist parameter '{name}' not used by the generator.")
            continue
        plain = _strip_delimiters(value)
        if key in lengths:
            converted[key] = format_number(spice_length_to_microns(plain))
        else:
            converted[key] = plain
    return converted


# --- Resistor ---

RES_MATERIALS = ("poly", "ndiff", "pdiff", "nwell")


@register_generator("res")
class PolyResistor(GeneratorBase):
    """A serpentine-free resistor body: one w x l bar per multiple, side by side."""

    def defaults(self) -> ParameterDictionary:
        return ParameterDictionary([("w", "1"), ("l", "2"), ("material", "0"), (MULTIPLICITY_KEY, "1")])

    def convert(self, parameters: ParameterDictionary) -> ParameterDictionary:
        return _convert_lengths(parameters, self.defaults(), ("w", "l"))

    def dialog(self, parameters: ParameterDictionary) -> List[DialogField]:
        return [
            message("info", "Resistor body, dimensions in microns", {"info": ""}),
            entry("w", "Width (um)", parameters),
            entry("l", "Length (um)", parameters),
            selectindex("material", "Material", RES_MATERIALS, parameters),
            entry(MULTIPLICITY_KEY, "Multiplier", parameters),
        ]

    def check(self, parameters: ParameterDictionary) -> ParameterDictionary:
        checked = ParameterDictionary(parameters)
        checked["w"] = format_number(_positive_number(checked, "w"))
        checked["l"] = format_number(_positive_number(checked, "l"))
        index = int(checked["material"])
        if not 0 <= index < len(RES_MATERIALS):
            raise ValueError(f"Material index {index} is out of range 0-{len(RES_MATERIALS) - 1}.")
        checked[MULTIPLICITY_KEY] = str(max(1, get_multiplicity(checked)))
        return checked

    def draw(self, parameters: ParameterDictionary, layout: LayoutDatabase) -> Optional[str]:
        w = float(parameters["w"])
        length = float(parameters["l"])
        layer = RES_MATERIALS[int(parameters["material"])]
        for i in range(get_multiplicity(parameters)):
            x = i * (w + DEVICE_SPACING)
            layout.paint(layer, BBox.from_size((x, 0.0), w, length))
            layout.paint("m1", BBox.from_size((x, -MIN_FEATURE), w, MIN_FEATURE))
            layout.paint("m1", BBox.from_size((x, length), w, MIN_FEATURE))
        return None


# --- Capacitor ---

@register_generator("cap")
class MimCapacitor(GeneratorBase):
    """A metal-insulator-metal capacitor; `square` keeps l equal to w while editing."""

    def defaults(self) -> ParameterDictionary:
        return ParameterDictionary([("w", "5"), ("l", "5"), ("square", "0"), (MULTIPLICITY_KEY, "1")])

    def convert(self, parameters: ParameterDictionary) -> ParameterDictionary:
        lowered = {k.lower(): v for k, v in parameters.items()}
        if "c" in lowered and "w" not in lowered:
            # A bare capacitance value: size a square plate for it.
            area = spice_capacitance_to_femtofarads(_strip_delimiters(lowered["c"])) / CAP_DENSITY
            side = format_number(max(area, MIN_FEATURE ** 2) ** 0.5)
            lowered = {**lowered, "w": f"{side}e-6", "l": f"{side}e-6"}
        return _convert_lengths(ParameterDictionary(lowered), self.defaults(), ("w", "l"))

    def dialog(self, parameters: ParameterDictionary) -> List[DialogField]:
        return [
            entry("w", "Width (um)", parameters),
            entry("l", "Length (um)", parameters),
            checkbox("square", "Square plates", parameters),
            entry(MULTIPLICITY_KEY, "Multiplier", parameters),
            message("value", "Capacitance (fF)", {"value": self.capacitance_text(parameters)}),
        ]

    def on_parameter_change(self, name: str, parameters: ParameterDictionary) -> ParameterDictionary:
        if parameters.get("square") == "1" and name in ("w", "l"):
            updated = ParameterDictionary(parameters)
            other = "l" if name == "w" else "w"
            updated[other] = updated[name]
            return updated
        return parameters

    def check(self, parameters: ParameterDictionary) -> ParameterDictionary:
        checked = ParameterDictionary(parameters)
        checked["w"] = format_number(_positive_number(checked, "w", minimum=1.0))
        checked["l"] = format_number(_positive_number(checked, "l", minimum=1.0))
        if checked["square"] == "1":
            checked["l"] = checked["w"]
        checked[MULTIPLICITY_KEY] = str(max(1, get_multiplicity(checked)))
        return checked

    @staticmethod
    def capacitance_text(parameters: ParameterDictionary) -> str:
        try:
            area = float(parameters["w"]) * float(parameters["l"])
        except (KeyError, ValueError):
            return ""
        return format_number(area * CAP_DENSITY * get_multiplicity(parameters))

    def draw(self, parameters: ParameterDictionary, layout: LayoutDatabase) -> Optional[str]:
        w = float(parameters["w"])
        length = float(parameters["l"])
        for i in range(get_multiplicity(parameters)):
            x = i * (w + 2 * DEVICE_SPACING)
            layout.paint("m3", BBox.from_size((x - MIN_FEATURE, -MIN_FEATURE), w + 2 * MIN_FEATURE,
                                              length + 2 * MIN_FEATURE))
            layout.paint("mimcap", BBox.from_size((x, 0.0), w, length))
        return None


# --- MOSFETs ---

class MosfetGenerator(GeneratorBase):
    """Common drawing for the n- and p-channel transistor generators."""
    models: Tuple[str, ...] = ()
    diffusion_layer = ""
    well_layer: Optional[str] = None

    def defaults(self) -> ParameterDictionary:
        return ParameterDictionary([
            ("w", "1"), ("l", "0.15"), ("nf", "1"), (MULTIPLICITY_KEY, "1"), ("model", self.models[0]),
        ])

    def convert(self, parameters: ParameterDictionary) -> ParameterDictionary:
        converted = _convert_lengths(parameters, self.defaults(), ("w", "l"))
        if "nf" in converted:
            converted["nf"] = str(int(parse_spice_number(converted["nf"])))
        return converted

    def dialog(self, parameters: ParameterDictionary) -> List[DialogField]:
        return [
            entry("w", "Width (um)", parameters),
            entry("l", "Length (um)", parameters),
            entry("nf", "Fingers", parameters),
            entry(MULTIPLICITY_KEY, "Multiplier", parameters),
            selectlist("model", "Device model", self.models, parameters, initial=self.models[0]),
        ]

    def check(self, parameters: ParameterDictionary) -> ParameterDictionary:
        checked = ParameterDictionary(parameters)
        checked["w"] = format_number(_positive_number(checked, "w", minimum=0.42))
        checked["l"] = format_number(_positive_number(checked, "l", minimum=0.15))
        nf = int(float(checked["nf"]))
        if nf < 1:
            raise ValueError(f"Number of fingers must be at least 1, got {nf}.")
        checked["nf"] = str(nf)
        if checked["model"] not in self.models:
            raise ValueError(f"Unknown device model '{checked['model']}'; expected one of {list(self.models)}.")
        checked[MULTIPLICITY_KEY] = str(max(1, get_multiplicity(checked)))
        return checked

    def draw(self, parameters: ParameterDictionary, layout: LayoutDatabase) -> Optional[str]:
        w = float(parameters["w"])
        length = float(parameters["l"])
        fingers = int(parameters["nf"]) * get_multiplicity(parameters)
        # Each finger is a gate between two shared source/drain strips.
        contact = 0.5
        pitch = length + contact
        total = fingers * pitch + contact
        layout.paint(self.diffusion_layer, BBox(0.0, 0.0, total, w))
        for i in range(fingers):
            x = contact + i * pitch
            layout.paint("poly", BBox(x, -0.13, x + length, w + 0.13))
        for i in range(fingers + 1):
            x = i * pitch
            layout.paint("locali", BBox(x + 0.1, 0.1, x + contact - 0.1, w - 0.1))
        if self.well_layer:
            layout.paint(self.well_layer, BBox(-0.2, -0.2, total + 0.2, w + 0.2))
        return None


@register_generator("nmos")
class NmosGenerator(MosfetGenerator):
    models = ("nfet", "nfet_lvt", "nfet_hvt")
    diffusion_layer = "ndiff"


@register_generator("pmos")
class PmosGenerator(MosfetGenerator):
    models = ("pfet", "pfet_lvt", "pfet_hvt")
    diffusion_layer = "pdiff"
    well_layer = "nwell"


# --- Bipolar (non-cell) ---

NPN_CELL_NAME = "toolkit_npn_unit"


@register_generator("npn")
class NpnArray(GeneratorBase):
    """
    An array of one fixed bipolar unit cell. The layout depends only on the array
    geometry, so the generator places the unit cell directly instead of producing
    a per-parameter artifact.
    """

    def defaults(self) -> ParameterDictionary:
        return ParameterDictionary([
            (NOCELL_KEY, "1"), ("nx", "1"), ("ny", "1"), ("pitchx", "0"), ("pitchy", "0"),
        ])

    def dialog(self, parameters: ParameterDictionary) -> List[DialogField]:
        return [
            entry("nx", "X repeat", parameters),
            entry("ny", "Y repeat", parameters),
            entry("pitchx", "X pitch (0 = abut)", parameters),
            entry("pitchy", "Y pitch (0 = abut)", parameters),
        ]

    def check(self, parameters: ParameterDictionary) -> ParameterDictionary:
        checked = ParameterDictionary(parameters)
        for key in ("nx", "ny"):
            checked[key] = str(max(1, int(float(checked[key]))))
        for key in ("pitchx", "pitchy"):
            checked[key] = format_number(max(0.0, float(checked[key])))
        return checked

    def _unit_cell(self, layout: LayoutDatabase) -> str:
        if not layout.cell_exists(NPN_CELL_NAME):
            layout.create_cell(NPN_CELL_NAME)
            with layout.editing(NPN_CELL_NAME):
                layout.paint("pdiff", BBox(0.0, 0.0, 5.0, 5.0))
                layout.paint("ndiff", BBox(1.5, 1.5, 3.5, 3.5))
                layout.paint("nwell", BBox(-0.5, -0.5, 5.5, 5.5))
        return NPN_CELL_NAME

    def draw(self, parameters: ParameterDictionary, layout: LayoutDatabase) -> Optional[str]:
        cell_name = self._unit_cell(layout)
        pitch_x = float(parameters["pitchx"]) or None
        pitch_y = float(parameters["pitchy"]) or None
        instance = layout.place_instance(
            cell_name,
            nx_count=int(parameters["nx"]),
            ny_count=int(parameters["ny"]),
            pitch_x=pitch_x,
            pitch_y=pitch_y,
        )
        return instance.name
