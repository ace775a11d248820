# tests/conftest.py

"""
Shared fixtures for the gencell_core test suite.

Lifecycle and assembly tests run against a private GeneratorRegistry in the
`test` library, populated with small, predictable generators defined here, so
they never depend on (or modify) the reference generators of the global
registry. Tests of the reference generators use GENERATOR_REGISTRY directly.
"""

import pytest

from gencell_core.config import ToolkitConfig
from gencell_core.generators import GeneratorBase, GeneratorRegistry, register_generator
from gencell_core.layout import BBox, LayoutDatabase
from gencell_core.lifecycle import GencellManager
from gencell_core.assembly import LayoutAssembler
from gencell_core.parameters import NOCELL_KEY, ParameterDictionary

TEST_LIBRARY = "test"


class BoxGenerator(GeneratorBase):
    """Draws one w x h rectangle on m1."""

    def defaults(self):
        return ParameterDictionary([("w", "2"), ("h", "1")])

    def check(self, parameters):
        checked = ParameterDictionary(parameters)
        for key in ("w", "h"):
            if float(checked[key]) <= 0:
                raise ValueError(f"{key} must be positive")
        return checked

    def draw(self, parameters, layout):
        layout.paint("m1", BBox(0, 0, float(parameters["w"]), float(parameters["h"])))
        return None


class BarGenerator(GeneratorBase):
    """A second cell generator, the target of `gencell` type redirects."""

    def defaults(self):
        return ParameterDictionary([("len", "4")])

    def draw(self, parameters, layout):
        layout.paint("poly", BBox(0, 0, float(parameters["len"]), 0.5))
        return None


class FailingCheckGenerator(BoxGenerator):
    def check(self, parameters):
        raise ValueError("check exploded")


class FailingDrawGenerator(BoxGenerator):
    def draw(self, parameters, layout):
        layout.paint("m1", BBox(0, 0, 1, 1))
        raise RuntimeError("draw exploded halfway")


class ViaArrayGenerator(GeneratorBase):
    """Non-cell generator: arrays a fixed unit cell at the cursor."""

    def defaults(self):
        return ParameterDictionary([(NOCELL_KEY, "1"), ("nx", "1"), ("ny", "1"), ("pitchx", "0"), ("pitchy", "0")])

    def draw(self, parameters, layout):
        if not layout.cell_exists("via_unit"):
            layout.create_cell("via_unit")
            with layout.editing("via_unit"):
                layout.paint("via", BBox(0, 0, 1, 1))
        instance = layout.place_instance(
            "via_unit",
            nx_count=int(parameters["nx"]),
            ny_count=int(parameters["ny"]),
            pitch_x=float(parameters["pitchx"]) or None,
            pitch_y=float(parameters["pitchy"]) or None,
        )
        return instance.name


@pytest.fixture
def test_registry():
    registry = GeneratorRegistry()
    for name, cls in (("box", BoxGenerator), ("bar", BarGenerator), ("badcheck", FailingCheckGenerator),
                      ("baddraw", FailingDrawGenerator), ("via", ViaArrayGenerator)):
        # Fresh subclasses so the decorator's class attributes never leak between names.
        register_generator(name, library=TEST_LIBRARY, registry=registry)(type(cls.__name__, (cls,), {}))
    return registry


@pytest.fixture
def test_config():
    return ToolkitConfig(default_library=TEST_LIBRARY, pdk_namespace=TEST_LIBRARY)


@pytest.fixture
def layout():
    return LayoutDatabase(top_cell="top")


@pytest.fixture
def manager(layout, test_registry, test_config):
    return GencellManager(layout, registry=test_registry, config=test_config)


@pytest.fixture
def assembler(manager):
    return LayoutAssembler(manager)


@pytest.fixture
def event_log(layout):
    """Collects the batches delivered to layout observers."""
    batches = []
    layout.add_observer(batches.append)
    return batches
