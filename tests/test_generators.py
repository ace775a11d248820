# tests/test_generators.py
import pytest

from gencell_core.generators import (
    GENERATOR_REGISTRY,
    FieldKind,
    GeneratorBase,
    GeneratorNotRegisteredError,
    GeneratorRegistry,
    parse_gencell_name,
    register_generator,
)
from gencell_core.generators.elements import NPN_CELL_NAME, RES_MATERIALS
from gencell_core.parameters import ParameterDictionary


class _Minimal(GeneratorBase):
    def defaults(self):
        return ParameterDictionary(a="1")

    def draw(self, parameters, layout):
        return None


class TestGencellNames:

    @pytest.mark.parametrize("name, expected", [
        ("sky130::nmos", ("sky130", "nmos")),
        ("nmos", ("toolkit", "nmos")),
        ("::nmos", ("toolkit", "nmos")),
        ("a::b::c", ("a::b", "c")),
    ])
    def test_parse(self, name, expected):
        assert parse_gencell_name(name) == expected

    def test_custom_default_library(self):
        assert parse_gencell_name("res", default_library="pdk") == ("pdk", "res")


class TestRegistry:

    def test_register_and_lookup_returns_fresh_instance(self):
        registry = GeneratorRegistry()
        register_generator("mini", library="lib", registry=registry)(_Minimal)
        first = registry.lookup("lib", "mini")
        assert isinstance(first, _Minimal)
        assert first is not registry.lookup("lib", "mini")
        assert first.fullname == "lib::mini"
        assert "lib::mini" in registry
        assert registry.libraries() == ["lib"]
        assert registry.types("lib") == ["mini"]

    def test_lookup_unknown_lists_available(self):
        """VERIFIES: The not-registered report names the library's registered types."""
        registry = GeneratorRegistry()
        registry.register("lib", "alpha", _Minimal)
        with pytest.raises(GeneratorNotRegisteredError) as excinfo:
            registry.lookup("lib", "beta")
        error = excinfo.value
        assert error.available == ["alpha"]
        report = error.get_diagnostic_report()
        assert "Unknown Generator" in report
        assert "lib::beta" in report
        assert "alpha" in report

    def test_lookup_unknown_library(self):
        with pytest.raises(GeneratorNotRegisteredError) as excinfo:
            GeneratorRegistry().lookup("nolib", "x")
        assert "No generators are registered" in excinfo.value.get_diagnostic_report()

    def test_unregister(self):
        registry = GeneratorRegistry()
        registry.register("lib", "alpha", _Minimal)
        registry.unregister("lib", "alpha")
        registry.unregister("lib", "never-there")
        assert not registry.is_registered("lib", "alpha")

    def test_reference_generators_registered_globally(self):
        for name in ("res", "cap", "nmos", "pmos", "npn"):
            assert f"toolkit::{name}" in GENERATOR_REGISTRY


class TestRegisterDecoratorContract:

    def test_rejects_non_generator_class(self):
        with pytest.raises(TypeError, match="must inherit from GeneratorBase"):
            @register_generator("plain", registry=GeneratorRegistry())
            class NotAGenerator:
                pass

    def test_rejects_defaults_that_raise(self):
        with pytest.raises(TypeError, match="validate the API contract"):
            @register_generator("boom", registry=GeneratorRegistry())
            class Exploding(_Minimal):
                def defaults(self):
                    raise RuntimeError("no defaults today")

    @pytest.mark.parametrize("bad_defaults", [None, ["w", "l"], {"": "1"}, {1: "1"}])
    def test_rejects_malformed_defaults(self, bad_defaults):
        with pytest.raises(TypeError, match="violates API contract"):
            @register_generator("bad", registry=GeneratorRegistry())
            class Malformed(_Minimal):
                def defaults(self):
                    return bad_defaults

    def test_sets_class_identity(self):
        registry = GeneratorRegistry()
        cls = register_generator("ident", library="mine", registry=registry)(type("Ident", (_Minimal,), {}))
        assert cls.gencell_type == "ident"
        assert cls.library == "mine"


class TestBaseCapabilities:

    def test_pass_through_defaults(self):
        generator = _Minimal()
        params = ParameterDictionary(a="2")
        assert generator.convert(params) == params
        assert generator.check(params) == params
        assert generator.on_parameter_change("a", params) is params
        assert not generator.is_nocell

    def test_default_dialog_skips_reserved_keys(self):
        class WithReserved(_Minimal):
            def defaults(self):
                return ParameterDictionary([("w", "1"), ("m", "1"), ("gencell", "x")])

        fields = WithReserved().dialog(ParameterDictionary(w="3"))
        assert [(f.kind, f.name, f.value) for f in fields] == [(FieldKind.ENTRY, "w", "3")]


class TestResistor:

    @pytest.fixture
    def res(self):
        return GENERATOR_REGISTRY.lookup("toolkit", "res")

    def test_convert_spice_parameters(self, res):
        converted = res.convert(ParameterDictionary([("W", "1u"), ("L", "'2.5u'"), ("mult", "3"), ("m", "2")]))
        assert list(converted.items()) == [("w", "1"), ("l", "2.5"), ("m", "2")]

    def test_check_clamps_to_minimum(self, res):
        checked = res.check(ParameterDictionary([("w", "0.01"), ("l", "3"), ("material", "1"), ("m", "0")]))
        assert checked["w"] == "0.1"
        assert checked["l"] == "3"
        assert checked["m"] == "1"

    def test_check_rejects_bad_material(self, res):
        with pytest.raises(ValueError, match="out of range"):
            res.check(ParameterDictionary([("w", "1"), ("l", "2"), ("material", "9"), ("m", "1")]))

    def test_check_rejects_non_numeric(self, res):
        with pytest.raises(ValueError, match="must be a number"):
            res.check(ParameterDictionary([("w", "wide"), ("l", "2"), ("material", "0"), ("m", "1")]))

    def test_dialog(self, res):
        fields = res.dialog(res.defaults())
        kinds = [f.kind for f in fields]
        assert kinds[0] is FieldKind.MESSAGE and not fields[0].editable
        material = next(f for f in fields if f.name == "material")
        assert material.kind is FieldKind.SELECTINDEX
        assert material.choices == RES_MATERIALS
        assert material.selected == "poly"

    def test_draw_one_body_per_multiple(self, res, layout):
        params = res.check(ParameterDictionary([("w", "1"), ("l", "2"), ("material", "0"), ("m", "2")]))
        res.draw(params, layout)
        bodies = [s for s in layout.edit_cell.shapes if s.layer == "poly"]
        assert len(bodies) == 2
        assert bodies[1].box.x1 == pytest.approx(1.5)


class TestCapacitor:

    @pytest.fixture
    def cap(self):
        return GENERATOR_REGISTRY.lookup("toolkit", "cap")

    def test_convert_sizes_square_plate_from_capacitance(self, cap):
        converted = cap.convert(ParameterDictionary(c="50f"))
        assert converted["w"] == "5"
        assert converted["l"] == "5"

    def test_square_mirrors_edits(self, cap):
        params = ParameterDictionary([("w", "7"), ("l", "5"), ("square", "1"), ("m", "1")])
        assert cap.on_parameter_change("w", params)["l"] == "7"
        assert cap.on_parameter_change("l", params)["w"] == "5"

    def test_non_square_edit_untouched(self, cap):
        params = ParameterDictionary([("w", "7"), ("l", "5"), ("square", "0"), ("m", "1")])
        assert cap.on_parameter_change("w", params) is params

    def test_check_enforces_square_and_minimum(self, cap):
        checked = cap.check(ParameterDictionary([("w", "0.5"), ("l", "9"), ("square", "1"), ("m", "1")]))
        assert checked["w"] == "1"
        assert checked["l"] == "1"

    def test_dialog_reports_capacitance(self, cap):
        fields = cap.dialog(cap.defaults())
        value = fields[-1]
        assert value.kind is FieldKind.MESSAGE
        assert value.value == "50"
        assert value.color == "blue"


class TestMosfets:

    @pytest.fixture
    def nmos(self):
        return GENERATOR_REGISTRY.lookup("toolkit", "nmos")

    def test_defaults_use_first_model(self, nmos):
        assert nmos.defaults()["model"] == "nfet"
        assert GENERATOR_REGISTRY.lookup("toolkit", "pmos").defaults()["model"] == "pfet"

    def test_convert(self, nmos):
        converted = nmos.convert(ParameterDictionary([("w", "1u"), ("l", "0.15u"), ("nf", "2"), ("ad", "1p")]))
        assert list(converted.items()) == [("w", "1"), ("l", "0.15"), ("nf", "2")]

    def test_check_clamps_width(self, nmos):
        checked = nmos.check(ParameterDictionary([("w", "0.2"), ("l", "0.15"), ("nf", "1"), ("m", "1"),
                                                  ("model", "nfet")]))
        assert checked["w"] == "0.42"

    @pytest.mark.parametrize("override, message", [
        ({"nf": "0"}, "at least 1"),
        ({"model": "pfet"}, "Unknown device model"),
    ])
    def test_check_rejects(self, nmos, override, message):
        params = nmos.defaults()
        params.update(override)
        with pytest.raises(ValueError, match=message):
            nmos.check(params)

    def test_model_select_list(self, nmos):
        field = next(f for f in nmos.dialog(nmos.defaults()) if f.name == "model")
        assert field.kind is FieldKind.SELECTLIST
        assert field.selected == "nfet"
        assert "nfet_lvt" in field.choices

    def test_pmos_draws_well(self, layout):
        pmos = GENERATOR_REGISTRY.lookup("toolkit", "pmos")
        pmos.draw(pmos.defaults(), layout)
        assert {s.layer for s in layout.edit_cell.shapes} >= {"pdiff", "poly", "nwell"}


class TestNpnArray:

    def test_is_nocell(self):
        assert GENERATOR_REGISTRY.lookup("toolkit", "npn").is_nocell

    def test_draw_places_unit_cell_array_at_cursor(self, layout):
        npn = GENERATOR_REGISTRY.lookup("toolkit", "npn")
        layout.cursor = (10.0, 0.0)
        params = npn.check(ParameterDictionary([("nocell", "1"), ("nx", "2"), ("ny", "0"),
                                                ("pitchx", "0"), ("pitchy", "-3")]))
        assert params["ny"] == "1" and params["pitchy"] == "0"
        name = npn.draw(params, layout)
        instance = layout.get_instance(name)
        assert instance.cell_name == NPN_CELL_NAME
        assert (instance.nx, instance.ny) == (2, 1)
        bbox = layout.instance_bbox(instance)
        assert bbox.lower_left == pytest.approx((10.0, 0.0))
        assert bbox.width == pytest.approx(12.0)

    def test_unit_cell_created_once(self, layout):
        npn = GENERATOR_REGISTRY.lookup("toolkit", "npn")
        npn.draw(npn.defaults(), layout)
        npn.draw(npn.defaults(), layout)
        assert len([c for c in layout.cells if c.name == NPN_CELL_NAME]) == 1
        assert len(layout.instances_of(NPN_CELL_NAME)) == 2
