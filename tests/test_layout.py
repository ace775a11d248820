# tests/test_layout.py
import pytest
import yaml

from gencell_core.layout import (
    NOT_FOUND_FLAG,
    PROPERTY_PARAMETERS,
    BBox,
    CellNotFoundError,
    DuplicateNameError,
    InstanceNotFoundError,
    LayoutDatabase,
    LayoutError,
    LayoutFileError,
    Orientation,
    bbox_union,
    load_layout,
    save_layout,
    transform_bbox,
)
from gencell_core.parameters import ParameterDictionary


class TestGeometry:

    def test_bbox_is_normalized(self):
        box = BBox(3, 4, 1, 2)
        assert box.as_list() == [1.0, 2.0, 3.0, 4.0]
        assert (box.width, box.height) == (2.0, 2.0)

    def test_from_size_and_translate(self):
        box = BBox.from_size((1, 1), 2, 3)
        assert box == BBox(1, 1, 3, 4)
        assert box.translated(-1, -1).lower_left == (0.0, 0.0)

    @pytest.mark.parametrize("orientation, expected", [
        (Orientation.R0, [0, 0, 2, 1]),
        (Orientation.R90, [-1, 0, 0, 2]),
        (Orientation.R180, [-2, -1, 0, 0]),
        (Orientation.R270, [0, -2, 1, 0]),
        (Orientation.MX, [0, -1, 2, 0]),
        (Orientation.MY, [-2, 0, 0, 1]),
    ])
    def test_transform_about_origin(self, orientation, expected):
        assert transform_bbox(BBox(0, 0, 2, 1), orientation).as_list() == pytest.approx(expected)

    def test_transform_then_translate(self):
        assert transform_bbox(BBox(0, 0, 2, 1), Orientation.R90, (5, 5)) == BBox(4, 5, 5, 7)

    def test_union(self):
        assert bbox_union([]) is None
        assert bbox_union([None, BBox(0, 0, 1, 1), BBox(-1, 2, 0, 3)]) == BBox(-1, 0, 1, 3)
        assert BBox(0, 0, 1, 1).union(None) == BBox(0, 0, 1, 1)


class TestCells:

    def test_names_are_case_insensitive(self, layout):
        layout.create_cell("Inv")
        assert layout.cell_exists("INV")
        assert layout.get_cell("inv").name == "Inv"
        with pytest.raises(DuplicateNameError):
            layout.create_cell("inv")

    def test_unknown_cell(self, layout):
        with pytest.raises(CellNotFoundError) as excinfo:
            layout.get_cell("missing")
        assert "Unknown Cell" in excinfo.value.get_diagnostic_report()

    def test_load_creates_and_sets_edit_cell(self, layout):
        cell = layout.load("other")
        assert layout.edit_cell is cell
        assert layout.load("top") is layout.get_cell("top")

    def test_editing_is_temporary(self, layout):
        layout.create_cell("leaf")
        with layout.editing("leaf"):
            layout.paint("m1", BBox(0, 0, 1, 1))
            assert layout.edit_cell.name == "leaf"
        assert layout.edit_cell.name == "top"
        assert layout.cell_bbox("leaf") == BBox(0, 0, 1, 1)
        assert layout.cell_bbox("top") is None

    def test_referenced_cell_cannot_be_deleted(self, layout):
        layout.create_cell("leaf")
        layout.place_instance("leaf", name="L0")
        with pytest.raises(LayoutError, match="still used"):
            layout.delete_cell("leaf")
        layout.delete_instance("L0")
        layout.delete_cell("leaf")
        assert not layout.cell_exists("leaf")

    def test_edit_cell_cannot_be_deleted(self, layout):
        with pytest.raises(LayoutError, match="being edited"):
            layout.delete_cell("top")

    def test_erase_ports_keeps_other_geometry(self, layout):
        layout.paint("m1", BBox(0, 0, 1, 1))
        layout.label("A", "m1", (0.5, 0.5), port=0)
        layout.paint("m1", BBox(4, 4, 6, 6))
        layout.paint("m2", BBox(0, 0, 1, 1))
        layout.label("note", "m1", (5, 5))
        assert layout.erase_ports() == 1
        cell = layout.edit_cell
        assert cell.ports == []
        assert [lab.text for lab in cell.labels] == ["note"]
        assert [(s.layer, s.box) for s in cell.shapes] == [("m1", BBox(4, 4, 6, 6)), ("m2", BBox(0, 0, 1, 1))]
        assert layout.erase_ports() == 0


class TestInstances:

    @pytest.fixture
    def leaf(self, layout):
        layout.create_cell("leaf")
        with layout.editing("leaf"):
            layout.paint("m1", BBox(1, 1, 3, 2))
        return "leaf"

    def test_placed_bbox_lands_on_cursor(self, layout, leaf):
        layout.cursor = (10, 10)
        instance = layout.place_instance(leaf)
        assert instance.origin == (9.0, 9.0)
        assert layout.instance_bbox(instance) == BBox(10, 10, 12, 11)

    def test_default_names_take_lowest_free_index(self, layout, leaf):
        names = [layout.place_instance(leaf).name for _ in range(3)]
        assert names == ["leaf_0", "leaf_1", "leaf_2"]
        layout.delete_instance("leaf_1")
        assert layout.place_instance(leaf).name == "leaf_1"

    def test_duplicate_instance_name(self, layout, leaf):
        layout.place_instance(leaf, name="A")
        with pytest.raises(DuplicateNameError):
            layout.place_instance(leaf, name="A")

    def test_cycles_are_rejected(self, layout, leaf):
        layout.create_cell("mid")
        with layout.editing("mid"):
            layout.place_instance(leaf, name="L")
        with layout.editing(leaf):
            with pytest.raises(LayoutError, match="cycle"):
                layout.place_instance("mid", name="M")
            with pytest.raises(LayoutError, match="cycle"):
                layout.place_instance(leaf, name="self")

    def test_hierarchy_queries(self, layout, leaf):
        layout.create_cell("mid")
        with layout.editing("mid"):
            layout.place_instance(leaf, name="L1")
            layout.place_instance(leaf, name="L2")
        layout.place_instance("mid", name="M")
        assert layout.parents(leaf) == ["mid"]
        assert layout.children("top") == ["mid"]
        assert sorted(layout.descendants("top")) == ["leaf", "mid"]
        assert sorted(i.name for i in layout.instances_of(leaf)) == ["L1", "L2"]
        assert layout.parents("nonexistent") == []

    def test_rename_keeps_order(self, layout, leaf):
        for name in ("A", "B", "C"):
            layout.place_instance(leaf, name=name)
        layout.select("B")
        layout.rename_instance("B", "Z")
        assert list(layout.edit_cell.instances) == ["A", "Z", "C"]
        assert [i.name for i in layout.selection] == ["Z"]
        assert [i.name for i in layout.instances_of(leaf)].count("Z") == 1

    def test_rename_to_taken_name(self, layout, leaf):
        layout.place_instance(leaf, name="A")
        layout.place_instance(leaf, name="B")
        with pytest.raises(DuplicateNameError):
            layout.rename_instance("A", "B")

    def test_array_bbox_and_default_pitch(self, layout, leaf):
        instance = layout.place_instance(leaf, at=(0, 0), name="A")
        layout.set_array("A", 3, 2)
        assert (instance.pitch_x, instance.pitch_y) == (2.0, 1.0)
        assert instance.is_array
        assert layout.instance_bbox(instance) == BBox(0, 0, 6, 2)

    def test_explicit_pitch(self, layout, leaf):
        instance = layout.place_instance(leaf, at=(0, 0), nx_count=2, pitch_x=5.0)
        assert layout.instance_bbox(instance) == BBox(0, 0, 7, 1)

    def test_unknown_instance(self, layout):
        with pytest.raises(InstanceNotFoundError) as excinfo:
            layout.get_instance("ghost")
        assert excinfo.value.parent == "top"

    def test_selection_follows_deletion(self, layout, leaf):
        layout.place_instance(leaf, name="A")
        layout.select("A")
        layout.delete_instance("A")
        assert layout.selection == []


class TestObservers:

    def test_each_change_notifies_immediately(self, layout, event_log):
        layout.paint("m1", BBox(0, 0, 1, 1))
        layout.create_cell("leaf")
        assert event_log == [[("paint", "top")], [("create_cell", "leaf")]]

    def test_suspension_batches_and_nests(self, layout, event_log):
        with layout.suspended():
            layout.paint("m1", BBox(0, 0, 1, 1))
            with layout.suspended():
                layout.create_cell("leaf")
            assert event_log == []
            layout.place_instance("leaf", name="L")
        assert event_log == [[("paint", "top"), ("create_cell", "leaf"), ("place_instance", "L")]]

    def test_events_delivered_when_block_raises(self, layout, event_log):
        with pytest.raises(RuntimeError):
            with layout.suspended():
                layout.paint("m1", BBox(0, 0, 1, 1))
                raise RuntimeError("abort")
        assert event_log == [[("paint", "top")]]


class TestPersistence:

    @pytest.fixture
    def populated(self, layout):
        layout.create_cell("leaf_ABC234")
        with layout.editing("leaf_ABC234"):
            layout.paint("m1", BBox(0, 0, 2, 1))
            layout.label("A", "m1", (0.5, 0.5), port=0)
        cell = layout.get_cell("leaf_ABC234")
        cell.properties.update({
            "library": "test",
            "gencell": "leaf",
            PROPERTY_PARAMETERS: ParameterDictionary([("z", "1"), ("a", "2"), ("m", "3")]),
        })
        layout.place_instance("leaf_ABC234", at=(4, 4), orientation=Orientation.MY, name="X1",
                              nx_count=2, ny_count=3)
        via = layout.place_instance("leaf_ABC234", at=(0, 10), name="V1")
        via.parameters = ParameterDictionary([("nocell", "1"), ("nx", "1")])
        return layout

    def test_round_trip(self, populated, tmp_path):
        path = save_layout(populated, tmp_path / "out" / "top.yaml")
        loaded = load_layout(path)

        assert sorted(c.name for c in loaded.cells) == ["leaf_ABC234", "top"]
        assert loaded.edit_cell.name == "top"
        leaf = loaded.get_cell("leaf_abc234")
        params = leaf.properties[PROPERTY_PARAMETERS]
        assert isinstance(params, ParameterDictionary)
        assert list(params.items()) == [("z", "1"), ("a", "2"), ("m", "3")]
        assert leaf.ports[0].text == "A"

        x1 = loaded.get_instance("X1")
        original = populated.get_instance("X1")
        assert x1.orientation is Orientation.MY
        assert (x1.nx, x1.ny) == (2, 3)
        assert x1.origin == pytest.approx(original.origin)
        assert loaded.instance_bbox(x1) == populated.instance_bbox(original)
        assert list(loaded.get_instance("V1").parameters.items()) == [("nocell", "1"), ("nx", "1")]
        assert list(loaded.edit_cell.instances) == ["X1", "V1"]

    def test_save_subtree_only(self, populated, tmp_path):
        populated.create_cell("unrelated")
        path = save_layout(populated, tmp_path / "leaf.yaml", top="LEAF_abc234")
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert document["top"] == "leaf_ABC234"
        assert [c["name"] for c in document["cells"]] == ["leaf_ABC234"]

    def test_unknown_reference_becomes_placeholder(self, tmp_path):
        path = tmp_path / "dangling.yaml"
        path.write_text(yaml.safe_dump({
            "cells": [{"name": "top", "instances": [{"name": "I0", "cell": "missing", "origin": [0, 0]}]}],
        }), encoding="utf-8")
        loaded = load_layout(path)
        placeholder = loaded.get_cell("missing")
        assert placeholder.is_placeholder
        assert NOT_FOUND_FLAG in placeholder.flags
        assert loaded.get_instance("I0", parent="top").cell_name == "missing"

    def test_schema_errors_are_listed(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({
            "cells": [
                {"name": "top", "instances": [{"name": "I0", "cell": "a", "origin": [0, 0], "orientation": "R45"}]},
                {"name": "TOP"},
            ],
        }), encoding="utf-8")
        with pytest.raises(LayoutFileError) as excinfo:
            load_layout(path)
        error = excinfo.value
        assert "cells" in error.errors
        report = error.get_diagnostic_report()
        assert "Duplicate values found for key 'name'" in report

    def test_missing_file(self, tmp_path):
        with pytest.raises(LayoutFileError, match="not found"):
            load_layout(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("cells: [\n", encoding="utf-8")
        with pytest.raises(LayoutFileError, match="Invalid YAML"):
            load_layout(path)

    def test_loading_over_populated_cell_is_refused(self, populated, tmp_path):
        path = save_layout(populated, tmp_path / "top.yaml")
        with pytest.raises(LayoutFileError, match="already exists"):
            load_layout(path, layout=populated)
