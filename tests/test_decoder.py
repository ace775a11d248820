# tests/test_decoder.py
import pytest

from gencell_core.parser import DeviceDecodeError, ParseIssueCode, decode_device_line
from gencell_core.parser.decoder import split_parameters, split_positional_tokens


class TestPositionalTokens:

    def test_tokens_stop_at_first_parameter(self):
        tokens, rest = split_positional_tokens("M1 d g s b nfet w=1u l=0.15u")
        assert tokens == ["M1", "d", "g", "s", "b", "nfet"]
        assert rest == "w=1u l=0.15u"

    def test_tabs_and_repeated_whitespace(self):
        tokens, rest = split_positional_tokens("X3\t a \t b   inv")
        assert tokens == ["X3", "a", "b", "inv"]
        assert rest == ""


class TestDecodeDeviceLine:

    def test_transistor_line(self):
        record = decode_device_line("M1 d g s b nfet w=1u l=0.15u", line_number=7)
        assert record.instance_name == "M1"
        assert record.device_type == "nfet"
        assert record.pins == ("d", "g", "s", "b")
        assert list(record.parameters.items()) == [("w", "1u"), ("l", "0.15u")]
        assert record.multiplicity == 1
        assert record.line_number == 7

    def test_subcircuit_call_without_parameters(self):
        record = decode_device_line("X1 in out inv")
        assert record.pins == ("in", "out")
        assert record.device_type == "inv"
        assert len(record.parameters) == 0

    def test_two_token_line_has_no_pins(self):
        """VERIFIES: 'X1 cellname' decodes to an instance with no pins."""
        record = decode_device_line("X1 filler")
        assert record.instance_name == "X1"
        assert record.device_type == "filler"
        assert record.pins == ()

    def test_quoted_and_braced_values_keep_delimiters(self):
        """VERIFIES: Expression values may contain spaces and are stored verbatim."""
        record = decode_device_line("R1 a b res w='1u * 2' l={2 * lmin} m=2")
        assert record.parameters["w"] == "'1u * 2'"
        assert record.parameters["l"] == "{2 * lmin}"
        assert record.multiplicity == 2

    def test_quoted_multiplicity(self):
        record = decode_device_line("X1 a b cap M='3'")
        assert record.multiplicity == 3

    def test_float_multiplicity(self):
        record = decode_device_line("X1 a b cap m=2.0")
        assert record.multiplicity == 2

    def test_unparseable_multiplicity_defaults_to_one(self):
        record = decode_device_line("X1 a b cap m=many")
        assert record.multiplicity == 1

    def test_repeated_parameter_last_value_wins(self):
        record = decode_device_line("M1 d g s b nfet w=1u w=2u")
        assert record.parameters["w"] == "2u"
        assert len(record.parameters) == 1

    def test_single_token_is_a_device_tokens_error(self):
        with pytest.raises(DeviceDecodeError) as excinfo:
            decode_device_line("X1 w=1u", line_number=3)
        error = excinfo.value
        assert error.code is ParseIssueCode.DEV_TOKENS
        assert error.tokens == ("X1",)
        assert error.fragment == "w=1u"
        assert error.line_number == 3

    def test_bad_parameter_fragment(self):
        """VERIFIES: The error carries the first fragment no parameter form accepts."""
        with pytest.raises(DeviceDecodeError) as excinfo:
            decode_device_line("M1 d g s b nfet w=1u junk l=2u")
        error = excinfo.value
        assert error.code is ParseIssueCode.DEV_PARAM_SYNTAX
        assert error.fragment == "junk l=2u"
        assert "junk l=2u" in error.get_diagnostic_report()

    def test_unclosed_quote_is_a_syntax_error(self):
        with pytest.raises(DeviceDecodeError):
            decode_device_line("R1 a b res w='1u * 2")


class TestSplitParameters:

    def test_empty(self):
        assert len(split_parameters("   ")) == 0

    def test_forms_are_tried_in_order(self):
        params = split_parameters("a='x y' b={p q} c=3")
        assert list(params.items()) == [("a", "'x y'"), ("b", "{p q}"), ("c", "3")]
