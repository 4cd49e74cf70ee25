"""
Functional Tests - Test reader, query engine, edits, writer and converters working together.
"""

import json
import tempfile
from pathlib import Path

import pytest

from hl7tree import hl7, parse, data
from hl7tree.errors import (
    IllegalOperationError, QueryDepthError, UnparsedMessageError, UnknownCommandError,
)
from hl7tree.getset import (
    get, get_values, get_reverse, set, clear, delete, add,
    insert, insert_before, insert_after, each,
)
from hl7tree.message import HL7Message
from hl7tree.query import query
from hl7tree.reader import HL7Reader
from hl7tree.writer import HL7Writer
from hl7tree import converters


SAMPLE = (
    "MSH|^~\\&|SENDER|FAC|RECV|FAC|20240101||ADT^A01|123|P|2.5\r"
    "PID|||X~Y||DOE^JOHN^^^MR&SR\r"
    "OBX|1|ST|CODE^Text||42\r"
    "OBX|2|ST|CODE2||43"
)
HEADER, PID, OBX1, OBX2 = SAMPLE.split("\r")


@pytest.fixture
def msg():
    return parse(SAMPLE)


def segment_text(message, index):
    return data(message).split("\r")[index]


# =============================================================================
# Reader
# =============================================================================

class TestReader:

    def test_parse_segments(self, msg):
        assert msg.parsed
        assert msg.segment_names == ["MSH", "PID", "OBX", "OBX"]

    def test_header_slots(self, msg):
        header = msg.segments[0]
        assert header[0] == "MSH"
        assert header[1] == "|"
        assert header[2] == "^~\\&"
        assert len(header) == 13

    def test_nested_levels(self, msg):
        pid = msg.segments[1]
        assert pid[3] == [[["X"]], [["Y"]]]
        assert pid[5] == [[["DOE"], ["JOHN"], [""], [""], ["MR", "SR"]]]

    def test_parse_lf_separator(self):
        msg = parse(SAMPLE.replace("\r", "\n"), "\n")
        assert msg.separators.segment == "\n"
        assert msg.segment_names == ["MSH", "PID", "OBX", "OBX"]

    def test_wrong_separator_gives_one_segment(self):
        msg = parse(SAMPLE.replace("\r", "\n"))
        assert len(msg.segments) == 1

    def test_header_only(self):
        msg = parse("MSH|^~\\&")
        assert msg.segments == [["MSH", "|", "^~\\&"]]

    def test_is_hl7_text(self):
        assert HL7Reader.is_hl7_text(SAMPLE)
        assert not HL7Reader.is_hl7_text("PID|||X")
        assert not HL7Reader.is_hl7_text("MSH|")

    def test_read_file(self):
        with tempfile.NamedTemporaryFile(suffix=".hl7", delete=False) as f:
            f.write(SAMPLE.encode("utf-8"))
            path = f.name
        try:
            assert HL7Reader.is_hl7(path)
            msg = HL7Reader.read(path)
            assert data(msg) == SAMPLE
        finally:
            Path(path).unlink()

    def test_read_file_too_large(self):
        with tempfile.NamedTemporaryFile(suffix=".hl7", delete=False) as f:
            f.write(SAMPLE.encode("utf-8"))
            path = f.name
        try:
            with pytest.raises(ValueError, match="exceeds maximum"):
                HL7Reader.read(path, max_size=10)
        finally:
            Path(path).unlink()


# =============================================================================
# Writer
# =============================================================================

class TestWriter:

    def test_roundtrip(self, msg):
        assert data(msg) == SAMPLE

    def test_header_slots_rebuilt_from_separators(self, msg):
        edited = set(msg, "MSH.1", "#")
        edited = set(edited, "MSH.2", "XXXX")
        assert data(edited) == SAMPLE

    def test_build_node(self, msg):
        seps = msg.separators
        assert HL7Writer.build_node(msg.segments[1][5], 2, seps) == "DOE^JOHN^^^MR&SR"
        assert HL7Writer.build_node(msg.segments[1][5][0][4], 4, seps) == "MR&SR"
        assert HL7Writer.build_node("plain", 3, seps) == "plain"

    def test_unparsed(self):
        with pytest.raises(UnparsedMessageError):
            HL7Writer.serialize(HL7Message())

    def test_write_to_file(self, msg):
        with tempfile.TemporaryDirectory() as tmp:
            path = str(Path(tmp) / "out.hl7")
            nbytes = HL7Writer.write(msg, path)
            raw = Path(path).read_bytes()
            assert nbytes == len(raw)
            assert raw == SAMPLE.encode("utf-8")
            assert list(Path(tmp).iterdir()) == [Path(path)]


# =============================================================================
# Query
# =============================================================================

class TestQuery:

    def test_segment_glob(self, msg):
        assert query(msg, "O*") == ["2", "3"]

    def test_every_field_of_a_segment(self, msg):
        assert query(msg, "PID.*") == ["1.0", "1.1", "1.2", "1.3", "1.4", "1.5"]

    def test_empty_part_stops_resolution(self, msg):
        assert query(msg, "PID..3") == ["1"]
        assert query(msg, "PID.3.") == ["1.3"]

    def test_many_repetitions_order_numerically(self):
        msg = parse("MSH|^~\\&\rPID|||" + "~".join(f"R{i}" for i in range(11)))
        addresses = query(msg, "PID.3.*")
        assert addresses[2] == "1.3.2"
        assert addresses[-1] == "1.3.10"
        assert query(msg, "PID.3.*", reverse=True)[0] == "1.3.10"

    def test_depth_errors(self, msg):
        with pytest.raises(QueryDepthError):
            query(msg, "")
        with pytest.raises(QueryDepthError):
            query(msg, "PID.1.2.3.4.5")

    def test_unparsed(self):
        with pytest.raises(UnparsedMessageError):
            query("MSH|^~\\&", "PID")


# =============================================================================
# Get
# =============================================================================

class TestGet:

    def test_leaf_values(self, msg):
        assert get(msg, "PID.3.*.0.0") == [("X", "1.3.0.0.0"), ("Y", "1.3.1.0.0")]

    def test_nested_values(self, msg):
        assert get(msg, "PID.3.*") == [([["X"]], "1.3.0"), ([["Y"]], "1.3.1")]

    def test_header_fields(self, msg):
        assert get_values(msg, "MSH.1") == ["|"]
        assert get_values(msg, "MSH.2") == ["^~\\&"]
        assert get_values(msg, "MSH.9.0.1.0") == ["A01"]
        assert get_values(msg, "MSH.10.0.0.0") == ["123"]

    def test_reverse(self, msg):
        assert get_values(msg, "OBX.5.0.0.0", reverse=True) == ["43", "42"]
        assert get_reverse(msg, "OBX.5.0.0.0") == [("43", "3.5.0.0.0"), ("42", "2.5.0.0.0")]

    def test_missing_reads_blank(self, msg):
        assert get(msg, "PID.9") == [("", "1.9")]
        assert get(msg, "PID.3.5", expand=True) == [("", "1.3.5")]
        assert get(msg, "PID.3.5") == []

    def test_blank_query_is_whole_message(self, msg):
        [(value, address)] = get(msg, "")
        assert address == ""
        assert value == msg.segments

    def test_values_are_copies(self, msg):
        [value] = get_values(msg, "PID.3")
        value.append("Z")
        assert data(msg) == SAMPLE

    def test_written_strings_stay_strings(self, msg):
        edited = add(msg, "PID.3", "W")
        assert get_values(edited, "PID.3.*") == [[["X"]], [["Y"]], "W"]
        assert get_values(edited, "PID.3.*.0.0") == ["X", "Y", "W"]
        seps = edited.separators
        rendered = [HL7Writer.build_node(v, 3, seps) for v in get_values(edited, "PID.3.*")]
        assert rendered == ["X", "Y", "W"]

    def test_each_value_and_address(self, msg):
        seen = []
        each(("value", "address"), msg, "OBX.1.0.0.0", lambda value, address: seen.append((value, address)))
        assert seen == [("1", "2.1.0.0.0"), ("2", "3.1.0.0.0")]

    def test_each_value_only(self, msg):
        seen = []
        each("v", msg, "PID.3.*.0.0", lambda v: seen.append(v), reverse=True)
        assert seen == ["Y", "X"]

    def test_each_requires_body(self, msg):
        with pytest.raises(TypeError):
            each("v", msg, "PID", None)

    def test_each_bad_names(self, msg):
        with pytest.raises(ValueError):
            each(("a", "b", "c"), msg, "PID", lambda **kw: None)


# =============================================================================
# Set / Clear
# =============================================================================

class TestSet:

    def test_set_repetition(self, msg):
        assert segment_text(set(msg, "PID.3.0", "Z"), 1) == "PID|||Z~Y||DOE^JOHN^^^MR&SR"

    def test_set_grows_segment(self, msg):
        assert segment_text(set(msg, "PID.8", "NEW"), 1) == "PID|||X~Y||DOE^JOHN^^^MR&SR|||NEW"

    def test_set_grows_every_level(self, msg):
        assert segment_text(set(msg, "PID.3.2.1.1", "Q"), 1) == "PID|||X~Y~^&Q||DOE^JOHN^^^MR&SR"

    def test_set_without_expand(self, msg):
        assert data(set(msg, "PID.3.2", "Q", expand=False)) == SAMPLE

    def test_set_every_match(self, msg):
        edited = set(msg, "OBX.5", "0")
        assert get_values(edited, "OBX.5") == ["0", "0"]

    def test_set_nested_value(self, msg):
        edited = set(msg, "PID.3", [[["A"], ["B"]]])
        assert segment_text(edited, 1) == "PID|||A^B||DOE^JOHN^^^MR&SR"

    def test_set_whole_message(self, msg):
        edited = set(msg, "", [["MSH", "|", "^~\\&"]])
        assert data(edited) == "MSH|^~\\&"

    def test_clear(self, msg):
        assert segment_text(clear(msg, "PID.5"), 1) == "PID|||X~Y||"

    def test_clear_keeps_siblings(self, msg):
        assert segment_text(clear(msg, "PID.3.0"), 1) == "PID|||~Y||DOE^JOHN^^^MR&SR"


# =============================================================================
# Delete
# =============================================================================

class TestDelete:

    def test_delete_segments(self, msg):
        edited = delete(msg, "OBX")
        assert edited.segment_names == ["MSH", "PID"]
        assert data(edited) == f"{HEADER}\r{PID}"

    def test_delete_everything(self, msg):
        assert data(delete(msg, "*")) == ""

    def test_delete_field_shifts_left(self, msg):
        assert segment_text(delete(msg, "PID.3"), 1) == "PID||||DOE^JOHN^^^MR&SR"

    def test_delete_all_repetitions_empties_field(self, msg):
        assert segment_text(delete(msg, "PID.3.*"), 1) == "PID|||||DOE^JOHN^^^MR&SR"
        assert segment_text(delete(msg, "PID.3.0,1"), 1) == "PID|||||DOE^JOHN^^^MR&SR"

    def test_delete_keeps_correct_siblings(self, msg):
        edited = delete(msg, "PID.5.0.1,3")
        assert segment_text(edited, 1) == "PID|||X~Y||DOE^^MR&SR"

    def test_delete_segment_names(self, msg):
        edited = delete(msg, "*.0.0.0.0")
        assert len(edited.segments) == 4
        assert edited.segment_names == ["", "", "", ""]

    def test_delete_missing_is_noop(self, msg):
        assert data(delete(msg, "PID.3.7")) == SAMPLE
        assert data(delete(msg, "ZZZ")) == SAMPLE


# =============================================================================
# Add
# =============================================================================

class TestAdd:

    def test_add_repetition(self, msg):
        assert get(add(msg, "PID.3", "W"), "PID.3") == [([[["X"]], [["Y"]], "W"], "1.3")]
        assert segment_text(add(msg, "PID.3", "W"), 1) == "PID|||X~Y~W||DOE^JOHN^^^MR&SR"

    def test_add_component(self, msg):
        assert segment_text(add(msg, "PID.5.0", "III"), 1) == "PID|||X~Y||DOE^JOHN^^^MR&SR^III"

    def test_add_subcomponent(self, msg):
        assert segment_text(add(msg, "PID.5.0.4", "JR"), 1) == "PID|||X~Y||DOE^JOHN^^^MR&SR&JR"

    def test_add_to_every_match(self, msg):
        edited = add(msg, "OBX.3", "ALT")
        assert segment_text(edited, 2) == "OBX|1|ST|CODE^Text~ALT||42"
        assert segment_text(edited, 3) == "OBX|2|ST|CODE2~ALT||43"

    def test_add_to_missing_field(self, msg):
        assert segment_text(add(msg, "PID.7", "Z"), 1) == "PID|||X~Y||DOE^JOHN^^^MR&SR||Z"

    def test_add_not_allowed_on_segments(self, msg):
        with pytest.raises(IllegalOperationError, match="segment"):
            add(msg, "PID", "X")

    def test_add_not_allowed_on_subcomponents(self, msg):
        with pytest.raises(IllegalOperationError, match="subcomponent"):
            add(msg, "PID.3.0.0.0", "X")


# =============================================================================
# Insert
# =============================================================================

class TestInsert:

    def test_insert_before(self, msg):
        assert get_values(insert(msg, "PID.3.0", "M"), "PID.3.*.0.0") == ["M", "X", "Y"]
        assert get_values(insert_before(msg, "PID.3.0", "M"), "PID.3.*.0.0") == ["M", "X", "Y"]

    def test_insert_after(self, msg):
        edited = insert_after(msg, "PID.3.0", "M")
        assert segment_text(edited, 1) == "PID|||X~M~Y||DOE^JOHN^^^MR&SR"

    def test_insert_several_values(self, msg):
        edited = insert_after(msg, "PID.3.1", "A", "B")
        assert segment_text(edited, 1) == "PID|||X~Y~A~B||DOE^JOHN^^^MR&SR"

    def test_insert_after_each_match(self, msg):
        edited = insert_after(msg, "PID.3.*", "M")
        assert segment_text(edited, 1) == "PID|||X~M~Y~M||DOE^JOHN^^^MR&SR"

    def test_insert_segment(self, msg):
        edited = insert_after(msg, "PID", "NTE|1||note")
        assert data(edited).split("\r") == [HEADER, PID, "NTE|1||note", OBX1, OBX2]

    def test_insert_segment_before_each_match(self, msg):
        edited = insert(msg, "OBX", "NTE|x")
        assert data(edited).split("\r") == [HEADER, PID, "NTE|x", OBX1, "NTE|x", OBX2]

    def test_insert_past_the_end_pads(self, msg):
        edited = insert(msg, "PID.3.4", "Z")
        assert segment_text(edited, 1) == "PID|||X~Y~~~Z||DOE^JOHN^^^MR&SR"

    def test_insert_component(self, msg):
        edited = insert_after(msg, "PID.5.0.1", "Q")
        assert segment_text(edited, 1) == "PID|||X~Y||DOE^JOHN^Q^^^MR&SR"

    def test_insert_not_allowed_on_fields(self, msg):
        with pytest.raises(IllegalOperationError, match="field"):
            insert(msg, "PID.3", "X")
        with pytest.raises(IllegalOperationError):
            insert_after(msg, "PID.3", "X")


# =============================================================================
# Command dispatch
# =============================================================================

class TestDispatch:

    def test_round_trip_through_dispatch(self):
        msg = hl7("parse", SAMPLE)
        assert hl7("data", msg) == SAMPLE

    def test_commands(self, msg):
        assert hl7("query", msg, "O*") == ["2", "3"]
        assert hl7("get_values", msg, "PID.3.0.0.0") == ["X"]
        edited = hl7("insert_after", msg, "PID.3.0", "M")
        assert hl7("get_values", edited, "PID.3.1.0.0") == ["M"]

    def test_keyword_arguments(self, msg):
        assert hl7("get", msg, "PID.3.9", expand=True) == [("", "1.3.9")]

    def test_unknown_command(self, msg):
        with pytest.raises(UnknownCommandError):
            hl7("frobnicate", msg)


# =============================================================================
# Converters
# =============================================================================

class TestConverters:

    def test_json_roundtrip(self, msg):
        restored = converters.from_json(converters.to_json(msg))
        assert restored.parsed
        assert restored.segments == msg.segments
        assert restored.separators == msg.separators
        assert data(restored) == SAMPLE

    def test_json_structure(self, msg):
        obj = json.loads(converters.to_json(msg))
        assert obj["separators"]["field"] == "|"
        assert obj["separators"]["segment"] == "\r"
        assert obj["segments"][1][3] == [[["X"]], [["Y"]]]

    def test_json_rejects_bad_input(self):
        with pytest.raises(ValueError):
            converters.from_json("[]")
        with pytest.raises(ValueError):
            converters.from_json('{"separators": {"field": "||"}, "segments": []}')
        with pytest.raises(ValueError):
            converters.from_json('{"separators": {}, "segments": [[[[[["too deep"]]]]]]}')
        with pytest.raises(ValueError):
            converters.from_json('{"separators": {}, "segments": [42]}')

    def test_csv_roundtrip(self, msg):
        restored = converters.from_csv(converters.to_csv(msg))
        assert restored.separators == msg.separators
        assert data(restored) == SAMPLE

    def test_csv_rows(self, msg):
        lines = converters.to_csv(msg).splitlines()
        assert lines[0] == "address,value"
        assert "0.0,MSH" in lines
        assert "0.1,|" in lines
        assert "1.3.1.0.0,Y" in lines
        assert "1.5.0.4.1,SR" in lines

    def test_csv_lists_blank_nodes(self):
        msg = clear(parse("MSH|^~\\&|A\rPID|||X~Y||DOE"), "PID.5")
        assert "1.5," in converters.to_csv(msg).splitlines()

    def test_csv_roundtrip_after_clear(self):
        msg = clear(parse("MSH|^~\\&|A\rPID|||X~Y||DOE"), "PID.5")
        restored = converters.from_csv(converters.to_csv(msg))
        assert data(restored) == "MSH|^~\\&|A\rPID|||X~Y||"

    def test_csv_roundtrip_after_growing_set(self):
        msg = set(parse("MSH|^~\\&|A\rPID|||X~Y||DOE"), "PID.9", "")
        restored = converters.from_csv(converters.to_csv(msg))
        assert data(restored) == "MSH|^~\\&|A\rPID|||X~Y||DOE||||"

        msg = set(msg, "PID.3.2.1.1", "Q")
        restored = converters.from_csv(converters.to_csv(msg))
        assert data(restored) == data(msg)
        assert data(restored).endswith("PID|||X~Y~^&Q||DOE||||")

    def test_csv_roundtrip_inserted_segment(self, msg):
        edited = insert_after(msg, "PID", "NTE|1||note")
        restored = converters.from_csv(converters.to_csv(edited))
        assert data(restored) == data(edited)

    def test_csv_reads_subcomponent_header_rows(self):
        listing = (
            "address,value\n"
            "0.0.0.0.0,MSH\n"
            "0.1.0.0.0,|\n"
            "0.2.0.0.0,^~\\&\n"
            "0.3.0.0.0,A\n"
        )
        assert data(converters.from_csv(listing)) == "MSH|^~\\&|A"

    def test_csv_without_header_rows(self):
        with pytest.raises(ValueError):
            converters.from_csv("address,value\n1.0.0.0.0,PID\n")

    def test_txt(self, msg):
        txt = converters.to_txt(msg)
        assert txt == SAMPLE.replace("\r", "\n")
        assert data(msg) == SAMPLE

    def test_txt_from_any_line_ending(self):
        for ending in ("\n", "\r\n", "\r"):
            restored = converters.from_txt(SAMPLE.replace("\r", ending))
            assert restored.segment_names == ["MSH", "PID", "OBX", "OBX"]
            assert converters.to_txt(restored) == SAMPLE.replace("\r", "\n")

    def test_convert_to_unknown_format(self, msg):
        with pytest.raises(ValueError, match="Unknown format"):
            converters.convert_to(msg, "xml")

    def test_convert_from_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown format"):
            converters.convert_from("", "xml")


# =============================================================================
# Small message walk-through
# =============================================================================

class TestWalkThrough:
    """The short MSH/PID message used in the package docstrings."""

    TEXT = "MSH|^~\\&|A\rPID|||X~Y\r"

    @staticmethod
    def rendered(msg, q):
        return [
            HL7Writer.build_node(value, len(address.split(".")), msg.separators)
            for value, address in get(msg, q)
        ]

    def test_get_repetitions(self):
        msg = parse(self.TEXT)
        assert get(msg, "PID.3.*") == [([["X"]], "1.3.0"), ([["Y"]], "1.3.1")]
        assert self.rendered(msg, "PID.3.*") == ["X", "Y"]

    def test_set_then_data(self):
        msg = set(parse(self.TEXT), "PID.3.0", "Z")
        assert data(msg).endswith("\rPID|||Z~Y\r")

    def test_add_appends(self):
        msg = add(parse(self.TEXT), "PID.3", "W")
        assert self.rendered(msg, "PID.3.*") == ["X", "Y", "W"]

    def test_insert_after_shifts(self):
        msg = insert_after(parse(self.TEXT), "PID.3.0", "M")
        assert self.rendered(msg, "PID.3.*") == ["X", "M", "Y"]

    def test_expand(self):
        msg = parse(self.TEXT)
        assert query(msg, "PID.3.2.0.0") == []
        assert query(msg, "PID.3.2.0.0", expand=True) == ["1.3.2.0.0"]

    def test_segment_matching(self):
        msg = parse("MSH|^~\\&\rPID|1\rOBX|1")
        assert query(msg, "PID") == ["1"]
        assert query(msg, "O*") == ["2"]
        assert query(msg, "0,2") == ["0", "2"]

    def test_delete_every_segment(self):
        msg = parse(SAMPLE)
        assert len(msg.segments) == 4
        assert delete(msg, "*").segments == []
