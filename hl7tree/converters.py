"""
HL7 Converters - Convert parsed messages to/from JSON, CSV and TXT.

Every format goes both ways:
  - to_json / from_json   full tree plus separator record
  - to_csv / from_csv     one "address,value" row per node without children
  - to_txt / from_txt     wire text with one segment per line
"""

from __future__ import annotations

import csv
import io
import json
from dataclasses import replace
from typing import Any

from hl7tree.errors import UnparsedMessageError
from hl7tree.getset import assign
from hl7tree.message import HL7Message, Separators, has_been_parsed
from hl7tree.query import split_address
from hl7tree.reader import HL7Reader
from hl7tree.spec import (
    ADDRESS_SEPARATOR, PARSED_MARKER, MAX_DEPTH, MAX_FILE_SIZE,
    HEADER_FIELD_SEPARATOR_SLOT, HEADER_ENCODING_CHARACTERS_SLOT,
)
from hl7tree.writer import HL7Writer


# =============================================================================
# JSON
# =============================================================================

def to_json(msg: HL7Message, indent: int = 2) -> str:
    """Convert a message to JSON: separators plus the nested segment lists."""
    if not has_been_parsed(msg):
        raise UnparsedMessageError("to_json")
    data: dict[str, Any] = {
        "separators": msg.separators.as_dict(),
        "segments": msg.segments,
    }
    return json.dumps(data, indent=indent, ensure_ascii=False)


def from_json(json_str: str) -> HL7Message:
    """Create a parsed message from JSON produced by to_json.

    Validates the structure so that a message built from JSON serializes the
    same way a parsed one does.
    """
    data = json.loads(json_str)

    if not isinstance(data, dict):
        raise ValueError("Invalid HL7 JSON: expected a JSON object at top level")

    raw_seps = data.get("separators")
    if not isinstance(raw_seps, dict):
        raise ValueError("Invalid HL7 JSON: 'separators' must be a JSON object")

    defaults = Separators().as_dict()
    seps = {}
    for key in defaults:
        val = raw_seps.get(key, defaults[key])
        if not isinstance(val, str) or not val:
            raise ValueError(f"Invalid HL7 JSON: separator {key!r} must be a non-empty string")
        if key != "segment" and len(val) != 1:
            raise ValueError(f"Invalid HL7 JSON: separator {key!r} must be a single character")
        seps[key] = val

    segments = data.get("segments", [])
    if not isinstance(segments, list):
        raise ValueError("Invalid HL7 JSON: 'segments' must be an array")
    for segment in segments:
        _validate_node(segment, 1)

    return HL7Message(segments=segments, separators=Separators(**seps), marker=PARSED_MARKER)


def _validate_node(node: Any, depth: int) -> None:
    if isinstance(node, str):
        return
    if not isinstance(node, list) or depth >= MAX_DEPTH:
        raise ValueError(
            "Invalid HL7 JSON: nodes must be strings, or arrays above subcomponent depth"
        )
    for child in node:
        _validate_node(child, depth + 1)


# =============================================================================
# CSV
# =============================================================================

def to_csv(msg: HL7Message) -> str:
    """
    Convert a message to CSV.
    Row format: address, value
    One row per node without children, in message order. Blank nodes get a
    row too, so trailing empty fields and components survive the round trip.
    """
    if not has_been_parsed(msg):
        raise UnparsedMessageError("to_csv")
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(["address", "value"])
    seps = msg.separators
    for index, segment in enumerate(msg.segments):
        for indexes, value in _csv_rows(segment, [index], 1, seps):
            writer.writerow([ADDRESS_SEPARATOR.join(str(i) for i in indexes), value])
    return buf.getvalue()


def _csv_rows(node: Any, indexes: list[int], depth: int, seps: Separators):
    if isinstance(node, list) and node and depth < MAX_DEPTH:
        for i, child in enumerate(node):
            yield from _csv_rows(child, indexes + [i], depth + 1, seps)
    else:
        yield indexes, HL7Writer.build_node(node, depth, seps)


def from_csv(csv_str: str, segment_separator: str = "\r") -> HL7Message:
    """Create a message from address/value rows.

    The field separator and encoding characters are read back from the
    rows holding MSH.1 and MSH.2 of the first segment.
    """
    old_limit = csv.field_size_limit()
    csv.field_size_limit(MAX_FILE_SIZE)
    try:
        reader = csv.reader(io.StringIO(csv_str))
        next(reader, None)  # Skip header row

        rows: list[tuple[list[int], str]] = []
        for row in reader:
            if len(row) < 2:
                continue
            try:
                indexes = split_address(row[0])
            except ValueError:
                raise ValueError(f"Invalid HL7 CSV: bad address {row[0]!r}") from None
            if not 1 <= len(indexes) <= MAX_DEPTH:
                raise ValueError(f"Invalid HL7 CSV: bad address {row[0]!r}")
            rows.append((indexes, row[1]))
    finally:
        csv.field_size_limit(old_limit)

    leaves = {tuple(indexes): value for indexes, value in rows}
    field_sep = _header_slot(leaves, HEADER_FIELD_SEPARATOR_SLOT)
    encoding = _header_slot(leaves, HEADER_ENCODING_CHARACTERS_SLOT)
    if len(field_sep) != 1 or len(encoding) != 4:
        raise ValueError("Invalid HL7 CSV: no MSH.1 / MSH.2 rows to take separators from")

    seps = Separators(
        segment=segment_separator,
        field=field_sep,
        component=encoding[0],
        repetition=encoding[1],
        escape=encoding[2],
        subcomponent=encoding[3],
    )
    segments: list = []
    for indexes, value in rows:
        segments = assign(segments, indexes, value)
    return HL7Message(segments=segments, separators=seps, marker=PARSED_MARKER)


def _header_slot(leaves: dict[tuple[int, ...], str], slot: int) -> str:
    """MSH.1 / MSH.2 of the first segment, whether listed as a slot or as a subcomponent."""
    if (0, slot) in leaves:
        return leaves[(0, slot)]
    return leaves.get((0, slot, 0, 0, 0), "")


# =============================================================================
# Plain Text (TXT)
# =============================================================================

def to_txt(msg: HL7Message) -> str:
    """Wire text with newline segment separators, for reading and diffing."""
    seps = replace(msg.separators, segment="\n")
    return HL7Writer.serialize(replace(msg, separators=seps))


def from_txt(txt_str: str) -> HL7Message:
    """Parse text with any of CR, LF or CRLF ending its segments."""
    text = txt_str.replace("\r\n", "\n").replace("\r", "\n")
    return HL7Reader.parse(text, "\n")


# =============================================================================
# Format dispatch
# =============================================================================

CONVERTERS_TO = {
    "json": to_json,
    "csv": to_csv,
    "txt": to_txt,
}

CONVERTERS_FROM = {
    "json": from_json,
    "csv": from_csv,
    "txt": from_txt,
}


def convert_to(msg: HL7Message, fmt: str) -> str:
    """Convert a message to the specified format."""
    converter = CONVERTERS_TO.get(fmt.lower())
    if converter is None:
        raise ValueError(f"Unknown format: {fmt}. Supported: {list(CONVERTERS_TO.keys())}")
    return converter(msg)


def convert_from(data: str, fmt: str) -> HL7Message:
    """Create a message from data in the specified format."""
    converter = CONVERTERS_FROM.get(fmt.lower())
    if converter is None:
        raise ValueError(f"Unknown format: {fmt}. Supported: {list(CONVERTERS_FROM.keys())}")
    return converter(data)
