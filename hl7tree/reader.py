"""
HL7 Reader - Parser for HL7 v2 text.

Parse flow:
  - Separators are read once from fixed offsets of the header
  - The text is split on the segment separator
  - Header segments keep MSH.1 and MSH.2 as plain strings
  - Every other segment is split field -> repetition -> component -> subcomponent

Parsing is lenient: a missing delimiter yields a single-element sequence at
that level. The only rejected input is text too short to carry a header.
"""

from __future__ import annotations

from pathlib import Path

from hl7tree.errors import MalformedHeaderError
from hl7tree.message import HL7Message, Separators
from hl7tree.spec import (
    HEADER_NAME, DEFAULT_SEGMENT_SEPARATOR, PARSED_MARKER, MIN_HEADER_LENGTH,
    FIELD_OFFSET, COMPONENT_OFFSET, REPETITION_OFFSET, ESCAPE_OFFSET, SUBCOMPONENT_OFFSET,
    MAX_FILE_SIZE, MAX_IDENTIFY_SCAN_BYTES,
)


class HL7Reader:
    """
    HL7 v2 message reader.

    Usage:
        msg = HL7Reader.parse(text)                 # from a string
        msg = HL7Reader.read("adt.hl7", "\\n")      # from a file
    """

    @staticmethod
    def is_hl7_text(text: str) -> bool:
        """Fast check: does the text start with a usable header?"""
        return text.startswith(HEADER_NAME) and len(text) >= MIN_HEADER_LENGTH

    @staticmethod
    def is_hl7(path: str | Path) -> bool:
        """Fast check if a file is HL7 v2. Reads only the first 64 bytes."""
        with open(path, "rb") as f:
            head = f.read(MAX_IDENTIFY_SCAN_BYTES)
        return HL7Reader.is_hl7_text(head.decode("utf-8", errors="replace"))

    @staticmethod
    def get_separators(text: str, segment_separator: str = DEFAULT_SEGMENT_SEPARATOR) -> Separators:
        """Read the delimiters from their fixed offsets in the header."""
        if not segment_separator:
            raise ValueError("Segment separator cannot be empty")
        if len(text) < MIN_HEADER_LENGTH:
            raise MalformedHeaderError(len(text), MIN_HEADER_LENGTH)
        return Separators(
            segment=segment_separator,
            field=text[FIELD_OFFSET],
            repetition=text[REPETITION_OFFSET],
            component=text[COMPONENT_OFFSET],
            subcomponent=text[SUBCOMPONENT_OFFSET],
            escape=text[ESCAPE_OFFSET],
        )

    @classmethod
    def read(
        cls,
        path: str | Path,
        segment_separator: str = DEFAULT_SEGMENT_SEPARATOR,
        max_size: int = MAX_FILE_SIZE,
    ) -> HL7Message:
        """Read and parse an HL7 file."""
        path = Path(path)
        file_size = path.stat().st_size
        if file_size > max_size:
            raise ValueError(
                f"File size {file_size} exceeds maximum {max_size} bytes. "
                f"Pass max_size= to override."
            )
        # newline="" keeps CR segment separators intact
        with open(path, "r", encoding="utf-8", newline="") as f:
            text = f.read()
        return cls.parse(text, segment_separator)

    @classmethod
    def parse(cls, text: str, segment_separator: str = DEFAULT_SEGMENT_SEPARATOR) -> HL7Message:
        """Parse HL7 text into an HL7Message."""
        seps = cls.get_separators(text, segment_separator)
        segments = []
        for raw in text.split(seps.segment):
            if raw.startswith(HEADER_NAME):
                segments.append(cls._split_header(raw, seps))
            else:
                segments.append(cls._split(raw, seps, 1))
        return HL7Message(segments=segments, separators=seps, marker=PARSED_MARKER)

    @classmethod
    def _split(cls, raw: str, seps: Separators, depth: int) -> list:
        """Split a raw node at ``depth`` into its children, down to the leaves."""
        joiner = seps.joiner(depth)
        if depth == 4:
            return raw.split(joiner)
        return [cls._split(part, seps, depth + 1) for part in raw.split(joiner)]

    @classmethod
    def _split_header(cls, raw: str, seps: Separators) -> list:
        fields = raw.split(seps.field)
        encoding = fields[1] if len(fields) > 1 else ""
        header: list = [HEADER_NAME, seps.field, encoding]
        for field in fields[2:]:
            header.append(cls._split(field, seps, 2))
        return header
