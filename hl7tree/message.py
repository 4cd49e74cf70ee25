"""
HL7 Message - In-memory representation of a parsed HL7 v2 message.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from hl7tree.spec import DEPTHS, HEADER_NAME, PARSED_MARKER


@dataclass(frozen=True)
class Separators:
    """The six delimiters governing how raw text splits into the tree."""
    segment: str = "\r"
    field: str = "|"
    repetition: str = "~"
    component: str = "^"
    subcomponent: str = "&"
    escape: str = "\\"

    @property
    def encoding_characters(self) -> str:
        """MSH.2 as it must appear on the wire: component, repetition, escape, subcomponent."""
        return self.component + self.repetition + self.escape + self.subcomponent

    def joiner(self, depth: int) -> str | None:
        """Separator joining the children of a node at ``depth`` (0 = whole message)."""
        if depth == 0:
            return self.segment
        name = DEPTHS[depth]["separator"]
        return getattr(self, name) if name else None

    def as_dict(self) -> dict[str, str]:
        return {
            "segment": self.segment,
            "field": self.field,
            "repetition": self.repetition,
            "component": self.component,
            "subcomponent": self.subcomponent,
            "escape": self.escape,
        }


def node_name(node: Any) -> str:
    """First leaf of a node: the segment type when given a segment."""
    while isinstance(node, list):
        if not node:
            return ""
        node = node[0]
    return node


@dataclass(frozen=True)
class HL7Message:
    """
    A parsed message: segment tree, separator record and parsed marker.

    Instances are never changed in place. Every operation in
    ``hl7tree.getset`` returns a new message.

    Usage:
        msg = parse("MSH|^~\\\\&|A\\rPID|||X~Y\\r")
        msg.segment_names            # ['MSH', 'PID', '']
        get_values(msg, "PID.3.*")   # [[['X']], [['Y']]]
    """

    segments: list = field(default_factory=list)
    separators: Separators = field(default_factory=Separators)
    marker: str = ""

    @property
    def parsed(self) -> bool:
        return self.marker == PARSED_MARKER

    @property
    def segment_names(self) -> list[str]:
        return [node_name(segment) for segment in self.segments]

    def has_header(self) -> bool:
        return bool(self.segments) and node_name(self.segments[0]) == HEADER_NAME

    def __repr__(self) -> str:
        state = "parsed" if self.parsed else "unparsed"
        return f"HL7Message(segments={self.segment_names}, {state})"


def has_been_parsed(msg: Any) -> bool:
    return isinstance(msg, HL7Message) and msg.parsed
