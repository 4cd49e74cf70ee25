"""
HL7 Writer - Serializes HL7Message back to HL7 v2 text.

The header's MSH.1 and MSH.2 are never taken from the tree: both are rebuilt
from the separator record, so editing those slots cannot desynchronize the
output from the delimiters actually used to join it.
"""

from __future__ import annotations

from typing import Any

from hl7tree.errors import UnparsedMessageError
from hl7tree.message import HL7Message, Separators, has_been_parsed, node_name
from hl7tree.spec import HEADER_NAME, HEADER_FIELD_SEPARATOR_SLOT, HEADER_ENCODING_CHARACTERS_SLOT


class HL7Writer:

    @staticmethod
    def serialize(msg: HL7Message) -> str:
        """Serialize a message to text. Pure - does not mutate the input message."""
        if not has_been_parsed(msg):
            raise UnparsedMessageError("data")
        seps = msg.separators
        return seps.segment.join(HL7Writer.build_segment(segment, seps) for segment in msg.segments)

    @staticmethod
    def build_segment(segment: Any, seps: Separators) -> str:
        if isinstance(segment, list) and node_name(segment) == HEADER_NAME:
            # MSH.1 is the field separator itself: it vanishes into the join
            fields = list(segment)
            fields[HEADER_FIELD_SEPARATOR_SLOT:HEADER_ENCODING_CHARACTERS_SLOT + 1] = [
                seps.encoding_characters
            ]
            segment = fields
        return HL7Writer.build_node(segment, 1, seps)

    @staticmethod
    def build_node(node: Any, depth: int, seps: Separators) -> str:
        """Render a node found at ``depth`` (1 = segment ... 5 = subcomponent) as text.

        A plain string renders as itself wherever it sits in the tree.
        """
        if not isinstance(node, list):
            return str(node)
        joiner = seps.joiner(depth)
        if joiner is None:
            # list stored at a leaf position: flatten its strings
            return "".join(HL7Writer.build_node(child, depth, seps) for child in node)
        return joiner.join(HL7Writer.build_node(child, depth + 1, seps) for child in node)

    @staticmethod
    def write(msg: HL7Message, path: str, mode: int = 0o644) -> int:
        """Write a message to a file atomically. Returns bytes written.

        Uses write-to-temp-then-rename to prevent corruption if the process
        crashes mid-write.
        """
        import os
        import tempfile
        data = HL7Writer.serialize(msg).encode("utf-8")
        dir_name = os.path.dirname(os.path.abspath(path)) or "."
        fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".hl7.tmp")
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        return len(data)
