"""
hl7tree - Address, read and rewrite HL7 v2 messages.

Parse -> query -> get/set/insert/delete -> serialize, byte for byte.
"""

__version__ = "0.1.0"

from hl7tree.spec import HEADER_NAME, DEFAULT_SEGMENT_SEPARATOR, MAX_DEPTH
from hl7tree.errors import (
    HL7Error,
    UnparsedMessageError,
    QueryDepthError,
    IllegalOperationError,
    MalformedHeaderError,
    UnknownCommandError,
)
from hl7tree.message import HL7Message, Separators
from hl7tree.reader import HL7Reader
from hl7tree.writer import HL7Writer
from hl7tree.query import query, compare_addresses, sort_addresses
from hl7tree.getset import (
    get, get_values, get_reverse, set, clear, delete, add,
    insert, insert_before, insert_after, each,
)
from hl7tree.commands import Command, hl7

parse = HL7Reader.parse
data = HL7Writer.serialize
