"""
HL7 v2 Structure Specification
==============================

Layout:
    MSH|^~\\&|SENDER|...        <- Header segment (always first)
    PID|||123456~654321^^^HOSP  <- Ordinary segments
    OBX|1|ST|...

    Segments are separated by the segment separator (CR by default, supplied
    by the caller). Inside a segment, five delimiters nest:

    segment      <- split on SEGMENT separator      (depth 1)
    field        <- split on FIELD separator        (depth 2)
    repetition   <- split on REPETITION separator   (depth 3)
    component    <- split on COMPONENT separator    (depth 4)
    subcomponent <- split on SUBCOMPONENT separator (depth 5, leaf)

Header segment:
    The delimiters live at fixed offsets of the header:

        M S H | ^ ~ \\ &
        0 1 2 3 4 5 6  7

    offset 3 = field, 4 = component, 5 = repetition, 6 = escape,
    7 = subcomponent. The header is stored as
    [ "MSH", <field sep>, <encoding chars>, field 3, field 4, ... ]
    so MSH.1 and MSH.2 stay addressable without being split by the
    delimiters they define.

Addresses:
    static  1.3.0.0.0           <- concrete indexes, 1 to 5 parts
    query   PID.3.*.0-end.0     <- names, globs, unions, ranges, wildcards
"""

HEADER_NAME = "MSH"
DEFAULT_SEGMENT_SEPARATOR = "\r"
PARSED_MARKER = "PARSED_MESSAGE"

# Character offsets of the delimiters inside the header segment
FIELD_OFFSET = 3
COMPONENT_OFFSET = 4
REPETITION_OFFSET = 5
ESCAPE_OFFSET = 6
SUBCOMPONENT_OFFSET = 7
MIN_HEADER_LENGTH = SUBCOMPONENT_OFFSET + 1

# Header slots holding the delimiters themselves
HEADER_FIELD_SEPARATOR_SLOT = 1
HEADER_ENCODING_CHARACTERS_SLOT = 2

ADDRESS_SEPARATOR = "."
TOKEN_SEPARATOR = ","
RANGE_SEPARATOR = "-"
RANGE_END = "end"
WILDCARD = "*"
GLOB_CHARS = frozenset("*?[")

MAX_DEPTH = 5

# Safety limits
MAX_FILE_SIZE = 100 * 1024 * 1024  # 100MB max file size for reader
MAX_IDENTIFY_SCAN_BYTES = 64

# Per-depth policy:
#   separator  - Separators attribute joining children of a node at this depth
#   expand     - None: follow the caller; True: always expanded
#   add / insert - whether the operation is allowed at this depth
DEPTHS = {
    1: {"name": "segment", "separator": "field", "expand": None, "add": False, "insert": True},
    2: {"name": "field", "separator": "repetition", "expand": True, "add": True, "insert": False},
    3: {"name": "repetition", "separator": "component", "expand": None, "add": True, "insert": True},
    4: {"name": "component", "separator": "subcomponent", "expand": None, "add": True, "insert": True},
    5: {"name": "subcomponent", "separator": None, "expand": None, "add": False, "insert": True},
}

EXTENSION = ".hl7"
