"""
HL7 Query - Turns query addresses into static addresses.

A query address has 1 to 5 dot-separated parts:

    SEGMENT.FIELD.REPETITION.COMPONENT.SUBCOMPONENT

    PID                 -> segments (lists of fields)
    PID.3               -> fields (lists of repetitions)
    PID.3.*             -> repetitions (lists of components)
    PID.3.*.0           -> components (lists of subcomponents)
    PID.3.*.0.0         -> subcomponents (strings)

Tokens are comma-joined inside a part:

    segment part        NAME | INDEX | GLOB           e.g. MSH,O*,3
    other parts         INDEX | * | MIN-MAX | MIN-end  e.g. 0,2-4,7-end

Expansion:
    Fields are always resolved as if expand=True, so an index past the end of
    a segment still resolves (reads blank, writes grow the segment).
    Repetitions, components and subcomponents follow the caller's expand flag.
    A ``*`` only ever yields indexes that exist. Segments are never expanded.

Ordering:
    Static addresses compare numerically part by part ("1.3.2" < "1.3.10"),
    which is what lets delete and insert work from the highest address down.
"""

from __future__ import annotations

import re
from fnmatch import fnmatchcase
from typing import Any, Iterable

from hl7tree.errors import QueryDepthError, UnparsedMessageError
from hl7tree.message import HL7Message, has_been_parsed, node_name
from hl7tree.spec import (
    ADDRESS_SEPARATOR, TOKEN_SEPARATOR, WILDCARD, RANGE_SEPARATOR, RANGE_END, GLOB_CHARS, MAX_DEPTH, DEPTHS,
)

_INDEX_RE = re.compile(r"[0-9]+")
_RANGE_RE = re.compile(rf"([0-9]+){re.escape(RANGE_SEPARATOR)}([0-9]+|{RANGE_END})")


def query(msg: HL7Message, query: str, expand: bool = False, reverse: bool = False) -> list[str]:
    """Return every static address matching ``query``, in numeric address order."""
    if not has_been_parsed(msg):
        raise UnparsedMessageError("query")
    parts = split_query(query)
    addresses = _resolve(msg.segments, parts, 1, expand)
    return sort_addresses(addresses, reverse=reverse)


def split_query(query: str) -> list[str]:
    """Split a query into its dot parts, enforcing the 1..5 depth bound."""
    parts = query.split(ADDRESS_SEPARATOR) if query else []
    if not 1 <= len(parts) <= MAX_DEPTH:
        raise QueryDepthError(query, len(parts))
    return parts


def query_depth(query: str) -> int:
    return len(split_query(query))


# =============================================================================
# Resolution
# =============================================================================

def _resolve(node: Any, parts: list[str], depth: int, expand: bool) -> list[str]:
    part = parts[depth - 1]
    if depth == 1:
        indexes = [i for i, segment in enumerate(node) if match_segment(segment, i, part)]
    else:
        level_expand = DEPTHS[depth]["expand"]
        if level_expand is None:
            level_expand = expand
        indexes = query_indexes(child_count(node), part, level_expand)

    # An empty next part ends the query at this depth
    deeper = depth < len(parts) and parts[depth] != ""

    addresses = []
    for i in indexes:
        if deeper:
            for address in _resolve(child(node, i), parts, depth + 1, expand):
                addresses.append(f"{i}{ADDRESS_SEPARATOR}{address}")
        else:
            addresses.append(str(i))
    return addresses


def match_segment(segment: Any, index: int, part: str) -> bool:
    """True if any comma token of ``part`` names, indexes or glob-matches the segment.

    The three predicates are independent: no token form takes precedence.
    """
    name = node_name(segment)
    for token in part.split(TOKEN_SEPARATOR):
        if token == name:
            return True
        if _INDEX_RE.fullmatch(token) and int(token) == index:
            return True
        if GLOB_CHARS.intersection(token) and fnmatchcase(name, token):
            return True
    return False


def query_indexes(count: int, part: str, expand: bool) -> list[int]:
    """Resolve one non-segment query part against a sequence of ``count`` children.

    Unrecognized tokens contribute nothing.
    """
    found: set[int] = set()
    for token in part.split(TOKEN_SEPARATOR):
        if _INDEX_RE.fullmatch(token):
            index = int(token)
            if expand or index < count:
                found.add(index)
            continue

        if token == WILDCARD:
            found.update(range(count))
            continue

        m = _RANGE_RE.fullmatch(token)
        if m:
            low = int(m.group(1))
            high = count - 1 if m.group(2) == RANGE_END else int(m.group(2))
            for index in range(low, high + 1):
                if expand or index < count:
                    found.add(index)
    return sorted(found)


def child_count(node: Any) -> int:
    """Number of children of a node. A non-empty string counts as one child: itself."""
    if isinstance(node, list):
        return len(node)
    return 1 if node else 0


def child(node: Any, index: int) -> Any:
    """Child at ``index``, or "" when it does not exist."""
    if isinstance(node, list):
        return node[index] if index < len(node) else ""
    return node if index == 0 else ""


def node_at(segments: list, indexes: list[int]) -> Any:
    node: Any = segments
    for index in indexes:
        node = child(node, index)
    return node


# =============================================================================
# Address ordering
# =============================================================================

def split_address(address: str) -> list[int]:
    """Static address -> list of indexes. The empty address is the whole message."""
    if not address:
        return []
    return [int(part) for part in address.split(ADDRESS_SEPARATOR)]


def address_key(address: str) -> tuple[int, ...]:
    return tuple(split_address(address))


def compare_addresses(a: str, b: str) -> int:
    """Numeric part-by-part comparison; returns -1, 0 or 1.

    A prefix sorts before its extensions and "" sorts lowest.
    """
    ka, kb = address_key(a), address_key(b)
    return (ka > kb) - (ka < kb)


def sort_addresses(addresses: Iterable[str], reverse: bool = False) -> list[str]:
    return sorted(addresses, key=address_key, reverse=reverse)
