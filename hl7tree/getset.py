"""
HL7 Get/Set - Reading and modifying parsed messages by query address.

Every operation takes a message and returns either extracted values or a new
message; the message passed in is never modified. Work happens on a deep copy
of the segment tree.

Results of ``get`` are (value, static address) pairs:

    msg = parse("MSH|^~\\\\&|A\\rPID|||123456~abcdef\\r")
    get(msg, "PID.3.*.0.0")
    # [('123456', '1.3.0.0.0'), ('abcdef', '1.3.1.0.0')]

Cardinality-changing operations (delete, insert) always walk their matches
from the highest static address to the lowest, so an edit never shifts an
address that is still waiting to be processed.
"""

from __future__ import annotations

import copy
from dataclasses import replace
from typing import Any, Callable, Sequence

from hl7tree.errors import IllegalOperationError, UnparsedMessageError
from hl7tree.message import HL7Message, has_been_parsed
from hl7tree.query import node_at, query as resolve, query_depth, split_address
from hl7tree.spec import DEPTHS


def _require_parsed(msg: Any, operation: str) -> None:
    if not has_been_parsed(msg):
        raise UnparsedMessageError(operation)


# =============================================================================
# Reading
# =============================================================================

def get(msg: HL7Message, query: str, reverse: bool = False, expand: bool = False) -> list[tuple[Any, str]]:
    """Values matching ``query`` as (value, address) pairs.

    The blank query means the whole list of segments, with address "".
    Addresses that do not exist (only reachable with expand) read as "".

    Values come back exactly as stored. Parsed nodes are nested lists down to
    their subcomponent strings, but a plain string written by set, add or
    insert stays a plain string at whatever depth it was written:

        get_values(add(msg, "PID.3", "W"), "PID.3.*")   # [[["X"]], [["Y"]], "W"]

    A string node reads as a single child of itself at every deeper level
    ("PID.3.2.0.0" above gives "W"), and HL7Writer.build_node renders both
    shapes to the same text.
    """
    _require_parsed(msg, "get")
    if query == "":
        return [(copy.deepcopy(msg.segments), "")]

    results = []
    for address in resolve(msg, query, expand=expand, reverse=reverse):
        value = node_at(msg.segments, split_address(address))
        results.append((copy.deepcopy(value), address))
    return results


def get_reverse(msg: HL7Message, query: str, expand: bool = False) -> list[tuple[Any, str]]:
    return get(msg, query, reverse=True, expand=expand)


def get_values(msg: HL7Message, query: str, reverse: bool = False, expand: bool = False) -> list[Any]:
    return [value for value, _ in get(msg, query, reverse=reverse, expand=expand)]


def each(
    names: str | Sequence[str],
    msg: HL7Message,
    query: str,
    body: Callable[..., Any],
    reverse: bool = False,
    expand: bool = False,
) -> None:
    """Call ``body`` once per ``get`` result, in result order.

    ``names`` gives the keyword the value is passed under and, optionally, a
    second keyword for the static address:

        each(("value", "address"), msg, "PID.3.*", lambda value, address: ...)
    """
    if not callable(body):
        raise TypeError("A body must be provided to each()")
    if isinstance(names, str):
        names = [names]
    names = list(names)
    if not 1 <= len(names) <= 2:
        raise ValueError(f"each() binds a value and an optional address, got names {names!r}")

    for value, address in get(msg, query, reverse=reverse, expand=expand):
        bound = {names[0]: value}
        if len(names) == 2:
            bound[names[1]] = address
        body(**bound)


# =============================================================================
# Writing
# =============================================================================

def set(msg: HL7Message, query: str, value: Any, expand: bool = True) -> HL7Message:
    """Overwrite every node matching ``query`` with ``value``, growing the tree as needed.

    The blank query replaces the whole list of segments.
    """
    _require_parsed(msg, "set")
    if query == "":
        return replace(msg, segments=copy.deepcopy(value))

    segments = copy.deepcopy(msg.segments)
    for address in resolve(msg, query, expand=expand):
        segments = assign(segments, split_address(address), copy.deepcopy(value))
    return replace(msg, segments=segments)


def clear(msg: HL7Message, query: str) -> HL7Message:
    return set(msg, query, "")


def delete(msg: HL7Message, query: str) -> HL7Message:
    """Remove every node matching ``query`` from its parent; later siblings shift down."""
    _require_parsed(msg, "delete")
    segments = copy.deepcopy(msg.segments)
    for address in resolve(msg, query, expand=False, reverse=True):
        segments = remove(segments, split_address(address))
    return replace(msg, segments=segments)


def add(msg: HL7Message, query: str, value: Any, expand: bool = True) -> HL7Message:
    """Append ``value`` as a new last child of every node matching ``query``.

    Not allowed on segments or subcomponents.
    """
    _require_parsed(msg, "add")
    _check_allowed("add", query)

    segments = copy.deepcopy(msg.segments)
    for address in resolve(msg, query, expand=expand, reverse=True):
        indexes = split_address(address)
        current = as_list(node_at(segments, indexes))
        current.append(copy.deepcopy(value))
        segments = assign(segments, indexes, current)
    return replace(msg, segments=segments)


def insert(msg: HL7Message, query: str, *values: Any, expand: bool = True) -> HL7Message:
    """Insert ``values`` before every node matching ``query``. Not allowed on fields."""
    return _insert_with_offset("insert", msg, query, values, 0, expand)


def insert_before(msg: HL7Message, query: str, *values: Any, expand: bool = True) -> HL7Message:
    return _insert_with_offset("insert_before", msg, query, values, 0, expand)


def insert_after(msg: HL7Message, query: str, *values: Any, expand: bool = True) -> HL7Message:
    """Insert ``values`` after every node matching ``query``. Not allowed on fields."""
    return _insert_with_offset("insert_after", msg, query, values, 1, expand)


def _insert_with_offset(
    operation: str,
    msg: HL7Message,
    query: str,
    values: Sequence[Any],
    offset: int,
    expand: bool,
) -> HL7Message:
    _require_parsed(msg, operation)
    _check_allowed(operation, query)

    segments = copy.deepcopy(msg.segments)
    for address in resolve(msg, query, expand=expand, reverse=True):
        indexes = split_address(address)
        parent_indexes = indexes[:-1]
        index = indexes[-1] + offset

        parent = as_list(node_at(segments, parent_indexes))
        if len(parent) < index:
            parent.extend([""] * (index - len(parent)))
        parent[index:index] = copy.deepcopy(list(values))

        if parent_indexes:
            segments = assign(segments, parent_indexes, parent)
        else:
            segments = parent
    return replace(msg, segments=segments)


def _check_allowed(operation: str, query: str) -> None:
    kind = "insert" if operation.startswith("insert") else operation
    depth = query_depth(query)
    if not DEPTHS[depth][kind]:
        raise IllegalOperationError(operation, query, DEPTHS[depth]["name"])


# =============================================================================
# Nested-sequence primitives
# =============================================================================
# These work in place on lists that belong to a private copy of the tree and
# return the (possibly replaced) node.

def as_list(node: Any) -> list:
    """A node as a list of children. A string is a one-element list of itself."""
    if isinstance(node, list):
        return node
    return [node] if node else []


def grow(node: Any, indexes: Sequence[int]) -> Any:
    """Pad ``node`` with "" placeholders until the path ``indexes`` exists."""
    if not indexes:
        return node
    node = as_list(node)
    index = indexes[0]
    if index >= len(node):
        node.extend([""] * (index + 1 - len(node)))
    if len(indexes) > 1:
        node[index] = grow(node[index], indexes[1:])
    return node


def assign(segments: list, indexes: Sequence[int], value: Any) -> list:
    segments = grow(segments, indexes)
    parent = segments
    for index in indexes[:-1]:
        parent = parent[index]
    parent[indexes[-1]] = value
    return segments


def remove(node: Any, indexes: Sequence[int]) -> list:
    """Delete the element at the path ``indexes``. Missing paths are left alone."""
    node = as_list(node)
    index = indexes[0]
    if index >= len(node):
        return node
    if len(indexes) == 1:
        del node[index]
    else:
        node[index] = remove(node[index], indexes[1:])
    return node
