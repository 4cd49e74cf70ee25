"""Single-entry dispatch: hl7("get", msg, "PID.3") -> getset.get(msg, "PID.3")."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable

from hl7tree import getset
from hl7tree.errors import UnknownCommandError
from hl7tree.query import query
from hl7tree.reader import HL7Reader
from hl7tree.writer import HL7Writer


class Command(str, Enum):
    PARSE = "parse"
    DATA = "data"
    QUERY = "query"
    GET = "get"
    GET_VALUES = "get_values"
    GET_REVERSE = "get_reverse"
    SET = "set"
    CLEAR = "clear"
    DELETE = "delete"
    ADD = "add"
    INSERT = "insert"
    INSERT_BEFORE = "insert_before"
    INSERT_AFTER = "insert_after"
    EACH = "each"


COMMANDS: dict[Command, Callable[..., Any]] = {
    Command.PARSE: HL7Reader.parse,
    Command.DATA: HL7Writer.serialize,
    Command.QUERY: query,
    Command.GET: getset.get,
    Command.GET_VALUES: getset.get_values,
    Command.GET_REVERSE: getset.get_reverse,
    Command.SET: getset.set,
    Command.CLEAR: getset.clear,
    Command.DELETE: getset.delete,
    Command.ADD: getset.add,
    Command.INSERT: getset.insert,
    Command.INSERT_BEFORE: getset.insert_before,
    Command.INSERT_AFTER: getset.insert_after,
    Command.EACH: getset.each,
}


def hl7(command: str | Command, *args: Any, **kwargs: Any) -> Any:
    try:
        cmd = Command(command)
    except ValueError:
        raise UnknownCommandError(str(command)) from None
    return COMMANDS[cmd](*args, **kwargs)
