"""
hl7tree CLI - Command-line interface for addressing HL7 v2 messages.

Commands:
  hl7tree inspect  - Show separators and segments of a message
  hl7tree query    - List the static addresses a query matches
  hl7tree get      - Print values matching a query
  hl7tree set      - Overwrite values matching a query
  hl7tree clear    - Blank out values matching a query
  hl7tree delete   - Remove values matching a query
  hl7tree add      - Append a value to nodes matching a query
  hl7tree insert   - Insert values before (or --after) nodes matching a query
  hl7tree convert  - Convert to/from JSON, CSV, TXT
  hl7tree identify - Quick check if a file is HL7 v2
  hl7tree view     - Browse a message in a terminal UI
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from hl7tree.errors import HL7Error
from hl7tree.spec import DEFAULT_SEGMENT_SEPARATOR

SEGMENT_SEPARATOR_ENV = "HL7TREE_SEGMENT_SEPARATOR"


def _decode_separator(value: str) -> str:
    """Turn the spellings \\r, \\n and \\r\\n typed on a command line into real characters."""
    return value.replace("\\r", "\r").replace("\\n", "\n")


def _load(args: argparse.Namespace):
    from hl7tree.reader import HL7Reader

    path = Path(args.path)
    if not path.is_file():
        print(f"Error: File not found: {args.path}", file=sys.stderr)
        sys.exit(1)
    return HL7Reader.read(path, args.segment_separator)


def _check_output_path(output: str) -> None:
    if ".." in Path(output).parts:
        print("Error: Output path must not contain '..' (path traversal)", file=sys.stderr)
        sys.exit(1)


def _emit(msg, args: argparse.Namespace) -> None:
    """Write a modified message to -o, or to stdout."""
    from hl7tree.writer import HL7Writer

    if args.output:
        _check_output_path(args.output)
        nbytes = HL7Writer.write(msg, args.output)
        print(f"Wrote {args.output} ({nbytes} bytes)")
    else:
        sys.stdout.write(HL7Writer.serialize(msg))


def _render(value, address: str, msg) -> str:
    from hl7tree.writer import HL7Writer

    depth = len(address.split(".")) if address else 0
    if depth == 0:
        return HL7Writer.serialize(msg)
    return HL7Writer.build_node(value, depth, msg.separators)


def cmd_inspect(args: argparse.Namespace) -> None:
    """Inspect a message - show separators and the segment listing."""
    msg = _load(args)
    seps = msg.separators

    print("SEPARATORS:")
    for key, val in seps.as_dict().items():
        print(f"  {key:13s} {val!r}")
    print()

    print("SEGMENTS:")
    for index, (name, segment) in enumerate(zip(msg.segment_names, msg.segments)):
        count = len(segment) if isinstance(segment, list) else 1
        print(f"  {index:>4d}  {name or '(blank)':8s}  fields={count}")


def cmd_query(args: argparse.Namespace) -> None:
    """List the static addresses matching a query."""
    from hl7tree.query import query

    msg = _load(args)
    for address in query(msg, args.query, expand=args.expand, reverse=args.reverse):
        print(address)


def cmd_get(args: argparse.Namespace) -> None:
    """Print the values matching a query, one per line."""
    from hl7tree.getset import get

    msg = _load(args)
    for value, address in get(msg, args.query, reverse=args.reverse, expand=args.expand):
        text = _render(value, address, msg)
        if args.values:
            print(text)
        else:
            print(f"{address}\t{text}")


def cmd_set(args: argparse.Namespace) -> None:
    from hl7tree.getset import set as set_value

    msg = _load(args)
    _emit(set_value(msg, args.query, args.value, expand=not args.no_expand), args)


def cmd_clear(args: argparse.Namespace) -> None:
    from hl7tree.getset import clear

    msg = _load(args)
    _emit(clear(msg, args.query), args)


def cmd_delete(args: argparse.Namespace) -> None:
    from hl7tree.getset import delete

    msg = _load(args)
    _emit(delete(msg, args.query), args)


def cmd_add(args: argparse.Namespace) -> None:
    from hl7tree.getset import add

    msg = _load(args)
    _emit(add(msg, args.query, args.value, expand=not args.no_expand), args)


def cmd_insert(args: argparse.Namespace) -> None:
    from hl7tree.getset import insert_after, insert_before

    msg = _load(args)
    op = insert_after if args.after else insert_before
    _emit(op(msg, args.query, *args.values, expand=not args.no_expand), args)


def cmd_convert(args: argparse.Namespace) -> None:
    """Convert to/from HL7."""
    from hl7tree.converters import convert_to, convert_from
    from hl7tree.spec import EXTENSION, MAX_FILE_SIZE
    from hl7tree.writer import HL7Writer

    if args.direction == "to":
        msg = _load(args)
        result = convert_to(msg, args.format)
        if args.output:
            _check_output_path(args.output)
            Path(args.output).write_text(result, encoding="utf-8")
            print(f"Converted {args.path} -> {args.output}")
        else:
            print(result, end="")
        return

    input_path = Path(args.path)
    if not input_path.is_file():
        print(f"Error: File not found: {args.path}", file=sys.stderr)
        sys.exit(1)
    file_size = input_path.stat().st_size
    if file_size > MAX_FILE_SIZE:
        print(
            f"Error: File size {file_size} exceeds maximum {MAX_FILE_SIZE} bytes",
            file=sys.stderr,
        )
        sys.exit(1)
    msg = convert_from(input_path.read_text(encoding="utf-8"), args.format)
    output = args.output or input_path.stem + EXTENSION
    _check_output_path(output)
    nbytes = HL7Writer.write(msg, output)
    print(f"Converted {args.path} -> {output} ({nbytes} bytes)")


def cmd_identify(args: argparse.Namespace) -> None:
    """Quick check if a file is HL7 v2."""
    from hl7tree.reader import HL7Reader

    is_hl7 = HL7Reader.is_hl7(args.path)
    if is_hl7:
        print(f"{args.path}: HL7 v2 message")
    else:
        print(f"{args.path}: not HL7 v2")
    sys.exit(0 if is_hl7 else 1)


def cmd_view(args: argparse.Namespace) -> None:
    """Browse a message in the terminal UI."""
    try:
        from hl7tree.tui.viewer import run_viewer
    except ImportError:
        print(
            "TUI viewer requires the 'textual' package.\n"
            "Install it with: pip install \"hl7tree[tui]\"",
            file=sys.stderr,
        )
        sys.exit(1)
    run_viewer(args.path, args.segment_separator)


def _add_output(p: argparse.ArgumentParser) -> None:
    p.add_argument("-o", "--output", help="Write the result here instead of stdout")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="hl7tree",
        description="hl7tree - address, read and rewrite HL7 v2 messages.",
    )
    from hl7tree import __version__
    parser.add_argument("--version", action="version", version=f"hl7tree {__version__}")
    parser.add_argument(
        "-s", "--segment-separator",
        default=os.environ.get(SEGMENT_SEPARATOR_ENV, DEFAULT_SEGMENT_SEPARATOR),
        help=f"Segment separator, e.g. '\\r' or '\\n' (or set {SEGMENT_SEPARATOR_ENV})",
    )
    sub = parser.add_subparsers(dest="command")

    # inspect
    p_inspect = sub.add_parser("inspect", help="Show separators and segments")
    p_inspect.add_argument("path", help="Path to HL7 file")

    # query
    p_query = sub.add_parser("query", help="List static addresses matching a query")
    p_query.add_argument("path", help="Path to HL7 file")
    p_query.add_argument("query", help="Query address, e.g. PID.3.*")
    p_query.add_argument("--expand", action="store_true", help="Allow indexes past the end")
    p_query.add_argument("--reverse", action="store_true", help="Highest address first")

    # get
    p_get = sub.add_parser("get", help="Print values matching a query")
    p_get.add_argument("path", help="Path to HL7 file")
    p_get.add_argument("query", help="Query address, e.g. PID.3.*")
    p_get.add_argument("--expand", action="store_true", help="Allow indexes past the end")
    p_get.add_argument("--reverse", action="store_true", help="Highest address first")
    p_get.add_argument("--values", action="store_true", help="Print values only, no addresses")

    # set
    p_set = sub.add_parser("set", help="Overwrite values matching a query")
    p_set.add_argument("path", help="Path to HL7 file")
    p_set.add_argument("query", help="Query address")
    p_set.add_argument("value", help="New value")
    p_set.add_argument("--no-expand", action="store_true", help="Only touch existing nodes")
    _add_output(p_set)

    # clear
    p_clear = sub.add_parser("clear", help="Blank out values matching a query")
    p_clear.add_argument("path", help="Path to HL7 file")
    p_clear.add_argument("query", help="Query address")
    _add_output(p_clear)

    # delete
    p_delete = sub.add_parser("delete", help="Remove nodes matching a query")
    p_delete.add_argument("path", help="Path to HL7 file")
    p_delete.add_argument("query", help="Query address")
    _add_output(p_delete)

    # add
    p_add = sub.add_parser("add", help="Append a value to nodes matching a query")
    p_add.add_argument("path", help="Path to HL7 file")
    p_add.add_argument("query", help="Query address (field, repetition or component)")
    p_add.add_argument("value", help="Value to append")
    p_add.add_argument("--no-expand", action="store_true", help="Only touch existing nodes")
    _add_output(p_add)

    # insert
    p_insert = sub.add_parser("insert", help="Insert values next to nodes matching a query")
    p_insert.add_argument("path", help="Path to HL7 file")
    p_insert.add_argument("query", help="Query address (not a field)")
    p_insert.add_argument("values", nargs="+", help="Values to insert")
    p_insert.add_argument("--after", action="store_true", help="Insert after instead of before")
    p_insert.add_argument("--no-expand", action="store_true", help="Only touch existing nodes")
    _add_output(p_insert)

    # convert
    p_convert = sub.add_parser("convert", help="Convert to/from JSON, CSV, TXT")
    p_convert.add_argument("direction", choices=["to", "from"], help="Conversion direction")
    p_convert.add_argument("format", choices=["json", "csv", "txt"], help="Other format")
    p_convert.add_argument("path", help="Input file path")
    _add_output(p_convert)

    # identify
    p_identify = sub.add_parser("identify", help="Quick check if a file is HL7 v2")
    p_identify.add_argument("path", help="Path to file")

    # view
    p_view = sub.add_parser("view", help="Browse a message in a terminal UI")
    p_view.add_argument("path", help="Path to HL7 file")

    args = parser.parse_args()
    args.segment_separator = _decode_separator(args.segment_separator)

    if not args.command:
        print("hl7tree - address, read and rewrite HL7 v2 messages.\n")
        print("Usage:")
        print("  hl7tree inspect adt.hl7")
        print("  hl7tree query adt.hl7 'PID.3.*'")
        print("  hl7tree get adt.hl7 'PID.3.*.0.0'")
        print("  hl7tree set adt.hl7 PID.5.0.0.0 DOE -o out.hl7")
        print("  hl7tree delete adt.hl7 'OBX' -o out.hl7")
        print("  hl7tree insert adt.hl7 PID.3.0 NEW --after -o out.hl7")
        print("  hl7tree convert to json adt.hl7 -o adt.json")
        print("  hl7tree view adt.hl7")
        print()
        print("Messages with LF line endings:")
        print("  hl7tree -s '\\n' get adt.hl7 'MSH.9'")
        print()
        print("Run 'hl7tree <command> --help' for details on any command.")
        print("Run 'hl7tree --version' for version info.")
        sys.exit(0)

    commands = {
        "inspect": cmd_inspect,
        "query": cmd_query,
        "get": cmd_get,
        "set": cmd_set,
        "clear": cmd_clear,
        "delete": cmd_delete,
        "add": cmd_add,
        "insert": cmd_insert,
        "convert": cmd_convert,
        "identify": cmd_identify,
        "view": cmd_view,
    }

    try:
        commands[args.command](args)
    except (HL7Error, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
