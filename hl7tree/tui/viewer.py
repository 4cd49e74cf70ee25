"""hl7tree TUI Viewer - Main Textual app with 3-panel layout."""

from __future__ import annotations

import sys
from pathlib import Path

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import Footer, Header, Input

from hl7tree.errors import HL7Error
from hl7tree.getset import get
from hl7tree.message import HL7Message
from hl7tree.reader import HL7Reader
from hl7tree.spec import DEFAULT_SEGMENT_SEPARATOR
from hl7tree.tui.widgets import FieldPanel, SegmentList, SeparatorPanel
from hl7tree.writer import HL7Writer


class HL7ViewerApp(App):
    """TUI viewer for HL7 messages. Segment list, field rows and a query bar."""

    TITLE = "hl7tree Viewer"
    CSS = """
    Screen {
        layout: vertical;
    }
    #main-area {
        height: 1fr;
    }
    #query-bar {
        dock: bottom;
        display: none;
        height: 3;
        padding: 0 1;
    }
    #query-bar.visible {
        display: block;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("slash", "toggle_query", "Query", show=True),
        Binding("escape", "close_query", "Close query", show=False),
        Binding("j", "next_segment", "Next", show=True),
        Binding("k", "prev_segment", "Prev", show=True),
    ]

    def __init__(self, path: str | Path, segment_separator: str = DEFAULT_SEGMENT_SEPARATOR, **kwargs) -> None:
        super().__init__(**kwargs)
        self._path = Path(path)
        self._segment_separator = segment_separator
        self._msg: HL7Message | None = None

    def compose(self) -> ComposeResult:
        self._msg = HL7Reader.read(self._path, self._segment_separator)
        self.title = f"hl7tree Viewer - {self._path.name}"

        yield Header()

        with Horizontal(id="main-area"):
            yield SeparatorPanel(
                separators=self._msg.separators.as_dict(),
                segment_count=len(self._msg.segments),
                id="separators",
            )
            yield SegmentList(segment_names=self._msg.segment_names, id="segments")
            yield FieldPanel(id="fields")

        yield Input(placeholder="Query, e.g. PID.3.*  (Enter to run, Escape to close)", id="query-bar")
        yield Footer()

    def on_mount(self) -> None:
        """Auto-select first segment on mount."""
        if self._msg and self._msg.segments:
            self._show_segment(0)
            self.query_one("#segments", SegmentList).focus()

    def _show_segment(self, index: int) -> None:
        rows = self._rows(index)
        name = self._msg.segment_names[index] or "(blank)"
        self.query_one("#fields", FieldPanel).show_rows(f"{index} {name}", rows)

    def _rows(self, index: int) -> list[tuple[str, str]]:
        """Field rows of one segment, labelled NAME.n like the usual HL7 notation."""
        seps = self._msg.separators
        segment = self._msg.segments[index]
        name = self._msg.segment_names[index]
        fields = segment if isinstance(segment, list) else [segment]
        return [
            (f"{name}.{i}", HL7Writer.build_node(field, 2, seps))
            for i, field in enumerate(fields)
        ]

    def on_segment_list_segment_selected(self, event: SegmentList.SegmentSelected) -> None:
        if self._msg:
            self._show_segment(event.segment_index)

    def action_next_segment(self) -> None:
        self.query_one("#segments", SegmentList).action_cursor_down()

    def action_prev_segment(self) -> None:
        self.query_one("#segments", SegmentList).action_cursor_up()

    def action_toggle_query(self) -> None:
        """Show/hide the query bar."""
        bar = self.query_one("#query-bar", Input)
        bar.toggle_class("visible")
        if bar.has_class("visible"):
            bar.focus()
        else:
            bar.value = ""
            self.query_one("#segments", SegmentList).focus()

    def action_close_query(self) -> None:
        bar = self.query_one("#query-bar", Input)
        bar.remove_class("visible")
        bar.value = ""
        self.query_one("#segments", SegmentList).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Run the typed query and list its matches."""
        if event.input.id != "query-bar" or not self._msg:
            return
        text = event.value.strip()
        if not text:
            return
        panel = self.query_one("#fields", FieldPanel)
        try:
            results = get(self._msg, text)
        except HL7Error as e:
            panel.show_rows(text, [("error", str(e))])
            return
        seps = self._msg.separators
        rows = [
            (address, HL7Writer.build_node(value, len(address.split(".")), seps))
            for value, address in results
        ]
        panel.show_rows(text, rows)


def run_viewer(path: str | Path, segment_separator: str = DEFAULT_SEGMENT_SEPARATOR) -> None:
    """Launch the hl7tree TUI viewer."""
    path = Path(path)
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    if not HL7Reader.is_hl7(path):
        print(f"Error: Not an HL7 v2 message: {path}", file=sys.stderr)
        sys.exit(1)

    app = HL7ViewerApp(path, segment_separator)
    app.run()
