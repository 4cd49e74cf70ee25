"""hl7tree TUI Widgets - Custom panels for the message viewer."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.message import Message
from textual.reactive import reactive
from textual.widgets import Label, ListItem, ListView, Static


class SeparatorPanel(Static):
    """Sidebar panel showing the message's separator record."""

    DEFAULT_CSS = """
    SeparatorPanel {
        width: 28;
        border: solid $accent;
        padding: 1;
        overflow-y: auto;
    }
    SeparatorPanel .sep-title {
        text-style: bold;
        color: $text;
        margin-bottom: 1;
    }
    SeparatorPanel .sep-key {
        color: $text-muted;
    }
    SeparatorPanel .sep-val {
        color: $text;
    }
    """

    def __init__(self, separators: dict[str, str], segment_count: int, **kwargs) -> None:
        super().__init__(**kwargs)
        self._separators = separators
        self._segment_count = segment_count

    def compose(self) -> ComposeResult:
        yield Label(f"{self._segment_count} segments", classes="sep-title")
        for key, val in self._separators.items():
            yield Label(f"{key}:", classes="sep-key")
            yield Label(f"  {val!r}", classes="sep-val")


class SegmentList(ListView):
    """Segments of the message, one row each, labelled with index and name."""

    DEFAULT_CSS = """
    SegmentList {
        width: 20;
        border: solid $accent;
    }
    SegmentList > ListItem {
        padding: 0 1;
    }
    SegmentList > ListItem.--highlight {
        background: $accent;
    }
    """

    class SegmentSelected(Message):
        """Fired when a segment is highlighted or selected."""

        def __init__(self, segment_index: int) -> None:
            self.segment_index = segment_index
            super().__init__()

    def __init__(self, segment_names: list[str], **kwargs) -> None:
        self._segment_names = segment_names
        super().__init__(**kwargs)

    def compose(self) -> ComposeResult:
        for index, name in enumerate(self._segment_names):
            yield ListItem(Label(f"{index:>3d} {name or '(blank)'}"))

    def _post_current(self) -> None:
        idx = self.index or 0
        if 0 <= idx < len(self._segment_names):
            self.post_message(self.SegmentSelected(idx))

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        self._post_current()

    def on_list_view_highlighted(self, event: ListView.Highlighted) -> None:
        self._post_current()


class FieldPanel(Static):
    """Address/value rows: the fields of a segment, or the results of a query."""

    DEFAULT_CSS = """
    FieldPanel {
        border: solid $accent;
        padding: 1;
        overflow: auto;
    }
    FieldPanel .field-title {
        text-style: bold;
        color: $accent;
        margin-bottom: 1;
    }
    FieldPanel .field-body {
        color: $text;
    }
    """

    current_title = reactive("")

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._title_widget: Label | None = None
        self._body_widget: Static | None = None

    def compose(self) -> ComposeResult:
        self._title_widget = Label("Select a segment", classes="field-title")
        self._body_widget = Static("", classes="field-body")
        yield self._title_widget
        yield self._body_widget

    def show_rows(self, title: str, rows: list[tuple[str, str]]) -> None:
        """Display (address, value) rows, addresses dimmed."""
        from rich.text import Text

        self.current_title = title
        if self._title_widget:
            self._title_widget.update(f"--- {title} ---")
        if self._body_widget:
            body = Text()
            if not rows:
                body.append("(no matches)", style="dim")
            width = max((len(address) for address, _ in rows), default=0)
            for address, value in rows:
                body.append(f"{address:<{width}}  ", style="dim")
                body.append(f"{value}\n")
            self._body_widget.update(body)
        self.scroll_home()
