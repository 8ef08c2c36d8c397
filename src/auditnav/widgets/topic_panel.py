"""Scrollable panel rendering one topic fragment."""

from rich.text import Text

from textual.app import ComposeResult
from textual.containers import Vertical, VerticalScroll
from textual.widgets import Static

from ..fragment import FOCUS_STYLE, HIGHLIGHT_STYLE, ParsedFragment, render_fragment

# Lines kept visible above a focused child when scrolling it into view
SCROLL_MARGIN = 2


class TopicScroll(VerticalScroll, can_focus=False):
    """Scroll area that leaves key handling to the app bindings."""


class TopicPanel(Vertical):
    """Widget displaying a rendered topic with one focused (or highlighted) child."""

    DEFAULT_CSS = """
    TopicPanel {
        width: 1fr;
        height: 1fr;
    }

    TopicPanel > .panel-header {
        background: $primary-background;
        color: $success;
        text-style: bold;
        padding: 0 1;
        height: 1;
    }

    TopicPanel > TopicScroll {
        height: 1fr;
    }

    TopicPanel .panel-body {
        padding: 0 1;
    }
    """

    def __init__(self, title: str = "TOPIC", read_only: bool = False, **kwargs) -> None:
        super().__init__(**kwargs)
        self.read_only = read_only
        self._header = Static(title, classes="panel-header")
        self._body = Static(Text("Loading...", style="dim italic"), classes="panel-body")
        self._scroll = TopicScroll(self._body)
        self._fragment: ParsedFragment | None = None
        self._focus_index: int | None = None
        self._pending_scroll: float | None = None

    def compose(self) -> ComposeResult:
        yield self._header
        yield self._scroll

    def on_mount(self) -> None:
        if self._pending_scroll is not None:
            self.call_after_refresh(self._apply_scroll)

    @property
    def fragment(self) -> ParsedFragment | None:
        return self._fragment

    def set_title(self, title: str, in_scope: bool = False) -> None:
        header = Text(title)
        if in_scope:
            header.append("  [in scope]", style="bold green")
        self._header.update(header)

    def show_fragment(self, fragment: ParsedFragment) -> None:
        self._fragment = fragment
        self._render_body()

    def show_error(self, message: str) -> None:
        self._fragment = None
        self._focus_index = None
        self._body.update(Text(message, style="bold red"))

    def show_placeholder(self, message: str) -> None:
        self._fragment = None
        self._focus_index = None
        self._body.update(Text(message, style="dim italic"))

    def focus_child(self, index: int | None) -> None:
        """Style the child at ``index`` (reverse when active, underlined when read-only)."""
        self._focus_index = index
        self._render_body()
        if index is not None and not self.read_only and self._pending_scroll is None:
            self._scroll_child_into_view(index)

    def _render_body(self) -> None:
        if self._fragment is None:
            return
        style = HIGHLIGHT_STYLE if self.read_only else FOCUS_STYLE
        self._body.update(render_fragment(self._fragment, self._focus_index, style))

    def _scroll_child_into_view(self, index: int) -> None:
        if not self.is_mounted or self._fragment is None:
            return
        if not 0 <= index < len(self._fragment.children):
            return
        line = self._fragment.children[index].line
        top = self._scroll.scroll_y
        height = self._scroll.size.height
        if height and not top <= line < top + height:
            self._scroll.scroll_to(y=max(0, line - SCROLL_MARGIN), animate=False)

    def get_scroll_position(self) -> float:
        if self._pending_scroll is not None:
            return self._pending_scroll
        return self._scroll.scroll_y

    def set_scroll_position(self, position: float) -> None:
        """Scroll once the current content has been laid out."""
        self._pending_scroll = position
        if self.is_mounted:
            self.call_after_refresh(self._apply_scroll)

    def _apply_scroll(self) -> None:
        if self._pending_scroll is None:
            return
        self._scroll.scroll_to(y=self._pending_scroll, animate=False)
        self._pending_scroll = None
