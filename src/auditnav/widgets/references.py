"""References panel: one read-only sub-panel per topic referenced by the active topic."""

from rich.text import Text

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Static

from .topic_panel import TopicPanel, TopicScroll


class ReferencePanel(TopicPanel):
    """A reference sub-panel; sized to its content inside the references list."""

    DEFAULT_CSS = """
    ReferencePanel {
        height: auto;
        border-bottom: solid $primary;
    }

    ReferencePanel > .panel-header {
        color: $accent;
    }

    ReferencePanel > TopicScroll {
        height: auto;
        max-height: 20;
    }
    """

    def __init__(self, topic_id: str, **kwargs) -> None:
        super().__init__(title=topic_id, **kwargs)
        self.topic_id = topic_id


class ReferencesPanel(Vertical):
    """Widget listing the references of the active topic."""

    DEFAULT_CSS = """
    ReferencesPanel {
        width: 1fr;
        height: 1fr;
    }

    ReferencesPanel > #references-header {
        background: $primary-background;
        color: $warning;
        text-style: bold;
        padding: 0 1;
        height: 1;
    }

    ReferencesPanel > TopicScroll {
        height: 1fr;
    }

    ReferencesPanel .references-message {
        padding: 0 1;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._message = Static(
            Text("Loading references...", style="dim italic"),
            classes="references-message",
        )
        self._list = TopicScroll(self._message)
        self._pending: list[ReferencePanel] = []
        self.references: list[ReferencePanel] = []

    def compose(self) -> ComposeResult:
        yield Static("REFERENCES", id="references-header")
        yield self._list

    def on_mount(self) -> None:
        if self._pending:
            self._list.mount_all(self._pending)
            self._pending.clear()

    def add_reference(self, topic_id: str) -> ReferencePanel:
        panel = ReferencePanel(topic_id)
        self.references.append(panel)
        self._message.display = False
        if self._list.is_attached:
            self._list.mount(panel)
        else:
            self._pending.append(panel)
        return panel

    def show_error(self, message: str) -> None:
        self._message.update(Text(message, style="bold red"))
        self._message.display = True

    def show_placeholder(self, message: str) -> None:
        self._message.update(Text(message, style="dim italic"))
        self._message.display = True
