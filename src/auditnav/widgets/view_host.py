"""Container that holds the panels of the active view."""

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical

from .references import ReferencesPanel
from .topic_panel import TopicPanel


class TopicViewHost(Horizontal):
    """Three slots (previous, topic, references) filled anew for every mounted entry."""

    DEFAULT_CSS = """
    TopicViewHost {
        width: 100%;
        height: 1fr;
    }

    TopicViewHost > #previous-slot {
        width: 25%;
        border: solid $primary;
    }

    TopicViewHost > #topic-slot {
        width: 45%;
        border: solid $success;
    }

    TopicViewHost > #references-slot {
        width: 30%;
        border: solid $warning;
    }

    TopicViewHost > .active-slot {
        border: solid cyan;
    }
    """

    def compose(self) -> ComposeResult:
        yield Vertical(id="previous-slot")
        yield Vertical(id="topic-slot", classes="active-slot")
        yield Vertical(id="references-slot")

    def create_view(
        self, entry_id: str
    ) -> tuple[TopicPanel, TopicPanel, ReferencesPanel]:
        topic = TopicPanel(title="TOPIC")
        previous = TopicPanel(title="PREVIOUS", read_only=True)
        references = ReferencesPanel()
        self.query_one("#topic-slot", Vertical).mount(topic)
        self.query_one("#previous-slot", Vertical).mount(previous)
        self.query_one("#references-slot", Vertical).mount(references)
        return topic, previous, references

    def discard_view(
        self, panels: tuple[TopicPanel, TopicPanel, ReferencesPanel]
    ) -> None:
        for panel in panels:
            panel.remove()

    def mark_active_slot(self, references: bool) -> None:
        """Outline the slot of the panel that receives focus movement."""
        self.query_one("#topic-slot").set_class(not references, "active-slot")
        self.query_one("#references-slot").set_class(references, "active-slot")
