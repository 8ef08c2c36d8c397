"""Breadcrumb bar showing the path to the active entry and its forward branches."""

from rich.text import Text

from textual.widgets import Static

from ..navigation import HistoryEntry

SEPARATOR = " > "
# Branch picker keys are 1-9
MAX_BRANCHES_SHOWN = 9


def build_trail(
    chain: list[HistoryEntry], branches: list[tuple[int, HistoryEntry]]
) -> Text:
    """Build the breadcrumb text: root > ... > active   [1] next [2] other."""
    text = Text()
    for i, entry in enumerate(chain):
        if i:
            text.append(SEPARATOR, style="dim")
        style = "bold bright_white" if i == len(chain) - 1 else "cyan"
        text.append(entry.topic_id, style=style)
    if branches:
        text.append("   ")
        for index, entry in branches[:MAX_BRANCHES_SHOWN]:
            text.append(f"[{index + 1}]", style="bold yellow")
            text.append(f" {entry.topic_id} ", style="yellow")
        if len(branches) > MAX_BRANCHES_SHOWN:
            text.append(f"+{len(branches) - MAX_BRANCHES_SHOWN}", style="dim")
    return text


class Breadcrumb(Static):
    """One-line breadcrumb for the navigation tree."""

    DEFAULT_CSS = """
    Breadcrumb {
        width: 100%;
        height: 1;
        background: $primary-background;
        padding: 0 1;
    }
    """

    def update_trail(
        self, chain: list[HistoryEntry], branches: list[tuple[int, HistoryEntry]]
    ) -> None:
        self.update(build_trail(chain, branches))
