"""Navigation action handlers for AuditNavApp."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..navigation import Panel
from ..widgets import TopicViewHost

if TYPE_CHECKING:
    from ..navigator import NavigationController


class NavigationActionsMixin:
    """Mixin providing the keyboard actions of the navigation tree."""

    navigator: NavigationController

    def action_descend(self) -> None:
        """Open the focused child as a new branch."""
        self.navigator.descend()

    def action_back(self) -> None:
        self.navigator.back()

    def action_forward(self) -> None:
        self.navigator.forward()

    def action_forward_branch(self, index: int) -> None:
        """Resume the forward branch shown as [index + 1] in the breadcrumb."""
        self.navigator.forward_to_branch(index)

    def action_move_focus(self, delta: int) -> None:
        self.navigator.move_focus(delta)

    def action_switch_panel(self) -> None:
        """Toggle focus movement between the topic and references panels."""
        panel = self.navigator.switch_panel()
        host = self.query_one("#view-host", TopicViewHost)
        host.mark_active_slot(panel is Panel.REFERENCES)

    def action_scope_up(self) -> None:
        self.navigator.scope_up()

    def action_scope_down(self) -> None:
        self.navigator.scope_down()

    def action_prune(self) -> None:
        """Discard all history branches off the current path."""
        removed = self.navigator.prune_history()
        if removed:
            self.notify(f"Pruned {len(removed)} history entries")
        else:
            self.notify("Nothing to prune")

    def action_reload(self) -> None:
        self.navigator.reload()
        self.notify("Reloading...")

    def action_help(self) -> None:
        """Show help information."""
        self.notify(
            "enter=Open, b=Back, f=Forward, 1-9=Branch, j/k=Move, ctrl+d/u=Page, "
            "tab=Panel, [/]=Scope up/down, p=Prune, r=Reload, q=Quit",
            timeout=5,
        )
