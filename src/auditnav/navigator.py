"""Maps user navigation actions onto the history graph and the active view."""

import logging
from typing import Callable

from .errors import NavigationError, NoFocusedChild
from .navigation import (
    HistoryEntry,
    HistoryGraph,
    NavigationContext,
    Panel,
    ViewRegistry,
)
from .view import ActiveViewController, FocusByIndex

logger = logging.getLogger(__name__)

UrlSink = Callable[[str], None]
BreadcrumbSink = Callable[[list[HistoryEntry], list[tuple[int, HistoryEntry]]], None]

PAGE_STEP = 10


def location_path(audit_name: str, topic_id: str) -> str:
    """Return the location path shown for a topic."""
    return f"/{audit_name}/{topic_id}"


class NavigationController:
    """Turns descend/back/forward/focus/scope actions into view transitions.

    Navigation-boundary failures (going back from a root, forward from a
    leaf, descending with nothing focused) are logged and otherwise ignored;
    the methods return None or False in that case.
    """

    def __init__(
        self,
        graph: HistoryGraph,
        registry: ViewRegistry,
        view: ActiveViewController,
        context: NavigationContext,
        audit_name: str = "audit",
        url_sink: UrlSink | None = None,
        breadcrumb_sink: BreadcrumbSink | None = None,
    ) -> None:
        self.graph = graph
        self.registry = registry
        self.view = view
        self.context = context
        self.audit_name = audit_name
        self.url_sink = url_sink
        self.breadcrumb_sink = breadcrumb_sink

    @property
    def active_entry(self) -> HistoryEntry | None:
        if self.context.active_entry_id is None:
            return None
        return self.graph.get(self.context.active_entry_id)

    # History transitions

    def open_topic(self, topic_id: str) -> HistoryEntry | None:
        """Navigate to a topic, branching from the active entry (or starting a root)."""
        active = self.active_entry
        if active is not None and active.topic_id == topic_id:
            logger.debug("Already viewing %s", topic_id)
            return None
        if active is None:
            entry = self.graph.get(self.graph.create_root(topic_id))
        else:
            entry = self.graph.branch(active.id, self.context.child_focus_index, topic_id)
        self._activate(entry, FocusByIndex(0, 0))
        return entry

    def descend(self) -> HistoryEntry | None:
        """Open the topic of the focused child in the active panel."""
        try:
            child = self._focused_child()
        except NoFocusedChild as e:
            logger.info("%s", e)
            return None
        return self.open_topic(child)

    def _focused_child(self) -> str:
        if self.context.active_panel is Panel.REFERENCES:
            child = self.view.focused_reference_child()
        else:
            child = self.view.focused_topic_child()
        if child is None:
            raise NoFocusedChild()
        return child.topic_id

    def back(self) -> HistoryEntry | None:
        """Return to the parent entry, making the current branch its forward target."""
        active = self.active_entry
        if active is None:
            return None
        try:
            parent, focus_index = self.graph.go_back(active.id)
        except NavigationError as e:
            logger.info("%s", e)
            return None
        self.graph.promote(parent.id, active.id, self.context.child_focus_index)
        self._activate(parent, self._restore_target(parent, focus_index))
        return parent

    def forward(self) -> HistoryEntry | None:
        """Resume the most recently visited branch of the active entry."""
        active = self.active_entry
        if active is None:
            return None
        try:
            child, focus_index = self.graph.go_forward(active.id)
        except NavigationError as e:
            logger.info("%s", e)
            return None
        self._activate(child, self._restore_target(child, focus_index))
        return child

    def forward_to_branch(self, index: int) -> HistoryEntry | None:
        """Resume the branch at ``index`` in the active entry's children."""
        active = self.active_entry
        if active is None:
            return None
        try:
            child, focus_index = self.graph.go_forward_to_branch(active.id, index)
        except NavigationError as e:
            logger.info("%s", e)
            return None
        self._activate(child, self._restore_target(child, focus_index))
        return child

    def prune_history(self) -> list[str]:
        """Drop every branch off the path to the active entry."""
        active = self.active_entry
        if active is None:
            return []
        removed = self.graph.prune(active.id)
        self.registry.discard(removed)
        self._publish(active)
        return removed

    def _restore_target(self, entry: HistoryEntry, focus_index: int) -> FocusByIndex:
        state = self.registry.get(entry.id)
        scroll = state.scroll_position if state is not None else 0
        return FocusByIndex(focus_index, scroll)

    def _activate(self, entry: HistoryEntry, focus_target: FocusByIndex) -> None:
        self.view.unmount_capturing_scroll()
        self.view.mount(entry)
        self.context.active_entry_id = entry.id
        self.context.child_focus_index = focus_target.index
        self.context.references_focus_index = 0
        self.context.active_panel = Panel.TOPIC
        self.view.load_all(entry, focus_target)
        self._publish(entry)

    def _publish(self, entry: HistoryEntry) -> None:
        path = location_path(self.audit_name, entry.topic_id)
        logger.info("Navigated to %s", path)
        if self.url_sink is not None:
            self.url_sink(path)
        if self.breadcrumb_sink is not None:
            self.breadcrumb_sink(
                self.graph.get_parent_chain(entry.id),
                self.graph.get_forward_branches(entry.id),
            )

    # In-view actions

    def move_focus(self, delta: int) -> int | None:
        """Move the focus within the active panel, clamped to its children."""
        if self.view.active is None:
            return None
        if self.context.active_panel is Panel.REFERENCES:
            count = len(self.view.reference_focus_list())
            current = self.context.references_focus_index
        else:
            count = len(self.view.active.topic_children)
            current = self.context.child_focus_index
        if count == 0:
            return None
        index = max(0, min(current + delta, count - 1))
        if self.context.active_panel is Panel.REFERENCES:
            self.view.focus_reference_child(index)
        else:
            self.view.focus_topic_child(index)
        return index

    def switch_panel(self) -> Panel:
        """Toggle between the topic and references panels."""
        panel = Panel.REFERENCES if self.context.active_panel is Panel.TOPIC else Panel.TOPIC
        self.view.set_active_panel(panel)
        return panel

    def scope_up(self) -> bool:
        if self.context.active_panel is not Panel.REFERENCES:
            logger.info("Scope navigation only applies to the references panel")
            return False
        return self.view.scope_up()

    def scope_down(self) -> bool:
        if self.context.active_panel is not Panel.REFERENCES:
            logger.info("Scope navigation only applies to the references panel")
            return False
        return self.view.scope_down()

    def reload(self) -> None:
        self.view.refresh_visible()
