"""Navigation state: the branching history tree and per-entry view records."""

import itertools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from .errors import AtRoot, ChildIndexOutOfBounds, EntryNotFound, NoForwardHistory

logger = logging.getLogger(__name__)

_id_counter = itertools.count()


def new_entry_id() -> str:
    """Return a fresh, never-reused entry id (monotonic time + tie-break counter)."""
    return f"{time.monotonic_ns():x}-{next(_id_counter)}"


@dataclass(frozen=True)
class BranchRef:
    """Link between a parent entry and one of its children.

    ``child_focus_index`` is the focus index that belongs to the link: on a
    ``parent`` pointer it is the index that was focused in the parent when the
    branch was taken; on a ``children`` item it is the index to restore inside
    the child when going forward.
    """

    id: str
    child_focus_index: int = 0


@dataclass
class HistoryEntry:
    """One node of the navigation tree."""

    id: str
    topic_id: str
    parent: BranchRef | None = None
    children: list[BranchRef] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.parent is None


class HistoryGraph:
    """Forest of visited topics, stored flat and keyed by entry id.

    Children are ordered most-recently-visited-first, so the first child is
    always the default forward target.
    """

    def __init__(self) -> None:
        self._entries: dict[str, HistoryEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._entries

    def get(self, entry_id: str) -> HistoryEntry:
        """Get an entry by id, raising EntryNotFound if it does not exist."""
        try:
            return self._entries[entry_id]
        except KeyError:
            raise EntryNotFound(entry_id) from None

    def create_root(self, topic_id: str) -> str:
        """Create a parentless entry for a topic and return its id."""
        entry = HistoryEntry(id=new_entry_id(), topic_id=topic_id)
        self._entries[entry.id] = entry
        logger.debug("Created root %s for %s", entry.id, topic_id)
        return entry.id

    def branch(
        self, current_id: str, current_focus_index: int, topic_id: str
    ) -> HistoryEntry:
        """Create a child of ``current_id`` and make it the default forward target."""
        current = self.get(current_id)
        entry = HistoryEntry(
            id=new_entry_id(),
            topic_id=topic_id,
            parent=BranchRef(current.id, current_focus_index),
        )
        self._entries[entry.id] = entry
        current.children.insert(0, BranchRef(entry.id, 0))
        logger.debug("Branched %s -> %s (%s)", current.id, entry.id, topic_id)
        return entry

    def go_back(self, entry_id: str) -> tuple[HistoryEntry, int]:
        """Return the parent entry and the focus index it had when the branch was taken.

        Does not reorder the parent's children; callers apply ``promote`` once
        they know the latest focus index within the child.
        """
        entry = self.get(entry_id)
        if entry.parent is None:
            raise AtRoot(entry_id)
        return self.get(entry.parent.id), entry.parent.child_focus_index

    def promote(self, parent_id: str, child_id: str, focus_index: int) -> None:
        """Move ``child_id`` to the front of the parent's children.

        The child's stored focus index is replaced with ``focus_index``; the
        other children keep their relative order.
        """
        parent = self.get(parent_id)
        remaining = [ref for ref in parent.children if ref.id != child_id]
        if len(remaining) == len(parent.children):
            raise EntryNotFound(child_id)
        parent.children = [BranchRef(child_id, focus_index), *remaining]

    def go_forward(self, entry_id: str) -> tuple[HistoryEntry, int]:
        """Return the most recent child and its stored focus index."""
        entry = self.get(entry_id)
        if not entry.children:
            raise NoForwardHistory(entry_id)
        ref = entry.children[0]
        return self.get(ref.id), ref.child_focus_index

    def go_forward_to_branch(
        self, entry_id: str, index: int
    ) -> tuple[HistoryEntry, int]:
        """Return the child at ``index`` in current children order."""
        entry = self.get(entry_id)
        if not 0 <= index < len(entry.children):
            raise ChildIndexOutOfBounds(entry_id, index, len(entry.children))
        ref = entry.children[index]
        return self.get(ref.id), ref.child_focus_index

    def get_forward_branches(self, entry_id: str) -> list[tuple[int, HistoryEntry]]:
        entry = self.get(entry_id)
        return [(i, self.get(ref.id)) for i, ref in enumerate(entry.children)]

    def can_go_back(self, entry_id: str) -> bool:
        return self.get(entry_id).parent is not None

    def can_go_forward(self, entry_id: str) -> bool:
        return bool(self.get(entry_id).children)

    def get_parent_chain(self, entry_id: str) -> list[HistoryEntry]:
        """Return the entries from the root down to ``entry_id`` (inclusive)."""
        chain = [self.get(entry_id)]
        while chain[-1].parent is not None:
            chain.append(self.get(chain[-1].parent.id))
        chain.reverse()
        return chain

    def prune(self, entry_id: str) -> list[str]:
        """Discard every branch off the path from the root to ``entry_id``.

        Each ancestor is left with exactly one child (the path continuation).
        Descendants of ``entry_id`` itself are kept. Returns the ids of the
        removed entries.
        """
        removed: list[str] = []
        child = self.get(entry_id)
        while child.parent is not None:
            parent = self.get(child.parent.id)
            keep = None
            for ref in parent.children:
                if ref.id == child.id:
                    keep = ref
                else:
                    removed.extend(self._remove_subtree(ref.id))
            parent.children = [keep] if keep is not None else []
            child = parent
        if removed:
            logger.info("Pruned %d history entries", len(removed))
        return removed

    def _remove_subtree(self, entry_id: str) -> list[str]:
        removed = []
        stack = [entry_id]
        while stack:
            entry = self._entries.pop(stack.pop(), None)
            if entry is None:
                continue
            removed.append(entry.id)
            stack.extend(ref.id for ref in entry.children)
        return removed


@dataclass
class ViewState:
    """Persisted view metadata for one history entry."""

    entry_id: str
    topic_id: str
    scroll_position: float = 0


class ViewRegistry:
    """View states keyed by entry id; outlives the on-screen panels."""

    def __init__(self) -> None:
        self._states: dict[str, ViewState] = {}

    def get(self, entry_id: str) -> ViewState | None:
        return self._states.get(entry_id)

    def put(self, entry_id: str, state: ViewState) -> None:
        self._states[entry_id] = state

    def discard(self, entry_ids: list[str]) -> None:
        """Drop the states of entries that no longer exist in the history."""
        for entry_id in entry_ids:
            self._states.pop(entry_id, None)

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._states

    def __len__(self) -> int:
        return len(self._states)


class Panel(Enum):
    TOPIC = "topic"
    REFERENCES = "references"


@dataclass
class NavigationContext:
    """State of one navigation region (the active entry and its focus)."""

    active_entry_id: str | None = None
    child_focus_index: int = 0
    references_focus_index: int = 0
    active_panel: Panel = Panel.TOPIC
