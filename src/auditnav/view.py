"""Lifecycle of the single on-screen view of the active history entry.

The controller mounts fresh panels for an entry, fills them asynchronously
from the topic cache, and tears them down again when the user navigates
away. Every asynchronous load remembers which view and topic it was issued
for and drops its result if that view is no longer the active one. Each
panel also counts its loads and in-place renders, so a response that was
overtaken by a pushed update or a newer load is dropped as well.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Coroutine

from .cache import TopicCache
from .errors import ContentFetchFailed, MetadataFetchFailed
from .fragment import FocusableChild, ParsedFragment, parse_fragment
from .navigation import (
    HistoryEntry,
    HistoryGraph,
    NavigationContext,
    Panel,
    ViewRegistry,
    ViewState,
)
from .providers import InScopeFiles, TopicMetadata
from .scope import (
    Scope,
    child_topic_toward,
    enter_scope,
    parent_scope,
    scope_container,
    scope_topic,
)
from .widgets.protocols import ReferencesSurface, TopicSurface, ViewHost

logger = logging.getLogger(__name__)

Spawn = Callable[[Coroutine[Any, Any, None]], Any]


@dataclass(frozen=True)
class FocusByIndex:
    """Restore a saved position: scroll first, then focus the child at ``index``."""

    index: int
    scroll_position: float = 0


@dataclass(frozen=True)
class FocusById:
    """Focus the child whose element id matches, wherever it rendered."""

    element_id: str


FocusTarget = FocusByIndex | FocusById


class ViewPhase(Enum):
    UNMOUNTED = "unmounted"
    MOUNTING = "mounting"
    MOUNTED_IDLE = "mounted_idle"


@dataclass(eq=False)
class ReferenceView:
    """One read-only reference sub-panel and the topic it currently shows."""

    origin_topic: str
    topic_id: str
    surface: TopicSurface
    scope: Scope | None = None
    origin_scope: Scope | None = None
    fragment: ParsedFragment | None = None
    focus_index: int | None = None
    # Bumped by every load or in-place render; older loads drop their result
    generation: int = 0


@dataclass(eq=False)
class ActiveViewElements:
    """Panels and rendered state of the mounted view. Never persisted."""

    entry_id: str
    topic_id: str
    topic_panel: TopicSurface
    previous_panel: TopicSurface
    references_panel: ReferencesSurface
    topic_fragment: ParsedFragment | None = None
    focus_index: int | None = None
    metadata: TopicMetadata | None = None
    previous_topic_id: str | None = None
    previous_fragment: ParsedFragment | None = None
    previous_highlight: int | None = None
    references: list[ReferenceView] = field(default_factory=list)
    # Flattened (reference index, child index) pairs, built on demand
    reference_children: list[tuple[int, int]] | None = None
    reference_focus: tuple[int, int] | None = None
    topic_generation: int = 0
    previous_generation: int = 0

    @property
    def topic_children(self) -> list[FocusableChild]:
        return self.topic_fragment.children if self.topic_fragment else []

    @property
    def panels(self) -> tuple[TopicSurface, TopicSurface, ReferencesSurface]:
        return (self.topic_panel, self.previous_panel, self.references_panel)


def _clamp(index: int, count: int) -> int | None:
    if count == 0:
        return None
    return max(0, min(index, count - 1))


class ActiveViewController:
    """Mounts, fills and tears down the view of the active history entry."""

    def __init__(
        self,
        graph: HistoryGraph,
        registry: ViewRegistry,
        cache: TopicCache,
        host: ViewHost,
        context: NavigationContext,
        in_scope: InScopeFiles | None = None,
        spawn: Spawn | None = None,
    ) -> None:
        self.graph = graph
        self.registry = registry
        self.cache = cache
        self.host = host
        self.context = context
        self.in_scope = in_scope or InScopeFiles()
        self._spawn = spawn or self._spawn_task
        self._tasks: set[asyncio.Task] = set()
        self._active: ActiveViewElements | None = None
        self.phase = ViewPhase.UNMOUNTED

    @property
    def active(self) -> ActiveViewElements | None:
        return self._active

    def _spawn_task(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def settle(self) -> None:
        """Wait until all loads started with the default spawner have finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # Mount / unmount

    def mount(self, entry: HistoryEntry) -> ActiveViewElements:
        """Allocate empty panels for ``entry`` and make them the active view."""
        if self._active is not None:
            if self._active.entry_id == entry.id:
                return self._active
            raise RuntimeError(
                f"Cannot mount {entry.id}: {self._active.entry_id} is still mounted"
            )
        if self.registry.get(entry.id) is None:
            self.registry.put(entry.id, ViewState(entry.id, entry.topic_id))
        topic_panel, previous_panel, references_panel = self.host.create_view(entry.id)
        self._active = ActiveViewElements(
            entry_id=entry.id,
            topic_id=entry.topic_id,
            topic_panel=topic_panel,
            previous_panel=previous_panel,
            references_panel=references_panel,
        )
        self.phase = ViewPhase.MOUNTING
        logger.debug("Mounted view for %s (%s)", entry.id, entry.topic_id)
        return self._active

    def unmount_capturing_scroll(self) -> ViewState | None:
        """Save the topic panel's scroll offset and discard the active view."""
        elements = self._active
        if elements is None:
            return None
        state = self.registry.get(elements.entry_id)
        if state is None:
            raise RuntimeError(f"Active entry {elements.entry_id} has no view state")
        state.scroll_position = elements.topic_panel.get_scroll_position()
        self.host.discard_view(elements.panels)
        self._active = None
        self.phase = ViewPhase.UNMOUNTED
        logger.debug(
            "Unmounted %s at scroll %s", elements.entry_id, state.scroll_position
        )
        return state

    def load_all(self, entry: HistoryEntry, focus_target: FocusTarget) -> None:
        """Start the topic, references and previous-topic loads for the active view."""
        self._spawn(self.load_topic_content(entry.topic_id, focus_target))
        self._spawn(self.load_references(entry.topic_id))
        self._spawn(self.load_previous_topic(entry.id))

    def _is_current(self, elements: ActiveViewElements, topic_id: str) -> bool:
        return self._active is elements and elements.topic_id == topic_id

    def _topic_load_is_current(
        self, elements: ActiveViewElements, topic_id: str, generation: int
    ) -> bool:
        return self._is_current(elements, topic_id) and elements.topic_generation == generation

    # Topic panel

    async def load_topic_content(self, topic_id: str, focus_target: FocusTarget) -> None:
        """Fetch the active topic's fragment, show it and resolve focus."""
        elements = self._active
        if elements is None or elements.topic_id != topic_id:
            logger.debug("No active view for %s, skipping content load", topic_id)
            return
        elements.topic_generation += 1
        generation = elements.topic_generation
        try:
            html = await self.cache.content(topic_id)
        except ContentFetchFailed as e:
            logger.warning("%s", e)
            if self._topic_load_is_current(elements, topic_id, generation):
                elements.topic_panel.show_error(f"Could not load {topic_id}: {e.reason}")
                self.phase = ViewPhase.MOUNTED_IDLE
            return
        if not self._topic_load_is_current(elements, topic_id, generation):
            logger.debug("Discarding stale content for %s", topic_id)
            return
        self._show_topic(elements, parse_fragment(html), focus_target)
        self.phase = ViewPhase.MOUNTED_IDLE

    def _show_topic(
        self,
        elements: ActiveViewElements,
        fragment: ParsedFragment,
        focus_target: FocusTarget,
    ) -> None:
        panel = elements.topic_panel
        elements.topic_fragment = fragment
        panel.show_fragment(fragment)
        count = len(fragment.children)
        match focus_target:
            case FocusByIndex(index=index, scroll_position=scroll):
                panel.set_scroll_position(scroll)
                resolved = _clamp(index, count)
            case FocusById(element_id=element_id):
                resolved = fragment.index_of(element_id)
                if resolved is None:
                    resolved = _clamp(elements.focus_index or 0, count)
        self.focus_topic_child(resolved)

    def focus_topic_child(self, index: int | None) -> None:
        """Move the topic panel's focus and record it in the navigation context."""
        elements = self._active
        if elements is None:
            return
        elements.focus_index = index
        if index is not None:
            self.context.child_focus_index = index
        highlight = index if self.context.active_panel is Panel.TOPIC else None
        elements.topic_panel.focus_child(highlight)

    def focused_topic_child(self) -> FocusableChild | None:
        elements = self._active
        if elements is None or elements.focus_index is None:
            return None
        children = elements.topic_children
        if 0 <= elements.focus_index < len(children):
            return children[elements.focus_index]
        return None

    # Previous-topic panel

    async def load_previous_topic(self, entry_id: str) -> None:
        """Show the parent entry read-only, at its saved scroll, with the branch highlighted."""
        elements = self._active
        if elements is None or elements.entry_id != entry_id:
            return
        elements.previous_generation += 1
        generation = elements.previous_generation
        entry = self.graph.get(entry_id)
        if entry.parent is None:
            elements.previous_panel.set_title("PREVIOUS")
            elements.previous_panel.show_placeholder("No previous topic")
            return
        parent = self.graph.get(entry.parent.id)
        state = self.registry.get(parent.id)
        scroll = state.scroll_position if state else 0
        # Set before the fetch so a pushed update for the parent renders in place
        elements.previous_topic_id = parent.topic_id
        elements.previous_highlight = entry.parent.child_focus_index
        try:
            html = await self.cache.content(parent.topic_id)
        except ContentFetchFailed as e:
            logger.warning("%s", e)
            if self._previous_load_is_current(elements, generation):
                elements.previous_panel.show_error(
                    f"Could not load {parent.topic_id}: {e.reason}"
                )
            return
        if not self._previous_load_is_current(elements, generation):
            logger.debug("Discarding stale previous topic %s", parent.topic_id)
            return
        self._show_previous(elements, parse_fragment(html), scroll)

    def _previous_load_is_current(self, elements: ActiveViewElements, generation: int) -> bool:
        return self._active is elements and elements.previous_generation == generation

    def _show_previous(
        self,
        elements: ActiveViewElements,
        fragment: ParsedFragment,
        scroll: float | None = None,
    ) -> None:
        panel = elements.previous_panel
        elements.previous_fragment = fragment
        panel.set_title(f"PREVIOUS - {elements.previous_topic_id}")
        panel.show_fragment(fragment)
        if scroll is not None:
            panel.set_scroll_position(scroll)
        panel.focus_child(elements.previous_highlight)

    # References panel

    async def load_references(self, topic_id: str) -> None:
        """Fetch the topic's metadata and mount one sub-panel per reference."""
        elements = self._active
        if elements is None or elements.topic_id != topic_id:
            return
        try:
            metadata = await self.cache.metadata(topic_id)
        except MetadataFetchFailed as e:
            logger.warning("%s", e)
            if self._is_current(elements, topic_id):
                elements.references_panel.show_error(
                    f"Could not load references: {e.reason}"
                )
            return
        if not self._is_current(elements, topic_id):
            logger.debug("Discarding stale references for %s", topic_id)
            return
        elements.metadata = metadata
        elements.topic_panel.set_title(
            metadata.name or topic_id, self._topic_in_scope(metadata)
        )
        if not metadata.references:
            elements.references_panel.show_placeholder("No references")
            return
        for reference in metadata.references:
            surface = elements.references_panel.add_reference(reference)
            view = ReferenceView(origin_topic=reference, topic_id=reference, surface=surface)
            elements.references.append(view)
            self._spawn(self._load_reference(elements, view, reference))
        elements.reference_children = None

    def _reference_is_current(
        self,
        elements: ActiveViewElements,
        view: ReferenceView,
        topic_id: str,
        generation: int | None = None,
    ) -> bool:
        return (
            self._active is elements
            and view.topic_id == topic_id
            and (generation is None or view.generation == generation)
            and any(v is view for v in elements.references)
        )

    def _topic_in_scope(self, metadata: TopicMetadata) -> bool:
        container = scope_container(enter_scope(metadata.scope, metadata.topic_id))
        return container is not None and self.in_scope.is_in_scope(container)

    async def _load_reference(
        self,
        elements: ActiveViewElements,
        view: ReferenceView,
        topic_id: str,
        focus_element_id: str | None = None,
        fallback_topic: str | None = None,
    ) -> None:
        view.generation += 1
        generation = view.generation
        try:
            html = await self.cache.content(topic_id)
        except ContentFetchFailed as e:
            logger.warning("%s", e)
            if self._reference_is_current(elements, view, topic_id, generation):
                view.surface.show_error(f"Could not load {topic_id}: {e.reason}")
            return
        metadata = None
        try:
            metadata = await self.cache.metadata(topic_id)
        except MetadataFetchFailed as e:
            logger.warning("%s", e)
        if not self._reference_is_current(elements, view, topic_id):
            logger.debug("Discarding stale reference content for %s", topic_id)
            return
        if metadata is not None:
            view.scope = metadata.scope
            if topic_id == view.origin_topic:
                view.origin_scope = metadata.scope
            view.surface.set_title(metadata.name or topic_id, self._topic_in_scope(metadata))
        else:
            view.surface.set_title(topic_id)
        if view.generation != generation:
            logger.debug("Reference %s was re-rendered during the load", topic_id)
            return
        self._show_reference(
            elements, view, parse_fragment(html), focus_element_id, fallback_topic
        )

    def _show_reference(
        self,
        elements: ActiveViewElements,
        view: ReferenceView,
        fragment: ParsedFragment,
        focus_element_id: str | None,
        fallback_topic: str | None = None,
    ) -> None:
        was_focused = self._focused_reference(elements) is view
        view.fragment = fragment
        view.surface.show_fragment(fragment)
        view.focus_index = None
        elements.reference_children = None
        if focus_element_id is not None:
            view.focus_index = fragment.find(focus_element_id)
            if view.focus_index is None and fallback_topic is not None:
                view.focus_index = fragment.find(fallback_topic)
            if view.focus_index is None:
                view.focus_index = _clamp(0, len(fragment.children))
        if was_focused and self.context.active_panel is Panel.REFERENCES:
            ref_index = next(i for i, v in enumerate(elements.references) if v is view)
            children = self.reference_focus_list()
            if view.focus_index is not None:
                self.focus_reference_child(children.index((ref_index, view.focus_index)))
            else:
                elements.reference_focus = None
                view.surface.focus_child(None)
        else:
            view.surface.focus_child(None)

    def reference_focus_list(self) -> list[tuple[int, int]]:
        """Return the focusable children of all reference sub-panels, in order."""
        elements = self._active
        if elements is None:
            return []
        if elements.reference_children is None:
            elements.reference_children = [
                (ref_index, child_index)
                for ref_index, view in enumerate(elements.references)
                if view.fragment is not None
                for child_index in range(len(view.fragment.children))
            ]
        return elements.reference_children

    def focus_reference_child(self, index: int | None) -> None:
        """Focus the reference child at a flat index (None clears the focus)."""
        elements = self._active
        if elements is None:
            return
        if elements.reference_focus is not None:
            old_ref, _ = elements.reference_focus
            if old_ref < len(elements.references):
                elements.references[old_ref].surface.focus_child(None)
        children = self.reference_focus_list()
        if index is None or not children:
            elements.reference_focus = None
            return
        index = _clamp(index, len(children))
        ref_index, child_index = children[index]
        elements.reference_focus = (ref_index, child_index)
        view = elements.references[ref_index]
        view.focus_index = child_index
        view.surface.focus_child(child_index)
        self.context.references_focus_index = index

    def focused_reference_child(self) -> FocusableChild | None:
        elements = self._active
        if elements is None or elements.reference_focus is None:
            return None
        ref_index, child_index = elements.reference_focus
        fragment = elements.references[ref_index].fragment
        if fragment is None or child_index >= len(fragment.children):
            return None
        return fragment.children[child_index]

    def _focused_reference(self, elements: ActiveViewElements) -> ReferenceView | None:
        if elements.reference_focus is not None:
            return elements.references[elements.reference_focus[0]]
        return None

    def _scope_target(self) -> tuple[ActiveViewElements | None, ReferenceView | None]:
        elements = self._active
        if elements is None:
            return None, None
        view = self._focused_reference(elements)
        if view is None and elements.references:
            # A reference without focusable children can still change scope.
            view = elements.references[0]
        return elements, view

    def set_active_panel(self, panel: Panel) -> None:
        """Move the visible focus between the topic and references panels."""
        self.context.active_panel = panel
        elements = self._active
        if elements is None:
            return
        if panel is Panel.REFERENCES:
            elements.topic_panel.focus_child(None)
            children = self.reference_focus_list()
            self.focus_reference_child(
                _clamp(self.context.references_focus_index, len(children))
            )
        else:
            self.focus_reference_child(None)
            elements.topic_panel.focus_child(elements.focus_index)

    # Scope transitions inside a reference sub-panel

    def scope_up(self) -> bool:
        """Replace the focused reference with its structural parent, in place."""
        elements, view = self._scope_target()
        if view is None:
            logger.info("Scope up: no focused reference")
            return False
        if view.scope is None:
            logger.info("Scope up: scope of %s not loaded yet", view.topic_id)
            return False
        target = scope_topic(view.scope)
        if target is None:
            logger.info("Scope up: %s is at the top scope", view.topic_id)
            return False
        focused = self._reference_focused_element(view)
        previous = view.topic_id
        view.topic_id = target
        view.scope = parent_scope(view.scope)
        view.generation += 1
        self._spawn(self._load_reference(elements, view, target, focused, previous))
        return True

    def scope_down(self) -> bool:
        """Step the focused reference one scope back toward its original topic."""
        elements, view = self._scope_target()
        if view is None:
            logger.info("Scope down: no focused reference")
            return False
        if view.origin_scope is None:
            logger.info("Scope down: scope of %s not loaded yet", view.origin_topic)
            return False
        target = child_topic_toward(view.topic_id, view.origin_scope, view.origin_topic)
        if target is None:
            logger.info("Scope down: %s is already the innermost scope", view.topic_id)
            return False
        focused = self._reference_focused_element(view)
        previous = view.topic_id
        view.topic_id = target
        view.scope = None
        view.generation += 1
        self._spawn(self._load_reference(elements, view, target, focused, previous))
        return True

    def _reference_focused_element(self, view: ReferenceView) -> str:
        if view.fragment is not None and view.focus_index is not None:
            if view.focus_index < len(view.fragment.children):
                return view.fragment.children[view.focus_index].element_id
        # Landing on the previous topic's own element keeps the reader's place.
        return view.topic_id

    # Live updates

    def _topic_focus_target(self, elements: ActiveViewElements) -> FocusTarget:
        child = self.focused_topic_child()
        if child is not None:
            return FocusById(child.element_id)
        return FocusByIndex(elements.focus_index or 0, elements.topic_panel.get_scroll_position())

    def apply_update(self, topic_id: str, fragment: str | None) -> None:
        """Apply a pushed content update for ``topic_id``.

        Caches for the topic and its enclosing scopes are invalidated. Panels
        currently showing the topic are re-rendered in place from ``fragment``;
        when ``fragment`` is None they are refetched instead.
        """
        self.cache.invalidate_with_ancestors(topic_id)
        if fragment is not None:
            self.cache.put_content(topic_id, fragment)
        elements = self._active
        if elements is None:
            return
        parsed = parse_fragment(fragment) if fragment is not None else None

        if elements.topic_id == topic_id:
            elements.topic_generation += 1
            target = self._topic_focus_target(elements)
            if parsed is not None:
                self._show_topic(elements, parsed, target)
                self.phase = ViewPhase.MOUNTED_IDLE
            else:
                self._spawn(self.load_topic_content(topic_id, target))

        if elements.previous_topic_id == topic_id:
            elements.previous_generation += 1
            if parsed is not None:
                self._show_previous(elements, parsed)
            else:
                self._spawn(self.load_previous_topic(elements.entry_id))

        for view in elements.references:
            if view.topic_id != topic_id:
                continue
            view.generation += 1
            focused = self._reference_focused_element(view) if view.focus_index is not None else None
            if parsed is not None:
                self._show_reference(elements, view, parsed, focused)
            else:
                self._spawn(self._load_reference(elements, view, topic_id, focused))

    def refresh_visible(self) -> None:
        """Treat every visible topic as a cache miss and fetch it again."""
        self.cache.invalidate_all()
        elements = self._active
        if elements is None:
            return
        logger.info("Refreshing visible topics for %s", elements.entry_id)
        elements.topic_generation += 1
        elements.previous_generation += 1
        for view in elements.references:
            view.generation += 1
        self._spawn(
            self.load_topic_content(elements.topic_id, self._topic_focus_target(elements))
        )
        self._spawn(self.load_previous_topic(elements.entry_id))
        for view in elements.references:
            focused = self._reference_focused_element(view) if view.focus_index is not None else None
            self._spawn(self._load_reference(elements, view, view.topic_id, focused))
