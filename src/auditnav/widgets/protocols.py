"""Type protocols for the panels driven by the view controller.

These protocols define what the controllers need from the on-screen
panels, so the same controller code drives the Textual widgets and the
lightweight fakes used in tests.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..fragment import ParsedFragment


@runtime_checkable
class TopicSurface(Protocol):
    """A scrollable panel showing one rendered topic."""

    def set_title(self, title: str, in_scope: bool = False) -> None: ...
    def show_fragment(self, fragment: ParsedFragment) -> None: ...
    def show_error(self, message: str) -> None: ...
    def show_placeholder(self, message: str) -> None: ...
    def focus_child(self, index: int | None) -> None: ...
    def get_scroll_position(self) -> float: ...
    def set_scroll_position(self, position: float) -> None: ...


@runtime_checkable
class ReferencesSurface(Protocol):
    """The panel listing reference sub-panels for the active topic."""

    def add_reference(self, topic_id: str) -> TopicSurface: ...
    def show_error(self, message: str) -> None: ...
    def show_placeholder(self, message: str) -> None: ...


@runtime_checkable
class ViewHost(Protocol):
    """Allocates and discards the panels of the active view."""

    def create_view(
        self, entry_id: str
    ) -> tuple[TopicSurface, TopicSurface, ReferencesSurface]:
        """Return fresh (topic, previous topic, references) panels."""
        ...

    def discard_view(
        self, panels: tuple[TopicSurface, TopicSurface, ReferencesSurface]
    ) -> None: ...
