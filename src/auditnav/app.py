"""Main Textual application for auditnav."""

import logging
from typing import Any, Coroutine

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer

from .actions import NavigationActionsMixin
from .cache import TopicCache
from .config import Config
from .navigation import HistoryEntry, HistoryGraph, NavigationContext, Panel, ViewRegistry
from .navigator import PAGE_STEP, NavigationController
from .providers import ContentProvider, InScopeFiles, create_provider
from .view import ActiveViewController
from .watcher import ContentWatcher, TopicUpdate
from .widgets import Breadcrumb, TopicViewHost

logger = logging.getLogger(__name__)


class AuditNavApp(NavigationActionsMixin, App):
    """auditnav - branching topic browser for code audits."""

    TITLE = "auditnav"
    SUB_TITLE = "Audit Topic Browser"

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("enter", "descend", "Open"),
        Binding("b", "back", "Back"),
        Binding("backspace", "back", "Back", show=False),
        Binding("f", "forward", "Forward"),
        Binding("j", "move_focus(1)", "Next", show=False),
        Binding("down", "move_focus(1)", "Next", show=False),
        Binding("k", "move_focus(-1)", "Prev", show=False),
        Binding("up", "move_focus(-1)", "Prev", show=False),
        Binding("ctrl+d", "move_focus(%d)" % PAGE_STEP, "Page down", show=False),
        Binding("ctrl+u", "move_focus(%d)" % -PAGE_STEP, "Page up", show=False),
        Binding("tab", "switch_panel", "Panel", priority=True),
        Binding("left_square_bracket", "scope_up", "Scope up", key_display="["),
        Binding("right_square_bracket", "scope_down", "Scope down", key_display="]"),
        Binding("p", "prune", "Prune"),
        Binding("r", "reload", "Reload"),
        Binding("?", "help", "Help"),
        *(
            Binding(str(n), f"forward_branch({n - 1})", f"Branch {n}", show=False)
            for n in range(1, 10)
        ),
    ]

    def __init__(
        self,
        config: Config,
        provider: ContentProvider | None = None,
        start_topic: str | None = None,
    ) -> None:
        super().__init__()
        self.config = config
        self.start_topic = start_topic or config.start_topic
        self.provider = provider or create_provider(config)
        self.cache = TopicCache(self.provider, config.cache_size)
        self.graph = HistoryGraph()
        self.registry = ViewRegistry()
        self.context = NavigationContext()
        self.in_scope = InScopeFiles()
        self.view_controller: ActiveViewController | None = None
        self.navigator: NavigationController | None = None
        self._watcher: ContentWatcher | None = None

    def compose(self) -> ComposeResult:
        yield Breadcrumb(id="breadcrumb")
        yield TopicViewHost(id="view-host")
        yield Footer()

    async def on_mount(self) -> None:
        """Wire the controllers to the mounted widgets and open the start topic."""
        host = self.query_one("#view-host", TopicViewHost)
        self.view_controller = ActiveViewController(
            self.graph,
            self.registry,
            self.cache,
            host,
            self.context,
            in_scope=self.in_scope,
            spawn=self._spawn_load,
        )
        self.navigator = NavigationController(
            self.graph,
            self.registry,
            self.view_controller,
            self.context,
            audit_name=self.config.audit_name,
            url_sink=self._replace_url,
            breadcrumb_sink=self._update_breadcrumb,
        )

        self.run_worker(self._load_in_scope_files, name="_load_in_scope_files", group="startup")

        if self.config.watch.enabled and not self.config.server_url:
            if self.config.content_directory.is_dir():
                self._watcher = ContentWatcher(
                    self.config.content_directory,
                    self._on_topic_updates,
                    on_reconnect=self._on_watcher_reconnect,
                    debounce_seconds=self.config.watch.debounce_seconds,
                )
                self._watcher.start()
            else:
                logger.warning(
                    "Content directory %s does not exist, live updates disabled",
                    self.config.content_directory,
                )

        if self.start_topic:
            self.navigator.open_topic(self.start_topic)
        else:
            self.notify("No start topic configured", severity="warning")

    async def on_unmount(self) -> None:
        """Clean up when app closes."""
        if self._watcher:
            self._watcher.stop()
        await self.provider.aclose()

    def _spawn_load(self, coro: Coroutine[Any, Any, None]) -> None:
        self.run_worker(coro, group="loads")

    async def _load_in_scope_files(self) -> None:
        paths = await self.provider.fetch_in_scope_files()
        self.in_scope.update(paths)
        logger.info("%d files in scope", len(paths))

    def _replace_url(self, path: str) -> None:
        self.sub_title = path

    def _update_breadcrumb(
        self, chain: list[HistoryEntry], branches: list[tuple[int, HistoryEntry]]
    ) -> None:
        self.query_one("#breadcrumb", Breadcrumb).update_trail(chain, branches)
        self.query_one("#view-host", TopicViewHost).mark_active_slot(
            self.context.active_panel is Panel.REFERENCES
        )

    def _on_topic_updates(self, updates: list[TopicUpdate]) -> None:
        """Handle pushed fragment updates (called from the watcher thread)."""
        self.call_from_thread(self._apply_topic_updates, updates)

    def _apply_topic_updates(self, updates: list[TopicUpdate]) -> None:
        for update in updates:
            self.view_controller.apply_update(update.topic_id, update.fragment)

    def _on_watcher_reconnect(self) -> None:
        self.call_from_thread(self.view_controller.refresh_visible)


def run_app(config: Config, start_topic: str | None = None) -> None:
    """Run the auditnav application."""
    app = AuditNavApp(config, start_topic=start_topic)
    app.run()
