"""File system watcher that pushes re-rendered topic fragments to the app."""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

FRAGMENT_SUFFIX = ".html"


@dataclass(frozen=True)
class TopicUpdate:
    """A topic whose rendered fragment changed.

    ``fragment`` is None when the file disappeared; the topic must then be
    refetched instead of replaced in place.
    """

    topic_id: str
    fragment: str | None


def read_update(path: Path) -> TopicUpdate:
    """Build the update for a changed fragment file."""
    try:
        fragment = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        fragment = None
    return TopicUpdate(topic_id=path.stem, fragment=fragment)


class FragmentEventHandler(FileSystemEventHandler):
    """Handler for fragment file changes with debouncing."""

    def __init__(
        self,
        on_update: Callable[[list[TopicUpdate]], None],
        debounce_seconds: float = 0.3,
    ):
        super().__init__()
        self.on_update = on_update
        self.debounce_seconds = debounce_seconds
        self._pending: set[str] = set()
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    def _is_fragment(self, path: str) -> bool:
        return path.endswith(FRAGMENT_SUFFIX)

    def _schedule_update(self, path: str) -> None:
        """Schedule a debounced update for the given path."""
        logger.debug("Fragment change detected: %s", path)
        with self._lock:
            self._pending.add(path)

            if self._timer:
                self._timer.cancel()

            self._timer = threading.Timer(
                self.debounce_seconds,
                self._process_pending,
            )
            self._timer.daemon = True
            self._timer.start()

    def _process_pending(self) -> None:
        """Read all pending fragments and deliver them in one batch."""
        with self._lock:
            paths = sorted(self._pending)
            self._pending.clear()
            self._timer = None

        if not paths:
            return

        logger.info("Processing %d fragment change(s)", len(paths))
        self.on_update([read_update(Path(p)) for p in paths])

    def cancel(self) -> None:
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None
            self._pending.clear()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_fragment(event.src_path):
            self._schedule_update(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_fragment(event.src_path):
            self._schedule_update(event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_fragment(event.src_path):
            self._schedule_update(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            if self._is_fragment(event.src_path):
                self._schedule_update(event.src_path)
            if hasattr(event, "dest_path") and self._is_fragment(event.dest_path):
                self._schedule_update(event.dest_path)


class ContentWatcher:
    """Watches the content directory and pushes topic updates.

    Starting again after a stop is a reconnect: updates may have been missed,
    so ``on_reconnect`` is called for the app to refetch what is visible.
    """

    def __init__(
        self,
        directory: Path,
        on_update: Callable[[list[TopicUpdate]], None],
        on_reconnect: Callable[[], None] | None = None,
        debounce_seconds: float = 0.3,
    ):
        self.directory = directory
        self.on_update = on_update
        self.on_reconnect = on_reconnect
        self.debounce_seconds = debounce_seconds
        self._observer: Observer | None = None
        self._handler: FragmentEventHandler | None = None
        self._connected_before = False

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        """Start watching the content directory."""
        if self._observer is not None:
            return  # Already running

        self._handler = FragmentEventHandler(self.on_update, self.debounce_seconds)
        self._observer = Observer()
        self._observer.schedule(self._handler, str(self.directory), recursive=False)
        self._observer.daemon = True
        self._observer.start()
        logger.info("Content watcher started: %s", self.directory)

        if self._connected_before and self.on_reconnect is not None:
            logger.info("Content watcher reconnected, refreshing visible topics")
            self.on_reconnect()
        self._connected_before = True

    def stop(self) -> None:
        """Stop watching."""
        if self._observer is not None:
            if self._handler is not None:
                self._handler.cancel()
            self._observer.stop()
            self._observer.join(timeout=1.0)
            self._observer = None
            self._handler = None

    def restart(self) -> None:
        self.stop()
        self.start()

    def __enter__(self) -> "ContentWatcher":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()
