"""Topic content and metadata cache in front of a provider."""

import asyncio
import logging
from collections import OrderedDict
from typing import Awaitable, Callable, Generic, TypeVar

from .providers import ContentProvider, TopicMetadata
from .scope import scope_path, scope_topic

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LRUCache(Generic[T]):
    """Small LRU cache keyed by topic id."""

    def __init__(self, max_size: int = 256) -> None:
        self._cache: OrderedDict[str, T] = OrderedDict()
        self._max_size = max_size

    def get(self, key: str) -> T | None:
        if key not in self._cache:
            return None
        self._cache.move_to_end(key)
        return self._cache[key]

    def put(self, key: str, value: T) -> None:
        # Remove oldest entry if at capacity
        if len(self._cache) >= self._max_size and key not in self._cache:
            self._cache.popitem(last=False)
        self._cache[key] = value
        self._cache.move_to_end(key)

    def invalidate(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)


class TopicCache:
    """Caches fragments and metadata; concurrent requests share one fetch."""

    def __init__(self, provider: ContentProvider, max_size: int = 256) -> None:
        self.provider = provider
        self._content: LRUCache[str] = LRUCache(max_size)
        self._metadata: LRUCache[TopicMetadata] = LRUCache(max_size)
        self._pending_content: dict[str, asyncio.Task[str]] = {}
        self._pending_metadata: dict[str, asyncio.Task[TopicMetadata]] = {}

    async def content(self, topic_id: str) -> str:
        """Get the rendered fragment for a topic (raises ContentFetchFailed)."""
        return await self._fetch(
            topic_id, self._content, self._pending_content, self.provider.fetch_content
        )

    async def metadata(self, topic_id: str) -> TopicMetadata:
        """Get the metadata for a topic (raises MetadataFetchFailed)."""
        return await self._fetch(
            topic_id, self._metadata, self._pending_metadata, self.provider.fetch_metadata
        )

    async def _fetch(
        self,
        topic_id: str,
        cache: LRUCache[T],
        pending: dict[str, "asyncio.Task[T]"],
        fetch: Callable[[str], Awaitable[T]],
    ) -> T:
        cached = cache.get(topic_id)
        if cached is not None:
            return cached

        task = pending.get(topic_id)
        if task is None:
            task = asyncio.ensure_future(fetch(topic_id))
            pending[topic_id] = task
            task.add_done_callback(
                lambda t: self._store(topic_id, t, cache, pending)
            )
        # shield: one cancelled waiter must not cancel the shared fetch
        return await asyncio.shield(task)

    @staticmethod
    def _store(
        topic_id: str,
        task: "asyncio.Task[T]",
        cache: LRUCache[T],
        pending: dict[str, "asyncio.Task[T]"],
    ) -> None:
        # Invalidated while in flight: the result must not repopulate the cache.
        if pending.get(topic_id) is not task:
            return
        del pending[topic_id]
        if not task.cancelled() and task.exception() is None:
            cache.put(topic_id, task.result())

    def cached_metadata(self, topic_id: str) -> TopicMetadata | None:
        return self._metadata.get(topic_id)

    def put_content(self, topic_id: str, fragment: str) -> None:
        """Store a pushed fragment so the next read needs no fetch."""
        self._pending_content.pop(topic_id, None)
        self._content.put(topic_id, fragment)

    def invalidate(self, topic_id: str) -> None:
        self._content.invalidate(topic_id)
        self._metadata.invalidate(topic_id)
        self._pending_content.pop(topic_id, None)
        self._pending_metadata.pop(topic_id, None)

    def invalidate_with_ancestors(self, topic_id: str) -> list[str]:
        """Invalidate a topic and every topic on its cached scope path.

        Returns the invalidated topic ids, innermost first.
        """
        topics = [topic_id]
        metadata = self._metadata.get(topic_id)
        if metadata is not None:
            for scope in reversed(scope_path(metadata.scope)):
                ancestor = scope_topic(scope)
                if ancestor is not None and ancestor not in topics:
                    topics.append(ancestor)
        for topic in topics:
            self.invalidate(topic)
        logger.debug("Invalidated %s", ", ".join(topics))
        return topics

    def invalidate_all(self) -> None:
        self._content.clear()
        self._metadata.clear()
        self._pending_content.clear()
        self._pending_metadata.clear()
