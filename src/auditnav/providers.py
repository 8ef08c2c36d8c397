"""Content and metadata providers for topics.

Two backends exist: a directory of pre-rendered files exported for an
audit, and an HTTP server serving the same data.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import httpx

from .config import Config
from .errors import ContentFetchFailed, MetadataFetchFailed
from .scope import GLOBAL, Scope, scope_from_dict

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 10.0
IN_SCOPE_FILENAME = "in_scope.json"


@dataclass
class TopicMetadata:
    """Structural information about a topic."""

    topic_id: str
    scope: Scope = GLOBAL
    kind: str = ""
    name: str = ""
    references: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, topic_id: str, data: dict[str, Any]) -> "TopicMetadata":
        return cls(
            topic_id=topic_id,
            scope=scope_from_dict(data.get("scope")),
            kind=data.get("kind", ""),
            name=data.get("name", "") or topic_id,
            references=[str(r) for r in data.get("references", [])],
        )


@runtime_checkable
class ContentProvider(Protocol):
    """Source of rendered fragments and metadata for topics."""

    async def fetch_content(self, topic_id: str) -> str: ...
    async def fetch_metadata(self, topic_id: str) -> TopicMetadata: ...
    async def fetch_in_scope_files(self) -> list[str]: ...
    async def aclose(self) -> None: ...


def _is_safe_topic_id(topic_id: str) -> bool:
    return bool(topic_id) and "/" not in topic_id and "\\" not in topic_id and topic_id not in (".", "..")


class DirectoryProvider:
    """Reads ``<topic>.html`` and ``<topic>.json`` files from a directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def fragment_path(self, topic_id: str) -> Path:
        return self.directory / f"{topic_id}.html"

    def metadata_path(self, topic_id: str) -> Path:
        return self.directory / f"{topic_id}.json"

    async def fetch_content(self, topic_id: str) -> str:
        if not _is_safe_topic_id(topic_id):
            raise ContentFetchFailed(topic_id, "invalid topic id")
        path = self.fragment_path(topic_id)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ContentFetchFailed(topic_id, str(e)) from e

    async def fetch_metadata(self, topic_id: str) -> TopicMetadata:
        if not _is_safe_topic_id(topic_id):
            raise MetadataFetchFailed(topic_id, "invalid topic id")
        path = self.metadata_path(topic_id)
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
            return TopicMetadata.from_dict(topic_id, json.loads(raw))
        except (OSError, UnicodeDecodeError, ValueError, AttributeError) as e:
            raise MetadataFetchFailed(topic_id, str(e)) from e

    async def fetch_in_scope_files(self) -> list[str]:
        path = self.directory / IN_SCOPE_FILENAME
        if not path.exists():
            return []
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
            return [str(p) for p in json.loads(raw)]
        except (OSError, ValueError, TypeError):
            logger.warning("Could not read %s", path, exc_info=True)
            return []

    async def aclose(self) -> None:
        pass


class HttpProvider:
    """Fetches topics from an audit server over HTTP."""

    def __init__(
        self,
        base_url: str,
        audit_name: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.audit_name = audit_name
        self._client = client or httpx.AsyncClient(timeout=HTTP_TIMEOUT)

    def _url(self, *parts: str) -> str:
        return "/".join([self.base_url, self.audit_name, *parts])

    async def _get(self, url: str) -> httpx.Response:
        response = await self._client.get(url, follow_redirects=True)
        if response.status_code != 200:
            raise httpx.HTTPStatusError(
                f"HTTP {response.status_code}", request=response.request, response=response
            )
        return response

    async def fetch_content(self, topic_id: str) -> str:
        try:
            response = await self._get(self._url("content", topic_id))
        except httpx.HTTPError as e:
            logger.warning("Content request for %s failed: %s", topic_id, e)
            raise ContentFetchFailed(topic_id, str(e)) from e
        return response.text

    async def fetch_metadata(self, topic_id: str) -> TopicMetadata:
        try:
            response = await self._get(self._url("metadata", topic_id))
            return TopicMetadata.from_dict(topic_id, response.json())
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning("Metadata request for %s failed: %s", topic_id, e)
            raise MetadataFetchFailed(topic_id, str(e)) from e

    async def fetch_in_scope_files(self) -> list[str]:
        try:
            response = await self._get(self._url("in_scope_files"))
            return [str(p) for p in response.json()]
        except (httpx.HTTPError, ValueError, TypeError):
            logger.warning("Could not fetch in-scope files", exc_info=True)
            return []

    async def aclose(self) -> None:
        await self._client.aclose()


def create_provider(config: Config) -> ContentProvider:
    """Select the provider configured for this audit."""
    if config.server_url:
        logger.info("Using audit server %s", config.server_url)
        return HttpProvider(config.server_url, config.audit_name)
    logger.info("Using content directory %s", config.content_directory)
    return DirectoryProvider(config.content_directory)


class InScopeFiles:
    """Set of container paths that are in scope for the audit."""

    def __init__(self, paths: list[str] | None = None) -> None:
        self._paths = set(paths or [])

    def update(self, paths: list[str]) -> None:
        self._paths = set(paths)

    def is_in_scope(self, container_path: str) -> bool:
        return container_path in self._paths
