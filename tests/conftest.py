"""Shared fixtures for auditnav tests."""

import asyncio
import json

import pytest

from auditnav.cache import TopicCache
from auditnav.errors import ContentFetchFailed, MetadataFetchFailed
from auditnav.navigation import HistoryGraph, NavigationContext, ViewRegistry
from auditnav.providers import InScopeFiles, TopicMetadata
from auditnav.view import ActiveViewController

FRAGMENTS = {
    "Vault.sol": (
        '<div><span class="keyword">contract</span> '
        '<a topic="Vault" id="c-vault">Vault</a></div>'
    ),
    "Vault": (
        '<div><a topic="deposit" id="m-deposit">deposit</a></div>'
        '<div><a topic="withdraw" id="m-withdraw">withdraw</a></div>'
        '<div><a topic="balances" id="m-balances">balances</a></div>'
    ),
    "deposit": (
        '<div>function deposit(<a topic="amount" id="p-amount">amount</a>)</div>'
        '<div><a topic="balances" id="d-balances">balances</a> += '
        '<a topic="amount" id="d-amount">amount</a></div>'
    ),
    "withdraw": (
        "<div>function withdraw()</div>"
        '<div><a topic="balances" id="w-balances">balances</a> -= 1</div>'
    ),
    "balances": '<div>mapping <a topic="balances" id="balances-decl">balances</a></div>',
    "amount": "<div>uint256 amount</div>",
}

_COMPONENT = {"kind": "component", "container": "Vault.sol", "component": "Vault"}

METADATA = {
    "Vault.sol": {"kind": "file", "scope": {"kind": "global"}, "references": []},
    "Vault": {
        "kind": "contract",
        "scope": {"kind": "container", "container": "Vault.sol"},
        "references": [],
    },
    "deposit": {"kind": "function", "scope": _COMPONENT, "references": ["withdraw"]},
    "withdraw": {"kind": "function", "scope": _COMPONENT, "references": []},
    "balances": {
        "kind": "variable",
        "scope": _COMPONENT,
        "references": ["deposit", "withdraw"],
    },
    "amount": {
        "kind": "parameter",
        "scope": {
            "kind": "member",
            "container": "Vault.sol",
            "component": "Vault",
            "member": "deposit",
        },
        "references": ["deposit"],
    },
}


class FakePanel:
    """In-memory stand-in for a topic panel."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.title = ""
        self.in_scope = False
        self.fragment = None
        self.error = None
        self.placeholder = None
        self.focused = None
        self.scroll = 0.0
        self.scroll_history: list[float] = []
        self.renders = 0

    def set_title(self, title, in_scope=False):
        self.title = title
        self.in_scope = in_scope

    def show_fragment(self, fragment):
        self.fragment = fragment
        self.error = None
        self.placeholder = None
        self.renders += 1

    def show_error(self, message):
        self.fragment = None
        self.error = message

    def show_placeholder(self, message):
        self.fragment = None
        self.placeholder = message

    def focus_child(self, index):
        self.focused = index

    def get_scroll_position(self):
        return self.scroll

    def set_scroll_position(self, position):
        self.scroll = position
        self.scroll_history.append(position)

    @property
    def focused_element(self):
        if self.fragment is None or self.focused is None:
            return None
        return self.fragment.children[self.focused].element_id


class FakeReferences:
    def __init__(self) -> None:
        self.panels: list[FakePanel] = []
        self.error = None
        self.placeholder = None

    def add_reference(self, topic_id):
        panel = FakePanel(topic_id)
        self.panels.append(panel)
        return panel

    def show_error(self, message):
        self.error = message

    def show_placeholder(self, message):
        self.placeholder = message


class FakeHost:
    def __init__(self) -> None:
        self.created: list[tuple[str, tuple]] = []
        self.discarded: list[tuple] = []

    def create_view(self, entry_id):
        panels = (FakePanel("topic"), FakePanel("previous"), FakeReferences())
        self.created.append((entry_id, panels))
        return panels

    def discard_view(self, panels):
        self.discarded.append(panels)

    @property
    def current(self):
        return self.created[-1][1]


class FakeProvider:
    """Serves FRAGMENTS and METADATA; individual topics can be held or failed."""

    def __init__(self, fragments=None, metadata=None, in_scope=None) -> None:
        self.fragments = dict(FRAGMENTS if fragments is None else fragments)
        self.metadata = dict(METADATA if metadata is None else metadata)
        self.in_scope = list(in_scope or [])
        self.content_calls: list[str] = []
        self.metadata_calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.closed = False

    def hold(self, topic_id: str) -> asyncio.Event:
        """Make content requests for ``topic_id`` wait until the event is set."""
        gate = asyncio.Event()
        self.gates[topic_id] = gate
        return gate

    async def fetch_content(self, topic_id):
        self.content_calls.append(topic_id)
        # A held request answers with the content current when it was made
        fragment = self.fragments.get(topic_id)
        gate = self.gates.get(topic_id)
        if gate is not None:
            await gate.wait()
        if fragment is None:
            raise ContentFetchFailed(topic_id, "not found")
        return fragment

    async def fetch_metadata(self, topic_id):
        self.metadata_calls.append(topic_id)
        if topic_id not in self.metadata:
            raise MetadataFetchFailed(topic_id, "not found")
        return TopicMetadata.from_dict(topic_id, self.metadata[topic_id])

    async def fetch_in_scope_files(self):
        return self.in_scope

    async def aclose(self):
        self.closed = True


class Harness:
    """View controller wired to fakes, using the default task spawner."""

    def __init__(self, provider=None, in_scope=None) -> None:
        self.provider = provider or FakeProvider()
        self.graph = HistoryGraph()
        self.registry = ViewRegistry()
        self.context = NavigationContext()
        self.host = FakeHost()
        self.cache = TopicCache(self.provider, max_size=16)
        self.view = ActiveViewController(
            self.graph,
            self.registry,
            self.cache,
            self.host,
            self.context,
            in_scope=InScopeFiles(in_scope or []),
        )

    @property
    def topic_panel(self):
        return self.host.current[0]

    @property
    def previous_panel(self):
        return self.host.current[1]

    @property
    def references_panel(self):
        return self.host.current[2]


def run(coro):
    """Run a test coroutine to completion."""
    return asyncio.run(coro)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def harness():
    return Harness()


@pytest.fixture
def content_dir(tmp_path):
    """Write FRAGMENTS and METADATA as a directory of exported topics."""
    content = tmp_path / "content"
    content.mkdir()
    for topic_id, html in FRAGMENTS.items():
        (content / f"{topic_id}.html").write_text(html)
    for topic_id, data in METADATA.items():
        (content / f"{topic_id}.json").write_text(json.dumps(data))
    (content / "in_scope.json").write_text(json.dumps(["Vault.sol"]))
    return content
