"""Tests for auditnav.view module."""

import asyncio

import pytest

from auditnav.navigation import Panel
from auditnav.view import FocusById, FocusByIndex, ViewPhase

from conftest import FakeProvider, Harness, run

VAULT_REORDERED = (
    '<div><a topic="withdraw" id="m-withdraw">withdraw</a></div>'
    '<div><a topic="deposit" id="m-deposit">deposit</a></div>'
    '<div><a topic="balances" id="m-balances">balances</a></div>'
)
WITHDRAW_ONLY = '<div><a topic="withdraw" id="m-withdraw">withdraw NEW</a></div>'


def root(h, topic_id):
    return h.graph.get(h.graph.create_root(topic_id))


async def show(h, entry, target=FocusByIndex(0, 0)):
    """Swap the active view to ``entry`` and wait for its loads."""
    h.view.unmount_capturing_scroll()
    h.view.mount(entry)
    h.context.active_entry_id = entry.id
    h.view.load_all(entry, target)
    await h.view.settle()
    return entry


class TestMount:
    def test_mount_allocates_panels_and_view_state(self, harness):
        entry = root(harness, "Vault")
        elements = harness.view.mount(entry)
        assert elements.entry_id == entry.id
        assert harness.registry.get(entry.id).topic_id == "Vault"
        assert harness.view.phase is ViewPhase.MOUNTING
        assert elements.topic_fragment is None

    def test_mount_same_entry_returns_active(self, harness):
        entry = root(harness, "Vault")
        first = harness.view.mount(entry)
        assert harness.view.mount(entry) is first
        assert len(harness.host.created) == 1

    def test_mount_other_entry_requires_unmount(self, harness):
        harness.view.mount(root(harness, "Vault"))
        with pytest.raises(RuntimeError):
            harness.view.mount(root(harness, "deposit"))

    def test_unmount_captures_scroll(self, harness):
        entry = root(harness, "Vault")
        elements = harness.view.mount(entry)
        elements.topic_panel.scroll = 42.0
        state = harness.view.unmount_capturing_scroll()
        assert state.scroll_position == 42.0
        assert harness.registry.get(entry.id).scroll_position == 42.0
        assert harness.host.discarded == [elements.panels]
        assert harness.view.active is None
        assert harness.view.phase is ViewPhase.UNMOUNTED

    def test_unmount_without_view_state(self, harness):
        entry = root(harness, "Vault")
        harness.view.mount(entry)
        harness.registry.discard([entry.id])
        with pytest.raises(RuntimeError):
            harness.view.unmount_capturing_scroll()

    def test_unmount_when_nothing_mounted(self, harness):
        assert harness.view.unmount_capturing_scroll() is None


class TestTopicContent:
    def test_loads_and_focuses_first_child(self, harness):
        run(show(harness, root(harness, "Vault")))
        panel = harness.topic_panel
        assert [c.topic_id for c in panel.fragment.children] == ["deposit", "withdraw", "balances"]
        assert panel.focused == 0
        assert harness.view.phase is ViewPhase.MOUNTED_IDLE
        assert harness.view.focused_topic_child().element_id == "m-deposit"

    def test_focus_by_index_restores_scroll_then_clamps(self, harness):
        run(show(harness, root(harness, "Vault"), FocusByIndex(7, 30.0)))
        assert harness.topic_panel.scroll_history == [30.0]
        assert harness.topic_panel.focused == 2
        assert harness.context.child_focus_index == 2

    def test_focus_by_id(self, harness):
        run(show(harness, root(harness, "Vault"), FocusById("m-withdraw")))
        assert harness.topic_panel.focused == 1
        assert harness.context.child_focus_index == 1

    def test_no_children(self, harness):
        run(show(harness, root(harness, "amount")))
        assert harness.topic_panel.focused is None
        assert harness.view.focused_topic_child() is None

    def test_fetch_failure_shows_inline_error(self, harness):
        entry = root(harness, "Token")
        run(show(harness, entry))
        assert "Could not load Token" in harness.topic_panel.error
        assert "Could not load references" in harness.references_panel.error
        assert harness.view.phase is ViewPhase.MOUNTED_IDLE
        assert harness.context.active_entry_id == entry.id

    def test_stale_content_is_discarded(self, harness):
        async def scenario():
            gate = harness.provider.hold("Vault")
            first = root(harness, "Vault")
            harness.view.mount(first)
            harness.view.load_all(first, FocusByIndex(0, 0))
            await asyncio.sleep(0)
            second = harness.graph.branch(first.id, 0, "deposit")
            harness.view.unmount_capturing_scroll()
            harness.view.mount(second)
            harness.view.load_all(second, FocusByIndex(0, 0))
            gate.set()
            await harness.view.settle()

        run(scenario())
        stale_topic = harness.host.created[0][1][0]
        assert stale_topic.fragment is None
        assert stale_topic.renders == 0
        assert [c.topic_id for c in harness.topic_panel.fragment.children] == [
            "amount",
            "balances",
            "amount",
        ]

    def test_focus_topic_child_updates_context(self, harness):
        run(show(harness, root(harness, "Vault")))
        harness.view.focus_topic_child(2)
        assert harness.topic_panel.focused == 2
        assert harness.context.child_focus_index == 2


class TestPreviousTopic:
    def test_root_has_placeholder(self, harness):
        run(show(harness, root(harness, "Vault")))
        assert harness.previous_panel.placeholder == "No previous topic"

    def test_parent_at_saved_scroll_with_branch_highlighted(self, harness):
        async def scenario():
            parent = await show(harness, root(harness, "Vault"))
            harness.topic_panel.scroll = 15.0
            harness.view.focus_topic_child(2)
            child = harness.graph.branch(parent.id, harness.context.child_focus_index, "balances")
            await show(harness, child)

        run(scenario())
        panel = harness.previous_panel
        assert panel.title == "PREVIOUS - Vault"
        assert panel.scroll_history == [15.0]
        assert panel.focused == 2
        assert panel.fragment is not None

    def test_stale_previous_topic_is_discarded(self, harness):
        async def scenario():
            vault = root(harness, "Vault")
            first = harness.graph.branch(vault.id, 2, "balances")
            gate = harness.provider.hold("Vault")
            harness.view.mount(first)
            harness.view.load_all(first, FocusByIndex(0, 0))
            await asyncio.sleep(0)
            deposit = root(harness, "deposit")
            second = harness.graph.branch(deposit.id, 0, "amount")
            harness.view.unmount_capturing_scroll()
            harness.view.mount(second)
            harness.view.load_all(second, FocusByIndex(0, 0))
            gate.set()
            await harness.view.settle()

        run(scenario())
        stale_previous = harness.host.created[0][1][1]
        assert stale_previous.renders == 0
        assert stale_previous.fragment is None
        panel = harness.previous_panel
        assert panel.title == "PREVIOUS - deposit"
        assert panel.fragment is not None
        assert panel.focused == 0


class TestReferences:
    def test_sub_panel_per_reference(self, harness):
        run(show(harness, root(harness, "balances")))
        panels = harness.references_panel.panels
        assert [p.name for p in panels] == ["deposit", "withdraw"]
        assert all(p.fragment is not None for p in panels)
        assert [p.focused for p in panels] == [None, None]

    def test_no_references(self, harness):
        run(show(harness, root(harness, "Vault")))
        assert harness.references_panel.placeholder == "No references"

    def test_topic_title_marks_in_scope(self):
        h = Harness(in_scope=["Vault.sol"])
        run(show(h, root(h, "balances")))
        assert h.topic_panel.title == "balances"
        assert h.topic_panel.in_scope is True

    def test_topic_title_out_of_scope(self, harness):
        run(show(harness, root(harness, "balances")))
        assert harness.topic_panel.in_scope is False

    def test_failed_reference_shows_error(self):
        provider = FakeProvider()
        del provider.fragments["withdraw"]
        h = Harness(provider)
        run(show(h, root(h, "balances")))
        deposit, withdraw = h.references_panel.panels
        assert deposit.fragment is not None
        assert "Could not load withdraw" in withdraw.error

    def test_stale_reference_is_discarded(self, harness):
        async def scenario():
            gate = harness.provider.hold("withdraw")
            first = root(harness, "balances")
            harness.view.mount(first)
            harness.view.load_all(first, FocusByIndex(0, 0))
            for _ in range(10):
                await asyncio.sleep(0)
            second = harness.graph.branch(first.id, 0, "amount")
            harness.view.unmount_capturing_scroll()
            harness.view.mount(second)
            harness.view.load_all(second, FocusByIndex(0, 0))
            gate.set()
            await harness.view.settle()

        run(scenario())
        deposit, withdraw = harness.host.created[0][1][2].panels
        assert withdraw.name == "withdraw"
        assert withdraw.fragment is None

    def test_switch_panel_moves_focus(self, harness):
        run(show(harness, root(harness, "balances")))
        deposit, withdraw = harness.references_panel.panels

        harness.view.set_active_panel(Panel.REFERENCES)
        assert harness.topic_panel.focused is None
        # deposit has three children, withdraw one
        assert len(harness.view.reference_focus_list()) == 4
        assert deposit.focused == 0

        harness.view.focus_reference_child(3)
        assert deposit.focused is None
        assert withdraw.focused == 0
        assert harness.context.references_focus_index == 3
        assert harness.view.focused_reference_child().element_id == "w-balances"

        harness.view.set_active_panel(Panel.TOPIC)
        assert withdraw.focused is None
        assert harness.topic_panel.focused == 0
        assert harness.view.focused_reference_child() is None


class TestScopeTransitions:
    def test_scope_up_and_down_in_place(self, harness):
        async def scenario():
            await show(harness, root(harness, "balances"))
            harness.view.set_active_panel(Panel.REFERENCES)
            panel = harness.references_panel.panels[0]
            view = harness.view.active.references[0]

            assert harness.view.scope_up()
            await harness.view.settle()
            assert view.topic_id == "Vault"
            assert panel.title == "Vault"
            # Lands on the element of the topic it came from
            assert panel.focused_element == "m-deposit"

            assert harness.view.scope_up()
            await harness.view.settle()
            assert view.topic_id == "Vault.sol"
            assert panel.focused_element == "c-vault"

            assert not harness.view.scope_up()

            assert harness.view.scope_down()
            await harness.view.settle()
            assert view.topic_id == "Vault"

            assert harness.view.scope_down()
            await harness.view.settle()
            assert view.topic_id == "deposit"

            assert not harness.view.scope_down()

        run(scenario())
        assert len(harness.graph) == 1
        assert len(harness.host.created) == 1

    def test_scope_up_falls_back_to_previous_topic(self, harness):
        async def scenario():
            await show(harness, root(harness, "deposit"))
            harness.view.set_active_panel(Panel.REFERENCES)
            panel = harness.references_panel.panels[0]
            assert panel.focused_element == "w-balances"
            # withdraw lives in Vault; Vault does not contain w-balances
            assert harness.view.scope_up()
            await harness.view.settle()
            assert panel.focused_element == "m-withdraw"

        run(scenario())

    def test_without_references(self, harness):
        run(show(harness, root(harness, "Vault")))
        assert not harness.view.scope_up()
        assert not harness.view.scope_down()


class TestLiveUpdates:
    def test_update_rerenders_in_place_keeping_focus_by_id(self, harness):
        async def scenario():
            await show(harness, root(harness, "Vault"))
            harness.view.focus_topic_child(1)
            harness.view.apply_update("Vault", VAULT_REORDERED)

        run(scenario())
        panel = harness.topic_panel
        assert panel.renders == 2
        assert panel.focused_element == "m-withdraw"
        assert panel.focused == 0
        assert panel.scroll_history == [0]
        assert harness.provider.content_calls.count("Vault") == 1

    def test_update_without_focused_element(self, harness):
        async def scenario():
            await show(harness, root(harness, "Vault"))
            harness.view.focus_topic_child(2)
            harness.view.apply_update("Vault", '<div><a topic="deposit" id="m-deposit">deposit</a></div>')

        run(scenario())
        assert harness.topic_panel.focused == 0

    def test_deleted_topic_is_refetched(self, harness):
        async def scenario():
            await show(harness, root(harness, "Vault"))
            harness.view.apply_update("Vault", None)
            await harness.view.settle()

        run(scenario())
        assert harness.provider.content_calls.count("Vault") == 2
        assert harness.topic_panel.renders == 2

    def test_update_previous_topic(self, harness):
        async def scenario():
            parent = await show(harness, root(harness, "Vault"))
            harness.view.focus_topic_child(2)
            await show(harness, harness.graph.branch(parent.id, 2, "balances"))
            harness.view.apply_update("Vault", VAULT_REORDERED)

        run(scenario())
        panel = harness.previous_panel
        assert panel.renders == 2
        assert panel.fragment.children[0].topic_id == "withdraw"
        assert panel.focused == 2

    def test_update_reference(self, harness):
        async def scenario():
            await show(harness, root(harness, "balances"))
            harness.view.apply_update(
                "withdraw", '<div><a topic="balances" id="w-balances">balances</a> = 0</div>'
            )

        run(scenario())
        withdraw = harness.references_panel.panels[1]
        assert withdraw.renders == 2
        assert withdraw.fragment.text.plain == "balances = 0"

    def test_update_wins_over_in_flight_content(self, harness):
        async def scenario():
            gate = harness.provider.hold("Vault")
            entry = root(harness, "Vault")
            harness.view.mount(entry)
            harness.view.load_all(entry, FocusByIndex(0, 0))
            await asyncio.sleep(0)
            harness.view.apply_update("Vault", WITHDRAW_ONLY)
            gate.set()
            await harness.view.settle()

        run(scenario())
        panel = harness.topic_panel
        assert panel.fragment.text.plain == "withdraw NEW"
        assert panel.renders == 1
        assert panel.focused_element == "m-withdraw"
        assert harness.view.phase is ViewPhase.MOUNTED_IDLE

    def test_update_wins_over_in_flight_previous_topic(self, harness):
        async def scenario():
            vault = root(harness, "Vault")
            child = harness.graph.branch(vault.id, 2, "balances")
            gate = harness.provider.hold("Vault")
            harness.view.mount(child)
            harness.view.load_all(child, FocusByIndex(0, 0))
            await asyncio.sleep(0)
            harness.view.apply_update("Vault", VAULT_REORDERED)
            gate.set()
            await harness.view.settle()

        run(scenario())
        panel = harness.previous_panel
        assert panel.renders == 1
        assert panel.title == "PREVIOUS - Vault"
        assert panel.fragment.children[0].topic_id == "withdraw"
        assert panel.focused == 2

    def test_update_wins_over_in_flight_reference(self, harness):
        async def scenario():
            gate = harness.provider.hold("withdraw")
            entry = root(harness, "balances")
            harness.view.mount(entry)
            harness.view.load_all(entry, FocusByIndex(0, 0))
            for _ in range(10):
                await asyncio.sleep(0)
            harness.view.apply_update(
                "withdraw", '<div><a topic="balances" id="w-balances">balances</a> = 0</div>'
            )
            gate.set()
            await harness.view.settle()

        run(scenario())
        withdraw = harness.references_panel.panels[1]
        assert withdraw.renders == 1
        assert withdraw.fragment.text.plain == "balances = 0"

    def test_refresh_drops_older_response(self, harness):
        async def scenario():
            gate = harness.provider.hold("Vault")
            entry = root(harness, "Vault")
            harness.view.mount(entry)
            harness.view.load_all(entry, FocusByIndex(0, 0))
            await asyncio.sleep(0)
            harness.provider.fragments["Vault"] = VAULT_REORDERED
            harness.view.refresh_visible()
            gate.set()
            await harness.view.settle()

        run(scenario())
        panel = harness.topic_panel
        assert panel.renders == 1
        assert panel.fragment.children[0].topic_id == "withdraw"
        assert harness.provider.content_calls.count("Vault") == 2

    def test_update_unrelated_topic(self, harness):
        async def scenario():
            await show(harness, root(harness, "Vault"))
            harness.view.apply_update("amount", "<div>uint128 amount</div>")

        run(scenario())
        assert harness.topic_panel.renders == 1

    def test_refresh_visible_refetches_everything(self, harness):
        async def scenario():
            await show(harness, root(harness, "balances"))
            harness.view.refresh_visible()
            await harness.view.settle()

        run(scenario())
        calls = harness.provider.content_calls
        assert calls.count("balances") == 2
        assert calls.count("deposit") == 2
        assert calls.count("withdraw") == 2
