"""
uiprotocol Kernel — Runtime (State Engine) Tests

Surface lifecycle, node merge, pruning, data commands, batches,
subscriptions, and adapter routing.
"""

import pytest

from uiprotocol.kernel.child_refs import reachable_ids
from uiprotocol.kernel.commands import (
    make_data_remove,
    make_data_set,
    make_nodes_remove,
    make_nodes_upsert,
    make_surface_create,
    make_surface_delete,
)
from uiprotocol.kernel.diagnostics import CORE_CODES, parse_failure, parse_success
from uiprotocol.kernel.protocol import ProtocolAdapter
from uiprotocol.kernel.runtime import Runtime, merge_node
from uiprotocol.kernel.types import Node, NodePatch

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def tree_runtime(surface_runtime):
    result = surface_runtime.apply_single(
        make_nodes_upsert(
            "s1",
            [
                {"id": "root", "type": "Column", "children": ["a", "b"]},
                {"id": "a", "type": "Text", "props": {"label": "old", "color": "red"}},
                {"id": "b", "type": "Column", "children": ["c"]},
                {"id": "c", "type": "Text"},
            ],
        )
    )
    assert result.ok
    assert result.diagnostics == []
    return surface_runtime


def node_ids(runtime, surface_id="s1"):
    return set(runtime.get_surface(surface_id).nodes)


def codes(result):
    return [d.code for d in result.diagnostics]


# ============================================================================
# Surfaces
# ============================================================================


class TestSurfaceLifecycle:
    def test_create(self, runtime):
        result = runtime.apply_single(make_surface_create("s1", catalog_id="basic", theme={"primary": "#000"}))
        assert result.ok
        surface = runtime.get_surface("s1")
        assert surface.protocol == "core"
        assert surface.catalog_id == "basic"
        assert surface.theme == {"primary": "#000"}
        assert surface.nodes == {}
        assert surface.data == {}

    def test_recreate_replaces(self, tree_runtime):
        tree_runtime.apply_single(make_surface_create("s1"))
        assert tree_runtime.get_surface("s1").nodes == {}

    def test_get_surfaces(self, runtime):
        runtime.apply([make_surface_create("s1"), make_surface_create("s2")])
        assert [s.id for s in runtime.get_surfaces()] == ["s1", "s2"]

    def test_unknown_surface_is_none(self, runtime):
        assert runtime.get_surface("nope") is None

    def test_delete(self, surface_runtime):
        result = surface_runtime.apply_single(make_surface_delete("s1"))
        assert result.ok
        assert result.diagnostics == []
        assert surface_runtime.get_surface("s1") is None

    def test_delete_is_idempotent(self, surface_runtime):
        surface_runtime.apply_single(make_surface_delete("s1"))
        result = surface_runtime.apply_single(make_surface_delete("s1"))
        assert result.ok
        assert len(result.diagnostics) == 1
        assert result.diagnostics[0].severity == "warning"
        assert result.diagnostics[0].code == CORE_CODES.surface_not_found


class TestSurfaceNotFound:
    @pytest.mark.parametrize(
        "command",
        [
            make_nodes_upsert("ghost", [{"id": "root", "type": "Text"}]),
            make_nodes_remove("ghost", ["root"]),
            make_data_set("ghost", "/a", 1),
            make_data_remove("ghost", "/a"),
        ],
    )
    def test_commands_on_missing_surface_fail(self, runtime, command):
        result = runtime.apply_single(command)
        assert not result.ok
        assert codes(result) == [CORE_CODES.surface_not_found]
        assert result.diagnostics[0].surface_id == "ghost"


# ============================================================================
# Node merge
# ============================================================================


class TestMergeNode:
    def test_new_node_requires_type(self):
        assert merge_node(None, NodePatch(id="x")) is None

    def test_type_inherited(self):
        existing = Node(id="x", type="Text")
        assert merge_node(existing, NodePatch(id="x", props={"a": 1})).type == "Text"

    def test_children_and_checks_replaced_wholesale(self):
        existing = Node(id="x", type="Column", children=["a", "b"], checks=[{"call": "required"}])
        merged = merge_node(existing, NodePatch(id="x", children=["c"], checks=[]))
        assert merged.children == ["c"]
        assert merged.checks == []

    def test_existing_node_is_not_mutated(self):
        existing = Node(id="x", type="Text", props={"a": 1})
        merge_node(existing, NodePatch(id="x", props={"a": 2}))
        assert existing.props == {"a": 1}


class TestNodesUpsert:
    def test_merge_preserves_untouched_props(self, tree_runtime):
        result = tree_runtime.apply_single(make_nodes_upsert("s1", [{"id": "a", "props": {"label": "new"}}]))
        assert result.ok
        node = tree_runtime.get_surface("s1").nodes["a"]
        assert node.props == {"label": "new", "color": "red"}
        assert node.type == "Text"

    def test_type_can_change(self, tree_runtime):
        tree_runtime.apply_single(make_nodes_upsert("s1", [{"id": "a", "type": "Heading"}]))
        assert tree_runtime.get_surface("s1").nodes["a"].type == "Heading"

    def test_children_inherited_when_absent(self, tree_runtime):
        tree_runtime.apply_single(make_nodes_upsert("s1", [{"id": "root", "props": {"gap": 4}}]))
        assert tree_runtime.get_surface("s1").nodes["root"].children == ["a", "b"]

    def test_missing_type_rejects_only_that_node(self, surface_runtime):
        result = surface_runtime.apply_single(
            make_nodes_upsert(
                "s1",
                [{"id": "root", "type": "Column", "children": ["a", "b"]}, {"id": "a"}, {"id": "b", "type": "Text"}],
            )
        )
        assert not result.ok
        assert codes(result) == [CORE_CODES.missing_node_type]
        assert result.diagnostics[0].node_id == "a"
        assert node_ids(surface_runtime) == {"root", "b"}

    def test_end_to_end_orphan_is_pruned(self, surface_runtime):
        result = surface_runtime.apply_single(
            make_nodes_upsert(
                "s1",
                [
                    {"id": "root", "type": "Container", "children": ["a"]},
                    {"id": "a", "type": "Text", "props": {"content": "hi"}},
                    {"id": "orphan", "type": "Text"},
                ],
            )
        )
        assert result.ok
        assert node_ids(surface_runtime) == {"root", "a"}
        pruned = [d for d in result.warnings if d.code == CORE_CODES.node_pruned]
        assert [d.node_id for d in pruned] == ["orphan"]
        assert "orphan" in pruned[0].message


class TestPruning:
    def test_dropped_subtree_is_pruned(self, tree_runtime):
        result = tree_runtime.apply_single(make_nodes_upsert("s1", [{"id": "root", "children": ["a"]}]))
        assert result.ok
        assert node_ids(tree_runtime) == {"root", "a"}
        assert sorted(d.node_id for d in result.warnings) == ["b", "c"]

    def test_node_table_equals_reachable_set(self, tree_runtime):
        batches = [
            [{"id": "b", "children": ["c", "d"]}, {"id": "d", "type": "Text"}],
            [{"id": "x", "type": "Text"}],
            [{"id": "root", "children": ["b"]}],
            [{"id": "c", "children": ["a"]}, {"id": "a", "type": "Text"}],
        ]
        for batch in batches:
            tree_runtime.apply_single(make_nodes_upsert("s1", batch))
            surface = tree_runtime.get_surface("s1")
            assert set(surface.nodes) == reachable_ids(surface.nodes)

    def test_missing_root_prunes_everything(self, surface_runtime):
        result = surface_runtime.apply_single(
            make_nodes_upsert("s1", [{"id": "a", "type": "Text"}, {"id": "b", "type": "Text"}])
        )
        assert result.ok
        assert node_ids(surface_runtime) == set()
        assert codes(result)[0] == CORE_CODES.root_missing
        assert sorted(d.node_id for d in result.warnings if d.code == CORE_CODES.node_pruned) == ["a", "b"]

    def test_dangling_child_reference_is_tolerated(self, surface_runtime):
        result = surface_runtime.apply_single(
            make_nodes_upsert("s1", [{"id": "root", "type": "Column", "children": ["later"]}])
        )
        assert result.ok
        assert node_ids(surface_runtime) == {"root"}

    def test_child_cycle_terminates(self, surface_runtime):
        result = surface_runtime.apply_single(
            make_nodes_upsert(
                "s1",
                [
                    {"id": "root", "type": "Column", "children": ["a"]},
                    {"id": "a", "type": "Column", "children": ["root"]},
                ],
            )
        )
        assert result.ok
        assert node_ids(surface_runtime) == {"root", "a"}

    def test_protocol_collector_is_used(self, runtime):
        runtime.set_child_ref_collector("slots", lambda node: [v for k, v in node.props.items() if k == "child"])
        runtime.apply_single(make_surface_create("s1", "slots"))
        runtime.apply_single(
            make_nodes_upsert(
                "s1",
                [{"id": "root", "type": "Card", "props": {"child": "body"}}, {"id": "body", "type": "Text"}],
            )
        )
        assert node_ids(runtime) == {"root", "body"}


class TestNodesRemove:
    def test_remove_prunes_descendants(self, tree_runtime):
        result = tree_runtime.apply_single(make_nodes_remove("s1", ["b"]))
        assert result.ok
        assert node_ids(tree_runtime) == {"root", "a"}
        assert [d.node_id for d in result.warnings] == ["c"]

    def test_remove_unknown_id_is_noop(self, tree_runtime):
        result = tree_runtime.apply_single(make_nodes_remove("s1", ["nope"]))
        assert result.ok
        assert result.diagnostics == []
        assert node_ids(tree_runtime) == {"root", "a", "b", "c"}

    def test_removing_root_clears_surface(self, tree_runtime):
        result = tree_runtime.apply_single(make_nodes_remove("s1", ["root"]))
        assert result.ok
        assert node_ids(tree_runtime) == set()
        assert codes(result)[0] == CORE_CODES.root_missing

    def test_removing_everything_is_quiet(self, tree_runtime):
        result = tree_runtime.apply_single(make_nodes_remove("s1", ["root", "a", "b", "c"]))
        assert result.ok
        assert result.diagnostics == []


# ============================================================================
# Data
# ============================================================================


class TestDataCommands:
    def test_set_then_remove_leaves_empty_parent(self, surface_runtime):
        surface_runtime.apply_single(make_data_set("s1", "/user/name", "Alice"))
        assert surface_runtime.get_surface("s1").data == {"user": {"name": "Alice"}}
        surface_runtime.apply_single(make_data_remove("s1", "/user/name"))
        assert surface_runtime.get_surface("s1").data == {"user": {}}

    def test_set_root_replaces_document(self, surface_runtime):
        surface_runtime.apply_single(make_data_set("s1", "/", {"count": 1}))
        assert surface_runtime.get_surface("s1").data == {"count": 1}

    def test_old_documents_are_snapshots(self, surface_runtime):
        surface_runtime.apply_single(make_data_set("s1", "/a", 1))
        before = surface_runtime.get_surface("s1").data
        surface_runtime.apply_single(make_data_set("s1", "/a", 2))
        assert before == {"a": 1}
        assert surface_runtime.get_surface("s1").data == {"a": 2}

    def test_bad_array_index_is_reported(self, surface_runtime):
        surface_runtime.apply_single(make_data_set("s1", "/items", [1, 2]))
        result = surface_runtime.apply_single(make_data_set("s1", "/items/name", 1))
        assert not result.ok
        assert codes(result) == [CORE_CODES.invalid_pointer]
        assert result.diagnostics[0].surface_id == "s1"
        assert surface_runtime.get_surface("s1").data == {"items": [1, 2]}

    def test_oversized_array_gap_is_reported(self, surface_runtime):
        result = surface_runtime.apply_single(make_data_set("s1", "/items/999999999999", 1))
        assert codes(result) == [CORE_CODES.invalid_pointer]
        assert surface_runtime.get_surface("s1").data == {}

    def test_non_ascii_index_remove_is_a_noop(self, surface_runtime):
        surface_runtime.apply_single(make_data_set("s1", "/items", [1, 2]))
        assert surface_runtime.apply_single(make_data_remove("s1", "/items/²")).ok
        assert surface_runtime.get_surface("s1").data == {"items": [1, 2]}

    def test_pointer_fault_is_emitted_as_error(self, surface_runtime):
        surface_runtime.apply_single(make_data_set("s1", "/items", []))
        seen = []
        surface_runtime.events.on("error", seen.append)
        surface_runtime.apply_single(make_data_set("s1", "/items/x", 1))
        assert [d.code for d in seen] == [CORE_CODES.invalid_pointer]


# ============================================================================
# Batches, revision, subscriptions
# ============================================================================


class TestApplyBatch:
    def test_partial_application(self, runtime):
        result = runtime.apply(
            [
                make_surface_create("s1"),
                make_data_set("ghost", "/a", 1),
                make_data_set("s1", "/a", 1),
            ]
        )
        assert not result.ok
        assert codes(result) == [CORE_CODES.surface_not_found]
        assert runtime.get_surface("s1").data == {"a": 1}

    def test_pointer_fault_does_not_stop_the_batch(self, surface_runtime):
        surface_runtime.apply_single(make_data_set("s1", "/items", [1, 2]))
        result = surface_runtime.apply(
            [
                make_data_set("s1", "/items/name", 1),
                make_data_set("s1", "/ok", True),
            ]
        )
        assert not result.ok
        assert codes(result) == [CORE_CODES.invalid_pointer]
        assert surface_runtime.get_surface("s1").data == {"items": [1, 2], "ok": True}

    def test_empty_batch_is_ok(self, runtime):
        result = runtime.apply([])
        assert result.ok
        assert result.diagnostics == []


class TestRevisionAndSubscribe:
    def test_revision_counts_applied_commands(self, runtime):
        assert runtime.get_revision() == 0
        runtime.apply([make_surface_create("s1"), make_data_set("s1", "/a", 1), make_data_set("ghost", "/a", 1)])
        assert runtime.get_revision() == 3

    def test_listener_called_per_command(self, runtime):
        calls = []
        runtime.subscribe(lambda: calls.append(runtime.get_revision()))
        runtime.apply([make_surface_create("s1"), make_data_set("s1", "/a", 1)])
        assert calls == [1, 2]

    def test_unsubscribe(self, runtime):
        calls = []
        unsubscribe = runtime.subscribe(lambda: calls.append(1))
        unsubscribe()
        unsubscribe()
        runtime.apply_single(make_surface_create("s1"))
        assert calls == []


# ============================================================================
# Adapters
# ============================================================================


class EchoAdapter(ProtocolAdapter):
    """Takes a list of commands as the raw message; anything else fails."""

    protocol = "echo"

    def parse(self, raw):
        if not isinstance(raw, list):
            return parse_failure([])
        return parse_success(raw)


class TestProcessMessage:
    def test_with_adapter_instance(self, runtime):
        result = runtime.process_message(EchoAdapter(), [make_surface_create("s1", "echo")])
        assert result.parse_result.ok
        assert result.apply_result.ok
        assert runtime.get_surface("s1") is not None

    def test_parse_failure_skips_apply(self, runtime):
        result = runtime.process_message(EchoAdapter(), "not a list")
        assert not result.parse_result.ok
        assert result.apply_result is None
        assert runtime.get_revision() == 0

    def test_registered_adapter_by_name(self, runtime):
        runtime.register_adapter(EchoAdapter())
        assert isinstance(runtime.get_adapter("echo"), EchoAdapter)
        result = runtime.process_message("echo", [make_surface_create("s1", "echo")])
        assert result.apply_result.ok

    def test_unregistered_name_raises(self, runtime):
        with pytest.raises(ValueError):
            runtime.process_message("nope", {})

    def test_agent_id_reaches_trust(self):
        runtime = Runtime(trust_policy={"defaultPolicy": "deny", "agents": {"a1": {}}})
        assert runtime.process_message(EchoAdapter(), [make_surface_create("s1")], agent_id="a1").apply_result.ok
        assert not runtime.process_message(EchoAdapter(), [make_surface_create("s2")]).apply_result.ok
