import asyncio

import pytest

from uiroadmap.config import LayoutSettings
from uiroadmap.models import FsmDocument, GraphEdge, GraphNode, Position, Transition, TreeDocument
from uiroadmap.projection import project
from uiroadmap.reconciler import (
    EdgeChange,
    GraphReconciler,
    NodeChange,
    apply_edge_changes,
    apply_node_changes,
)
from uiroadmap.reconstruction import reconcile, reconstruct_tree
from uiroadmap.graph_utils import StructuralAmbiguityError, tree_depth


def make_tree():
    return TreeDocument.from_dict({
        "id": "root",
        "type": "Page",
        "children": [
            {"id": "a", "type": "Header", "props": {"title": "Hi"}},
            {"id": "b", "type": "Form", "binding": "POST /api/items", "children": [
                {"id": "c", "type": "TextInput", "validation": ["required"], "label": "Name"},
            ]},
            {"id": "d", "type": "Footer"},
        ],
    })


def make_fsm():
    return FsmDocument.from_dict({
        "states": {
            "idle": {"type": "initial", "visual_changes": "Form enabled"},
            "loading": {"visual_changes": "Spinner"},
            "done": {"type": "final"},
        },
        "transitions": [
            {"from": "idle", "to": "loading", "trigger": "start"},
            {"from": "loading", "to": "done", "trigger": "finish"},
        ],
        "title": "Checkout",
    })


def relations(root):
    """id -> (payload, parent id) for every node of a component tree."""
    out = {}
    stack = [(root, None)]
    while stack:
        node, parent = stack.pop()
        out[node.id] = (node.payload(), parent)
        stack.extend((child, node.id) for child in node.children)
    return out


def child_ids(node):
    return [c.id for c in node.children]


# --- Round trips ---


@pytest.mark.parametrize("factory", [make_tree, make_fsm])
def test_round_trip_keeps_projection(factory):
    """Reconciling an unedited projection and projecting again changes nothing."""
    doc = factory()
    nodes, edges = project(doc)

    updated = reconcile(nodes, edges, doc)
    again_nodes, again_edges = project(updated)

    assert again_nodes == nodes
    assert again_edges == edges


def test_tree_reconstruction_is_isomorphic_to_original():
    doc = make_tree()
    nodes, edges = project(doc)

    rebuilt = reconstruct_tree(nodes, edges)

    assert relations(rebuilt) == relations(doc.root)
    assert child_ids(rebuilt) == ["a", "b", "d"]


def test_user_label_survives_round_trip():
    doc = make_tree()
    rebuilt = reconstruct_tree(*project(doc))
    text_input = rebuilt.children[1].children[0]
    assert text_input.extra == {"label": "Name"}


def test_fsm_reconcile_keeps_unknown_document_fields():
    doc = make_fsm()
    updated = reconcile(*project(doc), doc)
    assert updated.extra == {"title": "Checkout"}
    assert updated.transitions == doc.transitions
    assert updated.states == doc.states


def test_fsm_reconcile_drops_dangling_edges():
    doc = make_fsm()
    nodes, edges = project(doc)
    edges.append(GraphEdge(id="ghost", source="done", target="nowhere", label="go"))

    updated = reconcile(nodes, edges, doc)

    assert [t.trigger for t in updated.transitions] == ["start", "finish"]
    assert all(e.id != "ghost" for e in updated.edges)


def test_fsm_reconcile_turns_unlabelled_edges_into_empty_triggers():
    doc = make_fsm()
    nodes, edges = project(doc)
    edges.append(GraphEdge(id="loop", source="done", target="idle"))

    updated = reconcile(nodes, edges, doc)

    assert updated.transitions[-1] == Transition("done", "idle", "")


# --- Pure change application ---


def test_apply_node_changes_does_not_mutate_input():
    nodes, _ = project(make_fsm())
    moved = apply_node_changes(nodes, [NodeChange(type="position", id="idle", position=Position(40, 60))])

    assert moved[0].position == Position(40, 60)
    assert nodes[0].position == Position(0, 0)


def test_apply_node_changes_ignores_unknown_ids():
    nodes, _ = project(make_fsm())
    assert apply_node_changes(nodes, [NodeChange(type="remove", id="nope")]) == nodes


def test_unknown_change_types_raise():
    nodes, edges = project(make_fsm())
    with pytest.raises(ValueError):
        apply_node_changes(nodes, [NodeChange(type="resize", id="idle")])
    with pytest.raises(ValueError):
        apply_edge_changes(edges, [EdgeChange(type="relabel", id="e-0")])


def test_duplicate_edge_is_not_added_twice():
    _, edges = project(make_fsm())
    again = apply_edge_changes(edges, [EdgeChange(
        type="add", edge=GraphEdge(id="x", source="idle", target="loading", label="start"),
    )])
    assert again == edges


# --- Deferred notification ---


def test_notification_waits_for_commit_phase():
    received = []
    reconciler = GraphReconciler(make_fsm(), on_change=received.append)

    assert reconciler.connect("done", "idle", "restart") is True
    assert received == []
    assert reconciler.queue.pending == 1

    assert reconciler.queue.flush() == 1
    assert len(received) == 1
    assert received[0].transitions[-1] == Transition("done", "idle", "restart")


def test_notification_runs_on_next_loop_iteration():
    events = []

    async def scenario():
        reconciler = GraphReconciler(make_fsm(), on_change=lambda doc: events.append("notified"))
        reconciler.connect("done", "idle", "restart")
        events.append("returned")
        await asyncio.sleep(0)
        events.append("after tick")

    asyncio.run(scenario())

    assert events == ["returned", "notified", "after tick"]


def test_batch_produces_one_notification():
    received = []
    reconciler = GraphReconciler(make_fsm(), on_change=received.append)

    reconciler.apply_node_changes([
        NodeChange(type="position", id="idle", position=Position(10, 10)),
        NodeChange(type="position", id="done", position=Position(20, 20)),
    ])
    reconciler.queue.flush()

    assert len(received) == 1


def test_edit_from_inside_callback_waits_for_next_phase():
    received = []
    reconciler = GraphReconciler(make_fsm())

    def on_change(doc):
        received.append(doc)
        if len(received) == 1:
            reconciler.connect("loading", "idle", "cancel")

    reconciler.set_on_change(on_change)
    reconciler.connect("done", "idle", "restart")

    assert reconciler.queue.flush() == 1
    assert len(received) == 1
    assert reconciler.queue.pending == 1

    reconciler.queue.flush()
    assert len(received) == 2
    assert received[1].transitions[-1] == Transition("loading", "idle", "cancel")


def test_replace_document_skips_stale_notifications():
    received = []
    reconciler = GraphReconciler(make_fsm(), on_change=received.append)
    reconciler.connect("done", "idle", "restart")

    cached = FsmDocument.from_dict({"states": {"a": {}}, "transitions": []})
    cached.nodes = [GraphNode(id="a", type="uiState", position=Position(999, 999), data={})]
    cached.edges = []
    reconciler.replace_document(cached)
    reconciler.queue.flush()

    assert received == []
    assert [(n.id, n.position) for n in reconciler.nodes] == [("a", Position(0, 0))]


# --- Reconciler edits ---


def test_position_change_survives_next_projection():
    reconciler = GraphReconciler(make_fsm())
    reconciler.apply_node_change(NodeChange(type="position", id="loading", position=Position(-80, 400)))

    nodes, _ = project(reconciler.document)
    assert next(n for n in nodes if n.id == "loading").position == Position(-80, 400)


def test_fsm_data_change_merges_into_state():
    reconciler = GraphReconciler(make_fsm())
    reconciler.apply_node_change(NodeChange(type="data", id="loading", data={"messaging": "Please wait"}))

    state = reconciler.document.states["loading"]
    assert state == {"visual_changes": "Spinner", "messaging": "Please wait"}


def test_fsm_add_node_creates_state():
    reconciler = GraphReconciler(make_fsm())
    node = GraphNode(id="empty", type="uiState", position=Position(0, 400), data={"type": "normal"})

    assert reconciler.apply_node_change(NodeChange(type="add", node=node))
    assert reconciler.document.states["empty"] == {"type": "normal"}


def test_fsm_remove_node_drops_state_and_its_transitions():
    reconciler = GraphReconciler(make_fsm())

    assert reconciler.apply_node_change(NodeChange(type="remove", id="loading"))

    assert list(reconciler.document.states) == ["idle", "done"]
    assert reconciler.document.transitions == []
    assert reconciler.edges == []


def test_fsm_remove_edge_drops_transition():
    reconciler = GraphReconciler(make_fsm())
    reconciler.apply_edge_change(EdgeChange(type="remove", id="e-0"))
    assert reconciler.document.transitions == [Transition("loading", "done", "finish")]


def test_tree_connect_reparents_target():
    reconciler = GraphReconciler(make_tree())

    assert reconciler.connect("d", "a") is True

    root = reconciler.document.root
    assert child_ids(root) == ["b", "d"]
    footer = root.children[1]
    assert child_ids(footer) == ["a"]


def test_tree_remove_splices_children_onto_parent():
    reconciler = GraphReconciler(make_tree())

    assert reconciler.apply_node_change(NodeChange(type="remove", id="b"))

    root = reconciler.document.root
    assert set(child_ids(root)) == {"a", "c", "d"}


def test_tree_add_node_with_parent_edge_in_one_batch():
    reconciler = GraphReconciler(make_tree())
    node = GraphNode(id="e", type="component", position=Position(0, 0), data={"type": "Link"})
    edge = GraphEdge(id="e-d-e", source="d", target="e")

    assert reconciler.apply_changes([NodeChange(type="add", node=node)], [EdgeChange(type="add", edge=edge)])

    footer = reconciler.document.root.children[2]
    assert child_ids(footer) == ["e"]
    assert footer.children[0].kind == "Link"


def test_tree_cycle_is_rejected():
    received = []
    reconciler = GraphReconciler(make_tree(), on_change=received.append)
    nodes_before, edges_before = reconciler.nodes, reconciler.edges

    assert reconciler.connect("c", "root") is False

    assert reconciler.last_rejection.reason == "cycle"
    assert reconciler.nodes == nodes_before
    assert reconciler.edges == edges_before
    assert reconciler.queue.pending == 0
    reconciler.queue.flush()
    assert received == []


def test_tree_second_root_is_rejected():
    reconciler = GraphReconciler(make_tree())

    assert reconciler.apply_edge_change(EdgeChange(type="remove", id="e-root-a")) is False
    assert reconciler.last_rejection.reason == "multiple_roots"
    assert set(reconciler.last_rejection.node_ids) == {"root", "a"}


def test_rejection_is_cleared_by_next_accepted_edit():
    reconciler = GraphReconciler(make_tree())
    reconciler.connect("c", "root")
    assert reconciler.last_rejection is not None

    reconciler.apply_node_change(NodeChange(type="position", id="a", position=Position(1, 1)))
    assert reconciler.last_rejection is None


def test_empty_graph_has_no_root():
    with pytest.raises(StructuralAmbiguityError) as exc:
        reconstruct_tree([], [])
    assert exc.value.reason == "no_root"


# --- Depth, dangling edges and labels ---


def make_chain(length):
    node = {"id": f"n{length - 1}", "type": "Box"}
    for i in range(length - 2, -1, -1):
        node = {"id": f"n{i}", "type": "Box", "children": [node]}
    return TreeDocument.from_dict(node)


def test_over_deep_tree_is_rejected_not_truncated():
    """Editing a tree deeper than the limit must not drop the deep components."""
    received = []
    doc = make_chain(105)
    reconciler = GraphReconciler(doc, on_change=received.append)
    assert len(reconciler.nodes) == 105

    accepted = reconciler.apply_node_change(NodeChange(type="position", id="n0", position=Position(5, 5)))

    assert accepted is False
    assert reconciler.last_rejection.reason == "depth_exceeded"
    assert reconciler.document is doc
    assert tree_depth(reconciler.document.root) == 104
    assert len(reconciler.nodes) == 105
    reconciler.queue.flush()
    assert received == []


def test_tree_within_configured_depth_is_accepted():
    reconciler = GraphReconciler(make_chain(4), settings=LayoutSettings(max_tree_depth=3))
    assert reconciler.apply_node_change(NodeChange(type="position", id="n3", position=Position(1, 1)))
    assert tree_depth(reconciler.document.root) == 3


def test_tree_connect_to_unknown_node_is_ignored():
    reconciler = GraphReconciler(make_tree())
    edges_before = reconciler.edges

    assert reconciler.connect("root", "ghost") is False

    assert reconciler.edges == edges_before
    assert reconciler.queue.pending == 0


def test_fsm_connect_to_unknown_state_is_ignored():
    reconciler = GraphReconciler(make_fsm())

    assert reconciler.connect("idle", "ghost", "go") is False

    assert reconciler.queue.pending == 0
    assert reconciler.document.transitions == make_fsm().transitions


def test_reconciled_tree_cache_has_no_dangling_edges():
    doc = make_tree()
    nodes, edges = project(doc)
    edges.append(GraphEdge(id="e-root-ghost", source="root", target="ghost"))

    updated = reconcile(nodes, edges, doc)

    assert all(e.target != "ghost" for e in updated.edges)
    _, projected_edges = project(updated)
    assert len(projected_edges) == 4


def test_dangling_edge_added_to_tree_does_not_reach_cache():
    reconciler = GraphReconciler(make_tree())
    reconciler.apply_edge_change(EdgeChange(
        type="add", edge=GraphEdge(id="e-root-ghost", source="root", target="ghost"),
    ))
    assert all(e.target != "ghost" for e in reconciler.edges)
    assert all(e.target != "ghost" for e in reconciler.document.edges)


def test_label_equal_to_type_survives_round_trip():
    doc = TreeDocument.from_dict({"id": "root", "type": "Button", "label": "Button"})
    updated = reconcile(*project(doc), doc)
    assert updated.root.extra == {"label": "Button"}


def test_projected_label_is_not_written_back():
    doc = make_tree()
    updated = reconcile(*project(doc), doc)
    header = updated.root.children[0]
    assert "label" not in header.payload()
    assert "syntheticLabel" not in header.payload()


def test_edited_label_is_written_back():
    reconciler = GraphReconciler(make_tree())
    reconciler.apply_node_change(NodeChange(type="data", id="a", data={"label": "Top bar"}))
    header = reconciler.document.root.children[0]
    assert header.extra == {"label": "Top bar"}


def test_fsm_keeps_prior_keys_the_graph_never_carried():
    doc = make_fsm()
    nodes, edges = project(doc)
    del nodes[1].data["visual_changes"]

    updated = reconcile(nodes, edges, doc)

    assert updated.states["loading"] == {"visual_changes": "Spinner"}
