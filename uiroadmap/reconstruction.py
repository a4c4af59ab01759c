"""
Reconstruction: editor nodes/edges -> canonical document.

The inverse of projection. The resulting document carries the nodes/edges it
was derived from, so the next projection reuses them instead of re-laying out.
"""

import copy
import logging
from collections import deque
from typing import Dict, List, Sequence

from uiroadmap.constants import MAX_TREE_DEPTH, SYNTHETIC_LABEL_KEY
from uiroadmap.graph_utils import (
    StructuralAmbiguityError,
    build_digraph,
    drop_dangling_edges,
    require_single_root,
)
from uiroadmap.models import (
    FSM_KIND,
    TREE_KIND,
    CanonicalTreeNode,
    FsmDocument,
    GraphEdge,
    GraphNode,
    StateConfig,
    Transition,
    TreeDocument,
)

logger = logging.getLogger(__name__)

# Keys projection adds to graph node data that are not part of the canonical payload
SYNTHETIC_STATE_KEYS = ("label", "id", "isActive")


def _tree_payload(data: Dict) -> Dict:
    payload = {k: v for k, v in data.items() if k not in ("isActive", SYNTHETIC_LABEL_KEY)}
    synthetic = data.get(SYNTHETIC_LABEL_KEY)
    if synthetic is not None and payload.get("label") == synthetic:
        # label added by projection and not edited since
        del payload["label"]
    return payload


def reconstruct_tree(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    max_depth: int = MAX_TREE_DEPTH,
) -> CanonicalTreeNode:
    """
    Rebuild a component tree from graph nodes and parent -> child edges.

    The unique node without an incoming edge becomes the root; children follow
    outgoing edges in edge order, each built from the target node's own data.

    Raises:
        StructuralAmbiguityError: no root, several roots, a cycle, a node with
            more than one parent, or a tree deeper than max_depth.
    """
    G = build_digraph(nodes, edges)
    root_id = require_single_root(G)

    shared = [n for n in G.nodes if G.in_degree(n) > 1]
    if shared:
        raise StructuralAmbiguityError(
            f"Nodes with more than one parent: {', '.join(shared)}", "multiple_parents", shared
        )

    built: Dict[str, CanonicalTreeNode] = {}
    for node_id, attrs in G.nodes(data=True):
        payload = _tree_payload(attrs.get("data") or {})
        payload["id"] = node_id
        built[node_id] = CanonicalTreeNode.from_payload(payload)

    queue = deque([(root_id, 0)])
    while queue:
        node_id, depth = queue.popleft()
        children = list(G.successors(node_id))
        if children and depth + 1 > max_depth:
            raise StructuralAmbiguityError(
                f"Component tree deeper than {max_depth}", "depth_exceeded", [node_id]
            )
        for child_id in children:
            built[node_id].children.append(built[child_id])
            queue.append((child_id, depth + 1))

    return built[root_id]


def reconcile_tree(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    prior: TreeDocument,
    max_depth: int = MAX_TREE_DEPTH,
) -> TreeDocument:
    kept_edges = drop_dangling_edges(edges, {n.id for n in nodes})
    root = reconstruct_tree(nodes, kept_edges, max_depth)
    return TreeDocument(root=root, nodes=list(nodes), edges=kept_edges)


def reconcile_fsm(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    prior: FsmDocument,
) -> FsmDocument:
    """
    Merge graph edits back into a state machine.

    The node list decides which states exist. Each node's data is merged
    over the prior config of the state with the same name, so keys the
    graph never carried survive. A node unknown to the prior document
    becomes a new state, and a prior state with no node left (removed in
    the editor) is dropped together with its transitions. Transitions are rebuilt verbatim
    from the edges (label = trigger); dangling edges are dropped.
    """
    states: Dict[str, StateConfig] = {}
    for node in nodes:
        payload = {k: copy.deepcopy(v) for k, v in node.data.items() if k not in SYNTHETIC_STATE_KEYS}
        base = copy.deepcopy(prior.states.get(node.id, {}))
        base.update(payload)
        states[node.id] = base

    removed = [name for name in prior.states if name not in states]
    if removed:
        logger.debug(f"States removed from the graph: {', '.join(removed)}")

    kept_edges = drop_dangling_edges(edges, set(states))
    transitions: List[Transition] = [
        Transition(from_state=e.source, to_state=e.target, trigger=e.label or "")
        for e in kept_edges
    ]

    return FsmDocument(
        states=states,
        transitions=transitions,
        nodes=list(nodes),
        edges=kept_edges,
        extra=copy.deepcopy(prior.extra),
    )


def reconcile(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge], prior_document):
    """Derive the updated canonical document for either document kind."""
    kind = getattr(prior_document, "kind", None)
    if kind == TREE_KIND:
        return reconcile_tree(nodes, edges, prior_document)
    if kind == FSM_KIND:
        return reconcile_fsm(nodes, edges, prior_document)
    raise ValueError(f"Cannot reconcile document of type {type(prior_document).__name__}")
