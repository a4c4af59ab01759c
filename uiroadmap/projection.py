"""
Graph projection: canonical document -> positioned nodes and edges.

Both projections follow the same rule: if the document carries a cached
nodes/edges pair from a previous reconciliation, hand it back untouched so
user-arranged positions survive. Otherwise lay the document out fresh:

- Component tree: depth-first, children spread evenly under their parent
- State machine: fixed grid, since states have no inherent hierarchy

Projection never raises on malformed documents; bad children are treated
as empty and dangling transitions are dropped (with a warning).
"""

import copy
import logging
from typing import Dict, List, Optional, Set, Tuple

from uiroadmap.config import LayoutSettings
from uiroadmap.constants import COMPONENT_NODE_TYPE, STATE_NODE_TYPE, SYNTHETIC_LABEL_KEY
from uiroadmap.graph_utils import generate_node_id, walk_tree
from uiroadmap.models import (
    FSM_KIND,
    TREE_KIND,
    FsmDocument,
    GraphEdge,
    GraphNode,
    Position,
    TreeDocument,
)

logger = logging.getLogger(__name__)

Projection = Tuple[List[GraphNode], List[GraphEdge]]


def project_tree(doc: TreeDocument, settings: Optional[LayoutSettings] = None) -> Projection:
    """
    Project a component tree.

    Each child sits at parent.x + (index - (siblings - 1) / 2) * spacing_x and
    one row below its parent. One edge per parent -> child relation.
    """
    if doc.has_cache:
        logger.debug("Reusing cached component tree projection")
        return doc.nodes, doc.edges

    settings = settings or LayoutSettings()
    nodes: List[GraphNode] = []
    edges: List[GraphEdge] = []
    # python object id -> (graph id, position)
    placed: Dict[int, Tuple[str, Position]] = {}
    used_ids: Set[str] = set()

    for node, parent, index, count, _depth in walk_tree(doc.root):
        node_id = node.id or generate_node_id()
        if node_id in used_ids:
            fresh = generate_node_id()
            logger.warning(f"Duplicate component id {node_id!r}; projecting as {fresh!r}")
            node_id = fresh
        used_ids.add(node_id)

        if parent is None:
            position = Position(0.0, 0.0)
        else:
            parent_id, parent_pos = placed[id(parent)]
            offset_x = (index - (count - 1) / 2) * settings.spacing_x
            position = Position(parent_pos.x + offset_x, parent_pos.y + settings.row_height)
            edges.append(GraphEdge(id=f"e-{parent_id}-{node_id}", source=parent_id, target=node_id))
        placed[id(node)] = (node_id, position)

        data = node.payload()
        data["id"] = node_id
        if "label" not in data:
            data["label"] = node.kind or node_id
            data[SYNTHETIC_LABEL_KEY] = data["label"]
        nodes.append(GraphNode(id=node_id, type=COMPONENT_NODE_TYPE, position=position, data=data))

    return nodes, edges


def project_fsm(doc: FsmDocument, settings: Optional[LayoutSettings] = None) -> Projection:
    """
    Project a state machine.

    States are placed on a grid (col = index % columns, row = index // columns);
    each transition becomes an edge labelled with its trigger.
    """
    if doc.has_cache:
        logger.debug("Reusing cached state machine projection")
        return doc.nodes, doc.edges

    settings = settings or LayoutSettings()
    nodes: List[GraphNode] = []
    for idx, (name, config) in enumerate(doc.states.items()):
        col = idx % settings.grid_columns
        row = idx // settings.grid_columns
        data = copy.deepcopy(config)
        data["label"] = name
        data["id"] = name
        nodes.append(GraphNode(
            id=name,
            type=STATE_NODE_TYPE,
            position=Position(float(col * settings.grid_spacing_x), float(row * settings.grid_spacing_y)),
            data=data,
        ))

    edges: List[GraphEdge] = []
    for i, transition in enumerate(doc.transitions):
        if transition.from_state not in doc.states or transition.to_state not in doc.states:
            logger.warning(
                f"Dropping transition {transition.from_state} -> {transition.to_state} "
                f"({transition.trigger!r}): unknown state"
            )
            continue
        edges.append(GraphEdge(
            id=f"e-{i}",
            source=transition.from_state,
            target=transition.to_state,
            label=transition.trigger,
        ))

    return nodes, edges


_PROJECTORS = {
    TREE_KIND: project_tree,
    FSM_KIND: project_fsm,
}


def project(document, settings: Optional[LayoutSettings] = None) -> Projection:
    """Project any canonical document to (nodes, edges)."""
    projector = _PROJECTORS.get(getattr(document, "kind", None))
    if projector is None:
        raise ValueError(f"Cannot project document of type {type(document).__name__}")
    return projector(document, settings)


def mark_active_state(
    nodes: List[GraphNode],
    edges: List[GraphEdge],
    active_state_id: Optional[str],
) -> Projection:
    """
    Copy of a state machine projection with the simulated state highlighted:
    the active node gets data["isActive"] and its outgoing edges are animated.
    """
    marked_nodes = [
        GraphNode(
            id=n.id,
            type=n.type,
            position=Position(n.position.x, n.position.y),
            data={**n.data, "isActive": n.id == active_state_id},
        )
        for n in nodes
    ]
    marked_edges = [
        GraphEdge(
            id=e.id,
            source=e.source,
            target=e.target,
            label=e.label,
            animated=active_state_id is not None and e.source == active_state_id,
        )
        for e in edges
    ]
    return marked_nodes, marked_edges
