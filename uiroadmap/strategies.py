"""
Document strategies.

Both editors run the same reconciliation loop; what differs per document
kind is how a document is projected, how it is rebuilt from the graph, and
what removing a node means. Each kind plugs those in through a strategy.
"""

import logging
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from uiroadmap.config import LayoutSettings
from uiroadmap.constants import COMPONENT_NODE_TYPE, STATE_NODE_TYPE
from uiroadmap.graph_utils import add_edge
from uiroadmap.models import FSM_KIND, TREE_KIND, GraphEdge, GraphNode
from uiroadmap.projection import project_fsm, project_tree
from uiroadmap.reconstruction import reconcile_fsm, reconcile_tree

logger = logging.getLogger(__name__)

Graph = Tuple[List[GraphNode], List[GraphEdge]]


def _without_node(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge], node_id: str) -> Graph:
    return (
        [n for n in nodes if n.id != node_id],
        [e for e in edges if e.source != node_id and e.target != node_id],
    )


@runtime_checkable
class DocumentStrategy(Protocol):
    """
    Per-kind hooks used by GraphReconciler.
    """

    @property
    def kind(self) -> str:
        """Return the document kind ('tree' or 'fsm')."""
        ...

    @property
    def node_type(self) -> str:
        """Graph node type emitted by projection ('component' or 'uiState')."""
        ...

    def project(self, document, settings: Optional[LayoutSettings] = None) -> Graph:
        ...

    def reconstruct(self, nodes: Sequence[GraphNode], edges: Sequence[GraphEdge], prior):
        """
        Derive the canonical document from the graph.

        Raises:
            StructuralAmbiguityError: when the graph cannot be read back.
        """
        ...

    def remove_node(self, nodes: Sequence[GraphNode], edges: Sequence[GraphEdge], node_id: str) -> Graph:
        ...

    def connect(self, edges: Sequence[GraphEdge], edge: GraphEdge) -> List[GraphEdge]:
        ...


class TreeStrategy:
    kind = TREE_KIND
    node_type = COMPONENT_NODE_TYPE

    def __init__(self, settings: Optional[LayoutSettings] = None):
        self.settings = settings or LayoutSettings()

    def project(self, document, settings: Optional[LayoutSettings] = None) -> Graph:
        return project_tree(document, settings or self.settings)

    def reconstruct(self, nodes, edges, prior):
        return reconcile_tree(nodes, edges, prior, self.settings.max_tree_depth)

    def remove_node(self, nodes, edges, node_id) -> Graph:
        """
        Remove a component and splice its children onto its parent,
        keeping their order. Removing the root only reconciles when it has
        a single child, which becomes the new root.
        """
        parent_edges = [e for e in edges if e.target == node_id]
        child_edges = [e for e in edges if e.source == node_id]
        remaining_nodes, remaining_edges = _without_node(nodes, edges, node_id)
        if parent_edges and child_edges:
            parent_id = parent_edges[0].source
            for edge in child_edges:
                remaining_edges.append(GraphEdge(
                    id=f"e-{parent_id}-{edge.target}", source=parent_id, target=edge.target
                ))
            logger.debug(f"Re-parented {len(child_edges)} children of {node_id} onto {parent_id}")
        return remaining_nodes, remaining_edges

    def connect(self, edges, edge) -> List[GraphEdge]:
        """Connecting a parent to a component re-parents it: its old parent edge goes."""
        kept = [e for e in edges if e.target != edge.target or e.source == edge.source]
        return add_edge(kept, edge)


class FsmStrategy:
    kind = FSM_KIND
    node_type = STATE_NODE_TYPE

    def __init__(self, settings: Optional[LayoutSettings] = None):
        self.settings = settings or LayoutSettings()

    def project(self, document, settings: Optional[LayoutSettings] = None) -> Graph:
        return project_fsm(document, settings or self.settings)

    def reconstruct(self, nodes, edges, prior):
        return reconcile_fsm(nodes, edges, prior)

    def remove_node(self, nodes, edges, node_id) -> Graph:
        # transitions into or out of a removed state go with it
        return _without_node(nodes, edges, node_id)

    def connect(self, edges, edge) -> List[GraphEdge]:
        return add_edge(edges, edge)


_STRATEGIES = {
    TREE_KIND: TreeStrategy,
    FSM_KIND: FsmStrategy,
}


def strategy_for(document, settings: Optional[LayoutSettings] = None) -> DocumentStrategy:
    """Pick the strategy matching the document's kind."""
    strategy_cls = _STRATEGIES.get(getattr(document, "kind", None))
    if strategy_cls is None:
        raise ValueError(f"No strategy for document of type {type(document).__name__}")
    return strategy_cls(settings)
