"""
Shared tree/graph helpers used by projection, reconciliation and validation.

NetworkX holds the working graph whenever we need structural answers
(roots, cycles); the editors themselves keep plain node/edge lists.
"""

import logging
import uuid
from dataclasses import replace
from typing import Iterator, List, Optional, Sequence, Set, Tuple

import networkx as nx

from uiroadmap.models import CanonicalTreeNode, GraphEdge, GraphNode

logger = logging.getLogger(__name__)


class StructuralAmbiguityError(Exception):
    """Raised when a graph cannot be read back as a single-rooted tree."""
    def __init__(self, message: str, reason: str, node_ids: Optional[List[str]] = None):
        self.reason = reason
        self.node_ids = list(node_ids or [])
        super().__init__(message)


def generate_node_id() -> str:
    """Short random id for tree nodes that arrive without one."""
    return uuid.uuid4().hex[:9]


def drop_dangling_edges(edges: Sequence[GraphEdge], node_ids: Set[str]) -> List[GraphEdge]:
    """Return the edges whose endpoints both exist, logging every dropped edge."""
    kept = []
    for edge in edges:
        if edge.source in node_ids and edge.target in node_ids:
            kept.append(edge)
        else:
            logger.warning(f"Dropping dangling edge {edge.id}: {edge.source} -> {edge.target}")
    return kept


def build_digraph(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> nx.DiGraph:
    """
    Build a DiGraph from editor nodes/edges.
    Node insertion order is preserved; edges to unknown nodes are dropped.
    """
    G = nx.DiGraph()
    for node in nodes:
        G.add_node(node.id, data=node.data)
    for edge in drop_dangling_edges(edges, set(G.nodes)):
        G.add_edge(edge.source, edge.target, id=edge.id, label=edge.label)
    return G


def find_roots(G: nx.DiGraph) -> List[str]:
    """Nodes without an incoming edge, in insertion order."""
    return [n for n in G.nodes if G.in_degree(n) == 0]


def find_cycle(G: nx.DiGraph) -> Optional[List[str]]:
    """Return the node ids of one directed cycle, or None."""
    try:
        cycle_edges = nx.find_cycle(G, orientation="original")
    except nx.NetworkXNoCycle:
        return None
    return [u for u, _v, *_rest in cycle_edges]


def require_single_root(G: nx.DiGraph) -> str:
    """
    Return the unique root of G.

    Raises:
        StructuralAmbiguityError: when G is empty, has several roots, or has a cycle.
    """
    if G.number_of_nodes() == 0:
        raise StructuralAmbiguityError("Graph has no nodes", "no_root")

    cycle = find_cycle(G)
    if cycle:
        raise StructuralAmbiguityError(
            f"Graph contains a cycle through {', '.join(cycle)}", "cycle", cycle
        )

    roots = find_roots(G)
    if not roots:
        raise StructuralAmbiguityError("Graph has no root node", "no_root")
    if len(roots) > 1:
        raise StructuralAmbiguityError(
            f"Graph has {len(roots)} root nodes: {', '.join(roots)}", "multiple_roots", roots
        )
    return roots[0]


def walk_tree(
    root: CanonicalTreeNode,
) -> Iterator[Tuple[CanonicalTreeNode, Optional[CanonicalTreeNode], int, int, int]]:
    """
    Depth-first pre-order walk over a component tree.

    Yields (node, parent, index, sibling_count, depth). Iterative and
    unbounded; depth limits belong to reconstruction and validation.
    """
    stack = [(root, None, 0, 1, 0)]
    while stack:
        node, parent, index, count, depth = stack.pop()
        yield node, parent, index, count, depth
        total = len(node.children)
        for i in range(total - 1, -1, -1):
            stack.append((node.children[i], node, i, total, depth + 1))


def tree_depth(root: CanonicalTreeNode) -> int:
    """Depth of the deepest node (root = 0). Iterative, so safe on very deep trees."""
    deepest = 0
    stack = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        deepest = max(deepest, depth)
        stack.extend((child, depth + 1) for child in node.children)
    return deepest


def add_edge(edges: Sequence[GraphEdge], edge: GraphEdge) -> List[GraphEdge]:
    """
    Append an edge unless one with the same source, target and label already
    exists. Parallel edges with different labels (two triggers between the
    same states) are kept.
    """
    for existing in edges:
        if (existing.source, existing.target, existing.label) == (edge.source, edge.target, edge.label):
            return list(edges)
    taken = {e.id for e in edges}
    if edge.id in taken:
        suffix = 1
        while f"{edge.id}-{suffix}" in taken:
            suffix += 1
        edge = replace(edge, id=f"{edge.id}-{suffix}")
    return list(edges) + [edge]
