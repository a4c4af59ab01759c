"""
Graph reconciler.

Turns user edits on the editor graph (node moved/added/removed/edited, edge
added/removed, connect) into an updated canonical document and hands that
document to the owner through the commit queue, once per edit batch.

Every edit call:
1. applies the low-level change to copies of the node/edge lists
2. derives the canonical document from the new lists
3. schedules the owner notification (never called inline)

Edits that cannot be read back as a valid document (e.g. a component tree
with a cycle or two roots) are rejected: the lists stay as they were and no
notification is sent.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from uiroadmap.config import LayoutSettings
from uiroadmap.graph_utils import StructuralAmbiguityError, add_edge
from uiroadmap.models import GraphEdge, GraphNode, Position
from uiroadmap.reconstruction import reconcile
from uiroadmap.scheduler import CommitQueue
from uiroadmap.strategies import DocumentStrategy, strategy_for

logger = logging.getLogger(__name__)

NODE_CHANGE_TYPES = ("position", "add", "remove", "data")
EDGE_CHANGE_TYPES = ("add", "remove")


@dataclass
class NodeChange:
    """
    A single node edit.

    - position: move node `id` to `position`
    - add: insert `node`
    - remove: delete node `id`
    - data: merge `data` into node `id`'s payload
    """
    type: str
    id: Optional[str] = None
    position: Optional[Position] = None
    node: Optional[GraphNode] = None
    data: Optional[Dict[str, Any]] = None


@dataclass
class EdgeChange:
    """add: insert `edge`; remove: delete edge `id`."""
    type: str
    id: Optional[str] = None
    edge: Optional[GraphEdge] = None


def apply_node_changes(nodes: Sequence[GraphNode], changes: Iterable[NodeChange]) -> List[GraphNode]:
    """
    Return a new node list with the changes applied. Input nodes are never mutated.
    Changes addressing unknown node ids are ignored.
    """
    result = list(nodes)
    for change in changes:
        if change.type not in NODE_CHANGE_TYPES:
            raise ValueError(f"Unknown node change type: {change.type}")

        if change.type == "add":
            if change.node is None:
                raise ValueError("Node 'add' change requires a node")
            if any(n.id == change.node.id for n in result):
                logger.warning(f"Node {change.node.id} already exists; ignoring add")
                continue
            result.append(change.node)
            continue

        index = next((i for i, n in enumerate(result) if n.id == change.id), None)
        if index is None:
            logger.debug(f"Ignoring {change.type} change for unknown node {change.id}")
            continue

        if change.type == "remove":
            del result[index]
        elif change.type == "position":
            if change.position is not None:
                result[index] = replace(result[index], position=Position(change.position.x, change.position.y))
        elif change.type == "data":
            result[index] = replace(result[index], data={**result[index].data, **(change.data or {})})
    return result


def apply_edge_changes(edges: Sequence[GraphEdge], changes: Iterable[EdgeChange]) -> List[GraphEdge]:
    """Return a new edge list with the changes applied."""
    result = list(edges)
    for change in changes:
        if change.type not in EDGE_CHANGE_TYPES:
            raise ValueError(f"Unknown edge change type: {change.type}")
        if change.type == "add":
            if change.edge is None:
                raise ValueError("Edge 'add' change requires an edge")
            result = add_edge(result, change.edge)
        else:
            result = [e for e in result if e.id != change.id]
    return result


class GraphReconciler:
    """
    Keeps an editor's node/edge lists and its canonical document in step.

    One reconciler serves both editors; the document kind only selects the
    strategy used to project and reconstruct.
    """

    def __init__(
        self,
        document,
        on_change: Optional[Callable[[Any], None]] = None,
        queue: Optional[CommitQueue] = None,
        settings: Optional[LayoutSettings] = None,
    ):
        """
        Args:
            document: TreeDocument or FsmDocument owned by the editor session
            on_change: Owner callback receiving each updated document
            queue: Commit queue used to defer notifications
            settings: Layout used for fresh projections
        """
        self._settings = settings
        self._on_change = on_change
        self._queue = queue or CommitQueue()
        self.last_rejection: Optional[StructuralAmbiguityError] = None
        # bumped on replace_document so stale notifications are skipped
        self._generation = 0
        self._load(document)

    def _load(self, document) -> None:
        self._strategy: DocumentStrategy = strategy_for(document, self._settings)
        self._document = document
        nodes, edges = self._strategy.project(document)
        self._nodes = list(nodes)
        self._edges = list(edges)

    # --- Read access ---

    @property
    def document(self):
        return self._document

    @property
    def nodes(self) -> List[GraphNode]:
        return list(self._nodes)

    @property
    def edges(self) -> List[GraphEdge]:
        return list(self._edges)

    @property
    def kind(self) -> str:
        return self._strategy.kind

    @property
    def queue(self) -> CommitQueue:
        return self._queue

    def set_on_change(self, callback: Optional[Callable[[Any], None]]) -> None:
        self._on_change = callback

    # --- Edits ---

    def apply_changes(
        self,
        node_changes: Sequence[NodeChange] = (),
        edge_changes: Sequence[EdgeChange] = (),
    ) -> bool:
        """
        Apply node changes, then edge changes, as one batch: one reconciliation,
        one notification. Returns False if the edit was rejected.
        """
        nodes, edges = list(self._nodes), list(self._edges)
        for change in node_changes:
            if change.type == "remove":
                if any(n.id == change.id for n in nodes):
                    nodes, edges = self._strategy.remove_node(nodes, edges, change.id)
            else:
                nodes = apply_node_changes(nodes, [change])
        edges = apply_edge_changes(edges, edge_changes)
        return self._commit(nodes, edges)

    def apply_node_changes(self, changes: Sequence[NodeChange]) -> bool:
        """Apply a batch of node changes. Returns False if the edit was rejected."""
        return self.apply_changes(node_changes=changes)

    def apply_node_change(self, change: NodeChange) -> bool:
        return self.apply_node_changes([change])

    def apply_edge_changes(self, changes: Sequence[EdgeChange]) -> bool:
        """Apply a batch of edge changes. Returns False if the edit was rejected."""
        return self.apply_changes(edge_changes=changes)

    def apply_edge_change(self, change: EdgeChange) -> bool:
        return self.apply_edge_changes([change])

    def connect(self, source_id: str, target_id: str, label: Optional[str] = None) -> bool:
        """
        Add an edge source -> target (label = trigger for state machines).
        Returns False, without notifying, when either end is not a current node.
        """
        node_ids = {n.id for n in self._nodes}
        missing = [n for n in (source_id, target_id) if n not in node_ids]
        if missing:
            logger.warning(f"Ignoring connect {source_id} -> {target_id}: unknown node {', '.join(missing)}")
            return False
        edge =GraphEdge(id=f"e-{source_id}-{target_id}", source=source_id, target=target_id, label=label)
        return self._commit(list(self._nodes), self._strategy.connect(self._edges, edge))

    def replace_document(self, document) -> None:
        """
        Swap in a whole new document (e.g. AI generation). The new document is
        projected from scratch; no notification is sent since the owner did this.
        """
        self._generation += 1
        self.last_rejection = None
        self._load(document.without_cache() if document.has_cache else document)
        logger.info(f"Replaced {self.kind} document ({len(self._nodes)} nodes, {len(self._edges)} edges)")

    def _commit(self, nodes: List[GraphNode], edges: List[GraphEdge]) -> bool:
        try:
            document = self._strategy.reconstruct(nodes, edges, self._document)
        except StructuralAmbiguityError as e:
            logger.warning(f"Rejected {self.kind} edit ({e.reason}): {e}")
            self.last_rejection = e
            return False

        self.last_rejection = None
        self._document = document
        self._nodes = list(document.nodes)
        self._edges = list(document.edges)
        self._queue.schedule(self._notify, document, self._generation)
        return True

    def _notify(self, document, generation: int) -> None:
        if generation != self._generation:
            logger.debug("Skipping notification for a replaced document")
            return
        if self._on_change is not None:
            self._on_change(document)


__all__ = [
    'NodeChange',
    'EdgeChange',
    'GraphReconciler',
    'apply_node_changes',
    'apply_edge_changes',
    'add_edge',
    'reconcile',
]
