"""
Editor session - single owner of a canonical document while an editor is mounted.

Wires the pieces together the same way for both editors:
- GraphReconciler keeps nodes/edges and the canonical document in step
- FsmInterpreter replays the state machine while simulating (FSM editor only)
- validation runs against the canonical document, never the graph cache

The session's owner hears about every accepted edit through on_change,
delivered in the commit phase after the edit call has returned.
"""

import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple

from uiroadmap.config import LayoutSettings
from uiroadmap.models import FSM_KIND, TREE_KIND, GraphEdge, GraphNode, ValidationResult, document_from_dict
from uiroadmap.projection import mark_active_state
from uiroadmap.interpreter import FsmInterpreter
from uiroadmap.reconciler import EdgeChange, GraphReconciler, NodeChange
from uiroadmap.scheduler import CommitQueue
from uiroadmap.templates import default_component_tree, default_state_machine
from uiroadmap.validation import find_structural_warnings, validate_document

logger = logging.getLogger(__name__)


class EditorSession:
    """Graph-backed editing session for a component tree or a state machine."""

    def __init__(
        self,
        document=None,
        kind: Optional[str] = None,
        on_change: Optional[Callable[[Any], None]] = None,
        queue: Optional[CommitQueue] = None,
        settings: Optional[LayoutSettings] = None,
    ):
        """
        Args:
            document: TreeDocument, FsmDocument, wire-format dict, or None for a default template
            kind: 'tree' or 'fsm'; required when document is None, optional for dicts
            on_change: Called with each updated canonical document
            queue: Commit queue for deferred notifications
            settings: Layout used for fresh projections
        """
        document = self._coerce(document, kind)
        self._on_change = on_change
        self._interpreter: Optional[FsmInterpreter] = None
        self._reconciler = GraphReconciler(
            document, on_change=self._handle_change, queue=queue, settings=settings
        )

    @staticmethod
    def _coerce(document, kind: Optional[str]):
        if document is None:
            if kind == TREE_KIND:
                return default_component_tree()
            if kind == FSM_KIND:
                return default_state_machine()
            raise ValueError("A document kind is required to start from a template")
        if isinstance(document, dict):
            return document_from_dict(document, kind)
        return document

    # --- State ---

    @property
    def kind(self) -> str:
        return self._reconciler.kind

    @property
    def document(self):
        return self._reconciler.document

    @property
    def nodes(self) -> List[GraphNode]:
        return self._reconciler.nodes

    @property
    def edges(self) -> List[GraphEdge]:
        return self._reconciler.edges

    @property
    def queue(self) -> CommitQueue:
        return self._reconciler.queue

    @property
    def last_rejection(self):
        return self._reconciler.last_rejection

    @property
    def interpreter(self) -> Optional[FsmInterpreter]:
        return self._interpreter

    @property
    def is_simulating(self) -> bool:
        return self._interpreter is not None

    def view(self) -> Tuple[List[GraphNode], List[GraphEdge]]:
        """Nodes/edges to render, with the simulated state highlighted when simulating."""
        if self._interpreter is None:
            return self.nodes, self.edges
        return mark_active_state(self.nodes, self.edges, self._interpreter.active_state_id)

    # --- Edits ---

    def set_on_change(self, callback: Optional[Callable[[Any], None]]) -> None:
        self._on_change = callback

    def apply_changes(self, node_changes: Sequence[NodeChange] = (), edge_changes: Sequence[EdgeChange] = ()) -> bool:
        return self._reconciler.apply_changes(node_changes, edge_changes)

    def apply_node_changes(self, changes: Sequence[NodeChange]) -> bool:
        return self._reconciler.apply_node_changes(changes)

    def apply_edge_changes(self, changes: Sequence[EdgeChange]) -> bool:
        return self._reconciler.apply_edge_changes(changes)

    def connect(self, source_id: str, target_id: str, label: Optional[str] = None) -> bool:
        return self._reconciler.connect(source_id, target_id, label)

    def replace_document(self, document) -> None:
        """Wholesale replacement (e.g. AI generation); forces a fresh projection."""
        document = self._coerce(document, self.kind)
        self._reconciler.replace_document(document)
        if self._interpreter is not None:
            self._interpreter.load(self._reconciler.document)
            self._interpreter.reset()

    def _handle_change(self, document) -> None:
        if self._interpreter is not None:
            self._interpreter.load(document)
        if self._on_change is not None:
            self._on_change(document)

    # --- Simulation ---

    def start_simulation(self) -> FsmInterpreter:
        if self.kind != FSM_KIND:
            raise ValueError("Only state machines can be simulated")
        if self._interpreter is None:
            self._interpreter = FsmInterpreter(self.document)
            logger.info(f"Simulation started in state {self._interpreter.active_state_id!r}")
        return self._interpreter

    def stop_simulation(self) -> None:
        if self._interpreter is not None:
            logger.info("Simulation stopped")
        self._interpreter = None

    def trigger(self, event: str) -> bool:
        return self.start_simulation().trigger(event)

    def reset(self) -> None:
        self.start_simulation().reset()

    # --- Checks ---

    def validate(self) -> ValidationResult:
        result = validate_document(self.document)
        if self.kind == TREE_KIND:
            result.warnings.extend(find_structural_warnings(self.nodes, self.edges))
        return result
