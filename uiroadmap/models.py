"""
Canonical document models for the UI roadmap editors.

Two document kinds exist:
- TreeDocument: a recursive component tree (render order = children order)
- FsmDocument: named UI states plus an ordered transition list

Both can carry a cached graph projection (nodes/edges) from a previous
reconciliation round-trip, so the editor can restore user-arranged positions.

Wire format (JSON) follows the roadmap API:
    component node: {"id", "type", "props", "binding", "validation", "children"}
    state machine:  {"states": {name: config}, "transitions": [{"from", "to", "trigger"}]}
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Open payload: visual_changes / interaction_changes / messaging / type / ...
StateConfig = Dict[str, Any]

TREE_KIND = "tree"
FSM_KIND = "fsm"

# Keys of a component node that are modelled explicitly
_TREE_NODE_KEYS = ("id", "type", "props", "binding", "validation", "children")


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Any) -> "Position":
        if not isinstance(data, dict):
            return cls()
        try:
            return cls(float(data.get("x", 0) or 0), float(data.get("y", 0) or 0))
        except (TypeError, ValueError):
            return cls()


@dataclass
class GraphNode:
    """A positioned node of the editable graph. Transient: rebuilt per editor mount."""
    id: str
    type: str
    position: Position = field(default_factory=Position)
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "position": self.position.to_dict(),
            "data": copy.deepcopy(self.data),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphNode":
        payload = data.get("data")
        return cls(
            id=str(data.get("id")),
            type=data.get("type") or "",
            position=Position.from_dict(data.get("position")),
            data=copy.deepcopy(payload) if isinstance(payload, dict) else {},
        )


@dataclass
class GraphEdge:
    id: str
    source: str
    target: str
    label: Optional[str] = None
    animated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        out = {"id": self.id, "source": self.source, "target": self.target}
        if self.label is not None:
            out["label"] = self.label
        if self.animated:
            out["animated"] = True
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphEdge":
        source = str(data.get("source"))
        target = str(data.get("target"))
        label = data.get("label")
        return cls(
            id=str(data.get("id") or f"e-{source}-{target}"),
            source=source,
            target=target,
            label=None if label is None else str(label),
            animated=bool(data.get("animated", False)),
        )


@dataclass
class CanonicalTreeNode:
    """One component of the UI tree."""
    kind: str = ""
    id: Optional[str] = None
    binding: Optional[str] = None
    validation_tags: List[str] = field(default_factory=list)
    props: Dict[str, Any] = field(default_factory=dict)
    children: List["CanonicalTreeNode"] = field(default_factory=list)
    # Any other fields the owner stored on the node (label, description, ...)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "CanonicalTreeNode":
        """
        Build a node from its wire format.
        Invalid `children` (not a list) and non-dict child entries are treated as empty.
        """
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed component node: {data!r}")
            return cls()

        raw_children = data.get("children")
        children: List[CanonicalTreeNode] = []
        if isinstance(raw_children, list):
            for child in raw_children:
                if isinstance(child, dict):
                    children.append(cls.from_dict(child))
                else:
                    logger.warning(f"Dropping malformed child of {data.get('id')!r}: {child!r}")
        elif raw_children is not None:
            logger.warning(f"Component {data.get('id')!r} has invalid children; treating as empty")

        node = cls.from_payload(data)
        node.children = children
        return node

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CanonicalTreeNode":
        """Build a childless node from a flat payload (graph node data)."""
        validation = payload.get("validation")
        props = payload.get("props")
        node_id = payload.get("id")
        binding = payload.get("binding")
        return cls(
            kind=str(payload.get("type") or ""),
            id=None if node_id is None else str(node_id),
            binding=binding or None,
            validation_tags=[str(v) for v in validation] if isinstance(validation, list) else [],
            props=copy.deepcopy(props) if isinstance(props, dict) else {},
            extra={k: copy.deepcopy(v) for k, v in payload.items() if k not in _TREE_NODE_KEYS},
        )

    def payload(self) -> Dict[str, Any]:
        """Flat wire payload without children."""
        out: Dict[str, Any] = copy.deepcopy(self.extra)
        if self.id is not None:
            out["id"] = self.id
        out["type"] = self.kind
        out["props"] = copy.deepcopy(self.props)
        if self.binding:
            out["binding"] = self.binding
        if self.validation_tags:
            out["validation"] = list(self.validation_tags)
        return out

    def to_dict(self) -> Dict[str, Any]:
        out = self.payload()
        out["children"] = [child.to_dict() for child in self.children]
        return out


@dataclass
class Transition:
    from_state: str
    to_state: str
    trigger: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.from_state, "to": self.to_state, "trigger": self.trigger}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Transition"]:
        """Parse a transition, returning None when it has no usable endpoints."""
        if not isinstance(data, dict):
            return None
        source, target = data.get("from"), data.get("to")
        if not source or not target:
            return None
        return cls(str(source), str(target), str(data.get("trigger") or ""))


def _parse_cache(data: Dict[str, Any]):
    nodes = data.get("nodes")
    edges = data.get("edges")
    if not isinstance(nodes, list) or not isinstance(edges, list):
        return None, None
    return (
        [GraphNode.from_dict(n) for n in nodes if isinstance(n, dict)],
        [GraphEdge.from_dict(e) for e in edges if isinstance(e, dict)],
    )


def _dump_cache(out: Dict[str, Any], nodes, edges) -> None:
    if nodes is not None and edges is not None:
        out["nodes"] = [n.to_dict() for n in nodes]
        out["edges"] = [e.to_dict() for e in edges]


@dataclass
class TreeDocument:
    """Component tree document, optionally carrying a cached projection."""
    root: CanonicalTreeNode = field(default_factory=CanonicalTreeNode)
    nodes: Optional[List[GraphNode]] = None
    edges: Optional[List[GraphEdge]] = None

    kind = TREE_KIND

    @property
    def has_cache(self) -> bool:
        return self.nodes is not None and self.edges is not None

    def without_cache(self) -> "TreeDocument":
        return TreeDocument(root=copy.deepcopy(self.root))

    @classmethod
    def from_dict(cls, data: Any) -> "TreeDocument":
        if not isinstance(data, dict):
            logger.warning("Component tree is not an object; starting from an empty tree")
            return cls()
        nodes, edges = _parse_cache(data)
        body = {k: v for k, v in data.items() if k not in ("nodes", "edges")}
        return cls(root=CanonicalTreeNode.from_dict(body), nodes=nodes, edges=edges)

    def to_dict(self) -> Dict[str, Any]:
        out = self.root.to_dict()
        _dump_cache(out, self.nodes, self.edges)
        return out


@dataclass
class FsmDocument:
    """UI state machine document: named states (insertion-ordered) and transitions."""
    states: Dict[str, StateConfig] = field(default_factory=dict)
    transitions: List[Transition] = field(default_factory=list)
    nodes: Optional[List[GraphNode]] = None
    edges: Optional[List[GraphEdge]] = None
    # Fields stored alongside the machine that this module does not interpret
    extra: Dict[str, Any] = field(default_factory=dict)

    kind = FSM_KIND

    @property
    def has_cache(self) -> bool:
        return self.nodes is not None and self.edges is not None

    def without_cache(self) -> "FsmDocument":
        return FsmDocument(
            states=copy.deepcopy(self.states),
            transitions=[Transition(t.from_state, t.to_state, t.trigger) for t in self.transitions],
            extra=copy.deepcopy(self.extra),
        )

    @classmethod
    def from_dict(cls, data: Any) -> "FsmDocument":
        if not isinstance(data, dict):
            logger.warning("State machine is not an object; starting from an empty machine")
            return cls()

        states: Dict[str, StateConfig] = {}
        raw_states = data.get("states")
        if isinstance(raw_states, dict):
            for name, config in raw_states.items():
                states[str(name)] = copy.deepcopy(config) if isinstance(config, dict) else {}
        elif raw_states is not None:
            logger.warning("State machine 'states' is not an object; treating as empty")

        transitions: List[Transition] = []
        raw_transitions = data.get("transitions")
        if isinstance(raw_transitions, list):
            for raw in raw_transitions:
                transition = Transition.from_dict(raw)
                if transition is None:
                    logger.warning(f"Dropping malformed transition: {raw!r}")
                    continue
                transitions.append(transition)

        nodes, edges = _parse_cache(data)
        extra = {
            k: copy.deepcopy(v) for k, v in data.items()
            if k not in ("states", "transitions", "nodes", "edges")
        }
        return cls(states=states, transitions=transitions, nodes=nodes, edges=edges, extra=extra)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = copy.deepcopy(self.extra)
        out["states"] = copy.deepcopy(self.states)
        out["transitions"] = [t.to_dict() for t in self.transitions]
        _dump_cache(out, self.nodes, self.edges)
        return out


def document_from_dict(data: Any, kind: Optional[str] = None):
    """
    Parse a canonical document from its wire format.
    Without an explicit kind, a payload with a "states" key is a state machine.
    """
    if kind is None:
        kind = FSM_KIND if isinstance(data, dict) and "states" in data else TREE_KIND
    if kind == FSM_KIND:
        return FsmDocument.from_dict(data)
    if kind == TREE_KIND:
        return TreeDocument.from_dict(data)
    raise ValueError(f"Unknown document kind: {kind}")


@dataclass
class ValidationResult:
    """Outcome of a canonical-document check. Warnings never make a result invalid."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def extend(self, other: "ValidationResult") -> "ValidationResult":
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}
