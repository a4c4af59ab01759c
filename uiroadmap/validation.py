"""
Canonical document checks.

These read the canonical document, never the editor's graph cache:
- validate_component_tree: depth limit and non-empty component types
- validate_state_machine: mandatory UI states and their required behaviour
- find_structural_warnings: graph shapes that cannot be read back unambiguously
"""

import logging
from collections import Counter
from typing import List, Sequence, Tuple

from uiroadmap.constants import MANDATORY_STATES, MAX_TREE_DEPTH
from uiroadmap.graph_utils import build_digraph, find_cycle, find_roots, tree_depth
from uiroadmap.models import (
    FSM_KIND,
    TREE_KIND,
    CanonicalTreeNode,
    FsmDocument,
    GraphEdge,
    GraphNode,
    TreeDocument,
    ValidationResult,
)

logger = logging.getLogger(__name__)


def validate_component_tree(tree, max_depth: int = MAX_TREE_DEPTH) -> ValidationResult:
    """Check a component tree (TreeDocument or root node) for depth and missing types."""
    root: CanonicalTreeNode = tree.root if isinstance(tree, TreeDocument) else tree
    result = ValidationResult()

    if tree_depth(root) > max_depth:
        result.errors.append(f"Component tree depth exceeds limit of {max_depth}")

    stack = [root]
    while stack:
        node = stack.pop()
        if not node.kind:
            label = f" ({node.id})" if node.id else ""
            result.errors.append(f"Component type cannot be empty{label}")
        stack.extend(node.children)

    return result


def duplicate_transitions(doc: FsmDocument) -> List[Tuple[str, str]]:
    """(state, event) pairs declared by more than one transition, in first-seen order."""
    counts = Counter((t.from_state, t.trigger) for t in doc.transitions)
    seen = []
    for t in doc.transitions:
        key = (t.from_state, t.trigger)
        if counts[key] > 1 and key not in seen:
            seen.append(key)
    return seen


def validate_state_machine(doc: FsmDocument) -> ValidationResult:
    """
    Check a UI state machine for completeness.

    Every mandatory state must exist and define visual and interaction
    changes; the error state must also define messaging. Transitions must
    reference declared states. Duplicate (state, event) pairs are warnings,
    since the interpreter resolves them by taking the first one.
    """
    result = ValidationResult()

    for state in MANDATORY_STATES:
        config = doc.states.get(state)
        if config is None:
            result.errors.append(f"Mandatory state '{state}' is missing")
            continue
        if not config.get("visual_changes"):
            result.errors.append(f"State '{state}' must define visual changes")
        if not config.get("interaction_changes"):
            result.errors.append(f"State '{state}' must define interaction changes")
        if state == "error" and not config.get("messaging"):
            result.errors.append("Error state must define messaging behavior")

    for t in doc.transitions:
        for endpoint in (t.from_state, t.to_state):
            if endpoint not in doc.states:
                result.errors.append(
                    f"Transition {t.from_state} -> {t.to_state} ({t.trigger!r}) references unknown state '{endpoint}'"
                )

    for state, event in duplicate_transitions(doc):
        result.warnings.append(
            f"State '{state}' has several transitions on '{event}'; the first declared one is used"
        )

    return result


def find_structural_warnings(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> List[str]:
    """Warnings for a component-tree graph that does not have exactly one root and no cycles."""
    G = build_digraph(nodes, edges)
    warnings = []
    if G.number_of_nodes() == 0:
        return warnings

    cycle = find_cycle(G)
    if cycle:
        warnings.append(f"Cycle through {', '.join(cycle)}")

    roots = find_roots(G)
    if not roots:
        warnings.append("No root component")
    elif len(roots) > 1:
        warnings.append(f"Several root components: {', '.join(roots)}")

    shared = [n for n in G.nodes if G.in_degree(n) > 1]
    if shared:
        warnings.append(f"Components with more than one parent: {', '.join(shared)}")
    return warnings


def validate_document(document) -> ValidationResult:
    """Run the checks matching the document kind."""
    kind = getattr(document, "kind", None)
    if kind == TREE_KIND:
        return validate_component_tree(document)
    if kind == FSM_KIND:
        return validate_state_machine(document)
    raise ValueError(f"Cannot validate document of type {type(document).__name__}")
