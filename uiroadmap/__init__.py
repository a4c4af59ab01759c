"""
UI roadmap canvas.

Keeps a canonical UI document (component tree or state machine) in sync with
an editable node-link graph, and replays state machines for simulation.

Usage:
    from uiroadmap import project, reconcile, create_interpreter, EditorSession
"""

__version__ = "0.1.0"

from uiroadmap.models import (
    CanonicalTreeNode,
    TreeDocument,
    FsmDocument,
    Transition,
    GraphNode,
    GraphEdge,
    Position,
    ValidationResult,
)
from uiroadmap.graph_utils import StructuralAmbiguityError
from uiroadmap.projection import project
from uiroadmap.reconciler import GraphReconciler, NodeChange, EdgeChange, reconcile
from uiroadmap.interpreter import FsmInterpreter, create_interpreter
from uiroadmap.editor import EditorSession

__all__ = [
    'CanonicalTreeNode',
    'TreeDocument',
    'FsmDocument',
    'Transition',
    'GraphNode',
    'GraphEdge',
    'Position',
    'ValidationResult',
    'StructuralAmbiguityError',
    'project',
    'reconcile',
    'GraphReconciler',
    'NodeChange',
    'EdgeChange',
    'FsmInterpreter',
    'create_interpreter',
    'EditorSession',
]
