"""
Default documents used when an editor mounts without server data.
"""

from uiroadmap.constants import STATE_TYPE_ERROR, STATE_TYPE_INITIAL, STATE_TYPE_NORMAL
from uiroadmap.models import CanonicalTreeNode, FsmDocument, Transition, TreeDocument


def default_component_tree() -> TreeDocument:
    """A page with a header and a bound form."""
    form = CanonicalTreeNode(
        kind="Form",
        id="form",
        binding="POST /api/items",
        children=[
            CanonicalTreeNode(kind="TextInput", id="name-input", binding="item.name", validation_tags=["required"]),
            CanonicalTreeNode(kind="Button", id="submit", props={"label": "Save"}),
        ],
    )
    root = CanonicalTreeNode(
        kind="Page",
        id="root",
        children=[
            CanonicalTreeNode(kind="Header", id="header", props={"title": "New item"}),
            form,
        ],
    )
    return TreeDocument(root=root)


def default_state_machine() -> FsmDocument:
    """The six mandatory UI states wired into the usual request lifecycle."""
    states = {
        "idle": {
            "type": STATE_TYPE_INITIAL,
            "visual_changes": "Form enabled, no indicators",
            "interaction_changes": "All inputs editable",
        },
        "loading": {
            "type": STATE_TYPE_NORMAL,
            "visual_changes": "Spinner on submit button",
            "interaction_changes": "Inputs and submit disabled",
        },
        "success": {
            "type": STATE_TYPE_NORMAL,
            "visual_changes": "Confirmation banner",
            "interaction_changes": "Form reset, inputs editable",
        },
        "error": {
            "type": STATE_TYPE_ERROR,
            "visual_changes": "Error banner, invalid fields outlined",
            "interaction_changes": "Inputs editable, retry available",
            "messaging": "Explain what failed and how to retry",
        },
        "empty": {
            "type": STATE_TYPE_NORMAL,
            "visual_changes": "Empty-state illustration",
            "interaction_changes": "Primary call to action only",
        },
        "disabled": {
            "type": STATE_TYPE_NORMAL,
            "visual_changes": "Form greyed out",
            "interaction_changes": "No interaction",
        },
    }
    transitions = [
        Transition("idle", "loading", "submit"),
        Transition("loading", "success", "resolve"),
        Transition("loading", "error", "reject"),
        Transition("loading", "empty", "no_data"),
        Transition("error", "loading", "retry"),
        Transition("success", "idle", "reset"),
        Transition("idle", "disabled", "lock"),
        Transition("disabled", "idle", "unlock"),
    ]
    return FsmDocument(states=states, transitions=transitions)
