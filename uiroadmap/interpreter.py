"""
State machine interpreter used to simulate a UI state machine.

The interpreter replays a canonical FsmDocument in memory. It never mutates
the document: it keeps its own active state, visit history and last event.

Initial state: the state typed "initial", else the first declared state,
else None for an empty machine. A trigger that matches no transition out of
the active state is a no-op returning False. When several transitions match,
the first declared one wins.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from uiroadmap.constants import STATE_TYPE_INITIAL
from uiroadmap.models import FsmDocument, StateConfig, Transition

logger = logging.getLogger(__name__)

UNINITIALIZED = "uninitialized"
READY = "ready"


class FsmInterpreter:
    """
    Simulation runtime for a UI state machine.

    Attributes:
        active_state_id: name of the current state (None for an empty machine)
        history: states left so far, oldest first
        last_event: the last event that caused a transition
        status: "uninitialized" while constructing, then "ready"
    """

    def __init__(self, document: FsmDocument):
        self.status = UNINITIALIZED
        self.active_state_id: Optional[str] = None
        self.history: List[str] = []
        self.last_event: Optional[str] = None
        self._states: Dict[str, StateConfig] = {}
        self._transitions: List[Transition] = []
        self.load(document)
        self.status = READY

    def load(self, document: FsmDocument) -> None:
        """
        (Re)load the machine definition. The active state and history are kept
        when the active state still exists, otherwise the machine resets.
        """
        # own copies, so later edits to the document cannot leak in
        self._states = copy.deepcopy(document.states)
        self._transitions = []
        for t in document.transitions:
            if t.from_state in self._states and t.to_state in self._states:
                self._transitions.append(Transition(t.from_state, t.to_state, t.trigger))
            else:
                logger.warning(f"Ignoring transition {t.from_state} -> {t.to_state} ({t.trigger!r}): unknown state")

        if self.active_state_id not in self._states:
            self.reset()

    def _initial_state_id(self) -> Optional[str]:
        for name, config in self._states.items():
            if config.get("type") == STATE_TYPE_INITIAL:
                return name
        return next(iter(self._states), None)

    @property
    def initial_state_id(self) -> Optional[str]:
        return self._initial_state_id()

    @property
    def active_state(self) -> Optional[Dict[str, Any]]:
        """Config of the active state, with its name under "id"."""
        if self.active_state_id is None:
            return None
        config = self._states.get(self.active_state_id)
        if config is None:
            return None
        return {**config, "id": self.active_state_id}

    @property
    def available_transitions(self) -> List[Transition]:
        """Transitions leaving the active state, in document order."""
        return [t for t in self._transitions if t.from_state == self.active_state_id]

    @property
    def available_events(self) -> List[str]:
        """Distinct triggers that would currently fire, in document order."""
        events: List[str] = []
        for t in self.available_transitions:
            if t.trigger not in events:
                events.append(t.trigger)
        return events

    def can_trigger(self, event: str) -> bool:
        return any(t.trigger == event for t in self.available_transitions)

    def trigger(self, event: str) -> bool:
        """
        Fire an event. Returns True if a transition was taken.
        """
        transition = next(
            (t for t in self._transitions if t.from_state == self.active_state_id and t.trigger == event),
            None,
        )
        if transition is None:
            logger.debug(f"No transition from {self.active_state_id!r} on {event!r}")
            return False

        if self.active_state_id is not None:
            self.history.append(self.active_state_id)
        self.active_state_id = transition.to_state
        self.last_event = event
        return True

    def reset(self) -> None:
        """Return to the initial state and forget history."""
        self.active_state_id = self._initial_state_id()
        self.history = []
        self.last_event = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "active_state_id": self.active_state_id,
            "history": list(self.history),
            "last_event": self.last_event,
            "available_events": self.available_events,
        }


def create_interpreter(document) -> FsmInterpreter:
    """Create an interpreter from an FsmDocument or its wire-format dict."""
    if isinstance(document, dict):
        document = FsmDocument.from_dict(document)
    return FsmInterpreter(document)
