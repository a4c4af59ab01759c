import pytest

from uiroadmap.interpreter import FsmInterpreter, create_interpreter
from uiroadmap.models import FsmDocument, Transition
from uiroadmap.templates import default_state_machine


@pytest.fixture
def machine():
    return {
        "states": {
            "idle": {"type": "initial"},
            "loading": {"visual_changes": "Spinner"},
            "success": {"type": "final"},
            "error": {"type": "error", "messaging": "Retry"},
        },
        "transitions": [
            {"from": "idle", "to": "loading", "trigger": "submit"},
            {"from": "loading", "to": "success", "trigger": "resolve"},
            {"from": "loading", "to": "error", "trigger": "reject"},
            {"from": "error", "to": "loading", "trigger": "retry"},
        ],
    }


def test_starts_in_state_typed_initial(machine):
    interpreter = create_interpreter(machine)
    assert interpreter.status == "ready"
    assert interpreter.active_state_id == "idle"
    assert interpreter.active_state == {"type": "initial", "id": "idle"}


def test_falls_back_to_first_declared_state():
    interpreter = create_interpreter({"states": {"b": {}, "a": {}}, "transitions": []})
    assert interpreter.active_state_id == "b"


def test_initial_type_wins_over_declaration_order():
    interpreter = create_interpreter({"states": {"a": {}, "b": {"type": "initial"}}})
    assert interpreter.active_state_id == "b"


def test_empty_machine_has_no_active_state():
    interpreter = create_interpreter({"states": {}, "transitions": []})
    assert interpreter.active_state_id is None
    assert interpreter.active_state is None
    assert interpreter.available_transitions == []
    assert interpreter.trigger("anything") is False


def test_trigger_moves_and_records_history(machine):
    interpreter = create_interpreter(machine)

    assert interpreter.trigger("submit") is True
    assert interpreter.trigger("reject") is True
    assert interpreter.trigger("retry") is True

    assert interpreter.active_state_id == "loading"
    assert interpreter.history == ["idle", "loading", "error"]
    assert interpreter.last_event == "retry"


def test_unknown_event_is_a_noop(machine):
    interpreter = create_interpreter(machine)

    assert interpreter.trigger("resolve") is False

    assert interpreter.active_state_id == "idle"
    assert interpreter.history == []
    assert interpreter.last_event is None


def test_available_transitions_follow_document_order(machine):
    interpreter = create_interpreter(machine)
    interpreter.trigger("submit")

    assert interpreter.available_transitions == [
        Transition("loading", "success", "resolve"),
        Transition("loading", "error", "reject"),
    ]
    assert interpreter.available_events == ["resolve", "reject"]
    assert interpreter.can_trigger("reject")
    assert not interpreter.can_trigger("submit")


def test_final_state_has_no_exits(machine):
    interpreter = create_interpreter(machine)
    interpreter.trigger("submit")
    interpreter.trigger("resolve")

    assert interpreter.active_state_id == "success"
    assert interpreter.available_transitions == []


def test_first_declared_transition_wins():
    interpreter = create_interpreter({
        "states": {"a": {}, "b": {}, "c": {}},
        "transitions": [
            {"from": "a", "to": "b", "trigger": "go"},
            {"from": "a", "to": "c", "trigger": "go"},
        ],
    })
    interpreter.trigger("go")
    assert interpreter.active_state_id == "b"


def test_self_transition_is_recorded():
    interpreter = create_interpreter({
        "states": {"a": {}},
        "transitions": [{"from": "a", "to": "a", "trigger": "poll"}],
    })
    assert interpreter.trigger("poll") is True
    assert interpreter.active_state_id == "a"
    assert interpreter.history == ["a"]


def test_transitions_to_unknown_states_are_ignored():
    interpreter = create_interpreter({
        "states": {"a": {}},
        "transitions": [{"from": "a", "to": "ghost", "trigger": "go"}],
    })
    assert interpreter.available_transitions == []
    assert interpreter.trigger("go") is False


def test_reset_returns_to_initial(machine):
    interpreter = create_interpreter(machine)
    interpreter.trigger("submit")
    interpreter.trigger("reject")

    interpreter.reset()

    assert interpreter.active_state_id == "idle"
    assert interpreter.history == []
    assert interpreter.last_event is None


def test_interpreter_does_not_mutate_document(machine):
    doc = FsmDocument.from_dict(machine)
    interpreter = FsmInterpreter(doc)
    interpreter.trigger("submit")

    interpreter.active_state["visual_changes"] = "changed"
    assert doc.states["loading"]["visual_changes"] == "Spinner"
    assert doc.to_dict()["states"] == machine["states"]


def test_reload_keeps_active_state_when_it_still_exists(machine):
    doc = FsmDocument.from_dict(machine)
    interpreter = FsmInterpreter(doc)
    interpreter.trigger("submit")

    doc.transitions.append(Transition("loading", "idle", "cancel"))
    interpreter.load(doc)

    assert interpreter.active_state_id == "loading"
    assert interpreter.history == ["idle"]
    assert interpreter.can_trigger("cancel")


def test_reload_resets_when_active_state_disappears(machine):
    doc = FsmDocument.from_dict(machine)
    interpreter = FsmInterpreter(doc)
    interpreter.trigger("submit")

    del doc.states["loading"]
    interpreter.load(doc)

    assert interpreter.active_state_id == "idle"
    assert interpreter.history == []


def test_snapshot(machine):
    interpreter = create_interpreter(machine)
    interpreter.trigger("submit")
    assert interpreter.snapshot() == {
        "status": "ready",
        "active_state_id": "loading",
        "history": ["idle"],
        "last_event": "submit",
        "available_events": ["resolve", "reject"],
    }


def test_default_template_walks_request_lifecycle():
    interpreter = FsmInterpreter(default_state_machine())
    for event in ("submit", "reject", "retry", "resolve", "reset"):
        assert interpreter.trigger(event), event
    assert interpreter.active_state_id == "idle"
