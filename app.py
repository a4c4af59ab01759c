"""
NiceGUI application for the UI roadmap canvas.

Renders the component-tree editor and the state-machine editor with
ui.echart. Both run through an EditorSession; the state-machine tab can
also simulate the machine.
"""

import logging
import sys

from dotenv import load_dotenv
from nicegui import ui

load_dotenv()

from uiroadmap.chart_builder import build_echart_options, state_details
from uiroadmap.config import get_layout_settings, get_log_level
from uiroadmap.editor import EditorSession
from uiroadmap.models import FSM_KIND, TREE_KIND, GraphEdge, GraphNode, Position
from uiroadmap.reconciler import EdgeChange, NodeChange
from uiroadmap.templates import default_component_tree, default_state_machine

logging.basicConfig(
    level=getattr(logging, get_log_level(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def render_editor(session: EditorSession) -> None:
    """Canvas plus edit controls for one session."""
    state = {'selected': None}

    def current_options():
        nodes, edges = session.view()
        active = session.interpreter.active_state_id if session.interpreter else None
        return build_echart_options(nodes, edges, active_state_id=active)

    def refresh_chart():
        chart.options.clear()
        chart.options.update(current_options())
        chart.update()
        issues = session.validate()
        status.text = 'Valid' if issues.valid else f"{len(issues.errors)} issue(s): {issues.errors[0]}"

    def on_change(document):
        # delivered in the commit phase, after the edit handler returned
        logger.debug(f"{session.kind} document updated")
        refresh_chart()
        refresh_simulation()

    session.set_on_change(on_change)

    def handle_point_click(e):
        if e.data_type == 'node':
            state['selected'] = e.name
            selected_label.text = f"Selected: {e.name}"

    def node_options():
        return [n.id for n in session.nodes]

    def do_connect():
        if not source_select.value or not target_select.value:
            ui.notify('Pick a source and a target', color='warning')
            return
        label = (trigger_input.value or None) if session.kind == FSM_KIND else None
        if not session.connect(source_select.value, target_select.value, label):
            ui.notify(f"Edit rejected: {session.last_rejection}", color='negative')

    def do_remove():
        node_id = state['selected']
        if not node_id:
            ui.notify('Click a node first', color='warning')
            return
        if session.apply_node_changes([NodeChange(type='remove', id=node_id)]):
            state['selected'] = None
            selected_label.text = 'Selected: -'
        else:
            ui.notify(f"Edit rejected: {session.last_rejection}", color='negative')

    def do_add():
        name = (new_name.value or '').strip()
        if not name:
            return
        if session.kind == FSM_KIND:
            node = GraphNode(id=name, type='uiState', position=Position(0, -200), data={'type': 'normal'})
            changes = [NodeChange(type='add', node=node)]
            if not session.apply_node_changes(changes):
                ui.notify(f"Edit rejected: {session.last_rejection}", color='negative')
            return
        parent = state['selected']
        if not parent:
            ui.notify('Select the parent component first', color='warning')
            return
        node = GraphNode(id=name, type='component', position=Position(0, 0), data={'type': name})
        edge = GraphEdge(id=f"e-{parent}-{name}", source=parent, target=name)
        # node and parent edge in one batch, otherwise the new node is a second root
        if not session.apply_changes([NodeChange(type='add', node=node)], [EdgeChange(type='add', edge=edge)]):
            ui.notify(f"Edit rejected: {session.last_rejection}", color='negative')

    def do_generate():
        # stand-in for AI generation: wholesale replacement with a fresh template
        template = default_state_machine() if session.kind == FSM_KIND else default_component_tree()
        session.replace_document(template)
        refresh_chart()
        refresh_simulation()

    chart = ui.echart(current_options(), on_point_click=handle_point_click).classes('w-full h-[520px]')

    with ui.row().classes('items-center gap-2'):
        selected_label = ui.label('Selected: -').classes('text-xs text-gray-400')
        source_select = ui.select(node_options(), label='From').props('dense outlined').classes('w-40')
        target_select = ui.select(node_options(), label='To').props('dense outlined').classes('w-40')
        trigger_input = ui.input('Trigger').props('dense outlined').classes('w-32')
        trigger_input.set_visibility(session.kind == FSM_KIND)
        ui.button('Connect', on_click=do_connect).props('dense')
        ui.button('Remove selected', on_click=do_remove).props('dense color=negative')
        new_name = ui.input('New node').props('dense outlined').classes('w-32')
        ui.button('Add', on_click=do_add).props('dense')
        ui.button('Regenerate', on_click=do_generate).props('flat dense icon=auto_awesome')
    status = ui.label('').classes('text-xs text-gray-400')

    transitions_column = ui.column().classes('gap-1')

    def refresh_simulation():
        source_select.options = node_options()
        target_select.options = node_options()
        source_select.update()
        target_select.update()
        transitions_column.clear()
        interpreter = session.interpreter
        if interpreter is None:
            return
        with transitions_column:
            ui.label(f"Current state: {interpreter.active_state_id}").classes('text-sm font-bold')
            for key, text in state_details(interpreter.active_state):
                ui.label(f"{key.replace('_', ' ').capitalize()}: {text}").classes('text-xs')
            if interpreter.history:
                ui.label(' -> '.join(interpreter.history)).classes('text-xs text-gray-400')
            for transition in interpreter.available_transitions:
                ui.button(
                    f"{transition.trigger or '(no trigger)'} -> {transition.to_state}",
                    on_click=lambda _, ev=transition.trigger: fire(ev),
                ).props('outline dense')
            if not interpreter.available_transitions:
                ui.label('No exit transitions available from this state.').classes('text-xs italic')

    def fire(event):
        session.trigger(event)
        refresh_chart()
        refresh_simulation()

    def toggle_simulation(e):
        if e.value:
            session.start_simulation()
        else:
            session.stop_simulation()
        refresh_chart()
        refresh_simulation()

    def do_reset():
        if session.interpreter:
            session.reset()
            refresh_chart()
            refresh_simulation()

    if session.kind == FSM_KIND:
        with ui.row().classes('items-center gap-2'):
            ui.switch('Simulate flow', on_change=toggle_simulation)
            ui.button('Reset', on_click=do_reset).props('flat dense icon=restart_alt')

    refresh_chart()
    refresh_simulation()


@ui.page('/')
def index():
    settings = get_layout_settings()
    tree_session = EditorSession(kind=TREE_KIND, settings=settings)
    fsm_session = EditorSession(kind=FSM_KIND, settings=settings)

    with ui.tabs().classes('w-full') as tabs:
        tree_tab = ui.tab('Component Tree')
        fsm_tab = ui.tab('State Machine')
    with ui.tab_panels(tabs, value=tree_tab).classes('w-full'):
        with ui.tab_panel(tree_tab):
            render_editor(tree_session)
        with ui.tab_panel(fsm_tab):
            render_editor(fsm_session)


if __name__ in {"__main__", "__mp_main__"}:
    ui.run(
        title='UI Roadmap Canvas',
        port=8081,
        reload=not getattr(sys, 'frozen', False),
        dark=True,
    )
