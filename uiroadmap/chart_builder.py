"""
ECharts options builder for the editor canvases.

Converts projected nodes/edges into an ECharts 'graph' series with fixed
positions (layout 'none'), so what the user arranges is what gets rendered.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from uiroadmap.constants import STATE_NODE_TYPE
from uiroadmap.models import GraphEdge, GraphNode

BACKGROUND_COLOR = '#1e1b18'
COMPONENT_COLOR = '#60a5fa'
STATE_COLOR = '#eab308'
ACTIVE_COLOR = '#22c55e'
EDGE_COLOR = '#94a3b8'

STATE_DETAIL_KEYS = ('visual_changes', 'interaction_changes', 'messaging')


def state_details(config: Optional[Dict[str, Any]]) -> List[Tuple[str, str]]:
    """(key, text) pairs describing a UI state, for tooltips and the simulation panel."""
    if not config:
        return []
    return [(key, str(config[key])) for key in STATE_DETAIL_KEYS if config.get(key)]


def _node_entry(node: GraphNode, active_state_id: Optional[str]) -> Dict[str, Any]:
    is_state = node.type == STATE_NODE_TYPE
    is_active = is_state and node.id == active_state_id
    label = str(node.data.get('label') or node.id)

    color = STATE_COLOR if is_state else COMPONENT_COLOR
    item_style = {'color': color, 'borderColor': 'transparent', 'borderWidth': 0}
    if is_active:
        item_style.update({'color': ACTIVE_COLOR, 'borderColor': '#ffffff', 'borderWidth': 4})

    tooltip_lines = [label]
    if is_state:
        for key, text in state_details(node.data):
            tooltip_lines.append(f"<span style='color:#999;font-size:11px'>{key}: {text}</span>")
    else:
        if node.data.get('binding'):
            tooltip_lines.append(f"<span style='color:#999;font-size:11px'>{node.data['binding']}</span>")
        if node.data.get('validation'):
            tooltip_lines.append(f"<span style='color:#999;font-size:11px'>{', '.join(node.data['validation'])}</span>")

    return {
        'id': node.id,
        'name': node.id,
        'value': label,
        'x': node.position.x,
        'y': node.position.y,
        'symbol': 'roundRect' if is_state else 'rect',
        'symbolSize': [140, 44] if is_state else [120, 36],
        'itemStyle': item_style,
        'label': {'show': True, 'formatter': label, 'color': '#0f172a', 'fontWeight': 'bold'},
        'draggable': True,
        'tooltip': {'formatter': '<br/>'.join(tooltip_lines)},
    }


def build_echart_options(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    active_state_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build ECharts options for one editor canvas.

    Args:
        nodes: Projected graph nodes (positions are used as-is)
        edges: Projected graph edges; labels are drawn on the link
        active_state_id: Simulated state to highlight, if any

    Returns:
        ECharts options dict ready for ui.echart()
    """
    node_ids = {n.id for n in nodes}
    e_nodes = [_node_entry(n, active_state_id) for n in nodes]

    e_links: List[Dict[str, Any]] = []
    for e in edges:
        if e.source not in node_ids or e.target not in node_ids:
            continue
        highlighted = e.animated or (active_state_id is not None and e.source == active_state_id)
        e_links.append({
            'source': e.source,
            'target': e.target,
            'value': e.label or '',
            'symbol': ['none', 'arrow'],
            'label': {'show': bool(e.label), 'formatter': e.label or ''},
            'lineStyle': {
                'color': ACTIVE_COLOR if highlighted else EDGE_COLOR,
                'width': 3 if highlighted else 1.5,
                'curveness': 0.1,
            },
        })

    return {
        'backgroundColor': BACKGROUND_COLOR,
        'tooltip': {},
        'animationDurationUpdate': 0,
        'series': [{
            'type': 'graph',
            'layout': 'none',
            'roam': True,
            'edgeSymbolSize': 10,
            'data': e_nodes,
            'links': e_links,
        }],
    }
