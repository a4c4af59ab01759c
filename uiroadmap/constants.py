"""
Shared layout constants for the graph editors.

These values mirror the spacing the canvas front-end expects when it renders
projected nodes. Keep them in sync with the chart builder!
"""

# Tree layout: horizontal distance between siblings, vertical distance per level
NODE_SPACING_X = 200
ROW_HEIGHT = 150

# State machine layout: fixed grid
GRID_COLUMNS = 3
GRID_SPACING_X = 250
GRID_SPACING_Y = 200

# Upper bound for tree reconstruction/validation depth
MAX_TREE_DEPTH = 100

# Graph node types
COMPONENT_NODE_TYPE = "component"
STATE_NODE_TYPE = "uiState"

# Component node data key holding the label projection added (if any)
SYNTHETIC_LABEL_KEY = "syntheticLabel"

# State types understood by the interpreter and validators
STATE_TYPE_INITIAL = "initial"
STATE_TYPE_NORMAL = "normal"
STATE_TYPE_FINAL = "final"
STATE_TYPE_ERROR = "error"

# States every UI state machine must declare
MANDATORY_STATES = ["idle", "loading", "success", "error", "empty", "disabled"]
