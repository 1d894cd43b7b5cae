"""
Shared constants for canvas interaction and rendering.

Used by the interaction controller (hit testing) and by the SVG scene
builder (drawing), so boxes are hit exactly where they are drawn.
"""

# Node box size in graph units, anchored at the node's (x, y)
NODE_WIDTH = 140
NODE_HEIGHT = 56

# Manhattan distance in screen pixels before a node press becomes a drag
DRAG_THRESHOLD = 4

# Distance in screen pixels to detect edge hover/click
EDGE_HOVER_TOLERANCE = 8

# Minimum horizontal control-point offset for edge curves
EDGE_CURVE_MIN_OFFSET = 80

# Dot grid spacing in graph units
GRID_SIZE = 44

# Default canvas size in screen pixels
CANVAS_WIDTH = 1600
CANVAS_HEIGHT = 900
