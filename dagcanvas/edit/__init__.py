"""
Canvas interaction for the DAG canvas.

This package provides pointer/keyboard editing:
- InteractionController: interaction state and hit detection
- constants: box geometry shared with the SVG scene
- handlers: NiceGUI event handlers for app.py integration

Usage:
    from dagcanvas.edit import InteractionController
    from dagcanvas.edit.handlers import setup_edit_handlers
"""

from dagcanvas.edit.constants import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    DRAG_THRESHOLD,
    EDGE_HOVER_TOLERANCE,
    NODE_HEIGHT,
    NODE_WIDTH,
)
from dagcanvas.edit.controller import (
    MODE_CONNECT,
    MODE_SELECT,
    DragState,
    InteractionController,
    Selection,
)

__all__ = [
    'InteractionController',
    'DragState',
    'Selection',
    'MODE_SELECT',
    'MODE_CONNECT',
    'NODE_WIDTH',
    'NODE_HEIGHT',
    'DRAG_THRESHOLD',
    'EDGE_HOVER_TOLERANCE',
    'CANVAS_WIDTH',
    'CANVAS_HEIGHT',
]
