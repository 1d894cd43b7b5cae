"""
Edit Handlers - NiceGUI event handlers for the canvas.

Keeps event unpacking out of app.py: each handler normalizes a NiceGUI
event payload into plain screen coordinates and forwards it to the
InteractionController, then asks the page to redraw.
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from nicegui import events

from dagcanvas.edit.controller import InteractionController

logger = logging.getLogger(__name__)


def _event_point(raw: Any) -> Optional[Tuple[float, float]]:
    """Pull (x, y) out of a mouse/wheel payload in any of the shapes NiceGUI emits."""
    if isinstance(raw, (list, tuple)) and len(raw) >= 2:
        return float(raw[0]), float(raw[1])
    if isinstance(raw, dict):
        x = raw.get('offsetX', raw.get('image_x', raw.get('x')))
        y = raw.get('offsetY', raw.get('image_y', raw.get('y')))
        if x is None or y is None:
            return None
        return float(x), float(y)
    return None


def setup_edit_handlers(controller: InteractionController, refresh_canvas: Callable[[], None]):
    """
    Set up canvas event handlers.

    Args:
        controller: InteractionController for the open canvas
        refresh_canvas: Function that redraws the canvas and side panels

    Returns:
        Dict with handler functions for binding to UI events
    """

    def handle_mouse(e: events.MouseEventArguments):
        """interactive_image mouse events: down, move, up, double click."""
        x, y = e.image_x, e.image_y
        if e.type == 'mousedown':
            controller.pointer_down(x, y)
        elif e.type == 'mousemove':
            controller.pointer_move(x, y)
        elif e.type == 'mouseup':
            controller.pointer_up(x, y)
        elif e.type == 'dblclick':
            controller.double_click(x, y)
        else:
            return
        refresh_canvas()

    def handle_wheel(e: events.GenericEventArguments):
        raw = e.args if hasattr(e, 'args') else e
        point = _event_point(raw)
        if point is None:
            return
        delta_y = raw.get('deltaY', 0) if isinstance(raw, dict) else 0
        controller.wheel(point[0], point[1], float(delta_y or 0))
        refresh_canvas()

    def handle_keyboard(e: events.KeyEventArguments):
        """Escape resets, Delete/Backspace deletes the selection."""
        if not e.action.keydown:
            return
        # ui.keyboard already ignores keys typed into inputs and textareas
        controller.key(e.key.name, text_input_focused=False)
        refresh_canvas()

    return {
        'handle_mouse': handle_mouse,
        'handle_wheel': handle_wheel,
        'handle_keyboard': handle_keyboard,
    }
