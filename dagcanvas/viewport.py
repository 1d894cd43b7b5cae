"""
Viewport transform between graph space and screen space.

    screen = graph * zoom + (x, y)

All functions are pure and return new Viewport values.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from dagcanvas.graph import Node
from dagcanvas.utils import clamp_number

Point = Tuple[float, float]

# Zoom range accepted from a stored document
DOCUMENT_MIN_ZOOM = 0.2
DOCUMENT_MAX_ZOOM = 2.5

# Zoom range reachable through wheel/toolbar gestures
MIN_ZOOM = 0.25
MAX_ZOOM = 2.5

WHEEL_ZOOM_IN = 1.08
WHEEL_ZOOM_OUT = 0.92
BUTTON_ZOOM_STEP = 1.12

FIT_PADDING = 180
FIT_MIN_ZOOM = 0.35
FIT_MAX_ZOOM = 1.2


@dataclass(frozen=True)
class Viewport:
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0

    def to_dict(self):
        return {"x": self.x, "y": self.y, "zoom": self.zoom}


DEFAULT_VIEWPORT = Viewport()


def screen_to_graph(point: Point, viewport: Viewport) -> Point:
    return ((point[0] - viewport.x) / viewport.zoom, (point[1] - viewport.y) / viewport.zoom)


def graph_to_screen(point: Point, viewport: Viewport) -> Point:
    return (point[0] * viewport.zoom + viewport.x, point[1] * viewport.zoom + viewport.y)


def pan(origin: Viewport, dx: float, dy: float) -> Viewport:
    """Translate the viewport captured at gesture start by a raw screen delta."""
    return Viewport(origin.x + dx, origin.y + dy, origin.zoom)


def zoom_at(viewport: Viewport, screen_point: Point, factor: float,
            min_zoom: float = MIN_ZOOM, max_zoom: float = MAX_ZOOM) -> Viewport:
    """
    Zoom by factor while keeping the graph point under screen_point fixed.
    """
    next_zoom = clamp_number(viewport.zoom * factor, min_zoom, max_zoom)
    gx, gy = screen_to_graph(screen_point, viewport)
    return Viewport(
        x=screen_point[0] - gx * next_zoom,
        y=screen_point[1] - gy * next_zoom,
        zoom=next_zoom,
    )


def wheel_factor(delta_y: float) -> float:
    """Scrolling up (negative delta) zooms in."""
    return WHEEL_ZOOM_IN if -delta_y > 0 else WHEEL_ZOOM_OUT


def zoom_step(viewport: Viewport, zoom_in: bool, width: float, height: float) -> Viewport:
    """Toolbar zoom, anchored at the canvas centre."""
    factor = BUTTON_ZOOM_STEP if zoom_in else 1 / BUTTON_ZOOM_STEP
    return zoom_at(viewport, (width / 2, height / 2), factor)


def is_default_viewport(viewport: Viewport) -> bool:
    return abs(viewport.x) <= 1 and abs(viewport.y) <= 1 and abs(viewport.zoom - 1) <= 0.001


def clamp_document_zoom(zoom: float) -> float:
    return clamp_number(zoom, DOCUMENT_MIN_ZOOM, DOCUMENT_MAX_ZOOM)


def fit_to_view(nodes: Iterable[Node], width: float, height: float,
                padding: float = FIT_PADDING) -> Optional[Viewport]:
    """
    Viewport that frames every node position inside a width x height canvas.

    Returns None when there is nothing to frame or the canvas has no area.
    """
    if width <= 1 or height <= 1:
        return None

    nodes = list(nodes)
    if not nodes:
        return None

    min_x = min(n.x for n in nodes)
    min_y = min(n.y for n in nodes)
    max_x = max(n.x for n in nodes)
    max_y = max(n.y for n in nodes)

    box_w = max(1.0, max_x - min_x + padding)
    box_h = max(1.0, max_y - min_y + padding)
    zoom = clamp_number(min(width / box_w, height / box_h), FIT_MIN_ZOOM, FIT_MAX_ZOOM)

    cx = (min_x + max_x) / 2
    cy = (min_y + max_y) / 2
    return Viewport(x=width / 2 - cx * zoom, y=height / 2 - cy * zoom, zoom=zoom)
