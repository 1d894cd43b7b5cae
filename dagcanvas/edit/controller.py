"""
Interaction Controller - Single source of truth for canvas interaction state.

Translates pointer and keyboard events (screen coordinates relative to the
canvas) into CanvasEngine operations, and tracks what the user is doing:

- select mode: press a node to drag/select it, press empty space to pan
- connect mode: click a source node, then a target node, to add an edge

Hit testing happens here, in graph space, against the same box geometry the
SVG scene is drawn with.
"""

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple

from dagcanvas.edit.constants import (
    DRAG_THRESHOLD,
    EDGE_HOVER_TOLERANCE,
    NODE_HEIGHT,
    NODE_WIDTH,
)
from dagcanvas.graph import Edge, Node
from dagcanvas.viewport import Viewport, pan, screen_to_graph, wheel_factor, zoom_at

if TYPE_CHECKING:
    from dagcanvas.canvas_engine import CanvasEngine

MODE_SELECT = "select"
MODE_CONNECT = "connect"

DRAG_PAN = "pan"
DRAG_NODE = "node"

DELETE_KEYS = ("Delete", "Backspace")


@dataclass
class DragState:
    """An in-progress pointer gesture, captured at pointer-down."""
    kind: str
    start_x: float
    start_y: float
    origin_viewport: Viewport
    node_id: Optional[str] = None
    node_origin: Tuple[float, float] = (0.0, 0.0)
    moved: bool = False


@dataclass
class Selection:
    node_id: Optional[str] = None
    edge_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.node_id is None and self.edge_id is None


def node_anchors(source: Node, target: Node) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """Edge endpoints: right-middle of the source box, left-middle of the target box."""
    return (
        (source.x + NODE_WIDTH, source.y + NODE_HEIGHT / 2),
        (target.x, target.y + NODE_HEIGHT / 2),
    )


def point_to_segment_distance(point: Tuple[float, float],
                              line_start: Tuple[float, float],
                              line_end: Tuple[float, float]) -> float:
    px, py = point
    x1, y1 = line_start
    x2, y2 = line_end
    dx, dy = x2 - x1, y2 - y1

    if dx == 0 and dy == 0:
        return math.hypot(px - x1, py - y1)

    t = max(0.0, min(1.0, ((px - x1) * dx + (py - y1) * dy) / (dx * dx + dy * dy)))
    return math.hypot(px - (x1 + t * dx), py - (y1 + t * dy))


class InteractionController:
    """Manages canvas interaction state and drives the engine."""

    def __init__(self, engine: "CanvasEngine"):
        self.engine = engine
        self.mode = MODE_SELECT
        self.drag: Optional[DragState] = None
        self.connect_from: Optional[str] = None
        self.selection = Selection()
        self.editor_open = False
        self.pointer: Tuple[float, float] = (0.0, 0.0)

    @property
    def state_name(self) -> str:
        if self.drag is not None:
            return "panning" if self.drag.kind == DRAG_PAN else "dragging_node"
        if self.mode == MODE_CONNECT:
            return "connecting"
        return "idle"

    @property
    def selected_node(self) -> Optional[Node]:
        if self.selection.node_id is None:
            return None
        return self.engine.graph.get_node(self.selection.node_id)

    # --- Hit testing ---

    def node_at(self, x: float, y: float) -> Optional[Node]:
        """Topmost node whose box contains the screen point."""
        gx, gy = screen_to_graph((x, y), self.engine.viewport)
        for node in reversed(self.engine.graph.nodes):
            if node.x <= gx <= node.x + NODE_WIDTH and node.y <= gy <= node.y + NODE_HEIGHT:
                return node
        return None

    def edge_at(self, x: float, y: float) -> Optional[Edge]:
        """Closest edge within EDGE_HOVER_TOLERANCE screen pixels."""
        graph = self.engine.graph
        gx, gy = screen_to_graph((x, y), self.engine.viewport)
        tolerance = EDGE_HOVER_TOLERANCE / self.engine.viewport.zoom

        closest = None
        closest_dist = float('inf')
        for edge in graph.edges:
            source, target = graph.get_node(edge.source), graph.get_node(edge.target)
            if source is None or target is None:
                continue
            start, end = node_anchors(source, target)
            dist = point_to_segment_distance((gx, gy), start, end)
            if dist <= tolerance and dist < closest_dist:
                closest, closest_dist = edge, dist
        return closest

    # --- Pointer events ---

    def pointer_down(self, x: float, y: float) -> None:
        node = self.node_at(x, y)
        if node is not None:
            self.drag = DragState(DRAG_NODE, x, y, self.engine.viewport,
                                  node_id=node.id, node_origin=(node.x, node.y))
            self.selection = Selection(node_id=node.id)
        else:
            edge = self.edge_at(x, y)
            if edge is not None:
                self.selection = Selection(edge_id=edge.id)
                self.editor_open = False
            else:
                self.drag = DragState(DRAG_PAN, x, y, self.engine.viewport)
                self.selection = Selection()
                self.editor_open = False

    def pointer_move(self, x: float, y: float) -> None:
        self.pointer = (x, y)
        self.engine.last_pointer_graph = screen_to_graph((x, y), self.engine.viewport)

        drag = self.drag
        if drag is None:
            return

        dx, dy = x - drag.start_x, y - drag.start_y
        if drag.kind == DRAG_PAN:
            self.engine.set_viewport(pan(drag.origin_viewport, dx, dy))
        else:
            if abs(dx) + abs(dy) > DRAG_THRESHOLD:
                drag.moved = True
            zoom = self.engine.viewport.zoom
            self.engine.move_node(drag.node_id, drag.node_origin[0] + dx / zoom,
                                  drag.node_origin[1] + dy / zoom)

    def pointer_up(self, x: float, y: float) -> None:
        drag = self.drag
        self.drag = None
        if drag is not None and drag.kind == DRAG_NODE and not drag.moved:
            self.node_click(drag.node_id)

    def node_click(self, node_id: str) -> None:
        if self.mode == MODE_CONNECT:
            if not self.connect_from:
                self.connect_from = node_id
                self.engine.notify("Select a target node.")
            elif self.connect_from == node_id:
                self.engine.notify("Pick a different target.")
            else:
                self.engine.add_edge(self.connect_from, node_id)
                self.connect_from = None
                self.mode = MODE_SELECT
        else:
            self.selection = Selection(node_id=node_id)
            self.editor_open = True

    def double_click(self, x: float, y: float) -> None:
        node = self.node_at(x, y)
        if node is None:
            gx, gy = screen_to_graph((x, y), self.engine.viewport)
            node = self.engine.add_node(gx, gy)
        self.selection = Selection(node_id=node.id)
        self.editor_open = True

    def wheel(self, x: float, y: float, delta_y: float) -> None:
        self.engine.set_viewport(zoom_at(self.engine.viewport, (x, y), wheel_factor(delta_y)))

    # --- Keyboard and toolbar ---

    def key(self, key: str, text_input_focused: bool = False) -> None:
        if key == "Escape":
            self.reset()
        elif key in DELETE_KEYS and not text_input_focused:
            self.delete_selection()

    def reset(self) -> None:
        """Back to idle select mode with nothing selected."""
        self.connect_from = None
        self.mode = MODE_SELECT
        self.drag = None
        self.selection = Selection()
        self.editor_open = False

    def set_mode(self, mode: str) -> None:
        if mode not in (MODE_SELECT, MODE_CONNECT):
            raise ValueError(f"Unknown mode: {mode}")
        self.mode = mode
        if mode == MODE_SELECT:
            self.connect_from = None

    def add_node(self) -> Node:
        node = self.engine.add_node_in_view()
        self.selection = Selection(node_id=node.id)
        self.editor_open = True
        return node

    def delete_selection(self) -> bool:
        deleted = False
        if self.selection.node_id is not None:
            deleted = self.engine.delete_node(self.selection.node_id)
            self.editor_open = False
            self.connect_from = None
        elif self.selection.edge_id is not None:
            deleted = self.engine.delete_edge(self.selection.edge_id)
        self.selection = Selection()
        return deleted

    def close_editor(self) -> None:
        self.editor_open = False

    def sync_with_graph(self) -> None:
        """Drop references to nodes/edges that no longer exist (after undo or import)."""
        graph = self.engine.graph
        if self.selection.node_id and not graph.has_node(self.selection.node_id):
            self.selection = Selection()
            self.editor_open = False
        if self.selection.edge_id and graph.get_edge(self.selection.edge_id) is None:
            self.selection = Selection()
        if self.connect_from and not graph.has_node(self.connect_from):
            self.connect_from = None
