"""
Graph visualizer that produces the SVG scene for the canvas.

This implementation uses NetworkX to hold the drawable graph, and the output is
a plain SVG string that NiceGUI's interactive_image renders as its content
layer. All geometry is in graph space inside one transformed group, so the
viewport is applied by a single translate/scale.

Node colors come from the category of the first tag (see utils.category_style).
"""

from html import escape
from typing import Any, Dict, Optional, Tuple

import networkx as nx

from dagcanvas.edit.constants import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    EDGE_CURVE_MIN_OFFSET,
    GRID_SIZE,
    NODE_HEIGHT,
    NODE_WIDTH,
)
from dagcanvas.graph import DagGraph
from dagcanvas.utils import category_style
from dagcanvas.viewport import DEFAULT_VIEWPORT, Viewport

EDGE_COLOR = "rgba(255,255,255,0.28)"
EDGE_SELECTED_COLOR = "rgba(255,255,255,0.85)"
PREVIEW_COLOR = "rgba(139,243,255,0.7)"
BACKGROUND = "#07080a"
TITLE_MAX_CHARS = 22


def edge_path(source: Tuple[float, float], target: Tuple[float, float]) -> str:
    """Cubic bezier from a source node's right anchor to a target node's left anchor."""
    sx, sy = source[0] + NODE_WIDTH, source[1] + NODE_HEIGHT / 2
    tx, ty = target[0], target[1] + NODE_HEIGHT / 2
    dx = max(EDGE_CURVE_MIN_OFFSET, abs(tx - sx) * 0.5)
    return f"M {sx:g} {sy:g} C {sx + dx:g} {sy:g}, {tx - dx:g} {ty:g}, {tx:g} {ty:g}"


def _truncate(text: str, limit: int = TITLE_MAX_CHARS) -> str:
    return text if len(text) <= limit else text[:limit - 1] + "…"


class GraphVisualizer:
    """
    Build the SVG scene (str) for a DAG canvas.

    Expected inputs:
      graph     DagGraph with positioned nodes
      viewport  Viewport applied to the whole scene
      selection ids of the selected node / edge, if any
      connect_from / pointer
                source node of an in-progress connect gesture and the last
                pointer location in graph space, drawn as a dashed preview
    """

    def __init__(self):
        self.G = nx.DiGraph()

    def build_graph(self, graph: DagGraph) -> nx.DiGraph:
        """Rebuild the drawable networkx graph; edges with a missing endpoint are dropped."""
        self.G = nx.DiGraph()
        for node in graph.nodes:
            self.G.add_node(node.id, node=node)
        for edge in graph.edges:
            if edge.source in self.G.nodes and edge.target in self.G.nodes:
                self.G.add_edge(edge.source, edge.target, id=edge.id)
        return self.G

    def _grid(self, viewport: Viewport) -> str:
        size = GRID_SIZE * viewport.zoom
        return (
            f'<defs><pattern id="grid" width="{size:g}" height="{size:g}" patternUnits="userSpaceOnUse" '
            f'x="{viewport.x % size:g}" y="{viewport.y % size:g}">'
            f'<circle cx="1" cy="1" r="1" fill="rgba(255,255,255,0.08)"/></pattern>'
            f'<marker id="arrow" viewBox="0 0 10 10" refX="9" refY="5" markerWidth="7" markerHeight="7" '
            f'orient="auto-start-reverse"><path d="M 0 0 L 10 5 L 0 10 z" fill="{EDGE_COLOR}"/></marker></defs>'
        )

    def _node(self, node_id: str, attrs: Dict[str, Any], selected: bool) -> str:
        node = attrs["node"]
        style = category_style(node.tags, selected=selected)
        parts = [
            f'<g data-node="{escape(node_id)}">',
            f'<rect x="{node.x:g}" y="{node.y:g}" width="{NODE_WIDTH}" height="{NODE_HEIGHT}" rx="14" '
            f'fill="{style["fill"]}" stroke="{style["stroke"]}" stroke-width="{2 if selected else 1}"/>',
            f'<text x="{node.x + 12:g}" y="{node.y + 24:g}" fill="{style["text"]}" font-size="13" '
            f'font-family="sans-serif">{escape(_truncate(node.title))}</text>',
        ]
        footer = ", ".join(node.tags or ())
        if node.score is not None:
            footer = f"{footer}  ·  {node.score:g}" if footer else f"{node.score:g}"
        if footer:
            parts.append(
                f'<text x="{node.x + 12:g}" y="{node.y + 43:g}" fill="rgba(255,255,255,0.45)" '
                f'font-size="10" font-family="sans-serif">{escape(_truncate(footer, 28))}</text>'
            )
        parts.append('</g>')
        return "".join(parts)

    def generate_svg(self, graph: DagGraph, viewport: Viewport = DEFAULT_VIEWPORT,
                     width: float = CANVAS_WIDTH, height: float = CANVAS_HEIGHT,
                     selected_node_id: Optional[str] = None,
                     selected_edge_id: Optional[str] = None,
                     connect_from: Optional[str] = None,
                     pointer: Optional[Tuple[float, float]] = None) -> str:
        G = self.build_graph(graph)

        edges = []
        for src, tgt, attrs in G.edges(data=True):
            s, t = G.nodes[src]["node"], G.nodes[tgt]["node"]
            selected = attrs["id"] == selected_edge_id
            edges.append(
                f'<path data-edge="{escape(attrs["id"])}" d="{edge_path((s.x, s.y), (t.x, t.y))}" fill="none" '
                f'stroke="{EDGE_SELECTED_COLOR if selected else EDGE_COLOR}" '
                f'stroke-width="{3 if selected else 1.5}" marker-end="url(#arrow)"/>'
            )

        preview = ""
        if connect_from and connect_from in G.nodes and pointer is not None:
            s = G.nodes[connect_from]["node"]
            preview = (
                f'<path d="{edge_path((s.x, s.y), (pointer[0], pointer[1] - NODE_HEIGHT / 2))}" fill="none" '
                f'stroke="{PREVIEW_COLOR}" stroke-width="2" stroke-dasharray="6 6"/>'
            )

        nodes = [
            self._node(nid, attrs, nid == selected_node_id or nid == connect_from)
            for nid, attrs in G.nodes(data=True)
        ]

        return (
            f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {width:g} {height:g}" '
            f'width="{width:g}" height="{height:g}">'
            f'{self._grid(viewport)}'
            f'<rect width="100%" height="100%" fill="{BACKGROUND}"/>'
            f'<rect width="100%" height="100%" fill="url(#grid)"/>'
            f'<g transform="translate({viewport.x:g} {viewport.y:g}) scale({viewport.zoom:g})">'
            f'{"".join(edges)}{preview}{"".join(nodes)}'
            f'</g></svg>'
        )
