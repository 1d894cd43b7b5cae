"""
Layered auto-layout for the DAG canvas.

Kahn's algorithm gives a topological order; each node's layer is the longest
path from any source. Layers map to one axis and the order inside a layer to
the other. The result is a new node list: same ids, same order, new x/y.
"""

from collections import deque
from dataclasses import replace
from typing import Dict, List, Sequence

from dagcanvas.graph import Edge, Node
from dagcanvas.utils import clamp_number

DIRECTION_LR = "LR"
DIRECTION_TB = "TB"

DEFAULT_SPACING_X = 320
DEFAULT_SPACING_Y = 160
SPACING_X_RANGE = (180, 520)
SPACING_Y_RANGE = (120, 420)


def topological_layers(nodes: Sequence[Node], edges: Sequence[Edge]) -> Dict[str, int]:
    """
    Map node id -> layer.

    Edges with a missing endpoint are ignored. Nodes that never reach zero
    in-degree (only possible with a cycle) stay on layer 0.
    """
    ids = [n.id for n in nodes]
    known = set(ids)
    indegree: Dict[str, int] = {nid: 0 for nid in ids}
    adjacency: Dict[str, List[str]] = {nid: [] for nid in ids}
    for edge in edges:
        if edge.source not in known or edge.target not in known:
            continue
        indegree[edge.target] += 1
        adjacency[edge.source].append(edge.target)

    queue = deque(nid for nid in ids if indegree[nid] == 0)
    order: List[str] = []
    while queue:
        current = queue.popleft()
        order.append(current)
        for nxt in adjacency[current]:
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                queue.append(nxt)

    layers: Dict[str, int] = {nid: 0 for nid in ids}
    for nid in order:
        base = layers[nid]
        for nxt in adjacency[nid]:
            layers[nxt] = max(layers[nxt], base + 1)
    return layers


def auto_layout(nodes: Sequence[Node], edges: Sequence[Edge], direction: str = DIRECTION_LR,
                spacing_x: float = DEFAULT_SPACING_X,
                spacing_y: float = DEFAULT_SPACING_Y) -> List[Node]:
    """Lay nodes out left-to-right ("LR") or top-to-bottom ("TB")."""
    spacing_x = clamp_number(spacing_x, *SPACING_X_RANGE)
    spacing_y = clamp_number(spacing_y, *SPACING_Y_RANGE)
    layers = topological_layers(nodes, edges)

    groups: Dict[int, List[Node]] = {}
    for node in nodes:
        groups.setdefault(layers[node.id], []).append(node)

    positioned: Dict[str, Node] = {}
    for layer in sorted(groups):
        # Stable sort keeps the current vertical order inside each layer
        members = sorted(groups[layer], key=lambda n: n.y)
        for index, node in enumerate(members):
            if direction == DIRECTION_TB:
                x, y = index * spacing_x, layer * spacing_y
            else:
                x, y = layer * spacing_x, index * spacing_y
            positioned[node.id] = replace(node, x=x, y=y)

    return [positioned.get(n.id, n) for n in nodes]
