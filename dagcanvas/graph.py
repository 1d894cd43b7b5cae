"""
Graph model for the DAG canvas.

Nodes and edges are immutable dataclasses held in ordered lists by a DagGraph.
Every edge insertion (manual connect, agent command, document import) goes
through DagGraph.check_edge, which in turn uses the single cycle predicate
creates_cycle().
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from dagcanvas.utils import is_number, new_id

logger = logging.getLogger(__name__)

# Fields update_node() is allowed to touch
NODE_MUTABLE_FIELDS = ("title", "x", "y", "description", "score", "tags")

# Reasons check_edge() may report
REJECT_SELF_LOOP = "self-loop"
REJECT_MISSING_ENDPOINT = "missing endpoint"
REJECT_DUPLICATE = "duplicate"
REJECT_CYCLE = "cycle"


def _clean_tags(value: Any) -> Optional[Tuple[str, ...]]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        return None
    return tuple(t for t in value if isinstance(t, str))


@dataclass(frozen=True)
class Node:
    """A titled box in graph space. x/y are device independent."""
    id: str
    title: str
    x: float
    y: float
    description: Optional[str] = None
    score: Optional[float] = None
    tags: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "title": self.title, "x": self.x, "y": self.y}
        if self.description is not None:
            data["description"] = self.description
        if self.score is not None:
            data["score"] = self.score
        if self.tags is not None:
            data["tags"] = list(self.tags)
        return data

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["Node"]:
        """
        Build a node from loosely typed data.

        Returns None when a required field is missing or mistyped. Optional
        fields with the wrong type are dropped instead.
        """
        if not isinstance(raw, dict):
            return None
        if not isinstance(raw.get("id"), str) or not isinstance(raw.get("title"), str):
            return None
        if not is_number(raw.get("x")) or not is_number(raw.get("y")):
            return None
        description = raw.get("description")
        score = raw.get("score")
        return cls(
            id=raw["id"],
            title=raw["title"],
            x=raw["x"],
            y=raw["y"],
            description=description if isinstance(description, str) else None,
            score=score if is_number(score) else None,
            tags=_clean_tags(raw.get("tags")),
        )


@dataclass(frozen=True)
class Edge:
    """Directed edge source -> target."""
    id: str
    source: str
    target: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "source": self.source, "target": self.target}

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["Edge"]:
        if not isinstance(raw, dict):
            return None
        if not all(isinstance(raw.get(k), str) for k in ("id", "source", "target")):
            return None
        return cls(id=raw["id"], source=raw["source"], target=raw["target"])


def make_node(title: str, x: float, y: float, node_id: Optional[str] = None,
              description: Optional[str] = None, score: Optional[float] = None,
              tags: Optional[Sequence[str]] = None) -> Node:
    """Create a node with a fresh id unless one is given."""
    return Node(
        id=node_id or new_id(),
        title=title,
        x=x,
        y=y,
        description=description,
        score=score,
        tags=tuple(tags) if tags is not None else None,
    )


def creates_cycle(edges: Iterable[Edge], source: str, target: str) -> bool:
    """
    Would adding source -> target close a cycle?

    It does exactly when target can already reach source. Uses an explicit
    stack so deep chains never hit the recursion limit.
    """
    if source == target:
        return True

    adjacency: Dict[str, List[str]] = {}
    for edge in edges:
        adjacency.setdefault(edge.source, []).append(edge.target)

    stack = [target]
    seen: Set[str] = set()
    while stack:
        current = stack.pop()
        if current == source:
            return True
        if current in seen:
            continue
        seen.add(current)
        stack.extend(adjacency.get(current, ()))
    return False


class DagGraph:
    """
    Ordered node/edge lists plus the mutation operations that keep them acyclic.

    A DagGraph is either the live document graph owned by the engine or a
    working copy that an agent batch mutates before it is swapped in.
    """

    def __init__(self, nodes: Iterable[Node] = (), edges: Iterable[Edge] = ()):
        self.nodes: List[Node] = list(nodes)
        self.edges: List[Edge] = list(edges)

    def __repr__(self) -> str:
        return f"DagGraph(nodes={len(self.nodes)}, edges={len(self.edges)})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DagGraph):
            return NotImplemented
        return self.nodes == other.nodes and self.edges == other.edges

    def copy(self) -> "DagGraph":
        # Nodes and edges are immutable, so a shallow copy of the lists is enough
        return DagGraph(self.nodes, self.edges)

    def snapshot(self) -> Tuple[Tuple[Node, ...], Tuple[Edge, ...]]:
        return tuple(self.nodes), tuple(self.edges)

    # --- Lookup ---

    def get_node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def node_ids(self) -> Set[str]:
        return {n.id for n in self.nodes}

    def edge_ids(self) -> Set[str]:
        return {e.id for e in self.edges}

    # --- Node operations ---

    def add_node(self, node: Node) -> Node:
        if self.has_node(node.id):
            raise ValueError(f"Node id already exists: {node.id}")
        self.nodes.append(node)
        return node

    def update_node(self, node_id: str, **changes: Any) -> Optional[Node]:
        """
        Replace a node with some fields changed.
        Returns the updated node, or None if no node has that id.
        """
        unknown = set(changes) - set(NODE_MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update node fields: {sorted(unknown)}")
        if "tags" in changes and changes["tags"] is not None:
            changes["tags"] = tuple(changes["tags"])
        for index, node in enumerate(self.nodes):
            if node.id == node_id:
                updated = replace(node, **changes)
                self.nodes[index] = updated
                return updated
        return None

    def move_node(self, node_id: str, x: float, y: float) -> Optional[Node]:
        return self.update_node(node_id, x=x, y=y)

    def delete_node(self, node_id: str) -> bool:
        """Remove a node and every edge touching it."""
        before = len(self.nodes)
        self.nodes = [n for n in self.nodes if n.id != node_id]
        if len(self.nodes) == before:
            return False
        self.edges = [e for e in self.edges if e.source != node_id and e.target != node_id]
        return True

    # --- Edge operations ---

    def check_edge(self, source: str, target: str) -> Optional[str]:
        """Return None if source -> target may be added, else the rejection reason."""
        if source == target:
            return REJECT_SELF_LOOP
        if not self.has_node(source) or not self.has_node(target):
            return REJECT_MISSING_ENDPOINT
        if any(e.source == source and e.target == target for e in self.edges):
            return REJECT_DUPLICATE
        if creates_cycle(self.edges, source, target):
            return REJECT_CYCLE
        return None

    def add_edge(self, source: str, target: str, edge_id: Optional[str] = None) -> Optional[Edge]:
        """
        Add source -> target if it keeps the graph a DAG.
        Returns the new edge, or None when rejected (graph unchanged).
        """
        reason = self.check_edge(source, target)
        if reason:
            logger.debug(f"Rejected edge {source} -> {target}: {reason}")
            return None
        edge = Edge(id=edge_id or new_id(), source=source, target=target)
        self.edges.append(edge)
        return edge

    def delete_edge(self, edge_id: Optional[str] = None, source: Optional[str] = None,
                    target: Optional[str] = None) -> int:
        """
        Remove edges by id, or by (source, target) pair when no id is given.
        Returns how many edges were removed.
        """
        before = len(self.edges)
        if edge_id:
            self.edges = [e for e in self.edges if e.id != edge_id]
        elif source and target:
            self.edges = [e for e in self.edges if not (e.source == source and e.target == target)]
        return before - len(self.edges)

    # --- Serialization ---

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


def seed_graph() -> DagGraph:
    """The startup-strategy graph shown on first launch."""
    nodes = [
        Node("vision", "Vision", -240, -120, tags=("vision",)),
        Node("market", "Market Entry Strategies", 60, -180, tags=("market",)),
        Node("arch", "Technical Architecture Paths", 60, -40, tags=("tech",)),
        Node("monetization", "Monetization Paths", 60, 100, tags=("gtm",)),
        Node("validation", "Validation Paths", 360, -160, tags=("market",)),
        Node("execution", "Execution Roadmap", 360, 80, tags=("execution",)),
    ]
    edges = [
        Edge("e1", "vision", "market"),
        Edge("e2", "vision", "arch"),
        Edge("e3", "vision", "monetization"),
        Edge("e4", "market", "validation"),
        Edge("e5", "monetization", "execution"),
        Edge("e6", "arch", "execution"),
    ]
    return DagGraph(nodes, edges)
