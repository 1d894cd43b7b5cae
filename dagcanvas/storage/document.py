"""
Versioned canvas document persistence.

Stored shape (under STORAGE_KEY):
{
  "version": 1,
  "nodes": [{"id", "title", "x", "y", "description"?, "score"?, "tags"?}, ...],
  "edges": [{"id", "source", "target"}, ...],
  "viewport": {"x", "y", "zoom"}
}

Portable export shape: {"nodes": [...], "edges": [...]}.

Loading never raises: any top-level mismatch means "no document" and the
engine falls back to the seed graph. Saving is best-effort.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from dagcanvas.graph import DagGraph, Edge, Node, seed_graph
from dagcanvas.storage.protocol import KeyValueStore
from dagcanvas.utils import is_number
from dagcanvas.viewport import DEFAULT_VIEWPORT, Viewport, clamp_document_zoom

logger = logging.getLogger(__name__)

STORAGE_KEY = "dag.canvas.v1"
DOCUMENT_VERSION = 1


class ImportValidationError(ValueError):
    """Imported text is not a usable canvas document."""


@dataclass
class Document:
    graph: DagGraph = field(default_factory=DagGraph)
    viewport: Viewport = DEFAULT_VIEWPORT
    version: int = DOCUMENT_VERSION

    def to_dict(self) -> Dict[str, Any]:
        data = self.graph.to_dict()
        data["viewport"] = self.viewport.to_dict()
        data["version"] = self.version
        return data


def seed_document() -> Document:
    return Document(graph=seed_graph(), viewport=DEFAULT_VIEWPORT)


def build_graph(raw_nodes: list, raw_edges: list) -> DagGraph:
    """
    Build a graph from loosely typed node/edge lists.

    Malformed entries are skipped one by one. Edges are inserted through
    DagGraph.add_edge so dangling, duplicate and cycle-closing edges are
    dropped rather than failing the whole document.
    """
    graph = DagGraph()
    for raw in raw_nodes:
        node = Node.from_dict(raw)
        if node is None or graph.has_node(node.id):
            continue
        graph.add_node(node)

    dropped = 0
    for raw in raw_edges:
        edge = Edge.from_dict(raw)
        if edge is None or graph.get_edge(edge.id) is not None:
            dropped += 1
            continue
        if graph.add_edge(edge.source, edge.target, edge_id=edge.id) is None:
            dropped += 1
    if dropped:
        logger.info(f"Dropped {dropped} invalid edge(s) while building graph")
    return graph


def _parse_viewport(raw: Any) -> Viewport:
    if not isinstance(raw, dict):
        return DEFAULT_VIEWPORT
    return Viewport(
        x=raw["x"] if is_number(raw.get("x")) else 0.0,
        y=raw["y"] if is_number(raw.get("y")) else 0.0,
        zoom=clamp_document_zoom(raw["zoom"]) if is_number(raw.get("zoom")) else 1.0,
    )


def parse_document(text: str) -> Optional[Document]:
    """Decode stored text; None on any structural mismatch."""
    try:
        data = json.loads(text)
    except (ValueError, TypeError):
        return None
    if not isinstance(data, dict):
        return None
    if data.get("version") != DOCUMENT_VERSION or isinstance(data.get("version"), bool):
        return None
    if not isinstance(data.get("nodes"), list) or not isinstance(data.get("edges"), list):
        return None
    return Document(
        graph=build_graph(data["nodes"], data["edges"]),
        viewport=_parse_viewport(data.get("viewport")),
    )


def load_document(store: KeyValueStore, key: str = STORAGE_KEY) -> Optional[Document]:
    """Read the stored document, or None if absent, unreadable or mismatched."""
    try:
        raw = store.get(key)
    except Exception as e:
        logger.warning(f"Failed to read canvas document: {e}")
        return None
    if not raw:
        return None
    document = parse_document(raw)
    if document is None:
        logger.warning("Stored canvas document has an unexpected shape; ignoring it")
    return document


def save_document(store: KeyValueStore, document: Document, key: str = STORAGE_KEY) -> bool:
    """Write-through save. Failures are logged and swallowed."""
    try:
        store.set(key, json.dumps(document.to_dict()))
        return True
    except Exception as e:
        logger.warning(f"Failed to save canvas document: {e}")
        return False


def export_document(graph: DagGraph) -> str:
    """Portable {nodes, edges} JSON text."""
    return json.dumps(graph.to_dict(), indent=2, ensure_ascii=False)


def import_document(text: str) -> DagGraph:
    """
    Parse portable document text into a graph.

    Raises ImportValidationError when the text is not JSON or lacks the
    nodes/edges arrays. Individual bad entries are skipped.
    """
    try:
        data = json.loads(text)
    except (ValueError, TypeError) as e:
        raise ImportValidationError("Invalid JSON.") from e
    if not isinstance(data, dict):
        raise ImportValidationError("Invalid JSON.")
    if not isinstance(data.get("nodes"), list) or not isinstance(data.get("edges"), list):
        raise ImportValidationError("JSON must include nodes[] and edges[].")
    return build_graph(data["nodes"], data["edges"])
