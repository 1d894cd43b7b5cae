"""
Canvas engine: the single owner of one open canvas document.

Holds the live graph, the viewport and the agent undo stack, and is the only
place that mutates them. Every mutation is saved straight through to the
configured store. One engine is created per open canvas view.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Iterable, Optional, Tuple

from dagcanvas.agent_protocol import (
    Command,
    CommandBlockError,
    decode_payload,
    extract_command_block,
    parse_command_payload,
)
from dagcanvas.edit.constants import CANVAS_HEIGHT, CANVAS_WIDTH
from dagcanvas.graph import (
    REJECT_CYCLE,
    REJECT_DUPLICATE,
    REJECT_MISSING_ENDPOINT,
    REJECT_SELF_LOOP,
    DagGraph,
    Edge,
    Node,
    make_node,
)
from dagcanvas.layout import DEFAULT_SPACING_X, DEFAULT_SPACING_Y, DIRECTION_LR, auto_layout
from dagcanvas.mutation_manager import BatchResult, apply_commands
from dagcanvas.storage.document import (
    Document,
    ImportValidationError,
    export_document,
    import_document,
    load_document,
    save_document,
    seed_document,
)
from dagcanvas.storage.protocol import KeyValueStore
from dagcanvas.viewport import (
    Viewport,
    fit_to_view,
    is_default_viewport,
    screen_to_graph,
    zoom_step,
)

logger = logging.getLogger(__name__)

UNDO_DEPTH = 10

DEFAULT_NODE_TITLE = "New node"
DEFAULT_NODE_TAGS = ("execution",)

# Offset from the top-left corner of the view for toolbar-added nodes
TOOLBAR_ADD_OFFSET = 40

EDGE_REJECTION_NOTICES = {
    REJECT_CYCLE: "Rejected: would create a cycle.",
    REJECT_SELF_LOOP: "Pick a different target.",
    REJECT_DUPLICATE: "Those nodes are already connected.",
    REJECT_MISSING_ENDPOINT: "Rejected: unknown node.",
}


@dataclass(frozen=True)
class UndoEntry:
    """Full document state captured right before an agent batch."""
    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...]
    viewport: Viewport


@dataclass
class AgentOutcome:
    """What happened when an agent reply was processed."""
    visible_text: str = ""
    batch: Optional[BatchResult] = None
    message: Optional[str] = None
    decode_error: Optional[str] = None
    error: Optional[str] = None
    cancelled: bool = False
    refused: bool = False

    @property
    def changed(self) -> bool:
        return self.batch is not None and self.batch.changed


class CanvasEngine:
    """Owns the document, viewport and undo stack of one canvas."""

    def __init__(self, store: KeyValueStore, width: float = CANVAS_WIDTH,
                 height: float = CANVAS_HEIGHT):
        self.store = store
        self.width = width
        self.height = height
        self.undo_stack: Deque[UndoEntry] = deque(maxlen=UNDO_DEPTH)
        self.last_pointer_graph: Tuple[float, float] = (0.0, 0.0)
        self.last_notice: Optional[str] = None
        self._on_notice: Optional[Callable[[str], None]] = None

        document = load_document(store)
        if document is None:
            logger.info("No stored canvas document, starting from the seed graph")
            document = seed_document()
        self.graph: DagGraph = document.graph
        self.viewport: Viewport = document.viewport

        if self.graph.nodes and is_default_viewport(self.viewport):
            self.fit_to_view()
        else:
            self._commit()

    # --- Callbacks ---

    def set_on_notice(self, callback: Callable[[str], None]):
        self._on_notice = callback

    def notify(self, message: str) -> None:
        """Surface a transient, non-blocking notice."""
        logger.info(f"Notice: {message}")
        self.last_notice = message
        if self._on_notice:
            self._on_notice(message)

    def _commit(self) -> None:
        save_document(self.store, self.document())

    def document(self) -> Document:
        return Document(graph=self.graph, viewport=self.viewport)

    # --- Node operations (manual, no undo) ---

    def add_node(self, x: float, y: float, title: str = DEFAULT_NODE_TITLE,
                 tags: Optional[Iterable[str]] = DEFAULT_NODE_TAGS,
                 description: Optional[str] = "") -> Node:
        node = self.graph.add_node(make_node(title, x, y, description=description, tags=tags))
        self._commit()
        return node

    def add_node_in_view(self) -> Node:
        """Toolbar 'add node': just inside the top-left corner of the view."""
        gx, gy = screen_to_graph((0, 0), self.viewport)
        return self.add_node(gx + TOOLBAR_ADD_OFFSET, gy + TOOLBAR_ADD_OFFSET)

    def update_node(self, node_id: str, **changes: Any) -> Optional[Node]:
        node = self.graph.update_node(node_id, **changes)
        if node is not None:
            self._commit()
        return node

    def move_node(self, node_id: str, x: float, y: float) -> Optional[Node]:
        return self.update_node(node_id, x=x, y=y)

    def delete_node(self, node_id: str) -> bool:
        if not self.graph.delete_node(node_id):
            return False
        self._commit()
        return True

    # --- Edge operations ---

    def add_edge(self, source: str, target: str) -> Optional[Edge]:
        """Manual connect. Rejections become a notice; the graph is untouched."""
        reason = self.graph.check_edge(source, target)
        if reason:
            self.notify(EDGE_REJECTION_NOTICES.get(reason, "Rejected."))
            return None
        edge = self.graph.add_edge(source, target)
        self._commit()
        return edge

    def delete_edge(self, edge_id: str) -> bool:
        if not self.graph.delete_edge(edge_id=edge_id):
            return False
        self._commit()
        return True

    # --- Viewport ---

    def set_viewport(self, viewport: Viewport) -> None:
        if viewport == self.viewport:
            return
        self.viewport = viewport
        self._commit()

    def resize(self, width: float, height: float) -> None:
        self.width, self.height = width, height

    def fit_to_view(self) -> bool:
        viewport = fit_to_view(self.graph.nodes, self.width, self.height)
        if viewport is None:
            return False
        self.viewport = viewport
        self._commit()
        return True

    def zoom_in(self) -> None:
        self.set_viewport(zoom_step(self.viewport, True, self.width, self.height))

    def zoom_out(self) -> None:
        self.set_viewport(zoom_step(self.viewport, False, self.width, self.height))

    def auto_layout(self, direction: str = DIRECTION_LR, spacing_x: float = DEFAULT_SPACING_X,
                    spacing_y: float = DEFAULT_SPACING_Y) -> None:
        self.graph.nodes = auto_layout(self.graph.nodes, self.graph.edges, direction, spacing_x, spacing_y)
        self._commit()

    # --- Agent batches ---

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    def apply_commands(self, commands: Iterable[Command], message: Optional[str] = None) -> BatchResult:
        """
        Apply an agent batch atomically.

        The batch runs against a working copy. Only if something changed is the
        pre-batch state pushed on the undo stack and the copy swapped in.
        """
        result = apply_commands(self.graph, commands, origin=self.last_pointer_graph)
        if result.changed:
            nodes, edges = self.graph.snapshot()
            self.undo_stack.append(UndoEntry(nodes, edges, self.viewport))
            self.graph = result.graph
            self._commit()
        self.notify(result.summary())
        if message:
            self.notify(message)
        return result

    def apply_agent_reply(self, text: str) -> AgentOutcome:
        """Extract, decode and apply the command block of an agent reply, if any."""
        visible_text, payload = extract_command_block(text or "")
        outcome = AgentOutcome(visible_text=visible_text)
        if payload is None:
            return outcome

        try:
            data = decode_payload(payload)
        except CommandBlockError as e:
            logger.warning(f"[Agent] {e}")
            outcome.decode_error = "The agent included a canvas action block but it wasn't valid JSON."
            return outcome

        batch = parse_command_payload(data)
        outcome.message = batch.message
        outcome.batch = self.apply_commands(batch.commands, message=batch.message)
        return outcome

    def undo(self) -> bool:
        """Restore the state captured before the most recent agent batch."""
        if not self.undo_stack:
            return False
        entry = self.undo_stack.pop()
        self.graph = DagGraph(entry.nodes, entry.edges)
        self.viewport = entry.viewport
        self._commit()
        self.notify("Undone.")
        return True

    # --- Import / export ---

    def export_document(self) -> str:
        return export_document(self.graph)

    def import_document(self, text: str) -> bool:
        """
        Replace the live graph with an imported document and fit it to view.
        On validation failure the live document is left untouched.
        """
        try:
            graph = import_document(text)
        except ImportValidationError as e:
            self.notify(str(e))
            return False
        self.graph = graph
        if not self.fit_to_view():
            self._commit()
        self.notify("Imported.")
        return True

    def graph_context(self) -> Dict[str, Any]:
        """Graph snapshot in the shape the agent is shown."""
        return {
            "nodes": [
                {
                    "id": n.id,
                    "title": n.title,
                    "description": n.description or "",
                    "score": n.score,
                    "tags": list(n.tags or ()),
                    "x": n.x,
                    "y": n.y,
                }
                for n in self.graph.nodes
            ],
            "edges": [e.to_dict() for e in self.graph.edges],
        }
