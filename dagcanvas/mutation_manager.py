"""
Mutation batch manager for the DAG canvas.

Applies a decoded agent command batch against a working copy of the graph.
The live graph is never touched here; the caller swaps the working copy in
when the batch had an effect.

Per-command rules:
- add_node:    appended; id reconciled against existing ids; position defaults
               to the last pointer location, offset per added node
- update_node: no-op for unknown ids
- move_node:   no-op for unknown ids
- delete_node: cascades to incident edges
- add_edge:    both endpoints must exist in the working copy; cycle-closing,
               self-loop and duplicate edges are rejected individually
- delete_edge: by id, else by (source, target); removes all matches
- auto_layout: layered layout over the working copy

This module exposes:
- ensure_id(preferred, used) -> str
- apply_commands(graph, commands, origin) -> BatchResult
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Set, Tuple

from dagcanvas.agent_protocol import (
    AddEdge,
    AddNode,
    AutoLayout,
    Command,
    DeleteEdge,
    DeleteNode,
    MoveNode,
    UpdateNode,
)
from dagcanvas.graph import DagGraph, Node
from dagcanvas.layout import auto_layout
from dagcanvas.utils import new_id

logger = logging.getLogger(__name__)

MAX_ID_LENGTH = 64
MAX_SUFFIX = 9999

# Offset between consecutive agent-added nodes without explicit positions
ADD_OFFSET_X = 40
ADD_OFFSET_Y = 34


def ensure_id(preferred: Optional[str], used: Set[str]) -> str:
    """
    Return preferred (normalised) if free, else preferred-2, preferred-3, ...

    Whitespace runs become '-', the base is capped at 64 characters, and after
    the suffix range is exhausted a random id is returned.
    """
    base = re.sub(r"\s+", "-", preferred or new_id())[:MAX_ID_LENGTH] or new_id()
    if base not in used:
        return base
    for i in range(2, MAX_SUFFIX):
        candidate = f"{base}-{i}"
        if candidate not in used:
            return candidate
    return new_id()


@dataclass
class BatchResult:
    """Outcome of one batch: the working copy plus per-operation counts."""
    graph: DagGraph
    added: int = 0
    updated: int = 0
    moved: int = 0
    deleted: int = 0
    edges_added: int = 0
    edges_deleted: int = 0
    laid_out: int = 0
    edges_rejected: int = 0

    @property
    def changed(self) -> bool:
        return any((self.added, self.updated, self.moved, self.deleted,
                    self.edges_added, self.edges_deleted, self.laid_out))

    def summary(self) -> str:
        if not self.changed:
            return "No canvas changes applied."
        text = (
            f"Applied: {self.added} add, {self.updated} edit, {self.moved} move, "
            f"{self.deleted} delete, {self.edges_added} edge+, {self.edges_deleted} edge-"
        )
        if self.laid_out:
            text += ", layout"
        if self.edges_rejected:
            text += f" ({self.edges_rejected} edge(s) rejected)"
        return text


def _apply_add_node(work: DagGraph, cmd: AddNode, origin: Tuple[float, float],
                    used_ids: Set[str], result: BatchResult) -> None:
    node_id = ensure_id(cmd.id, used_ids)
    used_ids.add(node_id)
    step = result.added + 1
    work.add_node(Node(
        id=node_id,
        title=cmd.title,
        x=cmd.x if cmd.x is not None else origin[0] + ADD_OFFSET_X * step,
        y=cmd.y if cmd.y is not None else origin[1] + ADD_OFFSET_Y * step,
        description=cmd.description,
        score=cmd.score,
        tags=cmd.tags,
    ))
    result.added += 1


def _apply_update_node(work: DagGraph, cmd: UpdateNode, result: BatchResult) -> None:
    node = work.get_node(cmd.id)
    if node is None:
        return
    changes = {
        key: value
        for key, value in (("title", cmd.title), ("description", cmd.description),
                           ("score", cmd.score), ("tags", cmd.tags))
        if value is not None and getattr(node, key) != value
    }
    if changes:
        work.update_node(cmd.id, **changes)
        result.updated += 1


def _apply_move_node(work: DagGraph, cmd: MoveNode, result: BatchResult) -> None:
    node = work.get_node(cmd.id)
    if node is None or (node.x, node.y) == (cmd.x, cmd.y):
        return
    work.move_node(cmd.id, cmd.x, cmd.y)
    result.moved += 1


def _apply_add_edge(work: DagGraph, cmd: AddEdge, used_edge_ids: Set[str],
                    result: BatchResult) -> None:
    reason = work.check_edge(cmd.source, cmd.target)
    if reason:
        logger.info(f"Agent edge {cmd.source} -> {cmd.target} rejected: {reason}")
        result.edges_rejected += 1
        return
    edge_id = ensure_id(cmd.id, used_edge_ids)
    used_edge_ids.add(edge_id)
    work.add_edge(cmd.source, cmd.target, edge_id=edge_id)
    result.edges_added += 1


def _apply_auto_layout(work: DagGraph, cmd: AutoLayout, result: BatchResult) -> None:
    laid_out = auto_layout(work.nodes, work.edges, cmd.direction, cmd.spacing_x, cmd.spacing_y)
    if laid_out != work.nodes:
        work.nodes = laid_out
        result.laid_out += 1


def apply_commands(graph: DagGraph, commands: Iterable[Command],
                   origin: Tuple[float, float] = (0.0, 0.0)) -> BatchResult:
    """
    Apply commands in order to a copy of graph.

    origin is the last known pointer location in graph space; it anchors
    added nodes that come without coordinates.
    """
    work = graph.copy()
    result = BatchResult(graph=work)
    used_node_ids = work.node_ids()
    used_edge_ids = work.edge_ids()

    for cmd in commands:
        if isinstance(cmd, AddNode):
            _apply_add_node(work, cmd, origin, used_node_ids, result)
        elif isinstance(cmd, UpdateNode):
            _apply_update_node(work, cmd, result)
        elif isinstance(cmd, MoveNode):
            _apply_move_node(work, cmd, result)
        elif isinstance(cmd, DeleteNode):
            if work.delete_node(cmd.id):
                result.deleted += 1
        elif isinstance(cmd, AddEdge):
            _apply_add_edge(work, cmd, used_edge_ids, result)
        elif isinstance(cmd, DeleteEdge):
            result.edges_deleted += work.delete_edge(cmd.id, cmd.source, cmd.target)
        elif isinstance(cmd, AutoLayout):
            _apply_auto_layout(work, cmd, result)
        else:
            logger.debug(f"Ignoring unknown command: {cmd!r}")

    return result
