"""
Agent command protocol.

The reasoning agent answers in prose and may embed one machine-readable
command batch between <canvas_actions> tags:

    Sure, I split validation into two paths.
    <canvas_actions>{"message": "Split validation", "actions": [...]}</canvas_actions>

This module extracts that block, decodes it leniently and turns every entry
into a typed command. Entries that fail validation become None and are
skipped by the caller; they never abort the batch.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union

from dagcanvas.layout import DEFAULT_SPACING_X, DEFAULT_SPACING_Y, DIRECTION_LR, DIRECTION_TB
from dagcanvas.utils import is_number

logger = logging.getLogger(__name__)

START_TAG = "<canvas_actions>"
END_TAG = "</canvas_actions>"

_FENCE_RE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)


class CommandBlockError(ValueError):
    """The reply contained a command block, but it could not be decoded."""


@dataclass(frozen=True)
class AddNode:
    title: str = "New node"
    id: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    description: Optional[str] = None
    score: Optional[float] = None
    tags: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class UpdateNode:
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    score: Optional[float] = None
    tags: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class MoveNode:
    id: str
    x: float
    y: float


@dataclass(frozen=True)
class DeleteNode:
    id: str


@dataclass(frozen=True)
class AddEdge:
    source: str
    target: str
    id: Optional[str] = None


@dataclass(frozen=True)
class DeleteEdge:
    id: Optional[str] = None
    source: Optional[str] = None
    target: Optional[str] = None


@dataclass(frozen=True)
class AutoLayout:
    direction: str = DIRECTION_LR
    spacing_x: float = DEFAULT_SPACING_X
    spacing_y: float = DEFAULT_SPACING_Y


Command = Union[AddNode, UpdateNode, MoveNode, DeleteNode, AddEdge, DeleteEdge, AutoLayout]


@dataclass
class CommandBatch:
    """Decoded payload: optional toast message plus the valid commands, in order."""
    message: Optional[str] = None
    commands: List[Command] = field(default_factory=list)
    skipped: int = 0


AGENT_INSTRUCTIONS = "\n".join([
    "You are Pat, a collaborative agent embedded in a startup strategy DAG canvas.",
    "Speak normally and keep the conversation going: ask clarifying questions, propose options, and check alignment.",
    "If (and only if) you want to change the canvas, include a JSON action payload inside this tag block and nowhere else:",
    f"{START_TAG}{{\"message\":\"short summary\",\"actions\":[...]}}{END_TAG}",
    "Do NOT mention or explain the JSON block in your visible response.",
    "Your job: reorganize the graph, add/rename/edit nodes, add/remove edges, create clearer branching paths, and reduce decision fog.",
    "DAG rule: never create cycles.",
    "",
    f"Action payload schema (inside {START_TAG}):",
    "{ \"message\": \"short summary\", \"actions\": [ ... ] } OR [ ...actions ]",
    "Action types:",
    "- add_node {type,id?,title,x?,y?,description?,score?,tags?}",
    "- update_node {type,id,title?,description?,score?,tags?}",
    "- move_node {type,id,x,y}",
    "- delete_node {type,id}",
    "- add_edge {type,id?,source,target}",
    "- delete_edge {type,id? OR source+target}",
    "- auto_layout {type,direction:\"LR\"|\"TB\",spacingX?,spacingY?}",
    "",
    "Prefer minimal, high-impact edits. Ask before big restructures. If you need clarification, keep actions empty.",
])


# --- Extraction ---

def extract_command_block(text: str) -> Tuple[str, Optional[str]]:
    """
    Split an agent reply into (visible_text, payload).

    payload is None when the tag pair is absent or malformed; the whole reply
    is then visible text.
    """
    start = text.find(START_TAG)
    end = text.find(END_TAG)
    if start == -1 or end == -1 or end <= start:
        return text.strip(), None
    payload = text[start + len(START_TAG):end].strip()
    visible = (text[:start] + text[end + len(END_TAG):]).strip()
    return visible, payload


def unwrap_json_candidate(text: str) -> str:
    """Strip one surrounding ``` or ```json fence, if present."""
    trimmed = text.strip()
    match = _FENCE_RE.match(trimmed)
    return (match.group(1) if match else trimmed).strip()


def decode_payload(text: str) -> Any:
    """
    Decode the JSON-ish payload of a command block.

    Takes the first '{' or '[' and the LAST closing delimiter of the same
    kind, so trailing prose after the JSON is tolerated. Raises
    CommandBlockError when nothing decodable is found.
    """
    candidate = unwrap_json_candidate(text)
    first_brace = candidate.find("{")
    first_bracket = candidate.find("[")
    if first_bracket != -1 and (first_brace == -1 or first_bracket < first_brace):
        start, closer = first_bracket, "]"
    else:
        start, closer = first_brace, "}"
    if start == -1:
        raise CommandBlockError("No JSON object or array in command block")
    end = candidate.rfind(closer)
    if end <= start:
        raise CommandBlockError("Unterminated JSON in command block")
    try:
        return json.loads(candidate[start:end + 1])
    except ValueError as e:
        raise CommandBlockError(f"Invalid JSON in command block: {e}") from e


# --- Command validation ---

def _opt_str(raw: dict, key: str) -> Optional[str]:
    value = raw.get(key)
    return value if isinstance(value, str) else None


def _opt_number(raw: dict, *keys: str) -> Optional[float]:
    for key in keys:
        value = raw.get(key)
        if is_number(value):
            return value
    return None


def _opt_tags(raw: dict) -> Optional[Tuple[str, ...]]:
    value = raw.get("tags")
    if not isinstance(value, list):
        return None
    return tuple(t for t in value if isinstance(t, str))


def _required_str(raw: dict, key: str) -> Optional[str]:
    value = raw.get(key)
    return value if isinstance(value, str) and value else None


def decode_command(raw: Any) -> Optional[Command]:
    """
    Validate one wire entry and build its command.
    Returns None for unknown types or missing/mistyped required fields.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
        return None
    kind = raw["type"]

    if kind == "add_node":
        return AddNode(
            title=_opt_str(raw, "title") or "New node",
            id=_required_str(raw, "id"),
            x=_opt_number(raw, "x"),
            y=_opt_number(raw, "y"),
            description=_opt_str(raw, "description"),
            score=_opt_number(raw, "score"),
            tags=_opt_tags(raw),
        )

    if kind == "update_node":
        node_id = _required_str(raw, "id")
        if node_id is None:
            return None
        return UpdateNode(
            id=node_id,
            title=_opt_str(raw, "title"),
            description=_opt_str(raw, "description"),
            score=_opt_number(raw, "score"),
            tags=_opt_tags(raw),
        )

    if kind == "move_node":
        node_id = _required_str(raw, "id")
        x, y = _opt_number(raw, "x"), _opt_number(raw, "y")
        if node_id is None or x is None or y is None:
            return None
        return MoveNode(id=node_id, x=x, y=y)

    if kind == "delete_node":
        node_id = _required_str(raw, "id")
        return DeleteNode(id=node_id) if node_id else None

    if kind == "add_edge":
        source, target = _required_str(raw, "source"), _required_str(raw, "target")
        if source is None or target is None:
            return None
        return AddEdge(source=source, target=target, id=_required_str(raw, "id"))

    if kind == "delete_edge":
        edge_id = _required_str(raw, "id")
        source, target = _required_str(raw, "source"), _required_str(raw, "target")
        if edge_id is None and (source is None or target is None):
            return None
        return DeleteEdge(id=edge_id, source=source, target=target)

    if kind == "auto_layout":
        spacing_x = _opt_number(raw, "spacingX", "spacing_x")
        spacing_y = _opt_number(raw, "spacingY", "spacing_y")
        return AutoLayout(
            direction=DIRECTION_TB if raw.get("direction") == DIRECTION_TB else DIRECTION_LR,
            spacing_x=spacing_x if spacing_x is not None else DEFAULT_SPACING_X,
            spacing_y=spacing_y if spacing_y is not None else DEFAULT_SPACING_Y,
        )

    return None


def parse_command_payload(data: Any) -> CommandBatch:
    """
    Accept either a bare list of actions or {"message"?, "actions": [...]}.
    """
    if isinstance(data, list):
        entries, message = data, None
    elif isinstance(data, dict):
        entries = data.get("actions") if isinstance(data.get("actions"), list) else []
        message = data.get("message") if isinstance(data.get("message"), str) else None
    else:
        entries, message = [], None

    batch = CommandBatch(message=message)
    for entry in entries:
        command = decode_command(entry)
        if command is None:
            batch.skipped += 1
            continue
        batch.commands.append(command)
    if batch.skipped:
        logger.info(f"Skipped {batch.skipped} malformed agent command(s)")
    return batch
