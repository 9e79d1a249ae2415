"""Importer for the nested conversation format.

The nested format embeds each message's alternatives inline: every node has
a `children` array and an `activeChildIndex` (or `active_child_index`)
choosing among them. A top node with role "root" is a sentinel whose
children are the top-level messages. Flattening walks the tree iteratively,
inserts nodes through the normal tree operations (so every invariant holds)
and then replays the active-child choices into the registry.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from chattree.models import ROOT_KEY, MessageNode, TreeSnapshot
from chattree.tree.context import DEFAULT_CONTEXT, TreeContext
from chattree.tree.errors import BranchIndexOutOfRangeError
from chattree.tree.operations import insert_node
from chattree.tree.registry import switch_active_branch

logger = logging.getLogger(__name__)

_ROLES = {"user", "assistant", "system"}


@dataclass
class NestedImportResult:
    snapshot: TreeSnapshot
    id_map: dict[str, str] = field(default_factory=dict)  # source id -> pool id
    warnings: list[str] = field(default_factory=list)


def flatten_nested_tree(
    data: dict | list, *, context: TreeContext = DEFAULT_CONTEXT,
) -> NestedImportResult:
    """Convert a nested tree (one root dict, a root sentinel, or a list of roots)."""
    result = NestedImportResult(snapshot=TreeSnapshot())
    choices: list[tuple[str, Any]] = []

    if isinstance(data, dict) and data.get("role") == "root":
        top_level = _children(data, result)
        choices.append((ROOT_KEY, _active_index(data)))
    elif isinstance(data, list):
        top_level = list(data)
    else:
        top_level = [data]

    # (raw node, pool id of the nearest kept ancestor)
    stack: list[tuple[Any, str | None]] = [(raw, None) for raw in reversed(top_level)]
    while stack:
        raw, parent_id = stack.pop()
        if not isinstance(raw, dict):
            result.warnings.append(f"Skipped non-object node {raw!r:.40}")
            continue

        children = _children(raw, result)
        role = raw.get("role")
        if role not in _ROLES:
            result.warnings.append(f"Skipped node with role {role!r}; children reparented")
            stack.extend((child, parent_id) for child in reversed(children))
            continue

        node = _build_node(raw, result, context)
        result.snapshot = insert_node(result.snapshot, node, parent_id)
        if children:
            choices.append((node.id, _active_index(raw)))
        stack.extend((child, node.id) for child in reversed(children))

    for key, index in choices:
        if index is None:
            continue
        try:
            result.snapshot = switch_active_branch(result.snapshot, key, index)
        except BranchIndexOutOfRangeError as e:
            result.warnings.append(str(e))

    for warning in result.warnings:
        logger.warning("Nested import: %s", warning)
    return result


def _build_node(raw: dict, result: NestedImportResult, context: TreeContext) -> MessageNode:
    source_id = raw.get("id")
    node_id = source_id
    if (
        not isinstance(node_id, str)
        or not node_id
        or node_id == ROOT_KEY
        or node_id in result.snapshot.nodes
    ):
        node_id = context.new_id()
        if source_id is not None:
            result.warnings.append(f"Replaced duplicate or invalid id {source_id!r}")
    if isinstance(source_id, str):
        result.id_map[source_id] = node_id

    model = raw.get("model")
    return MessageNode(
        id=node_id,
        role=raw["role"],
        content=str(raw.get("content") or ""),
        timestamp=_parse_timestamp(raw.get("timestamp"), result, context),
        model=model if isinstance(model, str) else "",
    )


def _active_index(raw: dict) -> int | None:
    value = raw.get("activeChildIndex", raw.get("active_child_index"))
    return value if isinstance(value, int) else None


def _children(raw: dict, result: NestedImportResult) -> list:
    children = raw.get("children")
    if children is None:
        return []
    if not isinstance(children, list):
        result.warnings.append(
            f"Ignored children of {raw.get('id')!r}: expected a list, got {type(children).__name__}"
        )
        return []
    return children


def _parse_timestamp(value: Any, result: NestedImportResult, context: TreeContext) -> datetime:
    """Epoch milliseconds or ISO-8601; the context clock when missing or unreadable."""
    if value is None:
        return context.now()
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, UTC)
        except (OverflowError, OSError, ValueError):
            pass
    elif isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    result.warnings.append(f"Unreadable timestamp {value!r:.40}; using import time")
    return context.now()
