"""Snapshot serialization.

The flat pool serializes without cycles or repeated substructure: one entry
per node, children referenced by id. Decoding validates every structural
invariant, so a snapshot that loads is safe to operate on.

Besides the current format, load_snapshot reads the browser-era export:
camelCase keys, epoch-millisecond timestamps, maps stored as [key, value]
pairs, and a rootNodeId that names a sentinel rather than a message.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from chattree.models import ROOT_KEY, TreeSnapshot
from chattree.tree.errors import SnapshotDecodeError
from chattree.tree.pool import check_invariants
from chattree.utils.json import entries_to_dict, parse_json_object

logger = logging.getLogger(__name__)

_LEGACY_NODE_KEYS = {
    "parentId": "parent_id",
    "childIds": "child_ids",
    "branchIndex": "branch_index",
    "isStreaming": "is_streaming",
    "isEditing": "is_editing",
}


def dump_snapshot(snapshot: TreeSnapshot) -> str:
    """Serialize a snapshot to a JSON string."""
    return snapshot.model_dump_json()


def snapshot_to_dict(snapshot: TreeSnapshot) -> dict[str, Any]:
    return snapshot.model_dump(mode="json")


def load_snapshot(raw: str | bytes | dict) -> TreeSnapshot:
    """Decode and validate a snapshot.

    Raises SnapshotDecodeError for unreadable input and InvariantViolation
    for a well-formed document describing a broken tree.
    """
    try:
        data = parse_json_object(raw)
        nodes_raw = entries_to_dict(data.get("nodes"))
        branches_raw = entries_to_dict(
            data.get("active_branches", data.get("activeBranches"))
        )
    except ValueError as e:
        raise SnapshotDecodeError(f"Unreadable snapshot: {e}") from e

    nodes = {node_id: _normalize_node(node) for node_id, node in nodes_raw.items()}

    active_branches = dict(branches_raw)
    root_ids = data.get("root_ids")
    if root_ids is not None and not isinstance(root_ids, list):
        raise SnapshotDecodeError(f"root_ids must be a list, got {type(root_ids).__name__}")
    if root_ids is None:
        root_ids = _derive_root_ids(nodes)
        _renumber_branch_indices(nodes, root_ids)
        _adopt_legacy_registry(data.get("rootNodeId"), nodes, root_ids, active_branches)

    try:
        snapshot = TreeSnapshot.model_validate({
            "nodes": nodes,
            "active_branches": active_branches,
            "root_node_id": root_ids[0] if root_ids else None,
            "root_ids": root_ids,
        })
    except ValidationError as e:
        raise SnapshotDecodeError(f"Invalid snapshot: {e}") from e

    check_invariants(snapshot)
    return snapshot


def _normalize_node(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise SnapshotDecodeError(f"Node entry must be an object, got {type(raw).__name__}")
    node = {_LEGACY_NODE_KEYS.get(k, k): v for k, v in raw.items()}
    timestamp = node.get("timestamp")
    if isinstance(timestamp, (int, float)):
        try:
            node["timestamp"] = datetime.fromtimestamp(timestamp / 1000, UTC)
        except (OverflowError, OSError, ValueError) as e:
            raise SnapshotDecodeError(f"Invalid timestamp {timestamp!r}: {e}") from e
    if node.get("model") is None:
        node["model"] = ""
    return node


def _derive_root_ids(nodes: dict[str, dict[str, Any]]) -> list[str]:
    roots = [
        (_legacy_index(node.get("branch_index")), node_id)
        for node_id, node in nodes.items()
        if node.get("parent_id") is None
    ]
    roots.sort(key=lambda r: r[0])
    if len({index for index, _ in roots}) != len(roots):
        logger.warning("Top-level messages share branch indices; keeping export order")
    return [node_id for _, node_id in roots]


def _legacy_index(value: Any) -> int:
    """Old exports may carry null or non-numeric branch indices; those sort first."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


def _renumber_branch_indices(nodes: dict[str, dict[str, Any]], root_ids: list[str]) -> None:
    """Rewrite branch_index from sibling order. Old exports did not keep them in sync."""
    sibling_lists = [root_ids]
    sibling_lists.extend(
        node["child_ids"] for node in nodes.values() if isinstance(node.get("child_ids"), list)
    )
    fixed = 0
    for siblings in sibling_lists:
        for index, node_id in enumerate(siblings):
            node = nodes.get(node_id) if isinstance(node_id, str) else None
            if node is not None and node.get("branch_index") != index:
                node["branch_index"] = index
                fixed += 1
    if fixed:
        logger.warning("Renumbered %d stale branch indices in legacy export", fixed)


def _adopt_legacy_registry(
    legacy_root: str | None,
    nodes: dict[str, dict[str, Any]],
    root_ids: list[str],
    active_branches: dict[str, int],
) -> None:
    """Map the old sentinel key to ROOT_KEY and pin unset branch points to 0.

    Old exports showed the first child when no entry existed; pinning keeps
    the same conversation visible after import.
    """
    if isinstance(legacy_root, str) and legacy_root not in nodes and legacy_root in active_branches:
        active_branches[ROOT_KEY] = active_branches.pop(legacy_root)
    if root_ids:
        active_branches.setdefault(ROOT_KEY, 0)
    for node_id, node in nodes.items():
        if node.get("child_ids"):
            active_branches.setdefault(node_id, 0)
