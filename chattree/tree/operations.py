"""Tree operations: pure functions from one snapshot to the next.

Inputs are never modified. Each operation copies only the mappings it
changes and reuses every untouched node object, so old snapshots stay valid
for undo and diffing. A failing operation raises before building anything,
leaving the caller's snapshot as the current one.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from chattree.models import ROOT_KEY, MessageNode, NodePatch, Role, TreeSnapshot
from chattree.tree.context import DEFAULT_CONTEXT, TreeContext
from chattree.tree.errors import InvariantViolation
from chattree.tree.pool import branch_point_of, get_node, iter_subtree

logger = logging.getLogger(__name__)


def create_message_node(
    role: Role,
    content: str,
    *,
    model: str = "",
    context: TreeContext = DEFAULT_CONTEXT,
) -> MessageNode:
    """Build a detached node with a fresh id. insert_node assigns its position."""
    return MessageNode(
        id=context.new_id(),
        role=role,
        content=content,
        timestamp=context.now(),
        model=model,
    )


def insert_node(
    snapshot: TreeSnapshot, node: MessageNode, parent_id: str | None = None,
) -> TreeSnapshot:
    """Attach `node` under `parent_id`, or at the top level when parent_id is None.

    The new node becomes the active branch at its branch point. Any
    parent_id/child_ids/branch_index already on `node` are overwritten.
    """
    if node.id in snapshot.nodes or node.id == ROOT_KEY:
        raise InvariantViolation(f"Duplicate node id: {node.id}")

    nodes = dict(snapshot.nodes)
    active = dict(snapshot.active_branches)

    if parent_id is None:
        index = len(snapshot.root_ids)
        nodes[node.id] = node.model_copy(
            update={"parent_id": None, "child_ids": (), "branch_index": index}
        )
        root_ids = snapshot.root_ids + (node.id,)
        active[ROOT_KEY] = index
        return TreeSnapshot(
            nodes=nodes,
            active_branches=active,
            root_node_id=root_ids[0],
            root_ids=root_ids,
        )

    parent = get_node(snapshot, parent_id)
    index = len(parent.child_ids)
    nodes[node.id] = node.model_copy(
        update={"parent_id": parent_id, "child_ids": (), "branch_index": index}
    )
    nodes[parent_id] = parent.model_copy(
        update={"child_ids": parent.child_ids + (node.id,)}
    )
    active[parent_id] = index
    return snapshot.model_copy(update={"nodes": nodes, "active_branches": active})


def update_content(
    snapshot: TreeSnapshot,
    node_id: str,
    patch: NodePatch,
    *,
    now: Callable[[], datetime] = DEFAULT_CONTEXT.now,
) -> TreeSnapshot:
    """Apply the explicitly set fields of `patch` to one node.

    A missing node is a silent no-op: stream updates may arrive after the
    node has been pruned. The timestamp is refreshed only when the content
    actually changes.
    """
    node = snapshot.nodes.get(node_id)
    if node is None:
        logger.debug("update_content: node %s not found, ignoring", node_id)
        return snapshot

    updates = {
        name: getattr(patch, name)
        for name in patch.model_fields_set
        if getattr(patch, name) is not None
    }
    if "content" in updates and updates["content"] != node.content:
        updates["timestamp"] = now()
    elif "content" in updates:
        del updates["content"]
    if not updates or all(getattr(node, k) == v for k, v in updates.items()):
        return snapshot

    nodes = dict(snapshot.nodes)
    nodes[node_id] = node.model_copy(update=updates)
    return snapshot.model_copy(update={"nodes": nodes})


def delete_subtree(snapshot: TreeSnapshot, node_id: str) -> TreeSnapshot:
    """Remove `node_id` and all of its descendants.

    Later siblings shift down one position. Registry entries of removed
    nodes are purged. The branch point's own entry keeps following the same
    child when that child shifted; when the active child itself was removed
    it is clamped to the last valid index, and dropped when no children remain.
    """
    node = get_node(snapshot, node_id)
    removed = iter_subtree(snapshot, node_id)
    removed_set = set(removed)

    nodes = {k: v for k, v in snapshot.nodes.items() if k not in removed_set}
    active = {k: v for k, v in snapshot.active_branches.items() if k not in removed_set}

    key = branch_point_of(node)
    old_siblings = snapshot.root_ids if key == ROOT_KEY else nodes[key].child_ids
    siblings = tuple(sid for sid in old_siblings if sid != node_id)
    for index in range(node.branch_index, len(siblings)):
        sibling_id = siblings[index]
        nodes[sibling_id] = nodes[sibling_id].model_copy(update={"branch_index": index})

    if key in active:
        stored = active[key]
        if not siblings:
            del active[key]
        elif stored > node.branch_index:
            active[key] = stored - 1
        else:
            active[key] = min(stored, len(siblings) - 1)

    logger.debug("Deleted subtree %s (%d nodes)", node_id, len(removed))

    if key == ROOT_KEY:
        return TreeSnapshot(
            nodes=nodes,
            active_branches=active,
            root_node_id=siblings[0] if siblings else None,
            root_ids=siblings,
        )
    nodes[key] = nodes[key].model_copy(update={"child_ids": siblings})
    return snapshot.model_copy(update={"nodes": nodes, "active_branches": active})

