"""Branch registry: which child is active at each branch point.

The registry lives beside the pool in the snapshot, so switching a branch
never rewrites a node. Entries are per branch point and never cascade: a
subtree keeps its own choices while a sibling subtree is being shown.
"""

import logging

from chattree.models import ROOT_KEY, TreeSnapshot
from chattree.tree.errors import BranchIndexOutOfRangeError, NodeNotFoundError
from chattree.tree.pool import branch_point_of, children_of, get_node

logger = logging.getLogger(__name__)


def resolve_active_index(stored: int | None, count: int) -> int:
    """Index shown among `count` (at least one) children for a registry entry.

    No entry means the most recently created child. A stale entry is
    clamped into range.
    """
    if stored is None:
        return count - 1
    return min(max(stored, 0), count - 1)


def active_child_index(snapshot: TreeSnapshot, branch_point_id: str) -> int | None:
    """Resolve the active child index at a branch point. Returns None for a leaf."""
    count = len(children_of(snapshot, branch_point_id))
    if count == 0:
        return None
    return resolve_active_index(snapshot.active_branches.get(branch_point_id), count)



def switch_active_branch(
    snapshot: TreeSnapshot, branch_point_id: str, branch_index: int,
) -> TreeSnapshot:
    """Make child `branch_index` the active branch at `branch_point_id`.

    Raises NodeNotFoundError for an unknown branch point and
    BranchIndexOutOfRangeError for an index outside [0, child count).
    Only the registry changes; the node pool is shared with the input.
    """
    if branch_point_id != ROOT_KEY and branch_point_id not in snapshot.nodes:
        raise NodeNotFoundError(branch_point_id)
    count = len(children_of(snapshot, branch_point_id))
    if not 0 <= branch_index < count:
        raise BranchIndexOutOfRangeError(branch_point_id, branch_index, count)

    if snapshot.active_branches.get(branch_point_id) == branch_index:
        return snapshot
    return set_active_index(snapshot, branch_point_id, branch_index)


def switch_to_sibling(snapshot: TreeSnapshot, node_id: str) -> TreeSnapshot:
    """Activate node_id among its siblings."""
    node = get_node(snapshot, node_id)
    return switch_active_branch(snapshot, branch_point_of(node), node.branch_index)


def set_active_index(snapshot: TreeSnapshot, branch_point_id: str, index: int) -> TreeSnapshot:
    """Store a registry entry without validation. For use by tree operations."""
    logger.debug("Active branch at %s -> %d", branch_point_id, index)
    active = dict(snapshot.active_branches)
    active[branch_point_id] = index
    return snapshot.model_copy(update={"active_branches": active})
