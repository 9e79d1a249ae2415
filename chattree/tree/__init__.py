"""Branching message tree: flat node pool, branch registry, and pure operations."""

from chattree.tree.context import TreeContext
from chattree.tree.errors import (
    BranchIndexOutOfRangeError,
    InvariantViolation,
    NodeNotFoundError,
    SnapshotDecodeError,
    TreeError,
)
from chattree.tree.inspector import (
    count_descendants,
    get_branch_info,
    get_branch_point_info,
    get_tree_stats,
)
from chattree.tree.operations import (
    create_message_node,
    delete_subtree,
    insert_node,
    update_content,
)
from chattree.tree.path import activate_path_to, get_path_to, get_visible_path
from chattree.tree.pool import check_invariants, children_of, get_node
from chattree.tree.registry import active_child_index, switch_active_branch, switch_to_sibling

__all__ = [
    "BranchIndexOutOfRangeError",
    "InvariantViolation",
    "NodeNotFoundError",
    "SnapshotDecodeError",
    "TreeContext",
    "TreeError",
    "activate_path_to",
    "active_child_index",
    "check_invariants",
    "children_of",
    "count_descendants",
    "create_message_node",
    "delete_subtree",
    "get_branch_info",
    "get_branch_point_info",
    "get_node",
    "get_path_to",
    "get_tree_stats",
    "get_visible_path",
    "insert_node",
    "switch_active_branch",
    "switch_to_sibling",
    "update_content",
]
