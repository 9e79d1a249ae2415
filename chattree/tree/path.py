"""Path reconstruction: the linear conversation shown to the user."""

from chattree.models import ROOT_KEY, MessageNode, TreeSnapshot
from chattree.tree.pool import branch_point_of, get_node
from chattree.tree.registry import active_child_index, resolve_active_index, set_active_index


def get_visible_path(snapshot: TreeSnapshot, root_id: str | None = None) -> list[MessageNode]:
    """Follow active branches down to a leaf.

    Starts at the active top-level message, or at `root_id` when given.
    Recomputed from scratch on every call; cost is proportional to the
    length of the path, not the size of the pool.
    """
    if snapshot.root_node_id is None:
        return []

    path: list[MessageNode] = []
    if root_id is None:
        key, children = ROOT_KEY, snapshot.root_ids
    else:
        start = get_node(snapshot, root_id)
        path.append(start)
        key, children = start.id, start.child_ids
    while children:
        index = resolve_active_index(snapshot.active_branches.get(key), len(children))
        node = snapshot.nodes[children[index]]
        path.append(node)
        key, children = node.id, node.child_ids
    return path


def get_path_to(snapshot: TreeSnapshot, node_id: str) -> list[MessageNode]:
    """Ancestor chain from the top level down to node_id, inclusive."""
    path: list[MessageNode] = []
    current: MessageNode | None = get_node(snapshot, node_id)
    while current is not None:
        path.append(current)
        current = snapshot.nodes.get(current.parent_id) if current.parent_id else None
    path.reverse()
    return path


def activate_path_to(snapshot: TreeSnapshot, node_id: str) -> TreeSnapshot:
    """Switch every branch point above node_id so that it lies on the visible path.

    Branch points below node_id keep their own choices.
    """
    for node in get_path_to(snapshot, node_id):
        key = branch_point_of(node)
        if active_child_index(snapshot, key) != node.branch_index:
            snapshot = set_active_index(snapshot, key, node.branch_index)
    return snapshot
