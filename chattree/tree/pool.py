"""Node pool: structural queries over a TreeSnapshot.

No behavior beyond lookups. Top-level messages are the children of the
ROOT_KEY branch point, so every query that takes a branch point accepts
either a node id or ROOT_KEY.
"""

from chattree.models import ROOT_KEY, MessageNode, TreeSnapshot
from chattree.tree.errors import InvariantViolation, NodeNotFoundError


def get_node(snapshot: TreeSnapshot, node_id: str) -> MessageNode:
    """Look up a node. Raises NodeNotFoundError if absent."""
    try:
        return snapshot.nodes[node_id]
    except KeyError:
        raise NodeNotFoundError(node_id)


def children_of(snapshot: TreeSnapshot, branch_point_id: str) -> tuple[str, ...]:
    """Ordered child ids of a node, or the top-level ids for ROOT_KEY."""
    if branch_point_id == ROOT_KEY:
        return snapshot.root_ids
    return get_node(snapshot, branch_point_id).child_ids


def branch_point_of(node: MessageNode) -> str:
    """Registry key of the branch point the node hangs from."""
    return node.parent_id if node.parent_id is not None else ROOT_KEY


def iter_subtree(snapshot: TreeSnapshot, node_id: str) -> list[str]:
    """Ids of node_id and all its descendants, pre-order.

    Iterative so that long linear conversations do not hit the recursion limit.
    """
    get_node(snapshot, node_id)
    result: list[str] = []
    stack = [node_id]
    while stack:
        current = stack.pop()
        result.append(current)
        node = snapshot.nodes.get(current)
        if node is not None:
            stack.extend(reversed(node.child_ids))
    return result


def check_invariants(snapshot: TreeSnapshot) -> None:
    """Verify every structural invariant. Raises InvariantViolation on the first failure."""
    nodes = snapshot.nodes

    expected_root = snapshot.root_ids[0] if snapshot.root_ids else None
    if snapshot.root_node_id != expected_root:
        raise InvariantViolation(
            f"root_node_id {snapshot.root_node_id!r} does not match first root {expected_root!r}"
        )

    seen: set[str] = set()
    for key, child_ids in _branch_points(snapshot):
        if len(set(child_ids)) != len(child_ids):
            raise InvariantViolation(f"Duplicate child ids under {key}")
        expected_parent = None if key == ROOT_KEY else key
        for index, child_id in enumerate(child_ids):
            child = nodes.get(child_id)
            if child is None:
                raise InvariantViolation(f"Child {child_id} of {key} missing from pool")
            if child.parent_id != expected_parent:
                raise InvariantViolation(
                    f"Node {child_id} listed under {key} but has parent {child.parent_id}"
                )
            if child.branch_index != index:
                raise InvariantViolation(
                    f"Node {child_id} has branch_index {child.branch_index}, expected {index}"
                )
            if child_id in seen:
                raise InvariantViolation(f"Node {child_id} listed under two branch points")
            seen.add(child_id)

    if seen != set(nodes):
        orphans = sorted(set(nodes) - seen)
        raise InvariantViolation(f"Nodes not reachable from a branch point: {orphans}")

    # Every node is listed exactly once; walking down from the roots must
    # therefore visit the whole pool unless there is a cycle.
    reachable = 0
    stack = list(snapshot.root_ids)
    while stack:
        node_id = stack.pop()
        reachable += 1
        if reachable > len(nodes):
            raise InvariantViolation("Cycle detected in parent relation")
        stack.extend(nodes[node_id].child_ids)
    if reachable != len(nodes):
        raise InvariantViolation("Cycle detected in parent relation")

    for key, index in snapshot.active_branches.items():
        if key != ROOT_KEY and key not in nodes:
            raise InvariantViolation(f"Registry entry for unknown branch point {key}")
        count = len(children_of(snapshot, key))
        if count and not 0 <= index < count:
            raise InvariantViolation(
                f"Registry index {index} out of range for {key} ({count} children)"
            )


def _branch_points(snapshot: TreeSnapshot):
    yield ROOT_KEY, snapshot.root_ids
    for node_id, node in snapshot.nodes.items():
        yield node_id, node.child_ids
