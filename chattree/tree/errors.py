"""Errors raised by tree operations."""


class TreeError(Exception):
    pass


class NodeNotFoundError(TreeError):
    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class BranchIndexOutOfRangeError(TreeError):
    def __init__(self, branch_point_id: str, branch_index: int, child_count: int) -> None:
        self.branch_point_id = branch_point_id
        self.branch_index = branch_index
        self.child_count = child_count
        super().__init__(
            f"Branch index {branch_index} out of range for {branch_point_id}"
            f" ({child_count} children)"
        )


class InvariantViolation(TreeError):
    """A structural invariant does not hold. Unreachable through the public operations."""


class SnapshotDecodeError(TreeError):
    pass
