"""Branch inspector: read-only metadata for navigation controls and stats panels."""

from collections import Counter

from chattree.models import BranchInfo, ModelTokenStats, TreeSnapshot, TreeStats
from chattree.tree.pool import children_of, iter_subtree
from chattree.tree.path import get_visible_path
from chattree.tree.registry import active_child_index
from chattree.tree.tokens import DEFAULT_COUNTER, TokenCounter, estimate_cost


def get_branch_info(snapshot: TreeSnapshot, node_id: str) -> BranchInfo | None:
    """Sibling position of a node. None for unknown or top-level nodes."""
    node = snapshot.nodes.get(node_id)
    if node is None or node.parent_id is None:
        return None
    parent = snapshot.nodes.get(node.parent_id)
    if parent is None:
        return None
    return _info(len(parent.child_ids), node.branch_index)


def get_branch_point_info(snapshot: TreeSnapshot, branch_point_id: str) -> BranchInfo | None:
    """Position of the active child at a branch point (node id or ROOT_KEY).

    None when the branch point has no children.
    """
    index = active_child_index(snapshot, branch_point_id)
    if index is None:
        return None
    return _info(len(children_of(snapshot, branch_point_id)), index)


def _info(total: int, index: int) -> BranchInfo:
    current = index + 1
    return BranchInfo(
        total=total,
        current=current,
        has_previous=current > 1,
        has_next=current < total,
    )


def count_descendants(snapshot: TreeSnapshot, node_id: str | None = None) -> int:
    """Number of nodes strictly below node_id; the whole pool when node_id is None."""
    if node_id is None:
        return len(snapshot.nodes)
    return len(iter_subtree(snapshot, node_id)) - 1


def get_tree_stats(
    snapshot: TreeSnapshot, counter: TokenCounter = DEFAULT_COUNTER,
) -> TreeStats:
    """Counts and token estimates across every branch, not just the visible path.

    An assistant message's input is its ancestor chain, the context it was
    generated from; its output is its own content. Costs are summed per model.
    """
    roles = Counter(node.role for node in snapshot.nodes.values())
    per_model: dict[str, list[int]] = {}  # model -> [input, output, messages]

    # (node id, tokens of its ancestors)
    stack = [(root_id, 0) for root_id in reversed(snapshot.root_ids)]
    while stack:
        node_id, context_tokens = stack.pop()
        node = snapshot.nodes[node_id]
        tokens = counter.count(node.content)
        if node.role == "assistant":
            entry = per_model.setdefault(node.model or "unknown", [0, 0, 0])
            entry[0] += context_tokens
            entry[1] += tokens
            entry[2] += 1
        stack.extend((child_id, context_tokens + tokens) for child_id in reversed(node.child_ids))

    breakdown = [
        ModelTokenStats(
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            estimated_cost=estimate_cost(input_tokens, output_tokens, model),
            message_count=messages,
        )
        for model, (input_tokens, output_tokens, messages) in per_model.items()
    ]
    breakdown.sort(key=lambda m: m.total_tokens, reverse=True)
    total_input = sum(m.input_tokens for m in breakdown)
    total_output = sum(m.output_tokens for m in breakdown)

    total_branches = 0
    max_branches = 0
    fanouts = [len(snapshot.root_ids)]
    fanouts.extend(len(node.child_ids) for node in snapshot.nodes.values())
    for count in fanouts:
        if count < 2:
            continue
        total_branches += count
        max_branches = max(max_branches, count)

    message_count = len(snapshot.nodes)
    return TreeStats(
        message_count=message_count,
        user_message_count=roles["user"],
        assistant_message_count=roles["assistant"],
        system_message_count=roles["system"],
        total_branches=total_branches,
        max_branches_per_node=max_branches,
        visible_path_length=len(get_visible_path(snapshot)),
        total_input_tokens=total_input,
        total_output_tokens=total_output,
        total_tokens=total_input + total_output,
        estimated_cost=sum(m.estimated_cost for m in breakdown),
        average_tokens_per_message=(
            round((total_input + total_output) / message_count) if message_count else 0
        ),
        model_breakdown=breakdown,
    )

