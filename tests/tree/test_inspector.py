"""Tests for branch info, descendant counts, and tree stats."""

import pytest

from chattree.models import ROOT_KEY, BranchInfo, TreeSnapshot
from chattree.tree.errors import NodeNotFoundError
from chattree.tree.inspector import (
    count_descendants,
    get_branch_info,
    get_branch_point_info,
    get_tree_stats,
)
from chattree.tree.operations import insert_node
from chattree.tree.registry import switch_active_branch
from chattree.tree.tokens import ApproximateTokenCounter, estimate_cost
from tests.fixtures import build_branching_snapshot, build_snapshot, make_node


class TestGetBranchInfo:
    def test_first_of_two(self):
        info = get_branch_info(build_branching_snapshot(), "A")
        assert info == BranchInfo(total=2, current=1, has_previous=False, has_next=True)

    def test_last_of_two(self):
        info = get_branch_info(build_branching_snapshot(), "A2")
        assert info == BranchInfo(total=2, current=2, has_previous=True, has_next=False)

    def test_only_child(self):
        snapshot = build_snapshot(("root", None), ("a", "root"))
        info = get_branch_info(snapshot, "a")
        assert info.total == 1
        assert info.current == 1
        assert not info.has_previous
        assert not info.has_next

    def test_middle_of_three(self):
        snapshot = build_snapshot(
            ("root", None), ("a", "root"), ("b", "root"), ("c", "root"),
        )
        info = get_branch_info(snapshot, "b")
        assert info.current == 2
        assert info.has_previous and info.has_next

    def test_reflects_position_not_active_choice(self):
        snapshot = switch_active_branch(build_branching_snapshot(), "root", 0)
        assert get_branch_info(snapshot, "B").current == 2

    def test_missing_node_returns_none(self):
        assert get_branch_info(build_branching_snapshot(), "missing") is None

    def test_top_level_node_returns_none(self):
        snapshot = build_snapshot(("r1", None), ("r2", None))
        assert get_branch_info(snapshot, "r1") is None


class TestGetBranchPointInfo:
    def test_reports_active_child(self):
        info = get_branch_point_info(build_branching_snapshot(), "root")
        assert info == BranchInfo(total=2, current=2, has_previous=True, has_next=False)

    def test_root_key(self):
        snapshot = build_snapshot(("r1", None), ("r2", None), ("r3", None))
        snapshot = switch_active_branch(snapshot, ROOT_KEY, 1)
        info = get_branch_point_info(snapshot, ROOT_KEY)
        assert info == BranchInfo(total=3, current=2, has_previous=True, has_next=True)

    def test_leaf_returns_none(self):
        assert get_branch_point_info(build_branching_snapshot(), "B") is None

    def test_empty_snapshot_root_returns_none(self):
        assert get_branch_point_info(TreeSnapshot(), ROOT_KEY) is None


class TestCountDescendants:
    def test_subtree(self):
        snapshot = build_branching_snapshot()
        assert count_descendants(snapshot, "A") == 2
        assert count_descendants(snapshot, "root") == 4

    def test_leaf(self):
        assert count_descendants(build_branching_snapshot(), "B") == 0

    def test_whole_pool(self):
        assert count_descendants(build_branching_snapshot()) == 5

    def test_missing_node_raises(self):
        with pytest.raises(NodeNotFoundError):
            count_descendants(build_branching_snapshot(), "missing")


class TestGetTreeStats:
    def test_branching_tree(self):
        stats = get_tree_stats(build_branching_snapshot())
        assert stats.message_count == 5
        assert stats.user_message_count == 3
        assert stats.assistant_message_count == 2
        assert stats.system_message_count == 0
        assert stats.total_branches == 4
        assert stats.max_branches_per_node == 2
        assert stats.visible_path_length == 2

    def test_empty_snapshot(self):
        stats = get_tree_stats(TreeSnapshot())
        assert stats.message_count == 0
        assert stats.total_branches == 0
        assert stats.max_branches_per_node == 0
        assert stats.visible_path_length == 0
        assert stats.model_breakdown == []
        assert stats.total_tokens == 0
        assert stats.average_tokens_per_message == 0

    def test_linear_tree_has_no_branches(self):
        snapshot = build_snapshot(("u", None), ("a", "u"))
        stats = get_tree_stats(snapshot)
        assert stats.total_branches == 0
        assert stats.max_branches_per_node == 0

    def test_top_level_siblings_count_as_branches(self):
        snapshot = build_snapshot(("r1", None), ("r2", None), ("r3", None))
        stats = get_tree_stats(snapshot)
        assert stats.total_branches == 3
        assert stats.max_branches_per_node == 3

    def test_model_breakdown_covers_assistant_messages(self):
        snapshot = build_snapshot(("u", None))
        snapshot = insert_node(snapshot, make_node("a1", "assistant", model="m-large"), "u")
        snapshot = insert_node(snapshot, make_node("a2", "assistant", model="m-large"), "u")
        snapshot = insert_node(snapshot, make_node("a3", "assistant"), "u")
        snapshot = insert_node(snapshot, make_node("s", "system"), "a1")
        stats = get_tree_stats(snapshot)
        assert [m.model for m in stats.model_breakdown] == ["m-large", "unknown"]
        large, unknown = stats.model_breakdown
        assert (large.input_tokens, large.output_tokens, large.message_count) == (6, 6, 2)
        assert (unknown.input_tokens, unknown.output_tokens, unknown.message_count) == (3, 3, 1)
        assert stats.system_message_count == 1
        assert stats.total_tokens == 18
        assert stats.average_tokens_per_message == 4

    def test_input_tokens_follow_the_ancestor_chain(self):
        # "Message root" is 3 tokens; each assistant sibling sees only that
        stats = get_tree_stats(build_branching_snapshot())
        assert stats.total_input_tokens == 6
        assert stats.total_output_tokens == 6
        assert stats.estimated_cost == 0

    def test_priced_model_cost(self):
        model = "x-ai/grok-4-fast"
        snapshot = TreeSnapshot()
        snapshot = insert_node(snapshot, make_node("u1", content="x" * 40), None)
        snapshot = insert_node(snapshot, make_node("a1", "assistant", "y" * 2000, model), "u1")
        snapshot = insert_node(snapshot, make_node("u2", content="question"), "a1")
        snapshot = insert_node(snapshot, make_node("a2", "assistant", "ok", model), "u2")
        stats = get_tree_stats(snapshot)
        (entry,) = stats.model_breakdown
        assert entry.input_tokens == 10 + 512
        assert entry.output_tokens == 501
        assert entry.total_tokens == 1023
        assert entry.estimated_cost == pytest.approx(0.522 * 0.0002 + 0.501 * 0.0005)
        assert stats.estimated_cost == pytest.approx(entry.estimated_cost)


class TestTokenEstimates:
    @pytest.mark.parametrize("text,expected", [
        ("", 0),
        ("a", 1),
        ("abcd", 1),
        ("abcde", 2),
        ("x" * 400, 100),
    ])
    def test_approximate_counter(self, text, expected):
        assert ApproximateTokenCounter().count(text) == expected

    def test_unknown_model_is_free(self):
        assert estimate_cost(10_000, 10_000, "m-unlisted") == 0

    def test_listed_model_uses_per_thousand_rates(self):
        cost = estimate_cost(2000, 1000, "deepseek-ai/deepseek-v3.2-exp")
        assert cost == pytest.approx(2 * 0.00028 + 0.00042)
