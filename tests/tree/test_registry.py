"""Tests for the branch registry: resolving and switching active branches."""

import pytest

from chattree.models import ROOT_KEY
from chattree.tree.errors import BranchIndexOutOfRangeError, NodeNotFoundError
from chattree.tree.path import get_visible_path
from chattree.tree.registry import (
    active_child_index,
    resolve_active_index,
    switch_active_branch,
    switch_to_sibling,
)
from tests.fixtures import build_branching_snapshot, build_snapshot, path_ids


class TestActiveChildIndex:
    def test_leaf_has_no_active_child(self):
        snapshot = build_branching_snapshot()
        assert active_child_index(snapshot, "B") is None

    def test_missing_entry_defaults_to_newest_child(self):
        snapshot = build_branching_snapshot().model_copy(update={"active_branches": {}})
        assert active_child_index(snapshot, "root") == 1
        assert active_child_index(snapshot, "A") == 1
        assert active_child_index(snapshot, ROOT_KEY) == 0

    def test_stale_entry_is_clamped(self):
        snapshot = build_branching_snapshot()
        stale = snapshot.model_copy(update={"active_branches": {"root": 9, "A": -3}})
        assert active_child_index(stale, "root") == 1
        assert active_child_index(stale, "A") == 0

    def test_unknown_branch_point_raises(self):
        with pytest.raises(NodeNotFoundError):
            active_child_index(build_branching_snapshot(), "missing")

    @pytest.mark.parametrize("stored,count,expected", [
        (None, 1, 0),
        (None, 3, 2),
        (1, 3, 1),
        (7, 3, 2),
        (-2, 3, 0),
    ])
    def test_resolve_active_index(self, stored, count, expected):
        assert resolve_active_index(stored, count) == expected


class TestSwitchActiveBranch:
    def test_switch_changes_only_the_registry(self):
        snapshot = build_branching_snapshot()
        result = switch_active_branch(snapshot, "root", 0)
        assert result.active_branches["root"] == 0
        assert result.nodes is snapshot.nodes
        assert snapshot.active_branches["root"] == 1

    def test_out_of_range_index_raises(self):
        snapshot = build_branching_snapshot()
        with pytest.raises(BranchIndexOutOfRangeError) as exc_info:
            switch_active_branch(snapshot, "root", 2)
        assert exc_info.value.branch_point_id == "root"
        assert exc_info.value.branch_index == 2
        assert exc_info.value.child_count == 2

    def test_negative_index_raises(self):
        with pytest.raises(BranchIndexOutOfRangeError):
            switch_active_branch(build_branching_snapshot(), "A", -1)

    def test_leaf_rejects_any_index(self):
        with pytest.raises(BranchIndexOutOfRangeError):
            switch_active_branch(build_branching_snapshot(), "B", 0)

    def test_unknown_branch_point_raises(self):
        with pytest.raises(NodeNotFoundError) as exc_info:
            switch_active_branch(build_branching_snapshot(), "missing", 0)
        assert exc_info.value.node_id == "missing"

    def test_switching_to_current_index_is_idempotent(self):
        snapshot = build_branching_snapshot()
        once = switch_active_branch(snapshot, "root", 0)
        twice = switch_active_branch(once, "root", 0)
        assert twice is once
        assert switch_active_branch(snapshot, "root", 1) is snapshot

    def test_root_key_switches_top_level_siblings(self):
        snapshot = build_snapshot(("r1", None), ("r2", None))
        result = switch_active_branch(snapshot, ROOT_KEY, 0)
        assert path_ids(get_visible_path(result)) == ["r1"]

    def test_switch_does_not_cascade(self):
        """A subtree keeps its own choice while a sibling subtree is shown."""
        snapshot = build_branching_snapshot()
        snapshot = switch_active_branch(snapshot, "A", 0)
        snapshot = switch_active_branch(snapshot, "root", 1)
        assert snapshot.active_branches["A"] == 0
        snapshot = switch_active_branch(snapshot, "root", 0)
        assert path_ids(get_visible_path(snapshot)) == ["root", "A", "A1"]


class TestSwitchToSibling:
    def test_activates_node_among_siblings(self):
        snapshot = build_branching_snapshot()
        result = switch_to_sibling(snapshot, "A1")
        assert result.active_branches["A"] == 0

    def test_top_level_node(self):
        snapshot = build_snapshot(("r1", None), ("r2", None))
        result = switch_to_sibling(snapshot, "r1")
        assert result.active_branches[ROOT_KEY] == 0

    def test_missing_node_raises(self):
        with pytest.raises(NodeNotFoundError):
            switch_to_sibling(build_branching_snapshot(), "missing")
