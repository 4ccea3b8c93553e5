"""Tests for master election."""

import pytest

from universeplanner.errors import InsufficientCandidatesError, InvariantViolation
from universeplanner.planner import MasterElector


class TestMasterElector:
    """Test MasterElector.select_masters."""

    def test_spreads_across_subnets(self, make_node):
        """Test one master per subnet, lowest name first."""
        nodes = [
            make_node(4, "za", subnet="s-a"),
            make_node(5, "zb", subnet="s-b"),
            make_node(6, "zc", subnet="s-c"),
            make_node(1, "za", subnet="s-a"),
            make_node(2, "zb", subnet="s-b"),
            make_node(3, "zc", subnet="s-c"),
        ]

        chosen = MasterElector().select_masters(nodes, 3)

        assert [n.node_idx for n in chosen] == [1, 2, 3]
        assert {n.subnet_id for n in chosen} == {"s-a", "s-b", "s-c"}
        assert all(n.is_master for n in chosen)
        assert sum(1 for n in nodes if n.is_master) == 3

    def test_wraps_around_subnets(self, make_node):
        """Test round-robin continues past the first pass."""
        nodes = [make_node(i, "z", subnet=f"s-{i % 3}") for i in range(1, 7)]

        chosen = MasterElector().select_masters(nodes, 5)

        subnets = [n.subnet_id for n in chosen]
        assert subnets == ["s-0", "s-1", "s-2", "s-0", "s-1"]

    def test_empty_subnet_skipped(self, make_node):
        """Test exhausted subnets are skipped."""
        nodes = [
            make_node(1, "za", subnet="s-a"),
            make_node(2, "zb", subnet="s-b"),
            make_node(3, "zc", subnet="s-c"),
            make_node(4, "zc", subnet="s-c"),
        ]

        chosen = MasterElector().select_masters(nodes, 4)

        assert [n.node_idx for n in chosen] == [1, 2, 3, 4]

    def test_few_subnets_takes_iteration_order(self, make_node):
        """Test fewer than three subnets picks the first candidates."""
        nodes = [
            make_node(3, "za", subnet="s-a"),
            make_node(1, "za", subnet="s-a"),
            make_node(2, "zb", subnet="s-b"),
        ]

        chosen = MasterElector().select_masters(nodes, 2)

        assert [n.node_idx for n in chosen] == [3, 1]

    def test_existing_masters_not_candidates(self, make_node):
        """Test current masters are never chosen again."""
        nodes = [
            make_node(1, "za", subnet="s-a", is_master=True),
            make_node(2, "za", subnet="s-a"),
            make_node(3, "za", subnet="s-a"),
        ]

        chosen = MasterElector().select_masters(nodes, 2)

        assert [n.node_idx for n in chosen] == [2, 3]

    def test_insufficient_candidates(self, make_node):
        """Test error when too few non-master nodes exist."""
        nodes = [
            make_node(1, "za", subnet="s-a", is_master=True),
            make_node(2, "za", subnet="s-a"),
        ]

        with pytest.raises(InsufficientCandidatesError):
            MasterElector().select_masters(nodes, 2)

        assert not nodes[1].is_master

    def test_insufficient_candidates_is_invariant_violation(self):
        """Test the error family."""
        assert issubclass(InsufficientCandidatesError, InvariantViolation)

    def test_zero_count(self, make_node):
        """Test nothing is chosen for a zero count."""
        nodes = [make_node(1, "za", subnet="s-a")]

        assert MasterElector().select_masters(nodes, 0) == []
        assert not nodes[0].is_master

    def test_custom_subnet_threshold(self, make_node):
        """Test the subnet threshold is configurable."""
        nodes = [
            make_node(3, "za", subnet="s-a"),
            make_node(4, "za", subnet="s-a"),
            make_node(1, "zb", subnet="s-b"),
        ]

        chosen = MasterElector(max_master_subnets=2).select_masters(nodes, 2)

        assert {n.subnet_id for n in chosen} == {"s-a", "s-b"}
