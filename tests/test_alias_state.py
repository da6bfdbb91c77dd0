"""
Tests for per-path alias and ownership state.
"""

import pytest

from safedrop.mir.types import Location
from safedrop.mir.analyzers.alias import DropStatus, PathState


LOC = Location("demo.rs", 10, 1)


class TestAliasClasses:
    """Union of alias classes"""

    def test_initial_classes_are_singletons(self):
        state = PathState.initial(3)
        for nid in range(3):
            assert state.alias_class(nid) == {nid}
            assert not state[nid].owned
            assert state[nid].status == DropStatus.NOT_DROPPED

    def test_join_is_symmetric_and_transitive(self):
        state = PathState.initial(4)
        state.join(0, 1)
        state.join(2, 1)
        for nid in (0, 1, 2):
            assert state.alias_class(nid) == {0, 1, 2}
        assert state.alias_class(3) == {3}

    def test_join_spreads_taint(self):
        state = PathState.initial(3)
        state.taint(2)
        state.join(0, 1)
        assert not state[0].tainted
        state.join(1, 2)
        assert state[0].tainted and state[1].tainted

    def test_kill_leaves_class(self):
        state = PathState.initial(3)
        state.join(0, 1)
        state.join(1, 2)
        state.consts[1] = 5
        state[1].owned = True
        state.kill([1])
        assert state.alias_class(1) == {1}
        assert state.alias_class(0) == {0, 2}
        assert not state[1].owned
        assert 1 not in state.consts


class TestDropStatus:
    """Deallocation bookkeeping"""

    def test_mark_dropped(self):
        state = PathState.initial(3)
        state.mark_dropped([0, 1], dropped_by=0, loc=LOC, manual=False)
        assert state[1].is_dropped
        assert state[1].dropped_by == 0
        assert state[1].drop_loc == LOC
        assert not state[1].tainted
        assert state[0].is_dropped
        assert not state[2].is_dropped

    def test_manual_drop_taints(self):
        state = PathState.initial(2)
        state.mark_dropped([1], dropped_by=1, loc=LOC, manual=True)
        assert state.is_tainted(1)

    def test_taint_through_dropper(self):
        state = PathState.initial(3)
        state.taint(2)
        state.mark_dropped([0], dropped_by=2, loc=LOC, manual=False)
        assert not state[0].tainted
        assert state.is_tainted(0)


class TestCopy:
    """Forked states are independent"""

    def test_copy_is_deep(self):
        state = PathState.initial(2)
        fork = state.copy()
        fork.join(0, 1)
        fork[0].owned = True
        fork.consts[0] = 1
        assert state.alias_class(0) == {0}
        assert not state[0].owned
        assert state.consts == {}
