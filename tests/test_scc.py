"""
Tests for cycle contraction (strongly connected components).
"""

import random

import pytest

from safedrop.mir.analyzers.graph import build_graph
from safedrop.mir.analyzers.scc import compute_sccs, contract_cycles

from mir_helpers import program, loop_drop_in_place, reconstruct_uaf


class TestComputeSccs:
    """Tarjan over successor maps"""

    def test_straight_line(self):
        info = compute_sccs({0: [1], 1: [2], 2: []}, [0])
        assert info.fathers == {0: 0, 1: 1, 2: 2}
        assert not info.cyclic
        assert info.is_acyclic()

    def test_simple_loop(self):
        info = compute_sccs({0: [1], 1: [2, 3], 2: [1], 3: []}, [0])
        assert info.father(1) == info.father(2) == 1
        assert info.is_cyclic(1)
        assert info.in_cycle(2)
        assert not info.in_cycle(3)
        assert info.members_of(1) == [1, 2]

    def test_father_is_loop_header(self):
        # Header reached from the entry is discovered first
        info = compute_sccs({0: [3], 3: [1], 1: [2], 2: [3, 4], 4: []}, [0])
        assert info.father(1) == 3
        assert info.father(2) == 3

    def test_self_loop_is_cyclic(self):
        info = compute_sccs({0: [0, 1], 1: []}, [0])
        assert info.is_cyclic(0)
        assert not info.is_cyclic(1)

    def test_nested_loops_share_one_component(self):
        succs = {0: [1], 1: [2, 5], 2: [3], 3: [2, 4], 4: [1], 5: []}
        info = compute_sccs(succs, [0])
        assert {info.father(b) for b in (1, 2, 3, 4)} == {1}

    def test_unreachable_nodes_get_a_father(self):
        info = compute_sccs({0: [], 7: [8], 8: [7]}, [0])
        assert info.father(7) == info.father(8)
        assert info.is_cyclic(info.father(7))

    def test_condensed_graph(self):
        info = compute_sccs({0: [1], 1: [2, 3], 2: [1], 3: []}, [0])
        assert info.condensed[0] == [1]
        assert info.condensed[1] == [3]
        assert info.condensed[3] == []

    def test_condensation_is_acyclic_for_random_graphs(self):
        rng = random.Random(1234)
        for _ in range(200):
            n = rng.randint(1, 12)
            succs = {i: [rng.randrange(n) for _ in range(rng.randint(0, 3))] for i in range(n)}
            info = compute_sccs(succs, [0])
            assert set(info.fathers) == set(range(n))
            assert info.is_acyclic()

    def test_deep_chain_is_iterative(self):
        n = 5000
        succs = {i: [i + 1] for i in range(n)}
        succs[n] = [0]
        info = compute_sccs(succs, [0])
        assert len(info.members_of(info.father(0))) == n + 1


class TestContractCycles:
    """Fathers assigned to graph blocks"""

    def test_loop_fathers(self):
        prog = program(loop_drop_in_place())
        graph = build_graph(prog.get_body("demo::loop_drop"))
        info = contract_cycles(graph)
        assert graph.blocks[2].father == graph.blocks[3].father == 2
        assert info.is_cyclic(2)
        assert graph.blocks[4].father == 4
        assert not info.is_cyclic(0)

    def test_acyclic_function(self):
        prog = program(reconstruct_uaf())
        graph = build_graph(prog.get_body("demo::reconstruct_uaf"))
        info = contract_cycles(graph)
        assert not info.cyclic
        assert all(block.father == block.id for block in graph.blocks.values())
