"""
Cycle contraction: strongly connected components of the block graph.

Each SCC gets a father block, its Tarjan root (the first member discovered,
i.e. the loop header reached from the entry). The father mapping turns the
CFG into a DAG of components, which bounds how the traversal engine walks
loops.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Set

from safedrop.mir.analyzers.graph import FunctionGraph


@dataclass
class SccInfo:
    """Result of cycle contraction"""
    fathers: Dict[int, int] = field(default_factory=dict)       # block -> father
    members: Dict[int, List[int]] = field(default_factory=dict)  # father -> blocks
    cyclic: Set[int] = field(default_factory=set)                # cyclic fathers
    condensed: Dict[int, List[int]] = field(default_factory=dict)  # father -> fathers

    def father(self, block_id: int) -> int:
        return self.fathers[block_id]

    def members_of(self, father: int) -> List[int]:
        return self.members.get(father, [])

    def is_cyclic(self, father: int) -> bool:
        return father in self.cyclic

    def in_cycle(self, block_id: int) -> bool:
        return self.fathers[block_id] in self.cyclic

    def is_acyclic(self) -> bool:
        """Check that the condensed father graph has no cycle"""
        color: Dict[int, int] = {}
        for start in sorted(self.condensed):
            if start in color:
                continue
            color[start] = 1
            stack = [(start, iter(self.condensed.get(start, [])))]
            while stack:
                node, succs = stack[-1]
                advanced = False
                for succ in succs:
                    state = color.get(succ, 0)
                    if state == 1:
                        return False
                    if state == 0:
                        color[succ] = 1
                        stack.append((succ, iter(self.condensed.get(succ, []))))
                        advanced = True
                        break
                if not advanced:
                    color[node] = 2
                    stack.pop()
        return True


def compute_sccs(successors: Dict[int, List[int]], roots: List[int]) -> SccInfo:
    """
    Iterative Tarjan over a successor map.

    Tarjan is run from each root in order, then from every remaining node in
    id order, so nodes unreachable from the roots also get a father.
    """
    index_of: Dict[int, int] = {}
    lowlink: Dict[int, int] = {}
    on_stack: Set[int] = set()
    stack: List[int] = []
    info = SccInfo()
    counter = 0

    order = list(roots) + [n for n in sorted(successors) if n not in roots]
    for root in order:
        if root in index_of:
            continue
        index_of[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(successors.get(root, [])))]

        while work:
            node, succs = work[-1]
            descended = False
            for succ in succs:
                if succ not in index_of:
                    index_of[succ] = lowlink[succ] = counter
                    counter += 1
                    stack.append(succ)
                    on_stack.add(succ)
                    work.append((succ, iter(successors.get(succ, []))))
                    descended = True
                    break
                if succ in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[succ])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])

            if lowlink[node] == index_of[node]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    info.fathers[member] = node
                    if member == node:
                        break
                info.members[node] = sorted(component)
                if len(component) > 1 or node in successors.get(node, []):
                    info.cyclic.add(node)

    for father, members in info.members.items():
        condensed = []
        for member in members:
            for succ in successors.get(member, []):
                succ_father = info.fathers[succ]
                if succ_father != father and succ_father not in condensed:
                    condensed.append(succ_father)
        info.condensed[father] = condensed
    return info


def contract_cycles(graph: FunctionGraph) -> SccInfo:
    """
    Compute SCCs over all block edges (unwind edges included) and assign
    each block its father.
    """
    successors = {bid: graph.blocks[bid].all_succs() for bid in graph.block_ids()}
    info = compute_sccs(successors, [graph.entry])
    for bid, block in graph.blocks.items():
        block.father = info.fathers[bid]
    return info
