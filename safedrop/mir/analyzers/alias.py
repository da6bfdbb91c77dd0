"""
Per-path alias and ownership state.

Each path of the traversal carries its own PathState; states are never
merged. For every node the state tracks:

- owned: the node is responsible for deallocating its memory
- status: NOT_DROPPED / DROPPED / MOVED_OUT
- dropped_by / drop_loc: which node's deallocation freed it, and where
- tainted: the memory was touched by a manual intervention
- aliases: the set of nodes referring to the same memory

Alias sets are symmetric and kept transitively closed: every member of a
class holds the same set.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Union

from safedrop.mir.types import Location


class DropStatus(Enum):
    """Deallocation status of a node"""
    NOT_DROPPED = "not_dropped"
    DROPPED = "dropped"
    MOVED_OUT = "moved_out"


@dataclass
class NodeState:
    """Dynamic part of a tracked node"""
    owned: bool = False
    status: DropStatus = DropStatus.NOT_DROPPED
    dropped_by: Optional[int] = None
    drop_loc: Optional[Location] = None
    tainted: bool = False
    aliases: Set[int] = field(default_factory=set)

    def copy(self) -> 'NodeState':
        return NodeState(
            owned=self.owned,
            status=self.status,
            dropped_by=self.dropped_by,
            drop_loc=self.drop_loc,
            tainted=self.tainted,
            aliases=set(self.aliases),
        )

    @property
    def is_dropped(self) -> bool:
        return self.status == DropStatus.DROPPED


@dataclass
class PathState:
    """State at a point in a control flow path."""
    nodes: List[NodeState] = field(default_factory=list)
    # Known integer/bool values of nodes on this path
    consts: Dict[int, Union[int, bool]] = field(default_factory=dict)

    @classmethod
    def initial(cls, node_count: int) -> 'PathState':
        return cls(nodes=[NodeState(aliases={i}) for i in range(node_count)])

    def copy(self) -> 'PathState':
        """Create a deep copy of this state."""
        return PathState(
            nodes=[n.copy() for n in self.nodes],
            consts=dict(self.consts),
        )

    def __getitem__(self, node_id: int) -> NodeState:
        return self.nodes[node_id]

    def alias_class(self, node_id: int) -> Set[int]:
        return self.nodes[node_id].aliases

    def join(self, a: int, b: int) -> None:
        """Merge the alias classes of a and b, spreading taint."""
        merged = self.nodes[a].aliases | self.nodes[b].aliases
        tainted = any(self.nodes[n].tainted for n in merged)
        for n in merged:
            self.nodes[n].aliases = set(merged)
            if tainted:
                self.nodes[n].tainted = True

    def kill(self, node_ids: List[int]) -> None:
        """
        Forget everything known about the given nodes before they are
        overwritten: leave their alias classes and reset ownership, status,
        taint and constants.
        """
        for nid in node_ids:
            state = self.nodes[nid]
            for other in state.aliases:
                if other != nid:
                    self.nodes[other].aliases.discard(nid)
            state.aliases = {nid}
            state.owned = False
            state.status = DropStatus.NOT_DROPPED
            state.dropped_by = None
            state.drop_loc = None
            state.tainted = False
            self.consts.pop(nid, None)

    def taint(self, node_id: int) -> None:
        for n in self.nodes[node_id].aliases:
            self.nodes[n].tainted = True

    def is_tainted(self, node_id: int) -> bool:
        """Was this node, or the node that dropped it, manually handled?"""
        state = self.nodes[node_id]
        if state.tainted:
            return True
        if state.dropped_by is not None:
            return self.nodes[state.dropped_by].tainted
        return False

    def mark_dropped(self, node_ids: List[int], dropped_by: int,
                     loc: Location, manual: bool) -> None:
        for nid in node_ids:
            state = self.nodes[nid]
            state.status = DropStatus.DROPPED
            state.dropped_by = dropped_by
            state.drop_loc = loc
            if manual:
                state.tainted = True
