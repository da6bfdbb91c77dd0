"""
Path-sensitive traversal of one function.

The engine walks the block graph from the entry with an explicit worklist
of independent (block, PathState, loop visits) items. Branches fork one
copy of the state per successor and states are never merged. Cycles are
bounded through the SCC fathers: inside a cyclic SCC each member block may
be entered at most `loop_unroll` times per path, and the whole function is
bounded by a visit budget.

Along each path the engine applies the ownership effect of every
statement and terminator, checks uses and drops against the current
state, and at each Return contributes the path's slot aliases and dropped
slots to the function's ReturnResults.

Findings are only recorded for memory touched by a manual intervention
(explicit drop, ownership reconstruction); automatic deallocation alone
never produces one.
"""

import itertools
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

import z3

from safedrop.mir.types import (
    Location, Place, TypeKind,
    Operand, Move, Constant,
    Use, Ref, AddressOf, Aggregate, BinaryOp, UnaryOp, Cast, PlaceRead,
)
from safedrop.mir.instructions import (
    Instr, Assign,
    Goto, SwitchInt, Return, Call, Drop, Assert,
)
from safedrop.mir.procedure import DropSpec, Program
from safedrop.mir.analyzers.graph import FunctionGraph, GraphBlock
from safedrop.mir.analyzers.scc import SccInfo
from safedrop.mir.analyzers.alias import DropStatus, PathState
from safedrop.mir.analyzers.constants import ConstantFolder
from safedrop.mir.analyzers.bugs import BugKind, BugRecord, BugRecorder
from safedrop.mir.analyzers.summary import SlotPath, DroppedSlot, ReturnResults


@dataclass
class AnalysisConfig:
    """
    Tunables of the analysis.

    visit_budget: blocks processed per function (summed over all paths)
        before the analysis of that function is abandoned as incomplete
    loop_unroll: times a block of a cyclic SCC may be entered per path
    follow_unwind: also walk unwind (cleanup) edges
    max_call_depth: nesting limit for on-demand analysis of callees
    """
    visit_budget: int = 10000
    loop_unroll: int = 2
    follow_unwind: bool = False
    max_call_depth: int = 8


@dataclass
class TraversalOutcome:
    """Result of walking one function"""
    bugs: List[BugRecord]
    summary: ReturnResults
    complete: bool = True
    visits: int = 0
    paths: int = 0
    cut_paths: int = 0


@dataclass
class _WorkItem:
    block: int
    state: PathState
    loop_visits: Dict[int, int] = field(default_factory=dict)


SummaryResolver = Callable[[str], Optional[ReturnResults]]


class PathTraversalEngine:
    """
    Walks one function graph path by path.

    Usage:
        graph = build_graph(body)
        engine = PathTraversalEngine(graph, contract_cycles(graph), program)
        outcome = engine.run()
    """

    def __init__(
        self,
        graph: FunctionGraph,
        scc: SccInfo,
        program: Program,
        config: Optional[AnalysisConfig] = None,
        resolve_summary: Optional[SummaryResolver] = None,
        folder: Optional[ConstantFolder] = None,
        verbose: bool = False,
    ):
        self.graph = graph
        self.scc = scc
        self.program = program
        self.config = config or AnalysisConfig()
        self.resolve_summary = resolve_summary
        self.folder = folder or ConstantFolder()
        self.verbose = verbose

        self.recorder = BugRecorder(graph.name)
        self.visits = 0
        self.paths = 0
        self.cut_paths = 0
        self.complete = True

        self._aliases: Set[Tuple[SlotPath, SlotPath]] = set()
        self._dropped: Set[DroppedSlot] = set()
        self._opaque = itertools.count()
        self._slot_paths = self._compute_slot_paths()

    # =========================================================================
    # Driver
    # =========================================================================

    def run(self) -> TraversalOutcome:
        stack = [_WorkItem(self.graph.entry, self.initial_state())]

        while stack:
            item = stack.pop()
            block = self.graph.blocks[item.block]
            father = block.father if block.father is not None else self.scc.father(block.id)

            if self.scc.is_cyclic(father):
                count = item.loop_visits.get(block.id, 0)
                if count >= self.config.loop_unroll:
                    self.cut_paths += 1
                    continue
                item.loop_visits[block.id] = count + 1

            if self.visits >= self.config.visit_budget:
                self.complete = False
                if self.verbose:
                    print(f"[SafeDrop] {self.graph.name}: visit budget of "
                          f"{self.config.visit_budget} exhausted, result incomplete")
                break
            self.visits += 1

            state = item.state
            for stmt in block.statements:
                self._apply_statement(state, stmt)
            successors = self._apply_terminator(state, block)

            if not successors:
                self.paths += 1
                continue

            # Reversed so the first successor is explored first
            for index in range(len(successors) - 1, -1, -1):
                succ = successors[index]
                succ_state = state if index == 0 else state.copy()
                if self.scc.father(succ) == father:
                    visits = dict(item.loop_visits)
                else:
                    visits = {}
                stack.append(_WorkItem(succ, succ_state, visits))

        summary = ReturnResults(
            function=self.graph.name,
            arg_count=self.graph.arg_count,
            aliases=frozenset(self._aliases),
            dropped=frozenset(self._dropped),
            complete=self.complete,
        )
        return TraversalOutcome(
            bugs=self.recorder.finalize(),
            summary=summary,
            complete=self.complete,
            visits=self.visits,
            paths=self.paths,
            cut_paths=self.cut_paths,
        )

    def initial_state(self) -> PathState:
        """Parameters (and their fields) own their memory when it needs drop."""
        state = PathState.initial(len(self.graph.nodes))
        for local in range(1, self.graph.arg_count + 1):
            for nid in self.graph.nodes.subtree(local):
                state[nid].owned = self.graph.node_type(nid).needs_drop()
        return state

    # =========================================================================
    # Helpers
    # =========================================================================

    def _compute_slot_paths(self) -> Dict[int, SlotPath]:
        slots = {}
        for slot in range(0, self.graph.arg_count + 1):
            for nid in self.graph.nodes.subtree(slot):
                _, fields = self.graph.nodes.field_path(nid)
                slots[nid] = SlotPath(slot, fields)
        return slots

    def _lookup(self, place: Place) -> Tuple[int, bool]:
        return self.graph.nodes.lookup(place)

    def _label(self, nid: int) -> str:
        return str(self.graph.nodes[nid])

    def _is_pointer(self, nid: int) -> bool:
        return self.graph.node_type(nid).is_pointer()

    def _releases_on_drop(self, nid: int) -> bool:
        ty = self.graph.node_type(nid)
        return ty.kind == TypeKind.UNKNOWN or ty.needs_drop()

    def _init_owned(self, state: PathState, nid: int, owned: Optional[bool] = None) -> None:
        for sub in self.graph.nodes.subtree(nid):
            if owned is None or sub != nid:
                state[sub].owned = self.graph.node_type(sub).needs_drop()
            else:
                state[sub].owned = owned

    def _lose_ownership(self, state: PathState, nid: int) -> None:
        for sub in self.graph.nodes.subtree(nid):
            node = state[sub]
            node.owned = False
            if node.status == DropStatus.NOT_DROPPED:
                node.status = DropStatus.MOVED_OUT

    # =========================================================================
    # Checks
    # =========================================================================

    def _check_use(self, state: PathState, nid: int, loc: Location, context: str) -> None:
        """Record a use-after-free if nid (or a field below it) is dropped."""
        for sub in self.graph.nodes.subtree(nid):
            node = state[sub]
            if node.is_dropped and state.is_tainted(sub):
                origin = node.dropped_by if node.dropped_by is not None else sub
                self.recorder.record(
                    BugKind.USE_AFTER_FREE, sub, origin, loc,
                    node_path=self._label(sub), origin_path=self._label(origin),
                    drop_loc=node.drop_loc, context=context)
                return

    def _drop(self, state: PathState, nid: int, loc: Location, manual: bool,
              require_owned: bool, context: str) -> None:
        """
        Deallocate the memory of nid.

        An automatic drop of a node that does not own its memory is a no-op.
        Dropping already-dropped memory is a double free.
        """
        node = state[nid]
        if require_owned and not node.owned:
            return
        if node.is_dropped:
            if manual or state.is_tainted(nid):
                origin = node.dropped_by if node.dropped_by is not None else nid
                self.recorder.record(
                    BugKind.DOUBLE_FREE, nid, origin, loc,
                    node_path=self._label(nid), origin_path=self._label(origin),
                    drop_loc=node.drop_loc, context=context)
            return

        targets: Set[int] = set()
        for member in state.alias_class(nid):
            targets.update(self.graph.nodes.subtree(member))
        targets.update(self.graph.nodes.subtree(nid))
        state.mark_dropped(sorted(targets), nid, loc, manual)

    def _use_operand(self, state: PathState, operand: Operand, loc: Location,
                     context: str) -> None:
        place = operand.place()
        if place is None:
            return
        nid, deref = self._lookup(place)
        if deref:
            self._check_use(state, nid, loc, f"{context} through dereference")
        elif isinstance(operand, Move):
            self._check_use(state, nid, loc, f"{context} (moved)")
        elif not self._is_pointer(nid):
            self._check_use(state, nid, loc, f"{context} (copied)")

    # =========================================================================
    # Constant values
    # =========================================================================

    def _known_value(self, state: PathState, operand: Operand):
        if isinstance(operand, Constant):
            if isinstance(operand.value, (bool, int)):
                return operand.value
            return None
        place = operand.place()
        if place is None:
            return None
        nid, deref = self._lookup(place)
        if deref:
            return None
        return state.consts.get(nid)

    def _term(self, state: PathState, operand: Operand) -> z3.ExprRef:
        value = self._known_value(state, operand)
        place = operand.place()
        if place is not None:
            nid, deref = self._lookup(place)
            is_bool = self.graph.node_type(nid).kind == TypeKind.BOOL
            if not deref:
                return self.folder.term(value, f"n{nid}", is_bool)
            return self.folder.term(None, f"deref{next(self._opaque)}", False)
        is_bool = isinstance(operand, Constant) and operand.typ.kind == TypeKind.BOOL
        return self.folder.term(value, f"opaque{next(self._opaque)}", is_bool)

    # =========================================================================
    # Statements
    # =========================================================================

    def _apply_statement(self, state: PathState, stmt: Instr) -> None:
        # StorageLive, StorageDead and Nop have no ownership effect
        if isinstance(stmt, Assign):
            self._apply_assign(state, stmt)

    def _apply_assign(self, state: PathState, stmt: Assign) -> None:
        loc = stmt.loc
        rvalue = stmt.rvalue
        dest, dest_deref = self._lookup(stmt.place)

        if dest_deref:
            # Write through a pointer: the pointee must still be alive
            self._check_use(state, dest, loc, "write through dereference")
            for operand in rvalue.operands():
                self._use_operand(state, operand, loc, "assignment")
                if isinstance(operand, Move) and operand.place() is not None:
                    src, src_deref = self._lookup(operand.place())
                    if not src_deref:
                        self._lose_ownership(state, src)
            return

        if isinstance(rvalue, Use):
            self._assign_operand(state, dest, rvalue.operand, loc)
        elif isinstance(rvalue, Ref):
            target, _ = self._lookup(rvalue.target)
            self._check_use(state, target, loc, "borrow")
            state.kill(self.graph.nodes.subtree(dest))
            state.join(dest, target)
        elif isinstance(rvalue, AddressOf):
            target, _ = self._lookup(rvalue.target)
            state.kill(self.graph.nodes.subtree(dest))
            state.join(dest, target)
        elif isinstance(rvalue, Aggregate):
            self._assign_aggregate(state, dest, rvalue, loc)
        elif isinstance(rvalue, Cast):
            self._assign_cast(state, dest, rvalue, loc)
        elif isinstance(rvalue, BinaryOp):
            self._use_operand(state, rvalue.left, loc, "operand")
            self._use_operand(state, rvalue.right, loc, "operand")
            if rvalue.op == "Offset":
                left = rvalue.left.place()
                state.kill(self.graph.nodes.subtree(dest))
                if left is not None:
                    state.join(dest, self._lookup(left)[0])
                return
            value = self.folder.fold_binary(
                rvalue.op, self._term(state, rvalue.left), self._term(state, rvalue.right))
            state.kill(self.graph.nodes.subtree(dest))
            if value is not None:
                state.consts[dest] = value
        elif isinstance(rvalue, UnaryOp):
            self._use_operand(state, rvalue.operand, loc, "operand")
            value = self.folder.fold_unary(rvalue.op, self._term(state, rvalue.operand))
            state.kill(self.graph.nodes.subtree(dest))
            if value is not None:
                state.consts[dest] = value
        elif isinstance(rvalue, PlaceRead):
            target, _ = self._lookup(rvalue.target)
            self._check_use(state, target, loc, f"{rvalue.kind} read")
            state.kill(self.graph.nodes.subtree(dest))
        else:
            state.kill(self.graph.nodes.subtree(dest))

    def _assign_operand(self, state: PathState, dest: int, operand: Operand,
                        loc: Location) -> None:
        self._use_operand(state, operand, loc, "assignment")
        place = operand.place()

        if place is None:
            state.kill(self.graph.nodes.subtree(dest))
            if isinstance(operand, Constant) and isinstance(operand.value, (bool, int)):
                state.consts[dest] = operand.value
            return

        src, deref = self._lookup(place)
        if deref:
            state.kill(self.graph.nodes.subtree(dest))
            if self._is_pointer(dest):
                state.join(dest, src)
            else:
                self._init_owned(state, dest)
            return
        if src == dest:
            return

        if isinstance(operand, Move):
            state.kill(self.graph.nodes.subtree(dest))
            self._move_into(state, dest, src)
            return

        value = state.consts.get(src)
        state.kill(self.graph.nodes.subtree(dest))
        if self._is_pointer(src):
            state.join(dest, src)
        elif value is not None:
            state.consts[dest] = value

    def _move_into(self, state: PathState, dest: int, src: int) -> None:
        """Transfer src's ownership, status and alias class to dest."""
        s, d = state[src], state[dest]
        d.owned = s.owned
        d.status = s.status
        d.dropped_by = s.dropped_by
        d.drop_loc = s.drop_loc
        d.tainted = s.tainted
        state.join(dest, src)
        if src in state.consts:
            state.consts[dest] = state.consts[src]

        s.owned = False
        if s.status == DropStatus.NOT_DROPPED:
            s.status = DropStatus.MOVED_OUT

        src_children = self.graph.nodes[src].children
        for name, dest_child in self.graph.nodes[dest].children.items():
            src_child = src_children.get(name)
            if src_child is not None:
                self._move_into(state, dest_child, src_child)

    def _assign_aggregate(self, state: PathState, dest: int, rvalue: Aggregate,
                          loc: Location) -> None:
        for operand in rvalue.items:
            self._use_operand(state, operand, loc, "aggregate field")
        state.kill(self.graph.nodes.subtree(dest))
        children = list(self.graph.nodes[dest].children.values())

        for index, operand in enumerate(rvalue.items):
            place = operand.place()
            if index < len(children):
                child = children[index]
                if place is None:
                    if isinstance(operand, Constant) and isinstance(operand.value, (bool, int)):
                        state.consts[child] = operand.value
                    continue
                src, deref = self._lookup(place)
                if deref:
                    self._init_owned(state, child)
                elif isinstance(operand, Move):
                    self._move_into(state, child, src)
                elif self._is_pointer(src):
                    state.join(child, src)
                continue

            # No field node for this operand: the aggregate itself aliases it
            if place is None:
                continue
            src, deref = self._lookup(place)
            if deref:
                continue
            if isinstance(operand, Move):
                if state[src].owned:
                    state[dest].owned = True
                state.join(dest, src)
                self._lose_ownership(state, src)
            elif self._is_pointer(src):
                state.join(dest, src)

    def _assign_cast(self, state: PathState, dest: int, rvalue: Cast, loc: Location) -> None:
        operand = rvalue.operand
        self._use_operand(state, operand, loc, "cast")
        place = operand.place()
        value = self._known_value(state, operand)
        state.kill(self.graph.nodes.subtree(dest))
        if place is None:
            if value is not None:
                state.consts[dest] = value
            return
        src, deref = self._lookup(place)
        if deref:
            return
        if self._is_pointer(src) or rvalue.typ.is_pointer() or self._is_pointer(dest):
            state.join(dest, src)
            if isinstance(operand, Move) and state[src].owned:
                state[dest].owned = True
                self._lose_ownership(state, src)
        elif value is not None and rvalue.typ.kind in (TypeKind.INT, TypeKind.BOOL):
            state.consts[dest] = int(value) if rvalue.typ.kind == TypeKind.INT else bool(value)

    # =========================================================================
    # Terminators
    # =========================================================================

    def _apply_terminator(self, state: PathState, block: GraphBlock) -> List[int]:
        """Apply a terminator; return the successors to explore."""
        term = block.terminator
        unwind = list(block.unwind_succs) if self.config.follow_unwind else []

        if isinstance(term, Goto):
            return [term.target]

        if isinstance(term, SwitchInt):
            self._use_operand(state, term.discr, term.loc, "switch operand")
            value = self._known_value(state, term.discr)
            if value is None:
                return list(block.succs)
            value = int(value)
            for arm_value, target in term.targets:
                if arm_value == value:
                    return [target]
            return [term.otherwise] if term.otherwise is not None else []

        if isinstance(term, Return):
            self._check_use(state, 0, term.loc, "returned from function")
            self._record_return(state)
            return []

        if isinstance(term, Call):
            self._apply_call(state, term)
            normal = [term.target] if term.target is not None else []
            return normal + [s for s in unwind if s not in normal]

        if isinstance(term, Drop):
            nid, deref = self._lookup(term.place)
            if deref:
                self._check_use(state, nid, term.loc, "drop through dereference")
            else:
                self._drop(state, nid, term.loc, manual=False, require_owned=True,
                           context="scope end")
            return [term.target] + [s for s in unwind if s != term.target]

        if isinstance(term, Assert):
            self._use_operand(state, term.cond, term.loc, "assert operand")
            value = self._known_value(state, term.cond)
            if value is not None and bool(value) != term.expected:
                return unwind
            if value is not None:
                return [term.target]
            return [term.target] + [s for s in unwind if s != term.target]

        # Unreachable, Resume, Abort
        return []

    def _record_return(self, state: PathState) -> None:
        for nid, slot_path in self._slot_paths.items():
            node = state[nid]
            for other in node.aliases:
                if other != nid and other in self._slot_paths:
                    pair = tuple(sorted((slot_path, self._slot_paths[other])))
                    self._aliases.add(pair)
            if slot_path.slot >= 1 and node.is_dropped:
                self._dropped.add(DroppedSlot(slot_path, manual=state.is_tainted(nid)))

    # =========================================================================
    # Calls
    # =========================================================================

    def _apply_call(self, state: PathState, term: Call) -> None:
        loc = term.loc
        args = term.args
        arg_nodes: List[Optional[Tuple[int, bool]]] = []
        for arg in args:
            place = arg.place()
            arg_nodes.append(self._lookup(place) if place is not None else None)

        summary: Optional[ReturnResults] = None
        spec: Optional[DropSpec] = None
        body = self.program.resolve_body(term.func)
        if body is not None:
            if self.resolve_summary is not None:
                summary = self.resolve_summary(body.name)
            if summary is None and self.verbose:
                print(f"[SafeDrop] {self.graph.name}: no summary for {body.name}, "
                      f"treating call as unknown")
        else:
            spec = self.program.get_spec(term.func)

        # Arguments the spec deallocates. A by-value drop of a reference or
        # other value without drop glue frees nothing
        spec_drops: List[int] = []
        if spec is not None:
            spec_drops = [index for index in spec.drops
                          if index < len(arg_nodes) and arg_nodes[index] is not None
                          and (spec.through_pointer
                               or self._releases_on_drop(arg_nodes[index][0]))]

        # Arguments the callee deallocates by manual intervention
        manual_drops: Set[int] = set()
        if spec is not None and spec.manual:
            manual_drops = set(spec_drops)
        if summary is not None:
            manual_drops = {d.path.slot - 1 for d in summary.dropped
                            if d.manual and d.path.slot >= 1}
        reconstructs = set(spec.reconstructs) if spec is not None else set()
        callee = term.func

        # 1. Uses
        for index, arg in enumerate(args):
            if index in manual_drops:
                continue
            if index in reconstructs and arg_nodes[index] is not None:
                self._check_use(state, arg_nodes[index][0], loc,
                                f"ownership taken from dangling pointer by {callee}")
                continue
            self._use_operand(state, arg, loc, f"argument to {callee}")

        # 2. Drops
        for index in spec_drops:
            self._drop(state, arg_nodes[index][0], loc, manual=spec.manual,
                       require_owned=False, context=f"dropped by {callee}")
        if summary is not None:
            for dropped in summary.sorted_dropped():
                index = dropped.path.slot - 1
                if dropped.path.slot < 1 or index >= len(arg_nodes) or arg_nodes[index] is None:
                    continue
                nid = self.graph.nodes.child_at(arg_nodes[index][0], dropped.path.fields)
                self._drop(state, nid, loc, manual=dropped.manual, require_owned=False,
                           context=f"dropped inside {callee}")

        # 3. Moves (forgotten arguments are consumed even when passed by copy)
        consumed = set(spec.forgets) if spec is not None else set()
        for index, arg in enumerate(args):
            if arg_nodes[index] is None or arg_nodes[index][1]:
                continue
            if isinstance(arg, Move) or index in consumed:
                self._lose_ownership(state, arg_nodes[index][0])

        # 4. Destination
        dest, dest_deref = self._lookup(term.destination)
        if dest_deref:
            self._check_use(state, dest, loc, "write through dereference")
            return
        state.kill(self.graph.nodes.subtree(dest))
        self._init_owned(state, dest, spec.ret_owned if spec is not None else None)

        # 5. Aliases
        if spec is not None:
            for index in spec.ret_aliases:
                if index < len(arg_nodes) and arg_nodes[index] is not None:
                    state.join(dest, arg_nodes[index][0])
            for index in spec.reconstructs:
                if index < len(arg_nodes) and arg_nodes[index] is not None:
                    state.join(dest, arg_nodes[index][0])
                    state.taint(dest)
        if summary is not None:
            for left, right in summary.sorted_aliases():
                a = self._slot_node(left, dest, arg_nodes)
                b = self._slot_node(right, dest, arg_nodes)
                if a is not None and b is not None and a != b:
                    state.join(a, b)

    def _slot_node(self, slot_path: SlotPath, dest: int,
                   arg_nodes: List[Optional[Tuple[int, bool]]]) -> Optional[int]:
        if slot_path.slot == 0:
            base = dest
        else:
            index = slot_path.slot - 1
            if index >= len(arg_nodes) or arg_nodes[index] is None:
                return None
            base = arg_nodes[index][0]
        return self.graph.nodes.child_at(base, slot_path.fields)
