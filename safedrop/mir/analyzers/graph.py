"""
Graph construction for one function body.

Turns a Body into the two tables the traversal engine works on:

- NodeTable: one node per tracked entity. Locals keep their MIR index as
  node id; fields of tuples and structs are flattened recursively (bounded
  depth) and appended after the locals.
- Block table: one GraphBlock per basic block, mirroring the CFG edges
  one-to-one (unwind edges included) with predecessors computed.

A body that cannot be analyzed raises UnsupportedBodyError; the caller
skips that function and carries on with the rest of the program.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from safedrop.mir.types import Typ, TypeKind, Place, DEREF
from safedrop.mir.instructions import Instr, Terminator, Assign, Drop
from safedrop.mir.procedure import Body


class UnsupportedBodyError(Exception):
    """Raised when a function body cannot be turned into a graph"""
    pass


# Fields nested deeper than this are not flattened
MAX_FIELD_DEPTH = 4

_FLATTENED = {TypeKind.TUPLE, TypeKind.ADT}


@dataclass
class NodeInfo:
    """Static part of a tracked node"""
    id: int
    ty: Typ
    local: int
    parent: Optional[int] = None
    field_name: Optional[str] = None
    children: Dict[str, int] = field(default_factory=dict)
    path: str = ""
    label: str = ""

    def __str__(self) -> str:
        return self.label or self.path

    @property
    def is_field(self) -> bool:
        return self.parent is not None


class NodeTable:
    """
    All nodes of a function.

    lookup() maps a place to (node id, went-through-deref). Field projections
    descend to child nodes; a deref projection stops at the pointer node,
    since the pointee is represented by the pointer's alias class.
    """

    def __init__(self):
        self.nodes: List[NodeInfo] = []

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, node_id: int) -> NodeInfo:
        return self.nodes[node_id]

    def __iter__(self):
        return iter(self.nodes)

    def add(self, info: NodeInfo) -> NodeInfo:
        self.nodes.append(info)
        return info

    def lookup(self, place: Place) -> Tuple[int, bool]:
        if place.local < 0 or place.local >= len(self.nodes) or self.nodes[place.local].is_field:
            raise KeyError(f"Unknown local in place {place}")
        current = place.local
        descending = True
        for elem in place.projection:
            if elem == DEREF:
                return current, True
            if descending and elem in self.nodes[current].children:
                current = self.nodes[current].children[elem]
            else:
                descending = False
        return current, False

    def descendants(self, node_id: int) -> List[int]:
        """All nodes below node_id, depth first in field order"""
        result = []
        stack = list(reversed(list(self.nodes[node_id].children.values())))
        while stack:
            nid = stack.pop()
            result.append(nid)
            stack.extend(reversed(list(self.nodes[nid].children.values())))
        return result

    def subtree(self, node_id: int) -> List[int]:
        return [node_id] + self.descendants(node_id)

    def field_path(self, node_id: int) -> Tuple[int, Tuple[str, ...]]:
        """(local, field names) addressing node_id"""
        fields = []
        info = self.nodes[node_id]
        while info.parent is not None:
            fields.append(info.field_name)
            info = self.nodes[info.parent]
        return info.id, tuple(reversed(fields))

    def child_at(self, node_id: int, fields: Tuple[str, ...]) -> int:
        """Descend along field names as far as nodes exist"""
        current = node_id
        for name in fields:
            child = self.nodes[current].children.get(name)
            if child is None:
                break
            current = child
        return current


@dataclass
class GraphBlock:
    """A block of the analysis graph"""
    id: int
    statements: List[Instr]
    terminator: Terminator
    succs: List[int] = field(default_factory=list)
    unwind_succs: List[int] = field(default_factory=list)
    preds: List[int] = field(default_factory=list)
    is_cleanup: bool = False
    father: Optional[int] = None

    def __str__(self) -> str:
        text = f"bb{self.id} -> {self.succs}"
        if self.unwind_succs:
            text += f" unwind {self.unwind_succs}"
        return text

    def all_succs(self) -> List[int]:
        result = list(self.succs)
        for succ in self.unwind_succs:
            if succ not in result:
                result.append(succ)
        return result


@dataclass
class FunctionGraph:
    """Node table and block table of one function"""
    body: Body
    nodes: NodeTable
    blocks: Dict[int, GraphBlock]
    entry: int

    @property
    def name(self) -> str:
        return self.body.name

    @property
    def arg_count(self) -> int:
        return self.body.arg_count

    def block_ids(self) -> List[int]:
        return sorted(self.blocks)

    def successors(self, block_id: int, follow_unwind: bool = False) -> List[int]:
        block = self.blocks[block_id]
        if follow_unwind:
            return block.all_succs()
        return list(block.succs)

    def node_type(self, node_id: int) -> Typ:
        return self.nodes[node_id].ty


# =============================================================================
# Builder
# =============================================================================

def _build_nodes(body: Body) -> NodeTable:
    table = NodeTable()
    for decl in body.locals:
        path = f"_{decl.index}"
        table.add(NodeInfo(id=decl.index, ty=decl.ty, local=decl.index,
                           path=path, label=decl.name or path))

    # Fields are appended after all locals so locals keep their MIR index
    for decl in body.locals:
        _flatten(table, decl.index, decl.ty, 1)
    return table


def _flatten(table: NodeTable, parent_id: int, ty: Typ, depth: int) -> None:
    if ty.kind not in _FLATTENED or depth > MAX_FIELD_DEPTH:
        return
    parent = table[parent_id]
    for name, field_ty in ty.fields.items():
        info = table.add(NodeInfo(
            id=len(table),
            ty=field_ty,
            local=parent.local,
            parent=parent_id,
            field_name=name,
            path=f"{parent.path}.{name}",
            label=f"{parent.label}.{name}",
        ))
        parent.children[name] = info.id
        _flatten(table, info.id, field_ty, depth + 1)


def _instr_places(instr: Instr) -> List[Place]:
    places = list(instr.get_read_places()) + list(instr.get_written_places())
    if isinstance(instr, Assign):
        target = getattr(instr.rvalue, "target", None)
        if isinstance(target, Place):
            places.append(target)
    if isinstance(instr, Drop):
        places.append(instr.place)
    return places


def build_graph(body: Body) -> FunctionGraph:
    """
    Build the analysis graph of a body.

    Raises:
        UnsupportedBodyError: a body that failed to translate, no
            executable body, no blocks, too few local declarations,
            dangling successor ids or places naming undeclared locals.
    """
    if body.parse_error is not None:
        raise UnsupportedBodyError(body.parse_error)
    if not body.has_body:
        raise UnsupportedBodyError(f"{body.name}: no executable body")
    if not body.blocks:
        raise UnsupportedBodyError(f"{body.name}: body has no blocks")
    if len(body.locals) < body.arg_count + 1:
        raise UnsupportedBodyError(
            f"{body.name}: {len(body.locals)} locals declared, "
            f"need at least {body.arg_count + 1}")
    for position, decl in enumerate(body.locals):
        if decl.index != position:
            raise UnsupportedBodyError(f"{body.name}: local _{decl.index} out of order")

    entry = body.entry_block
    if entry is None:
        raise UnsupportedBodyError(f"{body.name}: no entry block")

    nodes = _build_nodes(body)
    blocks: Dict[int, GraphBlock] = {}
    for block_id in sorted(body.blocks):
        bb = body.blocks[block_id]
        blocks[block_id] = GraphBlock(
            id=block_id,
            statements=list(bb.statements),
            terminator=bb.terminator,
            succs=list(bb.successors()),
            unwind_succs=[s for s in bb.unwind_successors() if s not in bb.successors()],
            is_cleanup=bb.is_cleanup,
        )

    for block in blocks.values():
        for succ in block.all_succs():
            if succ not in blocks:
                raise UnsupportedBodyError(
                    f"{body.name}: bb{block.id} jumps to missing bb{succ}")
            if block.id not in blocks[succ].preds:
                blocks[succ].preds.append(block.id)
        for instr in list(block.statements) + [block.terminator]:
            for place in _instr_places(instr):
                if place.local >= len(body.locals):
                    raise UnsupportedBodyError(
                        f"{body.name}: {instr.loc}: undeclared local in {place}")

    return FunctionGraph(body=body, nodes=nodes, blocks=blocks, entry=entry)
