"""
Function bodies and programs for SafeDrop MIR.

This module defines:
- DropSpec: Ownership model of a library function
- LocalDecl: A declared local (index 0 is the return place)
- BasicBlock: A basic block ending in a terminator
- Body: A function with its CFG
- Program: All bodies of a crate plus library models

Block ids are the ids of the MIR dump; they need not be contiguous.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Set, Iterator

from .types import Typ, Location
from .instructions import Instr, Terminator, Call, Unreachable


# =============================================================================
# Library function model
# =============================================================================

@dataclass
class DropSpec:
    """
    Ownership model of a library function.

    Argument positions are 0-indexed. The return value is the call's
    destination place.
    """

    # Arguments whose memory is deallocated by the call
    drops: List[int] = field(default_factory=list)

    # Deallocation counts as a manual intervention (mem::drop, drop_in_place)
    manual: bool = False

    # Dropped arguments are pointers whose pointee is freed (drop_in_place,
    # dealloc). Otherwise the argument value itself is dropped (mem::drop)
    through_pointer: bool = False

    # Arguments consumed without being deallocated (mem::forget, Box::into_raw)
    forgets: List[int] = field(default_factory=list)

    # Arguments whose memory gets a new owner (Box::from_raw, ptr::read)
    reconstructs: List[int] = field(default_factory=list)

    # Arguments whose memory the return value points into
    ret_aliases: List[int] = field(default_factory=list)

    # Ownership of the return value: None means "owned if its type needs drop"
    ret_owned: Optional[bool] = None

    # Human-readable description
    description: str = ""

    def is_drop(self) -> bool:
        return len(self.drops) > 0

    def is_forget(self) -> bool:
        return len(self.forgets) > 0

    def is_reconstruction(self) -> bool:
        return len(self.reconstructs) > 0

    def is_intervention(self) -> bool:
        """Does this call bypass automatic deallocation?"""
        return (self.is_drop() and self.manual) or self.is_reconstruction()


# =============================================================================
# Locals and blocks
# =============================================================================

@dataclass
class LocalDecl:
    """A local declaration. Local 0 holds the return value."""
    index: int
    ty: Typ
    name: Optional[str] = None

    def __str__(self) -> str:
        label = f" ({self.name})" if self.name else ""
        return f"_{self.index}: {self.ty}{label}"


@dataclass
class BasicBlock:
    """
    A basic block: straight-line statements ended by one terminator.

    Cleanup blocks are only reachable through unwind edges.
    """

    id: int
    statements: List[Instr] = field(default_factory=list)
    terminator: Terminator = field(
        default_factory=lambda: Unreachable(Location.unknown()))
    is_cleanup: bool = False

    def __str__(self) -> str:
        header = f"bb{self.id}" + (" (cleanup)" if self.is_cleanup else "") + ":"
        lines = [header]
        for stmt in self.statements:
            lines.append(f"    {stmt};")
        lines.append(f"    {self.terminator};")
        return "\n".join(lines)

    def successors(self) -> List[int]:
        return self.terminator.successors()

    def unwind_successors(self) -> List[int]:
        return self.terminator.unwind_successors()

    def all_successors(self) -> List[int]:
        result = list(self.successors())
        for succ in self.unwind_successors():
            if succ not in result:
                result.append(succ)
        return result

    def instrs(self) -> Iterator[Instr]:
        """Statements followed by the terminator"""
        yield from self.statements
        yield self.terminator


# =============================================================================
# Body
# =============================================================================

@dataclass
class Body:
    """
    A function body.

    Locals 1..arg_count are the parameters. The entry block is the block
    with the smallest id (bb0 in compiler output).
    """

    name: str
    arg_count: int = 0
    locals: List[LocalDecl] = field(default_factory=list)
    blocks: Dict[int, BasicBlock] = field(default_factory=dict)
    loc: Optional[Location] = None
    has_body: bool = True
    # Why the body could not be translated, if it could not
    parse_error: Optional[str] = None

    def __str__(self) -> str:
        params = ", ".join(str(d) for d in self.locals[1:self.arg_count + 1])
        ret = f" -> {self.locals[0].ty}" if self.locals else ""
        return f"fn {self.name}({params}){ret}"

    @property
    def entry_block(self) -> Optional[int]:
        return min(self.blocks) if self.blocks else None

    def add_block(self, block: BasicBlock) -> None:
        self.blocks[block.id] = block

    def get_block(self, block_id: int) -> Optional[BasicBlock]:
        return self.blocks.get(block_id)

    def local_type(self, index: int) -> Typ:
        if 0 <= index < len(self.locals):
            return self.locals[index].ty
        return Typ.unknown_type()

    def param_indices(self) -> List[int]:
        return list(range(1, self.arg_count + 1))

    def get_calls(self) -> Iterator[Call]:
        """Iterate over the call terminators of this body"""
        for block_id in sorted(self.blocks):
            term = self.blocks[block_id].terminator
            if isinstance(term, Call):
                yield term

    def pretty(self) -> str:
        lines = [str(self) + " {"]
        for decl in self.locals:
            lines.append(f"    let {decl};")
        for block_id in sorted(self.blocks):
            for line in str(self.blocks[block_id]).splitlines():
                lines.append("    " + line)
        lines.append("}")
        return "\n".join(lines)


# =============================================================================
# Program
# =============================================================================

@dataclass
class Program:
    """
    A complete crate.

    Contains:
    - All function bodies indexed by name
    - ADT declarations
    - Library models for standard-library functions
    """

    bodies: Dict[str, Body] = field(default_factory=dict)
    adts: Dict[str, Typ] = field(default_factory=dict)
    library_specs: Dict[str, DropSpec] = field(default_factory=dict)
    crate: str = "crate"
    source_files: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        lines = [f"Crate {self.crate} with {len(self.bodies)} functions:"]
        for name in sorted(self.bodies):
            lines.append(f"  - {name}")
        return "\n".join(lines)

    def add_body(self, body: Body) -> None:
        self.bodies[body.name] = body

    def get_body(self, name: str) -> Optional[Body]:
        return self.bodies.get(name)

    def has_body(self, name: str) -> bool:
        return name in self.bodies

    def function_ids(self) -> List[str]:
        return sorted(self.bodies)

    # =========================================================================
    # Callee resolution
    # =========================================================================

    def resolve_body(self, func_name: str) -> Optional[Body]:
        """Program-local body for a callee path, if any"""
        if func_name in self.bodies:
            return self.bodies[func_name]
        from .specs import normalize_callee
        normalized = normalize_callee(func_name)
        if normalized in self.bodies:
            return self.bodies[normalized]
        return None

    def get_spec(self, func_name: str) -> Optional[DropSpec]:
        """
        Get the library model for a callee.

        Program-local bodies take precedence, so a crate function that
        shadows a library path never resolves to the model.
        """
        if self.resolve_body(func_name) is not None:
            return None
        from .specs import lookup_spec
        return lookup_spec(func_name, self.library_specs)

    def get_call_graph(self) -> Dict[str, Set[str]]:
        """Map each body to the program-local bodies it calls"""
        call_graph = {}
        for name, body in self.bodies.items():
            callees = set()
            for call in body.get_calls():
                callee = self.resolve_body(call.func)
                if callee is not None:
                    callees.add(callee.name)
            call_graph[name] = callees
        return call_graph
