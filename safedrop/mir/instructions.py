"""
MIR instruction definitions.

This module defines the statements and terminators of SafeDrop MIR:

Statements (no control flow):
- Assign: place = rvalue
- StorageLive / StorageDead: scope markers
- Nop

Terminators (end every basic block):
- Goto: unconditional jump
- SwitchInt: multi-way branch on an integer/bool operand
- Return: function exit
- Call: function call with normal and unwind successors
- Drop: automatic scope-end drop inserted by the compiler
- Assert: runtime check, panics into the unwind edge
- Unreachable / Resume / Abort: path ends without returning
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from enum import Enum

from .types import Location, Place, Operand, Rvalue


class TerminatorKind(Enum):
    """Kind of block terminator"""
    GOTO = "goto"
    SWITCH_INT = "switch_int"
    RETURN = "return"
    CALL = "call"
    DROP = "drop"
    ASSERT = "assert"
    UNREACHABLE = "unreachable"
    RESUME = "resume"
    ABORT = "abort"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Base Instruction
# =============================================================================

@dataclass
class Instr:
    """
    Base class for all MIR statements and terminators.

    Every instruction has a source location for error reporting.
    """
    loc: Location

    def __str__(self) -> str:
        return "<instr>"

    def get_read_places(self) -> List[Place]:
        """Return places read by this instruction"""
        return []

    def get_written_places(self) -> List[Place]:
        """Return places written by this instruction"""
        return []


# =============================================================================
# Statements
# =============================================================================

@dataclass
class Assign(Instr):
    """
    Assignment: place = rvalue

    Moves transfer ownership, borrows and raw address-of create aliases.
    """
    place: Place
    rvalue: Rvalue

    def __str__(self) -> str:
        return f"{self.place} = {self.rvalue}"

    def get_read_places(self) -> List[Place]:
        places = [op.place() for op in self.rvalue.operands()]
        return [p for p in places if p is not None]

    def get_written_places(self) -> List[Place]:
        return [self.place]


@dataclass
class StorageLive(Instr):
    """Start of a local's storage scope"""
    local: int

    def __str__(self) -> str:
        return f"StorageLive(_{self.local})"


@dataclass
class StorageDead(Instr):
    """End of a local's storage scope"""
    local: int

    def __str__(self) -> str:
        return f"StorageDead(_{self.local})"


@dataclass
class Nop(Instr):
    """No operation"""

    def __str__(self) -> str:
        return "nop"


# =============================================================================
# Terminators
# =============================================================================

@dataclass
class Terminator(Instr):
    """Base class for block terminators"""

    kind = TerminatorKind.UNREACHABLE

    def successors(self) -> List[int]:
        """Normal control-flow successors"""
        return []

    def unwind_successors(self) -> List[int]:
        """Abnormal (cleanup) successors"""
        return []


@dataclass
class Goto(Terminator):
    """Unconditional jump"""
    target: int

    kind = TerminatorKind.GOTO

    def __str__(self) -> str:
        return f"goto -> bb{self.target}"

    def successors(self) -> List[int]:
        return [self.target]


@dataclass
class SwitchInt(Terminator):
    """
    Multi-way branch: jump to the target whose value equals the operand,
    otherwise to `otherwise`.

    An `if` lowers to SwitchInt(cond, [(0, else_bb)], otherwise=then_bb).
    """
    discr: Operand
    targets: List[Tuple[int, int]] = field(default_factory=list)  # (value, block)
    otherwise: Optional[int] = None

    kind = TerminatorKind.SWITCH_INT

    def __str__(self) -> str:
        arms = ", ".join(f"{v}: bb{b}" for v, b in self.targets)
        if self.otherwise is not None:
            arms = f"{arms}, otherwise: bb{self.otherwise}" if arms else f"otherwise: bb{self.otherwise}"
        return f"switchInt({self.discr}) -> [{arms}]"

    def successors(self) -> List[int]:
        result = []
        for _, block in self.targets:
            if block not in result:
                result.append(block)
        if self.otherwise is not None and self.otherwise not in result:
            result.append(self.otherwise)
        return result

    def get_read_places(self) -> List[Place]:
        place = self.discr.place()
        return [place] if place is not None else []


@dataclass
class Return(Terminator):
    """Return from the function: _0 holds the return value"""

    kind = TerminatorKind.RETURN

    def __str__(self) -> str:
        return "return"


@dataclass
class Call(Terminator):
    """
    Function call: destination = func(args) -> [return: target, unwind: unwind]

    `func` is the callee path as printed by the host compiler, e.g.
    "std::vec::Vec::<u8>::from_raw_parts". A None target means the call
    diverges.
    """
    func: str
    args: List[Operand]
    destination: Place
    target: Optional[int] = None
    unwind: Optional[int] = None

    kind = TerminatorKind.CALL

    def __str__(self) -> str:
        args_str = ", ".join(str(a) for a in self.args)
        return f"{self.destination} = {self.func}({args_str})"

    def successors(self) -> List[int]:
        return [self.target] if self.target is not None else []

    def unwind_successors(self) -> List[int]:
        return [self.unwind] if self.unwind is not None else []

    def get_read_places(self) -> List[Place]:
        places = [a.place() for a in self.args]
        return [p for p in places if p is not None]

    def get_written_places(self) -> List[Place]:
        return [self.destination]


@dataclass
class Drop(Terminator):
    """
    Automatic drop inserted at the end of a value's scope.

    Dropping a place that no longer owns its value (moved out, forgotten)
    is a no-op at runtime.
    """
    place: Place
    target: int
    unwind: Optional[int] = None

    kind = TerminatorKind.DROP

    def __str__(self) -> str:
        return f"drop({self.place}) -> bb{self.target}"

    def successors(self) -> List[int]:
        return [self.target]

    def unwind_successors(self) -> List[int]:
        return [self.unwind] if self.unwind is not None else []


@dataclass
class Assert(Terminator):
    """Runtime assertion: continue to target if cond == expected, else panic"""
    cond: Operand
    expected: bool
    target: int
    unwind: Optional[int] = None

    kind = TerminatorKind.ASSERT

    def __str__(self) -> str:
        return f"assert({self.cond} == {self.expected}) -> bb{self.target}"

    def successors(self) -> List[int]:
        return [self.target]

    def unwind_successors(self) -> List[int]:
        return [self.unwind] if self.unwind is not None else []

    def get_read_places(self) -> List[Place]:
        place = self.cond.place()
        return [place] if place is not None else []


@dataclass
class Unreachable(Terminator):
    """Control never reaches this point"""

    kind = TerminatorKind.UNREACHABLE

    def __str__(self) -> str:
        return "unreachable"


@dataclass
class Resume(Terminator):
    """End of an unwind path: continue unwinding into the caller"""

    kind = TerminatorKind.RESUME

    def __str__(self) -> str:
        return "resume"


@dataclass
class Abort(Terminator):
    """Abort the process"""

    kind = TerminatorKind.ABORT

    def __str__(self) -> str:
        return "abort"
