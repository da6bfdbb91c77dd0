"""
Core type definitions for SafeDrop MIR.

This module defines the fundamental types used throughout the MIR layer:
- Source locations for error reporting
- Type representations (with ownership queries)
- Places (locals with field/deref projections)
- Operands and rvalues
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union, Any
from enum import Enum, auto


DEREF = "*"


# =============================================================================
# Source locations
# =============================================================================

@dataclass(frozen=True)
class Location:
    """
    Source location for error reporting.

    Tracks where in the original source code an instruction originated.
    """
    file: str
    line: int
    column: int = 0
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"

    def __repr__(self) -> str:
        return f"Location({self.file!r}, {self.line}, {self.column})"

    def sort_key(self) -> Tuple[str, int, int]:
        return (self.file, self.line, self.column)

    def to_dict(self) -> dict:
        return {
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "end_line": self.end_line,
            "end_column": self.end_column,
        }

    @classmethod
    def unknown(cls) -> 'Location':
        """Create an unknown location"""
        return cls("<unknown>", 0)


# =============================================================================
# Types
# =============================================================================

class TypeKind(Enum):
    """Basic type kinds"""
    INT = auto()
    FLOAT = auto()
    BOOL = auto()
    CHAR = auto()
    STR = auto()
    UNIT = auto()
    REF = auto()            # &T
    MUT_REF = auto()        # &mut T
    RAW_PTR = auto()        # *const T / *mut T
    BOX = auto()
    VEC = auto()
    STRING = auto()
    RC = auto()             # Rc / Arc
    MANUALLY_DROP = auto()
    TUPLE = auto()
    ARRAY = auto()
    ADT = auto()            # struct / enum with fields
    FN = auto()
    NEVER = auto()
    UNKNOWN = auto()


# Owning smart pointers and containers always release heap memory on drop.
_HEAP_OWNERS = {TypeKind.BOX, TypeKind.VEC, TypeKind.STRING, TypeKind.RC}

_POINTERS = {TypeKind.REF, TypeKind.MUT_REF, TypeKind.RAW_PTR}


@dataclass
class Typ:
    """
    Type representation.

    Supports primitives, references, raw pointers, owning containers and
    aggregates. Aggregate fields are kept in declaration order so that
    tuple/struct aggregates can be matched to operands positionally.
    """
    kind: TypeKind
    pointee: Optional['Typ'] = None               # For references/pointers/Box
    args: List['Typ'] = field(default_factory=list)  # Generic arguments
    fields: Dict[str, 'Typ'] = field(default_factory=dict)  # For tuples/ADTs
    name: Optional[str] = None                    # Named types (ADTs, etc.)
    mutable: bool = False                         # For *mut / &mut
    has_drop_impl: bool = False                   # ADT implements Drop

    def __str__(self) -> str:
        if self.kind == TypeKind.REF and self.pointee:
            return f"&{self.pointee}"
        if self.kind == TypeKind.MUT_REF and self.pointee:
            return f"&mut {self.pointee}"
        if self.kind == TypeKind.RAW_PTR and self.pointee:
            qual = "mut" if self.mutable else "const"
            return f"*{qual} {self.pointee}"
        if self.kind == TypeKind.TUPLE:
            inner = ", ".join(str(t) for t in self.fields.values())
            return f"({inner})"
        if self.kind == TypeKind.UNIT:
            return "()"
        if self.name:
            if self.args:
                return f"{self.name}<{', '.join(str(a) for a in self.args)}>"
            return self.name
        return self.kind.name.lower()

    def is_pointer(self) -> bool:
        """References and raw pointers: values that name other memory."""
        return self.kind in _POINTERS

    def is_raw_pointer(self) -> bool:
        return self.kind == TypeKind.RAW_PTR

    def needs_drop(self) -> bool:
        """
        Does dropping a value of this type release resources?

        Owning containers always do. ManuallyDrop never does. Aggregates need
        drop when they implement Drop or any field/generic argument does.
        """
        return self._needs_drop(0)

    def _needs_drop(self, depth: int) -> bool:
        if depth > 8:
            return False
        if self.kind in _HEAP_OWNERS:
            return True
        if self.kind == TypeKind.MANUALLY_DROP:
            return False
        if self.kind in (TypeKind.TUPLE, TypeKind.ARRAY, TypeKind.ADT):
            if self.has_drop_impl:
                return True
            for sub in list(self.fields.values()) + self.args:
                if sub._needs_drop(depth + 1):
                    return True
            if self.kind == TypeKind.ARRAY and self.pointee is not None:
                return self.pointee._needs_drop(depth + 1)
        return False

    def is_copy(self) -> bool:
        return not self.needs_drop() and self.kind != TypeKind.MUT_REF

    # Common constructors

    @classmethod
    def int_type(cls) -> 'Typ':
        return cls(TypeKind.INT, name="i32")

    @classmethod
    def bool_type(cls) -> 'Typ':
        return cls(TypeKind.BOOL, name="bool")

    @classmethod
    def unit_type(cls) -> 'Typ':
        return cls(TypeKind.UNIT)

    @classmethod
    def unknown_type(cls) -> 'Typ':
        return cls(TypeKind.UNKNOWN)

    @classmethod
    def ref_to(cls, pointee: 'Typ', mutable: bool = False) -> 'Typ':
        kind = TypeKind.MUT_REF if mutable else TypeKind.REF
        return cls(kind, pointee=pointee, mutable=mutable)

    @classmethod
    def raw_ptr_to(cls, pointee: 'Typ', mutable: bool = True) -> 'Typ':
        return cls(TypeKind.RAW_PTR, pointee=pointee, mutable=mutable)

    @classmethod
    def vec_of(cls, element: 'Typ') -> 'Typ':
        return cls(TypeKind.VEC, name="Vec", args=[element])

    @classmethod
    def box_of(cls, inner: 'Typ') -> 'Typ':
        return cls(TypeKind.BOX, name="Box", pointee=inner, args=[inner])

    @classmethod
    def string_type(cls) -> 'Typ':
        return cls(TypeKind.STRING, name="String")

    @classmethod
    def tuple_of(cls, *elements: 'Typ') -> 'Typ':
        if not elements:
            return cls.unit_type()
        return cls(TypeKind.TUPLE, fields={str(i): t for i, t in enumerate(elements)})

    @classmethod
    def adt(cls, name: str, fields: Dict[str, 'Typ'] = None,
            has_drop_impl: bool = False) -> 'Typ':
        return cls(TypeKind.ADT, name=name, fields=fields or {},
                   has_drop_impl=has_drop_impl)


# =============================================================================
# Places
# =============================================================================

@dataclass(frozen=True)
class Place:
    """
    A memory location: a local plus a projection.

    Projection elements are field names, or DEREF for a pointer dereference.

    Examples: _1, _1.buf, (*_2), (*_2).0
    """
    local: int
    projection: Tuple[str, ...] = ()

    def __str__(self) -> str:
        text = f"_{self.local}"
        for elem in self.projection:
            if elem == DEREF:
                text = f"(*{text})"
            else:
                text = f"{text}.{elem}"
        return text

    def __repr__(self) -> str:
        return f"Place({str(self)!r})"

    def field(self, name: str) -> 'Place':
        return Place(self.local, self.projection + (name,))

    def deref(self) -> 'Place':
        return Place(self.local, self.projection + (DEREF,))

    @property
    def has_deref(self) -> bool:
        return DEREF in self.projection

    @property
    def is_local(self) -> bool:
        return not self.projection


# =============================================================================
# Operands
# =============================================================================

@dataclass
class Operand:
    """Base class for operands"""

    def __str__(self) -> str:
        return "<operand>"

    def place(self) -> Optional[Place]:
        """Return the place read by this operand, if any"""
        return None


@dataclass
class Move(Operand):
    """Move out of a place: ownership transfers to the destination."""
    target: Place

    def __str__(self) -> str:
        return f"move {self.target}"

    def place(self) -> Optional[Place]:
        return self.target


@dataclass
class Copy(Operand):
    """Bitwise copy of a place (Copy types, pointers)."""
    target: Place

    def __str__(self) -> str:
        return f"copy {self.target}"

    def place(self) -> Optional[Place]:
        return self.target


@dataclass
class Constant(Operand):
    """
    Constant value.

    Integers and booleans participate in constant branch folding; other
    values (strings, function items) are carried opaquely.
    """
    value: Union[int, bool, str, None]
    typ: Typ = field(default_factory=Typ.unknown_type)

    def __str__(self) -> str:
        if isinstance(self.value, bool):
            return f"const {'true' if self.value else 'false'}"
        if self.value is None:
            return "const ()"
        return f"const {self.value}"


# =============================================================================
# Rvalues
# =============================================================================

@dataclass
class Rvalue:
    """Base class for the right-hand side of an assignment"""

    def __str__(self) -> str:
        return "<rvalue>"

    def operands(self) -> List[Operand]:
        return []


@dataclass
class Use(Rvalue):
    """Plain use of an operand: a = move b / a = copy b / a = const"""
    operand: Operand

    def __str__(self) -> str:
        return str(self.operand)

    def operands(self) -> List[Operand]:
        return [self.operand]


@dataclass
class Ref(Rvalue):
    """Borrow: a = &b or a = &mut b"""
    target: Place
    mutable: bool = False

    def __str__(self) -> str:
        return f"&mut {self.target}" if self.mutable else f"&{self.target}"


@dataclass
class AddressOf(Rvalue):
    """Raw address-of: a = &raw const b / &raw mut b"""
    target: Place
    mutable: bool = True

    def __str__(self) -> str:
        qual = "mut" if self.mutable else "const"
        return f"&raw {qual} {self.target}"


@dataclass
class Aggregate(Rvalue):
    """Tuple/struct/array construction from operands, in field order."""
    items: List[Operand]
    name: Optional[str] = None

    def __str__(self) -> str:
        inner = ", ".join(str(o) for o in self.items)
        if self.name:
            return f"{self.name} {{ {inner} }}"
        return f"({inner})"

    def operands(self) -> List[Operand]:
        return list(self.items)


@dataclass
class BinaryOp(Rvalue):
    """
    Binary operation.

    op uses MIR names: Add, Sub, Mul, Div, Rem, BitAnd, BitOr, BitXor,
    Eq, Ne, Lt, Le, Gt, Ge, Offset.
    """
    op: str
    left: Operand
    right: Operand

    def __str__(self) -> str:
        return f"{self.op}({self.left}, {self.right})"

    def operands(self) -> List[Operand]:
        return [self.left, self.right]


@dataclass
class UnaryOp(Rvalue):
    """Unary operation: Not or Neg"""
    op: str
    operand: Operand

    def __str__(self) -> str:
        return f"{self.op}({self.operand})"

    def operands(self) -> List[Operand]:
        return [self.operand]


@dataclass
class Cast(Rvalue):
    """Type cast: a = b as T"""
    operand: Operand
    typ: Typ

    def __str__(self) -> str:
        return f"{self.operand} as {self.typ}"

    def operands(self) -> List[Operand]:
        return [self.operand]


@dataclass
class PlaceRead(Rvalue):
    """Reads a property of a place without moving it (discriminant, len)."""
    kind: str
    target: Place

    def __str__(self) -> str:
        return f"{self.kind}({self.target})"


# =============================================================================
# Helper functions
# =============================================================================

def local(index: int) -> Place:
    """Create a place for a bare local"""
    return Place(index)


def const(value: Any) -> Constant:
    """Create a constant operand"""
    if isinstance(value, bool):
        return Constant(value, Typ.bool_type())
    if isinstance(value, int):
        return Constant(value, Typ.int_type())
    return Constant(value)
