"""
JSON MIR dump to SafeDrop MIR Frontend.

This module loads the JSON document emitted by the compiler plugin and
builds a SafeDrop Program. It handles:
- ADT declarations (named fields, Drop impls)
- Type strings ("Vec<u8>", "*mut u8", "&mut Wrapper", "(String, i32)")
- Places ("_1", "_1.buf", "(*_2)", "(*_2).0")
- Operands ("move _1", "copy _2", "const 5", "const true")
- Rvalues (objects, or shorthand strings such as "&mut _1", "&raw mut _1")
- Statements and terminators with optional source spans

Functions whose "blocks" is null have no executable body; they are kept
so the analyzer can report them as unsupported.
"""

import json
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Any

from safedrop.mir.types import (
    Typ, TypeKind, Location, Place,
    Operand, Move, Copy, Constant,
    Rvalue, Use, Ref, AddressOf, Aggregate, BinaryOp, UnaryOp, Cast, PlaceRead,
)
from safedrop.mir.instructions import (
    Instr, Assign, StorageLive, StorageDead, Nop,
    Terminator, Goto, SwitchInt, Return, Call, Drop, Assert,
    Unreachable, Resume, Abort,
)
from safedrop.mir.procedure import Body, BasicBlock, LocalDecl, DropSpec, Program
from safedrop.mir.specs.std_specs import RUST_STD_SPECS


class MirParseError(Exception):
    """Exception raised for malformed MIR documents"""
    pass


_INT_NAMES = {
    "i8", "i16", "i32", "i64", "i128", "isize",
    "u8", "u16", "u32", "u64", "u128", "usize",
}

_CONTAINERS = {
    "Box": TypeKind.BOX,
    "Vec": TypeKind.VEC,
    "String": TypeKind.STRING,
    "CString": TypeKind.STRING,
    "OsString": TypeKind.STRING,
    "PathBuf": TypeKind.STRING,
    "Rc": TypeKind.RC,
    "Arc": TypeKind.RC,
    "ManuallyDrop": TypeKind.MANUALLY_DROP,
}

_LOCAL_RE = re.compile(r"_(\d+)")
_FIELD_RE = re.compile(r"\.([A-Za-z0-9_]+)")
_INT_CONST_RE = re.compile(r"^(-?\d+)(?:_?[iu](?:8|16|32|64|128|size))?$")

_BINARY_OPS = {
    "Add", "Sub", "Mul", "Div", "Rem", "BitAnd", "BitOr", "BitXor",
    "Shl", "Shr", "Eq", "Ne", "Lt", "Le", "Gt", "Ge", "Offset",
    "AddUnchecked", "SubUnchecked", "MulUnchecked",
    "AddWithOverflow", "SubWithOverflow", "MulWithOverflow",
}


# =============================================================================
# Type strings
# =============================================================================

class TypeParser:
    """
    Parse Rust-like type strings into Typ.

    ADT names found in the declaration table resolve to struct types with
    their declared fields; recursive ADTs share one Typ object.
    """

    def __init__(self, text: str, adts: Dict[str, dict] = None,
                 cache: Dict[str, Typ] = None):
        self.text = text
        self.pos = 0
        self.adts = adts or {}
        self.cache = cache if cache is not None else {}

    def parse(self) -> Typ:
        typ = self._parse_type()
        self._skip_ws()
        if self.pos != len(self.text):
            raise MirParseError(f"Unexpected text in type {self.text!r} at {self.pos}")
        return typ

    def _peek(self) -> Optional[str]:
        self._skip_ws()
        if self.pos < len(self.text):
            return self.text[self.pos]
        return None

    def _consume(self, expected: str) -> None:
        self._skip_ws()
        if not self.text.startswith(expected, self.pos):
            raise MirParseError(f"Expected {expected!r} in type {self.text!r} at {self.pos}")
        self.pos += len(expected)

    def _try_consume(self, word: str) -> bool:
        self._skip_ws()
        if self.text.startswith(word, self.pos):
            end = self.pos + len(word)
            if word[-1].isalnum() and end < len(self.text) and (
                    self.text[end].isalnum() or self.text[end] == "_"):
                return False
            self.pos = end
            return True
        return False

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _skip_balanced(self, open_ch: str, close_ch: str) -> None:
        depth = 0
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            self.pos += 1
            if ch == open_ch:
                depth += 1
            elif ch == close_ch:
                depth -= 1
                if depth == 0:
                    return
        raise MirParseError(f"Unbalanced {open_ch!r} in type {self.text!r}")

    def _skip_lifetime(self) -> None:
        self._skip_ws()
        if self.pos < len(self.text) and self.text[self.pos] == "'":
            self.pos += 1
            while self.pos < len(self.text) and (
                    self.text[self.pos].isalnum() or self.text[self.pos] == "_"):
                self.pos += 1

    def _parse_type(self) -> Typ:
        ch = self._peek()
        if ch is None:
            raise MirParseError(f"Unexpected end of type {self.text!r}")

        if ch == "&":
            self.pos += 1
            self._skip_lifetime()
            mutable = self._try_consume("mut")
            return Typ.ref_to(self._parse_type(), mutable=mutable)

        if ch == "*":
            self.pos += 1
            if self._try_consume("mut"):
                return Typ.raw_ptr_to(self._parse_type(), mutable=True)
            self._consume("const")
            return Typ.raw_ptr_to(self._parse_type(), mutable=False)

        if ch == "(":
            self.pos += 1
            elements = []
            while self._peek() != ")":
                elements.append(self._parse_type())
                if self._peek() == ",":
                    self.pos += 1
                elif self._peek() != ")":
                    raise MirParseError(f"Expected ',' or ')' in type {self.text!r}")
            self.pos += 1
            return Typ.tuple_of(*elements)

        if ch == "[":
            self.pos += 1
            element = self._parse_type()
            if self._peek() == ";":
                self.pos += 1
                while self._peek() not in ("]", None):
                    self.pos += 1
            self._consume("]")
            return Typ(TypeKind.ARRAY, pointee=element, args=[element])

        if ch == "!":
            self.pos += 1
            return Typ(TypeKind.NEVER)

        return self._parse_path()

    def _parse_path(self) -> Typ:
        self._skip_ws()
        start = self.pos
        while self.pos < len(self.text) and (
                self.text[self.pos].isalnum() or self.text[self.pos] in "_:"):
            self.pos += 1
        path = self.text[start:self.pos]
        if not path:
            raise MirParseError(f"Expected a type name in {self.text!r} at {start}")

        if path in ("dyn", "impl"):
            inner = self._parse_path()
            return Typ(TypeKind.ADT, name=f"{path} {inner.name}")
        if path == "fn" and self._peek() == "(":
            self._skip_balanced("(", ")")
            if self._try_consume("->"):
                self._parse_type()
            return Typ(TypeKind.FN, name="fn")

        args = []
        if self._peek() == "<":
            self.pos += 1
            while self._peek() != ">":
                self._skip_lifetime()
                if self._peek() == ",":
                    self.pos += 1
                    continue
                if self._peek() == ">":
                    break
                args.append(self._parse_type())
                if self._peek() == ",":
                    self.pos += 1
            self._consume(">")

        name = path.split("::")[-1]
        return self._named_type(name, args)

    def _named_type(self, name: str, args: List[Typ]) -> Typ:
        if name in _INT_NAMES:
            return Typ(TypeKind.INT, name=name)
        if name in ("f32", "f64"):
            return Typ(TypeKind.FLOAT, name=name)
        if name == "bool":
            return Typ.bool_type()
        if name == "char":
            return Typ(TypeKind.CHAR, name=name)
        if name == "str":
            return Typ(TypeKind.STR, name=name)
        if name == "_":
            return Typ.unknown_type()

        kind = _CONTAINERS.get(name)
        if kind is not None:
            pointee = args[0] if args else None
            return Typ(kind, name=name, args=args, pointee=pointee)

        if name in self.adts:
            return self._adt_type(name, args)

        # Undeclared nominal type (Option, Result, foreign structs)
        return Typ(TypeKind.ADT, name=name, args=args)

    def _adt_type(self, name: str, args: List[Typ]) -> Typ:
        if not args and name in self.cache:
            return self.cache[name]

        decl = self.adts[name]
        if not isinstance(decl, dict):
            raise MirParseError(f"ADT {name!r} must be an object")
        typ = Typ.adt(name, has_drop_impl=bool(decl.get("has_drop", False)))
        typ.args = args
        if not args:
            self.cache[name] = typ

        fields = decl.get("fields", {}) or {}
        if not isinstance(fields, dict):
            raise MirParseError(f"ADT {name!r} fields must be an object")
        for field_name, field_ty in fields.items():
            typ.fields[str(field_name)] = TypeParser(
                str(field_ty), self.adts, self.cache).parse()
        return typ


def parse_type(text: str, adts: Dict[str, dict] = None,
               cache: Dict[str, Typ] = None) -> Typ:
    """Parse a type string"""
    if not isinstance(text, str):
        raise MirParseError(f"Type must be a string, got {text!r}")
    return TypeParser(text, adts, cache).parse()


# =============================================================================
# Places, operands, rvalues
# =============================================================================

def parse_place(text: Any) -> Place:
    """
    Parse a place string.

    _1, _1.buf, (*_2), (*_2).0, *_2, (*(*_1).next)
    """
    if not isinstance(text, str):
        raise MirParseError(f"Place must be a string, got {text!r}")
    place, rest = _parse_place_prefix(text.strip())
    if rest.strip():
        raise MirParseError(f"Unexpected text in place {text!r}: {rest!r}")
    return place


def _parse_place_prefix(text: str) -> Tuple[Place, str]:
    if text.startswith("(*"):
        depth = 0
        close = None
        for i, ch in enumerate(text):
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    close = i
                    break
        if close is None:
            raise MirParseError(f"Unbalanced parentheses in place {text!r}")
        inner = parse_place(text[2:close])
        place = inner.deref()
        rest = text[close + 1:]
    elif text.startswith("*"):
        inner, rest = _parse_place_prefix(text[1:].strip())
        return inner.deref(), rest
    else:
        match = _LOCAL_RE.match(text)
        if not match:
            raise MirParseError(f"Invalid place {text!r}")
        place = Place(int(match.group(1)))
        rest = text[match.end():]

    while rest:
        field_match = _FIELD_RE.match(rest)
        if field_match:
            place = place.field(field_match.group(1))
            rest = rest[field_match.end():]
            continue
        if rest.startswith("["):
            close = rest.find("]")
            if close < 0:
                raise MirParseError(f"Unbalanced index in place {text!r}")
            place = place.field("[]")
            rest = rest[close + 1:]
            continue
        break
    return place, rest


def parse_constant(value: Any) -> Constant:
    """Parse the text after `const`, or a bare JSON scalar"""
    if isinstance(value, bool):
        return Constant(value, Typ.bool_type())
    if isinstance(value, int):
        return Constant(value, Typ.int_type())
    if value is None:
        return Constant(None, Typ.unit_type())
    text = str(value).strip()
    if text == "true":
        return Constant(True, Typ.bool_type())
    if text == "false":
        return Constant(False, Typ.bool_type())
    if text == "()":
        return Constant(None, Typ.unit_type())
    match = _INT_CONST_RE.match(text)
    if match:
        return Constant(int(match.group(1)), Typ.int_type())
    return Constant(text)


def parse_operand(value: Any) -> Operand:
    """Parse an operand: "move P", "copy P", "const V" or a JSON scalar"""
    if not isinstance(value, str):
        if isinstance(value, (bool, int)) or value is None:
            return parse_constant(value)
        raise MirParseError(f"Operand must be a string, got {value!r}")
    text = value.strip()
    if text.startswith("move "):
        return Move(parse_place(text[5:]))
    if text.startswith("copy "):
        return Copy(parse_place(text[5:]))
    if text.startswith("const "):
        return parse_constant(text[6:])
    if text.startswith("_") or text.startswith("("):
        return Copy(parse_place(text))
    raise MirParseError(f"Invalid operand {value!r}")


class JsonMirFrontend:
    """
    Loads JSON MIR dumps into a SafeDrop Program.

    Usage:
        frontend = JsonMirFrontend()
        program = frontend.translate(json_text, "dump.json")

        from safedrop.mir import SafeDropAnalyzer
        reports = SafeDropAnalyzer(program).analyze_program()
    """

    def __init__(self, specs: Dict[str, DropSpec] = None):
        """
        Initialize the frontend.

        Args:
            specs: Library models (defaults to RUST_STD_SPECS)
        """
        self.specs = specs or RUST_STD_SPECS

        # State during translation
        self._filename = "<unknown>"
        self._adts: Dict[str, dict] = {}
        self._type_cache: Dict[str, Typ] = {}
        self._current_fn = "<unknown>"

    def translate(self, source_text: str, filename: str = "<unknown>") -> Program:
        """Translate a JSON MIR document to a Program."""
        try:
            data = json.loads(source_text)
        except json.JSONDecodeError as e:
            raise MirParseError(f"{filename}: invalid JSON: {e}") from e
        return self.translate_document(data, filename)

    def translate_document(self, data: Any, filename: str = "<unknown>") -> Program:
        """Translate an already decoded JSON MIR document."""
        if not isinstance(data, dict):
            raise MirParseError(f"{filename}: document must be an object")

        self._filename = filename
        self._adts = data.get("adts", {}) or {}
        self._type_cache = {}
        if not isinstance(self._adts, dict):
            raise MirParseError(f"{filename}: 'adts' must be an object")

        program = Program(library_specs=self.specs.copy(),
                          crate=str(data.get("crate", "crate")))
        program.source_files.append(filename)

        for name in self._adts:
            program.adts[name] = self._parse_type(name)

        functions = data.get("functions", [])
        if not isinstance(functions, list):
            raise MirParseError(f"{filename}: 'functions' must be a list")
        for fn_data in functions:
            body = self._translate_isolated(fn_data)
            if body.name in program.bodies:
                raise MirParseError(f"{filename}: duplicate function {body.name!r}")
            program.add_body(body)
        return program

    # =========================================================================
    # Functions and blocks
    # =========================================================================

    def _translate_isolated(self, data: Any) -> Body:
        """
        Translate one function entry, keeping a malformed body out of the
        rest of the document.

        A named entry that fails to translate becomes a body without code
        that carries the error. An entry without a name still fails the
        whole document.
        """
        try:
            return self._translate_function(data)
        except MirParseError as e:
            if not isinstance(data, dict) or "name" not in data:
                raise
            return Body(name=str(data["name"]), has_body=False, parse_error=str(e))

    def _translate_function(self, data: Any) -> Body:
        if not isinstance(data, dict) or "name" not in data:
            raise MirParseError(f"{self._filename}: function entries need a 'name'")

        self._current_fn = str(data["name"])
        loc = self._get_location(data.get("span"), None)
        arg_count = data.get("arg_count", 0)
        if not isinstance(arg_count, int) or isinstance(arg_count, bool) or arg_count < 0:
            raise MirParseError(f"{self._current_fn}: invalid arg_count {arg_count!r}")

        locals_data = data.get("locals", [])
        if not isinstance(locals_data, list):
            raise MirParseError(f"{self._current_fn}: 'locals' must be a list")
        decls = []
        for index, decl in enumerate(locals_data):
            if isinstance(decl, str):
                decls.append(LocalDecl(index, self._parse_type(decl)))
            elif isinstance(decl, dict):
                decls.append(LocalDecl(index, self._parse_type(decl.get("ty", "_")),
                                       decl.get("name")))
            else:
                raise MirParseError(f"{self._current_fn}: invalid local #{index}")

        body = Body(name=self._current_fn, arg_count=arg_count, locals=decls, loc=loc)

        blocks = data.get("blocks")
        if blocks is None:
            body.has_body = False
            return body
        if not isinstance(blocks, list):
            raise MirParseError(f"{self._current_fn}: 'blocks' must be a list or null")

        for position, block_data in enumerate(blocks):
            block = self._translate_block(block_data, position, loc)
            if block.id in body.blocks:
                raise MirParseError(f"{self._current_fn}: duplicate block bb{block.id}")
            body.add_block(block)
        return body

    def _translate_block(self, data: Any, position: int,
                         fn_loc: Optional[Location]) -> BasicBlock:
        if not isinstance(data, dict):
            raise MirParseError(f"{self._current_fn}: block #{position} must be an object")
        block_id = data.get("id", position)
        if not isinstance(block_id, int) or isinstance(block_id, bool):
            raise MirParseError(f"{self._current_fn}: invalid block id {block_id!r}")

        statements = []
        for stmt in data.get("statements", []) or []:
            statements.append(self._translate_statement(stmt, fn_loc))

        if "terminator" not in data:
            raise MirParseError(f"{self._current_fn}: bb{block_id} has no terminator")
        terminator = self._translate_terminator(data["terminator"], fn_loc)
        return BasicBlock(id=block_id, statements=statements, terminator=terminator,
                          is_cleanup=bool(data.get("cleanup", False)))

    def _translate_statement(self, data: Any, fn_loc: Optional[Location]) -> Instr:
        if not isinstance(data, dict):
            raise MirParseError(f"{self._current_fn}: statement must be an object: {data!r}")
        kind = data.get("kind")
        loc = self._get_location(data.get("span"), fn_loc)

        if kind == "assign":
            return Assign(loc, self._require_place(data, "place"),
                          self._translate_rvalue(data.get("rvalue")))
        if kind == "storage_live":
            return StorageLive(loc, self._require_local(data))
        if kind == "storage_dead":
            return StorageDead(loc, self._require_local(data))
        if kind == "nop":
            return Nop(loc)
        raise MirParseError(f"{self._current_fn}: unknown statement kind {kind!r}")

    def _translate_terminator(self, data: Any, fn_loc: Optional[Location]) -> Terminator:
        if isinstance(data, str):
            data = {"kind": data}
        if not isinstance(data, dict):
            raise MirParseError(f"{self._current_fn}: terminator must be an object: {data!r}")
        kind = data.get("kind")
        loc = self._get_location(data.get("span"), fn_loc)

        if kind == "goto":
            return Goto(loc, self._require_block(data, "target"))
        if kind == "switch_int":
            targets = []
            for arm in data.get("targets", []) or []:
                if not isinstance(arm, (list, tuple)) or len(arm) != 2:
                    raise MirParseError(f"{self._current_fn}: switch arm must be [value, block]")
                value = parse_constant(arm[0]).value
                if isinstance(value, bool):
                    value = int(value)
                if not isinstance(value, int):
                    raise MirParseError(f"{self._current_fn}: switch value must be an integer")
                targets.append((value, self._block_id(arm[1])))
            otherwise = data.get("otherwise")
            return SwitchInt(loc, parse_operand(data.get("discr")), targets,
                             self._block_id(otherwise) if otherwise is not None else None)
        if kind == "return":
            return Return(loc)
        if kind == "call":
            func = data.get("func")
            if not isinstance(func, str) or not func:
                raise MirParseError(f"{self._current_fn}: call needs a 'func' path")
            args = [parse_operand(a) for a in data.get("args", []) or []]
            return Call(loc, func, args, self._require_place(data, "destination"),
                        self._optional_block(data, "target"),
                        self._optional_block(data, "unwind"))
        if kind == "drop":
            return Drop(loc, self._require_place(data, "place"),
                        self._require_block(data, "target"),
                        self._optional_block(data, "unwind"))
        if kind == "assert":
            return Assert(loc, parse_operand(data.get("cond")),
                          bool(data.get("expected", True)),
                          self._require_block(data, "target"),
                          self._optional_block(data, "unwind"))
        if kind == "unreachable":
            return Unreachable(loc)
        if kind == "resume":
            return Resume(loc)
        if kind == "abort":
            return Abort(loc)
        raise MirParseError(f"{self._current_fn}: unknown terminator kind {kind!r}")

    def _translate_rvalue(self, data: Any) -> Rvalue:
        if isinstance(data, str):
            text = data.strip()
            if text.startswith("&raw "):
                rest = text[5:].strip()
                if rest.startswith("mut "):
                    return AddressOf(parse_place(rest[4:]), mutable=True)
                if rest.startswith("const "):
                    return AddressOf(parse_place(rest[6:]), mutable=False)
                raise MirParseError(f"{self._current_fn}: invalid raw borrow {data!r}")
            if text.startswith("&mut "):
                return Ref(parse_place(text[5:]), mutable=True)
            if text.startswith("&"):
                return Ref(parse_place(text[1:]), mutable=False)
            return Use(parse_operand(text))

        if isinstance(data, (bool, int)) or data is None:
            return Use(parse_constant(data))
        if not isinstance(data, dict):
            raise MirParseError(f"{self._current_fn}: invalid rvalue {data!r}")

        kind = data.get("kind")
        if kind == "use":
            return Use(parse_operand(data.get("operand")))
        if kind == "ref":
            return Ref(self._require_place(data, "place"), bool(data.get("mutable", False)))
        if kind == "address_of":
            return AddressOf(self._require_place(data, "place"), bool(data.get("mutable", True)))
        if kind == "aggregate":
            items = [parse_operand(o) for o in data.get("operands", []) or []]
            return Aggregate(items, data.get("name"))
        if kind == "binary":
            op = data.get("op")
            if op not in _BINARY_OPS:
                raise MirParseError(f"{self._current_fn}: unknown binary operator {op!r}")
            return BinaryOp(op, parse_operand(data.get("left")),
                            parse_operand(data.get("right")))
        if kind == "unary":
            op = data.get("op")
            if op not in ("Not", "Neg", "PtrMetadata"):
                raise MirParseError(f"{self._current_fn}: unknown unary operator {op!r}")
            return UnaryOp(op, parse_operand(data.get("operand")))
        if kind == "cast":
            return Cast(parse_operand(data.get("operand")), self._parse_type(data.get("ty", "_")))
        if kind in ("discriminant", "len"):
            return PlaceRead(kind, self._require_place(data, "place"))
        raise MirParseError(f"{self._current_fn}: unknown rvalue kind {kind!r}")

    # =========================================================================
    # Helpers
    # =========================================================================

    def _parse_type(self, text: Any) -> Typ:
        try:
            return parse_type(text, self._adts, self._type_cache)
        except MirParseError as e:
            raise MirParseError(f"{self._current_fn}: {e}") from e

    def _require_place(self, data: dict, key: str) -> Place:
        if key not in data:
            raise MirParseError(f"{self._current_fn}: missing {key!r} in {data.get('kind')}")
        return parse_place(data[key])

    def _require_local(self, data: dict) -> int:
        value = data.get("local")
        if isinstance(value, str):
            place = parse_place(value)
            return place.local
        if not isinstance(value, int) or isinstance(value, bool):
            raise MirParseError(f"{self._current_fn}: invalid local {value!r}")
        return value

    def _block_id(self, value: Any) -> int:
        if isinstance(value, str) and value.startswith("bb") and value[2:].isdigit():
            return int(value[2:])
        if not isinstance(value, int) or isinstance(value, bool):
            raise MirParseError(f"{self._current_fn}: invalid block reference {value!r}")
        return value

    def _require_block(self, data: dict, key: str) -> int:
        if data.get(key) is None:
            raise MirParseError(f"{self._current_fn}: missing {key!r} in {data.get('kind')}")
        return self._block_id(data[key])

    def _optional_block(self, data: dict, key: str) -> Optional[int]:
        value = data.get(key)
        return self._block_id(value) if value is not None else None

    def _get_location(self, span: Any, default: Optional[Location]) -> Location:
        if span is None:
            return default if default is not None else Location(self._filename, 0)
        if isinstance(span, str):
            parts = span.rsplit(":", 2)
            try:
                if len(parts) == 3:
                    return Location(parts[0], int(parts[1]), int(parts[2]))
                if len(parts) == 2:
                    return Location(parts[0], int(parts[1]))
            except ValueError:
                pass
            raise MirParseError(f"{self._current_fn}: invalid span {span!r}")
        if isinstance(span, dict):
            try:
                return Location(
                    file=str(span.get("file", self._filename)),
                    line=int(span.get("line", 0)),
                    column=int(span.get("column", 0)),
                    end_line=span.get("end_line"),
                    end_column=span.get("end_column"),
                )
            except (TypeError, ValueError) as e:
                raise MirParseError(f"{self._current_fn}: invalid span {span!r}") from e
        raise MirParseError(f"{self._current_fn}: invalid span {span!r}")


def load_program(data: Any, filename: str = "<unknown>") -> Program:
    """Convenience function to build a Program from a decoded JSON document."""
    return JsonMirFrontend().translate_document(data, filename)


def load_file(filepath: str) -> Program:
    """Convenience function to load a JSON MIR dump from disk."""
    path = Path(filepath)
    return JsonMirFrontend().translate(path.read_text(encoding="utf-8"), str(path))
