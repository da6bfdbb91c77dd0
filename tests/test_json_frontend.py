"""
Tests for the JSON MIR frontend.

Covers type strings, places, operands, rvalue shorthand and malformed
documents.
"""

import json
import pytest

from safedrop.mir.frontends import (
    JsonMirFrontend, MirParseError, parse_type, parse_place, parse_operand,
    load_file,
)
from safedrop.mir.types import (
    TypeKind, Move, Copy, Constant, Use, Ref, AddressOf, BinaryOp, Aggregate,
    Cast, PlaceRead, DEREF,
)
from safedrop.mir.instructions import Assign, SwitchInt, Call, Drop, Return, Goto
from safedrop.mir.analyzers.graph import UnsupportedBodyError, build_graph

from mir_helpers import (
    function, block, assign, call, drop, ret, goto, switch, local, program,
    reconstruct_uaf,
)


class TestTypeStrings:
    """Type string parsing"""

    def test_integers_and_bool(self):
        assert parse_type("usize").kind == TypeKind.INT
        assert parse_type("bool").kind == TypeKind.BOOL
        assert parse_type("f64").kind == TypeKind.FLOAT

    def test_references_and_pointers(self):
        assert parse_type("&mut Vec<u8>").kind == TypeKind.MUT_REF
        assert parse_type("&'a str").kind == TypeKind.REF
        ptr = parse_type("*const u8")
        assert ptr.kind == TypeKind.RAW_PTR
        assert not ptr.mutable

    def test_containers(self):
        vec = parse_type("std::vec::Vec<std::string::String>")
        assert vec.kind == TypeKind.VEC
        assert vec.args[0].kind == TypeKind.STRING
        assert parse_type("Box<[u8]>").kind == TypeKind.BOX
        assert parse_type("std::mem::ManuallyDrop<String>").kind == TypeKind.MANUALLY_DROP

    def test_tuples_and_unit(self):
        assert parse_type("()").kind == TypeKind.UNIT
        pair = parse_type("(u8, String)")
        assert pair.kind == TypeKind.TUPLE
        assert list(pair.fields) == ["0", "1"]

    def test_declared_adt(self):
        adts = {"Node": {"fields": {"data": "Vec<u8>", "next": "*mut Node"}, "has_drop": True}}
        node = parse_type("Node", adts)
        assert node.kind == TypeKind.ADT
        assert node.has_drop_impl
        assert list(node.fields) == ["data", "next"]
        # Recursive types resolve to the same object
        assert node.fields["next"].pointee is node

    def test_unknown_nominal_type(self):
        opt = parse_type("Option<Box<u8>>")
        assert opt.kind == TypeKind.ADT
        assert opt.needs_drop()

    def test_invalid_type(self):
        with pytest.raises(MirParseError):
            parse_type("(u8, ")


class TestPlacesAndOperands:
    """Place and operand strings"""

    def test_places(self):
        assert parse_place("_1").local == 1
        assert parse_place("_1.buf").projection == ("buf",)
        assert parse_place("(*_2)").projection == (DEREF,)
        assert parse_place("(*_2).0").projection == (DEREF, "0")
        assert parse_place("*_3").projection == (DEREF,)

    def test_index_projection(self):
        assert parse_place("_1[_2]").projection == ("[]",)

    def test_invalid_place(self):
        with pytest.raises(MirParseError):
            parse_place("x")
        with pytest.raises(MirParseError):
            parse_place("(*_1")

    def test_operands(self):
        assert isinstance(parse_operand("move _1"), Move)
        assert isinstance(parse_operand("copy _1.0"), Copy)
        assert parse_operand("const 42_usize").value == 42
        assert parse_operand("const true").value is True
        assert parse_operand(7).value == 7

    def test_non_numeric_constant(self):
        operand = parse_operand('const "hello"')
        assert isinstance(operand, Constant)
        assert operand.value == '"hello"'


class TestDocuments:
    """Whole-document translation"""

    def test_scenario_loads(self):
        prog = program(reconstruct_uaf())
        body = prog.get_body("demo::reconstruct_uaf")
        assert body is not None
        assert len(body.locals) == 5
        assert body.locals[1].name == "v"
        assert sorted(body.blocks) == [0, 1, 2, 3, 4]
        assert isinstance(body.blocks[3].terminator, Drop)
        assert isinstance(body.blocks[4].terminator, Return)

    def test_call_terminator(self):
        prog = program(reconstruct_uaf())
        term = prog.get_body("demo::reconstruct_uaf").blocks[2].terminator
        assert isinstance(term, Call)
        assert term.func == "std::vec::Vec::<u8>::from_raw_parts"
        assert len(term.args) == 3
        assert term.target == 3
        assert term.loc.line == 4

    def test_rvalue_shorthand(self):
        fn = function("demo::f", [local("()"), local("Vec<u8>"), local("&mut Vec<u8>"),
                                  local("*const Vec<u8>"), local("Vec<u8>")], [
            block(0, [
                assign("_2", "&mut _1"),
                assign("_3", "&raw const _1"),
                assign("_4", "move _1"),
            ], ret()),
        ])
        stmts = program(fn).get_body("demo::f").blocks[0].statements
        assert isinstance(stmts[0].rvalue, Ref) and stmts[0].rvalue.mutable
        assert isinstance(stmts[1].rvalue, AddressOf) and not stmts[1].rvalue.mutable
        assert isinstance(stmts[2].rvalue, Use)

    def test_rvalue_objects(self):
        fn = function("demo::f", [local("()"), local("usize"), local("bool"),
                                  local("(usize, usize)"), local("u8"), local("usize")], [
            block(0, [
                assign("_2", {"kind": "binary", "op": "Lt", "left": "copy _1", "right": "const 3"}),
                assign("_3", {"kind": "aggregate", "operands": ["copy _1", "const 0"]}),
                assign("_4", {"kind": "cast", "operand": "copy _1", "ty": "u8"}),
                assign("_5", {"kind": "len", "place": "_3"}),
            ], ret()),
        ], arg_count=1)
        stmts = program(fn).get_body("demo::f").blocks[0].statements
        assert isinstance(stmts[0].rvalue, BinaryOp)
        assert isinstance(stmts[1].rvalue, Aggregate)
        assert isinstance(stmts[2].rvalue, Cast)
        assert isinstance(stmts[3].rvalue, PlaceRead)

    def test_switch_and_string_terminators(self):
        fn = function("demo::f", [local("()"), local("bool")], [
            block(0, [], switch("copy _1", [[0, 1], ["false", 1]], 2)),
            block(1, [], "return"),
            block(2, [], {"kind": "unreachable"}),
        ], arg_count=1)
        term = program(fn).get_body("demo::f").blocks[0].terminator
        assert isinstance(term, SwitchInt)
        assert term.targets == [(0, 1), (0, 1)]
        assert term.otherwise == 2

    def test_block_references_as_strings(self):
        fn = function("demo::f", [local("()")], [
            block(0, [], {"kind": "goto", "target": "bb1"}),
            block(1, [], ret()),
        ])
        assert program(fn).get_body("demo::f").blocks[0].terminator.target == 1

    def test_null_blocks_means_no_body(self):
        prog = program(function("extern::ffi", [local("()")], None))
        assert not prog.get_body("extern::ffi").has_body

    def test_spans(self):
        fn = function("demo::f", [local("()")], [
            block(0, [], {"kind": "return", "span": {"file": "lib.rs", "line": 9, "column": 2}}),
        ])
        loc = program(fn).get_body("demo::f").blocks[0].terminator.loc
        assert (loc.file, loc.line, loc.column) == ("lib.rs", 9, 2)

    def test_library_specs_attached(self):
        prog = program(reconstruct_uaf())
        assert "mem::drop" in prog.library_specs
        assert prog.source_files == ["demo.rs"]


class TestMalformedDocuments:
    """Malformed documents raise MirParseError"""

    def test_invalid_json(self):
        with pytest.raises(MirParseError):
            JsonMirFrontend().translate("{not json", "bad.json")

    def test_document_not_object(self):
        with pytest.raises(MirParseError):
            JsonMirFrontend().translate("[1, 2]", "bad.json")

    def test_duplicate_function(self):
        fn = function("demo::f", [local("()")], [block(0, [], ret())])
        with pytest.raises(MirParseError):
            program(fn, fn)

    def test_function_without_name(self):
        document = {"functions": [{"locals": ["()"], "blocks": []}]}
        with pytest.raises(MirParseError):
            JsonMirFrontend().translate_document(document, "bad.json")


class TestMalformedFunctions:
    """A malformed function is kept apart from the rest of its document"""

    def _unparsed(self, fn):
        prog = program(fn, reconstruct_uaf())
        assert prog.get_body("demo::reconstruct_uaf").has_body
        body = prog.get_body("demo::f")
        assert not body.has_body
        assert body.parse_error.startswith("demo::f")
        with pytest.raises(UnsupportedBodyError, match="demo::f"):
            build_graph(body)
        return body

    def test_duplicate_block(self):
        self._unparsed(function("demo::f", [local("()")],
                                [block(0, [], ret()), block(0, [], ret())]))

    def test_missing_terminator(self):
        self._unparsed(function("demo::f", [local("()")], [{"id": 0, "statements": []}]))

    def test_unknown_terminator(self):
        body = self._unparsed(function("demo::f", [local("()")],
                                       [block(0, [], {"kind": "yield"})]))
        assert "yield" in body.parse_error

    def test_unknown_binary_operator(self):
        self._unparsed(function("demo::f", [local("()"), local("usize")], [
            block(0, [assign("_1", {"kind": "binary", "op": "Pow",
                                    "left": "const 1", "right": "const 2"})], ret()),
        ]))

    def test_call_without_destination(self):
        self._unparsed(function("demo::f", [local("()")], [
            block(0, [], {"kind": "call", "func": "demo::g", "args": [], "target": 1}),
            block(1, [], ret()),
        ]))

    def test_invalid_arg_count(self):
        fn = function("demo::f", [local("()")], [block(0, [], ret())])
        fn["arg_count"] = -1
        self._unparsed(fn)


class TestLoadFile:
    """Loading dumps from disk"""

    def test_load_file(self, tmp_path):
        path = tmp_path / "crate.mir.json"
        path.write_text(json.dumps({"crate": "demo", "functions": [reconstruct_uaf()]}))
        prog = load_file(str(path))
        assert prog.crate == "demo"
        assert prog.function_ids() == ["demo::reconstruct_uaf"]
