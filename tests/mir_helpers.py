"""
MIR fixture builders for SafeDrop tests.

Fixtures are JSON-shaped dicts in the dump format the compiler plugin
writes, loaded through the real frontend. This file is named to NOT match
pytest's collection pattern (test_*.py or *_test.py).
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from typing import List, Optional

from safedrop.mir.frontends import load_program
from safedrop.mir.procedure import Program


FILE = "demo.rs"


def span(line: int) -> str:
    return f"{FILE}:{line}:5"


# =============================================================================
# Statements and terminators
# =============================================================================

def assign(place: str, rvalue, line: int = 1) -> dict:
    return {"kind": "assign", "place": place, "rvalue": rvalue, "span": span(line)}


def binary(op: str, left: str, right: str) -> dict:
    return {"kind": "binary", "op": op, "left": left, "right": right}


def call(func: str, args: List[str], dest: str, target: Optional[int] = None,
         unwind: Optional[int] = None, line: int = 1) -> dict:
    data = {"kind": "call", "func": func, "args": args, "destination": dest,
            "span": span(line)}
    if target is not None:
        data["target"] = target
    if unwind is not None:
        data["unwind"] = unwind
    return data


def drop(place: str, target: int, unwind: Optional[int] = None, line: int = 1) -> dict:
    data = {"kind": "drop", "place": place, "target": target, "span": span(line)}
    if unwind is not None:
        data["unwind"] = unwind
    return data


def goto(target: int) -> dict:
    return {"kind": "goto", "target": target}


def switch(discr: str, arms: List[list], otherwise: Optional[int], line: int = 1) -> dict:
    return {"kind": "switch_int", "discr": discr, "targets": arms,
            "otherwise": otherwise, "span": span(line)}


def ret(line: int = 1) -> dict:
    return {"kind": "return", "span": span(line)}


def block(block_id: int, statements: List[dict], terminator, cleanup: bool = False) -> dict:
    data = {"id": block_id, "statements": statements, "terminator": terminator}
    if cleanup:
        data["cleanup"] = True
    return data


def function(name: str, locals_: List, blocks: Optional[List[dict]],
             arg_count: int = 0) -> dict:
    return {"name": name, "arg_count": arg_count, "locals": locals_, "blocks": blocks,
            "span": span(1)}


def program(*functions: dict, adts: dict = None) -> Program:
    document = {"crate": "demo", "functions": list(functions)}
    if adts:
        document["adts"] = adts
    return load_program(document, FILE)


def local(ty: str, name: str = None) -> dict:
    return {"ty": ty, "name": name} if name else {"ty": ty}


# =============================================================================
# Scenarios
# =============================================================================

def reconstruct_uaf() -> dict:
    """
    A buffer's raw pointer is reconstructed into a second owner that is
    returned, while the original owner is dropped at scope end.
    """
    return function("demo::reconstruct_uaf", [
        local("Vec<u8>"),
        local("Vec<u8>", "v"),
        local("*mut u8", "p"),
        local("&mut Vec<u8>"),
        local("Vec<u8>", "w"),
    ], [
        block(0, [], call("std::vec::Vec::<u8>::new", [], "_1", target=1, line=2)),
        block(1, [assign("_3", "&mut _1", line=3)],
              call("std::vec::Vec::<u8>::as_mut_ptr", ["move _3"], "_2", target=2, line=3)),
        block(2, [], call("std::vec::Vec::<u8>::from_raw_parts",
                          ["copy _2", "const 3_usize", "const 3_usize"], "_4", target=3, line=4)),
        block(3, [assign("_0", "move _4", line=5)], drop("_1", 4, line=6)),
        block(4, [], ret(line=7)),
    ])


def reconstruct_double_free() -> dict:
    """Both the reconstructed owner and the original owner are dropped."""
    return function("demo::reconstruct_double_free", [
        local("()"),
        local("Vec<u8>", "v"),
        local("*mut u8", "p"),
        local("&mut Vec<u8>"),
        local("Vec<u8>", "w"),
    ], [
        block(0, [], call("Vec::<u8>::new", [], "_1", target=1, line=2)),
        block(1, [assign("_3", "&mut _1", line=3)],
              call("Vec::<u8>::as_mut_ptr", ["move _3"], "_2", target=2, line=3)),
        block(2, [], call("Vec::<u8>::from_raw_parts",
                          ["copy _2", "const 3_usize", "const 3_usize"], "_4", target=3, line=4)),
        block(3, [], drop("_4", 4, line=5)),
        block(4, [], drop("_1", 5, line=6)),
        block(5, [], ret(line=7)),
    ])


def reconstruct_forgotten() -> dict:
    """The original owner is forgotten, so exactly one owner remains."""
    return function("demo::reconstruct_forgotten", [
        local("Vec<u8>"),
        local("Vec<u8>", "v"),
        local("*mut u8", "p"),
        local("&mut Vec<u8>"),
        local("Vec<u8>", "w"),
        local("()"),
    ], [
        block(0, [], call("Vec::new", [], "_1", target=1, line=2)),
        block(1, [assign("_3", "&mut _1", line=3)],
              call("Vec::as_mut_ptr", ["move _3"], "_2", target=2, line=3)),
        block(2, [], call("Vec::from_raw_parts",
                          ["copy _2", "const 3_usize", "const 3_usize"], "_4", target=3, line=4)),
        block(3, [], call("std::mem::forget::<Vec<u8>>", ["move _1"], "_5", target=4, line=5)),
        block(4, [assign("_0", "move _4", line=6)], drop("_1", 5, line=7)),
        block(5, [], ret(line=8)),
    ])


def loop_drop_in_place() -> dict:
    """
    A loop that conditionally runs drop_in_place through a raw pointer on
    each iteration.
    """
    return function("demo::loop_drop", [
        local("()"),
        local("bool", "cond"),
        local("Vec<u8>", "v"),
        local("*mut Vec<u8>", "p"),
        local("()"),
        local("()"),
    ], [
        block(0, [], call("Vec::new", [], "_2", target=1, line=2)),
        block(1, [assign("_3", "&raw mut _2", line=3)],
              call("core::mem::forget::<Vec<u8>>", ["move _2"], "_4", target=2, line=4)),
        block(2, [], switch("copy _1", [[0, 4]], 3, line=5)),
        block(3, [], call("core::ptr::drop_in_place::<Vec<u8>>", ["copy _3"], "_5",
                          target=2, line=6)),
        block(4, [], ret(line=8)),
    ], arg_count=1)


def plain_owner() -> dict:
    """Allocation, borrow, read and automatic drop: nothing manual."""
    return function("demo::plain_owner", [
        local("usize"),
        local("Vec<u8>", "v"),
        local("&Vec<u8>", "r"),
        local("usize", "n"),
    ], [
        block(0, [], call("Vec::new", [], "_1", target=1, line=2)),
        block(1, [assign("_2", "&_1", line=3)],
              call("Vec::<u8>::len", ["copy _2"], "_3", target=2, line=3)),
        block(2, [assign("_0", "copy _3", line=4)], drop("_1", 3, line=5)),
        block(3, [], ret(line=6)),
    ])


def free_through_pointer() -> dict:
    """Callee that drops the pointee of its raw pointer argument."""
    return function("demo::free_it", [
        local("()"),
        local("*mut Vec<u8>", "p"),
        local("()"),
    ], [
        block(0, [], call("std::ptr::drop_in_place::<Vec<u8>>", ["copy _1"], "_2",
                          target=1, line=20)),
        block(1, [], ret(line=21)),
    ], arg_count=1)


def caller_of_free() -> dict:
    """Frees a buffer through free_it, then drops the owner at scope end."""
    return function("demo::caller", [
        local("()"),
        local("Vec<u8>", "v"),
        local("*mut Vec<u8>", "p"),
        local("()"),
    ], [
        block(0, [], call("Vec::new", [], "_1", target=1, line=30)),
        block(1, [assign("_2", "&raw mut _1", line=31)],
              call("demo::free_it", ["copy _2"], "_3", target=2, line=32)),
        block(2, [], drop("_1", 3, line=33)),
        block(3, [], ret(line=34)),
    ])


def helper_and_main() -> List[dict]:
    """A helper called twice from main."""
    helper = function("demo::helper", [
        local("usize"),
        local("&Vec<u8>", "v"),
    ], [
        block(0, [], call("Vec::<u8>::len", ["copy _1"], "_0", target=1, line=40)),
        block(1, [], ret(line=41)),
    ], arg_count=1)
    main = function("demo::main", [
        local("()"),
        local("Vec<u8>", "v"),
        local("&Vec<u8>"),
        local("usize"),
        local("&Vec<u8>"),
        local("usize"),
    ], [
        block(0, [], call("Vec::new", [], "_1", target=1, line=50)),
        block(1, [assign("_2", "&_1", line=51)],
              call("demo::helper", ["move _2"], "_3", target=2, line=51)),
        block(2, [assign("_4", "&_1", line=52)],
              call("demo::helper", ["move _4"], "_5", target=3, line=52)),
        block(3, [], drop("_1", 4, line=53)),
        block(4, [], ret(line=54)),
    ])
    return [helper, main]
