"""
Library models for SafeDrop.

Callee paths printed by the compiler carry generic arguments and trait
qualification ("<std::vec::Vec<u8> as Clone>::clone",
"std::vec::Vec::<u8>::from_raw_parts"). normalize_callee() reduces them to
a plain path and lookup_spec() matches the longest `::` suffix present in
a spec table.
"""

import re
from typing import Dict, Optional

from safedrop.mir.procedure import DropSpec
from safedrop.mir.specs.std_specs import RUST_STD_SPECS


_PATH_SEP_RUN = re.compile(r"(?:::)+")


def _strip_generics(text: str) -> str:
    """Remove every balanced <...> group"""
    result = []
    depth = 0
    for ch in text:
        if ch == "<":
            depth += 1
        elif ch == ">" and depth > 0:
            depth -= 1
        elif depth == 0:
            result.append(ch)
    return "".join(result)


def _self_type_segment(self_ty: str) -> str:
    """Path segment standing for the Self type of a qualified path"""
    self_ty = self_ty.strip().lstrip("&").strip()
    if self_ty.startswith("mut "):
        self_ty = self_ty[4:].strip()
    if self_ty.startswith("["):
        return "slice"
    if self_ty.startswith("*mut"):
        return "mut_ptr"
    if self_ty.startswith("*const"):
        return "const_ptr"
    return _strip_generics(self_ty).strip()


def _split_qualified(name: str) -> Optional[int]:
    """Index of the '>' closing a leading '<', if balanced"""
    depth = 0
    for i, ch in enumerate(name):
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
            if depth == 0:
                return i
    return None


def normalize_callee(name: str) -> str:
    """
    Normalize a callee path.

    <X as Trait>::m  ->  X::m
    <[T]>::as_ptr    ->  slice::as_ptr
    Vec::<u8>::new   ->  Vec::new
    """
    name = name.strip()
    if name.startswith("<"):
        close = _split_qualified(name)
        if close is not None:
            inner = name[1:close]
            rest = name[close + 1:]
            depth = 0
            self_ty = inner
            for i in range(len(inner)):
                ch = inner[i]
                if ch == "<":
                    depth += 1
                elif ch == ">":
                    depth -= 1
                elif depth == 0 and inner.startswith(" as ", i):
                    self_ty = inner[:i]
                    break
            name = _self_type_segment(self_ty) + rest

    name = _strip_generics(name).replace(" ", "")
    name = _PATH_SEP_RUN.sub("::", name)
    return name.strip(":")


def lookup_spec(name: str, specs: Dict[str, DropSpec] = None) -> Optional[DropSpec]:
    """
    Find the model of a callee, trying the longest path suffix first.

    "std::mem::drop" tries "std::mem::drop", then "mem::drop", then "drop".
    """
    if specs is None:
        specs = RUST_STD_SPECS
    segments = normalize_callee(name).split("::")
    for start in range(len(segments)):
        key = "::".join(segments[start:])
        spec = specs.get(key)
        if spec is not None:
            return spec
    return None


__all__ = [
    "RUST_STD_SPECS",
    "normalize_callee",
    "lookup_spec",
]
