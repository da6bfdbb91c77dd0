"""
Frontends for SafeDrop MIR.

The host compiler plugin dumps function bodies as JSON; JsonMirFrontend
loads such dumps into a Program.
"""

from safedrop.mir.frontends.json_frontend import (
    JsonMirFrontend,
    MirParseError,
    TypeParser,
    parse_type,
    parse_place,
    parse_operand,
    load_program,
    load_file,
)

__all__ = [
    "JsonMirFrontend",
    "MirParseError",
    "TypeParser",
    "parse_type",
    "parse_place",
    "parse_operand",
    "load_program",
    "load_file",
]
