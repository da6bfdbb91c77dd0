"""
SafeDrop MIR: a model of Rust's Mid-level IR for deallocation analysis

Captures what the analysis needs from rustc's MIR:
1. Locals with their types (ownership and drop obligations)
2. Places, operands and rvalues (moves, copies, borrows, raw pointers)
3. Basic blocks and terminators (calls, drops, switches, unwinding)
4. Library models for standard functions that drop, forget or
   reconstruct ownership

Architecture:
    rustc plugin → JSON dump → JsonMirFrontend → Program → SafeDropAnalyzer → Report

Example usage:
    from safedrop.mir import DropScanner, JsonMirFrontend, SafeDropAnalyzer

    # Full pipeline
    scanner = DropScanner()
    result = scanner.scan_file("crate.mir.json")

    # Or step by step
    program = JsonMirFrontend().translate(text, "crate.mir.json")
    reports = SafeDropAnalyzer(program).analyze_program()
"""

# Core types
from safedrop.mir.types import (
    Location,
    Typ,
    TypeKind,
    Place,
    Operand,
    Move,
    Copy,
    Constant,
    Rvalue,
    Use,
    Ref,
    AddressOf,
    Aggregate,
    BinaryOp,
    UnaryOp,
    Cast,
    PlaceRead,
)

# Statements and terminators
from safedrop.mir.instructions import (
    Instr,
    Assign,
    StorageLive,
    StorageDead,
    Nop,
    Terminator,
    TerminatorKind,
    Goto,
    SwitchInt,
    Return,
    Call,
    Drop,
    Assert,
    Unreachable,
    Resume,
    Abort,
)

# Bodies and programs
from safedrop.mir.procedure import (
    DropSpec,
    LocalDecl,
    BasicBlock,
    Body,
    Program,
)

# Frontend
from safedrop.mir.frontends import JsonMirFrontend, MirParseError, load_file

# Analysis
from safedrop.mir.analyzers import (
    AnalysisConfig,
    BugKind,
    BugRecord,
    FunctionReport,
    ReturnResults,
    InterproceduralCache,
    SafeDropAnalyzer,
    UnsupportedBodyError,
)

# Scanner
from safedrop.mir.scanner import (
    DropScanner,
    ScanResult,
    Finding,
    Severity,
    scan_file,
    scan_program,
)

__all__ = [
    # Types
    "Location", "Typ", "TypeKind", "Place",
    "Operand", "Move", "Copy", "Constant",
    "Rvalue", "Use", "Ref", "AddressOf", "Aggregate", "BinaryOp", "UnaryOp",
    "Cast", "PlaceRead",
    # Instructions
    "Instr", "Assign", "StorageLive", "StorageDead", "Nop",
    "Terminator", "TerminatorKind", "Goto", "SwitchInt", "Return", "Call",
    "Drop", "Assert", "Unreachable", "Resume", "Abort",
    # Procedure
    "DropSpec", "LocalDecl", "BasicBlock", "Body", "Program",
    # Frontend
    "JsonMirFrontend", "MirParseError", "load_file",
    # Analysis
    "AnalysisConfig", "BugKind", "BugRecord", "FunctionReport", "ReturnResults",
    "InterproceduralCache", "SafeDropAnalyzer", "UnsupportedBodyError",
    # Scanner
    "DropScanner", "ScanResult", "Finding", "Severity", "scan_file", "scan_program",
]
