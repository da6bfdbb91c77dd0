"""
SafeDrop analyzers.

Pipeline per function:
    Body → build_graph → contract_cycles → PathTraversalEngine → FunctionReport

SafeDropAnalyzer drives it over a Program and shares callee summaries
through an InterproceduralCache.
"""

from safedrop.mir.analyzers.graph import (
    FunctionGraph,
    GraphBlock,
    NodeInfo,
    NodeTable,
    UnsupportedBodyError,
    build_graph,
)
from safedrop.mir.analyzers.scc import SccInfo, compute_sccs, contract_cycles
from safedrop.mir.analyzers.alias import DropStatus, NodeState, PathState
from safedrop.mir.analyzers.constants import ConstantFolder
from safedrop.mir.analyzers.bugs import BugKind, BugRecord, BugRecorder
from safedrop.mir.analyzers.summary import (
    SlotPath,
    DroppedSlot,
    ReturnResults,
    FunctionReport,
    InterproceduralCache,
)
from safedrop.mir.analyzers.engine import (
    AnalysisConfig,
    PathTraversalEngine,
    TraversalOutcome,
)
from safedrop.mir.analyzers.safedrop import SafeDropAnalyzer, analyze_program

__all__ = [
    # Graph
    "FunctionGraph", "GraphBlock", "NodeInfo", "NodeTable",
    "UnsupportedBodyError", "build_graph",
    # Cycles
    "SccInfo", "compute_sccs", "contract_cycles",
    # State
    "DropStatus", "NodeState", "PathState", "ConstantFolder",
    # Findings and summaries
    "BugKind", "BugRecord", "BugRecorder",
    "SlotPath", "DroppedSlot", "ReturnResults", "FunctionReport", "InterproceduralCache",
    # Engine
    "AnalysisConfig", "PathTraversalEngine", "TraversalOutcome",
    "SafeDropAnalyzer", "analyze_program",
]
