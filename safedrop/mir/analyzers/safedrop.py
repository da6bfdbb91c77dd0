"""
SafeDrop analyzer: drives the path traversal over a whole program.

Functions are analyzed on demand. When a traversal reaches a call to a
function with a body in the program, the callee is analyzed first (nested,
up to max_call_depth) and its ReturnResults summary is cached so every
later call site reuses it. A call back into a function that is still being
analyzed on the current thread is treated as having no effect. Mutually
recursive functions are always entered at the smallest function id of
their call cycle, so their summaries do not depend on which member is
requested first.

Example:
    program = load_file("crate.mir.json")
    analyzer = SafeDropAnalyzer(program)
    for name, report in analyzer.analyze_program().items():
        for bug in report.bugs:
            print(bug)
"""

import threading
from typing import Dict, List, Optional

from safedrop.mir.procedure import Program
from safedrop.mir.analyzers.graph import build_graph, UnsupportedBodyError
from safedrop.mir.analyzers.scc import compute_sccs, contract_cycles
from safedrop.mir.analyzers.constants import ConstantFolder
from safedrop.mir.analyzers.engine import AnalysisConfig, PathTraversalEngine
from safedrop.mir.analyzers.summary import (
    FunctionReport, InterproceduralCache, ReturnResults,
)


class SafeDropAnalyzer:
    """
    Detects use-after-free and double free in a MIR program.

    The analyzer is safe to share between threads: the cache is the only
    shared mutable structure, the active-call stack and the Z3 folder are
    kept per thread.
    """

    def __init__(self, program: Program, config: Optional[AnalysisConfig] = None,
                 cache: Optional[InterproceduralCache] = None, verbose: bool = False):
        self.program = program
        self.config = config or AnalysisConfig()
        self.cache = cache if cache is not None else InterproceduralCache()
        self.verbose = verbose
        self._local = threading.local()
        self._cycle_heads = call_cycle_heads(program)

    def _active(self) -> List[str]:
        if not hasattr(self._local, "active"):
            self._local.active = []
        return self._local.active

    def _folder(self) -> ConstantFolder:
        if not hasattr(self._local, "folder"):
            self._local.folder = ConstantFolder()
        return self._local.folder

    # =========================================================================
    # Entry points
    # =========================================================================

    def analyze_function(self, name: str) -> FunctionReport:
        """Analyze one function (or return its cached report)."""
        report = self.cache.get_report(name)
        if report is not None:
            return report
        if not self.program.has_body(name):
            raise KeyError(f"Unknown function: {name}")
        return self._analyze_from_head(name, depth=0)

    def analyze_program(self, functions: Optional[List[str]] = None) -> Dict[str, FunctionReport]:
        """Analyze every function of the program, in id order."""
        names = functions if functions is not None else self.program.function_ids()
        return {name: self.analyze_function(name) for name in names}

    def summary_for(self, name: str, depth: int) -> Optional[ReturnResults]:
        """
        Summary of a callee for a call site at the given nesting depth.

        Returns None when no summary can be produced (depth limit reached,
        body unsupported); callers treat that as an unknown callee.
        """
        summary = self.cache.lookup(name)
        if summary is not None:
            return summary

        body = self.program.get_body(name)
        if body is None:
            return None
        if name in self._active():
            if self.verbose:
                print(f"[SafeDrop] recursive call to {name}, assuming no effect")
            return ReturnResults.unknown(name, body.arg_count)
        if depth > self.config.max_call_depth:
            if self.verbose:
                print(f"[SafeDrop] call depth limit reached at {name}")
            return None

        existing = self.cache.get_report(name)
        if existing is not None:
            return existing.summary

        report = self._analyze_from_head(name, depth)
        return report.summary

    # =========================================================================
    # Analysis
    # =========================================================================

    def _analyze_from_head(self, name: str, depth: int) -> FunctionReport:
        """
        Analyze a function, entering its call cycle at the cycle head.

        The head is analyzed first unless it is already on the active stack.
        Members reached from it are cached along the way.
        """
        head = self._cycle_heads.get(name, name)
        if head != name and head not in self._active():
            if self.cache.get_report(head) is None:
                if self.verbose:
                    print(f"[SafeDrop] {name} is recursive, entering its cycle at {head}")
                self._analyze(head, depth)
            report = self.cache.get_report(name)
            if report is not None:
                return report
        return self._analyze(name, depth)

    def _analyze(self, name: str, depth: int) -> FunctionReport:
        body = self.program.get_body(name)
        active = self._active()
        active.append(name)
        try:
            graph = build_graph(body)
            scc = contract_cycles(graph)
            engine = PathTraversalEngine(
                graph, scc, self.program,
                config=self.config,
                resolve_summary=lambda callee: self.summary_for(callee, depth + 1),
                folder=self._folder(),
                verbose=self.verbose,
            )
            outcome = engine.run()
        except UnsupportedBodyError as e:
            if self.verbose:
                print(f"[SafeDrop] skipping {name}: {e}")
            return self.cache.store_report(
                FunctionReport(function=name, complete=False, error=str(e)))
        finally:
            active.pop()

        self.cache.insert(name, outcome.summary)
        if self.verbose:
            print(f"[SafeDrop] {name}: {len(outcome.bugs)} bug(s), {outcome.visits} visits, "
                  f"{outcome.paths} paths, {outcome.cut_paths} cut")
        report = FunctionReport(
            function=name,
            bugs=outcome.bugs,
            complete=outcome.complete,
            visits=outcome.visits,
            paths=outcome.paths,
            cut_paths=outcome.cut_paths,
            summary=outcome.summary,
        )
        return self.cache.store_report(report)


def analyze_program(program: Program, config: Optional[AnalysisConfig] = None,
                    verbose: bool = False) -> Dict[str, FunctionReport]:
    """
    Convenience function to analyze a whole program.

    Args:
        program: The program to analyze
        config: Analysis tunables
        verbose: Print progress

    Returns:
        Map of function id to FunctionReport
    """
    return SafeDropAnalyzer(program, config=config, verbose=verbose).analyze_program()


def call_cycle_heads(program: Program) -> Dict[str, str]:
    """
    Map every function on a call cycle to the head of that cycle, the
    smallest function id among its members. Functions outside cycles are
    not in the map.
    """
    call_graph = program.get_call_graph()
    names = sorted(call_graph)
    ids = {name: index for index, name in enumerate(names)}
    successors = {ids[name]: sorted(ids[callee] for callee in call_graph[name])
                  for name in names}
    info = compute_sccs(successors, [])

    heads = {}
    for father in info.cyclic:
        members = info.members_of(father)
        head = names[min(members)]
        for member in members:
            heads[names[member]] = head
    return heads
