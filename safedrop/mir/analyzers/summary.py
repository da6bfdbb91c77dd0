"""
Function summaries for interprocedural analysis.

A ReturnResults summary is the externally visible effect of a function,
expressed over *slots*: slot 0 is the return value, slots 1..n are the
arguments, each optionally narrowed by a field path. It records

1. alias pairs between slots that hold at some return point,
2. slots whose memory is dropped at some return point (with a flag for
   manual intervention),
3. whether the analysis that produced it completed within budget.

Summaries are created once per function and never change after being
cached. The InterproceduralCache is the only structure shared between
worker threads.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from safedrop.mir.analyzers.bugs import BugRecord


@dataclass(frozen=True, order=True)
class SlotPath:
    """A function slot plus a field path"""
    slot: int
    fields: Tuple[str, ...] = ()

    def __str__(self) -> str:
        base = "ret" if self.slot == 0 else f"arg{self.slot}"
        return ".".join((base,) + self.fields)

    def to_list(self) -> list:
        return [self.slot, list(self.fields)]


@dataclass(frozen=True, order=True)
class DroppedSlot:
    """A slot whose memory is deallocated when the function returns"""
    path: SlotPath
    manual: bool = False

    def __str__(self) -> str:
        return f"{self.path}{' (manual)' if self.manual else ''}"


@dataclass(frozen=True)
class ReturnResults:
    """Summary of a function's ownership effects on its slots"""
    function: str
    arg_count: int = 0
    aliases: FrozenSet[Tuple[SlotPath, SlotPath]] = frozenset()
    dropped: FrozenSet[DroppedSlot] = frozenset()
    complete: bool = True

    @classmethod
    def unknown(cls, function: str, arg_count: int = 0) -> 'ReturnResults':
        """Summary with no effects"""
        return cls(function=function, arg_count=arg_count)

    def sorted_aliases(self) -> List[Tuple[SlotPath, SlotPath]]:
        return sorted(self.aliases)

    def sorted_dropped(self) -> List[DroppedSlot]:
        return sorted(self.dropped)

    def to_dict(self) -> dict:
        return {
            "function": self.function,
            "arg_count": self.arg_count,
            "aliases": [[a.to_list(), b.to_list()] for a, b in self.sorted_aliases()],
            "dropped": [{"slot": d.path.to_list(), "manual": d.manual}
                        for d in self.sorted_dropped()],
            "complete": self.complete,
        }


@dataclass
class FunctionReport:
    """Outcome of analyzing one function"""
    function: str
    bugs: List[BugRecord] = field(default_factory=list)
    complete: bool = True
    visits: int = 0
    paths: int = 0
    cut_paths: int = 0
    error: Optional[str] = None
    summary: Optional[ReturnResults] = None

    @property
    def analyzed(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "function": self.function,
            "bugs": [b.to_dict() for b in self.bugs],
            "complete": self.complete,
            "visits": self.visits,
            "paths": self.paths,
            "cut_paths": self.cut_paths,
            "error": self.error,
            "summary": self.summary.to_dict() if self.summary else None,
        }


class InterproceduralCache:
    """
    Write-once memo of ReturnResults per function id (thread-safe).

    Example:
        cache = InterproceduralCache()

        summary = cache.lookup("crate::helper")
        if summary is None:
            summary = analyze("crate::helper")
            cache.insert("crate::helper", summary)
    """

    def __init__(self):
        self._summaries: Dict[str, ReturnResults] = {}
        self._reports: Dict[str, FunctionReport] = {}
        self._lock = threading.Lock()

        # Metrics
        self.hits = 0
        self.misses = 0
        self.populations = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._summaries)

    def __contains__(self, function_id: str) -> bool:
        with self._lock:
            return function_id in self._summaries

    def lookup(self, function_id: str) -> Optional[ReturnResults]:
        """Summary lookup, counting hits and misses"""
        with self._lock:
            summary = self._summaries.get(function_id)
            if summary is None:
                self.misses += 1
            else:
                self.hits += 1
            return summary

    def insert(self, function_id: str, summary: ReturnResults) -> bool:
        """
        Store a summary unless one is already cached.

        Returns:
            True if this call populated the entry, False if it was a no-op
        """
        with self._lock:
            if function_id in self._summaries:
                return False
            self._summaries[function_id] = summary
            self.populations += 1
            return True

    def store_report(self, report: FunctionReport) -> FunctionReport:
        """Store a function report; the first stored report wins."""
        with self._lock:
            existing = self._reports.get(report.function)
            if existing is not None:
                return existing
            self._reports[report.function] = report
            return report

    def get_report(self, function_id: str) -> Optional[FunctionReport]:
        with self._lock:
            return self._reports.get(function_id)

    def stats(self) -> dict:
        with self._lock:
            return {
                "entries": len(self._summaries),
                "hits": self.hits,
                "misses": self.misses,
                "populations": self.populations,
            }
