"""
Bug classification and recording.

A finding names the node whose memory is misused and the origin node whose
deallocation is being violated. Findings are deduplicated per function on
(kind, node, origin) and returned in a stable order.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from safedrop.mir.types import Location


class BugKind(Enum):
    """Kinds of invalid deallocation"""
    USE_AFTER_FREE = "UseAfterFree"
    DOUBLE_FREE = "DoubleFree"

    @property
    def cwe_id(self) -> str:
        return _CWE_IDS[self]

    @property
    def title(self) -> str:
        return "Use after free" if self == BugKind.USE_AFTER_FREE else "Double free"


_CWE_IDS = {
    BugKind.USE_AFTER_FREE: "CWE-416",
    BugKind.DOUBLE_FREE: "CWE-415",
}


@dataclass(frozen=True)
class BugRecord:
    """A detected deallocation bug."""
    function: str
    location: Location
    kind: BugKind
    node: int
    node_path: str
    origin: int
    origin_path: str
    drop_loc: Optional[Location] = None
    context: str = ""

    @property
    def cwe_id(self) -> str:
        return self.kind.cwe_id

    @property
    def key(self) -> Tuple[str, int, int]:
        return (self.kind.value, self.node, self.origin)

    def sort_key(self) -> tuple:
        return self.location.sort_key() + (self.kind.value, self.node, self.origin)

    @property
    def description(self) -> str:
        dropped_at = f" at {self.drop_loc}" if self.drop_loc else ""
        if self.kind == BugKind.DOUBLE_FREE:
            text = (f"Double free: '{self.node_path}' is dropped again after "
                    f"'{self.origin_path}' released it{dropped_at}")
        else:
            text = (f"Use after free: '{self.node_path}' is used after "
                    f"'{self.origin_path}' released it{dropped_at}")
        if self.context:
            text += f" ({self.context})"
        return text

    def __str__(self) -> str:
        return f"{self.location}: [{self.cwe_id}] {self.description}"

    def to_dict(self) -> dict:
        return {
            "function": self.function,
            "kind": self.kind.value,
            "cwe_id": self.cwe_id,
            "location": self.location.to_dict(),
            "node": self.node,
            "node_path": self.node_path,
            "origin": self.origin,
            "origin_path": self.origin_path,
            "drop_location": self.drop_loc.to_dict() if self.drop_loc else None,
            "context": self.context,
            "description": self.description,
        }


class BugRecorder:
    """Collects the distinct findings of one function."""

    def __init__(self, function: str):
        self.function = function
        self._records: Dict[Tuple[str, int, int], BugRecord] = {}
        self._reported: Set[Tuple[str, int, int]] = set()

    def __len__(self) -> int:
        return len(self._records)

    def record(self, kind: BugKind, node: int, origin: int, location: Location,
               node_path: str = "", origin_path: str = "",
               drop_loc: Optional[Location] = None, context: str = "") -> bool:
        """Add a finding if not already reported."""
        key = (kind.value, node, origin)
        if key in self._reported:
            return False
        self._reported.add(key)
        self._records[key] = BugRecord(
            function=self.function,
            location=location,
            kind=kind,
            node=node,
            node_path=node_path or f"_{node}",
            origin=origin,
            origin_path=origin_path or f"_{origin}",
            drop_loc=drop_loc,
            context=context,
        )
        return True

    def finalize(self) -> List[BugRecord]:
        """Distinct findings ordered by location, kind, then node ids"""
        return sorted(self._records.values(), key=lambda r: r.sort_key())
