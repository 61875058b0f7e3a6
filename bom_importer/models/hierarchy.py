from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "HierarchyRow",
    "ResolvedLeafPart",
]


@dataclass(frozen=True)
class HierarchyRow:
    """One row of a nested BOM. Source order defines parent/child adjacency."""
    level: int  # 0 = root
    part_number: str
    qty: float
    description: str = ""


@dataclass(frozen=True)
class ResolvedLeafPart:
    part_number: str
    description: str
    effective_qty: int  # multiplied through the parent chain, ceil, >= 1
    assembly_group: str
