from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from ..models.hierarchy import HierarchyRow, ResolvedLeafPart

"""Multi-level BOM flattening.

Rows arrive in source order, which is the only parent/child signal: a row's
parent is the closest preceding row at a shallower level. Quantities multiply
down the chain, and only leaves (rows without deeper rows directly below them)
are returned.
"""

__all__ = [
    "resolve_hierarchy_leaves",
]


@dataclass(frozen=True)
class _StackEntry:
    part_number: str
    effective_qty: float


def resolve_hierarchy_leaves(rows: Sequence[HierarchyRow]) -> list[ResolvedLeafPart]:
    """Return the leaf parts with multiplied-through quantities and assembly group.

    Example: levels 0/1/2 with qty 1/2/3 -> one leaf (level 2) with qty 6 whose
    assembly group is the level-1 part.
    """
    # stack[level] = most recent entry seen at that level (None = out of scope)
    stack: list[_StackEntry | None] = []
    leaves: list[ResolvedLeafPart] = []

    for i, row in enumerate(rows):
        level = max(row.level, 0)
        next_row = rows[i + 1] if i + 1 < len(rows) else None
        is_leaf = next_row is None or next_row.level <= level

        parent_qty = 1.0
        for lvl in range(min(level, len(stack)) - 1, -1, -1):
            ancestor = stack[lvl]
            if ancestor is not None:
                parent_qty = ancestor.effective_qty
                break
        effective_qty = row.qty * parent_qty

        # deeper levels are out of scope once we are back at this level
        del stack[level + 1:]
        if len(stack) <= level:
            stack.extend([None] * (level + 1 - len(stack)))
        stack[level] = _StackEntry(row.part_number, effective_qty)

        if level <= 1:
            assembly_group = row.part_number
        else:
            assembly_group = ""
            for lvl in (1, 0):
                entry = stack[lvl]
                if entry is not None:
                    assembly_group = entry.part_number
                    break

        if is_leaf:
            leaves.append(
                ResolvedLeafPart(
                    part_number=row.part_number,
                    description=row.description,
                    effective_qty=max(1, math.ceil(effective_qty)),
                    assembly_group=assembly_group,
                )
            )

    return leaves
