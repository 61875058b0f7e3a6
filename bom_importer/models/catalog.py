from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

"""Parts catalog, conflict and inventory models.

The catalog is the order-independent reference list of known parts. A
PartConflict is created when an import disagrees with the catalog and is
mutated by the caller while the conflict is being resolved.
"""

__all__ = [
    "CatalogPart",
    "ConflictAction",
    "PartConflict",
    "InventoryRecord",
]


class ConflictAction(Enum):
    """Resolution of a catalog conflict.

    - KEEP: discard the imported value, the catalog stays as saved
    - UPDATE: overwrite catalog description/location with the imported value
    """
    KEEP = "keep"
    UPDATE = "update"


@dataclass
class CatalogPart:
    part_number: str
    description: str | None = None
    default_location: str | None = None
    updated_at: datetime | None = None


@dataclass
class PartConflict:
    part_number: str
    saved_description: str | None
    import_description: str | None
    saved_location: str | None
    import_location: str | None
    action: ConflictAction | None = None  # None = unresolved (treated as KEEP)

    @property
    def effective_action(self) -> ConflictAction:
        return self.action or ConflictAction.KEEP


@dataclass(frozen=True)
class InventoryRecord:
    """Latest known stock for a part (newest lot id wins)."""
    part_number: str
    location: str
    qty_available: int
    lot_id: str
