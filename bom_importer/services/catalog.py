from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime

from ..models.catalog import CatalogPart, ConflictAction, PartConflict
from ..models.order import ImportedLineItem

"""Catalog reconciliation.

Compares imported line items against the saved parts catalog. Differences in
description or location become PartConflicts; the caller decides per conflict
whether the catalog keeps its value or takes the imported one. Missing values
compare as the empty string, so "no description" and "" never conflict.
"""

__all__ = [
    "find_conflicts",
    "resolve_conflicts",
    "select_new_parts",
]

logger = logging.getLogger(__name__)


def _norm(value: str | None) -> str:
    return value or ""


def find_conflicts(
    line_items: Iterable[ImportedLineItem], catalog: Mapping[str, CatalogPart]
) -> list[PartConflict]:
    """Return one conflict per imported part whose description or location differs."""
    conflicts: list[PartConflict] = []
    seen: set[str] = set()
    for item in line_items:
        if item.part_number in seen:
            continue
        seen.add(item.part_number)
        saved = catalog.get(item.part_number)
        if saved is None:
            continue
        if (
            _norm(saved.description) != _norm(item.description)
            or _norm(saved.default_location) != _norm(item.location)
        ):
            conflicts.append(
                PartConflict(
                    part_number=item.part_number,
                    saved_description=saved.description,
                    import_description=item.description,
                    saved_location=saved.default_location,
                    import_location=item.location,
                )
            )
    logger.debug("catalog conflicts=%d", len(conflicts))
    return conflicts


def resolve_conflicts(
    conflicts: Iterable[PartConflict],
    catalog: dict[str, CatalogPart],
    now: datetime | None = None,
) -> list[CatalogPart]:
    """Apply ``update`` resolutions to ``catalog`` in place.

    Returns the catalog parts that changed. Unresolved conflicts keep the
    saved values.
    """
    stamp = now or datetime.now(UTC)
    updated: list[CatalogPart] = []
    for conflict in conflicts:
        if conflict.effective_action is not ConflictAction.UPDATE:
            continue
        part = catalog.get(conflict.part_number)
        if part is None:
            part = CatalogPart(part_number=conflict.part_number)
            catalog[conflict.part_number] = part
        part.description = conflict.import_description
        part.default_location = conflict.import_location
        part.updated_at = stamp
        updated.append(part)
    return updated


def select_new_parts(
    line_items: Iterable[ImportedLineItem],
    catalog: Mapping[str, CatalogPart],
    skip_existing: bool = True,
) -> list[CatalogPart]:
    """Catalog entries for imported parts (only unknown ones when ``skip_existing``)."""
    parts: dict[str, CatalogPart] = {}
    for item in line_items:
        if item.part_number in parts:
            continue
        if skip_existing and item.part_number in catalog:
            continue
        parts[item.part_number] = CatalogPart(
            part_number=item.part_number,
            description=item.description,
            default_location=item.location,
        )
    return list(parts.values())
