"""Domain models for the BOM import tool.

This package contains the data structures shared by the parsing engine, the
catalog reconciler, the persistence adapter and the CLI.
"""

from .catalog import CatalogPart, ConflictAction, InventoryRecord, PartConflict
from .config_models import (
    CatalogSettings,
    DatabaseConfig,
    ImportConfig,
    ParserSettings,
    WriterSettings,
)
from .grid import ColumnMapping, Grid
from .hierarchy import HierarchyRow, ResolvedLeafPart
from .order import ImportedLineItem, ImportedOrder, ImportedTool, ImportResult

__all__ = [
    # Configuration models
    "CatalogSettings",
    "DatabaseConfig",
    "ImportConfig",
    "ParserSettings",
    "WriterSettings",
    # Parsing models
    "ColumnMapping",
    "Grid",
    "HierarchyRow",
    "ResolvedLeafPart",
    # Payload models
    "ImportedLineItem",
    "ImportedOrder",
    "ImportedTool",
    "ImportResult",
    # Catalog models
    "CatalogPart",
    "ConflictAction",
    "InventoryRecord",
    "PartConflict",
]
