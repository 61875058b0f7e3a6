"""Tool-order BOM spreadsheet importer."""

__version__ = "0.1.0"
