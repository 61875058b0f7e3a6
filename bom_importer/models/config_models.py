from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the BOM import tool.

These are the typed configuration objects produced by bom_importer/config/loader.py.
``ParserSettings`` is also used on its own by callers that parse a single
workbook without any YAML configuration, so every field carries a default.
"""

DEFAULT_INACTIVE_FILL = "7F7F7F"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ParserSettings:
    """Knobs of the import normalization engine."""
    header_search_rows: int = 10  # header row must appear within the first N rows
    inactive_fill_color: str = DEFAULT_INACTIVE_FILL  # grey marker fill (RRGGBB)
    order_info_scan_rows: int = 20  # rows scanned for label/value pairs
    ignored_sheet_keywords: tuple[str, ...] = ("instruction",)


@dataclass(frozen=True)
class WriterSettings:
    batch_size: int = 50  # rows per bulk insert
    commit: bool = False  # parse-only unless explicitly enabled


@dataclass(frozen=True)
class CatalogSettings:
    reconcile: bool = True
    save_new_parts: bool = True


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for a directory import run."""
    source_directory: str
    timezone: str = "UTC"
    parser: ParserSettings = field(default_factory=ParserSettings)
    writer: WriterSettings = field(default_factory=WriterSettings)
    catalog: CatalogSettings = field(default_factory=CatalogSettings)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
