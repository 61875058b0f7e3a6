from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from dotenv import load_dotenv
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    CatalogSettings,
    DatabaseConfig,
    ImportConfig,
    ParserSettings,
    WriterSettings,
)

"""Config loader.

Responsibilities:
- Load YAML config/import.yml
- Validate against config_schema.json (unknown keys are rejected)
- Apply defaults (timezone=UTC, parser/writer/catalog knobs)
- Resolve database connection settings (.env / environment > YAML)
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "load_env_file",
    "resolve_dsn",
]

DEFAULT_CONFIG_PATH = Path("config/import.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If any of the following occurs:
            - The schema file does not exist.
            - The schema file is not valid JSON.
            - The config data fails schema validation (missing required keys,
              wrong types, unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _parser_settings(raw: dict[str, Any]) -> ParserSettings:
    defaults = ParserSettings()
    keywords = raw.get("ignored_sheet_keywords")
    return ParserSettings(
        header_search_rows=raw.get("header_search_rows", defaults.header_search_rows),
        inactive_fill_color=raw.get("inactive_fill_color", defaults.inactive_fill_color),
        order_info_scan_rows=raw.get("order_info_scan_rows", defaults.order_info_scan_rows),
        ignored_sheet_keywords=(
            tuple(keywords) if keywords is not None else defaults.ignored_sheet_keywords
        ),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    writer_raw = data.get("writer", {})
    catalog_raw = data.get("catalog", {})
    db_raw = data.get("database", {})
    return ImportConfig(
        source_directory=data["source_directory"],
        timezone=data.get("timezone", "UTC"),
        parser=_parser_settings(data.get("parser", {})),
        writer=WriterSettings(
            batch_size=writer_raw.get("batch_size", WriterSettings.batch_size),
            commit=writer_raw.get("commit", WriterSettings.commit),
        ),
        catalog=CatalogSettings(
            reconcile=catalog_raw.get("reconcile", CatalogSettings.reconcile),
            save_new_parts=catalog_raw.get("save_new_parts", CatalogSettings.save_new_parts),
        ),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
    )


def load_env_file(path: Path = Path(".env"), override: bool = True) -> bool:
    """Load ``.env`` with python-dotenv; its values win over the process environment.

    Returns True when the file existed and was loaded.
    """
    if not path.exists():
        return False
    return load_dotenv(dotenv_path=path, override=override)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Build the libpq DSN.

    Priority:
        1. DATABASE_URL / PGDSN (whole DSN)
        2. the ``dsn`` key of the YAML database section
        3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, falling back to the
           individual YAML keys and then libpq defaults
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn
