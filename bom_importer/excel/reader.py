from __future__ import annotations

import colorsys
import csv
import io
from enum import Enum
from pathlib import Path
from typing import Any

import openpyxl
import pandas as pd
from openpyxl.styles.colors import COLOR_INDEX
from openpyxl.writer.theme import theme_xml
from openpyxl.xml.constants import DRAWING_NS
from openpyxl.xml.functions import fromstring

from ..models.grid import Grid

"""Workbook reader: decodes raw bytes into Grids.

- .xlsx / .xlsm: openpyxl (values + solid fill color per cell, theme
  colors resolved against the workbook theme with their tint applied)
- .xls: pandas with the xlrd engine (values only, no styling available)
- .csv: pandas read_csv (single implicit sheet, no styling)

Every format produces the same Grid shape so the rest of the engine is
format-agnostic. Cell values keep their type (str / int / float / datetime);
empty cells become "".
"""

__all__ = [
    "ImportStructureError",
    "NoSheetsError",
    "WorkbookReadError",
    "WorkbookKind",
    "kind_from_name",
    "load_workbook",
    "load_file",
    "cell_text",
]

CSV_ENCODINGS = ("utf-8-sig", "cp1252", "latin1")

# theme color index order used by cell styles
THEME_SLOTS = (
    "lt1", "dk1", "lt2", "dk2",
    "accent1", "accent2", "accent3", "accent4", "accent5", "accent6",
    "hlink", "folHlink",
)
HLS_MAX = 240


class ImportStructureError(Exception):
    """Base class for terminal structural problems with a workbook."""


class NoSheetsError(ImportStructureError):
    """Raised when a workbook decodes to zero sheets."""


class WorkbookReadError(ImportStructureError):
    """Raised when the decoding library cannot read the byte stream."""


class WorkbookKind(Enum):
    XLSX = "xlsx"
    XLS = "xls"
    CSV = "csv"

    @property
    def label(self) -> str:
        return "CSV" if self is WorkbookKind.CSV else "Excel"


_SUFFIX_KINDS = {
    ".xlsx": WorkbookKind.XLSX,
    ".xlsm": WorkbookKind.XLSX,
    ".xls": WorkbookKind.XLS,
    ".csv": WorkbookKind.CSV,
}


def kind_from_name(name: str) -> WorkbookKind:
    """Infer the workbook kind from a file name (unknown suffix -> XLSX)."""
    return _SUFFIX_KINDS.get(Path(name).suffix.lower(), WorkbookKind.XLSX)


def cell_text(value: Any) -> str:
    """Render a cell as trimmed text; integral floats lose their '.0'."""
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def _normalize_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return value


def _theme_palette(wb: Any) -> list[str]:
    """RRGGBB per theme color index, read from the workbook's clrScheme.

    Excel numbers theme colors lt1, dk1, lt2, dk2 first although the XML
    stores the dark/light pairs the other way around.
    """
    raw = getattr(wb, "loaded_theme", None) or theme_xml.encode("utf-8")
    scheme = fromstring(raw).find(f".//{{{DRAWING_NS}}}clrScheme")
    if scheme is None:
        return []
    palette: list[str] = []
    for slot in THEME_SLOTS:
        node = scheme.find(f"{{{DRAWING_NS}}}{slot}")
        value = ""
        if node is not None and len(node):
            spec = node[0]
            # sysClr names a system color; its last rendered RGB is in lastClr
            value = spec.get("lastClr" if spec.tag.endswith("sysClr") else "val") or ""
        palette.append(value[-6:].upper())
    return palette


def _apply_tint(rgb: str, tint: float) -> str:
    """Shift the lightness of RRGGBB the way Excel applies a theme tint."""
    r, g, b = (int(rgb[i:i + 2], 16) / 255 for i in (0, 2, 4))
    h, lightness, s = colorsys.rgb_to_hls(r, g, b)
    lum = int(lightness * HLS_MAX)
    if tint < 0:
        lum = int(lum * (1 + tint))
    elif tint > 0:
        lum = int(lum * (1 - tint) + HLS_MAX * tint)
    r, g, b = colorsys.hls_to_rgb(h, min(lum, HLS_MAX) / HLS_MAX, s)
    return "".join(f"{int(c * 255):02X}" for c in (r, g, b))


def _fill_rgb(cell: Any, palette: list[str] | None = None) -> str | None:
    """Best-effort RRGGBB of a cell's solid fill, None when unstyled."""
    fill = getattr(cell, "fill", None)
    if fill is None or fill.fill_type != "solid":
        return None
    color = fill.fgColor
    if color is None:
        return None
    if color.type == "rgb" and isinstance(color.rgb, str):
        return color.rgb[-6:].upper()
    if color.type == "indexed" and isinstance(color.indexed, int) and color.indexed < len(COLOR_INDEX):
        return COLOR_INDEX[color.indexed][-6:].upper()
    if color.type == "theme" and palette and isinstance(color.theme, int) and color.theme < len(palette):
        base = palette[color.theme]
        if len(base) != 6:
            return None
        return _apply_tint(base, color.tint) if color.tint else base
    return None


def _load_xlsx(data: bytes) -> list[Grid]:
    # read_only=False: styles are only reliable on the full worksheet model
    wb = openpyxl.load_workbook(io.BytesIO(data), data_only=True)
    palette = _theme_palette(wb)
    grids: list[Grid] = []
    try:
        for ws in wb.worksheets:
            rows: list[list[Any]] = []
            fills: dict[tuple[int, int], str] = {}
            if ws.max_row >= 1 and ws.max_column >= 1:
                for r_idx, row in enumerate(
                    ws.iter_rows(min_row=1, min_col=1, max_row=ws.max_row, max_col=ws.max_column)
                ):
                    values: list[Any] = []
                    for c_idx, cell in enumerate(row):
                        values.append(_normalize_value(cell.value))
                        rgb = _fill_rgb(cell, palette)
                        if rgb is not None:
                            fills[(r_idx, c_idx)] = rgb
                    rows.append(values)
            grids.append(Grid(name=str(ws.title), rows=rows, fills=fills))
    finally:
        wb.close()
    return grids


def _frame_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    return [[_normalize_value(v) for v in row] for row in df.itertuples(index=False, name=None)]


def _load_xls(data: bytes) -> list[Grid]:
    grids: list[Grid] = []
    xls = pd.ExcelFile(io.BytesIO(data), engine="xlrd")
    for name in xls.sheet_names:
        df = xls.parse(name, header=None, dtype=object)
        grids.append(Grid(name=str(name), rows=_frame_to_rows(df)))
    return grids


def _decode_text(data: bytes) -> str:
    for enc in CSV_ENCODINGS:
        try:
            return data.decode(enc)
        except UnicodeDecodeError:
            continue
    return data.decode("latin1", errors="replace")  # pragma: no cover (latin1 always decodes)


def _load_csv(data: bytes, sheet_name: str, delimiter: str = ",") -> list[Grid]:
    text = _decode_text(data)
    # read_csv needs the widest row up front, otherwise ragged rows raise
    width = max((len(r) for r in csv.reader(io.StringIO(text), delimiter=delimiter)), default=0)
    if width == 0:
        return [Grid(name=sheet_name, rows=[])]
    df = pd.read_csv(
        io.StringIO(text),
        header=None,
        names=list(range(width)),
        sep=delimiter,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=False,
    ).fillna("")
    return [Grid(name=sheet_name, rows=_frame_to_rows(df))]


def load_workbook(data: bytes, kind: WorkbookKind, name: str = "Sheet1") -> list[Grid]:
    """Decode raw bytes into one Grid per sheet.

    Parameters
    ----------
    data: raw file content
    kind: declared workbook kind
    name: sheet name used for the single implicit CSV sheet

    Raises
    ------
    WorkbookReadError: the decoding library rejected the byte stream
    NoSheetsError: the workbook decoded to zero sheets
    """
    try:
        if kind is WorkbookKind.CSV:
            grids = _load_csv(data, name)
        elif kind is WorkbookKind.XLS:
            grids = _load_xls(data)
        else:
            grids = _load_xlsx(data)
    except Exception as e:
        raise WorkbookReadError(str(e) or type(e).__name__) from e
    if not grids:
        raise NoSheetsError("No sheets found in workbook")
    return grids


def load_file(path: Path) -> list[Grid]:
    """Read a workbook from disk, inferring its kind from the suffix."""
    kind = kind_from_name(path.name)
    return load_workbook(path.read_bytes(), kind, name=path.stem or "Sheet1")
