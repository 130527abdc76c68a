"""
Registration sheet reader.

Loads the first worksheet of an uploaded .xlsx file with openpyxl, locates
the header row below any preamble rows, and turns data rows into
label -> value dicts. Ragged, human-edited headers are cleaned and resolved
onto a fixed set of canonical fields through ordered alias lists.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Header markers: a located header must expose one of these in its first record
# ---------------------------------------------------------------------------
REGISTRATION_MARKERS: tuple[str, ...] = ("兒童姓名", "報名序號", "姓名")
STAFF_MARKERS: tuple[str, ...] = ("姓名",)

DEFAULT_HEADER_SCAN_ROWS = 10

EMPTY_HEADER = "__EMPTY"
NONE_MARKER = "無"

# ---------------------------------------------------------------------------
# Canonical fields and the header spellings accepted for each, in priority order
# ---------------------------------------------------------------------------
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "registration_number": ("報名序號",),
    "child_name": ("兒童姓名", "姓名", "孩童姓名"),
    "gender": ("性別",),
    "grade": ("年級",),
    "school": ("學校",),
    "guardian_name": ("家長姓名",),
    "guardian_phone": ("家長行動電話",),
    "note": ("備註",),
    "sibling_field": ("兄弟姊妹", "手足", "兄弟姐妹"),
}

_LINE_BREAKS = re.compile(r"[\r\n]+")


class RosterError(Exception):
    """Base class for errors that abort processing of an uploaded sheet."""


class EmptyInputError(RosterError):
    """Raised when the sheet has no data rows below the header."""


class MissingRequiredFieldError(RosterError):
    """Raised when a flow cannot find a column it cannot do without."""


@dataclass(frozen=True)
class ChildRecord:
    """One registrant resolved onto the canonical fields.

    ``position`` is the 1-based row position in the uploaded sheet, taken
    before any filtering.
    """

    position: int
    registration_number: str = ""
    child_name: str = ""
    gender: str = ""
    grade: str = ""
    school: str = ""
    guardian_name: str = ""
    guardian_phone: str = ""
    note: str = ""
    sibling_field: str = ""


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------

def cell_text(value: Any) -> str:
    """Render a cell value as trimmed text; whole floats lose their '.0'."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


# ---------------------------------------------------------------------------
# Grid loading and header location
# ---------------------------------------------------------------------------

def load_grid(file_path: str | Path) -> list[list[Any]]:
    """Read the first worksheet of an .xlsx file into a row-major grid."""
    wb = load_workbook(filename=str(file_path), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        return [list(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _header_labels(header_row: list[Any], width: int) -> list[str]:
    """
    Name every column of the header row.

    Blank header cells become ``__EMPTY``; a label seen before gets a
    ``_1``, ``_2`` ... suffix, so merged or repeated headers stay addressable.
    """
    labels: list[str] = []
    seen: dict[str, int] = {}
    for idx in range(width):
        raw = header_row[idx] if idx < len(header_row) else None
        base = EMPTY_HEADER if _is_blank(raw) else str(raw)
        if base in seen:
            seen[base] += 1
            labels.append(f"{base}_{seen[base]}")
        else:
            seen[base] = 0
            labels.append(base)
    return labels


def rows_at_offset(grid: list[list[Any]], offset: int) -> list[dict[str, Any]]:
    """
    Re-read the grid with row ``offset`` as the header.

    Fully blank rows are skipped and blank cells are left out of each record.
    """
    if offset >= len(grid):
        return []
    width = max((len(r) for r in grid), default=0)
    labels = _header_labels(grid[offset], width)

    records: list[dict[str, Any]] = []
    for row in grid[offset + 1:]:
        record = {
            labels[idx]: value
            for idx, value in enumerate(row)
            if not _is_blank(value)
        }
        if record:
            records.append(record)
    return records


def locate_header(
    grid: list[list[Any]],
    markers: tuple[str, ...] = REGISTRATION_MARKERS,
    max_skip: int = DEFAULT_HEADER_SCAN_ROWS,
    logger: logging.Logger | None = None,
) -> int:
    """
    Find the row offset of the header.

    The first offset in ``0..max_skip`` whose first data record has a field
    label containing one of ``markers`` wins. When nothing matches, offset 0
    is used.
    """
    logger = logger or log
    for offset in range(max_skip + 1):
        records = rows_at_offset(grid, offset)
        if not records:
            continue
        if any(marker in label for label in records[0] for marker in markers):
            logger.debug(f"Header located at row {offset + 1}")
            return offset
    logger.warning("No recognisable header row found, using the first row")
    return 0


def read_sheet_rows(
    file_path: str | Path,
    markers: tuple[str, ...] = REGISTRATION_MARKERS,
    max_skip: int = DEFAULT_HEADER_SCAN_ROWS,
    logger: logging.Logger | None = None,
) -> list[dict[str, Any]]:
    """
    Load a workbook and return its data rows keyed by raw header label.

    Raises:
        EmptyInputError: If no data rows remain below the located header.
    """
    logger = logger or log
    grid = load_grid(file_path)
    offset = locate_header(grid, markers, max_skip, logger)
    rows = rows_at_offset(grid, offset)
    if not rows:
        raise EmptyInputError("Excel 檔案中沒有資料")
    logger.info(f"Read {len(rows)} data row(s) from {Path(file_path).name}")
    return rows


# ---------------------------------------------------------------------------
# Field normalisation
# ---------------------------------------------------------------------------

def clean_key(key: str) -> str:
    """Strip line breaks and surrounding whitespace from a header label."""
    return _LINE_BREAKS.sub("", str(key)).strip()


def normalize_key(key: str) -> str:
    """
    Clean one header label and undo known merged-header corruptions.

    A duplicated registration header (``報名序號_1``) actually holds the child
    name. Any other label mentioning 報名序號 without an underscore suffix, such
    as ``(收費同工)報名序號`` or ``報名序號(必填)``, is the registration number
    itself. Anything else passes through.
    """
    cleaned = clean_key(key)
    if "報名序號_1" in cleaned:
        return "兒童姓名"
    if "報名序號" in cleaned and "_" not in cleaned:
        return "報名序號"
    return cleaned


def normalize_fields(row: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``row`` with every key passed through ``normalize_key``."""
    cleaned: dict[str, Any] = {}
    for key, value in row.items():
        new_key = normalize_key(key)
        if new_key:
            cleaned[new_key] = value
    return cleaned


def resolve_alias(row: dict[str, Any], aliases: tuple[str, ...]) -> str:
    """Return the first present, non-blank value among ``aliases`` as text."""
    for name in aliases:
        text = cell_text(row.get(name))
        if text:
            return text
    return ""


def to_child_record(row: dict[str, Any], position: int) -> ChildRecord:
    """Resolve a normalised row onto the canonical fields."""
    values = {field: resolve_alias(row, aliases) for field, aliases in FIELD_ALIASES.items()}
    return ChildRecord(position=position, **values)


def prepare_children(rows: list[dict[str, Any]]) -> list[ChildRecord]:
    """Normalise a batch of raw rows into ChildRecords, numbered from 1."""
    return [to_child_record(normalize_fields(row), idx) for idx, row in enumerate(rows, start=1)]
