"""
Worker attendance sheet.

Builds a check-in sheet from a staff list. Columns are found by header text
with all whitespace (full-width spaces included) removed, trying a list of
accepted spellings per field.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from reader import EmptyInputError, MissingRequiredFieldError, cell_text, clean_key
from sheets import SheetGrid

log = logging.getLogger(__name__)

ATTENDANCE_TITLE = "同工出席名單"
ATTENDANCE_HEADERS = ["序號", "姓名", "到達時間", "已到", "組別", "聯絡電話", "性別", "所屬小組"]
ATTENDANCE_FILL = "FDE49A"

# Canonical field -> accepted header spellings, first match wins
ATTENDANCE_COLUMNS: dict[str, tuple[str, ...]] = {
    "name": ("姓名", "同工姓名", "名稱"),
    "gender": ("性別",),
    "group": ("組別", "部門", "服事組別"),
    "phone": ("聯絡電話", "手機", "電話", "行動電話"),
    "team": ("所屬小組", "小組", "所屬小隊"),
}

_WHITESPACE = re.compile(r"\s+")


def _compact(label: str) -> str:
    return _WHITESPACE.sub("", str(label))


def _build_column_map(rows: list[dict[str, Any]]) -> dict[str, str]:
    """Compacted header -> first raw header carrying it, across all rows."""
    columns: dict[str, str] = {}
    for row in rows:
        for key in row:
            columns.setdefault(_compact(key), key)
    return columns


def _find_column(columns: dict[str, str], candidates: tuple[str, ...]) -> str | None:
    for name in candidates:
        if name in columns:
            return columns[name]
    return None


def build_attendance_sheet(
    rows: list[dict[str, Any]],
    logger: logging.Logger | None = None,
) -> SheetGrid:
    """
    Lay out the attendance sheet; arrival time and check-in stay blank.

    Raises:
        EmptyInputError: If ``rows`` is empty.
        MissingRequiredFieldError: If no name column can be found.
    """
    logger = logger or log
    if not rows:
        raise EmptyInputError("Excel 檔案中沒有資料，請確認檔案內容")

    cleaned = [{clean_key(k): v for k, v in row.items() if clean_key(k)} for row in rows]
    columns = _build_column_map(cleaned)
    logger.debug(f"Attendance columns available: {list(columns)}")

    found = {field: _find_column(columns, names) for field, names in ATTENDANCE_COLUMNS.items()}
    if found["name"] is None:
        raise MissingRequiredFieldError("找不到「姓名」欄位，請確認同工名單檔案的欄位名稱")

    def value_of(row: dict[str, Any], field: str) -> str:
        col = found[field]
        return cell_text(row.get(col)) if col else ""

    grid = SheetGrid(
        title=ATTENDANCE_TITLE,
        headers=list(ATTENDANCE_HEADERS),
        header_fills={col: ATTENDANCE_FILL for col in range(len(ATTENDANCE_HEADERS))},
        center_columns=("序號",),
        bordered=True,
    )
    for idx, row in enumerate(cleaned, start=1):
        grid.rows.append([
            idx,
            value_of(row, "name"),
            "",
            "",
            value_of(row, "group"),
            value_of(row, "phone"),
            value_of(row, "gender"),
            value_of(row, "team"),
        ])
    logger.info(f"Attendance sheet built with {len(grid.rows)} worker(s)")
    return grid
