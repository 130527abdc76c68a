"""
Export module for organised rosters.

Encodes SheetGrid layouts into an .xlsx workbook via openpyxl: header
styling, per-column alignment, merged cells and CJK-aware column widths.
"""

from __future__ import annotations

import io
import math
import re

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from sheets import PHONE_HEADER, Formula, SheetGrid

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_WIDE_CHARS = re.compile(r"[一-龥　-〿＀-￯]")
_THIN = Side(style="thin", color="000000")
_BORDER = Border(top=_THIN, bottom=_THIN, left=_THIN, right=_THIN)
_BLANK_HEADER_WIDTH = 8


def display_width(text: str) -> float:
    """Approximate column width of ``text``; CJK and full-width glyphs count double."""
    return sum(2.2 if _WIDE_CHARS.match(ch) else 1.1 for ch in text)


def _write_grid(ws, grid: SheetGrid) -> None:
    # ── Header row styling ──────────────────────────────────────────
    header_font = Font(bold=True)
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)

    for col_idx, header in enumerate(grid.headers, start=1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = header_font
        cell.alignment = header_alignment
        fill = grid.header_fills.get(col_idx - 1)
        if fill:
            cell.fill = PatternFill(start_color=fill, end_color=fill, fill_type="solid")
        if grid.bordered:
            cell.border = _BORDER

    # ── Data rows ──────────────────────────────────────────────────
    for row_idx, row in enumerate(grid.rows, start=2):
        for col_idx, value in enumerate(row, start=1):
            header = grid.headers[col_idx - 1] if col_idx <= len(grid.headers) else ""
            cell = ws.cell(row=row_idx, column=col_idx)
            if header == PHONE_HEADER:
                cell.value = "" if value is None else str(value)
                cell.number_format = "@"
            else:
                cell.value = value
            # User text that happens to start with "=" stays text
            if isinstance(value, str) and not isinstance(value, Formula) and value.startswith("="):
                cell.data_type = "s"
            horizontal = "center" if header in grid.center_columns else "left"
            cell.alignment = Alignment(horizontal=horizontal, vertical="center", wrap_text=False)
            if grid.bordered:
                cell.border = _BORDER

    # ── Merged cells ───────────────────────────────────────────────
    for region in grid.merges:
        ws.merge_cells(
            start_row=region.first_row + 1,
            start_column=region.column + 1,
            end_row=region.last_row + 1,
            end_column=region.column + 1,
        )

    # ── Auto-fit column widths ─────────────────────────────────────
    for col_idx, header in enumerate(grid.headers, start=1):
        header_width = display_width(header) if header else _BLANK_HEADER_WIDTH
        content_width = 0.0
        for row in grid.rows:
            if col_idx > len(row):
                continue
            value = row[col_idx - 1]
            if value in (None, "") or isinstance(value, Formula):
                continue
            content_width = max(content_width, display_width(str(value)))
        ws.column_dimensions[get_column_letter(col_idx)].width = math.ceil(max(header_width, content_width)) + 1


def export_workbook(grids: list[SheetGrid]) -> io.BytesIO:
    """
    Generate an Excel workbook with one worksheet per grid, in order.

    Returns:
        BytesIO stream containing the .xlsx file.
    """
    wb = Workbook()
    first = True
    for grid in grids:
        if first:
            ws = wb.active
            ws.title = grid.title
            first = False
        else:
            ws = wb.create_sheet(title=grid.title)
        _write_grid(ws, grid)

    # ── Write to stream ────────────────────────────────────────────
    stream = io.BytesIO()
    wb.save(stream)
    stream.seek(0)
    return stream
