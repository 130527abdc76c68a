"""
Unit tests for the exporter module.

Tests .xlsx generation from SheetGrid layouts by reading the stream back
with openpyxl.
"""

import sys
from pathlib import Path

import pytest
from openpyxl import load_workbook

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from exporter import display_width, export_workbook
from sheets import Formula, MergeRegion, SheetGrid


# ═══════════════════════════════════════════════════════════════════
# display_width tests
# ═══════════════════════════════════════════════════════════════════


class TestDisplayWidth:
    def test_ascii(self):
        assert display_width("ab") == pytest.approx(2.2)

    def test_cjk(self):
        assert display_width("兒童") == pytest.approx(4.4)

    def test_full_width_punctuation(self):
        assert display_width("（）") == pytest.approx(4.4)

    def test_empty(self):
        assert display_width("") == 0


# ═══════════════════════════════════════════════════════════════════
# Excel export tests
# ═══════════════════════════════════════════════════════════════════


def sample_grids() -> list[SheetGrid]:
    roster = SheetGrid(
        title="總表",
        headers=["項次", "兒童姓名", "手足名稱", "家長行動電話", "備註"],
        rows=[
            [1, "王小三", "王小一", "0912345678", "=1+1"],
            [1, "王小三", "王小五", "0912345678", "=1+1"],
            [2, "李獨子", "", "", ""],
        ],
        merges=[MergeRegion(1, 2, 0), MergeRegion(1, 2, 1)],
        center_columns=("項次", "兒童姓名"),
    )
    stats = SheetGrid(
        title="統計",
        headers=["區", "人數"],
        rows=[["大衛區", 3], ["總計", Formula("=SUM(B2:B2)")]],
        header_fills={0: "FDE49A"},
        bordered=True,
    )
    return [roster, stats]


class TestExportWorkbook:
    def test_returns_stream(self):
        stream = export_workbook(sample_grids())
        assert stream.tell() == 0
        assert len(stream.getvalue()) > 0

    def test_sheet_titles_in_order(self):
        wb = load_workbook(export_workbook(sample_grids()))
        assert wb.sheetnames == ["總表", "統計"]

    def test_headers_and_values(self):
        wb = load_workbook(export_workbook(sample_grids()))
        ws = wb["總表"]
        assert [c.value for c in ws[1]] == ["項次", "兒童姓名", "手足名稱", "家長行動電話", "備註"]
        assert ws["B2"].value == "王小三"
        assert ws["C3"].value == "王小五"
        assert ws["B4"].value == "李獨子"
        assert ws["A1"].font.bold is True

    def test_merged_cells(self):
        wb = load_workbook(export_workbook(sample_grids()))
        merged = {str(r) for r in wb["總表"].merged_cells.ranges}
        assert merged == {"A2:A3", "B2:B3"}

    def test_phone_stored_as_text(self):
        wb = load_workbook(export_workbook(sample_grids()))
        cell = wb["總表"]["D2"]
        assert cell.value == "0912345678"
        assert cell.number_format == "@"

    def test_formula_written_as_formula(self):
        wb = load_workbook(export_workbook(sample_grids()))
        cell = wb["統計"]["B3"]
        assert cell.data_type == "f"
        assert cell.value == "=SUM(B2:B2)"

    def test_plain_text_starting_with_equals_stays_text(self):
        wb = load_workbook(export_workbook(sample_grids()))
        cell = wb["總表"]["E2"]
        assert cell.data_type == "s"
        assert cell.value == "=1+1"

    def test_alignment_hints(self):
        wb = load_workbook(export_workbook(sample_grids()))
        ws = wb["總表"]
        assert ws["A2"].alignment.horizontal == "center"
        assert ws["C2"].alignment.horizontal == "left"

    def test_header_fill_and_borders(self):
        wb = load_workbook(export_workbook(sample_grids()))
        ws = wb["統計"]
        assert ws["A1"].fill.start_color.rgb.endswith("FDE49A")
        assert ws["A2"].border.top.style == "thin"

    def test_column_widths(self):
        wb = load_workbook(export_workbook(sample_grids()))
        ws = wb["總表"]
        # "家長行動電話": 6 CJK chars -> 13.2 -> 14 + 1
        assert ws.column_dimensions["D"].width == 15
        # "兒童姓名" header (8.8) vs "王小三" (6.6) -> 9 + 1
        assert ws.column_dimensions["B"].width == 10

    def test_empty_grid(self):
        wb = load_workbook(export_workbook([SheetGrid(title="空", headers=["項次"])]))
        assert wb["空"].max_row == 1
