"""
Unit tests for the worker attendance sheet builder.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from attendance import ATTENDANCE_HEADERS, build_attendance_sheet
from reader import EmptyInputError, MissingRequiredFieldError


class TestBuildAttendanceSheet:
    def test_basic_columns(self):
        rows = [
            {"姓名": "阿明", "性別": "男", "組別": "詩歌組", "手機": 912345678, "小組": "A"},
            {"姓名": "小芳", "性別": "女", "組別": "行政組"},
        ]
        grid = build_attendance_sheet(rows)
        assert grid.headers == ATTENDANCE_HEADERS
        assert grid.rows == [
            [1, "阿明", "", "", "詩歌組", "912345678", "男", "A"],
            [2, "小芳", "", "", "行政組", "", "女", ""],
        ]

    def test_whitespace_insensitive_headers(self):
        rows = [{"同工　姓名": "阿明", "服事 組別": "總務", "聯絡\n電話": "0911"}]
        grid = build_attendance_sheet(rows)
        assert grid.rows[0][1] == "阿明"
        assert grid.rows[0][4] == "總務"
        assert grid.rows[0][5] == "0911"

    def test_candidate_priority(self):
        rows = [{"名稱": "X", "姓名": "阿明"}]
        assert build_attendance_sheet(rows).rows[0][1] == "阿明"

    def test_column_found_on_later_row(self):
        rows = [{"姓名": "阿明"}, {"姓名": "小芳", "所屬小組": "B"}]
        grid = build_attendance_sheet(rows)
        assert grid.rows[0][7] == ""
        assert grid.rows[1][7] == "B"

    def test_missing_name_column(self):
        with pytest.raises(MissingRequiredFieldError):
            build_attendance_sheet([{"性別": "男"}])

    def test_empty(self):
        with pytest.raises(EmptyInputError):
            build_attendance_sheet([])

    def test_styling_hints(self):
        grid = build_attendance_sheet([{"姓名": "阿明"}])
        assert grid.bordered is True
        assert set(grid.header_fills.values()) == {"FDE49A"}
        assert len(grid.header_fills) == len(ATTENDANCE_HEADERS)
