"""
Sheet layout.

Turns assembled records into SheetGrid values: header labels, positional
rows, merge regions and a few styling hints. Encoding to .xlsx happens in
exporter.py.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from grades import area_for_bucket
from roster import (
    SORT_BY_REGISTRATION,
    UNPAID_MARKER,
    ProcessedRecord,
    RosterResult,
    sort_for_summary,
    summary_item_number,
)

SUMMARY_TITLE = "總表"
STATS_TITLE = "統計"
PHONE_HEADER = "家長行動電話"

ROSTER_HEADERS = [
    "項次", "報名序號", "兒童姓名", "性別", "年級", "學校",
    "手足稱謂", "手足名稱", "手足性別", "手足年級", "家長姓名", PHONE_HEADER, "備註",
]
# Columns shared by all sibling rows of one child
ROSTER_MERGED_COLUMNS = (0, 1, 2, 3, 4, 5, 10, 11)

TEAM_HEADERS = [
    "項次", "小隊", "報名序號", "兒童姓名", "性別", "年級", "學校", "家長姓名", PHONE_HEADER, "備註",
]
TEAM_HEADER_FILLS = {1: "D1F1DA", 2: "D0E2F3"}
TEAM_DEFAULT_FILL = "FDE49A"
TEAM_UNFILLED_COLUMNS = (9,)

STATS_HEADERS = ["區", "年級", "人數", "隊數", "每隊人數", "尚未繳費"]

MAX_TITLE_LENGTH = 31
_INVALID_TITLE_CHARS = re.compile(r"[\[\]:*?/\\]")


class Formula(str):
    """A cell value to be written as a formula rather than text."""


@dataclass(frozen=True)
class MergeRegion:
    """Vertical span of one column; rows count the header as row 0."""

    first_row: int
    last_row: int
    column: int


@dataclass
class SheetGrid:
    title: str
    headers: list[str]
    rows: list[list[Any]] = field(default_factory=list)
    merges: list[MergeRegion] = field(default_factory=list)
    header_fills: dict[int, str] = field(default_factory=dict)
    center_columns: tuple[str, ...] = ()
    bordered: bool = False


def sheet_title(name: str) -> str:
    """Make ``name`` usable as a worksheet title."""
    cleaned = _INVALID_TITLE_CHARS.sub("", name).strip("'").strip()
    return (cleaned or "Sheet")[:MAX_TITLE_LENGTH]


def unique_sheet_titles(buckets, reserved: tuple[str, ...] = ()) -> dict[str, str]:
    """
    Map each bucket to a worksheet title no other sheet uses.

    Excel compares titles case-insensitively, and distinct buckets can clean
    to the same title (``三/四年級`` and ``三四年級``). Later ones get a numeric
    suffix, kept within the title length limit.
    """
    taken = {t.casefold() for t in reserved}
    titles: dict[str, str] = {}
    for bucket in buckets:
        base = sheet_title(bucket)
        title = base
        n = 1
        while title.casefold() in taken:
            suffix = str(n)
            title = base[:MAX_TITLE_LENGTH - len(suffix)] + suffix
            n += 1
        taken.add(title.casefold())
        titles[bucket] = title
    return titles


# ---------------------------------------------------------------------------
# Sibling roster
# ---------------------------------------------------------------------------

def _roster_rows(record: ProcessedRecord, item_number: int) -> list[list[Any]]:
    head = [item_number, record.registration_number, record.child_name,
            record.gender, record.grade, record.school]
    tail = [record.guardian_name, record.guardian_phone, record.note]
    sib = record.siblings
    if not len(sib):
        return [head + ["", "", "", ""] + tail]
    return [
        head + [sib.titles[i], sib.names[i], sib.genders[i], sib.grades[i]] + tail
        for i in range(len(sib))
    ]


def build_roster_sheet(title: str, records: list[tuple[int, ProcessedRecord]]) -> SheetGrid:
    """
    Lay out (item number, record) pairs one row per sibling.

    A child with several siblings gets the shared columns merged over its rows.
    """
    grid = SheetGrid(
        title=sheet_title(title),
        headers=list(ROSTER_HEADERS),
        center_columns=("項次", "報名序號", "兒童姓名", "性別", "年級"),
    )
    for item_number, record in records:
        first = len(grid.rows) + 1
        grid.rows.extend(_roster_rows(record, item_number))
        last = len(grid.rows)
        if last > first:
            grid.merges.extend(MergeRegion(first, last, col) for col in ROSTER_MERGED_COLUMNS)
    return grid


def roster_workbook(result: RosterResult, sort_by: str = SORT_BY_REGISTRATION) -> list[SheetGrid]:
    """Summary sheet followed by one sheet per grade bucket."""
    ordered = sort_for_summary(result.students, sort_by)
    summary = build_roster_sheet(
        SUMMARY_TITLE,
        [(summary_item_number(r, pos, sort_by), r) for pos, r in enumerate(ordered, start=1)],
    )
    grids = [summary]
    titles = unique_sheet_titles(result.groups, reserved=(SUMMARY_TITLE,))
    for bucket, records in result.groups.items():
        grids.append(build_roster_sheet(titles[bucket], [(r.index, r) for r in records]))
    return grids


# ---------------------------------------------------------------------------
# Team divider
# ---------------------------------------------------------------------------

def _team_fills() -> dict[int, str]:
    fills = {}
    for col in range(len(TEAM_HEADERS)):
        if col in TEAM_UNFILLED_COLUMNS:
            continue
        fills[col] = TEAM_HEADER_FILLS.get(col, TEAM_DEFAULT_FILL)
    return fills


def _team_row(item_number: int, record: ProcessedRecord, team: Any = "") -> list[Any]:
    return [
        item_number, team, record.registration_number, record.child_name, record.gender,
        record.grade, record.school, record.guardian_name, record.guardian_phone, record.note,
    ]


def _quote_title(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def team_lookup_formula(title: str, excel_row: int) -> Formula:
    """Look up the child's team on the grade sheet ``title`` by matching the name column."""
    ref = _quote_title(title)
    return Formula(f'=IFERROR(INDEX({ref}!$B:$B,MATCH(D{excel_row},{ref}!$D:$D,0)),"")')


def _team_sheet_titles(result: RosterResult) -> dict[str, str]:
    return unique_sheet_titles(result.groups, reserved=(SUMMARY_TITLE, STATS_TITLE))


def build_team_summary(
    result: RosterResult,
    sort_by: str = SORT_BY_REGISTRATION,
    titles: dict[str, str] | None = None,
) -> SheetGrid:
    if titles is None:
        titles = _team_sheet_titles(result)
    grid = SheetGrid(
        title=SUMMARY_TITLE,
        headers=list(TEAM_HEADERS),
        header_fills=_team_fills(),
        center_columns=("項次", "報名序號"),
    )
    ordered = sort_for_summary(result.students, sort_by)
    for pos, record in enumerate(ordered, start=1):
        excel_row = pos + 1
        grid.rows.append(
            _team_row(summary_item_number(record, pos, sort_by), record,
                      team_lookup_formula(titles[record.bucket], excel_row))
        )
    return grid


def build_stats_sheet(result: RosterResult) -> SheetGrid:
    """
    Head count per bucket with area, unpaid count and a SUM total row.

    Consecutive buckets in the same area share one merged area cell.
    """
    grid = SheetGrid(title=STATS_TITLE, headers=list(STATS_HEADERS))
    for bucket, records in result.groups.items():
        unpaid = sum(1 for r in records if UNPAID_MARKER in r.registration_number)
        grid.rows.append([area_for_bucket(bucket), bucket, len(records), "", "", unpaid])

    count = len(grid.rows)
    start = 0
    for i in range(1, count + 1):
        if i == count or grid.rows[i][0] != grid.rows[start][0]:
            if i - start > 1:
                grid.merges.append(MergeRegion(start + 1, i, 0))
            start = i

    last = count + 1
    grid.rows.append([
        "總計", "",
        Formula(f"=SUM(C2:C{last})"),
        Formula(f"=SUM(D2:D{last})"),
        "",
        Formula(f"=SUM(F2:F{last})"),
    ])
    return grid


def build_team_grade_sheet(title: str, records: list[ProcessedRecord]) -> SheetGrid:
    grid = SheetGrid(
        title=title,
        headers=list(TEAM_HEADERS),
        header_fills=_team_fills(),
        center_columns=("項次", "報名序號"),
    )
    grid.rows.extend(_team_row(r.index, r) for r in records)
    return grid


def team_workbook(result: RosterResult, sort_by: str = SORT_BY_REGISTRATION) -> list[SheetGrid]:
    """Summary, statistics, then one sheet per team bucket."""
    titles = _team_sheet_titles(result)
    grids = [build_team_summary(result, sort_by, titles), build_stats_sheet(result)]
    grids.extend(build_team_grade_sheet(titles[bucket], records) for bucket, records in result.groups.items())
    return grids
