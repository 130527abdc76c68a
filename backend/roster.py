"""
Record assembly.

Filters a batch of ChildRecords, normalises phone and registration numbers,
attaches sibling information and groups the result into grade buckets with a
group-local item number.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Callable

from grades import PRESCHOOL, grade_to_ordinal, order_buckets, roster_bucket, team_bucket
from reader import NONE_MARKER, ChildRecord
from siblings import SiblingSet, build_guardian_index, resolve_siblings

log = logging.getLogger(__name__)

CANCELLED_MARKER = "取消"
FEE_EXEMPT_MARKER = "不收費"
UNPAID_MARKER = "尚未繳費"

SORT_BY_REGISTRATION = "registrationNumber"
SORT_BY_ORIGINAL_INDEX = "originalIndex"

_MISSING_ZERO_PHONE = re.compile(r"^9\d{8}$")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class ProcessedRecord:
    """One child's assembled row.

    ``original_index`` is the 1-based position in the upload before any
    filtering; ``index`` is the item number inside the child's bucket.
    """

    original_index: int
    index: int
    bucket: str
    registration_number: str
    child_name: str
    gender: str
    grade: str
    school: str
    guardian_name: str
    guardian_phone: str
    note: str
    siblings: SiblingSet = field(default_factory=SiblingSet)


@dataclass
class RosterResult:
    """Assembled records, by bucket and in upload order."""

    groups: dict[str, list[ProcessedRecord]] = field(default_factory=dict)
    students: list[ProcessedRecord] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Field normalisation
# ---------------------------------------------------------------------------

def normalize_phone(phone: str) -> str:
    """Restore the leading 0 of a 9-digit mobile number starting with 9."""
    phone = phone.strip()
    if _MISSING_ZERO_PHONE.match(phone):
        return "0" + phone
    return phone


def normalize_registration_number(number: str) -> str:
    """Keep only digits of fee-exempt registration numbers; trim the rest."""
    number = number.strip()
    if FEE_EXEMPT_MARKER in number:
        return re.sub(r"\D", "", number)
    return number


def registration_sort_key(number: str) -> int:
    """Leading integer of a registration number, 0 when there is none."""
    match = _LEADING_INT.match(number)
    return int(match.group(1)) if match else 0


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def filter_children(
    children: list[ChildRecord],
    hide_cancelled: bool = False,
    hide_no_number: bool = False,
) -> list[ChildRecord]:
    """Drop cancelled registrations and/or rows without a registration number."""
    kept = children
    if hide_cancelled:
        kept = [c for c in kept if CANCELLED_MARKER not in c.registration_number]
    if hide_no_number:
        kept = [c for c in kept if c.registration_number.strip() not in ("", NONE_MARKER)]
    return kept


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def assemble(
    children: list[ChildRecord],
    bucket_for: Callable[[str], str] = roster_bucket,
    with_siblings: bool = True,
    blank_number: str = "",
    logger: logging.Logger | None = None,
) -> RosterResult:
    """
    Build one ProcessedRecord per child, in input order.

    Args:
        children: Already filtered ChildRecords.
        bucket_for: Maps a raw grade label to its bucket name.
        with_siblings: Resolve siblings through the guardian index.
        blank_number: Placeholder for an empty registration number.
        logger: Optional logger; defaults to this module's.

    Returns:
        RosterResult with buckets in first-seen order.
    """
    logger = logger or log
    index = build_guardian_index(children) if with_siblings else {}
    logger.debug(f"Guardian index holds {len(index)} guardian(s)")

    result = RosterResult()
    for child in children:
        bucket = bucket_for(child.grade)
        group = result.groups.setdefault(bucket, [])
        siblings = resolve_siblings(child, index, logger) if with_siblings else SiblingSet()

        record = ProcessedRecord(
            original_index=child.position,
            index=len(group) + 1,
            bucket=bucket,
            registration_number=normalize_registration_number(child.registration_number) or blank_number,
            child_name=child.child_name,
            gender=child.gender,
            grade=child.grade,
            school=child.school,
            guardian_name=child.guardian_name,
            guardian_phone=normalize_phone(child.guardian_phone),
            note=child.note,
            siblings=siblings,
        )
        group.append(record)
        result.students.append(record)

    logger.info(f"Assembled {len(result.students)} record(s) into {len(result.groups)} group(s)")
    for bucket, records in result.groups.items():
        logger.debug(f"  {bucket}: {len(records)}")
    return result


def _renumber(records: list[ProcessedRecord]) -> list[ProcessedRecord]:
    return [replace(r, index=i) for i, r in enumerate(records, start=1)]


def assemble_team_groups(
    children: list[ChildRecord],
    logger: logging.Logger | None = None,
) -> RosterResult:
    """
    Team-divider grouping layered on ``assemble``.

    Pre-primary grades share the 學齡前 bucket, sorted by grade ordinal then
    registration number; other buckets sort by registration number. Buckets
    follow school order and item numbers restart after sorting.
    """
    base = assemble(
        children,
        bucket_for=team_bucket,
        with_siblings=False,
        blank_number=UNPAID_MARKER,
        logger=logger,
    )

    groups: dict[str, list[ProcessedRecord]] = {}
    for bucket in order_buckets(list(base.groups)):
        records = base.groups[bucket]
        if bucket == PRESCHOOL:
            key = lambda r: (grade_to_ordinal(r.grade), registration_sort_key(r.registration_number))
        else:
            key = lambda r: registration_sort_key(r.registration_number)
        groups[bucket] = _renumber(sorted(records, key=key))

    students = [r for records in groups.values() for r in records]
    students.sort(key=lambda r: r.original_index)
    return RosterResult(groups=groups, students=students)


def sort_for_summary(records: list[ProcessedRecord], sort_by: str = SORT_BY_REGISTRATION) -> list[ProcessedRecord]:
    """Order records for the all-students sheet."""
    if sort_by == SORT_BY_ORIGINAL_INDEX:
        return sorted(records, key=lambda r: r.original_index)
    return sorted(records, key=lambda r: registration_sort_key(r.registration_number))


def summary_item_number(record: ProcessedRecord, position: int, sort_by: str) -> int:
    """Item number shown on the summary sheet."""
    return record.original_index if sort_by == SORT_BY_ORIGINAL_INDEX else position
