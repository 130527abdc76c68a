"""
Sibling resolution.

Siblings come either from an explicit description typed into the sheet
("小明(男,三年級)、小華(女,五年級)") or, when that is missing, from other
children registered under the same guardian name.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from grades import kinship_title
from reader import NONE_MARKER, ChildRecord

log = logging.getLogger(__name__)

# name(gender, grade) with ASCII or full-width brackets and commas
SIBLING_PATTERN = re.compile(r"([^、，,]+?)[（(]([^,，]+?)[,，]\s*([^）)]+?)[）)]")


@dataclass(frozen=True)
class SiblingEntry:
    name: str
    gender: str = ""
    grade: str = ""


@dataclass
class SiblingSet:
    """Parallel name/gender/grade/title lists for one child's siblings."""

    names: list[str] = field(default_factory=list)
    genders: list[str] = field(default_factory=list)
    grades: list[str] = field(default_factory=list)
    titles: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.names)

    @staticmethod
    def _display(values: list[str]) -> str:
        return ", ".join(values) or NONE_MARKER

    @property
    def names_text(self) -> str:
        return self._display(self.names)

    @property
    def genders_text(self) -> str:
        return self._display(self.genders)

    @property
    def grades_text(self) -> str:
        return self._display(self.grades)

    @property
    def titles_text(self) -> str:
        return self._display(self.titles)


GuardianIndex = dict[str, list[SiblingEntry]]


def build_guardian_index(children: list[ChildRecord]) -> GuardianIndex:
    """Group children by trimmed guardian name; blank guardians are left out."""
    index: GuardianIndex = {}
    for child in children:
        guardian = child.guardian_name.strip()
        if not guardian:
            continue
        index.setdefault(guardian, []).append(
            SiblingEntry(name=child.child_name, gender=child.gender, grade=child.grade)
        )
    return index


def parse_sibling_text(text: str) -> list[SiblingEntry]:
    """
    Parse an explicit sibling description.

    Entries that do not look like ``name(gender,grade)`` are skipped.
    """
    if not text or text.strip() in ("", NONE_MARKER):
        return []
    return [
        SiblingEntry(name=name.strip(), gender=gender.strip(), grade=grade.strip())
        for name, gender, grade in SIBLING_PATTERN.findall(str(text))
    ]


def _guardian_siblings(child: ChildRecord, index: GuardianIndex) -> list[SiblingEntry]:
    guardian = child.guardian_name.strip()
    if not guardian:
        return []
    return [entry for entry in index.get(guardian, []) if entry.name != child.child_name]


def resolve_siblings(
    child: ChildRecord,
    index: GuardianIndex,
    logger: logging.Logger | None = None,
) -> SiblingSet:
    """
    Work out the siblings of ``child`` and their kinship titles.

    An explicit sibling field wins over the guardian index. Children sharing
    a guardian are matched by name only, so same-named twins drop each other.
    """
    logger = logger or log
    explicit = child.sibling_field.strip()
    if explicit and explicit != NONE_MARKER:
        entries = parse_sibling_text(explicit)
        if not entries:
            logger.debug(f"Unparseable sibling field for {child.child_name!r}: {explicit!r}")
    else:
        entries = _guardian_siblings(child, index)

    return SiblingSet(
        names=[e.name for e in entries],
        genders=[e.gender for e in entries],
        grades=[e.grade for e in entries],
        titles=[kinship_title(child.grade, e.grade, e.gender) for e in entries],
    )
