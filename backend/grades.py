"""
Grade labels: ordinal mapping, kinship titles and team-divider buckets.

Grade labels are free text typed by parents ("三年級", "3", "大班", "國一" ...).
They are mapped onto a signed ordinal only for comparison; the raw label is
what ends up on the sheets.
"""

from __future__ import annotations

NOT_ENROLLED = -3
MIDDLE_CLASS = -2
SENIOR_CLASS = -1

# Most specific tokens first: "國一" must not be read as the bare "一".
GRADE_TOKENS: tuple[tuple[str, int], ...] = (
    ("國中一", 7), ("國中二", 8), ("國中三", 9),
    ("國一", 7), ("國二", 8), ("國三", 9),
    ("七", 7), ("八", 8), ("九", 9),
    ("一", 1), ("二", 2), ("三", 3), ("四", 4), ("五", 5), ("六", 6),
    ("1", 1), ("2", 2), ("3", 3), ("4", 4), ("5", 5), ("6", 6),
    ("7", 7), ("8", 8), ("9", 9),
)

SAME_AGE = "同年齡"
OLDER_BROTHER = "哥哥"
OLDER_SISTER = "姊姊"
YOUNGER_BROTHER = "弟弟"
YOUNGER_SISTER = "妹妹"
MALE = "男"

PRESCHOOL = "學齡前"
UNCLASSIFIED = "未分類"
PRESCHOOL_MARKERS: tuple[str, ...] = ("大班", "中班", "小班", "未就學")

TEAM_GRADE_ORDER: tuple[str, ...] = (
    PRESCHOOL, "一年級", "二年級", "三年級", "四年級", "五年級", "六年級", "國一", "國二", "國三",
)

_NUMERAL_GRADES = {
    "一": "一年級", "二": "二年級", "三": "三年級", "四": "四年級", "五": "五年級", "六": "六年級",
    "1": "一年級", "2": "二年級", "3": "三年級", "4": "四年級", "5": "五年級", "6": "六年級",
}


def grade_to_ordinal(label: str | None) -> int:
    """
    Map a grade label onto the ordinal scale.

    -3 not yet enrolled / 小班, -2 中班, -1 大班, 1..6 primary grades,
    7..9 junior-secondary grades. Unrecognised labels fall back to -3.
    """
    text = str(label).strip() if label is not None else ""
    if not text or "未就學" in text or "小班" in text:
        return NOT_ENROLLED
    if "中班" in text:
        return MIDDLE_CLASS
    if "大班" in text:
        return SENIOR_CLASS
    for token, ordinal in GRADE_TOKENS:
        if token in text:
            return ordinal
    return NOT_ENROLLED


def kinship_title(child_grade: str, sibling_grade: str, sibling_gender: str) -> str:
    """
    Title of a sibling as seen from the child.

    Any gender other than 男, blank included, takes the sister branch.
    """
    child = grade_to_ordinal(child_grade)
    sibling = grade_to_ordinal(sibling_grade)
    if child == sibling:
        return SAME_AGE
    is_male = str(sibling_gender).strip() == MALE
    if sibling > child:
        return OLDER_BROTHER if is_male else OLDER_SISTER
    return YOUNGER_BROTHER if is_male else YOUNGER_SISTER


def roster_bucket(label: str) -> str:
    """Bucket used by the sibling roster: the trimmed label itself."""
    return label.strip() or UNCLASSIFIED


def is_preschool(label: str) -> bool:
    return any(marker in label for marker in PRESCHOOL_MARKERS)


def team_bucket(label: str) -> str:
    """
    Bucket used by the team divider.

    Pre-primary labels collapse into 學齡前, single numerals become "N年級" and
    other labels without 年級 or 國 get 年級 appended.
    """
    grade = label.strip()
    if not grade:
        return UNCLASSIFIED
    if is_preschool(grade):
        return PRESCHOOL
    if grade in _NUMERAL_GRADES:
        return _NUMERAL_GRADES[grade]
    if "年級" not in grade and "國" not in grade:
        return f"{grade}年級"
    return grade


def order_buckets(buckets: list[str]) -> list[str]:
    """Known team buckets in school order, then the rest as first seen."""
    known = [b for b in TEAM_GRADE_ORDER if b in buckets]
    return known + [b for b in buckets if b not in TEAM_GRADE_ORDER]


def area_for_bucket(bucket: str) -> str:
    """Camp area a team bucket belongs to on the statistics sheet."""
    if bucket == PRESCHOOL:
        return "夢夢基地"
    if bucket in ("一年級", "二年級", "三年級"):
        return "大衛區"
    if bucket in ("四年級", "五年級", "六年級"):
        return "約書亞區"
    return ""
