"""
Unit tests for sibling resolution: guardian index, explicit sibling text
parsing and kinship titles attached to each resolved sibling.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from grades import grade_to_ordinal
from reader import ChildRecord
from siblings import SiblingEntry, SiblingSet, build_guardian_index, parse_sibling_text, resolve_siblings


def child(position, name, gender="", grade="", guardian="", sibling_field=""):
    return ChildRecord(
        position=position,
        child_name=name,
        gender=gender,
        grade=grade,
        guardian_name=guardian,
        sibling_field=sibling_field,
    )


WANG_FAMILY = [
    child(1, "王小一", "男", "一", "王小姐"),
    child(2, "王小三", "女", "三", "王小姐"),
    child(3, "王小五", "女", "五", "王小姐"),
]


# ═══════════════════════════════════════════════════════════════════
# parse_sibling_text
# ═══════════════════════════════════════════════════════════════════


class TestParseSiblingText:
    def test_ascii_brackets(self):
        entries = parse_sibling_text("小明(男,三年級)、小華(女,五年級)")
        assert [e.name for e in entries] == ["小明", "小華"]
        assert [e.gender for e in entries] == ["男", "女"]
        assert [e.grade for e in entries] == ["三年級", "五年級"]

    def test_full_width_brackets_and_commas(self):
        entries = parse_sibling_text("小明（男，三年級），小華（女， 大班）")
        assert entries == [
            SiblingEntry("小明", "男", "三年級"),
            SiblingEntry("小華", "女", "大班"),
        ]

    def test_malformed_entries_skipped(self):
        entries = parse_sibling_text("小明(男,三年級)、阿寶、小華(女)")
        assert entries == [SiblingEntry("小明", "男", "三年級")]

    def test_none_marker_and_blank(self):
        assert parse_sibling_text("無") == []
        assert parse_sibling_text("   ") == []
        assert parse_sibling_text("") == []


# ═══════════════════════════════════════════════════════════════════
# build_guardian_index
# ═══════════════════════════════════════════════════════════════════


class TestGuardianIndex:
    def test_groups_by_trimmed_guardian(self):
        children = [
            child(1, "A", guardian="王小姐 "),
            child(2, "B", guardian="陳先生"),
            child(3, "C", guardian=" 王小姐"),
        ]
        index = build_guardian_index(children)
        assert list(index) == ["王小姐", "陳先生"]
        assert [e.name for e in index["王小姐"]] == ["A", "C"]

    def test_blank_guardians_never_indexed(self):
        children = [child(1, "A", guardian=""), child(2, "B", guardian="   "), child(3, "C", guardian="\t")]
        index = build_guardian_index(children)
        assert index == {}
        assert all(key.strip() for key in index)


# ═══════════════════════════════════════════════════════════════════
# resolve_siblings
# ═══════════════════════════════════════════════════════════════════


class TestResolveSiblings:
    def test_guardian_scenario(self):
        index = build_guardian_index(WANG_FAMILY)
        sibs = resolve_siblings(WANG_FAMILY[1], index)
        assert sibs.names == ["王小一", "王小五"]
        assert [grade_to_ordinal(g) for g in sibs.grades] == [1, 5]
        assert sibs.titles == ["弟弟", "姊姊"]

    def test_never_includes_self(self):
        index = build_guardian_index(WANG_FAMILY)
        for c in WANG_FAMILY:
            assert c.child_name not in resolve_siblings(c, index).names

    def test_parallel_lists_have_equal_length(self):
        index = build_guardian_index(WANG_FAMILY)
        sibs = resolve_siblings(WANG_FAMILY[0], index)
        assert len(sibs.names) == len(sibs.genders) == len(sibs.grades) == len(sibs.titles) == 2

    def test_explicit_field_wins(self):
        me = child(4, "王小四", "男", "四", "王小姐", sibling_field="阿姊(女,國一)")
        index = build_guardian_index(WANG_FAMILY + [me])
        sibs = resolve_siblings(me, index)
        assert sibs.names == ["阿姊"]
        assert sibs.titles == ["姊姊"]

    def test_none_marker_falls_back_to_guardian(self):
        me = child(4, "王小四", "男", "四", "王小姐", sibling_field="無")
        index = build_guardian_index(WANG_FAMILY + [me])
        assert resolve_siblings(me, index).names == ["王小一", "王小三", "王小五"]

    def test_unparseable_explicit_field_yields_nothing(self):
        me = child(4, "王小四", "男", "四", "王小姐", sibling_field="有一個姊姊")
        index = build_guardian_index(WANG_FAMILY + [me])
        assert len(resolve_siblings(me, index)) == 0

    def test_blank_guardian(self):
        me = child(1, "獨子", grade="二")
        assert len(resolve_siblings(me, build_guardian_index([me]))) == 0

    def test_only_child(self):
        me = child(1, "獨子", grade="二", guardian="李太太")
        assert len(resolve_siblings(me, build_guardian_index([me]))) == 0

    def test_same_named_children_drop_each_other(self):
        twins = [child(1, "小安", "男", "二", "林媽媽"), child(2, "小安", "女", "二", "林媽媽")]
        index = build_guardian_index(twins)
        assert resolve_siblings(twins[0], index).names == []


class TestSiblingSetDisplay:
    def test_empty_uses_none_marker(self):
        sibs = SiblingSet()
        assert sibs.names_text == "無"
        assert sibs.titles_text == "無"

    def test_joined(self):
        sibs = SiblingSet(names=["A", "B"], genders=["男", "女"], grades=["一", "五"], titles=["弟弟", "姊姊"])
        assert sibs.names_text == "A, B"
        assert sibs.genders_text == "男, 女"
        assert sibs.grades_text == "一, 五"
        assert sibs.titles_text == "弟弟, 姊姊"
