from __future__ import annotations

import pytest

from repcon.config import IgnoreOrigin
from repcon.exceptions import InvalidPatternError
from repcon.ignore_rules import IgnoreRuleSet, SegmentKind, compile_pattern, parse_ignore_lines


def _rules(*patterns: str, origin: IgnoreOrigin = IgnoreOrigin.CLI) -> IgnoreRuleSet:
    return IgnoreRuleSet.build([(p, origin) for p in patterns])


@pytest.mark.unit
def test_negation_reincludes_a_file_excluded_earlier() -> None:
    rules = _rules("*.log", "!important.log")

    assert rules.matches("important.log") is False
    assert rules.matches("debug.log") is True


@pytest.mark.unit
def test_directory_exclusion_covers_everything_below() -> None:
    rules = _rules("build/")

    assert rules.matches("build/sub/keep.txt") is True
    assert rules.matches("build", is_dir=True) is True
    assert rules.matches("build", is_dir=False) is False
    assert rules.matches("src/build.txt") is False


@pytest.mark.unit
def test_negation_cannot_resurrect_file_inside_excluded_directory() -> None:
    rules = _rules("build/", "!build/sub/keep.txt")

    assert rules.matches("build/sub/keep.txt") is True


@pytest.mark.unit
def test_command_line_rules_override_ignore_files() -> None:
    cli_last = IgnoreRuleSet.build([("!keep.log", IgnoreOrigin.CLI), ("*.log", IgnoreOrigin.VCS)])
    vcs_first = IgnoreRuleSet.build([("*.log", IgnoreOrigin.CLI), ("!keep.log", IgnoreOrigin.VCS)])

    assert cli_last.matches("keep.log") is False
    assert vcs_first.matches("keep.log") is True
    assert [r.origin for r in cli_last.rules] == [IgnoreOrigin.VCS, IgnoreOrigin.CLI]


@pytest.mark.unit
def test_order_within_an_origin_is_preserved() -> None:
    rules = IgnoreRuleSet.build(
        [
            ("a", IgnoreOrigin.TOOL),
            ("b", IgnoreOrigin.VCS),
            ("c", IgnoreOrigin.TOOL),
            ("d", IgnoreOrigin.VCS),
        ],
    )

    assert [r.pattern for r in rules.rules] == ["b", "d", "a", "c"]


@pytest.mark.unit
def test_slash_anchors_pattern_to_root() -> None:
    rules = _rules("/todo.txt", "docs/*.md")

    assert rules.matches("todo.txt") is True
    assert rules.matches("notes/todo.txt") is False
    assert rules.matches("docs/a.md") is True
    assert rules.matches("docs/sub/a.md") is False
    assert rules.matches("other/docs/a.md") is False


@pytest.mark.unit
def test_pattern_without_slash_matches_at_any_depth() -> None:
    rules = _rules("*.pyc", "node_modules")

    assert rules.matches("a.pyc") is True
    assert rules.matches("pkg/sub/a.pyc") is True
    assert rules.matches("web/node_modules", is_dir=True) is True
    assert rules.matches("web/node_modules/dep/index.js") is True


@pytest.mark.unit
def test_double_wildcard_positions() -> None:
    leading = _rules("**/cache")
    trailing = _rules("logs/**")
    middle = _rules("a/**/z")

    assert leading.matches("cache") is True
    assert leading.matches("x/y/cache") is True
    assert trailing.matches("logs/today.txt") is True
    assert trailing.matches("logs/2024/today.txt") is True
    assert trailing.matches("logs", is_dir=True) is False
    assert middle.matches("a/z") is True
    assert middle.matches("a/b/c/z") is True
    assert middle.matches("b/a/z") is False


@pytest.mark.unit
def test_character_classes_alternation_and_question_mark() -> None:
    rules = _rules("file[0-9].txt", "*.{jpg,png}", "[!a]?.md")

    assert rules.matches("file7.txt") is True
    assert rules.matches("fileX.txt") is False
    assert rules.matches("img/logo.png") is True
    assert rules.matches("logo.gif") is False
    assert rules.matches("bc.md") is True
    assert rules.matches("ac.md") is False
    assert rules.matches("bcd.md") is False


@pytest.mark.unit
def test_escaped_hash_bang_and_trailing_spaces() -> None:
    rules = _rules("\\#notes", "\\!bang", "spaced.txt   ")

    assert rules.matches("#notes") is True
    assert rules.matches("!bang") is True
    assert rules.matches("spaced.txt") is True


@pytest.mark.unit
def test_compiled_segments_are_tagged() -> None:
    anchored = compile_pattern("src/*.py", IgnoreOrigin.CLI)
    floating = compile_pattern("!*.py", IgnoreOrigin.CLI)

    assert [s.kind for s in anchored.segments] == [SegmentKind.ANCHOR, SegmentKind.LITERAL, SegmentKind.WILDCARD]
    assert anchored.anchored is True
    assert [s.kind for s in floating.segments] == [SegmentKind.DOUBLE_WILDCARD, SegmentKind.WILDCARD]
    assert floating.negated is True


@pytest.mark.unit
@pytest.mark.parametrize(
    ("pattern", "reason"),
    [
        ("", "empty pattern"),
        ("!", "empty pattern"),
        ("a//b", "empty path segment"),
        ("[abc", "unclosed character class"),
        ("[z-a].txt", "invalid range"),
        ("{a,b", "unclosed alternates"),
        ("{a,{b}}", "nested alternates"),
        ("foo\\", "dangling escape"),
    ],
)
def test_malformed_patterns_are_configuration_errors(pattern: str, reason: str) -> None:
    with pytest.raises(InvalidPatternError, match=reason) as exc_info:
        IgnoreRuleSet.build([("*.log", IgnoreOrigin.VCS), (pattern, IgnoreOrigin.TOOL)])

    assert exc_info.value.pattern == pattern
    assert exc_info.value.origin == "tool"


@pytest.mark.unit
def test_parse_ignore_lines_skips_comments_and_blanks() -> None:
    text = "# generated\n\n*.log\n   \nbuild/\n\\#literal\n"

    assert parse_ignore_lines(text) == ["*.log", "build/", "\\#literal"]


@pytest.mark.unit
def test_empty_rule_set_matches_nothing() -> None:
    rules = IgnoreRuleSet.build([])

    assert len(rules) == 0
    assert rules.matches("anything/at/all.txt") is False


@pytest.mark.unit
def test_pattern_with_base_is_pinned_to_its_directory() -> None:
    floating = compile_pattern("*.tmp", IgnoreOrigin.VCS, base=["pkg", "sub"])
    anchored = compile_pattern("/build/", IgnoreOrigin.VCS, base=["pkg"])

    assert [s.kind for s in floating.segments] == [
        SegmentKind.ANCHOR,
        SegmentKind.LITERAL,
        SegmentKind.LITERAL,
        SegmentKind.DOUBLE_WILDCARD,
        SegmentKind.WILDCARD,
    ]
    assert floating.matches(["pkg", "sub", "a.tmp"], is_dir=False) is True
    assert floating.matches(["pkg", "sub", "x", "a.tmp"], is_dir=False) is True
    assert floating.matches(["pkg", "a.tmp"], is_dir=False) is False
    assert anchored.matches(["pkg", "build"], is_dir=True) is True
    assert anchored.matches(["pkg", "lib", "build"], is_dir=True) is False


@pytest.mark.unit
def test_extend_returns_new_set_ordered_by_origin() -> None:
    rules = IgnoreRuleSet.build([("*.log", IgnoreOrigin.VCS), ("!debug.log", IgnoreOrigin.CLI)])

    nested = rules.extend([("!keep.log", IgnoreOrigin.VCS), ("debug.log", IgnoreOrigin.VCS)], base=["pkg"])

    assert len(rules) == 2
    assert [(r.pattern, r.origin) for r in nested.rules] == [
        ("*.log", IgnoreOrigin.VCS),
        ("!keep.log", IgnoreOrigin.VCS),
        ("debug.log", IgnoreOrigin.VCS),
        ("!debug.log", IgnoreOrigin.CLI),
    ]
    assert nested.matches("pkg/keep.log") is False
    assert nested.matches("keep.log") is True
    assert nested.matches("pkg/debug.log") is False
