"""Layered, gitignore-compatible ignore rules.

Patterns from the version-control ignore files, the tool-specific ignore file
and the command line are compiled once per run into an immutable
`IgnoreRuleSet`. Each pattern becomes a tuple of tagged segments and matching
is a pure function over those segments and the path components.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import StrEnum, auto
from functools import cache
from typing import TYPE_CHECKING

from repcon.config import IgnoreOrigin
from repcon.exceptions import InvalidPatternError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

_GLOB_CHARS = frozenset("*?[{")


class SegmentKind(StrEnum):
    """Kinds of compiled pattern segments."""

    ANCHOR = auto()
    LITERAL = auto()
    WILDCARD = auto()
    DOUBLE_WILDCARD = auto()


@dataclass(frozen=True, slots=True)
class Segment:
    """One compiled piece of a pattern.

    `ANCHOR` pins the pattern to the repository root and consumes nothing,
    `LITERAL` and `WILDCARD` consume exactly one path component, and
    `DOUBLE_WILDCARD` consumes any number of components (at least one when it
    ends the pattern).
    """

    kind: SegmentKind
    text: str = ""
    regex: re.Pattern[str] | None = None

    def matches_component(self, component: str) -> bool:
        if self.kind is SegmentKind.LITERAL:
            return component == self.text
        if self.kind is SegmentKind.WILDCARD and self.regex is not None:
            return self.regex.fullmatch(component) is not None
        return False


@dataclass(frozen=True, slots=True)
class IgnoreRule:
    """A compiled ignore pattern and where it came from."""

    pattern: str
    origin: IgnoreOrigin
    negated: bool
    directory_only: bool
    segments: tuple[Segment, ...] = field(default_factory=tuple)

    @property
    def anchored(self) -> bool:
        return bool(self.segments) and self.segments[0].kind is SegmentKind.ANCHOR

    def matches(self, parts: Sequence[str], *, is_dir: bool) -> bool:
        """Check whether this rule's pattern matches the given path components."""
        if self.directory_only and not is_dir:
            return False
        return match_segments(self.segments, tuple(parts))


def match_segments(segments: tuple[Segment, ...], parts: tuple[str, ...]) -> bool:
    """Match compiled segments against path components.

    Args:
        segments (tuple[Segment, ...]): compiled pattern segments
        parts (tuple[str, ...]): path components, root first

    Returns:
        bool: True if the whole path is matched by the whole pattern
    """

    @cache
    def step(i: int, j: int) -> bool:
        if i == len(segments):
            return j == len(parts)
        seg = segments[i]
        if seg.kind is SegmentKind.ANCHOR:
            return step(i + 1, j)
        if seg.kind is SegmentKind.DOUBLE_WILDCARD:
            start = j + 1 if i == len(segments) - 1 else j
            return any(step(i + 1, k) for k in range(start, len(parts) + 1))
        if j == len(parts):
            return False
        return seg.matches_component(parts[j]) and step(i + 1, j + 1)

    return step(0, 0)


def _strip_trailing_spaces(text: str) -> str:
    stripped = text.rstrip(" ")
    if stripped != text and stripped.endswith("\\"):
        # "\ " keeps one escaped trailing space
        return stripped + " "
    return stripped


def _split_unescaped(body: str, sep: str) -> list[str]:
    parts: list[str] = []
    buf: list[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            buf.append(body[i : i + 2])
            i += 2
            continue
        if ch == sep:
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
        i += 1
    parts.append("".join(buf))
    return parts


def _has_glob(segment: str) -> bool:
    i = 0
    while i < len(segment):
        if segment[i] == "\\":
            i += 2
            continue
        if segment[i] in _GLOB_CHARS:
            return True
        i += 1
    return False


def _unescape(segment: str) -> str:
    return re.sub(r"\\(.)", r"\1", segment)


def _translate_class(segment: str, start: int) -> tuple[str, int]:
    """Translate a `[...]` class starting at `start`; return (regex, next index)."""
    i = start + 1
    negate = False
    if i < len(segment) and segment[i] in "!^":
        negate = True
        i += 1
    items: list[str] = []
    first = True
    while True:
        if i >= len(segment):
            msg = "unclosed character class"
            raise ValueError(msg)
        ch = segment[i]
        if ch == "]" and not first:
            break
        first = False
        if ch == "\\":
            if i + 1 >= len(segment):
                msg = "dangling escape"
                raise ValueError(msg)
            ch = segment[i + 1]
            i += 1
        if i + 2 < len(segment) and segment[i + 1] == "-" and segment[i + 2] != "]":
            hi = segment[i + 2]
            if hi == "\\":
                if i + 3 >= len(segment):
                    msg = "dangling escape"
                    raise ValueError(msg)
                hi = segment[i + 3]
                i += 1
            if hi < ch:
                msg = f"invalid range {ch}-{hi}"
                raise ValueError(msg)
            items.append(f"{re.escape(ch)}-{re.escape(hi)}")
            i += 3
            continue
        items.append(re.escape(ch))
        i += 1
    body = "".join(items)
    return (f"[^{body}]" if negate else f"[{body}]"), i + 1


def _translate_segment(segment: str) -> str:
    """Translate one glob segment into a regular expression body.

    Raises:
        ValueError: if the segment is malformed.
    """
    out: list[str] = []
    in_group = False
    i = 0
    while i < len(segment):
        ch = segment[i]
        if ch == "\\":
            if i + 1 >= len(segment):
                msg = "dangling escape"
                raise ValueError(msg)
            out.append(re.escape(segment[i + 1]))
            i += 2
            continue
        if ch == "*":
            while i + 1 < len(segment) and segment[i + 1] == "*":
                i += 1
            out.append(".*")
        elif ch == "?":
            out.append(".")
        elif ch == "[":
            cls, i = _translate_class(segment, i)
            out.append(cls)
            continue
        elif ch == "{":
            if in_group:
                msg = "nested alternates"
                raise ValueError(msg)
            in_group = True
            out.append("(?:")
        elif ch == "}" and in_group:
            in_group = False
            out.append(")")
        elif ch == "," and in_group:
            out.append("|")
        else:
            out.append(re.escape(ch))
        i += 1
    if in_group:
        msg = "unclosed alternates"
        raise ValueError(msg)
    return "".join(out)


def compile_pattern(pattern: str, origin: IgnoreOrigin, *, base: Sequence[str] = ()) -> IgnoreRule:
    """Compile one gitignore-style pattern.

    A pattern read from an ignore file below the root only applies inside
    that file's directory: `base` holds the components of that directory and
    the pattern is matched relative to it.

    Args:
        pattern (str): the raw pattern, possibly prefixed with `!`
        origin (IgnoreOrigin): where the pattern came from, for error reporting
        base (Sequence[str]): directory the pattern is relative to, root if empty

    Raises:
        InvalidPatternError: if the pattern is empty or malformed.

    Returns:
        IgnoreRule: the compiled rule
    """

    def fail(reason: str) -> InvalidPatternError:
        return InvalidPatternError(pattern=pattern, origin=str(origin), reason=reason)

    body = _strip_trailing_spaces(pattern)
    negated = body.startswith("!")
    if negated:
        body = body[1:]
    directory_only = body.endswith("/") and not body.endswith("\\/")
    if directory_only:
        body = body[:-1]
    anchored = body.startswith("/")
    if anchored:
        body = body[1:]
    if not body:
        raise fail("empty pattern")

    raw_segments = _split_unescaped(body, "/")
    if len(raw_segments) > 1:
        anchored = True
    if any(not s for s in raw_segments):
        raise fail("empty path segment")

    segments: list[Segment] = [
        Segment(SegmentKind.ANCHOR) if anchored or base else Segment(SegmentKind.DOUBLE_WILDCARD),
    ]
    segments.extend(Segment(SegmentKind.LITERAL, text=part) for part in base)
    if base and not anchored:
        segments.append(Segment(SegmentKind.DOUBLE_WILDCARD))
    for raw in raw_segments:
        if raw == "**":
            segments.append(Segment(SegmentKind.DOUBLE_WILDCARD))
        elif _has_glob(raw):
            try:
                regex = re.compile(_translate_segment(raw), re.DOTALL)
            except (ValueError, re.error) as e:
                raise fail(str(e)) from e
            segments.append(Segment(SegmentKind.WILDCARD, text=raw, regex=regex))
        else:
            if (len(raw) - len(raw.rstrip("\\"))) % 2:
                raise fail("dangling escape")
            segments.append(Segment(SegmentKind.LITERAL, text=_unescape(raw)))

    return IgnoreRule(
        pattern=pattern,
        origin=origin,
        negated=negated,
        directory_only=directory_only,
        segments=tuple(segments),
    )


def parse_ignore_lines(text: str) -> list[str]:
    """Extract patterns from the text of an ignore file.

    Blank lines and lines starting with `#` are skipped; `\\#` escapes a
    leading hash.

    Args:
        text (str): the ignore file content

    Returns:
        list[str]: the patterns, in file order
    """
    out: list[str] = []
    for line in text.splitlines():
        if not line.strip() or line.startswith("#"):
            continue
        out.append(line)
    return out


def _split_path(path: str) -> tuple[str, ...]:
    if os.sep == "\\":
        path = path.replace("\\", "/")
    return tuple(p for p in path.strip("/").split("/") if p and p != ".")


@dataclass(frozen=True)
class IgnoreRuleSet:
    """Ordered, immutable collection of compiled ignore rules.

    The last rule that matches a path decides: a plain rule excludes it and a
    negated rule re-includes it. Exclusion of a directory is absolute for
    everything below it.
    """

    rules: tuple[IgnoreRule, ...] = ()

    @classmethod
    def build(cls, sources: Iterable[tuple[str, IgnoreOrigin]]) -> IgnoreRuleSet:
        """Compile patterns into a rule set.

        Rules are ordered by origin priority (version control, tool file,
        command line) and keep their relative order within an origin.

        Args:
            sources (Iterable[tuple[str, IgnoreOrigin]]): (pattern, origin) pairs in read order

        Raises:
            InvalidPatternError: if any pattern is malformed.

        Returns:
            IgnoreRuleSet: the compiled rule set
        """
        return cls().extend(sources)

    def extend(self, sources: Iterable[tuple[str, IgnoreOrigin]], *, base: Sequence[str] = ()) -> IgnoreRuleSet:
        """Return a new rule set holding these rules followed by `sources`.

        New rules land after the existing rules of the same origin and before
        rules of later origins, so a nested version-control ignore file
        overrides its parents but never the tool file or the command line.

        Raises:
            InvalidPatternError: if any pattern is malformed.
        """
        compiled = [
            *self.rules,
            *(compile_pattern(pattern, IgnoreOrigin(origin), base=base) for pattern, origin in sources),
        ]
        compiled.sort(key=lambda rule: rule.origin.priority)
        return IgnoreRuleSet(rules=tuple(compiled))

    def __len__(self) -> int:
        return len(self.rules)

    def _decide(self, parts: tuple[str, ...], *, is_dir: bool) -> bool:
        ignored = False
        for rule in self.rules:
            if rule.matches(parts, is_dir=is_dir):
                ignored = not rule.negated
        return ignored

    def matches_entry(self, path: str, *, is_dir: bool) -> bool:
        """Decide a single entry, assuming its ancestors are not excluded."""
        parts = _split_path(path)
        if not parts:
            return False
        return self._decide(parts, is_dir=is_dir)

    def matches(self, path: str, *, is_dir: bool = False) -> bool:
        """Check whether a repository-relative path is excluded.

        Args:
            path (str): path relative to the repository root, POSIX separators
            is_dir (bool): whether the path is a directory

        Returns:
            bool: True if the path or one of its ancestor directories is excluded
        """
        parts = _split_path(path)
        if not parts:
            return False
        for depth in range(1, len(parts)):
            if self._decide(parts[:depth], is_dir=True):
                return True
        return self._decide(parts, is_dir=is_dir)
