import sys

import pytest

from repcon.manifest import build_tree_lines, render_manifest


@pytest.mark.unit
def test_build_tree_lines_nested_directory() -> None:
    lines = build_tree_lines("repo", ["src/util.txt", "src/main.txt"])

    assert lines == [
        "repo",
        "└── src/",
        "    ├── main.txt",
        "    └── util.txt",
    ]


@pytest.mark.unit
def test_build_tree_lines_interleaves_files_and_directories() -> None:
    lines = build_tree_lines("r", ["c.txt", "a/x/deep.txt", "b.txt", "a/y.txt"])

    assert lines == [
        "r",
        "├── a/",
        "│   ├── x/",
        "│   │   └── deep.txt",
        "│   └── y.txt",
        "├── b.txt",
        "└── c.txt",
    ]


@pytest.mark.unit
def test_build_tree_lines_ignores_blank_entries() -> None:
    assert build_tree_lines("r", ["", "  ", "/a.txt"]) == ["r", "└── a.txt"]


@pytest.mark.unit
def test_render_manifest_is_newline_terminated() -> None:
    assert render_manifest(["main.py"], "proj") == "proj\n└── main.py\n"


@pytest.mark.unit
@pytest.mark.skipif(sys.platform == "win32", reason="backslash is a path separator on Windows")
def test_build_tree_lines_keeps_backslash_in_posix_names() -> None:
    assert build_tree_lines("r", ["a\\b.txt", "a/c.txt"]) == [
        "r",
        "├── a/",
        "│   └── c.txt",
        "└── a\\b.txt",
    ]
