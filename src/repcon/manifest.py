from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

_FILES_KEY = "__files__"


def _build_tree(rel_paths: Iterable[str]) -> dict[str, Any]:
    tree: dict[str, Any] = {}
    if os.sep == "\\":
        rel_paths = [p.replace("\\", "/") for p in rel_paths]
    rels = {p.strip("/") for p in rel_paths if p.strip().strip("/")}
    for rp in rels:
        cur = tree
        parts = rp.split("/")
        for part in parts[:-1]:
            cur = cur.setdefault(part, {})
        cur.setdefault(_FILES_KEY, set()).add(parts[-1])
    return tree


def build_tree_lines(root_name: str, rel_paths: Iterable[str]) -> list[str]:
    """Build a visual tree representation of file paths.

    Directories and files of the same parent are interleaved in lexicographic
    order, the order in which the walker visits them. Directories end with `/`.

    Args:
        root_name (str): the name to use for the root of the tree
        rel_paths (Iterable[str]): file paths relative to the root, using POSIX separators (e.g. "src/main.py")

    Returns:
        list[str]: a list of strings representing the tree structure, suitable for printing
    """
    tree = _build_tree(rel_paths)
    lines: list[str] = [root_name]

    def walk(node: dict[str, Any], prefix: str) -> None:
        entries: list[tuple[str, dict[str, Any] | None]] = [(d, node[d]) for d in node if d != _FILES_KEY]
        entries.extend((f, None) for f in node.get(_FILES_KEY, set()))
        entries.sort(key=lambda e: e[0])
        for idx, (name, child) in enumerate(entries):
            last = idx == len(entries) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + name + ("/" if child is not None else ""))
            if child is not None:
                walk(child, prefix + ("    " if last else "│   "))

    walk(tree, "")
    return lines


def render_manifest(rel_paths: Iterable[str], root_name: str) -> str:
    """Render the directory manifest of the accepted files as text."""
    return "\n".join(build_tree_lines(root_name, rel_paths)) + "\n"
