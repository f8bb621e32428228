from __future__ import annotations

import codecs
import os
from pathlib import Path
from typing import TYPE_CHECKING

from repcon.config import (
    ALWAYS_PRUNED,
    BINARY_THRESHOLD,
    DEFAULT_SAMPLE_BYTES,
    GITIGNORE_FILENAME,
    TOOL_IGNORE_FILENAME,
    CandidateFile,
    FileWarning,
    IgnoreOrigin,
    RepoPath,
)
from repcon.exceptions import IgnoreFileError, InvalidRootError
from repcon.ignore_rules import parse_ignore_lines
from repcon.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

    from repcon.ignore_rules import IgnoreRuleSet

# Bytes that may appear in text: BEL, BS, TAB, LF, VT, FF, CR, ESC and printable ASCII.
_TEXT_BYTES = frozenset({7, 8, 9, 10, 11, 12, 13, 27} | set(range(0x20, 0x7F)))


def format_file_size(size: int) -> str:
    """Format a byte count for humans, in 1024 steps.

    Args:
        size (int): number of bytes

    Returns:
        str: e.g. "512 B", "1.50 KB", "2.00 MB"
    """
    kilobyte = 1024
    megabyte = kilobyte * 1024
    gigabyte = megabyte * 1024
    if size >= gigabyte:
        return f"{size / gigabyte:.2f} GB"
    if size >= megabyte:
        return f"{size / megabyte:.2f} MB"
    if size >= kilobyte:
        return f"{size / kilobyte:.2f} KB"
    return f"{size} B"


def read_ignore_file(path: Path) -> list[str]:
    """Read the patterns of a line-oriented ignore file.

    Raises:
        IgnoreFileError: if the file cannot be read.
    """
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise IgnoreFileError(path=path, reason=e.strerror or str(e)) from e
    return parse_ignore_lines(text)


def load_ignore_sources(
    repo: Path,
    *,
    cli_patterns: Sequence[str] = (),
    ignore_file: Path | None = None,
    use_gitignore: bool = True,
) -> list[tuple[str, IgnoreOrigin]]:
    """Collect ignore patterns from every source, in evaluation order.

    Args:
        repo (Path): the repository root
        cli_patterns (Sequence[str]): patterns given on the command line
        ignore_file (Path | None): explicit tool ignore file; when None, the
            optional `.repconignore` at the repository root is used
        use_gitignore (bool): whether to read the root `.gitignore`

    Raises:
        IgnoreFileError: if an explicit `ignore_file` does not exist, or an
            ignore file cannot be read.

    Returns:
        list[tuple[str, IgnoreOrigin]]: (pattern, origin) pairs
    """
    sources: list[tuple[str, IgnoreOrigin]] = []
    gitignore = repo / GITIGNORE_FILENAME
    if use_gitignore and gitignore.is_file():
        sources.extend((line, IgnoreOrigin.VCS) for line in read_ignore_file(gitignore))

    if ignore_file is not None:
        if not ignore_file.is_file():
            raise IgnoreFileError(path=ignore_file)
        tool_file = ignore_file
    else:
        tool_file = repo / TOOL_IGNORE_FILENAME
    if tool_file.is_file():
        sources.extend((line, IgnoreOrigin.TOOL) for line in read_ignore_file(tool_file))

    sources.extend((p, IgnoreOrigin.CLI) for p in cli_patterns if p.strip())
    logger.info("ignore_sources_loaded", patterns=len(sources))
    return sources


def resolve_root(root: Path) -> Path:
    """Resolve and validate the repository root.

    Raises:
        InvalidRootError: if the root is missing, not a directory or unreadable.
    """
    try:
        resolved = root.resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(root=root, reason=str(e) or "does not exist") from e
    if not resolved.is_dir():
        raise InvalidRootError(root=root, reason="not a directory")
    try:
        with os.scandir(resolved):
            pass
    except OSError as e:
        raise InvalidRootError(root=root, reason=e.strerror or str(e)) from e
    return resolved


def walk_repository(
    root: Path,
    ignore_rules: IgnoreRuleSet,
    *,
    include_hidden: bool = False,
    read_gitignore: bool = True,
    warnings: list[FileWarning] | None = None,
) -> Iterator[CandidateFile]:
    """Walk the repository and yield the files that survive the ignore rules.

    Traversal is depth-first; the entries of each directory are visited in
    lexicographic order of their names, so two walks of the same tree yield
    the same sequence. Excluded directories are pruned before descent. Version
    control directories are always pruned and hidden entries are skipped
    unless `include_hidden` is set. Symbolic links are followed only when they
    resolve inside the root.

    With `read_gitignore`, the `.gitignore` of every directory below the root
    is read on the way down; its patterns apply relative to that directory,
    to that subtree only, and override the rules inherited from its parents.

    The root is validated before this function returns; the walk itself is lazy.

    Args:
        root (Path): the repository root
        ignore_rules (IgnoreRuleSet): the compiled ignore rules of this run,
            including those of the root `.gitignore`
        include_hidden (bool): whether to walk dot-prefixed entries
        read_gitignore (bool): whether to read nested `.gitignore` files
        warnings (list[FileWarning] | None): receives one warning per entry
            that could not be read

    Raises:
        InvalidRootError: if the root is missing, not a directory or unreadable.
        InvalidPatternError: (during the walk) if a nested `.gitignore` holds a
            malformed pattern.

    Returns:
        Iterator[CandidateFile]: accepted files in traversal order
    """
    resolved = resolve_root(root)
    sink: list[FileWarning] = warnings if warnings is not None else []

    def warn(rel: str, reason: str) -> None:
        logger.warning("entry_skipped", path=rel, reason=reason)
        sink.append(FileWarning(rel=rel, reason=reason))

    def local_rules(directory: Path, prefix: str, rules: IgnoreRuleSet) -> IgnoreRuleSet:
        gitignore = directory / GITIGNORE_FILENAME
        if not prefix or not read_gitignore or not gitignore.is_file():
            return rules
        try:
            patterns = read_ignore_file(gitignore)
        except IgnoreFileError as e:
            warn(prefix + GITIGNORE_FILENAME, e.reason)
            return rules
        logger.debug("nested_ignore_file_loaded", path=prefix + GITIGNORE_FILENAME, patterns=len(patterns))
        return rules.extend(((p, IgnoreOrigin.VCS) for p in patterns), base=prefix.rstrip("/").split("/"))

    def walk_dir(
        directory: Path,
        prefix: str,
        active: frozenset[Path],
        rules: IgnoreRuleSet,
    ) -> Iterator[CandidateFile]:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            warn(prefix.rstrip("/") or ".", e.strerror or str(e))
            return
        rules = local_rules(directory, prefix, rules)

        for entry in entries:
            rel = prefix + entry.name
            if entry.name in ALWAYS_PRUNED:
                continue
            if not include_hidden and entry.name.startswith("."):
                continue
            try:
                is_link = entry.is_symlink()
                real = Path(entry.path).resolve(strict=True)
                if is_link and not real.is_relative_to(resolved):
                    logger.info("symlink_outside_root", path=rel, target=str(real))
                    continue
                is_dir = entry.is_dir()
                is_file = entry.is_file()
            except (OSError, RuntimeError) as e:
                reason = "symlink loop" if isinstance(e, RuntimeError) else (e.strerror or str(e))
                warn(rel, reason)
                continue

            if is_dir:
                if rules.matches_entry(rel, is_dir=True):
                    logger.debug("directory_pruned", path=rel)
                    continue
                if real in active:
                    warn(rel, "symlink loop")
                    continue
                yield from walk_dir(Path(entry.path), rel + "/", active | {real}, rules)
            elif is_file:
                if rules.matches_entry(rel, is_dir=False):
                    continue
                try:
                    size = entry.stat().st_size
                except OSError as e:
                    warn(rel, e.strerror or str(e))
                    continue
                yield CandidateFile(repo_path=RepoPath(rel=rel, path=Path(entry.path)), size=size)
            else:
                logger.debug("special_file_skipped", path=rel)

    return walk_dir(resolved, "", frozenset({resolved}), ignore_rules)


def is_text(sample: bytes, *, threshold: float = BINARY_THRESHOLD) -> bool:
    """Classify a content sample as text or binary.

    A sample is binary if it holds a NUL byte, or if the share of suspicious
    bytes exceeds `threshold`. Suspicious bytes are control characters that
    text does not use, plus bytes >= 0x80 when the sample is not valid UTF-8.
    An empty sample is text.

    Args:
        sample (bytes): the first bytes of a file
        threshold (float): tolerated share of suspicious bytes, in (0, 1]

    Returns:
        bool: True if the sample looks like text
    """
    if not sample:
        return True
    if b"\x00" in sample:
        return False
    try:
        # A multibyte character cut at the end of the sample is not an error.
        codecs.getincrementaldecoder("utf-8")().decode(sample, final=False)
        utf8 = True
    except UnicodeDecodeError:
        utf8 = False
    suspicious = sum(1 for b in sample if b not in _TEXT_BYTES and (b < 0x80 or not utf8))  # noqa: PLR2004
    return suspicious / len(sample) <= threshold


def filter_text_files(
    candidates: Iterable[CandidateFile],
    *,
    sample_bytes: int = DEFAULT_SAMPLE_BYTES,
    threshold: float = BINARY_THRESHOLD,
    warnings: list[FileWarning] | None = None,
) -> Iterator[CandidateFile]:
    """Keep text files and load their content, preserving input order.

    Binary files are decided from a `sample_bytes` prefix and never read in
    full. Read failures become warnings and the file is skipped.

    Args:
        candidates (Iterable[CandidateFile]): files in traversal order
        sample_bytes (int): size of the prefix used for classification
        threshold (float): binary threshold passed to `is_text`
        warnings (list[FileWarning] | None): receives read failures

    Yields:
        Iterator[CandidateFile]: text files with their content loaded
    """
    sink: list[FileWarning] = warnings if warnings is not None else []
    for candidate in candidates:
        try:
            if not is_text(candidate.sample(sample_bytes), threshold=threshold):
                logger.info("binary_file_skipped", path=candidate.rel, size=candidate.size)
                continue
            candidate.content()
        except OSError as e:
            reason = e.strerror or str(e)
            logger.warning("file_unreadable", path=candidate.rel, reason=reason)
            sink.append(FileWarning(rel=candidate.rel, reason=reason))
            continue
        yield candidate
