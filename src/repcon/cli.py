"""
repcon: condense a repository into a bounded number of text documents.

Overview
--------
Tools that accept uploaded files often cap how many files they take. This
utility walks a repository, drops what the ignore rules exclude (`.gitignore`,
`.repconignore`, `--ignore` patterns) and what looks binary, then packs the
remaining text files, in directory order, into at most `--max-files`
documents of at most `--max-file-size` bytes each. A directory manifest is
written in the first document (or in every document with `--manifest every`).

Usage
-----
Run `repcon --help` for full options. Common examples:
    - Condense the current repository into ./output:
        repcon .

    - At most 5 documents of 2 MB, markdown blocks, skip the docs folder:
        repcon path/to/repo -f 5 -s 2MB --format markdown -i "docs/"

    - See which file goes where without writing anything:
        repcon . --dry-run
"""

from __future__ import annotations

import argparse
import sys
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from repcon import __version__
from repcon.config import ExitCode, FileWarning
from repcon.exceptions import (
    CapacityExceededError,
    ConfigurationError,
    InvalidSettingsError,
    NothingToPackError,
    OutputWriteError,
)
from repcon.file_manipulation import (
    filter_text_files,
    format_file_size,
    load_ignore_sources,
    resolve_root,
    walk_repository,
)
from repcon.formatting import block_size, render_manifest_section
from repcon.ignore_rules import IgnoreRuleSet
from repcon.logging import logger, setup_logging
from repcon.output_construction import document_file_name, document_overhead, write_documents
from repcon.packer import pack
from repcon.settings import Settings, env_defaults

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repcon.config import DocumentSet


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="repcon",
        description="Condense a repository's text files into a bounded number of documents.",
        argument_default=argparse.SUPPRESS,
    )
    p.add_argument("--version", action="version", version=f"repcon {__version__}")
    p.add_argument("repo", nargs="?", help="Repository root (default: current directory).")
    p.add_argument("-o", "--output-dir", type=str, help="Directory receiving the documents (default: output).")
    p.add_argument("-n", "--name", type=str, help="Repository name used in headers and file names.")
    p.add_argument(
        "-t",
        "--name-template",
        type=str,
        help="Document file name template with {repo} and {n} (default: {repo}_{n}.txt).",
    )
    p.add_argument(
        "-i",
        "--ignore",
        action="append",
        help="Ignore pattern, gitignore syntax (repeatable).",
    )
    p.add_argument("--ignore-file", type=str, help="Tool ignore file (default: .repconignore at the root).")
    p.add_argument("--no-gitignore", action="store_true", help="Do not read .gitignore files.")
    p.add_argument("--hidden", action="store_true", help="Include hidden files and directories.")
    p.add_argument("-f", "--max-files", type=int, help="Maximum number of documents (default: 20).")
    p.add_argument("-s", "--max-file-size", type=str, help="Maximum size of one document, e.g. 500K, 2MB.")
    p.add_argument("--format", type=str, choices=["text", "markdown"], help="Block format (default: text).")
    p.add_argument(
        "--manifest",
        type=str,
        choices=["first", "every"],
        help="Documents carrying the directory manifest (default: first).",
    )
    p.add_argument("--sample-bytes", type=int, help="Prefix size read to detect binary files.")
    p.add_argument("--binary-threshold", type=float, help="Share of suspicious bytes marking a file binary.")
    p.add_argument("--dry-run", action="store_true", help="Print the plan without writing documents.")
    p.add_argument("--log-file", type=str, help="Log file path.")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse command line arguments on top of the `REPCON_*` environment defaults.

    Raises:
        InvalidSettingsError: if the combined values fail validation.
    """
    args = build_parser().parse_args(argv)
    values = {**env_defaults(), **vars(args)}
    try:
        return Settings(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or 'value'}: {err['msg']}" for err in e.errors()
        )
        raise InvalidSettingsError(message=problems) from e


def build_document_set(settings: Settings, warnings: list[FileWarning]) -> tuple[DocumentSet, str]:
    """Select, classify and pack the files of the repository.

    Args:
        settings (Settings): the run configuration
        warnings (list[FileWarning]): receives per-file warnings

    Raises:
        ConfigurationError: on a bad pattern, root or limit.
        CapacityExceededError: if the files do not fit in the document budget.
        NothingToPackError: if no file could be processed.

    Returns:
        tuple[DocumentSet, str]: the packed documents and the rendered manifest section
    """
    repo = resolve_root(Path(settings.repo))
    sources = load_ignore_sources(
        repo,
        cli_patterns=settings.ignore,
        ignore_file=settings.ignore_file,
        use_gitignore=not settings.no_gitignore,
    )
    rules = IgnoreRuleSet.build(sources)
    candidates = walk_repository(
        repo,
        rules,
        include_hidden=settings.hidden,
        read_gitignore=not settings.no_gitignore,
        warnings=warnings,
    )
    accepted = list(
        filter_text_files(
            candidates,
            sample_bytes=settings.sample_bytes,
            threshold=settings.binary_threshold,
            warnings=warnings,
        ),
    )
    if not accepted:
        raise NothingToPackError(warning_count=len(warnings))

    name = settings.repository_name
    manifest_section = render_manifest_section(name, [f.rel for f in accepted], fmt=settings.format)
    document_set = pack(
        accepted,
        settings.max_files,
        settings.max_file_size,
        block_size=lambda file, page: block_size(file, page, repository_name=name, fmt=settings.format),
        overhead=partial(document_overhead, manifest_section=manifest_section, placement=settings.manifest),
    )
    return document_set, manifest_section


def print_plan(document_set: DocumentSet, settings: Settings) -> None:
    width = len(str(document_set.max_documents))
    for doc in document_set.documents:
        name = document_file_name(settings.document_name_template, settings.repository_name, doc.page_number, width)
        print(f"{name}: files={len(doc.files)} size={format_file_size(doc.size)}")
        for file in doc.files:
            print(f"  {file.rel}")


def print_warnings(warnings: Sequence[FileWarning]) -> None:
    for warning in warnings:
        print(f"warning: {warning}", file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = parse_args(argv)
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.CONFIGURATION_ERROR
    if settings.log_file:
        setup_logging(settings.log_file)

    warnings: list[FileWarning] = []
    try:
        document_set, manifest_section = build_document_set(settings, warnings)
        if settings.dry_run:
            print_plan(document_set, settings)
            written = []
        else:
            written = write_documents(
                document_set,
                output_dir=Path(settings.output_dir),
                name_template=settings.document_name_template,
                repository_name=settings.repository_name,
                fmt=settings.format,
                manifest_section=manifest_section,
                placement=settings.manifest,
            )
    except ConfigurationError as e:
        logger.error("configuration_error", error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.CONFIGURATION_ERROR
    except CapacityExceededError as e:
        logger.error("capacity_exceeded", error=str(e), unplaced_files=e.unplaced_files)
        print_warnings(warnings)
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.CAPACITY_EXCEEDED
    except OutputWriteError as e:
        logger.error("output_write_failed", error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.OUTPUT_ERROR
    except NothingToPackError as e:
        print_warnings(warnings)
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.NOTHING_TO_PACK

    print_warnings(warnings)
    for path in written:
        print(f"Wrote {path}")
    verb = "Planned" if settings.dry_run else "Wrote"
    print(
        f"{verb} {len(document_set)} documents "
        f"files={document_set.file_count} size={format_file_size(document_set.total_bytes)}"
        + (f" warnings={len(warnings)}" if warnings else ""),
    )
    return ExitCode.OK


if __name__ == "__main__":
    raise SystemExit(main())
