from __future__ import annotations

import io
from typing import TYPE_CHECKING

from repcon.config import ManifestPlacement, OutputFormat
from repcon.exceptions import OutputWriteError
from repcon.formatting import render_block
from repcon.logging import logger

if TYPE_CHECKING:
    from pathlib import Path

    from repcon.config import Document, DocumentSet


def manifest_on_page(page_number: int, placement: ManifestPlacement) -> bool:
    """Whether the document at `page_number` carries the manifest."""
    return ManifestPlacement(placement) is ManifestPlacement.EVERY or page_number == 1


def document_overhead(page_number: int, *, manifest_section: str, placement: ManifestPlacement) -> int:
    """Bytes a document holds before its first file block."""
    if manifest_on_page(page_number, placement):
        return len(manifest_section.encode("utf-8"))
    return 0


def render_document(
    document: Document,
    *,
    repository_name: str,
    fmt: OutputFormat,
    manifest_section: str,
    placement: ManifestPlacement,
) -> str:
    """Build the full text of one output document.

    The manifest section (when this page carries it) comes first, then every
    file block in order. The UTF-8 size of the result equals `document.size`
    when the document was packed with the same format and placement.

    Args:
        document (Document): the packed document
        repository_name (str): the repository name written in headers
        fmt (OutputFormat): the output representation
        manifest_section (str): the rendered manifest section
        placement (ManifestPlacement): which documents carry the manifest

    Returns:
        str: the document text
    """
    out = io.StringIO()
    if manifest_on_page(document.page_number, placement):
        out.write(manifest_section)
    for file in document.files:
        out.write(render_block(file, repository_name, document.page_number, fmt=fmt))
    return out.getvalue()


def document_file_name(template: str, repository_name: str, index: int, width: int) -> str:
    """Name of the `index`-th document (1-based), with `{n}` zero-padded to `width`."""
    return template.format(repo=repository_name, n=str(index).zfill(width))


def write_documents(
    document_set: DocumentSet,
    *,
    output_dir: Path,
    name_template: str,
    repository_name: str,
    fmt: OutputFormat = OutputFormat.TEXT,
    manifest_section: str,
    placement: ManifestPlacement = ManifestPlacement.FIRST,
) -> list[Path]:
    """Write every document of the set to `output_dir`.

    Writing is not transactional: on failure, documents already written are
    left in place and a rerun overwrites them.

    Args:
        document_set (DocumentSet): the packed documents
        output_dir (Path): destination directory, created if missing
        name_template (str): file name template with `{repo}` and `{n}`
        repository_name (str): the repository name written in headers and names
        fmt (OutputFormat): the output representation
        manifest_section (str): the rendered manifest section
        placement (ManifestPlacement): which documents carry the manifest

    Raises:
        OutputWriteError: if the directory or a document cannot be written.

    Returns:
        list[Path]: the written files, in document order
    """
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputWriteError(path=output_dir, reason=e.strerror or str(e)) from e

    width = len(str(document_set.max_documents))
    written: list[Path] = []
    for document in document_set.documents:
        name = document_file_name(name_template, repository_name, document.page_number, width)
        target = output_dir / name
        content = render_document(
            document,
            repository_name=repository_name,
            fmt=fmt,
            manifest_section=manifest_section,
            placement=placement,
        )
        try:
            target.write_text(content, encoding="utf-8", newline="")
        except OSError as e:
            raise OutputWriteError(path=target, reason=e.strerror or str(e)) from e
        logger.info("document_written", path=str(target), files=len(document.files), size=document.size)
        written.append(target)
    return written

