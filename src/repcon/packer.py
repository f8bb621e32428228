"""Greedy pagination of accepted files into a bounded set of documents.

Files are packed first-fit in traversal order rather than optimally, so that
neighbouring files of a directory stay in the same or adjacent documents. A
file is never split: one whose rendered block alone exceeds the per-document
cap is placed alone in its own, over-budget document.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from repcon.config import CandidateFile, Document, DocumentSet
from repcon.exceptions import CapacityExceededError, InvalidLimitError, ManifestTooLargeError
from repcon.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    BlockSizeFn = Callable[[CandidateFile, int], int]
    OverheadFn = Callable[[int], int]


def raw_block_size(file: CandidateFile, page_number: int) -> int:  # noqa: ARG001
    """Size of a file block without any formatting: its content length."""
    return len(file.content())


def no_overhead(page_number: int) -> int:  # noqa: ARG001
    return 0


def pack(
    files: Iterable[CandidateFile],
    max_docs: int,
    max_bytes_per_doc: int,
    *,
    block_size: BlockSizeFn | None = None,
    overhead: OverheadFn | None = None,
) -> DocumentSet:
    """Partition files into at most `max_docs` documents of `max_bytes_per_doc` bytes.

    Args:
        files (Iterable[CandidateFile]): accepted files, in traversal order
        max_docs (int): maximum number of documents
        max_bytes_per_doc (int): byte cap of one document
        block_size (BlockSizeFn | None): rendered size of a file block on a given
            page; defaults to the raw content size
        overhead (OverheadFn | None): fixed size of a given page before any file
            block (e.g. a manifest); defaults to zero

    Raises:
        InvalidLimitError: if a limit is not strictly positive.
        ManifestTooLargeError: if the overhead of a page leaves no room for files.
        CapacityExceededError: if the files need more than `max_docs` documents.

    Returns:
        DocumentSet: the documents, in traversal order
    """
    if max_docs < 1:
        raise InvalidLimitError(name="max_docs", value=max_docs)
    if max_bytes_per_doc < 1:
        raise InvalidLimitError(name="max_bytes_per_doc", value=max_bytes_per_doc)
    size_of = block_size or raw_block_size
    overhead_of = overhead or no_overhead

    documents: list[Document] = []

    def open_document() -> Document:
        page = len(documents) + 1
        overhead_size = overhead_of(page)
        if overhead_size >= max_bytes_per_doc:
            raise ManifestTooLargeError(
                page_number=page,
                overhead_bytes=overhead_size,
                max_bytes_per_document=max_bytes_per_doc,
            )
        return Document(page_number=page, size=overhead_size)

    # Packing runs past max_docs so the overflow can be reported precisely.
    current = open_document()
    for file in files:
        size = size_of(file, current.page_number)
        if not current.is_empty and current.size + size > max_bytes_per_doc:
            documents.append(current)
            current = open_document()
            size = size_of(file, current.page_number)
        # Only a file that overflows an empty document is oversized.
        room = max_bytes_per_doc - current.size
        oversized = current.is_empty and size > room
        current.add(file, size)
        if oversized:
            logger.warning(
                "oversized_file",
                path=file.rel,
                size=size,
                room=room,
                max_bytes=max_bytes_per_doc,
                page=current.page_number,
            )
    if not current.is_empty:
        documents.append(current)

    if len(documents) > max_docs:
        overflow = [f for d in documents[max_docs:] for f in d.files]
        accepted = [f for d in documents for f in d.files]
        raise CapacityExceededError(
            max_documents=max_docs,
            required_documents=len(documents),
            max_bytes_per_document=max_bytes_per_doc,
            file_count=len(accepted),
            total_bytes=sum(f.size for f in accepted),
            unplaced_files=len(overflow),
            unplaced_bytes=sum(f.size for f in overflow),
        )

    logger.info(
        "files_packed",
        documents=len(documents),
        files=sum(len(d.files) for d in documents),
        max_documents=max_docs,
    )
    return DocumentSet(
        documents=documents,
        max_documents=max_docs,
        max_bytes_per_document=max_bytes_per_doc,
    )
