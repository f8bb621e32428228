from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

_ = Path()


@dataclass(frozen=True)
class RepconError(Exception):
    """Base exception for errors in the repcon package."""


@dataclass(frozen=True)
class ConfigurationError(RepconError):
    """Raised when the run configuration is unusable. Nothing is written."""


@dataclass(frozen=True)
class InvalidPatternError(ConfigurationError):
    """Raised when an ignore pattern cannot be compiled."""

    pattern: str
    origin: str
    reason: str

    def __str__(self) -> str:
        return f"Invalid ignore pattern {self.pattern!r} (from {self.origin}): {self.reason}"


@dataclass(frozen=True)
class InvalidRootError(ConfigurationError):
    """Raised when the repository root is missing, not a directory or unreadable."""

    root: Path
    reason: str

    def __str__(self) -> str:
        return f"Cannot read repository root {self.root}: {self.reason}"


@dataclass(frozen=True)
class InvalidLimitError(ConfigurationError):
    """Raised when a numeric packing limit is not strictly positive."""

    name: str
    value: int

    def __str__(self) -> str:
        return f"{self.name} must be a positive integer, got {self.value}"


@dataclass(frozen=True)
class ManifestTooLargeError(ConfigurationError):
    """Raised when the per-document overhead (the manifest) leaves no room for files."""

    page_number: int
    overhead_bytes: int
    max_bytes_per_document: int

    def __str__(self) -> str:
        return (
            f"The manifest of document {self.page_number} takes {self.overhead_bytes} bytes, "
            f"which leaves no room for files in documents of at most {self.max_bytes_per_document} bytes. "
            "Raise --max-file-size or add ignore patterns."
        )


@dataclass(frozen=True)
class InvalidSettingsError(ConfigurationError):
    """Raised when command line or environment settings fail validation."""

    message: str

    def __str__(self) -> str:
        return f"Invalid settings: {self.message}"


@dataclass(frozen=True)
class IgnoreFileError(ConfigurationError):
    """Raised when an ignore file is missing (when explicitly requested) or unreadable."""

    path: Path
    reason: str = "not found"

    def __str__(self) -> str:
        return f"Ignore file {self.path}: {self.reason}"


@dataclass(frozen=True)
class CapacityExceededError(RepconError):
    """Raised when the accepted files cannot fit in the document budget.

    Attributes:
        max_documents: the configured maximum number of documents.
        required_documents: the number of documents the greedy packing needed.
        max_bytes_per_document: the configured per-document byte cap.
        file_count: number of accepted files.
        total_bytes: on-disk size of all accepted files, in bytes.
        unplaced_files: number of files that landed beyond the last allowed document.
        unplaced_bytes: on-disk size of those files, in bytes.
    """

    max_documents: int
    required_documents: int
    max_bytes_per_document: int
    file_count: int
    total_bytes: int
    unplaced_files: int
    unplaced_bytes: int

    def __str__(self) -> str:
        return (
            f"{self.file_count} files ({self.total_bytes} bytes) need {self.required_documents} documents "
            f"of at most {self.max_bytes_per_document} bytes, but only {self.max_documents} are allowed: "
            f"{self.unplaced_files} files ({self.unplaced_bytes} bytes) did not fit. "
            "Raise --max-files / --max-file-size or add ignore patterns."
        )


@dataclass(frozen=True)
class OutputWriteError(RepconError):
    """Raised when an output document cannot be written."""

    path: Path
    reason: str

    def __str__(self) -> str:
        return f"Failed to write {self.path}: {self.reason}"


@dataclass(frozen=True)
class NothingToPackError(RepconError):
    """Raised when no file survived selection, so there is nothing to write."""

    warning_count: int = 0

    def __str__(self) -> str:
        if self.warning_count:
            return f"No file could be processed ({self.warning_count} warnings)"
        return "No file matched: every candidate was ignored or binary"
