from __future__ import annotations

from enum import IntEnum, StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, computed_field

_ = Path()


class IgnoreOrigin(StrEnum):
    """Where an ignore pattern came from.

    The declaration order is the evaluation priority: version-control ignore
    file first, tool-specific ignore file second, command line last.
    """

    VCS = auto()
    TOOL = auto()
    CLI = auto()

    @property
    def priority(self) -> int:
        """Position of this origin in the rule evaluation order."""
        return list(IgnoreOrigin).index(self)


class OutputFormat(StrEnum):
    """Representation used for each file block in the output documents."""

    TEXT = auto()
    MARKDOWN = auto()


class ManifestPlacement(StrEnum):
    """Which documents carry the directory manifest."""

    FIRST = auto()
    EVERY = auto()


class ExitCode(IntEnum):
    """Process exit codes of the `repcon` command."""

    OK = 0
    CONFIGURATION_ERROR = 2
    CAPACITY_EXCEEDED = 3
    OUTPUT_ERROR = 4
    NOTHING_TO_PACK = 5


class FileType(StrEnum):
    """Categorization of file types, used to pick a code fence language."""

    TEXT = auto()
    PYTHON = auto()
    TOML = auto()
    JSON = auto()
    MARKDOWN = auto()
    YAML = auto()
    HTML = auto()
    CSS = auto()
    JAVASCRIPT = auto()
    TYPESCRIPT = auto()
    BASH = auto()
    RUST = auto()
    GO = auto()
    PHP = auto()
    SQL = auto()
    JAVA = auto()
    C = auto()
    CPP = auto()
    XML = auto()
    INI = auto()
    DOCKERFILE = auto()
    MAKEFILE = auto()
    OTHER = auto()


EXT2LANG: dict[str, FileType] = {
    ".bash": FileType.BASH,
    ".c": FileType.C,
    ".cc": FileType.CPP,
    ".cfg": FileType.INI,
    ".conf": FileType.INI,
    ".cpp": FileType.CPP,
    ".css": FileType.CSS,
    ".cxx": FileType.CPP,
    ".go": FileType.GO,
    ".h": FileType.C,
    ".hpp": FileType.CPP,
    ".htm": FileType.HTML,
    ".html": FileType.HTML,
    ".ini": FileType.INI,
    ".java": FileType.JAVA,
    ".js": FileType.JAVASCRIPT,
    ".json": FileType.JSON,
    ".markdown": FileType.MARKDOWN,
    ".md": FileType.MARKDOWN,
    ".mjs": FileType.JAVASCRIPT,
    ".php": FileType.PHP,
    ".py": FileType.PYTHON,
    ".rs": FileType.RUST,
    ".sh": FileType.BASH,
    ".sql": FileType.SQL,
    ".toml": FileType.TOML,
    ".ts": FileType.TYPESCRIPT,
    ".tsx": FileType.TYPESCRIPT,
    ".txt": FileType.TEXT,
    ".xml": FileType.XML,
    ".yaml": FileType.YAML,
    ".yml": FileType.YAML,
    ".zsh": FileType.BASH,
}

NAME2LANG: dict[str, FileType] = {
    "dockerfile": FileType.DOCKERFILE,
    "makefile": FileType.MAKEFILE,
}

_FENCE_LANGUAGE: dict[FileType, str] = {
    FileType.PYTHON: "python",
    FileType.TOML: "toml",
    FileType.JSON: "json",
    FileType.MARKDOWN: "markdown",
    FileType.YAML: "yaml",
    FileType.HTML: "html",
    FileType.CSS: "css",
    FileType.JAVASCRIPT: "javascript",
    FileType.TYPESCRIPT: "typescript",
    FileType.BASH: "bash",
    FileType.RUST: "rust",
    FileType.GO: "go",
    FileType.PHP: "php",
    FileType.SQL: "sql",
    FileType.JAVA: "java",
    FileType.C: "c",
    FileType.CPP: "cpp",
    FileType.XML: "xml",
    FileType.INI: "ini",
    FileType.DOCKERFILE: "dockerfile",
    FileType.MAKEFILE: "makefile",
    FileType.TEXT: "text",
    FileType.OTHER: "text",
}

# Directories that are never walked, whatever the ignore rules say.
ALWAYS_PRUNED = frozenset({".git", ".hg", ".svn"})

GITIGNORE_FILENAME = ".gitignore"
TOOL_IGNORE_FILENAME = ".repconignore"

DEFAULT_MAX_DOCUMENTS = 20
DEFAULT_MAX_DOCUMENT_BYTES = 1024 * 1024
DEFAULT_SAMPLE_BYTES = 8192
# Share of suspicious bytes in a sample above which a file is treated as binary.
BINARY_THRESHOLD = 0.30

DEFAULT_NAME_TEMPLATES: dict[OutputFormat, str] = {
    OutputFormat.TEXT: "{repo}_{n}.txt",
    OutputFormat.MARKDOWN: "{repo}_{n}.md",
}


def guess_file_type(path: Path) -> FileType:
    """Heuristic guess of file type based on file name, then extension.

    Args:
        path (Path): The file path to guess the type for.

    Returns:
        FileType: The guessed file type, or FileType.OTHER if unknown.
    """
    by_name = NAME2LANG.get(path.name.lower())
    if by_name is not None:
        return by_name
    return EXT2LANG.get(path.suffix.lower(), FileType.OTHER)


def guess_language(file_type: FileType) -> str:
    """Get the code fence language for a given file type."""
    return _FENCE_LANGUAGE.get(file_type, "text")


class RepoPath(BaseModel):
    """A file discovered under the repository root.

    Attributes:
        rel: Path relative to the repository root, with POSIX separators.
        path: Absolute path to the file on disk.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    rel: str = Field(..., description="File path relative to repository root")
    path: Path = Field(..., description="Absolute file path")


class CandidateFile(BaseModel):
    """A walked file waiting for classification and packing.

    The content sample and the content are each read from disk at most once and
    cached. A file no larger than the sample is fully read by the sample read,
    which then also serves as its content.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    repo_path: RepoPath
    size: int = Field(..., ge=0, description="File size in bytes, from stat")

    _sample: bytes | None = PrivateAttr(default=None)
    _content: bytes | None = PrivateAttr(default=None)

    @property
    def rel(self) -> str:
        return self.repo_path.rel

    @property
    def path(self) -> Path:
        return self.repo_path.path

    @computed_field
    @property
    def file_type(self) -> FileType:
        """Categorize the file type based on name and extension."""
        return guess_file_type(self.path)

    @computed_field
    @property
    def language(self) -> str:
        """Get the code fence language based on the file type."""
        return guess_language(self.file_type)

    def sample(self, nbytes: int) -> bytes:
        """Return the first `nbytes` bytes of the file.

        Raises:
            OSError: if the file cannot be opened or read.
        """
        if self._content is not None:
            return self._content[:nbytes]
        if self._sample is None:
            with self.path.open("rb") as f:
                data = f.read(nbytes + 1)
            if len(data) <= nbytes:
                self._content = data
            self._sample = data[:nbytes]
        return self._sample[:nbytes]

    def content(self) -> bytes:
        """Return the full file content.

        Raises:
            OSError: if the file cannot be opened or read.
        """
        if self._content is None:
            self._content = self.path.read_bytes()
        return self._content

    def text(self) -> str:
        """Return the file content decoded as UTF-8."""
        return self.content().decode("utf-8", errors="replace")


class FileWarning(BaseModel):
    """A file that was skipped because it could not be read."""

    model_config = ConfigDict(frozen=True)

    rel: str = Field(..., description="Path relative to repository root")
    reason: str = Field(..., description="Why the file was skipped")

    def __str__(self) -> str:
        return f"{self.rel}: {self.reason}"


class Document(BaseModel):
    """One output unit: consecutive files plus their rendered byte size.

    `size` includes the fixed per-document overhead (the manifest section when
    the document carries one).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    page_number: int = Field(..., ge=1, description="1-based position in the document set")
    files: list[CandidateFile] = Field(default_factory=list)
    size: int = Field(default=0, ge=0, description="Rendered size in bytes")

    @property
    def is_empty(self) -> bool:
        return not self.files

    def add(self, file: CandidateFile, rendered_size: int) -> None:
        self.files.append(file)
        self.size += rendered_size


class DocumentSet(BaseModel):
    """The ordered documents of one run, bounded by `max_documents`."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    documents: list[Document] = Field(default_factory=list)
    max_documents: int = Field(..., ge=1)
    max_bytes_per_document: int = Field(..., ge=1)

    @property
    def files(self) -> list[CandidateFile]:
        return [f for doc in self.documents for f in doc.files]

    @property
    def file_count(self) -> int:
        return sum(len(doc.files) for doc in self.documents)

    @property
    def total_bytes(self) -> int:
        return sum(doc.size for doc in self.documents)

    def __len__(self) -> int:
        return len(self.documents)
