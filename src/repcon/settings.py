from __future__ import annotations

import os
import re
import string
from pathlib import Path
from typing import Any

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from repcon.config import (
    BINARY_THRESHOLD,
    DEFAULT_MAX_DOCUMENT_BYTES,
    DEFAULT_MAX_DOCUMENTS,
    DEFAULT_NAME_TEMPLATES,
    DEFAULT_SAMPLE_BYTES,
    ManifestPlacement,
    OutputFormat,
)

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "REPCON_"

_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "k": 1024,
    "kb": 1024,
    "kib": 1024,
    "m": 1024**2,
    "mb": 1024**2,
    "mib": 1024**2,
    "g": 1024**3,
    "gb": 1024**3,
    "gib": 1024**3,
}
_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")
_TEMPLATE_FIELDS = frozenset({"repo", "n"})


def parse_size(value: str | int) -> int:
    """Parse a byte size such as `1000`, `500K`, `2MB` or `1.5MiB` (1024 steps).

    Raises:
        ValueError: if the value is not a size.
    """
    if isinstance(value, int):
        return value
    match = _SIZE_RE.match(value)
    if match is None or match.group(2).lower() not in _SIZE_UNITS:
        msg = f"invalid size {value!r}"
        raise ValueError(msg)
    return int(float(match.group(1)) * _SIZE_UNITS[match.group(2).lower()])


def env_defaults(env_file: str | None = None) -> dict[str, Any]:
    """Collect `REPCON_*` settings from the `.env` file and the environment.

    The process environment wins over the `.env` file. Keys are returned
    lowercased without the prefix, e.g. `REPCON_MAX_FILES` -> `max_files`.

    Args:
        env_file (str | None): `.env` file to read; defaults to the one found
            from the current directory

    Returns:
        dict[str, Any]: raw setting values keyed by field name
    """
    path = ENV_FILE if env_file is None else env_file
    values: dict[str, str | None] = dict(dotenv_values(path)) if path else {}
    values.update(os.environ)
    known = set(Settings.model_fields)
    out: dict[str, Any] = {}
    for key, value in values.items():
        if value is None or not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX) :].lower()
        if name in known:
            out[name] = value
    return out


class Settings(BaseModel):
    """Configuration settings for one repcon run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    repo: Path = Field(default_factory=Path.cwd, description="Repository root.")
    output_dir: Path = Field(default=Path("output"), description="Directory receiving the documents.")
    name: str = Field(default="", description="Repository name used in headers and file names.")
    name_template: str = Field(default="", description="Document file name template ({repo}, {n}).")
    ignore: list[str] = Field(default_factory=list, description="Extra ignore patterns.")
    ignore_file: Path | None = Field(default=None, description="Tool ignore file (default .repconignore).")
    no_gitignore: bool = Field(default=False, description="Do not read .gitignore.")
    hidden: bool = Field(default=False, description="Include hidden files and directories.")

    max_files: int = Field(default=DEFAULT_MAX_DOCUMENTS, ge=1, description="Maximum number of documents.")
    max_file_size: int = Field(
        default=DEFAULT_MAX_DOCUMENT_BYTES,
        ge=1,
        description="Maximum bytes per document.",
    )
    format: OutputFormat = Field(default=OutputFormat.TEXT, description="Block format.")
    manifest: ManifestPlacement = Field(
        default=ManifestPlacement.FIRST,
        description="Documents carrying the manifest.",
    )
    sample_bytes: int = Field(
        default=DEFAULT_SAMPLE_BYTES,
        ge=1,
        description="Prefix size read to detect binary files.",
    )
    binary_threshold: float = Field(
        default=BINARY_THRESHOLD,
        gt=0,
        le=1,
        description="Share of suspicious bytes above which a file is binary.",
    )
    dry_run: bool = Field(default=False, description="Print the plan without writing.")
    log_file: str = Field(default="", description="Log file path.")

    @field_validator("max_file_size", mode="before")
    @classmethod
    def _parse_max_file_size(cls, value: Any) -> Any:  # noqa: ANN401
        if isinstance(value, str):
            return parse_size(value)
        return value

    @field_validator("ignore", mode="before")
    @classmethod
    def _split_ignore(cls, value: Any) -> Any:  # noqa: ANN401
        if isinstance(value, str):
            return [p.strip() for p in value.split(",") if p.strip()]
        return value

    @field_validator("name_template")
    @classmethod
    def _check_template(cls, value: str) -> str:
        if not value:
            return value
        fields = {f for _, f, _, _ in string.Formatter().parse(value) if f is not None}
        if "n" not in fields:
            msg = "name template must contain {n}"
            raise ValueError(msg)
        unknown = fields - _TEMPLATE_FIELDS
        if unknown:
            msg = f"unknown name template fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        value.format(repo="repo", n="1")
        return value

    @property
    def repository_name(self) -> str:
        """Name written in headers and document names."""
        return self.name or self.repo.resolve().name or "repository"

    @property
    def document_name_template(self) -> str:
        return self.name_template or DEFAULT_NAME_TEMPLATES[self.format]
