from __future__ import annotations

import re
from functools import wraps
from typing import TYPE_CHECKING, Any

from repcon.config import OutputFormat
from repcon.manifest import render_manifest

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from repcon.config import CandidateFile

    BlockRendererFn = Callable[[CandidateFile, str, int], str]

START_MARKER = "// START OF CODE BLOCK:"
END_MARKER = "// END OF CODE BLOCK:"

_MARKER_LINE = re.compile(r"^(\\*)(// (?:START|END) OF CODE BLOCK:)", re.MULTILINE)
_ESCAPED_MARKER_LINE = re.compile(r"^\\(\\*// (?:START|END) OF CODE BLOCK:)", re.MULTILINE)
_BACKTICK_RUN = re.compile(r"`+")

BLOCK_RENDERER: dict[OutputFormat, BlockRendererFn] = {}


def register_block_renderer(fmt: OutputFormat) -> Callable[[BlockRendererFn], BlockRendererFn]:
    """Decorator to register the block renderer of an output format.

    Args:
        fmt (OutputFormat): the output format the decorated function renders

    Returns:
        Callable[[BlockRendererFn], BlockRendererFn]: A decorator that registers the given function
        in the BLOCK_RENDERER mapping and returns it.
    """

    def decorator(func: BlockRendererFn) -> BlockRendererFn:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
            return func(*args, **kwargs)

        BLOCK_RENDERER[fmt] = wrapper
        return wrapper

    return decorator


def escape_markers(text: str) -> str:
    """Neutralize block delimiters that appear inside file content.

    Every line starting with zero or more backslashes followed by a start or
    end marker gets one more leading backslash, so no content line can be
    mistaken for a delimiter and the original text stays recoverable.
    """
    return _MARKER_LINE.sub(r"\\\1\2", text)


def unescape_markers(text: str) -> str:
    """Reverse `escape_markers`."""
    return _ESCAPED_MARKER_LINE.sub(r"\1", text)


def fence_for(text: str) -> str:
    """Return a backtick fence longer than any backtick run in `text` (at least three)."""
    longest = max((len(m.group(0)) for m in _BACKTICK_RUN.finditer(text)), default=0)
    return "`" * max(3, longest + 1)


def _terminated(text: str) -> str:
    return text if not text or text.endswith("\n") else text + "\n"


@register_block_renderer(OutputFormat.TEXT)
def render_text_block(file: CandidateFile, repository_name: str, page_number: int) -> str:
    """Render a file as a delimited text block.

    The header names the repository, the file and the page; the content is
    followed by a closing delimiter naming the same file.
    """
    body = _terminated(escape_markers(file.text()))
    return (
        f"# repcon_repository: {repository_name}\n"
        f"# repcon_file_name: {file.rel}\n"
        f"# repcon_page_number: {page_number}\n"
        f"{START_MARKER} {file.rel}\n"
        f"{body}"
        f"{END_MARKER} {file.rel}\n"
    )


@register_block_renderer(OutputFormat.MARKDOWN)
def render_markdown_block(file: CandidateFile, repository_name: str, page_number: int) -> str:
    """Render a file as a markdown section with a fenced code block."""
    text = file.text()
    fence = fence_for(text)
    return (
        f"## {file.rel}\n"
        f"repository={repository_name} page={page_number}\n"
        f"{fence}{file.language}\n"
        f"{_terminated(text)}"
        f"{fence}\n\n"
    )


def render_block(
    file: CandidateFile,
    repository_name: str,
    page_number: int,
    *,
    fmt: OutputFormat = OutputFormat.TEXT,
) -> str:
    """Render one file block in the requested format.

    Args:
        file (CandidateFile): the file to render; its content must be readable
        repository_name (str): the repository name written in the header
        page_number (int): the 1-based document the block belongs to
        fmt (OutputFormat): the output representation

    Returns:
        str: the formatted block, newline-terminated
    """
    return BLOCK_RENDERER[OutputFormat(fmt)](file, repository_name, page_number)


def block_size(
    file: CandidateFile,
    page_number: int,
    *,
    repository_name: str,
    fmt: OutputFormat = OutputFormat.TEXT,
) -> int:
    """Size in bytes of the rendered block, as written to disk (UTF-8)."""
    return len(render_block(file, repository_name, page_number, fmt=fmt).encode("utf-8"))


def render_manifest_section(
    repository_name: str,
    rel_paths: Iterable[str],
    *,
    fmt: OutputFormat = OutputFormat.TEXT,
) -> str:
    """Wrap the directory manifest for the chosen output format."""
    tree = render_manifest(rel_paths, repository_name)
    if OutputFormat(fmt) is OutputFormat.MARKDOWN:
        fence = fence_for(tree)
        return f"# {repository_name}\n\n## Structure\n{fence}text\n{tree}{fence}\n\n"
    return f"# repcon_repository: {repository_name}\n# repcon_manifest:\n{tree}\n"
