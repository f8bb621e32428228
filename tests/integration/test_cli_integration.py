from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from repcon import cli
from repcon.config import ExitCode, FileWarning
from repcon.exceptions import OutputWriteError
from repcon.settings import Settings


def _write(root: Path, rel: str, content: str | bytes) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    _write(root, ".gitignore", "*.log\nbuild/\n")
    _write(root, ".repconignore", "docs/\n")
    _write(root, "src/app.py", "print('app')\n")
    _write(root, "src/trace.log", "noise\n")
    _write(root, "src/keep.log", "kept\n")
    _write(root, "build/out.txt", "generated\n")
    _write(root, "docs/guide.md", "# guide\n")
    _write(root, "assets/logo.png", b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR")
    _write(root, "README.md", "# proj\n")
    return root


@pytest.mark.integration
def test_build_document_set_layers_ignore_sources(repo: Path) -> None:
    settings = Settings(repo=repo, ignore=["!keep.log"])
    warnings: list[FileWarning] = []

    document_set, manifest = cli.build_document_set(settings, warnings)

    assert [f.rel for f in document_set.files] == ["README.md", "src/app.py", "src/keep.log"]
    assert warnings == []
    assert manifest.startswith("# repcon_repository: proj\n# repcon_manifest:\nproj\n")
    assert "logo.png" not in manifest


@pytest.mark.integration
def test_build_document_set_without_gitignore(repo: Path) -> None:
    settings = Settings(repo=repo, no_gitignore=True)

    document_set, _ = cli.build_document_set(settings, [])

    assert "build/out.txt" in [f.rel for f in document_set.files]
    assert "src/trace.log" in [f.rel for f in document_set.files]
    assert "docs/guide.md" not in [f.rel for f in document_set.files]


@pytest.mark.integration
def test_main_writes_markdown_documents(repo: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"

    code = cli.main([str(repo), "-o", str(out), "--format", "markdown", "--name", "demo"])

    assert code == ExitCode.OK
    (document,) = sorted(out.iterdir())
    assert document.name == "demo_01.md"
    text = document.read_text(encoding="utf-8")
    assert text.startswith("# demo\n\n## Structure\n```text\ndemo\n")
    assert "## src/app.py\nrepository=demo page=1\n```python\nprint('app')\n```\n" in text


@pytest.mark.integration
def test_main_reports_output_errors(repo: Path, tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch.object(
        cli,
        "write_documents",
        side_effect=OutputWriteError(path=tmp_path / "out", reason="disk full"),
    )

    code = cli.main([str(repo), "-o", str(tmp_path / "out")])

    assert code == ExitCode.OUTPUT_ERROR


@pytest.mark.integration
def test_main_applies_log_file(repo: Path, tmp_path: Path, mocker: MockerFixture) -> None:
    setup = mocker.patch.object(cli, "setup_logging")
    log_file = tmp_path / "run.log"

    code = cli.main([str(repo), "-o", str(tmp_path / "out"), "--log-file", str(log_file)])

    assert code == ExitCode.OK
    setup.assert_called_once_with(str(log_file))


@pytest.mark.integration
def test_build_document_set_reads_nested_gitignore(repo: Path) -> None:
    _write(repo, "src/.gitignore", "*.tmp\n")
    _write(repo, "src/cache.tmp", "stale\n")
    _write(repo, "notes.tmp", "todo\n")

    with_nested, manifest = cli.build_document_set(Settings(repo=repo), [])
    without, _ = cli.build_document_set(Settings(repo=repo, no_gitignore=True), [])

    assert "src/cache.tmp" not in [f.rel for f in with_nested.files]
    assert "notes.tmp" in [f.rel for f in with_nested.files]
    assert "cache.tmp" not in manifest
    assert "src/cache.tmp" in [f.rel for f in without.files]
