"""Contains unit tests for the synchronize files module."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from repo_file_sync.synchronize.files import build_exclude_filter, delete_orphaned_files, sync_file_rule, sync_file_rules
from repo_file_sync.synchronize.models import FileRule


def write(path: Path, content: str) -> None:
    """Write a file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """A source checkout with a few files and directories."""
    source = tmp_path / "source"
    write(source / "README.md", "readme")
    write(source / "workflows" / "ci.yml", "ci")
    write(source / "workflows" / "release.yml", "release")
    write(source / "workflows" / "internal" / "secret.yml", "secret")
    write(source / "workflows" / ".hidden", "hidden")
    write(source / "templates" / "LICENSE", "Copyright {{ owner }}")
    return source


@pytest.fixture
def destination(tmp_path: Path) -> MagicMock:
    """A destination working copy that records staged paths."""
    destination_path = tmp_path / "destination"
    destination_path.mkdir()
    working_copy = MagicMock()
    working_copy.path = destination_path
    working_copy.add = AsyncMock()
    working_copy.restore_path = AsyncMock()
    return working_copy


def test_build_exclude_filter(source_dir: Path) -> None:
    """Excluded files and everything below excluded directories are rejected."""
    include = build_exclude_filter(FileRule(source="workflows", dest="workflows", exclude=["workflows/internal", "workflows/release.yml"]), source_dir)
    assert include(source_dir / "workflows" / "ci.yml")
    assert not include(source_dir / "workflows" / "release.yml")
    assert not include(source_dir / "workflows" / "internal" / "secret.yml")
    assert include(source_dir / "workflows" / "internal-notes.yml")


@pytest.mark.asyncio
async def test_sync_file_rule_copies_file(source_dir: Path, destination: MagicMock) -> None:
    """A file rule copies the file to its destination path and stages it."""
    applied = await sync_file_rule(FileRule(source="README.md", dest="docs/README.md"), source_dir, destination)

    assert applied is True
    assert (destination.path / "docs" / "README.md").read_text() == "readme"
    destination.add.assert_awaited_once_with("docs/README.md")


@pytest.mark.asyncio
async def test_sync_file_rule_copies_directory_with_excludes(source_dir: Path, destination: MagicMock) -> None:
    """A directory rule copies every file, hidden ones included, except the excluded ones."""
    rule = FileRule(source="workflows", dest=".github/workflows", exclude=["workflows/internal"])

    await sync_file_rule(rule, source_dir, destination)

    copied = destination.path / ".github" / "workflows"
    assert (copied / "ci.yml").read_text() == "ci"
    assert (copied / ".hidden").exists()
    assert not (copied / "internal").exists()


@pytest.mark.asyncio
async def test_sync_file_rule_missing_source_is_skipped(source_dir: Path, destination: MagicMock) -> None:
    """A missing source only warns."""
    assert await sync_file_rule(FileRule(source="missing.txt", dest="missing.txt"), source_dir, destination) is False
    destination.add.assert_not_awaited()


@pytest.mark.asyncio
async def test_sync_file_rule_respects_replace_false(source_dir: Path, destination: MagicMock) -> None:
    """Existing destination files are kept when replace is disabled."""
    write(destination.path / "README.md", "local")

    assert await sync_file_rule(FileRule(source="README.md", dest="README.md", replace=False), source_dir, destination) is False
    assert (destination.path / "README.md").read_text() == "local"


@pytest.mark.asyncio
async def test_sync_file_rule_renders_templates(source_dir: Path, destination: MagicMock) -> None:
    """Template rules are rendered with their context."""
    await sync_file_rule(FileRule(source="templates", dest="legal", template={"owner": "Octo Corp"}), source_dir, destination)
    assert (destination.path / "legal" / "LICENSE").read_text() == "Copyright Octo Corp"


@pytest.mark.asyncio
async def test_sync_file_rule_deletes_orphaned_files(source_dir: Path, destination: MagicMock) -> None:
    """Destination-only files are removed unless they are excluded."""
    write(destination.path / "workflows" / "old.yml", "old")
    write(destination.path / "workflows" / "internal" / "local.yml", "local")
    rule = FileRule(source="workflows", dest="workflows", delete_orphaned=True, exclude=["workflows/internal"])

    await sync_file_rule(rule, source_dir, destination)

    assert not (destination.path / "workflows" / "old.yml").exists()
    assert (destination.path / "workflows" / "internal" / "local.yml").read_text() == "local"
    assert (destination.path / "workflows" / "ci.yml").exists()


@pytest.mark.asyncio
async def test_sync_file_rule_keeps_orphans_by_default(source_dir: Path, destination: MagicMock) -> None:
    """Orphaned files are only deleted when asked to."""
    write(destination.path / "workflows" / "old.yml", "old")
    await sync_file_rule(FileRule(source="workflows", dest="workflows"), source_dir, destination)
    assert (destination.path / "workflows" / "old.yml").exists()


def test_delete_orphaned_files_returns_removed_paths(source_dir: Path, tmp_path: Path) -> None:
    """Removed paths are reported relative to the destination directory."""
    destination_path = tmp_path / "copy"
    write(destination_path / "ci.yml", "ci")
    write(destination_path / "nested" / "gone.yml", "gone")

    removed = delete_orphaned_files(source_dir / "workflows", destination_path, lambda path: True)

    assert removed == ["nested/gone.yml"]
    assert (destination_path / "ci.yml").exists()


@pytest.mark.asyncio
async def test_sync_file_rules_isolates_failures(source_dir: Path, destination: MagicMock) -> None:
    """An error in one rule does not stop the others."""
    destination.add = AsyncMock(side_effect=[RuntimeError("index.lock exists"), None])
    rules = [FileRule(source="README.md", dest="README.md"), FileRule(source="workflows", dest="workflows")]

    assert await sync_file_rules(rules, source_dir, destination) == 1
    assert destination.add.await_count == 2
    destination.restore_path.assert_awaited_once_with("README.md")
