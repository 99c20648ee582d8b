"""Low-level filesystem primitives used when syncing files into a working copy."""

import shutil
from pathlib import Path
from typing import Any, Callable

import structlog

from repo_file_sync.utils.templates import construct_jinja2_environment, render_template_file

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

PathFilter = Callable[[Path], bool]


def list_files(directory: Path) -> list[str]:
    """List every file below a directory as sorted, relative POSIX paths (hidden files included)."""
    if not directory.is_dir():
        return []
    files = [path.relative_to(directory).as_posix() for path in directory.rglob("*") if path.is_file() or path.is_symlink()]
    return sorted(files)


def copy_path(source: Path, destination: Path, include: PathFilter | None = None) -> list[Path]:
    """Recursively copy a file or directory, skipping paths rejected by `include`.

    Returns the destination paths that were written.
    """
    written: list[Path] = []
    if source.is_dir():
        for relative_path in list_files(source):
            source_file = source / relative_path
            if include is not None and not include(source_file):
                logger.debug("Excluding file", file=str(source_file))
                continue
            target = destination / relative_path
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source_file, target, follow_symlinks=False)
            written.append(target)
        return written

    if include is not None and not include(source):
        logger.debug("Excluding file", file=str(source))
        return written
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, destination, follow_symlinks=False)
    written.append(destination)
    return written


def render_path(source: Path, destination: Path, context: dict[str, Any], include: PathFilter | None = None) -> list[Path]:
    """Render a template file, or every file of a directory, into the destination."""
    environment = construct_jinja2_environment()
    pairs: list[tuple[Path, Path]]
    if source.is_dir():
        logger.debug("Rendering all files in directory", source=str(source), destination=str(destination))
        pairs = [(source / relative_path, destination / relative_path) for relative_path in list_files(source)]
    else:
        logger.debug("Rendering file", source=str(source), destination=str(destination))
        pairs = [(source, destination)]

    written: list[Path] = []
    for source_file, target in pairs:
        if include is not None and not include(source_file):
            logger.debug("Excluding file", file=str(source_file))
            continue
        content = render_template_file(source_file, context, environment)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        written.append(target)
    return written


def remove_path(path: Path) -> None:
    """Remove a file or directory if it exists."""
    logger.debug("Removing path", path=str(path))
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()
