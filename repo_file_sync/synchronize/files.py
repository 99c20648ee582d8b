"""Applies file sync rules from a source checkout to a destination working copy."""

import posixpath
from pathlib import Path

import structlog

from repo_file_sync.git.working_copy import GitRepository
from repo_file_sync.synchronize.models import FileRule
from repo_file_sync.utils.files import PathFilter, copy_path, list_files, remove_path, render_path

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def build_exclude_filter(rule: FileRule, source_dir: Path) -> PathFilter:
    """Build a filter rejecting source paths listed in the rule's excludes.

    A path is excluded when it is an exclude entry itself or lives below an
    excluded directory. Exclude entries are relative to the source checkout.
    """
    excluded = {posixpath.normpath(path) for path in rule.exclude}

    def include(path: Path) -> bool:
        try:
            relative = path.relative_to(source_dir).as_posix()
        except ValueError:
            relative = path.as_posix()
        if relative in excluded:
            return False
        return not any(relative.startswith(f"{entry}/") for entry in excluded)

    return include


def delete_orphaned_files(source_path: Path, destination_path: Path, include: PathFilter) -> list[str]:
    """Delete destination files that no longer exist in the source directory.

    Excluded paths are kept even when the source does not have them.
    """
    source_files = {relative_path for relative_path in list_files(source_path) if include(source_path / relative_path)}
    removed: list[str] = []
    for relative_path in list_files(destination_path):
        if relative_path in source_files:
            continue
        if not include(source_path / relative_path):
            logger.debug("Keeping excluded orphaned file", file=relative_path)
            continue
        logger.debug("Removing orphaned file", file=relative_path)
        remove_path(destination_path / relative_path)
        removed.append(relative_path)
    return removed


async def sync_file_rule(rule: FileRule, source_dir: Path, destination: GitRepository) -> bool:
    """Apply one file rule to the destination working copy and stage the result.

    Returns False when the rule was skipped because of missing local input.
    """
    source_path = source_dir / rule.source
    destination_path = destination.path / rule.dest

    if not source_path.exists():
        logger.warning("Source not found, skipping file rule", source=rule.source)
        return False

    if destination_path.exists() and not rule.replace:
        logger.warning("File(s) already exist(s) in destination and 'replace' option is set to false", dest=rule.dest)
        return False

    is_directory = source_path.is_dir()
    include = build_exclude_filter(rule, source_dir)
    if is_directory:
        logger.info("Source is directory", source=rule.source)

    if rule.is_template:
        render_path(source_path, destination_path, rule.template_context, include)
    else:
        logger.debug("Copying", source=str(source_path), destination=str(destination_path))
        copy_path(source_path, destination_path, include)

    if is_directory and rule.delete_orphaned:
        removed = delete_orphaned_files(source_path, destination_path, include)
        if removed:
            logger.info("Removed orphaned files", dest=rule.dest, removed=removed)

    await destination.add(rule.dest)
    return True


async def sync_file_rules(rules: list[FileRule], source_dir: Path, destination: GitRepository) -> int:
    """Apply every file rule of a target, isolating failures to the rule that raised.

    A failing rule's destination path is restored to HEAD so that partial
    writes are neither committed nor carried into later commits.

    Returns the number of rules that were applied and staged.
    """
    applied = 0
    for rule in rules:
        try:
            if await sync_file_rule(rule, source_dir, destination):
                applied += 1
        except Exception as exc:
            logger.warning("Failed to apply file rule", source=rule.source, dest=rule.dest, error=str(exc), error_type=type(exc).__name__)
            await destination.restore_path(rule.dest)
    return applied
