"""Reads the sync configuration YAML file and maps it to sync targets.

The configuration has one top-level key per destination repository, whose
value is a list of file entries, plus an optional `group` key holding one
or more `{repos, files}` groups that apply the same files to several
repositories. File entries are either a path string or a mapping with
`source`, `dest`, `template`, `replace`, `deleteOrphaned` and `exclude`.
Errors are collected for the whole file and raised together.
"""

import posixpath
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from repo_file_sync.processing.exceptions import SyncConfigProcessingError
from repo_file_sync.synchronize.models import FileRule, RepoRef, SyncTarget
from repo_file_sync.utils.yaml import load_yaml_file

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

GROUP_KEY = "group"

FIELD_MAPPING = {"deleteOrphaned": "delete_orphaned"}
"""YAML file entry keys that differ from FileRule field names."""


class SyncConfigProcessor:
    """Loads and validates sync targets from a sync configuration file."""

    def __init__(self, raise_on_error: bool = True) -> None:
        """Initialize the processor.

        Args:
            raise_on_error (bool): Whether to raise a SyncConfigProcessingError on validation errors.
        """
        self.raise_on_error = raise_on_error

    def load_targets(self, path: Path) -> list[SyncTarget]:
        """Load the sync targets of a configuration file, merging targets of the same repository and branch."""
        errors: list[dict[str, Any]] = []
        data = self._load_yaml_file(path, errors)
        targets: dict[str, SyncTarget] = {}
        if data is not None:
            for key, value in data.items():
                if key == GROUP_KEY:
                    groups = value if isinstance(value, list) else [value]
                    for group_index, group in enumerate(groups):
                        self._process_group(group, group_index, targets, errors)
                else:
                    self._add_target(str(key), value, targets, errors, location={"repo": str(key)})

        if errors:
            logger.error("One or more errors occurred during sync configuration processing", path=str(path), errors=errors)
            if self.raise_on_error:
                raise SyncConfigProcessingError(errors)
        logger.info("Loaded sync configuration", path=str(path), repository_count=len(targets))
        return list(targets.values())

    def _load_yaml_file(self, path: Path, errors: list[dict[str, Any]]) -> dict[str, Any] | None:
        try:
            data = load_yaml_file(path)
        except Exception as e:
            logger.error("Failed to parse sync configuration file", path=str(path), error=str(e))
            errors.append({"file": str(path), "error": str(e)})
            return None
        if not isinstance(data, dict):
            logger.error("Sync configuration file is not a dictionary", path=str(path))
            errors.append({"file": str(path), "error": "Sync configuration file is not a dictionary"})
            return None
        return data

    def _process_group(self, group: Any, group_index: int, targets: dict[str, SyncTarget], errors: list[dict[str, Any]]) -> None:
        if not isinstance(group, dict):
            errors.append({"group_index": group_index, "error": "Group is not a dictionary"})
            return
        repos = group.get("repos")
        if isinstance(repos, str):
            repos = [name.strip() for name in repos.split("\n") if name.strip()]
        if not isinstance(repos, list) or not repos:
            errors.append({"group_index": group_index, "error": "Group has no 'repos'"})
            return
        for name in repos:
            self._add_target(str(name), group.get("files"), targets, errors, location={"group_index": group_index, "repo": str(name)})

    def _add_target(
        self,
        name: str,
        file_entries: Any,
        targets: dict[str, SyncTarget],
        errors: list[dict[str, Any]],
        location: dict[str, Any],
    ) -> None:
        try:
            repo = RepoRef.parse(name)
        except ValueError as e:
            errors.append({**location, "error": str(e)})
            return
        if not isinstance(file_entries, list):
            errors.append({**location, "error": "File entries must be a list"})
            return

        files = self._parse_files(file_entries, errors, location)
        existing = targets.get(repo.unique_key)
        if existing is not None:
            logger.debug("Merging file rules into existing target", repo=repo.unique_key, file_count=len(files))
            existing.files.extend(files)
            return
        targets[repo.unique_key] = SyncTarget(repo=repo, files=files)

    def _parse_files(self, file_entries: list[Any], errors: list[dict[str, Any]], location: dict[str, Any]) -> list[FileRule]:
        files: list[FileRule] = []
        for file_index, entry in enumerate(file_entries):
            if isinstance(entry, str):
                entry = {"source": entry}
            if not isinstance(entry, dict) or not entry.get("source"):
                logger.warning("No source files specified, skipping file entry", file_index=file_index, **location)
                continue
            mapped = {FIELD_MAPPING.get(key, key): value for key, value in entry.items()}
            extra_fields = set(mapped) - set(FileRule.model_fields)
            if extra_fields:
                logger.warning("Extra fields in file entry will be ignored", file_index=file_index, extra_fields=sorted(extra_fields), **location)
            filtered = {key: value for key, value in mapped.items() if key in FileRule.model_fields}
            filtered["dest"] = filtered.get("dest") or filtered["source"]
            filtered["exclude"] = parse_exclude(filtered.get("exclude"), filtered["source"])
            try:
                files.append(FileRule(**filtered))
            except ValidationError as ve:
                logger.error("Validation error for file entry", file_index=file_index, error=ve.errors(), **location)
                errors.append({**location, "file_index": file_index, "error": ve.errors()})
        return files


def parse_exclude(text: Any, source: str) -> list[str]:
    """Split a newline-separated exclude list and join every entry with the rule's source."""
    if not isinstance(text, str):
        return []
    return [posixpath.join(source, line.strip()) for line in text.split("\n") if line.strip()]
