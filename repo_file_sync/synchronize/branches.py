"""Deterministic naming of the branch a destination pull request is opened from."""

import posixpath
import re
import time

import structlog

from repo_file_sync.synchronize.models import RepoRef
from repo_file_sync.utils.constants import SOURCE_REPO_NAME_PLACEHOLDER
from repo_file_sync.utils.github import split_repository

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def normalize_branch_name(branch: str) -> str:
    """Normalize separators and collapse `/.` segments so the name is a valid ref."""
    branch = branch.replace("\\", "/")
    return re.sub(r"/\.", "/", branch)


def reserve_pr_branch_name(
    branch_prefix: str,
    source_repository: str,
    repo: RepoRef,
    overwrite_existing_pr: bool = True,
    now: float | None = None,
) -> str:
    """Derive the pull request branch for a destination repository.

    With overwrite mode enabled the same branch (and therefore the same pull
    request) is reused by every run; otherwise a Unix timestamp suffix makes
    each run open a fresh branch.
    """
    _, source_repo_name = split_repository(source_repository)
    prefix = branch_prefix.replace(SOURCE_REPO_NAME_PLACEHOLDER, source_repo_name)
    branch = normalize_branch_name(posixpath.normpath(posixpath.join(prefix.replace("\\", "/"), repo.branch)))
    if not overwrite_existing_pr:
        timestamp = round(now if now is not None else time.time())
        branch = f"{branch}-{timestamp}"
    logger.debug("Locally reserved pull request branch", branch=branch, repo=repo.unique_key)
    return branch
