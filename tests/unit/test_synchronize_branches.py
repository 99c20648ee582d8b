"""Contains unit tests for the synchronize branches module."""

import pytest

from repo_file_sync.synchronize.branches import normalize_branch_name, reserve_pr_branch_name
from repo_file_sync.synchronize.models import RepoRef


@pytest.mark.parametrize(
    "branch,expected",
    [
        ("repo-sync/src/default", "repo-sync/src/default"),
        ("repo-sync\\src\\main", "repo-sync/src/main"),
        ("repo-sync/.hidden", "repo-sync/hidden"),
    ],
)
def test_normalize_branch_name(branch: str, expected: str) -> None:
    """Backslashes become slashes and `/.` segments are collapsed."""
    assert normalize_branch_name(branch) == expected


def test_reserve_pr_branch_name_default_prefix() -> None:
    """The source repository name replaces the placeholder and the target branch is appended."""
    repo = RepoRef.parse("owner/destination")
    branch = reserve_pr_branch_name("repo-sync/SOURCE_REPO_NAME", "octo/source", repo)
    assert branch == "repo-sync/source/default"


def test_reserve_pr_branch_name_target_branch() -> None:
    """Pull requests against a named branch get their own sync branch."""
    repo = RepoRef.parse("owner/destination@develop")
    branch = reserve_pr_branch_name("sync/", "octo/source", repo)
    assert branch == "sync/develop"


def test_reserve_pr_branch_name_normalizes_path() -> None:
    """Redundant separators and relative segments are normalized away."""
    repo = RepoRef.parse("owner/destination@main")
    branch = reserve_pr_branch_name("sync//SOURCE_REPO_NAME/./", "octo/source", repo)
    assert branch == "sync/source/main"


def test_reserve_pr_branch_name_without_overwrite_appends_timestamp() -> None:
    """Every run opens a new branch when existing pull requests are not overwritten."""
    repo = RepoRef.parse("owner/destination")
    branch = reserve_pr_branch_name("repo-sync/SOURCE_REPO_NAME", "octo/source", repo, overwrite_existing_pr=False, now=1700000000.6)
    assert branch == "repo-sync/source/default-1700000001"


def test_reserve_pr_branch_name_invalid_source_repository() -> None:
    """The source repository must be in owner/repo format."""
    with pytest.raises(ValueError):
        reserve_pr_branch_name("repo-sync/SOURCE_REPO_NAME", "not-a-repository", RepoRef.parse("owner/destination"))
