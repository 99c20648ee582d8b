"""Models for configuration between CLI arguments and environment variables."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from repo_file_sync.synchronize.models import PullRequestMetadata
from repo_file_sync.utils.constants import DEFAULT_BRANCH_PREFIX, DEFAULT_CONFIG_PATH


class GitHubTokenType(str, Enum):
    """Enum for the kinds of GitHub token the action can authenticate with."""

    PAT = "pat"
    INSTALLATION = "installation"


class AutoMergeMethod(str, Enum):
    """Merge methods accepted by GitHub's auto-merge."""

    MERGE = "MERGE"
    REBASE = "REBASE"
    SQUASH = "SQUASH"


@dataclass
class SyncActionConfig:
    """Configuration class for the sync command."""

    debug: bool
    github_api_url: str
    github_token: str
    github_token_type: GitHubTokenType
    is_fine_grained: bool
    source_repository: str
    config_path: Path = Path(DEFAULT_CONFIG_PATH)
    branch_prefix: str = DEFAULT_BRANCH_PREFIX
    overwrite_existing_pr: bool = True
    pr_labels: list[str] = field(default_factory=list)
    pr_body: str | None = None
    assignees: list[str] = field(default_factory=list)
    reviewers: list[str] = field(default_factory=list)
    team_reviewers: list[str] = field(default_factory=list)
    auto_merge_method: str | None = None
    git_email: str | None = None
    git_username: str | None = None
    tmp_dir: Path = Path("tmp")
    fork: str | None = None

    @property
    def is_installation_token(self) -> bool:
        """Whether commits must be published through the API to be verified."""
        return self.github_token_type is GitHubTokenType.INSTALLATION

    @property
    def git_token_prefix(self) -> str:
        """Credential prefix used in authenticated git URLs."""
        if self.is_installation_token:
            return "x-access-token:"
        if self.is_fine_grained:
            return "oauth:"
        return ""

    @property
    def pull_request_metadata(self) -> PullRequestMetadata:
        """Metadata applied to every sync pull request."""
        return PullRequestMetadata(
            labels=list(self.pr_labels),
            assignees=list(self.assignees),
            reviewers=list(self.reviewers),
            team_reviewers=list(self.team_reviewers),
            auto_merge_method=self.auto_merge_method,
        )
