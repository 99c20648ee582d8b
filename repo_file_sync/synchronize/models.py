"""Data models shared by the sync engine."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from repo_file_sync.utils.constants import DEFAULT_BRANCH_SENTINEL, DEFAULT_GITHUB_HOST


class SyncDecision(str, Enum):
    """Outcome of replaying a single source commit into a destination."""

    COMMIT = "commit"
    NOOP = "noop"


class RepoRef(BaseModel):
    """A destination repository together with the branch pull requests target."""

    model_config = ConfigDict(frozen=True)

    host: str = DEFAULT_GITHUB_HOST
    owner: str
    name: str
    branch: str = DEFAULT_BRANCH_SENTINEL

    @classmethod
    def parse(cls, text: str) -> "RepoRef":
        """Parse `owner/name`, `owner/name@branch` or `https://host/owner/name[@branch]`."""
        value = text.strip()
        host = DEFAULT_GITHUB_HOST
        if value.startswith("http"):
            url = urlparse(value)
            host = url.netloc
            value = url.path.lstrip("/")
        repository, _, branch = value.partition("@")
        parts = repository.strip("/").split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"Repository '{text}' must be in the format 'owner/name[@branch]'")
        owner, name = parts
        if name.endswith(".git"):
            name = name[: -len(".git")]
        return cls(host=host, owner=owner, name=name, branch=branch or DEFAULT_BRANCH_SENTINEL)

    @property
    def full_name(self) -> str:
        """Host-qualified name, e.g. `github.com/owner/name`."""
        return f"{self.host}/{self.owner}/{self.name}"

    @property
    def unique_key(self) -> str:
        """Disambiguates several target branches of the same repository."""
        return f"{self.full_name}@{self.branch}"

    @property
    def slug(self) -> str:
        """The `owner/name` form used by the GitHub API."""
        return f"{self.owner}/{self.name}"

    @property
    def uses_default_branch(self) -> bool:
        """Whether pull requests target the repository's default branch."""
        return self.branch == DEFAULT_BRANCH_SENTINEL


class FileRule(BaseModel):
    """One file or directory that is kept in sync."""

    model_config = ConfigDict(frozen=True)

    source: str
    dest: str
    template: bool | dict[str, Any] = False
    replace: bool = True
    delete_orphaned: bool = False
    exclude: list[str] = Field(default_factory=list)

    @property
    def is_template(self) -> bool:
        """Whether files of this rule are rendered as templates instead of copied."""
        return self.template is not False

    @property
    def template_context(self) -> dict[str, Any]:
        """Render context for template rules."""
        return self.template if isinstance(self.template, dict) else {}


class SyncTarget(BaseModel):
    """A destination repository and the file rules synced into it."""

    repo: RepoRef
    files: list[FileRule]


class PushEventCommit(BaseModel):
    """A commit as delivered in a push event payload."""

    id: str
    message: str


class PushEventRepository(BaseModel):
    """The source repository as described in an event payload."""

    html_url: str | None = None


class PushEvent(BaseModel):
    """The subset of the triggering event payload the sync engine relies on."""

    model_config = ConfigDict(extra="ignore")

    forced: bool = False
    before: str | None = None
    commits: list[PushEventCommit] | None = None
    repository: PushEventRepository = Field(default_factory=PushEventRepository)

    @property
    def commit_count(self) -> int:
        """Number of commits delivered with the event (zero for manual runs)."""
        return len(self.commits) if self.commits else 0

    @property
    def commit_messages(self) -> list[str]:
        """Messages of the delivered commits, oldest first."""
        return [commit.message for commit in self.commits or []]


@dataclass(frozen=True)
class SourceCommit:
    """One source repository commit to replay."""

    sha: str
    message: str


@dataclass(frozen=True)
class GitTreeEntry:
    """One entry of a recursive git tree listing."""

    mode: str
    type: str
    sha: str
    path: str

    def as_api_tree_item(self) -> dict[str, str]:
        """Shape of the entry expected by the create-tree API."""
        return {"path": self.path, "mode": self.mode, "type": self.type, "sha": self.sha}


@dataclass(frozen=True)
class ExistingPullRequest:
    """An open pull request representing an ongoing sync relationship."""

    number: int
    html_url: str
    body: str
    base_sha: str
    commit_messages: list[str] = field(default_factory=list)

    @property
    def commit_count(self) -> int:
        """Number of commits the pull request had when it was found."""
        return len(self.commit_messages)


@dataclass(frozen=True)
class SyncSession:
    """State of one destination repository for the duration of its sync.

    Sessions are never mutated; operations that change state return an
    updated copy created with `dataclasses.replace`.
    """

    repo: RepoRef
    working_dir: Path
    git_url: str
    base_branch: str
    pr_branch: str = ""
    last_commit_sha: str = ""
    existing_pr: ExistingPullRequest | None = None


@dataclass(frozen=True)
class ReplayedCommit:
    """A destination commit created while replaying a source commit."""

    source: SourceCommit
    message: str


@dataclass(frozen=True)
class WorkflowRunContext:
    """Where the sync runs from: the source repository and the triggering workflow run."""

    source_repository: str
    server_url: str = "https://github.com"
    run_id: str = "0"

    @property
    def source_url(self) -> str:
        """Web URL of the source repository."""
        return f"{self.server_url.rstrip('/')}/{self.source_repository}"

    @property
    def run_url(self) -> str:
        """Web URL of the triggering workflow run."""
        return f"{self.source_url}/actions/runs/{self.run_id}"


@dataclass(frozen=True)
class PullRequestMetadata:
    """Metadata applied to sync pull requests after they are created or updated."""

    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    reviewers: list[str] = field(default_factory=list)
    team_reviewers: list[str] = field(default_factory=list)
    auto_merge_method: str | None = None
