"""Base ABC for GitHub clients."""

from abc import ABC, abstractmethod
from typing import Any, Literal


class GitHubClientBase(ABC):
    """Base ABC for GitHub clients."""

    @abstractmethod
    def for_repository(self, owner: str, repo_name: str) -> "GitHubClientBase":
        """Return a client for another repository sharing the same credentials."""
        pass

    # Repository / user operations
    @abstractmethod
    async def get_authenticated_user(self) -> Any:
        """Get the user the token belongs to."""
        pass

    @abstractmethod
    async def create_fork(self) -> Any:
        """Fork the repository into the authenticated account."""
        pass

    # Pull Request CRUD
    @abstractmethod
    async def list_pull_requests(self, state: Literal["open", "closed", "all"] = "open", head: str | None = None, **kwargs: Any) -> list[Any]:
        """List pull requests for a repository."""
        pass

    @abstractmethod
    async def list_pull_request_commit_messages(self, pull_number: int) -> list[str]:
        """List the commit messages of a pull request, oldest first."""
        pass

    @abstractmethod
    async def create_pull_request(self, title: str, head: str, base: str, body: str | None = None, **kwargs: Any) -> Any:
        """Create a pull request for a repository."""
        pass

    @abstractmethod
    async def update_pull_request(self, pull_number: int, title: str | None = None, body: str | None = None, **kwargs: Any) -> Any:
        """Update a pull request for a repository."""
        pass

    # Pull Request metadata
    @abstractmethod
    async def add_labels_to_issue(self, issue_number: int, labels: list[str]) -> None:
        """Add labels to an issue (or pull request)."""
        pass

    @abstractmethod
    async def add_assignees_to_issue(self, issue_number: int, assignees: list[str]) -> None:
        """Add assignees to an issue (or pull request)."""
        pass

    @abstractmethod
    async def request_reviewers(self, pull_number: int, reviewers: list[str] | None = None, team_reviewers: list[str] | None = None) -> None:
        """Request user and/or team reviews on a pull request."""
        pass

    @abstractmethod
    async def enable_pull_request_auto_merge(self, pull_number: int, merge_method: str) -> None:
        """Enable auto-merge on a pull request."""
        pass

    # Git database operations
    @abstractmethod
    async def create_blob(self, content: str, encoding: Literal["base64", "utf-8"] = "base64") -> str:
        """Create a blob and return its SHA."""
        pass

    @abstractmethod
    async def create_tree(self, tree: list[dict[str, str]]) -> str:
        """Create a tree from a full entry list and return its SHA."""
        pass

    @abstractmethod
    async def create_commit(self, message: str, tree: str, parents: list[str]) -> str:
        """Create a commit object and return its SHA."""
        pass

    @abstractmethod
    async def create_ref_if_missing(self, ref: str, sha: str) -> bool:
        """Create a git reference; return False if it already existed."""
        pass

    @abstractmethod
    async def update_ref(self, ref: str, sha: str, force: bool = False) -> None:
        """Move a git reference to a new SHA."""
        pass
