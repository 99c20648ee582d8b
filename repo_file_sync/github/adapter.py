"""GitHub client adapter for the githubkit library."""

from functools import wraps
from typing import Any, Awaitable, Callable, Literal, Self, TypeVar

import structlog
from githubkit import Response
from githubkit.exception import RequestFailed
from githubkit.versions.latest.models import GitCommit, GitTree, PullRequest, PullRequestSimple

from repo_file_sync.utils.constants import REFERENCE_ALREADY_EXISTS_MESSAGE
from repo_file_sync.utils.retry import retry_on_rate_limit

from .abc import GitHubClientBase
from .client import GitHubClient, get_github_token_client

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

PULL_REQUEST_ID_QUERY = """
query GetPullRequestId($owner: String!, $repo: String!, $pullRequestNumber: Int!) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $pullRequestNumber) {
      id
    }
  }
}
"""

ENABLE_AUTO_MERGE_MUTATION = """
mutation ($pullRequestId: ID!, $mergeMethod: PullRequestMergeMethod!) {
  enablePullRequestAutoMerge(input: {pullRequestId: $pullRequestId, mergeMethod: $mergeMethod}) {
    pullRequest {
      autoMergeRequest {
        enabledAt
        enabledBy {
          login
        }
      }
    }
  }
}
"""


def _response_message(exc: RequestFailed) -> str:
    try:
        error_data = exc.response.json()
    except Exception:
        return ""
    if isinstance(error_data, dict):
        return str(error_data.get("message", ""))
    return ""


def handle_github_422(func: F) -> F:
    """Decorator to handle GitHub 422 Unprocessable Entity errors, logging and raising with details."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except RequestFailed as exc:
            if exc.response.status_code == 422:
                try:
                    error_data = exc.response.json()
                except Exception:
                    error_data = {}
                message = error_data.get("message", "Unprocessable Entity")
                errors = error_data.get("errors", [])
                logger.error(
                    "GitHub 422 Unprocessable Entity",
                    function=func.__name__,
                    message=message,
                    errors=errors,
                    status_code=422,
                )
                raise ValueError(f"GitHub 422 error in {func.__name__}: {message} | errors: {errors}") from exc
            raise

    return wrapper  # type: ignore


class GitHubKitAdapter(GitHubClientBase):
    """GitHub client adapter for the githubkit library, scoped to one repository."""

    def __init__(self, client: GitHubClient, owner: str, repo_name: str) -> None:
        """Initialize the GitHub client adapter with an already-initialized client."""
        self.client = client
        self.owner = owner
        self.repo_name = repo_name

    def _omit_null_parameters(self, **kwargs: Any) -> dict[str, Any]:
        """Omit parameters that are None."""
        return {k: v for k, v in kwargs.items() if v is not None}

    @classmethod
    async def create(cls, owner: str, repo_name: str, github_token: str, github_api_url: str = "https://api.github.com") -> Self:
        """Create a new GitHub client adapter for a destination repository.

        Args:
            owner: Repository owner
            repo_name: Repository name
            github_token: PAT or installation token
            github_api_url: GitHub API URL (defaults to https://api.github.com)

        Returns:
            Configured GitHubKitAdapter instance
        """
        logger.info(
            "Creating client for GitHub instance and repository",
            github_api_url=github_api_url,
            owner=owner,
            repo_name=repo_name,
        )
        client = await get_github_token_client(github_token, github_api_url)
        return cls(client, owner, repo_name)

    def for_repository(self, owner: str, repo_name: str) -> Self:
        """Return an adapter for another repository sharing the same authenticated client."""
        return type(self)(self.client, owner, repo_name)

    # Repository / user operations
    @retry_on_rate_limit()
    async def get_authenticated_user(self) -> Any:
        """Get the user the token belongs to."""
        response = await self.client.rest.users.async_get_authenticated()
        return response.parsed_data

    @handle_github_422
    @retry_on_rate_limit()
    async def create_fork(self) -> Any:
        """Fork the repository into the authenticated account."""
        logger.debug("Creating fork", owner=self.owner, repo_name=self.repo_name)
        response = await self.client.rest.repos.async_create_fork(owner=self.owner, repo=self.repo_name)
        return response.parsed_data

    # Pull Request CRUD
    @retry_on_rate_limit()
    async def list_pull_requests(
        self, state: Literal["open", "closed", "all"] = "open", head: str | None = None, per_page: int = 100, **kwargs: Any
    ) -> list[PullRequestSimple]:
        """List pull requests for a repository, handling pagination."""
        params = self._omit_null_parameters(head=head, **kwargs)
        all_pull_requests: list[PullRequestSimple] = []
        page: int = 1
        while True:
            response: Response[list[PullRequestSimple]] = await self.client.rest.pulls.async_list(
                owner=self.owner,
                repo=self.repo_name,
                state=state,
                per_page=per_page,
                page=page,
                **params,
            )
            pull_requests: list[PullRequestSimple] = response.parsed_data
            if not pull_requests:
                break
            all_pull_requests.extend(pull_requests)
            if len(pull_requests) < per_page:
                break
            page += 1
        return all_pull_requests

    @retry_on_rate_limit()
    async def list_pull_request_commit_messages(self, pull_number: int, per_page: int = 100) -> list[str]:
        """List the commit messages of a pull request, oldest first."""
        messages: list[str] = []
        page: int = 1
        while True:
            response = await self.client.rest.pulls.async_list_commits(
                owner=self.owner, repo=self.repo_name, pull_number=pull_number, per_page=per_page, page=page
            )
            # Use raw JSON to avoid Pydantic validation issues with commit verification field
            commits = response.json()
            if not commits:
                break
            messages.extend(commit["commit"]["message"] for commit in commits)
            if len(commits) < per_page:
                break
            page += 1
        return messages

    @handle_github_422
    @retry_on_rate_limit()
    async def create_pull_request(self, title: str, head: str, base: str, body: str | None = None, **kwargs: Any) -> PullRequest:
        """Create a pull request for a repository."""
        params = self._omit_null_parameters(title=title, head=head, base=base, body=body, **kwargs)
        response: Response[PullRequest] = await self.client.rest.pulls.async_create(
            owner=self.owner,
            repo=self.repo_name,
            **params,
        )
        return response.parsed_data

    @handle_github_422
    @retry_on_rate_limit()
    async def update_pull_request(self, pull_number: int, title: str | None = None, body: str | None = None, **kwargs: Any) -> PullRequest:
        """Update a pull request for a repository."""
        params = self._omit_null_parameters(title=title, body=body, **kwargs)
        response: Response[PullRequest] = await self.client.rest.pulls.async_update(
            owner=self.owner,
            repo=self.repo_name,
            pull_number=pull_number,
            **params,
        )
        return response.parsed_data

    # Pull Request metadata
    @handle_github_422
    @retry_on_rate_limit()
    async def add_labels_to_issue(self, issue_number: int, labels: list[str]) -> None:
        """Add labels to an issue (or pull request - GitHub considers them the same for label purposes)."""
        await self.client.rest.issues.async_add_labels(owner=self.owner, repo=self.repo_name, issue_number=issue_number, labels=labels)

    @handle_github_422
    @retry_on_rate_limit()
    async def add_assignees_to_issue(self, issue_number: int, assignees: list[str]) -> None:
        """Add assignees to an issue (or pull request)."""
        await self.client.rest.issues.async_add_assignees(owner=self.owner, repo=self.repo_name, issue_number=issue_number, assignees=assignees)

    @handle_github_422
    @retry_on_rate_limit()
    async def request_reviewers(self, pull_number: int, reviewers: list[str] | None = None, team_reviewers: list[str] | None = None) -> None:
        """Request user and/or team reviews on a pull request."""
        params = self._omit_null_parameters(reviewers=reviewers, team_reviewers=team_reviewers)
        await self.client.rest.pulls.async_request_reviewers(owner=self.owner, repo=self.repo_name, pull_number=pull_number, **params)

    @retry_on_rate_limit()
    async def enable_pull_request_auto_merge(self, pull_number: int, merge_method: str) -> None:
        """Enable auto-merge on a pull request through the GraphQL API."""
        data = await self.client.async_graphql(
            PULL_REQUEST_ID_QUERY,
            variables={"owner": self.owner, "repo": self.repo_name, "pullRequestNumber": pull_number},
        )
        pull_request_id = data["repository"]["pullRequest"]["id"]
        logger.debug("Resolved pull request node ID", pull_number=pull_number, pull_request_id=pull_request_id)
        result = await self.client.async_graphql(
            ENABLE_AUTO_MERGE_MUTATION,
            variables={"pullRequestId": pull_request_id, "mergeMethod": merge_method},
        )
        logger.debug("Enabled pull request auto-merge", pull_number=pull_number, result=result)

    # Git database operations
    @handle_github_422
    @retry_on_rate_limit()
    async def create_blob(self, content: str, encoding: Literal["base64", "utf-8"] = "base64") -> str:
        """Create a blob and return its SHA."""
        response = await self.client.rest.git.async_create_blob(owner=self.owner, repo=self.repo_name, content=content, encoding=encoding)
        return response.parsed_data.sha

    @retry_on_rate_limit()
    async def create_tree(self, tree: list[dict[str, str]]) -> str:
        """Create a tree from a full entry list and return its SHA."""
        try:
            response: Response[GitTree] = await self.client.rest.git.async_create_tree(owner=self.owner, repo=self.repo_name, tree=tree)  # type: ignore[arg-type]
        except RequestFailed as exc:
            raise RuntimeError(f"Cannot create a new GitHub Tree: {_response_message(exc) or exc}") from exc
        return response.parsed_data.sha

    @handle_github_422
    @retry_on_rate_limit()
    async def create_commit(self, message: str, tree: str, parents: list[str]) -> str:
        """Create a commit object and return its SHA."""
        response: Response[GitCommit] = await self.client.rest.git.async_create_commit(
            owner=self.owner, repo=self.repo_name, message=message, tree=tree, parents=parents
        )
        return response.parsed_data.sha

    @retry_on_rate_limit()
    async def create_ref_if_missing(self, ref: str, sha: str) -> bool:
        """Create a git reference; return False if it already existed.

        Any other failure propagates.
        """
        try:
            await self.client.rest.git.async_create_ref(owner=self.owner, repo=self.repo_name, ref=ref, sha=sha)
        except RequestFailed as exc:
            if exc.response.status_code == 422 and _response_message(exc) == REFERENCE_ALREADY_EXISTS_MESSAGE:
                logger.debug("Reference already exists", ref=ref)
                return False
            raise
        logger.info("Created reference", ref=ref, sha=sha)
        return True

    @handle_github_422
    @retry_on_rate_limit()
    async def update_ref(self, ref: str, sha: str, force: bool = False) -> None:
        """Move a git reference to a new SHA."""
        await self.client.rest.git.async_update_ref(owner=self.owner, repo=self.repo_name, ref=ref, sha=sha, force=force)
