"""Contains unit tests for the githubkit adapter."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from githubkit.exception import RequestFailed

from repo_file_sync.github.adapter import GitHubKitAdapter


def request_failed(status_code: int, payload: Any = None) -> RequestFailed:
    response = MagicMock()
    response.status_code = status_code
    response.headers = {}
    response.json.return_value = payload if payload is not None else {}
    exc = RequestFailed.__new__(RequestFailed)
    exc.request = MagicMock()
    exc.response = response
    return exc


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def adapter(client: MagicMock) -> GitHubKitAdapter:
    return GitHubKitAdapter(client, "owner", "repo")


def test_for_repository_shares_client(adapter: GitHubKitAdapter, client: MagicMock) -> None:
    """Scoping to another repository keeps the authenticated client."""
    other = adapter.for_repository("org", "dest")

    assert isinstance(other, GitHubKitAdapter)
    assert other.client is client
    assert (other.owner, other.repo_name) == ("org", "dest")


@pytest.mark.asyncio
async def test_list_pull_requests_paginates(adapter: GitHubKitAdapter, client: MagicMock) -> None:
    """Pages are requested until a short page is returned."""
    client.rest.pulls.async_list = AsyncMock(
        side_effect=[MagicMock(parsed_data=["pr1", "pr2"]), MagicMock(parsed_data=["pr3"])],
    )

    pull_requests = await adapter.list_pull_requests(head="owner:branch", per_page=2)

    assert pull_requests == ["pr1", "pr2", "pr3"]
    first_call = client.rest.pulls.async_list.await_args_list[0]
    assert first_call.kwargs["head"] == "owner:branch"
    assert first_call.kwargs["state"] == "open"
    assert client.rest.pulls.async_list.await_args_list[1].kwargs["page"] == 2


@pytest.mark.asyncio
async def test_list_pull_request_commit_messages(adapter: GitHubKitAdapter, client: MagicMock) -> None:
    """Commit messages are read from the raw JSON of every page."""
    first_page = MagicMock()
    first_page.json.return_value = [{"commit": {"message": "one"}}, {"commit": {"message": "two\n\nbody"}}]
    second_page = MagicMock()
    second_page.json.return_value = []
    client.rest.pulls.async_list_commits = AsyncMock(side_effect=[first_page, second_page])

    messages = await adapter.list_pull_request_commit_messages(5, per_page=2)

    assert messages == ["one", "two\n\nbody"]
    assert client.rest.pulls.async_list_commits.await_count == 2


@pytest.mark.asyncio
async def test_create_pull_request_omits_missing_body(adapter: GitHubKitAdapter, client: MagicMock) -> None:
    """None parameters are not sent to the API."""
    client.rest.pulls.async_create = AsyncMock(return_value=MagicMock(parsed_data="pr"))

    assert await adapter.create_pull_request(title="t", head="owner:branch", base="main") == "pr"

    assert client.rest.pulls.async_create.await_args.kwargs == {
        "owner": "owner",
        "repo": "repo",
        "title": "t",
        "head": "owner:branch",
        "base": "main",
    }


@pytest.mark.asyncio
async def test_unprocessable_entity_becomes_value_error(adapter: GitHubKitAdapter, client: MagicMock) -> None:
    """422 responses are raised with GitHub's message."""
    client.rest.pulls.async_create = AsyncMock(side_effect=request_failed(422, {"message": "Validation Failed", "errors": [{"code": "custom"}]}))

    with pytest.raises(ValueError, match="Validation Failed"):
        await adapter.create_pull_request(title="t", head="owner:branch", base="main")


@pytest.mark.asyncio
async def test_other_request_failures_propagate(adapter: GitHubKitAdapter, client: MagicMock) -> None:
    """Failures other than 422 and rate limits are not wrapped."""
    client.rest.issues.async_add_labels = AsyncMock(side_effect=request_failed(404))

    with pytest.raises(RequestFailed):
        await adapter.add_labels_to_issue(1, ["sync"])


@pytest.mark.asyncio
async def test_create_ref_if_missing_creates(adapter: GitHubKitAdapter, client: MagicMock) -> None:
    """A new reference is created."""
    client.rest.git.async_create_ref = AsyncMock()

    assert await adapter.create_ref_if_missing("refs/heads/branch", "abc") is True


@pytest.mark.asyncio
async def test_create_ref_if_missing_existing(adapter: GitHubKitAdapter, client: MagicMock) -> None:
    """An existing reference is not an error."""
    client.rest.git.async_create_ref = AsyncMock(side_effect=request_failed(422, {"message": "Reference already exists"}))

    assert await adapter.create_ref_if_missing("refs/heads/branch", "abc") is False


@pytest.mark.asyncio
async def test_create_ref_if_missing_other_error(adapter: GitHubKitAdapter, client: MagicMock) -> None:
    """Other reference failures propagate."""
    client.rest.git.async_create_ref = AsyncMock(side_effect=request_failed(422, {"message": "Object does not exist"}))

    with pytest.raises(RequestFailed):
        await adapter.create_ref_if_missing("refs/heads/branch", "abc")


@pytest.mark.asyncio
async def test_create_tree_failure_is_wrapped(adapter: GitHubKitAdapter, client: MagicMock) -> None:
    """Tree creation failures name the operation."""
    client.rest.git.async_create_tree = AsyncMock(side_effect=request_failed(422, {"message": "tree.sha is invalid"}))

    with pytest.raises(RuntimeError, match="Cannot create a new GitHub Tree: tree.sha is invalid"):
        await adapter.create_tree([{"path": "a", "mode": "100644", "type": "blob", "sha": "x"}])


@pytest.mark.asyncio
async def test_enable_pull_request_auto_merge(adapter: GitHubKitAdapter, client: MagicMock) -> None:
    """Auto-merge resolves the pull request node ID before the mutation."""
    client.async_graphql = AsyncMock(side_effect=[{"repository": {"pullRequest": {"id": "PR_node"}}}, {}])

    await adapter.enable_pull_request_auto_merge(7, "SQUASH")

    mutation_call = client.async_graphql.await_args_list[1]
    assert mutation_call.kwargs["variables"] == {"pullRequestId": "PR_node", "mergeMethod": "SQUASH"}


@pytest.mark.asyncio
async def test_git_database_operations(adapter: GitHubKitAdapter, client: MagicMock) -> None:
    """Blob and commit creation return the new SHAs."""
    client.rest.git.async_create_blob = AsyncMock(return_value=MagicMock(parsed_data=MagicMock(sha="blob-sha")))
    client.rest.git.async_create_commit = AsyncMock(return_value=MagicMock(parsed_data=MagicMock(sha="commit-sha")))
    client.rest.git.async_update_ref = AsyncMock()

    assert await adapter.create_blob("aGk=") == "blob-sha"
    assert await adapter.create_commit("message", "tree-sha", ["parent"]) == "commit-sha"
    await adapter.update_ref("heads/branch", "commit-sha", force=True)

    assert client.rest.git.async_update_ref.await_args.kwargs["force"] is True
