"""Publishes replayed destination commits to the remote repository."""

import asyncio
import base64
from abc import ABC, abstractmethod
from dataclasses import replace

import structlog

from repo_file_sync.configuration.models import SyncActionConfig
from repo_file_sync.git.working_copy import GitCommandError, GitRepository
from repo_file_sync.github.abc import GitHubClientBase
from repo_file_sync.synchronize.models import GitTreeEntry, SyncSession
from repo_file_sync.utils.constants import FORK_REMOTE_NAME

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class Publisher(ABC):
    """Publishes the local commits of a session to the pull request branch."""

    @abstractmethod
    async def publish(self, session: SyncSession, destination: GitRepository) -> SyncSession:
        """Publish pending commits and return the session with `last_commit_sha` advanced."""
        pass


class LocalGitPublisher(Publisher):
    """Force-pushes the working branch with git."""

    def __init__(self, fork: str | None = None) -> None:
        """Initialize the publisher, optionally pushing to a fork instead of the destination."""
        self.fork = fork

    async def publish(self, session: SyncSession, destination: GitRepository) -> SyncSession:
        if self.fork:
            logger.info("Pushing to fork", fork=self.fork, branch=session.pr_branch)
            await destination.push("-u", FORK_REMOTE_NAME, session.pr_branch, "--force")
        else:
            logger.info("Pushing to destination repository", branch=session.pr_branch)
            await destination.push("--force", session.git_url, f"HEAD:refs/heads/{session.pr_branch}")
        return replace(session, last_commit_sha=await destination.rev_parse("HEAD"))


class VerifiedCommitPublisher(Publisher):
    """Recreates local commits through the Git database API so GitHub signs them.

    Used with installation tokens, where commits created through the API are
    shown as verified while pushed commits are not.
    """

    def __init__(self, github_adapter: GitHubClientBase) -> None:
        """Initialize the publisher with an adapter scoped to the destination repository."""
        self.github_adapter = github_adapter

    async def _parent_blob_shas(self, destination: GitRepository, commit_sha: str) -> set[str]:
        try:
            parent_tree = await destination.get_tree(f"{commit_sha}~1")
        except GitCommandError as exc:
            logger.debug("Parent tree unavailable, uploading every blob", commit_sha=commit_sha, error=str(exc))
            return set()
        return {entry.sha for entry in parent_tree if entry.type == "blob"}

    async def _upload_blob(self, destination: GitRepository, entry: GitTreeEntry) -> tuple[str, str]:
        content = base64.b64encode(await destination.read_blob(entry.sha)).decode("ascii")
        remote_sha = await self.github_adapter.create_blob(content, encoding="base64")
        logger.debug("Uploaded blob", path=entry.path, sha=entry.sha, remote_sha=remote_sha)
        return entry.sha, remote_sha

    async def _publish_commit(self, destination: GitRepository, commit_sha: str, parent_sha: str) -> str:
        tree = await destination.get_tree(commit_sha)
        parent_blob_shas = await self._parent_blob_shas(destination, commit_sha)

        to_upload: dict[str, GitTreeEntry] = {}
        for entry in tree:
            if entry.type == "blob" and entry.sha not in parent_blob_shas and entry.sha not in to_upload:
                to_upload[entry.sha] = entry
        logger.debug("Uploading changed blobs", commit_sha=commit_sha, blob_count=len(to_upload))
        uploaded = dict(await asyncio.gather(*(self._upload_blob(destination, entry) for entry in to_upload.values())))

        tree_items = []
        for entry in tree:
            item = entry.as_api_tree_item()
            item["sha"] = uploaded.get(entry.sha, entry.sha)
            tree_items.append(item)
        tree_sha = await self.github_adapter.create_tree(tree_items)

        message = await destination.get_commit_message(commit_sha)
        new_sha = await self.github_adapter.create_commit(message=message, tree=tree_sha, parents=[parent_sha])
        logger.info("Created verified commit", local_sha=commit_sha, remote_sha=new_sha, parent_sha=parent_sha)
        return new_sha

    async def publish(self, session: SyncSession, destination: GitRepository) -> SyncSession:
        pending = await destination.list_commits(f"{session.last_commit_sha}..HEAD")
        if not pending:
            logger.info("No local commits to publish", last_commit_sha=session.last_commit_sha)
            return session

        logger.info("Publishing commits through the API", commit_count=len(pending), branch=session.pr_branch)
        await self.github_adapter.create_ref_if_missing(f"refs/heads/{session.pr_branch}", session.last_commit_sha)

        last_commit_sha = session.last_commit_sha
        for commit_sha in pending:
            last_commit_sha = await self._publish_commit(destination, commit_sha, last_commit_sha)

        await self.github_adapter.update_ref(f"heads/{session.pr_branch}", last_commit_sha, force=True)
        return replace(session, last_commit_sha=last_commit_sha)


def select_publisher(config: SyncActionConfig, github_adapter: GitHubClientBase) -> Publisher:
    """Choose how commits are published for a session.

    Fork workflows always push to the fork; installation tokens publish
    through the API; everything else pushes with git.
    """
    if config.fork:
        return LocalGitPublisher(fork=config.fork)
    if config.is_installation_token:
        return VerifiedCommitPublisher(github_adapter)
    return LocalGitPublisher()
