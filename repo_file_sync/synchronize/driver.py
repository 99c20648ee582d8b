"""Orchestrates the synchronization of files into destination repositories."""

import shutil
import time
from dataclasses import replace
from pathlib import Path

import structlog
from structlog.contextvars import bound_contextvars

from repo_file_sync.configuration.models import SyncActionConfig
from repo_file_sync.git.working_copy import GitRepository, clone_repository
from repo_file_sync.github.abc import GitHubClientBase
from repo_file_sync.synchronize.branches import reserve_pr_branch_name
from repo_file_sync.synchronize.commits import deepen_checkouts, resolve_commits_to_replay
from repo_file_sync.synchronize.files import sync_file_rules
from repo_file_sync.synchronize.models import PushEvent, ReplayedCommit, SourceCommit, SyncDecision, SyncSession, SyncTarget, WorkflowRunContext
from repo_file_sync.synchronize.publishers import select_publisher
from repo_file_sync.synchronize.pull_requests import (
    apply_pull_request_metadata,
    build_pull_request_body,
    build_pull_request_title,
    create_or_update_pull_request,
    find_existing_pull_request,
    remove_pull_request_warning,
    resolve_before_ref,
    rewrite_commit_messages,
    select_commit_messages,
    set_pull_request_warning,
)
from repo_file_sync.synchronize.results import RepoFileSyncResult, RepositorySyncResult
from repo_file_sync.utils.constants import DEFAULT_BOT_EMAIL, DEFAULT_BOT_USERNAME, FORK_REMOTE_NAME
from repo_file_sync.utils.helpers import rewrite_issue_references

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


async def resolve_git_identity(config: SyncActionConfig, github_adapter: GitHubClientBase) -> tuple[str, str]:
    """Determine the username and email destination commits are authored with.

    Explicit configuration wins. Otherwise a personal token commits as its
    owner, falling back to the private no-reply address when the account
    hides its email; installation tokens commit as the Actions bot.
    """
    username = config.git_username
    email = config.git_email
    if email is None and not config.is_installation_token:
        user = await github_adapter.get_authenticated_user()
        username = user.login
        email = user.email
        if not email:
            email = f"{user.id}+{user.login}@users.noreply.github.com"
            logger.debug("Email not returned from API, assuming private email", email=email)
    return username or DEFAULT_BOT_USERNAME, email or DEFAULT_BOT_EMAIL


def build_git_url(config: SyncActionConfig, host: str, owner: str, name: str) -> str:
    """Authenticated HTTPS clone URL of a repository."""
    return f"https://{config.git_token_prefix}{config.github_token}@{host}/{owner}/{name}.git"


async def initialize_session(
    config: SyncActionConfig,
    target: SyncTarget,
    github_adapter: GitHubClientBase,
    identity: tuple[str, str],
) -> tuple[SyncSession, GitRepository]:
    """Clone the destination repository and prepare its working copy."""
    repo = target.repo
    git_url = build_git_url(config, repo.host, repo.owner, repo.name)
    working_dir = config.tmp_dir / repo.unique_key
    logger.debug("Cloning destination repository", working_dir=str(working_dir))
    destination = await clone_repository(
        git_url,
        working_dir,
        branch=None if repo.uses_default_branch else repo.branch,
        redact=[config.github_token],
    )
    await destination.set_identity(*identity)
    base_branch = await destination.current_branch()

    if config.fork:
        logger.info("Creating fork", fork=config.fork)
        await github_adapter.create_fork()
        await destination.add_remote(FORK_REMOTE_NAME, build_git_url(config, repo.host, config.fork, repo.name))

    session = SyncSession(
        repo=repo,
        working_dir=working_dir,
        git_url=git_url,
        base_branch=base_branch,
        last_commit_sha=await destination.rev_parse("HEAD"),
    )
    return session, destination


async def create_pr_branch(session: SyncSession, destination: GitRepository, fork: str | None) -> SyncSession:
    """Check out the pull request branch, fetching it first when a pull request already uses it.

    Commits published later are parented on the branch tip returned in
    `last_commit_sha`.
    """
    logger.debug("Creating pull request branch", branch=session.pr_branch)
    if session.existing_pr is None:
        await destination.checkout(session.pr_branch, new_branch=True)
        return session
    remote = FORK_REMOTE_NAME if fork else "origin"
    await destination.fetch_branch(remote, session.pr_branch)
    await destination.checkout(session.pr_branch, new_branch=True, start_point=f"{remote}/{session.pr_branch}")
    return replace(session, last_commit_sha=await destination.rev_parse("HEAD"))


async def replay_commits(
    target: SyncTarget,
    commits: list[SourceCommit],
    session: SyncSession,
    source: GitRepository,
    destination: GitRepository,
    github_adapter: GitHubClientBase,
    source_repository_url: str | None,
) -> tuple[list[SyncDecision], list[ReplayedCommit], SyncSession]:
    """Apply every commit's file changes to the destination and commit what changed."""
    decisions: list[SyncDecision] = []
    replayed: list[ReplayedCommit] = []
    for commit in commits:
        with bound_contextvars(source_commit=commit.sha):
            await source.checkout(commit.sha)
            await sync_file_rules(target.files, source.path, destination)

            if not await destination.has_changes():
                logger.info("File(s) already up to date")
                decisions.append(SyncDecision.NOOP)
                session = await remove_pull_request_warning(github_adapter, session)
                continue

            message = rewrite_issue_references(commit.message, source_repository_url)
            destination_sha = await destination.commit(message)
            logger.info("Created destination commit", destination_commit=destination_sha)
            decisions.append(SyncDecision.COMMIT)
            replayed.append(ReplayedCommit(source=commit, message=message))
    return decisions, replayed, session


async def sync_repository(
    config: SyncActionConfig,
    target: SyncTarget,
    event: PushEvent,
    run_context: WorkflowRunContext,
    source: GitRepository,
    github_adapter: GitHubClientBase,
    identity: tuple[str, str],
) -> RepositorySyncResult:
    """Run one sync session against a destination repository."""
    result = RepositorySyncResult(repo=target.repo)
    session, destination = await initialize_session(config, target, github_adapter, identity)

    head_owner = config.fork or target.repo.owner
    pr_branch = reserve_pr_branch_name(config.branch_prefix, config.source_repository, target.repo, config.overwrite_existing_pr)
    session = replace(session, pr_branch=pr_branch)
    session = replace(session, existing_pr=await find_existing_pull_request(github_adapter, pr_branch, head_owner))
    existing_pr_at_start = session.existing_pr
    session = await create_pr_branch(session, destination, config.fork)
    session = await set_pull_request_warning(github_adapter, session, run_context)

    logger.info("Locally syncing file(s) between source and destination repository")
    await deepen_checkouts(event, session, source, destination)
    commits, session = await resolve_commits_to_replay(event, session, source, destination)
    logger.debug("Resolved commits to replay", commit_shas=[commit.sha for commit in commits])

    source_repository_url = event.repository.html_url or run_context.source_url
    decisions, replayed, session = await replay_commits(target, commits, session, source, destination, github_adapter, source_repository_url)
    result.decisions = decisions
    if session.existing_pr is not None:
        result.pull_request_number = session.existing_pr.number
        result.pull_request_url = session.existing_pr.html_url

    if not replayed:
        logger.info("No specified files needed modification")
        await remove_pull_request_warning(github_adapter, session)
        return result

    publisher = select_publisher(config, github_adapter)
    logger.info("Publishing changes to destination repository", publisher=type(publisher).__name__)
    session = await publisher.publish(session, destination)

    commit_messages = select_commit_messages(event, existing_pr_at_start, [commit.message for commit in replayed])
    commit_messages = rewrite_commit_messages(commit_messages, source_repository_url)
    title = build_pull_request_title(commit_messages)
    # Events without a before SHA (manual runs) anchor at the parent of the oldest replayed commit.
    fallback_before_ref = None if event.before else await source.get_parent_sha(commits[0].sha)
    body = build_pull_request_body(
        commit_messages,
        run_context,
        before_ref=resolve_before_ref(existing_pr_at_start, event, fallback=fallback_before_ref),
        updated=existing_pr_at_start is not None,
        extra_body=config.pr_body,
    )
    pull_request, session = await create_or_update_pull_request(github_adapter, session, head_owner, title, body)
    await apply_pull_request_metadata(github_adapter, pull_request.number, config.pull_request_metadata, fork=config.fork)

    logger.info(
        f"Pull request {'updated' if existing_pr_at_start else 'created'}",
        pr_number=pull_request.number,
        pr_url=pull_request.html_url,
    )
    result.pull_request_number = pull_request.number
    result.pull_request_url = pull_request.html_url
    return result


async def run_repo_file_sync_workflow(
    config: SyncActionConfig,
    targets: list[SyncTarget],
    event: PushEvent,
    run_context: WorkflowRunContext,
    github_adapter: GitHubClientBase,
    source_dir: Path = Path("."),
) -> RepoFileSyncResult:
    """Run the sync workflow against every destination repository, one after another.

    A failing repository is recorded and does not stop the remaining ones.
    The temporary directory holding all destination clones is always removed.

    Args:
        config: Reconciled action configuration.
        targets: Destination repositories and their file rules.
        event: Payload of the triggering event.
        run_context: Source repository and workflow run.
        github_adapter: Adapter whose `for_repository` scopes it to each destination.
        source_dir: Checkout of the source repository.
    """
    source = GitRepository(source_dir)
    source_head = await source.rev_parse("HEAD")
    identity = await resolve_git_identity(config, github_adapter)
    logger.info("Using git identity", username=identity[0], email=identity[1])

    sync_result = RepoFileSyncResult()
    start_time = time.time()
    try:
        for target in targets:
            with bound_contextvars(repo=target.repo.unique_key):
                logger.info("Processing repository", repo_name=target.repo.name, repo_owner=target.repo.owner, repo_branch=target.repo.branch)
                repo_adapter = github_adapter.for_repository(target.repo.owner, target.repo.name)
                try:
                    result = await sync_repository(config, target, event, run_context, source, repo_adapter, identity)
                except Exception as exc:
                    logger.exception("Failed to sync repository", error=str(exc))
                    result = RepositorySyncResult(repo=target.repo, error=str(exc))
                finally:
                    await source.checkout(source_head)
                sync_result.results.append(result)
                logger.info("Completed repository", modified=result.modified, failed=result.failed)
    finally:
        logger.debug("Cleaning up temporary directory", tmp_dir=str(config.tmp_dir))
        shutil.rmtree(config.tmp_dir, ignore_errors=True)

    logger.info(
        "Processed repositories",
        duration=round(time.time() - start_time, 2),
        repository_count=len(targets),
        failed_count=len(sync_result.errors),
        pull_request_urls=sync_result.pull_request_urls,
    )
    return sync_result
