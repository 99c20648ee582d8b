"""Decides which source commits must be replayed into a destination repository."""

import asyncio
from dataclasses import replace

import structlog

from repo_file_sync.git.working_copy import GitRepository
from repo_file_sync.synchronize.exceptions import MissingBeforeRefError
from repo_file_sync.synchronize.models import PushEvent, SourceCommit, SyncSession
from repo_file_sync.synchronize.pull_requests import extract_before_ref

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def checkout_depth_needed(event: PushEvent, session: SyncSession) -> int | None:
    """How far both checkouts must be deepened before replay, or None if the shallow clones suffice.

    A forced push may have to walk back to the anchor commit, and a push with
    several commits checks out each of them, so the history covering the
    existing pull request's commits plus the pushed commits must be local.
    """
    if not event.forced and event.commit_count <= 1:
        return None
    existing_pr_commit_count = session.existing_pr.commit_count if session.existing_pr is not None else 0
    return max(existing_pr_commit_count + event.commit_count, 1)


async def deepen_checkouts(event: PushEvent, session: SyncSession, source: GitRepository, destination: GitRepository) -> None:
    """Deepen the source and destination checkouts when the replay needs older history."""
    depth = checkout_depth_needed(event, session)
    logger.debug(
        "Checking whether checkouts must be deepened",
        forced=event.forced,
        push_commit_count=event.commit_count,
        existing_pr_commit_count=session.existing_pr.commit_count if session.existing_pr is not None else 0,
        depth=depth,
    )
    if depth is None:
        return
    await source.deepen(depth)
    await destination.deepen(depth)


async def walk_source_history(source: GitRepository, before_ref: str) -> list[SourceCommit]:
    """Collect the source commits strictly after `before_ref` up to HEAD, oldest first."""
    commit_shas = await source.list_commits(f"{before_ref}..HEAD")
    logger.debug("Walked source history", before_ref=before_ref, commit_shas=commit_shas)
    return list(await asyncio.gather(*(source.get_commit(sha) for sha in commit_shas)))


async def resolve_commits_to_replay(
    event: PushEvent,
    session: SyncSession,
    source: GitRepository,
    destination: GitRepository,
) -> tuple[list[SourceCommit], SyncSession]:
    """Produce the ordered (oldest to newest) list of source commits to replay.

    Rules, first match wins:

    1. Forced push with an existing pull request: history may have been
       rewritten, so replay everything after the anchor stored in the pull
       request body, starting from a destination branch reset to the pull
       request's base.
    2. The event delivered a commit list: replay it verbatim.
    3. No commit list (e.g. a manual run): replay the source HEAD.

    Returns the commits together with the (possibly updated) session.
    """
    existing_pr = session.existing_pr
    if event.forced and existing_pr is not None:
        before_ref = extract_before_ref(existing_pr.body)
        if before_ref is None:
            raise MissingBeforeRefError(existing_pr.number)
        logger.info("Forced push with existing pull request, replaying from anchor", before_ref=before_ref, pr_number=existing_pr.number)
        commits = await walk_source_history(source, before_ref)
        await destination.reset_hard(existing_pr.base_sha)
        session = replace(session, last_commit_sha=existing_pr.base_sha)
        return commits, session

    if event.commits is not None:
        logger.info("Replaying commits delivered with the event", commit_count=event.commit_count)
        return [SourceCommit(sha=commit.id, message=commit.message) for commit in event.commits], session

    logger.info("No commits delivered with the event, replaying source HEAD")
    return [await source.get_commit("HEAD")], session
