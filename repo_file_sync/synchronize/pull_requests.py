"""Contains logic for reconciling the pull request that carries a sync into a destination repository."""

import re
from dataclasses import replace
from enum import Enum

import structlog
from githubkit.versions.latest.models import PullRequest, PullRequestSimple

from repo_file_sync.configuration.models import AutoMergeMethod
from repo_file_sync.github.abc import GitHubClientBase
from repo_file_sync.synchronize.exceptions import UnsupportedAutoMergeMethodError
from repo_file_sync.synchronize.models import ExistingPullRequest, PullRequestMetadata, PushEvent, SyncSession, WorkflowRunContext
from repo_file_sync.utils.constants import (
    NO_COMMIT_MESSAGES_PLACEHOLDER,
    PR_BEING_UPDATED_WARNING_TEMPLATE,
    SOURCE_REPO_BEFORE_REF_PATTERN,
    SOURCE_REPO_BEFORE_REF_TEMPLATE,
    WARNING_BANNER_END,
    WARNING_BANNER_PATTERN,
    WARNING_BANNER_START,
)
from repo_file_sync.utils.helpers import first_line, rewrite_issue_references

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_COMMIT_SHA_RE = re.compile(r"[0-9a-fA-F]{7,40}")


# Replay anchor
def extract_before_ref(body: str | None) -> str | None:
    """Extract the source repository "before" SHA persisted in a pull request body.

    Returns None when the anchor comment is missing or does not hold a SHA.
    """
    if not body:
        return None
    match = SOURCE_REPO_BEFORE_REF_PATTERN.search(body)
    if match is None:
        return None
    before_ref = match.group(1).strip()
    if not _COMMIT_SHA_RE.fullmatch(before_ref):
        logger.debug("Malformed srcRepoBeforeRef anchor", before_ref=before_ref)
        return None
    return before_ref


def resolve_before_ref(existing_pr: ExistingPullRequest | None, event: PushEvent, fallback: str | None = None) -> str | None:
    """Anchor to persist in the pull request body.

    An existing pull request keeps the anchor stored in its body, even a
    malformed one. Only a new pull request, or one whose body lost the anchor
    comment entirely, takes it from the event's before SHA or, for events
    without one, from `fallback`.
    """
    if existing_pr is None:
        return event.before or fallback
    match = SOURCE_REPO_BEFORE_REF_PATTERN.search(existing_pr.body or "")
    if match is None:
        logger.warning(
            "Existing pull request has no srcRepoBeforeRef anchor, persisting a new one",
            pr_number=existing_pr.number,
            before=event.before or fallback,
        )
        return event.before or fallback
    stored = match.group(1).strip()
    if extract_before_ref(existing_pr.body) is None:
        logger.warning("Existing pull request has a malformed srcRepoBeforeRef anchor, keeping it", pr_number=existing_pr.number, before_ref=stored)
    return stored


# Warning banner
def build_warning_banner(run_context: WorkflowRunContext) -> str:
    """Render the "PR is being updated" banner for this workflow run."""
    banner = PR_BEING_UPDATED_WARNING_TEMPLATE.format(run_url=run_context.run_url, run_id=run_context.run_id)
    return f"{WARNING_BANNER_START}\n{banner}\n{WARNING_BANNER_END}"


def remove_warning_banner(body: str) -> str:
    """Strip any warning banner from a pull request body, leaving the rest untouched."""
    return WARNING_BANNER_PATTERN.sub("", body)


def add_warning_banner(body: str, banner: str) -> str:
    """Prepend the warning banner to a pull request body, replacing any stale banner."""
    return f"{banner}\n\n{remove_warning_banner(body)}"


async def set_pull_request_warning(github_adapter: GitHubClientBase, session: SyncSession, run_context: WorkflowRunContext) -> SyncSession:
    """Show the warning banner on the existing pull request before replay starts."""
    existing_pr = session.existing_pr
    if existing_pr is None:
        return session
    body = add_warning_banner(existing_pr.body, build_warning_banner(run_context))
    if body == existing_pr.body:
        return session
    logger.debug("Setting pull request warning banner", pr_number=existing_pr.number)
    await github_adapter.update_pull_request(pull_number=existing_pr.number, body=body)
    return replace(session, existing_pr=replace(existing_pr, body=body))


async def remove_pull_request_warning(github_adapter: GitHubClientBase, session: SyncSession) -> SyncSession:
    """Remove the warning banner from the existing pull request, if it carries one."""
    existing_pr = session.existing_pr
    if existing_pr is None:
        return session
    body = remove_warning_banner(existing_pr.body)
    if body == existing_pr.body:
        return session
    logger.debug("Removing pull request warning banner", pr_number=existing_pr.number)
    await github_adapter.update_pull_request(pull_number=existing_pr.number, body=body)
    return replace(session, existing_pr=replace(existing_pr, body=body))


# Lookup
def _pull_request_base_sha(pull_request: PullRequest | PullRequestSimple) -> str:
    return pull_request.base.sha


async def find_existing_pull_request(github_adapter: GitHubClientBase, pr_branch: str, head_owner: str) -> ExistingPullRequest | None:
    """Find the open pull request from `head_owner:pr_branch`, fetching its commit messages eagerly."""
    pull_requests = await github_adapter.list_pull_requests(state="open", head=f"{head_owner}:{pr_branch}")
    if not pull_requests:
        logger.info("No existing pull request found", head=f"{head_owner}:{pr_branch}")
        return None
    if len(pull_requests) > 1:
        logger.warning("More than one open pull request found for sync branch, using the first", count=len(pull_requests))
    pull_request = pull_requests[0]
    logger.info("Found existing pull request, fetching commits", pr_number=pull_request.number)
    commit_messages = await github_adapter.list_pull_request_commit_messages(pull_request.number)
    existing_pr = ExistingPullRequest(
        number=pull_request.number,
        html_url=pull_request.html_url,
        body=pull_request.body or "",
        base_sha=_pull_request_base_sha(pull_request),
        commit_messages=commit_messages,
    )
    logger.debug("Current pull request info", pr_number=existing_pr.number, base_sha=existing_pr.base_sha, commit_count=existing_pr.commit_count)
    return existing_pr


# Title and body
class CommitMessageSource(str, Enum):
    """Which commit messages describe the pull request."""

    REPLAYED = "replayed"
    EXISTING_PR_AND_PAYLOAD = "existing_pr_and_payload"
    PAYLOAD = "payload"


# Keyed on (forced, existing pull request present).
COMMIT_MESSAGE_SOURCES: dict[tuple[bool, bool], CommitMessageSource] = {
    (True, True): CommitMessageSource.REPLAYED,
    (True, False): CommitMessageSource.REPLAYED,
    (False, True): CommitMessageSource.EXISTING_PR_AND_PAYLOAD,
    (False, False): CommitMessageSource.PAYLOAD,
}


def select_commit_messages(event: PushEvent, existing_pr: ExistingPullRequest | None, replayed_messages: list[str]) -> list[str]:
    """Choose the commit messages the pull request title and body are built from.

    Repeated messages are kept; a manual run without a commit list falls back
    to the replayed messages.
    """
    source = COMMIT_MESSAGE_SOURCES[(event.forced, existing_pr is not None)]
    payload_messages = event.commit_messages if event.commits is not None else list(replayed_messages)
    logger.debug("Selecting pull request commit messages", source=source.value)
    if source is CommitMessageSource.REPLAYED:
        return list(replayed_messages)
    if source is CommitMessageSource.EXISTING_PR_AND_PAYLOAD:
        # existing_pr is set for this key.
        return [*existing_pr.commit_messages, *payload_messages]  # type: ignore[union-attr]
    return payload_messages


def build_pull_request_title(commit_messages: list[str]) -> str:
    """Join the first lines of all commit messages into a title."""
    return "; ".join(first_line(message) for message in commit_messages)


def _render_commit_message_item(message: str) -> str:
    lines = message.split("\n")
    if len(lines) > 1:
        # Lines are joined without indentation so that indentation inside the
        # commit message is preserved as-is.
        return "\n".join(["<li>", "<details>", f"<summary>{lines[0]}</summary>", *lines[1:], "</details>", "</li>"])
    return f"<li>{message}</li>"


def build_pull_request_body(
    commit_messages: list[str],
    run_context: WorkflowRunContext,
    before_ref: str | None,
    updated: bool,
    extra_body: str | None = None,
) -> str:
    """Build the pull request body: summary, commit messages, hidden anchor and footer."""
    rendered_messages = "".join(_render_commit_message_item(message) for message in commit_messages) or NO_COMMIT_MESSAGES_PLACEHOLDER
    sections = [
        f"Synced local file(s) with [{run_context.source_repository}]({run_context.source_url}).",
    ]
    if extra_body:
        sections.append(extra_body)
    sections.extend(
        [
            "<details open>",
            "<summary>Source Repo Commit Messages</summary>",
            "<ul>",
            rendered_messages,
            "</ul>",
            "</details>",
            SOURCE_REPO_BEFORE_REF_TEMPLATE.format(sha=before_ref),
            "\n---\n",
            f"This PR was {'updated' if updated else 'created'} automatically by the repo-file-sync workflow run "
            f"[#{run_context.run_id}]({run_context.run_url})",
        ]
    )
    return "\n".join(sections)


def rewrite_commit_messages(commit_messages: list[str], source_repository_url: str | None) -> list[str]:
    """Rewrite issue references in every message (already rewritten messages are unchanged)."""
    return [rewrite_issue_references(message, source_repository_url) for message in commit_messages]


# Create / update
async def create_or_update_pull_request(
    github_adapter: GitHubClientBase,
    session: SyncSession,
    head_owner: str,
    title: str,
    body: str,
) -> tuple[PullRequest, SyncSession]:
    """Update the existing pull request, or open a new one from the sync branch.

    A newly created pull request becomes the session's existing pull request.
    """
    existing_pr = session.existing_pr
    if existing_pr is not None:
        logger.info("Overwriting existing pull request", pr_number=existing_pr.number)
        pull_request = await github_adapter.update_pull_request(pull_number=existing_pr.number, title=title, body=body)
        return pull_request, replace(session, existing_pr=replace(existing_pr, body=body))

    head = f"{head_owner}:{session.pr_branch}"
    logger.info("Creating new pull request", head=head, base=session.base_branch, title=title)
    pull_request = await github_adapter.create_pull_request(title=title, head=head, base=session.base_branch, body=body)
    created_pr = ExistingPullRequest(
        number=pull_request.number,
        html_url=pull_request.html_url,
        body=body,
        base_sha=_pull_request_base_sha(pull_request),
    )
    return pull_request, replace(session, existing_pr=created_pr)


# Metadata
def validate_auto_merge_method(merge_method: str) -> AutoMergeMethod:
    """Validate a configured auto-merge method (case-insensitive)."""
    try:
        return AutoMergeMethod(merge_method.upper())
    except ValueError as exc:
        raise UnsupportedAutoMergeMethodError(merge_method) from exc


async def apply_pull_request_metadata(
    github_adapter: GitHubClientBase,
    pull_number: int,
    metadata: PullRequestMetadata,
    fork: str | None = None,
) -> list[str]:
    """Apply labels, assignees, reviewers, team reviewers and auto-merge to a pull request.

    Every step is best-effort: a failure is logged as a warning and the
    remaining steps still run. Nothing is applied in fork workflows since the
    token usually lacks permission there. Returns the names of failed steps.
    """
    if fork:
        logger.info("Fork workflow enabled, skipping pull request metadata", fork=fork)
        return []

    merge_method = validate_auto_merge_method(metadata.auto_merge_method) if metadata.auto_merge_method else None

    failed: list[str] = []

    async def attempt(step: str, values: list[str], action: object) -> None:
        logger.info(f"Adding {step} to pull request", pr_number=pull_number, values=values)
        try:
            await action  # type: ignore[misc]
        except Exception as exc:
            logger.warning(f"Failed to add {step} to pull request", pr_number=pull_number, values=values, error=str(exc))
            failed.append(step)

    if metadata.labels:
        await attempt("labels", metadata.labels, github_adapter.add_labels_to_issue(pull_number, metadata.labels))
    if metadata.assignees:
        await attempt("assignees", metadata.assignees, github_adapter.add_assignees_to_issue(pull_number, metadata.assignees))
    if metadata.reviewers:
        await attempt("reviewers", metadata.reviewers, github_adapter.request_reviewers(pull_number, reviewers=metadata.reviewers))
    if metadata.team_reviewers:
        await attempt("team reviewers", metadata.team_reviewers, github_adapter.request_reviewers(pull_number, team_reviewers=metadata.team_reviewers))
    if merge_method is not None:
        logger.info("Enabling auto-merge on pull request", pr_number=pull_number, merge_method=merge_method.value)
        try:
            await github_adapter.enable_pull_request_auto_merge(pull_number, merge_method.value)
        except Exception as exc:
            logger.warning("Failed to enable auto-merge on pull request", pr_number=pull_number, error=str(exc))
            failed.append("auto-merge")
    return failed
