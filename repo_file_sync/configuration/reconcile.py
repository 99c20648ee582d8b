"""Reconcile the sync action configuration from CLI options and environment variables."""

import time
from pathlib import Path

import structlog

from repo_file_sync.configuration.exceptions import GitHubTokenConfigurationError, InvalidConfigurationValueError, RequiredConfigurationElementError
from repo_file_sync.configuration.models import AutoMergeMethod, GitHubTokenType, SyncActionConfig
from repo_file_sync.utils.constants import DEFAULT_BRANCH_PREFIX, DEFAULT_CONFIG_PATH, DEFAULT_PR_LABELS
from repo_file_sync.utils.helpers import is_disabled_input, split_list_input

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


async def validate_github_token_configuration(
    github_pat_token: str | None,
    github_installation_token: str | None,
) -> tuple[str, GitHubTokenType]:
    """Validates the GitHub token configuration.

    Args:
        github_pat_token (str | None): A personal access token.
        github_installation_token (str | None): A GitHub App installation token.

    Raises:
        GitHubTokenConfigurationError: If both or neither of the tokens are defined.

    Returns:
        tuple[str, GitHubTokenType]: The token to use and its type.
    """
    if github_pat_token and github_installation_token:
        raise GitHubTokenConfigurationError("Both GH_PAT and GH_INSTALLATION_TOKEN are defined. Please use one or the other.")

    if github_pat_token:
        return github_pat_token, GitHubTokenType.PAT

    if github_installation_token:
        return github_installation_token, GitHubTokenType.INSTALLATION

    raise GitHubTokenConfigurationError("You must provide either GH_PAT or GH_INSTALLATION_TOKEN.")


def resolve_tmp_dir(tmp_dir: Path | None, now: float | None = None) -> Path:
    """Pick a temporary working directory that does not exist yet."""
    candidate = tmp_dir if tmp_dir is not None else Path(f"tmp-{int((now or time.time()) * 1000)}")
    while candidate.exists():
        replacement = Path(f"tmp-{int(time.time() * 1000)}")
        logger.warning("TMP_DIR already exists, using a new directory", tmp_dir=str(candidate), replacement=str(replacement))
        candidate = replacement
    return candidate


def resolve_pr_labels(pr_labels: str | None) -> list[str]:
    """Labels default to `sync`; the literal `false` disables labelling."""
    if pr_labels is None:
        return list(DEFAULT_PR_LABELS)
    if is_disabled_input(pr_labels):
        return []
    return split_list_input(pr_labels)


def resolve_fork(fork: str | None) -> str | None:
    """Fork owner, or None when the fork workflow is not used."""
    if not fork or is_disabled_input(fork):
        return None
    return fork.strip()


def resolve_auto_merge_method(merge_method: str | None) -> str | None:
    """Normalize the auto-merge method to upper case, rejecting values GitHub does not support."""
    if not merge_method:
        return None
    try:
        return AutoMergeMethod(merge_method.strip().upper()).value
    except ValueError as exc:
        raise InvalidConfigurationValueError("AUTO_MERGE_MERGE_METHOD", merge_method, [method.value for method in AutoMergeMethod]) from exc


async def reconcile_sync_configuration(
    cli_debug: bool = False,
    cli_github_api_url: str = "https://api.github.com",
    cli_github_pat_token: str | None = None,
    cli_github_installation_token: str | None = None,
    cli_is_fine_grained: bool = False,
    cli_source_repository: str | None = None,
    cli_config_path: Path | None = None,
    cli_branch_prefix: str | None = None,
    cli_overwrite_existing_pr: bool = True,
    cli_pr_labels: str | None = None,
    cli_pr_body: str | None = None,
    cli_assignees: str | None = None,
    cli_reviewers: str | None = None,
    cli_team_reviewers: str | None = None,
    cli_auto_merge_method: str | None = None,
    cli_git_email: str | None = None,
    cli_git_username: str | None = None,
    cli_tmp_dir: Path | None = None,
    cli_fork: str | None = None,
) -> SyncActionConfig:
    """Reconcile the configuration of the sync command."""
    github_token, github_token_type = await validate_github_token_configuration(cli_github_pat_token, cli_github_installation_token)

    if not cli_source_repository:
        raise RequiredConfigurationElementError(name="Source repository", cli_name="--source-repository", env_name="GITHUB_REPOSITORY")

    config = SyncActionConfig(
        debug=cli_debug,
        github_api_url=cli_github_api_url,
        github_token=github_token,
        github_token_type=github_token_type,
        is_fine_grained=cli_is_fine_grained,
        source_repository=cli_source_repository,
        config_path=cli_config_path or Path(DEFAULT_CONFIG_PATH),
        branch_prefix=cli_branch_prefix or DEFAULT_BRANCH_PREFIX,
        overwrite_existing_pr=cli_overwrite_existing_pr,
        pr_labels=resolve_pr_labels(cli_pr_labels),
        pr_body=cli_pr_body or None,
        assignees=split_list_input(cli_assignees),
        reviewers=split_list_input(cli_reviewers),
        team_reviewers=split_list_input(cli_team_reviewers),
        auto_merge_method=resolve_auto_merge_method(cli_auto_merge_method),
        git_email=cli_git_email or None,
        git_username=cli_git_username or None,
        tmp_dir=resolve_tmp_dir(cli_tmp_dir),
        fork=resolve_fork(cli_fork),
    )
    logger.debug(
        "Reconciled sync configuration",
        source_repository=config.source_repository,
        github_token_type=config.github_token_type.value,
        config_path=str(config.config_path),
        branch_prefix=config.branch_prefix,
        tmp_dir=str(config.tmp_dir),
        fork=config.fork,
    )
    return config
