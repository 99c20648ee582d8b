"""Defines the Command Line Interface (CLI) using Typer."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import structlog
import typer
from dotenv import load_dotenv
from typer import Option
from typing_extensions import Annotated

from repo_file_sync.configuration.env import RunnerEnvironment, load_push_event, write_output
from repo_file_sync.configuration.exceptions import GitHubTokenConfigurationError, InvalidConfigurationValueError, RequiredConfigurationElementError
from repo_file_sync.configuration.reconcile import reconcile_sync_configuration
from repo_file_sync.github.adapter import GitHubKitAdapter
from repo_file_sync.processing.exceptions import SyncConfigProcessingError
from repo_file_sync.processing.sync_config_processor import SyncConfigProcessor
from repo_file_sync.synchronize.driver import run_repo_file_sync_workflow
from repo_file_sync.synchronize.results import RepoFileSyncResult
from repo_file_sync.utils.constants import DEFAULT_BRANCH_PREFIX, DEFAULT_CONFIG_PATH
from repo_file_sync.utils.github import split_repository
from repo_file_sync.utils.yaml import dump_yaml_to_string

load_dotenv()

typer_app = typer.Typer(pretty_exceptions_show_locals=False)


def configure_logging(debug: bool = False) -> None:
    """Configure structlog to render key/value events through the standard library logger."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=logging.DEBUG if debug else logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@typer_app.command(name="sync")
def sync_cli(
    github_pat_token: Annotated[str | None, Option(envvar="GH_PAT", help="Personal access token used to access destination repositories.")] = None,
    github_installation_token: Annotated[
        str | None, Option(envvar="GH_INSTALLATION_TOKEN", help="GitHub App installation token; commits are created through the API.")
    ] = None,
    is_fine_grained: Annotated[bool, Option(envvar="IS_FINE_GRAINED", help="Whether GH_PAT is a fine-grained token.")] = False,
    github_api_url: Annotated[str, Option(envvar="GITHUB_API_URL", help="GitHub API URL.")] = "https://api.github.com",
    source_repository: Annotated[
        str | None, Option(envvar="GITHUB_REPOSITORY", help="Source repository in the format 'owner/repo'.")
    ] = None,
    config_path: Annotated[Path, Option(envvar="CONFIG_PATH", help="Path to the sync configuration file.")] = Path(DEFAULT_CONFIG_PATH),
    branch_prefix: Annotated[str, Option(envvar="BRANCH_PREFIX", help="Prefix of pull request branches.")] = DEFAULT_BRANCH_PREFIX,
    overwrite_existing_pr: Annotated[
        bool, Option(envvar="OVERWRITE_EXISTING_PR", help="Reuse one pull request per destination instead of opening a new one each run.")
    ] = True,
    pr_labels: Annotated[str | None, Option(envvar="PR_LABELS", help="Labels to add to pull requests ('false' to disable).")] = None,
    pr_body: Annotated[str | None, Option(envvar="PR_BODY", help="Additional text for the pull request body.")] = None,
    assignees: Annotated[str | None, Option(envvar="ASSIGNEES", help="Users to assign to pull requests.")] = None,
    reviewers: Annotated[str | None, Option(envvar="REVIEWERS", help="Users to request reviews from.")] = None,
    team_reviewers: Annotated[str | None, Option(envvar="TEAM_REVIEWERS", help="Teams to request reviews from.")] = None,
    auto_merge_method: Annotated[
        str | None, Option(envvar="AUTO_MERGE_MERGE_METHOD", help="Enable auto-merge with MERGE, REBASE or SQUASH.")
    ] = None,
    git_email: Annotated[str | None, Option(envvar="GIT_EMAIL", help="Email of the commit author.")] = None,
    git_username: Annotated[str | None, Option(envvar="GIT_USERNAME", help="Name of the commit author.")] = None,
    tmp_dir: Annotated[Path | None, Option(envvar="TMP_DIR", help="Working directory for destination clones.")] = None,
    fork: Annotated[str | None, Option(envvar="FORK", help="Account to fork destination repositories into ('false' to disable).")] = None,
    debug: Annotated[bool, Option(envvar="DEBUG", help="Enable debug mode.")] = False,
) -> None:
    """Sync files from the source repository into every configured destination repository."""
    configure_logging(debug)
    runner_environment = RunnerEnvironment()

    try:
        config = asyncio.run(
            reconcile_sync_configuration(
                cli_debug=debug,
                cli_github_api_url=github_api_url,
                cli_github_pat_token=github_pat_token,
                cli_github_installation_token=github_installation_token,
                cli_is_fine_grained=is_fine_grained,
                cli_source_repository=source_repository or runner_environment.GITHUB_REPOSITORY,
                cli_config_path=config_path,
                cli_branch_prefix=branch_prefix,
                cli_overwrite_existing_pr=overwrite_existing_pr,
                cli_pr_labels=pr_labels,
                cli_pr_body=pr_body,
                cli_assignees=assignees,
                cli_reviewers=reviewers,
                cli_team_reviewers=team_reviewers,
                cli_auto_merge_method=auto_merge_method,
                cli_git_email=git_email,
                cli_git_username=git_username,
                cli_tmp_dir=tmp_dir,
                cli_fork=fork,
            )
        )
    except (GitHubTokenConfigurationError, RequiredConfigurationElementError, InvalidConfigurationValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc

    try:
        targets = SyncConfigProcessor().load_targets(config.config_path)
    except SyncConfigProcessingError as exc:
        typer.echo(f"Invalid sync configuration file {config.config_path}:", err=True)
        for error in exc.errors:
            typer.echo(f"  - {error}", err=True)
        raise typer.Exit(1) from exc

    event = load_push_event(runner_environment.GITHUB_EVENT_PATH)
    run_context = runner_environment.run_context(config.source_repository)

    async def run_sync() -> RepoFileSyncResult:
        owner, repo_name = split_repository(config.source_repository)
        github_adapter = await GitHubKitAdapter.create(owner, repo_name, config.github_token, config.github_api_url)
        return await run_repo_file_sync_workflow(config, targets, event, run_context, github_adapter)

    result = asyncio.run(run_sync())

    write_output(runner_environment.GITHUB_OUTPUT, "pull_request_urls", json.dumps(result.pull_request_urls))
    for url in result.pull_request_urls:
        typer.echo(url)
    if result.failed:
        for error in result.errors:
            typer.echo(f"Failed to sync {error['repo']}: {error['error']}", err=True)
        raise typer.Exit(1)


@typer_app.command(name="validate-config")
def validate_config_cli(
    config_path: Annotated[Path, Option(envvar="CONFIG_PATH", help="Path to the sync configuration file.")] = Path(DEFAULT_CONFIG_PATH),
    debug: Annotated[bool, Option(envvar="DEBUG", help="Enable debug mode.")] = False,
) -> None:
    """Parse the sync configuration file and print the resolved targets."""
    configure_logging(debug)
    if not config_path.exists():
        typer.echo(f"Sync configuration file not found: {config_path.absolute()}", err=True)
        raise typer.Exit(1)

    try:
        targets = SyncConfigProcessor().load_targets(config_path)
    except SyncConfigProcessingError as exc:
        typer.echo(f"Invalid sync configuration file {config_path}:", err=True)
        for error in exc.errors:
            typer.echo(f"  - {error}", err=True)
        raise typer.Exit(1) from exc

    resolved = {
        target.repo.unique_key: [rule.model_dump(exclude_defaults=True) | {"source": rule.source, "dest": rule.dest} for rule in target.files]
        for target in targets
    }
    typer.echo(dump_yaml_to_string(resolved), nl=False)
    typer.echo(f"Loaded {len(targets)} destination repositories")


if __name__ == "__main__":
    typer_app()
