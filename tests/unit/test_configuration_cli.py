"""Contains unit tests for the command line interface."""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from typer.testing import CliRunner

from repo_file_sync.configuration import cli
from repo_file_sync.synchronize.models import RepoRef, SyncDecision
from repo_file_sync.synchronize.results import RepoFileSyncResult, RepositorySyncResult

runner = CliRunner()

SYNC_CONFIG = """
owner/dest:
  - LICENSE
  - source: workflows/
    dest: .github/workflows/
    deleteOrphaned: true
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in ("GH_PAT", "GH_INSTALLATION_TOKEN", "GITHUB_REPOSITORY", "GITHUB_EVENT_PATH", "GITHUB_OUTPUT", "CONFIG_PATH", "TMP_DIR", "FORK"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "sync.yml"
    path.write_text(SYNC_CONFIG, encoding="utf-8")
    return path


def test_validate_config_prints_targets(config_path: Path) -> None:
    result = runner.invoke(cli.typer_app, ["validate-config", "--config-path", str(config_path)])

    assert result.exit_code == 0
    assert "github.com/owner/dest@default" in result.stdout
    assert "delete_orphaned: true" in result.stdout
    assert "Loaded 1 destination repositories" in result.stdout


def test_validate_config_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(cli.typer_app, ["validate-config", "--config-path", str(tmp_path / "missing.yml")])

    assert result.exit_code == 1


def test_sync_requires_exactly_one_token(config_path: Path) -> None:
    result = runner.invoke(
        cli.typer_app,
        ["sync", "--config-path", str(config_path), "--source-repository", "owner/source"],
        env={"GH_PAT": "pat", "GH_INSTALLATION_TOKEN": "ghs_x"},
    )

    assert result.exit_code == 1


def test_sync_rejects_invalid_config_file(tmp_path: Path) -> None:
    path = tmp_path / "sync.yml"
    path.write_text("owner/dest: LICENSE\n", encoding="utf-8")

    result = runner.invoke(
        cli.typer_app,
        ["sync", "--config-path", str(path)],
        env={"GH_PAT": "pat", "GITHUB_REPOSITORY": "owner/source"},
    )

    assert result.exit_code == 1


def test_sync_writes_pull_request_urls_output(config_path: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    output = tmp_path / "github_output"
    sync_result = RepoFileSyncResult(
        results=[
            RepositorySyncResult(
                repo=RepoRef(owner="owner", name="dest"),
                decisions=[SyncDecision.COMMIT],
                pull_request_number=3,
                pull_request_url="https://github.com/owner/dest/pull/3",
            ),
            RepositorySyncResult(repo=RepoRef(owner="owner", name="same"), decisions=[SyncDecision.NOOP], pull_request_number=4),
        ]
    )
    create_adapter = AsyncMock()
    run_workflow = AsyncMock(return_value=sync_result)
    monkeypatch.setattr(cli.GitHubKitAdapter, "create", create_adapter)
    monkeypatch.setattr(cli, "run_repo_file_sync_workflow", run_workflow)

    result = runner.invoke(
        cli.typer_app,
        ["sync", "--config-path", str(config_path)],
        env={"GH_PAT": "pat", "GITHUB_REPOSITORY": "owner/source", "GITHUB_OUTPUT": str(output), "GITHUB_RUN_ID": "9"},
    )

    assert result.exit_code == 0
    assert "https://github.com/owner/dest/pull/3" in result.stdout
    name, _, value = output.read_text(encoding="utf-8").strip().partition("=")
    assert name == "pull_request_urls"
    assert json.loads(value) == ["https://github.com/owner/dest/pull/3"]

    create_adapter.assert_awaited_once_with("owner", "source", "pat", "https://api.github.com")
    config, targets, event, run_context = run_workflow.await_args.args[:4]
    assert config.source_repository == "owner/source"
    assert [target.repo.slug for target in targets] == ["owner/dest"]
    assert event.commits is None
    assert run_context.run_id == "9"


def test_sync_exits_non_zero_when_a_repository_fails(config_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    sync_result = RepoFileSyncResult(results=[RepositorySyncResult(repo=RepoRef(owner="owner", name="dest"), error="clone failed")])
    monkeypatch.setattr(cli.GitHubKitAdapter, "create", AsyncMock())
    monkeypatch.setattr(cli, "run_repo_file_sync_workflow", AsyncMock(return_value=sync_result))

    result = runner.invoke(cli.typer_app, ["sync", "--config-path", str(config_path)], env={"GH_PAT": "pat", "GITHUB_REPOSITORY": "owner/source"})

    assert result.exit_code == 1


def test_sync_rejects_unsupported_auto_merge_method(config_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    create = AsyncMock()
    monkeypatch.setattr(cli.GitHubKitAdapter, "create", create)

    result = runner.invoke(
        cli.typer_app,
        ["sync", "--config-path", str(config_path), "--auto-merge-method", "fast-forward"],
        env={"GH_PAT": "pat", "GITHUB_REPOSITORY": "owner/source"},
    )

    assert result.exit_code == 1
    create.assert_not_awaited()
