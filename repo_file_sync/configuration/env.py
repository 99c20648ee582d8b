"""Pydantic Settings model for the GitHub Actions runner environment."""

import json
from pathlib import Path

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict

from repo_file_sync.synchronize.models import PushEvent, WorkflowRunContext

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class RunnerEnvironment(BaseSettings):
    """Environment variables set by the workflow runner."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    GITHUB_REPOSITORY: str | None = None
    GITHUB_RUN_ID: str = "0"
    GITHUB_SERVER_URL: str = "https://github.com"
    GITHUB_EVENT_PATH: Path | None = None
    GITHUB_OUTPUT: Path | None = None

    def run_context(self, source_repository: str) -> WorkflowRunContext:
        """Describe the workflow run the sync is executed from."""
        return WorkflowRunContext(source_repository=source_repository, server_url=self.GITHUB_SERVER_URL, run_id=self.GITHUB_RUN_ID)


def load_push_event(event_path: Path | None) -> PushEvent:
    """Load the triggering event payload; a missing file yields an empty (manual run) event."""
    if event_path is None or not event_path.is_file():
        logger.info("No event payload found, treating the run as manual", event_path=str(event_path) if event_path else None)
        return PushEvent()
    with open(event_path, encoding="utf-8") as f:
        payload = json.load(f)
    event = PushEvent.model_validate(payload)
    logger.debug("Loaded event payload", forced=event.forced, before=event.before, commit_count=event.commit_count)
    return event


def write_output(output_path: Path | None, name: str, value: str) -> None:
    """Append a step output to the runner's output file, when there is one."""
    if output_path is None:
        logger.debug("GITHUB_OUTPUT not set, skipping step output", name=name)
        return
    with open(output_path, "a", encoding="utf-8") as f:
        f.write(f"{name}={value}\n")
