"""Contains results of application execution."""

from dataclasses import dataclass, field

from repo_file_sync.synchronize.models import RepoRef, SyncDecision


@dataclass
class RepositorySyncResult:
    """Contains the result of syncing one destination repository."""

    repo: RepoRef
    decisions: list[SyncDecision] = field(default_factory=list)
    pull_request_number: int | None = None
    pull_request_url: str | None = None
    error: str | None = None

    @property
    def modified(self) -> bool:
        """Whether at least one replayed commit changed the destination."""
        return SyncDecision.COMMIT in self.decisions

    @property
    def failed(self) -> bool:
        """Whether the session for this repository raised."""
        return self.error is not None


@dataclass
class RepoFileSyncResult:
    """Contains results of the sync workflow for all destination repositories."""

    results: list[RepositorySyncResult] = field(default_factory=list)

    @property
    def pull_request_urls(self) -> list[str]:
        """URLs of the pull requests created or updated by this run."""
        return [result.pull_request_url for result in self.results if result.modified and result.pull_request_url]

    @property
    def errors(self) -> list[dict[str, str]]:
        """One entry per failed repository."""
        return [{"repo": result.repo.unique_key, "error": result.error} for result in self.results if result.error is not None]

    @property
    def failed(self) -> bool:
        """Whether any repository failed to sync."""
        return any(result.failed for result in self.results)
