"""Fixtures for unit tests."""

import base64
import hashlib
import shutil
import subprocess
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Generator, Literal

import pytest
import structlog

from repo_file_sync.github.abc import GitHubClientBase

GitRunner = Callable[..., str]


@pytest.fixture(autouse=True)
def configure_structlog_for_caplog() -> Generator[None, None, None]:
    """Configure structlog for use with caplog."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    yield
    structlog.reset_defaults()


def _run_git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "user.name=Test User", "-c", "user.email=test@example.com", "-c", "init.defaultBranch=main", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


@pytest.fixture
def git() -> GitRunner:
    """Run a git command with a fixed identity and return its stripped output.

    Tests using real repositories are skipped when git is not installed.
    """
    if shutil.which("git") is None:
        pytest.skip("git executable not available")
    return _run_git


@pytest.fixture
def make_repository(tmp_path: Path, git: GitRunner) -> Callable[[str], Path]:
    """Create an empty non-bare repository on branch `main`."""

    def make(name: str) -> Path:
        path = tmp_path / name
        path.mkdir(parents=True)
        _run_git(path, "init")
        _run_git(path, "symbolic-ref", "HEAD", "refs/heads/main")
        return path

    return make


@pytest.fixture
def commit_files(git: GitRunner) -> Callable[..., str]:
    """Write files into a repository, commit them and return the new commit SHA."""

    def commit(path: Path, message: str, files: dict[str, str]) -> str:
        for relative_path, content in files.items():
            target = path / relative_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        _run_git(path, "add", "-A")
        _run_git(path, "commit", "-m", message)
        return _run_git(path, "rev-parse", "HEAD")

    return commit


def git_blob_sha(content: bytes) -> str:
    """SHA git assigns to a blob with the given content."""
    return hashlib.sha1(b"blob " + str(len(content)).encode() + b"\0" + content).hexdigest()


class FakeGitHubAdapter(GitHubClientBase):
    """In-memory stand-in for the GitHub API of one repository."""

    def __init__(self, owner: str = "owner", repo_name: str = "repo") -> None:
        """Initialize empty repository state."""
        self.owner = owner
        self.repo_name = repo_name
        self.user = SimpleNamespace(login="octocat", email=None, id=583231)
        self.pull_requests: list[SimpleNamespace] = []
        self.pull_request_commit_messages: dict[int, list[str]] = {}
        self.updates: list[dict[str, Any]] = []
        self.created_pull_requests: list[dict[str, Any]] = []
        self.labels: dict[int, list[str]] = {}
        self.assignees: dict[int, list[str]] = {}
        self.reviewers: dict[int, dict[str, list[str] | None]] = {}
        self.auto_merge: dict[int, str] = {}
        self.forks_created = 0
        self.blobs: dict[str, bytes] = {}
        self.blob_uploads: list[str] = []
        self.trees: dict[str, list[dict[str, str]]] = {}
        self.commits: dict[str, dict[str, Any]] = {}
        self.refs: dict[str, str] = {}
        self.ref_updates: list[tuple[str, str, bool]] = []
        self.fail_on: set[str] = set()

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise RuntimeError(f"{operation} failed")

    def for_repository(self, owner: str, repo_name: str) -> "FakeGitHubAdapter":
        """Share state across repositories."""
        return self

    def add_pull_request(self, number: int, head: str, body: str, base_sha: str, commit_messages: list[str]) -> SimpleNamespace:
        """Register an open pull request."""
        pull_request = SimpleNamespace(
            number=number,
            html_url=f"https://github.com/{self.owner}/{self.repo_name}/pull/{number}",
            body=body,
            head=head,
            base=SimpleNamespace(sha=base_sha),
        )
        self.pull_requests.append(pull_request)
        self.pull_request_commit_messages[number] = list(commit_messages)
        return pull_request

    async def get_authenticated_user(self) -> Any:
        return self.user

    async def create_fork(self) -> Any:
        self.forks_created += 1
        return SimpleNamespace(full_name=f"fork/{self.repo_name}")

    async def list_pull_requests(self, state: Literal["open", "closed", "all"] = "open", head: str | None = None, **kwargs: Any) -> list[Any]:
        return [pull_request for pull_request in self.pull_requests if head is None or pull_request.head == head]

    async def list_pull_request_commit_messages(self, pull_number: int) -> list[str]:
        return list(self.pull_request_commit_messages.get(pull_number, []))

    async def create_pull_request(self, title: str, head: str, base: str, body: str | None = None, **kwargs: Any) -> Any:
        self.created_pull_requests.append({"title": title, "head": head, "base": base, "body": body})
        number = 100 + len(self.created_pull_requests)
        pull_request = self.add_pull_request(number, head, body or "", base_sha=f"base-of-{base}", commit_messages=[])
        pull_request.title = title
        return pull_request

    async def update_pull_request(self, pull_number: int, title: str | None = None, body: str | None = None, **kwargs: Any) -> Any:
        self.updates.append({"pull_number": pull_number, "title": title, "body": body})
        pull_request = next(pull_request for pull_request in self.pull_requests if pull_request.number == pull_number)
        if title is not None:
            pull_request.title = title
        if body is not None:
            pull_request.body = body
        return pull_request

    async def add_labels_to_issue(self, issue_number: int, labels: list[str]) -> None:
        self._maybe_fail("labels")
        self.labels[issue_number] = labels

    async def add_assignees_to_issue(self, issue_number: int, assignees: list[str]) -> None:
        self._maybe_fail("assignees")
        self.assignees[issue_number] = assignees

    async def request_reviewers(self, pull_number: int, reviewers: list[str] | None = None, team_reviewers: list[str] | None = None) -> None:
        self._maybe_fail("reviewers")
        requested = self.reviewers.setdefault(pull_number, {})
        if reviewers:
            requested["reviewers"] = reviewers
        if team_reviewers:
            requested["team_reviewers"] = team_reviewers

    async def enable_pull_request_auto_merge(self, pull_number: int, merge_method: str) -> None:
        self._maybe_fail("auto-merge")
        self.auto_merge[pull_number] = merge_method

    async def create_blob(self, content: str, encoding: Literal["base64", "utf-8"] = "base64") -> str:
        raw = base64.b64decode(content) if encoding == "base64" else content.encode("utf-8")
        sha = git_blob_sha(raw)
        self.blobs[sha] = raw
        self.blob_uploads.append(sha)
        return sha

    async def create_tree(self, tree: list[dict[str, str]]) -> str:
        sha = hashlib.sha1(repr(sorted((item["path"], item["sha"]) for item in tree)).encode()).hexdigest()
        self.trees[sha] = tree
        return sha

    async def create_commit(self, message: str, tree: str, parents: list[str]) -> str:
        sha = hashlib.sha1(f"{message}|{tree}|{','.join(parents)}".encode()).hexdigest()
        self.commits[sha] = {"message": message, "tree": tree, "parents": parents}
        return sha

    async def create_ref_if_missing(self, ref: str, sha: str) -> bool:
        if ref in self.refs:
            return False
        self.refs[ref] = sha
        return True

    async def update_ref(self, ref: str, sha: str, force: bool = False) -> None:
        self.ref_updates.append((ref, sha, force))
        self.refs[f"refs/{ref}"] = sha


@pytest.fixture
def fake_github() -> FakeGitHubAdapter:
    """An in-memory GitHub adapter."""
    return FakeGitHubAdapter()
