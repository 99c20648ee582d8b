"""Thin async wrapper around the `git` command line for local checkouts."""

import asyncio
from pathlib import Path

import structlog

from repo_file_sync.synchronize.models import GitTreeEntry, SourceCommit
from repo_file_sync.utils.constants import COMMIT_SHA_LENGTH

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class GitCommandError(Exception):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, args: tuple[str, ...], returncode: int, stderr: str, stdout: str = "") -> None:
        """Initializes the exception with the failed command and its output.

        `git commit` reports "nothing to commit" on stdout, so stdout is used
        when stderr is empty.
        """
        output = stderr.strip() or stdout.strip()
        super().__init__(f"git {' '.join(args)} failed with exit code {returncode}: {output}")
        self.args_ = args
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout


class GitRepository:
    """A local git checkout; every operation shells out to `git` inside `path`."""

    def __init__(self, path: Path, redact: list[str] | None = None) -> None:
        """Initialize the repository wrapper.

        Args:
            path: Directory of the checkout (or its parent, for clones).
            redact: Secrets that must never appear in logs or error messages.
        """
        self.path = path
        self._redact = [secret for secret in redact or [] if secret]

    def _scrub(self, text: str) -> str:
        for secret in self._redact:
            text = text.replace(secret, "***")
        return text

    def _error(self, args: tuple[str, ...], returncode: int, stdout: bytes, stderr: bytes) -> GitCommandError:
        return GitCommandError(
            tuple(self._scrub(arg) for arg in args),
            returncode or 1,
            self._scrub(stderr.decode("utf-8", errors="replace")),
            self._scrub(stdout.decode("utf-8", errors="replace")),
        )

    async def _execute(self, *args: str) -> tuple[int, bytes, bytes]:
        logger.debug("Running git command", command=self._scrub(" ".join(args)), cwd=str(self.path))
        process = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=self.path,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        return process.returncode or 0, stdout, stderr

    async def run_raw(self, *args: str) -> bytes:
        """Run a git command and return its raw standard output."""
        returncode, stdout, stderr = await self._execute(*args)
        if returncode != 0:
            raise self._error(args, returncode, stdout, stderr)
        return stdout

    async def run(self, *args: str, strip: bool = True) -> str:
        """Run a git command and return its decoded standard output."""
        output = (await self.run_raw(*args)).decode("utf-8", errors="replace")
        return output.strip() if strip else output

    # Identity and remotes
    async def set_identity(self, username: str, email: str) -> None:
        """Configure the local commit identity."""
        logger.debug("Setting git identity", username=username, email=email)
        await self.run("config", "--local", "user.name", username)
        await self.run("config", "--local", "user.email", email)

    async def add_remote(self, name: str, url: str) -> None:
        """Add a named remote."""
        await self.run("remote", "add", name, url)

    # Branches and history
    async def current_branch(self) -> str:
        """Name of the currently checked out branch."""
        return await self.run("rev-parse", "--abbrev-ref", "HEAD")

    async def rev_parse(self, ref: str = "HEAD") -> str:
        """Resolve a ref to a commit SHA."""
        return await self.run("rev-parse", ref)

    async def checkout(self, ref: str, new_branch: bool = False, start_point: str | None = None) -> None:
        """Check out a ref, optionally creating a new branch."""
        args = ["checkout"]
        if new_branch:
            args.append("-b")
        args.append(ref)
        if start_point is not None:
            args.append(start_point)
        await self.run(*args)

    async def fetch_branch(self, remote: str, branch: str, depth: int = 1) -> None:
        """Fetch a single branch that a shallow clone does not track yet."""
        await self.run("remote", "set-branches", remote, branch)
        await self.run("fetch", f"--depth={depth}", remote, branch)

    async def deepen(self, depth: int) -> None:
        """Deepen a shallow checkout by `depth` commits."""
        output = await self.run("fetch", f"--deepen={depth}")
        logger.debug("Deepened checkout", path=str(self.path), depth=depth, output=output)

    async def reset_hard(self, ref: str) -> None:
        """Reset the working tree and current branch to a ref."""
        await self.run("reset", "--hard", ref)

    async def get_commit(self, ref: str) -> SourceCommit:
        """Read the SHA and full message of a commit."""
        output = await self.run("log", "-n", "1", "--format=%H %B", ref)
        return SourceCommit(sha=output[:COMMIT_SHA_LENGTH], message=output[COMMIT_SHA_LENGTH + 1 :].strip())

    async def get_commit_message(self, ref: str) -> str:
        """Read the full message of a commit."""
        return await self.run("log", "-1", "--format=%B", ref)

    async def get_parent_sha(self, ref: str) -> str | None:
        """First parent of a commit, or None for a root commit.

        Read from the raw commit object, so it works at the boundary of a
        shallow clone where the parent itself is not available.
        """
        headers, _, _ = (await self.run("cat-file", "commit", ref)).partition("\n\n")
        for line in headers.splitlines():
            if line.startswith("parent "):
                return line.split(" ", 1)[1]
        return None

    async def list_commits(self, revision_range: str) -> list[str]:
        """List commit SHAs of a revision range, oldest first."""
        output = await self.run("rev-list", "--reverse", revision_range)
        return [sha for sha in output.splitlines() if sha]

    # Working tree
    async def add(self, path: str) -> None:
        """Stage a path, even when it is matched by ignore rules."""
        await self.run("add", "-f", "--", path)

    async def has_changes(self) -> bool:
        """Whether the index differs from HEAD.

        Unstaged and untracked files are not counted; only staged changes end
        up in the next commit.
        """
        args = ("diff", "--cached", "--quiet", "HEAD")
        returncode, stdout, stderr = await self._execute(*args)
        if returncode not in (0, 1):
            raise self._error(args, returncode, stdout, stderr)
        return returncode == 1

    async def restore_path(self, path: str) -> None:
        """Discard staged and unstaged changes below a path, including new files."""
        if await self.run("ls-tree", "HEAD", "--", path):
            await self.run("checkout", "HEAD", "--", path)
        await self.run("clean", "-fdxq", "--", path)

    async def commit(self, message: str) -> str:
        """Commit the staged changes and return the new commit SHA."""
        await self.run("commit", "-m", message)
        return await self.rev_parse("HEAD")

    async def push(self, *args: str) -> None:
        """Push to a remote; arguments are passed through to `git push`."""
        await self.run("push", *args)

    # Objects
    async def get_tree(self, ref: str) -> list[GitTreeEntry]:
        """Recursively list the tree of a commit."""
        output = await self.run("ls-tree", "-r", "--full-tree", ref)
        entries: list[GitTreeEntry] = []
        for line in output.splitlines():
            if not line:
                continue
            meta, _, path = line.partition("\t")
            mode, object_type, sha = meta.split()
            entries.append(GitTreeEntry(mode=mode, type=object_type, sha=sha, path=path))
        return entries

    async def read_blob(self, sha: str) -> bytes:
        """Read the raw content of a blob object."""
        return await self.run_raw("cat-file", "blob", sha)


async def clone_repository(url: str, destination: Path, branch: str | None = None, redact: list[str] | None = None) -> GitRepository:
    """Shallow-clone a repository and return a wrapper for the new checkout."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    args = ["clone", "--depth", "1"]
    if branch is not None:
        args.extend(["--branch", branch])
    args.extend([url, str(destination)])
    await GitRepository(destination.parent, redact=redact).run(*args)
    return GitRepository(destination, redact=redact)
