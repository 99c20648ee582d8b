"""Shared constants used across the application."""

import re

# Commit Message Constants
# ------------------------

ISSUE_REFERENCE_PATTERN = re.compile(r"\(#(\d+)\)")
"""Pattern to match `(#123)` style issue/PR references in source commit messages."""

COMMIT_SHA_LENGTH = 40
"""Length of a full hex commit SHA."""

# Pull Request Body Constants
# ---------------------------

SOURCE_REPO_BEFORE_REF_TEMPLATE = "<!-- srcRepoBeforeRef::{sha} -->"
"""Hidden comment persisting the replay anchor inside the pull request body."""

SOURCE_REPO_BEFORE_REF_PATTERN = re.compile(r"<!-- srcRepoBeforeRef::(.*?) -->")
"""Pattern to extract the replay anchor from a pull request body."""

WARNING_BANNER_START = "<!-- repo-file-sync:warning:start -->"
WARNING_BANNER_END = "<!-- repo-file-sync:warning:end -->"

WARNING_BANNER_PATTERN = re.compile(re.escape(WARNING_BANNER_START) + r".*?" + re.escape(WARNING_BANNER_END) + r"\n*", re.DOTALL)
"""Pattern matching a warning banner (plus trailing blank lines) left by any run."""

PR_BEING_UPDATED_WARNING_TEMPLATE = """<div align=center>
    <table>
        <tr>
            <td>
            :warning: :warning: <i><b>Warning:</b> This PR is being updated from within workflow run
            <a href="{run_url}">#{run_id}</a>
            ...</i>:warning: :warning:
            </td>
        </tr>
    </table>
</div>"""
"""Banner shown on an existing pull request while it is being replayed into."""

NO_COMMIT_MESSAGES_PLACEHOLDER = "_No Source Repo Commit Messages (PR created from manual workflow run)._"
"""Rendered in the pull request body when there are no commit messages to list."""

# Branch / Config Defaults
# ------------------------

SOURCE_REPO_NAME_PLACEHOLDER = "SOURCE_REPO_NAME"
"""Placeholder in the branch prefix replaced by the source repository name."""

DEFAULT_BRANCH_PREFIX = "repo-sync/SOURCE_REPO_NAME"
"""Default prefix for branches created in destination repositories."""

DEFAULT_BRANCH_SENTINEL = "default"
"""Branch value meaning "whatever the destination repository's default branch is"."""

DEFAULT_CONFIG_PATH = ".github/sync.yml"
"""Default path of the sync configuration file in the source repository."""

DEFAULT_PR_LABELS = ["sync"]
"""Labels added to pull requests unless disabled."""

DEFAULT_GITHUB_HOST = "github.com"

DEFAULT_BOT_USERNAME = "github-actions[bot]"
DEFAULT_BOT_EMAIL = "41898282+github-actions[bot]@users.noreply.github.com"
"""Commit identity used when neither configuration nor the token reveal one."""

FORK_REMOTE_NAME = "fork"
"""Name of the git remote pointing at the fork in fork workflows."""

REFERENCE_ALREADY_EXISTS_MESSAGE = "Reference already exists"
"""Message GitHub returns when creating a ref that already exists."""
