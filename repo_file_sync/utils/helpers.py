"""General utility functions and helper classes."""

from repo_file_sync.utils.constants import ISSUE_REFERENCE_PATTERN


def rewrite_issue_references(message: str, source_repository_url: str | None) -> str:
    """Rewrite `(#123)` references into absolute pull request URLs of the source repository.

    A bare `#123` in a destination repository would link to the wrong issue
    (and notify the wrong people), so every reference is made absolute.
    """
    if not source_repository_url:
        return message
    base_url = source_repository_url.rstrip("/")
    return ISSUE_REFERENCE_PATTERN.sub(lambda match: f"({base_url}/pull/{match.group(1)})", message)


def first_line(message: str) -> str:
    """Return the first line of a (possibly multi-line) message."""
    return message.split("\n", 1)[0]


def split_list_input(value: str | None) -> list[str]:
    """Split a comma or newline separated input into a list of non-empty, stripped items."""
    if not value:
        return []
    items: list[str] = []
    for line in value.replace(",", "\n").splitlines():
        item = line.strip()
        if item:
            items.append(item)
    return items


def is_disabled_input(value: str | None) -> bool:
    """Check whether a disableable input was explicitly switched off."""
    return value is not None and value.strip().lower() == "false"
