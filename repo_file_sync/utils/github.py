"""Contains helpers for GitHub repository names."""


def split_repository(full_name: str | None) -> tuple[str, str]:
    """Split an `owner/name` repository into its owner and name.

    Raises:
        ValueError: If the value is missing or has more or fewer than two parts.
    """
    if not full_name:
        raise ValueError("Repository must be provided as 'owner/name'.")
    owner, _, name = full_name.strip("/").partition("/")
    if not owner or not name or "/" in name:
        raise ValueError(f"Repository '{full_name}' must be in the format 'owner/name'.")
    return owner, name
