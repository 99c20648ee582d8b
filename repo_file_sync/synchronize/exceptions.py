"""Contains exceptions raised while synchronizing a destination repository."""


class ConfigurationStateError(Exception):
    """Raised when persisted or configured state makes it unsafe to continue a session."""

    pass


class MissingBeforeRefError(ConfigurationStateError):
    """Raised when an existing pull request body has no usable replay anchor."""

    def __init__(self, pull_request_number: int) -> None:
        """Initializes the exception with the number of the offending pull request."""
        super().__init__(
            f"Pull request #{pull_request_number} has no srcRepoBeforeRef anchor in its body; cannot determine which source commits were synced"
        )
        self.pull_request_number = pull_request_number


class UnsupportedAutoMergeMethodError(ConfigurationStateError):
    """Raised when the configured auto-merge method is not one GitHub supports."""

    def __init__(self, merge_method: str) -> None:
        """Initializes the exception with the rejected merge method."""
        super().__init__(f"AUTO_MERGE_MERGE_METHOD must be one of 'MERGE', 'REBASE' or 'SQUASH', got '{merge_method}'")
        self.merge_method = merge_method
