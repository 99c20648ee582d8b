"""Custom exceptions for the processing module."""

from typing import Any


class SyncConfigProcessingError(Exception):
    """Raised when errors are encountered while processing the sync configuration file."""

    def __init__(self, errors: list[dict[str, Any]]):
        """Initializes the exception with every error collected while processing."""
        super().__init__("Errors encountered during sync configuration processing.")
        self.errors = errors
