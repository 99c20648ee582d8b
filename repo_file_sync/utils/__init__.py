"""Utility modules for shared functionality."""

from .constants import (
    DEFAULT_BRANCH_PREFIX,
    DEFAULT_CONFIG_PATH,
    ISSUE_REFERENCE_PATTERN,
    SOURCE_REPO_BEFORE_REF_PATTERN,
)
from .retry import retry_on_rate_limit

__all__ = [
    "ISSUE_REFERENCE_PATTERN",
    "SOURCE_REPO_BEFORE_REF_PATTERN",
    "DEFAULT_BRANCH_PREFIX",
    "DEFAULT_CONFIG_PATH",
    "retry_on_rate_limit",
]
