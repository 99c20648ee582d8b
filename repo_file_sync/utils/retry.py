"""Retry decorator for GitHub API rate limits.

Every call the sync engine makes against the GitHub API goes through
`retry_on_rate_limit`. Rate limiting is never treated as a failure: the call
blocks for the interval GitHub asks for and is then retried.
"""

import asyncio
import functools
import time
from typing import Any, Awaitable, Callable, TypeVar

import structlog
from githubkit.exception import PrimaryRateLimitExceeded, RequestFailed, SecondaryRateLimitExceeded

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def _wait_time_from_headers(exc: RequestFailed, fallback: float) -> float:
    """Derive the wait time from `retry-after` or `x-ratelimit-reset` headers."""
    headers = exc.response.headers
    retry_after = headers.get("retry-after")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            logger.warning("Invalid retry-after header value", retry_after=retry_after)
    rate_limit_reset = headers.get("x-ratelimit-reset")
    if rate_limit_reset:
        try:
            reset_timestamp = int(rate_limit_reset)
        except ValueError:
            logger.warning("Invalid x-ratelimit-reset header value", rate_limit_reset=rate_limit_reset)
        else:
            now = int(time.time())
            if reset_timestamp > now:
                return float(reset_timestamp - now + 1)
    return fallback


def _is_rate_limit_response(exc: RequestFailed) -> bool:
    status_code = exc.response.status_code
    if status_code == 429:
        return True
    if status_code != 403:
        return False
    if exc.response.headers.get("x-ratelimit-remaining") == "0" or exc.response.headers.get("retry-after"):
        return True
    return "rate limit" in str(exc).lower()


def retry_on_rate_limit(
    max_retries: int = 100,
    initial_delay: float = 10.0,
    max_delay: float = 900.0,
    exponential_base: float = 2.0,
) -> Callable[[F], F]:
    """Decorator for retrying async GitHub API calls that hit primary or secondary rate limits.

    Args:
        max_retries: Maximum number of retry attempts (default: 100)
        initial_delay: Delay used when GitHub does not say how long to wait (default: 10.0)
        max_delay: Upper bound for any single wait, in seconds (default: 900.0)
        exponential_base: Growth factor of the fallback delay between attempts (default: 2.0)

    Returns:
        Decorated coroutine function with retry logic

    Example:
        @retry_on_rate_limit()
        async def create_blob(self, content: str) -> str:
            ...
    """

    def decorator(func: F) -> F:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"Function {func.__name__} decorated with @retry_on_rate_limit must be async")

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = initial_delay
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except (PrimaryRateLimitExceeded, SecondaryRateLimitExceeded) as exc:
                    if attempt == max_retries:
                        logger.error("Max retries reached for GitHub rate limit", function=func.__name__, attempt=attempt + 1)
                        raise
                    retry_after = getattr(exc, "retry_after", None)
                    wait_time = retry_after.total_seconds() if retry_after else delay
                    rate_limit_type = "primary" if isinstance(exc, PrimaryRateLimitExceeded) else "secondary"
                except RequestFailed as exc:
                    if not _is_rate_limit_response(exc):
                        raise
                    if attempt == max_retries:
                        logger.error(
                            "Max retries reached for GitHub rate limit",
                            function=func.__name__,
                            attempt=attempt + 1,
                            status_code=exc.response.status_code,
                        )
                        raise
                    wait_time = _wait_time_from_headers(exc, delay)
                    rate_limit_type = "secondary" if exc.response.status_code == 403 else "primary"

                wait_time = min(wait_time, max_delay)
                logger.warning(
                    "Hit GitHub API rate limit, retrying",
                    function=func.__name__,
                    rate_limit_type=rate_limit_type,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    wait_time=wait_time,
                )
                await asyncio.sleep(wait_time)
                delay = min(delay * exponential_base, max_delay)

        return wrapper  # type: ignore

    return decorator
