"""Sets up the authenticated githubkit client."""

from githubkit import GitHub
from githubkit.auth import TokenAuthStrategy

GitHubClient = GitHub[TokenAuthStrategy]


async def get_github_token_client(github_token: str, github_api_url: str) -> GitHubClient:
    """Returns an authenticated GitHub client for a PAT or an app installation token.

    Both token kinds authenticate the same way against the API; they only
    differ in what the sync engine is allowed to do with them (see
    `GitHubTokenType`). Supports custom base URL for GitHub Enterprise Server (GHES).
    """
    if not github_token:
        raise RuntimeError("GitHub authentication requires either GH_PAT or GH_INSTALLATION_TOKEN.")
    # Disable HTTP caching to always get fresh data
    return GitHub(auth=TokenAuthStrategy(github_token), base_url=github_api_url, http_cache=False)
