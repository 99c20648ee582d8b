"""Contains exceptions raised when reconciling application configuration."""


class GitHubTokenConfigurationError(Exception):
    """Raised when the GitHub token configuration is missing or ambiguous."""

    pass


class RequiredConfigurationElementError(Exception):
    """Raised when a required configuration element is missing."""

    def __init__(self, name: str, cli_name: str, env_name: str) -> None:
        """Initializes the exception with the name of the missing element."""
        super().__init__(f"Missing required configuration element: {name} (command line option {cli_name}, environment variable {env_name})")
        self.name = name
        self.cli_name = cli_name
        self.env_name = env_name


class InvalidConfigurationValueError(Exception):
    """Raised when a configuration element has a value outside its allowed set."""

    def __init__(self, env_name: str, value: str, allowed: list[str]) -> None:
        """Initializes the exception with the rejected value and the allowed ones."""
        super().__init__(f"{env_name} must be one of {', '.join(repr(item) for item in allowed)}, got '{value}'")
        self.env_name = env_name
        self.value = value
        self.allowed = allowed
