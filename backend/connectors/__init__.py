"""API connectors package."""
from connectors.github import GitHubConnector
from connectors.slack import SlackConnector

__all__ = [
    "GitHubConnector",
    "SlackConnector",
]
