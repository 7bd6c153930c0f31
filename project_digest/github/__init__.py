"""GitHub REST API access."""

from .client import DEFAULT_API_URL, GitHubClient

__all__ = ["DEFAULT_API_URL", "GitHubClient"]
