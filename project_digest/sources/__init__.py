"""Activity sources."""

from .base import Source
from .github import GitHubSource, RepoRef, map_event_to_fact, parse_repo_spec

__all__ = ["GitHubSource", "RepoRef", "Source", "map_event_to_fact", "parse_repo_spec"]
