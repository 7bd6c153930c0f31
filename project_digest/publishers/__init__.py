"""Destinations for assembled update drafts."""

from .base import Publisher, safe_id
from .factory import build_publisher
from .fs import FileSystemPublisher, render_markdown_document
from .ghpages import GitHubPagesPublisher

__all__ = [
    "FileSystemPublisher",
    "GitHubPagesPublisher",
    "Publisher",
    "build_publisher",
    "render_markdown_document",
    "safe_id",
]
