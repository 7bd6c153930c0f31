"""Publisher factory keyed by the configured publisher kind."""

from __future__ import annotations

import logging

import httpx

from ..config import AppConfig, get_pages_token, normalize_publisher_kind
from ..core.errors import PublishError
from ..github.client import GitHubClient
from .base import Publisher
from .fs import FileSystemPublisher
from .ghpages import GitHubPagesPublisher


def build_publisher(
    cfg: AppConfig,
    logger: logging.Logger | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Publisher | None:
    """Build the configured publisher, or None when publishing is disabled.

    Raises:
        PublishError: If the GitHub Pages publisher is missing required settings
    """
    pub = cfg.publisher
    kind = normalize_publisher_kind(pub.kind)

    if kind == "none":
        return None

    if kind == "gh-pages":
        token = get_pages_token(pub, cfg.github)
        if not token:
            raise PublishError(
                "GitHub Pages publisher: missing token. Set GHPAGES_TOKEN or GITHUB_TOKEN when PUBLISHER=gh-pages"
            )
        client = GitHubClient(
            token,
            api_url=cfg.github.api_url,
            timeout_seconds=cfg.github.timeout_seconds,
            retries=cfg.github.retries,
            trust_env=cfg.github.trust_env,
            transport=transport,
            logger=logger,
        )
        return GitHubPagesPublisher(
            client,
            owner=pub.owner,
            repo=pub.repo,
            branch=pub.branch,
            dir=pub.dir,
            base_url=pub.base_url,
            site_title=pub.site_title,
            site_subtitle=pub.site_subtitle,
            logger=logger,
        )

    return FileSystemPublisher(
        pub.out_dir,
        base_url=pub.base_url,
        site_title=pub.site_title,
        logger=logger,
    )
