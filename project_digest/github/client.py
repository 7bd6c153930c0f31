"""
Async GitHub REST client shared by the GitHub source and the Pages publisher.

Wraps ``httpx.AsyncClient`` with:
- token auth and the GitHub JSON media type
- Link-header pagination
- exponential backoff with jitter on 403/429 (rate limiting)
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any

import httpx

from ..core.errors import GitHubAPIError
from ..utils.logging import log_event

DEFAULT_API_URL = "https://api.github.com"
_RATE_LIMIT_STATUSES = {403, 429}


class GitHubClient:
    """Thin async wrapper around the GitHub REST API.

    Args:
        token: Personal access or app token; requests go unauthenticated when empty
        api_url: REST API root
        timeout_seconds: Per-request timeout
        retries: Total attempts for rate-limited requests
        backoff_seconds: Base delay; attempt ``n`` waits ``base * n * n`` plus jitter
        trust_env: Whether to respect system proxy settings
        transport: Optional httpx transport (used by tests)
        logger: Optional pipeline logger
    """

    def __init__(
        self,
        token: str | None,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = 30.0,
        retries: int = 3,
        backoff_seconds: float = 1.0,
        trust_env: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
    ):
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "project-digest",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout_seconds,
            trust_env=trust_env,
            transport=transport,
        )
        self.retries = max(1, int(retries))
        self.backoff_seconds = backoff_seconds
        self.logger = logger

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        """Send one request, retrying only while GitHub reports rate limiting.

        Raises:
            GitHubAPIError: On any non-2xx response or transport failure
        """
        for attempt in range(1, self.retries + 1):
            try:
                resp = await self._client.request(method, path, params=params, json=json)
            except httpx.HTTPError as exc:
                raise GitHubAPIError(f"{method} {path} failed: {type(exc).__name__}: {exc}") from exc

            if resp.status_code < 400:
                return resp

            if resp.status_code in _RATE_LIMIT_STATUSES and attempt < self.retries:
                delay = self.backoff_seconds * attempt * attempt + random.uniform(0, 0.5) * self.backoff_seconds
                log_event(
                    self.logger,
                    "GitHub rate limited, backing off",
                    event="github_rate_limited",
                    path=path,
                    status=resp.status_code,
                    attempt=attempt,
                    delay_seconds=round(delay, 2),
                )
                await asyncio.sleep(delay)
                continue

            raise GitHubAPIError(
                f"{method} {path} returned HTTP {resp.status_code}: {_error_message(resp)}",
                status=resp.status_code,
            )

        raise GitHubAPIError(f"{method} {path} exhausted retries")

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        resp = await self.request("GET", path, params=params)
        return resp.json()

    async def put_json(self, path: str, payload: dict[str, Any]) -> Any:
        resp = await self.request("PUT", path, json=payload)
        return resp.json()

    async def post_json(self, path: str, payload: dict[str, Any]) -> Any:
        resp = await self.request("POST", path, json=payload)
        return resp.json()

    async def paginate(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        """Collect every item of a list endpoint by following ``rel="next"`` links."""
        items: list[Any] = []
        resp = await self.request("GET", path, params=params)
        while True:
            page = resp.json()
            if isinstance(page, list):
                items.extend(page)
            next_link = resp.links.get("next", {}).get("url")
            if not next_link:
                return items
            # The next link already carries the query string.
            resp = await self.request("GET", next_link)


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.text[:200]
