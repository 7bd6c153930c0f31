"""
GitHub Pages publisher.

Writes each draft as a Jekyll collection item through the GitHub contents
API and keeps a minimal site scaffold (``_config.yml``, ``index.md``) on the
Pages branch. The rendered body sits between ``<!--HA-START-->`` and
``<!--HA-END-->`` markers so the index page can lift it out of the layout.
"""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader
import yaml

from ..core.errors import GitHubAPIError, PublishError
from ..core.types import ProjectState, PublishResult, UpdateDraft
from ..github.client import GitHubClient
from ..utils.logging import log_event
from .base import Publisher, safe_id

BODY_START = "<!--HA-START-->"
BODY_END = "<!--HA-END-->"

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "output" / "templates"

_STATUS_HELP = {
    401: "Unauthorized token. Verify GHPAGES_TOKEN/GITHUB_TOKEN value.",
    403: (
        "Forbidden. Ensure the token has repo contents: write permission and access to this "
        "repository. In GitHub Actions, set permissions: contents: write."
    ),
    404: "Not found. Verify repository/branch exists and the token can access it.",
    409: "Conflict when updating the file/branch. Re-run to retry or ensure no concurrent updates are happening.",
    422: "Unprocessable entity. Branch protection or invalid parameters may be preventing writes.",
}


class GitHubPagesPublisher(Publisher):
    """Publishes drafts to a Jekyll site on a GitHub Pages branch."""

    name = "gh-pages"

    def __init__(
        self,
        client: GitHubClient,
        owner: str | None,
        repo: str | None,
        branch: str = "gh-pages",
        dir: str = "updates",
        base_url: str | None = None,
        site_title: str | None = None,
        site_subtitle: str | None = None,
        logger: logging.Logger | None = None,
    ):
        if not owner:
            raise PublishError("GitHub Pages publisher: missing owner. Set GHPAGES_OWNER when PUBLISHER=gh-pages")
        if not repo:
            raise PublishError("GitHub Pages publisher: missing repo. Set GHPAGES_REPO when PUBLISHER=gh-pages")
        if not branch or not branch.strip():
            raise PublishError("GitHub Pages publisher: invalid branch. Set GHPAGES_BRANCH (e.g., gh-pages)")

        self.client = client
        self.owner = owner
        self.repo = repo
        self.branch = branch.strip()
        self.dir = (dir or "updates").lstrip("_/") or "updates"
        self.base_url = base_url
        self.site_title = site_title
        self.site_subtitle = site_subtitle
        self.logger = logger
        self._prepared = False
        self._env = Environment(
            loader=FileSystemLoader(str(_TEMPLATE_DIR)),
            autoescape=False,
            keep_trailing_newline=True,
        )

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def prepare(self) -> None:
        if self._prepared:
            return
        await self._ensure_branch_exists()
        await self._ensure_scaffold()
        self._prepared = True

    async def refresh_index(self) -> None:
        self._prepared = False
        await self.prepare()
        log_event(self.logger, "Pages scaffold ensured", event="index_refreshed", branch=self.branch)

    async def publish(self, draft: UpdateDraft, state: ProjectState) -> PublishResult:
        await self.prepare()
        slug = safe_id(draft.id)
        path = f"_{self.dir}/{slug}.md"
        await self._write_file(path, self.render_document(draft), f"project-digest: publish update {draft.id}")
        log_event(self.logger, "Update pushed", event="ghpages_published", path=path, branch=self.branch)
        return PublishResult(id=draft.id, url=self.public_url(slug))

    async def aclose(self) -> None:
        await self.client.aclose()

    def render_document(self, draft: UpdateDraft) -> str:
        """Render the collection item: front matter plus the marked body."""
        slug = safe_id(draft.id)
        front_matter: dict[str, Any] = {
            "id": draft.id,
            "ha_kind": "summary" if draft.id.endswith("-summary") else "update",
        }
        if draft.title:
            front_matter["title"] = draft.title
            front_matter["ha_title"] = draft.title
        front_matter["createdAt"] = draft.created_at
        front_matter["date"] = draft.created_at
        front_matter["permalink"] = f"{self.dir}/{slug}.html"
        if draft.citations:
            front_matter["citations"] = len(draft.citations)

        header = yaml.safe_dump(front_matter, sort_keys=False, allow_unicode=True)
        title_block = f"# {draft.title}\n\n" if draft.title else ""
        return f"---\n{header}---\n\n{BODY_START}\n{title_block}{draft.markdown}\n{BODY_END}\n"

    def public_url(self, slug: str) -> str:
        # Jekyll serves collection items as HTML.
        html_name = quote(f"{slug}.html")
        if self.base_url:
            return f"{self.base_url.rstrip('/')}/{html_name}"
        return f"https://{self.owner}.github.io/{self.repo}/{self.dir}/{html_name}"

    def render_scaffold(self) -> dict[str, str]:
        values = {
            "site_title": self.site_title or "Project Updates",
            "site_subtitle": self.site_subtitle or "",
            "collection": self.dir,
        }
        return {
            "_config.yml": self._env.get_template("ghpages_config.yml").render(**values),
            "index.md": self._env.get_template("ghpages_index.md").render(**values),
        }

    async def _ensure_branch_exists(self) -> None:
        try:
            await self.client.get_json(f"{self._repo_path}/git/ref/heads/{self.branch}")
            return
        except GitHubAPIError as exc:
            if exc.status != 404:
                raise self._publish_error(exc, f"read branch '{self.branch}'") from exc

        try:
            repo_info = await self.client.get_json(self._repo_path)
            default_branch = repo_info["default_branch"]
            base_ref = await self.client.get_json(f"{self._repo_path}/git/ref/heads/{default_branch}")
            await self.client.post_json(
                f"{self._repo_path}/git/refs",
                {"ref": f"refs/heads/{self.branch}", "sha": base_ref["object"]["sha"]},
            )
        except GitHubAPIError as exc:
            raise self._publish_error(exc, f"create branch '{self.branch}'") from exc
        log_event(self.logger, "Pages branch created", event="ghpages_branch_created", branch=self.branch)

    async def _ensure_scaffold(self) -> None:
        for path, content in self.render_scaffold().items():
            existing_sha, existing_content = await self._read_file(path)
            if existing_sha and existing_content == content:
                continue
            message = f"project-digest: update {path}" if existing_sha else f"project-digest: bootstrap {path}"
            await self._put_file(path, content, message, existing_sha)

    async def _write_file(self, path: str, content: str, message: str) -> None:
        existing_sha, _ = await self._read_file(path)
        await self._put_file(path, content, message, existing_sha)

    async def _read_file(self, path: str) -> tuple[str | None, str | None]:
        try:
            data = await self.client.get_json(
                f"{self._repo_path}/contents/{path}",
                params={"ref": self.branch},
            )
        except GitHubAPIError as exc:
            if exc.status == 404:
                return None, None
            raise self._publish_error(exc, f"read existing file {path} on {self.branch}") from exc

        if not isinstance(data, dict):
            return None, None
        raw = data.get("content")
        content = None
        if isinstance(raw, str) and data.get("encoding", "base64") == "base64":
            content = base64.b64decode(raw.replace("\n", "")).decode("utf-8")
        return data.get("sha"), content

    async def _put_file(self, path: str, content: str, message: str, sha: str | None) -> None:
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": self.branch,
        }
        if sha:
            payload["sha"] = sha
        try:
            await self.client.put_json(f"{self._repo_path}/contents/{path}", payload)
        except GitHubAPIError as exc:
            raise self._publish_error(exc, f"write file {path} on {self.branch}") from exc

    def _publish_error(self, exc: GitHubAPIError, doing: str) -> PublishError:
        message = f"Failed to {doing} in {self.owner}/{self.repo}."
        if exc.status in _STATUS_HELP:
            message += f" {_STATUS_HELP[exc.status]}"
        elif exc.status:
            message += f" HTTP {exc.status}."
        message += f" Original error: {exc}"
        return PublishError(message)
