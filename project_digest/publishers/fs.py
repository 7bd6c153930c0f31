"""Local filesystem publisher: Markdown files plus a JSON and HTML index."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote

import yaml

from ..core.errors import PublishError
from ..core.types import ProjectState, PublishResult, UpdateDraft
from ..output.index_sync import render_index_html, upsert_index_entry
from ..utils.logging import log_event
from .base import Publisher, safe_id


def render_markdown_document(draft: UpdateDraft) -> str:
    """Return ``draft`` as Markdown with a YAML front matter header."""
    front_matter: dict[str, Any] = {"id": draft.id}
    if draft.title:
        front_matter["title"] = draft.title
    front_matter["createdAt"] = draft.created_at
    if draft.citations:
        front_matter["citations"] = len(draft.citations)
    header = yaml.safe_dump(front_matter, sort_keys=False, allow_unicode=True)
    return f"---\n{header}---\n{draft.markdown}\n"


class FileSystemPublisher(Publisher):
    """Writes ``<safe id>.md`` files into ``out_dir`` and keeps an index of them."""

    name = "fs"

    def __init__(
        self,
        out_dir: Path | str,
        base_url: str | None = None,
        site_title: str | None = None,
        logger: logging.Logger | None = None,
    ):
        self.out_dir = Path(out_dir).expanduser().resolve()
        self.base_url = base_url
        self.site_title = site_title or "Project Updates"
        self.logger = logger

    async def prepare(self) -> None:
        self.out_dir.mkdir(parents=True, exist_ok=True)

    async def publish(self, draft: UpdateDraft, state: ProjectState) -> PublishResult:
        file_name = f"{safe_id(draft.id)}.md"
        url = None
        if self.base_url:
            url = f"{self.base_url.rstrip('/')}/{quote(file_name)}"

        try:
            await self.prepare()
            (self.out_dir / file_name).write_text(render_markdown_document(draft), encoding="utf-8")
            upsert_index_entry(self.out_dir, draft, path=file_name, url=url)
            render_index_html(self.out_dir, self.site_title)
        except OSError as exc:
            raise PublishError(f"Cannot write {file_name} to {self.out_dir}: {exc}") from exc

        log_event(self.logger, "Update written", event="fs_published", path=str(self.out_dir / file_name))
        return PublishResult(id=draft.id, url=url)

    async def refresh_index(self) -> None:
        try:
            await self.prepare()
            html_path = render_index_html(self.out_dir, self.site_title)
        except OSError as exc:
            raise PublishError(f"Cannot rebuild index in {self.out_dir}: {exc}") from exc
        log_event(self.logger, "Index rebuilt", event="index_refreshed", path=str(html_path))
