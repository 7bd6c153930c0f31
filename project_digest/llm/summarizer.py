"""
Best-effort LLM title and summary for an assembled update draft.

The provider is asked for a JSON object ``{"title", "summary"}``. Replies
wrapped in code fences or surrounded by prose are tolerated; a reply with no
JSON at all is used verbatim as the summary text.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

import httpx

from ..config import SummaryConfig
from ..core.errors import SummaryError
from ..core.types import Fact, SummaryOutcome, UpdateDraft
from ..sources.base import Source
from ..utils.logging import log_event
from .prompts import build_details_block, build_summary_system_prompt, build_summary_user_prompt
from .providers.base import SummaryProvider
from .tracing import record_span_error, set_span_output, start_span

SUMMARY_TITLE_MAX = 80


class Summarizer:
    """Turns a draft into a short status update using an LLM provider."""

    def __init__(
        self,
        provider: SummaryProvider,
        cfg: SummaryConfig,
        timezone: str = "UTC",
        logger: logging.Logger | None = None,
    ):
        self.provider = provider
        self.cfg = cfg
        self.timezone = timezone
        self.logger = logger

    @property
    def publish_enabled(self) -> bool:
        return self.cfg.publish

    async def collect_details(self, facts: Sequence[Fact], sources: Sequence[Source]) -> str:
        """Gather optional per-fact context from every source that offers it."""
        details: dict[str, str] = {}
        for source in sources:
            try:
                details.update(
                    await source.fetch_details(
                        facts,
                        include_bodies=self.cfg.include_bodies,
                        max_comments=self.cfg.max_comments,
                        max_chars=self.cfg.max_context_chars,
                    )
                )
            except Exception as exc:  # noqa: BLE001
                log_event(
                    self.logger,
                    "Detail enrichment failed",
                    level=logging.WARNING,
                    event="details_failed",
                    source=source.name,
                    error=str(exc),
                )
        return build_details_block(facts, details)

    async def summarize(self, draft: UpdateDraft, details: str = "") -> SummaryOutcome:
        """Ask the provider for a title and summary of ``draft``.

        Raises:
            SummaryError: If the provider fails or returns nothing usable
        """
        system_prompt = build_summary_system_prompt(self.cfg)
        user_prompt = build_summary_user_prompt(draft, self.timezone, draft.created_at, details)

        with start_span(
            "summarizer.summarize",
            kind="chain",
            input_value={"draft_id": draft.id, "details_chars": len(details)},
            attributes={"draft.id": draft.id, "provider": self.provider.name},
        ) as span:
            try:
                content = await self.provider.complete(system_prompt, user_prompt)
            except httpx.HTTPError as exc:
                record_span_error(span, exc)
                raise SummaryError(f"Summary provider failed: {type(exc).__name__}: {exc}") from exc

            title, text = parse_summary_reply(content)
            if not text:
                error = SummaryError("Summary provider returned an empty reply")
                record_span_error(span, error)
                raise error
            set_span_output(span, {"title": title, "summary": text})

        return SummaryOutcome(text=text, title=title)


def summary_draft(draft: UpdateDraft, outcome: SummaryOutcome) -> UpdateDraft:
    """Build the publishable ``<draft id>-summary`` companion of ``draft``."""
    title = outcome.title or f"{draft.title or 'Update'}: AI Summary"
    return UpdateDraft(
        id=f"{draft.id}-summary",
        created_at=draft.created_at,
        markdown=f"# AI Summary\n\n{outcome.text}\n",
        title=title,
        citations=list(draft.citations),
    )


def parse_summary_reply(content: str) -> tuple[str | None, str]:
    """Return ``(title, summary)`` from a provider reply."""
    content = (content or "").strip()
    if not content:
        return None, ""
    try:
        obj = _parse_json_response(content)
    except json.JSONDecodeError:
        return None, content
    if not isinstance(obj, dict):
        return None, content

    summary = str(obj.get("summary") or "").strip()
    title = str(obj.get("title") or "").strip() or None
    if title:
        title = title[:SUMMARY_TITLE_MAX]
    return title, summary


def _parse_json_response(content: str) -> Any:
    if not content:
        raise json.JSONDecodeError("Empty content", content or "", 0)
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        extracted = _extract_json_snippet(content)
        return json.loads(extracted)


def _extract_json_snippet(content: str) -> str:
    fence = _extract_fenced_json(content)
    if fence:
        return fence
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise json.JSONDecodeError("No JSON object found", content, 0)
    return content[start : end + 1]


def _extract_fenced_json(content: str) -> str | None:
    lines = content.splitlines()
    start_idx = None
    for idx, line in enumerate(lines):
        if line.strip().startswith("```") and "json" in line.lower():
            start_idx = idx + 1
            break
    if start_idx is None:
        return None
    for idx in range(start_idx, len(lines)):
        if lines[idx].strip().startswith("```"):
            snippet = "\n".join(lines[start_idx:idx]).strip()
            return snippet or None
    return None
