"""Draft assembler: turns one batch of facts into a publishable Markdown update."""

from __future__ import annotations

from typing import Sequence

from ..core.types import (
    Citation,
    CommitData,
    Fact,
    IssueData,
    PullRequestData,
    UpdateDraft,
)

EMPTY_UPDATE_MARKDOWN = "# Update\n\n_No new facts._\n"
CITATION_LABEL_MAX = 80


def render_facts_markdown(facts: Sequence[Fact]) -> str:
    """Render facts as a Markdown bullet list under an ``# Update`` heading."""
    if not facts:
        return EMPTY_UPDATE_MARKDOWN

    lines = ["# Update", ""]
    for fact in facts:
        lines.append(_format_fact_line(fact))
    lines.append("")
    return "\n".join(lines)


def build_update_draft(
    facts: Sequence[Fact],
    generated_at: str,
    title: str | None = None,
) -> UpdateDraft:
    """Assemble one draft from a batch of facts.

    Args:
        facts: Facts in the batch, in display order
        generated_at: Canonical ISO 8601 generation timestamp; also forms the id
        title: Optional display title

    Returns:
        UpdateDraft whose citations follow the order of facts that carry a URL
    """
    citations = [
        Citation(label=fact.summary[:CITATION_LABEL_MAX], url=fact.url)
        for fact in facts
        if fact.url
    ]
    return UpdateDraft(
        id=f"update-{generated_at}",
        created_at=generated_at,
        markdown=render_facts_markdown(facts),
        title=title,
        citations=citations,
    )


def _format_fact_line(fact: Fact) -> str:
    link = f" ([link]({fact.url}))" if fact.url else ""
    data = fact.data

    if fact.kind == "commit":
        sha = data.sha[:7] if isinstance(data, CommitData) else ""
        message = data.message if isinstance(data, CommitData) and data.message else fact.summary
        first_line = message.split("\n")[0].strip()
        sha_part = f"`{sha}` " if sha else ""
        return f"- {sha_part}{first_line} ({fact.occurred_at}){link}"

    number = getattr(data, "number", None)
    title = getattr(data, "title", None)
    state = getattr(data, "state", None)
    has_issue_fields = number is not None or bool(title) or bool(state)
    if has_issue_fields and (
        fact.kind in ("issue", "pull_request") or isinstance(data, (IssueData, PullRequestData))
    ):
        label = "PR" if fact.kind == "pull_request" or isinstance(data, PullRequestData) else "Issue"
        number_part = f" #{number}" if number is not None else ""
        title_part = f": {title}" if title else ""
        state_part = f" [{state}]" if state else ""
        return f"- {label}{number_part}{title_part}{state_part} ({fact.occurred_at}){link}"

    return f"- {fact.summary} ({fact.occurred_at}){link}"
