"""
Core data types for the project digest pipeline.

This module defines the fundamental data structures used throughout the pipeline:
- Event: Raw, ephemeral occurrence pulled from a source
- Fact: Durable, deduplicated unit of project history
- CommitData / IssueData / PullRequestData / GenericData: Per-kind fact detail
- UpdateDraft: Rendered document built from one batch of facts
- ProjectState: Persisted aggregate of known facts and last run time
- PublishResult / SummaryOutcome / BatchOutcome / RunResult: Pipeline outputs

Timestamps are carried as canonical ISO 8601 strings
(``YYYY-MM-DDTHH:MM:SS.mmmZ``) so that plain string comparison orders them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Union

EPOCH_ISO = "1970-01-01T00:00:00.000Z"


def parse_iso8601(value: str) -> datetime:
    """Parse an ISO 8601 timestamp string into a timezone-aware datetime."""
    raw = value.strip()
    if raw.endswith("Z"):
        raw = f"{raw[:-1]}+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_iso8601(value: datetime) -> str:
    """Format a datetime as a fixed-width UTC timestamp with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    return f"{utc:%Y-%m-%dT%H:%M:%S}.{utc.microsecond // 1000:03d}Z"


def normalize_iso8601(value: str) -> str:
    """Rewrite any ISO 8601 timestamp into the canonical UTC form."""
    return format_iso8601(parse_iso8601(value))


@dataclass(frozen=True)
class CommitData:
    """Detail for a commit fact.

    Attributes:
        sha: Full commit hash
        message: Full commit message (first line is the subject)
        author: Optional author display name
        repo: Optional ``owner/repo`` the commit belongs to
    """

    sha: str
    message: str = ""
    author: str | None = None
    repo: str | None = None
    type: Literal["commit"] = "commit"


@dataclass(frozen=True)
class IssueData:
    """Detail for an issue fact."""

    number: int | None = None
    title: str | None = None
    state: str | None = None
    repo: str | None = None
    type: Literal["issue"] = "issue"


@dataclass(frozen=True)
class PullRequestData:
    """Detail for a pull request fact."""

    number: int | None = None
    title: str | None = None
    state: str | None = None
    repo: str | None = None
    type: Literal["pull_request"] = "pull_request"


@dataclass(frozen=True)
class GenericData:
    """Open bag of fields for sources without a dedicated detail shape."""

    fields: dict[str, Any] = field(default_factory=dict)
    type: Literal["generic"] = "generic"


FactData = Union[CommitData, IssueData, PullRequestData, GenericData]


@dataclass(frozen=True)
class Event:
    """A raw occurrence pulled from a source.

    Events are never persisted; a source converts them to facts right away.

    Attributes:
        id: Source-scoped unique identifier, stable across pulls
        source: Origin tag (e.g., "github")
        kind: Event category (e.g., "commit", "issue", "pull_request")
        occurred_at: Authoritative time of occurrence (ISO 8601)
        payload: Source-specific data
        url: Optional link to the item
    """

    id: str
    source: str
    kind: str
    occurred_at: str
    payload: dict[str, Any] = field(default_factory=dict)
    url: str | None = None


@dataclass(frozen=True)
class Fact:
    """The durable, source-agnostic unit of project history.

    Two facts with the same ``id`` are the same historical item regardless
    of content; the later-observed copy wins on merge.

    Attributes:
        id: Globally unique identifier, the deduplication key
        kind: Fact category
        summary: Human-readable one-liner
        occurred_at: Canonical ISO 8601 timestamp
        source: Origin tag
        url: Optional link to the item
        data: Optional structured detail, one shape per kind
    """

    id: str
    kind: str
    summary: str
    occurred_at: str
    source: str
    url: str | None = None
    data: FactData | None = None


@dataclass(frozen=True)
class Citation:
    label: str
    url: str


@dataclass
class UpdateDraft:
    """A rendered update built from one batch of facts.

    Attributes:
        id: Unique draft identifier derived from the generation timestamp
        created_at: Generation timestamp (ISO 8601)
        markdown: Rendered Markdown body
        title: Optional display title
        citations: Links to the facts that carry a URL, in batch order
    """

    id: str
    created_at: str
    markdown: str
    title: str | None = None
    citations: list[Citation] = field(default_factory=list)


@dataclass
class ProjectState:
    """Persisted aggregate, replaced wholesale at the end of every run.

    Attributes:
        facts: Known facts, unique by id, ascending by occurred_at
        last_run_at: Start time of the last completed run
        last_update: Most recent draft (informational only)
    """

    facts: list[Fact] = field(default_factory=list)
    last_run_at: str | None = None
    last_update: UpdateDraft | None = None


@dataclass(frozen=True)
class PublishResult:
    id: str
    url: str | None = None


@dataclass
class SummaryOutcome:
    """Result of the optional LLM summary step for one batch."""

    text: str = ""
    title: str | None = None
    published: PublishResult | None = None
    error: str | None = None


@dataclass
class BatchOutcome:
    """Per-batch record returned to the caller.

    Attributes:
        draft: The assembled draft
        facts: Facts grouped into this batch
        published: Publisher result, or None when not published
        error: Publish error message, or None on success
        summary: Summary outcome, or None when summarization did not run
    """

    draft: UpdateDraft
    facts: list[Fact]
    published: PublishResult | None = None
    error: str | None = None
    summary: SummaryOutcome | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunResult:
    """Structured result of one pipeline invocation."""

    state: ProjectState
    new_fact_count: int
    pulled_fact_count: int = 0
    batches: list[BatchOutcome] = field(default_factory=list)

    @property
    def publish_errors(self) -> list[str]:
        return [batch.error for batch in self.batches if batch.error]
