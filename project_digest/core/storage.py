"""
Persisted project state.

The state is a single JSON document:

    {"lastRunAt": "...", "facts": [...], "lastUpdate": {...}}

Reads validate the document against a pydantic schema and raise
``InvalidStateError`` for anything that does not match; a missing file means
"no state yet" and returns ``None``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict
import json
import os
from pathlib import Path
import tempfile
from typing import Annotated, Any, Union

from pydantic import AfterValidator, AnyUrl, BaseModel, Field, TypeAdapter, ValidationError

from .errors import InvalidStateError, StateError
from .types import (
    Citation,
    CommitData,
    Fact,
    GenericData,
    IssueData,
    ProjectState,
    PullRequestData,
    UpdateDraft,
    normalize_iso8601,
    parse_iso8601,
)

_URL_ADAPTER = TypeAdapter(AnyUrl)

FactDataField = Annotated[
    Union[CommitData, IssueData, PullRequestData, GenericData],
    Field(discriminator="type"),
]


def _check_timestamp(value: str) -> str:
    try:
        parse_iso8601(value)
    except ValueError as exc:
        raise ValueError(f"not an ISO 8601 timestamp: {value!r}") from exc
    return value


def _check_url(value: str) -> str:
    _URL_ADAPTER.validate_python(value)
    return value


IsoTimestamp = Annotated[str, AfterValidator(_check_timestamp)]
HttpUrlString = Annotated[str, AfterValidator(_check_url)]


class CitationRecord(BaseModel):
    label: str
    url: HttpUrlString


class FactRecord(BaseModel):
    id: str
    kind: str
    summary: str
    occurredAt: IsoTimestamp
    source: str
    url: HttpUrlString | None = None
    data: FactDataField | None = None


class UpdateDraftRecord(BaseModel):
    id: str
    createdAt: IsoTimestamp
    title: str | None = None
    markdown: str
    citations: list[CitationRecord]


class ProjectStateRecord(BaseModel):
    lastRunAt: IsoTimestamp | None = None
    facts: list[FactRecord]
    lastUpdate: UpdateDraftRecord | None = None


def state_to_dict(state: ProjectState) -> dict[str, Any]:
    """Convert ProjectState to its persisted JSON shape."""
    payload: dict[str, Any] = {}
    if state.last_run_at is not None:
        payload["lastRunAt"] = state.last_run_at
    payload["facts"] = [_fact_to_dict(fact) for fact in state.facts]
    if state.last_update is not None:
        payload["lastUpdate"] = _draft_to_dict(state.last_update)
    return payload


def state_from_dict(raw: Any) -> ProjectState:
    """Validate a persisted JSON document and rebuild ProjectState.

    Raises:
        ValidationError: If any field fails schema validation
    """
    record = ProjectStateRecord.model_validate(raw)
    return ProjectState(
        facts=[_fact_from_record(item) for item in record.facts],
        last_run_at=normalize_iso8601(record.lastRunAt) if record.lastRunAt else None,
        last_update=_draft_from_record(record.lastUpdate) if record.lastUpdate else None,
    )


def _fact_to_dict(fact: Fact) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": fact.id,
        "kind": fact.kind,
        "summary": fact.summary,
        "occurredAt": fact.occurred_at,
        "source": fact.source,
    }
    if fact.url is not None:
        payload["url"] = fact.url
    if fact.data is not None:
        payload["data"] = asdict(fact.data)
    return payload


def _draft_to_dict(draft: UpdateDraft) -> dict[str, Any]:
    payload: dict[str, Any] = {"id": draft.id, "createdAt": draft.created_at}
    if draft.title is not None:
        payload["title"] = draft.title
    payload["markdown"] = draft.markdown
    payload["citations"] = [{"label": c.label, "url": c.url} for c in draft.citations]
    return payload


def _fact_from_record(record: FactRecord) -> Fact:
    return Fact(
        id=record.id,
        kind=record.kind,
        summary=record.summary,
        occurred_at=normalize_iso8601(record.occurredAt),
        source=record.source,
        url=record.url,
        data=record.data,
    )


def _draft_from_record(record: UpdateDraftRecord) -> UpdateDraft:
    return UpdateDraft(
        id=record.id,
        created_at=normalize_iso8601(record.createdAt),
        title=record.title,
        markdown=record.markdown,
        citations=[Citation(label=c.label, url=c.url) for c in record.citations],
    )


class StateStore(ABC):
    """Read/write contract for the persisted project state."""

    @abstractmethod
    def read_state(self) -> ProjectState | None:
        """Return the stored state, or None if nothing has been stored yet."""
        raise NotImplementedError

    @abstractmethod
    def write_state(self, state: ProjectState) -> None:
        """Persist the given state, replacing any previous one."""
        raise NotImplementedError


class FileStateStore(StateStore):
    """Filesystem-backed store that keeps the state in one JSON file."""

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser().resolve()

    def read_state(self) -> ProjectState | None:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StateError(f"Cannot read persisted state at {self.path}: {exc}") from exc

        try:
            raw = json.loads(data.decode("utf-8"))
            return state_from_dict(raw)
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            raise InvalidStateError(f"Invalid persisted state at {self.path}: {exc}") from exc

    def write_state(self, state: ProjectState) -> None:
        payload = state_to_dict(state)
        try:
            ProjectStateRecord.model_validate(payload)
        except ValidationError as exc:
            raise InvalidStateError(f"Refusing to write invalid state: {exc}") from exc

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(json.dumps(payload, ensure_ascii=False, indent=2))
                handle.write("\n")
            os.replace(tmp_name, self.path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StateError(f"Cannot write persisted state at {self.path}: {exc}") from exc


class InMemoryStateStore(StateStore):
    """Store that keeps a serialized copy in memory.

    Round-trips through the persisted JSON shape so callers never share
    mutable objects with the store.
    """

    def __init__(self, state: ProjectState | None = None):
        self._payload: dict[str, Any] | None = None
        self.writes = 0
        if state is not None:
            self._payload = state_to_dict(state)

    def read_state(self) -> ProjectState | None:
        if self._payload is None:
            return None
        return state_from_dict(json.loads(json.dumps(self._payload)))

    def write_state(self, state: ProjectState) -> None:
        payload = state_to_dict(state)
        ProjectStateRecord.model_validate(payload)
        self._payload = json.loads(json.dumps(payload))
        self.writes += 1
