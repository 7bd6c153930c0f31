"""
Core domain models and business logic.

This package contains the fact model and the pure pipeline steps
(merge, novelty, windowing) plus the persisted state store.
"""

from .errors import (
    DigestError,
    GitHubAPIError,
    InvalidStateError,
    PublishError,
    SourceError,
    StateError,
    SummaryError,
)
from .merge import merge_facts, select_new_facts
from .storage import FileStateStore, InMemoryStateStore, StateStore
from .types import (
    BatchOutcome,
    Citation,
    CommitData,
    Event,
    Fact,
    GenericData,
    IssueData,
    ProjectState,
    PublishResult,
    PullRequestData,
    RunResult,
    SummaryOutcome,
    UpdateDraft,
)
from .windows import DEFAULT_WINDOW, WindowItem, group_into_windows

__all__ = [
    "BatchOutcome",
    "Citation",
    "CommitData",
    "DEFAULT_WINDOW",
    "DigestError",
    "Event",
    "Fact",
    "FileStateStore",
    "GenericData",
    "GitHubAPIError",
    "InMemoryStateStore",
    "InvalidStateError",
    "IssueData",
    "ProjectState",
    "PublishError",
    "PublishResult",
    "PullRequestData",
    "RunResult",
    "SourceError",
    "StateError",
    "StateStore",
    "SummaryError",
    "SummaryOutcome",
    "UpdateDraft",
    "WindowItem",
    "group_into_windows",
    "merge_facts",
    "select_new_facts",
]
