"""Exception hierarchy for the project digest pipeline."""

from __future__ import annotations


class DigestError(Exception):
    """Base class for all pipeline errors."""


class SourceError(DigestError):
    """A source could not be pulled (network, auth, rate limit exhausted)."""


class StateError(DigestError):
    """The persisted state could not be read or written."""


class InvalidStateError(StateError):
    """The persisted state exists but does not match the expected schema."""


class PublishError(DigestError):
    """A draft could not be published."""


class SummaryError(DigestError):
    """The optional LLM summary step failed."""


class GitHubAPIError(DigestError):
    """A GitHub REST API call failed.

    Attributes:
        status: HTTP status code, or None for transport-level failures
    """

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
