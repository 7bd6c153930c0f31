"""Source contract: pull raw events for a time range and convert them to facts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ..core.types import Event, Fact


class Source(ABC):
    """An origin of project activity.

    Implementations must accept the epoch as ``since`` and must produce
    fact ids that are stable across pulls. Retrying rate-limited calls is
    the source's job; anything that still fails should raise
    ``SourceError`` so the run aborts before state is written.
    """

    name: str = "source"

    @abstractmethod
    async def pull_since(self, since_iso: str) -> list[Event]:
        raise NotImplementedError

    @abstractmethod
    async def to_facts(self, events: Sequence[Event]) -> list[Fact]:
        raise NotImplementedError

    async def fetch_details(
        self,
        facts: Sequence[Fact],
        *,
        include_bodies: bool = True,
        max_comments: int = 3,
        max_chars: int = 2000,
    ) -> dict[str, str]:
        """Return optional long-form context keyed by fact id, for summaries."""
        return {}

    async def aclose(self) -> None:
        return None
