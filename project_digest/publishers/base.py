"""Publisher contract for delivering drafts to an audience."""

from __future__ import annotations

from abc import ABC, abstractmethod
import re

from ..core.types import ProjectState, PublishResult, UpdateDraft

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def safe_id(draft_id: str) -> str:
    """Map a draft id onto a file-name-safe slug."""
    return _UNSAFE_ID_CHARS.sub("-", draft_id)


class Publisher(ABC):
    """Delivers drafts; publishing the same draft id twice overwrites it."""

    name: str = "publisher"

    async def prepare(self) -> None:
        """Create whatever the destination needs before the first publish."""
        return None

    @abstractmethod
    async def publish(self, draft: UpdateDraft, state: ProjectState) -> PublishResult:
        """Publish ``draft``.

        Raises:
            PublishError: If the draft could not be delivered
        """
        raise NotImplementedError

    async def refresh_index(self) -> None:
        """Rebuild listing pages without publishing anything new."""
        return None

    async def aclose(self) -> None:
        return None
