"""Abstract interface for chat-style LLM backends."""

from __future__ import annotations

from abc import ABC, abstractmethod


class SummaryProvider(ABC):
    """Provider interface for one-shot summary completions."""

    name: str = "provider"
    default_model: str = ""

    @abstractmethod
    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the model's text reply.

        Raises:
            httpx.HTTPError: On transport failures or non-2xx responses
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
        return None
