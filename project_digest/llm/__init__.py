"""LLM summarization and observability."""

from .providers.base import SummaryProvider
from .providers.factory import available_providers, create_provider
from .providers.gemini import GeminiProvider
from .providers.openai_compatible import OpenAICompatibleProvider
from .summarizer import Summarizer, parse_summary_reply, summary_draft
from .tracing import flush, record_span_error, set_span_output, setup_langfuse, start_span

__all__ = [
    "SummaryProvider",
    "GeminiProvider",
    "OpenAICompatibleProvider",
    "Summarizer",
    "create_provider",
    "available_providers",
    "parse_summary_reply",
    "summary_draft",
    "setup_langfuse",
    "flush",
    "start_span",
    "set_span_output",
    "record_span_error",
]
