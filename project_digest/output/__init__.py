"""Draft rendering and local index helpers."""

from .index_sync import load_index, render_index_html, upsert_index_entry
from .renderer import build_update_draft, render_facts_markdown

__all__ = [
    "build_update_draft",
    "load_index",
    "render_facts_markdown",
    "render_index_html",
    "upsert_index_entry",
]
