"""Prompt loading and rendering helpers for LLM providers."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Mapping, Sequence

from ..config import SummaryConfig
from ..core.types import Fact, UpdateDraft


_PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"


@lru_cache(maxsize=None)
def _load_template(name: str) -> str:
    path = _PROMPT_DIR / f"{name}.md"
    return path.read_text(encoding="utf-8").strip()


def _render_template(name: str, **values: str) -> str:
    template = _load_template(name)
    return template.format(**values)


def build_summary_system_prompt(cfg: SummaryConfig) -> str:
    if cfg.system_prompt:
        return cfg.system_prompt
    return _load_template("summary_system")


def build_summary_user_prompt(draft: UpdateDraft, timezone: str, now: str, details: str = "") -> str:
    return _render_template(
        "summary_user",
        timezone=timezone,
        now=now,
        context=draft.markdown,
        details=details,
    )


def build_details_block(facts: Sequence[Fact], details: Mapping[str, str]) -> str:
    """Render per-fact detail text as a ``## Details`` Markdown section.

    Facts without detail text are skipped; returns "" when nothing remains.
    """
    lines: list[str] = []
    for fact in facts:
        text = details.get(fact.id)
        if not text:
            continue
        lines.extend([f"### {fact.summary}", "", text, ""])
    if not lines:
        return ""
    return "\n\n## Details\n\n" + "\n".join(lines)
