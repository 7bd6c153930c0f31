"""
Upsert published updates into a local ``index.json`` and render ``index.html``.

Index handling:
- If the index file is missing, a fresh index is started.
- If the index file is malformed, it rewrites a clean normalized index.
- Entries are keyed by update id; re-publishing an id replaces its entry.
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..core.types import UpdateDraft, parse_iso8601

INDEX_JSON = "index.json"
INDEX_HTML = "index.html"

_TEMPLATE_DIR = Path(__file__).parent / "templates"


def upsert_index_entry(
    out_dir: Path,
    draft: UpdateDraft,
    *,
    path: str,
    url: str | None = None,
) -> Path:
    """Insert or replace the index entry for ``draft`` in ``out_dir/index.json``.

    Returns:
        Path to the updated index file
    """
    index_path = out_dir / INDEX_JSON
    entry: dict[str, Any] = {
        "id": draft.id,
        "title": draft.title or "",
        "createdAt": draft.created_at,
        "path": path,
    }
    if url:
        entry["url"] = url

    entries = load_index(index_path)
    for idx, item in enumerate(entries):
        if item["id"] == draft.id:
            entries[idx] = entry
            break
    else:
        entries.append(entry)

    _write_index(index_path, entries)
    return index_path


def load_index(index_path: Path) -> list[dict[str, Any]]:
    """Return normalized index entries, newest first; malformed items are dropped."""
    if not index_path.exists():
        return []

    try:
        raw = json.loads(index_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return []

    if not isinstance(raw, list):
        return []

    entries: list[dict[str, Any]] = []
    for item in raw:
        normalized = _normalize_entry(item)
        if normalized is not None:
            entries.append(normalized)
    entries.sort(key=lambda item: item["createdAt"], reverse=True)
    return entries


def render_index_html(out_dir: Path, site_title: str = "Project Updates") -> Path:
    """Rebuild ``index.html`` from ``index.json``, rewriting a normalized index too."""
    index_path = out_dir / INDEX_JSON
    entries = load_index(index_path)
    _write_index(index_path, entries)

    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
    )
    template = env.get_template("index.html")
    html = template.render(
        title=site_title,
        entries=entries,
        generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
    )
    html_path = out_dir / INDEX_HTML
    html_path.write_text(html, encoding="utf-8")
    return html_path


def _write_index(index_path: Path, entries: list[dict[str, Any]]) -> None:
    entries.sort(key=lambda item: item["createdAt"], reverse=True)
    index_path.parent.mkdir(parents=True, exist_ok=True)
    index_path.write_text(f"{json.dumps(entries, ensure_ascii=False, indent=2)}\n", encoding="utf-8")


def _normalize_entry(item: Any) -> dict[str, Any] | None:
    if not isinstance(item, dict):
        return None

    entry_id = item.get("id")
    created_at = item.get("createdAt")
    path_value = item.get("path")
    if not isinstance(entry_id, str) or not isinstance(created_at, str) or not isinstance(path_value, str):
        return None

    try:
        parse_iso8601(created_at)
    except ValueError:
        return None

    title = item.get("title")
    normalized: dict[str, Any] = {
        "id": entry_id,
        "title": title if isinstance(title, str) else "",
        "createdAt": created_at,
        "path": path_value,
    }
    url = item.get("url")
    if isinstance(url, str) and url:
        normalized["url"] = url
    return normalized
